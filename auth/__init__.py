"""
auth — User authentication module.

Provides:
  • JWT session token creation & verification (``auth.jwt``)
  • Password hashing with bcrypt (``auth.password``)
  • One-time password reset secrets (``auth.reset``)
  • The protect / restrict-to check pipeline (``auth.guard``)
  • Signup / login / reset API routes and the ``protect`` FastAPI dependency
"""
