"""
FastAPI dependencies for authentication.

Provides the store, service and guard dependencies plus ``protect`` and
``restrict_to``, which are used across all protected routes.  Shared
objects (settings, token codec, notifier, clock) live on ``app.state``
and are installed by ``main.create_app``.
"""

from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from auth.guard import AuthContext, AuthGuard, restrict_to as role_check, run_checks
from auth.service import AuthService
from database.models import User
from database.session import get_db_session
from database.store import CredentialStore, LedgerStore, SqlCredentialStore, SqlLedgerStore


async def db_session(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a DB session for route handlers."""
    yield session


async def get_credential_store(session: AsyncSession = Depends(db_session)) -> CredentialStore:
    return SqlCredentialStore(session)


async def get_ledger_store(session: AsyncSession = Depends(db_session)) -> LedgerStore:
    return SqlLedgerStore(session)


def get_auth_service(
    request: Request,
    store: CredentialStore = Depends(get_credential_store),
) -> AuthService:
    state = request.app.state
    return AuthService(
        settings=state.settings,
        store=store,
        codec=state.token_codec,
        notifier=state.notifier,
        clock=state.clock,
    )


def get_auth_guard(
    request: Request,
    store: CredentialStore = Depends(get_credential_store),
) -> AuthGuard:
    return AuthGuard(request.app.state.token_codec, store)


async def get_auth_context(
    request: Request,
    guard: AuthGuard = Depends(get_auth_guard),
) -> AuthContext:
    """
    Run the protect pipeline on the request's Authorization header and
    attach the resolved user and role to ``request.state``.
    """
    context = await guard.authenticate(request.headers.get("Authorization"))
    request.state.user = context.user
    request.state.role = context.role
    return context


async def protect(context: AuthContext = Depends(get_auth_context)) -> User:
    """Return the authenticated ``User`` for a protected route."""
    return context.user


def restrict_to(*roles: str):
    """
    Dependency factory that raises 403 unless the authenticated user's role
    is one of ``roles``.

    Usage:
        @router.delete("/{id}", dependencies=[Depends(restrict_to("admin"))])
    """
    check = role_check(*roles)

    async def _checker(context: AuthContext = Depends(get_auth_context)) -> User:
        await run_checks([check], context)
        return context.user

    return _checker
