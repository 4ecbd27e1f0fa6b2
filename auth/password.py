"""
Password hashing, verification and new-password rules.

Uses bcrypt for password hashing with automatic
salting and a work factor taken from ``Settings.bcrypt_rounds``.
"""

from __future__ import annotations

import bcrypt

from utils.errors import ValidationError


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with bcrypt (auto-salted)."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(password: str, password_hash: str | None) -> bool:
    """Constant-time comparison against a bcrypt hash."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except (ValueError, TypeError):
        return False


def check_new_password(password: str | None, password_confirm: str | None, min_length: int = 8) -> None:
    """
    Enforce the rules for a password about to be stored.

    Raises ``ValidationError`` if the password is missing, too short, or
    does not match its confirmation.
    """
    if not password:
        raise ValidationError("Please provide a password.")
    if len(password) < min_length:
        raise ValidationError(f"Password must be at least {min_length} characters.")
    # bcrypt only looks at the first 72 bytes
    if len(password.encode()) > 72:
        raise ValidationError("Password must be at most 72 bytes.")
    if password != password_confirm:
        raise ValidationError("Passwords are not the same.")
