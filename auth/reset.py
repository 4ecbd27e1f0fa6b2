"""
Password reset secrets.

A reset secret is 32 random bytes rendered as hex.  The plaintext goes to
the user out-of-band and is never stored; the user record keeps only its
SHA-256 digest together with an expiry.  Hash and expiry are always
assigned together and written with a single ``save``.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Callable

from config.settings import Settings
from database.models import User
from database.store import CredentialStore
from utils.errors import ResetTokenInvalidError

logger = logging.getLogger(__name__)

_SECRET_BYTES = 32


def hash_secret(secret: str) -> str:
    """Keyless one-way digest used for storing and looking up reset secrets."""
    return hashlib.sha256(secret.encode()).hexdigest()


class ResetTokenManager:
    def __init__(
        self,
        settings: Settings,
        store: CredentialStore,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._lifetime = timedelta(minutes=settings.password_reset_expiry_minutes)
        self._store = store
        self._clock = clock

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    async def create_reset_secret(self, user: User) -> str:
        """Generate a secret, persist its hash and expiry, return the plaintext."""
        secret = secrets.token_hex(_SECRET_BYTES)
        user.password_reset_token_hash = hash_secret(secret)
        user.password_reset_expires_at = self._now() + self._lifetime
        await self._store.save(user, validate=False)
        logger.info("Issued password reset token for user %s", user.user_id)
        return secret

    async def redeem(self, presented: str) -> User:
        """
        Return the user owning ``presented`` if it is still valid.

        Raises ``ResetTokenInvalidError`` when no unexpired hash matches.
        The caller is responsible for clearing the reset fields and
        setting the new password.
        """
        if not presented:
            raise ResetTokenInvalidError()
        user = await self._store.find_by_reset_token(hash_secret(presented), self._now())
        if user is None:
            raise ResetTokenInvalidError()
        return user

    async def discard(self, user: User) -> None:
        """Drop any pending reset token, as if it was never issued."""
        clear_reset_fields(user)
        await self._store.save(user, validate=False)
        logger.info("Discarded password reset token for user %s", user.user_id)


def clear_reset_fields(user: User) -> None:
    user.password_reset_token_hash = None
    user.password_reset_expires_at = None
