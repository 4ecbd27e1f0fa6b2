"""
Account flows: signup, login, password reset and password update.

``AuthService`` composes the credential store, token codec, reset token
manager and notifier.  Every method either returns its result or raises an
``AppError`` subclass; HTTP mapping happens at the error boundary.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable, Optional, Tuple

from auth.jwt import TokenCodec
from auth.password import check_new_password, hash_password, verify_password
from auth.reset import ResetTokenManager, clear_reset_fields
from config.settings import Settings
from database.models import User, UserRole
from database.store import CredentialStore
from utils.errors import (
    AuthenticationError,
    DeliveryError,
    DependencyError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)
from utils.mailer import MailMessage, Notifier

logger = logging.getLogger(__name__)

RESET_SUBJECT = "Your password reset token (valid for {minutes} min)"
RESET_BODY = (
    "Forgot your password? Submit a PATCH request with your new password and "
    "passwordConfirm to: {url}\n\n"
    "If you didn't forget your password, please ignore this email."
)


@lru_cache(maxsize=None)
def _dummy_hash(rounds: int) -> str:
    """Hash checked for unknown emails so every failed login pays for bcrypt."""
    return hash_password("not-a-real-password", rounds=rounds)


class AuthService:
    def __init__(
        self,
        settings: Settings,
        store: CredentialStore,
        codec: TokenCodec,
        notifier: Notifier,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._store = store
        self._codec = codec
        self._notifier = notifier
        self._clock = clock
        self.reset_tokens = ResetTokenManager(settings, store, clock)

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def _set_password(self, user: User, password: str, password_confirm: Optional[str]) -> None:
        check_new_password(password, password_confirm, self._settings.min_password_length)
        user.password_hash = hash_password(password, rounds=self._settings.bcrypt_rounds)
        user.password_changed_at = self._now()

    # ── Signup / login ─────────────────────────────────────────────────

    async def signup(
        self,
        name: str,
        email: str,
        password: str,
        password_confirm: Optional[str],
    ) -> Tuple[User, str]:
        check_new_password(password, password_confirm, self._settings.min_password_length)
        if await self._store.find_by_email(email) is not None:
            raise ValidationError("Email already registered.")

        user = User(
            user_id=uuid.uuid4(),
            name=name,
            email=email,
            password_hash=hash_password(password, rounds=self._settings.bcrypt_rounds),
            role=UserRole.USER,
            is_active=True,
            created_at=self._now(),
        )
        await self._store.create_user(user)
        logger.info("Registered user %s (%s)", user.name, user.user_id)
        return user, self._codec.issue(str(user.user_id))

    async def login(self, email: Optional[str], password: Optional[str]) -> Tuple[User, str]:
        if not email or not password:
            raise ValidationError("Please provide email and password.")

        user = await self._store.find_by_email(email)
        if user is None:
            verify_password(password, _dummy_hash(self._settings.bcrypt_rounds))
            raise InvalidCredentialsError()
        if user.is_active is False or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        logger.info("Login: %s (%s)", user.name, user.user_id)
        return user, self._codec.issue(str(user.user_id))

    # ── Password reset ─────────────────────────────────────────────────

    async def forgot_password(self, email: Optional[str], reset_base_url: str) -> None:
        """
        Email a one-time reset link to ``email``.

        If delivery fails the pending token is discarded before
        ``DependencyError`` is raised, so no unusable token remains.
        """
        if not email:
            raise ValidationError("Please provide your email address.")
        user = await self._store.find_by_email(email)
        if user is None:
            raise NotFoundError("There is no user with that email address.")

        secret = await self.reset_tokens.create_reset_secret(user)
        minutes = self._settings.password_reset_expiry_minutes
        message = MailMessage(
            recipient=user.email,
            subject=RESET_SUBJECT.format(minutes=minutes),
            body=RESET_BODY.format(url=f"{reset_base_url.rstrip('/')}/{secret}"),
        )
        try:
            await self._notifier.send(message)
        except DeliveryError:
            await self.reset_tokens.discard(user)
            raise DependencyError("There was an error sending the email. Try again later.")

    async def reset_password(
        self,
        secret: str,
        password: str,
        password_confirm: Optional[str],
    ) -> Tuple[User, str]:
        user = await self.reset_tokens.redeem(secret)
        self._set_password(user, password, password_confirm)
        clear_reset_fields(user)
        await self._store.save(user)
        logger.info("Password reset for user %s", user.user_id)
        return user, self._codec.issue(str(user.user_id))

    # ── Password update ────────────────────────────────────────────────

    async def update_password(
        self,
        user: User,
        current_password: Optional[str],
        password: str,
        password_confirm: Optional[str],
    ) -> Tuple[User, str]:
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("Your current password is wrong.")
        self._set_password(user, password, password_confirm)
        await self._store.save(user)
        logger.info("Password updated for user %s", user.user_id)
        return user, self._codec.issue(str(user.user_id))
