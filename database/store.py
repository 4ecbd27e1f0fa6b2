"""
Persistence interfaces and their SQLAlchemy implementations.

``CredentialStore`` holds user records, ``LedgerStore`` holds transaction
records.  Lookups return ``None`` when nothing matches.  Every write commits
its own transaction, so the fields changed by one ``save`` land atomically.
"""

from __future__ import annotations

import logging
import re
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import Transaction, User, UserRole
from utils.errors import ValidationError

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _to_uuid(value: str | uuid.UUID) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def validate_user(user: User) -> None:
    """
    Model-level validation run before a validated write.

    Raises ``ValidationError`` naming the first offending field.
    """
    if not user.name or not user.name.strip():
        raise ValidationError("Please tell us your name.")
    if not user.email or not _EMAIL_RE.match(user.email):
        raise ValidationError("Please provide a valid email.")
    if not user.password_hash:
        raise ValidationError("Please provide a password.")
    try:
        UserRole(user.role)
    except ValueError:
        raise ValidationError(f"Unknown role '{user.role}'.") from None
    if (user.password_reset_token_hash is None) != (user.password_reset_expires_at is None):
        raise ValidationError("Password reset token and expiry must be set together.")


# ── Interfaces ─────────────────────────────────────────────────────────


class CredentialStore(ABC):
    """Persistence of user records."""

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    async def find_by_id(self, user_id: str | uuid.UUID) -> Optional[User]:
        ...

    @abstractmethod
    async def find_by_reset_token(self, token_hash: str, now: datetime) -> Optional[User]:
        """Return the user whose reset hash matches and whose expiry is after ``now``."""
        ...

    @abstractmethod
    async def create_user(self, user: User) -> User:
        ...

    @abstractmethod
    async def save(self, user: User, validate: bool = True) -> User:
        ...


class LedgerStore(ABC):
    """Persistence of transaction records."""

    @abstractmethod
    async def list_for_user(self, user_id: uuid.UUID) -> List[Transaction]:
        """Records owned by ``user_id``, newest first."""
        ...

    @abstractmethod
    async def add(self, transaction: Transaction) -> Transaction:
        ...

    @abstractmethod
    async def get(self, transaction_id: str | uuid.UUID) -> Optional[Transaction]:
        ...

    @abstractmethod
    async def delete(self, transaction: Transaction) -> None:
        ...


# ── SQLAlchemy implementations ─────────────────────────────────────────


class SqlCredentialStore(CredentialStore):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self._session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: str | uuid.UUID) -> Optional[User]:
        uid = _to_uuid(user_id)
        if uid is None:
            return None
        return await self._session.get(User, uid)

    async def find_by_reset_token(self, token_hash: str, now: datetime) -> Optional[User]:
        result = await self._session.execute(
            select(User).where(
                User.password_reset_token_hash == token_hash,
                User.password_reset_expires_at > now,
            )
        )
        return result.scalar_one_or_none()

    async def create_user(self, user: User) -> User:
        validate_user(user)
        self._session.add(user)
        try:
            await self._session.commit()
        except IntegrityError:
            # unique email lost a race with a concurrent signup
            await self._session.rollback()
            raise ValidationError("Email already registered.") from None
        logger.debug("Created user %s", user.user_id)
        return user

    async def save(self, user: User, validate: bool = True) -> User:
        if validate:
            validate_user(user)
        self._session.add(user)
        await self._session.commit()
        return user


class SqlLedgerStore(LedgerStore):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_user(self, user_id: uuid.UUID) -> List[Transaction]:
        result = await self._session.execute(
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .order_by(Transaction.created_at.desc())
        )
        return list(result.scalars().all())

    async def add(self, transaction: Transaction) -> Transaction:
        self._session.add(transaction)
        await self._session.commit()
        return transaction

    async def get(self, transaction_id: str | uuid.UUID) -> Optional[Transaction]:
        tid = _to_uuid(transaction_id)
        if tid is None:
            return None
        return await self._session.get(Transaction, tid)

    async def delete(self, transaction: Transaction) -> None:
        await self._session.delete(transaction)
        await self._session.commit()
