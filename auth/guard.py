"""
Request authentication as an explicit pipeline of checks.

Each check receives the ``AuthContext`` built so far and returns either
``Proceed`` (with the advanced context) or ``Reject`` (with the error to
raise).  ``run_checks`` applies them in order and stops at the first
rejection.  The states a request passes through are::

    UNAUTHENTICATED → TOKEN_PRESENT → TOKEN_VERIFIED → USER_LOADED
        → PASSWORD_FRESHNESS_CHECKED → AUTHORIZED
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional, Sequence, Union

from auth.jwt import TokenClaims, TokenCodec
from database.models import User, UserRole
from database.store import CredentialStore
from utils.errors import (
    AppError,
    ForbiddenError,
    InvalidTokenError,
    NoTokenError,
    StalePasswordTokenError,
    UserNoLongerExistsError,
)

logger = logging.getLogger(__name__)


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    TOKEN_PRESENT = "token_present"
    TOKEN_VERIFIED = "token_verified"
    USER_LOADED = "user_loaded"
    PASSWORD_FRESHNESS_CHECKED = "password_freshness_checked"
    AUTHORIZED = "authorized"


@dataclass(frozen=True)
class AuthContext:
    authorization: Optional[str] = None
    state: AuthState = AuthState.UNAUTHENTICATED
    token: Optional[str] = None
    claims: Optional[TokenClaims] = None
    user: Optional[User] = None

    @property
    def role(self) -> Optional[str]:
        if self.user is None:
            return None
        role = self.user.role
        return role.value if isinstance(role, UserRole) else role


@dataclass(frozen=True)
class Proceed:
    context: AuthContext


@dataclass(frozen=True)
class Reject:
    error: AppError


CheckResult = Union[Proceed, Reject]
Check = Callable[[AuthContext], Awaitable[CheckResult]]


async def run_checks(checks: Iterable[Check], context: AuthContext) -> AuthContext:
    """Run ``checks`` in order; raise the error of the first ``Reject``."""
    for check in checks:
        result = await check(context)
        if isinstance(result, Reject):
            logger.debug(
                "Auth check %s rejected request in state %s: %s",
                getattr(check, "__name__", check), context.state.value, result.error.message,
            )
            raise result.error
        context = result.context
    return context


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token of a ``Bearer <token>`` header value, else ``None``."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


class AuthGuard:
    """Protect gate: turns an Authorization header into an authorized user."""

    def __init__(self, codec: TokenCodec, store: CredentialStore) -> None:
        self._codec = codec
        self._store = store

    @property
    def checks(self) -> Sequence[Check]:
        return (
            self.extract_token,
            self.verify_token,
            self.load_user,
            self.check_password_freshness,
        )

    async def authenticate(self, authorization: Optional[str]) -> AuthContext:
        context = await run_checks(self.checks, AuthContext(authorization=authorization))
        return replace(context, state=AuthState.AUTHORIZED)

    async def extract_token(self, context: AuthContext) -> CheckResult:
        token = bearer_token(context.authorization)
        if token is None:
            return Reject(NoTokenError())
        return Proceed(replace(context, token=token, state=AuthState.TOKEN_PRESENT))

    async def verify_token(self, context: AuthContext) -> CheckResult:
        try:
            claims = self._codec.verify(context.token)
        except InvalidTokenError as exc:
            return Reject(exc)
        return Proceed(replace(context, claims=claims, state=AuthState.TOKEN_VERIFIED))

    async def load_user(self, context: AuthContext) -> CheckResult:
        user = await self._store.find_by_id(context.claims.subject)
        if user is None or user.is_active is False:
            return Reject(UserNoLongerExistsError())
        return Proceed(replace(context, user=user, state=AuthState.USER_LOADED))

    async def check_password_freshness(self, context: AuthContext) -> CheckResult:
        if changed_password_after(context.user, context.claims.issued_at):
            return Reject(StalePasswordTokenError())
        return Proceed(replace(context, state=AuthState.PASSWORD_FRESHNESS_CHECKED))


def changed_password_after(user: User, issued_at: float) -> bool:
    """True if ``user`` changed their password after ``issued_at`` (epoch seconds)."""
    if user.password_changed_at is None:
        return False
    return user.password_changed_at.timestamp() > issued_at


def restrict_to(*roles: str) -> Check:
    """Build a check that rejects contexts whose role is not in ``roles``."""
    allowed = frozenset(r.value if isinstance(r, UserRole) else r for r in roles)

    async def check_role(context: AuthContext) -> CheckResult:
        if context.role not in allowed:
            return Reject(ForbiddenError())
        return Proceed(context)

    return check_role
