"""
Tests for the protect pipeline and role restriction.
"""

import uuid
from datetime import datetime, timezone

import pytest

from auth.guard import (
    AuthContext,
    AuthGuard,
    AuthState,
    Proceed,
    Reject,
    bearer_token,
    restrict_to,
    run_checks,
)
from database.models import UserRole
from utils.errors import (
    ForbiddenError,
    InvalidTokenError,
    NoTokenError,
    StalePasswordTokenError,
    UserNoLongerExistsError,
    ValidationError,
)


@pytest.fixture
def guard(codec, store):
    return AuthGuard(codec, store)


class TestBearerToken:
    @pytest.mark.parametrize(
        "header, expected",
        [
            ("Bearer abc.def.ghi", "abc.def.ghi"),
            ("bearer abc", "abc"),
            ("  Bearer   abc  ", "abc"),
            (None, None),
            ("", None),
            ("Bearer", None),
            ("Bearer ", None),
            ("Basic dXNlcjpwYXNz", None),
            ("abc.def.ghi", None),
        ],
    )
    def test_extraction(self, header, expected):
        assert bearer_token(header) == expected


class TestRunChecks:
    @pytest.mark.asyncio
    async def test_stops_at_first_reject(self):
        calls = []

        async def first(ctx):
            calls.append("first")
            return Proceed(ctx)

        async def second(ctx):
            calls.append("second")
            return Reject(ValidationError("nope"))

        async def third(ctx):
            calls.append("third")
            return Proceed(ctx)

        with pytest.raises(ValidationError, match="nope"):
            await run_checks([first, second, third], AuthContext())
        assert calls == ["first", "second"]

    @pytest.mark.asyncio
    async def test_threads_context_through(self):
        async def set_token(ctx):
            return Proceed(AuthContext(token="t", state=AuthState.TOKEN_PRESENT))

        async def expect_token(ctx):
            assert ctx.token == "t"
            return Proceed(ctx)

        result = await run_checks([set_token, expect_token], AuthContext())
        assert result.state is AuthState.TOKEN_PRESENT


class TestAuthGuard:
    @pytest.mark.asyncio
    async def test_valid_token_authorizes(self, guard, codec, make_user):
        user = make_user()
        ctx = await guard.authenticate(f"Bearer {codec.issue(str(user.user_id))}")
        assert ctx.state is AuthState.AUTHORIZED
        assert ctx.user is user
        assert ctx.role == "user"
        assert ctx.claims.subject == str(user.user_id)

    @pytest.mark.asyncio
    async def test_missing_header(self, guard):
        with pytest.raises(NoTokenError):
            await guard.authenticate(None)

    @pytest.mark.asyncio
    async def test_invalid_token(self, guard):
        with pytest.raises(InvalidTokenError):
            await guard.authenticate("Bearer not-a-token")

    @pytest.mark.asyncio
    async def test_expired_token(self, guard, codec, clock, make_user):
        user = make_user()
        token = codec.issue(str(user.user_id))
        clock.advance(3600)
        with pytest.raises(InvalidTokenError):
            await guard.authenticate(f"Bearer {token}")

    @pytest.mark.asyncio
    async def test_deleted_user(self, guard, codec):
        token = codec.issue(str(uuid.uuid4()))
        with pytest.raises(UserNoLongerExistsError):
            await guard.authenticate(f"Bearer {token}")

    @pytest.mark.asyncio
    async def test_deactivated_user(self, guard, codec, make_user):
        user = make_user()
        user.is_active = False
        with pytest.raises(UserNoLongerExistsError):
            await guard.authenticate(f"Bearer {codec.issue(str(user.user_id))}")

    @pytest.mark.asyncio
    async def test_password_changed_after_issue(self, guard, codec, clock, make_user):
        user = make_user()
        token = codec.issue(str(user.user_id))
        clock.advance(5)
        user.password_changed_at = datetime.fromtimestamp(clock(), tz=timezone.utc)
        with pytest.raises(StalePasswordTokenError):
            await guard.authenticate(f"Bearer {token}")

    @pytest.mark.asyncio
    async def test_password_changed_before_issue(self, guard, codec, clock, make_user):
        user = make_user()
        user.password_changed_at = datetime.fromtimestamp(clock(), tz=timezone.utc)
        clock.advance(5)
        ctx = await guard.authenticate(f"Bearer {codec.issue(str(user.user_id))}")
        assert ctx.state is AuthState.AUTHORIZED

    @pytest.mark.asyncio
    async def test_token_issued_at_change_instant_is_fresh(self, guard, codec, clock, make_user):
        user = make_user()
        clock.advance(0.1234567)
        user.password_changed_at = datetime.fromtimestamp(clock(), tz=timezone.utc)
        ctx = await guard.authenticate(f"Bearer {codec.issue(str(user.user_id))}")
        assert ctx.state is AuthState.AUTHORIZED


class TestRestrictTo:
    @pytest.mark.asyncio
    async def test_allows_listed_role(self, guard, codec, make_user):
        admin = make_user(role=UserRole.ADMIN)
        ctx = await guard.authenticate(f"Bearer {codec.issue(str(admin.user_id))}")
        result = await restrict_to("admin")(ctx)
        assert isinstance(result, Proceed)
        assert result.context is ctx

    @pytest.mark.asyncio
    async def test_rejects_other_role_after_authentication(self, guard, codec, make_user):
        user = make_user()
        ctx = await guard.authenticate(f"Bearer {codec.issue(str(user.user_id))}")
        result = await restrict_to("admin")(ctx)
        assert isinstance(result, Reject)
        assert isinstance(result.error, ForbiddenError)
        assert result.error.status_code == 403

    @pytest.mark.asyncio
    async def test_accepts_enum_members(self, guard, codec, make_user):
        user = make_user()
        ctx = await guard.authenticate(f"Bearer {codec.issue(str(user.user_id))}")
        result = await restrict_to(UserRole.USER, UserRole.ADMIN)(ctx)
        assert isinstance(result, Proceed)
