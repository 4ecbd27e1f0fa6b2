"""
Shared fixtures: in-memory stores, a recording notifier, a controllable
clock, and a FastAPI test client wired to them.
"""

import uuid
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from auth.dependencies import get_credential_store, get_ledger_store
from auth.jwt import TokenCodec
from auth.password import hash_password
from auth.service import AuthService
from config.settings import Settings
from database.models import User, UserRole
from database.store import CredentialStore, LedgerStore, validate_user
from utils.errors import DeliveryError
from utils.mailer import Notifier

START = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = START):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryCredentialStore(CredentialStore):
    def __init__(self):
        self.users = {}
        # (hash, expires_at) as written by each save, to check the reset pair
        self.writes = []

    async def find_by_email(self, email):
        return next((u for u in self.users.values() if u.email == email), None)

    async def find_by_id(self, user_id):
        try:
            return self.users.get(uuid.UUID(str(user_id)))
        except ValueError:
            return None

    async def find_by_reset_token(self, token_hash, now):
        for user in self.users.values():
            if (
                user.password_reset_token_hash == token_hash
                and user.password_reset_expires_at is not None
                and user.password_reset_expires_at > now
            ):
                return user
        return None

    async def create_user(self, user):
        validate_user(user)
        self.users[user.user_id] = user
        return user

    async def save(self, user, validate=True):
        if validate:
            validate_user(user)
        self.writes.append((user.password_reset_token_hash, user.password_reset_expires_at))
        self.users[user.user_id] = user
        return user


class InMemoryLedgerStore(LedgerStore):
    def __init__(self):
        self.records = {}

    async def list_for_user(self, user_id):
        owned = [r for r in self.records.values() if r.user_id == user_id]
        return sorted(owned, key=lambda r: r.created_at, reverse=True)

    async def add(self, transaction):
        self.records[transaction.transaction_id] = transaction
        return transaction

    async def get(self, transaction_id):
        try:
            return self.records.get(uuid.UUID(str(transaction_id)))
        except ValueError:
            return None

    async def delete(self, transaction):
        self.records.pop(transaction.transaction_id, None)


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send(self, message):
        if self.fail:
            raise DeliveryError()
        self.sent.append(message)

    @property
    def last_secret(self) -> str:
        """The reset secret embedded at the end of the last link sent."""
        body = self.sent[-1].body
        link = next(word for word in body.split() if "/reset-password/" in word)
        return link.rsplit("/", 1)[1]


@pytest.fixture
def settings():
    return Settings(
        jwt_secret="test-secret",
        jwt_expiry_seconds=3600,
        password_reset_expiry_minutes=10,
        bcrypt_rounds=4,
        smtp_host="",
        mail_api_url="",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryCredentialStore()


@pytest.fixture
def ledger():
    return InMemoryLedgerStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def codec(settings, clock):
    return TokenCodec(settings, clock=clock)


@pytest.fixture
def service(settings, store, codec, notifier, clock):
    return AuthService(settings, store, codec, notifier, clock=clock)


@pytest.fixture
def make_user(store, clock):
    """Insert a user directly into the store."""

    def _make(email="ada@example.com", password="correct-horse", role=UserRole.USER, name="Ada"):
        user = User(
            user_id=uuid.uuid4(),
            name=name,
            email=email,
            password_hash=hash_password(password, rounds=4),
            role=role,
            is_active=True,
            created_at=datetime.fromtimestamp(clock(), tz=timezone.utc),
        )
        store.users[user.user_id] = user
        return user

    return _make


@pytest.fixture
def app(settings, store, ledger, notifier, clock):
    from main import create_app

    application = create_app(settings=settings, notifier=notifier, clock=clock)
    application.dependency_overrides[get_credential_store] = lambda: store
    application.dependency_overrides[get_ledger_store] = lambda: ledger
    return application


@pytest.fixture
def client(app):
    return TestClient(app)
