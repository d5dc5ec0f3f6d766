"""Pytest fixtures for the classifieds backend."""

from collections.abc import AsyncIterator, Iterator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.application.services.credential_service import CredentialService, Registration
from app.core.app_factory import create_application
from app.core.config import Settings
from app.core.container import ApplicationContainer
from app.domain.models import EscortProfile, User
from app.infrastructure.persistence.sqlite import SQLitePersistence
from app.services.email_service import EmailService
from app.services.passwords import PasswordHasher
from app.services.token_service import TokenService

TEST_JWT_SECRET = "test-secret-key-that-is-long-enough-for-hs256"


class FrozenClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self) -> None:
        self.verifications: list[tuple[str, str]] = []
        self.welcomes: list[str] = []
        self.password_resets: list[tuple[str, str]] = []

    def send_verification(self, user: User, verification_token: str) -> None:
        self.verifications.append((user.email, verification_token))

    def send_welcome(self, user: User) -> None:
        self.welcomes.append(user.email)

    def send_password_reset(self, user: User, reset_token: str) -> None:
        self.password_resets.append((user.email, reset_token))

    @property
    def call_count(self) -> int:
        return len(self.verifications) + len(self.welcomes) + len(self.password_resets)

    def last_verification_token(self, email: str) -> str:
        return [token for recipient, token in self.verifications if recipient == email][-1]

    def last_reset_token(self, email: str) -> str:
        return [token for recipient, token in self.password_resets if recipient == email][-1]


def escort_registration(
    email: str = "a@x.com",
    password: str = "secret1",
) -> Registration:
    return Registration(
        email=email,
        password=password,
        profile=EscortProfile(name="A", phone="+1", city="NY", age=25),
    )


@pytest.fixture()
def persistence(tmp_path: Path) -> Iterator[SQLitePersistence]:
    store = SQLitePersistence(tmp_path / "data" / "test.db")
    yield store
    store.close()


@pytest.fixture()
def password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture()
def token_service() -> TokenService:
    return TokenService(secret_key=TEST_JWT_SECRET, expiration_hours=1)


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(datetime.now(timezone.utc))


@pytest.fixture()
def credential_service(
    persistence: SQLitePersistence,
    password_hasher: PasswordHasher,
    token_service: TokenService,
    notifier: RecordingNotifier,
    clock: FrozenClock,
) -> CredentialService:
    return CredentialService(
        persistence,
        password_hasher,
        token_service,
        notifier,
        persistence,
        clock=clock,
    )


@pytest.fixture()
def app(
    persistence: SQLitePersistence,
    password_hasher: PasswordHasher,
    token_service: TokenService,
    notifier: RecordingNotifier,
    credential_service: CredentialService,
) -> FastAPI:
    """Create the FastAPI app wired to the test collaborators."""
    settings = Settings()
    application = create_application(settings)
    application.state.container = ApplicationContainer(
        settings=settings,
        persistence=persistence,
        password_hasher=password_hasher,
        token_service=token_service,
        email_service=EmailService(smtp_host="", smtp_username="", from_email=""),
        notifier=notifier,
        credential_service=credential_service,
    )
    return application


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Return an HTTPX async client bound to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
