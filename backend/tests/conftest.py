"""
Pytest configuration and fixtures.
Each test gets a fresh in-memory SQLite database and a recording mail service.
"""
import os

# Settings are read at import time
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("BCRYPT_SALT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from retailpos.main import app
from retailpos.api.deps import get_db
from retailpos.db.session import Base
from retailpos.db.models import Role, Store, User
from retailpos.services.auth import AuthService, TokenService, get_auth_service, get_token_service
from retailpos.services.users.service import UserService, get_user_service

TEST_SECRET = "test-secret"


class RecordingEmailService:
    """Stands in for the SMTP mail service and keeps what would be sent."""

    def __init__(self, error: Exception | None = None):
        self.sent: list[tuple[str, str]] = []
        self.error = error

    async def send_verification_email(self, to_email: str, token: str) -> None:
        if self.error:
            raise self.error
        self.sent.append((to_email, token))

    @property
    def last_token(self) -> str:
        return self.sent[-1][1]


@pytest_asyncio.fixture
async def engine():
    """In-memory database shared by every session of a test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(TEST_SECRET)


@pytest.fixture
def email_service() -> RecordingEmailService:
    return RecordingEmailService()


@pytest.fixture
def auth_service(token_service, email_service, session_factory) -> AuthService:
    return AuthService(
        token_service=token_service,
        email_service=email_service,
        session_factory=session_factory,
    )


@pytest_asyncio.fixture
async def reference_data(session_factory) -> tuple[Store, Role]:
    """A store and a role for accounts to reference."""
    async with session_factory() as session:
        store = Store(
            code="S001",
            name="Downtown",
            address="1 Main Street",
            city="Springfield",
            postal_code="00001",
            country="US",
            phone="+15550000001",
            email="downtown@example.com",
            opening_hours=["08:00-20:00"],
            area=120.0,
        )
        role = Role(name="cashier", permissions=["sales:create"])
        session.add_all([store, role])
        await session.commit()
        return store, role


@pytest.fixture
def registration_data(reference_data) -> dict:
    store, role = reference_data
    return {
        "username": "alice",
        "email": "a@x.com",
        "phone": "+15551234567",
        "firstname": "Alice",
        "lastname": "Liddell",
        "store": str(store.id),
        "role": str(role.id),
        "password": "secret1",
    }


@pytest_asyncio.fixture
async def existing_user(session_factory, auth_service, reference_data) -> User:
    """An offline account with password "hunter22"."""
    store, role = reference_data
    async with session_factory() as session:
        user = User(
            username="bob",
            email="bob@x.com",
            phone="+15557654321",
            firstname="Bob",
            lastname="Builder",
            password=auth_service.hash_password("hunter22"),
            store_id=store.id,
            role_id=role.id,
        )
        session.add(user)
        await session.commit()
        return user


async def count_users(session_factory) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(User))


async def load_user(session_factory, username: str) -> User | None:
    async with session_factory() as session:
        result = await session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()


@pytest_asyncio.fixture
async def client(
    auth_service, token_service, session_factory
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the test database and mail service."""

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_auth_service] = lambda: auth_service
    app.dependency_overrides[get_token_service] = lambda: token_service
    app.dependency_overrides[get_user_service] = lambda: UserService(session_factory)
    app.dependency_overrides[get_db] = _override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
