"""Pytest configuration and fixtures for backend tests.

Database Handling:
- Uses TEST_DATABASE_URL if set (PostgreSQL via asyncpg in CI)
- Otherwise uses a temporary SQLite database through aiosqlite
- Tables are created and dropped around every test
"""

import os
import tempfile
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Set test environment variables before importing app modules
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-" + "0" * 32
os.environ["REVOCATION_GRACE_PERIOD_DAYS"] = "30"
os.environ["ENABLE_DIAGNOSTIC_ENDPOINTS"] = "false"

_TEST_DB_DIR = tempfile.mkdtemp(prefix="sessionguard-tests-")


def _get_database_url() -> str:
    """Get database URL, preferring an explicit TEST_DATABASE_URL."""
    explicit_url = os.environ.get("TEST_DATABASE_URL")
    if explicit_url:
        return explicit_url
    return f"sqlite+aiosqlite:///{_TEST_DB_DIR}/sessionguard_test.db"


# Set DATABASE_URL for app imports
os.environ["DATABASE_URL"] = _get_database_url()


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a database engine with a fresh schema for one test."""
    from sessionguard.core.database import Base
    from sessionguard.models import Comment, Post, Project, RevokedToken, User  # noqa: F401

    engine = create_async_engine(
        _get_database_url(),
        poolclass=NullPool,
        echo=False,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables after test
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine (for code that opens its own sessions)."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


def _client_for(app, db_session: AsyncSession) -> AsyncClient:
    from sessionguard.core.database import get_db

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    return AsyncClient(transport=transport, base_url="http://test")


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database override."""
    from sessionguard.main import app

    async with _client_for(app, db_session) as client:
        yield client

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def diagnostic_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async test client for an app built with diagnostic endpoints enabled."""
    from sessionguard.main import create_app

    app = create_app(enable_diagnostic_endpoints=True)
    async with _client_for(app, db_session) as client:
        yield client

    app.dependency_overrides.clear()


# --- Token Fixtures ---


@pytest.fixture
def codec():
    """Token codec configured with the test secret."""
    from sessionguard.services.token_codec import get_token_codec

    return get_token_codec()


@pytest.fixture
def make_token(codec):
    """Factory for signed access tokens.

    Tokens default to having been issued a few seconds ago so that a
    cutoff set "now" is strictly after them only when a test asks for it.
    """
    from sessionguard.core.timeutils import utcnow

    def _make_token(
        subject_id,
        issued_at: datetime | None = None,
        expires_delta: timedelta | None = None,
        **claims,
    ) -> str:
        return codec.create_access_token(
            str(subject_id),
            expires_delta=expires_delta,
            issued_at=issued_at or utcnow() - timedelta(seconds=5),
            **claims,
        )

    return _make_token


def bearer(token: str) -> dict[str, str]:
    """Authorization header for a raw token."""
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(user_factory, make_token):
    """Factory returning (user, headers) for a freshly created user."""

    async def _auth_headers(**user_kwargs):
        user = await user_factory(**user_kwargs)
        token = make_token(user.id)
        return user, bearer(token)

    return _auth_headers


# --- Test Factories ---


@pytest.fixture
def user_factory(db_session):
    """Factory for creating test User objects."""
    from sessionguard.models.user import User

    counter = {"n": 0}

    async def _create_user(
        email: str | None = None,
        last_logout_at: datetime | None = None,
    ) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            last_logout_at=last_logout_at,
        )
        db_session.add(user)
        await db_session.flush()
        await db_session.refresh(user)
        return user

    return _create_user


@pytest.fixture
def post_factory(db_session):
    """Factory for creating test Post objects."""
    from sessionguard.models.resources import Post

    async def _create_post(user) -> Post:
        post = Post(user_id=user.id)
        db_session.add(post)
        await db_session.flush()
        await db_session.refresh(post)
        return post

    return _create_post


@pytest.fixture
def comment_factory(db_session):
    """Factory for creating test Comment objects."""
    from sessionguard.models.resources import Comment

    async def _create_comment(user, post=None) -> Comment:
        comment = Comment(user_id=user.id, post_id=post.id if post else None)
        db_session.add(comment)
        await db_session.flush()
        await db_session.refresh(comment)
        return comment

    return _create_comment


@pytest.fixture
def project_factory(db_session):
    """Factory for creating test Project objects."""
    from sessionguard.models.resources import Project

    async def _create_project(user) -> Project:
        project = Project(creator_id=user.id)
        db_session.add(project)
        await db_session.flush()
        await db_session.refresh(project)
        return project

    return _create_project
