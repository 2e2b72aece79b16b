"""Global pytest fixtures for Linkboard.

This module provides shared fixtures for testing including:
- Settings and a per-test SQLite database
- Row factories for users, posts and comments
- HTTP clients bound to the application, one cookie jar each
- A mock Redis client for the rate limiter
"""

from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from linkboard.auth import generate_user_id
from linkboard.config import Settings
from linkboard.database import Database
from linkboard.main import create_app
from linkboard.models import Comment, Post, User

DEFAULT_PASSWORD = "hunter22"


# ===========================================
# SETTINGS & DATABASE FIXTURES
# ===========================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Test settings backed by a throwaway SQLite file."""
    return Settings(
        _env_file=None,
        environment="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'linkboard.db'}",
        bcrypt_rounds=4,
        redis_url=None,
        comment_children_preview=2,
        log_level="WARNING",
        log_format="console",
    )


@pytest_asyncio.fixture
async def db(settings: Settings) -> AsyncGenerator[Database, None]:
    """Database with all tables created; disposed after the test."""
    database = Database(settings)
    await database.create_all()
    yield database
    await database.dispose()


# ===========================================
# ROW FACTORIES
# ===========================================


@pytest.fixture
def make_user(db: Database):
    """Insert a user directly, bypassing signup."""

    async def _make(username: str | None = None) -> User:
        user = User(
            id=generate_user_id(),
            username=username or f"user_{uuid4().hex[:8]}",
            password_hash="not-a-real-hash",
        )
        async with db.transaction() as session:
            session.add(user)
        return user

    return _make


@pytest.fixture
def make_post(db: Database):
    """Insert a post; extra keyword arguments become column values."""

    async def _make(author: User, title: str = "A post worth reading", **fields: Any) -> Post:
        fields.setdefault("content", "Some body text")
        post = Post(user_id=author.id, title=title, **fields)
        async with db.transaction() as session:
            session.add(post)
            await session.flush()
            await session.refresh(post)
        return post

    return _make


@pytest.fixture
def fetch(db: Database):
    """Re-read a post or comment row by id."""

    async def _fetch(model: type[Post] | type[Comment], row_id: int):
        async with db.session() as session:
            result = await session.execute(select(model).where(model.id == row_id))
            return result.scalar_one_or_none()

    return _fetch


# ===========================================
# HTTP CLIENT FIXTURES
# ===========================================


@pytest.fixture
def app(settings: Settings, db: Database) -> FastAPI:
    return create_app(settings, db=db)


@pytest_asyncio.fixture
async def client_factory(app: FastAPI) -> AsyncGenerator[Any, None]:
    """Build independent clients, so several users can hold sessions at once."""
    clients: list[AsyncClient] = []

    def _make() -> AsyncClient:
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        client = AsyncClient(transport=transport, base_url="http://testserver")
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()


@pytest_asyncio.fixture
async def async_client(client_factory) -> AsyncClient:
    """Create an anonymous async HTTP client for API testing."""
    return client_factory()


@pytest.fixture
def signup():
    """Sign a client up; its cookie jar then carries the session."""

    async def _signup(client: AsyncClient, username: str, password: str = DEFAULT_PASSWORD):
        response = await client.post(
            "/api/auth/signup", data={"username": username, "password": password}
        )
        assert response.status_code == 201, response.text
        return response

    return _signup


@pytest_asyncio.fixture
async def authenticated_client(client_factory, signup) -> AsyncClient:
    """Create a client logged in as a freshly signed-up user."""
    client = client_factory()
    await signup(client, "alice")
    return client


# ===========================================
# REDIS MOCK FIXTURES
# ===========================================


@pytest.fixture
def mock_redis_client() -> MagicMock:
    """Create a mock Redis client for unit tests."""
    redis = MagicMock()
    redis.zremrangebyscore = MagicMock(return_value=redis)
    redis.zadd = MagicMock(return_value=redis)
    redis.zcard = MagicMock(return_value=redis)
    redis.expire = MagicMock(return_value=redis)
    redis.pipeline = MagicMock(return_value=redis)
    redis.execute = AsyncMock(return_value=[0, 1, 1, True])
    redis.ping = AsyncMock(return_value=True)
    redis.aclose = AsyncMock()
    return redis
