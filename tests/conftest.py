import os
from contextlib import contextmanager
from typing import AsyncGenerator

# The module-level engine in libs.db.config needs a URL at import time;
# every test still runs against its own SQLite file below.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("ENVIRONMENT", "local")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.db.base import Base
from libs.db.session import get_async_db
from services.ordering_service import models as _ordering_models  # noqa: F401
from services.ordering_service.app.main import app
from services.ordering_service.routers._helpers import get_payment_decider
from services.ordering_service.services.payment_ops import FixedDecider

get_settings.cache_clear()
settings = get_settings()


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------


def make_member_user(user_id: str = "member-1", email: str = "member@example.com"):
    return AuthUser(user_id=user_id, email=email, role="member")


def make_admin_user(user_id: str = "admin-1", email: str = "admin@example.com"):
    return AuthUser(user_id=user_id, email=email, role="admin")


@contextmanager
def override_auth(target_app, user: AuthUser):
    """Temporarily authenticate every request to ``target_app`` as ``user``."""
    previous = target_app.dependency_overrides.get(get_current_user)
    target_app.dependency_overrides[get_current_user] = lambda: user
    try:
        yield user
    finally:
        if previous is None:
            target_app.dependency_overrides.pop(get_current_user, None)
        else:
            target_app.dependency_overrides[get_current_user] = previous


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    Fresh SQLite file per test. A file (not :memory:) lets concurrent
    sessions use separate connections against the same data.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ordering.db'}",
        connect_args={"timeout": 30},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    AsyncClient against the ordering app. Each request gets its own session,
    the caller is a member and the processor always approves.
    """

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = _get_db
    app.dependency_overrides[get_current_user] = lambda: make_member_user()
    app.dependency_overrides[get_payment_decider] = lambda: FixedDecider(True)

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
