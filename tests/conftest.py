import asyncio
import os
import sys
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("SUPABASE_URL", "https://startronics-test.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key-for-tests-0000000000")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-key-for-tests-0000")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-that-is-long-enough-000000")
os.environ.setdefault("METRICS_ENABLED", "false")

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from startronics.domain.lifecycle.coordinator import LifecycleCoordinator
from startronics.domain.lifecycle.policies import Actor
from startronics.domain.lifecycle.statuses import Role
from startronics.domain.payments import db_models as payment_db_models  # noqa: F401
from startronics.domain.profiles.db_models import UserProfile
from startronics.domain.quotes import db_models as quote_db_models  # noqa: F401
from startronics.domain.repairs import db_models as repair_db_models  # noqa: F401
from startronics.domain.stories import db_models as story_db_models  # noqa: F401
from startronics.infra.db import Base, get_db_session
from startronics.infra.metrics import Metrics
from startronics.main import app
from startronics.services import build_app_services
from startronics.settings import settings


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(scope="session")
def test_engine():
    db_path = Path("test.db")
    if db_path.exists():
        db_path.unlink()
    engine = create_async_engine(
        "sqlite+aiosqlite:///./test.db",
        connect_args={"check_same_thread": False, "timeout": 30},
        poolclass=StaticPool,
    )

    async def init_models() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_models())
    yield engine
    asyncio.run(engine.dispose())


@pytest.fixture(scope="session")
def async_session_maker(test_engine):
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture(autouse=True)
def clean_database(test_engine):
    async def truncate_tables() -> None:
        async with test_engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                await conn.execute(table.delete())

    asyncio.run(truncate_tables())
    yield


@pytest.fixture()
def metrics_client():
    return Metrics(enabled=True)


@pytest.fixture()
def lifecycle(async_session_maker, metrics_client):
    return LifecycleCoordinator(async_session_maker, metrics=metrics_client, default_currency="INR")


@pytest.fixture()
def client(async_session_maker, metrics_client):
    async def override_db_session():
        async with async_session_maker() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    original_factory = getattr(app.state, "db_session_factory", None)
    original_services = getattr(app.state, "services", None)
    original_metrics = getattr(app.state, "metrics", None)
    app.state.db_session_factory = async_session_maker
    app.state.services = build_app_services(
        settings, session_factory=async_session_maker, metrics=metrics_client
    )
    app.state.metrics = metrics_client
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    app.state.db_session_factory = original_factory
    app.state.services = original_services
    app.state.metrics = original_metrics


def make_token(user_id: uuid.UUID, *, expires_in: int = 3600, **claims) -> str:
    payload = {
        "sub": str(user_id),
        "aud": settings.jwt_audience,
        "iss": settings.auth_issuer,
        "exp": datetime.now(tz=timezone.utc) + timedelta(seconds=expires_in),
        "role": "authenticated",
    }
    payload.update(claims)
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


def auth_headers(user_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


async def seed_profile(
    session_factory, role: Role, display_name: str | None = None
) -> Actor:
    user_id = uuid.uuid4()
    async with session_factory() as session:
        session.add(UserProfile(id=user_id, role=role.value, display_name=display_name))
        await session.commit()
    return Actor(user_id=user_id, role=role)


@pytest.fixture()
def make_actor(async_session_maker):
    """Seed a profile synchronously; for TestClient-driven tests."""

    def _make(role: Role, display_name: str | None = None) -> Actor:
        return asyncio.run(seed_profile(async_session_maker, role, display_name))

    return _make
