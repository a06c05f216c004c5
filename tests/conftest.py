# tests/conftest.py
import os
import uuid
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# ============================================================
# Settings are read on first import of app.config
# ============================================================
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["CACHE_ENABLED"] = "false"

from app import models  # noqa: E402,F401
from app.api.deps import get_cache_service  # noqa: E402
from app.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.services.cache_service import CacheService, InMemoryCache  # noqa: E402


# =========================================
# One SQLite file per test (NullPool, no cross-loop connections)
# =========================================
@pytest_asyncio.fixture(scope="function")
async def async_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'engine.db'}",
        poolclass=NullPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
def async_session_maker(async_engine: AsyncEngine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def session(async_session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as sess:
        try:
            yield sess
        finally:
            if sess.in_transaction():
                await sess.rollback()


@pytest.fixture
def cache() -> CacheService:
    return CacheService(InMemoryCache(), prefix="test")


@pytest.fixture
def tenant_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def warehouse_id() -> uuid.UUID:
    return uuid.uuid4()


# =========================================
# FastAPI / httpx AsyncClient
# =========================================
@pytest_asyncio.fixture(scope="function")
async def client(async_session_maker, cache, tenant_id) -> AsyncGenerator[httpx.AsyncClient, None]:
    async def _get_test_db():
        async with async_session_maker() as sess:
            try:
                yield sess
                await sess.commit()
            except Exception:
                await sess.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_cache_service] = lambda: cache

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://testserver",
        headers={"X-Tenant-ID": str(tenant_id)},
    ) as c:
        yield c

    app.dependency_overrides.clear()


# =========================================
# Audit store that rejects every write
# =========================================
class _UnavailableAuditSession:
    def __init__(self, *args, **kwargs):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def add(self, instance):
        pass

    async def commit(self):
        raise RuntimeError("audit store unavailable")


@pytest.fixture
def audit_store_down(monkeypatch):
    monkeypatch.setattr("app.services.audit_service.AsyncSession", _UnavailableAuditSession)
