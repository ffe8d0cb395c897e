"""Shared fixtures: a file-backed SQLite ledger and an HTTP client."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import safari_ledger.models  # noqa: F401
from safari_ledger.core.immutability import register_immutability_enforcement
from safari_ledger.database import Base, get_db
from safari_ledger.main import app
from safari_ledger.models.agent import Agent
from safari_ledger.models.tour import Tour
from safari_ledger.models.user import User, UserRole
from safari_ledger.worker import celery_app
from tests.factories import create_agent, create_tour, create_user

register_immutability_enforcement()

# Notifications run inline; with no webhook configured delivery is a no-op
celery_app.conf.task_always_eager = True
celery_app.conf.task_eager_propagates = False


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"timeout": 30},
    )

    # Writers serialize on BEGIN IMMEDIATE, standing in for Postgres row locks
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
async def client(session_maker) -> AsyncGenerator[AsyncClient, None]:
    async def _get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def agent(db) -> Agent:
    return await create_agent(db)


@pytest.fixture
async def customer(db) -> User:
    return await create_user(db)


@pytest.fixture
async def admin(db) -> User:
    return await create_user(db, role=UserRole.ADMIN)


@pytest.fixture
async def tour(db, agent) -> Tour:
    return await create_tour(db, agent)
