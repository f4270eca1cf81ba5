# tests/conftest.py — Shared test fixtures
import os

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Use SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["ENVIRONMENT"] = "test"

from models import Base
from database import get_db_session
from kanban_store import KanbanStore
from logging_system import get_logger
from main import app


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def store(db_session):
    return KanbanStore(db_session)


@pytest_asyncio.fixture(scope="function")
async def client(db_engine):
    """HTTP test client with overridden DB dependency"""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def structured_logs():
    """Global structured logger with an empty buffer"""
    logger = get_logger()
    logger.buffer.clear()
    yield logger
    logger.buffer.clear()


@pytest_asyncio.fixture
async def sprint_board(store):
    """Board with two columns: To Do (0) and Done (1)"""
    board = await store.create_board("Sprint 1", description="First sprint", project_id=7, created_by=3)
    todo = await store.create_column(board.id, "To Do")
    done = await store.create_column(board.id, "Done")
    return board, todo, done


@pytest_asyncio.fixture
async def chain_cards(store, sprint_board):
    """Three cards in To Do, returned as (c1, c2, c3)"""
    _, todo, _ = sprint_board
    c1 = await store.create_card(todo.id, "Card 1")
    c2 = await store.create_card(todo.id, "Card 2")
    c3 = await store.create_card(todo.id, "Card 3")
    return c1, c2, c3
