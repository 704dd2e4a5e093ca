"""Integration-test fixtures (require a migrated PostgreSQL: alembic upgrade head).

All integration tests share a single event loop so that the module-level
SQLAlchemy async engine pool stays valid across the session. The whole
directory is skipped when the database is unreachable.
"""

import uuid

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError

from src.el_common.database import async_session_factory, engine


@pytest_asyncio.fixture(loop_scope="session", scope="session", autouse=True)
async def _require_database() -> None:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1 FROM credit_balances LIMIT 1"))
    except (OSError, OperationalError, DBAPIError) as exc:
        pytest.skip(f"PostgreSQL not available or not migrated: {exc}")


@pytest_asyncio.fixture(loop_scope="session")
async def session():
    async with async_session_factory() as s:
        yield s


@pytest.fixture
def account_id() -> str:
    """Fresh billing account per test; ledger rows are never deleted."""
    return f"it-{uuid.uuid4().hex}"
