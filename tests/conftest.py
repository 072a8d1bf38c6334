"""Test fixtures."""

from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from stockpilot.database import Base, get_db
from stockpilot.main import app
from stockpilot.services.records import SaleItemRecord, SaleRecord

# Use SQLite for tests (no external DB needed for unit tests)
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"

test_engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=NullPool)
test_session = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

TODAY = date(2026, 3, 15)


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with test_session() as session:
        yield session


app.dependency_overrides[get_db] = override_get_db


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ── Record builders ─────────────────────────────────────

def at(day: date, hour: int = 12) -> datetime:
    return datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc)


def days_ago(n: int, hour: int = 12) -> datetime:
    return at(TODAY - timedelta(days=n), hour)


def sale(when, amount, sale_id=None, tenant_id=None) -> SaleRecord:
    return SaleRecord(id=sale_id, timestamp=when, total_amount=amount, tenant_id=tenant_id)


def line(product_id, price, quantity, when, name="", tenant_id=None, sale_id=None) -> SaleItemRecord:
    return SaleItemRecord(
        id=None,
        sale_id=sale_id,
        product_id=product_id,
        product_name=name or f"Product {product_id}",
        unit_price=price,
        quantity=quantity,
        timestamp=when,
        tenant_id=tenant_id,
    )
