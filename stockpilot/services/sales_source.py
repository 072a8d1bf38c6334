"""Data access for the analytics core.

``SalesDataSource`` is the only capability the analytics core needs from
persistence. ``SqlSalesSource`` reads it from the database and translates
connectivity failures into ``DatabaseConnectionError``. ``InMemorySalesSource``
serves already-loaded records (CLI input files, tests).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Optional, Protocol

from sqlalchemy import select, text
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from stockpilot.exceptions import DatabaseConnectionError
from stockpilot.models import Sale, SaleItem
from stockpilot.services.records import SaleItemRecord, SaleRecord, to_datetime

logger = logging.getLogger(__name__)


class SalesDataSource(Protocol):
    async def fetch_sales(self, tenant_id: Optional[str], since: datetime) -> list[SaleRecord]:
        ...

    async def fetch_sale_items(self, tenant_id: Optional[str], since: datetime) -> list[SaleItemRecord]:
        ...


class SqlSalesSource:
    """Sales history read through an ``AsyncSession``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _execute(self, stmt):
        try:
            return await self.session.execute(stmt)
        except (OperationalError, InterfaceError, OSError) as e:
            logger.error(f"Database unavailable: {e}")
            raise DatabaseConnectionError(
                "Unable to connect to the database. Please try again later."
            ) from e

    async def ping(self) -> None:
        await self._execute(text("SELECT 1"))

    async def fetch_sales(self, tenant_id: Optional[str], since: datetime) -> list[SaleRecord]:
        stmt = select(Sale.id, Sale.created_at, Sale.total_amount, Sale.tenant_id).where(
            Sale.created_at >= since
        )
        if tenant_id:
            stmt = stmt.where(Sale.tenant_id == tenant_id)
        stmt = stmt.order_by(Sale.created_at.asc())

        result = await self._execute(stmt)
        return [
            SaleRecord(id=str(row.id), timestamp=row.created_at,
                       total_amount=row.total_amount, tenant_id=row.tenant_id)
            for row in result.all()
        ]

    async def fetch_sale_items(self, tenant_id: Optional[str], since: datetime) -> list[SaleItemRecord]:
        stmt = (
            select(
                SaleItem.id, SaleItem.sale_id, SaleItem.product_id, SaleItem.product_name,
                SaleItem.price, SaleItem.quantity, Sale.created_at, Sale.tenant_id,
            )
            .join(Sale, SaleItem.sale_id == Sale.id)
            .where(Sale.created_at >= since)
        )
        if tenant_id:
            stmt = stmt.where(Sale.tenant_id == tenant_id)
        stmt = stmt.order_by(Sale.created_at.asc())

        result = await self._execute(stmt)
        return [
            SaleItemRecord(
                id=str(row.id),
                sale_id=str(row.sale_id),
                product_id=str(row.product_id) if row.product_id else None,
                product_name=row.product_name or "",
                unit_price=row.price,
                quantity=row.quantity,
                timestamp=row.created_at,
                tenant_id=row.tenant_id,
            )
            for row in result.all()
        ]


class InMemorySalesSource:
    """Serves records held in memory, filtered like the SQL source.

    Records with unparseable timestamps are passed through so the analytics
    core decides how to treat them.
    """

    def __init__(
        self,
        sales: Iterable[SaleRecord] = (),
        sale_items: Iterable[SaleItemRecord] = (),
    ):
        self.sales = list(sales)
        self.sale_items = list(sale_items)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "InMemorySalesSource":
        """Build from ``{"sales": [...], "sale_items": [...]}`` plain dicts."""
        sales = [
            SaleRecord(
                id=s.get("id"),
                timestamp=s.get("created_at", s.get("timestamp")),
                total_amount=s.get("total_amount"),
                tenant_id=s.get("tenant_id"),
            )
            for s in payload.get("sales", [])
        ]
        items = [
            SaleItemRecord(
                id=i.get("id"),
                sale_id=i.get("sale_id"),
                product_id=i.get("product_id"),
                product_name=i.get("product_name", ""),
                unit_price=i.get("unit_price", i.get("price")),
                quantity=i.get("quantity"),
                timestamp=i.get("created_at", i.get("timestamp")),
                tenant_id=i.get("tenant_id"),
            )
            for i in payload.get("sale_items", [])
        ]
        return cls(sales, items)

    @staticmethod
    def _keep(record, tenant_id: Optional[str], since: datetime) -> bool:
        if tenant_id and record.tenant_id != tenant_id:
            return False
        when = to_datetime(record.timestamp)
        return when is None or when >= since

    async def fetch_sales(self, tenant_id: Optional[str], since: datetime) -> list[SaleRecord]:
        return [s for s in self.sales if self._keep(s, tenant_id, since)]

    async def fetch_sale_items(self, tenant_id: Optional[str], since: datetime) -> list[SaleItemRecord]:
        return [i for i in self.sale_items if self._keep(i, tenant_id, since)]
