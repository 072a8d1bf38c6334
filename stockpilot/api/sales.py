"""Sales API.

Sales are immutable once recorded: there is no update or delete endpoint.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockpilot.api.deps import get_tenant_id
from stockpilot.database import get_db
from stockpilot.models import Product, Sale, SaleItem
from stockpilot.schemas import SaleCreate, SaleOut

router = APIRouter(prefix="/sales", tags=["sales"])


def _as_utc(value: Optional[datetime]) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@router.get("/", response_model=list[SaleOut])
async def list_sales(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    tenant_id: Optional[str] = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Sale)
    if tenant_id:
        stmt = stmt.where(Sale.tenant_id == tenant_id)
    stmt = stmt.order_by(Sale.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


@router.post("/", response_model=SaleOut, status_code=201)
async def create_sale(
    data: SaleCreate,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    lines = []
    for item in data.items:
        stmt = select(Product).where(Product.id == item.product_id)
        if tenant_id:
            stmt = stmt.where(Product.tenant_id == tenant_id)
        product = (await db.execute(stmt)).scalar_one_or_none()
        if not product:
            raise HTTPException(404, f"Product {item.product_id} not found")
        price = item.price if item.price is not None else Decimal(str(product.selling_price or 0))
        lines.append((product, price, item.quantity))

    sale = Sale(
        tenant_id=tenant_id,
        total_amount=sum((price * qty for _, price, qty in lines), Decimal("0")),
        payment_method=data.payment_method,
        notes=data.notes,
        created_at=_as_utc(data.created_at),
    )
    db.add(sale)
    await db.flush()

    for product, price, qty in lines:
        db.add(SaleItem(
            sale_id=sale.id,
            product_id=product.id,
            product_name=product.name,
            price=price,
            quantity=qty,
        ))
        product.stock_quantity = max(0, (product.stock_quantity or 0) - qty)

    await db.commit()
    return await _load_sale(sale.id, db)


@router.get("/{sale_id}", response_model=SaleOut)
async def get_sale(
    sale_id: UUID,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    sale = await _load_sale(sale_id, db)
    if tenant_id and sale.tenant_id != tenant_id:
        raise HTTPException(404, "Sale not found")
    return sale


async def _load_sale(sale_id: UUID, db: AsyncSession) -> Sale:
    result = await db.execute(
        select(Sale).where(Sale.id == sale_id).execution_options(populate_existing=True)
    )
    sale = result.scalar_one_or_none()
    if not sale:
        raise HTTPException(404, "Sale not found")
    return sale
