"""Product CRUD API."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockpilot.api.deps import get_tenant_id
from stockpilot.database import get_db
from stockpilot.models import Product
from stockpilot.schemas import ProductCreate, ProductOut, ProductUpdate

router = APIRouter(prefix="/products", tags=["products"])


async def _get_owned(product_id: UUID, tenant_id: Optional[str], db: AsyncSession) -> Product:
    stmt = select(Product).where(Product.id == product_id)
    if tenant_id:
        stmt = stmt.where(Product.tenant_id == tenant_id)
    product = (await db.execute(stmt)).scalar_one_or_none()
    if not product:
        raise HTTPException(404, "Product not found")
    return product


@router.get("/", response_model=list[ProductOut])
async def list_products(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    active: bool | None = None,
    q: str | None = None,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Product)
    if tenant_id:
        stmt = stmt.where(Product.tenant_id == tenant_id)
    if active is not None:
        stmt = stmt.where(Product.active == active)
    if q:
        stmt = stmt.where(
            Product.name.ilike(f"%{q}%") | Product.sku.ilike(f"%{q}%")
        )
    stmt = stmt.order_by(Product.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


@router.post("/", response_model=ProductOut, status_code=201)
async def create_product(
    data: ProductCreate,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    if data.sku:
        stmt = select(Product).where(Product.sku == data.sku, Product.tenant_id == tenant_id)
        if (await db.execute(stmt)).scalar_one_or_none():
            raise HTTPException(409, "Product with this SKU already exists")
    product = Product(tenant_id=tenant_id, **data.model_dump())
    db.add(product)
    await db.commit()
    await db.refresh(product)
    return product


@router.get("/{product_id}", response_model=ProductOut)
async def get_product(
    product_id: UUID,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    return await _get_owned(product_id, tenant_id, db)


@router.patch("/{product_id}", response_model=ProductOut)
async def update_product(
    product_id: UUID,
    data: ProductUpdate,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    product = await _get_owned(product_id, tenant_id, db)
    for key, val in data.model_dump(exclude_unset=True).items():
        setattr(product, key, val)
    await db.commit()
    await db.refresh(product)
    return product


@router.delete("/{product_id}", status_code=204)
async def delete_product(
    product_id: UUID,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    product = await _get_owned(product_id, tenant_id, db)
    await db.delete(product)
    await db.commit()
