"""Sales-history import API."""

import logging
from datetime import timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockpilot.api.deps import get_tenant_id
from stockpilot.database import get_db
from stockpilot.models import Product, Sale, SaleItem
from stockpilot.schemas import SalesHistoryImport
from stockpilot.services.sales_import import ImportResult, SalesHistoryImporter, unique_products

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sales-history", tags=["sales-history"])
importer = SalesHistoryImporter()


async def _resolve_products(
    result: ImportResult,
    tenant_id: Optional[str],
    db: AsyncSession,
) -> tuple[dict[str, Product], int]:
    """Find or create a product for every distinct product name."""
    resolved: dict[str, Product] = {}
    created = 0
    for key, rec in unique_products(result.records).items():
        stmt = select(Product).where(func.lower(Product.name) == key)
        if tenant_id:
            stmt = stmt.where(Product.tenant_id == tenant_id)
        product = (await db.execute(stmt.limit(1))).scalar_one_or_none()
        if product is None:
            product = Product(
                tenant_id=tenant_id,
                sku=rec["product_id"] or "",
                name=rec["product_name"],
                selling_price=rec["unit_price"],
            )
            db.add(product)
            created += 1
        resolved[key] = product
    await db.flush()
    return resolved, created


async def _persist(result: ImportResult, tenant_id: Optional[str], db: AsyncSession) -> dict:
    if not result.records:
        return {"sales_created": 0, "products_created": 0}

    products, created = await _resolve_products(result, tenant_id, db)
    for rec in result.records:
        product = products[rec["product_name"].lower()]
        sale = Sale(tenant_id=tenant_id, total_amount=rec["total_amount"],
                    created_at=rec["date"].astimezone(timezone.utc))
        db.add(sale)
        await db.flush()
        db.add(SaleItem(
            sale_id=sale.id,
            product_id=product.id,
            product_name=rec["product_name"],
            price=rec["unit_price"],
            quantity=rec["quantity"],
        ))
    await db.commit()
    logger.info(f"Imported {len(result.records)} historical sales for tenant {tenant_id}")
    return {"sales_created": len(result.records), "products_created": created}


def _response(result: ImportResult, persisted: dict) -> dict:
    return {
        "summary": result.summary(),
        "errors": [e.to_dict() for e in result.errors[:50]],
        **persisted,
    }


@router.post("/import")
async def import_sales_history(
    data: SalesHistoryImport,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """Import historical sales from a JSON array of rows."""
    if not data.sales_history:
        raise HTTPException(400, "No sales history data provided")
    result = importer.import_rows(data.sales_history)
    return _response(result, await _persist(result, tenant_id, db))


@router.post("/import/csv")
async def import_sales_history_csv(
    request: Request,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """Import historical sales from a CSV request body (see ``/template``)."""
    try:
        content = (await request.body()).decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(400, "CSV must be UTF-8 encoded")
    result = importer.import_csv(content)
    if result.total_rows == 0:
        raise HTTPException(400, "No sales history data provided")
    return _response(result, await _persist(result, tenant_id, db))


@router.get("/template", response_class=PlainTextResponse)
async def download_template():
    """CSV template for sales-history imports."""
    return PlainTextResponse(
        importer.generate_template(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=sales_history_template.csv"},
    )
