"""Pydantic schemas for the StockPilot API."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


# ── Product ──────────────────────────────────────────────
class ProductCreate(BaseModel):
    name: str
    sku: str = ""
    description: str = ""
    category: str = ""
    cost_price: Decimal = Decimal("0")
    selling_price: Decimal = Decimal("0")
    stock_quantity: int = 0


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    cost_price: Optional[Decimal] = None
    selling_price: Optional[Decimal] = None
    stock_quantity: Optional[int] = None
    active: Optional[bool] = None


class ProductOut(BaseModel):
    id: UUID
    tenant_id: Optional[str] = None
    sku: str
    name: str
    description: str
    category: str
    cost_price: Decimal
    selling_price: Decimal
    stock_quantity: int
    active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Sale ─────────────────────────────────────────────────
class SaleItemCreate(BaseModel):
    product_id: UUID
    quantity: int = Field(1, ge=1)
    price: Optional[Decimal] = Field(None, ge=0)  # defaults to the product's selling price


class SaleCreate(BaseModel):
    items: list[SaleItemCreate] = Field(min_length=1)
    payment_method: str = "cash"
    notes: str = ""
    created_at: Optional[datetime] = None


class SaleItemOut(BaseModel):
    id: UUID
    product_id: Optional[UUID] = None
    product_name: str
    price: Decimal
    quantity: int

    model_config = {"from_attributes": True}


class SaleOut(BaseModel):
    id: UUID
    tenant_id: Optional[str] = None
    total_amount: Decimal
    payment_method: str
    notes: str
    created_at: datetime
    items: list[SaleItemOut] = []

    model_config = {"from_attributes": True}


# ── Sales history import ─────────────────────────────────
class SalesHistoryImport(BaseModel):
    sales_history: list[dict] = Field(default_factory=list)
