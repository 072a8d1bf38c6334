"""Sales data models."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from stockpilot.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class Product(Base):
    """Product catalog entry owned by one tenant."""
    __tablename__ = "products"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(100), nullable=True, index=True)
    sku = Column(String(100), default="", index=True)
    name = Column(String(500), nullable=False)
    description = Column(Text, default="")
    category = Column(String(200), default="")
    cost_price = Column(Numeric(10, 2), default=0)
    selling_price = Column(Numeric(10, 2), default=0)
    stock_quantity = Column(Integer, default=0)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    sale_items = relationship("SaleItem", back_populates="product")


class Sale(Base):
    """Checkout record. Never mutated after creation."""
    __tablename__ = "sales"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(100), nullable=True, index=True)
    total_amount = Column(Numeric(12, 2), default=0)
    payment_method = Column(String(50), default="cash")
    notes = Column(Text, default="")
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    items = relationship("SaleItem", back_populates="sale", lazy="selectin")


class SaleItem(Base):
    """Line item; ``product_name`` and ``price`` are snapshots taken at checkout."""
    __tablename__ = "sale_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    sale_id = Column(Uuid, ForeignKey("sales.id"), nullable=False, index=True)
    product_id = Column(Uuid, ForeignKey("products.id"), nullable=True, index=True)
    product_name = Column(String(500), default="")
    price = Column(Numeric(10, 2), default=0)
    quantity = Column(Integer, default=1)

    sale = relationship("Sale", back_populates="items")
    product = relationship("Product", back_populates="sale_items")
