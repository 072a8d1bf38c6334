"""Sale and sale-item records consumed by the analytics core.

Records are plain immutable snapshots of what the persistence layer returned.
Their numeric and timestamp fields are kept raw; the helpers below coerce them
so that one corrupt row never aborts a whole report.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal
from typing import Any, Optional
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class SaleRecord:
    id: Any
    timestamp: Any
    total_amount: Any
    tenant_id: Optional[str] = None


@dataclass(frozen=True)
class SaleItemRecord:
    id: Any
    sale_id: Any
    product_id: Any
    product_name: str
    unit_price: Any
    quantity: Any
    timestamp: Any
    tenant_id: Optional[str] = None


def coerce_amount(value: Any) -> float:
    """Convert a raw numeric value to a finite float, defaulting to 0.

    Accepts ints of any size, floats, Decimals and numeric strings. ``None``,
    booleans, non-numeric strings, NaN and infinities all become ``0.0``.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        if isinstance(value, (int, float, Decimal)):
            result = float(value)
        elif isinstance(value, str):
            result = float(value.strip())
        else:
            return 0.0
    except (ValueError, OverflowError, ArithmeticError):
        return 0.0
    return result if math.isfinite(result) else 0.0


def get_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def to_datetime(value: Any) -> Optional[datetime]:
    """Parse a timestamp into an aware datetime (naive values are UTC)."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_local_date(value: Any, tz: tzinfo = timezone.utc) -> Optional[date]:
    """Calendar date of a timestamp in the reporting timezone."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    dt = to_datetime(value)
    if dt is None:
        return None
    return dt.astimezone(tz).date()
