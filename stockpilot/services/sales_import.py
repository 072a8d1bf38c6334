"""Bulk import of historical sales.

Each row describes one sold line: ``date, product_name, product_id?, quantity,
unit_price, total_amount?``. Rows are validated and coerced here; persistence
happens in the API layer. Supports CSV and JSON with per-row error reporting.
"""

from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from stockpilot.services.records import to_datetime


@dataclass
class RowError:
    """Single import error record."""
    row: int
    field: str
    value: str
    message: str

    def to_dict(self) -> dict:
        return {"row": self.row, "field": self.field, "message": self.message}


@dataclass
class ImportResult:
    """Result of a sales-history import."""
    total_rows: int = 0
    imported: int = 0
    skipped: int = 0
    errors: list[RowError] = field(default_factory=list)
    records: list[dict] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        if self.total_rows == 0:
            return 0.0
        return round(self.imported / self.total_rows * 100, 1)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def summary(self) -> dict:
        return {
            "total_rows": self.total_rows,
            "imported": self.imported,
            "skipped": self.skipped,
            "errors": len(self.errors),
            "success_rate": self.success_rate,
        }


SALES_HISTORY_FIELDS = {
    "date": {"required": True, "type": "datetime"},
    "product_name": {"required": True, "type": "str", "max_length": 500},
    "product_id": {"required": False, "type": "str", "max_length": 100},
    "quantity": {"required": True, "type": "int", "min": 1},
    "unit_price": {"required": True, "type": "decimal", "min": 0},
    "total_amount": {"required": False, "type": "decimal", "min": 0, "default": None},
}

CSV_TEMPLATE_SAMPLE = {
    "date": "2026-01-15T10:30:00Z",
    "product_name": "Cold Brew 500ml",
    "product_id": "",
    "quantity": "3",
    "unit_price": "4.50",
    "total_amount": "13.50",
}


def validate_field(name: str, value: Any, rules: dict, row: int) -> tuple[Any, Optional[RowError]]:
    """Validate and coerce a single field value."""
    ftype = rules.get("type", "str")

    if value is None or (isinstance(value, str) and value.strip() == ""):
        if rules.get("required", False):
            return None, RowError(row, name, "", f"Required field '{name}' is empty")
        return rules.get("default", "" if ftype == "str" else 0), None

    try:
        if ftype == "str":
            val = str(value).strip()
            max_len = rules.get("max_length")
            if max_len and len(val) > max_len:
                return None, RowError(row, name, val[:50], f"Exceeds max length {max_len}")
            return val, None

        elif ftype == "int":
            if isinstance(value, bool):
                raise ValueError("boolean is not a quantity")
            val = int(float(value))
            mn = rules.get("min")
            if mn is not None and val < mn:
                return None, RowError(row, name, str(val), f"Below minimum {mn}")
            return val, None

        elif ftype == "decimal":
            if isinstance(value, bool):
                raise ValueError("boolean is not an amount")
            val = Decimal(str(value))
            if not val.is_finite():
                raise ValueError("amount must be finite")
            mn = rules.get("min")
            if mn is not None and val < Decimal(str(mn)):
                return None, RowError(row, name, str(val), f"Below minimum {mn}")
            return val, None

        elif ftype == "datetime":
            val = to_datetime(value)
            if val is None:
                raise ValueError("unrecognised date")
            return val, None

    except (ValueError, InvalidOperation, TypeError, OverflowError) as e:
        return None, RowError(row, name, str(value)[:50], f"Invalid {ftype}: {e}")

    return value, None


class SalesHistoryImporter:
    """Parse and validate sales-history rows from CSV or JSON."""

    def import_csv(self, content: str) -> ImportResult:
        reader = csv.DictReader(io.StringIO(content))
        return self._import_rows(enumerate(reader, start=2))

    def import_json(self, content: str) -> ImportResult:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            result = ImportResult()
            result.errors.append(RowError(0, "", "", f"Invalid JSON: {e}"))
            return result
        return self.import_rows(data)

    def import_rows(self, data: Any) -> ImportResult:
        if not isinstance(data, list):
            result = ImportResult()
            result.errors.append(RowError(0, "", "", "Sales history must be an array"))
            return result
        return self._import_rows(enumerate(data, start=1))

    def _import_rows(self, rows) -> ImportResult:
        result = ImportResult()

        for row_num, item in rows:
            result.total_rows += 1
            if not isinstance(item, dict):
                result.errors.append(RowError(row_num, "", "", "Each row must be an object"))
                result.skipped += 1
                continue

            record: dict = {}
            row_errors = []
            for fname, rules in SALES_HISTORY_FIELDS.items():
                val, err = validate_field(fname, item.get(fname), rules, row_num)
                if err:
                    row_errors.append(err)
                else:
                    record[fname] = val

            if row_errors:
                result.errors.extend(row_errors)
                result.skipped += 1
                continue

            if record["total_amount"] is None:
                record["total_amount"] = record["unit_price"] * record["quantity"]

            result.records.append(record)
            result.imported += 1

        return result

    @staticmethod
    def generate_template() -> str:
        """CSV import template with headers and one sample row."""
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=list(SALES_HISTORY_FIELDS))
        writer.writeheader()
        writer.writerow(CSV_TEMPLATE_SAMPLE)
        return buf.getvalue()


def unique_products(records: list[dict]) -> dict[str, dict]:
    """Distinct products in imported rows keyed by lower-cased name.

    When a product appears at several prices the highest one is kept as its
    catalogue price.
    """
    products: dict[str, dict] = {}
    for rec in records:
        key = rec["product_name"].lower()
        current = products.get(key)
        if current is None or current["unit_price"] < rec["unit_price"]:
            products[key] = rec
    return products
