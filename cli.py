"""StockPilot CLI management tool.

Usage:
    python -m cli analytics revenue sales.json --window-days 90 --forecast
    python -m cli analytics prices sales.json --confidence medium
    python -m cli analytics projected sales.json --window-days 30
    python -m cli analytics recommendations sales.json --confidence low
    python -m cli history template
    python -m cli history validate history.csv
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import date
from pathlib import Path

from stockpilot.exceptions import AnalyticsError
from stockpilot.services.analytics import SalesAnalytics
from stockpilot.services.pricing import CONFIDENCE_THRESHOLDS
from stockpilot.services.sales_import import SalesHistoryImporter
from stockpilot.services.sales_source import InMemorySalesSource


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="stockpilot",
        description="StockPilot CLI",
    )
    sub = parser.add_subparsers(dest="command", help="Top-level command")

    # ── Analytics ────────────────────────────────────────
    analytics_parser = sub.add_parser("analytics", help="Sales analytics over a JSON export")
    analytics_sub = analytics_parser.add_subparsers(dest="action")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("file", help='JSON file: {"sales": [...], "sale_items": [...]}')
    common.add_argument("--window-days", type=int, default=90, help="Days to analyse")
    common.add_argument("--tenant", default=None, help="Only this tenant's sales")
    common.add_argument("--today", type=date.fromisoformat, default=None,
                        help="Pin 'today' (YYYY-MM-DD) for reproducible reports")

    revenue = analytics_sub.add_parser("revenue", parents=[common], help="Revenue over time")
    revenue.add_argument("--forecast", action="store_true", help="Include forecast")

    prices = analytics_sub.add_parser("prices", parents=[common], help="Price recommendations")
    prices.add_argument("--confidence", choices=CONFIDENCE_THRESHOLDS, default="all",
                        help="Minimum confidence")

    analytics_sub.add_parser("projected", parents=[common], help="Projected earnings")

    recs = analytics_sub.add_parser("recommendations", parents=[common],
                                    help="Weekday trends and product bundles")
    recs.add_argument("--confidence", choices=CONFIDENCE_THRESHOLDS, default="medium",
                      help="Minimum bundle confidence")

    # ── Sales history ────────────────────────────────────
    history_parser = sub.add_parser("history", help="Sales-history import files")
    history_sub = history_parser.add_subparsers(dest="action")

    template = history_sub.add_parser("template", help="Print the CSV import template")
    template.add_argument("--output", "-o", help="Output file path")

    validate = history_sub.add_parser("validate", help="Validate a CSV or JSON history file")
    validate.add_argument("file", help="CSV or JSON file")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    handlers = {
        "analytics": handle_analytics,
        "history": handle_history,
    }
    handler = handlers.get(args.command)
    if handler:
        handler(args)
    else:
        parser.print_help()


# ── Command Handlers ────────────────────────────────────

def _read(path_str: str) -> str:
    path = Path(path_str)
    if not path.exists():
        print(f"File not found: {path_str}")
        sys.exit(1)
    return path.read_text(encoding="utf-8-sig")


def handle_analytics(args):
    if args.action not in ("revenue", "prices", "projected", "recommendations"):
        print("Usage: stockpilot analytics {revenue|prices|projected|recommendations} sales.json")
        return

    source = InMemorySalesSource.from_dict(json.loads(_read(args.file)))
    analytics = SalesAnalytics(source, today=args.today)

    if args.action == "revenue":
        call = analytics.analyze_revenue(args.window_days, args.tenant, args.forecast)
    elif args.action == "prices":
        call = analytics.calculate_price_recommendations(
            args.window_days, args.tenant, args.confidence,
        )
    elif args.action == "recommendations":
        call = analytics.calculate_sales_recommendations(
            args.window_days, args.tenant, args.confidence,
        )
    else:
        call = analytics.project_earnings(args.window_days, args.tenant)

    try:
        result = asyncio.run(call)
    except AnalyticsError as e:
        print(json.dumps(e.to_dict(), indent=2))
        sys.exit(1)

    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))


def handle_history(args):
    if args.action == "template":
        content = SalesHistoryImporter.generate_template()
        if args.output:
            Path(args.output).write_text(content)
            print(f"Template saved to {args.output}")
        else:
            print(content)

    elif args.action == "validate":
        content = _read(args.file)
        imp = SalesHistoryImporter()
        if Path(args.file).suffix.lower() == ".json":
            result = imp.import_json(content)
        else:
            result = imp.import_csv(content)

        print("Validation Summary:")
        for k, v in result.summary().items():
            print(f"  {k}: {v}")

        if result.errors:
            print("\nFirst 10 errors:")
            for e in result.errors[:10]:
                print(f"  Row {e.row}, {e.field}: {e.message}")

    else:
        print("Usage: stockpilot history {template|validate}")


if __name__ == "__main__":
    main()
