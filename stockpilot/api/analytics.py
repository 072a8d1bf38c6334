"""Analytics API endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stockpilot.api.deps import get_tenant_id
from stockpilot.config import get_settings
from stockpilot.database import get_db
from stockpilot.exceptions import (
    AnalyticsError, DatabaseConnectionError, InsufficientDataError, InvalidWindowError,
)
from stockpilot.services.analytics import SalesAnalytics
from stockpilot.services.pricing import CONFIDENCE_THRESHOLDS
from stockpilot.services.sales_source import SqlSalesSource

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])

_STATUS = {
    DatabaseConnectionError: 503,
    InsufficientDataError: 400,
    InvalidWindowError: 422,
}


def _http_error(e: AnalyticsError) -> HTTPException:
    return HTTPException(_STATUS.get(type(e), 500), e.message)


def _window(window_days: Optional[int]) -> int:
    return window_days if window_days is not None else get_settings().default_window_days


@router.get("/revenue")
async def revenue_over_time(
    window_days: Optional[int] = Query(None, description="Days to analyse (default from settings)"),
    include_forecast: bool = False,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """Revenue series, statistics, trend and seasonality for the window."""
    analytics = SalesAnalytics(SqlSalesSource(db))
    try:
        analysis = await analytics.analyze_revenue(_window(window_days), tenant_id, include_forecast)
    except AnalyticsError as e:
        raise _http_error(e)
    return analysis.to_dict()


@router.get("/projected-earnings")
async def projected_earnings(
    window_days: Optional[int] = Query(None),
    tenant_id: Optional[str] = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """Actual revenue for the window followed by an equally long projection."""
    analytics = SalesAnalytics(SqlSalesSource(db))
    try:
        earnings = await analytics.project_earnings(_window(window_days), tenant_id)
    except AnalyticsError as e:
        raise _http_error(e)
    return earnings.to_dict()


@router.get("/price-recommendations")
async def price_recommendations(
    window_days: Optional[int] = Query(None),
    confidence: str = Query("all", description="Minimum confidence: all, low, medium or high"),
    tenant_id: Optional[str] = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """Elasticity-based price suggestions with projected revenue impact."""
    if confidence.lower() not in CONFIDENCE_THRESHOLDS:
        raise HTTPException(422, f"confidence must be one of: {', '.join(CONFIDENCE_THRESHOLDS)}")

    analytics = SalesAnalytics(SqlSalesSource(db))
    try:
        result = await analytics.calculate_price_recommendations(
            _window(window_days), tenant_id, confidence.lower(),
        )
    except AnalyticsError as e:
        raise _http_error(e)
    return result.to_dict()


@router.get("/sales-recommendations")
async def sales_recommendations(
    window_days: Optional[int] = Query(None),
    confidence: str = Query("medium", description="Minimum bundle confidence: all, low, medium or high"),
    tenant_id: Optional[str] = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """Best-selling weekday per product and frequently co-purchased bundles."""
    if confidence.lower() not in CONFIDENCE_THRESHOLDS:
        raise HTTPException(422, f"confidence must be one of: {', '.join(CONFIDENCE_THRESHOLDS)}")

    analytics = SalesAnalytics(SqlSalesSource(db))
    try:
        result = await analytics.calculate_sales_recommendations(
            _window(window_days), tenant_id, confidence.lower(),
        )
    except AnalyticsError as e:
        raise _http_error(e)
    return result.to_dict()
