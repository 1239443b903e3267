"""
Sales Analytics Module

Dense daily and hourly sales series, growth rate, top products and
financial status breakdown for a reporting window.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import polars as pl
import structlog

from shopify_analytics.models import Order, as_utc
from shopify_analytics.transformation.products import build_daily_timeline, eligible_orders
from shopify_analytics.transformation.records import as_records

logger = structlog.get_logger(__name__)

TOP_PRODUCTS_LIMIT = 20


def date_range(start: date, end: date) -> List[str]:
    """Every calendar date in [start, end] as ``YYYY-MM-DD``"""
    days = (end - start).days
    return [(start + timedelta(days=offset)).isoformat() for offset in range(days + 1)]


def _period(start: datetime, end: datetime) -> Dict[str, Any]:
    return {
        "start": start.date().isoformat(),
        "end": end.date().isoformat(),
        "days": (end.date() - start.date()).days + 1,
    }


def _empty_daily(start: datetime, end: datetime) -> List[Dict[str, Any]]:
    return [{"date": day, "sales": 0, "orders": 0} for day in date_range(start.date(), end.date())]


def _empty_hourly() -> List[Dict[str, Any]]:
    return [{"hour": hour, "sales": 0, "orders": 0} for hour in range(24)]


def growth_rate(orders: List[Order], start: datetime, end: datetime) -> float:
    """
    Revenue growth of the second half of the window over the first half,
    in percent; 0 when the first half had no revenue.
    """
    midpoint = start + (end - start) / 2
    first_half = sum(order.total_price for order in orders if order.created_at <= midpoint)
    second_half = sum(order.total_price for order in orders if order.created_at > midpoint)

    if first_half <= 0:
        return 0
    return (second_half - first_half) / first_half * 100


def dense_daily_sales(orders: List[Order], start: datetime, end: datetime) -> List[Dict[str, Any]]:
    """Daily sales for every date in the window, zero-filled"""
    calendar = pl.DataFrame({"date": date_range(start.date(), end.date())}, schema={"date": pl.Utf8})
    daily = pl.DataFrame(
        build_daily_timeline(orders),
        schema={"date": pl.Utf8, "sales": pl.Float64, "orders": pl.Int64},
    )

    dense = (
        calendar.join(daily, on="date", how="left")
        .with_columns([
            pl.col("sales").fill_null(0.0),
            pl.col("orders").fill_null(0),
        ])
        .sort("date")
    )
    return dense.to_dicts()


def hourly_sales(orders: List[Order], now: datetime) -> List[Dict[str, Any]]:
    """24 hourly buckets for the calendar day of ``now``"""
    buckets = _empty_hourly()
    today = now.date()

    for order in orders:
        created = order.created_at.astimezone(now.tzinfo) if now.tzinfo else order.created_at
        if created.date() != today:
            continue
        buckets[created.hour]["sales"] += order.total_price
        buckets[created.hour]["orders"] += 1

    return buckets


def top_products(orders: List[Order], limit: int = TOP_PRODUCTS_LIMIT) -> List[Dict[str, Any]]:
    """Best selling products by line revenue, grouped by title"""
    lines = [item for order in orders for item in order.line_items]
    df = pl.DataFrame(
        {
            "title": [item.title or "Unknown Product" for item in lines],
            "quantity": [item.quantity for item in lines],
            "revenue": [item.line_total for item in lines],
        },
        schema={"title": pl.Utf8, "quantity": pl.Int64, "revenue": pl.Float64},
    )

    ranked = (
        df.group_by("title", maintain_order=True)
        .agg([
            pl.col("quantity").sum(),
            pl.col("revenue").sum(),
            pl.len().alias("orders"),
        ])
        .with_columns(
            pl.when(pl.col("quantity") > 0)
            .then(pl.col("revenue") / pl.col("quantity"))
            .otherwise(0.0)
            .alias("avg_price")
        )
        .sort("revenue", descending=True, maintain_order=True)
        .head(limit)
    )
    return ranked.to_dicts()


def status_breakdown(orders: List[Order]) -> Dict[str, int]:
    breakdown: Dict[str, int] = {}
    for order in orders:
        status = order.financial_status or "unknown"
        breakdown[status] = breakdown.get(status, 0) + 1
    return breakdown


def _assemble(
    summary: Dict[str, Any],
    daily: List[Dict[str, Any]],
    hourly: List[Dict[str, Any]],
    products: List[Dict[str, Any]],
    statuses: Dict[str, int],
) -> Dict[str, Any]:
    return {
        "summary": summary,
        "daily_sales": daily,
        "hourly_sales": hourly,
        "top_products": products,
        "status_breakdown": statuses,
        "charts": {
            "daily_trend": daily,
            "hourly_today": hourly,
            "status_pie": [
                {"name": status.replace("_", " ").capitalize(), "value": count}
                for status, count in statuses.items()
            ],
        },
        "trends": {
            "daily_sales": daily,
            "hourly_sales": hourly,
            "monthly_trends": [],
        },
    }


def empty_sales_analytics(start: datetime, end: datetime) -> Dict[str, Any]:
    """Zero-valued sales analytics covering the window"""
    result = _assemble(
        {
            "total_sales": 0,
            "total_orders": 0,
            "average_order_value": 0,
            "growth_rate": 0,
            "currency": "USD",
            "period": _period(start, end),
        },
        _empty_daily(start, end),
        _empty_hourly(),
        [],
        {},
    )
    result["note"] = "No orders found in the specified date range"
    return result


def analyze_sales_data(
    orders: List[Order],
    start: datetime,
    end: datetime,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Sales analytics for the window [start, end].

    Revenue figures only use orders that are neither cancelled nor
    refunded; the status breakdown counts every fetched order.

    Args:
        orders: Orders created within the window
        start: Window start
        end: Window end
        now: Reference time for the hourly "today" series

    Returns:
        ``{summary, daily_sales, hourly_sales, top_products,
        status_breakdown, charts, trends}``
    """
    start, end = as_utc(start), as_utc(end)
    orders = as_records(Order, orders)
    if not orders:
        return empty_sales_analytics(start, end)

    now = as_utc(now or datetime.now(timezone.utc))
    surviving = eligible_orders(orders)

    total_sales = sum(order.total_price for order in surviving)
    total_orders = len(surviving)

    summary = {
        "total_sales": round(total_sales, 2),
        "total_orders": total_orders,
        "average_order_value": round(total_sales / total_orders, 2) if total_orders else 0,
        "growth_rate": round(growth_rate(surviving, start, end), 2),
        "currency": orders[0].currency or "USD",
        "period": _period(start, end),
    }

    logger.debug("Sales analytics computed", orders=len(orders), surviving=total_orders)

    return _assemble(
        summary,
        dense_daily_sales(surviving, start, end),
        hourly_sales(surviving, now),
        top_products(surviving),
        status_breakdown(orders),
    )
