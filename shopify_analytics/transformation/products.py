"""
Product Performance Module

Aggregates orders into per-product revenue and a daily sales timeline.
Cancelled and refunded orders never contribute to revenue figures.
"""

from typing import Any, Dict, Iterable, List, Optional

import polars as pl
import structlog

from shopify_analytics.models import Order, Product
from shopify_analytics.transformation.records import as_records

logger = structlog.get_logger(__name__)

TIMELINE_SCHEMA = {"date": pl.Utf8, "sales": pl.Float64}

LINE_SCHEMA = {
    "id": pl.Utf8,
    "title": pl.Utf8,
    "vendor": pl.Utf8,
    "product_type": pl.Utf8,
    "line_total": pl.Float64,
    "quantity": pl.Int64,
}


def _empty_performance() -> Dict[str, Any]:
    return {
        "products": [],
        "timeline": [],
        "total_sales": 0,
        "total_orders": 0,
        "avg_order_value": 0,
    }


def _matches_filters(item, filters: Dict[str, Any]) -> bool:
    if filters.get("product_type") and item.product_type != filters["product_type"]:
        return False
    if filters.get("vendor") and item.vendor != filters["vendor"]:
        return False
    return True


def eligible_orders(orders: Iterable[Order]) -> List[Order]:
    """Orders that count towards revenue (not cancelled, not refunded)"""
    return [order for order in as_records(Order, orders) if order.is_revenue_eligible]


def build_daily_timeline(orders: List[Order]) -> List[Dict[str, Any]]:
    """Sales and order count per order date, ascending"""
    df = pl.DataFrame(
        {
            "date": [order.order_date for order in orders],
            "sales": [order.total_price for order in orders],
        },
        schema=TIMELINE_SCHEMA,
    )

    timeline = (
        df.group_by("date", maintain_order=True)
        .agg([
            pl.col("sales").sum().alias("sales"),
            pl.len().alias("orders"),
        ])
        .sort("date")
    )
    return timeline.to_dicts()


def transform_orders_to_product_performance(
    orders: List[Order],
    filters: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Transform orders into product performance.

    Args:
        orders: Canonical orders in the reporting window
        filters: Optional ``product_type`` / ``vendor`` restriction on
            line items (order totals are not affected)

    Returns:
        ``{products, timeline, total_sales, total_orders, avg_order_value}``;
        products sorted by revenue descending, timeline by date ascending
    """
    orders = as_records(Order, orders)
    if not orders:
        return _empty_performance()

    filters = filters or {}
    surviving = eligible_orders(orders)

    total_sales = sum(order.total_price for order in surviving)
    total_orders = len(surviving)

    lines = [
        item
        for order in surviving
        for item in order.line_items
        if _matches_filters(item, filters)
    ]
    df = pl.DataFrame(
        {
            "id": [item.product_id for item in lines],
            "title": [item.title for item in lines],
            "vendor": [item.vendor or "" for item in lines],
            "product_type": [item.product_type or "" for item in lines],
            "line_total": [item.line_total for item in lines],
            "quantity": [item.quantity for item in lines],
        },
        schema=LINE_SCHEMA,
    )

    products = (
        df.group_by("id", maintain_order=True)
        .agg([
            pl.col("title").first(),
            pl.col("vendor").first(),
            pl.col("product_type").first(),
            pl.col("line_total").sum().alias("total_sales"),
            pl.col("quantity").sum().alias("total_quantity"),
            pl.len().alias("orders_count"),
        ])
        .sort("total_sales", descending=True, maintain_order=True)
    )

    logger.debug(
        "Product performance computed",
        orders=len(orders),
        surviving=total_orders,
        products=products.height,
    )

    return {
        "products": products.to_dicts(),
        "timeline": build_daily_timeline(surviving),
        "total_sales": total_sales,
        "total_orders": total_orders,
        "avg_order_value": total_sales / total_orders if total_orders else 0,
    }


def transform_orders_to_product_performance_by_id(
    orders: List[Order],
    product_id: str,
) -> Dict[str, Any]:
    """Sales, daily timeline and average unit price of one product"""
    product_id = str(product_id)
    sales = []

    for order in eligible_orders(orders):
        for item in order.line_items:
            if item.product_id != product_id:
                continue
            sales.append({
                "order_id": order.id,
                "order_number": order.name,
                "date": order.order_date,
                "variant_id": item.variant_id,
                "variant_title": item.variant_title or "Default",
                "quantity": item.quantity,
                "price": item.price,
                "total": item.line_total,
            })

    df = pl.DataFrame(
        {
            "date": [sale["date"] for sale in sales],
            "sales": [sale["total"] for sale in sales],
            "quantity": [sale["quantity"] for sale in sales],
        },
        schema={"date": pl.Utf8, "sales": pl.Float64, "quantity": pl.Int64},
    )
    timeline = (
        df.group_by("date", maintain_order=True)
        .agg([pl.col("sales").sum(), pl.col("quantity").sum()])
        .sort("date")
    )

    total_sales = sum(sale["total"] for sale in sales)
    total_quantity = sum(sale["quantity"] for sale in sales)

    return {
        "sales": sales,
        "timeline": timeline.to_dicts(),
        "total_sales": total_sales,
        "total_quantity": total_quantity,
        "avg_price": total_sales / total_quantity if total_quantity else 0,
    }


def summarize_product_performance(
    products: List[Product],
    orders: List[Order],
    filters: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Cross the catalog with orders.

    A product is active when it has at least one line in a surviving order.
    Low sellers only consider products with non-zero revenue; products that
    never sold are a different problem.
    """
    products = as_records(Product, products)
    filters = filters or {}

    product_sales: Dict[str, Dict[str, Any]] = {
        product.id: {
            "id": product.id,
            "title": product.title,
            "vendor": product.vendor or "",
            "product_type": product.product_type or "",
            "total_sales": 0,
            "total_quantity": 0,
            "orders_count": 0,
        }
        for product in products
    }

    for order in eligible_orders(orders):
        for item in order.line_items:
            if not _matches_filters(item, filters):
                continue
            entry = product_sales.get(item.product_id)
            if entry is None:
                continue
            entry["total_sales"] += item.line_total
            entry["total_quantity"] += item.quantity
            entry["orders_count"] += 1

    ranked = sorted(product_sales.values(), key=lambda p: p["total_sales"], reverse=True)
    selling = sorted(
        (p for p in ranked if p["total_sales"] > 0),
        key=lambda p: p["total_sales"],
    )

    return {
        "total_products": len(products),
        "active_products": sum(1 for p in ranked if p["orders_count"] > 0),
        "top_selling": ranked[:5],
        "low_selling": selling[:5],
    }
