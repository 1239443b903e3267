"""
Customer Analytics Module

Customer activity timelines, lifecycle segmentation and per-customer
purchase metrics.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import structlog

from shopify_analytics.models import Customer, Order, as_utc
from shopify_analytics.transformation.records import as_records

logger = structlog.get_logger(__name__)

DEFAULT_VIP_THRESHOLD = 500.0

SEGMENT_LABELS = {
    "new": "New Customers",
    "loyal": "Loyal Customers",
    "at_risk": "At-Risk Customers",
    "inactive": "Inactive Customers",
    "vip": "VIP Customers",
}


def _days_between(earlier: datetime, later: datetime) -> int:
    return max((later - earlier).days, 0)


def _has_any_tag(customer: Customer, tags: List[str]) -> bool:
    return any(tag in customer.tags for tag in tags)


def transform_customer_data(
    customers: List[Customer],
    orders: List[Order],
    start: datetime,
    end: datetime,
    filters: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Customer list with recent orders and a daily acquisition/revenue timeline.

    Args:
        customers: Canonical customers
        orders: Orders in the reporting window
        start: Window start (new customer acquisition)
        end: Window end
        filters: ``tags`` keeps customers carrying any of the given tags;
            acquisition counts are unaffected

    Returns:
        ``{customers, timeline, total_customers, new_customers, returning_customers}``
    """
    start, end = as_utc(start), as_utc(end)
    filters = filters or {}
    tag_filter = filters.get("tags") or []
    customers = as_records(Customer, customers)
    orders = as_records(Order, orders)

    timeline: Dict[str, Dict[str, Any]] = {}

    def bucket(date: str) -> Dict[str, Any]:
        return timeline.setdefault(date, {"date": date, "new_customers": 0, "orders": 0, "revenue": 0})

    transformed: Dict[str, Dict[str, Any]] = {}
    new_customers = 0

    for customer in customers:
        if start <= customer.created_at <= end:
            new_customers += 1
            bucket(customer.created_at.date().isoformat())["new_customers"] += 1

        if tag_filter and not _has_any_tag(customer, tag_filter):
            continue

        transformed[customer.id] = {
            "id": customer.id,
            "email": customer.email,
            "first_name": customer.first_name,
            "last_name": customer.last_name,
            "orders_count": customer.orders_count,
            "total_spent": customer.total_spent,
            "tags": list(customer.tags),
            "created_at": customer.created_at.isoformat(),
            "accepts_marketing": customer.accepts_marketing,
            "recent_orders": [],
        }

    surviving = sorted(
        (order for order in orders if order.is_revenue_eligible),
        key=lambda order: order.created_at,
        reverse=True,
    )
    for order in surviving:
        row = bucket(order.order_date)
        row["orders"] += 1
        row["revenue"] += order.total_price

        entry = transformed.get(order.customer_id) if order.customer_id else None
        if entry is not None and len(entry["recent_orders"]) < 3:
            entry["recent_orders"].append({
                "id": order.id,
                "order_number": order.name,
                "date": order.order_date,
                "total": order.total_price,
            })

    customer_rows = list(transformed.values())

    return {
        "customers": customer_rows,
        "timeline": sorted(timeline.values(), key=lambda row: row["date"]),
        "total_customers": len(customer_rows),
        "new_customers": new_customers,
        "returning_customers": sum(1 for row in customer_rows if row["orders_count"] > 1),
    }


def summarize_customer_data(customer_data: Dict[str, Any]) -> Dict[str, Any]:
    """Top customers and revenue ratios from ``transform_customer_data`` output"""
    total_customers = customer_data.get("total_customers", 0)
    new_customers = customer_data.get("new_customers", 0)
    returning_customers = customer_data.get("returning_customers", 0)
    customers = sorted(
        customer_data.get("customers", []),
        key=lambda row: row["total_spent"],
        reverse=True,
    )

    total_revenue = sum(row["total_spent"] for row in customers)
    order_count = sum(row["orders_count"] for row in customers)

    return {
        "total_customers": total_customers,
        "new_customers": new_customers,
        "returning_customers": returning_customers,
        "top_customers": customers[:5],
        "total_revenue": total_revenue,
        "avg_order_value": total_revenue / order_count if order_count else 0,
        "avg_customer_value": total_revenue / total_customers if total_customers else 0,
        "customer_segments": [
            {"label": "New Customers", "value": new_customers},
            {"label": "Returning Customers", "value": returning_customers},
        ],
    }


def _segment_for(metrics: Dict[str, Any]) -> str:
    """First matching lifecycle segment"""
    last_order_days = metrics["days_since_last_order"]

    if metrics["days_since_creation"] <= 30:
        return "new"
    if last_order_days is not None:
        if metrics["order_count"] >= 3 and last_order_days <= 60:
            return "loyal"
        if metrics["order_count"] >= 1 and 60 < last_order_days <= 120:
            return "at_risk"
    return "inactive"


def generate_customer_segments(
    customers: List[Customer],
    order_history: List[Order],
    now: Optional[datetime] = None,
    vip_threshold: float = DEFAULT_VIP_THRESHOLD,
) -> Dict[str, Any]:
    """
    Assign every customer to exactly one segment.

    Precedence: new (created within 30 days), loyal (3+ orders, last order
    within 60 days), at_risk (1+ orders, last order 61-120 days ago),
    inactive (anything else, including never ordered). A lifetime spend of
    at least ``vip_threshold`` then overrides the segment with ``vip``.

    Args:
        customers: Customers to segment
        order_history: Orders used to find each customer's last order; pass
            the widest history available, not just the reporting window
        now: Reference time (default: current UTC time)
        vip_threshold: Lifetime spend for the VIP override

    Returns:
        ``{segments, metrics}``
    """
    customers = as_records(Customer, customers)
    order_history = as_records(Order, order_history)
    now = as_utc(now or datetime.now(timezone.utc))

    last_order_at: Dict[str, datetime] = {}
    for order in order_history:
        if not order.customer_id:
            continue
        previous = last_order_at.get(order.customer_id)
        if previous is None or order.created_at > previous:
            last_order_at[order.customer_id] = order.created_at

    segments = {
        key: {"segment": key, "label": label, "count": 0, "revenue": 0}
        for key, label in SEGMENT_LABELS.items()
    }
    metrics = []

    for customer in customers:
        last_order = last_order_at.get(customer.id)
        customer_metrics = {
            "id": customer.id,
            "days_since_creation": _days_between(customer.created_at, now),
            "order_count": customer.orders_count,
            "total_spent": customer.total_spent,
            "avg_order_value": customer.total_spent / customer.orders_count if customer.orders_count else 0,
            "days_since_last_order": _days_between(last_order, now) if last_order else None,
            "segment": None,
        }

        segment = _segment_for(customer_metrics)
        if customer.total_spent >= vip_threshold:
            segment = "vip"

        customer_metrics["segment"] = segment
        segments[segment]["count"] += 1
        segments[segment]["revenue"] += customer.total_spent
        metrics.append(customer_metrics)

    return {
        "segments": list(segments.values()),
        "metrics": metrics,
    }


def transform_customer_order_history(orders: List[Order]) -> List[Dict[str, Any]]:
    """Non-cancelled orders of one customer, newest first"""
    ordered = sorted(
        (order for order in as_records(Order, orders) if order.cancelled_at is None),
        key=lambda order: order.created_at,
        reverse=True,
    )
    return [
        {
            "id": order.id,
            "order_number": order.name,
            "created_at": order.created_at.isoformat(),
            "processed_at": order.processed_at.isoformat() if order.processed_at else None,
            "financial_status": order.financial_status,
            "fulfillment_status": order.fulfillment_status,
            "total_price": order.total_price,
            "subtotal_price": order.subtotal_price,
            "total_tax": order.total_tax,
            "line_items": [
                {
                    "id": item.id,
                    "product_id": item.product_id,
                    "title": item.title,
                    "variant_title": item.variant_title,
                    "quantity": item.quantity,
                    "price": item.price,
                    "total": item.line_total,
                }
                for item in order.line_items
            ],
        }
        for order in ordered
    ]


def calculate_customer_purchase_metrics(history: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Purchase metrics from ``transform_customer_order_history`` output.

    ``purchase_frequency_days`` is the mean gap between first and last
    order; 0 with fewer than two orders.
    """
    total_orders = len(history)
    if not total_orders:
        return {
            "total_orders": 0,
            "total_spent": 0,
            "avg_order_value": 0,
            "first_order": None,
            "last_order": None,
            "purchase_frequency_days": 0,
            "top_products": [],
        }

    total_spent = sum(order["total_price"] for order in history)

    products: Dict[Any, Dict[str, Any]] = {}
    for order in history:
        for item in order["line_items"]:
            product = products.setdefault(item["product_id"], {
                "id": item["product_id"],
                "title": item["title"],
                "quantity": 0,
                "total": 0,
            })
            product["quantity"] += item["quantity"]
            product["total"] += item["total"]

    first_order = history[-1]["created_at"]
    last_order = history[0]["created_at"]

    frequency = 0
    if total_orders > 1:
        span = datetime.fromisoformat(last_order) - datetime.fromisoformat(first_order)
        frequency = (span / timedelta(days=1)) / (total_orders - 1)

    return {
        "total_orders": total_orders,
        "total_spent": total_spent,
        "avg_order_value": total_spent / total_orders,
        "first_order": first_order,
        "last_order": last_order,
        "purchase_frequency_days": frequency,
        "top_products": sorted(products.values(), key=lambda p: p["total"], reverse=True)[:5],
    }


def analyze_customer_base(
    customers: List[Customer],
    now: Optional[datetime] = None,
    vip_threshold: float = DEFAULT_VIP_THRESHOLD,
) -> Dict[str, Any]:
    """
    Customer base overview: acquisition, value and a coarse
    new/returning/VIP split by order count and lifetime spend.
    """
    now = as_utc(now or datetime.now(timezone.utc))
    thirty_days_ago = now - timedelta(days=30)
    customers = as_records(Customer, customers)

    total_customers = len(customers)
    total_spent = sum(customer.total_spent for customer in customers)
    total_orders = sum(customer.orders_count for customer in customers)

    segments = {"new": 0, "returning": 0, "vip": 0}
    top_customers = []

    for customer in customers:
        if customer.orders_count == 0:
            segments["new"] += 1
        elif customer.total_spent >= vip_threshold:
            segments["vip"] += 1
        else:
            segments["returning"] += 1

        if customer.total_spent > 0:
            top_customers.append({
                "id": customer.id,
                "name": customer.display_name,
                "email": customer.email,
                "total_spent": customer.total_spent,
                "orders_count": customer.orders_count,
                "avg_order_value": customer.total_spent / customer.orders_count if customer.orders_count else 0,
            })

    top_customers.sort(key=lambda row: row["total_spent"], reverse=True)

    return {
        "summary": {
            "total_customers": total_customers,
            "new_customers_30d": sum(1 for c in customers if c.created_at > thirty_days_ago),
            "total_customer_value": round(total_spent, 2),
            "avg_customer_value": round(total_spent / total_customers, 2) if total_customers else 0,
            "avg_orders_per_customer": round(total_orders / total_customers, 2) if total_customers else 0,
        },
        "segments": segments,
        "top_customers": top_customers[:20],
        "charts": {
            "segments_pie": [
                {"name": "New", "value": segments["new"]},
                {"name": "Returning", "value": segments["returning"]},
                {"name": "VIP", "value": segments["vip"]},
            ],
        },
    }
