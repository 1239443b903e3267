"""
Catalog Analytics Module

Catalog composition, variant-level stock health and the cross-view
performance metrics shown on the dashboard.
"""

from typing import Any, Dict, List, Optional

from shopify_analytics.models import Product
from shopify_analytics.transformation.records import as_records

LOW_STOCK_PRODUCT_TOTAL = 10
LOW_STOCK_ITEMS_LIMIT = 20
BREAKDOWN_LIMIT = 10

PRICE_RANGES = [
    ("under_25", "Under $25", 25),
    ("25_to_100", "$25-$100", 100),
    ("100_to_500", "$100-$500", 500),
    ("over_500", "Over $500", None),
]


def _price_range(price: float) -> str:
    for key, _, upper in PRICE_RANGES:
        if upper is None or price < upper:
            return key
    return PRICE_RANGES[-1][0]


def _top(counts: Dict[str, int], limit: int = BREAKDOWN_LIMIT) -> Dict[str, int]:
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return dict(ranked[:limit])


def analyze_product_catalog(
    products: List[Product],
    low_stock_threshold: int = 5,
) -> Dict[str, Any]:
    """
    Summarize the product catalog.

    A product with some stock is low stock when its variants hold
    ``LOW_STOCK_PRODUCT_TOTAL`` units or fewer in total; a product with no
    stocked variant is out of stock. Variants holding between 1 and
    ``low_stock_threshold`` units are listed individually. Price ranges use
    the midpoint of each product's cheapest and dearest variant.
    """
    by_vendor: Dict[str, int] = {}
    by_type: Dict[str, int] = {}
    by_status: Dict[str, int] = {}
    inventory_status = {"in_stock": 0, "low_stock": 0, "out_of_stock": 0}
    price_ranges = {key: 0 for key, _, _ in PRICE_RANGES}
    low_stock_items = []
    total_variants = 0
    total_inventory = 0

    products = as_records(Product, products)
    for product in products:
        total_variants += len(product.variants)

        vendor = product.vendor or "Unknown"
        by_vendor[vendor] = by_vendor.get(vendor, 0) + 1
        product_type = product.product_type or "Uncategorized"
        by_type[product_type] = by_type.get(product_type, 0) + 1
        by_status[product.status] = by_status.get(product.status, 0) + 1

        product_inventory = product.total_inventory
        total_inventory += product_inventory
        has_stock = any(variant.inventory_quantity > 0 for variant in product.variants)

        if not has_stock:
            inventory_status["out_of_stock"] += 1
        elif product_inventory <= LOW_STOCK_PRODUCT_TOTAL:
            inventory_status["low_stock"] += 1
        else:
            inventory_status["in_stock"] += 1

        prices = [variant.price for variant in product.variants]
        midpoint = (min(prices) + max(prices)) / 2 if prices else 0
        price_ranges[_price_range(midpoint)] += 1

        for variant in product.variants:
            if 0 < variant.inventory_quantity <= low_stock_threshold:
                low_stock_items.append({
                    "product_id": product.id,
                    "product_title": product.title,
                    "variant_title": variant.title,
                    "sku": variant.sku,
                    "inventory": variant.inventory_quantity,
                })

    return {
        "summary": {
            "total_products": len(products),
            "total_variants": total_variants,
            "total_inventory": total_inventory,
            "published_products": by_status.get("active", 0),
            "draft_products": by_status.get("draft", 0),
        },
        "inventory_status": inventory_status,
        "by_vendor": _top(by_vendor),
        "by_type": _top(by_type),
        "by_status": by_status,
        "price_ranges": price_ranges,
        "low_stock_items": low_stock_items[:LOW_STOCK_ITEMS_LIMIT],
        "charts": {
            "inventory_pie": [
                {"name": "In Stock", "value": inventory_status["in_stock"]},
                {"name": "Low Stock", "value": inventory_status["low_stock"]},
                {"name": "Out of Stock", "value": inventory_status["out_of_stock"]},
            ],
            "price_distribution": [
                {"name": label, "value": price_ranges[key]} for key, label, _ in PRICE_RANGES
            ],
        },
    }


def build_inventory_analytics(catalog: Dict[str, Any]) -> Dict[str, Any]:
    """Inventory view derived from ``analyze_product_catalog`` output"""
    status = catalog["inventory_status"]
    return {
        "summary": catalog["summary"],
        "status_breakdown": status,
        "low_stock_items": catalog["low_stock_items"],
        "alerts": {
            "out_of_stock": status["out_of_stock"],
            "low_stock": status["low_stock"],
            "needs_attention": len(catalog["low_stock_items"]),
        },
    }


def build_performance_metrics(
    sales: Dict[str, Any],
    catalog: Dict[str, Any],
    customers: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Catalog health, daily sales velocity and growth figures"""
    total_products = catalog["summary"]["total_products"]
    in_stock = catalog["inventory_status"]["in_stock"]
    sales_summary = sales["summary"]
    days = max(sales_summary["period"]["days"], 1)

    customer_growth = 0
    if customers and "summary" in customers:
        customer_summary = customers["summary"]
        customer_growth = round(
            customer_summary["new_customers_30d"] / max(customer_summary["total_customers"], 1) * 100, 1
        )

    return {
        "catalog_health_score": round(in_stock / total_products * 100, 1) if total_products else 0,
        "sales_velocity": round(sales_summary["total_sales"] / days, 2) if sales_summary["total_orders"] else 0,
        "growth_metrics": {
            "sales_growth": sales_summary.get("growth_rate", 0),
            "customer_growth": customer_growth,
        },
    }
