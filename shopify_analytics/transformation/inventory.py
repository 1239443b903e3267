"""
Inventory Status Module

Sums inventory levels per item across locations and classifies stock.
"""

from typing import Any, Dict, List, Optional

from shopify_analytics.models import InventoryLevel
from shopify_analytics.transformation.records import as_records

DEFAULT_LOW_STOCK_THRESHOLD = 5

OUT_OF_STOCK = "out_of_stock"
LOW_STOCK = "low_stock"
IN_STOCK = "in_stock"


def classify_stock(quantity: int, threshold: int = DEFAULT_LOW_STOCK_THRESHOLD) -> str:
    if quantity <= 0:
        return OUT_OF_STOCK
    if quantity <= threshold:
        return LOW_STOCK
    return IN_STOCK


def transform_inventory_data(
    levels: List[InventoryLevel],
    filters: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Aggregate inventory levels per inventory item.

    Args:
        levels: Inventory levels across all locations
        filters: ``location_id`` restricts the levels considered;
            ``low_stock_threshold`` overrides the default of 5

    Returns:
        ``{inventory, total_items, out_of_stock, low_stock, in_stock}``

    Each item is classified once, after all of its locations are summed.
    Negative availability counts as zero for classification while
    ``total_available`` keeps the raw sum.
    """
    filters = filters or {}
    threshold = filters.get("low_stock_threshold", DEFAULT_LOW_STOCK_THRESHOLD)
    location_filter = filters.get("location_id")
    levels = as_records(InventoryLevel, levels)

    items: Dict[str, Dict[str, Any]] = {}
    stock: Dict[str, int] = {}

    for level in levels:
        if location_filter and level.location_id != str(location_filter):
            continue

        item = items.setdefault(level.inventory_item_id, {
            "inventory_item_id": level.inventory_item_id,
            "total_available": 0,
            "locations": [],
            "status": None,
        })
        item["total_available"] += level.available
        item["locations"].append({
            "location_id": level.location_id,
            "location_name": level.location_name,
            "available": level.available,
        })
        stock[level.inventory_item_id] = stock.get(level.inventory_item_id, 0) + level.stock_quantity

    counts = {OUT_OF_STOCK: 0, LOW_STOCK: 0, IN_STOCK: 0}
    for item_id, item in items.items():
        item["status"] = classify_stock(stock[item_id], threshold)
        counts[item["status"]] += 1

    return {
        "inventory": list(items.values()),
        "total_items": len(items),
        "out_of_stock": counts[OUT_OF_STOCK],
        "low_stock": counts[LOW_STOCK],
        "in_stock": counts[IN_STOCK],
    }


def _percentage(part: int, total: int) -> float:
    return part / total * 100 if total > 0 else 0.0


def summarize_inventory_data(status: Dict[str, Any]) -> Dict[str, Any]:
    """Counts, percentages and chart rows from an inventory status"""
    total_items = status.get("total_items", 0)
    out_of_stock = status.get("out_of_stock", 0)
    low_stock = status.get("low_stock", 0)
    in_stock = total_items - out_of_stock - low_stock

    out_pct = _percentage(out_of_stock, total_items)
    low_pct = _percentage(low_stock, total_items)
    in_pct = _percentage(in_stock, total_items)

    return {
        "total_items": total_items,
        "out_of_stock": out_of_stock,
        "low_stock": low_stock,
        "in_stock": in_stock,
        "out_of_stock_percentage": out_pct,
        "low_stock_percentage": low_pct,
        "in_stock_percentage": in_pct,
        "stock_status": [
            {"label": "In Stock", "value": in_stock, "percentage": in_pct},
            {"label": "Low Stock", "value": low_stock, "percentage": low_pct},
            {"label": "Out of Stock", "value": out_of_stock, "percentage": out_pct},
        ],
    }
