"""
Canonical Data Model
"""
from .entities import (
    ApiSource,
    Customer,
    EntityType,
    Image,
    InventoryLevel,
    LineItem,
    Location,
    Order,
    Product,
    Store,
    Variant,
    as_utc,
)

__all__ = [
    "ApiSource",
    "Customer",
    "EntityType",
    "Image",
    "InventoryLevel",
    "LineItem",
    "Location",
    "Order",
    "Product",
    "Store",
    "Variant",
    "as_utc",
]
