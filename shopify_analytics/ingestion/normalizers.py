"""
Response Normalizer

Pure mapping functions from raw Shopify payloads to canonical models, one
per entity and source scheme:

- REST JSON objects (``orders.json`` items, ...)
- GraphQL edges (``{"cursor": ..., "node": {...}}``) or bare nodes

GraphQL global ids are reduced to their numeric part, enum values are
mapped to lowercase snake case and money is coerced to float, so the
transformation layer never sees scheme-specific shapes.
"""

import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import structlog

from shopify_analytics.models import (
    ApiSource,
    Customer,
    EntityType,
    Image,
    InventoryLevel,
    LineItem,
    Location,
    Order,
    Product,
    Variant,
)

logger = structlog.get_logger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_SEPARATORS = re.compile(r"[\s\-]+")


# =============================================================================
# FIELD HELPERS
# =============================================================================

def parse_global_id(value: Any) -> Optional[str]:
    """
    Reduce a GraphQL global id to its bare id.

    ``gid://shopify/Order/998877`` -> ``"998877"``; REST ids pass through
    as strings.
    """
    if value is None or value == "":
        return None
    text = str(value)
    if "/" in text:
        text = text.rsplit("/", 1)[-1]
    return text.split("?", 1)[0]


def to_money(value: Any) -> float:
    """Coerce an API money value (string, number, MoneyV2 or MoneyBag) to float"""
    if isinstance(value, dict):
        if "shopMoney" in value:
            value = value.get("shopMoney") or {}
        return to_money(value.get("amount"))
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid money amount: {value!r}")


def to_optional_money(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return to_money(value)


def normalize_enum(value: Any) -> Optional[str]:
    """``PARTIALLY_REFUNDED`` / ``partiallyRefunded`` / ``Partially refunded`` -> ``partially_refunded``"""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    text = _CAMEL_BOUNDARY.sub("_", text)
    return _SEPARATORS.sub("_", text).lower()


def _node(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Unwrap a GraphQL edge"""
    if isinstance(raw, dict) and isinstance(raw.get("node"), dict):
        return raw["node"]
    return raw


def _nodes(connection: Any) -> List[Dict[str, Any]]:
    """Nodes of a GraphQL connection given as edges, nodes or a plain list"""
    if not connection:
        return []
    if isinstance(connection, list):
        return [_node(item) for item in connection]
    if "edges" in connection:
        return [_node(edge) for edge in connection.get("edges") or []]
    return list(connection.get("nodes") or [])


def _shop_money(money_set: Any) -> Dict[str, Any]:
    return ((money_set or {}).get("shopMoney") or {}) if isinstance(money_set, dict) else {}


# =============================================================================
# ORDERS
# =============================================================================

def normalize_rest_line_item(raw: Dict[str, Any]) -> LineItem:
    return LineItem(
        id=parse_global_id(raw.get("id")),
        product_id=parse_global_id(raw.get("product_id")),
        variant_id=parse_global_id(raw.get("variant_id")),
        title=raw.get("title") or raw.get("name") or "",
        variant_title=raw.get("variant_title"),
        sku=raw.get("sku") or None,
        quantity=raw.get("quantity") or 0,
        price=to_money(raw.get("price")),
        vendor=raw.get("vendor") or None,
        product_type=raw.get("product_type") or None,
    )


def normalize_rest_order(raw: Dict[str, Any]) -> Order:
    """REST ``orders.json`` item -> Order"""
    customer = raw.get("customer") or {}
    order_number = raw.get("order_number")

    return Order(
        id=parse_global_id(raw["id"]),
        name=raw.get("name") or (str(order_number) if order_number is not None else None),
        created_at=raw["created_at"],
        processed_at=raw.get("processed_at") or None,
        total_price=to_money(raw.get("total_price")),
        subtotal_price=to_money(raw.get("subtotal_price")),
        total_tax=to_money(raw.get("total_tax")),
        currency=raw.get("currency") or "USD",
        financial_status=normalize_enum(raw.get("financial_status")),
        fulfillment_status=normalize_enum(raw.get("fulfillment_status")),
        cancelled_at=raw.get("cancelled_at") or None,
        customer_id=parse_global_id(customer.get("id") or raw.get("customer_id")),
        line_items=[normalize_rest_line_item(item) for item in raw.get("line_items") or []],
        tags=raw.get("tags"),
    )


def normalize_graphql_line_item(raw: Dict[str, Any]) -> LineItem:
    node = _node(raw)
    variant = node.get("variant") or {}
    product = variant.get("product") or node.get("product") or {}

    unit_price = _shop_money(node.get("originalUnitPriceSet")).get("amount")
    if unit_price is None:
        unit_price = variant.get("price")

    return LineItem(
        id=parse_global_id(node.get("id")),
        product_id=parse_global_id(product.get("id")),
        variant_id=parse_global_id(variant.get("id")),
        title=node.get("title") or product.get("title") or "",
        variant_title=variant.get("title"),
        sku=node.get("sku") or variant.get("sku") or None,
        quantity=node.get("quantity") or 0,
        price=to_money(unit_price),
        vendor=node.get("vendor") or product.get("vendor") or None,
        product_type=product.get("productType") or None,
    )


def normalize_graphql_order(raw: Dict[str, Any]) -> Order:
    """GraphQL order edge/node -> Order"""
    node = _node(raw)
    customer = node.get("customer") or {}

    return Order(
        id=parse_global_id(node["id"]),
        name=node.get("name"),
        created_at=node["createdAt"],
        processed_at=node.get("processedAt") or None,
        total_price=to_money(node.get("totalPriceSet")),
        subtotal_price=to_money(node.get("subtotalPriceSet")),
        total_tax=to_money(node.get("totalTaxSet")),
        currency=_shop_money(node.get("totalPriceSet")).get("currencyCode") or "USD",
        financial_status=normalize_enum(node.get("displayFinancialStatus")),
        fulfillment_status=normalize_enum(node.get("displayFulfillmentStatus")),
        cancelled_at=node.get("cancelledAt") or None,
        customer_id=parse_global_id(customer.get("id")),
        line_items=[normalize_graphql_line_item(item) for item in _nodes(node.get("lineItems"))],
        tags=node.get("tags"),
    )


# =============================================================================
# PRODUCTS
# =============================================================================

def normalize_rest_product(raw: Dict[str, Any]) -> Product:
    """REST ``products.json`` item -> Product"""
    return Product(
        id=parse_global_id(raw["id"]),
        title=raw.get("title") or "",
        handle=raw.get("handle"),
        vendor=raw.get("vendor") or None,
        product_type=raw.get("product_type") or None,
        status=normalize_enum(raw.get("status")) or "active",
        created_at=raw.get("created_at") or None,
        tags=raw.get("tags"),
        variants=[
            Variant(
                id=parse_global_id(variant["id"]),
                title=variant.get("title"),
                sku=variant.get("sku") or None,
                price=to_money(variant.get("price")),
                inventory_quantity=variant.get("inventory_quantity") or 0,
                compare_at_price=to_optional_money(variant.get("compare_at_price")),
                inventory_item_id=parse_global_id(variant.get("inventory_item_id")),
            )
            for variant in raw.get("variants") or []
        ],
        images=[
            Image(
                id=parse_global_id(image.get("id")),
                url=image.get("src"),
                alt_text=image.get("alt"),
            )
            for image in raw.get("images") or []
        ],
    )


def normalize_graphql_product(raw: Dict[str, Any]) -> Product:
    """GraphQL product edge/node -> Product"""
    node = _node(raw)

    return Product(
        id=parse_global_id(node["id"]),
        title=node.get("title") or "",
        handle=node.get("handle"),
        vendor=node.get("vendor") or None,
        product_type=node.get("productType") or None,
        status=normalize_enum(node.get("status")) or "active",
        created_at=node.get("createdAt") or None,
        tags=node.get("tags"),
        variants=[
            Variant(
                id=parse_global_id(variant["id"]),
                title=variant.get("title"),
                sku=variant.get("sku") or None,
                price=to_money(variant.get("price")),
                inventory_quantity=variant.get("inventoryQuantity") or 0,
                compare_at_price=to_optional_money(variant.get("compareAtPrice")),
                inventory_item_id=parse_global_id((variant.get("inventoryItem") or {}).get("id")),
            )
            for variant in _nodes(node.get("variants"))
        ],
        images=[
            Image(
                id=parse_global_id(image.get("id")),
                url=image.get("url"),
                alt_text=image.get("altText"),
            )
            for image in _nodes(node.get("images"))
        ],
    )


# =============================================================================
# CUSTOMERS
# =============================================================================

def normalize_rest_customer(raw: Dict[str, Any]) -> Customer:
    """REST ``customers.json`` item -> Customer"""
    consent = raw.get("email_marketing_consent") or {}
    accepts_marketing = raw.get("accepts_marketing")
    if accepts_marketing is None:
        accepts_marketing = normalize_enum(consent.get("state")) == "subscribed"

    return Customer(
        id=parse_global_id(raw["id"]),
        email=raw.get("email") or None,
        first_name=raw.get("first_name") or None,
        last_name=raw.get("last_name") or None,
        created_at=raw["created_at"],
        orders_count=raw.get("orders_count") or 0,
        total_spent=to_money(raw.get("total_spent")),
        tags=raw.get("tags"),
        accepts_marketing=bool(accepts_marketing),
    )


def normalize_graphql_customer(raw: Dict[str, Any]) -> Customer:
    """GraphQL customer edge/node -> Customer (scope-compliant field set)"""
    node = _node(raw)
    consent = node.get("emailMarketingConsent") or {}

    return Customer(
        id=parse_global_id(node["id"]),
        email=node.get("email") or None,
        first_name=node.get("firstName") or None,
        last_name=node.get("lastName") or None,
        created_at=node["createdAt"],
        orders_count=int(node.get("numberOfOrders") or 0),
        total_spent=to_money(node.get("amountSpent")),
        tags=node.get("tags"),
        accepts_marketing=normalize_enum(consent.get("marketingState")) == "subscribed",
    )


# =============================================================================
# LOCATIONS / INVENTORY
# =============================================================================

def normalize_rest_location(raw: Dict[str, Any]) -> Location:
    return Location(
        id=parse_global_id(raw["id"]),
        name=raw.get("name") or "",
        active=bool(raw.get("active", True)),
    )


def normalize_graphql_location(raw: Dict[str, Any]) -> Location:
    node = _node(raw)
    return Location(
        id=parse_global_id(node["id"]),
        name=node.get("name") or "",
        active=bool(node.get("isActive", True)),
    )


def normalize_rest_inventory_level(
    raw: Dict[str, Any],
    location_name: Optional[str] = None,
    location_id: Optional[str] = None,
) -> InventoryLevel:
    """REST ``inventory_levels.json`` item -> InventoryLevel"""
    return InventoryLevel(
        inventory_item_id=parse_global_id(raw["inventory_item_id"]),
        location_id=parse_global_id(raw.get("location_id") or location_id),
        location_name=location_name,
        available=raw.get("available") or 0,
    )


def normalize_graphql_inventory_level(
    raw: Dict[str, Any],
    location_name: Optional[str] = None,
    location_id: Optional[str] = None,
) -> InventoryLevel:
    """GraphQL inventory level edge/node -> InventoryLevel"""
    node = _node(raw)

    available = node.get("available")
    if available is None:
        for quantity in node.get("quantities") or []:
            if quantity.get("name") == "available":
                available = quantity.get("quantity")
                break

    location = node.get("location") or {}
    return InventoryLevel(
        inventory_item_id=parse_global_id((node.get("item") or {}).get("id")),
        location_id=parse_global_id(location.get("id") or location_id),
        location_name=location.get("name") or location_name,
        available=available or 0,
    )


# =============================================================================
# DISPATCH
# =============================================================================

Canonical = Union[Order, Product, Customer, Location, InventoryLevel]

NORMALIZERS: Dict[tuple, Callable[..., Canonical]] = {
    (EntityType.ORDERS, ApiSource.REST): normalize_rest_order,
    (EntityType.ORDERS, ApiSource.GRAPHQL): normalize_graphql_order,
    (EntityType.PRODUCTS, ApiSource.REST): normalize_rest_product,
    (EntityType.PRODUCTS, ApiSource.GRAPHQL): normalize_graphql_product,
    (EntityType.CUSTOMERS, ApiSource.REST): normalize_rest_customer,
    (EntityType.CUSTOMERS, ApiSource.GRAPHQL): normalize_graphql_customer,
    (EntityType.LOCATIONS, ApiSource.REST): normalize_rest_location,
    (EntityType.LOCATIONS, ApiSource.GRAPHQL): normalize_graphql_location,
    (EntityType.INVENTORY, ApiSource.REST): normalize_rest_inventory_level,
    (EntityType.INVENTORY, ApiSource.GRAPHQL): normalize_graphql_inventory_level,
}


def normalize(
    entity: Union[EntityType, str],
    source: Union[ApiSource, str],
    raw: Dict[str, Any],
    **context: Any,
) -> Canonical:
    """Normalize one raw record according to its entity type and source scheme"""
    normalizer = NORMALIZERS.get((EntityType(entity), ApiSource(source)))
    if normalizer is None:
        raise ValueError(f"No normalizer for {entity}/{source}")
    return normalizer(raw, **context)


def normalize_page(
    entity: Union[EntityType, str],
    source: Union[ApiSource, str],
    items: Iterable[Dict[str, Any]],
    **context: Any,
) -> List[Canonical]:
    """
    Normalize a page of raw records, skipping malformed ones.

    A record that fails validation is logged and dropped; one bad record
    never fails the page.
    """
    records = []
    skipped = 0

    for raw in items:
        try:
            records.append(normalize(entity, source, raw, **context))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            skipped += 1
            logger.warning(
                "Skipping malformed record",
                entity=str(EntityType(entity).value),
                source=str(ApiSource(source).value),
                error=str(e),
            )

    if skipped:
        logger.info("Normalized page with skipped records", kept=len(records), skipped=skipped)

    return records
