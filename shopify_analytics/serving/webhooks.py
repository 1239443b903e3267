"""
Webhook Cache Invalidation

Maps Shopify webhook topics onto the cache entries they make stale. Both
the analytics views and the raw entity snapshots they were computed from
are cleared, so the next request recomputes from fresh data.
"""

from typing import Any, Dict, List, Optional

import structlog

from shopify_analytics.models import Store
from shopify_analytics.serving.cache import CacheBackend

logger = structlog.get_logger(__name__)


# Key patterns per topic family; "{id}" is the store id
TOPIC_PATTERNS = {
    "orders/": [
        "orders_{id}_*",
        "sales_analytics_{id}_*",
        "product_performance_{id}_*",
        "product_detail_{id}_*",
        "product_summary_{id}_*",
        "customer_data_{id}_*",
        "customer_segments_{id}_*",
        "customer_orders_{id}_*",
        "dashboard_analytics_{id}_*",
    ],
    "products/": [
        "products_{id}",
        "product_analytics_{id}",
        "product_performance_{id}_*",
        "product_summary_{id}_*",
        "inventory_analytics_{id}",
        "dashboard_analytics_{id}_*",
    ],
    "customers/": [
        "customers_{id}",
        "customer_analytics_{id}",
        "customer_data_{id}_*",
        "customer_segments_{id}_*",
        "dashboard_analytics_{id}_*",
    ],
    "inventory_": [
        "inventory_{id}",
        "products_{id}",
        "product_analytics_{id}",
        "product_performance_{id}_*",
        "inventory_analytics_{id}",
        "inventory_status_{id}_*",
        "dashboard_analytics_{id}_*",
    ],
}

# Every key prefix written for a store
STORE_PREFIXES = [
    "orders",
    "products",
    "customers",
    "locations",
    "inventory",
    "sales_analytics",
    "product_analytics",
    "customer_analytics",
    "inventory_analytics",
    "dashboard_analytics",
    "product_performance",
    "product_detail",
    "product_summary",
    "inventory_status",
    "customer_data",
    "customer_segments",
    "customer_orders",
]


def patterns_for_topic(topic: str) -> List[str]:
    """Pattern templates for a topic such as ``orders/create``"""
    for family, patterns in TOPIC_PATTERNS.items():
        if topic.startswith(family):
            return patterns
    return []


class CacheInvalidator:
    """
    Clears stale cache entries when the store changes.

    Example:
        invalidator = CacheInvalidator(cache)
        await invalidator.handle_webhook(store, "orders/create", payload)
    """

    def __init__(self, cache: CacheBackend):
        self.cache = cache

    async def handle_webhook(
        self,
        store: Store,
        topic: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Clear entries affected by a webhook; returns the number deleted"""
        patterns = patterns_for_topic(topic)
        if not patterns:
            logger.info("Ignoring webhook topic", store_id=store.id, topic=topic)
            return 0

        deleted = 0
        for pattern in patterns:
            deleted += await self.cache.delete_pattern(pattern.format(id=store.id))

        logger.info(
            "Cache invalidated by webhook",
            store_id=store.id,
            topic=topic,
            entity_id=(payload or {}).get("id"),
            deleted=deleted,
        )
        return deleted

    async def clear_store(self, store: Store) -> int:
        """Drop every cached entry for a store"""
        deleted = 0
        for prefix in STORE_PREFIXES:
            deleted += await self.cache.delete_pattern(f"{prefix}_{store.id}")
            deleted += await self.cache.delete_pattern(f"{prefix}_{store.id}_*")

        logger.info("Store cache cleared", store_id=store.id, shop=store.shop_domain, deleted=deleted)
        return deleted
