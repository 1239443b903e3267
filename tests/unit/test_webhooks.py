"""
Unit Tests - Webhook Cache Invalidation
"""
import pytest
import pytest_asyncio

from shopify_analytics.models import Store
from shopify_analytics.serving import CacheInvalidator
from shopify_analytics.serving.webhooks import patterns_for_topic


KEYS = [
    "orders_42_1700000000_1702592000",
    "sales_analytics_42_1700000000_1702592000",
    "product_performance_42_1700000000_1702592000",
    "customer_data_42_1700000000_1702592000",
    "dashboard_analytics_42_1700000000_1702592000",
    "products_42",
    "product_analytics_42",
    "customers_42",
    "customer_analytics_42",
    "inventory_42",
    "inventory_analytics_42",
    "locations_42",
    # another store sharing the prefix digits
    "orders_420_1700000000_1702592000",
    "products_420",
]


@pytest_asyncio.fixture
async def seeded_cache(cache):
    for key in KEYS:
        await cache.set(key, {"cached": True})
    return cache


class TestCacheInvalidator:
    """Tests for topic-driven invalidation"""

    @pytest.mark.asyncio
    async def test_order_webhook(self, seeded_cache, store):
        deleted = await CacheInvalidator(seeded_cache).handle_webhook(store, "orders/create", {"id": 820982911946154508})

        remaining = set(seeded_cache.keys())
        assert deleted == 5
        assert "orders_42_1700000000_1702592000" not in remaining
        assert "sales_analytics_42_1700000000_1702592000" not in remaining
        assert "dashboard_analytics_42_1700000000_1702592000" not in remaining
        assert "products_42" in remaining
        assert "orders_420_1700000000_1702592000" in remaining

    @pytest.mark.asyncio
    async def test_product_webhook(self, seeded_cache, store):
        await CacheInvalidator(seeded_cache).handle_webhook(store, "products/update", {"id": 1})

        remaining = set(seeded_cache.keys())
        assert "products_42" not in remaining
        assert "product_analytics_42" not in remaining
        assert "inventory_analytics_42" not in remaining
        assert "products_420" in remaining
        assert "customers_42" in remaining

    @pytest.mark.asyncio
    async def test_inventory_webhook(self, seeded_cache, store):
        await CacheInvalidator(seeded_cache).handle_webhook(store, "inventory_levels/update", {})

        remaining = set(seeded_cache.keys())
        assert "inventory_42" not in remaining
        assert "inventory_analytics_42" not in remaining
        assert "product_analytics_42" not in remaining
        assert "customer_analytics_42" in remaining

    @pytest.mark.asyncio
    async def test_unknown_topic(self, seeded_cache, store):
        deleted = await CacheInvalidator(seeded_cache).handle_webhook(store, "app/uninstalled", {})

        assert deleted == 0
        assert len(seeded_cache.keys()) == len(KEYS)

    @pytest.mark.asyncio
    async def test_clear_store(self, seeded_cache, store):
        deleted = await CacheInvalidator(seeded_cache).clear_store(store)

        assert deleted == len(KEYS) - 2
        assert sorted(seeded_cache.keys()) == ["orders_420_1700000000_1702592000", "products_420"]

    @pytest.mark.asyncio
    async def test_clear_other_store(self, seeded_cache):
        other = Store(id="7", shop_domain="other.myshopify.com")
        assert await CacheInvalidator(seeded_cache).clear_store(other) == 0

    def test_topic_families(self):
        assert patterns_for_topic("customers/delete")
        assert patterns_for_topic("inventory_items/update")
        assert patterns_for_topic("shop/update") == []
