"""
Test Suite Configuration
"""
from datetime import datetime, timezone
from typing import Callable, List

import httpx
import pytest

from shopify_analytics.client import ShopifyClient
from shopify_analytics.config import Settings
from shopify_analytics.config.settings import AnalyticsSettings, CacheSettings, ShopifySettings
from shopify_analytics.models import Customer, LineItem, Order, Store
from shopify_analytics.serving import MemoryCache


NOW = datetime(2025, 1, 31, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed reference time"""
    return NOW


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
        shopify=ShopifySettings(api_version="2024-07", page_size=2, max_pages=3),
        cache=CacheSettings(backend="memory"),
        analytics=AnalyticsSettings(orchestrator_timeout_seconds=5.0),
    )


@pytest.fixture
def store() -> Store:
    return Store(id="42", shop_domain="demo.myshopify.com", access_token="shpat_test")


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def make_client(test_settings) -> Callable[[Callable[[httpx.Request], httpx.Response]], ShopifyClient]:
    """Build a ShopifyClient whose requests are answered by a handler function"""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> ShopifyClient:
        return ShopifyClient(test_settings.shopify, transport=httpx.MockTransport(handler))

    return factory


@pytest.fixture
def scenario_orders() -> List[Order]:
    """One cancelled order, one 100.00 order (product A) and one 50.00 order (product B)"""
    return [
        Order(
            id="1",
            name="#1001",
            created_at=datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc),
            total_price=80.0,
            financial_status="paid",
            cancelled_at=datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc),
            customer_id="c1",
            line_items=[LineItem(product_id="A", title="Product A", quantity=8, price=10.0)],
        ),
        Order(
            id="2",
            name="#1002",
            created_at=datetime(2025, 1, 12, 9, 0, tzinfo=timezone.utc),
            total_price=100.0,
            financial_status="paid",
            customer_id="c1",
            line_items=[LineItem(product_id="A", title="Product A", quantity=2, price=10.0)],
        ),
        Order(
            id="3",
            name="#1003",
            created_at=datetime(2025, 1, 20, 9, 0, tzinfo=timezone.utc),
            total_price=50.0,
            financial_status="paid",
            customer_id="c2",
            line_items=[LineItem(product_id="B", title="Product B", quantity=1, price=50.0)],
        ),
    ]


@pytest.fixture
def sample_customers(now) -> List[Customer]:
    """A recent big spender, a returning customer and a lapsed one"""
    return [
        Customer(id="c1", created_at=datetime(2025, 1, 26, tzinfo=timezone.utc), orders_count=3, total_spent=600.0),
        Customer(id="c2", created_at=datetime(2024, 6, 1, tzinfo=timezone.utc), orders_count=4, total_spent=200.0),
        Customer(id="c3", created_at=datetime(2023, 1, 1, tzinfo=timezone.utc), orders_count=1, total_spent=40.0),
    ]
