"""
Unit Tests - Analytics Orchestrator
"""
import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from shopify_analytics.config.settings import AnalyticsSettings
from shopify_analytics.ingestion import CollectionService, Paginator
from shopify_analytics.models import InventoryLevel, Product, Variant
from shopify_analytics.serving import cache_key
from shopify_analytics.serving.analytics import (
    FALLBACK_NOTICE,
    AnalyticsService,
    AnalyticsSource,
    AnalyticsUnavailableError,
    MockAnalyticsSource,
)


START = datetime(2025, 1, 1, tzinfo=timezone.utc)
END = datetime(2025, 1, 31, 23, 59, tzinfo=timezone.utc)


async def no_sleep(seconds):
    return None


class FakeClock:
    """Settable clock"""

    def __init__(self, now):
        self.now = now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)

    def __call__(self):
        return self.now


class FakeSource(AnalyticsSource):
    """In-memory live source counting entity reads"""

    name = "shopify"

    def __init__(self, settings, clock, orders=None, customers=None, fail=False, delay=0.0):
        super().__init__(settings, clock)
        self._orders = orders or []
        self._customers = customers or []
        self.fail = fail
        self.delay = delay
        self.reads = 0

    async def _read(self, records):
        self.reads += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("upstream exploded")
        return records

    async def orders(self, store, start, end, filters=None):
        return await self._read([o for o in self._orders if start <= o.created_at <= end])

    async def products(self, store):
        return await self._read([
            Product(id="A", title="Product A", variants=[Variant(id="1", price=10.0, inventory_quantity=50)]),
            Product(id="B", title="Product B", variants=[Variant(id="2", price=50.0, inventory_quantity=2)]),
        ])

    async def customers(self, store):
        return await self._read(self._customers)

    async def inventory(self, store):
        return await self._read([
            InventoryLevel(inventory_item_id="1", location_id="1", available=50),
            InventoryLevel(inventory_item_id="2", location_id="1", available=0),
        ])

    async def status(self, store):
        return {"source": "shopify", "endpoints": {}}


@pytest.fixture
def collector(make_client, cache, test_settings):
    client = make_client(lambda request: httpx.Response(500, json={}))
    return CollectionService(client, cache, test_settings, Paginator(page_size=2, max_pages=3, sleep=no_sleep))


@pytest.fixture
def make_service(collector, cache, test_settings, now):
    def factory(**source_options):
        clock = lambda: now  # noqa: E731
        source = FakeSource(test_settings, clock, **source_options)
        return AnalyticsService(collector, cache, test_settings, source=source, clock=clock), source
    return factory


class TestLiveViews:
    """Tests for views served from the live source"""

    @pytest.mark.asyncio
    async def test_tagged_and_cached(self, make_service, cache, store, scenario_orders):
        service, source = make_service(orders=scenario_orders)

        first = await service.product_performance(store, START, END)
        second = await service.product_performance(store, START, END)

        assert first["data_source"] == "shopify"
        assert first["total_sales"] == 150
        assert [p["id"] for p in second["products"]] == ["B", "A"]
        assert source.reads == 1
        assert cache_key("product_performance", store.id, START, END) in cache.keys()

    @pytest.mark.asyncio
    async def test_default_window_reuses_cache(self, collector, cache, store, test_settings, scenario_orders):
        """Default-window calls seconds apart read the same cache entry"""
        clock = FakeClock(datetime(2025, 1, 31, 12, 0, 1, tzinfo=timezone.utc))
        source = FakeSource(test_settings, clock, orders=scenario_orders)
        service = AnalyticsService(collector, cache, test_settings, source=source, clock=clock)

        await service.product_performance(store)
        clock.advance(5)
        await service.product_performance(store)

        assert source.reads == 1
        assert len(cache.keys()) == 1

    @pytest.mark.asyncio
    async def test_filters_get_their_own_entry(self, make_service, store, scenario_orders):
        service, source = make_service(orders=scenario_orders)

        await service.product_performance(store, START, END)
        await service.product_performance(store, START, END, {"vendor": "Acme"})

        assert source.reads == 2

    @pytest.mark.asyncio
    async def test_derived_summaries_carry_source(self, make_service, store, scenario_orders, sample_customers):
        service, _ = make_service(orders=scenario_orders, customers=sample_customers)

        inventory = await service.inventory_summary(store)
        customers = await service.customer_summary(store, START, END)

        assert inventory["data_source"] == "shopify"
        assert inventory["out_of_stock"] == 1
        assert customers["data_source"] == "shopify"
        assert customers["total_customers"] == 3

    @pytest.mark.asyncio
    async def test_segments_use_full_history(self, make_service, store, scenario_orders, sample_customers, now):
        service, _ = make_service(orders=scenario_orders, customers=sample_customers)

        result = await service.customer_segments(store, end=now)

        metrics = {m["id"]: m for m in result["metrics"]}
        assert metrics["c1"]["segment"] == "vip"
        assert metrics["c2"]["days_since_last_order"] == 11

    @pytest.mark.asyncio
    async def test_dashboard(self, make_service, cache, store, scenario_orders, sample_customers):
        service, _ = make_service(orders=scenario_orders, customers=sample_customers)

        dashboard = await service.dashboard_analytics(store, START, END)

        assert dashboard["data_source"] == "shopify"
        assert dashboard["sales_analytics"]["summary"]["total_sales"] == 150
        assert dashboard["performance_metrics"]["catalog_health_score"] == 50.0
        assert dashboard["period"] == {"start": "2025-01-01", "end": "2025-01-31"}
        assert cache_key("dashboard_analytics", store.id, START, END) in cache.keys()


class TestFallback:
    """Tests for sample-data fallback"""

    @pytest.mark.asyncio
    async def test_failure_serves_mock(self, make_service, cache, store):
        service, _ = make_service(fail=True)

        result = await service.sales_analytics(store, START, END)

        assert result["data_source"] == "mock"
        assert result["notice"] == FALLBACK_NOTICE
        assert result["summary"]["total_orders"] > 0
        assert "upstream exploded" not in str(result)
        assert cache.keys() == []

    @pytest.mark.asyncio
    async def test_same_shape_as_live(self, make_service, store, scenario_orders):
        live, _ = make_service(orders=scenario_orders)
        broken, _ = make_service(fail=True)

        real = await live.customer_analytics(store)
        fallback = await broken.customer_analytics(store)

        assert set(fallback) - {"notice"} == set(real)

    @pytest.mark.asyncio
    async def test_timeout_serves_mock(self, make_service, store, test_settings):
        test_settings.analytics = AnalyticsSettings(orchestrator_timeout_seconds=0.01)
        service, _ = make_service(delay=1.0)

        result = await service.product_analytics(store)

        assert result["data_source"] == "mock"

    @pytest.mark.asyncio
    async def test_dashboard_with_fallback_not_cached(self, make_service, cache, store):
        service, _ = make_service(fail=True)

        dashboard = await service.dashboard_analytics(store, START, END)

        assert dashboard["data_source"] == "mock"
        assert dashboard["notice"] == FALLBACK_NOTICE
        assert cache.keys() == []

    @pytest.mark.asyncio
    async def test_failing_fallback_raises_unavailable(self, collector, cache, store, test_settings, now):
        clock = lambda: now  # noqa: E731
        service = AnalyticsService(
            collector,
            cache,
            test_settings,
            fallback=FakeSource(test_settings, clock, fail=True),
            source=FakeSource(test_settings, clock, fail=True),
            clock=clock,
        )

        with pytest.raises(AnalyticsUnavailableError) as excinfo:
            await service.sales_analytics(store, START, END)

        assert "upstream exploded" not in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_fallback_disabled(self, collector, cache, store, test_settings, now):
        test_settings.analytics = AnalyticsSettings(enable_mock_fallback=False)
        clock = lambda: now  # noqa: E731
        service = AnalyticsService(
            collector, cache, test_settings, source=FakeSource(test_settings, clock, fail=True), clock=clock
        )

        with pytest.raises(AnalyticsUnavailableError):
            await service.product_analytics(store)


class TestMockSource:
    """Tests for the deterministic sample source"""

    @pytest.mark.asyncio
    async def test_deterministic(self, test_settings, store, now):
        first = MockAnalyticsSource(test_settings, lambda: now)
        second = MockAnalyticsSource(test_settings, lambda: now)

        assert await first.product_performance(store, START, END) == await second.product_performance(store, START, END)

    @pytest.mark.asyncio
    async def test_customer_filter(self, test_settings, store, now):
        source = MockAnalyticsSource(test_settings, lambda: now)
        orders = await source.orders(store, START, END, {"customer_id": "5001"})

        assert all(order.customer_id == "5001" for order in orders)


class TestShopifySource:
    """Collection + transformation through a mocked Admin API"""

    @pytest.mark.asyncio
    async def test_three_order_scenario(self, make_client, cache, test_settings, store, now):
        orders = [
            {
                "id": 1, "created_at": "2025-01-10T09:00:00Z", "cancelled_at": "2025-01-10T10:00:00Z",
                "total_price": "80.00", "financial_status": "paid",
                "line_items": [{"product_id": 10, "title": "A", "quantity": 8, "price": "10.00"}],
            },
            {
                "id": 2, "created_at": "2025-01-12T09:00:00Z", "total_price": "100.00", "financial_status": "paid",
                "line_items": [{"product_id": 10, "title": "A", "quantity": 2, "price": "10.00"}],
            },
            {
                "id": 3, "created_at": "2025-01-20T09:00:00Z", "total_price": "50.00", "financial_status": "paid",
                "line_items": [{"product_id": 20, "title": "B", "quantity": 1, "price": "50.00"}],
            },
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"orders": orders})

        collector = CollectionService(
            make_client(handler), cache, test_settings, Paginator(page_size=250, max_pages=3, sleep=no_sleep)
        )
        service = AnalyticsService(collector, cache, test_settings, clock=lambda: now)

        result = await service.product_performance(store, START, END)

        assert result["data_source"] == "shopify"
        assert result["total_orders"] == 2
        assert result["total_sales"] == 150
        assert [(p["id"], p["total_sales"]) for p in result["products"]] == [("20", 50), ("10", 20)]

    @pytest.mark.asyncio
    async def test_naive_window_taken_as_utc(self, make_client, cache, test_settings, store, now):
        """Naive bounds are read as UTC rather than failing over to sample data"""
        order = {
            "id": 2, "created_at": "2025-01-12T09:00:00Z", "total_price": "100.00", "financial_status": "paid",
            "line_items": [{"product_id": 10, "title": "A", "quantity": 2, "price": "10.00"}],
        }

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"orders": [order]})

        collector = CollectionService(
            make_client(handler), cache, test_settings, Paginator(page_size=250, max_pages=3, sleep=no_sleep)
        )
        service = AnalyticsService(collector, cache, test_settings, clock=lambda: now)

        result = await service.sales_analytics(store, datetime(2025, 1, 1), datetime(2025, 1, 31))

        assert result["data_source"] == "shopify"
        assert result["summary"]["total_orders"] == 1
        assert result["summary"]["total_sales"] == 100
        end = datetime(2025, 1, 31, tzinfo=timezone.utc)
        assert cache_key("sales_analytics", store.id, START, end) in cache.keys()
