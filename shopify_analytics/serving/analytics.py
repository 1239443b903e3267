"""
Analytics Orchestrator

One method per dashboard view. Each view is:

    cache hit? -> view
    source data (collection) -> transformation -> tag data_source -> cache

Sources are strategies sharing the same view logic:
- ``ShopifyAnalyticsSource``: live data through the collection service
- ``MockAnalyticsSource``: deterministic sample store data

When the live source fails or times out the view is served from the
fallback source instead, tagged ``data_source="mock"`` with a generic
notice, and is not cached.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import structlog

from shopify_analytics.client import ShopifyClient
from shopify_analytics.config import Settings, get_settings
from shopify_analytics.data.generators import SampleDataGenerator, SampleStore
from shopify_analytics.ingestion.collector import CollectionService
from shopify_analytics.models import Customer, InventoryLevel, Order, Product, Store, as_utc
from shopify_analytics.serving.cache import CacheBackend, cache_key, remember, window_end
from shopify_analytics.transformation import (
    analyze_customer_base,
    analyze_product_catalog,
    analyze_sales_data,
    build_inventory_analytics,
    build_performance_metrics,
    calculate_customer_purchase_metrics,
    generate_customer_segments,
    summarize_customer_data,
    summarize_inventory_data,
    summarize_product_performance,
    transform_customer_data,
    transform_customer_order_history,
    transform_inventory_data,
    transform_orders_to_product_performance,
    transform_orders_to_product_performance_by_id,
)

logger = structlog.get_logger(__name__)

SHOPIFY = "shopify"
MOCK = "mock"
FALLBACK_NOTICE = "Analytics unavailable; showing sample data"

# Earliest order date considered "full history"
HISTORY_START = datetime(2006, 1, 1, tzinfo=timezone.utc)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AnalyticsUnavailableError(Exception):
    """Live analytics failed and no fallback is configured"""


# =============================================================================
# SOURCES
# =============================================================================

class AnalyticsSource(ABC):
    """
    Data access plus the view computations built on it.

    Subclasses only provide entity access; every view runs the same
    transformations regardless of where the entities came from.
    """

    name = ""

    def __init__(self, settings: Optional[Settings] = None, clock: Optional[Clock] = None):
        self.settings = settings or get_settings()
        self.clock = clock or utc_now

    @abstractmethod
    async def orders(
        self,
        store: Store,
        start: datetime,
        end: datetime,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Order]:
        """Orders created within [start, end]"""

    @abstractmethod
    async def products(self, store: Store) -> List[Product]:
        """Product catalog"""

    @abstractmethod
    async def customers(self, store: Store) -> List[Customer]:
        """Customer base"""

    @abstractmethod
    async def inventory(self, store: Store) -> List[InventoryLevel]:
        """Inventory levels across locations"""

    @abstractmethod
    async def status(self, store: Store) -> Dict[str, Any]:
        """Health of the underlying data source"""

    async def customer_orders(
        self,
        store: Store,
        customer_id: str,
        start: datetime,
        end: datetime,
    ) -> List[Order]:
        orders = await self.orders(store, start, end, {"customer_id": str(customer_id)})
        return [order for order in orders if order.customer_id == str(customer_id)]

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    async def sales_analytics(self, store: Store, start: datetime, end: datetime) -> Dict[str, Any]:
        orders = await self.orders(store, start, end)
        return analyze_sales_data(orders, start, end, now=self.clock())

    async def product_analytics(self, store: Store) -> Dict[str, Any]:
        products = await self.products(store)
        return analyze_product_catalog(products, self.settings.analytics.low_stock_threshold)

    async def customer_analytics(self, store: Store) -> Dict[str, Any]:
        customers = await self.customers(store)
        return analyze_customer_base(
            customers,
            now=self.clock(),
            vip_threshold=self.settings.analytics.vip_spend_threshold,
        )

    async def inventory_analytics(self, store: Store) -> Dict[str, Any]:
        return build_inventory_analytics(await self.product_analytics(store))

    async def product_performance(
        self,
        store: Store,
        start: datetime,
        end: datetime,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        orders = await self.orders(store, start, end)
        return transform_orders_to_product_performance(orders, filters)

    async def product_performance_by_id(
        self,
        store: Store,
        product_id: str,
        start: datetime,
        end: datetime,
    ) -> Dict[str, Any]:
        orders = await self.orders(store, start, end)
        return transform_orders_to_product_performance_by_id(orders, product_id)

    async def product_summary(
        self,
        store: Store,
        start: datetime,
        end: datetime,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        products = await self.products(store)
        orders = await self.orders(store, start, end)
        return summarize_product_performance(products, orders, filters)

    async def inventory_status(self, store: Store, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        filters = {"low_stock_threshold": self.settings.analytics.low_stock_threshold, **(filters or {})}
        levels = await self.inventory(store)
        return transform_inventory_data(levels, filters)

    async def customer_data(
        self,
        store: Store,
        start: datetime,
        end: datetime,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        customers = await self.customers(store)
        orders = await self.orders(store, start, end)
        return transform_customer_data(customers, orders, start, end, filters)

    async def customer_segments(
        self,
        store: Store,
        end: datetime,
        filters: Optional[Dict[str, Any]] = None,
        history_start: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        customers = await self.customers(store)
        tags = (filters or {}).get("tags")
        if tags:
            customers = [c for c in customers if any(tag in c.tags for tag in tags)]
        history = await self.orders(store, history_start or HISTORY_START, end)
        return generate_customer_segments(
            customers,
            history,
            now=self.clock(),
            vip_threshold=self.settings.analytics.vip_spend_threshold,
        )

    async def customer_purchase_metrics(
        self,
        store: Store,
        customer_id: str,
        start: datetime,
        end: datetime,
    ) -> Dict[str, Any]:
        history = transform_customer_order_history(
            await self.customer_orders(store, customer_id, start, end)
        )
        return {
            "customer_id": str(customer_id),
            "orders": history,
            "metrics": calculate_customer_purchase_metrics(history),
        }


class ShopifyAnalyticsSource(AnalyticsSource):
    """Live store data through the collection service"""

    name = SHOPIFY

    def __init__(
        self,
        collector: CollectionService,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(settings or collector.settings, clock)
        self.collector = collector

    async def orders(self, store, start, end, filters=None):
        return await self.collector.collect_orders(store, start, end, filters)

    async def products(self, store):
        return await self.collector.collect_products(store)

    async def customers(self, store):
        return await self.collector.collect_customers(store)

    async def inventory(self, store):
        return await self.collector.collect_inventory(store)

    async def customer_orders(self, store, customer_id, start, end):
        return await self.collector.collect_customer_orders(store, customer_id, start, end)

    async def status(self, store: Store) -> Dict[str, Any]:
        client: ShopifyClient = self.collector.client
        return {
            "source": SHOPIFY,
            "endpoints": await client.test_connection(store),
            "protected_customer_data": await client.has_protected_data_access(store),
            "last_check": self.clock().isoformat(),
        }


class MockAnalyticsSource(AnalyticsSource):
    """Deterministic sample data, never real store data"""

    name = MOCK

    def _sample(self, store: Store, start: datetime, end: datetime) -> SampleStore:
        return SampleDataGenerator(store.id).generate(start, end, now=self._anchor())

    def _anchor(self) -> datetime:
        """Sample timestamps are anchored on the hour for stable output"""
        return self.clock().replace(minute=0, second=0, microsecond=0)

    def _default_window(self) -> Tuple[datetime, datetime]:
        end = self._anchor()
        return end - timedelta(days=self.settings.analytics.default_range_days), end

    async def orders(self, store, start, end, filters=None):
        # No sample orders after the anchor
        end = min(end, self._anchor())
        orders = self._sample(store, start, end).orders
        customer_id = (filters or {}).get("customer_id")
        if customer_id:
            orders = [order for order in orders if order.customer_id == str(customer_id)]
        return orders

    async def products(self, store):
        return self._sample(store, *self._default_window()).products

    async def customers(self, store):
        return self._sample(store, *self._default_window()).customers

    async def inventory(self, store):
        return self._sample(store, *self._default_window()).inventory

    async def customer_segments(self, store, end, filters=None, history_start=None):
        # Sample history is bounded to a year
        history_start = max(history_start or HISTORY_START, end - timedelta(days=365))
        return await super().customer_segments(store, end, filters, history_start)

    async def status(self, store: Store) -> Dict[str, Any]:
        return {
            "source": MOCK,
            "endpoints": {},
            "protected_customer_data": {"has_access": False, "status": "unknown"},
            "last_check": self.clock().isoformat(),
        }


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class AnalyticsService:
    """
    Cached analytics views with sample-data fallback.

    Example:
        service = AnalyticsService(collector, cache)
        sales = await service.sales_analytics(store, start, end)
        sales["data_source"]  # "shopify" or "mock"
    """

    def __init__(
        self,
        collector: CollectionService,
        cache: CacheBackend,
        settings: Optional[Settings] = None,
        fallback: Optional[AnalyticsSource] = None,
        source: Optional[AnalyticsSource] = None,
        clock: Optional[Clock] = None,
    ):
        self.settings = settings or collector.settings
        self.cache = cache
        self.clock = clock or utc_now
        self.source = source or ShopifyAnalyticsSource(collector, self.settings, self.clock)
        if fallback is None and self.settings.analytics.enable_mock_fallback:
            fallback = MockAnalyticsSource(self.settings, self.clock)
        self.fallback = fallback

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def _window(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Tuple[datetime, datetime]:
        """Explicit bounds taken as UTC; the default window ends on the hour"""
        end = as_utc(end) or window_end(as_utc(self.clock()))
        start = as_utc(start) or end - timedelta(days=self.settings.analytics.default_range_days)
        return start, end

    async def _view(
        self,
        store: Store,
        view: str,
        key: str,
        ttl: int,
        compute: Callable[[AnalyticsSource], Awaitable[Dict[str, Any]]],
    ) -> Dict[str, Any]:
        """Cache-aside around the live source, fallback source on failure"""

        async def live() -> Dict[str, Any]:
            result = await asyncio.wait_for(
                compute(self.source),
                timeout=self.settings.analytics.orchestrator_timeout_seconds,
            )
            return {**result, "data_source": self.source.name}

        try:
            return await remember(self.cache, key, ttl, live)
        except Exception as e:
            logger.error(
                "Analytics view failed",
                view=view,
                store_id=store.id,
                shop=store.shop_domain,
                error_type=type(e).__name__,
                error=str(e),
            )
            if self.fallback is None:
                raise AnalyticsUnavailableError(f"{view} unavailable for store {store.id}") from e

        try:
            result = await compute(self.fallback)
        except Exception as e:
            logger.error(
                "Fallback analytics failed",
                view=view,
                store_id=store.id,
                source=self.fallback.name,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise AnalyticsUnavailableError(f"{view} unavailable for store {store.id}") from e
        return {**result, "data_source": self.fallback.name, "notice": FALLBACK_NOTICE}

    # -------------------------------------------------------------------------
    # Dashboard views
    # -------------------------------------------------------------------------

    async def sales_analytics(
        self,
        store: Store,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        start, end = self._window(start, end)
        return await self._view(
            store,
            "sales_analytics",
            cache_key("sales_analytics", store.id, start, end),
            self.settings.cache.sales_analytics_ttl,
            lambda source: source.sales_analytics(store, start, end),
        )

    async def product_analytics(self, store: Store) -> Dict[str, Any]:
        return await self._view(
            store,
            "product_analytics",
            cache_key("product_analytics", store.id),
            self.settings.cache.product_analytics_ttl,
            lambda source: source.product_analytics(store),
        )

    async def customer_analytics(self, store: Store) -> Dict[str, Any]:
        return await self._view(
            store,
            "customer_analytics",
            cache_key("customer_analytics", store.id),
            self.settings.cache.customer_analytics_ttl,
            lambda source: source.customer_analytics(store),
        )

    async def inventory_analytics(self, store: Store) -> Dict[str, Any]:
        return await self._view(
            store,
            "inventory_analytics",
            cache_key("inventory_analytics", store.id),
            self.settings.cache.inventory_analytics_ttl,
            lambda source: source.inventory_analytics(store),
        )

    async def performance_metrics(
        self,
        store: Store,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        start, end = self._window(start, end)
        sales = await self.sales_analytics(store, start, end)
        products = await self.product_analytics(store)
        customers = await self.customer_analytics(store)

        metrics = build_performance_metrics(sales, products, customers)
        metrics["data_source"] = _combined_source(sales, products, customers)
        return metrics

    async def data_source_status(self, store: Store) -> Dict[str, Any]:
        """Check the live source; never served from cache"""
        try:
            return await asyncio.wait_for(
                self.source.status(store),
                timeout=self.settings.analytics.orchestrator_timeout_seconds,
            )
        except Exception as e:
            logger.error("Data source status check failed", store_id=store.id, error=str(e))
            return {
                "source": self.source.name,
                "error": "Failed to check data source status",
                "last_check": self.clock().isoformat(),
            }

    async def dashboard_analytics(
        self,
        store: Store,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        All dashboard tiles in one payload.

        Sub-views keep their own cache entries; the assembled dashboard is
        cached only when every part came from the live source.
        """
        start, end = self._window(start, end)
        key = cache_key("dashboard_analytics", store.id, start, end)

        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        sales = await self.sales_analytics(store, start, end)
        products = await self.product_analytics(store)
        customers = await self.customer_analytics(store)
        inventory = await self.inventory_analytics(store)

        performance = build_performance_metrics(sales, products, customers)
        data_source = _combined_source(sales, products, customers, inventory)

        dashboard = {
            "sales_analytics": sales,
            "product_analytics": products,
            "customer_analytics": customers,
            "inventory_analytics": inventory,
            "performance_metrics": performance,
            "data_sources": await self.data_source_status(store),
            "period": {
                "start": start.date().isoformat(),
                "end": end.date().isoformat(),
            },
            "generated_at": self.clock().isoformat(),
            "data_source": data_source,
        }

        if data_source == SHOPIFY:
            await self.cache.set(key, dashboard, self.settings.cache.dashboard_ttl)
        else:
            dashboard["notice"] = FALLBACK_NOTICE
        return dashboard

    # -------------------------------------------------------------------------
    # Product / inventory / customer reports
    # -------------------------------------------------------------------------

    async def product_performance(
        self,
        store: Store,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        start, end = self._window(start, end)
        return await self._view(
            store,
            "product_performance",
            cache_key("product_performance", store.id, start, end, filters),
            self.settings.cache.sales_analytics_ttl,
            lambda source: source.product_performance(store, start, end, filters),
        )

    async def product_performance_by_id(
        self,
        store: Store,
        product_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        start, end = self._window(start, end)
        return await self._view(
            store,
            "product_detail",
            cache_key("product_detail", store.id, start, end, {"product_id": str(product_id)}),
            self.settings.cache.sales_analytics_ttl,
            lambda source: source.product_performance_by_id(store, product_id, start, end),
        )

    async def product_summary(
        self,
        store: Store,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        start, end = self._window(start, end)
        return await self._view(
            store,
            "product_summary",
            cache_key("product_summary", store.id, start, end, filters),
            self.settings.cache.product_analytics_ttl,
            lambda source: source.product_summary(store, start, end, filters),
        )

    async def inventory_status(self, store: Store, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self._view(
            store,
            "inventory_status",
            cache_key("inventory_status", store.id, filters=filters or {}),
            self.settings.cache.inventory_analytics_ttl,
            lambda source: source.inventory_status(store, filters),
        )

    async def inventory_summary(self, store: Store, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        status = await self.inventory_status(store, filters)
        summary = summarize_inventory_data(status)
        return _carry_source(summary, status)

    async def customer_data(
        self,
        store: Store,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        start, end = self._window(start, end)
        return await self._view(
            store,
            "customer_data",
            cache_key("customer_data", store.id, start, end, filters),
            self.settings.cache.customer_analytics_ttl,
            lambda source: source.customer_data(store, start, end, filters),
        )

    async def customer_summary(
        self,
        store: Store,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        data = await self.customer_data(store, start, end, filters)
        return _carry_source(summarize_customer_data(data), data)

    async def customer_segments(
        self,
        store: Store,
        end: Optional[datetime] = None,
        filters: Optional[Dict[str, Any]] = None,
        history_start: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Lifecycle segments.

        Days since last order come from the order history starting at
        ``history_start`` (default: the full store history, bounded by the
        page ceiling).
        """
        end = as_utc(end) or window_end(as_utc(self.clock()))
        history_start = as_utc(history_start) or HISTORY_START
        return await self._view(
            store,
            "customer_segments",
            cache_key("customer_segments", store.id, history_start, end, filters),
            self.settings.cache.customer_analytics_ttl,
            lambda source: source.customer_segments(store, end, filters, history_start),
        )

    async def customer_purchase_metrics(
        self,
        store: Store,
        customer_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        start, end = self._window(start, end)
        return await self._view(
            store,
            "customer_orders",
            cache_key("customer_orders", store.id, start, end, {"customer_id": str(customer_id)}),
            self.settings.cache.orders_ttl,
            lambda source: source.customer_purchase_metrics(store, customer_id, start, end),
        )


def _combined_source(*views: Dict[str, Any]) -> str:
    if all(view.get("data_source") == SHOPIFY for view in views):
        return SHOPIFY
    return MOCK


def _carry_source(derived: Dict[str, Any], view: Dict[str, Any]) -> Dict[str, Any]:
    derived["data_source"] = view.get("data_source", SHOPIFY)
    if "notice" in view:
        derived["notice"] = view["notice"]
    return derived
