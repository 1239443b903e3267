"""
Collection Service

Collects one entity type for one store into canonical records:

    cache hit? -> records
    REST pages -> normalize  (ProtectedDataError -> GraphQL pages -> normalize)
    complete result -> cache

Never raises to the caller: an upstream failure after the first page yields
the records collected so far, an unrecoverable failure yields an empty
list. Neither is cached.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

import structlog
from pydantic import BaseModel, ValidationError

from shopify_analytics.client import (
    ApiError,
    ProtectedDataError,
    ShopifyClient,
    UnauthorizedError,
)
from shopify_analytics.config import Settings, get_settings
from shopify_analytics.ingestion.normalizers import normalize_page
from shopify_analytics.ingestion.pagination import (
    FetchPage,
    Paginator,
    graphql_page_fetcher,
    rest_page_fetcher,
)
from shopify_analytics.ingestion.queries import (
    CUSTOMERS_QUERY,
    INVENTORY_LEVELS_QUERY,
    LOCATIONS_QUERY,
    ORDERS_QUERY,
    PRODUCTS_QUERY,
    orders_date_query,
)
from shopify_analytics.models import (
    ApiSource,
    Customer,
    EntityType,
    InventoryLevel,
    Location,
    Order,
    Product,
    Store,
    as_utc,
)
from shopify_analytics.serving.cache import CacheBackend, cache_key, window_end

logger = structlog.get_logger(__name__)

DEFAULT_ORDER_WINDOW_DAYS = 90

Records = List[Any]


class CollectionService:
    """
    Cached, paginated collection of store data.

    Example:
        collector = CollectionService(client, cache)
        orders = await collector.collect_orders(store, start, end)
    """

    def __init__(
        self,
        client: ShopifyClient,
        cache: CacheBackend,
        settings: Optional[Settings] = None,
        paginator: Optional[Paginator] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.client = client
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.cache = cache
        self.settings = settings or get_settings()
        self.paginator = paginator or Paginator(
            page_size=self.settings.shopify.page_size,
            max_pages=self.settings.shopify.max_pages,
            delay=self.settings.shopify.request_delay_seconds,
        )

    @property
    def page_size(self) -> int:
        return self.paginator.page_size

    # =========================================================================
    # ENTITIES
    # =========================================================================

    async def collect_orders(
        self,
        store: Store,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Order]:
        """
        Collect orders created within [start, end].

        Args:
            store: Store to collect from
            start: Window start (default: 90 days before ``end``)
            end: Window end (default: end of the current hour)
            filters: Extra REST query parameters (e.g. ``customer_id``);
                mapped onto search terms for the GraphQL fallback
        """
        end = as_utc(end) or window_end(as_utc(self.clock()))
        start = as_utc(start) or end - timedelta(days=DEFAULT_ORDER_WINDOW_DAYS)

        params = {
            "status": "any",
            "created_at_min": start.isoformat(),
            "created_at_max": end.isoformat(),
            **(filters or {}),
        }
        search = orders_date_query(start, end)
        for name, value in (filters or {}).items():
            search += f" AND {name}:{value}"

        records, _ = await self._collect(
            store,
            EntityType.ORDERS,
            Order,
            cache_key("orders", store.id, start, end, filters),
            self.settings.cache.orders_ttl,
            rest=lambda: rest_page_fetcher(self.client, store, "orders.json", "orders", params, self.page_size),
            graphql=lambda: graphql_page_fetcher(
                self.client, store, ORDERS_QUERY, ("orders",), {"query": search}, self.page_size
            ),
        )
        return records

    async def collect_products(self, store: Store) -> List[Product]:
        records, _ = await self._collect(
            store,
            EntityType.PRODUCTS,
            Product,
            cache_key("products", store.id),
            self.settings.cache.products_ttl,
            rest=lambda: rest_page_fetcher(self.client, store, "products.json", "products", None, self.page_size),
            graphql=lambda: graphql_page_fetcher(
                self.client, store, PRODUCTS_QUERY, ("products",), None, self.page_size
            ),
        )
        return records

    async def collect_customers(self, store: Store) -> List[Customer]:
        records, _ = await self._collect(
            store,
            EntityType.CUSTOMERS,
            Customer,
            cache_key("customers", store.id),
            self.settings.cache.customers_ttl,
            rest=lambda: rest_page_fetcher(self.client, store, "customers.json", "customers", None, self.page_size),
            graphql=lambda: graphql_page_fetcher(
                self.client, store, CUSTOMERS_QUERY, ("customers",), None, self.page_size
            ),
        )
        return records

    async def collect_locations(self, store: Store) -> List[Location]:
        records, _ = await self._locations(store)
        return records

    async def collect_inventory(self, store: Store) -> List[InventoryLevel]:
        """
        Collect inventory levels across all store locations.

        Locations come from their own cache entry; each level carries the
        name of its location.
        """
        key = cache_key("inventory", store.id)
        cached = await self.cache.get(key)
        if cached is not None:
            return self._load(InventoryLevel, cached, key)

        locations, complete = await self._locations(store)
        levels: List[InventoryLevel] = []

        for location in locations:
            location_gid = f"gid://shopify/Location/{location.id}"
            records, location_complete = await self._fetch(
                store,
                EntityType.INVENTORY,
                rest=lambda: rest_page_fetcher(
                    self.client,
                    store,
                    "inventory_levels.json",
                    "inventory_levels",
                    {"location_ids": location.id},
                    self.page_size,
                ),
                graphql=lambda: graphql_page_fetcher(
                    self.client,
                    store,
                    INVENTORY_LEVELS_QUERY,
                    ("location", "inventoryLevels"),
                    {"locationId": location_gid},
                    self.page_size,
                ),
                context={"location_id": location.id, "location_name": location.name},
            )
            levels.extend(records)
            complete = complete and location_complete

        logger.info(
            "Collected inventory",
            shop=store.shop_domain,
            locations=len(locations),
            count=len(levels),
            complete=complete,
        )

        if complete:
            await self.cache.set(key, self._dump(levels), self.settings.cache.inventory_ttl)
        return levels

    async def collect_customer_orders(
        self,
        store: Store,
        customer_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Order]:
        """Orders of a single customer within the window"""
        orders = await self.collect_orders(store, start, end, filters={"customer_id": str(customer_id)})
        # Upstream filtering is not guaranteed on the GraphQL path
        return [order for order in orders if order.customer_id == str(customer_id)]

    async def collect_initial_data(self, store: Store) -> Dict[str, Any]:
        """
        Warm the cache for a newly connected store.

        Returns:
            Summary with shop details and per-entity counts
        """
        logger.info("Collecting initial data for store", shop=store.shop_domain)

        try:
            shop = await self.client.call(store, "GET", "shop.json")
        except ApiError as e:
            logger.error("Failed to get shop details", shop=store.shop_domain, error=str(e))
            return {"success": False, "message": "Failed to get shop details"}

        products = await self.collect_products(store)
        customers = await self.collect_customers(store)
        orders = await self.collect_orders(store)

        return {
            "success": True,
            "shop": (shop or {}).get("shop", {}),
            "product_count": len(products),
            "customer_count": len(customers),
            "order_count": len(orders),
        }

    # =========================================================================
    # INTERNALS
    # =========================================================================

    async def _locations(self, store: Store) -> Tuple[List[Location], bool]:
        return await self._collect(
            store,
            EntityType.LOCATIONS,
            Location,
            cache_key("locations", store.id),
            self.settings.cache.locations_ttl,
            rest=lambda: rest_page_fetcher(self.client, store, "locations.json", "locations", None, self.page_size),
            graphql=lambda: graphql_page_fetcher(
                self.client, store, LOCATIONS_QUERY, ("locations",), None, self.page_size
            ),
        )

    async def _collect(
        self,
        store: Store,
        entity: EntityType,
        model: Type[BaseModel],
        key: str,
        ttl: int,
        rest,
        graphql,
    ) -> Tuple[Records, bool]:
        """Cache-aside around ``_fetch``; only complete results are cached"""
        cached = await self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit", key=key, entity=entity.value)
            return self._load(model, cached, key), True

        records, complete = await self._fetch(store, entity, rest=rest, graphql=graphql)

        logger.info(
            "Collected records",
            shop=store.shop_domain,
            entity=entity.value,
            count=len(records),
            complete=complete,
        )

        if complete:
            await self.cache.set(key, self._dump(records), ttl)
        return records, complete

    async def _fetch(
        self,
        store: Store,
        entity: EntityType,
        rest,
        graphql,
        context: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Records, bool]:
        """REST first, GraphQL when protected customer data blocks REST"""
        context = context or {}
        try:
            try:
                return await self._paginate(store, entity, ApiSource.REST, rest(), context)
            except ProtectedDataError:
                logger.info(
                    "REST blocked by protected customer data, falling back to GraphQL",
                    shop=store.shop_domain,
                    entity=entity.value,
                )
                return await self._paginate(store, entity, ApiSource.GRAPHQL, graphql(), context)
        except UnauthorizedError as e:
            logger.error(
                "Connection invalid",
                shop=store.shop_domain,
                store_id=store.id,
                entity=entity.value,
                error=str(e),
            )
        except ApiError as e:
            logger.error(
                "Collection failed",
                shop=store.shop_domain,
                entity=entity.value,
                kind=e.kind,
                error=str(e),
            )
        return [], False

    async def _paginate(
        self,
        store: Store,
        entity: EntityType,
        source: ApiSource,
        fetch: FetchPage,
        context: Dict[str, Any],
    ) -> Tuple[Records, bool]:
        """
        Drain a page sequence into canonical records.

        A failure on the first page propagates; later failures keep what was
        collected and flag the result incomplete.
        """
        records: Records = []
        fetched = 0

        try:
            async for page in self.paginator.pages(fetch):
                fetched += 1
                records.extend(normalize_page(entity, source, page.items, **context))
                logger.debug(
                    "Fetched page",
                    shop=store.shop_domain,
                    entity=entity.value,
                    source=source.value,
                    page=page.number,
                    count=len(page.items),
                )
        except ApiError as e:
            if fetched == 0:
                raise
            logger.warning(
                "Pagination interrupted, returning partial result",
                shop=store.shop_domain,
                entity=entity.value,
                source=source.value,
                pages=fetched,
                count=len(records),
                kind=e.kind,
                error=str(e),
            )
            return records, False

        return records, True

    @staticmethod
    def _dump(records: Sequence[BaseModel]) -> List[Dict[str, Any]]:
        return [record.model_dump(mode="json") for record in records]

    @staticmethod
    def _load(model: Type[BaseModel], payload: Any, key: str) -> Records:
        records = []
        for item in payload or []:
            try:
                records.append(model.model_validate(item))
            except ValidationError as e:
                logger.warning("Dropping invalid cached record", key=key, error=str(e))
        return records
