"""
Pagination Engine

Drives multi-page collection against Shopify's two addressing schemes:

- REST: opaque ``page_info`` token from the ``Link: <...>; rel="next"``
  header, falling back to ``since_id`` (last id of the current page) when
  the header is missing.
- GraphQL: ``pageInfo.hasNextPage`` / ``pageInfo.endCursor`` passed back as
  the ``after`` variable.

Pages are fetched strictly in order (each cursor depends on the previous
response) with a fixed pause between requests to stay inside the
2 requests/second budget.
"""

import asyncio
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence
from urllib.parse import unquote

import structlog

from shopify_analytics.client import ShopifyClient
from shopify_analytics.config import get_settings
from shopify_analytics.config.settings import MIN_REQUEST_DELAY_SECONDS
from shopify_analytics.models import Store

logger = structlog.get_logger(__name__)

LINK_NEXT_PATTERN = re.compile(r'<([^>]*)>\s*;\s*rel="?next"?', re.IGNORECASE)
PAGE_INFO_PATTERN = re.compile(r"[?&]page_info=([^&#]+)")


class CursorKind(str, Enum):
    """How a cursor is sent back to the API"""
    PAGE_INFO = "page_info"
    SINCE_ID = "since_id"
    AFTER = "after"


@dataclass(frozen=True)
class Cursor:
    """Opaque position in a paginated collection"""
    kind: CursorKind
    value: str


@dataclass
class Page:
    """One page of raw records plus the cursor of the following page"""
    items: List[Dict[str, Any]]
    next_cursor: Optional[Cursor] = None
    number: int = 0


FetchPage = Callable[[Optional[Cursor]], Awaitable[Page]]


def extract_next_cursor(headers: Optional[Mapping[str, str]]) -> Optional[str]:
    """
    Extract the ``page_info`` token of the ``rel="next"`` link.

    Args:
        headers: Response headers (any mapping; lookup is case-insensitive)

    Returns:
        The decoded token, or None when there is no next page
    """
    if not headers:
        return None

    link = None
    for name, value in headers.items():
        if name.lower() == "link":
            link = value
            break
    if not link:
        return None

    for part in link.split(","):
        match = LINK_NEXT_PATTERN.search(part)
        if not match:
            continue
        page_info = PAGE_INFO_PATTERN.search(match.group(1))
        if page_info:
            return unquote(page_info.group(1))
    return None


class Paginator:
    """
    Lazy page sequence over a cursor-parameterized fetch function.

    Stops when a page is shorter than ``page_size``, when no next cursor is
    available, or when ``max_pages`` pages have been fetched. The sequence is
    an async generator: finite and consumed once.

    Example:
        paginator = Paginator(page_size=250, max_pages=40)
        async for page in paginator.pages(fetch_page):
            records.extend(page.items)
    """

    def __init__(
        self,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
        delay: Optional[float] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        shopify = get_settings().shopify
        self.page_size = page_size or shopify.page_size
        self.max_pages = max_pages or shopify.max_pages
        self.delay = max(delay if delay is not None else shopify.request_delay_seconds, MIN_REQUEST_DELAY_SECONDS)
        self._sleep = sleep or asyncio.sleep

    async def pages(self, fetch_page: FetchPage) -> AsyncIterator[Page]:
        """Yield pages in order until a stop condition is met"""
        cursor: Optional[Cursor] = None

        for number in range(1, self.max_pages + 1):
            if number > 1:
                await self._sleep(self.delay)

            page = await fetch_page(cursor)
            page.number = number
            yield page

            if len(page.items) < self.page_size:
                return
            if page.next_cursor is None:
                return
            cursor = page.next_cursor

        logger.warning("Page ceiling reached", max_pages=self.max_pages, page_size=self.page_size)


def rest_page_fetcher(
    client: ShopifyClient,
    store: Store,
    path: str,
    resource_key: str,
    params: Optional[Dict[str, Any]] = None,
    page_size: int = 250,
) -> FetchPage:
    """
    Build a REST page fetch function.

    Args:
        client: API client
        store: Store to read from
        path: REST path, e.g. ``orders.json``
        resource_key: Key holding the records, e.g. ``orders``
        params: Filters for the first request
        page_size: ``limit`` per request
    """
    base_params = dict(params or {})

    async def fetch(cursor: Optional[Cursor]) -> Page:
        if cursor is not None and cursor.kind == CursorKind.PAGE_INFO:
            # page_info requests may only carry limit and fields
            query = {"limit": page_size, "page_info": cursor.value}
            if "fields" in base_params:
                query["fields"] = base_params["fields"]
        else:
            query = {**base_params, "limit": page_size}
            if cursor is not None:
                query["since_id"] = cursor.value

        response = await client.request(store, "GET", path, query)
        data = response.data if isinstance(response.data, dict) else {}
        items = data.get(resource_key) or []

        next_cursor = None
        page_info = extract_next_cursor(response.headers)
        if page_info:
            next_cursor = Cursor(CursorKind.PAGE_INFO, page_info)
        elif items and isinstance(items[-1], dict) and items[-1].get("id") is not None:
            next_cursor = Cursor(CursorKind.SINCE_ID, str(items[-1]["id"]))

        return Page(items=items, next_cursor=next_cursor)

    return fetch


def graphql_page_fetcher(
    client: ShopifyClient,
    store: Store,
    query: str,
    connection_path: Sequence[str],
    variables: Optional[Dict[str, Any]] = None,
    page_size: int = 250,
) -> FetchPage:
    """
    Build a GraphQL connection page fetch function.

    Args:
        client: API client
        store: Store to read from
        query: Query document taking ``$first`` and ``$after``
        connection_path: Keys from ``data`` to the connection,
            e.g. ``("orders",)`` or ``("location", "inventoryLevels")``
        variables: Extra query variables
        page_size: ``first`` per request
    """
    base_variables = dict(variables or {})

    async def fetch(cursor: Optional[Cursor]) -> Page:
        query_variables = {**base_variables, "first": page_size}
        if cursor is not None:
            query_variables["after"] = cursor.value

        envelope = await client.graphql(store, query, query_variables)

        connection: Any = envelope.get("data") or {}
        for key in connection_path:
            connection = (connection or {}).get(key) or {}

        edges = connection.get("edges") or []
        page_info = connection.get("pageInfo") or {}

        next_cursor = None
        if page_info.get("hasNextPage") and page_info.get("endCursor"):
            next_cursor = Cursor(CursorKind.AFTER, page_info["endCursor"])

        return Page(items=edges, next_cursor=next_cursor)

    return fetch
