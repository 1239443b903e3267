"""
Shopify Admin API client.

Single authenticated transport for both the REST Admin API (JSON over
GET/POST/PUT/DELETE) and the GraphQL Admin API (POST of
``{query, variables}``). Failures are raised as the typed errors from
``shopify_analytics.client.errors``; no retries are attempted here.

Usage:
    async with ShopifyClient() as client:
        shop = await client.call(store, "GET", "shop.json")
        envelope = await client.graphql(store, PRODUCTS_QUERY, {"first": 50})
"""

import base64
import hashlib
import hmac
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx
import structlog

from shopify_analytics.client.errors import (
    PROTECTED_DATA_DOCS,
    ApiError,
    GraphQLError,
    NotFoundError,
    ProtectedDataError,
    RateLimitedError,
    TransientError,
    UnauthorizedError,
)
from shopify_analytics.config import get_settings
from shopify_analytics.config.settings import ShopifySettings
from shopify_analytics.models import Store

logger = structlog.get_logger(__name__)

PROTECTED_DATA_MARKER = "protected customer data"
SUPPORTED_METHODS = ("GET", "POST", "PUT", "DELETE")


@dataclass
class ApiResponse:
    """Decoded REST response with the headers pagination needs"""
    data: Any
    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)


class ShopifyClient:
    """
    Async HTTP client for the Shopify Admin APIs.

    One ``httpx.AsyncClient`` is shared by all calls; pass ``http_client``
    (or a ``transport``) to inject a pre-configured one, e.g. an
    ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        settings: Optional[ShopifySettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings().shopify
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=self.settings.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "ShopifyClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it"""
        if self._owns_client:
            await self._http.aclose()

    # =========================================================================
    # URL / HEADERS
    # =========================================================================

    def build_url(self, store: Store, path: str) -> str:
        """Resolve a REST path against the store's versioned admin API root"""
        if path.startswith("http://") or path.startswith("https://"):
            return path
        if path.startswith("/admin/"):
            return f"https://{store.shop_domain}{path}"
        return f"https://{store.shop_domain}/admin/api/{self.settings.api_version}/{path.lstrip('/')}"

    def _headers(self, store: Store) -> Dict[str, str]:
        return {
            "X-Shopify-Access-Token": store.access_token or "",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    # =========================================================================
    # REST
    # =========================================================================

    async def request(
        self,
        store: Store,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> ApiResponse:
        """
        Issue a REST call and return the decoded body with response headers.

        Raises:
            ApiError: typed by failure kind
        """
        method = method.upper()
        if method not in SUPPORTED_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")

        if not store.access_token:
            logger.error("No access token for store", shop=store.shop_domain)
            raise UnauthorizedError("Store has no access token", shop=store.shop_domain, path=path)

        url = self.build_url(store, path)
        kwargs: Dict[str, Any] = {"headers": self._headers(store)}
        if method in ("GET", "DELETE"):
            kwargs["params"] = params or None
        else:
            kwargs["json"] = params or {}

        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientError(f"Request timed out: {e}", shop=store.shop_domain, path=path) from e
        except httpx.RequestError as e:
            raise TransientError(f"Request failed: {e}", shop=store.shop_domain, path=path) from e

        self._raise_for_status(response, store, path)

        return ApiResponse(
            data=self._decode(response),
            status_code=response.status_code,
            headers=response.headers,
        )

    async def call(
        self,
        store: Store,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Issue a REST call and return only the decoded JSON body"""
        response = await self.request(store, method, path, params)
        return response.data

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    def _raise_for_status(self, response: httpx.Response, store: Store, path: str) -> None:
        """Map an unsuccessful HTTP status onto the error taxonomy"""
        status = response.status_code
        if status < 400:
            return

        body = self._decode(response) or response.text
        context = {"status_code": status, "shop": store.shop_domain, "path": path, "body": body}

        logger.warning(
            "Shopify API error",
            shop=store.shop_domain,
            path=path,
            status=status,
        )

        if status == 401:
            raise UnauthorizedError("Access token invalid or revoked", **context)
        if status == 403:
            if PROTECTED_DATA_MARKER in str(body).lower():
                raise ProtectedDataError(
                    f"Protected Customer Data Access approval required ({PROTECTED_DATA_DOCS})",
                    **context,
                )
            raise ApiError("Forbidden", **context)
        if status == 404:
            raise NotFoundError("Resource not found", **context)
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitedError(
                "Rate limit exceeded",
                retry_after=float(retry_after) if retry_after else None,
                **context,
            )
        if status >= 500:
            raise TransientError("Shopify server error", **context)
        raise ApiError("Shopify API request rejected", **context)

    # =========================================================================
    # GRAPHQL
    # =========================================================================

    async def graphql(
        self,
        store: Store,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Execute a GraphQL query.

        Returns:
            The full ``{data, extensions}`` envelope

        Raises:
            ApiError: transport/status failures, or ``GraphQLError`` (and its
                throttled / protected-data kinds) when ``errors`` is present
        """
        path = "graphql.json"
        response = await self.request(
            store,
            "POST",
            path,
            {"query": query, "variables": variables or {}},
        )
        envelope = response.data if isinstance(response.data, dict) else {}

        errors = envelope.get("errors")
        if errors:
            self._raise_graphql_errors(errors, store, path)

        cost = (envelope.get("extensions") or {}).get("cost")
        if cost:
            logger.debug(
                "GraphQL query cost",
                shop=store.shop_domain,
                requested=cost.get("requestedQueryCost"),
                actual=cost.get("actualQueryCost"),
            )

        return envelope

    @staticmethod
    def _raise_graphql_errors(errors: Any, store: Store, path: str) -> None:
        if isinstance(errors, str):
            errors = [{"message": errors}]
        messages = [e.get("message", str(e)) if isinstance(e, dict) else str(e) for e in errors]
        codes = [
            (e.get("extensions") or {}).get("code", "") if isinstance(e, dict) else ""
            for e in errors
        ]
        context = {"shop": store.shop_domain, "path": path, "body": errors}

        logger.warning("GraphQL errors", shop=store.shop_domain, errors=messages)

        if "THROTTLED" in codes:
            raise RateLimitedError("GraphQL query throttled", **context)
        if any(PROTECTED_DATA_MARKER in message.lower() for message in messages):
            raise ProtectedDataError(
                f"Protected Customer Data Access approval required ({PROTECTED_DATA_DOCS})",
                status_code=403,
                **context,
            )
        if "ACCESS_DENIED" in codes:
            raise ApiError(f"GraphQL access denied: {'; '.join(messages)}", status_code=403, **context)
        raise GraphQLError(f"GraphQL errors: {'; '.join(messages)}", errors=errors, **context)

    # =========================================================================
    # DIAGNOSTICS
    # =========================================================================

    async def test_connection(self, store: Store) -> Dict[str, Dict[str, str]]:
        """Call each endpoint the pipeline depends on"""
        checks = {
            "shop": ("shop.json", None),
            "products": ("products.json", {"limit": 1}),
            "locations": ("locations.json", None),
            "orders": ("orders.json", {"limit": 1, "status": "any"}),
            "customers": ("customers.json", {"limit": 1}),
        }

        results = {}
        for name, (path, params) in checks.items():
            try:
                await self.call(store, "GET", path, params)
                results[name] = {"status": "success", "message": "Working"}
            except ApiError as e:
                results[name] = {"status": "error", "error": e.kind, "message": e.message}

        return results

    async def has_protected_data_access(self, store: Store) -> Dict[str, Any]:
        """Check whether the app may read protected customer fields"""
        try:
            await self.call(store, "GET", "orders.json", {"limit": 1})
        except ProtectedDataError:
            return {
                "has_access": False,
                "status": "pending_approval",
                "message": "Protected Customer Data Access approval required",
                "documentation": PROTECTED_DATA_DOCS,
            }
        except ApiError as e:
            return {
                "has_access": False,
                "status": "unknown",
                "message": f"Unable to determine protected data access status ({e.kind})",
            }

        return {
            "has_access": True,
            "status": "approved",
            "message": "Protected Customer Data Access is active",
        }


def verify_webhook(hmac_header: Optional[str], body: bytes, secret: str) -> bool:
    """Verify the ``X-Shopify-Hmac-Sha256`` header of a webhook delivery"""
    if not hmac_header or not secret:
        return False
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    calculated = base64.b64encode(digest).decode("utf-8")
    return hmac.compare_digest(calculated, hmac_header)
