"""
Shopify API error taxonomy.

Every failure surfaced by ``ShopifyClient`` is an ``ApiError`` subclass so
callers can react by kind (fall back to GraphQL, stop paginating, mark the
connection invalid) without inspecting raw HTTP responses.
"""

from typing import Any, Optional

PROTECTED_DATA_DOCS = "https://shopify.dev/docs/apps/launch/protected-customer-data"


class ApiError(Exception):
    """Base class for Shopify API failures"""

    kind = "api_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        shop: Optional[str] = None,
        path: Optional[str] = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.shop = shop
        self.path = path
        self.body = body

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.shop:
            parts.append(f"shop={self.shop}")
        if self.path:
            parts.append(f"path={self.path}")
        return " ".join(parts)


class UnauthorizedError(ApiError):
    """401: token invalid or revoked (connection invalid)"""
    kind = "unauthorized"


class RateLimitedError(ApiError):
    """429 or GraphQL THROTTLED"""
    kind = "rate_limited"

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class NotFoundError(ApiError):
    """404"""
    kind = "not_found"


class TransientError(ApiError):
    """5xx, timeouts and network failures"""
    kind = "transient"


class ProtectedDataError(ApiError):
    """403 caused by missing protected customer data approval"""
    kind = "protected_data"


class GraphQLError(ApiError):
    """GraphQL envelope carried an ``errors`` list"""
    kind = "graphql"

    def __init__(self, message: str, errors: Optional[list] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []
