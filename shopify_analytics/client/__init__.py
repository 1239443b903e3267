"""
Shopify API Client Module
"""
from .errors import (
    ApiError,
    GraphQLError,
    NotFoundError,
    ProtectedDataError,
    RateLimitedError,
    TransientError,
    UnauthorizedError,
)
from .shopify import ApiResponse, ShopifyClient, verify_webhook
from .webhooks import WebhookManager

__all__ = [
    "ApiError",
    "ApiResponse",
    "GraphQLError",
    "NotFoundError",
    "ProtectedDataError",
    "RateLimitedError",
    "ShopifyClient",
    "TransientError",
    "UnauthorizedError",
    "WebhookManager",
    "verify_webhook",
]
