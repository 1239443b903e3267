"""
Shopify Store Analytics
Centralized Configuration Management

This module provides configuration management using Pydantic settings
with environment variable support, validation, and type safety.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Shopify allows 2 requests/second for regular apps
MIN_REQUEST_DELAY_SECONDS = 0.5

# Topics subscribed for every connected store
WEBHOOK_TOPICS = [
    "app/uninstalled",
    "shop/update",
    "products/create",
    "products/update",
    "products/delete",
    "orders/create",
    "orders/updated",
    "orders/cancelled",
    "customers/create",
    "customers/update",
    "customers/delete",
    "inventory_levels/connect",
    "inventory_levels/update",
    "inventory_items/update",
]


class ShopifySettings(BaseSettings):
    """Shopify Admin API Configuration"""

    model_config = SettingsConfigDict(env_prefix="SHOPIFY_")

    api_key: str = Field(default="", description="App API key")
    api_secret: SecretStr = Field(default="", description="App API secret (webhook HMAC)")
    api_version: str = Field(default="2024-07", description="Admin API version")
    request_timeout_seconds: float = Field(default=30.0, description="HTTP timeout in seconds")
    page_size: int = Field(default=250, ge=1, le=250, description="Records requested per page")
    max_pages: int = Field(default=40, ge=1, description="Hard ceiling on pages per collection")
    request_delay_seconds: float = Field(
        default=MIN_REQUEST_DELAY_SECONDS,
        description="Pause between page requests",
    )
    webhook_base_url: str = Field(default="", description="Public base URL receiving webhook callbacks")
    webhook_topics: List[str] = Field(
        default_factory=lambda: list(WEBHOOK_TOPICS),
        description="Topics subscribed by webhook setup",
    )

    @field_validator("request_delay_seconds")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        """Never go below the provider's rate budget"""
        return max(v, MIN_REQUEST_DELAY_SECONDS)

    @field_validator("webhook_base_url")
    @classmethod
    def validate_webhook_base_url(cls, v: str) -> str:
        """Shopify only delivers to HTTPS endpoints"""
        v = v.rstrip("/")
        if v.startswith("http://"):
            v = "https://" + v[len("http://"):]
        return v


class RedisSettings(BaseSettings):
    """Redis Cache Configuration"""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: Optional[SecretStr] = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")
    max_connections: int = Field(default=50, description="Max connections")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")
    url: Optional[str] = Field(default=None, alias="REDIS_URL", description="Redis URL (overrides host/port)")

    def get_url(self) -> str:
        """Redis connection URL - uses REDIS_URL if set, otherwise builds from host/port"""
        if self.url:
            return self.url
        if self.password:
            return f"redis://:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class CacheSettings(BaseSettings):
    """Cache backend and TTL policy (seconds)"""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    backend: str = Field(default="redis", description="Cache backend: redis or memory")

    # Raw entity snapshots
    orders_ttl: int = Field(default=1800, description="Orders change often and drive near-real-time views")
    products_ttl: int = Field(default=3600, description="Product catalog TTL")
    customers_ttl: int = Field(default=3600, description="Customer list TTL")
    inventory_ttl: int = Field(default=7200, description="Inventory levels TTL")
    locations_ttl: int = Field(default=7200, description="Locations TTL")

    # Derived analytics views
    sales_analytics_ttl: int = Field(default=1800, description="Sales analytics TTL")
    product_analytics_ttl: int = Field(default=3600, description="Product analytics TTL")
    customer_analytics_ttl: int = Field(default=3600, description="Customer analytics TTL")
    inventory_analytics_ttl: int = Field(default=3600, description="Inventory analytics TTL")
    dashboard_ttl: int = Field(default=900, description="Dashboard TTL")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate backend name"""
        allowed = ["redis", "memory"]
        if v.lower() not in allowed:
            raise ValueError(f"Cache backend must be one of: {allowed}")
        return v.lower()


class AnalyticsSettings(BaseSettings):
    """Analytics computation thresholds"""

    model_config = SettingsConfigDict(env_prefix="ANALYTICS_")

    default_range_days: int = Field(default=30, description="Default reporting window")
    low_stock_threshold: int = Field(default=5, description="Items at or below this are low stock")
    vip_spend_threshold: float = Field(default=500.0, description="Lifetime spend for VIP segment")
    orchestrator_timeout_seconds: float = Field(default=120.0, description="Upper bound per analytics view")
    enable_mock_fallback: bool = Field(default=True, description="Serve sample data when Shopify fails")


class MonitoringSettings(BaseSettings):
    """Monitoring and Observability Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="shopify-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    shopify: ShopifySettings = Field(default_factory=ShopifySettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
