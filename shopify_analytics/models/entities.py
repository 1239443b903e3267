"""
Canonical Entity Models

Provider-agnostic representation of Shopify records after normalization.
REST and GraphQL payloads are mapped onto these models by
``shopify_analytics.ingestion.normalizers``; everything downstream of the
normalizer (transformations, cache payloads, mock data) only sees these
types.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ApiSource(str, Enum):
    """Upstream API scheme a raw payload came from"""
    REST = "rest"
    GRAPHQL = "graphql"


class EntityType(str, Enum):
    """Entity types collected from a store"""
    ORDERS = "orders"
    PRODUCTS = "products"
    CUSTOMERS = "customers"
    LOCATIONS = "locations"
    INVENTORY = "inventory"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive timestamps are taken as UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _as_tag_set(value) -> List[str]:
    """Tags arrive as a comma separated string (REST) or a list (GraphQL)"""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return sorted({str(tag).strip() for tag in value if str(tag).strip()})


class CanonicalModel(BaseModel):
    """Base for all canonical records"""

    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")


class Store(CanonicalModel):
    """Store credentials, owned by the store-management collaborator"""
    id: str
    shop_domain: str
    access_token: Optional[str] = None
    is_active: bool = True


class LineItem(CanonicalModel):
    """Single order line; product/variant are weak references"""
    id: Optional[str] = None
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    title: str = ""
    variant_title: Optional[str] = None
    sku: Optional[str] = None
    quantity: int = Field(default=0, ge=0)
    price: float = Field(default=0.0, ge=0)
    vendor: Optional[str] = None
    product_type: Optional[str] = None

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


class Order(CanonicalModel):
    """Canonical order"""
    id: str
    name: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None
    total_price: float = 0.0
    subtotal_price: float = 0.0
    total_tax: float = 0.0
    currency: str = "USD"
    financial_status: Optional[str] = None
    fulfillment_status: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    customer_id: Optional[str] = None
    line_items: List[LineItem] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    @field_validator("created_at", "processed_at", "cancelled_at")
    @classmethod
    def ensure_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @field_validator("tags", mode="before")
    @classmethod
    def tag_set(cls, v) -> List[str]:
        return _as_tag_set(v)

    @property
    def is_revenue_eligible(self) -> bool:
        """Cancelled and refunded orders never count towards revenue"""
        return self.cancelled_at is None and self.financial_status != "refunded"

    @property
    def order_date(self) -> str:
        """Store-local calendar date (YYYY-MM-DD)"""
        return self.created_at.date().isoformat()


class Variant(CanonicalModel):
    """Product variant"""
    id: str
    title: Optional[str] = None
    sku: Optional[str] = None
    price: float = 0.0
    inventory_quantity: int = 0
    compare_at_price: Optional[float] = None
    inventory_item_id: Optional[str] = None


class Image(CanonicalModel):
    """Product image"""
    id: Optional[str] = None
    url: Optional[str] = None
    alt_text: Optional[str] = None


class Product(CanonicalModel):
    """Canonical product"""
    id: str
    title: str = ""
    handle: Optional[str] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    status: str = "active"
    created_at: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    variants: List[Variant] = Field(default_factory=list)
    images: List[Image] = Field(default_factory=list)

    @field_validator("created_at")
    @classmethod
    def ensure_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @field_validator("tags", mode="before")
    @classmethod
    def tag_set(cls, v) -> List[str]:
        return _as_tag_set(v)

    @property
    def total_inventory(self) -> int:
        return sum(variant.inventory_quantity for variant in self.variants)


class Customer(CanonicalModel):
    """Canonical customer; PII fields may be redacted by API scope"""
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    created_at: datetime
    orders_count: int = Field(default=0, ge=0)
    total_spent: float = 0.0
    tags: List[str] = Field(default_factory=list)
    accepts_marketing: bool = False

    @field_validator("created_at")
    @classmethod
    def ensure_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @field_validator("tags", mode="before")
    @classmethod
    def tag_set(cls, v) -> List[str]:
        return _as_tag_set(v)

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class Location(CanonicalModel):
    """Store location (warehouse, retail, ...)"""
    id: str
    name: str = ""
    active: bool = True


class InventoryLevel(CanonicalModel):
    """Available quantity of one inventory item at one location"""
    inventory_item_id: str
    location_id: str
    location_name: Optional[str] = None
    available: int = 0

    @property
    def stock_quantity(self) -> int:
        """Negative availability counts as empty shelf"""
        return max(self.available, 0)
