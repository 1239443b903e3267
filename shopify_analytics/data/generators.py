"""
Sample Store Data Generator

Generates plausible canonical store data (products, customers, orders,
locations, inventory levels) for development and for the analytics
fallback when Shopify is unavailable.

Output is deterministic: the same store id and window always produce the
same records, so sample dashboards do not flicker between refreshes.
"""

import hashlib
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from faker import Faker

from shopify_analytics.models import (
    Customer,
    InventoryLevel,
    LineItem,
    Location,
    Order,
    Product,
    Variant,
)


# =============================================================================
# CONFIGURATION
# =============================================================================

FEATURED_PRODUCTS = [
    ("Wireless Bluetooth Headphones", "TechCorp", "Electronics", 79.99),
    ("Organic Cotton T-Shirt", "EcoWear", "Clothing", 24.99),
    ("Stainless Steel Water Bottle", "HydroLife", "Accessories", 19.99),
    ("Yoga Mat Premium", "FitnessPro", "Sports", 59.99),
    ("Coffee Beans Colombian", "BrewMaster", "Food", 16.50),
]

CATEGORIES = [
    ("Electronics", ["Speaker", "Charger", "Keyboard", "Webcam"], (30, 600)),
    ("Clothing", ["Hoodie", "Jacket", "Sneakers", "Cap"], (15, 180)),
    ("Home", ["Lamp", "Throw Blanket", "Candle", "Planter"], (10, 150)),
    ("Sports", ["Dumbbell Set", "Resistance Band", "Jump Rope"], (10, 250)),
]

VARIANT_TITLES = ["Small", "Medium", "Large"]

FINANCIAL_STATUSES = [
    ("paid", 0.80),
    ("pending", 0.05),
    ("authorized", 0.04),
    ("partially_refunded", 0.06),
    ("refunded", 0.05),
]

CANCELLATION_RATE = 0.03


def seed_for(*parts) -> int:
    """Stable 32-bit seed from arbitrary parts"""
    digest = hashlib.sha256("|".join(str(part) for part in parts).encode("utf-8")).hexdigest()
    return int(digest[:8], 16)


@dataclass
class SampleStore:
    """Complete sample dataset for one store"""
    products: List[Product] = field(default_factory=list)
    customers: List[Customer] = field(default_factory=list)
    orders: List[Order] = field(default_factory=list)
    locations: List[Location] = field(default_factory=list)
    inventory: List[InventoryLevel] = field(default_factory=list)


# =============================================================================
# GENERATORS
# =============================================================================

class ProductGenerator:
    """Generate a small product catalog"""

    def __init__(self, rng: random.Random, fake: Faker):
        self.rng = rng
        self.fake = fake

    def generate(self, n: int = 12, now: Optional[datetime] = None) -> List[Product]:
        """Featured products first, then generated ones up to n"""
        now = now or datetime.now(timezone.utc)
        catalog = list(FEATURED_PRODUCTS)

        while len(catalog) < n:
            product_type, names, (low, high) = self.rng.choice(CATEGORIES)
            title = f"{self.fake.word().title()} {self.rng.choice(names)}"
            vendor = f"{self.fake.last_name()} Co"
            catalog.append((title, vendor, product_type, round(self.rng.uniform(low, high), 2)))

        products = []
        variant_seq = 1
        for index, (title, vendor, product_type, base_price) in enumerate(catalog[:n], start=1):
            variants = []
            for variant_title in self.rng.sample(VARIANT_TITLES, self.rng.randint(1, 3)):
                variants.append(Variant(
                    id=str(2000 + variant_seq),
                    title=variant_title,
                    sku=f"SKU-{index:03d}-{variant_title[0]}",
                    price=round(base_price * self.rng.uniform(0.9, 1.2), 2),
                    inventory_quantity=self.rng.choice([0, 2, 4, 8, 15, 40, 120]),
                    inventory_item_id=str(3000 + variant_seq),
                ))
                variant_seq += 1

            products.append(Product(
                id=str(index),
                title=title,
                handle=title.lower().replace(" ", "-"),
                vendor=vendor,
                product_type=product_type,
                status=self.rng.choices(["active", "draft", "archived"], weights=[0.85, 0.10, 0.05])[0],
                created_at=now - timedelta(days=self.rng.randint(30, 720)),
                variants=variants,
            ))

        return products


class CustomerGenerator:
    """Generate customer profiles"""

    def __init__(self, rng: random.Random, fake: Faker):
        self.rng = rng
        self.fake = fake

    def generate(self, n: int = 40, now: Optional[datetime] = None) -> List[Customer]:
        """Customers with signup dates spread over the last two years"""
        now = now or datetime.now(timezone.utc)
        customers = []

        for index in range(1, n + 1):
            # A fifth of the base signed up within the last month
            if self.rng.random() < 0.2:
                age_days = self.rng.randint(0, 29)
            else:
                age_days = self.rng.randint(31, 730)

            customers.append(Customer(
                id=str(5000 + index),
                email=self.fake.email(),
                first_name=self.fake.first_name(),
                last_name=self.fake.last_name(),
                created_at=now - timedelta(days=age_days, minutes=self.rng.randint(0, 1439)),
                tags=self.rng.sample(["newsletter", "wholesale", "vip", "returning"], self.rng.randint(0, 2)),
                accepts_marketing=self.rng.random() < 0.6,
            ))

        return customers


class OrderGenerator:
    """Generate orders against a catalog and customer base"""

    def __init__(
        self,
        rng: random.Random,
        products: List[Product],
        customers: List[Customer],
    ):
        self.rng = rng
        self.products = [product for product in products if product.variants]
        self.customers = customers

    def generate(self, n: int, start: datetime, end: datetime) -> List[Order]:
        """Generate n orders created within [start, end]"""
        span = max((end - start).total_seconds(), 1)
        orders = []

        for index in range(1, n + 1):
            created_at = start + timedelta(seconds=self.rng.uniform(0, span))

            line_items = []
            for product in self.rng.sample(self.products, min(len(self.products), self.rng.choice([1, 1, 1, 2, 2, 3]))):
                variant = self.rng.choice(product.variants)
                line_items.append(LineItem(
                    id=str(90000 + index * 10 + len(line_items)),
                    product_id=product.id,
                    variant_id=variant.id,
                    title=product.title,
                    variant_title=variant.title,
                    sku=variant.sku,
                    quantity=self.rng.choices([1, 2, 3, 4], weights=[0.65, 0.22, 0.09, 0.04])[0],
                    price=variant.price,
                    vendor=product.vendor,
                    product_type=product.product_type,
                ))

            subtotal = round(sum(item.line_total for item in line_items), 2)
            tax = round(subtotal * 0.08, 2)
            cancelled = self.rng.random() < CANCELLATION_RATE
            customer = self.rng.choice(self.customers) if self.customers else None

            orders.append(Order(
                id=str(10000 + index),
                name=f"#{1000 + index}",
                created_at=created_at,
                processed_at=created_at,
                total_price=round(subtotal + tax, 2),
                subtotal_price=subtotal,
                total_tax=tax,
                financial_status=self.rng.choices(
                    [s[0] for s in FINANCIAL_STATUSES],
                    weights=[s[1] for s in FINANCIAL_STATUSES],
                )[0],
                fulfillment_status=self.rng.choice([None, "fulfilled", "partial"]),
                cancelled_at=created_at + timedelta(hours=2) if cancelled else None,
                customer_id=customer.id if customer else None,
                line_items=line_items,
            ))

        orders.sort(key=lambda order: order.created_at)
        return orders


class InventoryGenerator:
    """Spread variant stock across store locations"""

    def __init__(self, rng: random.Random, fake: Faker):
        self.rng = rng
        self.fake = fake

    def generate(self, products: List[Product]) -> Tuple[List[Location], List[InventoryLevel]]:
        locations = [
            Location(id="7001", name="Main Warehouse"),
            Location(id="7002", name=f"{self.fake.city()} Store"),
        ]

        levels = []
        for product in products:
            for variant in product.variants:
                if not variant.inventory_item_id:
                    continue
                for location in locations:
                    levels.append(InventoryLevel(
                        inventory_item_id=variant.inventory_item_id,
                        location_id=location.id,
                        location_name=location.name,
                        available=self.rng.choices(
                            [-1, 0, 1, 3, 5, 12, 60],
                            weights=[0.03, 0.17, 0.1, 0.1, 0.1, 0.25, 0.25],
                        )[0],
                    ))

        return locations, levels


# =============================================================================
# MAIN GENERATOR
# =============================================================================

class SampleDataGenerator:
    """
    Deterministic sample store.

    Example:
        sample = SampleDataGenerator("42").generate(start, end, now)
        transform_orders_to_product_performance(sample.orders)
    """

    def __init__(self, store_id: str, seed: Optional[int] = None):
        self.store_id = str(store_id)
        self.seed = seed if seed is not None else seed_for("sample-store", self.store_id)

    def _sources(self, *scope) -> Tuple[random.Random, Faker]:
        seed = seed_for(self.seed, *scope)
        fake = Faker()
        fake.seed_instance(seed)
        return random.Random(seed), fake

    def generate(
        self,
        start: datetime,
        end: datetime,
        now: Optional[datetime] = None,
        n_products: int = 12,
        n_customers: int = 40,
        orders_per_day: int = 6,
    ) -> SampleStore:
        """Generate a complete sample dataset for the window [start, end]"""
        now = now or end

        rng, fake = self._sources("products")
        products = ProductGenerator(rng, fake).generate(n_products, now)

        rng, fake = self._sources("customers")
        customers = CustomerGenerator(rng, fake).generate(n_customers, now)

        days = max((end.date() - start.date()).days + 1, 1)
        rng, _ = self._sources("orders", start.date().isoformat(), end.date().isoformat())
        orders = OrderGenerator(rng, products, customers).generate(days * orders_per_day, start, end)

        rng, fake = self._sources("inventory")
        locations, inventory = InventoryGenerator(rng, fake).generate(products)

        return SampleStore(
            products=products,
            customers=self._with_order_totals(customers, orders, rng),
            orders=orders,
            locations=locations,
            inventory=inventory,
        )

    @staticmethod
    def _with_order_totals(
        customers: List[Customer],
        orders: List[Order],
        rng: random.Random,
    ) -> List[Customer]:
        """Lifetime counters: window orders plus some earlier history"""
        counts = {}
        spent = {}
        for order in orders:
            if not order.customer_id or not order.is_revenue_eligible:
                continue
            counts[order.customer_id] = counts.get(order.customer_id, 0) + 1
            spent[order.customer_id] = spent.get(order.customer_id, 0.0) + order.total_price

        updated = []
        for customer in customers:
            earlier_orders = rng.randint(0, 3)
            updated.append(customer.model_copy(update={
                "orders_count": counts.get(customer.id, 0) + earlier_orders,
                "total_spent": round(spent.get(customer.id, 0.0) + earlier_orders * rng.uniform(20, 90), 2),
            }))
        return updated
