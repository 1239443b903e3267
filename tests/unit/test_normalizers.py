"""
Unit Tests - Response Normalizer
"""
from datetime import datetime, timezone

import pytest

from shopify_analytics.ingestion import normalize, normalize_page, parse_global_id
from shopify_analytics.ingestion.normalizers import normalize_enum, to_money
from shopify_analytics.models import ApiSource, EntityType


REST_ORDER = {
    "id": 450789469,
    "order_number": 1001,
    "name": "#1001",
    "created_at": "2025-01-10T09:30:00-05:00",
    "total_price": "129.90",
    "subtotal_price": "120.00",
    "total_tax": "9.90",
    "currency": "CAD",
    "financial_status": "partially_refunded",
    "fulfillment_status": None,
    "cancelled_at": None,
    "customer": {"id": 207119551},
    "tags": "wholesale, vip",
    "line_items": [
        {
            "id": 466157049,
            "product_id": 632910392,
            "variant_id": 39072856,
            "title": "IPod Nano",
            "quantity": 2,
            "price": "60.00",
            "vendor": "Apple",
        }
    ],
}

GRAPHQL_ORDER_EDGE = {
    "cursor": "eyJsYXN0X2lkIjo0NTA3ODk0Njl9",
    "node": {
        "id": "gid://shopify/Order/450789469",
        "name": "#1001",
        "createdAt": "2025-01-10T14:30:00Z",
        "totalPriceSet": {"shopMoney": {"amount": "129.90", "currencyCode": "CAD"}},
        "subtotalPriceSet": {"shopMoney": {"amount": "120.00", "currencyCode": "CAD"}},
        "totalTaxSet": {"shopMoney": {"amount": "9.90", "currencyCode": "CAD"}},
        "displayFinancialStatus": "PARTIALLY_REFUNDED",
        "displayFulfillmentStatus": "UNFULFILLED",
        "cancelledAt": None,
        "customer": {"id": "gid://shopify/Customer/207119551"},
        "tags": ["vip", "wholesale"],
        "lineItems": {
            "edges": [
                {
                    "node": {
                        "id": "gid://shopify/LineItem/466157049",
                        "title": "IPod Nano",
                        "quantity": 2,
                        "originalUnitPriceSet": {"shopMoney": {"amount": "60.00"}},
                        "variant": {
                            "id": "gid://shopify/ProductVariant/39072856",
                            "product": {"id": "gid://shopify/Product/632910392", "vendor": "Apple"},
                        },
                    }
                }
            ]
        },
    },
}


class TestFieldHelpers:
    """Tests for id, money and enum helpers"""

    def test_global_id(self):
        assert parse_global_id("gid://shopify/Order/998877") == "998877"
        assert parse_global_id("gid://shopify/InventoryItem/42?inventory_item_id=42") == "42"

    def test_rest_id_passes_through(self):
        assert parse_global_id(998877) == "998877"
        assert parse_global_id(None) is None

    def test_global_id_round_trip(self):
        numeric = parse_global_id("gid://shopify/Product/632910392")
        assert parse_global_id(f"gid://shopify/Product/{numeric}") == numeric

    def test_money(self):
        assert to_money("19.99") == 19.99
        assert to_money({"shopMoney": {"amount": "5.00"}}) == 5.0
        assert to_money({"amount": "7.5"}) == 7.5
        assert to_money(None) == 0.0

    def test_invalid_money(self):
        with pytest.raises(ValueError):
            to_money("free")

    def test_enum(self):
        assert normalize_enum("PARTIALLY_REFUNDED") == "partially_refunded"
        assert normalize_enum("partiallyRefunded") == "partially_refunded"
        assert normalize_enum("Partially refunded") == "partially_refunded"
        assert normalize_enum("") is None


class TestOrderNormalization:
    """Tests for REST and GraphQL orders"""

    def test_rest_order(self):
        order = normalize(EntityType.ORDERS, ApiSource.REST, REST_ORDER)

        assert order.id == "450789469"
        assert order.customer_id == "207119551"
        assert order.total_price == 129.90
        assert order.currency == "CAD"
        assert order.financial_status == "partially_refunded"
        assert order.tags == ["vip", "wholesale"]
        assert order.line_items[0].product_id == "632910392"
        assert order.line_items[0].line_total == 120.0

    def test_graphql_order_matches_rest(self):
        """Both schemes land on the same canonical record"""
        rest = normalize(EntityType.ORDERS, ApiSource.REST, REST_ORDER)
        graphql = normalize(EntityType.ORDERS, ApiSource.GRAPHQL, GRAPHQL_ORDER_EDGE)

        assert graphql.id == rest.id
        assert graphql.customer_id == rest.customer_id
        assert graphql.created_at == rest.created_at
        assert graphql.total_price == rest.total_price
        assert graphql.financial_status == rest.financial_status
        assert graphql.tags == rest.tags
        assert graphql.line_items[0].product_id == rest.line_items[0].product_id
        assert graphql.line_items[0].price == rest.line_items[0].price

    def test_idempotent(self):
        """Normalizing the same payload twice gives equal records"""
        first = normalize(EntityType.ORDERS, ApiSource.REST, REST_ORDER)
        second = normalize(EntityType.ORDERS, ApiSource.REST, REST_ORDER)
        assert first == second

    def test_canonical_dump_is_a_fixed_point(self):
        order = normalize(EntityType.ORDERS, ApiSource.REST, REST_ORDER)
        again = normalize(EntityType.ORDERS, ApiSource.REST, order.model_dump())
        assert again == order

    def test_naive_timestamp_is_utc(self):
        order = normalize(EntityType.ORDERS, ApiSource.REST, {**REST_ORDER, "created_at": "2025-01-10T09:30:00"})
        assert order.created_at == datetime(2025, 1, 10, 9, 30, tzinfo=timezone.utc)


class TestOtherEntities:
    """Tests for products, customers and inventory"""

    def test_graphql_product(self):
        product = normalize(EntityType.PRODUCTS, ApiSource.GRAPHQL, {
            "node": {
                "id": "gid://shopify/Product/1",
                "title": "Mug",
                "productType": "Kitchen",
                "status": "ACTIVE",
                "variants": {"edges": [{"node": {
                    "id": "gid://shopify/ProductVariant/11",
                    "price": "12.00",
                    "inventoryQuantity": 4,
                    "inventoryItem": {"id": "gid://shopify/InventoryItem/111"},
                }}]},
            }
        })

        assert product.id == "1"
        assert product.status == "active"
        assert product.variants[0].inventory_item_id == "111"
        assert product.total_inventory == 4

    def test_graphql_customer(self):
        customer = normalize(EntityType.CUSTOMERS, ApiSource.GRAPHQL, {
            "id": "gid://shopify/Customer/9",
            "createdAt": "2024-05-01T00:00:00Z",
            "numberOfOrders": "3",
            "amountSpent": {"amount": "250.50", "currencyCode": "USD"},
            "emailMarketingConsent": {"marketingState": "SUBSCRIBED"},
        })

        assert customer.id == "9"
        assert customer.orders_count == 3
        assert customer.total_spent == 250.5
        assert customer.accepts_marketing is True

    def test_inventory_context(self):
        level = normalize(
            EntityType.INVENTORY,
            ApiSource.GRAPHQL,
            {"node": {"item": {"id": "gid://shopify/InventoryItem/5"}, "quantities": [{"name": "available", "quantity": 7}]}},
            location_id="gid://shopify/Location/3",
            location_name="Warehouse",
        )

        assert level.inventory_item_id == "5"
        assert level.location_id == "3"
        assert level.location_name == "Warehouse"
        assert level.available == 7


class TestNormalizePage:
    """Tests for page-level normalization"""

    def test_skips_malformed_records(self):
        items = [
            REST_ORDER,
            {"id": 2},  # no created_at
            {**REST_ORDER, "id": 3, "total_price": "n/a"},
            {**REST_ORDER, "id": 4},
        ]

        orders = normalize_page(EntityType.ORDERS, ApiSource.REST, items)

        assert [order.id for order in orders] == ["450789469", "4"]

    def test_unknown_entity(self):
        with pytest.raises(ValueError):
            normalize("webhooks", ApiSource.REST, {})
