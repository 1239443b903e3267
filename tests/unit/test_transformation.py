"""
Unit Tests - Data Transformation
"""
from datetime import datetime, timezone

import pytest

from shopify_analytics.models import InventoryLevel, LineItem, Order, Product, Variant
from shopify_analytics.transformation import (
    analyze_product_catalog,
    analyze_sales_data,
    build_inventory_analytics,
    build_performance_metrics,
    summarize_inventory_data,
    summarize_product_performance,
    transform_inventory_data,
    transform_orders_to_product_performance,
    transform_orders_to_product_performance_by_id,
)
from shopify_analytics.transformation.inventory import classify_stock
from shopify_analytics.transformation.sales import date_range, growth_rate


START = datetime(2025, 1, 1, tzinfo=timezone.utc)
END = datetime(2025, 1, 31, 23, 59, tzinfo=timezone.utc)


class TestProductPerformance:
    """Tests for order -> product aggregation"""

    def test_end_to_end_scenario(self, scenario_orders):
        """Cancelled order excluded, products ranked by revenue"""
        result = transform_orders_to_product_performance(scenario_orders)

        assert result["total_orders"] == 2
        assert result["total_sales"] == 150
        assert result["avg_order_value"] == 75
        assert [p["id"] for p in result["products"]] == ["B", "A"]
        assert [p["total_sales"] for p in result["products"]] == [50, 20]
        assert result["products"][1]["total_quantity"] == 2

    def test_timeline(self, scenario_orders):
        result = transform_orders_to_product_performance(scenario_orders)
        assert result["timeline"] == [
            {"date": "2025-01-12", "sales": 100.0, "orders": 1},
            {"date": "2025-01-20", "sales": 50.0, "orders": 1},
        ]

    def test_empty_input(self):
        assert transform_orders_to_product_performance([]) == {
            "products": [],
            "timeline": [],
            "total_sales": 0,
            "total_orders": 0,
            "avg_order_value": 0,
        }

    def test_refunded_excluded(self, scenario_orders):
        refunded = scenario_orders[1].model_copy(update={"financial_status": "refunded"})
        result = transform_orders_to_product_performance([refunded, scenario_orders[2]])

        assert result["total_orders"] == 1
        assert result["total_sales"] == 50

    def test_filters_restrict_lines(self):
        order = Order(
            id="1",
            created_at=START,
            total_price=30.0,
            line_items=[
                LineItem(product_id="A", title="Tee", quantity=1, price=10.0, vendor="Acme", product_type="Shirts"),
                LineItem(product_id="B", title="Mug", quantity=1, price=20.0, vendor="Acme", product_type="Kitchen"),
            ],
        )
        result = transform_orders_to_product_performance([order], {"product_type": "Shirts"})

        assert [p["id"] for p in result["products"]] == ["A"]
        # order totals are not filtered
        assert result["total_sales"] == 30.0

    def test_invalid_records_skipped(self, scenario_orders):
        raw = [order.model_dump() for order in scenario_orders] + [{"id": "broken"}]
        result = transform_orders_to_product_performance(raw)
        assert result["total_orders"] == 2

    def test_by_id(self, scenario_orders):
        result = transform_orders_to_product_performance_by_id(scenario_orders, "A")

        assert len(result["sales"]) == 1
        assert result["total_sales"] == 20
        assert result["total_quantity"] == 2
        assert result["avg_price"] == 10

    def test_summary(self, scenario_orders):
        products = [
            Product(id="A", title="Product A"),
            Product(id="B", title="Product B"),
            Product(id="C", title="Never Sold"),
        ]
        summary = summarize_product_performance(products, scenario_orders)

        assert summary["total_products"] == 3
        assert summary["active_products"] == 2
        assert [p["id"] for p in summary["top_selling"]] == ["B", "A", "C"]
        assert [p["id"] for p in summary["low_selling"]] == ["A", "B"]


class TestSalesAnalytics:
    """Tests for the sales view"""

    def test_dense_daily_series(self, scenario_orders, now):
        result = analyze_sales_data(scenario_orders, START, END, now=now)

        assert len(result["daily_sales"]) == 31
        assert result["daily_sales"][0] == {"date": "2025-01-01", "sales": 0.0, "orders": 0}
        assert result["daily_sales"][11] == {"date": "2025-01-12", "sales": 100.0, "orders": 1}
        assert len(result["hourly_sales"]) == 24

    def test_summary(self, scenario_orders, now):
        summary = analyze_sales_data(scenario_orders, START, END, now=now)["summary"]

        assert summary["total_sales"] == 150
        assert summary["total_orders"] == 2
        assert summary["average_order_value"] == 75
        assert summary["period"] == {"start": "2025-01-01", "end": "2025-01-31", "days": 31}

    def test_naive_window_taken_as_utc(self, scenario_orders):
        naive = analyze_sales_data(
            scenario_orders, datetime(2025, 1, 1), datetime(2025, 1, 31, 23, 59), now=datetime(2025, 1, 31, 12)
        )
        aware = analyze_sales_data(scenario_orders, START, END, now=datetime(2025, 1, 31, 12, tzinfo=timezone.utc))

        assert naive["summary"] == aware["summary"]
        assert naive["trends"] == aware["trends"]

    def test_status_breakdown_counts_every_order(self, scenario_orders, now):
        result = analyze_sales_data(scenario_orders, START, END, now=now)
        assert result["status_breakdown"] == {"paid": 3}

    def test_growth_rate(self, scenario_orders):
        surviving = [order for order in scenario_orders if order.is_revenue_eligible]
        assert growth_rate(surviving, START, END) == pytest.approx(-50.0)

    def test_growth_without_first_half(self, scenario_orders):
        assert growth_rate(scenario_orders[2:], START, END) == 0

    def test_empty_window(self, now):
        result = analyze_sales_data([], START, END, now=now)

        assert result["summary"]["total_sales"] == 0
        assert len(result["daily_sales"]) == 31
        assert result["top_products"] == []
        assert result["note"] == "No orders found in the specified date range"

    def test_date_range(self):
        assert date_range(START.date(), START.date()) == ["2025-01-01"]


class TestInventoryStatus:
    """Tests for inventory level aggregation"""

    @pytest.fixture
    def levels(self):
        return [
            InventoryLevel(inventory_item_id="1", location_id="10", location_name="Main", available=3),
            InventoryLevel(inventory_item_id="1", location_id="20", location_name="Shop", available=4),
            InventoryLevel(inventory_item_id="2", location_id="10", location_name="Main", available=-2),
            InventoryLevel(inventory_item_id="2", location_id="20", location_name="Shop", available=0),
            InventoryLevel(inventory_item_id="3", location_id="10", location_name="Main", available=2),
        ]

    def test_classification_after_summing(self, levels):
        result = transform_inventory_data(levels)

        statuses = {item["inventory_item_id"]: item["status"] for item in result["inventory"]}
        assert statuses == {"1": "in_stock", "2": "out_of_stock", "3": "low_stock"}
        assert (result["in_stock"], result["low_stock"], result["out_of_stock"]) == (1, 1, 1)
        assert result["inventory"][1]["total_available"] == -2

    def test_location_filter(self, levels):
        result = transform_inventory_data(levels, {"location_id": "20"})

        assert result["total_items"] == 2
        assert result["low_stock"] == 1

    def test_threshold_override(self, levels):
        result = transform_inventory_data(levels, {"low_stock_threshold": 10})
        assert result["low_stock"] == 2

    def test_classify_stock(self):
        assert classify_stock(0) == "out_of_stock"
        assert classify_stock(5) == "low_stock"
        assert classify_stock(6) == "in_stock"

    def test_zero_guard(self):
        summary = summarize_inventory_data(transform_inventory_data([]))

        assert summary["total_items"] == 0
        assert summary["out_of_stock_percentage"] == 0.0
        assert summary["low_stock_percentage"] == 0.0
        assert summary["in_stock_percentage"] == 0.0

    def test_percentages(self, levels):
        summary = summarize_inventory_data(transform_inventory_data(levels))

        assert summary["in_stock"] == 1
        assert summary["in_stock_percentage"] == pytest.approx(100 / 3)
        assert [row["label"] for row in summary["stock_status"]] == ["In Stock", "Low Stock", "Out of Stock"]


class TestCatalogAnalytics:
    """Tests for catalog composition and performance metrics"""

    @pytest.fixture
    def products(self):
        return [
            Product(id="1", title="Tee", vendor="Acme", product_type="Shirts", variants=[
                Variant(id="11", title="S", price=20.0, inventory_quantity=30),
            ]),
            Product(id="2", title="Mug", vendor="Acme", product_type="Kitchen", variants=[
                Variant(id="21", title="Blue", price=12.0, inventory_quantity=3),
                Variant(id="22", title="Red", price=12.0, inventory_quantity=0),
            ]),
            Product(id="3", title="Lamp", vendor="Glow", status="draft", variants=[
                Variant(id="31", price=150.0, inventory_quantity=0),
            ]),
        ]

    def test_inventory_status(self, products):
        catalog = analyze_product_catalog(products)

        assert catalog["inventory_status"] == {"in_stock": 1, "low_stock": 1, "out_of_stock": 1}
        assert [item["variant_title"] for item in catalog["low_stock_items"]] == ["Blue"]
        assert catalog["by_vendor"] == {"Acme": 2, "Glow": 1}
        assert catalog["price_ranges"]["under_25"] == 2
        assert catalog["summary"]["draft_products"] == 1

    def test_inventory_view(self, products):
        view = build_inventory_analytics(analyze_product_catalog(products))
        assert view["alerts"] == {"out_of_stock": 1, "low_stock": 1, "needs_attention": 1}

    def test_performance_metrics(self, products, scenario_orders, now):
        sales = analyze_sales_data(scenario_orders, START, END, now=now)
        metrics = build_performance_metrics(sales, analyze_product_catalog(products))

        assert metrics["catalog_health_score"] == pytest.approx(33.3)
        assert metrics["sales_velocity"] == pytest.approx(round(150 / 31, 2))
        assert metrics["growth_metrics"]["sales_growth"] == -50.0

    def test_empty_catalog(self):
        catalog = analyze_product_catalog([])
        assert catalog["summary"]["total_products"] == 0
        assert build_inventory_analytics(catalog)["low_stock_items"] == []
