"""
Data Transformation Module
"""
from .catalog import analyze_product_catalog, build_inventory_analytics, build_performance_metrics
from .customers import (
    analyze_customer_base,
    calculate_customer_purchase_metrics,
    generate_customer_segments,
    summarize_customer_data,
    transform_customer_data,
    transform_customer_order_history,
)
from .inventory import summarize_inventory_data, transform_inventory_data
from .products import (
    summarize_product_performance,
    transform_orders_to_product_performance,
    transform_orders_to_product_performance_by_id,
)
from .sales import analyze_sales_data, empty_sales_analytics

__all__ = [
    "analyze_customer_base",
    "analyze_product_catalog",
    "analyze_sales_data",
    "build_inventory_analytics",
    "build_performance_metrics",
    "calculate_customer_purchase_metrics",
    "empty_sales_analytics",
    "generate_customer_segments",
    "summarize_customer_data",
    "summarize_inventory_data",
    "summarize_product_performance",
    "transform_customer_data",
    "transform_customer_order_history",
    "transform_inventory_data",
    "transform_orders_to_product_performance",
    "transform_orders_to_product_performance_by_id",
]
