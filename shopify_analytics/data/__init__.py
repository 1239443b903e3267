"""
Data Generation Module
"""
from .generators import (
    CustomerGenerator,
    InventoryGenerator,
    OrderGenerator,
    ProductGenerator,
    SampleDataGenerator,
    SampleStore,
)

__all__ = [
    "CustomerGenerator",
    "InventoryGenerator",
    "OrderGenerator",
    "ProductGenerator",
    "SampleDataGenerator",
    "SampleStore",
]
