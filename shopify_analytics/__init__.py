"""
Shopify Store Analytics

Collects store data from the Shopify Admin APIs, normalizes it into
canonical records and serves cached analytics views.
"""

__version__ = "1.0.0"
