"""Logtek Split: Shopify App Proxy relay splitting carts into vendor accounts."""

__version__ = "0.1.0"
