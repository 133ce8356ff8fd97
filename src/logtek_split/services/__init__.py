"""Business logic services for Logtek Split."""

from .partition import CartLine, CartPartition, VendorGroup, partition
from .prepare import PrepareService
from .shopify import ShopifyAdminClient, ShopifyError

__all__ = [
    "CartLine",
    "CartPartition",
    "VendorGroup",
    "partition",
    "PrepareService",
    "ShopifyAdminClient",
    "ShopifyError",
]
