"""
Pydantic schemas for API request/response models.

These schemas define the structure of App Proxy payloads for serialization and validation.
"""

from .prepare import (
    CartItem,
    ErrorResponse,
    PayNowSummary,
    PrepareRequest,
    PrepareResponse,
    PrepareSummary,
    VendorOrderSummary,
)

__all__ = [
    "CartItem", "PrepareRequest",
    "PrepareResponse", "PrepareSummary",
    "VendorOrderSummary", "PayNowSummary",
    "ErrorResponse",
]
