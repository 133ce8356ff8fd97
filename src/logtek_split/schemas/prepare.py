"""Cart preparation schemas for the App Proxy endpoint."""
from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

EMPTY_CART_ERROR = "Panier vide"
INVALID_SIGNATURE_ERROR = "Invalid proxy signature"
INTERNAL_ERROR = "internal_error"


class CartItem(BaseModel):
    """One line of the storefront cart as posted by the theme."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    product_id: str = Field(..., validation_alias=AliasChoices("product_id", "productId"))
    variant_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("variant_id", "variantId"),
    )
    quantity: int = Field(default=1, ge=1)
    title: str | None = None
    vendor: str | None = Field(
        default=None,
        description="Vendor hint used when the product carries no vendor metadata.",
    )


class PrepareRequest(BaseModel):
    """Body of ``POST /prepare``."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    customer_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("customerId", "customer_id"),
    )
    email: str | None = None
    items: list[CartItem] = Field(
        default_factory=list,
        validation_alias=AliasChoices("items", "lines"),
    )


class VendorOrderSummary(BaseModel):
    """Draft order created on a vendor account."""

    model_config = ConfigDict(populate_by_name=True)

    vendor: str
    draft_order_id: str = Field(..., alias="draftOrderId")
    invoice_url: str | None = Field(default=None, alias="invoiceUrl")
    lines: int


class PayNowSummary(BaseModel):
    lines: int


class PrepareSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    on_account: list[VendorOrderSummary] = Field(
        default_factory=list,
        alias="onAccount",
    )
    pay_now: PayNowSummary = Field(..., alias="payNow")


class PrepareResponse(BaseModel):
    """Successful cart split."""

    model_config = ConfigDict(populate_by_name=True)

    summary: PrepareSummary
    pay_now_checkout_url: str | None = Field(
        default=None,
        alias="payNowCheckoutUrl",
    )


class ErrorResponse(BaseModel):
    """Stable error body returned for rejected or empty requests."""

    error: str
