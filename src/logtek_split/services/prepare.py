"""Cart preparation workflow behind ``POST /prepare``.

The workflow runs strictly in sequence: read eligibility and vendor metadata,
partition the cart, create one draft order per vendor account, then one
pay-now draft order whose invoice URL serves as the checkout link.
"""
from __future__ import annotations

import logging
from typing import Any

from logtek_split.core.settings import Settings
from logtek_split.schemas.prepare import (
    PayNowSummary,
    PrepareRequest,
    PrepareResponse,
    PrepareSummary,
    VendorOrderSummary,
)
from logtek_split.services.partition import CartLine, CartPartition, VendorGroup, partition
from logtek_split.services.shopify import ShopifyAdminClient, to_gid

logger = logging.getLogger(__name__)

SPLIT_TAG = "logtek-split"
ON_ACCOUNT_TAG = "on-account"
PAY_NOW_TAG = "pay-now"


def to_draft_order_line(line: CartLine) -> dict[str, Any]:
    """Convert a cart line to a ``DraftOrderLineItemInput``."""
    item: dict[str, Any] = {"quantity": line.quantity}
    if line.variant_id:
        item["variantId"] = to_gid("ProductVariant", line.variant_id)
    else:
        item["title"] = line.title or f"Produit {line.product_id}"
    return item


def build_cart_lines(
    request: PrepareRequest,
    product_vendors: dict[str, str],
    vendor_accounts: dict[str, bool],
) -> list[CartLine]:
    """Attach vendor and eligibility to each posted cart item."""
    lines: list[CartLine] = []
    for item in request.items:
        vendor = product_vendors.get(item.product_id) or item.vendor
        lines.append(
            CartLine(
                product_id=item.product_id,
                variant_id=item.variant_id,
                quantity=item.quantity,
                vendor_id=vendor,
                account_eligible=bool(vendor and vendor_accounts.get(vendor, False)),
                title=item.title,
            )
        )
    return lines


class PrepareService:
    """Split a cart between vendor accounts and an immediate checkout."""

    def __init__(self, client: ShopifyAdminClient, config: Settings) -> None:
        self.client = client
        self.config = config

    async def prepare(self, request: PrepareRequest) -> PrepareResponse:
        """Run the full split for one cart.

        Args:
            request: Validated, non-empty cart payload.

        Returns:
            Summary of the vendor orders created and the pay-now checkout URL.

        Raises:
            ShopifyError: If any Admin API call fails.
        """
        vendor_accounts = await self.client.fetch_customer_vendor_accounts(request.customer_id)
        product_vendors = await self.client.fetch_product_vendors(
            item.product_id for item in request.items
        )
        split = partition(build_cart_lines(request, product_vendors, vendor_accounts))
        logger.info(
            "Cart for customer %s: %d vendor group(s), %d pay-now line(s)",
            request.customer_id or "anonymous",
            len(split.vendor_groups),
            len(split.pay_now),
        )

        on_account = [
            await self._create_vendor_order(group, request) for group in split.vendor_groups
        ]
        checkout_url = await self._create_pay_now_checkout(split, request)

        return PrepareResponse(
            summary=PrepareSummary(
                on_account=on_account,
                pay_now=PayNowSummary(lines=len(split.pay_now)),
            ),
            pay_now_checkout_url=checkout_url,
        )

    async def _create_vendor_order(
        self, group: VendorGroup, request: PrepareRequest
    ) -> VendorOrderSummary:
        email = request.email or self.config.from_email
        draft = await self.client.create_draft_order(
            [to_draft_order_line(line) for line in group.lines],
            email=email,
            note=f"Compte fournisseur: {group.vendor_id}",
            tags=[SPLIT_TAG, ON_ACCOUNT_TAG, f"vendor:{group.vendor_id}"],
            customer_id=request.customer_id,
        )
        logger.info("Created on-account draft order %s for vendor %s", draft.id, group.vendor_id)

        if self.config.send_vendor_invoices:
            await self.client.send_draft_order_invoice(
                draft.id,
                to=email,
                sender=self.config.from_email,
                subject=f"Commande sur compte fournisseur {group.vendor_id}",
                custom_message=f"Compte fournisseur: {group.vendor_id}",
            )

        return VendorOrderSummary(
            vendor=group.vendor_id,
            draft_order_id=draft.id,
            invoice_url=draft.invoice_url,
            lines=len(group.lines),
        )

    async def _create_pay_now_checkout(
        self, split: CartPartition, request: PrepareRequest
    ) -> str | None:
        if not split.pay_now:
            return None
        draft = await self.client.create_draft_order(
            [to_draft_order_line(line) for line in split.pay_now],
            email=request.email,
            tags=[SPLIT_TAG, PAY_NOW_TAG],
            customer_id=request.customer_id,
        )
        logger.info("Created pay-now draft order %s", draft.id)
        return draft.invoice_url
