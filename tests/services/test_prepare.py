"""Tests for the cart preparation workflow."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from logtek_split.core.settings import Settings
from logtek_split.schemas.prepare import CartItem, PrepareRequest
from logtek_split.services.partition import CartLine
from logtek_split.services.prepare import PrepareService, build_cart_lines, to_draft_order_line
from logtek_split.services.shopify import ShopifyError


def _request(*items: dict, **fields) -> PrepareRequest:
    return PrepareRequest.model_validate({"items": list(items), **fields})


def test_to_draft_order_line_with_variant() -> None:
    line = CartLine(product_id="1", variant_id="55", quantity=3)
    assert to_draft_order_line(line) == {"quantity": 3, "variantId": "gid://shopify/ProductVariant/55"}


def test_to_draft_order_line_without_variant_uses_title() -> None:
    assert to_draft_order_line(CartLine(product_id="1", title="Gants")) == {"quantity": 1, "title": "Gants"}
    assert to_draft_order_line(CartLine(product_id="8")) == {"quantity": 1, "title": "Produit 8"}


def test_build_cart_lines_prefers_product_metadata() -> None:
    request = _request(
        {"product_id": 1, "quantity": 2, "vendor": "Hint"},
        {"product_id": 2, "vendor": "Bolt"},
        {"product_id": 3},
    )

    lines = build_cart_lines(request, {"1": "Acme"}, {"Acme": True, "Bolt": False})

    assert [(line.vendor_id, line.account_eligible) for line in lines] == [
        ("Acme", True),
        ("Bolt", False),
        (None, False),
    ]
    assert lines[0].quantity == 2


@pytest.mark.asyncio
async def test_single_line_without_vendor_goes_to_checkout(
    mock_shopify_client: AsyncMock, test_settings: Settings
) -> None:
    service = PrepareService(mock_shopify_client, test_settings)

    response = await service.prepare(_request({"product_id": 1, "quantity": 2}, customerId="42"))

    assert response.summary.on_account == []
    assert response.summary.pay_now.lines == 1
    assert response.pay_now_checkout_url is not None
    mock_shopify_client.fetch_customer_vendor_accounts.assert_awaited_once_with("42")
    mock_shopify_client.create_draft_order.assert_awaited_once()
    kwargs = mock_shopify_client.create_draft_order.await_args.kwargs
    assert kwargs["tags"] == ["logtek-split", "pay-now"]
    assert mock_shopify_client.create_draft_order.await_args.args[0] == [
        {"quantity": 2, "title": "Produit 1"}
    ]


@pytest.mark.asyncio
async def test_vendor_groups_become_draft_orders(
    mock_shopify_client: AsyncMock, test_settings: Settings
) -> None:
    mock_shopify_client.fetch_customer_vendor_accounts.return_value = {"Acme": True}
    mock_shopify_client.fetch_product_vendors.return_value = {"1": "Acme", "2": "Acme"}
    service = PrepareService(mock_shopify_client, test_settings)

    response = await service.prepare(
        _request(
            {"product_id": 1, "variant_id": 11},
            {"product_id": 2, "variant_id": 22, "quantity": 4},
            customerId="42",
        )
    )

    assert len(response.summary.on_account) == 1
    order = response.summary.on_account[0]
    assert order.vendor == "Acme"
    assert order.lines == 2
    assert order.invoice_url
    assert response.summary.pay_now.lines == 0
    assert response.pay_now_checkout_url is None

    call = mock_shopify_client.create_draft_order.await_args
    assert call.args[0] == [
        {"quantity": 1, "variantId": "gid://shopify/ProductVariant/11"},
        {"quantity": 4, "variantId": "gid://shopify/ProductVariant/22"},
    ]
    assert call.kwargs["note"] == "Compte fournisseur: Acme"
    assert call.kwargs["email"] == "info@logtek.ca"
    assert call.kwargs["tags"] == ["logtek-split", "on-account", "vendor:Acme"]
    mock_shopify_client.send_draft_order_invoice.assert_not_awaited()


@pytest.mark.asyncio
async def test_invoices_sent_when_enabled(mock_shopify_client: AsyncMock) -> None:
    mock_shopify_client.fetch_customer_vendor_accounts.return_value = {"Acme": True}
    mock_shopify_client.fetch_product_vendors.return_value = {"1": "Acme"}
    config = Settings(SEND_VENDOR_INVOICES=True, FROM_EMAIL="info@logtek.ca")
    service = PrepareService(mock_shopify_client, config)

    response = await service.prepare(_request({"product_id": 1}, email="buyer@example.com"))

    draft_id = response.summary.on_account[0].draft_order_id
    mock_shopify_client.send_draft_order_invoice.assert_awaited_once()
    call = mock_shopify_client.send_draft_order_invoice.await_args
    assert call.args == (draft_id,)
    assert call.kwargs["to"] == "buyer@example.com"
    assert call.kwargs["sender"] == "info@logtek.ca"


@pytest.mark.asyncio
async def test_shopify_failures_propagate(
    mock_shopify_client: AsyncMock, test_settings: Settings
) -> None:
    mock_shopify_client.fetch_customer_vendor_accounts.side_effect = ShopifyError("boom")
    service = PrepareService(mock_shopify_client, test_settings)

    with pytest.raises(ShopifyError):
        await service.prepare(_request({"product_id": 1}))
    mock_shopify_client.create_draft_order.assert_not_awaited()


def test_cart_item_accepts_numeric_and_camel_case_ids() -> None:
    item = CartItem.model_validate({"productId": 7, "variantId": 70})
    assert item.product_id == "7"
    assert item.variant_id == "70"
    assert item.quantity == 1
    assert PrepareRequest.model_validate({"lines": [{"product_id": 1}]}).items[0].product_id == "1"
