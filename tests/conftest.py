# tests/conftest.py
from __future__ import annotations

import hashlib
import hmac
from collections.abc import Callable, Iterator
from itertools import count
from typing import Any
from unittest.mock import AsyncMock
from urllib.parse import quote, urlencode

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from logtek_split.api.dependencies import get_shopify_client_dep, get_signature_verifier
from logtek_split.core.security import ProxySignatureVerifier
from logtek_split.core.settings import Settings
from logtek_split.main import app as fastapi_app
from logtek_split.services.shopify import DraftOrder, ShopifyAdminClient, ShopifyConfig

TEST_SECRET = "shhh"
TEST_PROXY_PREFIX = "/apps/logtek-split"

_DRAFT_ORDER_COUNTER = count(1001)


def hmac_hex(message: str, secret: str = TEST_SECRET) -> str:
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def sign_params(params: list[tuple[str, str]], secret: str = TEST_SECRET) -> str:
    """Return a query string whose ``hmac`` covers the sorted, strictly encoded params."""
    ordered = sorted(params, key=lambda item: item[0])
    message = "&".join(f"{quote(k, safe='')}={quote(v, safe='')}" for k, v in ordered)
    return urlencode([*params, ("hmac", hmac_hex(message, secret))])


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def verifier() -> ProxySignatureVerifier:
    return ProxySignatureVerifier(TEST_SECRET, TEST_PROXY_PREFIX)


@pytest.fixture()
def shopify_config() -> ShopifyConfig:
    return ShopifyConfig(
        shop_domain="demo.myshopify.com",
        admin_token="shpat_test",
        api_version="2025-01",
        timeout_seconds=5.0,
        metafield_namespace="logtek",
    )


def _next_draft_order(*args: Any, **kwargs: Any) -> DraftOrder:
    number = next(_DRAFT_ORDER_COUNTER)
    return DraftOrder(
        id=f"gid://shopify/DraftOrder/{number}",
        name=f"#D{number}",
        invoice_url=f"https://demo.myshopify.com/invoices/{number}",
    )


@pytest.fixture()
def mock_shopify_client() -> AsyncMock:
    """Shopify client double with no vendor metadata by default."""
    client = AsyncMock(spec=ShopifyAdminClient)
    client.fetch_customer_vendor_accounts.return_value = {}
    client.fetch_product_vendors.return_value = {}
    client.create_draft_order.side_effect = _next_draft_order
    client.send_draft_order_invoice.return_value = None
    return client


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(APP_PROXY_SECRET=TEST_SECRET, FROM_EMAIL="info@logtek.ca")


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    verifier: ProxySignatureVerifier,
    mock_shopify_client: AsyncMock,
) -> Iterator[None]:
    app.dependency_overrides[get_signature_verifier] = lambda: verifier
    app.dependency_overrides[get_shopify_client_dep] = lambda: mock_shopify_client
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_signature_verifier, None)
        app.dependency_overrides.pop(get_shopify_client_dep, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def signed_query() -> Callable[..., str]:
    """Return a helper producing validly signed App Proxy query strings."""
    return sign_params
