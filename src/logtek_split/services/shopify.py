"""Shopify Admin API client.

This module provides the ShopifyAdminClient class that handles all
communication between Logtek Split and the Shopify Admin GraphQL API:

- Customer vendor-account eligibility (customer metafield)
- Per-product vendor metadata (product metafield, falling back to the vendor field)
- Draft order creation for vendor accounts and the pay-now checkout
- Draft order invoice emails

Calls are made once per request; there is no retry or caching layer.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from logtek_split.core.settings import settings

# Configure logger for this module
logger = logging.getLogger(__name__)

HTTP_OK = 200

CUSTOMER_VENDOR_ACCOUNTS_KEY = "vendor_accounts"
PRODUCT_VENDOR_ACCOUNT_KEY = "vendor_account"

CUSTOMER_VENDOR_ACCOUNTS_QUERY = """
query CustomerVendorAccounts($id: ID!, $namespace: String!, $key: String!) {
  customer(id: $id) {
    id
    vendorAccounts: metafield(namespace: $namespace, key: $key) { value }
  }
}
"""

PRODUCT_VENDORS_QUERY = """
query ProductVendors($ids: [ID!]!, $namespace: String!, $key: String!) {
  nodes(ids: $ids) {
    ... on Product {
      id
      vendor
      vendorAccount: metafield(namespace: $namespace, key: $key) { value }
    }
  }
}
"""

DRAFT_ORDER_CREATE_MUTATION = """
mutation DraftOrderCreate($input: DraftOrderInput!) {
  draftOrderCreate(input: $input) {
    draftOrder { id name invoiceUrl }
    userErrors { field message }
  }
}
"""

DRAFT_ORDER_INVOICE_SEND_MUTATION = """
mutation DraftOrderInvoiceSend($id: ID!, $email: EmailInput) {
  draftOrderInvoiceSend(id: $id, email: $email) {
    draftOrder { id }
    userErrors { field message }
  }
}
"""


class ShopifyError(RuntimeError):
    """Base exception raised for Shopify Admin API failures."""


class ShopifyNotConfiguredError(ShopifyError):
    """Raised when the shop domain or admin token is missing."""


class ShopifyUserError(ShopifyError):
    """Raised when a mutation returns ``userErrors``."""

    def __init__(self, operation: str, user_errors: Sequence[Mapping[str, Any]]) -> None:
        self.operation = operation
        self.user_errors = list(user_errors)
        super().__init__(f"{operation} failed: {json.dumps(self.user_errors)}")


@dataclass(frozen=True)
class ShopifyConfig:
    """Immutable configuration for Admin API access."""

    shop_domain: str | None
    admin_token: str | None
    api_version: str
    timeout_seconds: float
    metafield_namespace: str

    @property
    def graphql_path(self) -> str:
        return f"/admin/api/{self.api_version}/graphql.json"


@dataclass(frozen=True)
class DraftOrder:
    """Draft order as returned by ``draftOrderCreate``."""

    id: str
    name: str | None
    invoice_url: str | None


def normalize_shop_domain(value: str | None) -> str:
    """Strip protocol, whitespace and slashes from a shop domain."""
    domain = (value or "").strip()
    for scheme in ("https://", "http://"):
        if domain.lower().startswith(scheme):
            domain = domain[len(scheme):]
    return domain.strip("/ \t\r\n")


def to_gid(resource: str, identifier: str | int) -> str:
    """Return a Shopify global id, accepting numeric ids or existing gids."""
    value = str(identifier).strip()
    if value.startswith("gid://"):
        return value
    return f"gid://shopify/{resource}/{value}"


def load_shopify_config() -> ShopifyConfig:
    """Build configuration object from global settings."""

    return ShopifyConfig(
        shop_domain=normalize_shop_domain(settings.shopify_shop_domain) or None,
        admin_token=settings.shopify_admin_token,
        api_version=settings.shopify_api_version,
        timeout_seconds=float(settings.shopify_http_timeout_seconds),
        metafield_namespace=settings.metafield_namespace,
    )


def parse_vendor_accounts(raw: str | None) -> dict[str, bool]:
    """Decode the customer's ``vendor_accounts`` metafield.

    The metafield holds a JSON list such as
    ``[{"vendor": "Acme", "eligible": true}]``. Entries without a vendor are
    ignored; malformed JSON yields an empty mapping.
    """
    if not raw:
        return {}
    try:
        entries = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring malformed vendor_accounts metafield: %.64s", raw)
        return {}
    if not isinstance(entries, list):
        logger.warning("Ignoring vendor_accounts metafield that is not a list")
        return {}

    accounts: dict[str, bool] = {}
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        vendor = entry.get("vendor")
        if vendor:
            accounts[str(vendor)] = bool(entry.get("eligible"))
    return accounts


def _metafield_value(node: Mapping[str, Any] | None, alias: str) -> str | None:
    if not node:
        return None
    metafield = node.get(alias) or {}
    value = metafield.get("value")
    return str(value) if value else None


class ShopifyAdminClient:
    """HTTP client wrapper for Shopify Admin GraphQL interactions."""

    def __init__(
        self,
        config: ShopifyConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_shopify_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.config.shop_domain and self.config.admin_token)

    async def _ensure_client(self) -> httpx.AsyncClient:
        if not self.configured:
            raise ShopifyNotConfiguredError("Shopify shop domain or admin token is not configured")

        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=f"https://{self.config.shop_domain}",
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    headers={
                        "X-Shopify-Access-Token": self.config.admin_token or "",
                        "Content-Type": "application/json",
                    },
                    transport=self._transport,
                )

        return self._client

    async def graphql(self, query: str, variables: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Execute a GraphQL document and return its ``data`` object.

        Raises:
            ShopifyError: On transport failure, non-200 status, an unreadable
                body, or top-level GraphQL ``errors``.
        """
        client = await self._ensure_client()
        try:
            response = await client.post(
                self.config.graphql_path,
                json={"query": query, "variables": dict(variables or {})},
            )
        except httpx.HTTPError as exc:
            raise ShopifyError(f"Shopify request failed: {exc}") from exc

        if response.status_code != HTTP_OK:
            raise ShopifyError(f"Shopify responded with {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ShopifyError("Shopify returned a non-JSON body") from exc

        errors = payload.get("errors")
        if errors:
            raise ShopifyError(f"Shopify GraphQL errors: {json.dumps(errors)}")
        return payload.get("data") or {}

    async def fetch_customer_vendor_accounts(self, customer_id: str | int | None) -> dict[str, bool]:
        """Return ``{vendor: eligible}`` for the customer's vendor accounts.

        Args:
            customer_id: Numeric id or gid; falsy values yield an empty mapping.

        Returns:
            Mapping of vendor name to deferred-billing eligibility.
        """
        if not customer_id:
            return {}

        data = await self.graphql(
            CUSTOMER_VENDOR_ACCOUNTS_QUERY,
            {
                "id": to_gid("Customer", customer_id),
                "namespace": self.config.metafield_namespace,
                "key": CUSTOMER_VENDOR_ACCOUNTS_KEY,
            },
        )
        return parse_vendor_accounts(_metafield_value(data.get("customer"), "vendorAccounts"))

    async def fetch_product_vendors(self, product_ids: Iterable[str | int]) -> dict[str, str]:
        """Return the vendor account of each product, keyed by the ids given.

        The ``vendor_account`` product metafield wins over the native vendor
        field. Products that are missing or have no vendor are omitted.
        """
        gids: dict[str, str] = {}
        for product_id in product_ids:
            gids.setdefault(to_gid("Product", product_id), str(product_id))
        if not gids:
            return {}

        data = await self.graphql(
            PRODUCT_VENDORS_QUERY,
            {
                "ids": list(gids),
                "namespace": self.config.metafield_namespace,
                "key": PRODUCT_VENDOR_ACCOUNT_KEY,
            },
        )

        vendors: dict[str, str] = {}
        for node in data.get("nodes") or []:
            if not node or node.get("id") not in gids:
                continue
            vendor = _metafield_value(node, "vendorAccount") or node.get("vendor")
            if vendor:
                vendors[gids[node["id"]]] = str(vendor)
        return vendors

    async def create_draft_order(
        self,
        line_items: Sequence[Mapping[str, Any]],
        *,
        email: str | None = None,
        note: str | None = None,
        tags: Sequence[str] = (),
        customer_id: str | int | None = None,
    ) -> DraftOrder:
        """Create a draft order and return its id and invoice URL.

        Raises:
            ShopifyUserError: If Shopify rejects the input.
        """
        draft_input: dict[str, Any] = {"lineItems": [dict(item) for item in line_items]}
        if email:
            draft_input["email"] = email
        if note:
            draft_input["note"] = note
        if tags:
            draft_input["tags"] = list(tags)
        if customer_id:
            draft_input["purchasingEntity"] = {"customerId": to_gid("Customer", customer_id)}

        data = await self.graphql(DRAFT_ORDER_CREATE_MUTATION, {"input": draft_input})
        result = data.get("draftOrderCreate") or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            raise ShopifyUserError("draftOrderCreate", user_errors)

        draft = result.get("draftOrder")
        if not draft or not draft.get("id"):
            raise ShopifyError("draftOrderCreate returned no draft order")
        return DraftOrder(
            id=str(draft["id"]),
            name=draft.get("name"),
            invoice_url=draft.get("invoiceUrl"),
        )

    async def send_draft_order_invoice(
        self,
        draft_order_id: str,
        *,
        to: str,
        sender: str | None = None,
        subject: str | None = None,
        custom_message: str | None = None,
    ) -> None:
        """Email the draft order invoice to ``to``."""
        email: dict[str, Any] = {"to": to}
        if sender:
            email["from"] = sender
        if subject:
            email["subject"] = subject
        if custom_message:
            email["customMessage"] = custom_message

        data = await self.graphql(
            DRAFT_ORDER_INVOICE_SEND_MUTATION,
            {"id": draft_order_id, "email": email},
        )
        user_errors = (data.get("draftOrderInvoiceSend") or {}).get("userErrors") or []
        if user_errors:
            raise ShopifyUserError("draftOrderInvoiceSend", user_errors)

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""

        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


class _ShopifyClientSingleton:
    """Singleton wrapper for ShopifyAdminClient."""

    _instance: ShopifyAdminClient | None = None

    @classmethod
    def get_instance(cls) -> ShopifyAdminClient:
        """Get or create the singleton ShopifyAdminClient instance."""
        if cls._instance is None:
            cls._instance = ShopifyAdminClient()
        return cls._instance


def get_shopify_client() -> ShopifyAdminClient:
    """Return a singleton Shopify Admin client instance."""
    return _ShopifyClientSingleton.get_instance()
