"""Shared FastAPI dependencies."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from logtek_split.core.security import ProxySignatureVerifier, SignedRequest
from logtek_split.core.settings import settings
from logtek_split.services.prepare import PrepareService
from logtek_split.services.shopify import ShopifyAdminClient, get_shopify_client


class ProxySignatureError(Exception):
    """Raised when an App Proxy request fails signature verification."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Invalid proxy signature for {path}")


def get_signature_verifier() -> ProxySignatureVerifier:
    """Build the App Proxy verifier from the configured secret and prefix."""
    return ProxySignatureVerifier(settings.app_proxy_secret, settings.app_proxy_prefix)


def get_shopify_client_dep() -> ShopifyAdminClient:
    """Return the shared Shopify Admin client."""
    return get_shopify_client()


VerifierDep = Annotated[ProxySignatureVerifier, Depends(get_signature_verifier)]
ShopifyClientDep = Annotated[ShopifyAdminClient, Depends(get_shopify_client_dep)]


def get_prepare_service(client: ShopifyClientDep) -> PrepareService:
    """Return a prepare workflow bound to the Shopify client."""
    return PrepareService(client, settings)


def require_proxy_signature(request: Request, verifier: VerifierDep) -> SignedRequest:
    """Verify the App Proxy signature of the current request.

    Raises:
        ProxySignatureError: If no canonical form of the request matches.
    """
    path = request.scope.get("path") or "/"
    try:
        raw_query = request.scope.get("query_string", b"").decode("utf-8", errors="strict")
    except UnicodeDecodeError as exc:
        raise ProxySignatureError(path) from exc

    signed = SignedRequest.from_raw(path, raw_query)
    if not verifier.verify(signed):
        raise ProxySignatureError(signed.path)
    return signed


SignedRequestDep = Annotated[SignedRequest, Depends(require_proxy_signature)]
PrepareServiceDep = Annotated[PrepareService, Depends(get_prepare_service)]
