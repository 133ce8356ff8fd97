"""Tests for environment-driven settings."""

from __future__ import annotations

from logtek_split.core.settings import Settings


def test_defaults(monkeypatch) -> None:
    for name in ("APP_PROXY_SECRET", "SHOPIFY_ADMIN_TOKEN", "SHOPIFY_SHOP_DOMAIN", "APP_PROXY_PREFIX"):
        monkeypatch.delenv(name, raising=False)
    config = Settings(_env_file=None)

    assert config.app_proxy_prefix == "/apps/logtek-split"
    assert config.shopify_api_version == "2025-01"
    assert config.shopify_configured is False
    assert config.missing_configuration() == [
        "APP_PROXY_SECRET",
        "SHOPIFY_ADMIN_TOKEN",
        "SHOPIFY_SHOP_DOMAIN",
    ]


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("APP_PROXY_SECRET", "shhh")
    monkeypatch.setenv("SHOPIFY_SHOP_DOMAIN", "demo.myshopify.com")
    monkeypatch.setenv("SHOPIFY_ADMIN_TOKEN", "shpat_test")
    monkeypatch.setenv("SEND_VENDOR_INVOICES", "true")
    config = Settings(_env_file=None)

    assert config.app_proxy_secret == "shhh"
    assert config.send_vendor_invoices is True
    assert config.shopify_configured is True
    assert config.missing_configuration() == []
