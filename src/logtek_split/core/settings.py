"""Application settings and configuration.

This module defines all configuration options for the Logtek Split service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Logtek Split", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # App Proxy signature verification
    app_proxy_secret: str = Field(default="", alias="APP_PROXY_SECRET")
    app_proxy_prefix: str = Field(default="/apps/logtek-split", alias="APP_PROXY_PREFIX")

    # Shopify Admin API
    shopify_shop_domain: str | None = Field(default=None, alias="SHOPIFY_SHOP_DOMAIN")
    shopify_admin_token: str | None = Field(default=None, alias="SHOPIFY_ADMIN_TOKEN")
    shopify_api_version: str = Field(default="2025-01", alias="SHOPIFY_API_VERSION")
    shopify_http_timeout_seconds: float = Field(
        default=15.0,
        alias="SHOPIFY_HTTP_TIMEOUT_SECONDS",
    )
    metafield_namespace: str = Field(default="logtek", alias="LOGTEK_METAFIELD_NAMESPACE")

    # Vendor account orders
    from_email: str = Field(default="info@logtek.ca", alias="FROM_EMAIL")
    send_vendor_invoices: bool = Field(default=False, alias="SEND_VENDOR_INVOICES")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def shopify_configured(self) -> bool:
        """Return True when both the shop domain and the admin token are set."""
        return bool(self.shopify_shop_domain and self.shopify_admin_token)

    def missing_configuration(self) -> list[str]:
        """Return the environment names of required settings that are unset.

        Returns:
            List of environment variable names, empty when fully configured
        """
        missing: list[str] = []
        if not self.app_proxy_secret:
            missing.append("APP_PROXY_SECRET")
        if not self.shopify_admin_token:
            missing.append("SHOPIFY_ADMIN_TOKEN")
        if not self.shopify_shop_domain:
            missing.append("SHOPIFY_SHOP_DOMAIN")
        return missing


settings = Settings()
