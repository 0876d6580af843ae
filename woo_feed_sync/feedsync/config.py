"""
Configuration management for the feed sync service.
"""

from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings."""

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        env="REDIS_URL"
    )
    log_level: str = Field(
        default="INFO",
        env="LOG_LEVEL"
    )

    # Feed files
    feed_base_dir: str = Field(
        default="./data/feeds",
        env="FEED_BASE_DIR"
    )
    feed_base_url: str = Field(
        default="http://localhost:8000/api/v1/feeds",
        env="FEED_BASE_URL"
    )
    plugin_id: str = Field(
        default="facebook-for-woocommerce",
        env="PLUGIN_ID"
    )
    store_name: str = Field(
        default="WooCommerce",
        env="STORE_NAME"
    )

    # Remote catalog (Graph API)
    product_catalog_id: str = Field(
        default="",
        env="PRODUCT_CATALOG_ID"
    )
    graph_api_url: str = Field(
        default="https://graph.facebook.com",
        env="GRAPH_API_URL"
    )
    graph_api_version: str = Field(
        default="v21.0",
        env="GRAPH_API_VERSION"
    )
    access_token: Optional[str] = Field(
        default=None,
        env="ACCESS_TOKEN"
    )
    commerce_partner_integration_id: str = Field(
        default="",
        env="COMMERCE_PARTNER_INTEGRATION_ID"
    )
    merchant_settings_id: str = Field(
        default="",
        env="MERCHANT_SETTINGS_ID"
    )

    # Language override feeds
    language_override_data_file: Optional[str] = Field(
        default=None,
        env="LANGUAGE_OVERRIDE_DATA_FILE"
    )

    # Country override feeds
    country_override_data_file: Optional[str] = Field(
        default=None,
        env="COUNTRY_OVERRIDE_DATA_FILE"
    )

    # WooCommerce item source
    woo_store_url: Optional[str] = Field(
        default=None,
        env="WOO_STORE_URL"
    )
    woo_consumer_key: Optional[str] = Field(
        default=None,
        env="WOO_CONSUMER_KEY"
    )
    woo_consumer_secret: Optional[str] = Field(
        default=None,
        env="WOO_CONSUMER_SECRET"
    )

    # Scheduler
    scheduler_lock_ttl: int = Field(
        default=3600,
        env="SCHEDULER_LOCK_TTL"
    )
    scheduler_idle_sleep: float = Field(
        default=2.0,
        env="SCHEDULER_IDLE_SLEEP"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def woo_configured(self) -> bool:
        """Whether WooCommerce REST credentials are available."""
        return bool(self.woo_store_url and self.woo_consumer_key and self.woo_consumer_secret)


_settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return _settings
