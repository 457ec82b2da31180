"""Configuration management via pydantic-settings."""

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ML_SEARCH_",
        extra="ignore",
    )

    # Marketplace
    marketplace_domain: str = "lista.mercadolivre.com.br"
    product_domain: str = "produto.mercadolivre.com.br"
    image_cdn: str = "https://http2.mlstatic.com"

    # Search defaults
    default_limit: int = Field(default=20, ge=1)
    default_timeout_ms: int = Field(default=15000, ge=1)
    default_concurrency: int = Field(default=5, ge=1)
    max_pages: int = Field(default=20, ge=1)
    strict_multiplier: int = Field(default=3, ge=1)

    # Rate limiting
    page_delay_ms: int = Field(default=200, ge=0)
    detail_delay_ms: int = Field(default=100, ge=0)
    rate_limit_concurrency: int = Field(default=3, ge=1)
    # None keeps region fan-out unbounded
    region_concurrency: int | None = None

    # Transport fallbacks
    curl_fallback: bool = True
    curl_binary: str = "curl"
    browser_fallback: bool = False

    # Logging
    log_level: str = "INFO"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper()),
        format=LOG_FORMAT,
    )


settings = Settings()
