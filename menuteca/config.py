"""
Runtime settings.

Environment-driven (prefix MENUTECA_), e.g.

    MENUTECA_GATEWAY_URL=https://xyz.supabase.co
    MENUTECA_GATEWAY_API_KEY=...
    MENUTECA_MENU_TTL_SECONDS=600
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from menuteca.localize import DEFAULT_LANGUAGE, Language
from menuteca.stores import StorePolicy

type Domain = Literal["restaurants", "menus", "cuisines", "addresses"]

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseSettings):
    """Runtime configuration for the client cache layer."""

    gateway_url: str = "http://localhost:54321"
    gateway_api_key: str = ""
    request_timeout_seconds: float = Field(10.0, gt=0)
    default_language: Language = DEFAULT_LANGUAGE
    log_level: str = "INFO"

    restaurant_ttl_seconds: float = Field(300, gt=0)
    menu_ttl_seconds: float = Field(600, gt=0)
    cuisine_ttl_seconds: float = Field(3600, gt=0)
    address_ttl_seconds: float = Field(300, gt=0)
    rate_limit_cooldown_seconds: float = Field(60, ge=0)
    max_failures: int = Field(3, ge=1)
    cache_max_entries: int = Field(1000, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="MENUTECA_",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    def policy_for(self, domain: Domain) -> StorePolicy:
        ttl = {
            "restaurants": self.restaurant_ttl_seconds,
            "menus": self.menu_ttl_seconds,
            "cuisines": self.cuisine_ttl_seconds,
            "addresses": self.address_ttl_seconds,
        }[domain]
        return (
            StorePolicy()
            .with_ttl(seconds=ttl)
            .with_cooldown(seconds=self.rate_limit_cooldown_seconds)
            .with_max_failures(self.max_failures)
            .with_max_entries(self.cache_max_entries)
        )


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)


__all__ = ("Settings", "Domain", "get_settings", "configure_logging")
