"""Reevit SDK configuration.

Configuration sources (in priority order):
1. Explicit constructor arguments
2. Environment variables (REEVIT_ prefix)
3. Defaults
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

API_BASE_URL_PRODUCTION = "https://api.reevit.io"
API_BASE_URL_SANDBOX = "https://sandbox-api.reevit.io"

SANDBOX_KEY_PREFIXES = ("pk_test_", "pk_sandbox_", "pfk_test_", "pfk_sandbox_")


class ReevitSettings(BaseSettings):
    """Environment-driven SDK settings."""

    model_config = SettingsConfigDict(
        env_prefix="REEVIT_",
        extra="ignore",
    )

    public_key: str | None = None
    base_url: str | None = None
    timeout: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=0)

    # Seconds an intent cache entry lives after its last write
    intent_cache_ttl: float = Field(default=600.0, gt=0)


@lru_cache
def get_settings() -> ReevitSettings:
    """Get cached settings instance, read once from the environment."""
    return ReevitSettings()


def is_sandbox_key(public_key: str) -> bool:
    """Return True for test/sandbox public keys."""
    return public_key.startswith(SANDBOX_KEY_PREFIXES)


def resolve_base_url(public_key: str | None, base_url: str | None = None) -> str:
    """Pick the API base URL for a public key.

    An explicit base_url wins; otherwise sandbox keys talk to the sandbox API.
    """
    if base_url:
        return base_url.rstrip("/")
    if public_key and is_sandbox_key(public_key):
        return API_BASE_URL_SANDBOX
    return API_BASE_URL_PRODUCTION
