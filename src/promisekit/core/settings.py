"""Settings for promisekit.

Defaults shared by every component (retry count, eviction rate, eviction
policy) and the logging setup are read from the environment with the
``PROMISEKIT_`` prefix, or from a ``.env`` file.

Features:
    - **PromiseKitSettings:** log level/format, service name, component defaults
    - **env_prefix:** Field names prefixed, e.g. ``PROMISEKIT_DEFAULT_RETRIES=2``
    - **Extra ignore:** Unknown env vars don't cause startup failures

Examples:
    >>> from promisekit.core.settings import get_settings
    >>> get_settings().default_evict_rate
    1
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PromiseKitSettings(BaseSettings):
    """Process-wide defaults.

    Fields
    ──────
    log_level          : structlog log level
    log_format         : ``console`` for development, ``json`` for aggregation
    service_name       : ``service.name`` added to every log line
    default_retries    : retries for LastAction pushes that don't specify any
    default_evict_rate : entries evicted per overflow in PromiseCache
    default_eviction   : eviction policy name used when none is given
    """

    model_config = SettingsConfigDict(
        env_prefix="PROMISEKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json"] = "console"
    service_name: str = "promisekit"

    # ── Component defaults ───────────────────────────────────────
    default_retries: int = Field(default=0, ge=0)
    default_evict_rate: int = Field(default=1, ge=1)
    default_eviction: Literal["lru", "mru", "lfu"] | None = None


@lru_cache(maxsize=1)
def get_settings() -> PromiseKitSettings:
    """Cached settings instance; call ``get_settings.cache_clear()`` to reload."""
    return PromiseKitSettings()


__all__ = ["PromiseKitSettings", "get_settings"]
