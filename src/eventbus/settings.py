"""Event bus configuration using Pydantic Settings.

This module centralizes runtime configuration for the event bus. Values can
be provided via environment variables (preferred) or fall back to the defaults
below. A ``Settings`` instance is intended to be retrieved via ``get_settings``
which caches the object for reuse across the process.

Environment variable prefix: ``EVENTBUS_`` (e.g. ``EVENTBUS_DELIVERY_MODE``).
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime event bus settings.

    Attributes map directly to environment variables using the ``EVENTBUS_``
    prefix (case-insensitive). For example, ``max_workers`` <- ``EVENTBUS_MAX_WORKERS``.
    """

    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Application log level",
    )
    delivery_mode: Literal["sync", "async"] = Field(
        default="sync",
        description="Run handlers on the posting thread (sync) or on a worker pool (async)",
    )  # fmt: skip
    max_workers: int = Field(
        default=1,
        ge=1,
        description="Worker threads used in async delivery mode",
    )  # fmt: skip
    max_pending: int | None = Field(
        default=None,
        ge=1,
        description="Maximum outstanding async invocations. Empty/None is unbounded.",
    )  # fmt: skip
    match_policy: Literal["polymorphic", "exact"] = Field(
        default="polymorphic",
        description="Match handlers declared for base classes (polymorphic) or only the exact class",
    )  # fmt: skip
    isolate_events: bool = Field(
        default=False,
        description="Give each handler a deep copy of the posted event",
    )  # fmt: skip
    shutdown_timeout: float = Field(
        default=5.0,
        ge=0,
        description="Seconds to drain pending async invocations at shutdown",
    )  # fmt: skip

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | None) -> str:
        """Normalize and validate log level."""
        if v is None:
            return "INFO"

        v_upper = str(v).upper()

        allowed = {"TRACE", "DEBUG", "INFO", "WARNING", "ERROR"}
        if v_upper not in allowed:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {', '.join(sorted(allowed))}")

        return v_upper

    @field_validator("delivery_mode", "match_policy", mode="before")
    @classmethod
    def normalize_choice(cls, v: str) -> str:
        """Accept choices in any case."""
        return str(v).lower()

    @field_validator("max_pending", mode="before")
    @classmethod
    def empty_max_pending(cls, v: str | int | None) -> int | None:
        """Treat an empty or zero value as unbounded."""
        if v in (None, "", 0, "0"):
            return None
        return v

    model_config = SettingsConfigDict(
        env_prefix="EVENTBUS_",  # Prefix for env vars
        case_sensitive=False,
        extra="ignore",  # Ignore unexpected env vars
        env_file=".env",  # Optional .env loading (if present)
        env_file_encoding="utf-8",
    )


@lru_cache
def get_settings() -> Settings:
    """Return the cached ``Settings`` instance.

    The first invocation reads environment variables / .env file; subsequent
    calls reuse the same object to ensure consistent config.
    """

    return Settings()


__all__ = ["Settings", "get_settings"]
