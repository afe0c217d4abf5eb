"""Application settings loaded from environment variables.

Uses Pydantic Settings v2 for validated, type-safe configuration.
Every tunable of the archiving pipeline is read through this module —
never call ``os.getenv`` directly elsewhere in the codebase.

Usage::

    from wayback_autosave.config.settings import get_settings

    settings = get_settings()
    window = settings.cooldown_seconds

Every field can be overridden with an ``AUTOSAVE_``-prefixed environment
variable, e.g. ``AUTOSAVE_COOLDOWN_HOURS=6``.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pipeline configuration backed by environment variables and an optional .env file.

    Defaults target the public Wayback Machine save endpoint with a
    24-hour cooldown and a 60-second timeout on every save request.
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTOSAVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Behaviour
    # ------------------------------------------------------------------

    enabled_default: bool = True
    """Value of the enabled flag when the store does not hold one yet."""

    cooldown_hours: float = 24.0
    """Minimum time between two successful submissions of the same identity."""

    # ------------------------------------------------------------------
    # Archive endpoint
    # ------------------------------------------------------------------

    archive_endpoint: str = "https://web.archive.org/save/"
    """Prefix of the save API.  The percent-encoded target URL is appended."""

    submit_method: str = "GET"
    """HTTP method used by queued submissions.  ``GET`` or ``POST``."""

    request_timeout: float = 60.0
    """Timeout in seconds applied to every outbound save request."""

    user_agent: str = "WaybackAutosave/0.1 (+navigation-driven archiver)"
    """User-Agent header sent with every save request."""

    # ------------------------------------------------------------------
    # Timing
    # ------------------------------------------------------------------

    debounce_seconds: float = 0.5
    """Window in which bursts of navigation signals collapse to one evaluation."""

    container_wait_seconds: float = 5.0
    """Upper bound on waiting for an item container to render."""

    reveal_settle_seconds: float = 1.5
    """Delay between a reveal click and the container rescan."""

    drain_interval_seconds: float = 60.0
    """Period of the safety-net queue drain."""

    # ------------------------------------------------------------------
    # Site conventions
    # ------------------------------------------------------------------

    canonical_base: str = "https://old.reddit.com"
    """Scheme and host every canonical identity is built on."""

    short_link_hosts: list[str] = ["redd.it"]
    """Hosts whose whole path is an item id."""

    self_hosts: list[str] = ["reddit.com", "redd.it"]
    """Registered domains of the source site; never archived as content."""

    # ------------------------------------------------------------------
    # Persistent store
    # ------------------------------------------------------------------

    redis_url: str = "redis://localhost:6379/0"
    """Redis connection URL backing the persistent key-value store."""

    store_namespace: str = "wayback_autosave:"
    """Prefix applied to every key written to Redis."""

    # ------------------------------------------------------------------
    # Logging and notifications
    # ------------------------------------------------------------------

    log_level: str = "INFO"
    """Logging verbosity.  One of: DEBUG, INFO, WARNING, ERROR, CRITICAL."""

    notice_seconds: float = 3.5
    """Display duration of per-item notifications."""

    summary_notice_seconds: float = 5.0
    """Display duration of batch summary notifications."""

    @field_validator("submit_method")
    @classmethod
    def _normalize_method(cls, value: str) -> str:
        method = value.strip().upper()
        if method not in {"GET", "POST"}:
            raise ValueError(f"submit_method must be GET or POST, got {value!r}")
        return method

    @field_validator("short_link_hosts", "self_hosts")
    @classmethod
    def _lowercase_hosts(cls, value: list[str]) -> list[str]:
        return [host.strip().lower() for host in value if host.strip()]

    @property
    def cooldown_seconds(self) -> float:
        """Cooldown window expressed in seconds."""
        return self.cooldown_hours * 3600.0


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    Uses ``functools.lru_cache`` so that Pydantic Settings reads the environment
    and .env file exactly once per process lifetime.  In tests, call
    ``get_settings.cache_clear()`` after patching environment variables.

    Returns:
        Settings: The validated settings object.
    """
    return Settings()
