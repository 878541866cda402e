"""
Centralized settings for keel.

Manifesto:
    The namespace used to build single-instance tokens must stay stable for
    the life of a deployed application, and the backend selection must be
    overridable when a platform misreports its capabilities.  One validated,
    cached settings object resolves both from the environment in a single
    place.

All fields can be set via ``KEEL_*`` environment variables (e.g.
``KEEL_GUARD_BACKEND=null``) or a ``.env`` file.

Tags:
    keel, configuration, settings, pydantic, caching, validation

Doc-Types:
    api-reference
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_NAMESPACE = "KeelSingleApplication"


class GuardBackend(str, Enum):
    """Segment backend used by ``InstanceGuard``."""

    AUTO = "auto"
    SHM = "shm"
    POSIX = "posix"
    NULL = "null"


class KeelSettings(BaseSettings):
    """Keel configuration.

    Fields
    ──────
    guard_namespace     : Prefix of every single-instance token
    guard_backend       : Segment backend (auto picks by platform)
    probe_attempts      : Leftover-segment probes before creating
    probe_settle_ms     : Pause between probes of an unstamped segment
    lock_dir            : Directory for POSIX per-key lock files (default: <tmp>/keel)
    default_interval_ms : Interval used by the CLI tick command
    log_level           : Structlog log level
    json_logs           : Force JSON (True) or console (False) logs
    """

    model_config = SettingsConfigDict(
        env_prefix="KEEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Instance guard ───────────────────────────────────────────
    guard_namespace: str = Field(default=DEFAULT_NAMESPACE, min_length=1)
    guard_backend: GuardBackend = Field(default=GuardBackend.AUTO)
    probe_attempts: int = Field(default=2, ge=1)
    probe_settle_ms: int = Field(default=20, ge=0)
    lock_dir: Path | None = None

    # ── Scheduling ───────────────────────────────────────────────
    default_interval_ms: int = Field(default=1000, ge=0)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None


_settings_cache: dict[str, KeelSettings] = {}


def get_settings(*, _force_reload: bool = False) -> KeelSettings:
    """Load, validate, and cache a :class:`KeelSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    settings = KeelSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Drop the cached settings so the next ``get_settings()`` re-reads the env."""
    _settings_cache.clear()


__all__ = [
    "DEFAULT_NAMESPACE",
    "GuardBackend",
    "KeelSettings",
    "get_settings",
    "clear_settings_cache",
]
