"""Runtime selection of the segment backend."""

from __future__ import annotations

import sys

from keel.core.errors import InvalidConfigError
from keel.core.settings import GuardBackend, KeelSettings, get_settings

from .null_backend import NullSegmentBackend
from .protocol import SegmentBackend
from .shm_backend import PosixSharedMemoryBackend, SharedMemoryBackend

# Platforms that ship without shm_open / CreateFileMapping for applications.
SANDBOXED_PLATFORMS = frozenset({"ios", "android", "emscripten", "wasi"})


def detect_backend(platform: str | None = None) -> GuardBackend:
    """Pick the backend ``auto`` resolves to on ``platform`` (default: this one)."""
    platform = platform or sys.platform
    if platform in SANDBOXED_PLATFORMS:
        return GuardBackend.NULL
    if platform == "win32":
        return GuardBackend.SHM
    return GuardBackend.POSIX


def select_backend(
    name: GuardBackend | str | None = None,
    settings: KeelSettings | None = None,
) -> SegmentBackend:
    """Build the segment backend named ``name`` (default: from settings).

    Raises:
        InvalidConfigError: ``name`` is not a known backend.
    """
    settings = settings or get_settings()
    raw = name if name is not None else settings.guard_backend
    try:
        choice = GuardBackend(raw)
    except ValueError as e:
        raise InvalidConfigError("guard_backend", raw) from e

    if choice is GuardBackend.AUTO:
        choice = detect_backend()

    if choice is GuardBackend.NULL:
        return NullSegmentBackend()

    settle_seconds = settings.probe_settle_ms / 1000
    if choice is GuardBackend.SHM:
        return SharedMemoryBackend(probe_attempts=settings.probe_attempts, settle_seconds=settle_seconds)
    return PosixSharedMemoryBackend(
        probe_attempts=settings.probe_attempts,
        settle_seconds=settle_seconds,
        lock_dir=settings.lock_dir,
    )
