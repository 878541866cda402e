"""Single-instance guard package for keel.

Manifesto:
    An application that must run once per host needs a claim that is atomic,
    released when the holder dies, and honest about platforms where it cannot
    be enforced.  The guard package provides that claim over a named shared
    memory segment, with pluggable backends per platform.

Quick Start::

    from keel.core.guard import single_instance

    guard = single_instance("editor")
    if not guard.held:
        raise SystemExit("editor is already running")

Guardrails:
    ❌ Dropping the guard object right after claiming (the claim goes with it)
    ✅ Keep the guard referenced for as long as the application runs
    ❌ Treating ``exists()`` as a reservation
    ✅ ``claim()`` is the only call that leaves a segment behind

Tags:
    keel, single-instance, shared-memory, capability-backends

Doc-Types:
    package-overview, module-index
"""

from __future__ import annotations

from keel.core.settings import KeelSettings

from .instance_guard import InstanceClaim, InstanceGuard, make_token
from .null_backend import NullSegmentBackend
from .protocol import SegmentBackend
from .selection import SANDBOXED_PLATFORMS, detect_backend, select_backend
from .shm_backend import PosixSharedMemoryBackend, SharedMemoryBackend


def single_instance(
    flag: str,
    *,
    namespace: str | None = None,
    backend: SegmentBackend | None = None,
    settings: KeelSettings | None = None,
) -> InstanceGuard:
    """Create a guard for ``flag`` and attempt the claim.

    Check ``guard.held`` for the outcome and keep the guard referenced.
    """
    guard = InstanceGuard(flag, namespace=namespace, backend=backend, settings=settings)
    guard.claim()
    return guard


def instance_exists(
    flag: str,
    *,
    namespace: str | None = None,
    backend: SegmentBackend | None = None,
    settings: KeelSettings | None = None,
) -> bool:
    """Return whether some process currently holds ``flag``."""
    return InstanceGuard(flag, namespace=namespace, backend=backend, settings=settings).exists()


__all__ = [
    "InstanceGuard",
    "InstanceClaim",
    "make_token",
    "single_instance",
    "instance_exists",
    "SegmentBackend",
    "SharedMemoryBackend",
    "PosixSharedMemoryBackend",
    "NullSegmentBackend",
    "SANDBOXED_PLATFORMS",
    "detect_backend",
    "select_backend",
]
