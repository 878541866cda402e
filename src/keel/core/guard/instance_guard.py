"""Cross-process single-instance guard.

Manifesto:
    Two copies of the same desktop tool or daemon must not both believe they
    own the user's data.  The guard claims a named shared memory segment:
    creating it is atomic, so exactly one process wins, and the segment goes
    away with the holder.  When the OS cannot answer cleanly the guard errs
    towards "someone else has it" rather than risk a double claim.

This module provides :class:`InstanceGuard`, an explicit object owned by the
caller.  The claim lives as long as the guard: ``release()``, leaving a
``with`` block, garbage collection and interpreter exit all drop it.

    Claim Flow::

        claim()
          │
          ├── already held by this guard? ──────────────► True
          │
          ├── with backend.exclusive(key):   per-key lock (POSIX)
          │     backend.clear_leftover(key)  attach/detach, reclaim dead holder
          │     backend.create(key)
          │       ├── ok               → hold segment ──► True
          │       ├── FileExistsError  → live holder ───► False
          │       └── OSError          → ambiguous ─────► False (logged)

        exists()
          │
          ├── same probe + create
          │       ├── ok               → release now ───► False
          │       ├── FileExistsError ──────────────────► True
          │       └── OSError ──────────────────────────► True (logged)

Tags:
    keel, single-instance, shared-memory, mutual-exclusion

Doc-Types:
    api-reference
"""

from __future__ import annotations

import weakref
from dataclasses import dataclass
from typing import Any

from keel.core.errors import GuardError, categorize_error
from keel.core.hashing import native_key
from keel.core.logging import get_logger
from keel.core.settings import KeelSettings, get_settings

from .protocol import SegmentBackend
from .selection import select_backend

logger = get_logger(__name__)


@dataclass(frozen=True)
class InstanceClaim:
    """Snapshot of a guard's claim, for display and logging."""

    token: str
    key: str
    held: bool
    backend: str
    enforced: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "token": self.token,
            "key": self.key,
            "held": self.held,
            "backend": self.backend,
            "enforced": self.enforced,
        }


def make_token(flag: str, namespace: str | None = None, settings: KeelSettings | None = None) -> str:
    """Build the ``<namespace>_<flag>`` token for ``flag``."""
    if namespace is None:
        namespace = (settings or get_settings()).guard_namespace
    return f"{namespace}_{flag}"


class InstanceGuard:
    """Claims or probes exclusive, system-wide ownership of a token.

    Example:
        >>> guard = InstanceGuard("editor")
        >>> if not guard.claim():
        ...     raise SystemExit("already running")
        >>> # ... application runs, guard stays referenced ...
        >>> guard.release()

        >>> with InstanceGuard("editor") as guard:
        ...     if guard.held:
        ...         run_app()
    """

    def __init__(
        self,
        flag: str,
        *,
        namespace: str | None = None,
        backend: SegmentBackend | None = None,
        settings: KeelSettings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.flag = flag
        self.token = make_token(flag, namespace, settings)
        self.key = native_key(self.token)
        self._backend = backend if backend is not None else select_backend(settings=settings)
        self._finalizer: weakref.finalize | None = None

    @property
    def backend(self) -> SegmentBackend:
        return self._backend

    @property
    def held(self) -> bool:
        """Whether this guard currently owns the claim."""
        return self._finalizer is not None and self._finalizer.alive

    @property
    def enforced(self) -> bool:
        """False when the backend cannot enforce exclusivity on this platform."""
        return self._backend.supported

    def claim(self) -> bool:
        """Try to become the sole holder of the token. Never raises."""
        if self.held:
            return True

        segment = self._probe_and_create()
        if segment is None:
            return False

        self._finalizer = weakref.finalize(self, self._backend.release, segment)
        if self.enforced:
            logger.info("guard_claimed", token=self.token, backend=self._backend.name)
        else:
            logger.warning("guard_not_enforced", token=self.token, backend=self._backend.name)
        return True

    def exists(self) -> bool:
        """Return whether another holder currently owns the token. Never raises.

        A segment created by the probe is removed before returning, so probing
        never blocks a later ``claim()``.
        """
        segment = self._probe_and_create(probing=True)
        if segment is None:
            return True
        self._backend.release(segment)
        return False

    def release(self) -> None:
        """Drop the claim. Safe to call when nothing is held."""
        if self._finalizer is None:
            return
        if self._finalizer.alive:
            self._finalizer()
            logger.info("guard_released", token=self.token)
        self._finalizer = None

    def snapshot(self) -> InstanceClaim:
        return InstanceClaim(
            token=self.token,
            key=self.key,
            held=self.held,
            backend=self._backend.name,
            enforced=self.enforced,
        )

    def _probe_and_create(self, probing: bool = False) -> Any | None:
        try:
            with self._backend.exclusive(self.key):
                self._backend.clear_leftover(self.key)
                return self._backend.create(self.key)
        except FileExistsError:
            if not probing:
                logger.info("guard_held_elsewhere", token=self.token)
            return None
        except (OSError, ValueError) as e:
            error = GuardError("segment probe failed", cause=e).with_context(
                token=self.token,
                backend=self._backend.name,
                key=self.key,
            )
            logger.warning(
                "guard_probe_failed",
                cause_category=categorize_error(e).value,
                **error.to_dict(),
            )
            return None

    def __enter__(self) -> InstanceGuard:
        self.claim()
        return self

    def __exit__(self, *args: Any) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"InstanceGuard(token={self.token!r}, held={self.held}, backend={self._backend.name!r})"
