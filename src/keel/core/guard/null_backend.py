"""Always-permissive segment backend.

Used on platforms without a named shared memory facility (sandboxed mobile and
WebAssembly targets).  Exclusivity cannot be enforced there, so the guard
degrades to a no-op instead of blocking start-up: every ``create`` succeeds,
which makes ``claim()`` report ``True`` and ``exists()`` report ``False``.
"""

from __future__ import annotations

import contextlib


class NullSegment:
    """Placeholder handle returned by :class:`NullSegmentBackend`."""

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"NullSegment({self.name!r})"


class NullSegmentBackend:
    name = "null"
    supported = False

    def exclusive(self, key: str) -> contextlib.AbstractContextManager[None]:
        return contextlib.nullcontext()

    def clear_leftover(self, key: str) -> None:
        return None

    def create(self, key: str) -> NullSegment:
        return NullSegment(key)

    def release(self, segment: NullSegment) -> None:
        return None

    def __repr__(self) -> str:
        return "NullSegmentBackend()"
