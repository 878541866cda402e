"""Segment backend protocol.

┌──────────────────────────────────────────────────────────────────────────────┐
│  SEGMENT BACKEND PROTOCOL                                                     │
│                                                                               │
│  Backends own the platform-specific half of single-instance detection:       │
│  how a named segment is probed, created and removed.  InstanceGuard owns     │
│  the algorithm (probe, create, hold or release) and the failure policy.      │
│                                                                               │
│   ┌──────────────────────────┐                                               │
│   │  SharedMemoryBackend     │  OS reference-counts the mapping (Windows)    │
│   ├──────────────────────────┤                                               │
│   │  PosixSharedMemoryBackend│  shm_open + owner stamp, reclaims leftovers   │
│   ├──────────────────────────┤                                               │
│   │  NullSegmentBackend      │  always permissive (sandboxed platforms)      │
│   └──────────────────────────┘                                               │
│                                                                               │
│  exclusive(key) wraps probe and create, so a leftover is never removed       │
│  while another starter is between its own probe and create.                  │
│                                                                               │
│  create() is the atomic exclusivity check:                                   │
│    - returns a segment      → caller now holds the token                     │
│    - FileExistsError        → a live holder exists                           │
│    - any other OSError      → ambiguous, caller treats as "held elsewhere"   │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import contextlib
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SegmentBackend(Protocol):
    """Protocol for pluggable named-segment backends.

    Implementations:
        - SharedMemoryBackend: multiprocessing.shared_memory, OS-refcounted
        - PosixSharedMemoryBackend: adds owner stamps and leftover reclaim
        - NullSegmentBackend: no-op for platforms without named shared memory
    """

    name: str
    supported: bool

    def exclusive(self, key: str) -> contextlib.AbstractContextManager[None]:
        """Context manager serializing probe and create for ``key`` across processes."""
        ...

    def clear_leftover(self, key: str) -> None:
        """Attach to ``key`` and detach again, clearing a dead holder's segment.

        Must not raise for a missing segment. Other OS errors propagate.
        """
        ...

    def create(self, key: str) -> Any:
        """Create the segment named ``key`` and return an opaque handle.

        Raises:
            FileExistsError: The segment already exists.
            OSError: Any other platform failure.
        """
        ...

    def release(self, segment: Any) -> None:
        """Detach from and remove a segment previously returned by ``create``."""
        ...
