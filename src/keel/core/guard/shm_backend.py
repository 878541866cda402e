"""Named shared memory segment backends.

Both backends sit on :class:`multiprocessing.shared_memory.SharedMemory`
with resource tracking disabled: the guard decides when a segment is removed,
not the interpreter's resource tracker.

┌──────────────────────────────────────────────────────────────────────────────┐
│  LEFTOVER HANDLING                                                            │
│                                                                               │
│  Windows:  the kernel reference-counts the mapping.  A dead holder's         │
│            segment disappears with its last handle, so the probe is a        │
│            plain attach/detach.                                              │
│                                                                               │
│  POSIX:    shm_open segments live until shm_unlink, so a crashed holder      │
│            leaves its segment behind.  Each segment is stamped with the      │
│            creator's PID and process start time, and the probe reads it:     │
│                                                                               │
│              absent            → nothing to do                               │
│              owner alive       → leave it, create() will fail                │
│              owner dead        → reclaim (unlink)                            │
│                (exited, zombie, or PID reused by a later process)            │
│              unstamped         → settle and re-read; still unstamped after   │
│                                  every attempt → leave it, treated as held   │
│              unreadable        → leave it (empty or foreign segment)         │
│                                                                               │
│  shm_unlink removes whatever currently carries the name, so probe, reclaim   │
│  and create all run under an exclusive flock on a per-key lock file.  Two    │
│  starters racing over one dead holder's segment are serialized: the second   │
│  one finds the first one's live stamp.                                       │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import contextlib
import os
import struct
import tempfile
import time
from collections.abc import Iterator
from multiprocessing.shared_memory import SharedMemory
from pathlib import Path

import psutil

from keel.core.logging import get_logger

if os.name == "posix":
    import fcntl

logger = get_logger(__name__)

# Owner stamp: little-endian signed 64-bit PID, then the owner's start time
# (seconds since the epoch, as psutil reports it). PID 0 until written.
OWNER_STAMP = struct.Struct("<qd")

# psutil derives create_time from clock ticks since boot
START_TIME_TOLERANCE = 1.0

DEFAULT_LOCK_DIR = Path(tempfile.gettempdir()) / "keel"

_UNREADABLE = (-1, 0.0)


class SharedMemoryBackend:
    """Segment backend over OS reference-counted named shared memory.

    Example:
        >>> backend = SharedMemoryBackend()
        >>> with backend.exclusive("keel-0123abcd"):
        ...     segment = backend.create("keel-0123abcd")
        >>> backend.release(segment)
    """

    name = "shm"
    supported = True
    segment_size = 1

    def __init__(self, probe_attempts: int = 2, settle_seconds: float = 0.02) -> None:
        self.probe_attempts = probe_attempts
        self.settle_seconds = settle_seconds

    def exclusive(self, key: str) -> contextlib.AbstractContextManager[None]:
        # creation is the only step that changes the name; the OS makes it atomic
        return contextlib.nullcontext()

    def clear_leftover(self, key: str) -> None:
        for _ in range(self.probe_attempts):
            try:
                segment = SharedMemory(name=key, track=False)
            except FileNotFoundError:
                return
            segment.close()

    def create(self, key: str) -> SharedMemory:
        return SharedMemory(name=key, create=True, size=self.segment_size, track=False)

    def release(self, segment: SharedMemory) -> None:
        segment.close()
        with contextlib.suppress(FileNotFoundError):
            segment.unlink()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(probe_attempts={self.probe_attempts})"


class PosixSharedMemoryBackend(SharedMemoryBackend):
    """POSIX segment backend with owner stamps and leftover reclaim."""

    name = "posix"
    segment_size = OWNER_STAMP.size

    def __init__(
        self,
        probe_attempts: int = 2,
        settle_seconds: float = 0.02,
        lock_dir: Path | None = None,
    ) -> None:
        super().__init__(probe_attempts, settle_seconds)
        self.lock_dir = lock_dir or DEFAULT_LOCK_DIR

    @contextlib.contextmanager
    def exclusive(self, key: str) -> Iterator[None]:
        """Hold the per-key lock file for the duration of the block.

        flock locks belong to the open file description, so two guards in one
        process exclude each other as well as two processes do.  The kernel
        drops the lock when its holder dies.
        """
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.lock_dir / f"{key}.lock", os.O_CREAT | os.O_RDWR, 0o600)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            yield
        finally:
            # closing the descriptor releases the lock
            os.close(fd)

    def clear_leftover(self, key: str) -> None:
        for attempt in range(self.probe_attempts):
            stamp = self.read_stamp(key)
            if stamp is None or stamp == _UNREADABLE:
                return
            pid, started = stamp
            if pid > 0:
                if not pid_alive(pid, started or None):
                    self._reclaim(key, stamp)
                return
            if attempt + 1 < self.probe_attempts:
                time.sleep(self.settle_seconds)

        # A creator stalled between sizing and stamping is indistinguishable
        # from one that died there; only a dead stamped owner is reclaimed.
        logger.warning("guard_segment_unstamped", key=key, attempts=self.probe_attempts)

    def create(self, key: str) -> SharedMemory:
        segment = super().create(key)
        OWNER_STAMP.pack_into(segment.buf, 0, os.getpid(), psutil.Process().create_time())
        return segment

    def read_stamp(self, key: str) -> tuple[int, float] | None:
        """Return the ``(pid, start_time)`` stamped in ``key``, ``None`` when absent.

        A PID of ``0`` means the creator has not written its stamp yet; ``-1``
        means the segment cannot be read (still empty, or not created by keel).
        """
        try:
            segment = SharedMemory(name=key, track=False)
        except FileNotFoundError:
            return None
        except ValueError:
            # shm_open succeeded but the creator has not sized it yet
            return _UNREADABLE
        try:
            return _stamp_of(segment)
        finally:
            segment.close()

    def read_owner(self, key: str) -> int | None:
        stamp = self.read_stamp(key)
        return None if stamp is None else stamp[0]

    def _reclaim(self, key: str, observed: tuple[int, float]) -> None:
        try:
            segment = SharedMemory(name=key, track=False)
        except (FileNotFoundError, ValueError):
            return
        try:
            if _stamp_of(segment) != observed:
                return
            segment.unlink()
        finally:
            segment.close()

        logger.info("guard_leftover_reclaimed", key=key, owner_pid=observed[0])


def _stamp_of(segment: SharedMemory) -> tuple[int, float]:
    if segment.size < OWNER_STAMP.size:
        return _UNREADABLE
    return OWNER_STAMP.unpack_from(segment.buf, 0)


def pid_alive(pid: int, started: float | None = None) -> bool:
    """Return whether ``pid`` names a running process.

    A zombie (exited, not yet reaped) is dead.  With ``started`` the process
    must also have been created at that time, so a recycled PID is dead too.
    """
    try:
        proc = psutil.Process(pid)
        if proc.status() == psutil.STATUS_ZOMBIE:
            return False
        if started is not None and abs(proc.create_time() - started) > START_TIME_TOLERANCE:
            return False
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        # exists, owned by another user
        return True
    return True
