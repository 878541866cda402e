"""
Deterministic key derivation for named OS resources.

Single-instance tokens are human-readable (``<namespace>_<flag>``) but the
OS-visible name of a shared memory segment has platform limits: POSIX names
may not contain ``/`` and macOS caps them at 31 characters.  Hashing the token
gives a short, portable name that stays identical across releases, so two
builds of the same application keep detecting each other.

Examples:
    >>> native_key("KeelSingleApplication_editor")
    'keel-...'  # 5-char prefix + 24 hex chars

Tags:
    hashing, keel, shared-memory
"""

import hashlib
from typing import Any

KEY_PREFIX = "keel-"
KEY_DIGEST_LENGTH = 24


def compute_hash(*values: Any, length: int = 32) -> str:
    """
    Compute deterministic hash from values.

    Values are converted to strings and joined with ``|`` before SHA-256, so
    ``("a", "b")`` and ``("b", "a")`` hash differently.

    Args:
        *values: Values to hash (converted to strings)
        length: Hex digest length (default 32 = 128 bits)

    Returns:
        Hex string of specified length
    """
    content = "|".join(str(v) for v in values)
    return hashlib.sha256(content.encode()).hexdigest()[:length]


def native_key(token: str) -> str:
    """Return the platform-safe segment name for ``token``."""
    return KEY_PREFIX + compute_hash(token, length=KEY_DIGEST_LENGTH)
