"""Small shared helpers."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone


def sha256_bytes(data: bytes) -> str:
    """Return the hex SHA-256 digest of *data*."""
    return hashlib.sha256(data).hexdigest()


def utcnow_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def plural(count: int, word: str, many: str | None = None) -> str:
    """``plural(1, "finding")`` -> ``"1 finding"``; ``plural(2, "finding")`` -> ``"2 findings"``."""
    if count == 1:
        return f"{count} {word}"
    return f"{count} {many or word + 's'}"
