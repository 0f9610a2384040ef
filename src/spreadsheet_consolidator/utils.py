"""Shared helpers — input fingerprints and timestamps for the run manifest."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path


def sha256_file(path: Path) -> str:
    """Return the hex SHA-256 digest of *path*."""
    h = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def describe_inputs(paths: Iterable[Path]) -> list[dict[str, str]]:
    """Return ``{"path", "sha256"}`` entries; unreadable files get an empty digest."""
    described: list[dict[str, str]] = []
    for path in paths:
        try:
            digest = sha256_file(path)
        except OSError:
            digest = ""
        described.append({"path": str(Path(path).resolve()), "sha256": digest})
    return described


def utcnow_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()
