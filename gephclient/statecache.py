"""A flat-file key/value store for cached protocol state."""

from __future__ import annotations

import logging
import os
from pathlib import Path

log = logging.getLogger(__name__)


class FlatFileStateCache:
    """Stores each blob in its own file, named by the hex of its key."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: bytes) -> Path:
        return self.root / bytes(key).hex()

    def get_blob(self, key: bytes) -> bytes | None:
        """The blob stored under ``key``, or None if there is none."""
        try:
            value = self._path(key).read_bytes()
        except OSError:
            value = None
        log.debug(
            "read %r; hit? %s",
            bytes(key).decode("utf-8", errors="replace"),
            value is not None,
        )
        return value

    def insert_blob(self, key: bytes, value: bytes) -> None:
        """Store ``value`` under ``key``; write failures are ignored."""
        path = self._path(key)
        log.debug("write %s", path.name)
        try:
            path.write_bytes(bytes(value))
        except OSError as exc:
            log.debug("cannot write %s: %s", path, exc)