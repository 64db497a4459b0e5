"""On-disk byte cache for fetched feed payloads."""

from __future__ import annotations

import contextlib
import hashlib
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class CacheError(RuntimeError):
    """Raised when a payload cannot be written to the cache."""


@dataclass
class CacheRecord:
    """Cached feed payload and the time it was retrieved."""

    content: bytes
    retrieved_at: datetime


def cache_key(url: str) -> str:
    """Return the deterministic cache key for a feed URL."""
    return hashlib.md5(url.encode("utf-8")).hexdigest()


class CacheStore:
    """Stores one file per feed under a cache directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / key

    def load(self, key: str) -> Optional[CacheRecord]:
        """Return the cached payload for ``key`` or None if unavailable."""
        path = self.path_for(key)
        try:
            stat = path.stat()
            content = path.read_bytes()
        except OSError as exc:
            logger.debug("No usable cache file %s: %s", path, exc)
            return None

        retrieved_at = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        return CacheRecord(content=content, retrieved_at=retrieved_at)

    def store(self, key: str, content: bytes) -> Path:
        """Write ``content`` for ``key``, replacing any previous payload."""
        path = self.path_for(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(content)
                os.replace(tmp_name, path)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise CacheError(f"Failed to write cache file {path}: {exc}") from exc

        logger.debug("Cached %d bytes at %s", len(content), path)
        return path
