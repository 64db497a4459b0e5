"""Persistence of entries the user has marked as read."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Set

logger = logging.getLogger(__name__)


class ReadStateError(RuntimeError):
    """Raised when the read-state file cannot be loaded or appended to."""


class ReadState:
    """Set of read entry links backed by an append-only file."""

    def __init__(self, path: Path, links: Optional[Iterable[str]] = None) -> None:
        self.path = Path(path)
        self._links: Set[str] = set(links or ())

    @classmethod
    def load(cls, path: Path) -> "ReadState":
        """Load the persisted links; a missing file yields an empty set."""
        location = Path(path)
        try:
            text = location.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No read-state file at %s", location)
            return cls(location)
        except (OSError, UnicodeDecodeError) as exc:
            raise ReadStateError(f"Failed to read {location}: {exc}") from exc

        links = {line for line in text.splitlines() if line}
        logger.info("Loaded %d read entries from %s", len(links), location)
        return cls(location, links)

    def is_read(self, link: Optional[str]) -> bool:
        return link is not None and link in self._links

    def __contains__(self, link: object) -> bool:
        return link in self._links

    def __len__(self) -> int:
        return len(self._links)

    def mark_read(self, link: str) -> None:
        """Record ``link`` as read and append it to the backing file."""
        if link in self._links:
            return

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(link + "\n")
                handle.flush()
                os.fsync(handle.fileno())
        except OSError as exc:
            raise ReadStateError(f"Failed to record {link} as read: {exc}") from exc

        self._links.add(link)
        logger.debug("Marked %s as read", link)
