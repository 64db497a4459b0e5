"""Shared data models for prss."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass(frozen=True)
class FeedEntry:
    """Normalised feed entry used throughout the app."""

    title: str
    link: Optional[str]
    published: datetime
    feed_title: str = ""

    @property
    def display_title(self) -> str:
        if self.feed_title:
            return f"{self.title} ({self.feed_title})"
        return self.title


@dataclass(frozen=True)
class AtomEntry(FeedEntry):
    """Entry decoded from an Atom feed."""

    record: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class RssEntry(FeedEntry):
    """Entry decoded from an RSS channel."""

    record: Any = field(default=None, repr=False, compare=False)
