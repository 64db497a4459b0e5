"""Selection state over the list of unread entries."""

from __future__ import annotations

from typing import List, Optional, Sequence

from .models import FeedEntry
from .read_state import ReadState


class Selection:
    """Wrap-around cursor over a sequence of ``length`` items.

    ``cursor`` is None when the sequence is empty and otherwise satisfies
    ``0 <= cursor < length``.
    """

    def __init__(self, length: int) -> None:
        self.length = max(length, 0)
        self.cursor: Optional[int] = 0 if self.length else None

    @property
    def empty(self) -> bool:
        return self.cursor is None

    def next(self) -> None:
        if self.cursor is None:
            return
        self.cursor = (self.cursor + 1) % self.length

    def previous(self) -> None:
        if self.cursor is None:
            return
        self.cursor = (self.cursor - 1) % self.length

    def resize(self, length: int) -> None:
        """Clamp the cursor to a new sequence length."""
        self.length = max(length, 0)
        if not self.length:
            self.cursor = None
        elif self.cursor is None:
            self.cursor = 0
        else:
            self.cursor = min(self.cursor, self.length - 1)


def visible_entries(
    entries: Sequence[FeedEntry], read_state: ReadState
) -> List[FeedEntry]:
    """Return the entries that have not been marked read."""
    return [entry for entry in entries if not read_state.is_read(entry.link)]


class FeedList:
    """Aggregated entries plus a selection over the unread ones.

    The visible sequence is recomputed on every access and the cursor is
    clamped, not remapped, so marking the selected entry read moves the
    selection onto whichever entry takes its place.
    """

    def __init__(self, entries: Sequence[FeedEntry], read_state: ReadState) -> None:
        self.entries = list(entries)
        self.read_state = read_state
        self.selection = Selection(
            len(visible_entries(self.entries, self.read_state))
        )

    def visible(self) -> List[FeedEntry]:
        items = visible_entries(self.entries, self.read_state)
        self.selection.resize(len(items))
        return items

    def next(self) -> None:
        self.visible()
        self.selection.next()

    def previous(self) -> None:
        self.visible()
        self.selection.previous()

    def selected(self) -> Optional[FeedEntry]:
        items = self.visible()
        if self.selection.cursor is None:
            return None
        return items[self.selection.cursor]

    def mark_selected_read(self) -> Optional[FeedEntry]:
        """Mark the selected entry read; returns it, or None if nothing to mark.

        Raises ``ReadStateError`` when the mark cannot be persisted.
        """
        entry = self.selected()
        if entry is None or not entry.link:
            return None
        self.read_state.mark_read(entry.link)
        self.visible()
        return entry
