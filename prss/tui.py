"""Interactive terminal list of feed entries."""

from __future__ import annotations

import logging
import os
import select
import shlex
import subprocess
import sys
import termios
import tty
from typing import List, Optional

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from .models import FeedEntry
from .navigation import FeedList
from .read_state import ReadStateError

logger = logging.getLogger(__name__)

DEFAULT_OPENER = "xdg-open"
LIST_TITLE = "Feed Entries"
HIGHLIGHT_SYMBOL = "> "

UP = "UP"
DOWN = "DOWN"
ENTER = "ENTER"
INTERRUPT = "INTERRUPT"

_ESCAPE_SEQUENCES = {
    "[A": UP,
    "[B": DOWN,
    "OA": UP,
    "OB": DOWN,
}

KEY_ACTIONS = {
    "q": "quit",
    INTERRUPT: "quit",
    "j": "next",
    "n": "next",
    DOWN: "next",
    "k": "previous",
    "p": "previous",
    UP: "previous",
    ENTER: "open",
    "r": "mark_read",
}


class TerminalError(RuntimeError):
    """Raised when the terminal cannot be put into interactive mode."""


class QuitRequested(Exception):
    """Raised by ``handle_key`` when the user asks to leave the list."""


def decode_key(data: str) -> Optional[str]:
    """Translate raw terminal input into a key name or character."""
    if not data:
        return None
    if data in ("\r", "\n"):
        return ENTER
    if data == "\x03":
        return INTERRUPT
    if data.startswith("\x1b"):
        return _ESCAPE_SEQUENCES.get(data[1:])
    return data


def read_key(fd: int) -> Optional[str]:
    """Block until a key is available on ``fd`` and decode it."""
    data = os.read(fd, 1).decode("utf-8", errors="ignore")
    if data == "\x1b":
        sequence = ""
        while select.select([fd], [], [], 0.01)[0]:
            sequence += os.read(fd, 1).decode("utf-8", errors="ignore")
            if (
                sequence[-1:].isalpha()
                or sequence.endswith("~")
                or len(sequence) >= 6
            ):
                break
        data += sequence
    return decode_key(data)


def open_link(url: str, command: str = DEFAULT_OPENER) -> Optional[str]:
    """Run the opener with ``url`` and wait; returns an error message on failure."""
    argv: List[str] = shlex.split(command) + [url]
    logger.debug("Opening %s with %s", url, argv)
    try:
        completed = subprocess.run(
            argv,
            check=False,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError as exc:
        logger.error("Failed to open link %s: %s", url, exc)
        return f"Failed to open link: {exc}"

    if completed.returncode != 0:
        logger.error("%s exited with status %d", argv[0], completed.returncode)
        return f"{argv[0]} exited with status {completed.returncode}"
    return None


def handle_key(
    key: Optional[str], feed_list: FeedList, opener: str = DEFAULT_OPENER
) -> Optional[str]:
    """Apply the action bound to ``key`` and return a status message, if any."""
    action = KEY_ACTIONS.get(key) if key else None
    if action is None:
        return None
    if action == "quit":
        raise QuitRequested()
    if action == "next":
        feed_list.next()
        return None
    if action == "previous":
        feed_list.previous()
        return None

    entry = feed_list.selected()
    if entry is None:
        return "No entry selected."

    if action == "open":
        if not entry.link:
            return f"'{entry.title}' has no link to open."
        return open_link(entry.link, opener)

    if not entry.link:
        return f"'{entry.title}' has no link to mark read."
    try:
        feed_list.mark_selected_read()
    except ReadStateError as exc:
        logger.error("%s", exc)
        return str(exc)
    return f"Marked read: {entry.title}"


def _window_start(count: int, cursor: Optional[int], height: int) -> int:
    if cursor is None or count <= height:
        return 0
    return max(0, min(cursor - height + 1, count - height))


def render(
    entries: List[FeedEntry],
    cursor: Optional[int],
    height: int,
    status: Optional[str] = None,
) -> Panel:
    """Build the bordered list panel with the selected row highlighted."""
    rows = max(height - 2, 1)
    start = _window_start(len(entries), cursor, rows)
    lines = []
    for index in range(start, min(start + rows, len(entries))):
        title = " ".join(entries[index].display_title.split())
        if index == cursor:
            lines.append(
                Text(HIGHLIGHT_SYMBOL + title, style="black on white", no_wrap=True)
            )
        else:
            lines.append(Text(" " * len(HIGHLIGHT_SYMBOL) + title, no_wrap=True))

    return Panel(
        Group(*lines),
        title=LIST_TITLE,
        subtitle=status,
        style="white",
        height=height,
    )


def _draw(
    live: Live, console: Console, feed_list: FeedList, status: Optional[str]
) -> None:
    entries = feed_list.visible()
    height = max(console.size.height - 2, 3)
    panel = render(entries, feed_list.selection.cursor, height, status)
    live.update(panel, refresh=True)


def run_interactive(
    feed_list: FeedList,
    opener: str = DEFAULT_OPENER,
    console: Optional[Console] = None,
) -> None:
    """Run the key loop until the user quits or interrupts."""
    if not sys.stdin.isatty():
        raise TerminalError("Standard input is not a terminal.")

    fd = sys.stdin.fileno()
    try:
        old_settings = termios.tcgetattr(fd)
        tty.setcbreak(fd)
    except termios.error as exc:
        raise TerminalError(f"Failed to initialise terminal: {exc}") from exc

    console = console or Console()
    status: Optional[str] = None
    try:
        with Live(console=console, screen=True, auto_refresh=False) as live:
            while True:
                _draw(live, console, feed_list, status)
                try:
                    key = read_key(fd)
                    status = handle_key(key, feed_list, opener)
                except (QuitRequested, KeyboardInterrupt):
                    break
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)
