"""Decoding of Atom and RSS payloads into feed entries."""

from __future__ import annotations

import calendar
import io
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, List, Optional, Sequence, Tuple

import feedparser
from bs4 import BeautifulSoup
from dateutil import parser as date_parser
from dateutil import tz

from .models import AtomEntry, FeedEntry, RssEntry

logger = logging.getLogger(__name__)

UNDATED = datetime.min.replace(tzinfo=timezone.utc)
_PARTIAL_DATE_DEFAULT = datetime(1970, 1, 1)

_ZONE_OFFSETS = {
    "UTC": "+0000",
    "GMT": "+0000",
    "UT": "+0000",
    "Z": "+0000",
    "EST": "-0500",
    "EDT": "-0400",
    "CST": "-0600",
    "CDT": "-0500",
    "MST": "-0700",
    "MDT": "-0600",
    "PST": "-0800",
    "PDT": "-0700",
}
_ZONE_PATTERN = re.compile(r"\b(" + "|".join(_ZONE_OFFSETS) + r")\s*$", re.IGNORECASE)


def _offset_seconds(offset: str) -> int:
    sign = -1 if offset[0] == "-" else 1
    return sign * (int(offset[1:3]) * 3600 + int(offset[3:5]) * 60)


_TZINFOS = {
    name: tz.tzoffset(name, _offset_seconds(offset))
    for name, offset in _ZONE_OFFSETS.items()
}


class DecodeError(RuntimeError):
    """Raised when a payload is neither Atom nor RSS."""


class _FormatMismatch(Exception):
    pass


def _strip_html(raw_value: str) -> str:
    """Return single-line text content extracted from HTML fragments."""
    text = raw_value
    if "<" in text:
        soup = BeautifulSoup(text, "html.parser")
        text = soup.get_text(separator=" ", strip=True)
    return " ".join(text.split())


def _assume_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value.strip())


def _parse_rfc2822(value: str) -> datetime:
    parsed = parsedate_to_datetime(value.strip())
    if parsed is None:
        raise ValueError(f"Not an RFC 2822 date: {value!r}")
    return parsed


def normalize_zone(value: str) -> str:
    """Replace a trailing zone abbreviation with its numeric offset."""
    return _ZONE_PATTERN.sub(
        lambda match: _ZONE_OFFSETS[match.group(1).upper()], value.strip()
    )


def parse_date(
    value: Optional[str],
    native: Callable[[str], datetime],
    fallback: Optional[Any] = None,
) -> Optional[datetime]:
    """Parse a feed date string, trying progressively more tolerant parsers.

    ``native`` is the strict parser for the feed format. ``fallback`` is the
    UTC ``struct_time`` feedparser derived on its own, used as a last resort.
    Returns None when nothing yields a date.
    """
    if value:
        attempts: Sequence[Tuple[Callable[[str], datetime], str]] = (
            (native, value),
            (native, normalize_zone(value)),
            (_parse_dateutil, value),
        )
        for parse, candidate in attempts:
            try:
                return _assume_utc(parse(candidate))
            except (ValueError, TypeError, OverflowError, IndexError):
                continue

    if fallback:
        try:
            return datetime.fromtimestamp(calendar.timegm(fallback), tz=timezone.utc)
        except (ValueError, TypeError, OverflowError):
            return None
    return None


def _parse_dateutil(value: str) -> datetime:
    # Missing fields come from the epoch, never from today.
    return date_parser.parse(value, default=_PARTIAL_DATE_DEFAULT, tzinfos=_TZINFOS)


def _entry_date(
    entry: Any, native: Callable[[str], datetime], source: str
) -> datetime:
    for attr in ("published", "updated"):
        if attr not in entry:
            continue
        raw = entry.get(attr)
        parsed = entry.get(f"{attr}_parsed")
        result = parse_date(raw, native, parsed)
        if result is not None:
            return result
        logger.warning("Unparsable %s date %r in feed %s", attr, raw, source)

    logger.warning(
        "Entry '%s' in feed %s has no usable date; sorting it last",
        entry.get("title", ""),
        source,
    )
    return UNDATED


def _atom_link(entry: Any) -> Optional[str]:
    links = entry.get("links") or []
    for link in links:
        if link.get("href") and link.get("rel", "alternate") == "alternate":
            return link["href"]
    for link in links:
        if link.get("href"):
            return link["href"]
    return entry.get("link") or None


def _decode_atom(parsed: Any, source: str) -> List[FeedEntry]:
    if not (parsed.get("version") or "").startswith("atom"):
        raise _FormatMismatch("not an Atom feed")

    feed_title = _strip_html(parsed.feed.get("title", ""))
    return [
        AtomEntry(
            title=_strip_html(entry.get("title", "")),
            link=_atom_link(entry),
            published=_entry_date(entry, _parse_iso, source),
            feed_title=feed_title,
            record=entry,
        )
        for entry in parsed.entries
    ]


def _decode_rss(parsed: Any, source: str) -> List[FeedEntry]:
    if not (parsed.get("version") or "").startswith("rss"):
        raise _FormatMismatch("not an RSS channel")

    feed_title = _strip_html(parsed.feed.get("title", ""))
    return [
        RssEntry(
            title=_strip_html(entry.get("title", "")),
            link=entry.get("link") or None,
            published=_entry_date(entry, _parse_rfc2822, source),
            feed_title=feed_title,
            record=entry,
        )
        for entry in parsed.entries
    ]


_DECODERS = (
    ("Atom", _decode_atom),
    ("RSS", _decode_rss),
)


def decode(content: bytes, source: str = "") -> List[FeedEntry]:
    """Decode raw feed bytes, trying Atom first and then RSS."""
    parsed = feedparser.parse(io.BytesIO(content))
    if getattr(parsed, "bozo", False):
        logger.debug(
            "Feed 'bozo' flagged for %s: %s",
            source,
            getattr(parsed, "bozo_exception", None),
        )

    attempted = []
    for name, decoder in _DECODERS:
        try:
            entries = decoder(parsed, source)
        except _FormatMismatch as exc:
            attempted.append(f"{name}: {exc}")
            continue
        logger.debug("Decoded %d %s entries from %s", len(entries), name, source)
        return entries

    raise DecodeError(
        f"Couldn't read Atom or RSS from {source or 'payload'}: neither format "
        f"recognized ({'; '.join(attempted)})"
    )
