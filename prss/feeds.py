"""Feed fetching with a conditional cache, and merging of entry lists."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Iterable, List, Optional

import requests

from .cache import CacheRecord, CacheStore, cache_key
from .formats import decode
from .models import FeedEntry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class FetchError(RuntimeError):
    """Raised when a feed cannot be retrieved over the network."""


def parse_last_modified(value: Optional[str]) -> Optional[datetime]:
    """Parse an HTTP ``Last-Modified`` header into an aware datetime."""
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        logger.debug("Ignoring unparsable Last-Modified header %r", value)
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_fresh(
    record: Optional[CacheRecord], remote_modified: Optional[datetime]
) -> bool:
    """Return True when the cached payload is at least as new as the remote."""
    if record is None or remote_modified is None:
        return False
    return record.retrieved_at >= remote_modified


def _remote_last_modified(session, url: str, timeout: float) -> Optional[datetime]:
    try:
        response = session.head(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as exc:
        raise FetchError(f"HEAD request for {url} failed: {exc}") from exc
    return parse_last_modified(response.headers.get("Last-Modified"))


def _download(session, url: str, timeout: float) -> bytes:
    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise FetchError(f"GET request for {url} failed: {exc}") from exc
    return response.content


def fetch_feed_entries(
    url: str,
    session,
    cache: CacheStore,
    timeout: float = DEFAULT_TIMEOUT,
) -> List[FeedEntry]:
    """Fetch entries for one feed, reusing the cached payload when fresh.

    Raises ``FetchError`` for network failures, ``CacheError`` when a fresh
    payload cannot be cached and ``DecodeError`` when the payload is neither
    Atom nor RSS. Freshly downloaded bytes are cached before decoding.
    """
    logger.info("Fetching feed %s", url)
    remote_modified = _remote_last_modified(session, url, timeout)
    key = cache_key(url)
    record = cache.load(key)

    if is_fresh(record, remote_modified):
        logger.debug(
            "Cache for %s retrieved %s is not older than remote %s; reusing",
            url,
            record.retrieved_at,
            remote_modified,
        )
        entries = decode(record.content, url)
    else:
        logger.debug(
            "Downloading %s (cached=%s, last-modified=%s)",
            url,
            record is not None,
            remote_modified,
        )
        content = _download(session, url, timeout)
        cache.store(key, content)
        entries = decode(content, url)

    logger.info("Collected %d entries from feed %s", len(entries), url)
    return entries


def merge_entries(entry_lists: Iterable[Iterable[FeedEntry]]) -> List[FeedEntry]:
    """Concatenate entry lists and order them newest first."""
    merged: List[FeedEntry] = [entry for entries in entry_lists for entry in entries]
    merged.sort(key=lambda item: item.published)
    merged.reverse()
    logger.info("Merged %d entries", len(merged))
    return merged
