import threading
import types
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Tuple

import pytest
import requests

from prss.config import AppPaths
from prss.models import FeedEntry


def atom_document(
    title: str, entries: Iterable[Tuple[str, Optional[str], str]]
) -> bytes:
    """Build an Atom feed from (title, link, published) triples."""
    items = []
    for index, (entry_title, link, published) in enumerate(entries):
        link_xml = f'<link rel="alternate" href="{link}"/>' if link else ""
        items.append(
            f"""
  <entry>
    <title>{entry_title}</title>
    {link_xml}
    <id>urn:example:{index}</id>
    <published>{published}</published>
    <updated>{published}</updated>
  </entry>"""
        )
    return f"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>{title}</title>
  <id>urn:example:feed</id>
  <updated>2024-01-01T00:00:00Z</updated>{''.join(items)}
</feed>
""".encode(
        "utf-8"
    )


def rss_document(
    title: str, items: Iterable[Tuple[Optional[str], Optional[str], Optional[str]]]
) -> bytes:
    """Build an RSS 2.0 channel from (title, link, pubDate) triples."""
    rendered = []
    for item_title, link, pub_date in items:
        parts = []
        if item_title is not None:
            parts.append(f"<title>{item_title}</title>")
        if link is not None:
            parts.append(f"<link>{link}</link>")
        if pub_date is not None:
            parts.append(f"<pubDate>{pub_date}</pubDate>")
        rendered.append(f"<item>{''.join(parts)}</item>")
    return f"""<?xml version="1.0" encoding="utf-8"?>
<rss version="2.0">
  <channel>
    <title>{title}</title>
    <link>https://example.com/</link>
    <description>Example channel</description>
    {''.join(rendered)}
  </channel>
</rss>
""".encode(
        "utf-8"
    )


class FakeSession:
    """Minimal stand-in for ``requests.Session`` keyed by URL."""

    def __init__(
        self,
        bodies: Dict[str, bytes],
        last_modified: Optional[Dict[str, str]] = None,
        failing: Iterable[str] = (),
    ):
        self.bodies = bodies
        self.last_modified = last_modified or {}
        self.failing = set(failing)
        self.heads = []
        self.gets = []
        self._lock = threading.Lock()

    def head(self, url, timeout=None, allow_redirects=False):
        with self._lock:
            self.heads.append(url)
        if url in self.failing:
            raise requests.ConnectionError(f"cannot reach {url}")
        headers = {}
        if url in self.last_modified:
            headers["Last-Modified"] = self.last_modified[url]
        return types.SimpleNamespace(headers=headers)

    def get(self, url, timeout=None):
        with self._lock:
            self.gets.append(url)
        if url in self.failing:
            raise requests.ConnectionError(f"cannot reach {url}")
        return types.SimpleNamespace(
            content=self.bodies[url],
            raise_for_status=lambda: None,
        )

    def close(self):
        pass


@pytest.fixture
def paths(tmp_path):
    return AppPaths(config_dir=tmp_path / "config", cache_dir=tmp_path / "cache")


def make_entry(title: str, day: float, link: Optional[str] = None) -> FeedEntry:
    published = datetime.fromtimestamp(
        datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp() + (day - 1) * 86400,
        tz=timezone.utc,
    )
    return FeedEntry(
        title=title,
        link=link if link is not None else f"https://example.com/{title}",
        published=published,
    )
