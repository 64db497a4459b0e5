"""Configuration loading for feed sources and storage paths."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

logger = logging.getLogger(__name__)

APP_NAME = "prss"
FEEDS_FILENAME = "feeds.txt"
READ_ENTRIES_FILENAME = "read_entries.txt"


@dataclass(frozen=True)
class AppPaths:
    """Per-user locations for the feed list and cached data."""

    config_dir: Path
    cache_dir: Path

    @property
    def feeds_file(self) -> Path:
        return self.config_dir / FEEDS_FILENAME

    @property
    def read_entries_file(self) -> Path:
        return self.cache_dir / READ_ENTRIES_FILENAME


def _xdg_dir(
    env: Mapping[str, str], variable: str, fallback: str, home: Path
) -> Path:
    value = env.get(variable)
    # XDG directories must be absolute; relative values are ignored.
    if value and os.path.isabs(value):
        return Path(value)
    return home / fallback


def resolve_paths(
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
    config_dir: Optional[str] = None,
    cache_dir: Optional[str] = None,
) -> AppPaths:
    """Resolve the XDG config and cache directories, honouring overrides."""
    env = os.environ if env is None else env
    home = Path.home() if home is None else home

    resolved_config = (
        Path(config_dir)
        if config_dir
        else _xdg_dir(env, "XDG_CONFIG_HOME", ".config", home) / APP_NAME
    )
    resolved_cache = (
        Path(cache_dir)
        if cache_dir
        else _xdg_dir(env, "XDG_CACHE_HOME", ".cache", home) / APP_NAME
    )
    logger.debug(
        "Resolved config dir %s and cache dir %s", resolved_config, resolved_cache
    )
    return AppPaths(config_dir=resolved_config, cache_dir=resolved_cache)


def parse_feeds_config(path: str) -> List[str]:
    """Read the line-oriented feed list and return the source URLs.

    Lines starting with ``#`` are comments. Blank lines are skipped.
    """
    logger.info("Loading feed configuration from %s", path)
    try:
        with open(path, encoding="utf-8") as handle:
            lines = handle.read().splitlines()
    except UnicodeDecodeError as exc:
        raise RuntimeError(f"Feed list {path} is not valid UTF-8: {exc}") from exc

    feeds: List[str] = []
    for line in lines:
        url = line.strip()
        if not url or url.startswith("#"):
            continue
        feeds.append(url)
        logger.debug("Registered feed '%s'", url)

    logger.info("Loaded %d feed endpoints from configuration", len(feeds))
    return feeds
