"""High-level orchestration for the prss application."""

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import requests

from .cache import CacheStore
from .config import AppPaths, parse_feeds_config
from .feeds import DEFAULT_TIMEOUT, fetch_feed_entries, merge_entries
from .models import FeedEntry

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 8
USER_AGENT = "prss/0.1 (terminal feed reader)"


class FetchFailed(RuntimeError):
    """Raised in strict mode when one or more feeds failed."""


@dataclass
class FetchOutcome:
    """Result of fetching a single feed."""

    url: str
    entries: List[FeedEntry] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class FetchReport:
    """Outcomes for every configured feed, in configuration order."""

    outcomes: List[FetchOutcome]

    @property
    def entries(self) -> List[FeedEntry]:
        return [
            entry
            for outcome in self.outcomes
            if outcome.ok
            for entry in outcome.entries
        ]

    @property
    def failures(self) -> List[FetchOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    def raise_for_failures(self) -> None:
        failures = self.failures
        if not failures:
            return
        details = "; ".join(f"{item.url}: {item.error}" for item in failures)
        raise FetchFailed(f"{len(failures)} feed(s) failed: {details}")


def fetch_all(
    urls: Sequence[str],
    session,
    cache: CacheStore,
    concurrency: int = DEFAULT_CONCURRENCY,
    timeout: float = DEFAULT_TIMEOUT,
) -> FetchReport:
    """Fetch every feed with at most ``concurrency`` requests in flight."""
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1.")

    def process_feed(url: str) -> FetchOutcome:
        try:
            entries = fetch_feed_entries(url, session, cache, timeout=timeout)
        except Exception as exc:  # noqa: BLE001 - isolate per-feed failures
            logger.warning("Failed to process feed %s: %s", url, exc)
            return FetchOutcome(url=url, error=exc)
        return FetchOutcome(url=url, entries=entries)

    outcomes: List[Optional[FetchOutcome]] = [None] * len(urls)
    with concurrent.futures.ThreadPoolExecutor(max_workers=concurrency) as executor:
        future_to_index = {
            executor.submit(process_feed, url): index for index, url in enumerate(urls)
        }
        for future in concurrent.futures.as_completed(future_to_index):
            outcomes[future_to_index[future]] = future.result()

    report = FetchReport(outcomes=[outcome for outcome in outcomes if outcome])
    logger.info(
        "Fetched %d of %d feeds (%d entries)",
        len(urls) - len(report.failures),
        len(urls),
        len(report.entries),
    )
    return report


@dataclass
class RunConfig:
    """Runtime options for executing the fetch phase."""

    paths: AppPaths
    feeds_file: Optional[str] = None
    concurrency: int = DEFAULT_CONCURRENCY
    timeout: float = DEFAULT_TIMEOUT
    strict: bool = False


@dataclass
class RunResult:
    """Returned data after executing the fetch phase."""

    entries: List[FeedEntry]
    report: FetchReport


def build_session() -> requests.Session:
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    return session


def execute(config: RunConfig, session=None) -> RunResult:
    """Load the feed list, fetch every feed and merge the results."""
    feeds_file = config.feeds_file or str(config.paths.feeds_file)
    urls = parse_feeds_config(feeds_file)
    if not urls:
        raise RuntimeError(f"No feeds found in {feeds_file}.")

    cache = CacheStore(config.paths.cache_dir)
    owns_session = session is None
    if owns_session:
        session = build_session()
    try:
        report = fetch_all(
            urls,
            session,
            cache,
            concurrency=config.concurrency,
            timeout=config.timeout,
        )
    finally:
        if owns_session:
            session.close()

    if config.strict:
        report.raise_for_failures()

    entries = merge_entries(
        outcome.entries for outcome in report.outcomes if outcome.ok
    )
    return RunResult(entries=entries, report=report)
