import threading
import time

import pytest

from conftest import FakeSession, atom_document, make_entry, rss_document
from prss.cache import CacheStore
from prss.feeds import FetchError
from prss.navigation import FeedList
from prss.read_state import ReadState
from prss.runner import FetchFailed, RunConfig, execute, fetch_all
import prss.runner as runner

FIRST = "https://one.example.com/rss.xml"
SECOND = "https://two.example.com/atom.xml"


def _write_feeds(paths, *urls):
    paths.config_dir.mkdir(parents=True, exist_ok=True)
    paths.feeds_file.write_text(
        "# my feeds\n" + "\n".join(urls) + "\n", encoding="utf-8"
    )


def _two_source_session():
    first = rss_document(
        "One",
        [
            ("day1", "https://one.example.com/1", "Mon, 01 Jan 2024 00:00:00 GMT"),
            ("day2", "https://one.example.com/2", "Tue, 02 Jan 2024 00:00:00 GMT"),
            ("day3", "https://one.example.com/3", "Wed, 03 Jan 2024 00:00:00 GMT"),
        ],
    )
    second = atom_document(
        "Two",
        [
            ("day1.5", "https://two.example.com/1", "2024-01-01T12:00:00Z"),
            ("day2.5", "https://two.example.com/2", "2024-01-02T12:00:00Z"),
        ],
    )
    return FakeSession({FIRST: first, SECOND: second})


def test_execute_merges_sources_and_filters_read_entries(paths):
    _write_feeds(paths, FIRST, SECOND)

    result = execute(RunConfig(paths=paths), session=_two_source_session())

    assert [entry.title for entry in result.entries] == [
        "day3",
        "day2.5",
        "day2",
        "day1.5",
        "day1",
    ]
    assert result.report.failures == []

    read_state = ReadState.load(paths.read_entries_file)
    feed_list = FeedList(result.entries, read_state)
    assert feed_list.selected().title == "day3"

    feed_list.mark_selected_read()

    assert [entry.title for entry in feed_list.visible()] == [
        "day2.5",
        "day2",
        "day1.5",
        "day1",
    ]
    assert len(feed_list.entries) == 5
    reloaded = ReadState.load(paths.read_entries_file)
    assert reloaded.is_read("https://one.example.com/3")


def test_execute_tolerates_failing_source_by_default(paths):
    _write_feeds(paths, FIRST, SECOND)
    session = _two_source_session()
    session.failing.add(SECOND)

    result = execute(RunConfig(paths=paths), session=session)

    assert [entry.title for entry in result.entries] == ["day3", "day2", "day1"]
    assert [failure.url for failure in result.report.failures] == [SECOND]
    assert isinstance(result.report.failures[0].error, FetchError)


def test_execute_strict_mode_raises_on_failure(paths):
    _write_feeds(paths, FIRST, SECOND)
    session = _two_source_session()
    session.bodies[FIRST] = b"not a feed"

    with pytest.raises(FetchFailed) as excinfo:
        execute(RunConfig(paths=paths, strict=True), session=session)

    assert FIRST in str(excinfo.value)


def test_execute_requires_feeds(paths):
    _write_feeds(paths)

    with pytest.raises(RuntimeError):
        execute(RunConfig(paths=paths), session=FakeSession({}))


def test_execute_missing_feed_list_raises(paths):
    with pytest.raises(FileNotFoundError):
        execute(RunConfig(paths=paths), session=FakeSession({}))


def test_fetch_all_reports_outcomes_in_configuration_order(monkeypatch, tmp_path):
    urls = [f"https://feed-{index}.example.com" for index in range(5)]

    def fake_fetch(url, session, cache, timeout=None):
        time.sleep(0.01 * (5 - urls.index(url)))
        if url.endswith("2.example.com"):
            raise FetchError("boom")
        return [make_entry(url, 1, link=url)]

    monkeypatch.setattr(runner, "fetch_feed_entries", fake_fetch)

    report = fetch_all(urls, session=None, cache=CacheStore(tmp_path))

    assert [outcome.url for outcome in report.outcomes] == urls
    assert [outcome.ok for outcome in report.outcomes] == [
        True,
        True,
        False,
        True,
        True,
    ]
    assert len(report.entries) == 4
    with pytest.raises(FetchFailed):
        report.raise_for_failures()


def test_fetch_all_limits_concurrency(monkeypatch, tmp_path):
    lock = threading.Lock()
    state = {"active": 0, "peak": 0}

    def slow_fetch(url, session, cache, timeout=None):
        with lock:
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
        time.sleep(0.05)
        with lock:
            state["active"] -= 1
        return []

    monkeypatch.setattr(runner, "fetch_feed_entries", slow_fetch)
    urls = [f"https://feed-{index}.example.com" for index in range(20)]

    report = fetch_all(urls, session=None, cache=CacheStore(tmp_path), concurrency=8)

    assert len(report.outcomes) == 20
    assert 1 < state["peak"] <= 8


def test_fetch_all_rejects_invalid_concurrency(tmp_path):
    with pytest.raises(ValueError):
        fetch_all([], session=None, cache=CacheStore(tmp_path), concurrency=0)
