"""Command-line interface for the prss application."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .config import resolve_paths
from .feeds import DEFAULT_TIMEOUT
from .models import FeedEntry
from .navigation import FeedList, visible_entries
from .read_state import ReadState
from .runner import DEFAULT_CONCURRENCY, RunConfig, execute
from .tui import DEFAULT_OPENER, run_interactive

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Read the newest entries of your Atom and RSS feeds."
    )
    parser.add_argument(
        "--feeds",
        default=None,
        help="Path to the feed list. Defaults to $XDG_CONFIG_HOME/prss/feeds.txt.",
    )
    parser.add_argument(
        "--cache-dir",
        default=None,
        help="Directory for cached feeds and read entries. "
        "Defaults to $XDG_CACHE_HOME/prss.",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=DEFAULT_CONCURRENCY,
        help="Maximum number of feeds fetched at once.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Network timeout in seconds for each request.",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Abort if any feed fails to fetch or parse.",
    )
    parser.add_argument(
        "--opener",
        default=DEFAULT_OPENER,
        help="Command used to open an entry link.",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="Print the merged entries instead of starting the interactive list.",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="With --list, include entries already marked read.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (e.g. DEBUG, INFO, WARNING).",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Write logs to this file instead of stderr.",
    )
    return parser


def configure_logging(level_name: str, log_file: Optional[str] = None) -> None:
    """Send log records to stderr, or only to ``log_file`` when one is given.

    The interactive list owns the terminal, so a log file replaces the
    console handler rather than adding to it.
    """
    log_level = getattr(logging, level_name.upper(), None)
    if not isinstance(log_level, int):
        raise ValueError(f"Unsupported log level: {level_name}")

    handler: logging.Handler
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
        destination = str(log_path)
    else:
        handler = logging.StreamHandler(sys.stderr)
        destination = "stderr"
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logging.basicConfig(level=log_level, handlers=[handler], force=True)
    logger.debug("Logging at %s to %s", logging.getLevelName(log_level), destination)


def format_entries(entries: Sequence[FeedEntry]) -> str:
    """Render entries one per line for non-interactive output."""
    lines = []
    for entry in entries:
        stamp = entry.published.strftime("%Y-%m-%d %H:%M")
        lines.append(f"{stamp}  {entry.display_title}  {entry.link or '-'}")
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        configure_logging(args.log_level, args.log_file)
        if args.concurrency < 1:
            raise ValueError("--concurrency must be at least 1.")

        paths = resolve_paths(cache_dir=args.cache_dir)
        config = RunConfig(
            paths=paths,
            feeds_file=args.feeds,
            concurrency=args.concurrency,
            timeout=args.timeout,
            strict=args.strict,
        )
        logger.info("Active Configuration: %s", config)

        result = execute(config)
        failures = result.report.failures
        if failures:
            logger.warning(
                "%d of %d feeds failed and were skipped",
                len(failures),
                len(result.report.outcomes),
            )

        read_state = ReadState.load(paths.read_entries_file)

        if args.list:
            shown = (
                result.entries
                if args.all
                else visible_entries(result.entries, read_state)
            )
            print(format_entries(shown))
            return 0

        run_interactive(FeedList(result.entries, read_state), opener=args.opener)
    except ValueError as exc:
        parser.error(str(exc))
    except (RuntimeError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        return 1
    except OSError as exc:
        logger.error("Failed to read configuration: %s", exc)
        return 1
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error during execution.")
        return 1

    return 0
