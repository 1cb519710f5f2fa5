"""CLI entrypoint for the mdlinkcheck command."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .book import load_book
from .config import ConfigError, LinkCheckConfig, WarningPolicy, load_config
from .logging import configure_logging, get_logger
from .orchestrator import LinkChecker
from .stores import OutcomeCache

DEFAULT_CACHE_FILE = Path(".linkcheck") / "cache.json"

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mdlinkcheck",
        description="Check the links and images of a markdown book.",
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Directory holding the book's markdown sources (defaults to current directory).",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Increase log verbosity for troubleshooting.",
    )
    verbosity.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=False,
        help="Only log warnings and errors; the report is still printed.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this file.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Configuration file to use (defaults to <path>/.linkcheck.yml).",
    )
    parser.add_argument(
        "--follow-web-links",
        action="store_true",
        default=None,
        help="Check web links over the network.",
    )
    parser.add_argument(
        "--traverse-parent-directories",
        action="store_true",
        default=None,
        help="Allow links to files outside the book directory.",
    )
    parser.add_argument(
        "--warning-policy",
        choices=WarningPolicy.CHOICES,
        default=None,
        help="How warnings affect the result (overrides the configuration file).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON instead of text.",
    )
    parser.add_argument(
        "--cache-file",
        type=Path,
        default=None,
        help="Where web link results are cached (defaults to <path>/.linkcheck/cache.json).",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Do not read or write the web link cache.",
    )
    return parser


def _apply_overrides(config: LinkCheckConfig, args: argparse.Namespace) -> LinkCheckConfig:
    if args.follow_web_links is not None:
        config.follow_web_links = True
    if args.traverse_parent_directories is not None:
        config.traverse_parent_directories = True
    if args.warning_policy is not None:
        config.warning_policy = args.warning_policy
    return config


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint for mdlinkcheck; returns the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose, quiet=args.quiet, log_file=args.log_file)
    logger = get_logger("cli")

    try:
        book = load_book(args.path)
    except FileNotFoundError as exc:
        parser.exit(EXIT_USAGE, f"{exc}\n")

    config_path = Path(args.config) if args.config else book.root
    if args.config and not config_path.exists():
        parser.exit(EXIT_USAGE, f"Configuration file not found: {config_path}\n")
    try:
        config = _apply_overrides(load_config(config_path), args)
    except ConfigError as exc:
        parser.exit(EXIT_USAGE, f"mdlinkcheck: invalid configuration: {exc}\n")

    cache_path = None
    if not args.no_cache:
        cache_path = args.cache_file or book.root / DEFAULT_CACHE_FILE
    cache = OutcomeCache(cache_path)

    report = LinkChecker(config, cache=cache).check_book(book)

    try:
        cache.persist()
    except OSError as exc:
        logger.warning("Unable to save the link cache to %s: %s", cache_path, exc)

    if args.json:
        print(json.dumps(report.to_json(), indent=2))
    else:
        print(report.render_text(), end="")
    return EXIT_OK if report.success else EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
