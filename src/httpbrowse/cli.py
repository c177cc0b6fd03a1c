# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""http-browse CLI: fetch an HTML page using a headless browser.

Usage:
    http-browse URL [--no-stealth] [--with-head] [--idle-timeout SECONDS]
                    [--nav-timeout MS] [-v] [--log-json] [--error-json]
    python -m httpbrowse.cli URL ...

The rendered HTML goes to stdout; logs, the spinner and errors go to stderr.
"""

from __future__ import annotations

import argparse
import os
import sys
from contextlib import suppress

from . import __version__

_TRUTHY = ("1", "true", "yes")


def _positive_seconds(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number of seconds: {value!r}") from None
    if not seconds > 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {value}")
    return seconds


def _non_negative_ms(value: str) -> int:
    try:
        ms = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number of milliseconds: {value!r}") from None
    if ms < 0:
        raise argparse.ArgumentTypeError(f"must be 0 (no limit) or more, got {value}")
    return ms


_EPILOG = """\
For this to work chrome/chromium has to be installed in the system
(playwright install chromium).

examples:
  %(prog)s https://example.com                       Fetch a page and output HTML
  %(prog)s https://example.com --no-stealth          Plain automated browser
  %(prog)s https://example.com --with-head           Show the browser window
  %(prog)s https://example.com --idle-timeout 20     Give up if the page never settles

environment:
  HTTPBROWSE_NO_STEALTH, HTTPBROWSE_WITH_HEAD, HTTPBROWSE_IDLE_TIMEOUT,
  HTTPBROWSE_NAV_TIMEOUT, HTTPBROWSE_LOG_LEVEL, HTTPBROWSE_LOG_JSON
"""


def build_parser() -> argparse.ArgumentParser:
    from .browser_session import DEFAULT_NAVIGATION_TIMEOUT_MS

    parser = argparse.ArgumentParser(
        prog="http-browse",
        description="Fetch an HTML page using a headless browser.",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("url", metavar="URL", help="The URL to browse")
    parser.add_argument("--no-stealth", action="store_true", help="Disable stealth mode")
    parser.add_argument("--with-head", action="store_true", help="Disable headless mode")
    parser.add_argument(
        "--idle-timeout",
        type=_positive_seconds,
        default=None,
        metavar="SECONDS",
        help="Fail if the page does not go network-idle in time (default: wait forever)",
    )
    parser.add_argument(
        "--nav-timeout",
        type=_non_negative_ms,
        default=None,
        metavar="MS",
        help=f"Navigation timeout in milliseconds, 0 disables it (default: {DEFAULT_NAVIGATION_TIMEOUT_MS})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging and tracebacks")
    parser.add_argument("--log-level", default=None, help="Log level (default: WARNING)")
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines")
    parser.add_argument("--error-json", action="store_true", help="Print errors as JSON")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def apply_env_overrides(args: argparse.Namespace) -> argparse.Namespace:
    """Fill unset options from HTTPBROWSE_* environment variables.

    Numeric values that do not parse or are out of range are ignored.
    """
    env_no_stealth = os.environ.get("HTTPBROWSE_NO_STEALTH", "").strip().lower()
    args.no_stealth = args.no_stealth or env_no_stealth in _TRUTHY

    env_with_head = os.environ.get("HTTPBROWSE_WITH_HEAD", "").strip().lower()
    args.with_head = args.with_head or env_with_head in _TRUTHY

    env_log_json = os.environ.get("HTTPBROWSE_LOG_JSON", "").strip().lower()
    args.log_json = args.log_json or env_log_json in _TRUTHY

    env_idle = os.environ.get("HTTPBROWSE_IDLE_TIMEOUT", "").strip()
    if env_idle and args.idle_timeout is None:
        with suppress(argparse.ArgumentTypeError):
            args.idle_timeout = _positive_seconds(env_idle)

    env_nav = os.environ.get("HTTPBROWSE_NAV_TIMEOUT", "").strip()
    if env_nav and args.nav_timeout is None:
        with suppress(argparse.ArgumentTypeError):
            args.nav_timeout = _non_negative_ms(env_nav)

    env_level = os.environ.get("HTTPBROWSE_LOG_LEVEL", "").strip()
    if env_level and not args.log_level:
        args.log_level = env_level

    return args


def _report_error(exc: BaseException, args: argparse.Namespace) -> None:
    from .problem_details import from_exception

    problem = from_exception(exc)
    print(problem.to_json() if args.error_json else problem.to_cli_text(), file=sys.stderr)
    if args.verbose:
        import traceback

        traceback.print_exc(file=sys.stderr)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = apply_env_overrides(parser.parse_args(argv))

    from .logging_config import DEFAULT_LEVEL, configure

    level = "DEBUG" if args.verbose else (args.log_level or DEFAULT_LEVEL)
    configure(json_output=args.log_json, level=level)

    from ._progress import status_spinner
    from .browse import browse_page
    from .browser_session import DEFAULT_NAVIGATION_TIMEOUT_MS

    try:
        # The spinner would interleave with streamed debug logs
        with status_spinner(f"Browsing {args.url}...", enabled=not args.verbose):
            html = browse_page(
                args.url,
                stealth=not args.no_stealth,
                headless=not args.with_head,
                idle_timeout=args.idle_timeout,
                navigation_timeout_ms=(
                    args.nav_timeout if args.nav_timeout is not None else DEFAULT_NAVIGATION_TIMEOUT_MS
                ),
            )
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        _report_error(e, args)
        sys.exit(1)

    sys.stdout.write(html)
    if not html.endswith("\n"):
        sys.stdout.write("\n")
    sys.stdout.flush()


if __name__ == "__main__":
    main()
