"""
=============================================================================
HTTPFETCH CLI ENTRY POINT
=============================================================================

Command-line front end: fetch one URL and save the body to a file.

=============================================================================
USAGE
=============================================================================

    # Save to ./http.out
    python -m httpfetch http://example.com/

    # Choose the output file
    python -m httpfetch http://example.com/ -o page.html

    # Tighter deadline, fewer redirects, every received line logged
    python -m httpfetch http://example.com/ --timeout 5 --max-redirects 2 -l DEBUG

=============================================================================
EXIT STATUS
=============================================================================

    0   success (including 204 No Content)
    2   bad URL or unsupported scheme
    3   network failure (resolve, connect, send, receive)
    4   protocol violation by the server
    5   HTTP error status or other refused response
    6   too many redirects
    7   deadline exceeded
    8   the output file could not be written

Library code only raises; this module is the one place that catches a
FetchError, logs it and turns it into an exit status.

=============================================================================
"""

import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from . import __version__
from .client import HTTPClient
from .config import ClientConfig
from .errors import FetchError
from .sink import FileSink


logger = logging.getLogger("httpfetch")


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def build_parser(defaults: ClientConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="httpfetch",
        description="Fetch one URL over HTTP/1.1 and save the response body",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m httpfetch http://example.com/                 # Save to http.out
  python -m httpfetch http://example.com/ -o page.html    # Custom output file
  python -m httpfetch example.com:8080/ --timeout 5       # No scheme: http assumed
        """
    )

    parser.add_argument("url", help="URL to fetch: [http://]host[:port]/path")

    # ─────────────────────────────────────────────────────────────────────
    # OUTPUT
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--output", "-o",
        default=defaults.output_path,
        help=f"File to save the body to (default: {defaults.output_path})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LIMITS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--timeout", "-t",
        type=float,
        default=defaults.timeout,
        help=f"Deadline in seconds for the whole fetch (default: {defaults.timeout})"
    )

    parser.add_argument(
        "--max-redirects",
        type=int,
        default=defaults.max_redirects,
        help=f"Redirects to follow before giving up (default: {defaults.max_redirects})"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=defaults.log_level.upper(),
        help=f"Logging level (default: {defaults.log_level.upper()})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"httpfetch {__version__}"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point. Returns the process exit status.
    """
    try:
        defaults = ClientConfig.from_env()
    except ValueError as e:
        _setup_logging("INFO")
        logger.error(f"Invalid configuration in environment: {e}")
        return 2

    args = build_parser(defaults).parse_args(argv)

    # CLI arguments override the environment
    config = replace(
        defaults,
        timeout=args.timeout,
        max_redirects=args.max_redirects,
        output_path=args.output,
        log_level=args.log_level,
    )
    _setup_logging(config.log_level)

    try:
        config.validate()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    sink = FileSink(config.output_path)
    try:
        with sink:
            result = HTTPClient(config).fetch(args.url, sink)

        if result.no_content:
            logger.info("Nothing saved.")
        else:
            logger.info(
                f'Saved {result.bytes_written} bytes to "{sink.path}" '
                f"(file size {sink.size()} bytes)"
            )
    except FetchError as e:
        logger.error(e.message)
        return e.exit_code

    return 0


if __name__ == "__main__":
    sys.exit(main())
