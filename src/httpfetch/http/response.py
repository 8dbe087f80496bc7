"""
=============================================================================
HTTP RESPONSE HEAD PARSER
=============================================================================

Turns the lines produced by LineReader into a status line and a list of
header entries. Parsing is incremental: lines are fed one at a time as they
become complete, however the bytes happened to arrive.

=============================================================================
STATE MACHINE
=============================================================================

    ┌──────────────┐   status line    ┌──────────┐   empty line   ┌────────────┐
    │ STATUS_LINE  │ ───────────────► │ HEADERS  │ ─────────────► │ BODY_START │
    └──────────────┘                  └──────────┘                └────────────┘
                                        │     ▲
                                        └─────┘
                          "Name: value"  → new HeaderEntry
                          " more text"   → appended to the last entry

=============================================================================
RESPONSE ANATOMY
=============================================================================

    HTTP/1.1 301 Moved Permanently\r\n      ← proto, 3-digit code, reason
    Location: http://example.org/\r\n       ← header
    X-Long: first part\r\n                  ← header ...
    \t  second part\r\n                     ← ... folded: "first part second part"
    \r\n                                    ← end of head
    <body bytes, possibly already buffered>

The status policy is applied as soon as the status line is parsed: an
error code fails the fetch before a single header is read.

=============================================================================
"""

import re
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import List, Optional

from .headers import HeaderEntry, HeaderTable, normalize_name
from .reader import LineReader
from .status_codes import Disposition, classify_status
from ..core.connection import Connection
from ..errors import (
    HeadersTooLong,
    IncompleteHeaders,
    MalformedHeaders,
    MalformedStatusLine,
    TooManyHeaders,
)


logger = logging.getLogger(__name__)


class ParseState(Enum):
    STATUS_LINE = "status_line"
    HEADERS = "headers"
    BODY_START = "body_start"


@dataclass(frozen=True)
class StatusLine:
    version: str
    code: int
    reason: str

    def __str__(self) -> str:
        return f"{self.version} {self.code} {self.reason}".rstrip()


@dataclass
class ResponseParser:
    """
    Incremental parser for the status line and headers of one response.

    Attributes:
        max_header_count: Most header lines accepted (duplicates count).
        max_header_bytes: Most bytes consumed while in the HEADERS state.
        state: Current ParseState.
        status: Parsed status line, once seen.
        disposition: Result of the status policy, once the status is seen.
        entries: Headers in arrival order.
    """

    max_header_count: int = 100
    max_header_bytes: int = 4096

    state: ParseState = ParseState.STATUS_LINE
    status: Optional[StatusLine] = None
    disposition: Optional[Disposition] = None
    entries: List[HeaderEntry] = field(default_factory=list)
    header_bytes: int = 0

    # <proto> SP <3-digit code> [SP <reason, spaces allowed>]
    STATUS_LINE_PATTERN = re.compile(r"^(HTTP/\d+\.\d+)[ \t]+(\d{3})(?:[ \t]+(.*))?$")

    def feed_line(self, line: bytes, consumed: Optional[int] = None) -> ParseState:
        """
        Process one line (terminator already stripped).

        Args:
            line: Raw line bytes.
            consumed: Bytes this line took in the stream, terminator
                      included. Defaults to len(line) + 2.

        Returns:
            The state after the line.
        """
        if consumed is None:
            consumed = len(line) + 2

        # Header bytes are ISO-8859-1 by definition; this never fails
        text = line.decode("iso-8859-1")

        if self.state is ParseState.STATUS_LINE:
            self.status = self._parse_status_line(text)
            self.disposition = classify_status(self.status.code, self.status.reason)
            self.state = ParseState.HEADERS
            return self.state

        if self.state is ParseState.BODY_START:
            raise RuntimeError("Response head is already complete")

        self.header_bytes += consumed
        if self.header_bytes > self.max_header_bytes:
            raise HeadersTooLong(
                f"HTTP response headers returned by server are too long "
                f"(> {self.max_header_bytes} bytes)"
            )

        if not text:
            self.state = ParseState.BODY_START
        elif text[0] in " \t":
            self._continue_header(text)
        else:
            self._start_header(text)
        return self.state

    @property
    def headers(self) -> HeaderTable:
        """The deduplicated header table (build once the head is complete)."""
        return HeaderTable.from_entries(self.entries)

    # =========================================================================
    # LINE HANDLERS
    # =========================================================================

    def _parse_status_line(self, text: str) -> StatusLine:
        match = self.STATUS_LINE_PATTERN.match(text)
        if not match:
            raise MalformedStatusLine(f"Invalid status line: {text!r}")
        version, code, reason = match.groups()
        return StatusLine(version=version, code=int(code), reason=(reason or "").strip())

    def _continue_header(self, text: str) -> None:
        """
        Obsolete line folding: the leading run of blanks becomes one space
        and the rest, trailing blanks included, is appended to the header
        opened last. "X-A:" folded with "   foo" gives " foo".
        """
        if not self.entries:
            raise MalformedHeaders(
                "Server has sent a malformed first HTTP header (starts with space or tab)"
            )
        entry = self.entries[-1]
        fragment = text.lstrip(" \t")
        logger.debug(f'Appending "{fragment}" to "{entry.value}" in "{entry.name}" header')
        entry.append(fragment)

    def _start_header(self, text: str) -> None:
        name, colon, value = text.partition(":")
        if not colon:
            raise MalformedHeaders(f"Server has sent a malformed HTTP header (no colon): {text!r}")

        name = normalize_name(name)
        if not name:
            raise MalformedHeaders(f"Server has sent a header with an empty name: {text!r}")

        if len(self.entries) >= self.max_header_count:
            raise TooManyHeaders(
                f"Server has sent more than {self.max_header_count} HTTP headers"
            )

        entry = HeaderEntry(name=name, value=value.strip(" \t"))
        logger.debug(f"Found header '{entry.name}': '{entry.value}' (#{len(self.entries)})")
        self.entries.append(entry)


def read_response_head(
    conn: Connection,
    reader: LineReader,
    parser: ResponseParser,
) -> ResponseParser:
    """
    Drive the parser from the connection until the head is complete.

    Stops early after the status line when the status needs no headers
    (204). On return, any bytes still unread in reader are the start of
    the body.

    Raises:
        HeadersTooLong: The buffer filled up without a complete line.
        IncompleteHeaders: The server closed before the empty line.
        plus anything the parser or status policy raises.
    """
    while parser.state is not ParseState.BODY_START:
        mark = reader.consumed
        line = reader.next_line()

        if line is None:
            if reader.is_full:
                raise HeadersTooLong(
                    f"HTTP response headers returned by server are too long "
                    f"(> {reader.capacity} bytes)"
                )
            if reader.eof:
                # poll_read() gave b"" after a readiness wake-up: the peer closed
                raise IncompleteHeaders(
                    "Connection closed before the end of the response headers"
                )
            reader.fill(conn.poll_read)  # None: nothing yet, wait again
            continue

        logger.debug(f'Received line: "{line.decode("iso-8859-1")}"')
        parser.feed_line(line, reader.consumed - mark)

        if parser.disposition is Disposition.NO_CONTENT:
            break

    if parser.state is ParseState.BODY_START:
        logger.info("All HTTP response headers have been received")
    return parser
