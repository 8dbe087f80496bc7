"""
=============================================================================
BODY FRAMING AND FIXED-LENGTH STREAMING
=============================================================================

How does the client know where the body ends? HTTP/1.1 gives three answers,
checked in this order:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      FRAMING DECISION                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Content-Encoding present? ──yes──► UnsupportedContentEncoding     │
    │        │ no                          (we never sent Accept-Encoding)│
    │        ▼                                                             │
    │   Transfer-Encoding present? ──yes──► CHUNKED                       │
    │        │ no                           (Content-Length ignored)      │
    │        ▼                                                             │
    │   Content-Length present? ──yes──► FIXED_LENGTH(n)                  │
    │        │ no                                                          │
    │        ▼                                                             │
    │   UNBOUNDED: read until the server closes                           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Transfer-Encoding wins over Content-Length (RFC 7230 §3.3.3). The length
is dropped with a warning, never summed or cross-checked.

The only transfer coding we decode is "chunked". Anything else left in the
header after removing "chunked" is fatal.

=============================================================================
"""

import re
import logging
from enum import Enum
from dataclasses import dataclass
from typing import Optional

from .headers import HeaderTable
from .reader import LineReader
from ..core.connection import Connection
from ..errors import (
    MalformedContentLength,
    UnsupportedContentEncoding,
    UnsupportedTransferEncoding,
)
from ..sink import Sink


logger = logging.getLogger(__name__)

CHUNKED = "chunked"
_DIGITS = re.compile(r"[0-9]+")


class FramingKind(Enum):
    FIXED_LENGTH = "fixed_length"
    CHUNKED = "chunked"
    UNBOUNDED = "unbounded"


@dataclass(frozen=True)
class Framing:
    """How the body is delimited. Decided once per response."""

    kind: FramingKind
    length: Optional[int] = None

    @classmethod
    def fixed(cls, length: int) -> "Framing":
        return cls(FramingKind.FIXED_LENGTH, length)

    @classmethod
    def chunked(cls) -> "Framing":
        return cls(FramingKind.CHUNKED)

    @classmethod
    def unbounded(cls) -> "Framing":
        return cls(FramingKind.UNBOUNDED)

    def __str__(self) -> str:
        if self.kind is FramingKind.FIXED_LENGTH:
            return f"content-length {self.length}"
        return self.kind.value


@dataclass
class BodyResult:
    """
    Outcome of streaming one body.

    complete is False when the server stopped early: fewer bytes than
    Content-Length promised, or a chunked body without its final chunk.
    """

    bytes_written: int
    expected: Optional[int]
    complete: bool


def select_framing(headers: HeaderTable) -> Framing:
    """
    Pick the body framing from the response headers.

    Raises:
        UnsupportedContentEncoding: Any Content-Encoding at all.
        UnsupportedTransferEncoding: A transfer coding other than chunked.
        MalformedContentLength: Content-Length is not a decimal number.
    """
    if headers.get("content-encoding") is not None:
        raise UnsupportedContentEncoding(
            f"Server has returned Content-Encoding "
            f"'{headers['content-encoding']}', but we support none of them"
        )

    transfer_encoding = headers.get("transfer-encoding")
    content_length = headers.get("content-length")

    if transfer_encoding is not None and _has_tokens(transfer_encoding):
        if content_length is not None:
            logger.warning(
                "Received both Transfer-Encoding and Content-Length. "
                "Ignoring the latter per RFC 7230."
            )
        _check_transfer_encoding(transfer_encoding)
        logger.info("Server is using chunked transfer-encoding")
        return Framing.chunked()

    if content_length is not None:
        return Framing.fixed(parse_content_length(content_length))

    logger.warning(
        "Server has responded without both Content-Length and Transfer-Encoding headers."
    )
    return Framing.unbounded()


def parse_content_length(value: str) -> int:
    """
    Parse Content-Length as an unsigned decimal.

    A repeated header arrives here joined as "5, 5"; identical repeats are
    accepted, differing ones are not.
    """
    values = {part.strip() for part in value.split(",")}
    if len(values) != 1:
        raise MalformedContentLength(
            f"Malformed Content-Length response header: conflicting values {value!r}"
        )
    (text,) = values
    if not _DIGITS.fullmatch(text):
        raise MalformedContentLength(
            f"Malformed Content-Length response header: not a number: {value!r}"
        )
    return int(text)


def _has_tokens(value: str) -> bool:
    return bool(value.replace(",", " ").strip())


def _check_transfer_encoding(value: str) -> None:
    """Remove "chunked" once; only commas and whitespace may remain."""
    lowered = value.lower()
    pos = lowered.find(CHUNKED)
    rest = lowered if pos < 0 else lowered[:pos] + lowered[pos + len(CHUNKED):]
    if pos < 0 or _has_tokens(rest):
        raise UnsupportedTransferEncoding(
            f'Server has requested transfer encoding "{value}", we can\'t use that. '
            f"Only 'chunked' transfer encoding is supported."
        )


# =============================================================================
# FIXED-LENGTH / UNBOUNDED STREAMING
# =============================================================================

def stream_body(
    conn: Connection,
    reader: LineReader,
    sink: Sink,
    length: Optional[int],
    read_size: int = 4096,
) -> BodyResult:
    """
    Copy a Content-Length or read-until-close body to the sink.

    =========================================================================
    ALGORITHM
    =========================================================================

        1. Bytes already in the header buffer ("prefetched") go first,
           capped at length. Anything past length is trailing garbage.
        2. Then read straight from the socket in read_size pieces until
           length bytes arrived or the server closed.
        3. Short? Warn, don't fail. Unknown length? Nothing to check.

    =========================================================================

    Args:
        length: Declared Content-Length, or None to read until close.
    """
    written = 0

    prefetched = reader.available
    if length is not None and prefetched > length:
        logger.warning(
            "Detecting (and ignoring) extra data in HTTP response "
            "(beyond the length specified by server)."
        )
        prefetched = length
    if prefetched:
        sink.write(reader.take(prefetched))
        written += prefetched
    reader.clear()

    remaining = None if length is None else length - written
    while (remaining is None or remaining > 0) and not reader.eof:
        want = read_size if remaining is None else min(read_size, remaining)
        data = conn.read(want)
        if not data:
            break
        sink.write(data)
        written += len(data)
        if remaining is not None:
            remaining -= len(data)

    complete = remaining is None or remaining == 0
    if not complete:
        logger.warning(
            f"Response has ended prematurely after {written} of {length} bytes "
            f"(either the server has transmitted wrong length or the response "
            f"body we received is incomplete)"
        )
    return BodyResult(bytes_written=written, expected=length, complete=complete)
