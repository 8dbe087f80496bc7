"""
=============================================================================
CHUNKED TRANSFER DECODING
=============================================================================

A chunked body is a sequence of length-prefixed pieces:

    4\r\n            ← size line, hexadecimal
    Wiki\r\n         ← 4 payload bytes, then a line break
    5;note=x\r\n     ← extensions after ';' are ignored
    pedia\r\n
    0\r\n            ← size 0: end of body
    \r\n

=============================================================================
STATE MACHINE
=============================================================================

    ┌────────────────┐  size > 0   ┌───────────────────┐
    │ READ_SIZE_LINE │ ──────────► │ STREAM_CHUNK_BODY │
    └────────────────┘ ◄────────── └───────────────────┘
            │            payload done
            │ size == 0
            ▼
        ┌──────┐
        │ DONE │     trailers after the last chunk are not read
        └──────┘

=============================================================================
BUFFER REUSE
=============================================================================

The decoder runs over the same LineReader that parsed the headers, so the
body bytes that arrived together with the headers are already in it. A
chunk is handled one of two ways:

    Whole payload buffered          Payload runs past the buffer
    ──────────────────────          ────────────────────────────
    write it from the buffer,       write what is buffered, then read
    compact the remainder to        the rest straight from the socket
    the front, look for the         into the sink; the buffer starts
    next size line                  empty for the next size line

Before each size line at most one leading line break is dropped: that is
the break that closes the previous payload.

=============================================================================
"""

import re
import logging
from enum import Enum
from typing import Optional

from .body import BodyResult
from .reader import LineReader
from ..core.connection import Connection
from ..errors import MalformedChunkSize
from ..sink import Sink


logger = logging.getLogger(__name__)

_SIZE_LINE = re.compile(rb"[ \t]*([0-9A-Fa-f]+)(.*)", re.DOTALL)
_EXTENSION = re.compile(rb"[ \t]*(?:;.*)?", re.DOTALL)


class ChunkState(Enum):
    READ_SIZE_LINE = "read_size_line"
    STREAM_CHUNK_BODY = "stream_chunk_body"
    DONE = "done"


def parse_chunk_size(line: bytes) -> int:
    """
    Parse a chunk size line.

    Hex digits, optionally followed by whitespace and a ";extension". A
    line whose size is 0 is final whatever follows the digits.

    Raises:
        MalformedChunkSize: No hex digits, or junk after them.
    """
    match = _SIZE_LINE.fullmatch(line)
    if not match:
        raise MalformedChunkSize(f"Malformed chunk length: not a number: {line!r}")
    size = int(match.group(1), 16)
    if size and not _EXTENSION.fullmatch(match.group(2)):
        raise MalformedChunkSize(f"Malformed chunk length: {line!r}")
    return size


class ChunkedDecoder:
    """
    Streams a chunked body from reader + conn into sink.

    Args:
        conn: Connection in body (blocking) mode.
        reader: The header-phase LineReader; its unread bytes are the start
                of the body.
        sink: Destination.
        read_size: Largest single read when streaming a long payload.
    """

    def __init__(self, conn: Connection, reader: LineReader, sink: Sink, read_size: int = 4096):
        self.conn = conn
        self.reader = reader
        self.sink = sink
        self.read_size = read_size

        self.state = ChunkState.READ_SIZE_LINE
        self.bytes_written = 0
        self.chunks = 0
        self._chunk_remaining = 0

    def decode(self) -> BodyResult:
        """
        Run the state machine to the end.

        A stream that ends before a size line or a payload completes is not
        an error: the bytes received so far stay written and the result is
        marked incomplete.
        """
        self.reader.compact()

        while self.state is not ChunkState.DONE:
            if self.state is ChunkState.READ_SIZE_LINE:
                size = self._read_size_line()
                if size is None:
                    return self._ended_prematurely()
                if size == 0:
                    logger.debug("Last chunk received.")
                    self.state = ChunkState.DONE
                else:
                    logger.debug(f"Chunk length: {size}")
                    self._chunk_remaining = size
                    self.state = ChunkState.STREAM_CHUNK_BODY
            else:
                if not self._stream_chunk():
                    return self._ended_prematurely()
                self.chunks += 1
                self.state = ChunkState.READ_SIZE_LINE

        return BodyResult(bytes_written=self.bytes_written, expected=None, complete=True)

    # =========================================================================
    # STATES
    # =========================================================================

    def _read_size_line(self) -> Optional[int]:
        """Next chunk size, or None if the stream ended first."""
        reader = self.reader

        # A lone buffered "\r" may be half of the previous payload's "\r\n"
        while reader.available < 2 and not reader.eof:
            self._fill()
        reader.strip_leading_terminator()

        while True:
            line = reader.next_line()
            if line is not None:
                return parse_chunk_size(line)
            if reader.eof:
                return None
            if reader.is_full:
                reader.compact()
                if reader.is_full:
                    raise MalformedChunkSize(
                        f"Chunk size line longer than {reader.capacity} bytes"
                    )
            self._fill()

    def _stream_chunk(self) -> bool:
        """Write the current payload. False if the stream ended mid-payload."""
        reader = self.reader
        remaining = self._chunk_remaining

        if reader.available >= remaining:
            self._write(reader.take(remaining))
            reader.compact()
            self._chunk_remaining = 0
            return True

        if reader.available:
            remaining -= reader.available
            self._write(reader.take(reader.available))
        reader.clear()

        while remaining:
            if reader.eof:
                self._chunk_remaining = remaining
                return False
            data = self.conn.read(min(remaining, self.read_size))
            if not data:
                reader.feed(data)  # remember end of stream
                continue
            self._write(data)
            remaining -= len(data)

        self._chunk_remaining = 0
        return True

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _fill(self) -> None:
        self.reader.compact()
        self.reader.fill(self.conn.read)

    def _write(self, data: bytes) -> None:
        self.sink.write(data)
        self.bytes_written += len(data)

    def _ended_prematurely(self) -> BodyResult:
        logger.warning(
            "Response has ended prematurely (while waiting for another chunk). "
            "It might be incomplete"
        )
        return BodyResult(bytes_written=self.bytes_written, expected=None, complete=False)
