"""
=============================================================================
LINE-ORIENTED STREAM READER
=============================================================================

A fixed-capacity receive buffer with two cursors, and the line splitter
that runs over it.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        LineReader._buffer                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   0          read_pos            write_pos              capacity    │
    │   │ consumed  │      unread       │        free space      │        │
    │   ▼───────────▼───────────────────▼──────────────────────────▼      │
    │   [HTTP/1.1 200 OK\r\nContent-Len][.........................]       │
    │                       ▲                                             │
    │                  _scan_pos: everything before here is known         │
    │                  to hold no line terminator                         │
    │                                                                     │
    │   Invariant: 0 <= read_pos <= write_pos <= capacity                 │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
WHAT COUNTS AS A LINE BREAK
=============================================================================

Servers in the wild end lines with "\r\n", "\n", "\r" and occasionally
"\n\r". The splitter takes whichever of '\r' / '\n' comes first and, if the
other one follows immediately, swallows it too:

    "abc\r\ndef"   → "abc", then "def"
    "abc\n\rdef"   → "abc", then "def"
    "abc\ndef"     → "abc", then "def"
    "abc\n\ndef"   → "abc", then "", then "def"

A break can arrive split across two reads: "abc\r" now, "\ndef" later. If
the terminator is the very last buffered byte we cannot yet tell "\r" from
the first half of "\r\n", so next_line() waits for more data instead of
guessing. Guessing wrong would turn the stray "\n" into an empty line
(ending the headers early) or into the first byte of a chunk.

=============================================================================
"""

import re
from typing import Callable, Optional


CR = 0x0D
LF = 0x0A
_PARTNER = {CR: LF, LF: CR}

_TERMINATOR = re.compile(rb"[\r\n]")


class LineReader:
    """
    Bounded receive buffer plus read/write cursors.

    Args:
        capacity: Maximum number of bytes the buffer can hold. Nothing here
                  grows it; callers decide what "full" means for them.
    """

    def __init__(self, capacity: int):
        if capacity < 2:
            raise ValueError("LineReader needs room for at least two bytes")
        self.capacity = capacity
        self._buffer = bytearray(capacity)
        self.read_pos = 0
        self.write_pos = 0
        self._scan_pos = 0
        self.eof = False
        self.consumed = 0  # total bytes consumed since creation

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def available(self) -> int:
        """Unread bytes in the buffer."""
        return self.write_pos - self.read_pos

    @property
    def space(self) -> int:
        """Free bytes after write_pos."""
        return self.capacity - self.write_pos

    @property
    def is_full(self) -> bool:
        return self.write_pos == self.capacity

    def unread(self) -> bytes:
        """Copy of the unread region."""
        return bytes(self._buffer[self.read_pos:self.write_pos])

    # =========================================================================
    # FILLING
    # =========================================================================

    def feed(self, data: bytes) -> int:
        """
        Append data after write_pos. An empty data means end of stream.

        Raises:
            ValueError: data does not fit; callers size their reads by space.
        """
        if not data:
            self.eof = True
            return 0
        n = len(data)
        if n > self.space:
            raise ValueError(f"{n} bytes do not fit in {self.space} bytes of free space")
        self._buffer[self.write_pos:self.write_pos + n] = data
        self.write_pos += n
        return n

    def fill(self, read: Callable[[int], Optional[bytes]]) -> Optional[int]:
        """
        Ask read() for as many bytes as fit and append them.

        Returns:
            Bytes added, 0 at end of stream, None if read() had nothing yet.
        """
        if self.space == 0:
            return 0 if self.eof else None
        data = read(self.space)
        if data is None:
            return None
        return self.feed(data)

    def compact(self) -> None:
        """Move the unread region to the front of the buffer."""
        if self.read_pos == 0:
            return
        n = self.available
        self._buffer[0:n] = self._buffer[self.read_pos:self.write_pos]
        self._scan_pos = max(0, self._scan_pos - self.read_pos)
        self.read_pos = 0
        self.write_pos = n

    def clear(self) -> None:
        """Forget every buffered byte (end of stream is remembered)."""
        self.read_pos = self.write_pos = self._scan_pos = 0

    # =========================================================================
    # CONSUMING
    # =========================================================================

    def next_line(self) -> Optional[bytes]:
        """
        Split off the next complete line.

        Returns:
            The line without its terminator, or None if no complete line is
            buffered yet. None plus is_full means the line can never fit.
        """
        start = max(self._scan_pos, self.read_pos)
        match = _TERMINATOR.search(self._buffer, start, self.write_pos)
        if match is None:
            self._scan_pos = self.write_pos
            return None

        end = match.start()
        after = end + 1
        if after < self.write_pos:
            if self._buffer[after] == _PARTNER[self._buffer[end]]:
                after += 1
        elif not self.eof and not self.is_full:
            # Terminator is the last byte we have; its partner may be in flight
            self._scan_pos = end
            return None

        line = bytes(self._buffer[self.read_pos:end])
        self._advance(after)
        return line

    def strip_leading_terminator(self) -> bool:
        """
        Drop at most one line break sitting at read_pos.

        Only one: whatever follows it may be binary data that merely looks
        like another break.
        """
        if self.read_pos >= self.write_pos:
            return False
        first = self._buffer[self.read_pos]
        if first not in _PARTNER:
            return False
        pos = self.read_pos + 1
        if pos < self.write_pos and self._buffer[pos] == _PARTNER[first]:
            pos += 1
        self._advance(pos)
        return True

    def take(self, n: int) -> bytes:
        """Consume and return up to n unread bytes."""
        n = min(n, self.available)
        data = bytes(self._buffer[self.read_pos:self.read_pos + n])
        self._advance(self.read_pos + n)
        return data

    def _advance(self, pos: int) -> None:
        self.consumed += pos - self.read_pos
        self.read_pos = pos
        if self._scan_pos < pos:
            self._scan_pos = pos

    def __repr__(self) -> str:
        return (
            f"LineReader(capacity={self.capacity}, read_pos={self.read_pos}, "
            f"write_pos={self.write_pos}, eof={self.eof})"
        )
