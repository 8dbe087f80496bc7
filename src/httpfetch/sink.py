"""
=============================================================================
OUTPUT SINKS
=============================================================================

Where the response body goes. The fetch core only ever needs three things
from a sink:

    open()    create / truncate the destination, called once right before
              the first body byte (never for 204, redirects or failures)
    write()   accept all of the given bytes or raise SinkError
    close()   release the destination

    ┌──────────────┐            ┌──────────────────────────────┐
    │  HTTPClient  │ ─ write ─► │ Sink                         │
    └──────────────┘            │  ├── StreamSink(BytesIO)     │
                                │  └── FileSink("http.out")    │
                                └──────────────────────────────┘

=============================================================================
"""

import os
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Optional, Union

from .errors import SinkError


logger = logging.getLogger(__name__)


class Sink(ABC):
    """Destination for body bytes."""

    bytes_written: int = 0

    def open(self) -> None:
        """Prepare the destination. Called once before the body is written."""

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Write all of data or raise SinkError."""

    def close(self) -> None:
        """Release the destination."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class StreamSink(Sink):
    """Writes into an already-open binary stream (file, BytesIO, pipe)."""

    def __init__(self, stream: Optional[BinaryIO] = None):
        self._stream = stream
        self.bytes_written = 0

    def write(self, data: bytes) -> None:
        if self._stream is None:
            self.open()
        if self._stream is None:
            raise SinkError("write() on a sink with no stream")
        try:
            written = self._stream.write(data)
        except (OSError, ValueError) as e:
            raise SinkError(f"write() failed: {e}") from e

        # Raw (unbuffered) streams may report a short write
        if written is not None and written < len(data):
            raise SinkError(f"write() failed: only {written} of {len(data)} bytes written")
        self.bytes_written += len(data)


class FileSink(StreamSink):
    """
    Writes into a file that is created (or truncated) by open().

    Nothing touches the filesystem until open() is called, so a fetch that
    ends in 204, an error or a redirect loop leaves no file behind.
    """

    def __init__(self, path: Union[str, os.PathLike]):
        super().__init__()
        self.path = Path(path)

    def open(self) -> None:
        if self._stream is not None:
            return
        try:
            self._stream = open(self.path, "wb")
        except OSError as e:
            raise SinkError(f'open("{self.path}") failed: {e}') from e
        logger.info(f'Opened "{self.path}" for writing.')

    def close(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.close()
        except OSError as e:
            raise SinkError(f'close("{self.path}") failed: {e}') from e
        finally:
            self._stream = None

    def size(self) -> int:
        """Size of the file on disk."""
        try:
            return self.path.stat().st_size
        except OSError as e:
            raise SinkError(f'stat("{self.path}") failed: {e}') from e


def as_sink(target: Union[Sink, BinaryIO]) -> Sink:
    """Accept either a Sink or any object with a binary write()."""
    if isinstance(target, Sink):
        return target
    if hasattr(target, "write"):
        return StreamSink(target)
    raise TypeError(f"Expected a Sink or a binary stream, got {type(target).__name__}")
