"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

This module opens the TCP connection for one request attempt and wraps the
raw socket with the small API the response parser needs.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

The server might write its response in one go:

    send("HTTP/1.1 200 OK\r\nContent-Length: 5\r\n\r\nhello")

and we might receive it as ANY split of those bytes:

    recv() → "HTTP/1.1 2"
    recv() → "00 OK\r"
    recv() → "\nContent-Length: 5\r\n\r\nhel"
    recv() → "lo"

Nothing above this module may assume that one recv() is one line, one
header or one chunk. The Connection just moves bytes; LineReader and the
body streamers put the boundaries back.

=============================================================================
TWO READ MODES
=============================================================================

    ┌──────────────────────────────────────────────────────────────────┐
    │  HEADER PHASE                    BODY PHASE                      │
    ├──────────────────────────────────────────────────────────────────┤
    │  socket.setblocking(False)       socket.setblocking(True)        │
    │  selector.select(remaining)      socket.settimeout(remaining)    │
    │  recv() what is there            recv() up to N bytes            │
    │                                                                  │
    │  poll_read()                     read()                          │
    └──────────────────────────────────────────────────────────────────┘

While reading headers we do not know how long the response is. A blocking
recv() asking for more bytes than a tiny response contains would just sit
there until the deadline. So the header phase waits for readability and
then takes whatever is available. Once the framing is known the socket goes
back to plain blocking reads.

Every blocking call first asks the shared Deadline how long it may block.

=============================================================================
"""

import socket
import selectors
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from .deadline import Deadline
from ..errors import ConnectError, ReceiveError, ResolutionError, SendError


logger = logging.getLogger(__name__)


# getaddrinfo(host, port, family, type) -> [(family, type, proto, canonname, sockaddr), ...]
Resolver = Callable[..., List[Tuple[Any, ...]]]


class ConnectionState(Enum):
    """Where the connection is in its single request/response exchange."""
    CONNECTED = "connected"    # TCP established, nothing sent yet
    HEADERS = "headers"        # Request sent, reading status line and headers
    BODY = "body"              # Framing known, streaming the body
    CLOSED = "closed"          # Socket released


@dataclass
class Connection:
    """
    A connected socket owned by exactly one request attempt.

    Attributes:
        socket: The connected client socket.
        address: (host, port) as given by the caller, for logging.
        deadline: The fetch-wide deadline every blocking call honours.
        id: Short identifier used in log lines.
        state: Current ConnectionState.
        bytes_sent / bytes_received: Running totals.
    """

    socket: socket.socket
    address: Tuple[str, int]
    deadline: Deadline

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.CONNECTED
    bytes_sent: int = 0
    bytes_received: int = 0

    _selector: Optional[selectors.BaseSelector] = field(default=None, repr=False)

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_all(self, data: bytes) -> None:
        """
        Write every byte of data or fail.

        sendall() keeps calling send() until the kernel took everything, so
        a short write can only surface as an exception here.
        """
        self.socket.settimeout(self.deadline.check("sending request"))
        try:
            self.socket.sendall(data)
        except socket.timeout as e:
            raise self.deadline.exceeded("sending request") from e
        except OSError as e:
            raise SendError(f"write() to {self._peer} failed: {e}") from e
        self.bytes_sent += len(data)

    # =========================================================================
    # READING
    # =========================================================================

    def start_headers(self) -> None:
        """Switch to non-blocking reads gated by a readiness wait."""
        self.socket.setblocking(False)
        self._selector = selectors.DefaultSelector()
        self._selector.register(self.socket, selectors.EVENT_READ)
        self.state = ConnectionState.HEADERS

    def start_body(self) -> None:
        """Framing is known now: back to plain blocking reads."""
        self._close_selector()
        self.socket.setblocking(True)
        self.state = ConnectionState.BODY

    def poll_read(self, max_bytes: int) -> Optional[bytes]:
        """
        Wait until the socket is readable, then take what is there.

        Returns:
            The bytes read, b"" once the server closed its side, or None
            when the wake-up produced nothing ("nothing yet").

        Raises:
            DeadlineExceeded: The readiness wait outlived the deadline.
            ReceiveError: recv() failed.
        """
        if self._selector is None:
            self.start_headers()

        remaining = self.deadline.check("waiting for response headers")
        if not self._selector.select(timeout=remaining):
            # select() only comes back empty when its timeout ran out
            self.deadline.check("waiting for response headers")
            return None

        try:
            data = self.socket.recv(max_bytes)
        except (BlockingIOError, InterruptedError):
            return None

        # A readable socket yielding b"" is end of stream, not "nothing yet"
        except OSError as e:
            raise ReceiveError(f"read() from {self._peer} failed: {e}") from e

        self.bytes_received += len(data)
        return data

    def read(self, max_bytes: int) -> bytes:
        """
        Blocking read of at most max_bytes. Returns b"" at end of stream.
        """
        if max_bytes <= 0:
            raise ValueError("read() needs a positive size")

        self.socket.settimeout(self.deadline.check("reading response body"))
        try:
            data = self.socket.recv(max_bytes)
        except socket.timeout as e:
            raise self.deadline.exceeded("reading response body") from e
        except OSError as e:
            raise ReceiveError(f"read() from {self._peer} failed: {e}") from e

        self.bytes_received += len(data)
        return data

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> None:
        """Release the socket. Safe to call more than once."""
        if self.state == ConnectionState.CLOSED:
            return

        self._close_selector()
        try:
            self.socket.close()
        except OSError:
            pass  # nothing left to release

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection to {self._peer} closed "
            f"({self.bytes_sent} bytes sent, {self.bytes_received} received)"
        )

    def _close_selector(self) -> None:
        if self._selector is not None:
            self._selector.close()
            self._selector = None

    @property
    def _peer(self) -> str:
        return f"{self.address[0]}:{self.address[1]}"

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        """
        Allows:

            with open_connection(host, port, deadline) as conn:
                ...
            # socket released here on every exit path
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions


def open_connection(
    host: str,
    port: int,
    deadline: Deadline,
    resolver: Resolver = socket.getaddrinfo,
) -> Connection:
    """
    Resolve host:port and connect to the first candidate.

    =========================================================================
    NO FALLBACK
    =========================================================================

    getaddrinfo() may return several endpoints (IPv6 and IPv4, several A
    records). We take the first one of any family and stop there: a failed
    connect is fatal for this attempt, it is not retried on the next
    candidate.

    =========================================================================

    Raises:
        ResolutionError: The name could not be resolved.
        ConnectError: socket() or connect() failed.
        DeadlineExceeded: The deadline ran out before we got connected.
    """
    deadline.check("resolving host")
    try:
        candidates = resolver(host, port, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except (OSError, UnicodeError) as e:
        # UnicodeError: the IDNA codec rejected a label ("a..b", > 63 chars)
        raise ResolutionError(f'Bad hostname or address: "{host}": {e}') from e
    if not candidates:
        raise ResolutionError(f'Bad hostname or address: "{host}": no addresses')

    family, socktype, proto, _, sockaddr = candidates[0]

    try:
        sock = socket.socket(family, socktype, proto)
    except OSError as e:
        raise ConnectError(f"socket() failed: {e}") from e

    logger.info(f"Connecting to {host}:{port}...")
    try:
        sock.settimeout(deadline.check("connecting"))
        sock.connect(sockaddr)
    except socket.timeout as e:
        sock.close()
        raise deadline.exceeded("connecting") from e
    except OSError as e:
        sock.close()
        raise ConnectError(f"connect({host}:{port}) failed: {e}") from e
    except BaseException:
        sock.close()
        raise

    logger.info(f"Connected to {host}:{port} OK")
    return Connection(socket=sock, address=(host, port), deadline=deadline)
