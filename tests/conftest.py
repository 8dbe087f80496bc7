"""
pytest configuration and fixtures.
"""

import socket
import threading
import time
from typing import Callable, Dict, Generator, List, Optional, Sequence, Union
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httpfetch import ClientConfig, HTTPClient
from httpfetch.core.deadline import Deadline


# A response script is a list of steps: bytes are sent as one write,
# a float pauses for that many seconds.
Script = Sequence[Union[bytes, float]]


@pytest.fixture
def sample_ok_response() -> bytes:
    """200 with a 5-byte Content-Length body."""
    return (
        b"HTTP/1.1 200 OK\r\n"
        b"Content-Type: text/plain\r\n"
        b"Content-Length: 5\r\n"
        b"\r\n"
        b"hello"
    )


@pytest.fixture
def sample_chunked_response() -> bytes:
    """The classic chunked example; decodes to "Wikipedia in\\r\\n\\r\\nchunks."."""
    return (
        b"HTTP/1.1 200 OK\r\n"
        b"Transfer-Encoding: chunked\r\n"
        b"\r\n"
        b"4\r\nWiki\r\n"
        b"5\r\npedia\r\n"
        b"E\r\n in\r\n\r\nchunks.\r\n"
        b"0\r\n"
        b"\r\n"
    )


@pytest.fixture
def config() -> ClientConfig:
    """Default test client configuration."""
    return ClientConfig(
        timeout=5.0,
        max_redirects=7,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def deadline() -> Deadline:
    """Generous deadline for unit tests."""
    return Deadline(5.0)


# =============================================================================
# SCRIPTED LOOPBACK SERVER
# =============================================================================

class ScriptedServer:
    """
    Loopback TCP server that answers each connection with a canned script.

    Scripts are looked up by request path first, then taken from a FIFO
    queue. Each connection is served once and closed, like a server that
    honours Connection: close.
    """

    def __init__(self):
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._socket.bind(('127.0.0.1', 0))
        self._socket.listen(8)
        self._socket.settimeout(0.2)
        self.port = self._socket.getsockname()[1]

        self.routes: Dict[str, Script] = {}
        self.queue: List[Script] = []
        self.requests: List[bytes] = []
        self._running = True
        self._thread = threading.Thread(target=self._serve, daemon=True)

    @property
    def base_url(self) -> str:
        return f"http://127.0.0.1:{self.port}"

    def url(self, path: str = "/") -> str:
        return self.base_url + path

    def route(self, path: str, *steps: Union[bytes, float]) -> None:
        self.routes[path] = steps

    def enqueue(self, *steps: Union[bytes, float]) -> None:
        self.queue.append(steps)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._running = False
        self._thread.join(timeout=5.0)
        self._socket.close()

    def _serve(self) -> None:
        while self._running:
            try:
                client, _ = self._socket.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with client:
                self._handle(client)

    def _handle(self, client: socket.socket) -> None:
        client.settimeout(5.0)
        client.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        request = b""
        try:
            while b"\r\n\r\n" not in request:
                data = client.recv(4096)
                if not data:
                    break
                request += data
        except OSError:
            return
        self.requests.append(request)

        script = self._script_for(request)
        try:
            for step in script:
                if isinstance(step, (int, float)):
                    time.sleep(step)
                else:
                    client.sendall(step)
        except OSError:
            pass  # client gave up first

    def _script_for(self, request: bytes) -> Script:
        parts = request.split(b" ", 2)
        path = parts[1].decode("latin-1") if len(parts) > 1 else "/"
        if path in self.routes:
            return self.routes[path]
        if self.queue:
            return self.queue.pop(0)
        return [b"HTTP/1.1 404 Not Found\r\nContent-Length: 0\r\n\r\n"]


@pytest.fixture
def scripted_server() -> Generator[ScriptedServer, None, None]:
    """A running ScriptedServer, stopped after the test."""
    server = ScriptedServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def make_client(config: ClientConfig) -> Callable[..., HTTPClient]:
    """Factory for clients built on the test config, with overrides."""
    def _make(**overrides) -> HTTPClient:
        values = {**config.__dict__, **overrides}
        return HTTPClient(ClientConfig(**values))
    return _make


# =============================================================================
# IN-MEMORY CONNECTION
# =============================================================================

class FakeConnection:
    """
    Stands in for Connection in parser and decoder tests.

    Delivers a scripted list of pieces. None in the script is a wake-up
    with nothing to read; once the script runs out the stream is at EOF.
    A piece larger than the caller's max_bytes is handed out in parts.
    """

    def __init__(self, pieces: Sequence[Optional[bytes]]):
        self.pieces: List[Optional[bytes]] = list(pieces)
        self.id = "fake"
        self.reads = 0

    def poll_read(self, max_bytes: int) -> Optional[bytes]:
        self.reads += 1
        if not self.pieces:
            return b""
        piece = self.pieces.pop(0)
        if piece is None:
            return None
        if len(piece) > max_bytes:
            self.pieces.insert(0, piece[max_bytes:])
            piece = piece[:max_bytes]
        return piece

    def read(self, max_bytes: int) -> bytes:
        while True:
            data = self.poll_read(max_bytes)
            if data is not None:
                return data

    def start_headers(self) -> None:
        pass

    def start_body(self) -> None:
        pass


@pytest.fixture
def fake_connection() -> Callable[..., FakeConnection]:
    """Factory: fake_connection(b"piece", None, b"piece", ...)."""
    def _make(*pieces: Optional[bytes]) -> FakeConnection:
        return FakeConnection(pieces)
    return _make


@pytest.fixture
def split() -> Callable[[bytes, int], List[bytes]]:
    """split(data, n): data cut into pieces of at most n bytes."""
    def _split(data: bytes, size: int) -> List[bytes]:
        return [data[i:i + size] for i in range(0, len(data), size)]
    return _split
