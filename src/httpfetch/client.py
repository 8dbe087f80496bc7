"""
=============================================================================
HTTP CLIENT
=============================================================================

Ties the pieces together for one fetch:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         FETCH PIPELINE                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   parse_url ─► open_connection ─► send_request                      │
    │                                        │                            │
    │                                        ▼                            │
    │                              read_response_head                     │
    │                                        │                            │
    │            ┌───────────────────────────┼──────────────────────┐     │
    │            ▼                           ▼                      ▼     │
    │          204                          3xx                    2xx    │
    │     FetchResult,             close connection,        select_framing│
    │     sink untouched           depth + 1, recurse        sink.open()  │
    │                                                       stream_body / │
    │                                                       ChunkedDecoder│
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REDIRECTS
=============================================================================

Each hop gets its own RequestContext. The depth lives in the context, not
in a global counter, and the Deadline object is handed from hop to hop
unchanged, so five quick redirects and one slow body share one budget.

    hop 0  depth=0  GET http://a/      → 301 Location: http://b/
    hop 1  depth=1  GET http://b/      → 302 Location: /final
    hop 2  depth=2  GET http://b/final → 200

A redirect that would make depth exceed max_redirects raises
TooManyRedirects. The connection of a hop is always closed before the next
hop connects.

=============================================================================
"""

import socket
import time
import logging
from dataclasses import dataclass
from typing import BinaryIO, Callable, Optional, Union

from .config import ClientConfig
from .core.connection import Connection, Resolver, open_connection
from .core.deadline import Deadline
from .errors import MissingLocation, TooManyRedirects
from .http.body import BodyResult, Framing, FramingKind, select_framing, stream_body
from .http.chunked import ChunkedDecoder
from .http.headers import HeaderTable
from .http.reader import LineReader
from .http.request import send_request
from .http.response import ResponseParser, read_response_head
from .http.status_codes import NO_CONTENT, Disposition
from .http.url import ParsedURL, parse_url, resolve_location
from .sink import FileSink, Sink, as_sink


logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    """State carried into one redirect hop."""

    url: str
    depth: int
    deadline: Deadline


@dataclass
class FetchResult:
    """
    What a successful fetch produced.

    Attributes:
        url: URL of the final hop (after redirects).
        status / reason: Status line of the final response.
        headers: Header table of the final response.
        redirects: Redirects followed to get there.
        framing: Body framing used; None for 204.
        bytes_written: Body bytes handed to the sink.
        complete: False if the server ended the body early.
    """

    url: str
    status: int
    reason: str
    headers: HeaderTable
    redirects: int = 0
    framing: Optional[Framing] = None
    bytes_written: int = 0
    complete: bool = True

    @property
    def no_content(self) -> bool:
        return self.status == NO_CONTENT


class HTTPClient:
    """
    Single-GET HTTP/1.1 client.

    Example:
        client = HTTPClient(ClientConfig(timeout=10.0))
        with FileSink("page.html") as sink:
            result = client.fetch("http://example.com/", sink)

    Args:
        config: Client configuration (validated here).
        resolver: getaddrinfo-shaped name resolver.
        clock: Monotonic clock behind the deadline.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        resolver: Resolver = socket.getaddrinfo,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or ClientConfig()
        self.config.validate()
        self.resolver = resolver
        self.clock = clock

    def fetch(self, url: str, sink: Union[Sink, BinaryIO]) -> FetchResult:
        """
        GET url, following redirects, and stream the body into sink.

        The sink is opened just before the first body byte and is left
        open; closing it is the caller's job.

        Raises:
            FetchError: Any subclass; see httpfetch.errors.
        """
        sink = as_sink(sink)
        deadline = Deadline(self.config.timeout, clock=self.clock)
        result = self._fetch_hop(RequestContext(url=url, depth=0, deadline=deadline), sink)
        logger.debug(f"Fetch of {url} finished after {deadline.elapsed:.3f}s")
        return result

    # =========================================================================
    # ONE HOP
    # =========================================================================

    def _fetch_hop(self, ctx: RequestContext, sink: Sink) -> FetchResult:
        target = parse_url(ctx.url)
        logger.debug(f"Hop {ctx.depth}: {target.url} ({ctx.deadline.elapsed:.3f}s elapsed)")

        with open_connection(target.host, target.port, ctx.deadline, self.resolver) as conn:
            send_request(conn, target, self.config.user_agent)

            conn.start_headers()
            reader = LineReader(self.config.max_header_bytes)
            parser = ResponseParser(
                max_header_count=self.config.max_header_count,
                max_header_bytes=self.config.max_header_bytes,
            )
            read_response_head(conn, reader, parser)
            logger.debug(f"Response head received after {ctx.deadline.elapsed:.3f}s")

            status = parser.status
            if parser.disposition is Disposition.NO_CONTENT:
                logger.info(f"Server returned {status.code}, there is no content to save")
                return FetchResult(
                    url=target.url,
                    status=status.code,
                    reason=status.reason,
                    headers=parser.headers,
                    redirects=ctx.depth,
                )

            headers = parser.headers
            self._log_headers(headers)

            if parser.disposition is Disposition.BODY:
                return self._receive_body(ctx, target, conn, reader, parser, headers, sink)

            location = headers.get("location")
            if location is None:
                raise MissingLocation(status.code)
            next_url = resolve_location(target, location)

        # Connection of this hop is closed by now
        logger.info(f"Server returned redirect: {status.code} {status.reason} -> {next_url}")
        if ctx.depth + 1 > self.config.max_redirects:
            raise TooManyRedirects(self.config.max_redirects)

        return self._fetch_hop(
            RequestContext(url=next_url, depth=ctx.depth + 1, deadline=ctx.deadline),
            sink,
        )

    def _receive_body(
        self,
        ctx: RequestContext,
        target: ParsedURL,
        conn: Connection,
        reader: LineReader,
        parser: ResponseParser,
        headers: HeaderTable,
        sink: Sink,
    ) -> FetchResult:
        framing = select_framing(headers)
        logger.debug(f"Body framing: {framing}")

        conn.start_body()
        sink.open()

        # The reader already took the empty line's whole terminator, even one
        # split across reads. Nothing else is stripped: a body that starts
        # with CRLF keeps it.
        body: BodyResult
        if framing.kind is FramingKind.CHUNKED:
            body = ChunkedDecoder(conn, reader, sink, self.config.read_size).decode()
        else:
            body = stream_body(conn, reader, sink, framing.length, self.config.read_size)

        logger.info(f"Received {body.bytes_written} bytes of response body")
        logger.debug(f"Body received after {ctx.deadline.elapsed:.3f}s")

        return FetchResult(
            url=target.url,
            status=parser.status.code,
            reason=parser.status.reason,
            headers=headers,
            redirects=ctx.depth,
            framing=framing,
            bytes_written=body.bytes_written,
            complete=body.complete,
        )

    def _log_headers(self, headers: HeaderTable) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        logger.debug(f"Response header table ({len(headers)} entries):")
        for name, value in headers.items():
            logger.debug(f"  {name}: {value}")


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def fetch(
    url: str,
    sink: Union[Sink, BinaryIO],
    config: Optional[ClientConfig] = None,
) -> FetchResult:
    """One-shot fetch with a throwaway HTTPClient."""
    return HTTPClient(config).fetch(url, sink)


def download(
    url: str,
    path: Optional[str] = None,
    config: Optional[ClientConfig] = None,
) -> FetchResult:
    """
    Fetch url into a file (config.output_path unless path is given).

    The file is only created once a body is about to be written.
    """
    config = config or ClientConfig()
    with FileSink(path or config.output_path) as sink:
        return HTTPClient(config).fetch(url, sink)
