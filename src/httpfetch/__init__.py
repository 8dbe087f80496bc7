"""
=============================================================================
HTTPFETCH - A Minimal HTTP/1.1 GET Client Built From Raw Sockets
=============================================================================

This package fetches one URL over plain HTTP/1.1 using nothing but the
socket module: it sends a GET, follows redirects, and streams the response
body to a sink without ever assuming that one recv() holds one line, one
header or one chunk.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      HTTPFETCH ARCHITECTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   core/                                                             │
    │      deadline.py     one wall-clock budget for the whole fetch      │
    │      connection.py   resolve, connect, send, two read modes         │
    │                                                                     │
    │   http/                                                             │
    │      url.py          URL decomposition, Location resolution         │
    │      request.py      the fixed GET request                          │
    │      reader.py       bounded buffer + line splitter                 │
    │      response.py     status line and header parser                  │
    │      headers.py      sorted, merged, case-insensitive headers       │
    │      status_codes.py what to do with each status class              │
    │      body.py         framing choice, Content-Length bodies          │
    │      chunked.py      chunked transfer decoding                      │
    │                                                                     │
    │   client.py          the pipeline and redirect handling             │
    │   sink.py            where the body goes                            │
    │   config.py          ClientConfig                                   │
    │   errors.py          FetchError hierarchy                           │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
QUICK START
=============================================================================

    from httpfetch import HTTPClient, ClientConfig, FileSink

    client = HTTPClient(ClientConfig(timeout=10.0))
    with FileSink("page.html") as sink:
        result = client.fetch("http://example.com/", sink)

    print(result.status, result.bytes_written)

Or from the shell:

    python -m httpfetch http://example.com/ -o page.html

=============================================================================
"""

__version__ = "0.1.0"

from .client import FetchResult, HTTPClient, RequestContext, download, fetch
from .config import ClientConfig
from .errors import (
    DeadlineExceeded,
    FetchError,
    HTTPError,
    InputError,
    NetworkError,
    PolicyError,
    ProtocolError,
    SinkError,
    TooManyRedirects,
)
from .sink import FileSink, Sink, StreamSink

__all__ = [
    # Client
    "HTTPClient",
    "FetchResult",
    "RequestContext",
    "fetch",
    "download",
    "ClientConfig",

    # Sinks
    "Sink",
    "FileSink",
    "StreamSink",

    # Errors
    "FetchError",
    "InputError",
    "NetworkError",
    "ProtocolError",
    "PolicyError",
    "HTTPError",
    "TooManyRedirects",
    "DeadlineExceeded",
    "SinkError",

    "__version__",
]
