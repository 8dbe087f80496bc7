"""
=============================================================================
HTTP REQUEST EMITTER
=============================================================================

Every request this client sends has the same fixed shape:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET /some/path HTTP/1.1\r\n          ← request line                │
    │  Host: example.com\r\n                ← required by HTTP/1.1        │
    │  Connection: close\r\n                ← one response, then EOF      │
    │  User-Agent: httpfetch/0.1\r\n        ← who is asking               │
    │  \r\n                                 ← end of headers, no body     │
    └─────────────────────────────────────────────────────────────────────┘

No Accept-Encoding is offered, so a conforming server never compresses the
body. Connection: close lets the server end the body by closing the
socket, which the unbounded body strategy relies on.

=============================================================================
"""

import logging

from .url import ParsedURL
from ..core.connection import Connection
from ..errors import MalformedURL


logger = logging.getLogger(__name__)

CRLF = "\r\n"


def build_request(target: ParsedURL, user_agent: str) -> bytes:
    """Serialize the GET request for target."""
    lines = [
        f"GET {target.path} HTTP/1.1",
        f"Host: {target.host_header}",
        "Connection: close",
        f"User-Agent: {user_agent}",
        "",
        "",
    ]
    # Header text is ISO-8859-1 on the wire
    try:
        return CRLF.join(lines).encode("iso-8859-1")
    except UnicodeEncodeError as e:
        raise MalformedURL(f"URL is not percent-encoded: {target.url!r}") from e


def send_request(conn: Connection, target: ParsedURL, user_agent: str) -> int:
    """
    Build and write the request.

    Returns:
        Number of bytes written.

    Raises:
        SendError: The write failed (a short write is never tolerated).
        DeadlineExceeded: The deadline ran out while writing.
    """
    request = build_request(target, user_agent)
    logger.info("Sending request to server...")
    logger.debug(f"[{conn.id}] GET {target.path} HTTP/1.1 (Host: {target.host_header})")
    conn.send_all(request)
    logger.info("Request sent OK.")
    return len(request)
