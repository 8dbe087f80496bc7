"""
=============================================================================
URL DECOMPOSITION
=============================================================================

Splits the one URL form we accept into the pieces a request needs:

    http://example.com:8080/some/path?q=1
    ─┬──   ─────┬───── ─┬── ──────┬──────
     │          │       │         │
   scheme      host    port     path (request target)

Rules, in the order they are applied:

    1. Scheme is everything before the first ':'. No ':' at all means
       "assume http" (with a warning). So does "host:port/..." where the
       text after the colon is a port number.
    2. Only "http" is accepted. "https" is recognised and refused
       explicitly; anything else is an unsupported scheme.
    3. "//" must follow "http:".
    4. The rest splits on the first '/' into authority and path. No '/'
       at all is a malformed URL. The request path is always "/" plus
       whatever followed that slash (possibly nothing).
    5. The authority splits on its LAST ':' into host and port (default
       80), so "[::1]:8080" keeps its IPv6 colons.

=============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Tuple
from urllib.parse import urljoin

from ..errors import MalformedURL, UnsupportedScheme


logger = logging.getLogger(__name__)

DEFAULT_PORT = 80


@dataclass(frozen=True)
class ParsedURL:
    """A decomposed http URL."""

    scheme: str
    host: str
    port: int
    path: str

    @property
    def host_header(self) -> str:
        """Value for the Host header: port only when it is not the default."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port == DEFAULT_PORT:
            return host
        return f"{host}:{self.port}"

    @property
    def url(self) -> str:
        """The normalized absolute URL."""
        return f"{self.scheme}://{self.host_header}{self.path}"

    def __str__(self) -> str:
        return self.url


def parse_url(url: str) -> ParsedURL:
    """
    Decompose url.

    Raises:
        UnsupportedScheme: Scheme other than http (https included).
        MalformedURL: Missing "//", missing path separator, bad host/port.
    """
    text = url.strip()
    candidate, sep, rest = text.partition(":")

    if not sep or _looks_like_port(candidate, rest):
        logger.warning("No schema in URL, assuming HTTP.")
        rest = text[2:] if text.startswith("//") else text
    else:
        scheme = candidate.lower()
        if scheme == "https":
            raise UnsupportedScheme(candidate, "HTTPS is not yet implemented")
        if scheme != "http":
            raise UnsupportedScheme(candidate)
        if not rest.startswith("//"):
            raise MalformedURL(f"Malformed URL (no http://): {url!r}")
        rest = rest[2:]

    authority, slash, path = rest.partition("/")
    if not slash:
        raise MalformedURL(f"Malformed URL (no '/' after host): {url!r}")

    # Fragments never go on the wire
    path = path.split("#", 1)[0]

    host, port = _split_host_port(authority, url)
    return ParsedURL(scheme="http", host=host, port=port, path="/" + path)


def resolve_location(base: ParsedURL, location: str) -> str:
    """
    Turn a Location header value into an absolute URL.

    Absolute values pass through untouched; relative ones ("/login",
    "../next") are resolved against the URL that produced the redirect.
    """
    return urljoin(base.url, location.strip())


def _looks_like_port(candidate: str, rest: str) -> bool:
    """True for "example.com:8080/..." written without a scheme."""
    if candidate.lower() in ("http", "https") or "/" in candidate:
        return False
    return rest[:1].isdigit()


def _split_host_port(authority: str, url: str) -> Tuple[str, int]:
    if authority.startswith("["):
        end = authority.find("]")
        if end == -1:
            raise MalformedURL(f"Malformed URL (unterminated IPv6 literal): {url!r}")
        host = authority[1:end]
        tail = authority[end + 1:]
        if tail and not tail.startswith(":"):
            raise MalformedURL(f"Malformed URL (junk after IPv6 literal): {url!r}")
        port_text = tail[1:]
    else:
        host, sep, port_text = authority.rpartition(":")
        if not sep:
            host, port_text = authority, ""

    if not host:
        raise MalformedURL(f"Malformed URL (no host): {url!r}")

    if not port_text:
        return host, DEFAULT_PORT

    if not (port_text.isascii() and port_text.isdigit()) or not 0 < int(port_text) < 65536:
        raise MalformedURL(f"Malformed URL (bad port {port_text!r}): {url!r}")

    return host, int(port_text)
