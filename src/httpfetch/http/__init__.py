"""
HTTP protocol handling: URL decomposition, request emission, response
parsing and body decoding.
"""

from .url import ParsedURL, parse_url, resolve_location
from .request import build_request, send_request
from .reader import LineReader
from .headers import HeaderEntry, HeaderTable
from .response import ResponseParser, StatusLine, read_response_head
from .status_codes import Disposition, classify_status
from .body import BodyResult, Framing, FramingKind, select_framing, stream_body
from .chunked import ChunkedDecoder, parse_chunk_size

__all__ = [
    # URL / request
    "ParsedURL",
    "parse_url",
    "resolve_location",
    "build_request",
    "send_request",

    # Response head
    "LineReader",
    "ResponseParser",
    "StatusLine",
    "read_response_head",
    "HeaderEntry",
    "HeaderTable",
    "Disposition",
    "classify_status",

    # Body
    "Framing",
    "FramingKind",
    "BodyResult",
    "select_framing",
    "stream_body",
    "ChunkedDecoder",
    "parse_chunk_size",
]
