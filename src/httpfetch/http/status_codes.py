"""
=============================================================================
HTTP STATUS POLICY (client side)
=============================================================================

What a single-GET client does with each class of status code:

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  1xx   │ FATAL. We sent no body and no Upgrade header, so an       │
    │        │ informational response is never meaningful here.          │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  204   │ SUCCESS, nothing to save. Stop without touching the sink. │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  2xx   │ SUCCESS. Pick a body framing and stream the body.         │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  3xx   │ REDIRECT. Follow Location (bounded depth).                │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  4xx   │ FATAL. HTTPError carrying the code.                       │
    │  5xx   │                                                           │
    └────────┴───────────────────────────────────────────────────────────┘

Anything below 100 is not a status code at all.

=============================================================================
"""

from enum import Enum

from ..errors import HTTPError, MalformedStatusLine, UnexpectedInformationalResponse


NO_CONTENT = 204


class Disposition(Enum):
    """What the client does next after seeing the status line."""
    BODY = "body"                # 2xx (not 204): read the body
    NO_CONTENT = "no_content"    # 204: done, nothing to write
    REDIRECT = "redirect"        # 3xx: follow Location


def classify_status(code: int, reason: str = "") -> Disposition:
    """
    Apply the status policy.

    Raises:
        HTTPError: code >= 400.
        UnexpectedInformationalResponse: 100 <= code < 200.
        MalformedStatusLine: code < 100.
    """
    if code >= 400:
        raise HTTPError(code, reason)
    if code < 100:
        raise MalformedStatusLine(f"Server has returned code {code}, which is not an HTTP status")
    if code < 200:
        raise UnexpectedInformationalResponse(code)
    if code == NO_CONTENT:
        return Disposition.NO_CONTENT
    if code >= 300:
        return Disposition.REDIRECT
    return Disposition.BODY
