"""
=============================================================================
FETCH ERRORS
=============================================================================

Every way a fetch can fail, as one exception hierarchy.

    FetchError
    ├── InputError            bad URL, the caller's fault
    │   ├── UnsupportedScheme
    │   └── MalformedURL
    ├── NetworkError          resolve / connect / send / receive
    │   ├── ResolutionError
    │   ├── ConnectError
    │   ├── SendError
    │   └── ReceiveError
    ├── ProtocolError         the server spoke broken HTTP
    │   ├── MalformedStatusLine
    │   ├── MalformedHeaders
    │   ├── HeadersTooLong
    │   ├── TooManyHeaders
    │   ├── IncompleteHeaders
    │   ├── UnexpectedInformationalResponse
    │   ├── MalformedContentLength
    │   ├── MalformedChunkSize
    │   ├── UnsupportedTransferEncoding
    │   └── UnsupportedContentEncoding
    ├── PolicyError           valid HTTP we refuse to go along with
    │   ├── HTTPError
    │   ├── TooManyRedirects
    │   └── MissingLocation
    ├── DeadlineExceeded      the single wall-clock deadline ran out
    └── SinkError             the output sink failed

All of them are fatal to the current fetch. Nothing is retried; a caller
that wants retries calls fetch() again.

Each class carries an exit_code so the CLI can map a failure to a
distinct process status without a lookup table.

=============================================================================
"""

from typing import Optional


class FetchError(Exception):
    """Base class for everything fetch() raises."""

    exit_code = 1

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# =============================================================================
# INPUT
# =============================================================================

class InputError(FetchError):
    exit_code = 2


class UnsupportedScheme(InputError):
    def __init__(self, scheme: str, message: Optional[str] = None):
        super().__init__(message or f"Unsupported scheme: '{scheme}' in URL")
        self.scheme = scheme


class MalformedURL(InputError):
    pass


# =============================================================================
# NETWORK
# =============================================================================

class NetworkError(FetchError):
    exit_code = 3


class ResolutionError(NetworkError):
    pass


class ConnectError(NetworkError):
    pass


class SendError(NetworkError):
    pass


class ReceiveError(NetworkError):
    pass


# =============================================================================
# PROTOCOL
# =============================================================================

class ProtocolError(FetchError):
    exit_code = 4


class MalformedStatusLine(ProtocolError):
    pass


class MalformedHeaders(ProtocolError):
    pass


class HeadersTooLong(ProtocolError):
    pass


class TooManyHeaders(ProtocolError):
    pass


class IncompleteHeaders(ProtocolError):
    pass


class UnexpectedInformationalResponse(ProtocolError):
    def __init__(self, status_code: int):
        super().__init__(
            f"Server returned {status_code}; 1xx responses carry no content "
            f"and we sent neither a body nor an Upgrade header"
        )
        self.status_code = status_code


class MalformedContentLength(ProtocolError):
    pass


class MalformedChunkSize(ProtocolError):
    pass


class UnsupportedTransferEncoding(ProtocolError):
    pass


class UnsupportedContentEncoding(ProtocolError):
    pass


# =============================================================================
# POLICY
# =============================================================================

class PolicyError(FetchError):
    exit_code = 5


class HTTPError(PolicyError):
    """
    The server answered with a 4xx or 5xx status.

    The status travels with the exception so callers can branch on it
    without parsing the message.
    """

    def __init__(self, status_code: int, reason: str = ""):
        message = f"Server returned HTTP error {status_code}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


class TooManyRedirects(PolicyError):
    exit_code = 6

    def __init__(self, max_redirects: int):
        super().__init__(
            f"Redirects depth limit reached: maximum {max_redirects} are allowed"
        )
        self.max_redirects = max_redirects


class MissingLocation(PolicyError):
    def __init__(self, status_code: int):
        super().__init__(f"Server returned redirect {status_code} without a Location header")
        self.status_code = status_code


# =============================================================================
# DEADLINE / SINK
# =============================================================================

class DeadlineExceeded(FetchError):
    """Raised when the overall deadline expires. Not a NetworkError."""

    exit_code = 7

    def __init__(self, timeout: Optional[float], phase: str = ""):
        where = f" while {phase}" if phase else ""
        budget = f"{timeout:g}s " if timeout is not None else ""
        super().__init__(f"Timeout: {budget}deadline exceeded{where}")
        self.timeout = timeout
        self.phase = phase


class SinkError(FetchError):
    exit_code = 8
