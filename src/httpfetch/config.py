"""
=============================================================================
CLIENT CONFIGURATION
=============================================================================

Centralized configuration for the fetch client.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m httpfetch --timeout 10 URL                      │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HTTPFETCH_TIMEOUT=10 python -m httpfetch URL              │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
RESOURCE CEILINGS
=============================================================================

max_header_bytes is also the size of the receive buffer. The whole status
line and header block must fit in it; a server that keeps sending header
bytes past that point is cut off with HeadersTooLong instead of being
allowed to grow our memory without bound. max_header_count caps the number
of header lines the same way.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class ClientConfig:
    """
    Configuration for HTTPClient.

    Development:
        ClientConfig(timeout=5.0, log_level="DEBUG")

    Scripted downloads:
        ClientConfig(timeout=300.0, max_redirects=3, output_path="page.html")
    """

    # ─────────────────────────────────────────────────────────────────────
    # TIMING
    # ─────────────────────────────────────────────────────────────────────

    timeout: Optional[float] = 60.0
    """
    One deadline, in seconds, for the ENTIRE fetch: connect, send and every
    response byte, across all redirect hops. None disables it.
    """

    # ─────────────────────────────────────────────────────────────────────
    # PROTOCOL LIMITS
    # ─────────────────────────────────────────────────────────────────────

    max_redirects: int = 7
    """Redirects followed before TooManyRedirects. 0 refuses any redirect."""

    max_header_bytes: int = 4096
    """Receive buffer size and ceiling for the status line plus headers."""

    max_header_count: int = 100
    """Most header lines accepted in one response."""

    read_size: int = 4096
    """Largest single read while streaming the body."""

    # ─────────────────────────────────────────────────────────────────────
    # IDENTITY / OUTPUT
    # ─────────────────────────────────────────────────────────────────────

    user_agent: str = "httpfetch/0.1"

    output_path: str = "http.out"
    """Where the CLI saves the body."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG shows every received line, header and chunk size."""

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """
        Create configuration from environment variables.

        HTTPFETCH_TIMEOUT            Deadline in seconds, "none" to disable (default: 60)
        HTTPFETCH_MAX_REDIRECTS      Redirect limit (default: 7)
        HTTPFETCH_MAX_HEADER_BYTES   Header buffer size (default: 4096)
        HTTPFETCH_MAX_HEADER_COUNT   Header line limit (default: 100)
        HTTPFETCH_READ_SIZE          Body read size (default: 4096)
        HTTPFETCH_USER_AGENT         User-Agent value
        HTTPFETCH_OUTPUT             Output file (default: http.out)
        HTTPFETCH_LOG_LEVEL          Logging level (default: INFO)
        """
        timeout = os.getenv("HTTPFETCH_TIMEOUT", "60")
        return cls(
            timeout=None if timeout.lower() == "none" else float(timeout),
            max_redirects=int(os.getenv("HTTPFETCH_MAX_REDIRECTS", "7")),
            max_header_bytes=int(os.getenv("HTTPFETCH_MAX_HEADER_BYTES", "4096")),
            max_header_count=int(os.getenv("HTTPFETCH_MAX_HEADER_COUNT", "100")),
            read_size=int(os.getenv("HTTPFETCH_READ_SIZE", "4096")),
            user_agent=os.getenv("HTTPFETCH_USER_AGENT", "httpfetch/0.1"),
            output_path=os.getenv("HTTPFETCH_OUTPUT", "http.out"),
            log_level=os.getenv("HTTPFETCH_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """Fail fast on nonsensical values."""
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.max_redirects < 0:
            raise ValueError("max_redirects must be >= 0")

        if self.max_header_bytes < 64:
            raise ValueError("max_header_bytes must be >= 64")

        if self.max_header_count < 1:
            raise ValueError("max_header_count must be >= 1")

        if self.read_size < 1:
            raise ValueError("read_size must be >= 1")

        if not self.user_agent or any(c in self.user_agent for c in "\r\n"):
            raise ValueError("user_agent must be a non-empty single line")
