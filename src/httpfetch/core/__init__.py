"""
Core transport: the fetch-wide deadline and the socket connection.
"""

from .deadline import Deadline
from .connection import Connection, ConnectionState, open_connection

__all__ = [
    "Deadline",
    "Connection",
    "ConnectionState",
    "open_connection",
]
