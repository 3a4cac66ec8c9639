"""
Client Error Hierarchy

Every error raised by the client derives from ClientError. Nothing here is
retried internally; errors propagate to whoever called send(), a scope
close, or Pool.acquire().
"""

from typing import Optional


class ClientError(Exception):
    """Base class for all KV-Client errors."""


class ProtocolError(ClientError):
    """A reply could not be decoded (unknown type byte, malformed frame)."""


class ServerError(ProtocolError):
    """
    The server answered with an error reply ("-" frame).

    Attributes:
        message: The full error line sent by the server
        kind: The leading word of the line (e.g. "ERR", "WRONGTYPE"),
              or None when the line is empty
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.kind: Optional[str] = message.split(" ", 1)[0] if message else None


class ConnectionClosedError(ClientError):
    """The stream ended while a reply was being read."""


class PoolTimeoutError(ClientError, TimeoutError):
    """Pool.acquire() could not lease a connection before its deadline."""


class UsageError(ClientError):
    """
    The API was used in a way that would corrupt connection or pool state.

    Raised for nested scopes, closing a scope that is not open, sending on a
    closed or broken connection, and releasing a connection the pool did not
    lease.
    """
