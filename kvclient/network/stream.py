"""
Socket Stream Module

Wraps a connected TCP socket in the blocking stream interface the
Connection expects: read(n), readline(), write(data), flush(), close().

Writes are buffered until flush(), which is what lets a pipeline send many
commands in one network write.
"""

import logging
import socket
from typing import Optional

from ..config.settings import settings

logger = logging.getLogger(__name__)


class SocketStream:
    """
    Buffered bidirectional stream over a socket.

    Attributes:
        sock: The underlying connected socket
    """

    def __init__(self, sock: socket.socket, buffer_size: int = None):
        buffer_size = buffer_size if buffer_size is not None else settings.READ_BUFFER_SIZE
        self.sock = sock
        self._reader = sock.makefile("rb", buffering=buffer_size)
        self._writer = sock.makefile("wb", buffering=buffer_size)
        self._closed = False

    @classmethod
    def open(
            cls,
            host: str,
            port: int,
            connect_timeout: Optional[float] = None,
            socket_timeout: Optional[float] = None,
    ) -> "SocketStream":
        """
        Connect to host:port and wrap the socket.

        Args:
            host: Server address
            port: Server port
            connect_timeout: Seconds allowed for the TCP handshake
            socket_timeout: Seconds allowed per read/write once connected
                            (None blocks forever)

        Raises:
            OSError: The connection could not be established
        """
        sock = socket.create_connection((host, port), timeout=connect_timeout)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(socket_timeout)
        logger.debug(f"Connected to {host}:{port}")
        return cls(sock)

    @property
    def closed(self) -> bool:
        return self._closed

    def read(self, size: int) -> bytes:
        return self._reader.read(size)

    def readline(self) -> bytes:
        return self._reader.readline()

    def write(self, data: bytes) -> None:
        self._writer.write(data)

    def flush(self) -> None:
        self._writer.flush()

    def close(self) -> None:
        """Close both file objects and the socket. Safe to call twice."""
        if self._closed:
            return
        self._closed = True

        try:
            self._writer.close()
        except OSError as exc:
            # Unflushed pipeline data on a dead socket
            logger.debug(f"Discarding unsent data on close: {exc}")
        finally:
            self._reader.close()
            self.sock.close()
