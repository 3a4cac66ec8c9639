"""
Connection Module

This module implements a single client connection and its mode state
machine.

A connection is always in exactly one mode:

    NORMAL       send() flushes and returns the decoded reply
    PIPELINE     send() buffers the command; replies are read when the
                 pipeline is executed
    TRANSACTION  send() flushes and consumes the "+QUEUED" acknowledgement;
                 EXEC returns the aggregate result

Only one pipeline or transaction scope can be open at a time. A connection
is single-owner: it must not be used from two threads at once.
"""

import logging
from contextlib import contextmanager
from enum import Enum, auto
from typing import Callable, Iterator, List, Optional
from urllib.parse import urlparse

from ..config.settings import settings
from ..errors import ProtocolError, ServerError, UsageError
from ..protocol.codec import Argument, ProtocolCodec
from ..protocol.values import Array, Value
from .stream import SocketStream

logger = logging.getLogger(__name__)

URL_SCHEMES = ("redis", "tcp")
TRANSACTION_COMMANDS = frozenset({"MULTI", "EXEC", "DISCARD"})


class Mode(Enum):
    """Enumeration of connection modes."""
    NORMAL = auto()
    PIPELINE = auto()
    TRANSACTION = auto()


class Connection:
    """
    A client connection over one bidirectional byte stream.

    The stream only needs blocking read(n), readline(), write(data),
    flush() and close() methods, so tests can substitute an in-memory
    stream for a socket.

    Usage:
        conn = Connection.connect("127.0.0.1", 6379)
        conn.send("PING")                      # SimpleString("PONG")
        conn.send("SET", "foo", "bar")         # SimpleString("OK")

        replies = conn.pipeline(lambda c: (c.send("INCR", "n"), c.send("GET", "n")))
        result = conn.transaction(lambda c: c.send("SET", "foo", "qux"))

    Attributes:
        stream: The underlying stream (exclusively owned)
        codec: The ProtocolCodec used to encode and decode frames
    """

    def __init__(self, stream, codec: ProtocolCodec = None):
        self.stream = stream
        self.codec = codec if codec is not None else ProtocolCodec()

        self._mode = Mode.NORMAL
        self._queued = 0
        self._broken = False
        self._closed = False

    @classmethod
    def connect(
            cls,
            host: str = None,
            port: int = None,
            connect_timeout: float = None,
            socket_timeout: float = None,
            codec: ProtocolCodec = None,
    ) -> "Connection":
        """
        Open a TCP connection.

        Args:
            host: Server address (default from settings)
            port: Server port (default from settings)
            connect_timeout: Handshake timeout in seconds (default from settings)
            socket_timeout: Per-operation timeout in seconds; 0 or None in
                            settings means block forever
            codec: Codec to use (a default ProtocolCodec if omitted)
        """
        host = host if host is not None else settings.HOST
        port = port if port is not None else settings.PORT
        if connect_timeout is None:
            connect_timeout = settings.CONNECT_TIMEOUT or None
        if socket_timeout is None:
            socket_timeout = settings.SOCKET_TIMEOUT or None

        stream = SocketStream.open(host, port, connect_timeout, socket_timeout)
        return cls(stream, codec=codec)

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "Connection":
        """
        Open a TCP connection described by a URL such as redis://host:6379.

        Keyword arguments are passed through to connect().
        """
        host, port = parse_url(url)
        return cls.connect(host, port, **kwargs)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def queued(self) -> int:
        """Number of replies owed by the open pipeline or transaction."""
        return self._queued

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def broken(self) -> bool:
        """True once the stream may be out of sync; the connection must be discarded."""
        return self._broken

    def close(self) -> None:
        """Close the underlying stream. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self.stream.close()
        logger.debug(f"Closed connection {self!r}")

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<Connection mode={self._mode.name} queued={self._queued} broken={self._broken}>"

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def send(self, command, *args: Argument) -> Optional[Value]:
        """
        Send one command.

        A single str with no further arguments is sent as an inline
        command. Anything else is framed as an array of bulk strings:
        send("SET", "foo", "bar") and send(["SET", "foo", "bar"]) are
        equivalent.

        Returns:
            NORMAL mode: the decoded reply.
            PIPELINE mode: None. Replies are returned by execute_pipeline().
            TRANSACTION mode: the QUEUED acknowledgement.

        Raises:
            ServerError: The server replied with an error
            ProtocolError: The reply could not be decoded
            ConnectionClosedError: The server closed the connection
            UsageError: The connection is closed or broken, or MULTI, EXEC
                        or DISCARD was sent inside an open transaction
        """
        self._check_usable()
        if self._mode is Mode.TRANSACTION:
            self._check_transaction_command(command, args)

        if args:
            payload = self.codec.marshal((command,) + args)
        elif isinstance(command, str):
            payload = self.codec.marshal_inline(command)
        else:
            payload = self.codec.marshal(command)

        with self._guard():
            self.stream.write(payload)

            if self._mode is Mode.PIPELINE:
                self._queued += 1
                return None

            self.stream.flush()

            if self._mode is Mode.TRANSACTION:
                value = self.codec.unmarshal(self.stream, skip_queued=True)
                self._queued += 1
                return value

            return self.codec.unmarshal(self.stream)

    # ------------------------------------------------------------------
    # Pipeline scope
    # ------------------------------------------------------------------

    def begin_pipeline(self) -> None:
        """Enter PIPELINE mode. Commands are buffered until execute_pipeline()."""
        self._enter(Mode.PIPELINE)
        logger.debug("Pipeline opened")

    def execute_pipeline(self) -> List[Value]:
        """
        Flush every buffered command and read their replies in send order.

        Returns:
            One Value per command sent since begin_pipeline().
        """
        self._expect(Mode.PIPELINE)
        queued = self._leave()

        try:
            self.stream.flush()
            replies = [self.codec.unmarshal(self.stream) for _ in range(queued)]
        except BaseException as exc:
            # Unread replies are still on the wire
            self._mark_broken(exc)
            raise

        logger.debug(f"Pipeline executed with {queued} replies")
        return replies

    def pipeline(self, body: Callable[["Connection"], object]) -> List[Value]:
        """
        Run body(connection) in PIPELINE mode and return all replies.

        >>> replies = conn.pipeline(lambda pipe: pipe.send("PING"))
        >>> replies
        [SimpleString(value='PONG')]
        """
        self.begin_pipeline()
        with self._scope():
            body(self)
        return self.execute_pipeline()

    # ------------------------------------------------------------------
    # Transaction scope
    # ------------------------------------------------------------------

    def begin_transaction(self) -> None:
        """Send MULTI and enter TRANSACTION mode."""
        self._check_usable()
        if self._mode is not Mode.NORMAL:
            raise UsageError(f"cannot open a transaction while in {self._mode.name} mode")

        self.send("MULTI")
        self._enter(Mode.TRANSACTION)
        logger.debug("Transaction opened")

    def commit_transaction(self) -> Value:
        """
        Send EXEC and return its reply.

        Returns:
            An Array holding one reply per queued command, or the null
            Array when the server aborted the transaction.
        """
        self._expect(Mode.TRANSACTION)
        queued = self._leave()

        result = self.send("EXEC")

        error = None
        if not isinstance(result, Array):
            error = ProtocolError(f"EXEC returned {type(result).__name__}, expected an array")
        elif not result.is_null and len(result) != queued:
            error = ProtocolError(f"EXEC returned {len(result)} replies for {queued} queued commands")
        if error is not None:
            self._mark_broken(error)
            raise error

        logger.debug(f"Transaction committed with {queued} commands")
        return result

    def discard_transaction(self) -> None:
        """Send DISCARD and return to NORMAL mode without executing."""
        self._expect(Mode.TRANSACTION)
        queued = self._leave()
        self.send("DISCARD")
        logger.debug(f"Transaction discarded with {queued} commands")

    def transaction(self, body: Callable[["Connection"], object]) -> Value:
        """
        Run body(connection) between MULTI and EXEC and return EXEC's reply.

        >>> result = conn.transaction(lambda tx: tx.send("SET", "foo", "bar"))
        >>> result
        Array(items=(SimpleString(value='OK'),))
        """
        self.begin_transaction()
        with self._scope():
            body(self)
        return self.commit_transaction()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_usable(self) -> None:
        if self._closed:
            raise UsageError("connection is closed")
        if self._broken:
            raise UsageError("connection is broken and must be discarded")

    def _check_transaction_command(self, command, args) -> None:
        """Reject MULTI, EXEC and DISCARD while a transaction is open."""
        head = command
        if not args and isinstance(command, (list, tuple)):
            head = command[0] if command else None
        if isinstance(head, (bytes, bytearray, memoryview)):
            head = bytes(head).decode(self.codec.encoding, errors="replace")
        if not isinstance(head, str):
            return

        words = head.split(None, 1)
        name = words[0].upper() if words else ""
        if name in TRANSACTION_COMMANDS:
            raise UsageError(
                f"{name} cannot be sent inside a transaction; "
                "use commit_transaction() or discard_transaction()"
            )

    def _enter(self, mode: Mode) -> None:
        self._check_usable()
        if self._mode is not Mode.NORMAL:
            raise UsageError(f"cannot open a {mode.name} scope while in {self._mode.name} mode")
        self._mode = mode
        self._queued = 0

    def _expect(self, mode: Mode) -> None:
        self._check_usable()
        if self._mode is not mode:
            raise UsageError(f"no {mode.name} scope is open (mode is {self._mode.name})")

    def _leave(self) -> int:
        """Return to NORMAL mode and hand back the queued count."""
        queued = self._queued
        self._mode = Mode.NORMAL
        self._queued = 0
        return queued

    def _mark_broken(self, exc: BaseException) -> None:
        self._leave()
        if not self._broken:
            self._broken = True
            logger.warning(f"Connection marked broken: {exc!r}")

    @contextmanager
    def _guard(self) -> Iterator[None]:
        """Mark the connection broken on any failure that can desync the stream."""
        try:
            yield
        except ServerError:
            # Error replies are read in full; the stream stays in sync
            raise
        except BaseException as exc:
            self._mark_broken(exc)
            raise

    @contextmanager
    def _scope(self) -> Iterator[None]:
        """Abort the open scope if its body raises."""
        try:
            yield
        except BaseException as exc:
            self._mark_broken(exc)
            raise


def parse_url(url: str):
    """
    Split a connection URL into (host, port).

    >>> parse_url("redis://cache.internal:6380/0")
    ('cache.internal', 6380)
    """
    parsed = urlparse(url)
    if parsed.scheme not in URL_SCHEMES:
        raise ValueError(f"unsupported URL scheme {parsed.scheme!r} in {url!r}")
    host = parsed.hostname or settings.HOST
    port = parsed.port or settings.PORT
    return host, port
