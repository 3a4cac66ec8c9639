r"""
Protocol Codec Module

This module encodes commands into wire frames and decodes reply frames
into typed values.

Protocol Format:
    Request:  *<argc>\r\n($<len>\r\n<bytes>\r\n)*argc
              or an inline command: <text>\r\n
    Reply:    +<text>\r\n                simple string
              -<message>\r\n             error
              :<int64>\r\n               integer
              $<len>\r\n<bytes>\r\n      bulk string ($-1\r\n is null)
              *<count>\r\n<reply>*count  array (*-1\r\n is null)

The codec holds no per-connection state. unmarshal() consumes exactly one
reply frame from the stream (recursively, for arrays) per call.
"""

import re
from typing import Any, Sequence, Union

from ..config.settings import settings
from ..errors import ConnectionClosedError, ProtocolError, ServerError, UsageError
from .values import (
    NULL_ARRAY,
    NULL_BULK_STRING,
    QUEUED,
    Array,
    BulkString,
    Integer,
    SimpleString,
    Value,
)

CRLF = b"\r\n"
NULL_BULK_FRAME = b"$-1\r\n"
QUEUED_PAYLOAD = b"QUEUED\r\n"

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1
INTEGER_LINE = re.compile(rb"-?[0-9]+")

Scalar = Union[str, bytes, bytearray, memoryview, int, None]
Argument = Union[Scalar, Sequence[Scalar]]


class ProtocolCodec:
    """
    Encoder/decoder for the key-value store wire protocol.

    Attributes:
        encoding: Text encoding used for str arguments and simple strings
        integer_frames: Frame int arguments as ":<n>" instead of bulk strings
    """

    def __init__(self, encoding: str = None, integer_frames: bool = False):
        """
        Initialize the codec.

        Args:
            encoding: Text encoding (default from settings.ENCODING)
            integer_frames: Emit integer frames for int arguments
        """
        self.encoding = encoding if encoding is not None else settings.ENCODING
        self.integer_frames = integer_frames

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def marshal(self, command: Sequence[Argument]) -> bytes:
        """
        Encode a command vector as an array frame.

        Args:
            command: Ordered arguments. Each one is str, bytes-like, int,
                     None (null bulk string) or a list/tuple whose pieces
                     are joined into one compound bulk string.

        Returns:
            The encoded frame bytes.

        Examples:
            >>> codec = ProtocolCodec()
            >>> codec.marshal(["SET", "foo", "bar"])
            b'*3\\r\\n$3\\r\\nSET\\r\\n$3\\r\\nfoo\\r\\n$3\\r\\nbar\\r\\n'
            >>> codec.marshal(["SET", "k", ["a:", 1]])
            b'*3\\r\\n$3\\r\\nSET\\r\\n$1\\r\\nk\\r\\n$3\\r\\na:1\\r\\n'
        """
        if isinstance(command, (str, bytes, bytearray, memoryview)) or not isinstance(command, Sequence):
            raise TypeError(f"command must be a sequence of arguments, got {type(command).__name__}")
        if not command:
            raise UsageError("cannot send an empty command")

        frames = [b"*%d\r\n" % len(command)]
        frames.extend(self._frame(arg) for arg in command)
        return b"".join(frames)

    def marshal_inline(self, line: str) -> bytes:
        """
        Encode an inline command: the bare text line followed by CRLF.

        >>> ProtocolCodec().marshal_inline("PING")
        b'PING\\r\\n'
        """
        if "\r" in line or "\n" in line:
            raise UsageError("inline commands must be a single line")
        return line.encode(self.encoding) + CRLF

    def _frame(self, arg: Argument) -> bytes:
        """Frame one top-level argument."""
        if arg is None:
            return NULL_BULK_FRAME

        if isinstance(arg, (list, tuple)):
            payload = b"".join(self._payload(piece) for piece in arg)
        else:
            if self.integer_frames and isinstance(arg, int) and not isinstance(arg, bool):
                return b":%d\r\n" % arg
            payload = self._payload(arg)

        return b"$%d\r\n%s\r\n" % (len(payload), payload)

    def _payload(self, arg: Any) -> bytes:
        """Raw bytes of a scalar argument, without framing."""
        if isinstance(arg, (bytes, bytearray, memoryview)):
            return bytes(arg)
        if isinstance(arg, str):
            return arg.encode(self.encoding)
        # bool is an int subclass and is rejected
        if isinstance(arg, int) and not isinstance(arg, bool):
            return b"%d" % arg
        raise TypeError(
            f"invalid argument type {type(arg).__name__}: "
            "expected str, bytes, int, None or a list of pieces"
        )

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def unmarshal(self, stream, skip_queued: bool = False) -> Value:
        """
        Read exactly one reply frame from the stream.

        Args:
            stream: Blocking binary stream with read(n) and readline()
            skip_queued: The reply is a known "+QUEUED" acknowledgement;
                         consume it by length and return the QUEUED sentinel

        Returns:
            The decoded Value.

        Raises:
            ServerError: The reply was an error frame
            ProtocolError: Unknown type byte or malformed frame
            ConnectionClosedError: The stream ended mid-reply
        """
        type_byte = stream.read(1)
        if not type_byte:
            raise ConnectionClosedError("The server has closed the connection")

        if type_byte == b"+":
            if skip_queued:
                return self._skip_queued(stream)
            return SimpleString(self._decode_text(self._read_line(stream)))

        if type_byte == b"-":
            line = self._read_line(stream)
            raise ServerError(line.decode(self.encoding, errors="replace"))

        if type_byte == b":":
            value = self._read_int(stream)
            if not INT64_MIN <= value <= INT64_MAX:
                raise ProtocolError(f"integer reply out of 64-bit range: {value}")
            return Integer(value)

        if type_byte == b"$":
            length = self._read_int(stream)
            if length == -1:
                return NULL_BULK_STRING
            if length < 0:
                raise ProtocolError(f"invalid bulk string length: {length}")

            data = self._read_exact(stream, length)
            if self._read_exact(stream, 2) != CRLF:
                raise ProtocolError("bulk string is not terminated by CRLF")
            return BulkString(data)

        if type_byte == b"*":
            count = self._read_int(stream)
            if count == -1:
                return NULL_ARRAY
            if count < 0:
                raise ProtocolError(f"invalid array length: {count}")
            return Array(tuple(self.unmarshal(stream) for _ in range(count)))

        raise ProtocolError(f"Received invalid type byte {type_byte!r}")

    def _skip_queued(self, stream) -> SimpleString:
        payload = self._read_exact(stream, len(QUEUED_PAYLOAD))
        if payload != QUEUED_PAYLOAD:
            raise ProtocolError(f"expected a QUEUED acknowledgement, got {payload!r}")
        return QUEUED

    def _read_line(self, stream) -> bytes:
        """Read one CRLF-terminated line and strip the terminator."""
        line = stream.readline()
        if not line.endswith(b"\n"):
            raise ConnectionClosedError("The server has closed the connection")
        if not line.endswith(CRLF):
            raise ProtocolError(f"line is not terminated by CRLF: {line!r}")
        return line[:-2]

    def _read_int(self, stream) -> int:
        line = self._read_line(stream)
        if not INTEGER_LINE.fullmatch(line):
            raise ProtocolError(f"expected an integer, got {line!r}")
        return int(line)

    def _read_exact(self, stream, size: int) -> bytes:
        data = stream.read(size)
        if len(data) < size:
            raise ConnectionClosedError("The server has closed the connection")
        return data

    def _decode_text(self, line: bytes) -> str:
        try:
            return line.decode(self.encoding)
        except UnicodeDecodeError as exc:
            raise ProtocolError(f"simple string is not valid {self.encoding}: {line!r}") from exc
