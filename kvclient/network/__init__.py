"""Network module for KV-Client."""

from .connection import Connection, Mode, parse_url
from .stream import SocketStream

__all__ = ["Connection", "Mode", "SocketStream", "parse_url"]
