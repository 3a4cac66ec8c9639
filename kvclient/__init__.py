"""
KV-Client: Minimal Key-Value Store Client

A blocking client for the Redis serialization protocol with pipelining,
transactions and a thread-safe connection pool.
"""

from .errors import (
    ClientError,
    ConnectionClosedError,
    PoolTimeoutError,
    ProtocolError,
    ServerError,
    UsageError,
)
from .network.connection import Connection, Mode
from .pool.pool import Pool
from .protocol.codec import ProtocolCodec
from .protocol.values import (
    NULL_ARRAY,
    NULL_BULK_STRING,
    QUEUED,
    Array,
    BulkString,
    Integer,
    SimpleString,
    Value,
    ValueType,
)

__version__ = "1.0.0"

__all__ = [
    "__version__",
    "Connection",
    "Mode",
    "Pool",
    "ProtocolCodec",
    # Values
    "Value",
    "ValueType",
    "Integer",
    "SimpleString",
    "BulkString",
    "Array",
    "NULL_ARRAY",
    "NULL_BULK_STRING",
    "QUEUED",
    # Errors
    "ClientError",
    "ProtocolError",
    "ServerError",
    "ConnectionClosedError",
    "PoolTimeoutError",
    "UsageError",
]
