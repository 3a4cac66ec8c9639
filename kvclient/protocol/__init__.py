"""Protocol module for KV-Client."""

from .codec import ProtocolCodec
from .values import (
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

__all__ = [
    "ProtocolCodec",
    "Value",
    "ValueType",
    "Integer",
    "SimpleString",
    "BulkString",
    "Array",
    "NULL_ARRAY",
    "NULL_BULK_STRING",
    "QUEUED",
]
