"""
Protocol Reply Values

This module defines the typed values produced by decoding server replies.

Each reply is exactly one of four variants:

    Integer        ":"  signed 64-bit integer
    SimpleString   "+"  status text such as "OK" or "PONG"
    BulkString     "$"  binary-safe bytes, or the null bulk string
    Array          "*"  ordered replies, or the null array

The null bulk string and the null array are real values (is_null is True),
so an empty array, a null array and a present scalar never compare equal.
Values are frozen; arrays hold their children in a tuple.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Tuple, Union


class ValueType(Enum):
    """Enumeration of reply types, keyed by their leading type byte."""
    INTEGER = ":"
    SIMPLE_STRING = "+"
    BULK_STRING = "$"
    ARRAY = "*"


@dataclass(frozen=True)
class Integer:
    """An integer reply."""
    value: int

    @property
    def type(self) -> ValueType:
        return ValueType.INTEGER

    @property
    def is_null(self) -> bool:
        return False


@dataclass(frozen=True)
class SimpleString:
    """A single-line status reply."""
    value: str

    @property
    def type(self) -> ValueType:
        return ValueType.SIMPLE_STRING

    @property
    def is_null(self) -> bool:
        return False


@dataclass(frozen=True)
class BulkString:
    """
    A length-prefixed binary reply.

    Attributes:
        value: The payload bytes, or None for the null bulk string
    """
    value: Optional[bytes]

    @property
    def type(self) -> ValueType:
        return ValueType.BULK_STRING

    @property
    def is_null(self) -> bool:
        return self.value is None

    def text(self, encoding: str = "utf-8") -> Optional[str]:
        """Decode the payload, or return None for the null bulk string."""
        if self.value is None:
            return None
        return self.value.decode(encoding)


@dataclass(frozen=True)
class Array:
    """
    An ordered collection of replies.

    Attributes:
        items: The child values in reply order, or None for the null array
    """
    items: Optional[Tuple["Value", ...]]

    def __post_init__(self):
        """Store children as a tuple so the array stays immutable."""
        if self.items is not None and not isinstance(self.items, tuple):
            object.__setattr__(self, "items", tuple(self.items))

    @property
    def type(self) -> ValueType:
        return ValueType.ARRAY

    @property
    def is_null(self) -> bool:
        return self.items is None

    def __len__(self) -> int:
        return 0 if self.items is None else len(self.items)

    def __iter__(self) -> Iterator["Value"]:
        return iter(self.items or ())

    def __getitem__(self, index: int) -> "Value":
        if self.items is None:
            raise IndexError("null array has no items")
        return self.items[index]


Value = Union[Integer, SimpleString, BulkString, Array]

NULL_BULK_STRING = BulkString(None)
NULL_ARRAY = Array(None)

# Acknowledgement returned for every command queued inside a transaction
QUEUED = SimpleString("QUEUED")
