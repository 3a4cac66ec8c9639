"""
Tests for Reply Values

These tests verify the Value variants:
- Null markers are distinct from empty and present values
- Values are immutable
- Array behaves like a read-only sequence

Run with: python -m pytest tests/test_values.py -v
"""

import dataclasses

import pytest

from kvclient.protocol.values import (
    NULL_ARRAY,
    NULL_BULK_STRING,
    QUEUED,
    Array,
    BulkString,
    Integer,
    SimpleString,
    ValueType,
)


class TestValueTypes:
    """Test type tags."""

    def test_type_tags(self):
        """Test each variant reports its own type."""
        assert Integer(1).type is ValueType.INTEGER
        assert SimpleString("OK").type is ValueType.SIMPLE_STRING
        assert BulkString(b"x").type is ValueType.BULK_STRING
        assert Array(()).type is ValueType.ARRAY

    def test_type_tag_matches_wire_byte(self):
        """Test enum values are the leading type bytes."""
        assert ValueType.INTEGER.value == ":"
        assert ValueType.ARRAY.value == "*"

    def test_queued_sentinel(self):
        """Test the transaction acknowledgement sentinel."""
        assert QUEUED == SimpleString("QUEUED")


class TestNullMarkers:
    """Test absence is a first-class value."""

    def test_null_bulk_string(self):
        """Test null and empty bulk strings differ."""
        assert NULL_BULK_STRING.is_null
        assert not BulkString(b"").is_null
        assert NULL_BULK_STRING != BulkString(b"")

    def test_null_array(self):
        """Test null and empty arrays differ."""
        assert NULL_ARRAY.is_null
        assert not Array(()).is_null
        assert NULL_ARRAY != Array(())
        assert len(NULL_ARRAY) == 0
        assert list(NULL_ARRAY) == []

    def test_null_array_indexing(self):
        """Test indexing a null array raises IndexError."""
        with pytest.raises(IndexError):
            NULL_ARRAY[0]

    def test_scalars_never_null(self):
        """Test integers and simple strings are always present."""
        assert not Integer(0).is_null
        assert not SimpleString("").is_null

    def test_null_array_differs_from_null_bulk_string(self):
        """Test the two null markers are not interchangeable."""
        assert NULL_ARRAY != NULL_BULK_STRING


class TestImmutability:
    """Test values cannot be modified after decoding."""

    def test_scalar_is_frozen(self):
        """Test assigning to a field fails."""
        value = Integer(5)
        with pytest.raises(dataclasses.FrozenInstanceError):
            value.value = 6

    def test_array_items_become_tuple(self):
        """Test list children are stored as a tuple."""
        array = Array([Integer(1), Integer(2)])
        assert isinstance(array.items, tuple)
        assert array == Array((Integer(1), Integer(2)))

    def test_values_are_hashable(self):
        """Test values can be used in sets and as keys."""
        values = {Integer(1), Integer(1), Array((SimpleString("a"),))}
        assert len(values) == 2


class TestArraySequence:
    """Test Array sequence behaviour."""

    def test_len_iter_index(self):
        """Test len(), iteration and indexing."""
        array = Array((SimpleString("OK"), BulkString(b"bar")))

        assert len(array) == 2
        assert array[0] == SimpleString("OK")
        assert array[-1] == BulkString(b"bar")
        assert [item.type for item in array] == [ValueType.SIMPLE_STRING, ValueType.BULK_STRING]


class TestBulkStringText:
    """Test BulkString.text()."""

    def test_text(self):
        """Test decoding the payload."""
        assert BulkString("héllo".encode()).text() == "héllo"

    def test_text_of_null(self):
        """Test the null bulk string decodes to None."""
        assert NULL_BULK_STRING.text() is None

    def test_text_custom_encoding(self):
        """Test decoding with another encoding."""
        assert BulkString(b"caf\xe9").text("latin-1") == "café"
