"""Tests for embedding BLOB serialization."""

from __future__ import annotations

import struct

import pytest

from kbdrops.db.vectors import deserialize_embedding, serialize_embedding


def test_serialize_is_little_endian_float32():
    blob = serialize_embedding([1.0, -2.5])
    assert blob == struct.pack("<2f", 1.0, -2.5)


def test_serialize_length_is_four_bytes_per_value():
    assert len(serialize_embedding([0.1] * 768)) == 768 * 4


def test_deserialize_restores_exactly_representable_values():
    values = [0.5, -1.0, 0.25, 3.0]
    assert deserialize_embedding(serialize_embedding(values)) == values


def test_deserialize_approximates_to_float32_precision():
    restored = deserialize_embedding(serialize_embedding([0.1, 0.2]))
    assert restored == pytest.approx([0.1, 0.2], rel=1e-6)


def test_deserialize_empty_blob():
    assert deserialize_embedding(b"") == []


def test_deserialize_rejects_partial_float():
    with pytest.raises(ValueError, match="multiple of 4"):
        deserialize_embedding(b"\x00\x00\x00")
