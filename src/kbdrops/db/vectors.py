"""Embedding vector <-> BLOB serialization.

Vectors are stored as packed 32-bit floats (the raw layout sqlite-vec uses),
so a round trip only loses the precision already implied by float32.
"""

from __future__ import annotations

from array import array
from collections.abc import Sequence

import sqlite_vec

_FLOAT32_SIZE = 4


def serialize_embedding(vector: Sequence[float]) -> bytes:
    """Pack *vector* into a float32 BLOB."""
    return sqlite_vec.serialize_float32(list(vector))


def deserialize_embedding(blob: bytes) -> list[float]:
    """Unpack a float32 BLOB produced by serialize_embedding().

    Raises:
        ValueError: If *blob* is not a whole number of float32 values.
    """
    if len(blob) % _FLOAT32_SIZE:
        raise ValueError(
            f"Embedding blob length {len(blob)} is not a multiple of {_FLOAT32_SIZE}"
        )
    values = array("f")
    values.frombytes(blob)
    return values.tolist()
