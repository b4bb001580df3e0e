"""kbdrops database layer."""

from kbdrops.db.connection import Database
from kbdrops.db.migrations import SCHEMA_VERSION, migrate
from kbdrops.db.repository import Repository
from kbdrops.db.vectors import deserialize_embedding, serialize_embedding

__all__ = [
    "Database",
    "Repository",
    "SCHEMA_VERSION",
    "migrate",
    "serialize_embedding",
    "deserialize_embedding",
]
