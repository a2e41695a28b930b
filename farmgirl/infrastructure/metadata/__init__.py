"""
Metadata index storage.

JSON files per content namespace, with an in-memory variant for tests.
"""

from .index import InMemoryMetadataIndex, JsonFileMetadataIndex, create_metadata_index

__all__ = [
    "InMemoryMetadataIndex",
    "JsonFileMetadataIndex",
    "create_metadata_index",
]
