"""
Object storage integration for uploads, derivatives and posters.

Supports S3 and R2 via the S3-compatible API.
Includes mock mode for local development without credentials.
"""

from .client import (
    MockObjectStore,
    S3ObjectStore,
    StorageConfig,
    build_public_url,
    create_object_store,
)

__all__ = [
    "MockObjectStore",
    "S3ObjectStore",
    "StorageConfig",
    "build_public_url",
    "create_object_store",
]
