"""Storage module for uploaded source files.

Provides:
- StorageClientBase with filesystem and in-memory implementations
- Key building and normalization utilities
"""

from lectern.storage.client import (
    FakeStorageClient,
    LocalStorageClient,
    StorageClientBase,
    StorageError,
    compute_sha256,
    get_storage_client,
)
from lectern.storage.paths import (
    build_cover_path,
    build_storage_path,
    get_file_extension,
    normalize_key,
    resolve_key_from_path,
)

__all__ = [
    "StorageClientBase",
    "LocalStorageClient",
    "FakeStorageClient",
    "StorageError",
    "compute_sha256",
    "get_storage_client",
    "build_storage_path",
    "build_cover_path",
    "get_file_extension",
    "normalize_key",
    "resolve_key_from_path",
]
