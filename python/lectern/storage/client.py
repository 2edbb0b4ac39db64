"""Storage client abstraction.

Provides a clean interface for storage operations with:
- Object save / read / streaming (for hashing)
- Object existence checks
- Best-effort object deletion
- Resolution of stored paths back to keys

All methods receive a storage key; keys are normalized and checked for
traversal before any backend is touched.
"""

import hashlib
from abc import ABC, abstractmethod
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO

from lectern.config import StorageBackend, get_settings
from lectern.errors import ErrorCode, LecternError
from lectern.logging import get_logger
from lectern.storage.paths import InvalidStorageKeyError, normalize_key, resolve_key_from_path

logger = get_logger(__name__)

CHUNK_SIZE = 8 * 1024 * 1024  # 8 MiB


class StorageError(LecternError):
    """Storage operation error."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.E_STORAGE_ERROR):
        super().__init__(code, message)


def _checked_key(key: str) -> str:
    try:
        return normalize_key(key)
    except InvalidStorageKeyError as exc:
        raise StorageError(str(exc), code=ErrorCode.E_INVALID_REQUEST) from exc


class StorageClientBase(ABC):
    """Abstract base class for storage client implementations."""

    @abstractmethod
    def save(self, key: str, data: bytes) -> None:
        """Store bytes under a key, replacing any previous object.

        Raises:
            StorageError: If the write fails.
        """
        ...

    @abstractmethod
    def stream(self, key: str) -> Iterator[bytes]:
        """Stream object content in chunks.

        Yields:
            Chunks of bytes.

        Raises:
            StorageError: E_STORAGE_MISSING if the object doesn't exist.
        """
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Whether an object is stored under the key."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete an object from storage.

        Best-effort operation - logs errors but doesn't raise.
        """
        ...

    def read(self, key: str) -> bytes:
        """Read the whole object into memory.

        Raises:
            StorageError: E_STORAGE_MISSING if the object doesn't exist.
        """
        return b"".join(self.stream(key))

    def resolve_key_from_path(self, value: str | None) -> str | None:
        """Resolve a stored path or public URL to a key; None if unsafe."""
        return resolve_key_from_path(value)


class LocalStorageClient(StorageClientBase):
    """Filesystem storage rooted at a single directory."""

    def __init__(self, root: str | Path):
        self._root = Path(root)

    def _path_for(self, key: str) -> Path:
        return self._root.joinpath(*_checked_key(key).split("/"))

    def save(self, key: str, data: bytes) -> None:
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Failed to save object {key}: {exc}") from exc
        logger.info("storage_saved", key=key, size_bytes=len(data))

    def stream(self, key: str) -> Iterator[bytes]:
        path = self._path_for(key)
        if not path.is_file():
            raise StorageError(f"Object not found: {key}", code=ErrorCode.E_STORAGE_MISSING)
        return self._iter_file(path, key)

    @staticmethod
    def _iter_file(path: Path, key: str) -> Iterator[bytes]:
        try:
            with path.open("rb") as f:
                while chunk := f.read(CHUNK_SIZE):
                    yield chunk
        except OSError as exc:
            raise StorageError(f"Failed to read object {key}: {exc}") from exc

    def exists(self, key: str) -> bool:
        return self._path_for(key).is_file()

    def delete(self, key: str) -> None:
        try:
            self._path_for(key).unlink(missing_ok=True)
        except (OSError, StorageError) as e:
            logger.warning("storage_delete_failed", key=key, error=str(e))


class FakeStorageClient(StorageClientBase):
    """Fake storage client for testing.

    Stores objects in memory and provides deterministic behavior for unit tests.
    """

    def __init__(self):
        self._objects: dict[str, bytes] = {}

    def save(self, key: str, data: bytes) -> None:
        self._objects[_checked_key(key)] = bytes(data)

    def stream(self, key: str) -> Iterator[bytes]:
        normalized = _checked_key(key)
        if normalized not in self._objects:
            raise StorageError(f"Object not found: {key}", code=ErrorCode.E_STORAGE_MISSING)
        content = self._objects[normalized]
        return iter([content[i : i + CHUNK_SIZE] for i in range(0, len(content), CHUNK_SIZE)])

    def exists(self, key: str) -> bool:
        return _checked_key(key) in self._objects

    def delete(self, key: str) -> None:
        self._objects.pop(_checked_key(key), None)

    # Test helper methods

    def put_object(self, key: str, content: bytes) -> None:
        """Store an object directly (test helper)."""
        self.save(key, content)

    def get_object(self, key: str) -> bytes | None:
        """Get object content directly (test helper)."""
        return self._objects.get(_checked_key(key))

    def keys(self) -> list[str]:
        """All stored keys, sorted (test helper)."""
        return sorted(self._objects)

    def clear(self) -> None:
        """Clear all stored objects (test helper)."""
        self._objects.clear()


def get_storage_client() -> StorageClientBase:
    """Get the configured storage client.

    Returns:
        LocalStorageClient rooted at STORAGE_ROOT, or FakeStorageClient when
        STORAGE_BACKEND=memory.
    """
    settings = get_settings()
    if settings.storage_backend == StorageBackend.MEMORY:
        return FakeStorageClient()
    return LocalStorageClient(settings.storage_root)


def compute_sha256(data: bytes | BinaryIO | Iterator[bytes]) -> str:
    """Compute SHA-256 hash of data.

    Args:
        data: Bytes, file-like object, or iterator of bytes.

    Returns:
        Hex-encoded SHA-256 hash.
    """
    hasher = hashlib.sha256()

    if isinstance(data, (bytes, bytearray, memoryview)):
        hasher.update(data)
    elif hasattr(data, "read"):
        # File-like object
        while chunk := data.read(CHUNK_SIZE):
            hasher.update(chunk)
    else:
        # Iterator
        for chunk in data:
            hasher.update(chunk)

    return hasher.hexdigest()
