"""Read-only access to the entries of a compressed container."""

from __future__ import annotations

import io
import zipfile
import zlib
from dataclasses import dataclass

from lectern.config import Settings, get_settings
from lectern.errors import ArchiveUnsafeError, CorruptArchiveError, EntryNotFoundError


@dataclass(frozen=True)
class ArchiveSafetyLimits:
    max_entries: int
    max_total_uncompressed_bytes: int
    max_single_entry_uncompressed_bytes: int
    max_compression_ratio: int

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ArchiveSafetyLimits:
        settings = settings or get_settings()
        return cls(
            max_entries=settings.max_archive_entries,
            max_total_uncompressed_bytes=settings.max_archive_total_uncompressed_bytes,
            max_single_entry_uncompressed_bytes=settings.max_archive_single_entry_uncompressed_bytes,
            max_compression_ratio=settings.max_archive_compression_ratio,
        )


class Archive:
    """An opened ZIP container.

    Entry lookups match recorded names exactly: no case folding, no path
    normalization.
    """

    def __init__(self, zf: zipfile.ZipFile):
        self._zf = zf
        self._names = frozenset(info.filename for info in zf.infolist() if not info.is_dir())

    @classmethod
    def open(cls, data: bytes) -> Archive:
        """Open archive bytes.

        Raises:
            CorruptArchiveError: If the bytes are not a readable ZIP.
        """
        try:
            zf = zipfile.ZipFile(io.BytesIO(data))
        except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError, OSError) as exc:
            raise CorruptArchiveError(f"Invalid archive: {exc}") from exc
        return cls(zf)

    def list(self) -> frozenset[str]:
        return self._names

    def __contains__(self, path: str) -> bool:
        return path in self._names

    def read(self, path: str) -> bytes:
        """Read one entry's bytes.

        Raises:
            EntryNotFoundError: If no entry has exactly this name.
            CorruptArchiveError: If the entry cannot be decompressed.
        """
        if path not in self._names:
            raise EntryNotFoundError(path)
        try:
            return self._zf.read(path)
        except (zipfile.BadZipFile, zlib.error, EOFError, OSError, RuntimeError) as exc:
            raise CorruptArchiveError(f"Failed to read entry {path}: {exc}") from exc

    def read_text(self, path: str) -> str:
        return self.read(path).decode("utf-8", errors="replace")

    def infolist(self) -> list[zipfile.ZipInfo]:
        return self._zf.infolist()

    def close(self) -> None:
        self._zf.close()

    def __enter__(self) -> Archive:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def check_archive_safety(archive: Archive, limits: ArchiveSafetyLimits) -> None:
    """Reject archives that are too large, too compressed, or escape their root.

    Raises:
        ArchiveUnsafeError: On the first violated limit.
    """
    infos = archive.infolist()

    if len(infos) > limits.max_entries:
        raise ArchiveUnsafeError(
            f"Archive has {len(infos)} entries (limit {limits.max_entries})"
        )

    total_uncompressed = 0
    for info in infos:
        name = info.filename
        if name.startswith("/") or name.startswith("\\"):
            raise ArchiveUnsafeError(f"Absolute path in archive: {name}")
        if ".." in name.replace("\\", "/").split("/"):
            raise ArchiveUnsafeError(f"Path traversal in archive: {name}")
        if len(name) > 1 and name[1] == ":":
            raise ArchiveUnsafeError(f"Drive-qualified path in archive: {name}")

        uncompressed = info.file_size
        compressed = info.compress_size

        if uncompressed > limits.max_single_entry_uncompressed_bytes:
            raise ArchiveUnsafeError(
                f"Entry '{name}' uncompressed size {uncompressed} "
                f"exceeds limit {limits.max_single_entry_uncompressed_bytes}"
            )

        total_uncompressed += uncompressed

        if compressed > 0 and uncompressed / compressed > limits.max_compression_ratio:
            raise ArchiveUnsafeError(
                f"Entry '{name}' compression ratio {uncompressed / compressed:.1f} "
                f"exceeds limit {limits.max_compression_ratio}"
            )

    if total_uncompressed > limits.max_total_uncompressed_bytes:
        raise ArchiveUnsafeError(
            f"Total uncompressed {total_uncompressed} "
            f"exceeds limit {limits.max_total_uncompressed_bytes}"
        )
