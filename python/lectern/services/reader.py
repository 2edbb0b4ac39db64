"""Chapter reading and asset serving for stored sources.

Every call re-reads the stored upload; nothing parsed is cached between
requests.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from lectern.db.repository import SourceRecord, SourceRepository
from lectern.errors import ErrorCode, InvalidRequestError, NotFoundError
from lectern.logging import get_logger, ingest_context
from lectern.mime import guess_mime_type
from lectern.parsing.content import extract_chapter, read_asset
from lectern.parsing.types import SourceKind
from lectern.storage.client import StorageClientBase, StorageError

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChapterContent:
    id: UUID
    title: str
    href: str
    content: str


def read_chapter(
    repo: SourceRepository,
    storage: StorageClientBase,
    source_id: UUID,
    chapter_id: UUID,
    *,
    owner_id: str | None = None,
) -> ChapterContent:
    """Render one chapter of a stored source.

    Raises:
        NotFoundError: Unknown source (E_SOURCE_NOT_FOUND), chapter
            (E_CHAPTER_NOT_FOUND), or archive entry (E_ENTRY_NOT_FOUND).
        StorageError: The stored file is missing or unreadable.
        CorruptArchiveError: The stored file is not a readable archive.
    """
    source = _require_source(repo, source_id, owner_id)
    chapter = repo.get_chapter(source.id, chapter_id)
    if chapter is None:
        raise NotFoundError(ErrorCode.E_CHAPTER_NOT_FOUND, f"Chapter {chapter_id} not found")

    with ingest_context(source_id=str(source.id)):
        data = _read_source_file(storage, source)
        content = extract_chapter(data, source.kind, chapter.href, source_id=source.id)
        logger.info("chapter_read", chapter_id=str(chapter.id), content_length=len(content))

    return ChapterContent(id=chapter.id, title=chapter.title, href=chapter.href, content=content)


def serve_image(
    repo: SourceRepository,
    storage: StorageClientBase,
    source_id: UUID,
    path: str,
    *,
    owner_id: str | None = None,
) -> tuple[bytes, str]:
    """Bytes and MIME type of an image embedded in an EPUB source.

    ``path`` is the archive path carried in the rewritten image URL.

    Raises:
        InvalidRequestError: Empty path, or the source is not an EPUB.
        NotFoundError: Unknown source or no such archive entry.
    """
    if not path:
        raise InvalidRequestError(message="Image path required")
    source = _require_source(repo, source_id, owner_id)
    if source.kind != SourceKind.EPUB.value:
        raise InvalidRequestError(message="This source type does not support images")

    with ingest_context(source_id=str(source.id)):
        return read_asset(_read_source_file(storage, source), path)


def serve_cover(
    repo: SourceRepository,
    storage: StorageClientBase,
    source_id: UUID,
    *,
    owner_id: str | None = None,
) -> tuple[bytes, str]:
    """Bytes and MIME type of a source's stored cover image."""
    source = _require_source(repo, source_id, owner_id)
    key = storage.resolve_key_from_path(source.cover_path)
    if key is None:
        raise NotFoundError(message=f"Source {source_id} has no cover")
    return storage.read(key), guess_mime_type(key)


def _require_source(
    repo: SourceRepository, source_id: UUID, owner_id: str | None
) -> SourceRecord:
    source = repo.get_source(source_id, owner_id=owner_id)
    if source is None:
        raise NotFoundError(ErrorCode.E_SOURCE_NOT_FOUND, f"Source {source_id} not found")
    return source


def _read_source_file(storage: StorageClientBase, source: SourceRecord) -> bytes:
    key = storage.resolve_key_from_path(source.file_path)
    if key is None:
        raise StorageError(f"Invalid stored file path for source {source.id}")
    return storage.read(key)
