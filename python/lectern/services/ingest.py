"""Upload ingestion.

Orchestrates one upload end to end: format detection, size check, content
hash dedup, storing the original bytes, soft-failing container parse, cover
extraction, and materializing the chapter tree.

Parse problems never fail an upload; the source then falls back to its file
name for a title and gets an empty chapter list.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from uuid import UUID, uuid4

from lectern.config import Settings, get_settings
from lectern.db.repository import ChapterRecord, SourceRecord, SourceRepository
from lectern.errors import DuplicateUploadError, ErrorCode, InvalidRequestError
from lectern.logging import get_logger, ingest_context
from lectern.mime import extension_for_image
from lectern.parsing.container import detect_kind, parse_container
from lectern.parsing.types import SourceKind
from lectern.services.dedup import compute_digest, find_duplicate
from lectern.services.toc import materialize_chapters
from lectern.storage.client import StorageClientBase, StorageError
from lectern.storage.paths import build_cover_path, build_storage_path, get_file_extension

logger = get_logger(__name__)

UNTITLED = "Untitled"


@dataclass(frozen=True)
class UploadResult:
    source: SourceRecord
    chapters: list[ChapterRecord]
    warnings: list[str] = field(default_factory=list)


def title_from_filename(filename: str) -> str | None:
    """File name without directory or extension; None if nothing is left."""
    base = posixpath.basename(filename.replace("\\", "/"))
    stem = base.rsplit(".", 1)[0] if "." in base else base
    return stem.strip() or None


def ingest_upload(
    repo: SourceRepository,
    storage: StorageClientBase,
    owner_id: str,
    filename: str,
    data: bytes,
    *,
    settings: Settings | None = None,
) -> UploadResult:
    """Store and index one uploaded file.

    Raises:
        UnsupportedFormatError: The file extension is not recognized.
        InvalidRequestError: The file is empty or too large (E_FILE_TOO_LARGE).
        DuplicateUploadError: The owner already has a source with these bytes.
        StorageError: The original file could not be stored.
    """
    settings = settings or get_settings()
    kind = detect_kind(filename)

    if not data:
        raise InvalidRequestError(message="Uploaded file is empty")
    if len(data) > settings.max_upload_bytes:
        raise InvalidRequestError(
            ErrorCode.E_FILE_TOO_LARGE,
            f"File is {len(data)} bytes; the limit is {settings.max_upload_bytes}",
        )

    with ingest_context(owner_id=owner_id):
        digest = compute_digest(data)
        existing = find_duplicate(repo, storage, digest, len(data), owner_id)
        if existing is not None:
            logger.info("upload_duplicate_detected", existing_source_id=str(existing.id))
            raise DuplicateUploadError(existing)

        source_id = uuid4()
        with ingest_context(source_id=str(source_id)):
            return _store_and_index(
                repo, storage, owner_id, filename, data, digest, kind, source_id
            )


def _store_and_index(
    repo: SourceRepository,
    storage: StorageClientBase,
    owner_id: str,
    filename: str,
    data: bytes,
    digest: str,
    kind: SourceKind,
    source_id: UUID,
) -> UploadResult:
    file_key = build_storage_path(source_id, get_file_extension(kind.value))
    storage.save(file_key, data)

    fallback_title = title_from_filename(filename)
    cover_key = None
    try:
        parsed = parse_container(data, kind, fallback_title=fallback_title)
        metadata = parsed.metadata
        warnings = list(parsed.warnings)

        if metadata.cover_bytes:
            cover_key = build_cover_path(
                source_id, extension_for_image(metadata.cover_mime_type)
            )
            try:
                storage.save(cover_key, metadata.cover_bytes)
            except StorageError as exc:
                logger.warning("cover_save_failed", error=exc.message)
                warnings.append(f"Cover image not saved: {exc.message}")
                cover_key = None

        source = repo.create_source(
            source_id=source_id,
            owner_id=owner_id,
            kind=kind.value,
            title=metadata.title or fallback_title or UNTITLED,
            author=metadata.author,
            language=metadata.language,
            publisher=metadata.publisher,
            description=metadata.description,
            file_path=file_key,
            file_size=len(data),
            file_hash=digest,
            cover_path=cover_key,
        )
        chapters = materialize_chapters(repo, source.id, parsed.toc)
    except Exception:
        storage.delete(file_key)
        if cover_key is not None:
            storage.delete(cover_key)
        raise

    logger.info(
        "upload_ingested",
        kind=kind.value,
        size_bytes=len(data),
        chapter_count=len(chapters),
        warning_count=len(warnings),
    )
    return UploadResult(source=source, chapters=chapters, warnings=warnings)
