"""Persistence boundary for sources and their chapter trees.

Services talk to SourceRepository only. Two adapters are provided: an
in-memory one (tests, scripts) and one backed by a SQLAlchemy session. The
SQLAlchemy adapter flushes but never commits; wrap calls in
lectern.db.session.transaction().
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from lectern.db.models import Chapter, Source
from lectern.errors import ErrorCode, InvalidRequestError, NotFoundError


@dataclass(frozen=True)
class SourceRecord:
    id: UUID
    owner_id: str
    kind: str
    title: str
    file_path: str
    file_size: int
    file_hash: str | None = None
    author: str | None = None
    language: str | None = None
    publisher: str | None = None
    description: str | None = None
    cover_path: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class ChapterRecord:
    id: UUID
    source_id: UUID
    title: str
    href: str
    order: int
    parent_id: UUID | None = None


class SourceRepository(ABC):
    """Abstract persistence for Source and Chapter rows."""

    @abstractmethod
    def create_source(
        self,
        *,
        owner_id: str,
        kind: str,
        title: str,
        file_path: str,
        file_size: int,
        file_hash: str | None = None,
        author: str | None = None,
        language: str | None = None,
        publisher: str | None = None,
        description: str | None = None,
        cover_path: str | None = None,
        source_id: UUID | None = None,
    ) -> SourceRecord: ...

    @abstractmethod
    def get_source(self, source_id: UUID, owner_id: str | None = None) -> SourceRecord | None:
        """Fetch a source, optionally restricted to one owner."""
        ...

    @abstractmethod
    def find_by_hash(self, owner_id: str, digest: str) -> SourceRecord | None: ...

    @abstractmethod
    def find_unhashed_by_size(self, owner_id: str, file_size: int) -> list[SourceRecord]:
        """Legacy sources of this owner with no recorded digest and the given size."""
        ...

    @abstractmethod
    def set_file_hash(self, source_id: UUID, digest: str) -> None: ...

    @abstractmethod
    def create_chapter(
        self,
        *,
        source_id: UUID,
        title: str,
        href: str,
        order: int,
        parent_id: UUID | None = None,
    ) -> ChapterRecord:
        """Insert one chapter and return it with its new id.

        Raises:
            NotFoundError: The source does not exist.
            InvalidRequestError: parent_id is not a chapter of the same source.
        """
        ...

    @abstractmethod
    def get_chapter(self, source_id: UUID, chapter_id: UUID) -> ChapterRecord | None: ...

    @abstractmethod
    def list_chapters(self, source_id: UUID) -> list[ChapterRecord]:
        """All chapters of a source in creation order."""
        ...


def _source_not_found(source_id: UUID) -> NotFoundError:
    return NotFoundError(ErrorCode.E_SOURCE_NOT_FOUND, f"Source {source_id} not found")


def _bad_parent(parent_id: UUID, source_id: UUID) -> InvalidRequestError:
    return InvalidRequestError(
        ErrorCode.E_INVALID_REQUEST,
        f"Parent chapter {parent_id} does not belong to source {source_id}",
    )


class InMemorySourceRepository(SourceRepository):
    """Dict-backed repository with the same contract as the SQL adapter."""

    def __init__(self):
        self._sources: dict[UUID, SourceRecord] = {}
        self._chapters: dict[UUID, list[ChapterRecord]] = {}

    def create_source(
        self,
        *,
        owner_id: str,
        kind: str,
        title: str,
        file_path: str,
        file_size: int,
        file_hash: str | None = None,
        author: str | None = None,
        language: str | None = None,
        publisher: str | None = None,
        description: str | None = None,
        cover_path: str | None = None,
        source_id: UUID | None = None,
    ) -> SourceRecord:
        record = SourceRecord(
            id=source_id or uuid4(),
            owner_id=owner_id,
            kind=kind,
            title=title,
            file_path=file_path,
            file_size=file_size,
            file_hash=file_hash,
            author=author,
            language=language,
            publisher=publisher,
            description=description,
            cover_path=cover_path,
            created_at=datetime.now(UTC),
        )
        if record.id in self._sources:
            raise InvalidRequestError(message=f"Source {record.id} already exists")
        self._sources[record.id] = record
        self._chapters[record.id] = []
        return record

    def get_source(self, source_id: UUID, owner_id: str | None = None) -> SourceRecord | None:
        record = self._sources.get(source_id)
        if record is None or (owner_id is not None and record.owner_id != owner_id):
            return None
        return record

    def find_by_hash(self, owner_id: str, digest: str) -> SourceRecord | None:
        for record in self._sources.values():
            if record.owner_id == owner_id and record.file_hash == digest:
                return record
        return None

    def find_unhashed_by_size(self, owner_id: str, file_size: int) -> list[SourceRecord]:
        return [
            record
            for record in self._sources.values()
            if record.owner_id == owner_id
            and record.file_hash is None
            and record.file_size == file_size
        ]

    def set_file_hash(self, source_id: UUID, digest: str) -> None:
        self._update(source_id, file_hash=digest)

    def _update(self, source_id: UUID, **changes) -> None:
        record = self._sources.get(source_id)
        if record is None:
            raise _source_not_found(source_id)
        self._sources[source_id] = replace(record, **changes)

    def create_chapter(
        self,
        *,
        source_id: UUID,
        title: str,
        href: str,
        order: int,
        parent_id: UUID | None = None,
    ) -> ChapterRecord:
        if source_id not in self._sources:
            raise _source_not_found(source_id)
        chapters = self._chapters[source_id]
        if parent_id is not None and not any(ch.id == parent_id for ch in chapters):
            raise _bad_parent(parent_id, source_id)
        record = ChapterRecord(
            id=uuid4(),
            source_id=source_id,
            title=title,
            href=href,
            order=order,
            parent_id=parent_id,
        )
        chapters.append(record)
        return record

    def get_chapter(self, source_id: UUID, chapter_id: UUID) -> ChapterRecord | None:
        for chapter in self._chapters.get(source_id, []):
            if chapter.id == chapter_id:
                return chapter
        return None

    def list_chapters(self, source_id: UUID) -> list[ChapterRecord]:
        return list(self._chapters.get(source_id, []))


class SqlAlchemySourceRepository(SourceRepository):
    """Repository over a SQLAlchemy session. Flushes; the caller commits."""

    def __init__(self, db: Session):
        self._db = db

    def create_source(
        self,
        *,
        owner_id: str,
        kind: str,
        title: str,
        file_path: str,
        file_size: int,
        file_hash: str | None = None,
        author: str | None = None,
        language: str | None = None,
        publisher: str | None = None,
        description: str | None = None,
        cover_path: str | None = None,
        source_id: UUID | None = None,
    ) -> SourceRecord:
        row = Source(
            id=source_id or uuid4(),
            owner_id=owner_id,
            kind=kind,
            title=title,
            file_path=file_path,
            file_size=file_size,
            file_hash=file_hash,
            author=author,
            language=language,
            publisher=publisher,
            description=description,
            cover_path=cover_path,
        )
        self._db.add(row)
        self._db.flush()
        return _source_record(row)

    def get_source(self, source_id: UUID, owner_id: str | None = None) -> SourceRecord | None:
        row = self._db.get(Source, source_id)
        if row is None or (owner_id is not None and row.owner_id != owner_id):
            return None
        return _source_record(row)

    def find_by_hash(self, owner_id: str, digest: str) -> SourceRecord | None:
        row = self._db.execute(
            select(Source)
            .where(Source.owner_id == owner_id, Source.file_hash == digest)
            .order_by(Source.created_at)
            .limit(1)
        ).scalar()
        return _source_record(row) if row is not None else None

    def find_unhashed_by_size(self, owner_id: str, file_size: int) -> list[SourceRecord]:
        rows = self._db.execute(
            select(Source)
            .where(
                Source.owner_id == owner_id,
                Source.file_hash.is_(None),
                Source.file_size == file_size,
            )
            .order_by(Source.created_at)
        ).scalars()
        return [_source_record(row) for row in rows]

    def set_file_hash(self, source_id: UUID, digest: str) -> None:
        self._require_source(source_id).file_hash = digest
        self._db.flush()

    def _require_source(self, source_id: UUID) -> Source:
        row = self._db.get(Source, source_id)
        if row is None:
            raise _source_not_found(source_id)
        return row

    def create_chapter(
        self,
        *,
        source_id: UUID,
        title: str,
        href: str,
        order: int,
        parent_id: UUID | None = None,
    ) -> ChapterRecord:
        self._require_source(source_id)
        if parent_id is not None:
            parent = self._db.get(Chapter, parent_id)
            if parent is None or parent.source_id != source_id:
                raise _bad_parent(parent_id, source_id)

        next_seq = self._db.execute(
            select(func.coalesce(func.max(Chapter.seq), -1) + 1).where(
                Chapter.source_id == source_id
            )
        ).scalar_one()
        row = Chapter(
            source_id=source_id,
            title=title,
            href=href,
            order=order,
            parent_id=parent_id,
            seq=next_seq,
        )
        self._db.add(row)
        self._db.flush()
        return _chapter_record(row)

    def get_chapter(self, source_id: UUID, chapter_id: UUID) -> ChapterRecord | None:
        row = self._db.get(Chapter, chapter_id)
        if row is None or row.source_id != source_id:
            return None
        return _chapter_record(row)

    def list_chapters(self, source_id: UUID) -> list[ChapterRecord]:
        rows = self._db.execute(
            select(Chapter).where(Chapter.source_id == source_id).order_by(Chapter.seq)
        ).scalars()
        return [_chapter_record(row) for row in rows]


def _source_record(row: Source) -> SourceRecord:
    return SourceRecord(
        id=row.id,
        owner_id=row.owner_id,
        kind=row.kind,
        title=row.title,
        file_path=row.file_path,
        file_size=row.file_size,
        file_hash=row.file_hash,
        author=row.author,
        language=row.language,
        publisher=row.publisher,
        description=row.description,
        cover_path=row.cover_path,
        created_at=row.created_at,
    )


def _chapter_record(row: Chapter) -> ChapterRecord:
    return ChapterRecord(
        id=row.id,
        source_id=row.source_id,
        title=row.title,
        href=row.href,
        order=row.order,
        parent_id=row.parent_id,
    )
