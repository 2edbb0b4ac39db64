"""Content-hash deduplication of uploads.

Two uploads are the same document when their SHA-256 digests match. Equal
digests are treated as equal bytes; no byte-by-byte comparison follows.

Sources stored before digests were recorded have file_hash NULL. They are
hashed on demand: only rows with the same owner and the same byte size can
possibly match, so only those are read back from storage, and each computed
digest is persisted so the work is done once.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import BinaryIO
from uuid import UUID

from lectern.db.repository import SourceRecord, SourceRepository
from lectern.errors import LecternError
from lectern.logging import get_logger
from lectern.storage.client import StorageClientBase, compute_sha256

logger = get_logger(__name__)


@dataclass(frozen=True)
class BackfillResult:
    """Outcome of hashing one legacy source."""

    source_id: UUID
    digest: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.digest is not None


def compute_digest(data: bytes | BinaryIO | Iterator[bytes]) -> str:
    """Hex SHA-256 of an upload."""
    return compute_sha256(data)


def backfill_digests(
    repo: SourceRepository,
    storage: StorageClientBase,
    owner_id: str,
    file_size: int,
    *,
    stop_at: str | None = None,
) -> list[BackfillResult]:
    """Hash and persist digests for an owner's legacy sources of one size.

    A candidate whose file is missing or unreadable is recorded as failed and
    skipped; it never aborts the batch.

    Args:
        stop_at: Stop after the first candidate whose digest equals this one.

    Returns:
        One result per candidate processed, in repository order.
    """
    results: list[BackfillResult] = []
    for candidate in repo.find_unhashed_by_size(owner_id, file_size):
        result = _backfill_one(repo, storage, candidate)
        results.append(result)
        if stop_at is not None and result.digest == stop_at:
            break

    if results:
        logger.info(
            "digest_backfill_completed",
            owner_id=owner_id,
            file_size=file_size,
            hashed=sum(1 for r in results if r.ok),
            failed=sum(1 for r in results if not r.ok),
        )
    return results


def _backfill_one(
    repo: SourceRepository, storage: StorageClientBase, candidate: SourceRecord
) -> BackfillResult:
    key = storage.resolve_key_from_path(candidate.file_path)
    if key is None:
        logger.warning(
            "digest_backfill_candidate_skipped",
            candidate_id=str(candidate.id),
            reason="invalid_file_path",
        )
        return BackfillResult(source_id=candidate.id, error="Invalid stored file path")

    try:
        digest = compute_sha256(storage.stream(key))
        repo.set_file_hash(candidate.id, digest)
    except (LecternError, OSError) as exc:
        logger.warning(
            "digest_backfill_candidate_skipped",
            candidate_id=str(candidate.id),
            reason=str(exc),
        )
        return BackfillResult(source_id=candidate.id, error=str(exc))

    return BackfillResult(source_id=candidate.id, digest=digest)


def find_duplicate(
    repo: SourceRepository,
    storage: StorageClientBase,
    digest: str,
    file_size: int,
    owner_id: str,
) -> SourceRecord | None:
    """An existing source of this owner with the same content, if any.

    Checks recorded digests first, then backfills same-size legacy sources
    until one matches.
    """
    existing = repo.find_by_hash(owner_id, digest)
    if existing is not None:
        return existing

    for result in backfill_digests(repo, storage, owner_id, file_size, stop_at=digest):
        if result.digest == digest:
            return repo.get_source(result.source_id)
    return None
