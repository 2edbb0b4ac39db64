"""Business logic services.

This module contains service-layer functions that implement ingestion and
reading. Services are called by the outer application and talk to storage
and the source repository.
"""

from lectern.services.dedup import backfill_digests, compute_digest, find_duplicate
from lectern.services.ingest import UploadResult, ingest_upload
from lectern.services.reader import read_chapter, serve_cover, serve_image
from lectern.services.toc import build_chapter_tree, materialize_chapters

__all__ = [
    "ingest_upload",
    "UploadResult",
    "compute_digest",
    "find_duplicate",
    "backfill_digests",
    "materialize_chapters",
    "build_chapter_tree",
    "read_chapter",
    "serve_image",
    "serve_cover",
]
