"""Container parsing: EPUB packages and Markdown files.

Provides:
- parse_container() for metadata and table of contents at upload time
- extract_chapter() / read_asset() for reading a stored container later
- detect_kind() for mapping file names to source kinds
"""

from lectern.parsing.container import detect_kind, parse_container
from lectern.parsing.content import extract_chapter, read_asset
from lectern.parsing.types import (
    ManifestItem,
    PackageDocument,
    ParsedContainer,
    ParsedMetadata,
    SourceKind,
    TocItem,
)

__all__ = [
    "detect_kind",
    "parse_container",
    "extract_chapter",
    "read_asset",
    "ManifestItem",
    "PackageDocument",
    "ParsedContainer",
    "ParsedMetadata",
    "SourceKind",
    "TocItem",
]
