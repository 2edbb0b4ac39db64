"""Transient value types produced by the container parsers.

Nothing here outlives a single parse call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from lectern.errors import ErrorCode


class SourceKind(str, Enum):
    """Container formats we know how to ingest."""

    EPUB = "epub"
    MARKDOWN = "markdown"


@dataclass(frozen=True)
class ParsedMetadata:
    """Bibliographic metadata pulled from a package document or front matter."""

    title: str | None = None
    author: str | None = None
    language: str | None = None
    publisher: str | None = None
    description: str | None = None
    cover_bytes: bytes | None = field(default=None, repr=False)
    cover_mime_type: str | None = None


@dataclass
class TocItem:
    """One table-of-contents entry.

    ``order`` is the position among siblings and restarts at 0 in every
    sibling group.
    """

    title: str
    href: str
    order: int
    children: list[TocItem] = field(default_factory=list)


@dataclass(frozen=True)
class ManifestItem:
    id: str
    href: str
    media_type: str
    properties: frozenset[str] = frozenset()

    @property
    def is_image(self) -> bool:
        return self.media_type.startswith("image/")


@dataclass
class PackageDocument:
    """Parsed package (OPF) document. Manifest hrefs are archive paths."""

    path: str
    base_dir: str
    metadata: ParsedMetadata
    manifest: dict[str, ManifestItem]
    spine: list[str]
    nav_href: str | None = None
    ncx_href: str | None = None
    cover_manifest_id: str | None = None


@dataclass
class ParsedContainer:
    metadata: ParsedMetadata
    toc: list[TocItem]
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PackageParseError:
    """The container or package document was missing or malformed."""

    message: str
    error_code: ErrorCode = ErrorCode.E_MALFORMED_MANIFEST


@dataclass(frozen=True)
class NavigationParseError:
    """The navigation document was missing, malformed, or empty."""

    message: str
    error_code: ErrorCode = ErrorCode.E_MALFORMED_NAVIGATION
