"""Container-level entry points: format detection and soft-failing parse."""

from __future__ import annotations

import posixpath

from lectern.errors import CorruptArchiveError, UnsupportedFormatError
from lectern.logging import get_logger
from lectern.parsing.archive import Archive, ArchiveSafetyLimits, check_archive_safety
from lectern.parsing.content import coerce_kind
from lectern.parsing.markdown_structure import parse_markdown
from lectern.parsing.navigation import build_epub_toc
from lectern.parsing.package import parse_package
from lectern.parsing.types import PackageParseError, ParsedContainer, ParsedMetadata, SourceKind

logger = get_logger(__name__)

EXTENSION_TO_KIND = {
    ".epub": SourceKind.EPUB,
    ".md": SourceKind.MARKDOWN,
    ".markdown": SourceKind.MARKDOWN,
}


def detect_kind(filename: str) -> SourceKind:
    """Source kind from a file name's extension (case-insensitive).

    Raises:
        UnsupportedFormatError: For any other extension.
    """
    ext = posixpath.splitext(filename.replace("\\", "/"))[1].lower()
    kind = EXTENSION_TO_KIND.get(ext)
    if kind is None:
        allowed = ", ".join(EXTENSION_TO_KIND)
        raise UnsupportedFormatError(
            f"Unsupported file type {ext or filename!r}; expected {allowed}"
        )
    return kind


def parse_container(
    data: bytes,
    kind: SourceKind | str,
    fallback_title: str | None = None,
) -> ParsedContainer:
    """Metadata and table of contents for an uploaded file.

    Structural problems never raise: an unreadable, unsafe, or malformed
    container yields empty metadata and an empty TOC, with the reason in
    ``warnings``.

    Raises:
        UnsupportedFormatError: Unknown kind.
    """
    kind = coerce_kind(kind)

    if kind == SourceKind.MARKDOWN:
        metadata, toc = parse_markdown(data.decode("utf-8-sig", errors="replace"), fallback_title)
        return ParsedContainer(metadata=metadata, toc=toc)

    try:
        archive = Archive.open(data)
    except CorruptArchiveError as exc:
        logger.warning("epub_archive_unreadable", error=exc.message)
        return _empty(exc.message)

    with archive:
        try:
            check_archive_safety(archive, ArchiveSafetyLimits.from_settings())
        except CorruptArchiveError as exc:
            logger.warning("epub_archive_unsafe", error_code=exc.code.value, error=exc.message)
            return _empty(exc.message)

        try:
            package = parse_package(archive)
            if isinstance(package, PackageParseError):
                logger.warning("epub_package_parse_failed", error=package.message)
                return _empty(package.message)

            toc, warnings = build_epub_toc(archive, package)
        except CorruptArchiveError as exc:
            logger.warning("epub_entry_unreadable", error=exc.message)
            return _empty(exc.message)

    logger.info(
        "epub_parsed",
        package_path=package.path,
        manifest_items=len(package.manifest),
        spine_items=len(package.spine),
        toc_top_level=len(toc),
        has_cover=package.metadata.cover_bytes is not None,
    )
    return ParsedContainer(metadata=package.metadata, toc=toc, warnings=warnings)


def _empty(reason: str) -> ParsedContainer:
    return ParsedContainer(metadata=ParsedMetadata(), toc=[], warnings=[reason])
