"""Chapter content extraction.

Re-reads the stored container on every call: the chapter's markup (EPUB) or
its heading-delimited section (Markdown) is returned as HTML. Embedded image
references are rewritten to the per-source image route so the archive path
only travels as an opaque, URL-encoded query parameter.
"""

from __future__ import annotations

import posixpath
import re
from urllib.parse import quote, unquote

from lxml.etree import ParserError
from lxml.html import HtmlElement, document_fromstring

from lectern.config import get_settings
from lectern.errors import CorruptArchiveError, EntryNotFoundError, UnsupportedFormatError
from lectern.logging import get_logger
from lectern.mime import guess_mime_type
from lectern.parsing.archive import Archive, ArchiveSafetyLimits, check_archive_safety
from lectern.parsing.markdown_structure import render_section
from lectern.parsing.package import parse_package
from lectern.parsing.sanitize import sanitize_tree, serialize_children
from lectern.parsing.types import PackageParseError, SourceKind

logger = get_logger(__name__)

_XML_DECL_RE = re.compile(r"^\s*<\?xml[^>]*\?>", re.IGNORECASE)
_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")

# (tag, attribute) pairs that point at archive images and media.
_MEDIA_ATTRS = {
    "img": ("src",),
    "image": ("href", "xlink:href"),
    "video": ("src", "poster"),
    "audio": ("src",),
    "source": ("src",),
    "track": ("src",),
}

# Comma-separated candidate lists ("url 2x, url 640w").
_SRCSET_TAGS = frozenset({"img", "source"})


def coerce_kind(kind: SourceKind | str) -> SourceKind:
    """Validate a source kind.

    Raises:
        UnsupportedFormatError: If the kind is not one we can read.
    """
    if isinstance(kind, SourceKind):
        return kind
    try:
        return SourceKind(str(kind).lower())
    except ValueError:
        raise UnsupportedFormatError(f"Unsupported source kind: {kind}") from None


def extract_chapter(
    archive_bytes: bytes,
    kind: SourceKind | str,
    href: str,
    source_id: object | None = None,
) -> str:
    """Return one chapter's HTML.

    Args:
        archive_bytes: The stored upload.
        kind: Source kind; checked before any byte is read.
        href: TOC href (archive path for EPUB, "#anchor" for Markdown).
        source_id: When given, image references are rewritten to this
            source's image route.

    Raises:
        UnsupportedFormatError: Unknown kind.
        CorruptArchiveError: The EPUB container cannot be opened.
        EntryNotFoundError: The href does not address a chapter.
    """
    kind = coerce_kind(kind)

    if kind == SourceKind.MARKDOWN:
        text = archive_bytes.decode("utf-8-sig", errors="replace")
        return render_section(text, href)

    with _open_checked(archive_bytes) as archive:
        package = parse_package(archive)
        base_dir = "" if isinstance(package, PackageParseError) else package.base_dir
        chapter_path = _resolve_chapter_path(archive, base_dir, href)
        raw = archive.read_text(chapter_path)

    image_route = get_settings().image_route(source_id) if source_id is not None else None
    return _chapter_body(raw, chapter_path, image_route)


def read_asset(archive_bytes: bytes, path: str) -> tuple[bytes, str]:
    """Bytes and MIME type of one archive entry, addressed by exact path.

    Raises:
        CorruptArchiveError: The container cannot be opened.
        EntryNotFoundError: No entry has this path.
    """
    with _open_checked(archive_bytes) as archive:
        data = archive.read(path)
    return data, guess_mime_type(path)


def _open_checked(archive_bytes: bytes) -> Archive:
    archive = Archive.open(archive_bytes)
    try:
        check_archive_safety(archive, ArchiveSafetyLimits.from_settings())
    except CorruptArchiveError:
        archive.close()
        raise
    return archive


def _resolve_chapter_path(archive: Archive, base_dir: str, href: str) -> str:
    path = unquote(href.split("#", 1)[0])
    if not path:
        raise EntryNotFoundError(href)
    if path in archive:
        return path
    if base_dir:
        candidate = posixpath.normpath(posixpath.join(base_dir, path))
        if candidate in archive:
            return candidate
    raise EntryNotFoundError(href)


def _chapter_body(raw: str, chapter_path: str, image_route: str | None) -> str:
    raw = _XML_DECL_RE.sub("", raw, count=1)
    if not raw.strip():
        return ""
    try:
        doc = document_fromstring(raw)
    except ParserError:
        logger.info("epub_chapter_unparseable", chapter_path=chapter_path)
        return ""

    body = doc.find("body")
    if body is None:
        return ""
    sanitize_tree(body)

    chapter_dir = posixpath.dirname(chapter_path)
    for el in body.iter():
        if not isinstance(el, HtmlElement) or not isinstance(el.tag, str):
            continue
        _drop_package_attributes(el)
        if image_route is not None:
            _rewrite_media_refs(el, chapter_dir, image_route)

    return serialize_children(body)


def _drop_package_attributes(el: HtmlElement) -> None:
    for attr in [a for a in el.attrib if a.startswith(("epub:", "xmlns"))]:
        del el.attrib[attr]


def _rewrite_media_refs(el: HtmlElement, chapter_dir: str, image_route: str) -> None:
    tag = el.tag.lower()
    for attr in _MEDIA_ATTRS.get(tag, ()):
        value = el.get(attr)
        if value:
            el.set(attr, _media_url(value, chapter_dir, image_route))
    srcset = el.get("srcset")
    if tag in _SRCSET_TAGS and srcset:
        candidates = []
        for candidate in srcset.split(","):
            url, _sep, descriptor = candidate.strip().partition(" ")
            if url:
                rewritten = _media_url(url, chapter_dir, image_route)
                candidates.append(f"{rewritten} {descriptor.strip()}".rstrip())
        el.set("srcset", ", ".join(candidates))


def _media_url(value: str, chapter_dir: str, image_route: str) -> str:
    """Image route URL for an archive-relative reference; others unchanged."""
    value = value.strip()
    if not value or value.startswith("#") or _SCHEME_RE.match(value):
        return value
    path = unquote(value.split("#", 1)[0])
    resolved = posixpath.normpath(posixpath.join(chapter_dir, path))
    return f"{image_route}?path={quote(resolved, safe='')}"
