"""EPUB package (OPF) document parsing.

Locates the package document through META-INF/container.xml and turns it
into a PackageDocument: metadata, a manifest keyed by id with hrefs resolved
to archive paths, the spine reading order, navigation document refs, and the
cover manifest id.

A missing or malformed package document is returned as a PackageParseError
value rather than raised; the caller degrades to empty metadata.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import replace
from urllib.parse import unquote
from xml.etree import ElementTree as ET

from lectern.errors import LecternError
from lectern.logging import get_logger
from lectern.mime import guess_mime_type
from lectern.parsing.archive import Archive
from lectern.parsing.types import ManifestItem, PackageDocument, PackageParseError, ParsedMetadata

logger = get_logger(__name__)

CONTAINER_PATH = "META-INF/container.xml"
NCX_MEDIA_TYPE = "application/x-dtbncx+xml"
_PACKAGE_MEDIA_TYPE = "application/oebps-package+xml"

_NS = {
    "opf": "http://www.idpf.org/2007/opf",
    "dc": "http://purl.org/dc/elements/1.1/",
    "container": "urn:oasis:names:tc:opendocument:xmlns:container",
}

_WS_RE = re.compile(r"\s+")


def parse_xml_entry(archive: Archive, path: str) -> ET.Element | None:
    """Parse one archive entry as XML; None if it is absent or malformed."""
    try:
        return ET.fromstring(archive.read(path))
    except (LecternError, ET.ParseError):
        return None


def resolve_href(base_dir: str, href: str) -> str:
    """Resolve a document-relative href to an archive path (fragment dropped)."""
    path = unquote(href.split("#", 1)[0])
    if base_dir:
        path = posixpath.join(base_dir, path)
    return posixpath.normpath(path)


def find_package_path(archive: Archive) -> str | None:
    container = parse_xml_entry(archive, CONTAINER_PATH)
    if container is None:
        return None
    rootfile = container.find(
        f".//container:rootfile[@media-type='{_PACKAGE_MEDIA_TYPE}']",
        _NS,
    )
    if rootfile is None:
        rootfile = container.find(".//container:rootfile", _NS)
    if rootfile is None:
        # Some producers omit the container namespace.
        rootfile = container.find(".//rootfile")
    if rootfile is not None:
        return rootfile.get("full-path") or None
    return None


def parse_package(archive: Archive) -> PackageDocument | PackageParseError:
    """Parse the archive's package document.

    Returns:
        PackageDocument on success, PackageParseError if the container or
        package document is missing or not well-formed XML.
    """
    package_path = find_package_path(archive)
    if package_path is None:
        return PackageParseError(message="No package document referenced by container.xml")
    if package_path not in archive:
        return PackageParseError(message=f"Package document not found at {package_path}")

    root = parse_xml_entry(archive, package_path)
    if root is None:
        return PackageParseError(message=f"Package document is not well-formed: {package_path}")

    base_dir = posixpath.dirname(package_path)
    manifest = _parse_manifest(root, base_dir)
    spine_el = root.find(".//opf:spine", _NS)
    spine = _parse_spine(spine_el)

    nav_href = next(
        (item.href for item in manifest.values() if "nav" in item.properties),
        None,
    )
    ncx_href = _find_ncx_href(spine_el, manifest)
    cover_id = _find_cover_id(root, manifest)

    metadata = _parse_metadata(root)
    if cover_id is not None:
        metadata = _with_cover(archive, metadata, manifest[cover_id])

    return PackageDocument(
        path=package_path,
        base_dir=base_dir,
        metadata=metadata,
        manifest=manifest,
        spine=spine,
        nav_href=nav_href,
        ncx_href=ncx_href,
        cover_manifest_id=cover_id,
    )


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


def _first_text(root: ET.Element, name: str) -> str | None:
    """First non-empty dc:<name>, falling back to an un-namespaced <name>."""
    candidates = root.findall(f".//opf:metadata/dc:{name}", _NS)
    candidates += root.findall(f".//dc:{name}", _NS)
    candidates += root.findall(f".//opf:metadata/opf:{name}", _NS)
    candidates += root.findall(f".//{name}")
    for el in candidates:
        text = _WS_RE.sub(" ", "".join(el.itertext())).strip()
        if text:
            return text
    return None


def _parse_metadata(root: ET.Element) -> ParsedMetadata:
    return ParsedMetadata(
        title=_first_text(root, "title"),
        author=_first_text(root, "creator"),
        language=_first_text(root, "language"),
        publisher=_first_text(root, "publisher"),
        description=_first_text(root, "description"),
    )


# ---------------------------------------------------------------------------
# Manifest / spine
# ---------------------------------------------------------------------------


def _parse_manifest(root: ET.Element, base_dir: str) -> dict[str, ManifestItem]:
    manifest: dict[str, ManifestItem] = {}
    for item in root.findall(".//opf:manifest/opf:item", _NS):
        item_id = item.get("id", "")
        href = item.get("href", "")
        if not item_id or not href or item_id in manifest:
            continue
        manifest[item_id] = ManifestItem(
            id=item_id,
            href=resolve_href(base_dir, href),
            media_type=item.get("media-type", ""),
            properties=frozenset(item.get("properties", "").split()),
        )
    return manifest


def _parse_spine(spine_el: ET.Element | None) -> list[str]:
    if spine_el is None:
        return []
    refs: list[str] = []
    for itemref in spine_el.findall("opf:itemref", _NS):
        idref = itemref.get("idref", "")
        if idref and itemref.get("linear", "yes") != "no":
            refs.append(idref)
    return refs


def _find_ncx_href(spine_el: ET.Element | None, manifest: dict[str, ManifestItem]) -> str | None:
    toc_id = spine_el.get("toc") if spine_el is not None else None
    if toc_id and toc_id in manifest:
        return manifest[toc_id].href
    for item in manifest.values():
        if item.media_type == NCX_MEDIA_TYPE:
            return item.href
    return None


# ---------------------------------------------------------------------------
# Cover
# ---------------------------------------------------------------------------


def _find_cover_id(root: ET.Element, manifest: dict[str, ManifestItem]) -> str | None:
    """Resolve the cover manifest id.

    Order: <meta name="cover" content=ID>, then a manifest item with the
    cover-image property, then the first image item whose id mentions "cover".
    """
    for meta in root.findall(".//opf:meta", _NS) + root.findall(".//meta"):
        if meta.get("name") == "cover":
            cover_id = meta.get("content")
            if cover_id and cover_id in manifest:
                return cover_id
            break

    for item in manifest.values():
        if "cover-image" in item.properties:
            return item.id

    for item in manifest.values():
        if "cover" in item.id.lower() and item.is_image:
            return item.id

    return None


def _with_cover(archive: Archive, metadata: ParsedMetadata, item: ManifestItem) -> ParsedMetadata:
    if item.href not in archive:
        logger.info("epub_cover_missing", cover_href=item.href)
        return metadata
    try:
        cover_bytes = archive.read(item.href)
    except LecternError as exc:
        logger.warning("epub_cover_unreadable", cover_href=item.href, error=exc.message)
        return metadata
    return replace(
        metadata,
        cover_bytes=cover_bytes,
        cover_mime_type=item.media_type or guess_mime_type(item.href),
    )
