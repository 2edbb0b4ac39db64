"""EPUB navigation parsing.

Two navigation document flavours share one parse entry point:
- legacy: an NCX navMap of nested navPoint elements
- modern: an XHTML <nav epub:type="toc"> holding nested <ol>/<li> lists

The modern document is preferred; the legacy one is the fallback. When
neither yields any entries the table of contents is built from the spine.

Nesting depth comes from the uploaded file, so trees are walked with an
explicit stack rather than recursion.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from enum import Enum
from xml.etree import ElementTree as ET

from lectern.logging import get_logger
from lectern.parsing.archive import Archive
from lectern.parsing.package import parse_xml_entry, resolve_href
from lectern.parsing.types import NavigationParseError, PackageDocument, TocItem

logger = get_logger(__name__)

_EPUB_TYPE_ATTR = "{http://www.idpf.org/2007/ops}type"
_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")
_WS_RE = re.compile(r"\s+")
_GENERATED_ID_RE = re.compile(
    r"(?:id|item|x?html?|text|page|section|chapter|ch|part|split|file)?[-_.]?\d+"
    r"|[0-9a-f]{8}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{12}",
    re.IGNORECASE,
)


class NavKind(str, Enum):
    LEGACY = "legacy"
    MODERN = "modern"


@dataclass(frozen=True)
class NavDocument:
    """A navigation document located through the package manifest."""

    kind: NavKind
    path: str
    root: ET.Element

    @property
    def base_dir(self) -> str:
        return posixpath.dirname(self.path)


def load_navigation(
    archive: Archive, package: PackageDocument, kind: NavKind
) -> NavDocument | NavigationParseError:
    """Read and parse the package's navigation document of the given kind."""
    path = package.nav_href if kind == NavKind.MODERN else package.ncx_href
    if path is None:
        return NavigationParseError(message=f"No {kind.value} navigation document referenced")
    if path not in archive:
        return NavigationParseError(message=f"Navigation document not found: {path}")
    root = parse_xml_entry(archive, path)
    if root is None:
        return NavigationParseError(message=f"Navigation document is not well-formed: {path}")
    return NavDocument(kind=kind, path=path, root=root)


def parse_navigation(doc: NavDocument) -> list[TocItem] | NavigationParseError:
    """Parse a navigation document into a TocItem tree.

    Targets are resolved against the navigation document's own directory and
    keep their fragment. Returns NavigationParseError when the document has no
    usable entries.
    """
    if doc.kind == NavKind.MODERN:
        toc = _parse_modern(doc)
    else:
        toc = _parse_legacy(doc)
    if isinstance(toc, NavigationParseError):
        return toc
    if not toc:
        return NavigationParseError(message=f"Navigation document has no entries: {doc.path}")
    return toc


def spine_toc(package: PackageDocument) -> list[TocItem]:
    """One flat TOC level built from the spine reading order."""
    toc: list[TocItem] = []
    for idref in package.spine:
        item = package.manifest.get(idref)
        if item is None:
            continue
        position = len(toc)
        toc.append(
            TocItem(
                title=_spine_title(idref, position + 1),
                href=item.href,
                order=position,
            )
        )
    return toc


def build_epub_toc(archive: Archive, package: PackageDocument) -> tuple[list[TocItem], list[str]]:
    """Table of contents for a package, with warnings for each fallback taken."""
    warnings: list[str] = []
    for kind in (NavKind.MODERN, NavKind.LEGACY):
        doc = load_navigation(archive, package, kind)
        if isinstance(doc, NavigationParseError):
            warnings.append(doc.message)
            continue
        toc = parse_navigation(doc)
        if isinstance(toc, NavigationParseError):
            logger.warning("epub_navigation_parse_failed", kind=kind.value, error=toc.message)
            warnings.append(toc.message)
            continue
        return toc, warnings

    logger.info("epub_toc_spine_fallback", spine_length=len(package.spine))
    return spine_toc(package), warnings


# ---------------------------------------------------------------------------
# Modern (XHTML nav)
# ---------------------------------------------------------------------------


def _parse_modern(doc: NavDocument) -> list[TocItem] | NavigationParseError:
    navs = [el for el in doc.root.iter() if _local(el.tag) == "nav"]
    toc_nav = next((el for el in navs if "toc" in el.get(_EPUB_TYPE_ATTR, "").split()), None)
    if toc_nav is None and navs:
        toc_nav = navs[0]
    if toc_nav is None:
        return NavigationParseError(message=f"No <nav> element in {doc.path}")

    top_ol = next((el for el in toc_nav.iter() if _local(el.tag) == "ol"), None)
    if top_ol is None:
        return NavigationParseError(message=f"No <ol> in the toc <nav> of {doc.path}")

    toc: list[TocItem] = []
    stack: list[tuple[ET.Element, list[TocItem]]] = [(top_ol, toc)]
    while stack:
        ol, siblings = stack.pop()
        for li in ol:
            if _local(li.tag) != "li":
                continue
            label, href = _modern_entry(li)
            nested_ol = next((child for child in li if _local(child.tag) == "ol"), None)
            if href is None and nested_ol is not None:
                # Heading-only group: point at its first linked descendant.
                href = next(
                    (a.get("href") for a in nested_ol.iter() if _local(a.tag) == "a"),
                    None,
                )
            item = _make_item(doc, label, href, len(siblings))
            if item is None:
                continue
            siblings.append(item)
            if nested_ol is not None:
                stack.append((nested_ol, item.children))
    return toc


def _modern_entry(li: ET.Element) -> tuple[str, str | None]:
    for child in li:
        name = _local(child.tag)
        if name == "a":
            return _text(child), child.get("href")
        if name == "span":
            return _text(child), None
    # Bare text directly inside the <li>.
    return _WS_RE.sub(" ", li.text or "").strip(), None


# ---------------------------------------------------------------------------
# Legacy (NCX)
# ---------------------------------------------------------------------------


def _parse_legacy(doc: NavDocument) -> list[TocItem] | NavigationParseError:
    nav_map = next((el for el in doc.root.iter() if _local(el.tag) == "navMap"), None)
    if nav_map is None:
        return NavigationParseError(message=f"No navMap in {doc.path}")

    toc: list[TocItem] = []
    stack: list[tuple[ET.Element, list[TocItem]]] = [(nav_map, toc)]
    while stack:
        parent, siblings = stack.pop()
        for point in parent:
            if _local(point.tag) != "navPoint":
                continue
            label, href = _legacy_entry(point)
            item = _make_item(doc, label, href, len(siblings))
            if item is None:
                continue
            siblings.append(item)
            stack.append((point, item.children))
    return toc


def _legacy_entry(point: ET.Element) -> tuple[str, str | None]:
    label = ""
    href = None
    for child in point:
        name = _local(child.tag)
        if name == "navLabel" and not label:
            text_el = next((el for el in child if _local(el.tag) == "text"), None)
            label = _text(text_el) if text_el is not None else _text(child)
        elif name == "content" and href is None:
            href = child.get("src")
    return label, href


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_item(doc: NavDocument, label: str, href: str | None, order: int) -> TocItem | None:
    target = _resolve_target(doc, href) if href else None
    if not label and target:
        label = posixpath.basename(target.split("#", 1)[0]) or target
    if not label or target is None:
        return None
    return TocItem(title=label, href=target, order=order)


def _resolve_target(doc: NavDocument, href: str) -> str:
    href = href.strip()
    if _SCHEME_RE.match(href):
        return href
    path, _, fragment = href.partition("#")
    resolved = resolve_href(doc.base_dir, path) if path else doc.path
    return f"{resolved}#{fragment}" if fragment else resolved


def _spine_title(manifest_id: str, position: int) -> str:
    if _GENERATED_ID_RE.fullmatch(manifest_id):
        return f"Chapter {position}"
    return manifest_id


def _local(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _text(el: ET.Element) -> str:
    return _WS_RE.sub(" ", "".join(el.itertext())).strip()
