"""Markdown structure parsing.

Front matter supplies metadata; ATX heading lines supply the table of
contents. Every heading gets a stable anchor derived from its text, and a
chapter is the run of lines from its heading to the next heading of equal or
lesser level. TOC construction and section extraction share scan_headings()
so they always agree on where a chapter starts and ends.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass

import markdown

from lectern.errors import EntryNotFoundError
from lectern.parsing.sanitize import sanitize_fragment
from lectern.parsing.types import ParsedMetadata, TocItem

FRONT_MATTER_MARKER = "---"
DOCUMENT_ANCHOR = "document"
DEFAULT_DOCUMENT_TITLE = "Document"
MATH_BLOCK_MARKER = "$$"

_HEADING_RE = re.compile(r"^ {0,3}(#{1,6})\s+(.+?)\s*$")
_CLOSING_HASHES_RE = re.compile(r"(?:^|\s+)#+$")
_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"\s+")

_FRONT_MATTER_KEYS = {
    "title": "title",
    "author": "author",
    "creator": "author",
    "language": "language",
    "lang": "language",
    "publisher": "publisher",
    "description": "description",
    "summary": "description",
}

_RENDER_EXTENSIONS = ["fenced_code", "tables"]


@dataclass(frozen=True)
class Heading:
    level: int
    title: str
    anchor: str
    line_index: int


@dataclass(frozen=True)
class MarkdownDocument:
    """Markdown text split into front matter fields and body lines."""

    fields: dict[str, str]
    lines: list[str]

    @property
    def body(self) -> str:
        return "\n".join(self.lines)


def slugify(text: str) -> str:
    """Lowercase anchor text: punctuation dropped, whitespace runs become hyphens."""
    slug = unicodedata.normalize("NFKC", text).lower()
    slug = _SLUG_STRIP_RE.sub("", slug)
    slug = _SLUG_SPACE_RE.sub("-", slug.strip()).strip("-")
    return slug or "section"


def split_front_matter(text: str) -> MarkdownDocument:
    """Separate a leading ``---`` front matter block from the body.

    An unterminated block is not front matter; the whole text is body.
    """
    lines = text.lstrip("\ufeff").splitlines()
    if not lines or lines[0].strip() != FRONT_MATTER_MARKER:
        return MarkdownDocument(fields={}, lines=lines)

    try:
        end = next(i for i in range(1, len(lines)) if lines[i].strip() == FRONT_MATTER_MARKER)
    except StopIteration:
        return MarkdownDocument(fields={}, lines=lines)

    fields: dict[str, str] = {}
    for line in lines[1:end]:
        key, sep, value = line.partition(":")
        if not sep:
            continue
        name = _FRONT_MATTER_KEYS.get(key.strip().lower())
        value = value.strip().strip("\"'").strip()
        if name and value and name not in fields:
            fields[name] = value
    return MarkdownDocument(fields=fields, lines=lines[end + 1 :])


def scan_headings(lines: list[str]) -> list[Heading]:
    """ATX headings outside fenced code and $$ math blocks, with de-duplicated anchors."""
    headings: list[Heading] = []
    used: set[str] = set()
    counters: dict[str, int] = {}
    fence: str | None = None
    in_math = False

    for index, line in enumerate(lines):
        if fence is not None:
            stripped = line.strip()
            if len(stripped) >= len(fence) and stripped == fence[0] * len(stripped):
                fence = None
            continue
        if line.strip() == MATH_BLOCK_MARKER:
            in_math = not in_math
            continue
        if in_math:
            continue
        fence_match = _FENCE_RE.match(line)
        if fence_match:
            fence = fence_match.group(1)
            continue

        match = _HEADING_RE.match(line)
        if not match:
            continue
        title = _CLOSING_HASHES_RE.sub("", match.group(2)).strip()
        if not title:
            continue

        base = slugify(title)
        anchor = base
        while anchor in used:
            counters[base] = counters.get(base, 0) + 1
            anchor = f"{base}-{counters[base]}"
        used.add(anchor)

        headings.append(
            Heading(level=len(match.group(1)), title=title, anchor=anchor, line_index=index)
        )
    return headings


def resolve_title(fields: dict[str, str], headings: list[Heading]) -> str | None:
    """Front matter title, else the first H1, else the first heading."""
    if fields.get("title"):
        return fields["title"]
    for heading in headings:
        if heading.level == 1:
            return heading.title
    if headings:
        return headings[0].title
    return None


def build_markdown_toc(headings: list[Heading], document_title: str | None = None) -> list[TocItem]:
    """Nest headings by level using an explicit stack of open ancestors.

    A heading becomes a child of the nearest earlier heading with a smaller
    level, or a top-level item when there is none. No headings yields a single
    item covering the whole document.
    """
    if not headings:
        return [
            TocItem(
                title=document_title or DEFAULT_DOCUMENT_TITLE,
                href=f"#{DOCUMENT_ANCHOR}",
                order=0,
            )
        ]

    toc: list[TocItem] = []
    ancestors: list[tuple[int, TocItem]] = []
    for heading in headings:
        while ancestors and ancestors[-1][0] >= heading.level:
            ancestors.pop()
        siblings = ancestors[-1][1].children if ancestors else toc
        item = TocItem(title=heading.title, href=f"#{heading.anchor}", order=len(siblings))
        siblings.append(item)
        ancestors.append((heading.level, item))
    return toc


def parse_markdown(
    text: str, fallback_title: str | None = None
) -> tuple[ParsedMetadata, list[TocItem]]:
    """Metadata and table of contents for a Markdown document."""
    doc = split_front_matter(text)
    headings = scan_headings(doc.lines)
    title = resolve_title(doc.fields, headings)
    metadata = ParsedMetadata(
        title=title,
        author=doc.fields.get("author"),
        language=doc.fields.get("language"),
        publisher=doc.fields.get("publisher"),
        description=doc.fields.get("description"),
    )
    return metadata, build_markdown_toc(headings, title or fallback_title)


def extract_section(text: str, href: str) -> str:
    """Markdown source of the chapter addressed by an anchor href.

    Raises:
        EntryNotFoundError: If no heading carries the anchor.
    """
    anchor = href.lstrip("#")
    doc = split_front_matter(text)
    headings = scan_headings(doc.lines)

    for position, heading in enumerate(headings):
        if heading.anchor != anchor:
            continue
        end = len(doc.lines)
        for following in headings[position + 1 :]:
            if following.level <= heading.level:
                end = following.line_index
                break
        return "\n".join(doc.lines[heading.line_index : end]).strip("\n")

    if not headings and anchor == DOCUMENT_ANCHOR:
        return doc.body.strip("\n")

    raise EntryNotFoundError(href)


def render_section(text: str, href: str) -> str:
    """Chapter addressed by an anchor href, rendered to sanitized HTML.

    Raw HTML in the source passes through Markdown untouched, so the rendered
    output goes through the same sanitizer as EPUB chapters.
    """
    rendered = markdown.markdown(extract_section(text, href), extensions=_RENDER_EXTENSIONS)
    return sanitize_fragment(rendered)
