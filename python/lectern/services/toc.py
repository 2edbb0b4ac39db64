"""Table-of-contents materialization.

Turns a parsed TocItem tree into persisted chapter rows. Parents are always
inserted before their children, because a child row needs its parent's id.
Depth comes from the uploaded file, so every walk here uses an explicit
stack.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from uuid import UUID

from lectern.db.repository import ChapterRecord, SourceRepository
from lectern.logging import get_logger
from lectern.parsing.types import TocItem

logger = get_logger(__name__)


@dataclass
class ChapterNode:
    """A persisted chapter with its children, for nested display."""

    chapter: ChapterRecord
    children: list[ChapterNode] = field(default_factory=list)


def materialize_chapters(
    repo: SourceRepository,
    source_id: UUID,
    toc: list[TocItem],
) -> list[ChapterRecord]:
    """Insert one chapter per TocItem, parents first, in document order.

    Returns:
        The created chapters in insertion (pre-order) order.
    """
    created: list[ChapterRecord] = []
    # Reversed so pops come off in document order.
    stack: list[tuple[TocItem, UUID | None]] = [(item, None) for item in reversed(toc)]
    while stack:
        item, parent_id = stack.pop()
        chapter = repo.create_chapter(
            source_id=source_id,
            title=item.title,
            href=item.href,
            order=item.order,
            parent_id=parent_id,
        )
        created.append(chapter)
        stack.extend((child, chapter.id) for child in reversed(item.children))

    logger.info("chapters_materialized", source_id=str(source_id), chapter_count=len(created))
    return created


def flatten_toc(toc: list[TocItem]) -> Iterator[tuple[int, TocItem]]:
    """Yield (depth, item) pairs in pre-order."""
    stack: list[tuple[int, TocItem]] = [(0, item) for item in reversed(toc)]
    while stack:
        depth, item = stack.pop()
        yield depth, item
        stack.extend((depth + 1, child) for child in reversed(item.children))


def build_chapter_tree(chapters: list[ChapterRecord]) -> list[ChapterNode]:
    """Rebuild the nested view from flat chapter rows.

    Siblings are ordered by ``order``. Chapters whose parent is missing from
    the list are treated as top level.
    """
    nodes = {chapter.id: ChapterNode(chapter) for chapter in chapters}
    roots: list[ChapterNode] = []
    for chapter in sorted(chapters, key=lambda ch: ch.order):
        node = nodes[chapter.id]
        parent = nodes.get(chapter.parent_id) if chapter.parent_id is not None else None
        if parent is None:
            roots.append(node)
        else:
            parent.children.append(node)
    return roots
