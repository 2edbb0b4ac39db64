"""Tests for chapter materialization from a parsed table of contents."""

from uuid import uuid4

import pytest

from lectern.errors import ErrorCode, NotFoundError
from lectern.parsing.types import TocItem
from lectern.services.toc import build_chapter_tree, flatten_toc, materialize_chapters


def _source(repo):
    return repo.create_source(
        owner_id="owner-1",
        kind="epub",
        title="Book",
        file_path="sources/x/original.epub",
        file_size=10,
    )


def _sample_toc() -> list[TocItem]:
    return [
        TocItem(
            title="Part 1",
            href="p1.xhtml",
            order=0,
            children=[
                TocItem(title="1.1", href="p1.xhtml#a", order=0),
                TocItem(
                    title="1.2",
                    href="p1.xhtml#b",
                    order=1,
                    children=[TocItem(title="1.2.1", href="p1.xhtml#c", order=0)],
                ),
            ],
        ),
        TocItem(title="Part 2", href="p2.xhtml", order=1),
    ]


class TestMaterializeChapters:
    def test_one_chapter_per_item_in_pre_order(self, repo):
        source = _source(repo)
        created = materialize_chapters(repo, source.id, _sample_toc())

        assert [ch.title for ch in created] == ["Part 1", "1.1", "1.2", "1.2.1", "Part 2"]
        assert [ch.title for ch in repo.list_chapters(source.id)] == [
            ch.title for ch in created
        ]

    def test_parents_linked(self, repo):
        source = _source(repo)
        created = {ch.title: ch for ch in materialize_chapters(repo, source.id, _sample_toc())}

        assert created["Part 1"].parent_id is None
        assert created["Part 2"].parent_id is None
        assert created["1.1"].parent_id == created["Part 1"].id
        assert created["1.2.1"].parent_id == created["1.2"].id

    def test_order_and_href_preserved(self, repo):
        source = _source(repo)
        created = {ch.title: ch for ch in materialize_chapters(repo, source.id, _sample_toc())}

        assert (created["1.2"].order, created["1.2"].href) == (1, "p1.xhtml#b")
        assert (created["Part 2"].order, created["Part 2"].href) == (1, "p2.xhtml")

    def test_empty_toc_creates_nothing(self, repo):
        source = _source(repo)
        assert materialize_chapters(repo, source.id, []) == []
        assert repo.list_chapters(source.id) == []

    def test_unknown_source_rejected(self, repo):
        with pytest.raises(NotFoundError) as exc_info:
            materialize_chapters(repo, uuid4(), _sample_toc())
        assert exc_info.value.code == ErrorCode.E_SOURCE_NOT_FOUND

    def test_deep_chain(self, repo):
        source = _source(repo)
        root = TocItem(title="d0", href="x", order=0)
        node = root
        for depth in range(1, 2000):
            child = TocItem(title=f"d{depth}", href="x", order=0)
            node.children.append(child)
            node = child

        created = materialize_chapters(repo, source.id, [root])

        assert len(created) == 2000
        for parent, child in zip(created, created[1:]):
            assert child.parent_id == parent.id


class TestFlattenToc:
    def test_depths(self):
        pairs = [(depth, item.title) for depth, item in flatten_toc(_sample_toc())]
        assert pairs == [(0, "Part 1"), (1, "1.1"), (1, "1.2"), (2, "1.2.1"), (0, "Part 2")]


class TestBuildChapterTree:
    def test_round_trip_shape(self, repo):
        source = _source(repo)
        materialize_chapters(repo, source.id, _sample_toc())

        tree = build_chapter_tree(repo.list_chapters(source.id))

        assert [node.chapter.title for node in tree] == ["Part 1", "Part 2"]
        assert [node.chapter.title for node in tree[0].children] == ["1.1", "1.2"]
        assert tree[0].children[1].children[0].chapter.title == "1.2.1"

    def test_siblings_sorted_by_order(self, repo):
        source = _source(repo)
        materialize_chapters(
            repo,
            source.id,
            [TocItem(title="second", href="b", order=1), TocItem(title="first", href="a", order=0)],
        )
        tree = build_chapter_tree(repo.list_chapters(source.id))
        assert [node.chapter.title for node in tree] == ["first", "second"]
