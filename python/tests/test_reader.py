"""Tests for reading chapters and serving embedded images of stored sources."""

from uuid import uuid4

import pytest

from lectern.errors import EntryNotFoundError, ErrorCode, InvalidRequestError, NotFoundError
from lectern.services.ingest import ingest_upload
from lectern.services.reader import read_chapter, serve_cover, serve_image
from lectern.storage.client import StorageError
from tests.epub_fixtures import make_nested_layout_epub


@pytest.fixture
def epub_upload(repo, storage):
    return ingest_upload(repo, storage, "owner-1", "nested.epub", make_nested_layout_epub())


@pytest.fixture
def markdown_upload(repo, storage):
    return ingest_upload(repo, storage, "owner-1", "guide.md", b"# Guide\nHello.\n## Next\nBye.\n")


class TestReadChapter:
    def test_epub_chapter_with_rewritten_images(self, repo, storage, epub_upload):
        source = epub_upload.source
        chapter = epub_upload.chapters[0]

        content = read_chapter(repo, storage, source.id, chapter.id, owner_id="owner-1")

        assert content.id == chapter.id
        assert content.title == "Part One"
        assert "<h1 id=\"top\">One</h1>" in content.content
        assert f"/api/sources/{source.id}/image?path=OEBPS%2Fimages%2Fcover.png" in content.content

    def test_markdown_chapter(self, repo, storage, markdown_upload):
        chapter = markdown_upload.chapters[1]
        content = read_chapter(repo, storage, markdown_upload.source.id, chapter.id)

        assert content.title == "Next"
        assert "<h2>Next</h2>" in content.content
        assert "Hello." not in content.content

    def test_repeated_reads_identical(self, repo, storage, epub_upload):
        source_id = epub_upload.source.id
        chapter_id = epub_upload.chapters[1].id
        first = read_chapter(repo, storage, source_id, chapter_id)
        second = read_chapter(repo, storage, source_id, chapter_id)
        assert first == second

    def test_unknown_source(self, repo, storage):
        with pytest.raises(NotFoundError) as exc_info:
            read_chapter(repo, storage, uuid4(), uuid4())
        assert exc_info.value.code == ErrorCode.E_SOURCE_NOT_FOUND

    def test_other_owner_cannot_read(self, repo, storage, epub_upload):
        with pytest.raises(NotFoundError) as exc_info:
            read_chapter(
                repo,
                storage,
                epub_upload.source.id,
                epub_upload.chapters[0].id,
                owner_id="someone-else",
            )
        assert exc_info.value.code == ErrorCode.E_SOURCE_NOT_FOUND

    def test_unknown_chapter(self, repo, storage, epub_upload):
        with pytest.raises(NotFoundError) as exc_info:
            read_chapter(repo, storage, epub_upload.source.id, uuid4())
        assert exc_info.value.code == ErrorCode.E_CHAPTER_NOT_FOUND

    def test_stored_file_missing(self, repo, storage, epub_upload):
        storage.clear()
        with pytest.raises(StorageError) as exc_info:
            read_chapter(repo, storage, epub_upload.source.id, epub_upload.chapters[0].id)
        assert exc_info.value.code == ErrorCode.E_STORAGE_MISSING


class TestServeImage:
    def test_serves_archive_image(self, repo, storage, epub_upload):
        data, mime = serve_image(
            repo, storage, epub_upload.source.id, "OEBPS/images/cover.png", owner_id="owner-1"
        )
        assert data == b"\x89PNG\r\n\x1a\nfakepng"
        assert mime == "image/png"

    def test_missing_entry(self, repo, storage, epub_upload):
        with pytest.raises(EntryNotFoundError):
            serve_image(repo, storage, epub_upload.source.id, "OEBPS/images/none.png")

    def test_empty_path(self, repo, storage, epub_upload):
        with pytest.raises(InvalidRequestError):
            serve_image(repo, storage, epub_upload.source.id, "")

    def test_markdown_source_has_no_images(self, repo, storage, markdown_upload):
        with pytest.raises(InvalidRequestError):
            serve_image(repo, storage, markdown_upload.source.id, "img.png")


class TestServeCover:
    def test_serves_stored_cover(self, repo, storage, epub_upload):
        data, mime = serve_cover(repo, storage, epub_upload.source.id)
        assert data == b"\x89PNG\r\n\x1a\nfakepng"
        assert mime == "image/png"

    def test_no_cover(self, repo, storage, markdown_upload):
        with pytest.raises(NotFoundError):
            serve_cover(repo, storage, markdown_upload.source.id)
