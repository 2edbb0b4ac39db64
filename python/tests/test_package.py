"""Tests for EPUB package document parsing."""

from lectern.errors import ErrorCode
from lectern.parsing.archive import Archive
from lectern.parsing.package import find_package_path, parse_package, resolve_href
from lectern.parsing.types import PackageDocument, PackageParseError
from tests.epub_fixtures import NCX, XHTML, build_opf, make_epub, make_nested_layout_epub


def _parse(files: dict, **kwargs) -> PackageDocument | PackageParseError:
    return parse_package(Archive.open(make_epub(files, **kwargs)))


class TestResolveHref:
    def test_joins_base_dir(self):
        assert resolve_href("OEBPS", "text/ch1.xhtml") == "OEBPS/text/ch1.xhtml"

    def test_parent_segments_collapse(self):
        assert resolve_href("OEBPS/nav", "../text/ch1.xhtml") == "OEBPS/text/ch1.xhtml"

    def test_fragment_dropped(self):
        assert resolve_href("OEBPS", "ch1.xhtml#s2") == "OEBPS/ch1.xhtml"

    def test_percent_encoding_decoded(self):
        assert resolve_href("OEBPS", "my%20chapter.xhtml") == "OEBPS/my chapter.xhtml"

    def test_empty_base_dir(self):
        assert resolve_href("", "ch1.xhtml") == "ch1.xhtml"


class TestFindPackagePath:
    def test_reads_rootfile(self):
        archive = Archive.open(make_epub({"OPS/book.opf": build_opf()}, opf_path="OPS/book.opf"))
        assert find_package_path(archive) == "OPS/book.opf"

    def test_missing_container(self):
        archive = Archive.open(make_epub({"OEBPS/content.opf": build_opf()}, container=False))
        assert find_package_path(archive) is None

    def test_unnamespaced_container(self):
        container = (
            '<?xml version="1.0"?><container><rootfiles>'
            '<rootfile full-path="content.opf"/></rootfiles></container>'
        )
        archive = Archive.open(
            make_epub(
                {"META-INF/container.xml": container, "content.opf": build_opf()},
                container=False,
            )
        )
        assert find_package_path(archive) == "content.opf"


class TestParsePackage:
    def test_metadata_extracted(self):
        opf = build_opf(
            title="  The   Title ",
            author="Jane Doe",
            extra_metadata=(
                "    <dc:language>en</dc:language>\n"
                "    <dc:publisher>Acme Press</dc:publisher>\n"
                "    <dc:description>A short book.</dc:description>"
            ),
        )
        package = _parse({"OEBPS/content.opf": opf})

        assert isinstance(package, PackageDocument)
        assert package.metadata.title == "The Title"
        assert package.metadata.author == "Jane Doe"
        assert package.metadata.language == "en"
        assert package.metadata.publisher == "Acme Press"
        assert package.metadata.description == "A short book."

    def test_missing_metadata_is_none(self):
        package = _parse({"OEBPS/content.opf": build_opf(title=None)})
        assert isinstance(package, PackageDocument)
        assert package.metadata.title is None
        assert package.metadata.author is None

    def test_manifest_hrefs_are_archive_paths(self):
        package = make_nested_layout_epub()
        parsed = parse_package(Archive.open(package))

        assert isinstance(parsed, PackageDocument)
        assert parsed.base_dir == "OEBPS"
        assert parsed.manifest["ch1"].href == "OEBPS/text/ch1.xhtml"
        assert parsed.manifest["cover-img"].href == "OEBPS/images/cover.png"
        assert parsed.nav_href == "OEBPS/nav/nav.xhtml"

    def test_spine_order_and_non_linear_items_skipped(self):
        opf = build_opf(
            items=[
                ("a", "a.xhtml", XHTML, ""),
                ("b", "b.xhtml", XHTML, ""),
                ("c", "c.xhtml", XHTML, ""),
            ],
            spine=["c", "a", "b"],
        ).replace('<itemref idref="a"/>', '<itemref idref="a" linear="no"/>')
        package = _parse({"OEBPS/content.opf": opf})

        assert isinstance(package, PackageDocument)
        assert package.spine == ["c", "b"]

    def test_duplicate_manifest_ids_keep_first(self):
        opf = build_opf(
            items=[
                ("ch", "first.xhtml", XHTML, ""),
                ("ch", "second.xhtml", XHTML, ""),
            ],
            spine=["ch"],
        )
        package = _parse({"OEBPS/content.opf": opf})
        assert isinstance(package, PackageDocument)
        assert package.manifest["ch"].href == "OEBPS/first.xhtml"

    def test_ncx_found_through_spine_toc(self):
        opf = build_opf(
            items=[("ncx", "toc.ncx", NCX, ""), ("ch1", "ch1.xhtml", XHTML, "")],
            spine=["ch1"],
            ncx_id="ncx",
        )
        package = _parse({"OEBPS/content.opf": opf})
        assert isinstance(package, PackageDocument)
        assert package.ncx_href == "OEBPS/toc.ncx"

    def test_ncx_found_by_media_type(self):
        opf = build_opf(
            items=[("toc", "toc.ncx", NCX, ""), ("ch1", "ch1.xhtml", XHTML, "")],
            spine=["ch1"],
        )
        package = _parse({"OEBPS/content.opf": opf})
        assert isinstance(package, PackageDocument)
        assert package.ncx_href == "OEBPS/toc.ncx"

    def test_missing_container_is_parse_error(self):
        result = _parse({"OEBPS/content.opf": build_opf()}, container=False)
        assert isinstance(result, PackageParseError)
        assert result.error_code == ErrorCode.E_MALFORMED_MANIFEST

    def test_missing_package_document_is_parse_error(self):
        result = _parse({"OEBPS/other.opf": build_opf()})
        assert isinstance(result, PackageParseError)
        assert "not found" in result.message

    def test_malformed_package_xml_is_parse_error(self):
        result = _parse({"OEBPS/content.opf": "<package><metadata>"})
        assert isinstance(result, PackageParseError)
        assert "well-formed" in result.message


class TestCover:
    def test_cover_image_property(self):
        package = parse_package(Archive.open(make_nested_layout_epub()))
        assert isinstance(package, PackageDocument)
        assert package.cover_manifest_id == "cover-img"
        assert package.metadata.cover_bytes == b"\x89PNG\r\n\x1a\nfakepng"
        assert package.metadata.cover_mime_type == "image/png"

    def test_meta_name_cover(self):
        opf = build_opf(
            items=[
                ("ch1", "ch1.xhtml", XHTML, ""),
                ("img1", "images/front.jpg", "image/jpeg", ""),
            ],
            extra_metadata='    <meta name="cover" content="img1"/>',
        )
        package = _parse({"OEBPS/content.opf": opf, "OEBPS/images/front.jpg": b"jpegbytes"})
        assert isinstance(package, PackageDocument)
        assert package.cover_manifest_id == "img1"
        assert package.metadata.cover_bytes == b"jpegbytes"
        assert package.metadata.cover_mime_type == "image/jpeg"

    def test_image_id_mentioning_cover(self):
        opf = build_opf(
            items=[
                ("ch1", "ch1.xhtml", XHTML, ""),
                ("MyCover", "c.gif", "image/gif", ""),
            ],
        )
        package = _parse({"OEBPS/content.opf": opf, "OEBPS/c.gif": b"GIF89a"})
        assert isinstance(package, PackageDocument)
        assert package.cover_manifest_id == "MyCover"

    def test_cover_entry_missing_from_archive(self):
        opf = build_opf(
            items=[
                ("ch1", "ch1.xhtml", XHTML, ""),
                ("cover", "cover.png", "image/png", "cover-image"),
            ],
        )
        package = _parse({"OEBPS/content.opf": opf})
        assert isinstance(package, PackageDocument)
        assert package.cover_manifest_id == "cover"
        assert package.metadata.cover_bytes is None

    def test_no_cover(self):
        package = _parse({"OEBPS/content.opf": build_opf()})
        assert isinstance(package, PackageDocument)
        assert package.cover_manifest_id is None
        assert package.metadata.cover_bytes is None
