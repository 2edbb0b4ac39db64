"""Tests for chapter HTML sanitization.

Covers:
- Dangerous elements removed with their content
- Event handler attributes removed
- javascript:/vbscript: URLs neutralized
- Safe markup preserved
"""

import pytest

from lectern.parsing.sanitize import is_forbidden_url, sanitize_fragment


class TestDangerousTags:
    @pytest.mark.parametrize(
        "markup",
        [
            "<script>alert(1)</script>",
            "<style>p{color:red}</style>",
            '<iframe src="https://evil.example"></iframe>',
            '<object data="x.swf"><param name="a" value="b"></object>',
            '<embed src="x.swf">',
            '<form action="/steal"><input name="pw"><button>Go</button></form>',
            "<noscript><p>fallback</p></noscript>",
        ],
    )
    def test_removed_with_content(self, markup):
        result = sanitize_fragment(f"<p>before</p>{markup}<p>after</p>")
        assert result == "<p>before</p><p>after</p>"

    def test_tail_text_survives_removal(self):
        result = sanitize_fragment("<p>a<script>x()</script>b</p>")
        assert result == "<p>ab</p>"

    def test_leading_script_removed(self):
        """A fragment starting with a script does not leak it into the output."""
        assert "alert" not in sanitize_fragment("<script>alert(1)</script><p>ok</p>")


class TestAttributes:
    def test_event_handlers_removed(self):
        result = sanitize_fragment('<img src="a.png" onerror="alert(1)" OnLoad="x()">')
        assert result == '<img src="a.png">'

    def test_javascript_href_neutralized(self):
        result = sanitize_fragment('<a href="javascript:alert(1)">click</a>')
        assert result == '<a href="#">click</a>'

    def test_obfuscated_scheme_neutralized(self):
        result = sanitize_fragment('<a href=" Java\tScript:alert(1)">click</a>')
        assert result == '<a href="#">click</a>'

    def test_javascript_src_dropped(self):
        assert sanitize_fragment('<img src="vbscript:msgbox(1)" alt="x">') == '<img alt="x">'

    def test_safe_markup_preserved(self):
        markup = '<p id="p1">Text <a href="https://example.com/a">link</a> <em>em</em></p>'
        assert sanitize_fragment(markup) == markup

    def test_relative_and_fragment_links_preserved(self):
        markup = '<a href="#note-1">1</a><a href="other.xhtml">next</a>'
        assert sanitize_fragment(markup) == markup


class TestHelpers:
    @pytest.mark.parametrize(
        "url,forbidden",
        [
            ("javascript:void(0)", True),
            ("JAVASCRIPT:alert(1)", True),
            ("\x01javascript:alert(1)", True),
            ("vbscript:x", True),
            ("https://example.com", False),
            ("images/cover.png", False),
            ("#top", False),
            ("data:image/png;base64,AAAA", False),
        ],
    )
    def test_is_forbidden_url(self, url, forbidden):
        assert is_forbidden_url(url) is forbidden

    def test_empty_fragment(self):
        assert sanitize_fragment("") == ""
        assert sanitize_fragment("   ") == ""

    def test_leading_text_kept(self):
        assert sanitize_fragment("plain <b>bold</b>") == "plain <b>bold</b>"
