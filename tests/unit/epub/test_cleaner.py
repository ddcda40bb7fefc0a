"""Unit tests for markup cleanup."""

import pytest

from epubtrans.core.epub.cleaner import (
    clean_content,
    clean_file,
    remove_empty_anchors,
    remove_empty_divs,
)


class TestRemoveEmptyAnchors:
    """Empty and self-closing anchors disappear, real links stay."""

    @pytest.mark.parametrize("markup", [
        '<a id="page12"/>',
        '<a id="x"></a>',
        '<a id="x">  \n </a>',
        '<a/>',
    ])
    def test_removed(self, markup):
        assert remove_empty_anchors(f"<p>Text{markup} more</p>") == "<p>Text more</p>"

    def test_link_with_text_kept(self):
        markup = '<p><a href="ch2.xhtml">Next</a></p>'
        assert remove_empty_anchors(markup) == markup

    @pytest.mark.parametrize("markup", ['<abbr title="x"></abbr>', '<area shape="rect"/>', '<aside></aside>'])
    def test_other_a_tags_untouched(self, markup):
        assert remove_empty_anchors(markup) == markup


class TestRemoveEmptyDivs:
    """Empty divs disappear, divs with content stay."""

    def test_removed(self):
        assert remove_empty_divs('<body><div class="spacer">  </div><p>x</p></body>') == '<body><p>x</p></body>'

    def test_self_closing_removed(self):
        assert remove_empty_divs('<div class="pb"/>') == ''

    def test_with_children_kept(self):
        markup = '<div><p>Hello</p></div>'
        assert remove_empty_divs(markup) == markup

    def test_similar_names_untouched(self):
        markup = '<divider></divider>'
        assert remove_empty_divs(markup) == markup


class TestCleanFile:
    """Files are rewritten only when something changed."""

    def test_clean_content_applies_all(self):
        assert clean_content('<div><a id="x"/></div><p>Hi</p>') == '<p>Hi</p>'

    @pytest.mark.asyncio
    async def test_cleans_chapter(self, chapter1_path):
        assert await clean_file(chapter1_path) is True
        text = chapter1_path.read_text(encoding='utf-8')
        assert '<a id="anchor">' not in text
        assert 'class="spacer"' not in text
        assert '<div><p>Nested paragraph inside a div.</p></div>' in text

    @pytest.mark.asyncio
    async def test_unchanged_file_not_rewritten(self, chapter2_path):
        before = chapter2_path.stat().st_mtime_ns
        assert await clean_file(chapter2_path) is False
        assert chapter2_path.stat().st_mtime_ns == before
