"""Unit tests for content marking."""

import pytest

from epubtrans.config import CONTENT_ID_KEY
from epubtrans.core.epub.batcher import build_batches, collect_units
from epubtrans.core.epub.document import ContentDocument, local_name
from epubtrans.core.epub.marker import (
    fingerprint,
    extract_text,
    is_container,
    is_translatable_text,
    mark_document,
    mark_file,
)
from epubtrans.core.epub.merger import FileLockRegistry, merge_batch

XHTML = """<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml"><head><title>T</title></head><body>{body}</body></html>"""


def parse_body(body: str) -> ContentDocument:
    return ContentDocument.parse(XHTML.format(body=body))


def marked_ids(document: ContentDocument):
    return [el.get(CONTENT_ID_KEY) for el in document.find_marked()]


class TestFingerprint:
    """Fingerprints are stable SHA-256 hex digests."""

    def test_deterministic(self):
        assert fingerprint("Hello world") == fingerprint("Hello world")

    def test_known_value(self):
        # sha256("abc")
        assert fingerprint("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"

    def test_different_text_different_fingerprint(self):
        assert fingerprint("Hello") != fingerprint("Hello ")
        assert len(fingerprint("anything")) == 64


class TestClassification:
    """Which text and which elements are worth marking."""

    @pytest.mark.parametrize("text", ["", " ", "a", "42", "3.14", "---", "* * *", "..."])
    def test_rejected_text(self, text):
        assert is_translatable_text(text.strip()) is False

    @pytest.mark.parametrize("text", ["Hello world", "Hi", "Chapter 1", "42 apples"])
    def test_accepted_text(self, text):
        assert is_translatable_text(text) is True

    def test_container_has_only_element_children(self):
        doc = parse_body("<div>\n  <p>One</p>\n  <p>Two</p>\n</div>")
        div = doc.find_first('div')
        assert is_container(div) is True

    def test_mixed_content_is_not_container(self):
        doc = parse_body("<p>Some <b>bold</b> text</p>")
        assert is_container(doc.find_first('p')) is False

    def test_tail_text_makes_leaf(self):
        doc = parse_body("<p><b>bold</b> tail</p>")
        assert is_container(doc.find_first('p')) is False

    def test_extract_text_concatenates_descendants(self):
        doc = parse_body("<p>  Some <b>bold</b> text  </p>")
        assert extract_text(doc.find_first('p')) == "Some bold text"


class TestMarkDocument:
    """Marking walks the tree and stamps translatable leaves."""

    def test_marks_leaf_paragraph(self):
        doc = parse_body("<p>Hello world</p>")
        assert mark_document(doc) == 1
        p = doc.find_first('p')
        assert p.get(CONTENT_ID_KEY) == fingerprint("Hello world")

    def test_container_never_marked(self):
        doc = parse_body("<div><p>First one</p><p>Second one</p></div>")
        assert mark_document(doc) == 2
        assert doc.find_first('div').get(CONTENT_ID_KEY) is None
        assert doc.find_first('body').get(CONTENT_ID_KEY) is None

    def test_whitespace_numeric_and_symbols_not_marked(self):
        doc = parse_body("<p>   </p><p>42</p><p>---</p><p>Hello world</p>")
        assert mark_document(doc) == 1
        assert [local_name(el) for el in doc.find_marked()] == ['p']
        assert doc.find_marked()[0].text == "Hello world"

    def test_blacklisted_subtree_skipped(self):
        doc = parse_body("<pre><code>print('hello world')</code></pre><figure><figcaption>A caption</figcaption></figure>")
        assert mark_document(doc) == 0
        assert doc.find_marked() == []

    def test_marked_element_subtree_not_descended(self):
        doc = parse_body("<p>Outer text <span>inner words</span></p>")
        mark_document(doc)
        assert doc.find_first('p').get(CONTENT_ID_KEY) is not None
        assert doc.find_first('span').get(CONTENT_ID_KEY) is None

    def test_idempotent(self):
        doc = parse_body("<h1>Title here</h1><div><p>One para</p><p>Two para</p></div>")
        assert mark_document(doc) == 3
        first = marked_ids(doc)
        assert mark_document(doc) == 0
        assert marked_ids(doc) == first

    def test_existing_ids_untouched(self):
        doc = parse_body('<p content-id="keep">Hello world</p>')
        assert mark_document(doc) == 0
        assert doc.find_first('p').get(CONTENT_ID_KEY) == "keep"

    def test_translation_sibling_not_marked(self):
        """A sibling inserted by translate is target text, never a new source."""
        doc = parse_body('<p content-id="a" translated-by="t1">Hello there</p>'
                         '<p translation-id="t1" translation-lang="French">Bonjour <i>toi</i></p>')
        assert mark_document(doc) == 0
        assert marked_ids(doc) == ["a"]


class TestMarkFile:
    """mark_file reads, marks and writes a content file."""

    @pytest.mark.asyncio
    async def test_marks_chapter(self, chapter1_path):
        count = await mark_file(chapter1_path)

        # h1, two paragraphs and the paragraph nested in the div
        assert count == 4
        doc = await ContentDocument.load(chapter1_path)
        texts = [el.xpath('string()').strip() for el in doc.find_marked()]
        assert texts == [
            "Chapter One",
            "Hello world, this is the first paragraph.",
            "It has bold text.",
            "Nested paragraph inside a div.",
        ]

    @pytest.mark.asyncio
    async def test_adds_charset_and_is_stable(self, chapter1_path):
        await mark_file(chapter1_path)
        first = chapter1_path.read_text(encoding='utf-8')
        assert 'charset="utf-8"' in first

        assert await mark_file(chapter1_path) == 0
        assert chapter1_path.read_text(encoding='utf-8') == first

    @pytest.mark.asyncio
    async def test_existing_charset_kept(self, chapter2_path):
        await mark_file(chapter2_path)
        assert chapter2_path.read_text(encoding='utf-8').count('charset') == 1

    @pytest.mark.asyncio
    async def test_mark_after_translate_leaves_nothing_pending(self, chapter2_path):
        """mark, translate, mark again: the translations are not picked up as source."""
        await mark_file(chapter2_path)
        document = await ContentDocument.load(chapter2_path)
        batch = build_batches(collect_units(document), max_size=10000)[0]
        response = ("<SEGMENT_0>Le second chapitre commence ici.</SEGMENT_0>"
                    "<SEGMENT_1>Et il finit ici.</SEGMENT_1>")
        report = await merge_batch(document, batch, response, "French", FileLockRegistry())
        assert report.merged == 2

        assert await mark_file(chapter2_path) == 0

        reloaded = await ContentDocument.load(chapter2_path)
        assert collect_units(reloaded) == []
        assert len(reloaded.find_marked()) == 2
