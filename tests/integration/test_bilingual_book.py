"""Integration test: a whole book through clean, mark, styling, translate and pack."""

import asyncio
import zipfile

import pytest
from lxml import etree

from conftest import FakeProvider
from epubtrans.config import TranslationConfig
from epubtrans.core.adapters import RateLimiter, RetryManager, build_retry_configs
from epubtrans.core.epub.archive import pack_epub, unpack_epub
from epubtrans.core.epub.cleaner import clean_file
from epubtrans.core.epub.document import ContentDocument
from epubtrans.core.epub.job_collector import enumerate_content_files
from epubtrans.core.epub.marker import mark_file
from epubtrans.core.epub.pipeline import TranslationPipeline, run_file_stage
from epubtrans.core.epub.styling import style_file
from epubtrans.core.llm.translation_client import TranslationClient
from epubtrans.core.llm.usage import UsageTracker


async def no_sleep(delay, stop_event=None):
    return None


@pytest.mark.asyncio
async def test_bilingual_book(book_dir, tmp_path):
    # Start from a real .epub
    epub = pack_epub(book_dir, tmp_path / "novel.epub").output_path
    root = unpack_epub(epub)

    for operation in (clean_file, mark_file):
        summary = await run_file_stage(enumerate_content_files(root), operation, workers=2)
        assert summary.failed == 0
    await run_file_stage(enumerate_content_files(root, exclude_matter=False),
                         lambda path: style_file(path, 'none'), workers=2)

    config = TranslationConfig(source_language="English", target_language="Spanish",
                               model="fake-model", state_dir=str(root / ".epubtrans"))
    stop_event = asyncio.Event()
    provider = FakeProvider()
    client = TranslationClient(
        provider=provider,
        rate_limiter=RateLimiter(rate=1000, burst=10),
        retry_manager=RetryManager(custom_configs=build_retry_configs(), sleep=no_sleep),
        usage=UsageTracker(config.state_dir),
        stop_event=stop_event,
    )
    summary = await TranslationPipeline(client, config, stop_event=stop_event).translate_book(root)

    assert summary.failed == 0
    assert summary.merged == 6

    output = pack_epub(root)
    assert output.output_path.name == "novel-bilingual.epub"

    with zipfile.ZipFile(output.output_path) as zf:
        assert zf.namelist()[0] == "mimetype"
        chapter = zf.read("OEBPS/Text/chapter1.xhtml")

    # Still well-formed XHTML, every source paired with its translation
    document = ContentDocument.parse(chapter.decode("utf-8"))
    assert document.is_xml
    sources = document.find_marked()
    translations = document.root.xpath("//*[@translation-id]")
    assert len(sources) == len(translations) == 4
    for source in sources:
        sibling = source.getnext()
        assert sibling.get("translation-id") == source.get("translated-by")
        assert sibling.get("translation-lang") == "Spanish"
        assert etree.QName(sibling).localname == etree.QName(source).localname

    # Untouched blocks stay untouched
    assert b'print("hi")' in chapter
    assert b'<style id="injected-style">' in chapter
