"""
Pytest configuration and fixtures for all tests.

This file is automatically loaded by pytest and provides common fixtures
(sample unpacked books, a fake LLM provider) for all test modules.
"""

import sys
from pathlib import Path
from typing import Callable, List, Optional

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from epubtrans.core.llm.base import LLMProvider, LLMResponse
from epubtrans.core.llm.extraction import split_segments, wrap_segments


CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

CONTENT_OPF = """<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0" unique-identifier="bookid">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:identifier id="bookid">urn:uuid:1234</dc:identifier>
    <dc:title>The Test Book</dc:title>
    <dc:language>en</dc:language>
    <dc:creator>Jane Writer</dc:creator>
  </metadata>
  <manifest>
    <item id="nav" href="nav.xhtml" media-type="application/xhtml+xml" properties="nav"/>
    <item id="ch1" href="Text/chapter1.xhtml" media-type="application/xhtml+xml"/>
    <item id="ch2" href="Text/chapter2.xhtml" media-type="application/xhtml+xml"/>
    <item id="css" href="Styles/style.css" media-type="text/css"/>
    <item id="img" href="Images/photo.jpg" media-type="image/jpeg"/>
  </manifest>
  <spine>
    <itemref idref="ch1"/>
    <itemref idref="ch2"/>
  </spine>
</package>
"""

NAV_XHTML = """<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
<head><title>Contents</title></head>
<body>
<nav epub:type="toc"><ol><li><a href="Text/chapter1.xhtml">Chapter One</a></li></ol></nav>
</body>
</html>
"""

CHAPTER1_XHTML = """<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
<head>
<title>Chapter One</title>
</head>
<body>
<h1 id="c1">Chapter One</h1>
<p>Hello world, this is the first paragraph.</p>
<p>It has <b>bold</b> text.</p>
<p>42</p>
<div><p>Nested paragraph inside a div.</p></div>
<pre><code>print("hi")</code></pre>
<a id="anchor"></a>
<div class="spacer">  </div>
</body>
</html>
"""

CHAPTER2_XHTML = """<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><meta charset="utf-8"/><title>Chapter Two</title></head>
<body>
<p>The second chapter starts here.</p>
<p>* * *</p>
<p>And it ends here.</p>
</body>
</html>
"""


def write_book(root: Path) -> Path:
    """Write an unpacked book under ``root`` and return ``root``."""
    (root / "META-INF").mkdir(parents=True, exist_ok=True)
    (root / "OEBPS" / "Text").mkdir(parents=True, exist_ok=True)
    (root / "OEBPS" / "Styles").mkdir(parents=True, exist_ok=True)
    (root / "OEBPS" / "Images").mkdir(parents=True, exist_ok=True)

    (root / "mimetype").write_text("application/epub+zip", encoding="utf-8")
    (root / "META-INF" / "container.xml").write_text(CONTAINER_XML, encoding="utf-8")
    (root / "OEBPS" / "content.opf").write_text(CONTENT_OPF, encoding="utf-8")
    (root / "OEBPS" / "nav.xhtml").write_text(NAV_XHTML, encoding="utf-8")
    (root / "OEBPS" / "Text" / "chapter1.xhtml").write_text(CHAPTER1_XHTML, encoding="utf-8")
    (root / "OEBPS" / "Text" / "chapter2.xhtml").write_text(CHAPTER2_XHTML, encoding="utf-8")
    (root / "OEBPS" / "Styles" / "style.css").write_text("p { margin: 0; }", encoding="utf-8")
    (root / "OEBPS" / "Images" / "photo.jpg").write_bytes(b"\xff\xd8\xff\xe0fakejpeg")
    return root


@pytest.fixture
def book_dir(tmp_path):
    """An unpacked book with a nav document and two chapters."""
    return write_book(tmp_path / "book")


@pytest.fixture
def chapter1_path(book_dir):
    return book_dir / "OEBPS" / "Text" / "chapter1.xhtml"


@pytest.fixture
def chapter2_path(book_dir):
    return book_dir / "OEBPS" / "Text" / "chapter2.xhtml"


def prefix_translator(prefix: str = "FR: ") -> Callable[[str], str]:
    """Responder that answers every segment with ``prefix + content``."""
    def respond(prompt: str) -> str:
        segments = split_segments(prompt)
        return wrap_segments(prefix + segments[index] for index in sorted(segments))
    return respond


class FakeProvider(LLMProvider):
    """In-memory provider: answers with ``responder(prompt)`` or raises queued errors.

    Attributes:
        calls: Prompts received, in order
        errors: Exceptions raised (one per call) before the responder is used
    """

    name = "fake"
    local_token_count = True

    def __init__(self, responder: Optional[Callable[[str], str]] = None,
                 errors: Optional[List[Exception]] = None, model: str = "fake-model"):
        super().__init__(model)
        self.responder = responder or prefix_translator()
        self.errors = list(errors or [])
        self.calls: List[str] = []
        self.system_prompts: List[Optional[str]] = []

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> LLMResponse:
        self.calls.append(prompt)
        self.system_prompts.append(system_prompt)
        if self.errors:
            raise self.errors.pop(0)
        return LLMResponse(content=self.responder(prompt), prompt_tokens=10, completion_tokens=12)

    async def count_tokens(self, text: str) -> int:
        return len(text.split()) * 2


@pytest.fixture
def fake_provider():
    return FakeProvider()
