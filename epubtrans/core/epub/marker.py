"""
Content marking

Walks a content document and stamps every translatable leaf element with a
``content-id`` fingerprint of its text. Marking is idempotent: marked
subtrees are left alone, so running it twice yields the same attributes.
"""
import asyncio
import hashlib
import logging
from pathlib import Path

from lxml import etree

from epubtrans.config import CONTENT_ID_KEY, TRANSLATION_ID_KEY
from .constants import BLACKLISTED_TAGS, MIN_TEXT_LENGTH, SYMBOL_ONLY_PATTERN, NUMERIC_PATTERN
from .document import ContentDocument, is_element, local_name, iter_child_elements

logger = logging.getLogger(__name__)


def fingerprint(text: str) -> str:
    """SHA-256 of the UTF-8 text, hex encoded (64 characters)."""
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def extract_text(element: etree._Element) -> str:
    """All descendant text, concatenated and trimmed."""
    return "".join(element.itertext()).strip()


def has_direct_text(element: etree._Element) -> bool:
    """True if the element holds non-whitespace text outside its child elements."""
    if element.text and element.text.strip():
        return True
    return any(child.tail and child.tail.strip() for child in element)


def is_container(element: etree._Element) -> bool:
    """A container groups other elements: it has an element child and no direct text."""
    has_element_child = any(True for _ in iter_child_elements(element))
    return has_element_child and not has_direct_text(element)


def is_translatable_text(text: str) -> bool:
    """Reject empty, too short, numeric and symbol-only text."""
    if not text or len(text) < MIN_TEXT_LENGTH:
        return False
    if NUMERIC_PATTERN.match(text):
        return False
    if SYMBOL_ONLY_PATTERN.match(text):
        return False
    return True


def mark_document(document: ContentDocument) -> int:
    """
    Mark every translatable leaf element of ``document`` in place.

    Pre-order walk. Already marked, newly marked and blacklisted elements end
    the descent into their subtree, as do inserted translation siblings;
    containers are never marked themselves.
    Leaves whose text is rejected (too short, numeric) are still descended.

    Returns:
        Number of elements newly marked
    """
    marked = 0
    stack = [document.root]
    while stack:
        element = stack.pop()
        if not is_element(element):
            continue
        if element.get(CONTENT_ID_KEY) is not None:
            continue
        # Translation siblings hold target-language text, never source
        if element.get(TRANSLATION_ID_KEY) is not None:
            continue
        if local_name(element) in BLACKLISTED_TAGS:
            continue

        if not is_container(element):
            text = extract_text(element)
            if is_translatable_text(text):
                try:
                    element.set(CONTENT_ID_KEY, fingerprint(text))
                    marked += 1
                    # A marked element is a finished subtree, same as on a re-run
                    continue
                except (ValueError, TypeError) as e:
                    logger.warning("Could not fingerprint <%s>: %s", local_name(element), e)

        # Reversed so children pop in document order
        stack.extend(reversed(list(iter_child_elements(element))))
    return marked


async def mark_file(path: Path) -> int:
    """
    Mark one content file and write it back when anything changed.

    Also adds a UTF-8 charset declaration when the head has none.

    Returns:
        Number of elements newly marked

    Raises:
        FileReadError, DocumentParseError, FileWriteError
    """
    document = await ContentDocument.load(path)
    marked = await asyncio.to_thread(mark_document, document)
    charset_added = document.ensure_utf8_charset()
    if marked or charset_added:
        await document.save()
    return marked
