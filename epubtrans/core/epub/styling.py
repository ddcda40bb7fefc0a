"""
Bilingual display styling

Injects (or replaces) a ``<style id="injected-style">`` block in the head of a
content document. Source paragraphs are dimmed; either language can be hidden.
"""
import re
from pathlib import Path

import aiofiles

from epubtrans.config import CONTENT_ID_KEY, TRANSLATION_ID_KEY, TRANSLATION_LANG_KEY
from epubtrans.core.adapters.exceptions import EpubError, FileReadError, FileWriteError
from .constants import INJECTED_STYLE_ID

HIDE_CHOICES = ('none', 'source', 'target')

# Untranslatable units keep translation-lang and stay fully visible
_SOURCE_SELECTOR = f"[{CONTENT_ID_KEY}]:not([{TRANSLATION_LANG_KEY}])"

_INJECTED_STYLE_PATTERN = re.compile(
    rf'<style\s+id="{INJECTED_STYLE_ID}"[^>]*>[\s\S]*?</style>'
)
_HEAD_OPEN_PATTERN = re.compile(r'<head(?:\s[^>]*)?>', re.IGNORECASE)
_HEAD_CLOSE_PATTERN = re.compile(r'</head\s*>', re.IGNORECASE)


def build_style(hide: str = 'none') -> str:
    """CSS rules for the chosen ``hide`` mode."""
    if hide not in HIDE_CHOICES:
        raise ValueError(f"hide must be one of {', '.join(HIDE_CHOICES)}, got {hide!r}")
    if hide == 'target':
        return f"[{TRANSLATION_ID_KEY}] {{ display: none !important; }}"
    rules = f"{_SOURCE_SELECTOR} {{ opacity: 0.7; }}"
    if hide == 'source':
        rules += f"\n{_SOURCE_SELECTOR} {{ display: none !important; }}"
    return rules


def build_style_tag(hide: str = 'none') -> str:
    return f'<style id="{INJECTED_STYLE_ID}">\n{build_style(hide)}\n</style>'


def inject_style(content: str, hide: str = 'none') -> str:
    """
    Replace an existing injected style, or insert one right after ``<head>``
    (before ``</head>`` when the opening tag cannot be found).

    Raises:
        EpubError: If the document has no head
    """
    style_tag = build_style_tag(hide)

    match = _INJECTED_STYLE_PATTERN.search(content)
    if match:
        return content[:match.start()] + style_tag + content[match.end():]

    match = _HEAD_OPEN_PATTERN.search(content)
    if match:
        return content[:match.end()] + "\n" + style_tag + "\n" + content[match.end():]

    match = _HEAD_CLOSE_PATTERN.search(content)
    if match:
        return content[:match.start()] + "\n" + style_tag + "\n" + content[match.start():]

    raise EpubError("No <head> tag found")


async def style_file(path: Path, hide: str = 'none') -> bool:
    """
    Inject the style into one content file.

    Returns:
        True when the file changed

    Raises:
        FileReadError, FileWriteError, EpubError
    """
    try:
        async with aiofiles.open(path, 'r', encoding='utf-8') as f:
            original = await f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise FileReadError(f"Cannot read {path}: {e}", path=str(path)) from e

    try:
        styled = inject_style(original, hide)
    except EpubError as e:
        raise EpubError("No <head> tag found", path=str(path)) from e

    if styled == original:
        return False
    try:
        async with aiofiles.open(path, 'w', encoding='utf-8') as f:
            await f.write(styled)
    except OSError as e:
        raise FileWriteError(f"Cannot write {path}: {e}", path=str(path)) from e
    return True
