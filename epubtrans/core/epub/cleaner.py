"""
Markup cleanup before marking

Empty anchors and empty divs add nothing to read and only produce noise in
the marked tree, so they are removed from the raw text.
"""
import re
from pathlib import Path
from typing import Callable, List

import aiofiles

from epubtrans.core.adapters.exceptions import FileReadError, FileWriteError

EMPTY_ANCHOR_PATTERN = re.compile(r'<a(?:\s[^>]*)?(?:/>|>\s*</a>)')
EMPTY_DIV_PATTERN = re.compile(r'<div(?:\s[^>]*)?(?:/>|>\s*</div>)')


def remove_empty_anchors(content: str) -> str:
    return EMPTY_ANCHOR_PATTERN.sub('', content)


def remove_empty_divs(content: str) -> str:
    return EMPTY_DIV_PATTERN.sub('', content)


CLEANING_OPERATIONS: List[Callable[[str], str]] = [
    remove_empty_anchors,
    remove_empty_divs,
]


def clean_content(content: str) -> str:
    for operation in CLEANING_OPERATIONS:
        content = operation(content)
    return content


async def clean_file(path: Path) -> bool:
    """
    Clean one content file in place.

    Returns:
        True when the file changed and was rewritten

    Raises:
        FileReadError, FileWriteError
    """
    try:
        async with aiofiles.open(path, 'r', encoding='utf-8') as f:
            original = await f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise FileReadError(f"Cannot read {path}: {e}", path=str(path)) from e

    cleaned = clean_content(original)
    if cleaned == original:
        return False

    try:
        async with aiofiles.open(path, 'w', encoding='utf-8') as f:
            await f.write(cleaned)
    except OSError as e:
        raise FileWriteError(f"Cannot write {path}: {e}", path=str(path)) from e
    return True
