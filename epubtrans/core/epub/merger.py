"""
Merging translated segments back into a content document

For every accepted unit a clone of the source element carrying the
translation is inserted right after it, and the source is flagged with
``translated-by`` so later passes skip it. The document is then written
under a per-file lock.
"""
import asyncio
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import aiofiles

from epubtrans.config import (
    CONTENT_ID_KEY,
    TRANSLATION_BY_ID_KEY,
    TRANSLATION_ID_KEY,
    TRANSLATION_LANG_KEY,
)
from epubtrans.core.adapters.exceptions import FileWriteError, SegmentMismatchError
from epubtrans.core.llm.extraction import split_segments
from .batcher import Batch, TranslationUnit
from .document import ContentDocument, clone_element, insert_after, set_inner_html
from .marker import fingerprint
from .validator import ValidationStatus, validate_translation

logger = logging.getLogger(__name__)

DEBUG_DIRNAME = "debug"


class FileLockRegistry:
    """One asyncio lock per file path, created on first use."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._guard = threading.Lock()

    def lock(self, path: Path) -> asyncio.Lock:
        key = str(Path(path).resolve())
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[key] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)


@dataclass
class MergeReport:
    """What happened to one batch."""
    file_path: Optional[Path] = None
    expected: int = 0
    received: int = 0
    merged: int = 0
    identical: int = 0
    rejected: List[Tuple[int, str]] = field(default_factory=list)
    missing: List[int] = field(default_factory=list)
    written: bool = False
    debug_dump: Optional[Path] = None
    mismatch: Optional[SegmentMismatchError] = None
    write_error: Optional[FileWriteError] = None

    @property
    def changed(self) -> bool:
        return self.merged > 0 or self.identical > 0


def apply_translation(unit: TranslationUnit, translated: str, target_lang: str) -> str:
    """
    Insert the translated sibling after ``unit.element``.

    Returns:
        The translation id shared by the source and its sibling
    """
    source = unit.element
    translation_id = fingerprint(translated + target_lang)

    sibling = clone_element(source)
    sibling.attrib.pop(CONTENT_ID_KEY, None)
    # Element ids must stay unique in the document
    sibling.attrib.pop('id', None)
    set_inner_html(sibling, translated)
    sibling.set(TRANSLATION_ID_KEY, translation_id)
    sibling.set(TRANSLATION_LANG_KEY, target_lang)

    source.set(TRANSLATION_BY_ID_KEY, translation_id)
    insert_after(source, sibling)
    return translation_id


def mark_identical(unit: TranslationUnit, target_lang: str) -> None:
    """Flag a unit whose translation equals its source as done, without a sibling.

    The source gets ``translation-lang`` as well so styling keeps it visible
    whichever language is hidden.
    """
    unit.element.set(TRANSLATION_BY_ID_KEY, fingerprint(unit.content + target_lang))
    unit.element.set(TRANSLATION_LANG_KEY, target_lang)


async def write_debug_dump(state_dir: Path, batch: Batch, request: str, response: str,
                           error: SegmentMismatchError) -> Optional[Path]:
    """Write request and response of a mismatched batch for later inspection."""
    debug_dir = Path(state_dir) / DEBUG_DIRNAME
    stem = batch.file_path.stem if batch.file_path else "batch"
    path = debug_dir / f"{stem}-{datetime.now().strftime('%Y%m%d-%H%M%S-%f')}.json"
    payload = {
        'timestamp': datetime.now().isoformat(),
        'file': str(batch.file_path) if batch.file_path else None,
        'expected': error.expected,
        'received': error.actual,
        'request': request,
        'response': response,
    }
    try:
        debug_dir.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, 'w', encoding='utf-8') as f:
            await f.write(json.dumps(payload, indent=2, ensure_ascii=False))
    except OSError as e:
        logger.warning("Could not write debug dump %s: %s", path, e)
        return None
    return path


async def merge_batch(document: ContentDocument, batch: Batch, response: str,
                      target_lang: str, locks: FileLockRegistry,
                      state_dir: Optional[Path] = None,
                      request: Optional[str] = None) -> MergeReport:
    """
    Merge one batch response into ``document`` and write the file.

    Segments are matched to units by their number; units without a segment
    stay untranslated and extra segments are ignored. A count mismatch is
    recorded on the report and dumped to ``<state_dir>/debug``.

    A failed write is recorded on the report, not raised.
    """
    report = MergeReport(file_path=document.path, expected=len(batch.units))
    segments = split_segments(response)
    report.received = len(segments)

    if report.received != report.expected:
        report.mismatch = SegmentMismatchError(
            "Segment count mismatch",
            expected=report.expected,
            actual=report.received,
            context={'file': str(document.path)}
        )
        if state_dir is not None:
            report.debug_dump = await write_debug_dump(
                state_dir, batch, request if request is not None else batch.render(),
                response, report.mismatch
            )

    for position, unit in enumerate(batch.units):
        translated = segments.get(position)
        if translated is None:
            report.missing.append(position)
            continue

        outcome = validate_translation(unit.content, translated)
        if outcome.status == ValidationStatus.REJECTED:
            report.rejected.append((position, outcome.reason))
            logger.debug("Unit %d of %s rejected: %s", position, document.path, outcome.reason)
        elif outcome.status == ValidationStatus.IDENTICAL:
            mark_identical(unit, target_lang)
            report.identical += 1
        else:
            apply_translation(unit, translated, target_lang)
            report.merged += 1

    if report.changed and document.path is not None:
        async with locks.lock(document.path):
            try:
                await document.save()
                report.written = True
            except FileWriteError as e:
                report.write_error = e
    return report
