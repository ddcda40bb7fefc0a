"""
Pipeline orchestration

Two drivers live here:

- ``run_file_stage``: a bounded worker pool applying one per-file operation
  (clean, mark, styling) to every content file.
- ``TranslationPipeline``: the translate command. Files are handled one at a
  time and their batches in document order; the shared rate limiter inside
  the translation client paces the requests.

Both honor a cancellation event: no new file or batch starts once it is set,
while work already in flight finishes and is written.
"""
import asyncio
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from tqdm.auto import tqdm

from epubtrans.config import TranslationConfig
from epubtrans.core.adapters.exceptions import (
    TranslationError,
    OperationCancelledError,
    LLMAuthenticationError,
)
from epubtrans.core.llm.token_estimator import TokenEstimator
from epubtrans.core.llm.translation_client import TranslationClient
from epubtrans.utils.unified_logger import UnifiedLogger, LogType
from .batcher import SizeEstimator, build_batches, collect_units
from .document import ContentDocument
from .job_collector import enumerate_content_files
from .merger import FileLockRegistry, merge_batch
from .package import load_package

# Characters of unit HTML sent to count_tokens when recalibrating
TOKEN_SAMPLE_CHARS = 4000


class FileState(Enum):
    """Lifecycle of one file in the translate pipeline."""
    PENDING = "pending"
    ENUMERATED = "enumerated"
    MARKED = "marked"
    BATCHED = "batched"
    TRANSLATING = "translating"
    MERGED = "merged"
    PARTIAL_FAILURE = "partial_failure"
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class FileResult:
    path: Path
    state: FileState = FileState.PENDING
    batches: int = 0
    failed_batches: int = 0
    merged: int = 0
    identical: int = 0
    rejected: int = 0
    error: Optional[TranslationError] = None


@dataclass
class RunSummary:
    """Per-file outcomes of one command run."""
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False
    results: List[FileResult] = field(default_factory=list)

    def add(self, result: FileResult) -> None:
        self.results.append(result)
        if result.state == FileState.FAILED:
            self.failed += 1
        elif result.state == FileState.SKIPPED:
            self.skipped += 1
        else:
            self.processed += 1

    @property
    def merged(self) -> int:
        return sum(r.merged for r in self.results)

    @property
    def rejected(self) -> int:
        return sum(r.rejected for r in self.results)

    @property
    def failed_batches(self) -> int:
        return sum(r.failed_batches for r in self.results)

    def to_dict(self) -> dict:
        return {
            'processed': self.processed,
            'skipped': self.skipped,
            'failed': self.failed,
            'merged': self.merged,
            'rejected': self.rejected,
            'failed_batches': self.failed_batches,
        }


def default_workers() -> int:
    return os.cpu_count() or 1


async def run_file_stage(files: List[Path],
                         operation: Callable[[Path], Awaitable[object]],
                         workers: Optional[int] = None,
                         stop_event: Optional[asyncio.Event] = None,
                         log_callback: Optional[Callable[[str, str], None]] = None) -> RunSummary:
    """
    Apply ``operation`` to every file with a pool of ``workers`` tasks.

    A truthy return value counts the file as processed, a falsy one as
    skipped. A ``TranslationError`` fails that file only.
    """
    summary = RunSummary()
    queue: asyncio.Queue = asyncio.Queue()
    for path in files:
        queue.put_nowait(Path(path))

    def log(event: str, message: str):
        if log_callback:
            log_callback(event, message)

    async def worker():
        while True:
            if stop_event is not None and stop_event.is_set():
                return
            try:
                path = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            result = FileResult(path=path)
            try:
                changed = await operation(path)
                result.state = FileState.DONE if changed else FileState.SKIPPED
                log("file_done", f"{'Updated' if changed else 'Unchanged'}: {path.name}")
            except TranslationError as e:
                result.state = FileState.FAILED
                result.error = e
                log("file_error", f"Failed {path.name}: {e}")
            summary.add(result)

    count = max(1, min(workers or default_workers(), len(files) or 1))
    await asyncio.gather(*(worker() for _ in range(count)))
    summary.cancelled = stop_event is not None and stop_event.is_set()
    return summary


class TranslationPipeline:
    """Translates every content file of an unpacked, marked book."""

    def __init__(self,
                 client: TranslationClient,
                 config: TranslationConfig,
                 logger: Optional[UnifiedLogger] = None,
                 locks: Optional[FileLockRegistry] = None,
                 estimator: Optional[TokenEstimator] = None,
                 stop_event: Optional[asyncio.Event] = None,
                 log_callback: Optional[Callable[[str, str], None]] = None,
                 show_progress: bool = False):
        self.client = client
        self.config = config
        self.logger = logger
        self.locks = locks or FileLockRegistry()
        self.estimator = estimator or TokenEstimator(config.tokens_per_word, config.token_refresh_interval)
        self.size_estimator = SizeEstimator(config.batch_size_mode, self.estimator)
        self.stop_event = stop_event or client.stop_event or asyncio.Event()
        self.log_callback = log_callback or (logger.create_log_callback() if logger else None)
        self.show_progress = show_progress
        self.state_dir = Path(config.state_dir) if config.state_dir else None

    def _log(self, event: str, message: str):
        if self.log_callback:
            self.log_callback(event, message)
        elif self.show_progress:
            tqdm.write(message)

    @property
    def cancelled(self) -> bool:
        return self.stop_event.is_set()

    async def translate_book(self, book_root: Path) -> RunSummary:
        """
        Translate every content file of ``book_root``.

        Raises:
            EpubStructureError: If the book's container or package is unusable
        """
        package = load_package(book_root)
        files = enumerate_content_files(book_root, package=package)
        title = package.title or Path(book_root).name

        if self.logger:
            self.logger.info("Translation started", LogType.TRANSLATION_START, {
                'book_title': title,
                'source_lang': self.config.source_language,
                'target_lang': self.config.target_language,
                'model': self.config.model,
                'total_files': len(files),
            })

        await self.client.usage.load()
        summary = RunSummary()

        for files_done, path in enumerate(files):
            if self.cancelled:
                summary.cancelled = True
                self._log("translation_interrupted",
                          f"Interrupted: {len(files) - files_done} file(s) not started")
                break
            result = await self.translate_file(path, title, files_done)
            summary.add(result)
            if self.logger:
                self.logger.info("Progress", LogType.PROGRESS, {
                    'current': files_done + 1, 'total': len(files), 'label': 'files'
                })

        if self.logger:
            self.logger.info("Translation finished", LogType.TRANSLATION_END, {'stats': summary.to_dict()})
        return summary

    async def _refresh_token_ratio(self, units, files_done: int) -> None:
        if self.config.batch_size_mode != 'tokens' or not self.estimator.should_refresh(files_done):
            return
        sample = ""
        for unit in units:
            if len(sample) >= TOKEN_SAMPLE_CHARS:
                break
            sample += unit.content + "\n"
        if await self.estimator.refresh(sample, self.client.count_tokens):
            self._log("debug", f"Tokens per word recalibrated to {self.estimator.tokens_per_word:.2f}")

    async def translate_file(self, path: Path, title: str = "", files_done: int = 0) -> FileResult:
        """Translate the untranslated units of one file, batch by batch."""
        result = FileResult(path=path, state=FileState.ENUMERATED)

        try:
            document = await ContentDocument.load(path)
        except TranslationError as e:
            result.state = FileState.FAILED
            result.error = e
            self._log("file_read_error", f"Skipping {path.name}: {e}")
            return result

        if not document.find_marked():
            result.state = FileState.SKIPPED
            self._log("file_not_marked", f"{path.name}: no marked content (run mark first)")
            return result
        result.state = FileState.MARKED

        units = collect_units(document)
        if not units:
            result.state = FileState.SKIPPED
            self._log("debug", f"{path.name}: already translated")
            return result

        await self._refresh_token_ratio(units, files_done)
        batches = build_batches(units, self.config.max_batch_size, self.size_estimator.measure)
        result.batches = len(batches)
        result.state = FileState.BATCHED
        if not batches:
            result.state = FileState.SKIPPED
            return result

        self._log("file_start", f"Translating {path.name}: {len(units)} unit(s) in {len(batches)} batch(es)")
        result.state = FileState.TRANSLATING

        progress = tqdm(total=len(batches), desc=path.name, unit="batch",
                        disable=not self.show_progress, leave=False)
        interrupted = False
        try:
            for batch_number, batch in enumerate(batches, start=1):
                if self.cancelled:
                    interrupted = True
                    break
                request = batch.render()
                response = await self.client.translate(
                    self.config.prompt_preset, request,
                    self.config.source_language, self.config.target_language, title
                )
                if response.is_err():
                    error = response.error
                    if isinstance(error, OperationCancelledError):
                        interrupted = True
                        break
                    result.failed_batches += 1
                    if isinstance(error, LLMAuthenticationError):
                        # Every later batch would be refused too
                        result.error = error
                        self._log("translation_error", f"{path.name}: {error}")
                        break
                    self._log("batch_translation_error",
                              f"{path.name} batch {batch_number}/{len(batches)} failed: {error}")
                    continue

                report = await merge_batch(document, batch, response.value,
                                           self.config.target_language, self.locks,
                                           state_dir=self.state_dir, request=request)
                result.merged += report.merged
                result.identical += report.identical
                result.rejected += len(report.rejected)

                if report.mismatch is not None:
                    self._log("segment_mismatch_warning",
                              f"{path.name} batch {batch_number}: {report.expected} segments sent, "
                              f"{report.received} returned"
                              + (f" (dump: {report.debug_dump})" if report.debug_dump else ""))
                for position, reason in report.rejected:
                    self._log("unit_validation_warning",
                              f"{path.name} batch {batch_number} unit {position} rejected: {reason}")
                if report.write_error is not None:
                    self._log("file_write_error", f"{path.name}: {report.write_error}")
                progress.update(1)
        finally:
            progress.close()

        if result.error is not None:
            result.state = FileState.FAILED
        elif interrupted or result.failed_batches or result.rejected:
            # Batches left untranslated stay eligible for the next run
            result.state = FileState.PARTIAL_FAILURE
        else:
            result.state = FileState.DONE
        return result
