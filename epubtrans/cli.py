"""
Command-line interface for bilingual EPUB translation

    epubtrans unpack book.epub
    epubtrans clean book/
    epubtrans mark book/
    epubtrans styling book/ --hide source
    epubtrans translate book/ --source English --target French
    epubtrans pack book/
"""
import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional

from epubtrans.config import (
    DEFAULT_MODEL,
    DEFAULT_SOURCE_LANGUAGE,
    DEFAULT_TARGET_LANGUAGE,
    LLM_PROVIDER,
    BATCH_SIZE_MODE,
    PROMPT_PRESET,
    TranslationConfig,
)
from epubtrans.core.adapters.exceptions import (
    TranslationError,
    EpubStructureError,
    ConfigurationError,
)
from epubtrans.core.epub.archive import unpack_epub, pack_epub
from epubtrans.core.epub.cleaner import clean_file
from epubtrans.core.epub.job_collector import enumerate_content_files
from epubtrans.core.epub.marker import mark_file
from epubtrans.core.epub.pipeline import TranslationPipeline, RunSummary, run_file_stage, default_workers
from epubtrans.core.epub.styling import style_file, HIDE_CHOICES
from epubtrans.core.llm import create_llm_provider, TranslationClient
from epubtrans.core.llm.prompts import PROMPT_PRESETS
from epubtrans.utils.unified_logger import setup_cli_logger, UnifiedLogger, LogType

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INTERRUPTED = 130


def install_stop_handlers(stop_event: asyncio.Event, logger: UnifiedLogger) -> None:
    """SIGINT/SIGTERM set ``stop_event``: in-flight work finishes, nothing new starts."""
    loop = asyncio.get_running_loop()

    def request_stop(signame: str):
        if not stop_event.is_set():
            logger.warning(f"{signame} received, finishing in-flight work...")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_stop, sig.name)
        except (NotImplementedError, RuntimeError):
            # Windows event loops do not support signal handlers
            pass


def report_summary(logger: UnifiedLogger, command: str, summary: RunSummary) -> int:
    logger.info(f"{command} finished", LogType.SUMMARY, summary.to_dict())
    for result in summary.results:
        if result.error is not None:
            logger.error(f"{result.path.name}: {result.error.message}", LogType.ERROR_DETAIL, {
                'details': result.error.context,
                'file': str(result.path),
            })
    if summary.cancelled:
        logger.warning(f"{command} interrupted")
        return EXIT_INTERRUPTED
    return EXIT_OK


async def run_stage(command: str, book_dir: Path, operation: Callable[[Path], Awaitable[object]],
                    workers: Optional[int], logger: UnifiedLogger, exclude_matter: bool = True) -> int:
    """Enumerate the book's content files and apply one per-file operation."""
    stop_event = asyncio.Event()
    install_stop_handlers(stop_event, logger)

    files = enumerate_content_files(book_dir, exclude_matter=exclude_matter)
    logger.info(f"{command}: {len(files)} content file(s) in {book_dir}")
    summary = await run_file_stage(files, operation, workers=workers, stop_event=stop_event,
                                   log_callback=logger.create_log_callback())
    return report_summary(logger, command, summary)


async def run_translate(args, logger: UnifiedLogger) -> int:
    book_dir = Path(args.book_dir)
    config = TranslationConfig.from_cli_args(args)
    state_dir = Path(config.state_dir)
    if not state_dir.is_absolute():
        config.state_dir = str(book_dir / state_dir)
    logger.debug(f"Configuration: {config.to_dict()}")

    stop_event = asyncio.Event()
    install_stop_handlers(stop_event, logger)

    provider = create_llm_provider(config)
    client = TranslationClient.from_config(config, provider, stop_event=stop_event, logger=logger)
    pipeline = TranslationPipeline(client, config, logger=logger, stop_event=stop_event)
    try:
        summary = await pipeline.translate_book(book_dir)
    finally:
        await client.close()

    logger.info(f"{client.request_count} request(s) sent to {config.model}")
    return report_summary(logger, "translate", summary)


async def run_prepare(args, logger: UnifiedLogger) -> int:
    """unpack -> clean -> mark -> styling"""
    book_dir = unpack_epub(Path(args.epub), Path(args.dest) if args.dest else None)
    logger.info(f"Unpacked to {book_dir}", LogType.FILE_OPERATION)

    for command, operation, exclude_matter in (
        ("clean", clean_file, True),
        ("mark", mark_file, True),
        ("styling", lambda path: style_file(path, args.hide), False),
    ):
        code = await run_stage(command, book_dir, operation, args.workers, logger,
                               exclude_matter=exclude_matter)
        if code != EXIT_OK:
            return code
    return EXIT_OK


async def dispatch(args, logger: UnifiedLogger) -> int:
    if args.command == "unpack":
        book_dir = unpack_epub(Path(args.epub), Path(args.dest) if args.dest else None)
        logger.info(f"Unpacked to {book_dir}", LogType.FILE_OPERATION)
        return EXIT_OK

    if args.command == "pack":
        result = pack_epub(Path(args.book_dir), Path(args.output) if args.output else None)
        logger.info(f"Packed {result.file_count} file(s) into {result.output_path}", LogType.FILE_OPERATION)
        return EXIT_OK

    if args.command == "clean":
        return await run_stage("clean", Path(args.book_dir), clean_file, args.workers, logger)

    if args.command == "mark":
        return await run_stage("mark", Path(args.book_dir), mark_file, args.workers, logger)

    if args.command == "styling":
        return await run_stage("styling", Path(args.book_dir),
                               lambda path: style_file(path, args.hide),
                               args.workers, logger, exclude_matter=False)

    if args.command == "translate":
        return await run_translate(args, logger)

    if args.command == "prepare":
        return await run_prepare(args, logger)

    raise ConfigurationError(f"Unknown command: {args.command}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="epubtrans",
                                     description="Turn an EPUB into a bilingual book with an LLM.")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    unpack = subparsers.add_parser("unpack", help="Extract an EPUB into a directory.")
    unpack.add_argument("epub", help="Path to the .epub file.")
    unpack.add_argument("-d", "--dest", default=None,
                        help="Destination directory (default: the file name without extension).")

    def add_workers(sub):
        sub.add_argument("--workers", type=int, default=default_workers(),
                         help=f"Files processed in parallel (default: {default_workers()}).")

    for name, help_text in (("clean", "Remove empty anchors and divs."),
                            ("mark", "Fingerprint translatable elements.")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("book_dir", help="Unpacked EPUB directory.")
        add_workers(sub)

    styling = subparsers.add_parser("styling", help="Inject the bilingual display style.")
    styling.add_argument("book_dir", help="Unpacked EPUB directory.")
    styling.add_argument("--hide", choices=HIDE_CHOICES, default="none",
                         help="Language to hide (default: none).")
    add_workers(styling)

    translate = subparsers.add_parser("translate", help="Translate marked content.")
    translate.add_argument("book_dir", help="Unpacked, marked EPUB directory.")
    translate.add_argument("--source", default=DEFAULT_SOURCE_LANGUAGE,
                           help=f"Source language (default: {DEFAULT_SOURCE_LANGUAGE}).")
    translate.add_argument("--target", default=DEFAULT_TARGET_LANGUAGE,
                           help=f"Target language (default: {DEFAULT_TARGET_LANGUAGE}).")
    translate.add_argument("-m", "--model", default=DEFAULT_MODEL, help=f"LLM model (default: {DEFAULT_MODEL}).")
    translate.add_argument("--provider", default=LLM_PROVIDER, choices=["anthropic", "openai"],
                           help=f"LLM provider to use (default: {LLM_PROVIDER}).")
    translate.add_argument("--batch-mode", dest="batch_mode", default=BATCH_SIZE_MODE, choices=["chars", "tokens"],
                           help=f"Unit used for the batch ceiling (default: {BATCH_SIZE_MODE}).")
    translate.add_argument("--max-batch-size", dest="max_batch_size", type=int, default=None,
                           help="Batch ceiling in characters or tokens.")
    translate.add_argument("--prompt-preset", dest="prompt_preset", default=PROMPT_PRESET,
                           choices=sorted(PROMPT_PRESETS), help=f"Prompt preset (default: {PROMPT_PRESET}).")
    translate.add_argument("--guidelines", default=None,
                           help="File with translation guidelines, used instead of the preset.")

    pack = subparsers.add_parser("pack", help="Zip an unpacked directory back into an EPUB.")
    pack.add_argument("book_dir", help="Unpacked EPUB directory.")
    pack.add_argument("-o", "--output", default=None,
                      help="Output file (default: <dir>-bilingual.epub).")

    prepare = subparsers.add_parser("prepare", help="unpack, clean, mark and styling in one go.")
    prepare.add_argument("epub", help="Path to the .epub file.")
    prepare.add_argument("-d", "--dest", default=None, help="Destination directory.")
    prepare.add_argument("--hide", choices=HIDE_CHOICES, default="none",
                         help="Language to hide (default: none).")
    add_workers(prepare)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = setup_cli_logger(enable_colors=not args.no_color)

    try:
        code = asyncio.run(dispatch(args, logger))
    except (EpubStructureError, ConfigurationError) as e:
        logger.error(f"{args.command} failed: {e.message}", LogType.ERROR_DETAIL, {'details': e.context})
        code = EXIT_FATAL
    except TranslationError as e:
        logger.error(f"{args.command} failed: {e}", LogType.ERROR_DETAIL, {'details': e.context})
        code = EXIT_FATAL
    except OSError as e:
        logger.error(f"{args.command} failed: {e}")
        code = EXIT_FATAL
    sys.exit(code)


if __name__ == "__main__":
    main()
