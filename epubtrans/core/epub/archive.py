"""
EPUB container I/O: unpack a book to a directory and pack it back.
"""
import logging
import os
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from epubtrans.config import STATE_DIR
from epubtrans.core.adapters.exceptions import EpubStructureError
from .constants import BILINGUAL_SUFFIX, STORED_EXTENSIONS

logger = logging.getLogger(__name__)

MIMETYPE_FILENAME = "mimetype"
EPUB_MIMETYPE = b"application/epub+zip"


def default_unpack_dir(epub_path: Path) -> Path:
    """``path/book.epub`` -> ``path/book``"""
    epub_path = Path(epub_path)
    return epub_path.with_suffix('') if epub_path.suffix else epub_path.with_name(epub_path.name + "-unpacked")


def get_unique_output_path(path: Path) -> Path:
    """
    Return ``path`` if free, else ``name-(1).ext``, ``name-(2).ext``...

    Example:
        book-bilingual.epub exists -> book-bilingual-(1).epub
    """
    path = Path(path)
    if not path.exists():
        return path
    counter = 1
    while True:
        candidate = path.with_name(f"{path.stem}-({counter}){path.suffix}")
        if not candidate.exists():
            return candidate
        counter += 1


def unpack_epub(epub_path: Path, destination: Optional[Path] = None) -> Path:
    """
    Extract a book into ``destination`` (default: next to the file, without extension).

    Raises:
        EpubStructureError: If the file is missing, not a zip, or holds entries
            that would land outside the destination
    """
    epub_path = Path(epub_path)
    if not epub_path.is_file():
        raise EpubStructureError("EPUB file not found", path=str(epub_path))
    destination = Path(destination) if destination else default_unpack_dir(epub_path)
    root = destination.resolve()

    try:
        with zipfile.ZipFile(epub_path, 'r') as zip_ref:
            for member in zip_ref.namelist():
                target = (root / member).resolve()
                if target != root and root not in target.parents:
                    raise EpubStructureError(f"Archive entry escapes destination: {member}",
                                             path=str(epub_path))
            destination.mkdir(parents=True, exist_ok=True)
            zip_ref.extractall(destination)
    except zipfile.BadZipFile as e:
        raise EpubStructureError(f"Invalid EPUB file (not a valid ZIP): {e}", path=str(epub_path)) from e
    return destination


def compression_for(path: Path) -> int:
    """Already compressed media are stored, everything else deflated."""
    if Path(path).suffix.lower() in STORED_EXTENSIONS:
        return zipfile.ZIP_STORED
    return zipfile.ZIP_DEFLATED


@dataclass
class PackResult:
    output_path: Path
    file_count: int = 0
    total_size: int = 0


def _iter_book_files(source_dir: Path, excluded_dirs: Iterable[str]) -> Iterable[Path]:
    excluded = set(excluded_dirs)
    for current, dirs, files in os.walk(source_dir):
        dirs[:] = sorted(d for d in dirs if d not in excluded)
        for name in sorted(files):
            yield Path(current) / name


def pack_epub(source_dir: Path, output_path: Optional[Path] = None,
              excluded_dirs: Iterable[str] = (Path(STATE_DIR).name,)) -> PackResult:
    """
    Zip an unpacked book.

    ``mimetype`` is written first and stored uncompressed, as readers require.
    The output defaults to ``<dir>-bilingual.epub`` and never overwrites an
    existing file.

    Raises:
        EpubStructureError: If ``source_dir`` is not a directory
    """
    source_dir = Path(source_dir)
    if not source_dir.is_dir():
        raise EpubStructureError("Unpacked EPUB directory not found", path=str(source_dir))

    if output_path is None:
        output_path = source_dir.parent / f"{source_dir.name}{BILINGUAL_SUFFIX}.epub"
    output_path = get_unique_output_path(Path(output_path))
    result = PackResult(output_path=output_path)

    with zipfile.ZipFile(output_path, 'w') as epub_zip:
        mimetype_path = source_dir / MIMETYPE_FILENAME
        if mimetype_path.is_file():
            epub_zip.write(mimetype_path, MIMETYPE_FILENAME, compress_type=zipfile.ZIP_STORED)
        else:
            logger.warning("%s has no mimetype file, writing the standard one", source_dir)
            epub_zip.writestr(MIMETYPE_FILENAME, EPUB_MIMETYPE, compress_type=zipfile.ZIP_STORED)
        result.file_count += 1

        for file_path in _iter_book_files(source_dir, excluded_dirs):
            relative = file_path.relative_to(source_dir)
            if relative.as_posix() == MIMETYPE_FILENAME or file_path.resolve() == output_path.resolve():
                continue
            epub_zip.write(file_path, relative.as_posix(), compress_type=compression_for(file_path))
            result.file_count += 1
            result.total_size += file_path.stat().st_size

    return result
