"""
Content file enumeration

Turns the package manifest into the ordered list of files each command works
on. Front and back matter are skipped by file name.
"""
from pathlib import Path
from typing import List

from .constants import EXCLUDED_FILE_PATTERN
from .package import BookPackage, load_package


def should_exclude_file(path: Path) -> bool:
    """True when the file name looks like front or back matter (toc, cover, notes...)."""
    return EXCLUDED_FILE_PATTERN.search(Path(path).name) is not None


def enumerate_content_files(book_root: Path, exclude_matter: bool = True,
                            package: BookPackage = None) -> List[Path]:
    """
    Ordered content documents of an unpacked book.

    Args:
        book_root: Directory of the unpacked book
        exclude_matter: Drop front/back matter files
        package: Already parsed package, parsed from book_root when omitted

    Returns:
        Absolute paths in manifest order, duplicates removed

    Raises:
        EpubStructureError: If the container or package document is unusable
    """
    package = package or load_package(book_root)
    seen = set()
    files = []
    for path in package.content_documents():
        if path in seen:
            continue
        seen.add(path)
        if exclude_matter and should_exclude_file(path):
            continue
        files.append(path)
    return files
