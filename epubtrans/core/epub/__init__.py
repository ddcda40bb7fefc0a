"""
EPUB module

Everything that reads or rewrites the unpacked book: archive I/O, the package
document, content marking, batching, validation, merging, cleanup, styling
and the pipeline that ties them together.

Components:
    - archive: unpack / pack
    - package: container.xml and OPF parsing
    - job_collector: content file enumeration
    - marker: content-id fingerprinting
    - batcher: translation units and size-bounded batches
    - validator / merger: checking and inserting translations
    - cleaner / styling: raw-text passes over content files
    - pipeline: worker pool and translate orchestration
"""

from .archive import unpack_epub, pack_epub, PackResult
from .package import load_package, BookPackage, ManifestItem
from .job_collector import enumerate_content_files
from .document import ContentDocument
from .marker import mark_document, mark_file, fingerprint
from .batcher import TranslationUnit, Batch, build_batches, collect_units
from .validator import validate_translation, ValidationOutcome, ValidationStatus
from .merger import merge_batch, MergeReport, FileLockRegistry
from .cleaner import clean_content, clean_file
from .styling import inject_style, style_file, HIDE_CHOICES
from .pipeline import TranslationPipeline, RunSummary, FileResult, FileState, run_file_stage

__all__ = [
    # Archive
    'unpack_epub',
    'pack_epub',
    'PackResult',

    # Package and files
    'load_package',
    'BookPackage',
    'ManifestItem',
    'enumerate_content_files',
    'ContentDocument',

    # Marking
    'mark_document',
    'mark_file',
    'fingerprint',

    # Batching, validation, merging
    'TranslationUnit',
    'Batch',
    'build_batches',
    'collect_units',
    'validate_translation',
    'ValidationOutcome',
    'ValidationStatus',
    'merge_batch',
    'MergeReport',
    'FileLockRegistry',

    # Raw-text passes
    'clean_content',
    'clean_file',
    'inject_style',
    'style_file',
    'HIDE_CHOICES',

    # Pipeline
    'TranslationPipeline',
    'RunSummary',
    'FileResult',
    'FileState',
    'run_file_stage',
]
