"""
Constants for EPUB content marking and file selection
"""
import re

BLACKLISTED_TAGS = frozenset({
    'math', 'figure', 'pre', 'code', 'head', 'script', 'style',
    'template', 'svg', 'noscript',
})
"""Elements never marked and never descended into"""

MIN_TEXT_LENGTH = 2
"""Shortest text (in characters, after trimming) worth marking"""

SYMBOL_ONLY_PATTERN = re.compile(r'^[\s*=\-_.,:;!?#]+$')
"""Text made only of separators and punctuation (e.g. "* * *", "---")"""

NUMERIC_PATTERN = re.compile(r'^[+-]?\d+([.,]\d+)*$')
"""Page numbers, list numbers, years"""

EXCLUDED_FILE_PATTERN = re.compile(
    r'(preface|introduction|foreword|prologue|toc|table\s*of\s*contents|title|cover|copyright|'
    r'colophon|dedication|acknowledgements?|about\s*the\s*author|bibliography|glossary|index|'
    r'appendix|notes?|footnotes?|endnotes?|references|epub-meta|metadata|nav|ncx|opf|'
    r'front\s*matter|back\s*matter|frontmatter|backmatter|halftitle|frontispiece|epigraph|'
    r'list\s*of\s*(figures|tables|illustrations)|copyright\s*page|series\s*page|reviews|praise|'
    r'also\s*by\s*the\s*author|author\s*bio|publication\s*info|imprint|credits|permissions|'
    r'disclaimer|errata|synopsis|summary)',
    re.IGNORECASE
)
"""Front and back matter file names skipped by translation"""

MIN_BATCH_UNIT_LENGTH = 2
"""Units whose inner HTML is shorter than this are not sent for translation"""

MAX_SIZE_RATIO = 5.0
"""Translated word count may be at most this many times the source (and at least its inverse)"""

INJECTED_STYLE_ID = "injected-style"

# Media already compressed, stored as-is when packing
STORED_EXTENSIONS = frozenset({
    '.jpg', '.jpeg', '.png', '.gif', '.webp', '.mp3', '.mp4', '.m4a', '.ogg',
    '.avi', '.mov', '.zip', '.rar', '.7z', '.gz', '.bz2', '.xz', '.pdf',
    '.woff', '.woff2',
})

BILINGUAL_SUFFIX = "-bilingual"
