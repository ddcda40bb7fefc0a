"""
Batching of translation units

Units of one file are grouped, in document order, into batches whose total
size stays under a ceiling. Size is measured in characters of the unit HTML
or in estimated model tokens.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from lxml import etree

from epubtrans.core.llm.extraction import wrap_segments
from epubtrans.core.llm.token_estimator import TokenEstimator
from .constants import MIN_BATCH_UNIT_LENGTH
from .document import ContentDocument, inner_html


@dataclass
class TranslationUnit:
    """A marked, untranslated element together with its inner HTML.

    Attributes:
        element: The source element in the document tree
        content: Inner HTML sent for translation
        index: Position among the file's untranslated units
        file_path: File the element belongs to
        size: Size under the active measure, filled in by the batcher
    """
    element: etree._Element
    content: str
    index: int
    file_path: Optional[Path] = None
    size: int = 0


@dataclass
class Batch:
    """Ordered units of one file sent in one request."""
    file_path: Optional[Path] = None
    units: List[TranslationUnit] = field(default_factory=list)
    size: int = 0

    def add(self, unit: TranslationUnit) -> None:
        self.units.append(unit)
        self.size += unit.size

    def __len__(self) -> int:
        return len(self.units)

    def render(self) -> str:
        """Units as numbered segments, in batch order."""
        return wrap_segments(unit.content for unit in self.units)


class SizeEstimator:
    """Measures unit size in characters or estimated tokens."""

    def __init__(self, mode: str = 'chars', token_estimator: Optional[TokenEstimator] = None):
        if mode not in ('chars', 'tokens'):
            raise ValueError(f"Unknown size mode: {mode}")
        self.mode = mode
        self.token_estimator = token_estimator or TokenEstimator()

    def measure(self, content: str) -> int:
        if self.mode == 'tokens':
            return self.token_estimator.estimate(content)
        return len(content)


def collect_units(document: ContentDocument) -> List[TranslationUnit]:
    """Untranslated units of a document, in document order."""
    return [
        TranslationUnit(element=element, content=inner_html(element).strip(),
                        index=index, file_path=document.path)
        for index, element in enumerate(document.find_untranslated())
    ]


def build_batches(units: List[TranslationUnit], max_size: int,
                  measure: Callable[[str], int] = len) -> List[Batch]:
    """
    Group units into batches no larger than ``max_size``.

    Units with empty or single character content are dropped. A unit larger
    than ``max_size`` on its own becomes a one-unit batch.

    Args:
        units: Units of one file, in document order
        max_size: Size ceiling per batch
        measure: Size function (characters by default)

    Returns:
        Batches in document order
    """
    batches: List[Batch] = []
    current: Optional[Batch] = None

    for unit in units:
        if len(unit.content) < MIN_BATCH_UNIT_LENGTH:
            continue
        unit.size = measure(unit.content)

        if current is not None and current.units and current.size + unit.size > max_size:
            batches.append(current)
            current = None
        if current is None:
            current = Batch(file_path=unit.file_path)
        current.add(unit)

    if current is not None and current.units:
        batches.append(current)
    return batches
