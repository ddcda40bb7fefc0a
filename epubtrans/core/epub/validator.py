"""
Validation of translated units

A translation is accepted only when it keeps the markup of the source
(same elements, same nesting, same order) and its length stays in proportion
with the source text.
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from lxml import etree

from epubtrans.utils.text import count_words, strip_tags
from .constants import MAX_SIZE_RATIO
from .document import normalize_fragment, parse_fragment


class ValidationStatus(Enum):
    ACCEPTED = "accepted"
    IDENTICAL = "identical"  # valid, nothing to merge
    REJECTED = "rejected"


@dataclass
class ValidationOutcome:
    status: ValidationStatus
    reason: str = ""

    @property
    def accepted(self) -> bool:
        return self.status == ValidationStatus.ACCEPTED


def tag_sequence(fragment: str) -> Optional[List[Tuple[int, str]]]:
    """
    ``(depth, tag name)`` of every element of an HTML fragment, in document order.

    The fragment is normalized first (HTML entities, stray ampersands) and then
    parsed strictly. Returns None when it is still not well-formed.

    Example:
        >>> tag_sequence('<b>Hello</b> <i>big <u>world</u></i>')
        [(1, 'b'), (1, 'i'), (2, 'u')]
    """
    try:
        root = parse_fragment(normalize_fragment(fragment))
    except etree.XMLSyntaxError:
        return None

    sequence = []
    stack = [(child, 1) for child in reversed(root)]
    while stack:
        element, depth = stack.pop()
        if not isinstance(element.tag, str):
            continue
        sequence.append((depth, etree.QName(element).localname.lower()))
        stack.extend((child, depth + 1) for child in reversed(element))
    return sequence


def validate_structure(source: str, translated: str) -> Optional[str]:
    """Reason for rejection, or None when both fragments share the same tag sequence."""
    expected = tag_sequence(source)
    actual = tag_sequence(translated)
    if actual is None:
        return "translation is not well-formed markup"
    if expected is None:
        # Source we could not parse ourselves: nothing to compare against
        return None
    if len(expected) != len(actual):
        return f"tag count differs ({len(expected)} expected, {len(actual)} returned)"
    for position, (want, got) in enumerate(zip(expected, actual)):
        if want != got:
            return f"tag {position} differs (<{want[1]}> at depth {want[0]}, got <{got[1]}> at depth {got[0]})"
    return None


def validate_length(source: str, translated: str, max_ratio: float = MAX_SIZE_RATIO) -> Optional[str]:
    """Reason for rejection, or None when word counts are within ``max_ratio`` of each other."""
    source_words = count_words(strip_tags(source))
    if source_words == 0:
        return None
    translated_words = count_words(strip_tags(translated))
    ratio = translated_words / source_words
    if ratio > max_ratio:
        return f"translation too long ({translated_words} words for {source_words})"
    if ratio < 1.0 / max_ratio:
        return f"translation too short ({translated_words} words for {source_words})"
    return None


def validate_translation(source: str, translated: str) -> ValidationOutcome:
    """
    Check one unit's translation against its source HTML.

    Identical output is valid but has nothing to merge (proper nouns, text
    already in the target language).
    """
    if not translated or not translated.strip():
        return ValidationOutcome(ValidationStatus.REJECTED, "empty translation")
    if translated.strip() == source.strip():
        return ValidationOutcome(ValidationStatus.IDENTICAL)

    reason = validate_structure(source, translated)
    if reason is None:
        reason = validate_length(source, translated)
    if reason is not None:
        return ValidationOutcome(ValidationStatus.REJECTED, reason)
    return ValidationOutcome(ValidationStatus.ACCEPTED)
