"""
Segment extraction from LLM responses.

Handles:
    - Removal of <think>...</think> reasoning blocks
    - Wrapping batch units as <SEGMENT_n>...</SEGMENT_n>
    - Parsing the numbered segments back out of a response
"""

import logging
import re
from typing import Dict, Iterable

logger = logging.getLogger(__name__)

SEGMENT_PATTERN = re.compile(r'<SEGMENT_(\d+)>(.*?)</SEGMENT_\1>', re.DOTALL)


def remove_think_blocks(response: str) -> str:
    """
    Remove all <think>...</think> blocks from response.

    These blocks contain the model's internal reasoning and must not be
    searched for segments.
    """
    # Complete blocks
    response = re.sub(r'<think>.*?</think>', '', response, flags=re.DOTALL | re.IGNORECASE)

    # Orphan closing tag: everything before it is reasoning
    before = response
    response = re.sub(r'^.*?</think>\s*', '', response, flags=re.DOTALL | re.IGNORECASE)
    if before != response:
        logger.debug("Orphan </think> removed %d leading characters", len(before) - len(response))

    return response


def wrap_segments(contents: Iterable[str]) -> str:
    """Join fragments as numbered segments, starting at 0."""
    return "\n".join(
        f"<SEGMENT_{index}>{content}</SEGMENT_{index}>"
        for index, content in enumerate(contents)
    )


def split_segments(response: str) -> Dict[int, str]:
    """
    Parse a response into ``{index: fragment}``.

    Fragments are stripped. When the model repeats an index the first
    occurrence wins.

    Example:
        >>> split_segments("<SEGMENT_0>Bonjour</SEGMENT_0><SEGMENT_1>Monde</SEGMENT_1>")
        {0: 'Bonjour', 1: 'Monde'}
    """
    if not response:
        return {}

    segments: Dict[int, str] = {}
    for match in SEGMENT_PATTERN.finditer(remove_think_blocks(response)):
        index = int(match.group(1))
        if index in segments:
            logger.debug("Duplicate segment %d ignored", index)
            continue
        segments[index] = match.group(2).strip()
    return segments
