"""
Word based token estimation, recalibrated against the provider.

Counting tokens through the API for every unit would cost one request per
unit, so the batcher uses ``words * tokens_per_word`` and the ratio is
refreshed from a real count every ``refresh_interval`` files.
"""

import logging
import math
from typing import Awaitable, Callable

from epubtrans.config import TOKENS_PER_WORD, TOKEN_REFRESH_INTERVAL
from epubtrans.utils.text import count_words

logger = logging.getLogger(__name__)

# Bounds that keep one odd sample from wrecking batch sizing
MIN_RATIO = 0.5
MAX_RATIO = 8.0


class TokenEstimator:
    """Estimates model tokens from word counts."""

    def __init__(self, tokens_per_word: float = TOKENS_PER_WORD,
                 refresh_interval: int = TOKEN_REFRESH_INTERVAL):
        self.tokens_per_word = tokens_per_word
        self.refresh_interval = max(1, refresh_interval)
        self.samples = 0

    def estimate(self, text: str) -> int:
        words = count_words(text)
        if words == 0:
            return 0
        return max(1, math.ceil(words * self.tokens_per_word))

    def should_refresh(self, files_done: int) -> bool:
        """True on the first file and then every ``refresh_interval`` files."""
        return files_done % self.refresh_interval == 0

    def update(self, text: str, actual_tokens: int) -> None:
        """Recompute the ratio from a real token count for ``text``."""
        words = count_words(text)
        if words == 0 or actual_tokens <= 0:
            return
        ratio = min(MAX_RATIO, max(MIN_RATIO, actual_tokens / words))
        logger.debug("tokens/word %.3f -> %.3f (%d words, %d tokens)",
                     self.tokens_per_word, ratio, words, actual_tokens)
        self.tokens_per_word = ratio
        self.samples += 1

    async def refresh(self, text: str, counter: Callable[[str], Awaitable]) -> bool:
        """
        Ask ``counter`` (returns a Result of int) for the real count of ``text``.

        Returns True when the ratio was updated. A failed count keeps the
        current ratio.
        """
        if not text.strip():
            return False
        result = await counter(text)
        if result.is_err():
            logger.debug("Token count failed, keeping ratio %.3f: %s",
                         self.tokens_per_word, result.error)
            return False
        self.update(text, result.value)
        return True
