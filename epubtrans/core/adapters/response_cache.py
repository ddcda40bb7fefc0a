"""
In-memory, content-addressed response cache with a time-to-live.

Avoids paying twice for identical requests within one run (for example the
same boilerplate paragraph repeated at the end of every chapter).
"""

import hashlib
import time
from typing import Callable, Dict, Optional, Tuple

from epubtrans.config import CACHE_TTL_SECONDS


def make_cache_key(prompt_context: str, content: str, source: str, target: str) -> str:
    """SHA-256 over (prompt context + content, source, target)."""
    raw = f"{prompt_context}{content}:{source}:{target}"
    return hashlib.sha256(raw.encode('utf-8')).hexdigest()


class ResponseCache:
    """Maps cache keys to translated text, expiring entries after ``ttl`` seconds.

    All methods are synchronous and never await, so the cache is safe to share
    between coroutines running on one event loop.
    """

    def __init__(self, ttl: float = CACHE_TTL_SECONDS, max_entries: int = 10000,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, Tuple[float, str]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            self.misses += 1
            return None
        self.hits += 1
        return value

    def set(self, key: str, value: str) -> None:
        if len(self._entries) >= self.max_entries:
            self.purge_expired()
            if len(self._entries) >= self.max_entries:
                # Drop the entry closest to expiry
                oldest = min(self._entries, key=lambda k: self._entries[k][0])
                del self._entries[oldest]
        self._entries[key] = (self._clock() + self.ttl, value)

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
