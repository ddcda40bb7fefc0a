"""
Cross-cutting pieces shared by the translation client and the pipeline:
exception taxonomy, retry policy, rate limiting and response caching.
"""

from .exceptions import (
    TranslationError,
    EpubError,
    EpubStructureError,
    FileReadError,
    FileWriteError,
    DocumentParseError,
    LLMError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMAuthenticationError,
    LLMResponseError,
    OperationCancelledError,
    RetryExhaustedError,
    SegmentMismatchError,
    ConfigurationError,
)
from .retry_manager import RetryManager, RetryConfig, RetryStrategy, build_retry_configs, cancellable_sleep
from .rate_limiter import RateLimiter
from .response_cache import ResponseCache, make_cache_key

__all__ = [
    'TranslationError',
    'EpubError',
    'EpubStructureError',
    'FileReadError',
    'FileWriteError',
    'DocumentParseError',
    'LLMError',
    'LLMConnectionError',
    'LLMRateLimitError',
    'LLMAuthenticationError',
    'LLMResponseError',
    'OperationCancelledError',
    'RetryExhaustedError',
    'SegmentMismatchError',
    'ConfigurationError',
    'RetryManager',
    'RetryConfig',
    'RetryStrategy',
    'build_retry_configs',
    'cancellable_sleep',
    'RateLimiter',
    'ResponseCache',
    'make_cache_key',
]
