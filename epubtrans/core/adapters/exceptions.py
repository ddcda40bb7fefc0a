"""
Errors raised across the bilingual translation pipeline.

The ``recoverable`` flag drives two decisions: the retry manager only retries
recoverable errors, and the orchestrator only aborts a run on
``EpubStructureError`` (a book it cannot enumerate). Everything else costs at
most one file or one batch.

    TranslationError
    ├── EpubError
    │   ├── EpubStructureError      container / OPF unusable (fatal)
    │   ├── FileReadError           one content file
    │   ├── FileWriteError          one content file
    │   └── DocumentParseError      one content file
    ├── LLMError
    │   ├── LLMConnectionError      network, timeout, 5xx
    │   ├── LLMRateLimitError       429 / overloaded, may carry retry_after
    │   ├── LLMAuthenticationError  bad or missing key
    │   └── LLMResponseError        empty or malformed answer, 4xx
    ├── OperationCancelledError
    ├── RetryExhaustedError
    ├── SegmentMismatchError
    └── ConfigurationError
"""

from typing import Optional, Dict, Any


class TranslationError(Exception):
    """Root of the hierarchy.

    Attributes:
        message: Human-readable error message
        context: Extra key/values shown in logs and the error report
        recoverable: Whether retrying the same operation may succeed
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None,
                 recoverable: bool = False):
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})
        self.recoverable = recoverable

    def __str__(self) -> str:
        if not self.context:
            return f"{self.__class__.__name__}: {self.message}"
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.__class__.__name__}: {self.message} ({details})"


# --- book and content files -------------------------------------------------

class EpubError(TranslationError):
    """Something is wrong with the book or one of its files.

    ``path`` is copied into the context when given.
    """

    recoverable_default = True

    def __init__(self, message: str, path: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        context = dict(context or {})
        if path is not None:
            context['path'] = path
        super().__init__(message, context, recoverable=self.recoverable_default)
        self.path = path


class EpubStructureError(EpubError):
    """No readable container.xml / package document, or a broken archive."""
    recoverable_default = False


class FileReadError(EpubError):
    pass


class FileWriteError(EpubError):
    pass


class DocumentParseError(EpubError):
    """Neither the XML nor the HTML parser accepted the document."""

    def __init__(self, message: str, original_error: Optional[Exception] = None,
                 content_preview: Optional[str] = None, path: Optional[str] = None):
        context = {}
        if original_error is not None:
            context['original_error'] = str(original_error)
        if content_preview:
            context['content_preview'] = content_preview[:200]
        super().__init__(message, path=path, context=context)
        self.original_error = original_error


# --- provider calls ---------------------------------------------------------

class LLMError(TranslationError):
    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None,
                 recoverable: bool = True):
        super().__init__(message, context, recoverable)


class LLMConnectionError(LLMError):
    """Provider unreachable, timed out or answering 5xx."""


class LLMRateLimitError(LLMError):
    """Provider throttling. Retried with a longer backoff than other errors."""

    def __init__(self, message: str, retry_after: Optional[float] = None,
                 context: Optional[Dict[str, Any]] = None):
        context = dict(context or {})
        if retry_after is not None:
            context['retry_after'] = retry_after
        super().__init__(message, context)
        self.retry_after = retry_after


class LLMAuthenticationError(LLMError):
    """Missing or rejected API key. Never retried."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context, recoverable=False)


class LLMResponseError(LLMError):
    """Empty or unparseable answer, or a 4xx other than auth and throttling."""


# --- control flow -----------------------------------------------------------

class OperationCancelledError(TranslationError):
    """The stop event fired while waiting for a slot, a retry or a response."""

    def __init__(self, message: str = "Operation cancelled",
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context, recoverable=False)


class RetryExhaustedError(TranslationError):
    """Every attempt failed. ``original_error`` is the last failure."""

    def __init__(self, message: str, original_error: Optional[Exception] = None,
                 attempts: Optional[int] = None):
        context: Dict[str, Any] = {}
        if original_error is not None:
            context['original_error'] = str(original_error)
            context['original_error_type'] = type(original_error).__name__
        if attempts is not None:
            context['attempts'] = attempts
        super().__init__(message, context, recoverable=False)
        self.original_error = original_error
        self.attempts = attempts


class SegmentMismatchError(TranslationError):
    """The response did not hold one segment per unit sent.

    Reported in the merge report rather than raised.
    """

    def __init__(self, message: str, expected: int, actual: int,
                 context: Optional[Dict[str, Any]] = None):
        context = dict(context or {})
        context.update(expected=expected, actual=actual)
        super().__init__(message, context, recoverable=True)
        self.expected = expected
        self.actual = actual


class ConfigurationError(TranslationError):
    """Invalid settings, unknown provider or preset, unreadable guidelines."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context, recoverable=False)
