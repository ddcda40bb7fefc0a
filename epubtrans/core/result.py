"""
Ok / Err values returned by the translation client.

A failed batch is an expected outcome of a run, not a crash, so
``TranslationClient.translate`` hands back ``Err(TranslationError)`` and the
pipeline decides whether to skip the batch, stop the file, or stop the run.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar('T')
E = TypeVar('E')


@dataclass
class Ok(Generic[T]):
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value


@dataclass
class Err(Generic[E]):
    """Failed call. ``error`` is usually a ``TranslationError``."""
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self):
        """Re-raise the error when it is an exception, else raise ValueError."""
        if isinstance(self.error, BaseException):
            raise self.error
        raise ValueError(f"unwrap() on Err: {self.error!r}")

    def unwrap_or(self, default):
        return default


Result = Union[Ok[T], Err[E]]
