"""
Retry policy for provider calls: exponential backoff with jitter.

- Per error type settings (rate limits back off longer, auth errors never retry)
- Waits end early with OperationCancelledError when the stop event fires
- A provider Retry-After longer than the computed delay wins
"""

import asyncio
import random
from typing import Optional, Callable, Any, Dict, Type, Awaitable
from dataclasses import dataclass
from enum import Enum

from epubtrans.config import (
    MAX_TRANSLATION_ATTEMPTS,
    RETRY_BASE_DELAY_SECONDS,
    RATE_LIMIT_BACKOFF_MULTIPLIER,
)
from .exceptions import (
    TranslationError,
    LLMError,
    LLMRateLimitError,
    LLMAuthenticationError,
    OperationCancelledError,
    RetryExhaustedError,
)


class RetryStrategy(Enum):
    """Retry strategies for different error types."""
    EXPONENTIAL = "exponential"  # base * 2^(attempt-1) + jitter
    NONE = "none"  # Don't retry


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (first call included)
        initial_delay: Base delay in seconds
        max_delay: Maximum backoff before jitter, in seconds
        backoff_factor: Multiplier for exponential backoff
        jitter: Random jitter added on top, as a fraction of initial_delay
        strategy: Retry strategy to use
    """
    max_attempts: int = MAX_TRANSLATION_ATTEMPTS
    initial_delay: float = RETRY_BASE_DELAY_SECONDS
    max_delay: float = 300.0
    backoff_factor: float = 2.0
    jitter: float = 1.0
    strategy: RetryStrategy = RetryStrategy.EXPONENTIAL


def build_retry_configs(
    max_attempts: int = MAX_TRANSLATION_ATTEMPTS,
    base_delay: float = RETRY_BASE_DELAY_SECONDS,
    rate_limit_multiplier: float = RATE_LIMIT_BACKOFF_MULTIPLIER,
) -> Dict[Type[Exception], RetryConfig]:
    """Per error type retry configuration used by the translation client."""
    return {
        # Rate limit - same attempts, much longer base delay
        LLMRateLimitError: RetryConfig(
            max_attempts=max_attempts,
            initial_delay=base_delay * rate_limit_multiplier,
        ),
        # Authentication - don't retry
        LLMAuthenticationError: RetryConfig(
            max_attempts=1,
            strategy=RetryStrategy.NONE
        ),
        # Generic LLM errors - standard retry
        LLMError: RetryConfig(
            max_attempts=max_attempts,
            initial_delay=base_delay,
        ),
    }


async def cancellable_sleep(delay: float, stop_event: Optional[asyncio.Event] = None) -> None:
    """Sleep for ``delay`` seconds, returning early with an error if ``stop_event`` is set."""
    if stop_event is None:
        await asyncio.sleep(delay)
        return
    if stop_event.is_set():
        raise OperationCancelledError("Cancelled before wait")
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    raise OperationCancelledError("Cancelled while waiting")


class RetryManager:
    """Manages retry logic with exponential backoff."""

    def __init__(
        self,
        default_config: Optional[RetryConfig] = None,
        custom_configs: Optional[Dict[Type[Exception], RetryConfig]] = None,
        log_callback: Optional[Callable[[str, str], None]] = None,
        sleep: Optional[Callable[[float, Optional[asyncio.Event]], Awaitable[None]]] = None,
    ):
        """
        Args:
            default_config: Retry configuration for errors without a specific entry
            custom_configs: Configs for specific error types (checked by isinstance, in order)
            log_callback: Callback for logging (log_type, message)
            sleep: Awaitable used to wait between attempts (defaults to cancellable_sleep)
        """
        self.default_config = default_config or RetryConfig()
        self.custom_configs = custom_configs if custom_configs is not None else build_retry_configs()
        self.log_callback = log_callback
        self._sleep = sleep or cancellable_sleep

    def _get_config(self, error: Exception) -> RetryConfig:
        """Get retry configuration for an error type."""
        error_type = type(error)

        if error_type in self.custom_configs:
            return self.custom_configs[error_type]

        for exc_type, config in self.custom_configs.items():
            if isinstance(error, exc_type):
                return config

        return self.default_config

    def calculate_delay(self, attempt: int, config: RetryConfig) -> float:
        """Calculate delay after the given (1-based) failed attempt."""
        if config.strategy == RetryStrategy.NONE:
            return 0.0

        delay = config.initial_delay * (config.backoff_factor ** (attempt - 1))
        delay = min(delay, config.max_delay)

        if config.jitter > 0:
            delay += config.initial_delay * config.jitter * random.random()

        return delay

    def _log(self, log_type: str, message: str):
        if self.log_callback:
            self.log_callback(log_type, message)

    async def execute_with_retry(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        operation_id: Optional[str] = None,
        stop_event: Optional[asyncio.Event] = None,
        **kwargs
    ) -> Any:
        """Execute an async function with retry logic.

        Args:
            func: Async function to execute
            *args: Positional arguments for func
            operation_id: Identifier used in log lines
            stop_event: Cancellation event; checked before each attempt and while waiting
            **kwargs: Keyword arguments for func

        Returns:
            Result of func

        Raises:
            RetryExhaustedError: If all attempts failed
            OperationCancelledError: If stop_event was set
            TranslationError: If the error is not recoverable
        """
        attempt = 0
        op_id = operation_id or getattr(func, '__name__', 'operation')

        while True:
            attempt += 1

            if stop_event is not None and stop_event.is_set():
                raise OperationCancelledError(f"{op_id} cancelled before attempt {attempt}")

            try:
                result = await func(*args, **kwargs)
                if attempt > 1:
                    self._log("info", f"Operation {op_id} succeeded after {attempt} attempts")
                return result

            except OperationCancelledError:
                raise

            except Exception as error:
                config = self._get_config(error)

                if isinstance(error, TranslationError) and not error.recoverable:
                    self._log("error", f"Non-recoverable error in {op_id}: {error}")
                    raise

                if config.strategy == RetryStrategy.NONE or attempt >= config.max_attempts:
                    self._log("error", f"Retry exhausted for {op_id} after {attempt} attempts: {error}")
                    raise RetryExhaustedError(
                        f"Maximum retry attempts ({config.max_attempts}) exceeded",
                        original_error=error,
                        attempts=attempt
                    ) from error

                delay = self.calculate_delay(attempt, config)
                # Honor the provider's Retry-After when it asks for longer
                retry_after = getattr(error, 'retry_after', None)
                if retry_after and retry_after > delay:
                    delay = min(float(retry_after), config.max_delay)
                self._log(
                    "warning",
                    f"Attempt {attempt}/{config.max_attempts} failed for {op_id}: "
                    f"{type(error).__name__}: {error}. Retrying in {delay:.2f}s..."
                )

                if delay > 0:
                    await self._sleep(delay, stop_event)
