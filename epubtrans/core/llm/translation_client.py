"""
Translation client: the single entry point the pipeline uses to reach a provider.

Built once per run by the orchestrator and shared by every worker. It owns no
global state: the provider, rate limiter, retry manager, cache and usage
tracker are all injected.

    translate()    -> Ok(text) | Err(TranslationError)
    count_tokens() -> Ok(int)  | Err(TranslationError)
"""

import asyncio
import time
from typing import Optional

from epubtrans.config import TranslationConfig
from epubtrans.core.adapters import (
    TranslationError,
    OperationCancelledError,
    RateLimiter,
    ResponseCache,
    RetryConfig,
    RetryManager,
    build_retry_configs,
    make_cache_key,
)
from epubtrans.core.result import Ok, Err, Result
from epubtrans.utils.unified_logger import UnifiedLogger, LogType
from .base import LLMProvider
from .prompts import build_system_prompt
from .usage import UsageTracker


class TranslationClient:
    """Rate limited, retrying, caching wrapper around an ``LLMProvider``."""

    def __init__(self,
                 provider: LLMProvider,
                 rate_limiter: RateLimiter,
                 retry_manager: RetryManager,
                 cache: Optional[ResponseCache] = None,
                 usage: Optional[UsageTracker] = None,
                 stop_event: Optional[asyncio.Event] = None,
                 guidelines: str = '',
                 logger: Optional[UnifiedLogger] = None):
        self.provider = provider
        self.rate_limiter = rate_limiter
        self.retry_manager = retry_manager
        self.cache = cache if cache is not None else ResponseCache()
        self.usage = usage if usage is not None else UsageTracker()
        self.stop_event = stop_event
        self.guidelines = guidelines
        self.logger = logger
        self.request_count = 0

    @classmethod
    def from_config(cls, config: TranslationConfig, provider: LLMProvider,
                    stop_event: Optional[asyncio.Event] = None,
                    logger: Optional[UnifiedLogger] = None) -> 'TranslationClient':
        """Wire the default collaborators from a ``TranslationConfig``."""
        retry_manager = RetryManager(
            default_config=RetryConfig(max_attempts=config.max_attempts,
                                       initial_delay=config.retry_base_delay),
            custom_configs=build_retry_configs(
                max_attempts=config.max_attempts,
                base_delay=config.retry_base_delay,
                rate_limit_multiplier=config.rate_limit_backoff_multiplier,
            ),
            log_callback=logger.create_log_callback() if logger else None,
        )
        return cls(
            provider=provider,
            rate_limiter=RateLimiter.per_minute(config.requests_per_minute, config.burst),
            retry_manager=retry_manager,
            cache=ResponseCache(ttl=config.cache_ttl),
            usage=UsageTracker(config.state_dir),
            stop_event=stop_event,
            guidelines=config.guidelines or config.system_prompt,
            logger=logger,
        )

    def _cancelled(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    async def translate(self, prompt_context: str, content: str, source: str,
                        target: str, book_title: str = '') -> Result:
        """
        Translate ``content`` (segment wrapped HTML) from ``source`` to ``target``.

        Args:
            prompt_context: Prompt preset name (general, technical, psychology)
            content: User message content
            source: Source language name
            target: Target language name
            book_title: Book title given to the model as context

        Returns:
            Ok(translated text) or Err(TranslationError)
        """
        if self._cancelled():
            return Err(OperationCancelledError("Translation cancelled"))

        try:
            system_prompt = build_system_prompt(source, target, book_title,
                                                prompt_context, self.guidelines)
        except TranslationError as e:
            return Err(e)

        cache_key = make_cache_key(f"{prompt_context}{self.guidelines}", content, source, target)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return Ok(cached)

        async def attempt():
            await self.rate_limiter.wait(self.stop_event)
            self.request_count += 1
            if self.logger:
                self.logger.debug("LLM request", LogType.LLM_REQUEST, {
                    'model': self.provider.model,
                    'system_prompt': system_prompt,
                    'user_prompt': content,
                })
            started = time.monotonic()
            try:
                response = await self.provider.generate(content, system_prompt=system_prompt)
            except TranslationError as e:
                await self.usage.audit(self.provider.model, system_prompt, content, error=str(e))
                raise
            await self.usage.audit(self.provider.model, system_prompt, content,
                                   response=response.content)
            if self.logger:
                self.logger.debug("LLM response", LogType.LLM_RESPONSE, {
                    'response': response.content,
                    'execution_time': time.monotonic() - started,
                })
            return response

        try:
            response = await self.retry_manager.execute_with_retry(
                attempt,
                operation_id="translate",
                stop_event=self.stop_event,
            )
        except TranslationError as e:
            return Err(e)

        self.cache.set(cache_key, response.content)
        await self.usage.record_success(self.provider.model, content,
                                        response.prompt_tokens, response.completion_tokens)
        return Ok(response.content)

    async def count_tokens(self, content: str) -> Result:
        """Real token count of ``content`` from the provider."""
        if self._cancelled():
            return Err(OperationCancelledError("Token count cancelled"))

        async def attempt():
            if not self.provider.local_token_count:
                await self.rate_limiter.wait(self.stop_event)
            return await self.provider.count_tokens(content)

        try:
            count = await self.retry_manager.execute_with_retry(
                attempt,
                operation_id="count_tokens",
                stop_event=self.stop_event,
            )
        except TranslationError as e:
            return Err(e)
        return Ok(count)

    async def close(self):
        await self.provider.close()
