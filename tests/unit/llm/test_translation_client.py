"""Unit tests for the translation client."""

import asyncio

import pytest

from conftest import FakeProvider
from epubtrans.core.adapters import (
    ConfigurationError,
    LLMAuthenticationError,
    LLMRateLimitError,
    OperationCancelledError,
    RateLimiter,
    ResponseCache,
    RetryConfig,
    RetryExhaustedError,
    RetryManager,
    build_retry_configs,
)
from epubtrans.core.llm.translation_client import TranslationClient
from epubtrans.core.llm.usage import UsageTracker

CONTENT = "<SEGMENT_0>Hello</SEGMENT_0>\n<SEGMENT_1>World</SEGMENT_1>"


class SleepRecorder:
    """Stands in for the retry wait and records the requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay, stop_event=None):
        self.delays.append(delay)


def make_client(provider, sleep=None, stop_event=None, usage=None, cache=None, guidelines=''):
    retry_manager = RetryManager(
        default_config=RetryConfig(max_attempts=3, initial_delay=1.0),
        custom_configs=build_retry_configs(max_attempts=3, base_delay=1.0, rate_limit_multiplier=10),
        sleep=sleep or SleepRecorder(),
    )
    return TranslationClient(
        provider=provider,
        rate_limiter=RateLimiter(rate=1000, burst=100),
        retry_manager=retry_manager,
        cache=cache,
        usage=usage,
        stop_event=stop_event,
        guidelines=guidelines,
    )


class TestTranslate:
    """translate() returns Ok(text) or Err(error), never raises provider errors."""

    @pytest.mark.asyncio
    async def test_success(self):
        provider = FakeProvider()
        client = make_client(provider)

        result = await client.translate("general", CONTENT, "English", "French", "My Book")

        assert result.is_ok()
        assert result.value == "<SEGMENT_0>FR: Hello</SEGMENT_0>\n<SEGMENT_1>FR: World</SEGMENT_1>"
        assert provider.calls == [CONTENT]
        assert "Translate from English to French" in provider.system_prompts[0]
        assert client.request_count == 1

    @pytest.mark.asyncio
    async def test_rate_limited_twice_then_success(self):
        provider = FakeProvider(errors=[LLMRateLimitError("slow down"), LLMRateLimitError("slow down")])
        sleep = SleepRecorder()
        client = make_client(provider, sleep=sleep)

        result = await client.translate("general", CONTENT, "English", "French")

        assert result.is_ok()
        assert len(provider.calls) == 3
        assert len(sleep.delays) == 2
        assert sleep.delays[1] > sleep.delays[0]
        # rate limits back off from base * multiplier
        assert sleep.delays[0] >= 10.0

    @pytest.mark.asyncio
    async def test_retry_after_honored(self):
        provider = FakeProvider(errors=[LLMRateLimitError("slow down", retry_after=120)])
        sleep = SleepRecorder()
        client = make_client(provider, sleep=sleep)

        result = await client.translate("general", CONTENT, "English", "French")

        assert result.is_ok()
        assert sleep.delays == [120.0]

    @pytest.mark.asyncio
    async def test_exhausted(self):
        provider = FakeProvider(errors=[LLMRateLimitError("slow down")] * 3)
        client = make_client(provider)

        result = await client.translate("general", CONTENT, "English", "French")

        assert result.is_err()
        assert isinstance(result.error, RetryExhaustedError)
        assert isinstance(result.error.original_error, LLMRateLimitError)
        assert len(provider.calls) == 3

    @pytest.mark.asyncio
    async def test_authentication_not_retried(self):
        provider = FakeProvider(errors=[LLMAuthenticationError("bad key")])
        client = make_client(provider)

        result = await client.translate("general", CONTENT, "English", "French")

        assert isinstance(result.error, LLMAuthenticationError)
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_cancelled(self):
        stop_event = asyncio.Event()
        stop_event.set()
        provider = FakeProvider()
        client = make_client(provider, stop_event=stop_event)

        result = await client.translate("general", CONTENT, "English", "French")

        assert isinstance(result.error, OperationCancelledError)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_unknown_preset(self):
        client = make_client(FakeProvider())
        result = await client.translate("poetry", CONTENT, "English", "French")
        assert isinstance(result.error, ConfigurationError)

    @pytest.mark.asyncio
    async def test_cache_hit_skips_provider(self):
        provider = FakeProvider()
        client = make_client(provider, cache=ResponseCache(ttl=60))

        first = await client.translate("general", CONTENT, "English", "French")
        second = await client.translate("general", CONTENT, "English", "French")
        other_target = await client.translate("general", CONTENT, "English", "German")

        assert first.value == second.value
        assert len(provider.calls) == 2
        assert other_target.is_ok()

    @pytest.mark.asyncio
    async def test_guidelines_replace_preset(self):
        provider = FakeProvider()
        client = make_client(provider, guidelines="Translate {source} into casual {target}.")

        await client.translate("general", CONTENT, "English", "French")

        assert provider.system_prompts[0].startswith("Translate English into casual French.")

    @pytest.mark.asyncio
    async def test_usage_recorded(self, tmp_path):
        usage = UsageTracker(str(tmp_path))
        client = make_client(FakeProvider(), usage=usage)

        await client.translate("general", CONTENT, "English", "French")

        assert usage.metadata.total_calls == 1
        assert usage.metadata.model_usage == {"fake-model": 1}
        assert usage.metadata.input_tokens == 10
        assert usage.metadata.output_tokens == 12
        assert usage.audit_log_path.exists()


class TestCountTokens:
    """count_tokens() wraps the provider count in a Result."""

    @pytest.mark.asyncio
    async def test_count(self):
        client = make_client(FakeProvider())
        result = await client.count_tokens("one two three")
        assert result.value == 6

    @pytest.mark.asyncio
    async def test_count_cancelled(self):
        stop_event = asyncio.Event()
        stop_event.set()
        client = make_client(FakeProvider(), stop_event=stop_event)
        result = await client.count_tokens("one two")
        assert isinstance(result.error, OperationCancelledError)
