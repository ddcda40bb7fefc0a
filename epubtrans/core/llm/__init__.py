"""
LLM layer: providers, prompts, response parsing and the translation client.
"""

from typing import Optional

import httpx

from epubtrans.config import TranslationConfig
from epubtrans.core.adapters.exceptions import ConfigurationError
from .base import LLMProvider, LLMResponse
from .providers import AnthropicProvider, OpenAICompatibleProvider
from .translation_client import TranslationClient
from .token_estimator import TokenEstimator
from .usage import UsageTracker, UsageMetadata
from .extraction import split_segments, wrap_segments, remove_think_blocks
from .prompts import build_system_prompt, PROMPT_PRESETS


def create_llm_provider(config: TranslationConfig,
                        transport: Optional[httpx.AsyncBaseTransport] = None) -> LLMProvider:
    """Factory function to create the provider selected by ``config.llm_provider``"""
    provider_type = config.llm_provider.lower()

    if provider_type == "anthropic":
        return AnthropicProvider(
            api_key=config.anthropic_api_key,
            model=config.model,
            api_endpoint=config.anthropic_api_endpoint,
            max_tokens=config.max_output_tokens,
            temperature=config.temperature,
            timeout=config.timeout,
            transport=transport,
        )
    elif provider_type == "openai":
        return OpenAICompatibleProvider(
            model=config.model,
            api_key=config.openai_api_key,
            api_endpoint=config.openai_api_endpoint,
            max_tokens=config.max_output_tokens,
            temperature=config.temperature,
            timeout=config.timeout,
            transport=transport,
        )
    raise ConfigurationError(f"Unknown provider type: {config.llm_provider}")


__all__ = [
    'LLMProvider',
    'LLMResponse',
    'AnthropicProvider',
    'OpenAICompatibleProvider',
    'TranslationClient',
    'TokenEstimator',
    'UsageTracker',
    'UsageMetadata',
    'split_segments',
    'wrap_segments',
    'remove_think_blocks',
    'build_system_prompt',
    'PROMPT_PRESETS',
    'create_llm_provider',
]
