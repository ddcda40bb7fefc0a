"""
LLM Provider Implementations

Providers:
    - anthropic: Anthropic Messages API
    - openai: OpenAI-compatible APIs
"""

from .anthropic import AnthropicProvider
from .openai import OpenAICompatibleProvider

__all__ = ['AnthropicProvider', 'OpenAICompatibleProvider']
