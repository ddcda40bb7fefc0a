"""
Anthropic Messages API provider.
"""

from typing import Optional

import httpx

from ..base import LLMProvider, LLMResponse
from epubtrans.config import (
    ANTHROPIC_API_ENDPOINT,
    ANTHROPIC_VERSION,
    MAX_OUTPUT_TOKENS,
    TEMPERATURE,
    REQUEST_TIMEOUT,
)
from epubtrans.core.adapters.exceptions import LLMAuthenticationError, LLMResponseError


class AnthropicProvider(LLMProvider):
    """Talks to ``{endpoint}/messages`` and ``{endpoint}/messages/count_tokens``."""

    name = "anthropic"

    def __init__(self, api_key: str, model: str,
                 api_endpoint: str = ANTHROPIC_API_ENDPOINT,
                 max_tokens: int = MAX_OUTPUT_TOKENS,
                 temperature: float = TEMPERATURE,
                 timeout: float = REQUEST_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(model, timeout=timeout, transport=transport)
        if not api_key:
            raise LLMAuthenticationError("Anthropic API key is not set (ANTHROPIC_API_KEY)")
        self.api_key = api_key
        self.api_endpoint = api_endpoint.rstrip('/')
        self.max_tokens = max_tokens
        self.temperature = temperature

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> LLMResponse:
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            # The system prompt is identical for every batch of a run, so let the API cache it
            payload["system"] = [{
                "type": "text",
                "text": system_prompt,
                "cache_control": {"type": "ephemeral"},
            }]

        data = await self._post_json(f"{self.api_endpoint}/messages", payload, self._headers())

        blocks = data.get("content") or []
        text = "".join(
            block.get("text", "") for block in blocks
            if isinstance(block, dict) and block.get("type", "text") == "text"
        )
        if not text:
            raise LLMResponseError("Anthropic returned an empty response",
                                   {'stop_reason': data.get("stop_reason")})

        usage = data.get("usage", {})
        return LLMResponse(
            content=text,
            prompt_tokens=usage.get("input_tokens", 0),
            completion_tokens=usage.get("output_tokens", 0),
        )

    async def count_tokens(self, text: str) -> int:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": text}],
        }
        data = await self._post_json(f"{self.api_endpoint}/messages/count_tokens", payload, self._headers())
        if "input_tokens" not in data:
            raise LLMResponseError("count_tokens response has no input_tokens")
        return int(data["input_tokens"])
