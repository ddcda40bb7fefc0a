"""
OpenAI-compatible provider implementation.

Works with the OpenAI chat completions API and compatible endpoints
(vLLM, LM Studio, llama.cpp server...). Token counting is done locally
with tiktoken since these endpoints expose no counting route.
"""

from typing import Optional

import httpx
import tiktoken

from ..base import LLMProvider, LLMResponse
from epubtrans.config import (
    OPENAI_API_ENDPOINT,
    MAX_OUTPUT_TOKENS,
    TEMPERATURE,
    REQUEST_TIMEOUT,
)
from epubtrans.core.adapters.exceptions import LLMResponseError


class OpenAICompatibleProvider(LLMProvider):
    """OpenAI-compatible API provider"""

    name = "openai"
    local_token_count = True

    def __init__(self, model: str, api_key: Optional[str] = None,
                 api_endpoint: str = OPENAI_API_ENDPOINT,
                 max_tokens: int = MAX_OUTPUT_TOKENS,
                 temperature: float = TEMPERATURE,
                 timeout: float = REQUEST_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(model, timeout=timeout, transport=transport)
        self.api_endpoint = api_endpoint
        self.api_key = api_key
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._encoding = None

    def _get_encoding(self):
        if self._encoding is None:
            try:
                self._encoding = tiktoken.encoding_for_model(self.model)
            except KeyError:
                self._encoding = tiktoken.get_encoding("cl100k_base")
        return self._encoding

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> LLMResponse:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "stream": False,
        }

        data = await self._post_json(self.api_endpoint, payload, headers)

        choices = data.get("choices") or [{}]
        text = (choices[0].get("message") or {}).get("content") or ""
        if not text:
            raise LLMResponseError("OpenAI-compatible API returned an empty response",
                                   {'finish_reason': choices[0].get("finish_reason")})

        usage = data.get("usage", {})
        return LLMResponse(
            content=text,
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
        )

    async def count_tokens(self, text: str) -> int:
        return len(self._get_encoding().encode(text))
