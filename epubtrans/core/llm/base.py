"""
Base classes and data structures for LLM providers.

This module defines the abstract base class that all LLM providers must implement,
as well as common data structures like LLMResponse. Transport failures are
mapped here to the typed errors of ``epubtrans.core.adapters.exceptions`` so
that no raw httpx exception leaves a provider.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from datetime import datetime, timezone
from typing import Optional, Dict, Any
import json
import logging

import httpx

from epubtrans.config import REQUEST_TIMEOUT
from epubtrans.core.adapters.exceptions import (
    LLMError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMAuthenticationError,
    LLMResponseError,
)

logger = logging.getLogger(__name__)

# Provider error codes that mean "slow down" even without a 429 status
_RATE_LIMIT_MARKERS = ("rate_limit", "overloaded", "too many requests")


@dataclass
class LLMResponse:
    """Response from LLM with token usage information"""
    content: str
    prompt_tokens: int = 0  # Number of tokens in the prompt
    completion_tokens: int = 0  # Number of tokens in the response


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header (seconds or HTTP date) into seconds."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def classify_http_error(response: httpx.Response) -> LLMError:
    """Map a non-2xx provider response to a typed error."""
    status = response.status_code
    body = response.text[:500] if response.text else ""
    context = {'status': status}
    lowered = body.lower()

    if status == 429 or status == 529 or any(marker in lowered for marker in _RATE_LIMIT_MARKERS):
        return LLMRateLimitError(
            f"Provider rate limit (HTTP {status}): {body}",
            retry_after=parse_retry_after(response.headers.get('retry-after')),
            context=context
        )
    if status in (401, 403):
        return LLMAuthenticationError(f"Authentication failed (HTTP {status}): {body}", context)
    if status >= 500:
        return LLMConnectionError(f"Provider unavailable (HTTP {status}): {body}", context)
    return LLMResponseError(f"Provider rejected request (HTTP {status}): {body}", context)


class LLMProvider(ABC):
    """Abstract base class for LLM providers"""

    name = "base"
    # True when count_tokens runs locally and needs no rate limiter token
    local_token_count = False

    def __init__(self, model: str, timeout: float = REQUEST_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the LLM provider.

        Args:
            model: Model name/identifier
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.model = model
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create a persistent HTTP client with connection pooling"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport
            )
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _post_json(self, url: str, payload: Dict[str, Any],
                         headers: Dict[str, str]) -> Dict[str, Any]:
        """POST a JSON payload and return the decoded JSON body.

        Raises:
            LLMConnectionError: Timeout, network failure or 5xx
            LLMRateLimitError: Throttling signalled by the provider
            LLMAuthenticationError: Missing or rejected credentials
            LLMResponseError: Other 4xx or an undecodable body
        """
        client = await self._get_client()
        try:
            response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise LLMConnectionError(f"{self.name} request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise LLMConnectionError(f"{self.name} request failed: {e}") from e

        if response.status_code >= 400:
            error = classify_http_error(response)
            logger.debug("%s HTTP %s: %s", self.name, response.status_code, error)
            raise error

        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise LLMResponseError(
                f"{self.name} returned invalid JSON",
                {'body': response.text[:200]}
            ) from e

    @abstractmethod
    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> LLMResponse:
        """
        Generate text from prompt.

        Args:
            prompt: The user prompt (content to process)
            system_prompt: Optional system prompt (role/instructions)

        Returns:
            LLMResponse object with content and token usage info

        Raises:
            LLMError: On any provider failure
        """
        pass

    @abstractmethod
    async def count_tokens(self, text: str) -> int:
        """Count prompt tokens for ``text`` as the provider would bill them."""
        pass
