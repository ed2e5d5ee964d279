from typing import List, Dict, Any, Optional
import time

import anthropic
from anthropic import AsyncAnthropic

from .base import (
    LLMProvider, LLMMessage, LLMResponse,
    LLMProviderError, LLMProviderAPIError, LLMProviderAuthError, LLMProviderRateLimitError,
)


class AnthropicProvider(LLMProvider):
    """Anthropic Claude completion provider"""

    def __init__(self, api_key: str, model: Optional[str] = None, **kwargs):
        if not model:
            raise ValueError("AnthropicProvider requires a model to be specified")

        super().__init__(api_key, model, **kwargs)

    def _setup_client(self, **kwargs) -> None:
        """Initialize the Anthropic client"""
        timeout = kwargs.get("timeout")
        try:
            if timeout is not None:
                self.client = AsyncAnthropic(api_key=self.api_key, timeout=timeout, max_retries=0)
            else:
                self.client = AsyncAnthropic(api_key=self.api_key)
        except Exception as e:
            self.logger.error(f"Failed to initialize Anthropic client: {e}")
            raise LLMProviderAuthError(f"Failed to initialize Anthropic client: {e}")

    async def generate_response(
        self,
        messages: List[LLMMessage],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        **kwargs
    ) -> LLMResponse:
        """Generate a response from Claude"""
        start_time = time.time()

        system_message = None
        anthropic_messages = []
        for msg in messages:
            if msg.role == "system":
                system_message = msg.content
            else:
                anthropic_messages.append({"role": msg.role, "content": msg.content})

        request_params: Dict[str, Any] = {
            "model": self.model,
            "messages": anthropic_messages,
            "max_tokens": max_tokens or 512,
        }
        if system_message:
            request_params["system"] = system_message
        if temperature is not None:
            request_params["temperature"] = temperature
        request_params.update(kwargs)

        try:
            response = await self.client.messages.create(**request_params)
        except anthropic.AuthenticationError as e:
            self.logger.error(f"Anthropic authentication failed: {e}")
            raise LLMProviderAuthError(f"Authentication failed: {e}") from e
        except anthropic.RateLimitError as e:
            self.logger.warning(f"Anthropic rate limit: {e}")
            raise LLMProviderRateLimitError(f"Rate limit exceeded: {e}") from e
        except anthropic.APIError as e:
            self.logger.error(f"Anthropic API error: {e}")
            raise LLMProviderAPIError(f"API error: {e}") from e

        content = "".join(
            block.text for block in (response.content or []) if getattr(block, "type", None) == "text"
        )
        if not content and not response.content:
            raise LLMProviderError("Anthropic response contained no content blocks")

        usage = getattr(response, "usage", None)
        return LLMResponse(
            content=content,
            tokens_used=usage.output_tokens if usage is not None else None,
            model=self.model,
            finish_reason=getattr(response, "stop_reason", None),
            response_time_ms=self._measure_time(start_time),
        )

    async def close(self) -> None:
        await self.client.close()
