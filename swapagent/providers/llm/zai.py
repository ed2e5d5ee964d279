"""Z AI chat completions over httpx. Only plain text completion is used here."""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import httpx

from .base import (
    LLMMessage,
    LLMProvider,
    LLMProviderAPIError,
    LLMProviderAuthError,
    LLMProviderError,
    LLMProviderRateLimitError,
    LLMResponse,
)

ZAI_BASE_URL = "https://api.z.ai"
CHAT_COMPLETIONS_PATH = "/api/paas/v4/chat/completions"


def _answer_text(content: Any) -> str:
    # GLM models may return content as a list of text parts
    if isinstance(content, list):
        return "".join(
            part if isinstance(part, str) else str(part.get("text") or "")
            for part in content
            if isinstance(part, (str, dict))
        )
    return "" if content is None else str(content)


class ZAIProvider(LLMProvider):
    def __init__(
        self,
        api_key: str,
        model: str = "glm-4.6",
        *,
        base_url: str | None = None,
        timeout: float = 40.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or ZAI_BASE_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport
        super().__init__(api_key, model)

    def _setup_client(self, **kwargs: Any) -> None:
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

    async def generate_response(
        self,
        messages: List[LLMMessage],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        start_time = time.time()
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            # Intent parsing wants the bare answer, not a reasoning trace
            "thinking": {"type": "disabled"},
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if temperature is not None:
            payload["temperature"] = temperature

        try:
            response = await self._client.post(CHAT_COMPLETIONS_PATH, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status in (401, 403):
                raise LLMProviderAuthError("Z AI rejected the API key") from exc
            if status == 429:
                raise LLMProviderRateLimitError("Z AI rate limit exceeded") from exc
            raise LLMProviderAPIError(f"Z AI returned HTTP {status}") from exc
        except httpx.RequestError as exc:
            raise LLMProviderAPIError(f"Z AI request error: {exc}") from exc
        except ValueError as exc:
            raise LLMProviderAPIError("Z AI returned invalid JSON") from exc

        choices = data.get("choices") or []
        if not choices:
            raise LLMProviderError("Z AI response has no choices")
        choice = choices[0]

        return LLMResponse(
            content=_answer_text((choice.get("message") or {}).get("content")),
            model=self.model,
            tokens_used=(data.get("usage") or {}).get("total_tokens"),
            finish_reason=choice.get("finish_reason"),
            response_time_ms=self._measure_time(start_time),
        )

    async def close(self) -> None:
        await self._client.aclose()
