"""LLM client for boardbot.

Routes completion requests through OpenRouter's OpenAI-compatible
``/chat/completions`` endpoint. Only the intent parser talks to it, with
a single system prompt and the user's cleaned message.
"""

from __future__ import annotations

import ssl
import time
from dataclasses import dataclass
from typing import Any

import certifi
import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from boardbot.config import LLMPreset, LLMPresets, settings
from boardbot.core.errors import LLMError

logger = structlog.get_logger()

_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def _is_retryable_llm_error(exc: BaseException) -> bool:
    if isinstance(exc, LLMError) and exc.status_code in _RETRYABLE_STATUS_CODES:
        return True
    if isinstance(exc, httpx.ReadTimeout | httpx.ConnectTimeout | httpx.PoolTimeout):
        return True
    return False


@dataclass
class ChatConfig:
    """Configuration for a chat completion."""

    model: str = ""
    temperature: float = 0.7
    max_tokens: int = 1024
    system_prompt: str | None = None

    @classmethod
    def from_preset(cls, preset: LLMPreset, **kwargs: Any) -> ChatConfig:
        return cls(temperature=preset.temperature, max_tokens=preset.max_tokens, **kwargs)


class LLMClient:
    """HTTP client for chat completions via OpenRouter."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        api_key = api_key or settings.openrouter_api_key
        if not api_key:
            raise RuntimeError(
                "BOARDBOT_OPENROUTER_API_KEY not set. "
                "Add api_key to keys.json under openrouter."
            )
        self._model = model or settings.intent_model

        self._client = httpx.AsyncClient(
            base_url=base_url or settings.openrouter_base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "X-Title": "Boardbot",
            },
            verify=ssl.create_default_context(cafile=certifi.where()),
            timeout=httpx.Timeout(
                connect=5.0,
                read=settings.intent_timeout_s,
                write=5.0,
                pool=5.0,
            ),
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            transport=transport,
        )

        logger.info("llm_client_initialized", model=self._model)

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("llm_client_closed")

    async def chat_completion(
        self,
        messages: list[dict[str, Any]],
        config: ChatConfig | None = None,
    ) -> str:
        """Return the assistant message content for *messages*.

        Transient failures (429/5xx, connect/read timeouts) are retried
        up to three attempts; anything else surfaces as ``LLMError``.
        """
        config = config or ChatConfig()
        model = config.model or self._model

        final_messages: list[dict[str, Any]] = []
        if config.system_prompt:
            final_messages.append({"role": "system", "content": config.system_prompt})
        final_messages.extend(messages)

        payload: dict[str, Any] = {
            "model": model,
            "messages": final_messages,
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
        }

        @retry(
            retry=retry_if_exception(_is_retryable_llm_error),
            stop=stop_after_attempt(3),
            wait=wait_exponential(multiplier=1, min=1, max=4),
            reraise=True,
        )
        async def _do_request() -> str:
            try:
                t0 = time.monotonic()
                response = await self._client.post("/chat/completions", json=payload)
                llm_ms = round((time.monotonic() - t0) * 1000)
                response.raise_for_status()
                data = response.json()

                content = ""
                choices = data.get("choices", [])
                if choices:
                    content = (choices[0].get("message") or {}).get("content") or ""

                usage = data.get("usage") or {}
                logger.info(
                    "chat_completion_success",
                    model=model,
                    llm_ms=llm_ms,
                    content_length=len(content),
                    prompt_tokens=usage.get("prompt_tokens"),
                    completion_tokens=usage.get("completion_tokens"),
                )
                return content

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                logger.error(
                    "chat_completion_failed",
                    status_code=status,
                    response=e.response.text[:500],
                )
                raise LLMError(f"Chat completion failed: {status}", status_code=status)
            except (httpx.ReadTimeout, httpx.ConnectTimeout, httpx.PoolTimeout) as e:
                logger.warning("chat_completion_timeout", error=str(e))
                raise
            except LLMError:
                raise
            except Exception as e:
                logger.error("chat_completion_error", error=str(e))
                raise LLMError(f"Chat completion error: {e}")

        return await _do_request()

    async def complete(self, system_prompt: str, user_text: str) -> str:
        """Single-turn completion used by the intent parser."""
        config = ChatConfig.from_preset(LLMPresets.INTENT, system_prompt=system_prompt)
        return await self.chat_completion(
            [{"role": "user", "content": user_text}], config=config,
        )


_client: LLMClient | None = None


def get_llm_client() -> LLMClient | None:
    """Return the shared client, or None when no API key is configured."""
    global _client
    if _client is None and settings.openrouter_api_key:
        _client = LLMClient()
    return _client


async def close_llm_client() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None
