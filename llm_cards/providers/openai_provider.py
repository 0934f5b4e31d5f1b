"""OpenAI-compatible provider (OpenRouter by default) using openai SDK with native async."""

import asyncio
import logging
import os
import time
from collections.abc import AsyncIterator

from openai import AsyncOpenAI

from config.config_loader import TierConfig
from llm_cards.models import ChatMessage
from llm_cards.providers.base import LLMProvider, ProviderError

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """Chat completions via any OpenAI-compatible endpoint."""

    def __init__(self, config: TierConfig, headers: dict[str, str] | None = None) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=config.base_url,
            default_headers=headers,
        )

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=messages,
                    max_tokens=self._config.max_tokens,
                    stream=True,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        fragments = 0
        try:
            async for chunk in response:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    fragments += 1
                    yield content
        except Exception as exc:
            raise ProviderError(self._config.name, f"Stream interrupted: {exc}") from exc
        finally:
            await response.close()

        logger.info(
            "OpenAI %s stream: %.2fs, %d fragments",
            self._config.model,
            time.monotonic() - start,
            fragments,
        )

    async def complete(
        self,
        messages: list[ChatMessage],
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        start = time.monotonic()
        kwargs = {}
        if temperature is not None:
            kwargs["temperature"] = temperature
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=messages,
                    max_tokens=max_tokens or self._config.max_tokens,
                    **kwargs,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self._config.name, "Empty response content")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        logger.info(
            "OpenAI %s completion: %.2fs, %s tokens",
            self._config.model,
            time.monotonic() - start,
            token_count,
        )
        return choice.message.content
