"""Anthropic Claude provider using anthropic SDK with native async."""

import asyncio
import logging
import os
import time
from collections.abc import AsyncIterator

import anthropic as anthropic_sdk

from config.config_loader import TierConfig
from llm_cards.models import ChatMessage
from llm_cards.providers.base import LLMProvider, ProviderError

logger = logging.getLogger(__name__)


def _split_system(messages: list[ChatMessage]) -> tuple[str, list[ChatMessage]]:
    """Lift system messages out of the list; the Messages API takes them separately."""
    system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
    turns = [m for m in messages if m["role"] != "system"]
    return system, turns


class AnthropicProvider(LLMProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, config: TierConfig, headers: dict[str, str] | None = None) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = anthropic_sdk.AsyncAnthropic(
            api_key=api_key,
            base_url=config.base_url,
            default_headers=headers,
        )

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    def _request(self, messages: list[ChatMessage], max_tokens: int | None) -> dict:
        system, turns = _split_system(messages)
        request = {
            "model": self._config.model,
            "max_tokens": max_tokens or self._config.max_tokens,
            "messages": turns,
        }
        if system:
            request["system"] = system
        return request

    async def stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        start = time.monotonic()
        fragments = 0
        try:
            async with self._client.messages.stream(
                **self._request(messages, None),
                timeout=self._config.timeout_sec,
            ) as stream:
                async for text in stream.text_stream:
                    if text:
                        fragments += 1
                        yield text
        except anthropic_sdk.APITimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        logger.info(
            "Anthropic %s stream: %.2fs, %d fragments",
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
        request = self._request(messages, max_tokens)
        if temperature is not None:
            request["temperature"] = temperature
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(**request),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        if not response.content:
            raise ProviderError(self._config.name, "Empty response content")

        text_blocks = [b.text for b in response.content if b.type == "text"]
        if not text_blocks:
            raise ProviderError(self._config.name, "No text blocks in response")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.input_tokens + response.usage.output_tokens

        logger.info(
            "Anthropic %s completion: %.2fs, %s tokens",
            self._config.model,
            time.monotonic() - start,
            token_count,
        )
        return "\n".join(text_blocks)
