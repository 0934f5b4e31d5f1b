"""Shared pytest fixtures."""

import asyncio
from collections.abc import AsyncIterator
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AppConfig, DefaultsConfig, GatewayConfig, PromptsConfig, TierConfig
from llm_cards.gateway import LLMGateway
from llm_cards.models import ChatMessage
from llm_cards.providers.base import LLMProvider
from llm_cards.session import CardSession


@pytest.fixture
def sample_tier_config() -> TierConfig:
    return TierConfig(
        name="fast",
        sdk="openai",
        model="test-fast-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url="https://llm.example.test/v1",
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        system="You are a terse terminal assistant.",
        badges="Suggest 3 follow-up topics as a comma-separated list.",
        badges_request='Original question: "{question}"\n\nAI response: "{response}"',
        reject="I don't like this reasoning, approach the problem in another way",
        accept="I like this approach. Go deeper.",
        focus="{question}\n\nPlease focus specifically on: {badge}",
        structured="Reply with a JSON array of {title, content} objects.",
    )


@pytest.fixture
def sample_defaults_config() -> DefaultsConfig:
    return DefaultsConfig(badge_mode="llm", prefetch_variants=0)


@pytest.fixture
def sample_app_config(
    sample_prompts_config: PromptsConfig,
    sample_defaults_config: DefaultsConfig,
) -> AppConfig:
    gateway = GatewayConfig(
        api_key_env="TEST_API_KEY",
        base_url="https://llm.example.test/v1",
        app_url="http://localhost:3000",
        app_title="LLM Cards",
    )
    tiers = {
        name: TierConfig(
            name=name,
            sdk="openai",
            model=f"test-{name}-1",
            api_key_env="TEST_API_KEY",
            timeout_sec=30,
            max_tokens=1024,
            base_url=gateway.base_url,
        )
        for name in ("fast", "slow")
    }
    return AppConfig(
        gateway=gateway,
        tiers=tiers,
        prompts=sample_prompts_config,
        defaults=sample_defaults_config,
        available_tiers={"fast", "slow"},
    )


class FakeProvider(LLMProvider):
    """Test double LLMProvider.

    `stream` yields `chunks` in order. When `gate` is set, every chunk after
    the first waits for it, so a test can act while a stream is mid-flight.
    `error` is raised once the chunks run out.
    """

    def __init__(
        self,
        tier: str = "fast",
        model: str | None = None,
        chunks: list[str] | None = None,
        completion: str = "Qubits, Entanglement, Error Correction",
    ) -> None:
        self._tier = tier
        self._model = model or f"fake-{tier}"
        self.chunks = list(chunks) if chunks is not None else ["Hello ", "world."]
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None
        self.stream_calls: list[list[ChatMessage]] = []
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because complete is defined in the class body below.
        self.complete = AsyncMock(return_value=completion)  # type: ignore[method-assign]

    def name(self) -> str:
        return self._tier

    def model_string(self) -> str:
        return self._model

    async def stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        self.stream_calls.append(messages)
        for i, chunk in enumerate(self.chunks):
            if i > 0 and self.gate is not None:
                await self.gate.wait()
            yield chunk
        if self.error is not None:
            raise self.error

    async def complete(  # type: ignore[override]
        self,
        messages: list[ChatMessage],
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """Default implementation; replaced by AsyncMock in __init__."""
        return ""


async def until(predicate, attempts: int = 200) -> None:
    """Yield to the event loop until `predicate()` holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


@pytest.fixture
def fast_provider() -> FakeProvider:
    return FakeProvider("fast", chunks=["Quantum ", "computing uses qubits."])


@pytest.fixture
def slow_provider() -> FakeProvider:
    return FakeProvider(
        "slow",
        chunks=["A qubit ", "holds a superposition."],
        completion="Another expansion of qubits.",
    )


@pytest.fixture
def gateway(fast_provider, slow_provider, sample_prompts_config, sample_defaults_config) -> LLMGateway:
    return LLMGateway(
        {"fast": fast_provider, "slow": slow_provider},
        sample_prompts_config,
        sample_defaults_config,
    )


@pytest.fixture
async def session(gateway: LLMGateway) -> AsyncIterator[CardSession]:
    session = CardSession(gateway, badge_mode="llm")
    yield session
    await session.wait_idle()
