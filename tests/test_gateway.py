"""Tests for llm_cards/gateway.py."""

from unittest.mock import AsyncMock

import pytest

from llm_cards.models import Section
from llm_cards.parsing import FALLBACK_SECTION_TITLE
from llm_cards.providers.base import ProviderError


def test_model_for_maps_tiers(gateway):
    assert gateway.model_for("fast") == "fake-fast"
    assert gateway.model_for("slow") == "fake-slow"


def test_model_for_unknown_tier(gateway):
    with pytest.raises(ValueError, match="Unknown tier"):
        gateway.model_for("medium")


async def test_stream_prepends_system_prompt(gateway, fast_provider, sample_prompts_config):
    conversation = [{"role": "user", "content": "Explain quantum computing"}]
    chunks = [c async for c in gateway.stream(conversation, "fast")]

    assert chunks == ["Quantum ", "computing uses qubits."]
    sent = fast_provider.stream_calls[0]
    assert sent[0] == {"role": "system", "content": sample_prompts_config.system}
    assert sent[1:] == conversation
    # Caller's list is not mutated.
    assert len(conversation) == 1


async def test_stream_routes_slow_tier(gateway, fast_provider, slow_provider):
    chunks = [c async for c in gateway.stream([{"role": "user", "content": "hi"}], "slow")]
    assert "".join(chunks) == "A qubit holds a superposition."
    assert fast_provider.stream_calls == []


async def test_stream_error_propagates(gateway, fast_provider):
    fast_provider.error = ProviderError("fast", "401 unauthorized")
    received = []
    with pytest.raises(ProviderError, match="401"):
        async for chunk in gateway.stream([{"role": "user", "content": "hi"}], "fast"):
            received.append(chunk)
    assert received == ["Quantum ", "computing uses qubits."]


async def test_summarize_followups_parses_reply(gateway, fast_provider):
    fast_provider.complete = AsyncMock(return_value='"Qubits", "Shor\'s Algorithm", Decoherence, Extra')
    badges = await gateway.summarize_followups("Explain quantum computing", "Qubits...")

    assert badges == ["Qubits", "Shor's Algorithm", "Decoherence"]
    kwargs = fast_provider.complete.call_args.kwargs
    assert kwargs["max_tokens"] == 50
    assert kwargs["temperature"] == 0.7
    user_message = fast_provider.complete.call_args.args[0][1]["content"]
    assert "Explain quantum computing" in user_message


async def test_summarize_followups_fallback_on_error(gateway, fast_provider):
    fast_provider.complete = AsyncMock(side_effect=ProviderError("fast", "timeout"))
    badges = await gateway.summarize_followups("q", "r")
    assert badges == ["More Info", "Related Topics", "Deep Dive"]


async def test_summarize_followups_fallback_on_unparsable(gateway, fast_provider):
    fast_provider.complete = AsyncMock(return_value=' , "" ,')
    badges = await gateway.summarize_followups("q", "r")
    assert badges == ["More Info", "Related Topics", "Deep Dive"]


async def test_summarize_followups_returns_fresh_list(gateway, fast_provider):
    fast_provider.complete = AsyncMock(side_effect=ProviderError("fast", "down"))
    first = await gateway.summarize_followups("q", "r")
    first.append("mutated")
    assert await gateway.summarize_followups("q", "r") == ["More Info", "Related Topics", "Deep Dive"]


async def test_structured_expand_uses_slow_tier(gateway, slow_provider, sample_prompts_config):
    slow_provider.complete = AsyncMock(return_value='[{"title": "Basics", "content": "Qubits."}]')
    conversation = [
        {"role": "user", "content": "Explain quantum computing"},
        {"role": "assistant", "content": "Qubits."},
    ]
    sections = await gateway.structured_expand(conversation)

    assert sections == [Section(title="Basics", content="Qubits.")]
    sent = slow_provider.complete.call_args.args[0]
    assert sent[0]["role"] == "system"
    assert sent[-1] == {"role": "user", "content": sample_prompts_config.structured}


async def test_structured_expand_fallback_on_prose(gateway, slow_provider):
    slow_provider.complete = AsyncMock(return_value="```\nJust prose, sorry.\n```")
    sections = await gateway.structured_expand([{"role": "user", "content": "q"}])
    assert sections == [Section(title=FALLBACK_SECTION_TITLE, content="Just prose, sorry.")]


async def test_structured_expand_raises_on_transport_error(gateway, slow_provider):
    slow_provider.complete = AsyncMock(side_effect=ProviderError("slow", "502"))
    with pytest.raises(ProviderError):
        await gateway.structured_expand([{"role": "user", "content": "q"}])


async def test_expand_variant(gateway, slow_provider):
    text = await gateway.expand_variant([{"role": "user", "content": "q"}])
    assert text == "Another expansion of qubits."
