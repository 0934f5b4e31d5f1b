"""Tier health checks: one tiny completion per tier before a session opens."""

import asyncio
import logging
import time
from dataclasses import dataclass

from llm_cards.models import ChatMessage
from llm_cards.providers.base import LLMProvider

logger = logging.getLogger(__name__)

_PING_MESSAGES: list[ChatMessage] = [{"role": "user", "content": "Reply with the word OK only."}]
_PING_MAX_TOKENS = 5
_TIMEOUT_SEC = 15.0


@dataclass
class TierHealth:
    tier: str
    model: str
    ok: bool
    error: str = ""
    latency_sec: float = 0.0


async def _ping(tier: str, provider: LLMProvider) -> TierHealth:
    start = time.monotonic()
    try:
        await asyncio.wait_for(
            provider.complete(_PING_MESSAGES, max_tokens=_PING_MAX_TOKENS),
            timeout=_TIMEOUT_SEC,
        )
    except Exception as exc:
        logger.debug("Ping failed for tier %s: %s", tier, exc)
        error = str(exc) or type(exc).__name__
        return TierHealth(tier, provider.model_string(), ok=False, error=error,
                          latency_sec=time.monotonic() - start)
    return TierHealth(tier, provider.model_string(), ok=True, latency_sec=time.monotonic() - start)


async def run_health_checks(providers: dict[str, LLMProvider]) -> dict[str, TierHealth]:
    """Ping every tier concurrently. Failures are reported, never raised."""
    results = await asyncio.gather(*(_ping(tier, p) for tier, p in providers.items()))
    return {r.tier: r for r in results}
