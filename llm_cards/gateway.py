"""LLM gateway: tier routing, system prompt, streamed answers and auxiliary completions."""

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing

from config.config_loader import DefaultsConfig, PromptsConfig
from llm_cards.models import ChatMessage, Section, Tier
from llm_cards.parsing import parse_badges, parse_sections
from llm_cards.providers.base import LLMProvider, ProviderError

logger = logging.getLogger(__name__)


class LLMGateway:
    """Routes conversations to the provider serving each tier.

    The fixed system prompt is prepended to every streamed or expanded
    conversation; callers pass only user/assistant turns.
    """

    def __init__(
        self,
        providers: dict[str, LLMProvider],
        prompts: PromptsConfig,
        defaults: DefaultsConfig,
    ) -> None:
        missing = [t for t in ("fast", "slow") if t not in providers]
        if missing:
            raise ValueError(f"No provider for tier(s): {', '.join(missing)}")
        self._providers = providers
        self._prompts = prompts
        self._defaults = defaults

    @property
    def providers(self) -> dict[str, LLMProvider]:
        return self._providers

    @property
    def prompts(self) -> PromptsConfig:
        return self._prompts

    def _provider(self, tier: Tier) -> LLMProvider:
        try:
            return self._providers[tier]
        except KeyError:
            raise ValueError(f"Unknown tier: {tier!r}") from None

    def model_for(self, tier: Tier) -> str:
        return self._provider(tier).model_string()

    def _with_system(self, conversation: list[ChatMessage]) -> list[ChatMessage]:
        return [{"role": "system", "content": self._prompts.system}, *conversation]

    async def stream(self, conversation: list[ChatMessage], tier: Tier) -> AsyncIterator[str]:
        """Stream the answer to `conversation` from the model behind `tier`.

        Single consumer, not restartable. A failed upstream call ends the
        iteration with ProviderError; nothing is retried.
        """
        provider = self._provider(tier)
        logger.debug("Streaming %d turns via %s (%s)", len(conversation), tier, provider.model_string())
        async with aclosing(provider.stream(self._with_system(conversation))) as chunks:
            async for chunk in chunks:
                yield chunk

    async def summarize_followups(self, question: str, response: str) -> list[str]:
        """Ask the fast tier for up to 3 follow-up topics. Never raises."""
        messages: list[ChatMessage] = [
            {"role": "system", "content": self._prompts.badges},
            {
                "role": "user",
                "content": self._prompts.badges_request.format(question=question, response=response),
            },
        ]
        try:
            reply = await self._provider("fast").complete(
                messages,
                max_tokens=self._defaults.badge_max_tokens,
                temperature=self._defaults.badge_temperature,
            )
        except ProviderError as exc:
            logger.warning("Badge generation failed, using fallback: %s", exc)
            return list(self._defaults.fallback_badges)

        badges = parse_badges(reply)
        if not badges:
            logger.warning("Badge reply unparsable, using fallback: %r", reply[:80])
            return list(self._defaults.fallback_badges)
        return badges

    async def structured_expand(self, conversation: list[ChatMessage]) -> list[Section]:
        """Ask the slow tier to restate the conversation's last answer as titled sections.

        Raises:
            ProviderError: If the upstream call fails. Malformed replies fall
                back to a single section instead.
        """
        messages = self._with_system(conversation)
        messages.append({"role": "user", "content": self._prompts.structured})
        reply = await self._provider("slow").complete(
            messages,
            max_tokens=self._defaults.structured_max_tokens,
        )
        sections = parse_sections(reply)
        logger.info("Structured expansion: %d section(s)", len(sections))
        return sections

    async def expand_variant(self, conversation: list[ChatMessage]) -> str:
        """Produce one complete slow-tier answer without streaming.

        Raises:
            ProviderError: If the upstream call fails.
        """
        return await self._provider("slow").complete(self._with_system(conversation))
