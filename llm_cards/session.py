"""Card session store: the card list, the selection, and the single in-flight stream.

Every user intent funnels through CardSession. Writes address cards by id and
carry the card's generation number, so a callback from a superseded stream can
never land in a newer answer.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Coroutine
from contextlib import aclosing
from typing import Any

from llm_cards.badges import heuristic_badges
from llm_cards.gateway import LLMGateway
from llm_cards.models import Card, CardState, ChatMessage, Tier
from llm_cards.providers.base import ProviderError

logger = logging.getLogger(__name__)

BADGE_MODES = ("llm", "heuristic")


class CardStateError(Exception):
    """Raised when a user intent is not legal for the selected card."""


class CancellationToken:
    """Cooperative cancel flag, checked by the stream reader between chunks."""

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class CardSession:
    """In-memory card store for one interactive session.

    `cards` is ordered most-recent-first and `selected_index` points into it.
    Methods that start network work return the asyncio.Task doing it; they
    must be called from inside a running event loop.
    """

    def __init__(
        self,
        gateway: LLMGateway,
        badge_mode: str = "llm",
        prefetch_variants: int = 0,
        on_change: Callable[[Card], None] | None = None,
    ) -> None:
        if badge_mode not in BADGE_MODES:
            raise ValueError(f"Unknown badge mode: {badge_mode}")
        self._gateway = gateway
        self.badge_mode = badge_mode
        self.prefetch_variants = prefetch_variants
        self.on_change = on_change

        self.cards: list[Card] = []
        self.selected_index = 0
        self.loading = False

        self._token: CancellationToken | None = None
        self._active_card_id: str | None = None
        self._tasks: set[asyncio.Task] = set()
        self._badge_tasks: set[asyncio.Task] = set()

    # --- queries -----------------------------------------------------------

    @property
    def selected(self) -> Card | None:
        if not self.cards:
            return None
        return self.cards[self.selected_index]

    @property
    def streaming_card_id(self) -> str | None:
        """Id of the card the live stream writes into, if any."""
        return self._active_card_id

    def get(self, card_id: str) -> Card | None:
        return next((c for c in self.cards if c.id == card_id), None)

    def build_history(self, exclude: set[str] | frozenset[str] = frozenset()) -> list[ChatMessage]:
        """Prior turns, oldest first, from every answered card not in `exclude`."""
        messages: list[ChatMessage] = []
        for card in reversed(self.cards):
            if card.id in exclude or not card.response.strip():
                continue
            messages.append({"role": "user", "content": card.question})
            messages.append({"role": "assistant", "content": card.response})
        return messages

    # --- intents -----------------------------------------------------------

    def submit_question(self, question: str) -> asyncio.Task:
        """Create a new card for `question` and stream its fast answer."""
        question = question.strip()
        if not question:
            raise ValueError("Question is empty")

        history = self.build_history()
        card = Card(question=question, model=self._gateway.model_for("fast"))
        self.cards.insert(0, card)
        self.selected_index = 0
        logger.info("New card %s: %s", card.id, question[:80])

        return self._start(card, [*history, {"role": "user", "content": question}], "fast")

    def reject(self) -> asyncio.Task:
        """Leave the selected card as is and stream a different take into a new card."""
        current = self._require_selected()
        if current.id == self._active_card_id:
            raise CardStateError(f"Card {current.id} is still streaming")

        messages = self.build_history(exclude={current.id})
        messages.append({"role": "user", "content": current.question})
        if current.response.strip():
            messages.append({"role": "assistant", "content": current.response})
            messages.append({"role": "user", "content": self._gateway.prompts.reject})

        card = Card(question=current.question, model=self._gateway.model_for("fast"))
        self.cards.insert(0, card)
        self.selected_index = 0
        logger.info("Rejected %s, regenerating as %s", current.id, card.id)

        return self._start(card, messages, "fast")

    def accept(self) -> asyncio.Task:
        """Expand the selected fast answer in place with the slow tier."""
        card = self._require_selected()
        if card.state is not CardState.FAST_COMPLETE:
            raise CardStateError(f"Cannot expand card {card.id} in state {card.state.value}")

        messages = self.build_history(exclude={card.id})
        messages += [
            {"role": "user", "content": card.question},
            {"role": "assistant", "content": card.response},
            {"role": "user", "content": self._gateway.prompts.accept},
        ]

        card.model = self._gateway.model_for("slow")
        card.state = CardState.DETAILED_RESPONDING
        card.response = ""
        card.badges = None
        card.sections = None
        card.detailed_variants = []
        card.variant_index = 0
        logger.info("Expanding card %s", card.id)

        return self._start(card, messages, "slow")

    def select_badge(self, badge: str) -> asyncio.Task:
        """Regenerate the selected card's fast answer steered towards `badge`."""
        card = self._require_selected()
        if card.state is not CardState.FAST_COMPLETE:
            raise CardStateError(f"Badges are only available on a completed fast answer, not {card.state.value}")

        messages = self.build_history(exclude={card.id})
        messages.append(
            {"role": "user", "content": self._gateway.prompts.focus.format(question=card.question, badge=badge)}
        )

        card.model = self._gateway.model_for("fast")
        card.state = CardState.FAST_RESPONDING
        card.response = ""
        card.badges = None
        card.sections = None
        logger.info("Refocusing card %s on %r", card.id, badge)

        return self._start(card, messages, "fast")

    def cycle_variant(self, step: int = 1) -> str:
        """Show another cached expansion of the selected card. No network call."""
        card = self._require_selected()
        if card.state is not CardState.DETAILED_COMPLETE or not card.detailed_variants:
            raise CardStateError(f"Card {card.id} has no expansion variants")

        card.variant_index = (card.variant_index + step) % len(card.detailed_variants)
        card.response = card.detailed_variants[card.variant_index]
        card.sections = None
        self._notify(card)
        return card.response

    def expand_sections(self) -> asyncio.Task:
        """Fetch a sectioned version of the selected card's expansion."""
        card = self._require_selected()
        if card.state is not CardState.DETAILED_COMPLETE:
            raise CardStateError(f"Sections need a completed expansion, card {card.id} is {card.state.value}")

        conversation = self.build_history(exclude={card.id})
        conversation += [
            {"role": "user", "content": card.question},
            {"role": "assistant", "content": card.response},
        ]
        return self._spawn(self._fetch_sections(card.id, card.generation, card.variant_index, conversation))

    def select(self, index: int) -> Card:
        if not 0 <= index < len(self.cards):
            raise IndexError(f"No card at index {index}")
        self.selected_index = index
        card = self.cards[index]
        self._notify(card)
        return card

    def cancel_active(self) -> None:
        """Signal the live stream to stop at its next chunk boundary."""
        if self._token is not None:
            self._token.cancel()
            logger.debug("Cancelled stream for card %s", self._active_card_id)
        self._token = None
        self._active_card_id = None

    def reset(self) -> None:
        """Drop every card and stop the live stream."""
        self.cancel_active()
        self.cards.clear()
        self.selected_index = 0
        self.loading = False
        logger.info("Session cleared")

    async def wait_idle(self) -> None:
        """Wait until the stream and every background task have finished."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending)

    async def wait_for_badges(self) -> None:
        """Wait for pending badge fetches only. Variant prefetches keep running."""
        pending = [t for t in self._badge_tasks if not t.done()]
        if pending:
            await asyncio.gather(*pending)

    # --- internals ---------------------------------------------------------

    def _require_selected(self) -> Card:
        card = self.selected
        if card is None:
            raise CardStateError("No card selected")
        return card

    def _notify(self, card: Card) -> None:
        if self.on_change is not None:
            self.on_change(card)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _live_card(self, card_id: str, generation: int) -> Card | None:
        """The card, if it still exists and no newer stream has claimed it."""
        card = self.get(card_id)
        if card is None or card.generation != generation:
            return None
        return card

    def _release(self, token: CancellationToken) -> None:
        if self._token is token:
            self._token = None
            self._active_card_id = None

    def _start(self, card: Card, messages: list[ChatMessage], tier: Tier) -> asyncio.Task:
        self.cancel_active()
        card.generation += 1
        token = CancellationToken()
        self._token = token
        self._active_card_id = card.id
        self.loading = True
        self._notify(card)
        return self._spawn(self._consume(card.id, card.generation, messages, tier, token))

    async def _consume(
        self,
        card_id: str,
        generation: int,
        messages: list[ChatMessage],
        tier: Tier,
        token: CancellationToken,
    ) -> None:
        start = time.monotonic()
        received = 0
        try:
            async with aclosing(self._gateway.stream(messages, tier)) as chunks:
                async for chunk in chunks:
                    if token.cancelled:
                        logger.debug("Stream for %s stopped after %d chunks", card_id, received)
                        return
                    card = self._live_card(card_id, generation)
                    if card is None:
                        return
                    if received == 0:
                        self.loading = False
                        logger.debug("First chunk for %s after %.2fs", card_id, time.monotonic() - start)
                    received += 1
                    card.response += chunk
                    self._notify(card)
        except ProviderError as exc:
            logger.error("Error streaming response for card %s: %s", card_id, exc)
            if self._token is token:
                self.loading = False
                self._release(token)
            return

        if token.cancelled:
            return
        self._release(token)
        self.loading = False

        card = self._live_card(card_id, generation)
        if card is not None:
            self._complete(card, messages)

    def _complete(self, card: Card, messages: list[ChatMessage]) -> None:
        if card.state is CardState.FAST_RESPONDING:
            card.state = CardState.FAST_COMPLETE
            if self.badge_mode == "heuristic":
                card.badges = heuristic_badges(card.question, card.response)
            else:
                badge_task = self._spawn(self._fetch_badges(card.id, card.generation))
                self._badge_tasks.add(badge_task)
                badge_task.add_done_callback(self._badge_tasks.discard)
        else:
            card.state = CardState.DETAILED_COMPLETE
            card.detailed_variants = [card.response]
            card.variant_index = 0
            for _ in range(self.prefetch_variants):
                self._spawn(self._prefetch_variant(card.id, card.generation, messages))

        logger.info("Card %s %s (%d chars)", card.id, card.state.value, len(card.response))
        self._notify(card)

    async def _fetch_badges(self, card_id: str, generation: int) -> None:
        card = self._live_card(card_id, generation)
        if card is None:
            return
        badges = await self._gateway.summarize_followups(card.question, card.response)

        card = self._live_card(card_id, generation)
        if card is None or card.state is not CardState.FAST_COMPLETE:
            return
        card.badges = badges
        self._notify(card)

    async def _prefetch_variant(self, card_id: str, generation: int, messages: list[ChatMessage]) -> None:
        try:
            text = await self._gateway.expand_variant(messages)
        except ProviderError as exc:
            logger.warning("Variant prefetch failed for card %s: %s", card_id, exc)
            return

        card = self._live_card(card_id, generation)
        if card is None or card.state is not CardState.DETAILED_COMPLETE:
            return
        card.detailed_variants.append(text)
        logger.debug("Card %s now has %d variants", card_id, len(card.detailed_variants))
        self._notify(card)

    async def _fetch_sections(
        self,
        card_id: str,
        generation: int,
        variant_index: int,
        conversation: list[ChatMessage],
    ) -> None:
        try:
            sections = await self._gateway.structured_expand(conversation)
        except ProviderError as exc:
            logger.error("Structured expansion failed for card %s: %s", card_id, exc)
            return

        card = self._live_card(card_id, generation)
        if card is None or card.variant_index != variant_index:
            return
        card.sections = sections
        self._notify(card)
