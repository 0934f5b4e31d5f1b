"""Map horizontal drags on the selected card to session intents."""

import asyncio
import logging
from enum import Enum

from llm_cards.models import CardState
from llm_cards.session import CardSession

logger = logging.getLogger(__name__)

DEFAULT_SWIPE_THRESHOLD = 80


class SwipeIntent(str, Enum):
    REJECT = "reject"      # drag left: new card, different approach
    ACCEPT = "accept"      # drag right: expand in place with the slow tier
    NONE = "none"          # snap back


def resolve_drag(
    offset_x: float,
    state: CardState,
    threshold: float = DEFAULT_SWIPE_THRESHOLD,
    locked: bool = False,
) -> SwipeIntent:
    """Decide what a released drag means.

    Left past the threshold rejects from any state; right past it accepts only
    a completed fast answer. Everything else, and any drag while `locked`
    (session loading or the card still streaming), snaps back.
    """
    if locked:
        return SwipeIntent.NONE
    if offset_x < -threshold:
        return SwipeIntent.REJECT
    if offset_x > threshold and state is CardState.FAST_COMPLETE:
        return SwipeIntent.ACCEPT
    return SwipeIntent.NONE


def swipe(session: CardSession, offset_x: float, threshold: float = DEFAULT_SWIPE_THRESHOLD) -> asyncio.Task | None:
    """Resolve a drag on the selected card and dispatch it. Returns the started task, if any."""
    card = session.selected
    if card is None:
        return None
    locked = session.loading or card.id == session.streaming_card_id
    intent = resolve_drag(offset_x, card.state, threshold, locked=locked)
    return dispatch(session, intent)


def dispatch(session: CardSession, intent: SwipeIntent) -> asyncio.Task | None:
    logger.debug("Swipe intent: %s", intent.value)
    if intent is SwipeIntent.REJECT:
        return session.reject()
    if intent is SwipeIntent.ACCEPT:
        return session.accept()
    return None
