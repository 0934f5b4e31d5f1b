"""Dataclasses for the card session. No I/O, no deps."""

import itertools
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal, TypedDict

Tier = Literal["fast", "slow"]


class ChatMessage(TypedDict):
    role: str              # "system", "user" or "assistant"
    content: str


class CardState(str, Enum):
    FAST_RESPONDING = "fast_responding"
    FAST_COMPLETE = "fast_complete"
    DETAILED_RESPONDING = "detailed_responding"
    DETAILED_COMPLETE = "detailed_complete"

    @property
    def is_responding(self) -> bool:
        return self in (CardState.FAST_RESPONDING, CardState.DETAILED_RESPONDING)


_card_seq = itertools.count(1)


def _next_card_seq() -> int:
    return next(_card_seq)


@dataclass
class Section:
    title: str
    content: str


@dataclass
class Card:
    question: str
    model: str                                   # model identifier that produced `response`
    id: str = ""                                 # "card-<seq>" unless given
    response: str = ""
    state: CardState = CardState.FAST_RESPONDING
    badges: list[str] | None = None
    detailed_variants: list[str] = field(default_factory=list)
    variant_index: int = 0
    sections: list[Section] | None = None
    generation: int = 0                          # bumped every time a new stream targets this card
    created_at: datetime = field(default_factory=datetime.now)
    seq: int = field(default_factory=_next_card_seq)    # process-wide creation order

    def __post_init__(self) -> None:
        if not self.id:
            self.id = f"card-{self.seq}"

    @property
    def is_streaming(self) -> bool:
        return self.state.is_responding
