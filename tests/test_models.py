"""Tests for llm_cards/models.py dataclasses."""

from llm_cards.models import Card, CardState, Section


def test_card_defaults():
    card = Card(question="Explain quantum computing", model="fast-model")
    assert card.response == ""
    assert card.state is CardState.FAST_RESPONDING
    assert card.badges is None
    assert card.detailed_variants == []
    assert card.sections is None
    assert card.generation == 0
    assert card.is_streaming is True


def test_card_ids_unique_and_ordered():
    first = Card(question="a", model="m")
    second = Card(question="b", model="m")
    assert first.id != second.id
    assert first.seq < second.seq


def test_card_order_does_not_depend_on_id_width():
    older = Card(question="a", model="m", seq=999_999)
    newer = Card(question="b", model="m", seq=1_000_000)
    assert older.id == "card-999999"
    assert newer.id == "card-1000000"
    assert older.seq < newer.seq


def test_explicit_card_id_is_kept():
    assert Card(question="a", model="m", id="restored").id == "restored"


def test_card_state_is_responding():
    assert CardState.FAST_RESPONDING.is_responding
    assert CardState.DETAILED_RESPONDING.is_responding
    assert not CardState.FAST_COMPLETE.is_responding
    assert not CardState.DETAILED_COMPLETE.is_responding


def test_card_state_values():
    assert CardState("detailed_complete") is CardState.DETAILED_COMPLETE


def test_section_fields():
    section = Section(title="Basics", content="Qubits.")
    assert section.title == "Basics"
