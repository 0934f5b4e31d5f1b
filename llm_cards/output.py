"""Rich console rendering for cards: status header, markdown body, badges, variants, sections."""

import logging

from rich.console import Console, Group, RenderableType
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from llm_cards.models import Card, CardState
from llm_cards.session import CardSession

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_STATUS: dict[CardState, tuple[str, str]] = {
    CardState.FAST_RESPONDING: ("PROCESSING", "yellow"),
    CardState.FAST_COMPLETE: ("READY", "green"),
    CardState.DETAILED_RESPONDING: ("ENHANCING", "cyan"),
    CardState.DETAILED_COMPLETE: ("COMPLETE", "blue"),
}

_CURSOR = "▌"


def status_label(state: CardState) -> tuple[str, str]:
    """Return (label, colour) for a card state."""
    return _STATUS[state]


def _card_title(card: Card) -> str:
    return f"TERMINAL_SESSION_{card.seq % 10000:04d}"


def render_badges(badges: list[str]) -> Text:
    text = Text("> ALTERNATIVE_CONTEXTS: ", style="green dim")
    for i, badge in enumerate(badges, start=1):
        text.append(f"[{i}] {badge.upper()}", style="bold green")
        text.append("  ")
    return text


def render_card(card: Card, loading: bool = False) -> Panel:
    """Render one card as a terminal-style panel."""
    label, colour = status_label(card.state)
    parts: list[RenderableType] = [
        Text.assemble(("$ ", "green dim"), (card.question, "green")),
        Rule(style="green dim"),
    ]

    if loading and not card.response:
        parts.append(Text("> PROCESSING...", style="yellow"))
    else:
        parts.append(Markdown(card.response))
        if card.is_streaming:
            parts.append(Text(_CURSOR, style="green blink"))

    if card.state is CardState.FAST_COMPLETE and card.badges:
        parts.append(Rule(style="green dim"))
        parts.append(render_badges(card.badges))

    if card.state is CardState.DETAILED_COMPLETE and len(card.detailed_variants) > 1:
        parts.append(Rule(style="green dim"))
        parts.append(
            Text(
                f"DETAILED_VARIATION_{card.variant_index + 1}  "
                f"{card.variant_index + 1}/{len(card.detailed_variants)}  (:next)",
                style="green dim",
            )
        )

    return Panel(
        Group(*parts),
        title=f"[green]{_card_title(card)}[/green]",
        subtitle=f"[{colour}]{label}[/{colour}] [dim]{card.model}[/dim]",
        border_style=colour,
    )


def render_strip(total: int, selected: int) -> Text:
    """Card position indicator, most recent first."""
    text = Text()
    for i in range(total):
        text.append("━━ " if i == selected else "· ", style="bold green" if i == selected else "green dim")
    return text


def render_session(session: CardSession) -> RenderableType:
    card = session.selected
    if card is None:
        return Text.assemble(
            ("> READY_FOR_INPUT...\n", "green"),
            ("[AWAITING_NEURAL_QUERY]", "green dim"),
        )
    parts: list[RenderableType] = [render_card(card, loading=session.loading)]
    if len(session.cards) > 1:
        parts.append(render_strip(len(session.cards), session.selected_index))
    return Group(*parts)


def print_sections(card: Card) -> None:
    """Print a card's structured sections, one panel each."""
    if not card.sections:
        console.print("[dim]No sections for this card.[/dim]")
        return
    console.print(Rule(f"[bold green]{card.question[:60]}[/bold green]"))
    for section in card.sections:
        console.print(
            Panel(
                Markdown(section.content),
                title=f"[green]{section.title.upper()}[/green]",
                border_style="green dim",
            )
        )
