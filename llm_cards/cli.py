"""Click CLI: interactive terminal card session and the HTTP gateway server."""

import asyncio
import logging
import sys

import click
from dotenv import load_dotenv
from rich.live import Live
from rich.logging import RichHandler

from config.config_loader import AppConfig, load_config
from llm_cards.gateway import LLMGateway
from llm_cards.gestures import swipe
from llm_cards.healthcheck import run_health_checks
from llm_cards.output import console, print_sections, render_session
from llm_cards.providers.anthropic import AnthropicProvider
from llm_cards.providers.base import LLMProvider
from llm_cards.providers.openai_provider import OpenAIProvider
from llm_cards.session import CardSession, CardStateError

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[LLMProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
}

_ALIASES: dict[str, str] = {
    "q": "quit", "quit": "quit", "exit": "quit",
    "h": "reject", "left": "reject", "reject": "reject",
    "l": "accept", "right": "accept", "accept": "accept",
    "swipe": "swipe",
    "b": "badge", "badge": "badge",
    "n": "next", "next": "next",
    "p": "prev", "prev": "prev",
    "c": "card", "card": "card",
    "s": "sections", "sections": "sections",
    "reset": "reset",
    "?": "help", "help": "help",
}

HELP_TEXT = """\
[bold green]Type a question to open a new card.[/bold green]
  :left  / :h        reject: new card, different approach (fast)
  :right / :l        accept: expand this answer in place (slow)
  :swipe DX          drag the card by DX (negative = left)
  :badge N           refocus the answer on badge N
  :next / :prev      cycle cached expansions
  :card N            show card N (1 = most recent)
  :sections          split the expansion into titled sections
  :reset             clear the session
  :quit              leave"""


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_providers(config: AppConfig) -> dict[str, LLMProvider]:
    """Build a provider for each tier that has an API key. Returns dict keyed by tier."""
    providers: dict[str, LLMProvider] = {}
    headers = config.gateway.headers()
    for name in sorted(config.available_tiers):
        tier_cfg = config.tiers[name]
        provider_cls = PROVIDER_CLASSES.get(tier_cfg.sdk)
        if provider_cls is None:
            logging.warning("Tier '%s' uses unknown sdk '%s', skipping", name, tier_cfg.sdk)
            continue
        try:
            providers[name] = provider_cls(tier_cfg, headers=headers)
        except Exception as exc:
            logging.warning("Failed to instantiate provider for tier '%s': %s", name, exc)
    return providers


def _build_gateway(config: AppConfig) -> LLMGateway:
    providers = _build_providers(config)
    missing = [t for t in config.tiers if t not in providers]
    if missing:
        console.print(
            f"[bold red]Error:[/bold red] No provider for tier(s): {', '.join(missing)}. "
            "Check API keys in .env."
        )
        sys.exit(1)
    return LLMGateway(providers, config.prompts, config.defaults)


def _check_providers(providers: dict[str, LLMProvider]) -> None:
    """Ping every tier; ask whether to go on when one fails."""
    console.print("\n[bold]Checking tiers...[/bold]")
    results = asyncio.run(run_health_checks(providers))

    failed: list[str] = []
    for name in sorted(results):
        health = results[name]
        if health.ok:
            console.print(f"  [green]OK  [/green] {name} ({health.model}) [dim]{health.latency_sec:.1f}s[/dim]")
        else:
            short_err = health.error.splitlines()[0][:120] if health.error else "unknown error"
            console.print(f"  [red]FAIL[/red] {name} ({health.model}): {short_err}")
            failed.append(name)

    console.print()
    if failed and not click.confirm("Continue anyway?", default=False):
        sys.exit(1)


def parse_command(line: str) -> tuple[str, str]:
    """Split an input line into (command, argument).

    Lines not starting with ':' are questions. Unknown commands come back as
    ('unknown', name).
    """
    line = line.strip()
    if not line:
        return "noop", ""
    if not line.startswith(":"):
        return "ask", line
    name, _, arg = line[1:].partition(" ")
    command = _ALIASES.get(name.lower())
    if command is None:
        return "unknown", name
    return command, arg.strip()


def _badge_for(session: CardSession, arg: str) -> str:
    card = session.selected
    if card is None or not card.badges:
        raise CardStateError("No badges on this card")
    if not arg.isdigit():
        return arg or card.badges[0]
    index = int(arg) - 1
    if not 0 <= index < len(card.badges):
        raise IndexError(f"Badge {arg} does not exist (1-{len(card.badges)})")
    return card.badges[index]


def run_command(session: CardSession, command: str, arg: str, threshold: float) -> asyncio.Task | None:
    """Apply one parsed command to the session.

    Returns the task doing any network work it started, or None when the
    command completed on the spot.
    """
    if command == "ask":
        return session.submit_question(arg)
    if command == "reject":
        return session.reject()
    if command == "accept":
        return session.accept()
    if command == "swipe":
        try:
            offset = float(arg)
        except ValueError:
            raise ValueError(f"Not a drag distance: {arg!r}") from None
        task = swipe(session, offset, threshold)
        if task is None:
            console.print("[dim]Snapped back.[/dim]")
        return task
    if command == "badge":
        return session.select_badge(_badge_for(session, arg))
    if command == "sections":
        return session.expand_sections()

    if command == "next":
        session.cycle_variant(1)
    elif command == "prev":
        session.cycle_variant(-1)
    elif command == "card":
        if not arg.isdigit():
            raise ValueError("Usage: :card N")
        session.select(int(arg) - 1)
    elif command == "reset":
        session.reset()
    elif command == "help":
        console.print(HELP_TEXT)
    elif command == "unknown":
        console.print(f"[red]Unknown command :{arg}[/red] (try :help)")
    return None


async def _watch(session: CardSession, task: asyncio.Task) -> None:
    """Render the selected card live until `task` and any badge fetch it started finish.

    Variant prefetches keep running in the background and show on the next render.
    """
    with Live(render_session(session), console=console, refresh_per_second=12) as live:
        session.on_change = lambda _card: live.update(render_session(session))
        try:
            await task
            await session.wait_for_badges()
        finally:
            session.on_change = None
            live.update(render_session(session))


async def _run_chat(session: CardSession, first_question: str | None, threshold: float) -> None:
    if first_question:
        await _watch(session, session.submit_question(first_question))
    else:
        console.print(render_session(session))

    while True:
        try:
            line = await asyncio.to_thread(console.input, "[green]$ [/green]")
        except (EOFError, KeyboardInterrupt):
            break
        command, arg = parse_command(line)
        if command == "quit":
            break
        if command in ("noop", "help", "unknown"):
            run_command(session, command, arg, threshold)
            continue
        try:
            task = run_command(session, command, arg, threshold)
        except (CardStateError, IndexError, ValueError) as exc:
            console.print(f"[red]{exc}[/red]")
            continue
        if task is None:
            console.print(render_session(session))
            continue
        await _watch(session, task)
        if command == "sections" and session.selected is not None:
            print_sections(session.selected)

    session.reset()


@click.group()
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(verbose: bool) -> None:
    """LLM Cards -- swipeable AI answers in the terminal."""
    load_dotenv()
    _setup_logging(verbose)


@main.command()
@click.argument("question", required=False)
@click.option("--badges", "badge_mode", type=click.Choice(["llm", "heuristic"]), default=None,
              help="How follow-up badges are produced (default: from config)")
@click.option("--variants", "prefetch_variants", type=int, default=None,
              help="Extra expansions to pre-generate after an accept (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def chat(
    question: str | None,
    badge_mode: str | None,
    prefetch_variants: int | None,
    skip_health_check: bool,
) -> None:
    """Open an interactive card session.

    \b
    Examples:
      llm-cards chat
      llm-cards chat "Explain quantum computing"
      llm-cards chat --badges heuristic --variants 0
    """
    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    gateway = _build_gateway(config)
    if not skip_health_check:
        _check_providers(gateway.providers)

    session = CardSession(
        gateway,
        badge_mode=badge_mode or config.defaults.badge_mode,
        prefetch_variants=(
            prefetch_variants if prefetch_variants is not None else config.defaults.prefetch_variants
        ),
    )
    console.print("[bold green]> AI_TERMINAL[/bold green] [dim](:help for commands)[/dim]\n")
    asyncio.run(_run_chat(session, question, config.defaults.swipe_threshold))


@main.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8421, type=int, show_default=True)
def serve(host: str, port: int) -> None:
    """Serve the gateway over HTTP (POST /api/stream, /api/badges, /api/expand)."""
    import uvicorn

    from llm_cards.server import create_app

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    app = create_app(_build_gateway(config))
    console.print(f"API docs: http://{host}:{port}/docs")
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
