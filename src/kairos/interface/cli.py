"""kairos CLI: root commands and subgroup registration."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError

from kairos.application.config import AppConfig, resolve_config
from kairos.application.factory import get_review_service
from kairos.application.scheduling.service import ReviewSessionService
from kairos.application.scheduling.formatting import format_due, format_interval
from kairos.application.stats.metrics_calculator import MetricsCalculator
from kairos.domain.exceptions import KairosError
from kairos.domain.scheduling.models import Grade
from kairos.infrastructure.serialization import card_to_document

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="kairos: FSRS spaced-repetition scheduler for flashcard decks.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Subgroups
# ---------------------------------------------------------------------------

deck_app = typer.Typer(help="Create, list, edit and delete decks.", no_args_is_help=True)
card_app = typer.Typer(help="Add, edit, inspect, review and delete cards.", no_args_is_help=True)
config_app = typer.Typer(help="Manage kairos configuration.")

app.add_typer(deck_app, name="deck")
app.add_typer(card_app, name="card")
app.add_typer(config_app, name="config")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_with_overrides(ctx: typer.Context, **overrides: Any) -> AppConfig:
    """Merge global options stored on the context with per-command overrides."""
    obj = ctx.ensure_object(dict)
    merged = {
        "store_path": obj.get("store_path"),
        "backend": obj.get("backend"),
        "verbose": obj.get("verbose"),
        **overrides,
    }
    try:
        config = resolve_config(merged)
    except ValidationError as e:
        typer.secho(f"Error: invalid configuration\n{e}", fg="red", err=True)
        raise typer.Exit(1) from None
    if config.verbose > 1:
        logging.getLogger("kairos").setLevel(logging.DEBUG)
    return config


def _service(ctx: typer.Context) -> ReviewSessionService:
    """Build the review service, reporting bad parameters or a broken store as exit 1."""
    config = _resolve_with_overrides(ctx)
    try:
        return get_review_service(config)
    except KairosError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from None


def _run(coro):
    """Run a service coroutine, turning domain errors into a red message and exit 1."""
    try:
        return asyncio.run(coro)
    except KairosError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from None


def _parse_grade(value: str) -> Grade:
    text = value.strip().lower()
    if text.isdigit() and 1 <= int(text) <= 4:
        return Grade(int(text))
    for grade in Grade:
        if grade.name.lower() == text:
            return grade
    raise typer.BadParameter(f"Unknown grade '{value}'. Use again/hard/good/easy or 1-4.")


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
    store: Annotated[
        Path | None, typer.Option("--store", help="Path to the YAML store file.")
    ] = None,
    backend: Annotated[
        str | None, typer.Option(help="Storage backend: yaml, memory.")
    ] = None,
):
    """Global settings for kairos."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["store_path"] = store
    ctx.obj["backend"] = backend


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def due(
    ctx: typer.Context,
    deck: Annotated[str | None, typer.Option(help="Only cards from this deck ID.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List cards that are [bold green]due[/bold green] for review now."""
    service = _service(ctx)

    cards = _run(service.due_cards(deck))
    now = service.now()

    if json_output:
        typer.echo(
            json.dumps(
                [
                    {
                        "card_id": c.card_id,
                        "deck_id": c.deck_id,
                        "front": c.front,
                        "state": c.scheduling.state.name,
                        "due": c.scheduling.due.isoformat(),
                    }
                    for c in cards
                ],
                indent=2,
            )
        )
        return

    if not cards:
        typer.secho("No cards due.", fg="green")
        return

    typer.echo(f"Due cards: {len(cards)}")
    for c in cards:
        typer.echo(f"  {c.card_id}  [{c.scheduling.state.name}]  {c.front}  ({format_due(c, now)})")


# ---------------------------------------------------------------------------
# Deck subgroup
# ---------------------------------------------------------------------------


@deck_app.command("create")
def deck_create(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Deck name.")],
    description: Annotated[str | None, typer.Option(help="Optional description.")] = None,
):
    """Create a new deck and print its ID."""
    service = _service(ctx)
    deck = _run(service.create_deck(name, description))
    typer.echo(deck.deck_id)


@deck_app.command("list")
def deck_list(ctx: typer.Context):
    """List all decks with their card counts."""
    service = _service(ctx)

    async def run():
        decks = await service.list_decks()
        return [(d, len(await service.list_cards(d.deck_id))) for d in decks]

    rows = _run(run())
    if not rows:
        typer.secho("No decks yet.", fg="yellow")
        return
    for deck, count in rows:
        typer.echo(f"{deck.deck_id}  {deck.name}  ({count} cards)")


@deck_app.command("delete")
def deck_delete(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck ID.")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Bypass confirmation for destructive actions.")
    ] = False,
):
    """Delete a deck and every card in it."""
    if not force:
        typer.confirm(f"Delete deck {deck_id} and all of its cards?", abort=True)

    service = _service(ctx)
    removed = _run(service.delete_deck(deck_id))
    typer.secho(f"Deleted deck {deck_id} ({removed} cards).", fg="green")


@deck_app.command("edit")
def deck_edit(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck ID.")],
    name: Annotated[str | None, typer.Option(help="New deck name.")] = None,
    description: Annotated[str | None, typer.Option(help="New description.")] = None,
):
    """Rename a deck or change its description."""
    if name is None and description is None:
        raise typer.BadParameter("Nothing to change. Pass --name and/or --description.")

    service = _service(ctx)
    deck = _run(service.update_deck(deck_id, name=name, description=description))
    typer.secho(f"Updated deck {deck.deck_id} ({deck.name}).", fg="green")


# ---------------------------------------------------------------------------
# Card subgroup
# ---------------------------------------------------------------------------


@card_app.command("add")
def card_add(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck ID.")],
    front: Annotated[str, typer.Argument(help="Prompt side.")],
    back: Annotated[str, typer.Argument(help="Answer side.")],
):
    """Add a new card to a deck and print its ID."""
    service = _service(ctx)
    card = _run(service.add_card(deck_id, front, back))
    typer.echo(card.card_id)


@card_app.command("show")
def card_show(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card ID.")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show a card's scheduling state and metrics."""
    service = _service(ctx)
    card = _run(service.get_card(card_id))
    now = service.now()

    if json_output:
        typer.echo(json.dumps(card_to_document(card), indent=2))
        return

    metrics = MetricsCalculator(service.scheduler).enrich(card, now)
    sched = card.scheduling
    typer.echo(f"{card.front}  ->  {card.back}")
    typer.echo(f"State: {sched.state.name}  ({format_due(card, now)})")
    typer.echo(f"Reps: {sched.reps}  Lapses: {sched.lapses}  Reviews: {metrics.review_count}")
    if sched.stability is not None:
        typer.echo(f"Stability: {sched.stability:.2f}d  Difficulty: {sched.difficulty:.2f}")
    if metrics.current_retrievability is not None:
        typer.echo(f"Retrievability: {metrics.current_retrievability:.1%}")


@card_app.command("preview")
def card_preview(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card ID.")],
):
    """Show what each grade would do, without recording anything."""
    service = _service(ctx)
    outcomes = _run(service.preview(card_id))

    for grade, outcome in outcomes.items():
        state = outcome.card.scheduling.state.name
        typer.echo(f"{grade.name:<6} {format_interval(outcome.interval_days):>7}  -> {state}")


@card_app.command("review")
def card_review(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card ID.")],
    grade: Annotated[str, typer.Argument(help="again, hard, good, easy (or 1-4).")],
):
    """Grade a card and store the new schedule."""
    parsed = _parse_grade(grade)
    service = _service(ctx)
    card, entry = _run(service.review(card_id, parsed))

    now = service.now()
    typer.secho(
        f"{entry.before.state.name} -> {entry.after.state.name}. {format_due(card, now)}.",
        fg="green",
    )


@card_app.command("edit")
def card_edit(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card ID.")],
    front: Annotated[str | None, typer.Option(help="New prompt side.")] = None,
    back: Annotated[str | None, typer.Option(help="New answer side.")] = None,
):
    """Change a card's text. Its schedule and review history are kept."""
    if front is None and back is None:
        raise typer.BadParameter("Nothing to change. Pass --front and/or --back.")

    service = _service(ctx)
    card = _run(service.update_card(card_id, front=front, back=back))
    typer.secho(f"Updated {card.card_id}: {card.front}  ->  {card.back}", fg="green")


@card_app.command("delete")
def card_delete(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card ID.")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Bypass confirmation for destructive actions.")
    ] = False,
):
    """Delete a card and its review history."""
    if not force:
        typer.confirm(f"Delete card {card_id} and its review history?", abort=True)

    service = _service(ctx)
    _run(service.delete_card(card_id))
    typer.secho(f"Deleted card {card_id}.", fg="green")


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _resolve_with_overrides(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))


@config_app.command("check")
def config_check(ctx: typer.Context):
    """Validate the model parameters in the resolved configuration."""
    config = _resolve_with_overrides(ctx)
    try:
        config.to_parameters()
    except KairosError as e:
        typer.secho(f"Invalid parameters: {e}", fg="red", err=True)
        raise typer.Exit(1) from None
    typer.secho("Parameters OK.", fg="green")
