"""spacedeck CLI: decks, notes, study queue and answers."""

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer
from pydantic import ValidationError

from spacedeck.application.config import AppConfig, resolve_config
from spacedeck.application.factory import get_study_service
from spacedeck.application.study_service import StudyService
from spacedeck.domain.clock import format_due, now_ms
from spacedeck.domain.errors import SpacedeckError
from spacedeck.domain.models import Note, Rating

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="spacedeck: spaced-repetition flashcard scheduler.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

deck_app = typer.Typer(help="Create, list and delete decks.", no_args_is_help=True)
app.add_typer(deck_app, name="deck")

note_app = typer.Typer(help="Add, edit, import and delete notes.", no_args_is_help=True)
app.add_typer(note_app, name="note")

config_app = typer.Typer(help="Inspect spacedeck configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

_LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _overrides(ctx: typer.Context) -> dict[str, Any]:
    obj = ctx.ensure_object(dict)
    return {"collection_path": obj.get("collection")}


def _load_config(ctx: typer.Context) -> AppConfig:
    try:
        return resolve_config(_overrides(ctx))
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        typer.secho(f"Error: invalid configuration: {problems}", fg="red", err=True)
        raise typer.Exit(1) from e


def _run(ctx: typer.Context, action: Callable[[StudyService], Awaitable[T]]) -> T:
    """Build the service from resolved config and run one async action with it."""
    service = get_study_service(_load_config(ctx))
    try:
        return asyncio.run(action(service))
    except SpacedeckError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


def _parse_fields(values: list[str]) -> dict[str, str]:
    fields: dict[str, str] = {}
    for raw in values:
        name, sep, value = raw.partition("=")
        if not sep or not name.strip():
            raise typer.BadParameter(f"Expected NAME=VALUE, got {raw!r}", param_hint="--field")
        fields[name.strip()] = value
    return fields


def _note_title(note: Note) -> str:
    first = next(iter(note.fields.values()), "")
    return str(first)[:60] or "(empty)"


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
    ] = 0,
    collection: Annotated[
        Path | None,
        typer.Option(help="Collection file. Defaults to 'collection_path' in config."),
    ] = None,
):
    """Global settings for spacedeck."""
    ctx.ensure_object(dict)
    ctx.obj["collection"] = collection
    logging.getLogger().setLevel(_LOG_LEVELS.get(verbose, logging.DEBUG))


# ---------------------------------------------------------------------------
# Deck subgroup
# ---------------------------------------------------------------------------


@deck_app.command("add")
def deck_add(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Deck name, or a 'Parent::Child' path.")],
    parent: Annotated[str | None, typer.Option(help="Parent deck id.")] = None,
):
    """Create a deck."""

    async def action(service: StudyService):
        if parent:
            return await service.create_deck(name, parent)
        deck, _ = await service.ensure_deck_path(name)
        return deck

    deck = _run(ctx, action)
    typer.echo(deck.id)


@deck_app.command("list")
def deck_list(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show the deck tree with due counts (new / learn / review)."""

    async def action(service: StudyService):
        tree = await service.deck_tree()
        return [(deck, depth, await service.count_due(deck.id)) for deck, depth in tree.walk()]

    rows = _run(ctx, action)

    if json_output:
        typer.echo(
            json.dumps(
                [
                    {
                        "id": deck.id,
                        "name": deck.name,
                        "parent_id": deck.parent_id,
                        "new": counts.new_count,
                        "learn": counts.learn_count,
                        "review": counts.review_count,
                    }
                    for deck, _, counts in rows
                ],
                indent=2,
            )
        )
        return

    if not rows:
        typer.secho("No decks.", fg="yellow")
        return

    for deck, depth, counts in rows:
        typer.echo(
            f"{'  ' * depth}{deck.name}  "
            f"[{counts.new_count} / {counts.learn_count} / {counts.review_count}]  ({deck.id})"
        )


@deck_app.command("stats")
def deck_stats(ctx: typer.Context, deck_id: Annotated[str, typer.Argument(help="Deck id.")]):
    """Card totals for a deck and its sub-decks."""
    stats = _run(ctx, lambda service: service.deck_stats(deck_id))
    typer.echo(
        f"Total: {stats.total}  New: {stats.new}  Learning: {stats.learning}"
        f"  Review: {stats.review}  Buried: {stats.buried}"
    )


@deck_app.command("rm")
def deck_rm(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck id.")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Bypass confirmation for destructive actions.")
    ] = False,
):
    """Delete a deck, its sub-decks and all their notes and cards."""
    if not force:
        typer.confirm("Delete deck and all cards?", abort=True)
    deleted = _run(ctx, lambda service: service.delete_deck(deck_id))
    typer.secho(f"Deleted deck {deck_id} ({deleted} cards).", fg="green")


# ---------------------------------------------------------------------------
# Note subgroup
# ---------------------------------------------------------------------------


@note_app.command("add")
def note_add(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck id.")],
    note_type: Annotated[
        str, typer.Option("--type", "-t", help="Note type: basic, basic_rev, cloze.")
    ] = "basic",
    field: Annotated[
        list[str] | None, typer.Option("--field", "-f", help="Field as NAME=VALUE.")
    ] = None,
    tag: Annotated[list[str] | None, typer.Option("--tag", help="Tag (repeatable).")] = None,
):
    """Add a note and generate its cards."""
    fields = _parse_fields(field or [])
    note, cards = _run(ctx, lambda service: service.add_note(deck_id, note_type, fields, tag))
    typer.echo(f"{note.id}: {len(cards)} card(s)")
    for card in cards:
        typer.echo(f"  {card.id}  {card.template_key}")


@note_app.command("edit")
def note_edit(
    ctx: typer.Context,
    note_id: Annotated[str, typer.Argument(help="Note id.")],
    field: Annotated[
        list[str] | None, typer.Option("--field", "-f", help="Field as NAME=VALUE.")
    ] = None,
    tag: Annotated[list[str] | None, typer.Option("--tag", help="Replace tags.")] = None,
):
    """Edit a note's fields; cards are added or removed to match."""
    fields = _parse_fields(field or [])
    result = _run(ctx, lambda service: service.update_note(note_id, fields, tag))
    typer.echo(
        f"Kept {len(result.keep)}, created {len(result.create)}, removed {len(result.remove)} card(s)."
    )


@note_app.command("rm")
def note_rm(ctx: typer.Context, note_id: Annotated[str, typer.Argument(help="Note id.")]):
    """Delete a note and its cards."""
    _run(ctx, lambda service: service.delete_note(note_id))
    typer.secho(f"Deleted note {note_id}.", fg="green")


@note_app.command("search")
def note_search(
    ctx: typer.Context,
    query: Annotated[
        str, typer.Argument(help="Words to find, plus optional deck:NAME and tag:NAME filters.")
    ] = "",
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Find notes, most recently edited first (at most 100)."""

    async def action(service: StudyService):
        return await service.search_notes(query), await service.deck_tree()

    notes, tree = _run(ctx, action)
    rows = [
        {
            "id": note.id,
            "deck": tree.path(note.deck_id),
            "note_type": str(note.note_type),
            "tags": note.tags,
            "title": _note_title(note),
        }
        for note in notes
    ]

    if json_output:
        typer.echo(json.dumps(rows, indent=2, ensure_ascii=False))
        return

    if not rows:
        typer.secho("No results.", fg="yellow")
        return

    for row in rows:
        typer.echo(f"{row['id']}  {row['deck']}  {row['title']}")


@note_app.command("import")
def note_import(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="YAML file of notes.", exists=True, dir_okay=False)],
    keep_going: Annotated[
        bool, typer.Option("--keep-going/--fail-fast", help="Skip bad entries instead of stopping.")
    ] = True,
):
    """Import notes from a YAML file, creating decks as needed."""
    from spacedeck.application.note_importer import import_notes

    report = _run(ctx, lambda service: import_notes(service, path, keep_going=keep_going))
    typer.echo(f"Notes: {report.notes_added}  Cards: {report.cards_added}")
    if report.decks_created:
        typer.echo(f"Created decks: {', '.join(report.decks_created)}")
    if report.errors:
        typer.secho(f"Skipped {len(report.errors)} entr(y/ies):", fg="yellow")
        for err in report.errors:
            typer.echo(f"  {err}")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Study commands
# ---------------------------------------------------------------------------


@app.command("queue")
def queue(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck id; sub-decks are included.")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show today's study queue: learning first, then reviews, then new cards."""

    async def action(service: StudyService):
        ids = await service.build_queue(deck_id)
        return [await service.get_card(cid) for cid in ids], await service.deck_tree()

    cards, tree = _run(ctx, action)

    if json_output:
        typer.echo(json.dumps([c.id for c in cards], indent=2))
        return

    if not cards:
        typer.secho("Nothing due.", fg="green")
        return

    now = now_ms()
    for card in cards:
        typer.echo(
            f"{card.id}  {card.state:<10}  {format_due(card.due_at, now):>4}  "
            f"{tree.path(card.deck_id)}"
        )


@app.command("counts")
def counts(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck id; sub-decks are included.")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Due counts, clamped to the daily limits (learning cards are never capped)."""
    due = _run(ctx, lambda service: service.count_due(deck_id))
    if json_output:
        typer.echo(
            json.dumps(
                {"new": due.new_count, "learn": due.learn_count, "review": due.review_count}
            )
        )
    else:
        typer.echo(f"New: {due.new_count}  Learn: {due.learn_count}  Review: {due.review_count}")


@app.command("answer")
def answer(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card id.")],
    rating: Annotated[str, typer.Argument(help="1-4 or again / hard / good / easy.")],
):
    """Record an answer for a card and show when it is due next."""

    async def action(service: StudyService):
        return await service.answer(card_id, Rating.parse(rating))

    result = _run(ctx, action)
    card = result.card
    typer.echo(
        f"{card.id}: {card.state}, due in {format_due(card.due_at, result.log_entry.timestamp)}"
        f" (interval {card.interval_days}d, ease {card.ease:.2f})"
    )
    if result.buried:
        typer.echo(f"Buried {len(result.buried)} sibling(s) until tomorrow.")


@app.command("history")
def history(ctx: typer.Context, card_id: Annotated[str, typer.Argument(help="Card id.")]):
    """Show the review log of a card."""
    entries = _run(ctx, lambda service: service.review_history(card_id))
    if not entries:
        typer.secho("No reviews yet.", fg="yellow")
        return
    for entry in entries:
        typer.echo(
            f"{entry.timestamp}  {Rating(entry.rating).name:<5}  "
            f"{entry.before.get('state')} -> {entry.after.get('state')}  "
            f"{entry.after.get('interval_days')}d"
        )


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _load_config(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))
