"""
CLI entry point for studycore.
"""

# Standard library imports
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional
from uuid import UUID

# Third-party imports
import typer
from rich.console import Console
from rich.table import Table

# Local application imports
from studycore.config import get_settings
from studycore.db.database import FlashcardDatabase
from studycore.exceptions import DatabaseError
from studycore.models import Flashcard, FlashcardContent
from studycore.scheduler import compute_deck_statistics, get_due_queue
from studycore.cli._study_logic import study_logic


console = Console()

app = typer.Typer(
    name="studycore",
    help="studycore: SM-2 spaced repetition for vocabulary flashcards.",
    add_completion=False,
    rich_markup_mode="markdown",
)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
):
    """studycore: SM-2 spaced repetition for vocabulary flashcards."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)


# ---------------------------------------------------------------------------
# Helpers for resolving the --db path (STUDYCORE_DB_PATH envvar, settings)
# ---------------------------------------------------------------------------


def _resolve_db_path(db: Optional[Path]) -> Path:
    """Resolve db path from CLI flag, falling back to the configured default."""
    if db is not None:
        return db
    return get_settings().db_path


# Common typer options reused across commands
_db_option = typer.Option(  # noqa: B008
    None,
    "--db",
    help="Path to the DuckDB database file. "
    "Falls back to STUDYCORE_DB_PATH env var.",
    envvar="STUDYCORE_DB_PATH",
)

_deck_option = typer.Option(  # noqa: B008
    None,
    "--deck",
    "-d",
    help="Restrict to one deck. All decks when omitted.",
)


def _format_due(card: Flashcard) -> str:
    if card.srs.due_date is None:
        return "new"
    return card.srs.due_date.strftime("%Y-%m-%d %H:%M")


# ---------------------------------------------------------------------------
# Card management
# ---------------------------------------------------------------------------


@app.command()
def add(
    front: str = typer.Argument(..., help="Prompt side of the card."),
    deck: str = typer.Option("Default", "--deck", "-d", help="Deck name."),
    pinyin: Optional[str] = typer.Option(None, "--pinyin"),
    definition: Optional[str] = typer.Option(None, "--definition"),
    example: Optional[str] = typer.Option(None, "--example"),
    tags: Optional[List[str]] = typer.Option(  # noqa: B008
        None, "--tag", "-t", help="Kebab-case tag; repeat for several."
    ),
    db: Optional[Path] = _db_option,
):
    """Add a new, never-reviewed card to a deck."""
    db_path = _resolve_db_path(db)
    try:
        card = Flashcard(
            deck_name=deck,
            front=front,
            back=FlashcardContent(
                pinyin=pinyin, definition=definition, example=example
            ),
            tags=set(tags or []),
        )
    except ValueError as e:
        console.print(f"[bold red]Invalid card:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            db_inst.upsert_cards_batch([card])
    except DatabaseError as e:
        console.print(f"[bold]A database error occurred: {e}[/bold]")
        raise typer.Exit(code=1) from e

    console.print(
        f"[green]Added[/green] '{card.front}' to deck "
        f"[bold cyan]{card.deck_name}[/bold cyan] ([dim]{card.id}[/dim])."
    )


@app.command("list")
def list_cards(
    deck: Optional[str] = _deck_option,
    db: Optional[Path] = _db_option,
):
    """List cards with their schedule."""
    db_path = _resolve_db_path(db)
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            cards = db_inst.get_all_cards(deck_name=deck)
    except DatabaseError as e:
        console.print(f"[bold]A database error occurred: {e}[/bold]")
        raise typer.Exit(code=1) from e

    if not cards:
        console.print("[yellow]No cards found.[/yellow]")
        return

    table = Table(title="Cards")
    table.add_column("ID", style="dim")
    table.add_column("Deck", style="cyan")
    table.add_column("Front")
    table.add_column("Due", style="yellow")
    table.add_column("Interval", justify="right")
    table.add_column("Ease", justify="right")
    table.add_column("Reviews", justify="right", style="magenta")
    for card in cards:
        table.add_row(
            str(card.id),
            card.deck_name,
            card.front,
            _format_due(card),
            f"{card.srs.interval:g}",
            f"{card.srs.ease_factor:.2f}",
            str(card.srs.total_reviews),
        )
    console.print(table)


@app.command()
def reset_card(
    card_id: UUID = typer.Argument(..., help="ID of the card to reset."),
    db: Optional[Path] = _db_option,
):
    """Forget a card's progress so it is studied as new."""
    db_path = _resolve_db_path(db)
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            card = db_inst.reset_card_schedule(card_id)
    except DatabaseError as e:
        console.print(f"[bold]Error: {e}[/bold]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]Reset[/green] '{card.front}'. It is due now.")


# ---------------------------------------------------------------------------
# Due queue & stats
# ---------------------------------------------------------------------------


@app.command()
def due(
    deck: Optional[str] = _deck_option,
    limit: Optional[int] = typer.Option(
        None, "--limit", "-l", min=1, help="Maximum number of cards to show."
    ),
    db: Optional[Path] = _db_option,
):
    """Show the cards due now and when the next one comes due."""
    db_path = _resolve_db_path(db)
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            cards = db_inst.get_all_cards(deck_name=deck)
    except DatabaseError as e:
        console.print(f"[bold]A database error occurred: {e}[/bold]")
        raise typer.Exit(code=1) from e

    queue = get_due_queue(cards, datetime.now(timezone.utc), limit=limit)
    if queue.total_due == 0:
        console.print("[bold yellow]No cards are due.[/bold yellow]")
    else:
        table = Table(title=f"Due cards ({queue.total_due})")
        table.add_column("Deck", style="cyan")
        table.add_column("Front")
        table.add_column("Due", style="yellow")
        for card in queue.queue:
            table.add_row(card.deck_name, card.front, _format_due(card))
        console.print(table)

    if queue.next_review_time is not None:
        console.print(
            "Next card due at "
            f"[bold]{queue.next_review_time.strftime('%Y-%m-%d %H:%M')}[/bold] UTC."
        )


@app.command()
def stats(
    deck: Optional[str] = _deck_option,
    db: Optional[Path] = _db_option,
):
    """Display statistics about the flashcard database."""
    db_path = _resolve_db_path(db)
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            stats_data = db_inst.get_database_stats()
            cards = db_inst.get_all_cards(deck_name=deck)
    except DatabaseError as e:
        console.print(f"[bold]A database error occurred: {e}[/bold]")
        raise typer.Exit(code=1) from e

    overall_table = Table(title="Overall Database Stats", show_header=False)
    overall_table.add_column("Metric", style="cyan")
    overall_table.add_column("Value", style="magenta")
    overall_table.add_row("Total Cards", str(stats_data["total_cards"]))
    overall_table.add_row("Total Reviews", str(stats_data["total_reviews"]))
    overall_table.add_row("Decks", str(stats_data["total_decks"]))
    console.print(overall_table)

    if not cards:
        console.print("[yellow]No cards found in the database.[/yellow]")
        return

    deck_stats = compute_deck_statistics(cards, datetime.now(timezone.utc))
    deck_table = Table(title=f"Deck: {deck}" if deck else "All Decks")
    deck_table.add_column("Metric", style="cyan")
    deck_table.add_column("Value", style="magenta")
    deck_table.add_row("Cards", str(deck_stats.total_cards))
    deck_table.add_row("Due", str(deck_stats.due_cards))
    deck_table.add_row("Reviewed", str(deck_stats.reviewed_cards))
    deck_table.add_row("New", str(deck_stats.new_cards))
    deck_table.add_row("Average Ease", f"{deck_stats.average_ease_factor:.2f}")
    deck_table.add_row("Average Interval", f"{deck_stats.average_interval:.1f}")
    console.print(deck_table)


# ---------------------------------------------------------------------------
# Study command
# ---------------------------------------------------------------------------


@app.command()
def study(
    deck: Optional[str] = _deck_option,
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        "-l",
        help="Maximum number of due cards in the session.",
    ),
    db: Optional[Path] = _db_option,
):
    """Starts an interactive study session over the due cards."""
    db_path = _resolve_db_path(db)
    settings = get_settings()
    if limit is None:
        limit = settings.default_card_limit
    limit = max(1, min(limit, settings.max_card_limit))

    if deck:
        console.print(f"Studying deck: [bold cyan]{deck}[/bold cyan]")
    try:
        study_logic(deck_name=deck, db_path=db_path, limit=limit)
    except DatabaseError as e:
        console.print(f"[bold]A database error occurred: {e}[/bold]")
        raise typer.Exit(code=1) from e


if __name__ == "__main__":
    app()
