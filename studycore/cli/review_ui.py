"""
Command-line interface for studying flashcards.
"""

import logging
import time
from datetime import datetime
from typing import Dict, List, Optional

from rich.console import Console
from rich.panel import Panel

from studycore.models import Flashcard, Rating
from studycore.review_manager import StudySessionController

logger = logging.getLogger(__name__)
console = Console()

# Keyboard keys offered to the learner.
RATING_KEYS: Dict[str, Rating] = {
    "1": Rating.Again,
    "2": Rating.Good,
    "3": Rating.Easy,
}


def _get_user_rating() -> Rating:
    """
    Prompt until the learner enters 1 (Again), 2 (Good) or 3 (Easy).
    """
    while True:
        key = console.input(
            "[bold]Rating (1:Again, 2:Good, 3:Easy): [/bold]"
        ).strip()
        rating = RATING_KEYS.get(key)
        if rating is not None:
            return rating
        console.print(
            "[bold red]Invalid rating. Please enter 1, 2 or 3.[/bold red]"
        )


def _format_back(card: Flashcard) -> str:
    back = card.back
    lines = []
    if back.pinyin:
        lines.append(f"[bold]{back.pinyin}[/bold]")
    if back.definition:
        lines.append(back.definition)
    if back.example:
        lines.append(f"[italic]{back.example}[/italic]")
    return "\n".join(lines) or "[dim](no answer recorded)[/dim]"


def _display_card(card: Flashcard) -> None:
    """
    Show a card's front, wait for the learner to press Enter, then reveal the back.
    """
    console.print(Panel(card.front, title="Front", border_style="green"))
    console.input("[italic]Press Enter to see the back...[/italic]")
    console.print(Panel(_format_back(card), title="Back", border_style="blue"))


def _print_summary(controller: StudySessionController) -> None:
    session = controller.progress()
    if session is None or session.total_studied == 0:
        return
    console.print(
        f"Studied [bold]{session.total_studied}[/bold] cards, "
        f"[green]{session.correct_answers}[/green] correct "
        f"([bold]{session.accuracy_percentage:.0f}%[/bold])."
    )
    if session.average_time_per_card is not None:
        console.print(
            f"Average time per card: {session.average_time_per_card:.1f}s"
        )


def start_study_flow(
    controller: StudySessionController,
    cards: List[Flashcard],
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> None:
    """
    Manages the command-line study session flow.

    Args:
        controller: The StudySessionController running the session.
        cards: The deck to study.
        limit: Optional cap on the number of due cards in the session.
        now: Reference time for the queue and every rating; defaults to the
            current time at each step.
    """
    console.print("[bold cyan]Starting study session...[/bold cyan]")
    view = controller.start(cards, now=now, limit=limit)

    if view.session_complete:
        console.print("[bold yellow]No cards are due for study.[/bold yellow]")
        console.print("[bold cyan]Study session finished.[/bold cyan]")
        return

    studied = 0
    while view.current_card is not None:
        card = view.current_card
        studied += 1
        console.rule(
            f"[bold]Card {studied} ({view.due_remaining} due)[/bold]"
        )

        start_time = time.time()
        _display_card(card)
        rating = _get_user_rating()
        elapsed = time.time() - start_time

        result = controller.apply_rating(
            view.session_id, card.id, rating, now=now, time_spent_seconds=elapsed
        )
        if not result.accepted:
            logger.warning(f"Rating for card {card.id} was rejected: {result.reason}")
            console.print("[bold red]Rating was not applied.[/bold red]")
        elif result.outcome is not None:
            next_review = result.outcome.next_review
            if not result.outcome.persisted:
                console.print(
                    "[bold red]Could not save the new schedule.[/bold red]"
                )
            if result.outcome.interval > 0:
                console.print(
                    f"[green]Reviewed.[/green] Next due in "
                    f"[bold]{result.outcome.interval:g} days[/bold] "
                    f"on {next_review.strftime('%Y-%m-%d')}."
                )
            else:
                console.print("[yellow]Reviewed.[/yellow] Card will come back this session.")
        console.print("")

        if result.view is None:
            break
        view = result.view

    _print_summary(controller)
    console.print("[bold cyan]Study session finished. Well done![/bold cyan]")
