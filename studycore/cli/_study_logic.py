from pathlib import Path
from typing import Optional

from studycore.cli.review_ui import start_study_flow
from studycore.db.database import FlashcardDatabase
from studycore.review_manager import StudySessionController
from studycore.scheduler import SM2Scheduler


def study_logic(
    deck_name: Optional[str],
    db_path: Path,
    limit: Optional[int] = None,
):
    """
    Set up and run an interactive study session.

    Opens the card store, loads the deck (every deck when ``deck_name`` is
    None), and hands a StudySessionController that saves each new schedule
    back to the store to the interactive flow.

    Parameters:
        deck_name (Optional[str]): Deck to study, or None for all decks.
        db_path (Path): Path to the flashcard database file.
        limit (Optional[int]): Maximum number of due cards in the session.
    """
    with FlashcardDatabase(db_path=db_path) as db_manager:
        cards = db_manager.get_all_cards(deck_name=deck_name)

        controller = StudySessionController(
            store=db_manager,
            scheduler=SM2Scheduler(),
        )
        start_study_flow(controller, cards, limit=limit)
