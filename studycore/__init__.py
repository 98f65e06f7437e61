"""
studycore: SM-2 spaced repetition scheduling and study sessions for
vocabulary flashcards.
"""

from .db.database import FlashcardDatabase
from .models import (
    Flashcard,
    FlashcardContent,
    Quality,
    Rating,
    ReviewLog,
    ScheduleState,
    SessionStatus,
    StudySession,
)
from .review_manager import (
    RatingResult,
    RejectReason,
    SessionView,
    StudySessionController,
)
from .review_processor import CardStore, ReviewOutcome, ReviewProcessor
from .scheduler import (
    DeckStatistics,
    DueQueue,
    SM2Scheduler,
    SM2SchedulerConfig,
    compute_deck_statistics,
    get_due_queue,
    select_next_due,
)
from .session_manager import SessionProgress

__all__ = [
    "CardStore",
    "DeckStatistics",
    "DueQueue",
    "Flashcard",
    "FlashcardContent",
    "FlashcardDatabase",
    "Quality",
    "Rating",
    "RatingResult",
    "RejectReason",
    "ReviewLog",
    "ReviewOutcome",
    "ReviewProcessor",
    "SM2Scheduler",
    "SM2SchedulerConfig",
    "ScheduleState",
    "SessionProgress",
    "SessionStatus",
    "SessionView",
    "StudySession",
    "StudySessionController",
    "compute_deck_statistics",
    "get_due_queue",
    "select_next_due",
]
