"""
Shared review processing logic for studycore.

The ReviewProcessor class encapsulates the steps every rating goes through:
1. Timestamp handling
2. Scheduler computation
3. Review log creation
4. Persistence through the card store
5. Error handling
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable
from uuid import UUID

from .exceptions import DatabaseError
from .models import Flashcard, ReviewLog, ScheduleState
from .scheduler import BaseScheduler, RatingLike, SM2Scheduler, ensure_utc

logger = logging.getLogger(__name__)


@runtime_checkable
class CardStore(Protocol):
    """
    Anything that can persist a card's schedule.

    Retry and backoff belong to the store; the scheduler never waits on it.
    """

    def save_schedule(
        self,
        card_id: UUID,
        state: ScheduleState,
        review: Optional[ReviewLog] = None,
    ) -> None: ...


@dataclass
class ReviewOutcome:
    """Result of processing one rating."""

    card: Flashcard
    review: ReviewLog
    persisted: bool

    @property
    def next_review(self) -> datetime:
        return self.review.due_date

    @property
    def interval(self) -> float:
        return self.review.interval


class ReviewProcessor:
    """
    Processes review submissions with consistent logic across all review workflows.

    Used by StudySessionController for every rating in a study run and directly
    for one-off reviews outside a session.
    """

    def __init__(
        self,
        store: Optional[CardStore] = None,
        scheduler: Optional[BaseScheduler] = None,
    ):
        """
        Initialize the ReviewProcessor.

        Args:
            store: Card store used to persist new schedules. Without one,
                schedules are only returned.
            scheduler: Scheduler computing next states (SM2Scheduler by default).
        """
        self.store = store
        self.scheduler = scheduler or SM2Scheduler()

    def process_review(
        self,
        card: Flashcard,
        rating: RatingLike,
        reviewed_at: Optional[datetime] = None,
        time_spent_seconds: Optional[float] = None,
        session_id: Optional[UUID] = None,
    ) -> ReviewOutcome:
        """
        Process a review submission.

        Args:
            card: The card being reviewed
            rating: Learner's rating (Again/Good/Easy or a 0-5 quality)
            reviewed_at: Review timestamp (defaults to current time)
            time_spent_seconds: Seconds the learner spent on the card
            session_id: Optional study session the review belongs to

        Returns:
            ReviewOutcome with the rescheduled card and its review log entry.
            ``persisted`` is False when there is no store or saving failed;
            the new schedule is valid either way.

        Raises:
            ValueError: If the rating is invalid.
        """
        ts = ensure_utc(reviewed_at or datetime.now(timezone.utc))

        logger.debug(f"Processing review for card {card.id} with rating {rating!r}")

        review_type = self.scheduler.classify_review(card.srs, rating)
        new_state = self.scheduler.review_card(card.srs, rating, ts)
        updated_card = card.model_copy(update={"srs": new_state})

        review = ReviewLog(
            card_id=card.id,
            session_id=session_id,
            ts=ts,
            quality=int(rating),
            time_spent_seconds=time_spent_seconds,
            interval=new_state.interval,
            ease_factor=new_state.ease_factor,
            repetition=new_state.repetition,
            due_date=new_state.due_date,
            review_type=review_type,
        )

        persisted = False
        if self.store is not None:
            try:
                self.store.save_schedule(card.id, new_state, review)
                persisted = True
            except DatabaseError as e:
                logger.error(f"Failed to save schedule for card {card.id}: {e}")

        logger.debug(
            f"Review processed for card {card.id}. "
            f"Next due: {new_state.due_date}, interval: {new_state.interval}"
        )
        return ReviewOutcome(card=updated_card, review=review, persisted=persisted)
