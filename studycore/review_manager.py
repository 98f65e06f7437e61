"""
This module defines the StudySessionController class, which runs a single
study session over a deck. It asks the scheduler for the next due card,
routes each learner rating to the scheduler (reschedule and save) and to
the session progress tracker (tally), and ends the session when nothing is
left to study.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set, cast
from uuid import UUID

from .models import Flashcard, StudySession
from .review_processor import CardStore, ReviewOutcome, ReviewProcessor
from .scheduler import (
    BaseScheduler,
    RatingLike,
    SM2Scheduler,
    ensure_utc,
    get_due_queue,
    select_next_due,
)
from .session_manager import SessionProgress

logger = logging.getLogger(__name__)


class RejectReason(str, Enum):
    """Why a rating was ignored."""

    NoActiveSession = "no-active-session"
    StaleSession = "stale-session"
    SessionComplete = "session-complete"
    NotCurrentCard = "not-current-card"


@dataclass
class SessionView:
    """What the presentation layer needs to render the session."""

    session_id: UUID
    current_card: Optional[Flashcard]
    session_complete: bool
    due_remaining: int
    progress: StudySession


@dataclass
class RatingResult:
    """
    Outcome of ``apply_rating``.

    A rejected rating is a normal result, not an error: the caller should
    re-render from ``view``.
    """

    accepted: bool
    reason: Optional[RejectReason] = None
    outcome: Optional[ReviewOutcome] = None
    view: Optional[SessionView] = None

    @property
    def reviewed_card(self) -> Optional[Flashcard]:
        return self.outcome.card if self.outcome else None

    @property
    def next_card(self) -> Optional[Flashcard]:
        return self.view.current_card if self.view else None

    @property
    def session_complete(self) -> bool:
        return bool(self.view and self.view.session_complete)


class StudySessionController:
    """
    Runs one study session at a time over a deck.

    This class is responsible for:
    - Starting a session and presenting the first due card.
    - Applying ratings for the presented card only, in order.
    - Persisting each new schedule through the card store.
    - Completing the session when no card is due.

    Each controller owns its own session; several controllers can run side by
    side without sharing state.
    """

    def __init__(
        self,
        store: Optional[CardStore] = None,
        scheduler: Optional[BaseScheduler] = None,
        strict: Optional[bool] = None,
    ):
        """
        Parameters:
            store (Optional[CardStore]): Where new schedules are saved after each rating.
            scheduler (Optional[BaseScheduler]): Scheduling engine; SM2Scheduler by default.
            strict (Optional[bool]): Forwarded to SessionProgress; raise on invariant
                violations instead of clamping.
        """
        self.scheduler = scheduler or SM2Scheduler()
        self.review_processor = ReviewProcessor(store, self.scheduler)
        self.strict = strict

        self._progress: Optional[SessionProgress] = None
        self._deck: Dict[UUID, Flashcard] = {}
        self._reviewed_ids: Set[UUID] = set()
        self._current: Optional[Flashcard] = None

    # --- State accessors ---

    @property
    def session_id(self) -> Optional[UUID]:
        return self._progress.session_id if self._progress else None

    @property
    def current_card(self) -> Optional[Flashcard]:
        return self._current

    @property
    def is_active(self) -> bool:
        return self._progress is not None and not self._progress.session.is_completed

    @property
    def is_complete(self) -> bool:
        return self._progress is not None and self._progress.session.is_completed

    @property
    def cards(self) -> List[Flashcard]:
        """The deck with every schedule applied so far in this session."""
        return list(self._deck.values())

    def progress(self) -> Optional[StudySession]:
        """Snapshot of the running session counters, or None when idle."""
        return self._progress.snapshot() if self._progress else None

    # --- Lifecycle ---

    def start(
        self,
        cards: Sequence[Flashcard],
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> SessionView:
        """
        Begin a new study session over ``cards``.

        Any session already running is abandoned first. If nothing is due the
        session is completed immediately.

        Parameters:
            cards: The deck to study.
            now: Reference time; defaults to now (UTC).
            limit: Optional cap on how many due cards the session covers.

        Raises:
            ValueError: If limit is negative.
        """
        now = ensure_utc(now or datetime.now(timezone.utc))
        if self._progress is not None and not self._progress.session.is_completed:
            logger.info(
                f"Abandoning session {self.session_id} to start a new one."
            )

        if limit is not None:
            cards = get_due_queue(cards, now, limit=limit).queue

        progress = SessionProgress(strict=self.strict)
        self._progress = progress
        self._deck = {card.id: card for card in cards}
        self._reviewed_ids = set()
        self._current = None
        logger.info(
            f"Starting study session {self.session_id} over {len(self._deck)} cards."
        )
        self._advance(progress, now)
        return self._view(progress, now)

    def abandon(self) -> None:
        """
        Drop the current session without completing it.

        Schedules already saved stay as they are.
        """
        if self._progress is None:
            return
        logger.info(
            f"Study session {self.session_id} abandoned after "
            f"{self._progress.session.total_studied} cards."
        )
        self._progress = None
        self._deck = {}
        self._reviewed_ids = set()
        self._current = None

    def reset(self, now: Optional[datetime] = None) -> Optional[SessionView]:
        """
        Restart the session over the same deck with zeroed counters.

        Schedules applied so far are kept. Returns None when idle.
        """
        progress = self._progress
        if progress is None:
            return None
        now = ensure_utc(now or datetime.now(timezone.utc))
        progress.reset()
        self._reviewed_ids = set()
        self._current = None
        self._advance(progress, now)
        return self._view(progress, now)

    # --- Ratings ---

    def apply_rating(
        self,
        session_id: UUID,
        card_id: UUID,
        rating: RatingLike,
        now: Optional[datetime] = None,
        time_spent_seconds: float = 0.0,
    ) -> RatingResult:
        """
        Apply the learner's rating to the card currently presented.

        Ratings for another session, for a card that is not the current one,
        or after completion are rejected without side effects.

        Parameters:
            session_id (UUID): Session the rating was produced in.
            card_id (UUID): Card the rating refers to.
            rating (RatingLike): Again/Good/Easy, or a raw 0-5 quality.
            now (Optional[datetime]): Time of the rating; defaults to now (UTC).
            time_spent_seconds (float): Seconds spent on the card.

        Returns:
            RatingResult: accepted flag, rejection reason, review outcome and the new view.

        Raises:
            ValueError: If the rating is not a valid quality.
            InvariantViolationError: In strict mode, if time_spent_seconds is
                negative or not finite. Nothing is applied in that case.
        """
        now = ensure_utc(now or datetime.now(timezone.utc))

        reason = self._check_rating_target(session_id, card_id)
        if reason is not None:
            logger.warning(
                f"Ignoring rating for card {card_id} in session {session_id}: "
                f"{reason.value}."
            )
            view = (
                self._view(self._progress, now)
                if self._progress is not None
                else None
            )
            return RatingResult(accepted=False, reason=reason, view=view)

        progress = cast(SessionProgress, self._progress)
        card = cast(Flashcard, self._current)

        # Validate everything before the schedule is touched so a raise leaves
        # the session exactly as it was.
        correct = self.scheduler.is_success(rating)
        elapsed = progress.checked_time(time_spent_seconds)

        outcome = self.review_processor.process_review(
            card=card,
            rating=rating,
            reviewed_at=now,
            time_spent_seconds=elapsed,
            session_id=progress.session_id,
        )
        self._deck[card_id] = outcome.card
        self._reviewed_ids.add(card_id)
        progress.record_answer(correct, elapsed, now=now)

        self._advance(progress, now)
        return RatingResult(
            accepted=True, outcome=outcome, view=self._view(progress, now)
        )

    def mark_segment_viewed(self, segment_id: str) -> bool:
        """Forward a segment-view event to the session progress, if a session is running."""
        if self._progress is None or self._progress.session.is_completed:
            return False
        return self._progress.mark_segment_viewed(segment_id)

    def view(self, now: Optional[datetime] = None) -> Optional[SessionView]:
        """Current session view, or None when idle."""
        if self._progress is None:
            return None
        return self._view(
            self._progress, ensure_utc(now or datetime.now(timezone.utc))
        )

    # --- Internals ---

    def _check_rating_target(
        self, session_id: UUID, card_id: UUID
    ) -> Optional[RejectReason]:
        if self._progress is None:
            return RejectReason.NoActiveSession
        if session_id != self._progress.session_id:
            return RejectReason.StaleSession
        if self._progress.session.is_completed:
            return RejectReason.SessionComplete
        if self._current is None or self._current.id != card_id:
            return RejectReason.NotCurrentCard
        return None

    def _select_next(self, now: datetime) -> Optional[Flashcard]:
        """
        Pick the next due card, preferring cards not yet studied in this session.

        A card already rated in the session (possible with a zero-day relearn
        interval) comes back only once every other due card is done.
        """
        fresh = [c for c in self._deck.values() if c.id not in self._reviewed_ids]
        card = select_next_due(fresh, now)
        if card is None:
            seen = [c for c in self._deck.values() if c.id in self._reviewed_ids]
            card = select_next_due(seen, now)
        return card

    def _advance(self, progress: SessionProgress, now: datetime) -> None:
        self._current = self._select_next(now)
        if self._current is None:
            progress.complete(now)
            logger.info(f"No cards left to study in session {self.session_id}.")

    def _view(self, progress: SessionProgress, now: datetime) -> SessionView:
        return SessionView(
            session_id=progress.session_id,
            current_card=self._current,
            session_complete=progress.session.is_completed,
            due_remaining=get_due_queue(list(self._deck.values()), now).total_due,
            progress=progress.snapshot(),
        )
