# studycore/scheduler.py

"""
Defines the BaseScheduler abstract class and the SM2Scheduler for studycore,
plus the deck-ranking helpers that pick the next due card.
"""

import datetime
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field, model_validator

from .constants import (
    FAILURE_THRESHOLD,
    FIRST_INTERVAL_DAYS,
    INITIAL_EASE_FACTOR,
    MAX_INTERVAL_DAYS,
    MAX_QUALITY,
    MIN_EASE_FACTOR,
    MIN_QUALITY,
    RELEARN_INTERVAL_DAYS,
    SECOND_INTERVAL_DAYS,
)
from .models import Flashcard, Quality, Rating, ScheduleState, ensure_utc

logger = logging.getLogger(__name__)

UTC = datetime.timezone.utc

# Sort key used for never-reviewed cards so they come before any dated card.
_EARLIEST = datetime.datetime.min.replace(tzinfo=UTC)

RatingLike = Union[Rating, Quality, int]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class BaseScheduler(ABC):
    """
    Abstract base class for all schedulers in studycore.
    """

    failure_threshold: int = FAILURE_THRESHOLD

    @abstractmethod
    def review_card(
        self,
        state: ScheduleState,
        rating: RatingLike,
        now: datetime.datetime,
    ) -> ScheduleState:
        """
        Computes the next schedule of a card from its current one and a rating.

        Args:
            state: The card's current ScheduleState.
            rating: A Rating (Again/Good/Easy) or a raw 0-5 quality.
            now: The timestamp of the review.

        Returns:
            The new ScheduleState. The input is not modified.

        Raises:
            ValueError: If the rating is invalid.
        """
        pass

    def to_quality(self, rating: RatingLike) -> int:
        """Maps a Rating or raw quality to an int on the 0-5 scale and validates it."""
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise ValueError(
                f"Invalid rating: {rating!r}. Must be a Rating or an int 0-5."
            )
        quality = int(rating)
        if not (MIN_QUALITY <= quality <= MAX_QUALITY):
            raise ValueError(
                f"Invalid rating: {quality}. Must be 0-5 (Again=1, Good=3, Easy=5)."
            )
        return quality

    def is_success(self, rating: RatingLike) -> bool:
        """True if the rating counts as a successful recall."""
        return self.to_quality(rating) >= self.failure_threshold

    def classify_review(self, state: ScheduleState, rating: RatingLike) -> str:
        """Label a review as 'learn', 'review' or 'relearn' for the review log."""
        if not self.is_success(rating):
            return "learn" if state.is_new else "relearn"
        return "learn" if state.repetition == 0 else "review"


class SM2SchedulerConfig(BaseModel):
    """Configuration for the SM-2 Scheduler."""

    initial_ease_factor: float = Field(default=INITIAL_EASE_FACTOR, ge=MIN_EASE_FACTOR)
    min_ease_factor: float = Field(default=MIN_EASE_FACTOR, ge=MIN_EASE_FACTOR)
    first_interval_days: int = Field(default=FIRST_INTERVAL_DAYS, ge=0)
    second_interval_days: int = Field(default=SECOND_INTERVAL_DAYS, ge=0)
    # 0 is the zero-day relearn policy: a failed card is due again at once.
    relearn_interval_days: int = Field(default=RELEARN_INTERVAL_DAYS, ge=0)
    failure_threshold: int = Field(
        default=FAILURE_THRESHOLD, ge=MIN_QUALITY + 1, le=MAX_QUALITY
    )
    max_interval: int = Field(default=MAX_INTERVAL_DAYS, ge=1)

    @model_validator(mode="after")
    def check_ease_bounds(self) -> "SM2SchedulerConfig":
        if self.initial_ease_factor < self.min_ease_factor:
            raise ValueError(
                "initial_ease_factor must not be below min_ease_factor."
            )
        return self


class SM2Scheduler(BaseScheduler):
    """
    SuperMemo-2 scheduler.

    Successful reviews grow the interval 1 -> 6 -> interval * ease factor.
    A failed review restarts the repetition count and applies the SM-2 ease
    penalty, floored at the configured minimum ease factor.
    """

    def __init__(self, config: Optional[SM2SchedulerConfig] = None):
        if config is None:
            config = SM2SchedulerConfig()
        self.config = config
        self.failure_threshold = config.failure_threshold

    def initial_state(self) -> ScheduleState:
        """The schedule of a card that has never been reviewed."""
        return ScheduleState(ease_factor=self.config.initial_ease_factor)

    def reset_schedule(
        self, state: Optional[ScheduleState] = None
    ) -> ScheduleState:
        """
        Explicitly forget a card's progress.

        This is the only operation that lowers ``total_reviews``.
        """
        if state is not None and not state.is_new:
            logger.info(
                f"Resetting schedule after {state.total_reviews} reviews."
            )
        return self.initial_state()

    def next_ease_factor(self, ease_factor: float, quality: int) -> float:
        miss = MAX_QUALITY - quality
        delta = 0.1 - miss * (0.08 + miss * 0.02)
        return max(self.config.min_ease_factor, ease_factor + delta)

    def _sanitize(self, state: ScheduleState) -> ScheduleState:
        """Replace a corrupt schedule with the unseen default, keeping its review count."""
        if not state.is_corrupt:
            return state
        logger.warning(
            "Corrupt schedule state "
            f"(interval={state.interval}, ease_factor={state.ease_factor}); "
            "treating card as unseen."
        )
        return self.initial_state().model_copy(
            update={"total_reviews": state.total_reviews}
        )

    def review_card(
        self,
        state: ScheduleState,
        rating: RatingLike,
        now: datetime.datetime,
    ) -> ScheduleState:
        quality = self.to_quality(rating)
        now = ensure_utc(now)
        state = self._sanitize(state)

        ease_factor = self.next_ease_factor(state.ease_factor, quality)

        if quality < self.config.failure_threshold:
            repetition = 0
            interval = self.config.relearn_interval_days
        else:
            repetition = state.repetition + 1
            if repetition == 1:
                interval = self.config.first_interval_days
            elif repetition == 2:
                interval = self.config.second_interval_days
            else:
                interval = round_half_up(state.interval * ease_factor)

        interval = min(interval, self.config.max_interval)

        new_state = ScheduleState(
            interval=interval,
            repetition=repetition,
            ease_factor=ease_factor,
            due_date=now + datetime.timedelta(days=interval),
            last_reviewed=now,
            total_reviews=state.total_reviews + 1,
        )
        logger.debug(
            f"Reviewed with quality {quality}: interval {state.interval} -> "
            f"{interval}, ease {state.ease_factor:.2f} -> {ease_factor:.2f}, "
            f"repetition {repetition}."
        )
        return new_state


# --- Deck ranking ---


@dataclass
class DueQueue:
    """Cards due for review, oldest-due first."""

    queue: List[Flashcard] = field(default_factory=list)
    total_due: int = 0
    next_review_time: Optional[datetime.datetime] = None


@dataclass
class DeckStatistics:
    total_cards: int
    due_cards: int
    reviewed_cards: int
    new_cards: int
    average_ease_factor: float
    average_interval: float


def due_sort_key(card: Flashcard) -> Tuple[datetime.datetime, datetime.datetime, str]:
    """
    Total ordering for due cards: due date, then creation time, then id.

    Never-reviewed cards (no due date) sort first.
    """
    due = ensure_utc(card.srs.due_date) if card.srs.due_date else _EARLIEST
    return (due, ensure_utc(card.created_at), str(card.id))


def _due_cards(
    cards: Iterable[Flashcard], now: datetime.datetime
) -> List[Flashcard]:
    now = ensure_utc(now)
    return [
        card
        for card in cards
        if card.srs.due_date is None or ensure_utc(card.srs.due_date) <= now
    ]


def select_next_due(
    cards: Sequence[Flashcard], now: datetime.datetime
) -> Optional[Flashcard]:
    """
    Return the card that should be studied next, or None if nothing is due.

    None is not an error: it means the deck is done for now.
    """
    due = _due_cards(cards, now)
    if not due:
        return None
    return min(due, key=due_sort_key)


def get_due_queue(
    cards: Sequence[Flashcard],
    now: datetime.datetime,
    limit: Optional[int] = None,
) -> DueQueue:
    """
    Build the ordered queue of due cards and find when the next card becomes due.

    Args:
        cards: The deck.
        now: Reference time.
        limit: Optional maximum queue length. ``total_due`` always counts
            every due card.

    Raises:
        ValueError: If limit is negative.
    """
    if limit is not None and limit < 0:
        raise ValueError(f"limit must be non-negative, got {limit}.")
    now = ensure_utc(now)
    due = sorted(_due_cards(cards, now), key=due_sort_key)
    future = [
        ensure_utc(card.srs.due_date)
        for card in cards
        if card.srs.due_date is not None and ensure_utc(card.srs.due_date) > now
    ]
    queue = due if limit is None else due[:limit]
    return DueQueue(
        queue=queue,
        total_due=len(due),
        next_review_time=min(future) if future else None,
    )


def compute_deck_statistics(
    cards: Sequence[Flashcard], now: datetime.datetime
) -> DeckStatistics:
    """Summarize a deck's schedule. An empty deck yields all zeros."""
    total = len(cards)
    if total == 0:
        return DeckStatistics(0, 0, 0, 0, 0.0, 0.0)

    due = len(_due_cards(cards, now))
    reviewed = sum(1 for card in cards if card.srs.total_reviews > 0)
    avg_ease = sum(card.srs.ease_factor for card in cards) / total
    avg_interval = sum(card.srs.interval for card in cards) / total

    return DeckStatistics(
        total_cards=total,
        due_cards=due,
        reviewed_cards=reviewed,
        new_cards=total - reviewed,
        average_ease_factor=round(avg_ease, 2),
        average_interval=round(avg_interval, 1),
    )
