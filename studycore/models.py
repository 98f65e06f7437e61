"""
Data models for studycore: flashcards, their spaced-repetition schedule,
review log entries and the ephemeral study session.
"""

from __future__ import annotations

import math
import re
import uuid
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Optional, Set
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import INITIAL_EASE_FACTOR, MAX_QUALITY, MIN_QUALITY

# Regex for Kebab-case validation (e.g., "vocabulary", "hsk-1")
KEBAB_CASE_REGEX_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"

ALLOWED_REVIEW_TYPES = {"learn", "review", "relearn"}


def ensure_utc(ts: datetime) -> datetime:
    """Ensures the given datetime is UTC. Assumes UTC if naive."""
    if ts.tzinfo is None or ts.tzinfo.utcoffset(ts) is None:
        return ts.replace(tzinfo=timezone.utc)
    if ts.tzinfo != timezone.utc:
        return ts.astimezone(timezone.utc)
    return ts


class Rating(IntEnum):
    """
    The three recall ratings offered to the learner.

    Values are the SM-2 quality each button maps to.
    """

    Again = 1
    Good = 3
    Easy = 5


class Quality(IntEnum):
    """
    The full SM-2 0-5 recall quality scale.
    """

    Blackout = 0
    IncorrectHard = 1
    IncorrectEasy = 2
    CorrectHard = 3
    Correct = 4
    Perfect = 5


class SessionStatus(str, Enum):
    """Lifecycle state of a study session."""

    NotStarted = "not-started"
    InProgress = "in-progress"
    Completed = "completed"


class ScheduleState(BaseModel):
    """
    Per-card spaced-repetition schedule.

    The default instance is the "unseen" state: never reviewed and due
    immediately. Instances are immutable; the scheduler returns new ones.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    interval: float = Field(
        default=0,
        description="Days until the card is next due.",
    )
    repetition: int = Field(
        default=0,
        ge=0,
        description="Consecutive successful reviews since the last failure.",
    )
    ease_factor: float = Field(
        default=INITIAL_EASE_FACTOR,
        description="Interval growth multiplier, never below 1.3 after a review.",
    )
    due_date: Optional[datetime] = Field(
        default=None,
        description="UTC timestamp from which the card is due (None if never reviewed).",
    )
    last_reviewed: Optional[datetime] = Field(
        default=None,
        description="UTC timestamp of the most recent rating.",
    )
    total_reviews: int = Field(
        default=0,
        ge=0,
        description="Number of ratings ever applied to the card.",
    )

    @property
    def is_new(self) -> bool:
        """True if the card has never been reviewed."""
        return self.total_reviews == 0 and self.last_reviewed is None

    @property
    def is_corrupt(self) -> bool:
        """True if interval or ease factor is negative or non-finite."""
        return not (
            math.isfinite(self.interval)
            and math.isfinite(self.ease_factor)
            and self.interval >= 0
            and self.ease_factor >= 0
        )

    def is_due(self, now: datetime) -> bool:
        if self.due_date is None:
            return True
        return ensure_utc(self.due_date) <= ensure_utc(now)


class FlashcardContent(BaseModel):
    """Answer side of a card. The scheduler never looks inside it."""

    model_config = ConfigDict(extra="forbid")

    pinyin: Optional[str] = None
    definition: Optional[str] = None
    example: Optional[str] = None
    audio_url: Optional[str] = None


class Flashcard(BaseModel):
    """
    A single flashcard and its schedule.

    ``srs`` is owned by the scheduler; stores persist it but never change it
    on their own.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    id: UUID = Field(
        default_factory=uuid.uuid4,
        description="Unique identifier for the card. Auto-generated.",
    )
    deck_name: str = Field(
        default="Default",
        min_length=1,
        description="Name of the deck the card belongs to.",
    )
    front: str = Field(
        ...,
        min_length=1,
        max_length=1024,
        description="Prompt text, e.g. a Chinese word.",
    )
    back: FlashcardContent = Field(
        default_factory=FlashcardContent,
        description="Answer payload: pinyin, definition, example, audio.",
    )
    tags: Set[str] = Field(
        default_factory=set,
        description="Unique kebab-case tags. Informational only.",
    )
    source_segment_id: Optional[str] = Field(
        default=None,
        description="Text segment the card was generated from, if any.",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="UTC timestamp when the card was created.",
    )
    srs: ScheduleState = Field(
        default_factory=ScheduleState,
        description="Spaced-repetition schedule of the card.",
    )

    @field_validator("tags")
    @classmethod
    def validate_tags_kebab_case(cls, tags: Set[str]) -> Set[str]:
        """Ensure each tag matches the kebab-case pattern."""
        for tag in tags:
            if not re.match(KEBAB_CASE_REGEX_PATTERN, tag):
                raise ValueError(f"Tag '{tag}' is not in kebab-case.")
        return tags

    def is_due(self, now: datetime) -> bool:
        """A card is due when it was never reviewed or its due date has passed."""
        return self.srs.is_due(now)


class ReviewLog(BaseModel):
    """
    Represents a single rating applied to a card, with the schedule it produced.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    review_id: Optional[int] = Field(
        default=None,
        description="Auto-incrementing PK from reviews table (None if new).",
    )
    card_id: UUID = Field(..., description="Reviewed card (links to Flashcard.id).")
    session_id: Optional[UUID] = Field(
        default=None,
        description="Study session the review belongs to (nullable).",
    )
    ts: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="The UTC timestamp when the review occurred.",
    )
    quality: int = Field(
        ...,
        ge=MIN_QUALITY,
        le=MAX_QUALITY,
        description="SM-2 quality (Again=1, Good=3, Easy=5).",
    )
    time_spent_seconds: Optional[float] = Field(
        default=None,
        ge=0,
        description="Seconds the learner spent on the card (nullable).",
    )
    interval: float = Field(..., ge=0, description="New interval in days.")
    ease_factor: float = Field(..., ge=1.3, description="New ease factor.")
    repetition: int = Field(..., ge=0, description="New repetition count.")
    due_date: datetime = Field(..., description="New due date.")
    review_type: Optional[str] = Field(
        default="review",
        description="Review type (learn/review/relearn).",
    )

    @field_validator("review_type")
    @classmethod
    def check_review_type_is_allowed(cls, v: str | None) -> str | None:
        """Ensures review_type is allowed or None."""
        if v is not None and v not in ALLOWED_REVIEW_TYPES:
            raise ValueError(
                f"Invalid review_type: '{v}'. "
                f"Allowed: {ALLOWED_REVIEW_TYPES} or None."
            )
        return v


class StudySession(BaseModel):
    """
    Running statistics of one study run.

    Ephemeral: it is discarded on reset and never persisted. Per-card
    schedules are the durable part of studying.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    session_id: UUID = Field(
        default_factory=uuid.uuid4,
        description="Unique identifier of this study run.",
    )
    status: SessionStatus = Field(default=SessionStatus.NotStarted)
    segments_viewed: Set[str] = Field(
        default_factory=set,
        description="Content segments the learner has been shown.",
    )
    total_studied: int = Field(default=0, ge=0)
    correct_answers: int = Field(default=0, ge=0)
    time_spent_seconds: float = Field(default=0.0, ge=0)
    started_at: Optional[datetime] = Field(
        default=None,
        description="UTC timestamp of the first recorded answer.",
    )
    completed_at: Optional[datetime] = Field(
        default=None,
        description="UTC timestamp when the session was completed.",
    )

    @model_validator(mode="after")
    def check_correct_not_above_studied(self) -> "StudySession":
        if self.correct_answers > self.total_studied:
            raise ValueError(
                f"correct_answers ({self.correct_answers}) cannot exceed "
                f"total_studied ({self.total_studied})."
            )
        return self

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.InProgress

    @property
    def is_completed(self) -> bool:
        return self.status == SessionStatus.Completed

    @property
    def accuracy_percentage(self) -> float:
        """Share of correct answers, 0-100. Zero before the first answer."""
        if self.total_studied == 0:
            return 0.0
        return self.correct_answers / self.total_studied * 100

    @property
    def average_time_per_card(self) -> Optional[float]:
        """Mean seconds per studied card."""
        if self.total_studied == 0:
            return None
        return self.time_spent_seconds / self.total_studied

    @property
    def cards_per_minute(self) -> Optional[float]:
        """Calculate study rate in cards per minute."""
        if self.time_spent_seconds <= 0:
            return None
        return self.total_studied / (self.time_spent_seconds / 60)
