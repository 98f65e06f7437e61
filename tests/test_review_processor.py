"""
Tests for ReviewProcessor in studycore.review_processor.
"""

from datetime import timedelta
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from studycore.db.database import FlashcardDatabase
from studycore.exceptions import ReviewOperationError
from studycore.models import Rating, ReviewLog
from studycore.review_processor import CardStore, ReviewProcessor


@pytest.fixture
def mock_store() -> MagicMock:
    """A MagicMock standing in for the DuckDB card store."""
    return MagicMock(spec=FlashcardDatabase)


def test_flashcard_database_is_a_card_store():
    assert isinstance(FlashcardDatabase(":memory:"), CardStore)


def test_process_review_reschedules_and_persists(mock_store, new_card, t0):
    processor = ReviewProcessor(store=mock_store)
    session_id = uuid4()

    outcome = processor.process_review(
        new_card, Rating.Good, reviewed_at=t0, time_spent_seconds=4.0, session_id=session_id
    )

    assert outcome.persisted is True
    assert outcome.card.id == new_card.id
    assert outcome.card.front == new_card.front
    assert outcome.card.srs.repetition == 1
    assert outcome.interval == 1
    assert outcome.next_review == t0 + timedelta(days=1)
    # The input card is untouched.
    assert new_card.srs.total_reviews == 0

    review = outcome.review
    assert isinstance(review, ReviewLog)
    assert review.card_id == new_card.id
    assert review.session_id == session_id
    assert review.quality == 3
    assert review.ts == t0
    assert review.time_spent_seconds == 4.0
    assert review.review_type == "learn"

    mock_store.save_schedule.assert_called_once_with(new_card.id, outcome.card.srs, review)


def test_review_type_for_lapsed_card(mock_store, overdue_card, t0):
    outcome = ReviewProcessor(store=mock_store).process_review(overdue_card, Rating.Again, reviewed_at=t0)
    assert outcome.review.review_type == "relearn"
    assert outcome.card.srs.repetition == 0


def test_store_failure_keeps_new_schedule(mock_store, new_card, t0, caplog):
    mock_store.save_schedule.side_effect = ReviewOperationError("disk full")
    processor = ReviewProcessor(store=mock_store)

    outcome = processor.process_review(new_card, Rating.Easy, reviewed_at=t0)

    assert outcome.persisted is False
    assert outcome.card.srs.total_reviews == 1
    assert "Failed to save schedule" in caplog.text


def test_without_store_nothing_is_persisted(new_card, t0):
    outcome = ReviewProcessor().process_review(new_card, Rating.Good, reviewed_at=t0)
    assert outcome.persisted is False
    assert outcome.card.srs.repetition == 1


def test_invalid_rating_raises_before_saving(mock_store, new_card, t0):
    with pytest.raises(ValueError):
        ReviewProcessor(store=mock_store).process_review(new_card, 9, reviewed_at=t0)
    mock_store.save_schedule.assert_not_called()


def test_naive_reviewed_at_is_utc(mock_store, new_card, t0):
    outcome = ReviewProcessor(store=mock_store).process_review(
        new_card, Rating.Good, reviewed_at=t0.replace(tzinfo=None)
    )
    assert outcome.review.ts == t0
