import pytest
import uuid
from datetime import datetime, timezone, timedelta

from pydantic import ValidationError

from studycore.models import (
    Flashcard,
    FlashcardContent,
    Quality,
    Rating,
    ReviewLog,
    ScheduleState,
    SessionStatus,
    StudySession,
)


# --- Flashcard Model Tests ---

class TestFlashcardModel:
    def test_card_creation_minimal_required(self):
        """Only the front is required; everything else has defaults."""
        card = Flashcard(front="你好")
        assert isinstance(card.id, uuid.UUID)
        assert card.deck_name == "Default"
        assert card.back == FlashcardContent()
        assert card.tags == set()
        assert card.source_segment_id is None
        assert card.created_at.tzinfo == timezone.utc
        assert card.srs == ScheduleState()

    def test_card_creation_all_fields_valid(self):
        card_id = uuid.uuid4()
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        card = Flashcard(
            id=card_id,
            deck_name="HSK 1",
            front="朋友",
            back=FlashcardContent(
                pinyin="péng you",
                definition="friend",
                example="他是我的朋友。",
                audio_url="https://example.org/pengyou.mp3",
            ),
            tags={"hsk-1", "people"},
            source_segment_id="lesson-3:12",
            created_at=created,
        )
        assert card.id == card_id
        assert card.back.pinyin == "péng you"
        assert card.tags == {"hsk-1", "people"}
        assert card.source_segment_id == "lesson-3:12"
        assert card.created_at == created

    def test_card_ids_are_unique(self):
        assert Flashcard(front="a").id != Flashcard(front="a").id

    @pytest.mark.parametrize("tag", ["Not Kebab", "snake_case", "UPPER", "-leading", "trailing-"])
    def test_invalid_tags_rejected(self, tag):
        with pytest.raises(ValidationError, match="kebab-case"):
            Flashcard(front="a", tags={tag})

    def test_front_length_limits(self):
        with pytest.raises(ValidationError):
            Flashcard(front="")
        with pytest.raises(ValidationError):
            Flashcard(front="x" * 1025)

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            Flashcard(front="a", difficulty=3)

    def test_new_card_is_due(self):
        card = Flashcard(front="a")
        assert card.is_due(datetime(2000, 1, 1, tzinfo=timezone.utc))


# --- ScheduleState Tests ---

class TestScheduleState:
    def test_default_is_unseen(self):
        state = ScheduleState()
        assert state.interval == 0
        assert state.repetition == 0
        assert state.ease_factor == 2.5
        assert state.due_date is None
        assert state.total_reviews == 0
        assert state.is_new
        assert not state.is_corrupt

    def test_frozen(self):
        state = ScheduleState()
        with pytest.raises(ValidationError):
            state.interval = 5

    def test_negative_counters_rejected(self):
        with pytest.raises(ValidationError):
            ScheduleState(repetition=-1)
        with pytest.raises(ValidationError):
            ScheduleState(total_reviews=-1)

    def test_is_due_boundaries(self):
        now = datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert ScheduleState(due_date=now).is_due(now)
        assert ScheduleState(due_date=now - timedelta(seconds=1)).is_due(now)
        assert not ScheduleState(due_date=now + timedelta(seconds=1)).is_due(now)

    def test_is_due_with_naive_times(self):
        aware = datetime(2024, 3, 1, 9, tzinfo=timezone.utc)
        naive = datetime(2024, 3, 1, 9)
        assert ScheduleState(due_date=aware).is_due(naive)
        assert not ScheduleState(due_date=aware).is_due(naive - timedelta(minutes=1))
        assert ScheduleState(due_date=naive).is_due(aware)
        assert Flashcard(front="新", srs=ScheduleState(due_date=aware)).is_due(naive + timedelta(days=1))

    @pytest.mark.parametrize(
        "kwargs",
        [{"interval": -1}, {"ease_factor": -0.5}, {"interval": float("nan")}, {"ease_factor": float("inf")}],
    )
    def test_is_corrupt(self, kwargs):
        assert ScheduleState(**kwargs).is_corrupt


# --- Ratings ---

def test_rating_maps_to_sm2_quality():
    assert int(Rating.Again) == 1
    assert int(Rating.Good) == 3
    assert int(Rating.Easy) == 5
    assert [int(q) for q in Quality] == [0, 1, 2, 3, 4, 5]


# --- ReviewLog Tests ---

class TestReviewLog:
    def _review(self, **overrides):
        data = {
            "card_id": uuid.uuid4(),
            "quality": 3,
            "interval": 1,
            "ease_factor": 2.36,
            "repetition": 1,
            "due_date": datetime(2024, 3, 2, tzinfo=timezone.utc),
        }
        data.update(overrides)
        return ReviewLog(**data)

    def test_valid_review(self):
        review = self._review(review_type="learn", time_spent_seconds=4.2)
        assert review.review_id is None
        assert review.review_type == "learn"
        assert review.ts.tzinfo == timezone.utc

    def test_review_type_validated(self):
        with pytest.raises(ValidationError, match="Invalid review_type"):
            self._review(review_type="cram")

    @pytest.mark.parametrize("quality", [-1, 6])
    def test_quality_range(self, quality):
        with pytest.raises(ValidationError):
            self._review(quality=quality)

    def test_ease_factor_floor(self):
        with pytest.raises(ValidationError):
            self._review(ease_factor=1.2)


# --- StudySession Tests ---

class TestStudySession:
    def test_defaults(self):
        session = StudySession()
        assert session.status == SessionStatus.NotStarted
        assert session.total_studied == 0
        assert session.correct_answers == 0
        assert session.segments_viewed == set()
        assert not session.is_active
        assert not session.is_completed
        assert session.accuracy_percentage == 0.0
        assert session.average_time_per_card is None
        assert session.cards_per_minute is None

    def test_correct_cannot_exceed_studied(self):
        with pytest.raises(ValidationError, match="cannot exceed"):
            StudySession(total_studied=2, correct_answers=3)

    def test_assignment_is_validated(self):
        session = StudySession(total_studied=1, correct_answers=1)
        with pytest.raises(ValidationError):
            session.correct_answers = 2

    def test_metrics(self):
        session = StudySession(
            status=SessionStatus.InProgress,
            total_studied=4,
            correct_answers=3,
            time_spent_seconds=120.0,
        )
        assert session.is_active
        assert session.accuracy_percentage == pytest.approx(75.0)
        assert session.average_time_per_card == pytest.approx(30.0)
        assert session.cards_per_minute == pytest.approx(2.0)
