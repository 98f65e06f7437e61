import pytest
from pathlib import Path
from typing import Generator
from datetime import datetime, timedelta, timezone
from uuid import UUID

from studycore.models import Flashcard, FlashcardContent, ScheduleState
from studycore.db import FlashcardDatabase
from studycore.scheduler import SM2Scheduler, SM2SchedulerConfig


# Never let a developer's .env or environment leak into test settings.
@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """
    Run each test from its temp dir with a clean STUDYCORE_ environment.
    """
    for var in (
        "STUDYCORE_DB_PATH",
        "STUDYCORE_STRICT_INVARIANTS",
        "STUDYCORE_TESTING_MODE",
        "STUDYCORE_DEFAULT_CARD_LIMIT",
        "STUDYCORE_MAX_CARD_LIMIT",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    yield


# --- Time & Scheduler Fixtures ---
@pytest.fixture
def t0() -> datetime:
    """A fixed reference time used as 'now' by scheduling tests."""
    return datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def scheduler() -> SM2Scheduler:
    return SM2Scheduler()


@pytest.fixture
def zero_day_scheduler() -> SM2Scheduler:
    """
    An SM2Scheduler whose failed cards are due again immediately, so they
    come back within the same study session.
    """
    return SM2Scheduler(SM2SchedulerConfig(relearn_interval_days=0))


# --- Card Fixtures ---
@pytest.fixture
def new_card(t0: datetime) -> Flashcard:
    """A never-reviewed card created a day before t0."""
    return Flashcard(
        id=UUID("11111111-1111-1111-1111-111111111111"),
        deck_name="HSK 1",
        front="你好",
        back=FlashcardContent(pinyin="nǐ hǎo", definition="hello"),
        tags={"hsk-1", "greeting"},
        created_at=t0 - timedelta(days=1),
    )


@pytest.fixture
def second_new_card(t0: datetime) -> Flashcard:
    """A never-reviewed card created after ``new_card``."""
    return Flashcard(
        id=UUID("22222222-2222-2222-2222-222222222222"),
        deck_name="HSK 1",
        front="谢谢",
        back=FlashcardContent(pinyin="xiè xie", definition="thank you"),
        tags={"hsk-1"},
        created_at=t0 - timedelta(hours=12),
    )


@pytest.fixture
def overdue_card(t0: datetime) -> Flashcard:
    """A card reviewed twice whose due date passed a day before t0."""
    return Flashcard(
        id=UUID("33333333-3333-3333-3333-333333333333"),
        deck_name="HSK 1",
        front="再见",
        back=FlashcardContent(pinyin="zài jiàn", definition="goodbye"),
        created_at=t0 - timedelta(days=30),
        srs=ScheduleState(
            interval=6,
            repetition=2,
            ease_factor=2.6,
            due_date=t0 - timedelta(days=1),
            last_reviewed=t0 - timedelta(days=7),
            total_reviews=2,
        ),
    )


@pytest.fixture
def future_card(t0: datetime) -> Flashcard:
    """A card that is not due until three days after t0."""
    return Flashcard(
        id=UUID("44444444-4444-4444-4444-444444444444"),
        deck_name="HSK 2",
        front="学习",
        back=FlashcardContent(pinyin="xué xí", definition="to study"),
        created_at=t0 - timedelta(days=10),
        srs=ScheduleState(
            interval=6,
            repetition=2,
            ease_factor=2.5,
            due_date=t0 + timedelta(days=3),
            last_reviewed=t0 - timedelta(days=3),
            total_reviews=2,
        ),
    )


# --- Database Fixtures ---
@pytest.fixture
def db_path_file(tmp_path: Path) -> Path:
    """
    Provide the filesystem path for a temporary test database file.

    Returns:
        Path: Path to the file named "test_study.db" inside `tmp_path`.
    """
    return tmp_path / "test_study.db"


@pytest.fixture(params=["memory", "file"])
def db_manager(
    request, db_path_file: Path
) -> Generator[FlashcardDatabase, None, None]:
    """
    Provide a FlashcardDatabase, in-memory or file-backed, and close it on teardown.
    """
    if request.param == "memory":
        db_man = FlashcardDatabase(":memory:")
    else:
        db_man = FlashcardDatabase(db_path_file)
    try:
        yield db_man
    finally:
        db_man.close_connection()


@pytest.fixture
def initialized_db_manager(db_manager: FlashcardDatabase) -> FlashcardDatabase:
    """Ensure the provided FlashcardDatabase has its schema created and return it."""
    db_manager.initialize_schema()
    return db_manager
