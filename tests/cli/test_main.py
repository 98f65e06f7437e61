# Standard library imports
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

# Third-party imports
import pytest
from typer.testing import CliRunner

# Local application imports
from studycore.cli.main import app
from studycore.db.database import FlashcardDatabase
from studycore.exceptions import CardOperationError
from studycore.models import Flashcard, FlashcardContent, ScheduleState


runner = CliRunner()


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences (color and control codes) from text."""
    ansi_escape = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")
    return ansi_escape.sub("", text)


def normalize_output(text: str) -> str:
    """
    Strip ANSI codes and collapse all whitespace runs into single spaces.
    """
    text = strip_ansi(text)
    return re.sub(r"\s+", " ", text).strip()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "cli.db"


@pytest.fixture
def populated_db(db_path: Path):
    """
    A database holding two due cards in "HSK 1" and one card in "HSK 2"
    that is not due for a week.
    """
    now = datetime.now(timezone.utc)
    cards = [
        Flashcard(
            deck_name="HSK 1",
            front="你好",
            back=FlashcardContent(pinyin="nǐ hǎo", definition="hello"),
            created_at=now - timedelta(days=2),
        ),
        Flashcard(
            deck_name="HSK 1",
            front="谢谢",
            back=FlashcardContent(pinyin="xiè xie", definition="thank you"),
            created_at=now - timedelta(days=1),
        ),
        Flashcard(
            deck_name="HSK 2",
            front="学习",
            back=FlashcardContent(pinyin="xué xí", definition="to study"),
            created_at=now - timedelta(days=10),
            srs=ScheduleState(
                interval=6,
                repetition=2,
                ease_factor=2.5,
                due_date=now + timedelta(days=7),
                last_reviewed=now - timedelta(days=1),
                total_reviews=2,
            ),
        ),
    ]
    with FlashcardDatabase(db_path) as db:
        db.upsert_cards_batch(cards)
    return cards


def test_add_card(db_path):
    result = runner.invoke(
        app,
        [
            "add", "朋友",
            "--deck", "HSK 1",
            "--pinyin", "péng you",
            "--definition", "friend",
            "--tag", "hsk-1",
            "--db", str(db_path),
        ],
    )
    assert result.exit_code == 0, result.stdout
    assert "Added" in normalize_output(result.stdout)

    with FlashcardDatabase(db_path) as db:
        cards = db.get_all_cards()
    assert len(cards) == 1
    assert cards[0].deck_name == "HSK 1"
    assert cards[0].back.definition == "friend"
    assert cards[0].tags == {"hsk-1"}
    assert cards[0].srs.is_new


def test_add_card_invalid_tag(db_path):
    result = runner.invoke(app, ["add", "朋友", "--tag", "Not Kebab", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "Invalid card" in normalize_output(result.stdout)


def test_db_path_from_environment(db_path):
    result = runner.invoke(app, ["add", "朋友"], env={"STUDYCORE_DB_PATH": str(db_path)})
    assert result.exit_code == 0, result.stdout
    assert db_path.exists()


def test_list_cards(populated_db, db_path):
    result = runner.invoke(app, ["list", "--deck", "HSK 1", "--db", str(db_path)])
    output = normalize_output(result.stdout)

    assert result.exit_code == 0
    assert "你好" in output
    assert "谢谢" in output
    assert "学习" not in output


def test_list_empty(db_path):
    result = runner.invoke(app, ["list", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "No cards found" in result.stdout


def test_due_shows_queue_and_next_review(populated_db, db_path):
    result = runner.invoke(app, ["due", "--db", str(db_path)])
    output = normalize_output(result.stdout)

    assert result.exit_code == 0
    assert "Due cards (2)" in output
    assert "学习" not in output
    assert "Next card due at" in output


@pytest.mark.parametrize("limit", ["0", "-1"])
def test_due_rejects_non_positive_limit(populated_db, db_path, limit):
    result = runner.invoke(app, ["due", "--limit", limit, "--db", str(db_path)])
    assert result.exit_code == 2


def test_due_nothing(populated_db, db_path):
    result = runner.invoke(app, ["due", "--deck", "HSK 2", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "No cards are due" in normalize_output(result.stdout)


def test_stats(populated_db, db_path):
    result = runner.invoke(app, ["stats", "--db", str(db_path)])
    output = normalize_output(result.stdout)

    assert result.exit_code == 0
    assert re.search(r"Total Cards\W+3", output)
    assert re.search(r"Decks\W+2", output)
    assert re.search(r"Due\W+2", output)
    assert re.search(r"New\W+2", output)


def test_stats_empty_db(db_path):
    result = runner.invoke(app, ["stats", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "No cards found in the database" in normalize_output(result.stdout)


def test_study_session(populated_db, db_path):
    # Reveal + rate Good for the first card, reveal + rate Again for the second.
    user_input = "\n2\n\n1\n"
    result = runner.invoke(app, ["study", "--deck", "HSK 1", "--db", str(db_path)], input=user_input)
    output = normalize_output(result.stdout)

    assert result.exit_code == 0, output
    assert "你好" in output
    assert "nǐ hǎo" in output
    assert "Studied 2 cards, 1 correct (50%)" in output
    assert "Study session finished" in output

    with FlashcardDatabase(db_path) as db:
        cards = {card.front: card for card in db.get_all_cards("HSK 1")}
        assert cards["你好"].srs.repetition == 1
        assert cards["谢谢"].srs.repetition == 0
        assert cards["谢谢"].srs.total_reviews == 1
        assert len(db.get_reviews_for_card(cards["你好"].id)) == 1


def test_study_rejects_invalid_keys(populated_db, db_path):
    user_input = "\n9\nx\n3\n"
    result = runner.invoke(
        app, ["study", "--deck", "HSK 1", "--limit", "1", "--db", str(db_path)], input=user_input
    )
    output = normalize_output(result.stdout)

    assert result.exit_code == 0, output
    assert "Invalid rating" in output
    assert "Studied 1 cards, 1 correct" in output


def test_study_nothing_due(populated_db, db_path):
    result = runner.invoke(app, ["study", "--deck", "HSK 2", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "No cards are due for study" in normalize_output(result.stdout)


def test_study_database_error(db_path):
    with patch(
        "studycore.cli.main.study_logic",
        side_effect=CardOperationError("boom"),
    ):
        result = runner.invoke(app, ["study", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "A database error occurred: boom" in normalize_output(result.stdout)


def test_reset_card(populated_db, db_path):
    card = populated_db[2]
    result = runner.invoke(app, ["reset-card", str(card.id), "--db", str(db_path)])

    assert result.exit_code == 0, result.stdout
    assert "Reset" in result.stdout
    with FlashcardDatabase(db_path) as db:
        assert db.get_card_by_id(card.id).srs.is_new


def test_reset_unknown_card(populated_db, db_path):
    result = runner.invoke(
        app, ["reset-card", "00000000-0000-0000-0000-000000000000", "--db", str(db_path)]
    )
    assert result.exit_code == 1
    assert "not found" in normalize_output(result.stdout)


def test_verbose_flag_enables_debug_logging(db_path):
    with patch("studycore.cli.main.logging.basicConfig") as basic_config:
        result = runner.invoke(app, ["--verbose", "list", "--db", str(db_path)])
    assert result.exit_code == 0
    basic_config.assert_called_once()
