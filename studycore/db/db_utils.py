"""
Utility functions for data marshalling between Pydantic models and database formats.
This module keeps the core database logic free of conversion details.
"""

from typing import Any, Dict, List, Sequence, Tuple

from pydantic import ValidationError

from ..exceptions import MarshallingError
from ..models import Flashcard, FlashcardContent, ReviewLog, ScheduleState
from ..scheduler import ensure_utc

_BACK_COLUMNS = {
    "back_pinyin": "pinyin",
    "back_definition": "definition",
    "back_example": "example",
    "back_audio_url": "audio_url",
}

_SCHEDULE_COLUMNS = {
    "interval_days": "interval",
    "repetition": "repetition",
    "ease_factor": "ease_factor",
    "due_date": "due_date",
    "last_reviewed": "last_reviewed",
    "total_reviews": "total_reviews",
}


def _utc_or_none(value):
    return ensure_utc(value) if value is not None else None


def schedule_to_db_params(state: ScheduleState) -> Tuple:
    """
    Returns:
        tuple: (interval_days, repetition, ease_factor, due_date, last_reviewed, total_reviews)
    """
    return (
        state.interval,
        state.repetition,
        state.ease_factor,
        state.due_date,
        state.last_reviewed,
        state.total_reviews,
    )


def card_to_db_params_list(cards: Sequence[Flashcard]) -> List[Tuple]:
    """
    Convert cards into parameter tuples for bulk insertion, in column order:
    (id, deck_name, front, back_pinyin, back_definition, back_example,
    back_audio_url, tags, source_segment_id, created_at, interval_days,
    repetition, ease_factor, due_date, last_reviewed, total_reviews).
    """
    result = []
    for card in cards:
        result.append(
            (
                card.id,
                card.deck_name,
                card.front,
                card.back.pinyin,
                card.back.definition,
                card.back.example,
                card.back.audio_url,
                sorted(card.tags) if card.tags else None,
                card.source_segment_id,
                card.created_at,
                *schedule_to_db_params(card.srs),
            )
        )
    return result


def transform_db_row_for_card(row_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Regroup a flat cards row into the nested shape of Flashcard:
    ``back_*`` columns become ``back``, schedule columns become ``srs``.
    """
    data = row_dict.copy()
    data["back"] = FlashcardContent(
        **{field: data.pop(column, None) for column, field in _BACK_COLUMNS.items()}
    )
    srs = {field: data.pop(column) for column, field in _SCHEDULE_COLUMNS.items() if column in data}
    srs["due_date"] = _utc_or_none(srs.get("due_date"))
    srs["last_reviewed"] = _utc_or_none(srs.get("last_reviewed"))
    data["srs"] = ScheduleState(**srs)

    tags_val = data.get("tags")
    data["tags"] = set(tags_val) if tags_val is not None else set()
    data["created_at"] = _utc_or_none(data.get("created_at"))
    return data


def db_row_to_card(row_dict: Dict[str, Any]) -> Flashcard:
    """
    Create a Flashcard from a database row dictionary.

    Raises:
        MarshallingError: If the row cannot be validated into a Flashcard.
    """
    try:
        return Flashcard(**transform_db_row_for_card(row_dict))
    except ValidationError as e:
        raise MarshallingError(
            f"Failed to parse card from DB row: {row_dict}. Error: {e}",
            original_exception=e,
        ) from e


def review_to_db_params_tuple(review: ReviewLog) -> Tuple:
    """
    Returns:
        tuple: (card_id, session_id, ts, quality, time_spent_seconds,
        interval_days, ease_factor, repetition, due_date, review_type)
    """
    return (
        review.card_id,
        review.session_id,
        review.ts,
        review.quality,
        review.time_spent_seconds,
        review.interval,
        review.ease_factor,
        review.repetition,
        review.due_date,
        review.review_type,
    )


def db_row_to_review(row_dict: Dict[str, Any]) -> ReviewLog:
    """Converts a database row dictionary to a ReviewLog model."""
    data = row_dict.copy()
    data["interval"] = data.pop("interval_days")
    data["ts"] = ensure_utc(data["ts"])
    data["due_date"] = ensure_utc(data["due_date"])
    try:
        return ReviewLog(**data)
    except ValidationError as e:
        raise MarshallingError(
            f"Data validation failed for review: {e}", original_exception=e
        ) from e
