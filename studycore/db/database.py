"""
DuckDB database interactions for studycore.
Implements the FlashcardDatabase class, the card store used to load decks and
save schedules after each review.
"""

import duckdb
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union, cast

from ..exceptions import (
    CardOperationError,
    DatabaseConnectionError,
    DatabaseError,
    MarshallingError,
    ReviewOperationError,
)
from ..models import Flashcard, ReviewLog, ScheduleState
from . import db_utils
from .connection import ConnectionHandler
from .schema_manager import SchemaManager

logger = logging.getLogger(__name__)


def _rows_to_dicts(cursor: duckdb.DuckDBPyConnection) -> List[Dict[str, Any]]:
    """Convert cursor results to list of dictionaries using column names."""
    rows = cursor.fetchall()
    if not rows:
        return []
    description = cursor.description
    if description is None:
        return []
    columns = [desc[0] for desc in description]
    return [dict(zip(columns, row, strict=True)) for row in rows]


class FlashcardDatabase:
    """
    Facade over the DuckDB card store: decks, schedules and review history.

    Wraps a ConnectionHandler, a SchemaManager and the db_utils marshalling
    helpers, and satisfies the CardStore protocol through ``save_schedule``.
    Intended for use as a context manager.
    """

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Args:
            db_path (str | Path): Path to the database file. Use ':memory:' for an in-memory database.
            read_only (bool): If True, open the database in read-only mode.
        """
        self._handler = ConnectionHandler(db_path=db_path, read_only=read_only)
        self._schema_manager = SchemaManager(self._handler)

    @property
    def db_path_resolved(self) -> Path:
        return self._handler.db_path_resolved

    @property
    def read_only(self) -> bool:
        return self._handler.read_only

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self._handler.get_connection()

    def close_connection(self) -> None:
        self._handler.close_connection()

    def __enter__(self) -> "FlashcardDatabase":
        """
        Open the connection and create the schema if the database is new and writable.
        """
        self.get_connection()
        if self._handler.is_new_db and not self._handler.read_only:
            self.initialize_schema()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Ensures the connection is closed on exiting the context."""
        self.close_connection()

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        self._schema_manager.initialize_schema(
            force_recreate_tables=force_recreate_tables
        )

    def _ensure_writable(self, operation: str) -> None:
        if self.read_only:
            raise DatabaseConnectionError(f"Cannot {operation} in read-only mode.")

    def _rollback(self, conn: duckdb.DuckDBPyConnection, context: str) -> None:
        try:
            conn.rollback()
            logger.info(f"Transaction rolled back due to error in {context}.")
        except duckdb.Error as rb_err:
            # Nothing to roll back when the failure happened before BEGIN.
            logger.debug(f"Rollback after {context} failed: {rb_err}")

    # --- Card Operations ---
    # fmt: off
    _UPSERT_CARDS_SQL = """
        INSERT INTO cards (id, deck_name, front, back_pinyin, back_definition, back_example,
                           back_audio_url, tags, source_segment_id, created_at, interval_days,
                           repetition, ease_factor, due_date, last_reviewed, total_reviews)
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16)
        ON CONFLICT (id) DO UPDATE SET
            deck_name = EXCLUDED.deck_name,
            front = EXCLUDED.front,
            back_pinyin = EXCLUDED.back_pinyin,
            back_definition = EXCLUDED.back_definition,
            back_example = EXCLUDED.back_example,
            back_audio_url = EXCLUDED.back_audio_url,
            tags = EXCLUDED.tags,
            source_segment_id = EXCLUDED.source_segment_id,
            -- Keep stored progress unless the incoming card carries reviews of its own
            interval_days = CASE WHEN EXCLUDED.total_reviews > 0 THEN EXCLUDED.interval_days ELSE cards.interval_days END,
            repetition = CASE WHEN EXCLUDED.total_reviews > 0 THEN EXCLUDED.repetition ELSE cards.repetition END,
            ease_factor = CASE WHEN EXCLUDED.total_reviews > 0 THEN EXCLUDED.ease_factor ELSE cards.ease_factor END,
            due_date = CASE WHEN EXCLUDED.total_reviews > 0 THEN EXCLUDED.due_date ELSE cards.due_date END,
            last_reviewed = CASE WHEN EXCLUDED.total_reviews > 0 THEN EXCLUDED.last_reviewed ELSE cards.last_reviewed END,
            total_reviews = CASE WHEN EXCLUDED.total_reviews > 0 THEN EXCLUDED.total_reviews ELSE cards.total_reviews END;
        """

    _UPDATE_SCHEDULE_SQL = """
        UPDATE cards
        SET interval_days = $1, repetition = $2, ease_factor = $3, due_date = $4,
            last_reviewed = $5, total_reviews = $6
        WHERE id = $7;
        """

    _INSERT_REVIEW_SQL = """
        INSERT INTO reviews (card_id, session_id, ts, quality, time_spent_seconds, interval_days,
                             ease_factor, repetition, due_date, review_type)
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
        RETURNING review_id;
        """
    # fmt: on

    def upsert_cards_batch(self, cards: Sequence[Flashcard]) -> int:
        """
        Insert or update cards in a single transaction.

        Content always follows the incoming card. Stored schedules are kept
        unless the incoming card has been reviewed itself.

        Returns:
            int: Number of cards processed; an empty sequence is a no-op.

        Raises:
            CardOperationError: If the batch cannot be written.
        """
        if not cards:
            return 0
        self._ensure_writable("upsert cards")

        card_params_list = db_utils.card_to_db_params_list(cards)
        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.begin()
                cursor.executemany(self._UPSERT_CARDS_SQL, card_params_list)
                cursor.commit()
        except duckdb.Error as e:
            logger.error(f"Error during batch card upsert: {e}")
            self._rollback(conn, "batch card upsert")
            raise CardOperationError(
                f"Batch card upsert failed: {e}", original_exception=e
            ) from e

        logger.info(f"Upserted {len(card_params_list)} cards.")
        return len(card_params_list)

    def get_card_by_id(self, card_id: uuid.UUID) -> Optional[Flashcard]:
        """
        Returns:
            Flashcard | None: The card, or None if no card has that id.

        Raises:
            CardOperationError: On database errors or unparseable rows.
        """
        conn = self.get_connection()
        try:
            cursor = conn.execute("SELECT * FROM cards WHERE id = $1;", (card_id,))
            rows = _rows_to_dicts(cursor)
        except duckdb.Error as e:
            logger.error(f"Error fetching card {card_id}: {e}")
            raise CardOperationError(
                f"Failed to fetch card: {e}", original_exception=e
            ) from e
        if not rows:
            return None
        try:
            return db_utils.db_row_to_card(cast(Dict[str, Any], rows[0]))
        except MarshallingError as e:
            raise CardOperationError(
                f"Failed to parse card {card_id} from database.",
                original_exception=e,
            ) from e

    def get_all_cards(self, deck_name: Optional[str] = None) -> List[Flashcard]:
        """
        Retrieve all cards, or those of one deck, ordered by deck then creation time.

        Raises:
            CardOperationError: On database errors or unparseable rows.
        """
        conn = self.get_connection()
        params: List[Any] = []
        sql = "SELECT * FROM cards"
        if deck_name:
            sql += " WHERE deck_name = $1"
            params.append(deck_name)
        sql += " ORDER BY deck_name, created_at, id;"
        try:
            cursor = conn.execute(sql, params)
            rows = _rows_to_dicts(cursor)
        except duckdb.Error as e:
            logger.error(f"Error fetching cards (deck: {deck_name}): {e}")
            raise CardOperationError(
                f"Failed to get cards: {e}", original_exception=e
            ) from e
        try:
            return [db_utils.db_row_to_card(cast(Dict[str, Any], row)) for row in rows]
        except MarshallingError as e:
            raise CardOperationError(
                "Failed to parse cards from database.", original_exception=e
            ) from e

    def get_deck_names(self) -> List[str]:
        conn = self.get_connection()
        try:
            rows = conn.execute(
                "SELECT DISTINCT deck_name FROM cards ORDER BY deck_name;"
            ).fetchall()
        except duckdb.Error as e:
            logger.error(f"Could not fetch deck names due to a database error: {e}")
            raise CardOperationError(
                "Could not fetch deck names.", original_exception=e
            ) from e
        return [row[0] for row in rows]

    def delete_cards_by_ids_batch(self, card_ids: Sequence[uuid.UUID]) -> int:
        """
        Delete cards and their review history.

        Returns:
            int: Number of ids submitted for deletion.
        """
        if not card_ids:
            return 0
        self._ensure_writable("delete cards")

        params = [(card_id,) for card_id in card_ids]
        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.begin()
                cursor.executemany("DELETE FROM reviews WHERE card_id = $1;", params)
                cursor.executemany("DELETE FROM cards WHERE id = $1;", params)
                cursor.commit()
        except duckdb.Error as e:
            logger.error(f"Error deleting cards: {e}")
            self._rollback(conn, "batch card delete")
            raise CardOperationError(
                f"Batch card delete failed: {e}", original_exception=e
            ) from e
        logger.info(f"Deleted {len(params)} cards.")
        return len(params)

    # --- Schedule and Review Operations ---

    def _card_exists(self, cursor, card_id: uuid.UUID) -> bool:
        return cursor.execute("SELECT 1 FROM cards WHERE id = $1;", (card_id,)).fetchone() is not None

    def _insert_review_and_get_id(self, cursor, review: ReviewLog) -> int:
        cursor.execute(self._INSERT_REVIEW_SQL, db_utils.review_to_db_params_tuple(review))
        result = cursor.fetchone()
        if not result:
            raise ReviewOperationError("Failed to retrieve review_id after insertion.")
        return result[0]

    def save_schedule(
        self,
        card_id: uuid.UUID,
        state: ScheduleState,
        review: Optional[ReviewLog] = None,
    ) -> None:
        """
        Store a card's new schedule, and its review log entry when given,
        in one transaction.

        Raises:
            DatabaseConnectionError: If the database is read-only.
            CardOperationError: If the card does not exist.
            ReviewOperationError: If the write fails.
        """
        self._ensure_writable("save a schedule")
        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.begin()
                if not self._card_exists(cursor, card_id):
                    raise CardOperationError(f"Card {card_id} not found.")
                if review is not None:
                    self._insert_review_and_get_id(cursor, review)
                cursor.execute(
                    self._UPDATE_SCHEDULE_SQL,
                    (*db_utils.schedule_to_db_params(state), card_id),
                )
                cursor.commit()
        except Exception as e:
            logger.error(f"Error saving schedule for card {card_id}: {e}")
            self._rollback(conn, "schedule save")
            if isinstance(e, DatabaseError):
                raise
            raise ReviewOperationError(
                f"Failed to save schedule for card {card_id}: {e}",
                original_exception=e,
            ) from e
        logger.debug(f"Saved schedule for card {card_id}: due {state.due_date}")

    def add_review_and_update_card(
        self, review: ReviewLog, state: ScheduleState
    ) -> Flashcard:
        """
        Record a review and apply its schedule atomically, then return the stored card.
        """
        self.save_schedule(review.card_id, state, review)
        updated_card = self.get_card_by_id(review.card_id)
        if updated_card is None:
            raise ReviewOperationError(
                f"Failed to retrieve card '{review.card_id}' after a successful review update."
            )
        return updated_card

    def reset_card_schedule(self, card_id: uuid.UUID) -> Flashcard:
        """
        Forget a card's progress. Its review history is kept.

        Raises:
            CardOperationError: If the card does not exist.
        """
        self.save_schedule(card_id, ScheduleState())
        card = self.get_card_by_id(card_id)
        if card is None:
            raise CardOperationError(f"Card {card_id} not found after reset.")
        logger.info(f"Reset schedule of card {card_id}.")
        return card

    def get_reviews_for_card(
        self, card_id: uuid.UUID, order_by_ts_desc: bool = True
    ) -> List[ReviewLog]:
        """
        Retrieve the review log of a card, most recent first by default.

        Raises:
            ReviewOperationError: On database errors or unparseable rows.
        """
        conn = self.get_connection()
        order_clause = (
            "ORDER BY ts DESC, review_id DESC"
            if order_by_ts_desc
            else "ORDER BY ts ASC, review_id ASC"
        )
        sql = f"SELECT * FROM reviews WHERE card_id = $1 {order_clause};"
        try:
            cursor = conn.execute(sql, (card_id,))
            rows = _rows_to_dicts(cursor)
        except duckdb.Error as e:
            logger.error(f"Error fetching reviews for card {card_id}: {e}")
            raise ReviewOperationError(
                f"Failed to get reviews for card {card_id}: {e}",
                original_exception=e,
            ) from e
        try:
            return [db_utils.db_row_to_review(cast(Dict[str, Any], row)) for row in rows]
        except MarshallingError as e:
            raise ReviewOperationError(
                f"Failed to parse reviews for card {card_id} from database.",
                original_exception=e,
            ) from e

    def get_database_stats(self) -> Dict[str, int]:
        """
        Returns:
            dict: total_cards, total_reviews and total_decks.
        """
        conn = self.get_connection()
        sql = """
            SELECT
                (SELECT COUNT(*) FROM cards),
                (SELECT COUNT(*) FROM reviews),
                (SELECT COUNT(DISTINCT deck_name) FROM cards);
        """
        try:
            row = conn.execute(sql).fetchone()
        except duckdb.Error as e:
            logger.error(f"Error fetching database stats: {e}")
            raise DatabaseError(
                f"Failed to fetch database stats: {e}", original_exception=e
            ) from e
        total_cards, total_reviews, total_decks = row if row else (0, 0, 0)
        return {
            "total_cards": total_cards,
            "total_reviews": total_reviews,
            "total_decks": total_decks,
        }
