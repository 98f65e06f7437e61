import duckdb
import logging

from ..config import get_settings
from ..exceptions import DatabaseConnectionError, SchemaInitializationError
from .connection import ConnectionHandler
from .schema import DB_SCHEMA_SQL

logger = logging.getLogger(__name__)


class SchemaManager:
    """Creates the card store tables and guards against destructive recreation."""

    def __init__(self, handler: ConnectionHandler):
        self._handler = handler

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        """
        Create the schema inside a transaction. Read-only file databases are
        skipped. ``force_recreate_tables`` drops existing tables first and is
        refused when they hold data, unless in testing mode.
        """
        if self._skip_for_read_only(force_recreate_tables):
            return

        conn = self._handler.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.begin()
                if force_recreate_tables:
                    self._recreate_tables(cursor)
                cursor.execute(DB_SCHEMA_SQL)
                cursor.commit()
            logger.info(f"Database schema at {self._handler.db_path_resolved} initialized.")
        except duckdb.Error as e:
            logger.error(f"Error initializing database schema at {self._handler.db_path_resolved}: {e}")
            try:
                conn.rollback()
            except duckdb.Error as rb_err:
                logger.error(f"Failed to rollback transaction: {rb_err}")
            raise SchemaInitializationError(
                f"Failed to initialize schema: {e}", original_exception=e
            ) from e

    def _skip_for_read_only(self, force_recreate_tables: bool) -> bool:
        if not self._handler.read_only:
            return False
        if force_recreate_tables:
            raise DatabaseConnectionError("Cannot force_recreate_tables in read-only mode.")
        if self._handler.is_memory:
            return False
        logger.warning("Attempting to initialize schema in read-only mode. Skipping.")
        return True

    def _perform_safety_check(self, cursor: duckdb.DuckDBPyConnection) -> None:
        """Refuse to drop tables that still hold cards or reviews."""
        if self._handler.is_memory or get_settings().testing_mode:
            return

        counts = {}
        for table in ("cards", "reviews"):
            try:
                row = cursor.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
            except duckdb.CatalogException:
                continue
            counts[table] = row[0] if row else 0

        if any(counts.values()):
            error_msg = (
                "Refusing to drop tables with existing data "
                f"(cards: {counts.get('cards', 0)}, reviews: {counts.get('reviews', 0)})."
            )
            logger.error(error_msg)
            raise SchemaInitializationError(error_msg)

    def _recreate_tables(self, cursor: duckdb.DuckDBPyConnection) -> None:
        self._perform_safety_check(cursor)
        logger.warning(
            f"Forcing table recreation for {self._handler.db_path_resolved}. "
            "ALL EXISTING DATA WILL BE LOST."
        )
        cursor.execute("DROP TABLE IF EXISTS reviews CASCADE;")
        cursor.execute("DROP TABLE IF EXISTS cards CASCADE;")
        cursor.execute("DROP SEQUENCE IF EXISTS review_seq;")
