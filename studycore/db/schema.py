"""
Defines the database schema for the studycore card store using a SQL string
constant. This keeps the schema definition separate from the connection and
operation logic.
"""

from ..constants import INITIAL_EASE_FACTOR

DB_SCHEMA_SQL = f"""
    CREATE TABLE IF NOT EXISTS cards (
        id UUID PRIMARY KEY,
        deck_name VARCHAR NOT NULL,
        front VARCHAR NOT NULL,
        back_pinyin VARCHAR,
        back_definition VARCHAR,
        back_example VARCHAR,
        back_audio_url VARCHAR,
        tags VARCHAR[],
        source_segment_id VARCHAR,
        created_at TIMESTAMP WITH TIME ZONE NOT NULL,
        interval_days DOUBLE NOT NULL DEFAULT 0,
        repetition INTEGER NOT NULL DEFAULT 0,
        ease_factor DOUBLE NOT NULL DEFAULT {INITIAL_EASE_FACTOR},
        due_date TIMESTAMP WITH TIME ZONE,
        last_reviewed TIMESTAMP WITH TIME ZONE,
        total_reviews INTEGER NOT NULL DEFAULT 0
    );

    CREATE SEQUENCE IF NOT EXISTS review_seq;

    CREATE TABLE IF NOT EXISTS reviews (
        review_id INTEGER PRIMARY KEY DEFAULT nextval('review_seq'),
        card_id UUID NOT NULL,
        session_id UUID,
        ts TIMESTAMP WITH TIME ZONE NOT NULL,
        quality INTEGER NOT NULL CHECK (quality >= 0 AND quality <= 5),
        time_spent_seconds DOUBLE,
        interval_days DOUBLE NOT NULL,
        ease_factor DOUBLE NOT NULL,
        repetition INTEGER NOT NULL,
        due_date TIMESTAMP WITH TIME ZONE NOT NULL,
        review_type VARCHAR
    );

    CREATE INDEX IF NOT EXISTS idx_reviews_card_id ON reviews (card_id);
    CREATE INDEX IF NOT EXISTS idx_reviews_session_id ON reviews (session_id);
"""
