"""
Database connection helper and table definitions.

This module centralizes how connections are created. Right now we use
`psycopg.connect(settings.db_url)` which opens a new connection per call.

Usage:
    from db import get_conn
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1;")

`SCHEMA_DDL` is applied by `scripts/create_tables.py`. The unique
constraint on `event_schemas(owner_id, name)` is what guarantees schema
names are unique per owner; repositories rely on it instead of checking
first and inserting second.
"""

import psycopg
from settings import settings


SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    timestamp BIGINT NOT NULL,
    event_type TEXT NOT NULL,
    data JSONB,
    tags JSONB NOT NULL DEFAULT '[]'::jsonb,
    source TEXT NOT NULL DEFAULT 'manual',
    created_at BIGINT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_owner_timestamp ON events (owner_id, timestamp DESC);
CREATE INDEX IF NOT EXISTS idx_events_owner_type ON events (owner_id, event_type);
CREATE INDEX IF NOT EXISTS idx_events_tags ON events USING GIN (tags);

CREATE TABLE IF NOT EXISTS event_schemas (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    name TEXT NOT NULL,
    label TEXT NOT NULL,
    fields JSONB NOT NULL,
    icon TEXT,
    color TEXT,
    default_tags JSONB NOT NULL DEFAULT '[]'::jsonb,
    created_at BIGINT NOT NULL,
    CONSTRAINT uq_event_schemas_owner_name UNIQUE (owner_id, name)
);
"""


def get_conn():
    """Return a new psycopg connection using `settings.db_url`.

    We add a short `connect_timeout` so HTTP requests don't hang
    indefinitely if the database is unreachable.
    """

    return psycopg.connect(settings.db_url, connect_timeout=5)


def apply_schema(conn) -> None:
    """Create tables and indexes if they don't exist yet."""

    with conn.cursor() as cur:
        cur.execute(SCHEMA_DDL)
    conn.commit()
