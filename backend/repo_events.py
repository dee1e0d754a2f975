"""
Repository: SQL operations for `events`.

This file contains only DB interaction code. It maps Pydantic models
to SQL parameters and converts DB rows back to `Event` models. Keep
business rules out of this module.

Important notes:
- SQL strings use positional parameters for psycopg.
- `data` and `tags` are JSONB; we wrap them in `Jsonb` on the way in
  and psycopg hands back decoded Python objects on the way out.
- Every statement is scoped by `owner_id`. A row that exists for some
  other owner is indistinguishable from a missing row.
- Each write commits before returning, so an import that fails half way
  keeps the rows already written.
"""

from typing import Any, Dict, List, Optional

import psycopg
from psycopg.types.json import Jsonb

from db import get_conn
from errors import RowError
from models import Event, EventQuery


_COLUMNS = "id, owner_id, timestamp, event_type, data, tags, source, created_at"

_UPDATABLE = ("timestamp", "event_type", "data", "tags")


class EventRepo:
    """DB access only. No business logic here.

    `connect` is a zero-argument callable returning a psycopg connection;
    it defaults to `db.get_conn` and exists so tests can inject a fake.
    """

    def __init__(self, connect=get_conn):
        self.connect = connect

    def insert_event(self, event: Event) -> Event:
        """Insert one event and commit.

        Values the database refuses to store (`psycopg.DataError`, e.g. a
        NUL byte inside a string) are reported as a `RowError`; anything
        else, such as a lost connection, propagates unchanged.
        """

        params = (
            event.id,
            event.owner_id,
            event.timestamp,
            event.event_type,
            Jsonb(event.data) if event.data is not None else None,
            Jsonb(event.tags),
            event.source.value,
            event.created_at,
        )
        try:
            with self.connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"INSERT INTO events ({_COLUMNS}) "
                        "VALUES (%s, %s, %s, %s, %s, %s, %s, %s)",
                        params,
                    )
                conn.commit()
        except psycopg.DataError as e:
            raise RowError(f"Rejected by database: {e}") from e
        return event

    def get_event(self, owner_id: str, event_id: str) -> Optional[Event]:
        with self.connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM events WHERE id=%s AND owner_id=%s",
                    (event_id, owner_id),
                )
                row = cur.fetchone()
        return _row_to_event(row) if row else None

    def list_events(self, owner_id: str, query: EventQuery) -> List[Event]:
        """Fetch one page of events, newest first.

        A tag filter uses JSONB containment, so an event matches only if
        its tag array holds every requested tag.
        """

        sql = f"SELECT {_COLUMNS} FROM events WHERE owner_id=%s"
        params: List[Any] = [owner_id]

        if query.event_type:
            sql += " AND event_type=%s"
            params.append(query.event_type)
        if query.start is not None:
            sql += " AND timestamp >= %s"
            params.append(query.start)
        if query.end is not None:
            sql += " AND timestamp <= %s"
            params.append(query.end)
        if query.tags:
            sql += " AND tags @> %s"
            params.append(Jsonb(query.tags))

        sql += " ORDER BY timestamp DESC, created_at DESC LIMIT %s OFFSET %s"
        params.extend([query.limit, query.offset])

        with self.connect() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return [_row_to_event(r) for r in cur.fetchall()]

    def update_event(
        self, owner_id: str, event_id: str, changes: Dict[str, Any]
    ) -> Optional[Event]:
        """Overwrite the supplied columns and return the stored row.

        `data` and `tags` are replaced wholesale, never merged.
        """

        assignments = []
        params: List[Any] = []
        for column in _UPDATABLE:
            if column not in changes:
                continue
            value = changes[column]
            if column == "data":
                value = Jsonb(value) if value is not None else None
            elif column == "tags":
                value = Jsonb(value or [])
            assignments.append(f"{column}=%s")
            params.append(value)

        if not assignments:
            return self.get_event(owner_id, event_id)

        params.extend([event_id, owner_id])
        with self.connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"UPDATE events SET {', '.join(assignments)} "
                    f"WHERE id=%s AND owner_id=%s RETURNING {_COLUMNS}",
                    params,
                )
                row = cur.fetchone()
            conn.commit()
        return _row_to_event(row) if row else None

    def delete_event(self, owner_id: str, event_id: str) -> bool:
        with self.connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM events WHERE id=%s AND owner_id=%s",
                    (event_id, owner_id),
                )
                deleted = cur.rowcount
            conn.commit()
        return deleted > 0

    def list_event_types(self, owner_id: str) -> List[str]:
        with self.connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT DISTINCT event_type FROM events "
                    "WHERE owner_id=%s ORDER BY event_type",
                    (owner_id,),
                )
                return [r[0] for r in cur.fetchall()]

    def ping(self) -> None:
        """Lightweight DB health check. Raises on error."""

        with self.connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")


def _row_to_event(r) -> Event:
    return Event(
        id=r[0],
        owner_id=r[1],
        timestamp=r[2],
        event_type=r[3],
        data=r[4],
        tags=r[5] or [],
        source=r[6],
        created_at=r[7],
    )
