"""In-memory stand-ins for the psycopg repositories and connections."""

from __future__ import annotations

from typing import Any

import psycopg

from errors import ConflictError
from models import Event, EventQuery, EventSchema


class FakeEventRepo:
    """Mirrors `EventRepo` semantics: owner scoping, tag containment, ordering."""

    def __init__(self, fail_on_insert: int | None = None) -> None:
        self.rows: dict[str, Event] = {}
        self.inserts = 0
        self.fail_on_insert = fail_on_insert

    def insert_event(self, event: Event) -> Event:
        self.inserts += 1
        if self.fail_on_insert is not None and self.inserts == self.fail_on_insert:
            raise psycopg.OperationalError("server closed the connection unexpectedly")
        self.rows[event.id] = event.model_copy(deep=True)
        return event

    def get_event(self, owner_id: str, event_id: str) -> Event | None:
        event = self.rows.get(event_id)
        if event is None or event.owner_id != owner_id:
            return None
        return event.model_copy(deep=True)

    def list_events(self, owner_id: str, query: EventQuery) -> list[Event]:
        wanted = set(query.tags)
        matches = [
            e
            for e in self.rows.values()
            if e.owner_id == owner_id
            and (not query.event_type or e.event_type == query.event_type)
            and (query.start is None or e.timestamp >= query.start)
            and (query.end is None or e.timestamp <= query.end)
            and wanted <= set(e.tags)
        ]
        matches.sort(key=lambda e: (e.timestamp, e.created_at), reverse=True)
        return matches[query.offset : query.offset + query.limit]

    def update_event(self, owner_id: str, event_id: str, changes: dict[str, Any]) -> Event | None:
        current = self.get_event(owner_id, event_id)
        if current is None:
            return None
        changes = dict(changes)
        if "tags" in changes:
            changes["tags"] = changes["tags"] or []
        updated = current.model_copy(update=changes)
        self.rows[event_id] = updated
        return updated

    def delete_event(self, owner_id: str, event_id: str) -> bool:
        if self.get_event(owner_id, event_id) is None:
            return False
        del self.rows[event_id]
        return True

    def list_event_types(self, owner_id: str) -> list[str]:
        return sorted({e.event_type for e in self.rows.values() if e.owner_id == owner_id})

    def ping(self) -> None:
        return None


class FakeSchemaRepo:
    """Mirrors `SchemaRepo`, including the (owner_id, name) unique constraint."""

    def __init__(self) -> None:
        self.rows: dict[str, EventSchema] = {}

    def insert_schema(self, schema: EventSchema) -> EventSchema:
        for existing in self.rows.values():
            if existing.owner_id == schema.owner_id and existing.name == schema.name:
                raise ConflictError(f"Schema with name '{schema.name}' already exists")
        self.rows[schema.id] = schema.model_copy(deep=True)
        return schema

    def get_schema(self, owner_id: str, schema_id: str) -> EventSchema | None:
        schema = self.rows.get(schema_id)
        if schema is None or schema.owner_id != owner_id:
            return None
        return schema

    def get_schema_by_name(self, owner_id: str, name: str) -> EventSchema | None:
        for schema in self.rows.values():
            if schema.owner_id == owner_id and schema.name == name:
                return schema
        return None

    def list_schemas(self, owner_id: str) -> list[EventSchema]:
        return sorted(
            (s for s in self.rows.values() if s.owner_id == owner_id), key=lambda s: s.name
        )

    def update_schema(self, owner_id: str, schema_id: str, changes: dict[str, Any]) -> EventSchema | None:
        current = self.get_schema(owner_id, schema_id)
        if current is None:
            return None
        updated = EventSchema.model_validate({**current.model_dump(), **changes})
        self.rows[schema_id] = updated
        return updated

    def delete_schema(self, owner_id: str, schema_id: str) -> bool:
        if self.get_schema(owner_id, schema_id) is None:
            return False
        del self.rows[schema_id]
        return True


class RecordingCursor:
    def __init__(self, conn: RecordingConnection) -> None:
        self.conn = conn
        self.rowcount = conn.rowcount

    def __enter__(self) -> RecordingCursor:
        return self

    def __exit__(self, *exc: object) -> None:
        return None

    def execute(self, sql: str, params: Any = None) -> None:
        self.conn.executed.append((sql, params))
        if self.conn.error is not None:
            raise self.conn.error

    def fetchone(self) -> tuple | None:
        return self.conn.rows[0] if self.conn.rows else None

    def fetchall(self) -> list[tuple]:
        return list(self.conn.rows)


class RecordingConnection:
    """Quacks like a psycopg connection; records every statement."""

    def __init__(
        self,
        rows: list[tuple] | None = None,
        rowcount: int = 0,
        error: Exception | None = None,
    ) -> None:
        self.rows = rows or []
        self.rowcount = rowcount
        self.error = error
        self.executed: list[tuple[str, Any]] = []
        self.commits = 0

    def __enter__(self) -> RecordingConnection:
        return self

    def __exit__(self, *exc: object) -> None:
        return None

    def cursor(self) -> RecordingCursor:
        return RecordingCursor(self)

    def commit(self) -> None:
        self.commits += 1
