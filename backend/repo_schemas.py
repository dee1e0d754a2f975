"""
Repository: SQL operations for `event_schemas`.

Same conventions as `repo_events`: SQL only, owner-scoped statements,
JSONB columns (`fields`, `default_tags`) encoded with `Jsonb` and
decoded by psycopg.

Name uniqueness per owner is enforced by the `(owner_id, name)` unique
constraint. `insert_schema` turns the resulting `UniqueViolation` into
a `ConflictError`, so two concurrent creates with the same name cannot
both succeed.
"""

from typing import Any, Dict, List, Optional

from psycopg import errors as pg_errors
from psycopg.types.json import Jsonb

from db import get_conn
from errors import ConflictError
from models import EventSchema


_COLUMNS = "id, owner_id, name, label, fields, icon, color, default_tags, created_at"

_UPDATABLE = ("label", "fields", "icon", "color", "default_tags")
_JSON_COLUMNS = ("fields", "default_tags")


class SchemaRepo:
    def __init__(self, connect=get_conn):
        self.connect = connect

    def insert_schema(self, schema: EventSchema) -> EventSchema:
        params = (
            schema.id,
            schema.owner_id,
            schema.name,
            schema.label,
            Jsonb([f.model_dump() for f in schema.fields]),
            schema.icon,
            schema.color,
            Jsonb(schema.default_tags),
            schema.created_at,
        )
        try:
            with self.connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"INSERT INTO event_schemas ({_COLUMNS}) "
                        "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)",
                        params,
                    )
                conn.commit()
        except pg_errors.UniqueViolation as e:
            raise ConflictError(
                f"Schema with name '{schema.name}' already exists"
            ) from e
        return schema

    def get_schema(self, owner_id: str, schema_id: str) -> Optional[EventSchema]:
        return self._fetch_one("id", schema_id, owner_id)

    def get_schema_by_name(self, owner_id: str, name: str) -> Optional[EventSchema]:
        return self._fetch_one("name", name, owner_id)

    def _fetch_one(self, column: str, value: str, owner_id: str) -> Optional[EventSchema]:
        with self.connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM event_schemas "
                    f"WHERE {column}=%s AND owner_id=%s",
                    (value, owner_id),
                )
                row = cur.fetchone()
        return _row_to_schema(row) if row else None

    def list_schemas(self, owner_id: str) -> List[EventSchema]:
        with self.connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM event_schemas "
                    "WHERE owner_id=%s ORDER BY name",
                    (owner_id,),
                )
                return [_row_to_schema(r) for r in cur.fetchall()]

    def update_schema(
        self, owner_id: str, schema_id: str, changes: Dict[str, Any]
    ) -> Optional[EventSchema]:
        assignments = []
        params: List[Any] = []
        for column in _UPDATABLE:
            if column not in changes:
                continue
            value = changes[column]
            if column in _JSON_COLUMNS:
                value = Jsonb(value)
            assignments.append(f"{column}=%s")
            params.append(value)

        if not assignments:
            return self.get_schema(owner_id, schema_id)

        params.extend([schema_id, owner_id])
        with self.connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"UPDATE event_schemas SET {', '.join(assignments)} "
                    f"WHERE id=%s AND owner_id=%s RETURNING {_COLUMNS}",
                    params,
                )
                row = cur.fetchone()
            conn.commit()
        return _row_to_schema(row) if row else None

    def delete_schema(self, owner_id: str, schema_id: str) -> bool:
        with self.connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM event_schemas WHERE id=%s AND owner_id=%s",
                    (schema_id, owner_id),
                )
                deleted = cur.rowcount
            conn.commit()
        return deleted > 0


def _row_to_schema(r) -> EventSchema:
    return EventSchema(
        id=r[0],
        owner_id=r[1],
        name=r[2],
        label=r[3],
        fields=r[4],
        icon=r[5],
        color=r[6],
        default_tags=r[7] or [],
        created_at=r[8],
    )
