import psycopg
import pytest
from psycopg import errors as pg_errors

from errors import ConflictError, RowError
from models import Event, EventQuery, EventSchema, EventSource
from repo_events import EventRepo
from repo_schemas import SchemaRepo
from tests.support.fakes import RecordingConnection


EVENT_ROW = ("e1", "alice", 1700000000000, "mood", {"score": 7}, ["am"], "manual", 1700000000001)


def _repo(cls, **kwargs):
    conn = RecordingConnection(**kwargs)
    return cls(connect=lambda: conn), conn


def test_list_events_builds_owner_scoped_containment_query():
    repo, conn = _repo(EventRepo, rows=[EVENT_ROW])

    events = repo.list_events(
        "alice",
        EventQuery(event_type="mood", start=1, end=2, tags=["health", "am"], limit=10, offset=20),
    )

    sql, params = conn.executed[0]
    assert "owner_id=%s" in sql
    assert "tags @> %s" in sql
    assert "ORDER BY timestamp DESC" in sql
    assert params[0] == "alice"
    assert params[1:4] == ["mood", 1, 2]
    assert params[4].obj == ["health", "am"]
    assert params[5:] == [10, 20]
    assert events == [
        Event(
            id="e1",
            owner_id="alice",
            timestamp=1700000000000,
            event_type="mood",
            data={"score": 7},
            tags=["am"],
            source=EventSource.MANUAL,
            created_at=1700000000001,
        )
    ]


def test_list_events_without_filters_has_no_tag_clause():
    repo, conn = _repo(EventRepo)
    repo.list_events("alice", EventQuery())
    sql, params = conn.executed[0]
    assert "@>" not in sql
    assert params == ["alice", 100, 0]


def test_update_event_only_touches_supplied_columns():
    repo, conn = _repo(EventRepo, rows=[EVENT_ROW])

    repo.update_event("alice", "e1", {"data": {"x": 1}})

    sql, params = conn.executed[0]
    assert sql.startswith("UPDATE events SET data=%s WHERE id=%s AND owner_id=%s")
    assert params[0].obj == {"x": 1}
    assert params[1:] == ["e1", "alice"]
    assert conn.commits == 1


def test_update_event_returns_none_when_no_row():
    repo, _ = _repo(EventRepo)
    assert repo.update_event("alice", "missing", {"event_type": "x"}) is None


def test_delete_event_uses_rowcount():
    repo, _ = _repo(EventRepo, rowcount=1)
    assert repo.delete_event("alice", "e1") is True
    repo, _ = _repo(EventRepo, rowcount=0)
    assert repo.delete_event("alice", "e1") is False


def test_data_error_on_insert_becomes_row_error():
    repo, _ = _repo(EventRepo, error=psycopg.DataError("invalid byte sequence"))
    event = Event(
        id="e1", owner_id="alice", timestamp=1, event_type="x",
        source=EventSource.CSV_IMPORT, created_at=1,
    )
    with pytest.raises(RowError):
        repo.insert_event(event)


def test_connection_error_on_insert_propagates():
    repo, _ = _repo(EventRepo, error=psycopg.OperationalError("connection refused"))
    event = Event(
        id="e1", owner_id="alice", timestamp=1, event_type="x",
        source=EventSource.CSV_IMPORT, created_at=1,
    )
    with pytest.raises(psycopg.OperationalError):
        repo.insert_event(event)


def test_unique_violation_becomes_conflict():
    repo, _ = _repo(SchemaRepo, error=pg_errors.UniqueViolation("duplicate key"))
    schema = EventSchema(
        id="s1",
        owner_id="alice",
        name="weight",
        label="Weight",
        fields=[{"name": "kg", "label": "Kg", "type": "decimal"}],
        created_at=1,
    )
    with pytest.raises(ConflictError):
        repo.insert_schema(schema)


def test_schema_row_decoding():
    row = ("s1", "alice", "weight", "Weight", [{"name": "kg", "label": "Kg", "type": "decimal"}],
           None, "#fff", None, 5)
    repo, conn = _repo(SchemaRepo, rows=[row])

    schema = repo.get_schema_by_name("alice", "weight")

    assert conn.executed[0][1] == ("weight", "alice")
    assert schema.fields[0].type == "decimal"
    assert schema.default_tags == []
    assert schema.color == "#fff"
