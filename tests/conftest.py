"""
Shared pytest fixtures.

Services are wired to the in-memory fakes from `tests.support.fakes`,
so no PostgreSQL server is needed. `client` is a FastAPI `TestClient`
whose dependencies resolve to those same services.
"""

import pytest
from fastapi.testclient import TestClient

from service_events import EventService
from service_import import ImportService
from service_schemas import SchemaService
from tests.support.fakes import FakeEventRepo, FakeSchemaRepo


@pytest.fixture
def event_repo():
    return FakeEventRepo()


@pytest.fixture
def schema_repo():
    return FakeSchemaRepo()


@pytest.fixture
def event_svc(event_repo):
    return EventService(event_repo)


@pytest.fixture
def schema_svc(schema_repo):
    return SchemaService(schema_repo)


@pytest.fixture
def import_svc(event_svc):
    return ImportService(event_svc)


@pytest.fixture
def client(event_svc, schema_svc, import_svc):
    import main

    main.app.dependency_overrides[main.get_event_service] = lambda: event_svc
    main.app.dependency_overrides[main.get_schema_service] = lambda: schema_svc
    main.app.dependency_overrides[main.get_import_service] = lambda: import_svc
    try:
        yield TestClient(main.app)
    finally:
        main.app.dependency_overrides.clear()
