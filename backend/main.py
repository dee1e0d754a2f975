import logging
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from fastapi.concurrency import run_in_threadpool

from errors import (
    ConflictError,
    NotFoundError,
    RowError,
    StructuralError,
    ValidationError,
)
from models import EventCreate, EventQuery, ImportResponse, PreviewReport, SchemaCreate
from repo_events import EventRepo
from repo_schemas import SchemaRepo
from service_events import EventService
from service_import import ImportService
from service_schemas import SchemaService
from settings import settings

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="LifeLogs Backend")

# Instantiate the repos + services here so the routes remain thin. Tests
# swap them out through `app.dependency_overrides`.
event_svc = EventService(EventRepo())
schema_svc = SchemaService(SchemaRepo())
import_svc = ImportService(event_svc)


def get_event_service() -> EventService:
    return event_svc


def get_schema_service() -> SchemaService:
    return schema_svc


def get_import_service() -> ImportService:
    return import_svc


def get_owner_id(x_owner_id: str = Header(..., min_length=1)) -> str:
    """Owner id supplied by the upstream identity layer; trusted as-is."""

    return x_owner_id


@app.exception_handler(NotFoundError)
def _not_found(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(ConflictError)
def _conflict(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"error": str(exc)})


@app.exception_handler(ValidationError)
@app.exception_handler(StructuralError)
@app.exception_handler(RowError)
def _bad_request(request: Request, exc: Exception):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.get("/health")
def health(svc: EventService = Depends(get_event_service)):
    try:
        svc.health_check()
        return {"ok": True}
    except Exception as e:
        logger.exception("DB health check failed")
        raise HTTPException(status_code=500, detail=f"DB health check failed: {e}")


# --------------------------------------------------------------------------
# events
# --------------------------------------------------------------------------


@app.get("/api/events")
def list_events(
    event_type: Optional[str] = None,
    start: Optional[int] = None,
    end: Optional[int] = None,
    tags: Optional[str] = Query(None, description="comma-separated; all must match"),
    limit: int = settings.default_list_limit,
    offset: int = Query(0, ge=0),
    owner_id: str = Depends(get_owner_id),
    svc: EventService = Depends(get_event_service),
):
    tag_list = [t.strip() for t in tags.split(",") if t.strip()] if tags else []
    query = EventQuery(
        event_type=event_type,
        start=start,
        end=end,
        tags=tag_list,
        limit=limit,
        offset=offset,
    )
    events = svc.list(owner_id, query)
    return {
        "events": events,
        "meta": {
            "limit": svc.clamp_limit(limit),
            "offset": offset,
            "count": len(events),
        },
    }


@app.post("/api/events", status_code=201)
def create_event(
    payload: EventCreate,
    owner_id: str = Depends(get_owner_id),
    svc: EventService = Depends(get_event_service),
):
    return {"event": svc.create(owner_id, payload)}


@app.get("/api/events/types/list")
def list_event_types(
    owner_id: str = Depends(get_owner_id),
    svc: EventService = Depends(get_event_service),
):
    return {"types": svc.list_types(owner_id)}


@app.get("/api/events/{event_id}")
def get_event(
    event_id: str,
    owner_id: str = Depends(get_owner_id),
    svc: EventService = Depends(get_event_service),
):
    return {"event": svc.get(owner_id, event_id)}


@app.patch("/api/events/{event_id}")
def update_event(
    event_id: str,
    changes: Any = Body(...),
    owner_id: str = Depends(get_owner_id),
    svc: EventService = Depends(get_event_service),
):
    # validated inside the service, after the existence check
    return {"event": svc.update(owner_id, event_id, changes)}


@app.delete("/api/events/{event_id}")
def delete_event(
    event_id: str,
    owner_id: str = Depends(get_owner_id),
    svc: EventService = Depends(get_event_service),
):
    svc.delete(owner_id, event_id)
    return {"success": True}


# --------------------------------------------------------------------------
# schemas
# --------------------------------------------------------------------------


@app.get("/api/schemas")
def list_schemas(
    owner_id: str = Depends(get_owner_id),
    svc: SchemaService = Depends(get_schema_service),
):
    return {"schemas": svc.list(owner_id)}


@app.post("/api/schemas", status_code=201)
def create_schema(
    payload: SchemaCreate,
    owner_id: str = Depends(get_owner_id),
    svc: SchemaService = Depends(get_schema_service),
):
    return {"schema": svc.create(owner_id, payload)}


@app.get("/api/schemas/by-name/{name}")
def get_schema_by_name(
    name: str,
    owner_id: str = Depends(get_owner_id),
    svc: SchemaService = Depends(get_schema_service),
):
    return {"schema": svc.get_by_name(owner_id, name)}


@app.get("/api/schemas/{schema_id}")
def get_schema(
    schema_id: str,
    owner_id: str = Depends(get_owner_id),
    svc: SchemaService = Depends(get_schema_service),
):
    return {"schema": svc.get(owner_id, schema_id)}


@app.patch("/api/schemas/{schema_id}")
def update_schema(
    schema_id: str,
    changes: Any = Body(...),
    owner_id: str = Depends(get_owner_id),
    svc: SchemaService = Depends(get_schema_service),
):
    return {"schema": svc.update(owner_id, schema_id, changes)}


@app.delete("/api/schemas/{schema_id}")
def delete_schema(
    schema_id: str,
    owner_id: str = Depends(get_owner_id),
    svc: SchemaService = Depends(get_schema_service),
):
    svc.delete(owner_id, schema_id)
    return {"success": True}


# --------------------------------------------------------------------------
# import
# --------------------------------------------------------------------------


@app.post("/api/import/json", response_model=ImportResponse)
def import_json(
    payload: Any = Body(...),
    owner_id: str = Depends(get_owner_id),
    svc: ImportService = Depends(get_import_service),
):
    report = svc.import_json(owner_id, payload)
    return ImportResponse(imported=report.imported, total=report.total, errors=report.errors)


async def _read_text(request: Request) -> str:
    body = await request.body()
    try:
        return body.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValidationError("CSV body must be UTF-8 text") from e


@app.post("/api/import/csv", response_model=ImportResponse)
async def import_csv(
    request: Request,
    owner_id: str = Depends(get_owner_id),
    svc: ImportService = Depends(get_import_service),
):
    text = await _read_text(request)
    report = await run_in_threadpool(svc.import_text, owner_id, text)
    return ImportResponse(imported=report.imported, total=report.total, errors=report.errors)


@app.post("/api/import/csv/preview", response_model=PreviewReport)
async def preview_csv(
    request: Request,
    owner_id: str = Depends(get_owner_id),
    svc: ImportService = Depends(get_import_service),
):
    text = await _read_text(request)
    return await run_in_threadpool(svc.preview_text, text)
