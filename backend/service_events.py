"""
Service / facade layer for events.

This module implements business rules and normalization before any DB
interaction. It is free of SQL: it calls `EventRepo` for storage. All
write paths (single events and imports) go through this service so
there is one place that assigns ids, stamps `created_at` and applies
owner scoping.

Key responsibilities:
- the owner id is an explicit argument on every call, never ambient
- defaults: timestamp = now, source = manual
- clamp list page sizes to configured limits
- existence is checked before an update payload is validated, so a
  missing id is always reported as `NotFoundError`
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from errors import NotFoundError, ValidationError
from models import Event, EventCreate, EventQuery, EventSource, EventUpdate
from repo_events import EventRepo
from settings import settings
from timestamps import now_ms


logger = logging.getLogger(__name__)


def validation_message(exc: PydanticValidationError) -> str:
    """Flatten a pydantic error into one readable line."""

    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


class EventService:
    """Business rules for the event store.

    Example usage:
        svc = EventService(EventRepo())
        svc.create("owner-1", EventCreate(event_type="mood", data={"score": 7}))
    """

    def __init__(self, repo: EventRepo):
        self.repo = repo

    def create(self, owner_id: str, payload: EventCreate) -> Event:
        now = now_ms()
        event = Event(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            timestamp=payload.timestamp if payload.timestamp is not None else now,
            event_type=payload.event_type,
            data=payload.data,
            tags=payload.tags,
            source=payload.source,
            created_at=now,
        )
        return self.repo.insert_event(event)

    def create_from_import(
        self,
        owner_id: str,
        event_type: str,
        timestamp: int,
        data: Optional[Dict[str, Any]],
        tags: List[str],
        source: EventSource,
    ) -> Event:
        """Insert an already-normalized import record."""

        return self.create(
            owner_id,
            EventCreate(
                event_type=event_type,
                timestamp=timestamp,
                data=data,
                tags=tags,
                source=source,
            ),
        )

    def get(self, owner_id: str, event_id: str) -> Event:
        event = self.repo.get_event(owner_id, event_id)
        if event is None:
            raise NotFoundError("Event not found")
        return event

    def clamp_limit(self, limit: int) -> int:
        return max(1, min(limit, settings.max_list_limit))

    def list(self, owner_id: str, query: EventQuery) -> List[Event]:
        """Return one page of events, newest first."""

        query = query.model_copy(update={"limit": self.clamp_limit(query.limit)})
        return self.repo.list_events(owner_id, query)

    def update(self, owner_id: str, event_id: str, changes: Dict[str, Any]) -> Event:
        """Replace the supplied fields of an event.

        Raises:
        - `NotFoundError` if the event does not exist for this owner,
          whatever `changes` contains
        - `ValidationError` for an empty or malformed change set
        """

        self.get(owner_id, event_id)

        if not isinstance(changes, dict):
            raise ValidationError("Update body must be an object")
        try:
            update = EventUpdate.model_validate(changes)
        except PydanticValidationError as e:
            raise ValidationError(validation_message(e)) from e

        fields = update.model_dump(exclude_unset=True)
        if not fields:
            raise ValidationError("No fields to update")
        for required in ("event_type", "timestamp"):
            if required in fields and fields[required] is None:
                raise ValidationError(f"{required}: may not be null")

        updated = self.repo.update_event(owner_id, event_id, fields)
        if updated is None:
            # deleted between the existence check and the update
            raise NotFoundError("Event not found")
        return updated

    def delete(self, owner_id: str, event_id: str) -> None:
        if not self.repo.delete_event(owner_id, event_id):
            raise NotFoundError("Event not found")
        logger.debug("Deleted event %s for owner %s", event_id, owner_id)

    def list_types(self, owner_id: str) -> List[str]:
        return self.repo.list_event_types(owner_id)

    def health_check(self) -> None:
        """Perform a lightweight DB ping via the repository."""

        self.repo.ping()
