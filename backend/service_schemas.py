"""
Service layer for the schema registry.

Schemas are descriptive templates the UI uses to render input forms and
pick a chart field. Nothing here is consulted when events are written:
an event whose `event_type` matches a schema name may still carry any
data, and deleting a schema leaves its events alone.
"""

import logging
import uuid
from typing import Any, Dict, List

from pydantic import ValidationError as PydanticValidationError

from errors import NotFoundError, ValidationError
from models import EventSchema, SchemaCreate, SchemaUpdate
from repo_schemas import SchemaRepo
from service_events import validation_message
from timestamps import now_ms


logger = logging.getLogger(__name__)


class SchemaService:
    def __init__(self, repo: SchemaRepo):
        self.repo = repo

    def create(self, owner_id: str, payload: SchemaCreate) -> EventSchema:
        """Register a schema; raises `ConflictError` on a duplicate name."""

        schema = EventSchema(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            name=payload.name,
            label=payload.label,
            fields=payload.fields,
            icon=payload.icon,
            color=payload.color,
            default_tags=payload.default_tags,
            created_at=now_ms(),
        )
        created = self.repo.insert_schema(schema)
        logger.info("Created schema %r for owner %s", created.name, owner_id)
        return created

    def get(self, owner_id: str, schema_id: str) -> EventSchema:
        schema = self.repo.get_schema(owner_id, schema_id)
        if schema is None:
            raise NotFoundError("Schema not found")
        return schema

    def get_by_name(self, owner_id: str, name: str) -> EventSchema:
        schema = self.repo.get_schema_by_name(owner_id, name)
        if schema is None:
            raise NotFoundError("Schema not found")
        return schema

    def list(self, owner_id: str) -> List[EventSchema]:
        return self.repo.list_schemas(owner_id)

    def update(self, owner_id: str, schema_id: str, changes: Dict[str, Any]) -> EventSchema:
        self.get(owner_id, schema_id)

        if not isinstance(changes, dict):
            raise ValidationError("Update body must be an object")
        if "name" in changes:
            raise ValidationError("name: schema names cannot be changed")
        try:
            update = SchemaUpdate.model_validate(changes)
        except PydanticValidationError as e:
            raise ValidationError(validation_message(e)) from e

        fields = update.model_dump(exclude_unset=True)
        if not fields:
            raise ValidationError("No fields to update")
        for required in ("label", "fields"):
            if required in fields and fields[required] is None:
                raise ValidationError(f"{required}: may not be null")
        if fields.get("default_tags") is not None:
            fields["default_tags"] = list(dict.fromkeys(fields["default_tags"]))
        elif "default_tags" in fields:
            fields["default_tags"] = []

        updated = self.repo.update_schema(owner_id, schema_id, fields)
        if updated is None:
            raise NotFoundError("Schema not found")
        return updated

    def delete(self, owner_id: str, schema_id: str) -> None:
        if not self.repo.delete_schema(owner_id, schema_id):
            raise NotFoundError("Schema not found")
        logger.info("Deleted schema %s for owner %s", schema_id, owner_id)
