"""
Pydantic models used across the backend.

Input shapes (`*Create`, `*Update`, `ImportRecord`) validate data at the
service boundary; output shapes (`Event`, `EventSchema`, reports) are
what repositories return and routes serialize.

Guidelines:
- `EventData` is the open payload model: an ordered mapping from string
  keys to scalar values. It is never checked against an `EventSchema`.
- Update models use `extra="forbid"` so immutable fields (`name`,
  `owner_id`, `created_at`, ...) are rejected instead of silently dropped.
"""

from enum import Enum
from typing import Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    computed_field,
    field_validator,
)


Scalar = Union[bool, int, float, str]
EventData = Dict[str, Scalar]


def _dedupe(values: List[str]) -> List[str]:
    return list(dict.fromkeys(values))


class EventSource(str, Enum):
    MANUAL = "manual"
    CSV_IMPORT = "csv_import"
    JSON_IMPORT = "json_import"


# --------------------------------------------------------------------------
# Events
# --------------------------------------------------------------------------


class EventCreate(BaseModel):
    """Input shape for logging a single event.

    `timestamp` is epoch milliseconds; the service fills in "now" when it
    is omitted. `source` defaults to `manual`.
    """

    model_config = ConfigDict(extra="forbid")

    event_type: str = Field(min_length=1)
    timestamp: Optional[StrictInt] = None
    data: Optional[EventData] = None
    tags: List[str] = Field(default_factory=list)
    source: EventSource = EventSource.MANUAL

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, v):
        return _dedupe(v)


class EventUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    event_type: Optional[str] = Field(default=None, min_length=1)
    timestamp: Optional[StrictInt] = None
    data: Optional[EventData] = None
    tags: Optional[List[str]] = None

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, v):
        return None if v is None else _dedupe(v)


class Event(BaseModel):
    id: str
    owner_id: str
    timestamp: int
    event_type: str
    data: Optional[EventData] = None
    tags: List[str] = Field(default_factory=list)
    source: EventSource
    created_at: int


class EventQuery(BaseModel):
    """Filters for listing events. `start`/`end` are inclusive epoch ms."""

    event_type: Optional[str] = None
    start: Optional[int] = None
    end: Optional[int] = None
    tags: List[str] = Field(default_factory=list)
    limit: int = 100
    offset: int = Field(default=0, ge=0)


# --------------------------------------------------------------------------
# Imports
# --------------------------------------------------------------------------


class ImportRecord(BaseModel):
    """One record of a bulk import, after transport decoding.

    Unknown keys (including a caller-supplied `source`) are ignored; the
    import mode decides provenance.
    """

    timestamp: Union[StrictInt, StrictFloat, str]
    event_type: str = Field(min_length=1)
    data: Optional[EventData] = None
    tags: Optional[List[str]] = None


class RowFailure(BaseModel):
    label: str
    position: int
    message: str

    def describe(self) -> str:
        return f"{self.label} {self.position}: {self.message}"


class ImportReport(BaseModel):
    imported: int = 0
    total: int = 0
    failures: List[RowFailure] = Field(default_factory=list)

    @property
    def errors(self) -> List[str]:
        return [f.describe() for f in self.failures]


class ImportResponse(BaseModel):
    imported: int
    total: int
    errors: List[str]


class PreviewRow(BaseModel):
    line: int
    timestamp: Optional[int] = None
    event_type: Optional[str] = None
    data: Optional[EventData] = None
    tags: Optional[List[str]] = None
    error: Optional[str] = None


class PreviewReport(BaseModel):
    valid: bool
    columns: List[str]
    total_rows: int
    preview: List[PreviewRow] = Field(default_factory=list)
    error: Optional[str] = None


# --------------------------------------------------------------------------
# Schemas
# --------------------------------------------------------------------------


FieldType = Literal["string", "number", "decimal", "boolean", "date", "datetime"]

SCHEMA_NAME_PATTERN = r"^[a-z0-9_]+$"


class FieldDefinition(BaseModel):
    name: str = Field(min_length=1)
    label: str = Field(min_length=1)
    type: FieldType
    required: bool = False
    primary: bool = False
    unit: Optional[str] = None


class SchemaCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, pattern=SCHEMA_NAME_PATTERN)
    label: str = Field(min_length=1)
    fields: List[FieldDefinition] = Field(min_length=1)
    icon: Optional[str] = None
    color: Optional[str] = None
    default_tags: List[str] = Field(default_factory=list)

    @field_validator("default_tags")
    @classmethod
    def _dedupe_tags(cls, v):
        return _dedupe(v)


class SchemaUpdate(BaseModel):
    """Partial update. `name` is deliberately absent: it is immutable."""

    model_config = ConfigDict(extra="forbid")

    label: Optional[str] = Field(default=None, min_length=1)
    fields: Optional[List[FieldDefinition]] = Field(default=None, min_length=1)
    icon: Optional[str] = None
    color: Optional[str] = None
    default_tags: Optional[List[str]] = None


class EventSchema(BaseModel):
    id: str
    owner_id: str
    name: str
    label: str
    fields: List[FieldDefinition]
    icon: Optional[str] = None
    color: Optional[str] = None
    default_tags: List[str] = Field(default_factory=list)
    created_at: int

    @computed_field
    @property
    def chart_field(self) -> Optional[str]:
        """Name of the field the UI charts by default: primary first, then numeric."""

        for f in self.fields:
            if f.primary:
                return f.name
        for f in self.fields:
            if f.type in ("number", "decimal"):
                return f.name
        return None
