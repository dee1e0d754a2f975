"""
Bulk import pipeline.

Two transports feed the same per-record path:

- structured JSON (`import_json`): `{"events": [...]}` or a bare list;
- delimited text (`import_text`): a header line naming the columns,
  then one record per line.

Every record is validated, its timestamp normalized, and then written
through `EventService`, one at a time and in input order. A record that
fails raises `RowError`; the failure is recorded against its 1-based
position (`Event n` for JSON, physical `Line n` for text with the
header as line 1) and the batch carries on. Rows already written stay
written; there is no rollback.

Anything that is not a `RowError` (a dropped DB connection, for
example) aborts the whole call and propagates to the caller, so an
infrastructure outage is never blamed on whichever row happened to be
running.

`preview_text` runs the text path over the first few rows without
writing anything.
"""

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError as PydanticValidationError

from delimited import parse_line, split_lines
from errors import (
    DelimitedTextError,
    InvalidTimestamp,
    RowError,
    StructuralError,
    ValidationError,
)
from models import (
    EventSource,
    ImportRecord,
    ImportReport,
    PreviewReport,
    PreviewRow,
    RowFailure,
)
from service_events import EventService, validation_message
from settings import settings
from timestamps import normalize


logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("timestamp", "event_type")

_NUMERIC = re.compile(r"^-?\d+(\.\d+)?$")


class NormalizedRecord:
    """An import record that is ready to be stored."""

    def __init__(self, record: ImportRecord):
        self.timestamp = normalize(record.timestamp)
        self.event_type = record.event_type
        self.data = record.data
        self.tags = list(dict.fromkeys(record.tags or []))


class TextLayout:
    """Column positions found in a delimited-text header line."""

    def __init__(self, columns: List[str]):
        self.columns = columns
        self.missing = [c for c in REQUIRED_COLUMNS if c not in columns]
        self.timestamp_idx = self._index("timestamp")
        self.event_type_idx = self._index("event_type")
        self.data_idx = self._index("data")
        self.tags_idx = self._index("tags")

    def _index(self, name: str) -> Optional[int]:
        return self.columns.index(name) if name in self.columns else None

    def to_record(self, line: str) -> ImportRecord:
        """Map one data line onto the structured record shape."""

        values = parse_line(line)

        def cell(idx: Optional[int]) -> str:
            if idx is None or idx >= len(values):
                return ""
            return values[idx]

        raw_timestamp = cell(self.timestamp_idx)
        if not raw_timestamp:
            raise InvalidTimestamp("Missing timestamp")
        event_type = cell(self.event_type_idx)
        if not event_type:
            raise RowError("Missing event_type")

        raw: Dict[str, Any] = {
            "timestamp": _numeric_or_text(raw_timestamp),
            "event_type": event_type,
        }
        data = _decode_cell(cell(self.data_idx), "data", dict)
        if data is not None:
            raw["data"] = data
        tags = _decode_cell(cell(self.tags_idx), "tags", list)
        if tags is not None:
            raw["tags"] = tags
        return validate_record(raw)


def validate_record(raw: Any) -> ImportRecord:
    if not isinstance(raw, dict):
        raise RowError("Record must be an object")
    try:
        return ImportRecord.model_validate(raw)
    except PydanticValidationError as e:
        raise RowError(validation_message(e)) from e


def extract_records(payload: Any) -> List[Any]:
    """Accept `{"events": [...]}` or a bare array; reject anything else."""

    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("events"), list):
        return payload["events"]
    raise ValidationError('Expected {"events": [...]} or a JSON array of events')


def _numeric_or_text(value: str):
    if _NUMERIC.match(value):
        return float(value) if "." in value else int(value)
    return value


def _decode_cell(value: str, column: str, expected: type):
    if not value:
        return None
    try:
        decoded = json.loads(value)
    except json.JSONDecodeError as e:
        raise RowError(f"Invalid JSON in {column} column") from e
    if not isinstance(decoded, expected):
        kind = "an object" if expected is dict else "an array"
        raise RowError(f"{column} column must be {kind}")
    return decoded


class ImportService:
    """Drives normalization and storage for bulk imports.

    Example usage:
        svc = ImportService(EventService(EventRepo()))
        report = svc.import_text("owner-1", open("log.csv").read())
        print(report.imported, report.errors)
    """

    def __init__(self, events: EventService):
        self.events = events

    # ------------------------------------------------------------------
    # structured
    # ------------------------------------------------------------------

    def import_json(self, owner_id: str, payload: Any) -> ImportReport:
        records = extract_records(payload)
        return self.import_records(owner_id, records)

    def import_records(
        self,
        owner_id: str,
        records: Sequence[Any],
        source: EventSource = EventSource.JSON_IMPORT,
    ) -> ImportReport:
        items = list(enumerate(records, start=1))
        return self._run(owner_id, items, validate_record, source, "Event")

    # ------------------------------------------------------------------
    # delimited text
    # ------------------------------------------------------------------

    def import_text(self, owner_id: str, text: str) -> ImportReport:
        layout, rows = _split_text(text)
        if layout.missing:
            raise StructuralError(
                f"Missing required column: {', '.join(layout.missing)}"
            )
        return self._run(
            owner_id, rows, layout.to_record, EventSource.CSV_IMPORT, "Line"
        )

    def preview_text(self, text: str) -> PreviewReport:
        """Normalize the first few rows without writing anything."""

        layout, rows = _split_text(text)
        if layout.missing:
            return PreviewReport(
                valid=False,
                columns=layout.columns,
                total_rows=len(rows),
                error=f"Missing required columns: {', '.join(layout.missing)}",
            )

        preview = []
        for line_no, line in rows[: settings.preview_rows]:
            try:
                record = NormalizedRecord(layout.to_record(line))
            except RowError as e:
                preview.append(PreviewRow(line=line_no, error=str(e)))
                continue
            preview.append(
                PreviewRow(
                    line=line_no,
                    timestamp=record.timestamp,
                    event_type=record.event_type,
                    data=record.data,
                    tags=record.tags,
                )
            )

        return PreviewReport(
            valid=True,
            columns=layout.columns,
            total_rows=len(rows),
            preview=preview,
        )

    # ------------------------------------------------------------------

    def _run(
        self,
        owner_id: str,
        items: List[Tuple[int, Any]],
        to_record: Callable[[Any], ImportRecord],
        source: EventSource,
        label: str,
    ) -> ImportReport:
        if len(items) > settings.max_batch_size:
            raise ValidationError(
                f"Too many events in one request: {len(items)} (max {settings.max_batch_size})"
            )

        report = ImportReport(total=len(items))
        for position, raw in items:
            try:
                record = NormalizedRecord(to_record(raw))
                self.events.create_from_import(
                    owner_id,
                    event_type=record.event_type,
                    timestamp=record.timestamp,
                    data=record.data,
                    tags=record.tags,
                    source=source,
                )
            except RowError as e:
                report.failures.append(
                    RowFailure(label=label, position=position, message=str(e))
                )
                logger.debug("%s import: %s %d rejected: %s", source.value, label, position, e)
            except Exception:
                logger.exception(
                    "%s import aborted at %s %d after %d rows",
                    source.value, label, position, report.imported,
                )
                raise
            else:
                report.imported += 1

        logger.info(
            "%s import for owner %s: %d/%d imported, %d errors",
            source.value, owner_id, report.imported, report.total, len(report.failures),
        )
        return report


def _split_text(text: str) -> Tuple[TextLayout, List[Tuple[int, str]]]:
    lines = list(split_lines(text))
    if len(lines) < 2:
        raise ValidationError("CSV must have at least a header and one data row")

    _, header = lines[0]
    try:
        columns = parse_line(header)
    except DelimitedTextError as e:
        raise StructuralError(f"Invalid header: {e}") from e
    return TextLayout(columns), lines[1:]
