"""
Import a local CSV or JSON file for one owner.

Usage:
    python import_file.py <owner_id> <path_to_file.csv|.json>

The file extension picks the transport. Rows are written one by one
through `ImportService`, exactly like the HTTP import routes, and the
per-row errors are printed at the end. The exit status is non-zero only
when the whole file is rejected (bad shape, missing column, ...).
"""

import json
import logging
import sys
from pathlib import Path

from errors import StructuralError, ValidationError
from repo_events import EventRepo
from service_events import EventService
from service_import import ImportService
from settings import settings


def run(owner_id: str, path: Path, svc: ImportService):
    text = path.read_text(encoding="utf-8-sig")
    suffix = path.suffix.lower()
    if suffix == ".json":
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON file: {e}") from e
        return svc.import_json(owner_id, payload)
    if suffix == ".csv":
        return svc.import_text(owner_id, text)
    raise ValidationError(f"Unsupported file type: {suffix or '(none)'}")


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 2:
        print("Usage: python import_file.py <owner_id> <path_to_file.csv|.json>")
        return 1

    logging.basicConfig(level=settings.log_level)
    owner_id, path = argv[0], Path(argv[1])
    print(f"Importing {path} for owner {owner_id}")

    svc = ImportService(EventService(EventRepo()))
    try:
        report = run(owner_id, path, svc)
    except (ValidationError, StructuralError) as e:
        print(f"Import rejected: {e}")
        return 2

    for err in report.errors:
        print(f"  {err}")
    print(f"Import complete. Imported {report.imported} of {report.total} events.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
