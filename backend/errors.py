"""
Error taxonomy shared by the services and the HTTP layer.

Only `RowError` is recoverable inside an import batch: the pipeline
records it against the offending row and moves on. Everything else
aborts the operation that raised it and is mapped to an HTTP status in
`main.py`.
"""


class LifelogError(Exception):
    """Base class for all domain errors raised by this backend."""


class ValidationError(LifelogError, ValueError):
    """Malformed request shape; rejected before any row is processed."""


class StructuralError(LifelogError, ValueError):
    """Batch-wide structural problem such as a missing required column."""


class RowError(LifelogError, ValueError):
    """A single record could not be normalized or stored."""


class InvalidTimestamp(RowError):
    pass


class DelimitedTextError(RowError):
    pass


class NotFoundError(LifelogError, LookupError):
    """Record is absent or belongs to a different owner."""


class ConflictError(LifelogError):
    """Uniqueness violation, e.g. a duplicate schema name for one owner."""
