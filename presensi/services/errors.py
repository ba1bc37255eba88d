"""Errors raised by the service layer.

The storage helpers translate database constraint failures into these types,
so routes match on a class instead of probing driver error codes.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..app import db

_UNIQUE_SIGNATURES = ("unique constraint", "duplicate key", "duplicate entry")
_FOREIGN_KEY_SIGNATURES = ("foreign key constraint",)


class ServiceError(Exception):
    code = "SERVER_ERROR"

    def __init__(self, message: str = "", code: str | None = None):
        super().__init__(message or self.code)
        if code:
            self.code = code


class InputValidationError(ServiceError, ValueError):
    """Malformed or missing input; never retried."""

    code = "INVALID_INPUT"


class DuplicateRecordError(ServiceError):
    """A unique key (participant name, participant/date pair) already exists."""

    code = "ALREADY_PRESENT"


class RecordNotFoundError(ServiceError):
    code = "NOT_FOUND"


def classify_integrity_error(exc: IntegrityError) -> ServiceError | None:
    """Map a constraint violation to a service error, or ``None`` if unknown."""

    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None)
    if pgcode == "23505":
        return DuplicateRecordError(str(orig))
    if pgcode == "23503":
        return RecordNotFoundError(str(orig))
    message = str(orig or exc).lower()
    if any(sig in message for sig in _UNIQUE_SIGNATURES):
        return DuplicateRecordError(str(orig or exc))
    if any(sig in message for sig in _FOREIGN_KEY_SIGNATURES):
        return RecordNotFoundError(str(orig or exc))
    return None


def commit() -> None:
    """Commit the session, raising typed errors for known constraint failures."""

    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        classified = classify_integrity_error(exc)
        if classified is None:
            raise
        raise classified from exc
