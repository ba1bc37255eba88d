from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from ..app import db
from ..models import Attendance, Participant
from ..shared.time import InvalidEventDate, to_event_date
from .errors import (
    DuplicateRecordError,
    InputValidationError,
    RecordNotFoundError,
    commit,
)

CREATED = "CREATED"
ALREADY_PRESENT = "ALREADY_PRESENT"

RANGES = ("single", "last30", "year", "all")


@dataclass
class CheckInResult:
    status: str
    record: Attendance

    @property
    def created(self) -> bool:
        return self.status == CREATED


def parse_event_date(value: str | None) -> date:
    try:
        return to_event_date(value)
    except InvalidEventDate as exc:
        raise InputValidationError(str(exc), code="INVALID_DATE") from exc


def _get_participant(participant_id: int) -> Participant:
    participant = db.session.get(Participant, participant_id)
    if participant is None:
        raise RecordNotFoundError(
            f"participant {participant_id} not found", code="PARTICIPANT_NOT_FOUND"
        )
    return participant


def _find(participant_id: int, event_date: date) -> Attendance | None:
    return (
        Attendance.query.options(joinedload(Attendance.participant))
        .filter_by(participant_id=participant_id, event_date=event_date)
        .one_or_none()
    )


def check_in(
    participant_id: int, event_date: date, device_id: str | None = None
) -> CheckInResult:
    """Record attendance once per participant and session date.

    A second check-in, including one that loses an insert race, returns the
    existing row with ``ALREADY_PRESENT``.
    """

    _get_participant(participant_id)
    existing = _find(participant_id, event_date)
    if existing:
        return CheckInResult(ALREADY_PRESENT, existing)

    record = Attendance(
        participant_id=participant_id,
        event_date=event_date,
        device_id=device_id or None,
    )
    db.session.add(record)
    try:
        commit()
    except DuplicateRecordError:
        existing = _find(participant_id, event_date)
        if existing is None:
            raise
        return CheckInResult(ALREADY_PRESENT, existing)
    return CheckInResult(CREATED, record)


def get_attendance(attendance_id: int) -> Attendance:
    record = db.session.get(Attendance, attendance_id)
    if record is None:
        raise RecordNotFoundError(f"attendance {attendance_id} not found")
    return record


def update_attendance(
    attendance_id: int, participant_id: int, event_date: date | None = None
) -> Attendance:
    """Reassign a check-in to another participant and/or correct its date."""

    record = get_attendance(attendance_id)
    _get_participant(participant_id)
    record.participant_id = participant_id
    if event_date is not None:
        record.event_date = event_date
    commit()
    db.session.refresh(record)
    return record


def delete_attendance(attendance_id: int) -> None:
    record = get_attendance(attendance_id)
    db.session.delete(record)
    commit()


def date_window(
    range_name: str | None, today: date, single: date | None = None
) -> tuple[date | None, date | None] | None:
    """Inclusive ``(start, end)`` bounds for a named range.

    ``None`` means no date filter at all.
    """

    if range_name == "all":
        return None
    if range_name == "last30":
        return today - timedelta(days=29), today
    if range_name == "year":
        return date(today.year, 1, 1), today
    if single is not None:
        return single, single
    return None


def query_attendance(
    *,
    window: tuple[date | None, date | None] | None = None,
    name_query: str | None = None,
    attendance_id: int | None = None,
    limit: int | None = None,
):
    query = Attendance.query.options(joinedload(Attendance.participant)).join(
        Participant, Attendance.participant_id == Participant.id
    )
    if window is not None:
        start, end = window
        if start is not None:
            query = query.filter(Attendance.event_date >= start)
        if end is not None:
            query = query.filter(Attendance.event_date <= end)
    if attendance_id is not None:
        query = query.filter(Attendance.id == attendance_id)
    if name_query:
        query = query.filter(
            func.lower(Participant.name).contains(name_query.lower(), autoescape=True)
        )
    query = query.order_by(Attendance.created_at.desc(), Attendance.id.desc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()
