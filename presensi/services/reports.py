"""Queries feeding the leaderboard and admin reports."""

from __future__ import annotations

from datetime import date, timedelta

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from ..app import db
from ..models import Attendance, Participant
from ..shared.leaderboard import (
    AbsenceReport,
    StreakReport,
    compute_absences,
    compute_streaks,
    group_by_week,
    records_from_rows,
    trailing_weeks,
    unique_participants,
)
from ..shared.time import event_weekday, today_in_zone, week_start

TOTAL_RANGES = {"30d": 30, "90d": 90}


def _rows_between(start: date | None = None, end: date | None = None):
    query = Attendance.query.options(joinedload(Attendance.participant))
    if start is not None:
        query = query.filter(Attendance.event_date >= start)
    if end is not None:
        query = query.filter(Attendance.event_date <= end)
    return query.all()


def total_start(range_name: str | None, today: date) -> date | None:
    days = TOTAL_RANGES.get(range_name or "")
    if days is None:
        return None
    return today - timedelta(days=days)


def attendance_totals(start: date | None = None, limit: int | None = None) -> list[dict]:
    """Attendance count per participant since ``start``, highest first."""

    count = func.count(Attendance.id)
    query = (
        db.session.query(Attendance.participant_id, Participant.name, count)
        .join(Participant, Attendance.participant_id == Participant.id)
        .group_by(Attendance.participant_id, Participant.name)
        .order_by(count.desc(), Participant.name.asc())
    )
    if start is not None:
        query = query.filter(Attendance.event_date >= start)
    if limit is not None:
        query = query.limit(limit)
    return [
        {"participantId": participant_id, "name": name, "total": total}
        for participant_id, name, total in query.all()
    ]


def streak_report() -> StreakReport:
    return compute_streaks(records_from_rows(_rows_between()), event_weekday())


def absence_report(weeks: int, today: date | None = None) -> tuple[AbsenceReport, date, date]:
    today = today or today_in_zone()
    start, end = trailing_weeks(today, weeks, event_weekday())
    records = records_from_rows(_rows_between(start, end))
    roster = Participant.query.order_by(Participant.name.asc()).all()
    return compute_absences(records, roster, start=start, end=end), start, end


def weekly_groups(weeks: int, today: date | None = None):
    today = today or today_in_zone()
    start, _ = trailing_weeks(today, weeks, event_weekday())
    records = records_from_rows(_rows_between(start, today))
    return group_by_week(records, event_weekday())


def lucky_draw(today: date | None = None) -> dict | None:
    """Participants of the latest week with check-ins before the current one."""

    today = today or today_in_zone()
    weekday = event_weekday()
    current_week = week_start(today, weekday)
    latest = (
        db.session.query(func.max(Attendance.event_date))
        .filter(Attendance.event_date < current_week)
        .scalar()
    )
    if latest is None:
        return None
    start = week_start(latest, weekday)
    end = start + timedelta(days=6)
    records = records_from_rows(_rows_between(start, end))
    return {
        "start": start,
        "end": end,
        "sessionDates": sorted({r.event_date.isoformat() for r in records}),
        "participants": unique_participants(records),
    }
