"""Attendance aggregation: streaks, absences and weekly groups.

Everything here works on plain records and never touches the database, so the
report routes can feed it whatever rows they selected.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

from .time import SUNDAY, event_date_key, is_occurrence_day, week_start

ONE_WEEK = timedelta(days=7)


@dataclass(frozen=True)
class AttendanceRecord:
    participant_id: int
    name: str
    event_date: date
    address: Optional[str] = None


def records_from_rows(rows: Iterable) -> list[AttendanceRecord]:
    """Flatten ``Attendance`` rows (with their participant) into records."""
    return [
        AttendanceRecord(
            participant_id=row.participant_id,
            name=row.participant.name,
            event_date=row.event_date,
            address=row.participant.address,
        )
        for row in rows
    ]


def _name_key(name: str) -> str:
    return (name or "").casefold()


@dataclass
class StreakRow:
    participant_id: int
    name: str
    best_streak: int = 0
    current_streak: int = 0

    def to_dict(self) -> dict:
        return {
            "participantId": self.participant_id,
            "name": self.name,
            "bestStreak": self.best_streak,
            "currentStreak": self.current_streak,
        }


@dataclass
class StreakReport:
    rows: list[StreakRow]
    last_occurrence: Optional[date]


def compute_streaks(
    records: Iterable[AttendanceRecord], weekday: int = SUNDAY
) -> StreakReport:
    """Best and current runs of consecutive weekly occurrences per participant.

    Only dates falling on ``weekday`` count; other dates neither extend nor
    break a run. The current run is anchored at the latest qualifying date
    recorded by anyone.
    """

    names: dict[int, str] = {}
    dates: dict[int, set[date]] = defaultdict(set)
    last_occurrence: Optional[date] = None

    for record in records:
        if not is_occurrence_day(record.event_date, weekday):
            continue
        names.setdefault(record.participant_id, record.name)
        dates[record.participant_id].add(record.event_date)
        if last_occurrence is None or record.event_date > last_occurrence:
            last_occurrence = record.event_date

    rows: list[StreakRow] = []
    for participant_id, attended in dates.items():
        ordered = sorted(attended)
        best = run = 0
        for idx, current in enumerate(ordered):
            if idx and current - ordered[idx - 1] == ONE_WEEK:
                run += 1
            else:
                run = 1
            best = max(best, run)

        current_run = 0
        if last_occurrence in attended:
            current_run = 1
            cursor = last_occurrence - ONE_WEEK
            while cursor in attended:
                current_run += 1
                cursor -= ONE_WEEK

        rows.append(
            StreakRow(
                participant_id=participant_id,
                name=names[participant_id],
                best_streak=best,
                current_streak=current_run,
            )
        )

    rows.sort(
        key=lambda r: (-r.best_streak, -r.current_streak, _name_key(r.name))
    )
    return StreakReport(rows=rows, last_occurrence=last_occurrence)


@dataclass
class AbsenceRow:
    participant_id: int
    name: str
    attended: int
    absent: int

    def to_dict(self) -> dict:
        return {
            "participantId": self.participant_id,
            "name": self.name,
            "attended": self.attended,
            "absent": self.absent,
        }


@dataclass
class AbsenceReport:
    session_dates: list[str]
    rows: list[AbsenceRow]

    @property
    def sessions_count(self) -> int:
        return len(self.session_dates)


def compute_absences(
    records: Iterable[AttendanceRecord],
    participants: Iterable,
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
    only_absent: bool = True,
) -> AbsenceReport:
    """Count attended/missed sessions for every participant on the roster.

    A session "occurred" when anyone checked in on that date inside
    ``[start, end]``; dates nobody attended are never counted as missed.
    ``participants`` are objects with ``id`` and ``name``.
    """

    attended_by: dict[int, set[str]] = defaultdict(set)
    session_keys: set[str] = set()
    for record in records:
        if start is not None and record.event_date < start:
            continue
        if end is not None and record.event_date > end:
            continue
        key = event_date_key(record.event_date)
        session_keys.add(key)
        attended_by[record.participant_id].add(key)

    sessions_count = len(session_keys)
    rows = []
    for participant in participants:
        present = len(attended_by.get(participant.id, ()))
        absent = max(sessions_count - present, 0) if sessions_count else 0
        row = AbsenceRow(
            participant_id=participant.id,
            name=participant.name,
            attended=present,
            absent=absent,
        )
        if only_absent and row.absent <= 0:
            continue
        rows.append(row)

    rows.sort(key=lambda r: (-r.absent, _name_key(r.name)))
    return AbsenceReport(session_dates=sorted(session_keys), rows=rows)


@dataclass
class WeeklyParticipant:
    participant_id: int
    name: str
    address: Optional[str]
    attended_dates: list[str]

    @property
    def attended_sessions(self) -> int:
        return len(self.attended_dates)

    def to_dict(self) -> dict:
        return {
            "participantId": self.participant_id,
            "name": self.name,
            "address": self.address,
            "attendedSessions": self.attended_sessions,
            "attendedDates": list(self.attended_dates),
        }


@dataclass
class WeeklyGroup:
    week_start: date
    week_end: date
    session_dates: list[str] = field(default_factory=list)
    participants: list[WeeklyParticipant] = field(default_factory=list)
    total_attendance: int = 0

    @property
    def sessions_count(self) -> int:
        return len(self.session_dates)

    @property
    def unique_participants(self) -> int:
        return len(self.participants)

    def to_dict(self) -> dict:
        return {
            "weekStart": event_date_key(self.week_start),
            "weekEnd": event_date_key(self.week_end),
            "sessionDates": list(self.session_dates),
            "sessionsCount": self.sessions_count,
            "uniqueParticipants": self.unique_participants,
            "totalAttendance": self.total_attendance,
            "participants": [p.to_dict() for p in self.participants],
        }


def group_by_week(
    records: Iterable[AttendanceRecord], weekday: int = SUNDAY
) -> list[WeeklyGroup]:
    """Bucket records into 7-day weeks starting on ``weekday``, newest first."""

    buckets: dict[date, dict] = {}
    for record in records:
        start = week_start(record.event_date, weekday)
        bucket = buckets.setdefault(
            start,
            {"sessions": set(), "people": {}, "total": 0},
        )
        key = event_date_key(record.event_date)
        bucket["total"] += 1
        bucket["sessions"].add(key)
        person = bucket["people"].setdefault(
            record.participant_id,
            {"name": record.name, "address": record.address, "dates": set()},
        )
        person["dates"].add(key)

    groups = []
    for start, bucket in buckets.items():
        people = [
            WeeklyParticipant(
                participant_id=participant_id,
                name=info["name"],
                address=info["address"],
                attended_dates=sorted(info["dates"]),
            )
            for participant_id, info in bucket["people"].items()
        ]
        people.sort(key=lambda p: (-p.attended_sessions, _name_key(p.name)))
        groups.append(
            WeeklyGroup(
                week_start=start,
                week_end=start + timedelta(days=6),
                session_dates=sorted(bucket["sessions"]),
                participants=people,
                total_attendance=bucket["total"],
            )
        )
    groups.sort(key=lambda g: g.week_start, reverse=True)
    return groups


def trailing_weeks(today: date, weeks: int, weekday: int = SUNDAY) -> tuple[date, date]:
    """First day of the oldest week and last day of the current week."""
    current = week_start(today, weekday)
    return current - ONE_WEEK * (weeks - 1), current + timedelta(days=6)


def unique_participants(records: Sequence[AttendanceRecord]) -> list[dict]:
    """Distinct participants among ``records``, sorted by name."""
    seen: dict[int, dict] = {}
    for record in records:
        seen.setdefault(
            record.participant_id,
            {
                "participantId": record.participant_id,
                "name": record.name,
                "address": record.address,
            },
        )
    return sorted(seen.values(), key=lambda p: _name_key(p["name"]))
