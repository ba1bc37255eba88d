from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional

from ..constants import (
    ATTENDANCE_SHEET_COLUMNS,
    EMPTY_SHEET_PLACEHOLDER,
    PARTICIPANT_SHEET_COLUMNS,
    SESSION_HEADER_PREFIX,
)
from .time import event_date_key, isoformat_utc


@dataclass(frozen=True)
class AttendanceSheetRow:
    """One check-in with the participant fields copied in for the report."""

    created_at: datetime
    event_date: date
    name: str
    address: Optional[str] = None
    gender: Optional[str] = None
    device_id: Optional[str] = None


def sheet_rows_from_attendance(rows: Iterable) -> list[AttendanceSheetRow]:
    return [
        AttendanceSheetRow(
            created_at=row.created_at,
            event_date=row.event_date,
            name=row.participant.name,
            address=row.participant.address,
            gender=row.participant.gender,
            device_id=row.device_id,
        )
        for row in rows
    ]


def build_attendance_values(rows: Iterable[AttendanceSheetRow]) -> list[list[str]]:
    """Lay out check-ins as one block per session date, newest date first.

    Each block is a date header line, the column labels, one line per
    check-in in arrival order, then a blank separator (dropped after the last
    block).
    """

    by_date: dict[str, list[AttendanceSheetRow]] = defaultdict(list)
    for row in rows:
        key = event_date_key(row.event_date)
        if not key:
            continue
        by_date[key].append(row)

    values: list[list[str]] = []
    for key in sorted(by_date, reverse=True):
        values.append([f"{SESSION_HEADER_PREFIX}{key}"])
        values.append(list(ATTENDANCE_SHEET_COLUMNS))
        for row in sorted(by_date[key], key=lambda r: isoformat_utc(r.created_at) or ""):
            values.append(
                [
                    isoformat_utc(row.created_at) or "",
                    row.name,
                    row.address or "",
                    row.gender or "",
                    row.device_id or "",
                ]
            )
        values.append([])

    if not values:
        return [[EMPTY_SHEET_PLACEHOLDER]]
    if not values[-1]:
        values.pop()
    return values


def participant_sheet_row(participant) -> list[str]:
    return [
        isoformat_utc(participant.created_at) or "",
        participant.name,
        participant.address or "",
        participant.gender or "",
    ]


def build_participant_values(participants: Iterable) -> list[list[str]]:
    values = [list(PARTICIPANT_SHEET_COLUMNS)]
    values.extend(participant_sheet_row(p) for p in participants)
    return values
