from __future__ import annotations

import logging
import re

from flask import current_app
from sqlalchemy import func

from ..app import db
from ..constants import GENDER_CHOICES, SHEET_SYNC_FAILED
from ..models import Participant
from ..shared import sheets
from ..shared.sheet_format import participant_sheet_row
from .errors import (
    DuplicateRecordError,
    InputValidationError,
    RecordNotFoundError,
    commit,
)

logger = logging.getLogger("presensi.participants")

NAME_HEADERS = {"nama", "name"}
ADDRESS_HEADERS = {"alamat", "address"}
GENDER_HEADERS = {"jenis_kelamin", "gender"}
SKIP_NAME_VALUES = {"dibuat_pada", "createdat", "nama", "name"}
_DATE_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")

MALE_VALUES = {"L", "LAKI-LAKI", "LAKI LAKI"}
FEMALE_VALUES = {"P", "PEREMPUAN"}


def normalize_gender(raw: str | None) -> str | None:
    value = (raw or "").strip().upper()
    if value in MALE_VALUES:
        return "L"
    if value in FEMALE_VALUES:
        return "P"
    return None


def validate_fields(name, address=None, gender=None) -> tuple[str, str | None, str | None]:
    if not isinstance(name, str) or not name.strip():
        raise InputValidationError("name is required.")
    if address is not None and not isinstance(address, str):
        raise InputValidationError("address must be a string.")
    if gender is not None and gender not in GENDER_CHOICES:
        raise InputValidationError("gender must be L or P.")
    address = address.strip() if address else None
    return name.strip(), address or None, gender


def find_by_name(name: str) -> Participant | None:
    return Participant.query.filter(
        func.lower(Participant.name) == name.strip().lower()
    ).one_or_none()


def get_participant(participant_id: int) -> Participant:
    participant = db.session.get(Participant, participant_id)
    if participant is None:
        raise RecordNotFoundError(f"participant {participant_id} not found")
    return participant


def search_participants(query: str | None, limit: int, page: int):
    base = Participant.query
    if query:
        base = base.filter(
            func.lower(Participant.name).contains(query.lower(), autoescape=True)
        )
    total = base.count()
    rows = (
        base.order_by(Participant.name.asc())
        .offset((page - 1) * limit if page > 1 else 0)
        .limit(limit)
        .all()
    )
    return rows, total


def create_participant(name, address=None, gender=None) -> tuple[Participant, bool]:
    """Return the participant with this name, creating it when missing.

    Names match case-insensitively; the boolean is ``True`` only for a new row.
    """

    name, address, gender = validate_fields(name, address, gender)
    existing = find_by_name(name)
    if existing:
        return existing, False
    participant = Participant(name=name, address=address, gender=gender)
    db.session.add(participant)
    try:
        commit()
    except DuplicateRecordError:
        existing = find_by_name(name)
        if existing is None:
            raise
        return existing, False
    return participant, True


def update_participant(participant_id: int, name, address=None, gender=None) -> Participant:
    name, address, gender = validate_fields(name, address, gender)
    participant = get_participant(participant_id)
    participant.name = name
    participant.address = address
    participant.gender = gender
    try:
        commit()
    except DuplicateRecordError as exc:
        raise DuplicateRecordError(str(exc), code="NAME_EXISTS") from exc
    return participant


def delete_participant(participant_id: int) -> None:
    participant = get_participant(participant_id)
    db.session.delete(participant)
    commit()


def append_participant_to_sheet(participant: Participant) -> str | None:
    """Mirror a new participant onto the participants tab; return a warning."""

    try:
        client = sheets.get_sheets_client()
        if client is None:
            return None
        client.append_row(
            current_app.config["GOOGLE_SHEETS_PARTICIPANTS_SHEET_NAME"],
            participant_sheet_row(participant),
        )
    except sheets.SheetsError as exc:
        logger.warning("[SHEET-APPEND] participant_id=%s result=%s", participant.id, exc)
        return SHEET_SYNC_FAILED
    return None


def _header_index(headers: list[str], accepted: set[str]) -> int | None:
    for idx, header in enumerate(headers):
        if header in accepted:
            return idx
    return None


def _pick_name(row: list[str], primary: int) -> str:
    for idx in (primary, 1, 0):
        if idx < 0 or idx >= len(row):
            continue
        value = str(row[idx] or "").strip()
        if not value or value.lower() in SKIP_NAME_VALUES:
            continue
        if _DATE_PREFIX_RE.match(value):
            continue
        return value
    return ""


def import_participants_from_sheet() -> dict:
    """Create or fill in participants from the participants tab.

    Existing participants (matched by case-insensitive name) only gain an
    address or gender; blank sheet cells never erase stored values.
    """

    try:
        client = sheets.get_sheets_client()
        if client is None:
            return {"ok": False, "reason": "missing_config"}
        rows = client.read_values(
            current_app.config["GOOGLE_SHEETS_PARTICIPANTS_SHEET_NAME"]
        )
    except sheets.SheetsError as exc:
        logger.error("[SHEET-IMPORT] read failed: %s", exc)
        return {"ok": False, "reason": "sheet_error"}
    if not rows:
        return {"ok": True, "created": 0, "updated": 0}

    headers = [str(h or "").strip().lower() for h in rows[0]]
    name_idx = _header_index(headers, NAME_HEADERS)
    if name_idx is None:
        name_idx = 1
    address_idx = _header_index(headers, ADDRESS_HEADERS)
    gender_idx = _header_index(headers, GENDER_HEADERS)

    by_name = {p.name.strip().lower(): p for p in Participant.query.all()}
    created = updated = 0
    for row in rows[1:]:
        name = _pick_name(row, name_idx)
        if not name:
            continue
        address = ""
        if address_idx is not None and address_idx < len(row):
            address = str(row[address_idx] or "").strip()
        gender = None
        if gender_idx is not None and gender_idx < len(row):
            gender = normalize_gender(row[gender_idx])

        key = name.lower()
        existing = by_name.get(key)
        if existing is None:
            participant = Participant(name=name, address=address or None, gender=gender)
            db.session.add(participant)
            by_name[key] = participant
            created += 1
            continue

        next_address = address or existing.address
        next_gender = gender or existing.gender
        if next_address != existing.address or next_gender != existing.gender:
            existing.address = next_address
            existing.gender = next_gender
            updated += 1

    commit()
    logger.info("[SHEET-IMPORT] created=%d updated=%d", created, updated)
    return {"ok": True, "created": created, "updated": updated}
