from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..services.attendance import (
    check_in,
    date_window,
    delete_attendance,
    parse_event_date,
    query_attendance,
    update_attendance,
)
from ..services.errors import DuplicateRecordError, InputValidationError, RecordNotFoundError
from ..services.sheet_sync import request_attendance_sync
from ..shared.http import bounded_int, error_response, json_payload, optional_int
from ..shared.time import InvalidEventDate, parse_date_key, today_in_zone

bp = Blueprint("attendance", __name__, url_prefix="/api/attendance")


def _participant_id(payload: dict) -> int:
    raw = payload.get("participantId")
    try:
        participant_id = optional_int(raw)
    except (TypeError, ValueError) as exc:
        raise InputValidationError("participantId must be an id.") from exc
    if participant_id is None:
        raise InputValidationError("participantId is required.")
    return participant_id


def _optional_text(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InputValidationError(f"{key} must be a string.")
    return value


@bp.get("")
def list_attendance():
    date_param = request.args.get("date")
    range_name = request.args.get("range")
    if not date_param and not range_name:
        return error_response("DATE_OR_RANGE_REQUIRED", 400)
    single = None
    if date_param:
        try:
            single = parse_date_key(date_param)
        except InvalidEventDate:
            return error_response("INVALID_DATE", 400)
    try:
        attendance_id = optional_int(request.args.get("id"))
    except ValueError:
        return error_response("INVALID_INPUT", 400)

    rows = query_attendance(
        window=date_window(range_name, today_in_zone(), single),
        name_query=(request.args.get("q") or "").strip() or None,
        attendance_id=attendance_id,
        limit=bounded_int(request.args.get("limit"), 50, maximum=100),
    )
    return jsonify({"ok": True, "data": [row.to_dict() for row in rows]})


@bp.post("")
def create_attendance():
    payload = json_payload()
    if payload is None:
        return error_response("INVALID_INPUT", 400)
    try:
        participant_id = _participant_id(payload)
        device_id = _optional_text(payload, "deviceId")
        event_date = parse_event_date(_optional_text(payload, "eventDate"))
        result = check_in(participant_id, event_date, device_id)
    except InputValidationError as exc:
        return error_response(exc.code, 400)
    except RecordNotFoundError as exc:
        return error_response(exc.code, 404)

    warning = request_attendance_sync() if result.created else None
    return jsonify(
        {
            "ok": True,
            "status": result.status,
            "data": result.record.to_dict(),
            "warning": warning,
        }
    )


@bp.patch("/<int(min=1, max=2147483647):attendance_id>")
def edit_attendance(attendance_id: int):
    payload = json_payload()
    if payload is None:
        return error_response("INVALID_INPUT", 400)
    try:
        participant_id = _participant_id(payload)
        raw_date = _optional_text(payload, "eventDate")
        event_date = parse_event_date(raw_date) if raw_date else None
        record = update_attendance(attendance_id, participant_id, event_date)
    except InputValidationError as exc:
        return error_response(exc.code, 400)
    except DuplicateRecordError:
        return error_response("ALREADY_PRESENT", 409)
    except RecordNotFoundError as exc:
        return error_response(exc.code, 404)

    warning = request_attendance_sync()
    return jsonify({"ok": True, "data": record.to_dict(), "warning": warning})


def _delete(attendance_id: int):
    try:
        delete_attendance(attendance_id)
    except RecordNotFoundError:
        return error_response("NOT_FOUND", 404)
    warning = request_attendance_sync()
    return jsonify({"ok": True, "warning": warning})


@bp.delete("/<int(min=1, max=2147483647):attendance_id>")
def remove_attendance(attendance_id: int):
    return _delete(attendance_id)


@bp.delete("")
def remove_attendance_by_query():
    try:
        attendance_id = optional_int(request.args.get("id"))
    except ValueError:
        return error_response("INVALID_INPUT", 400)
    if attendance_id is None:
        return error_response("ID_REQUIRED", 400)
    return _delete(attendance_id)
