from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..app import db
from ..services.errors import DuplicateRecordError, InputValidationError, RecordNotFoundError
from ..services.participants import (
    append_participant_to_sheet,
    create_participant,
    delete_participant,
    search_participants,
    update_participant,
)
from ..services.sheet_sync import request_attendance_sync
from ..shared.http import bounded_int, error_response, json_payload

bp = Blueprint("participants", __name__, url_prefix="/api/participants")


@bp.get("")
def list_participants():
    query = (request.args.get("q") or "").strip()
    limit = bounded_int(request.args.get("limit"), 200, maximum=500)
    page = bounded_int(request.args.get("page"), 1)
    rows, total = search_participants(query or None, limit, page)
    return jsonify(
        {
            "ok": True,
            "data": [p.to_dict() for p in rows],
            "meta": {"total": total, "page": page, "pageSize": limit},
        }
    )


@bp.post("")
def add_participant():
    payload = json_payload()
    if payload is None:
        return error_response("INVALID_INPUT", 400)
    try:
        participant, created = create_participant(
            payload.get("name"), payload.get("address"), payload.get("gender")
        )
    except InputValidationError as exc:
        return error_response(exc.code, 400)

    warning = append_participant_to_sheet(participant) if created else None
    return jsonify(
        {"ok": True, "created": created, "data": participant.to_dict(), "warning": warning}
    )


@bp.patch("/<int(min=1, max=2147483647):participant_id>")
def edit_participant(participant_id: int):
    payload = json_payload()
    if payload is None:
        return error_response("INVALID_INPUT", 400)
    try:
        participant = update_participant(
            participant_id,
            payload.get("name"),
            payload.get("address"),
            payload.get("gender"),
        )
    except InputValidationError as exc:
        db.session.rollback()
        return error_response(exc.code, 400)
    except DuplicateRecordError:
        return error_response("NAME_EXISTS", 409)
    except RecordNotFoundError:
        return error_response("NOT_FOUND", 404)

    # renamed participants appear on every mirrored attendance row
    warning = request_attendance_sync()
    return jsonify({"ok": True, "data": participant.to_dict(), "warning": warning})


@bp.delete("/<int(min=1, max=2147483647):participant_id>")
def remove_participant(participant_id: int):
    try:
        delete_participant(participant_id)
    except RecordNotFoundError:
        return error_response("NOT_FOUND", 404)

    warning = request_attendance_sync()
    return jsonify({"ok": True, "warning": warning})
