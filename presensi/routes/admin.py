from __future__ import annotations

from flask import Blueprint, Response, jsonify, request

from ..constants import (
    ATTENDANCE_EXPORT_COLUMNS,
    EXPORT_ROW_LIMIT,
    LEADERBOARD_EXPORT_COLUMNS,
)
from ..services.attendance import RANGES, date_window, query_attendance
from ..services.reports import (
    absence_report,
    attendance_totals,
    lucky_draw,
    streak_report,
    total_start,
    weekly_groups,
)
from ..shared.csv_export import to_csv
from ..shared.http import error_response, weeks_param
from ..shared.time import (
    InvalidEventDate,
    event_date_key,
    isoformat_utc,
    now_utc,
    parse_date_key,
    today_in_zone,
)

bp = Blueprint("admin", __name__, url_prefix="/api/admin")

LEADERBOARD_EXPORT_RANGES = {"last30": "30d"}


def _csv_response(body: str, filename: str) -> Response:
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _stamp() -> str:
    return now_utc().strftime("%Y%m%d-%H%M%S")


@bp.get("/weekly-attendance")
def weekly_attendance():
    weeks = weeks_param(request.args.get("weeks"), 12)
    groups = weekly_groups(weeks)
    return jsonify(
        {
            "ok": True,
            "data": [group.to_dict() for group in groups],
            "meta": {"weeksRequested": weeks, "generatedAt": isoformat_utc(now_utc())},
        }
    )


@bp.get("/lucky-draw")
def lucky_draw_pool():
    pool = lucky_draw()
    if pool is None:
        return jsonify(
            {
                "ok": True,
                "sourceDate": None,
                "sourceDateEnd": None,
                "sourceSessionDates": [],
                "participants": [],
                "totalParticipants": 0,
                "message": "Belum ada data presensi pekan lalu.",
            }
        )
    return jsonify(
        {
            "ok": True,
            "sourceDate": event_date_key(pool["start"]),
            "sourceDateEnd": event_date_key(pool["end"]),
            "sourceSessionDates": pool["sessionDates"],
            "participants": pool["participants"],
            "totalParticipants": len(pool["participants"]),
            "generatedAt": isoformat_utc(now_utc()),
        }
    )


@bp.get("/export/attendance")
def export_attendance():
    range_name = request.args.get("range") or "single"
    if range_name not in RANGES:
        return error_response("INVALID_RANGE", 400)
    date_param = request.args.get("date")
    if range_name == "single" and not date_param:
        return error_response("DATE_REQUIRED", 400)
    single = None
    if date_param:
        try:
            single = parse_date_key(date_param)
        except InvalidEventDate:
            return error_response("INVALID_DATE", 400)

    rows = query_attendance(
        window=date_window(range_name, today_in_zone(), single),
        name_query=(request.args.get("q") or "").strip() or None,
        limit=EXPORT_ROW_LIMIT,
    )
    body = to_csv(
        ATTENDANCE_EXPORT_COLUMNS,
        (
            [
                event_date_key(row.event_date),
                isoformat_utc(row.created_at),
                row.participant.name,
                row.participant.address,
                row.participant.gender,
                row.device_id,
            ]
            for row in rows
        ),
    )
    return _csv_response(body, f"presensi-{range_name}-{_stamp()}.csv")


@bp.get("/export/leaderboard")
def export_leaderboard():
    range_name = request.args.get("range") or "all"
    weeks = weeks_param(request.args.get("weeks"), 24)
    today = today_in_zone()
    start = total_start(LEADERBOARD_EXPORT_RANGES.get(range_name, range_name), today)
    if range_name == "year":
        start = today.replace(month=1, day=1)

    lines = []
    for row in attendance_totals(start):
        lines.append(["total", row["name"], row["total"], "", "", "", ""])
    for row in streak_report().rows:
        lines.append(["streak", row.name, "", row.best_streak, row.current_streak, "", ""])
    absences, _, _ = absence_report(weeks, today)
    for row in absences.rows:
        lines.append(["absent", row.name, "", "", "", row.attended, row.absent])

    body = to_csv(LEADERBOARD_EXPORT_COLUMNS, lines)
    return _csv_response(body, f"leaderboard-{range_name}-{_stamp()}.csv")
