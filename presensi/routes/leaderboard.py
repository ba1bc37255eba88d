from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..constants import LEADERBOARD_LIMIT
from ..services.reports import (
    absence_report,
    attendance_totals,
    streak_report,
    total_start,
)
from ..shared.http import weeks_param
from ..shared.time import event_date_key, isoformat_utc, now_utc, today_in_zone

bp = Blueprint("leaderboard", __name__, url_prefix="/api/leaderboard")


@bp.get("/total")
def totals():
    range_name = request.args.get("range") or "all"
    start = total_start(range_name, today_in_zone())
    return jsonify({"ok": True, "data": attendance_totals(start, LEADERBOARD_LIMIT)})


@bp.get("/streak")
def streaks():
    report = streak_report()
    return jsonify(
        {
            "ok": True,
            "data": [row.to_dict() for row in report.rows[:LEADERBOARD_LIMIT]],
            "lastSunday": event_date_key(report.last_occurrence),
            "generatedAt": isoformat_utc(now_utc()),
        }
    )


@bp.get("/absent")
def absences():
    weeks = weeks_param(request.args.get("weeks"), 4)
    report, start, end = absence_report(weeks)
    return jsonify(
        {
            "ok": True,
            "range": {
                "start": event_date_key(start),
                "end": event_date_key(end),
                "weeks": weeks,
                "sessions": report.sessions_count,
                "sessionDates": report.session_dates,
            },
            "data": [row.to_dict() for row in report.rows[:LEADERBOARD_LIMIT]],
        }
    )
