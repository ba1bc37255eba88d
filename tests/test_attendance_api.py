from datetime import date

from presensi.app import db
from presensi.constants import SHEET_SYNC_FAILED
from presensi.models import Attendance
from presensi.services import attendance as attendance_service


def post_check_in(client, participant_id, event_date="2024-01-07", **extra):
    payload = {"participantId": participant_id, "eventDate": event_date, **extra}
    return client.post("/api/attendance", json=payload)


def test_first_check_in_creates_record(client, seed):
    alya = seed("Alya")
    resp = post_check_in(client, alya.id, deviceId="tablet-1")
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["ok"] is True
    assert body["status"] == "CREATED"
    assert body["warning"] is None
    assert body["data"]["eventDate"] == "2024-01-07"
    assert body["data"]["deviceId"] == "tablet-1"
    assert body["data"]["participant"]["name"] == "Alya"


def test_second_check_in_reports_already_present(client, seed):
    alya = seed("Alya")
    first = post_check_in(client, alya.id).get_json()
    second = post_check_in(client, alya.id).get_json()
    assert second["status"] == "ALREADY_PRESENT"
    assert second["data"]["id"] == first["data"]["id"]
    assert Attendance.query.count() == 1


def test_lost_insert_race_reports_already_present(client, seed, monkeypatch):
    alya = seed("Alya", "2024-01-07")
    real_find = attendance_service._find
    calls = []

    def miss_first(participant_id, event_date):
        calls.append(event_date)
        if len(calls) == 1:
            return None
        return real_find(participant_id, event_date)

    monkeypatch.setattr(attendance_service, "_find", miss_first)
    body = post_check_in(client, alya.id).get_json()
    assert body["ok"] is True
    assert body["status"] == "ALREADY_PRESENT"
    assert len(calls) == 2
    assert Attendance.query.count() == 1


def test_missing_date_uses_today(client, seed, monkeypatch):
    from presensi.shared import time as event_time

    monkeypatch.setattr(event_time, "today_in_zone", lambda tz=None: date(2024, 2, 4))
    alya = seed("Alya")
    body = client.post("/api/attendance", json={"participantId": alya.id}).get_json()
    assert body["data"]["eventDate"] == "2024-02-04"


def test_check_in_validation(client, seed):
    alya = seed("Alya")
    resp = post_check_in(client, alya.id, event_date="07-01-2024")
    assert resp.status_code == 400
    assert resp.get_json() == {"ok": False, "error": "INVALID_DATE"}

    resp = client.post("/api/attendance", json={"eventDate": "2024-01-07"})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "INVALID_INPUT"

    resp = client.post("/api/attendance", data="not json", content_type="text/plain")
    assert resp.status_code == 400


def test_check_in_unknown_participant(client):
    resp = post_check_in(client, 999)
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "PARTICIPANT_NOT_FOUND"


def test_edit_moves_record_to_other_participant(client, seed):
    seed("Alya", "2024-01-07")
    budi = seed("Budi")
    record = Attendance.query.one()
    resp = client.patch(
        f"/api/attendance/{record.id}",
        json={"participantId": budi.id, "eventDate": "2024-01-14"},
    )
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["data"]["participantId"] == budi.id
    assert body["data"]["eventDate"] == "2024-01-14"


def test_edit_conflict_returns_409(client, seed):
    alya = seed("Alya", "2024-01-07")
    seed("Budi", "2024-01-07")
    budi_record = Attendance.query.filter(Attendance.participant_id != alya.id).one()
    resp = client.patch(
        f"/api/attendance/{budi_record.id}", json={"participantId": alya.id}
    )
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "ALREADY_PRESENT"
    db.session.expire_all()
    assert db.session.get(Attendance, budi_record.id).participant_id != alya.id


def test_edit_missing_record(client, seed):
    alya = seed("Alya")
    resp = client.patch("/api/attendance/42", json={"participantId": alya.id})
    assert resp.status_code == 404


def test_delete_by_path_and_query(client, seed):
    seed("Alya", "2024-01-07", "2024-01-14")
    first, second = [
        row.id for row in Attendance.query.order_by(Attendance.event_date).all()
    ]
    assert client.delete(f"/api/attendance/{first}").get_json() == {
        "ok": True,
        "warning": None,
    }
    assert client.delete(f"/api/attendance?id={second}").status_code == 200
    assert Attendance.query.count() == 0
    assert client.delete(f"/api/attendance/{first}").status_code == 404
    resp = client.delete("/api/attendance")
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "ID_REQUIRED"


def test_list_requires_date_or_range(client):
    resp = client.get("/api/attendance")
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "DATE_OR_RANGE_REQUIRED"
    resp = client.get("/api/attendance?date=2024-02-30")
    assert resp.get_json()["error"] == "INVALID_DATE"


def test_list_filters_by_date_and_name(client, seed):
    seed("Alya", "2024-01-07", "2024-01-14")
    seed("Budi", "2024-01-07")
    rows = client.get("/api/attendance?date=2024-01-07").get_json()["data"]
    assert sorted(r["participant"]["name"] for r in rows) == ["Alya", "Budi"]

    rows = client.get("/api/attendance?range=all&q=AL").get_json()["data"]
    assert {r["eventDate"] for r in rows} == {"2024-01-07", "2024-01-14"}
    assert all(r["participant"]["name"] == "Alya" for r in rows)

    rows = client.get("/api/attendance?range=all&limit=1").get_json()["data"]
    assert len(rows) == 1


def test_successful_check_in_mirrors_sheet(sheet_client, fake_sheets, seed):
    alya = seed("Alya")
    body = post_check_in(sheet_client, alya.id).get_json()
    assert body["warning"] is None
    tab = fake_sheets.tabs["Presensi"]
    assert tab[0] == ["Tanggal Kajian: 2024-01-07"]
    assert tab[2][1] == "Alya"


def test_repeat_check_in_skips_sync(sheet_client, fake_sheets, seed):
    alya = seed("Alya")
    post_check_in(sheet_client, alya.id)
    post_check_in(sheet_client, alya.id)
    assert fake_sheets.replace_calls == ["Presensi"]


def test_sync_failure_is_a_warning(sheet_client, fake_sheets, seed):
    fake_sheets.fail_replace = 3
    alya = seed("Alya")
    resp = post_check_in(sheet_client, alya.id)
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["status"] == "CREATED"
    assert body["warning"] == SHEET_SYNC_FAILED
    assert Attendance.query.count() == 1


def test_sync_recovers_within_attempts(sheet_client, fake_sheets, seed):
    fake_sheets.fail_replace = 2
    alya = seed("Alya")
    body = post_check_in(sheet_client, alya.id).get_json()
    assert body["warning"] is None
    assert "Presensi" in fake_sheets.tabs


def test_unknown_route_is_json_404(client):
    resp = client.get("/api/nothing-here")
    assert resp.status_code == 404
    assert resp.get_json() == {"ok": False, "error": "NOT_FOUND"}


def test_fractional_participant_id_is_rejected(client, seed):
    seed("Alya")
    resp = client.post(
        "/api/attendance", json={"participantId": 1.9, "eventDate": "2024-01-07"}
    )
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "INVALID_INPUT"
    assert Attendance.query.count() == 0


def test_oversized_participant_id_is_rejected(client):
    resp = post_check_in(client, 10**20)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "INVALID_INPUT"


def test_numeric_string_participant_id_is_accepted(client, seed):
    alya = seed("Alya")
    body = post_check_in(client, str(alya.id)).get_json()
    assert body["status"] == "CREATED"


def test_malformed_ids_in_query_and_path(client):
    assert client.delete("/api/attendance?id=1.5").get_json()["error"] == "INVALID_INPUT"
    assert client.delete(f"/api/attendance?id={10**20}").status_code == 400
    assert client.delete(f"/api/attendance/{10**20}").status_code == 404
    resp = client.get("/api/attendance?range=all&id=abc")
    assert resp.status_code == 400


def test_non_finite_limit_uses_default(client, seed):
    seed("Alya", "2024-01-07")
    resp = client.get("/api/attendance?range=all&limit=inf")
    assert resp.status_code == 200
    assert len(resp.get_json()["data"]) == 1
