import os
import pathlib
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from presensi.app import create_app, db
from presensi.shared import sheets


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "slow" in item.keywords or "quarantine" in item.keywords:
            continue
        item.add_marker("full")
        if "no_smoke" in item.keywords:
            continue
        item.add_marker("smoke")


SHEETS_OFF = {
    "TESTING": True,
    "GOOGLE_SHEETS_SPREADSHEET_ID": None,
    "GOOGLE_SERVICE_ACCOUNT_JSON": None,
    "GOOGLE_SERVICE_ACCOUNT_EMAIL": None,
    "GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY": None,
    "SHEET_SYNC_BACKOFF_SECONDS": 0,
}

SHEETS_ON = {
    **SHEETS_OFF,
    "GOOGLE_SHEETS_SPREADSHEET_ID": "test-spreadsheet",
    "GOOGLE_SERVICE_ACCOUNT_JSON": "{}",
}


class FakeSheetsClient:
    """Records calls instead of talking to Google."""

    def __init__(self, fail_replace: int = 0, fail_append: bool = False):
        self.fail_replace = fail_replace
        self.fail_append = fail_append
        self.tabs: dict[str, list[list[str]]] = {}
        self.replace_calls: list[str] = []
        self.appended: list[tuple[str, list]] = []

    def replace_values(self, sheet_name, values):
        if self.fail_replace:
            self.fail_replace -= 1
            raise sheets.SheetsError("quota exceeded")
        self.replace_calls.append(sheet_name)
        self.tabs[sheet_name] = [list(row) for row in values]

    def append_row(self, sheet_name, values):
        if self.fail_append:
            raise sheets.SheetsError("unavailable")
        self.appended.append((sheet_name, list(values)))
        self.tabs.setdefault(sheet_name, []).append(list(values))

    def read_values(self, sheet_name, cell_range="A:Z"):
        return [list(row) for row in self.tabs.get(sheet_name, [])]


def _make_app(overrides):
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    application = create_app(overrides)
    with application.app_context():
        db.create_all()
    return application


@pytest.fixture
def app():
    application = _make_app(SHEETS_OFF)
    with application.app_context():
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def fake_sheets(monkeypatch):
    fake = FakeSheetsClient()
    monkeypatch.setattr(sheets, "get_sheets_client", lambda: fake)
    return fake


@pytest.fixture
def sheet_app(fake_sheets):
    application = _make_app(SHEETS_ON)
    with application.app_context():
        yield application
        application.extensions["sheet_sync"].shutdown()
        db.session.remove()
        db.drop_all()


@pytest.fixture
def sheet_client(sheet_app):
    return sheet_app.test_client()


@pytest.fixture
def seed():
    """Insert a participant and its check-ins directly: ``seed("Alya", "2024-01-07")``."""
    from datetime import date

    from presensi.models import Attendance, Participant

    def _seed(name, *event_dates, address=None, gender=None):
        participant = Participant(name=name, address=address, gender=gender)
        db.session.add(participant)
        db.session.flush()
        for value in event_dates:
            db.session.add(
                Attendance(
                    participant_id=participant.id,
                    event_date=date.fromisoformat(value),
                )
            )
        db.session.commit()
        return participant

    return _seed
