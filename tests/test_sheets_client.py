import pytest

from presensi.shared import sheets
from presensi.shared.sheets import SheetsClient, SheetsError


class FakeWorksheet:
    def __init__(self, title, values=None, fail=False):
        self.title = title
        self.values = [list(row) for row in (values or [])]
        self.fail = fail
        self.cleared = []

    def _check(self):
        if self.fail:
            raise RuntimeError("backend error")

    def append_row(self, values, value_input_option=None):
        self._check()
        self.values.append(list(values))

    def batch_clear(self, ranges):
        self._check()
        self.cleared.extend(ranges)
        self.values = []

    def update(self, range_name=None, values=None, value_input_option=None):
        self._check()
        self.values = [list(row) for row in values]

    def get_values(self, cell_range):
        self._check()
        return self.values


class FakeSpreadsheet:
    def __init__(self, *titles, fail_list=False, fail_add=False):
        self.tabs = {title: FakeWorksheet(title) for title in titles}
        self.fail_list = fail_list
        self.fail_add = fail_add
        self.added = []

    def worksheets(self):
        if self.fail_list:
            raise RuntimeError("listing failed")
        return list(self.tabs.values())

    def add_worksheet(self, title, rows, cols):
        if self.fail_add:
            raise RuntimeError("permission denied")
        self.added.append(title)
        self.tabs[title] = FakeWorksheet(title)
        return self.tabs[title]


def test_resolves_exact_title():
    book = FakeSpreadsheet("Presensi", "Attendance")
    assert SheetsClient(book).resolve_worksheet("Presensi").title == "Presensi"


def test_resolves_alias_when_preferred_missing():
    book = FakeSpreadsheet("Participants")
    assert SheetsClient(book).resolve_worksheet("Peserta").title == "Participants"
    assert book.added == []


def test_creates_tab_when_no_candidate_exists():
    book = FakeSpreadsheet("Other")
    worksheet = SheetsClient(book).resolve_worksheet("Presensi")
    assert worksheet.title == "Presensi"
    assert book.added == ["Presensi"]


def test_creates_tab_when_listing_fails():
    book = FakeSpreadsheet("Presensi", fail_list=True)
    SheetsClient(book).resolve_worksheet("Presensi")
    assert book.added == ["Presensi"]


def test_create_failure_raises():
    with pytest.raises(SheetsError):
        SheetsClient(FakeSpreadsheet(fail_add=True)).resolve_worksheet("Presensi")


def test_replace_clears_then_writes():
    book = FakeSpreadsheet("Presensi")
    book.tabs["Presensi"].values = [["stale"], ["rows"], ["here"]]
    SheetsClient(book).replace_values("Presensi", [["a", "b"], ["c"]])
    tab = book.tabs["Presensi"]
    assert tab.cleared == ["A:Z"]
    assert tab.values == [["a", "b"], ["c"]]


def test_append_blanks_none_cells():
    book = FakeSpreadsheet("Peserta")
    SheetsClient(book).append_row("Peserta", ["x", None, "L"])
    assert book.tabs["Peserta"].values == [["x", "", "L"]]


def test_backend_errors_become_sheets_errors():
    book = FakeSpreadsheet()
    book.tabs["Presensi"] = FakeWorksheet("Presensi", fail=True)
    client = SheetsClient(book)
    with pytest.raises(SheetsError):
        client.replace_values("Presensi", [["a"]])
    with pytest.raises(SheetsError):
        client.read_values("Presensi")


def test_not_configured_returns_no_client(app):
    assert sheets.sheets_configured() is False
    assert sheets.get_sheets_client() is None


def test_configured_by_email_and_key():
    config = {
        "GOOGLE_SHEETS_SPREADSHEET_ID": "abc",
        "GOOGLE_SERVICE_ACCOUNT_EMAIL": "bot@example.iam.gserviceaccount.com",
        "GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY": "-----BEGIN\\nKEY-----",
    }
    assert sheets.sheets_configured(config)
    info = sheets._service_account_info(config)
    assert info["private_key"] == "-----BEGIN\nKEY-----"
    assert info["client_email"] == config["GOOGLE_SERVICE_ACCOUNT_EMAIL"]


def test_spreadsheet_id_alone_is_not_configured():
    assert not sheets.sheets_configured({"GOOGLE_SHEETS_SPREADSHEET_ID": "abc"})


def test_open_failure_raises_sheets_error(app, monkeypatch):
    app.config.update(
        GOOGLE_SHEETS_SPREADSHEET_ID="abc", GOOGLE_SERVICE_ACCOUNT_JSON='{"type": "x"}'
    )

    def refuse(info, scopes=None):
        raise ValueError("bad key")

    monkeypatch.setattr(sheets.Credentials, "from_service_account_info", refuse)
    with pytest.raises(SheetsError):
        sheets.get_sheets_client()


def test_opens_spreadsheet_by_key(app, monkeypatch):
    app.config.update(
        GOOGLE_SHEETS_SPREADSHEET_ID="abc", GOOGLE_SERVICE_ACCOUNT_JSON='{"type": "x"}'
    )
    book = FakeSpreadsheet("Presensi")
    opened = []

    class FakeGspread:
        def open_by_key(self, key):
            opened.append(key)
            return book

    monkeypatch.setattr(
        sheets.Credentials, "from_service_account_info", lambda info, scopes=None: info
    )
    monkeypatch.setattr(sheets.gspread, "authorize", lambda creds: FakeGspread())
    client = sheets.get_sheets_client()
    assert opened == ["abc"]
    assert client.spreadsheet is book
