import pytest
import requests
from gspread.exceptions import APIError, SpreadsheetNotFound, WorksheetNotFound
from gspread.utils import a1_to_rowcol

from backoffice.backends import GoogleSheetsBackend
from backoffice.config import Settings
from backoffice.errors import SheetBackendError, StoreError
from backoffice.provisioner import TEMPLATE_SHEETS, WorkbookProvisioner
from backoffice.records import LeadRecord
from backoffice.store import BASIC_COLUMNS, LeadStore
from conftest import FakeResponse

LEADS_ID = "1AbCleads"
SETTINGS = Settings(spreadsheet_id=LEADS_ID)


class FakeWorksheet:
    """Records the gspread Worksheet calls the backend makes and keeps cell values."""

    def __init__(self, log, ws_id, title):
        self.log = log
        self.id = ws_id
        self.title = title
        self.rows = []
        self.fail_with = None

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    def row_values(self, row):
        self._check()
        values = list(self.rows[row - 1]) if row <= len(self.rows) else []
        while values and values[-1] == "":
            values.pop()
        return values

    def get_all_values(self):
        self._check()
        rows = [list(r) for r in self.rows]
        while rows and not any(c != "" for c in rows[-1]):
            rows.pop()
        return rows

    def update(self, range_name=None, values=None, value_input_option=None):
        self._check()
        self.log.append(("update", self.title, range_name, value_input_option))
        start, _ = a1_to_rowcol(range_name)
        for offset, values_row in enumerate(values):
            index = start - 1 + offset
            while len(self.rows) <= index:
                self.rows.append([])
            cells = self.rows[index]
            cells.extend([""] * (len(values_row) - len(cells)))
            cells[:len(values_row)] = [str(v) for v in values_row]

    def format(self, cell_range, fmt):
        self._check()
        self.log.append(("format", self.title, cell_range, fmt))

    def columns_auto_resize(self, start, end):
        self._check()
        self.log.append(("columns_auto_resize", self.title, start, end))


class FakeSpreadsheet:
    def __init__(self, log, sheet_id, title, sheet_titles=("Sheet1",)):
        self.log = log
        self.id = sheet_id
        self.title = title
        self._sheets = [FakeWorksheet(log, i, t) for i, t in enumerate(sheet_titles, start=1)]

    def worksheet(self, title):
        for ws in self._sheets:
            if ws.title == title:
                return ws
        raise WorksheetNotFound(title)

    def worksheets(self):
        return list(self._sheets)

    def add_worksheet(self, title, rows, cols):
        self.log.append(("add_worksheet", title, rows, cols))
        ws = FakeWorksheet(self.log, len(self._sheets) + 1, title)
        self._sheets.append(ws)
        return ws

    def del_worksheet(self, ws):
        self.log.append(("del_worksheet", ws.title))
        self._sheets.remove(ws)

    def reorder_worksheets(self, worksheets_in_desired_order):
        self.log.append(("reorder_worksheets", [ws.title for ws in worksheets_in_desired_order]))
        self._sheets = list(worksheets_in_desired_order)

    def share(self, email, perm_type=None, role=None):
        self.log.append(("share", email, perm_type, role))


class FakeClient:
    def __init__(self):
        self.log = []
        self.opened = []
        self.spreadsheets = {LEADS_ID: FakeSpreadsheet(self.log, LEADS_ID, "Leads Database")}

    def open_by_key(self, key):
        self.opened.append(key)
        if key not in self.spreadsheets:
            raise SpreadsheetNotFound(key)
        return self.spreadsheets[key]

    def create(self, title):
        sh = FakeSpreadsheet(self.log, f"new{len(self.spreadsheets)}", title)
        self.spreadsheets[sh.id] = sh
        return sh


@pytest.fixture
def gclient():
    return FakeClient()


@pytest.fixture
def backend(gclient):
    return GoogleSheetsBackend(client=gclient)


def calls(gclient, name):
    return [c for c in gclient.log if c[0] == name]


def test_rows_are_written_raw_from_column_a(backend, gclient):
    backend.write_rows(LEADS_ID, "Sheet1", 3, [["Pet Co", "0812345678"]])

    assert calls(gclient, "update") == [("update", "Sheet1", "A3", "RAW")]
    assert backend.read_row(LEADS_ID, "Sheet1", 3) == ["Pet Co", "0812345678"]
    assert backend.last_row(LEADS_ID, "Sheet1") == 3


def test_header_format_payload(backend, gclient):
    backend.format_header(LEADS_ID, "Sheet1", 8)

    [(_, _, cell_range, fmt)] = calls(gclient, "format")
    assert cell_range == "A1:H1"
    assert fmt["horizontalAlignment"] == "CENTER"
    assert fmt["backgroundColor"] == pytest.approx({"red": 0x8B / 255, "green": 0x73 / 255, "blue": 0x55 / 255})
    assert fmt["textFormat"]["bold"] is True
    assert fmt["textFormat"]["foregroundColor"] == {"red": 1.0, "green": 1.0, "blue": 1.0}


def test_workbook_title_and_sheet_lookup(backend, gclient):
    assert backend.workbook_title(LEADS_ID) == "Leads Database"
    assert backend.has_sheet(LEADS_ID, "Sheet1")
    assert not backend.has_sheet(LEADS_ID, "Leads")
    assert gclient.opened == [LEADS_ID]


def test_unknown_spreadsheet_is_a_backend_error(backend):
    with pytest.raises(SheetBackendError, match="open spreadsheet nope"):
        backend.list_sheets("nope")


def test_missing_credentials_is_a_backend_error():
    with pytest.raises(SheetBackendError, match="GOOGLE_APPLICATION_CREDENTIALS"):
        GoogleSheetsBackend().create_workbook("Template")


def test_store_append_on_google_sheets(backend, gclient):
    store = LeadStore(backend, SETTINGS)

    assert store.append("Leads", LeadRecord(businessName="Pet Co", phone="081")) == 2
    assert store.append("Leads", LeadRecord(businessName="Cafe", phone="082")) == 3

    sheet = gclient.spreadsheets[LEADS_ID].worksheet("Leads")
    assert sheet.rows[0] == list(BASIC_COLUMNS)
    assert [r[1] for r in sheet.rows[1:]] == ["Pet Co", "Cafe"]
    assert [c[2] for c in calls(gclient, "update")] == ["A1", "A2", "A3"]
    assert ("columns_auto_resize", "Leads", 0, 8) in gclient.log
    assert store.describe().title == "Leads Database"


def test_api_error_becomes_store_error(backend, gclient):
    sheet = gclient.spreadsheets[LEADS_ID].worksheet("Sheet1")
    sheet.fail_with = APIError(FakeResponse(429, {"error": {
        "code": 429, "message": "Quota exceeded", "status": "RESOURCE_EXHAUSTED"}}))

    with pytest.raises(StoreError) as excinfo:
        LeadStore(backend, SETTINGS).append("Sheet1", LeadRecord(businessName="Pet Co"))

    backend_error = excinfo.value.__cause__
    assert isinstance(backend_error, SheetBackendError)
    assert isinstance(backend_error.__cause__, APIError)


def test_transport_error_becomes_backend_error(backend, gclient):
    sheet = gclient.spreadsheets[LEADS_ID].worksheet("Sheet1")
    sheet.fail_with = requests.ConnectionError("connection reset")

    with pytest.raises(SheetBackendError, match="connection reset"):
        backend.read_all(LEADS_ID, "Sheet1")


def test_resize_failure_does_not_fail_append(backend, gclient):
    store = LeadStore(backend, SETTINGS)
    store.append("Leads", LeadRecord(businessName="Pet Co"))

    def refuse(start, end):
        raise APIError(FakeResponse(400, {"error": {"code": 400, "message": "bad", "status": "INVALID_ARGUMENT"}}))

    gclient.spreadsheets[LEADS_ID].worksheet("Leads").columns_auto_resize = refuse
    assert store.append("Leads", LeadRecord(businessName="Cafe")) == 3


def test_provisioning_on_google_sheets(backend, gclient):
    workbook = WorkbookProvisioner(backend, SETTINGS).provision(LeadRecord(businessName="Pet Co", email="a@x.com"))

    sh = gclient.spreadsheets[workbook.spreadsheet_id]
    titles = [t.title for t in TEMPLATE_SHEETS]
    assert [ws.title for ws in sh.worksheets()] == titles
    assert calls(gclient, "del_worksheet") == [("del_worksheet", "Sheet1")]
    assert calls(gclient, "reorder_worksheets")[-1][1][0] == "Orders"
    assert calls(gclient, "share") == [("share", "a@x.com", "user", "writer")]
    assert workbook.shared_with == "a@x.com"
    orders = sh.worksheet("Orders").get_all_values()
    assert len(orders) == 3
