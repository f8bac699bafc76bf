"""
Spreadsheet backends.

Both backends expose the same small set of sheet operations, addressed by
workbook id and sheet title:
  - GoogleSheetsBackend: real Google Sheets through gspread and a service account
  - SqlSheetBackend: sheets kept in the app database (local dev and tests)

Native errors (gspread, google-auth, SQLAlchemy) are raised as SheetBackendError.
"""
from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from typing import Any, Iterator, Sequence

import gspread
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from gspread.exceptions import GSpreadException, WorksheetNotFound
from gspread.utils import rowcol_to_a1
from requests import RequestException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from backoffice.errors import SheetBackendError
from backoffice.models import Sheet, SheetRow, Workbook, WorkbookEditor, db

DEFAULT_SHEET_TITLE = "Sheet1"


@dataclass(frozen=True)
class HeaderStyle:
    bold: bool = True
    background: str = "#8b7355"
    foreground: str = "#ffffff"
    horizontal_alignment: str = "CENTER"


DEFAULT_HEADER_STYLE = HeaderStyle()


class SheetBackend(ABC):
    """Sheet operations the store and the provisioner are written against."""

    @abstractmethod
    def create_workbook(self, title: str) -> str:
        """Create a workbook holding one empty default sheet; return its id."""

    @abstractmethod
    def workbook_title(self, workbook_id: str) -> str:
        """Spreadsheet name as shown in Drive."""

    @abstractmethod
    def list_sheets(self, workbook_id: str) -> list[str]:
        """Sheet titles in tab order."""

    @abstractmethod
    def has_sheet(self, workbook_id: str, title: str) -> bool: ...

    @abstractmethod
    def add_sheet(self, workbook_id: str, title: str, rows: int = 1000, cols: int = 26) -> None: ...

    @abstractmethod
    def delete_sheet(self, workbook_id: str, title: str) -> None: ...

    @abstractmethod
    def move_sheet_first(self, workbook_id: str, title: str) -> None: ...

    @abstractmethod
    def read_row(self, workbook_id: str, title: str, row: int) -> list:
        """Values of a 1-indexed row with trailing empty cells dropped."""

    @abstractmethod
    def read_all(self, workbook_id: str, title: str) -> list[list]:
        """Every row up to the last occupied one."""

    @abstractmethod
    def last_row(self, workbook_id: str, title: str) -> int:
        """Index of the last occupied row, 0 for an empty sheet."""

    @abstractmethod
    def write_rows(self, workbook_id: str, title: str, start_row: int, rows: Sequence[Sequence[Any]]) -> None:
        """Write rows starting at column A of start_row. Cells beyond each row's length are left alone."""

    @abstractmethod
    def format_header(
        self, workbook_id: str, title: str, num_columns: int, style: HeaderStyle = DEFAULT_HEADER_STYLE, row: int = 1
    ) -> None: ...

    @abstractmethod
    def auto_resize(self, workbook_id: str, title: str, num_columns: int) -> None: ...

    @abstractmethod
    def share(self, workbook_id: str, email: str, role: str = "writer") -> None: ...


def _hex_to_rgb(color: str) -> dict:
    color = color.lstrip("#")
    r, g, b = (int(color[i:i + 2], 16) / 255 for i in (0, 2, 4))
    return {"red": r, "green": g, "blue": b}


# -------------------------------------------------------------------------------------
# Google Sheets
# -------------------------------------------------------------------------------------


class GoogleSheetsBackend(SheetBackend):
    # Sheets for cell access, Drive for creating and sharing new spreadsheets
    SCOPES = [
        "https://www.googleapis.com/auth/spreadsheets",
        "https://www.googleapis.com/auth/drive",
    ]

    def __init__(self, credentials_file: str = "", client: gspread.Client | None = None) -> None:
        self.credentials_file = credentials_file
        self._client = client
        self._spreadsheets: dict[str, gspread.Spreadsheet] = {}

    @property
    def client(self) -> gspread.Client:
        if self._client is None:
            if not self.credentials_file:
                raise SheetBackendError("GOOGLE_APPLICATION_CREDENTIALS is not set")
            with self._api_errors("authorize service account"):
                creds = Credentials.from_service_account_file(self.credentials_file, scopes=self.SCOPES)
                self._client = gspread.authorize(creds)
        return self._client

    @contextmanager
    def _api_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except SheetBackendError:
            raise
        except (GSpreadException, GoogleAuthError, RequestException, OSError) as e:
            raise SheetBackendError(f"Google Sheets: failed to {action}: {e}") from e

    def _spreadsheet(self, workbook_id: str) -> gspread.Spreadsheet:
        sh = self._spreadsheets.get(workbook_id)
        if sh is None:
            with self._api_errors(f"open spreadsheet {workbook_id}"):
                sh = self.client.open_by_key(workbook_id)
            self._spreadsheets[workbook_id] = sh
        return sh

    def _worksheet(self, workbook_id: str, title: str) -> gspread.Worksheet:
        sh = self._spreadsheet(workbook_id)
        with self._api_errors(f"open sheet {title!r}"):
            return sh.worksheet(title)

    def create_workbook(self, title: str) -> str:
        with self._api_errors(f"create spreadsheet {title!r}"):
            sh = self.client.create(title)
        self._spreadsheets[sh.id] = sh
        return sh.id

    def workbook_title(self, workbook_id: str) -> str:
        sh = self._spreadsheet(workbook_id)
        with self._api_errors("read spreadsheet title"):
            return sh.title

    def list_sheets(self, workbook_id: str) -> list[str]:
        sh = self._spreadsheet(workbook_id)
        with self._api_errors("list sheets"):
            return [ws.title for ws in sh.worksheets()]

    def has_sheet(self, workbook_id: str, title: str) -> bool:
        sh = self._spreadsheet(workbook_id)
        with self._api_errors(f"look up sheet {title!r}"):
            try:
                sh.worksheet(title)
            except WorksheetNotFound:
                return False
        return True

    def add_sheet(self, workbook_id: str, title: str, rows: int = 1000, cols: int = 26) -> None:
        sh = self._spreadsheet(workbook_id)
        with self._api_errors(f"add sheet {title!r}"):
            sh.add_worksheet(title=title, rows=rows, cols=cols)

    def delete_sheet(self, workbook_id: str, title: str) -> None:
        sh = self._spreadsheet(workbook_id)
        ws = self._worksheet(workbook_id, title)
        with self._api_errors(f"delete sheet {title!r}"):
            sh.del_worksheet(ws)

    def move_sheet_first(self, workbook_id: str, title: str) -> None:
        sh = self._spreadsheet(workbook_id)
        ws = self._worksheet(workbook_id, title)
        with self._api_errors(f"reorder sheets around {title!r}"):
            others = [w for w in sh.worksheets() if w.id != ws.id]
            sh.reorder_worksheets([ws] + others)

    def read_row(self, workbook_id: str, title: str, row: int) -> list:
        ws = self._worksheet(workbook_id, title)
        with self._api_errors(f"read row {row} of {title!r}"):
            return ws.row_values(row)

    def read_all(self, workbook_id: str, title: str) -> list[list]:
        ws = self._worksheet(workbook_id, title)
        with self._api_errors(f"read {title!r}"):
            return ws.get_all_values()

    def last_row(self, workbook_id: str, title: str) -> int:
        return len(self.read_all(workbook_id, title))

    def write_rows(self, workbook_id: str, title: str, start_row: int, rows: Sequence[Sequence[Any]]) -> None:
        ws = self._worksheet(workbook_id, title)
        with self._api_errors(f"write {len(rows)} row(s) to {title!r} at row {start_row}"):
            ws.update(
                range_name=rowcol_to_a1(start_row, 1),
                values=[list(r) for r in rows],
                value_input_option="RAW",
            )

    def format_header(
        self, workbook_id: str, title: str, num_columns: int, style: HeaderStyle = DEFAULT_HEADER_STYLE, row: int = 1
    ) -> None:
        ws = self._worksheet(workbook_id, title)
        cell_range = f"{rowcol_to_a1(row, 1)}:{rowcol_to_a1(row, num_columns)}"
        with self._api_errors(f"format header of {title!r}"):
            ws.format(
                cell_range,
                {
                    "backgroundColor": _hex_to_rgb(style.background),
                    "horizontalAlignment": style.horizontal_alignment,
                    "textFormat": {
                        "bold": style.bold,
                        "foregroundColor": _hex_to_rgb(style.foreground),
                    },
                },
            )

    def auto_resize(self, workbook_id: str, title: str, num_columns: int) -> None:
        ws = self._worksheet(workbook_id, title)
        with self._api_errors(f"resize columns of {title!r}"):
            ws.columns_auto_resize(0, num_columns)

    def share(self, workbook_id: str, email: str, role: str = "writer") -> None:
        sh = self._spreadsheet(workbook_id)
        with self._api_errors(f"share with {email}"):
            sh.share(email, perm_type="user", role=role)


# -------------------------------------------------------------------------------------
# SQL (Flask-SQLAlchemy)
# -------------------------------------------------------------------------------------


class SqlSheetBackend(SheetBackend):
    """
    Sheets stored as JSON rows in the app database. Needs an app context.

    Mirrors the Google Sheets behaviour the workflow relies on: a new workbook
    starts with one default sheet, and the last sheet of a workbook cannot be
    deleted.
    """

    @contextmanager
    def _transaction(self, action: str) -> Iterator[None]:
        try:
            yield
            db.session.commit()
        except SheetBackendError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            raise SheetBackendError(f"Database: failed to {action}: {e}") from e

    def _workbook(self, workbook_id: str) -> Workbook:
        wb = db.session.get(Workbook, workbook_id)
        if wb is None:
            raise SheetBackendError(f"Requested workbook was not found: {workbook_id}")
        return wb

    def _sheet(self, workbook_id: str, title: str) -> Sheet:
        sheet = db.session.execute(
            select(Sheet).filter_by(workbook_id=workbook_id, title=title)
        ).scalar_one_or_none()
        if sheet is None:
            raise SheetBackendError(f"Sheet {title!r} not found in workbook {workbook_id}")
        return sheet

    def _row(self, sheet: Sheet, row: int) -> SheetRow | None:
        return db.session.execute(
            select(SheetRow).filter_by(sheet_id=sheet.id, row_index=row)
        ).scalar_one_or_none()

    def ensure_workbook(self, workbook_id: str, title: str) -> None:
        """Create the workbook under a fixed id if it does not exist yet."""
        with self._transaction(f"create workbook {workbook_id}"):
            if db.session.get(Workbook, workbook_id) is None:
                wb = Workbook(id=workbook_id, title=title)
                wb.sheets.append(Sheet(title=DEFAULT_SHEET_TITLE, position=0))
                db.session.add(wb)

    def create_workbook(self, title: str) -> str:
        workbook_id = uuid.uuid4().hex
        with self._transaction(f"create workbook {title!r}"):
            wb = Workbook(id=workbook_id, title=title)
            wb.sheets.append(Sheet(title=DEFAULT_SHEET_TITLE, position=0))
            db.session.add(wb)
        return workbook_id

    def workbook_title(self, workbook_id: str) -> str:
        with self._transaction("read workbook title"):
            return self._workbook(workbook_id).title

    def list_sheets(self, workbook_id: str) -> list[str]:
        with self._transaction("list sheets"):
            return [s.title for s in self._workbook(workbook_id).sheets]

    def has_sheet(self, workbook_id: str, title: str) -> bool:
        with self._transaction(f"look up sheet {title!r}"):
            self._workbook(workbook_id)
            return db.session.execute(
                select(Sheet.id).where(Sheet.workbook_id == workbook_id, Sheet.title == title)
            ).first() is not None

    def add_sheet(self, workbook_id: str, title: str, rows: int = 1000, cols: int = 26) -> None:
        with self._transaction(f"add sheet {title!r}"):
            wb = self._workbook(workbook_id)
            if any(s.title == title for s in wb.sheets):
                raise SheetBackendError(f'A sheet with the name "{title}" already exists')
            position = max((s.position for s in wb.sheets), default=-1) + 1
            wb.sheets.append(Sheet(title=title, position=position))

    def delete_sheet(self, workbook_id: str, title: str) -> None:
        with self._transaction(f"delete sheet {title!r}"):
            wb = self._workbook(workbook_id)
            sheet = self._sheet(workbook_id, title)
            if len(wb.sheets) <= 1:
                raise SheetBackendError("You can't remove all the sheets in a document")
            wb.sheets.remove(sheet)
            for position, s in enumerate(wb.sheets):
                s.position = position

    def move_sheet_first(self, workbook_id: str, title: str) -> None:
        with self._transaction(f"reorder sheets around {title!r}"):
            wb = self._workbook(workbook_id)
            first = self._sheet(workbook_id, title)
            ordered = [first] + [s for s in wb.sheets if s.id != first.id]
            for position, s in enumerate(ordered):
                s.position = position

    def read_row(self, workbook_id: str, title: str, row: int) -> list:
        with self._transaction(f"read row {row} of {title!r}"):
            found = self._row(self._sheet(workbook_id, title), row)
            cells = list(found.cells) if found else []
        while cells and cells[-1] in ("", None):
            cells.pop()
        return cells

    def read_all(self, workbook_id: str, title: str) -> list[list]:
        last = self.last_row(workbook_id, title)
        with self._transaction(f"read {title!r}"):
            sheet = self._sheet(workbook_id, title)
            by_index = {r.row_index: list(r.cells) for r in sheet.rows}
        return [by_index.get(i, []) for i in range(1, last + 1)]

    def last_row(self, workbook_id: str, title: str) -> int:
        with self._transaction(f"find last row of {title!r}"):
            sheet = self._sheet(workbook_id, title)
            occupied = [r.row_index for r in sheet.rows if any(c not in ("", None) for c in r.cells)]
        return max(occupied, default=0)

    def write_rows(self, workbook_id: str, title: str, start_row: int, rows: Sequence[Sequence[Any]]) -> None:
        with self._transaction(f"write {len(rows)} row(s) to {title!r} at row {start_row}"):
            sheet = self._sheet(workbook_id, title)
            for offset, values in enumerate(rows):
                index = start_row + offset
                existing = self._row(sheet, index)
                if existing is None:
                    existing = SheetRow(sheet=sheet, row_index=index, cells=[])
                    db.session.add(existing)
                cells = list(existing.cells or [])
                if len(cells) < len(values):
                    cells.extend([""] * (len(values) - len(cells)))
                cells[:len(values)] = list(values)
                existing.cells = cells

    def format_header(
        self, workbook_id: str, title: str, num_columns: int, style: HeaderStyle = DEFAULT_HEADER_STYLE, row: int = 1
    ) -> None:
        with self._transaction(f"format header of {title!r}"):
            sheet = self._sheet(workbook_id, title)
            sheet.header_style = {"row": row, "columns": num_columns, **asdict(style)}

    def auto_resize(self, workbook_id: str, title: str, num_columns: int) -> None:
        # Column widths are not tracked locally
        with self._transaction(f"resize columns of {title!r}"):
            self._sheet(workbook_id, title)

    def share(self, workbook_id: str, email: str, role: str = "writer") -> None:
        with self._transaction(f"share with {email}"):
            wb = self._workbook(workbook_id)
            if not any(e.email == email for e in wb.editors):
                wb.editors.append(WorkbookEditor(email=email, role=role))


def build_backend(config) -> SheetBackend:
    """Pick the sheet backend from Flask config (SHEETS_BACKEND)."""
    kind = (config.get("SHEETS_BACKEND") or "sql").lower()
    if kind == "google":
        return GoogleSheetsBackend(credentials_file=config.get("GOOGLE_APPLICATION_CREDENTIALS") or "")
    if kind == "sql":
        return SqlSheetBackend()
    raise ValueError(f"Unknown SHEETS_BACKEND: {kind!r} (expected 'google' or 'sql')")
