"""Append-only lead sheet that creates and widens its own header."""
import logging
from datetime import datetime
from enum import Enum
from typing import NamedTuple
from zoneinfo import ZoneInfo

from backoffice.backends import DEFAULT_HEADER_STYLE, SheetBackend
from backoffice.config import Settings, spreadsheet_url
from backoffice.errors import SheetBackendError, StoreError
from backoffice.records import LeadRecord

logger = logging.getLogger(__name__)

BASIC_COLUMNS = (
    "Timestamp",
    "Business Name",
    "Business Type",
    "Contact Name",
    "Email",
    "Phone",
    "LINE ID",
    "Date Submitted",
)
PACKAGE_COLUMNS = BASIC_COLUMNS + (
    "Package",
    "Package Name",
    "Package Price",
    "Verified Amount",
    "Payment Status",
    "Requirements",
    "Additional Info",
)

DATE_SUBMITTED_FORMAT = "%Y-%m-%d %H:%M:%S"


class StoreInfo(NamedTuple):
    spreadsheet_id: str
    title: str
    url: str


class TableSchema(Enum):
    BASIC = "basic"
    PACKAGE = "package"

    @property
    def columns(self) -> tuple[str, ...]:
        return PACKAGE_COLUMNS if self is TableSchema.PACKAGE else BASIC_COLUMNS

    @classmethod
    def for_record(cls, record: LeadRecord) -> "TableSchema":
        return cls.PACKAGE if record.is_package_order else cls.BASIC

    @classmethod
    def from_header(cls, header: list) -> "TableSchema":
        """A header counts as the package shape once it is 15 wide and has a Package column."""
        if len(header) >= len(PACKAGE_COLUMNS) and "Package" in header:
            return cls.PACKAGE
        return cls.BASIC

    def widen(self, other: "TableSchema") -> "TableSchema":
        """The wider of the two shapes. Widening to the current shape is a no-op."""
        if TableSchema.PACKAGE in (self, other):
            return TableSchema.PACKAGE
        return TableSchema.BASIC


def record_row(record: LeadRecord, schema: TableSchema, date_submitted: str) -> list:
    """Cell values for one record, aligned to the schema's columns."""
    row = [
        record.timestamp or date_submitted,
        record.business_name,
        record.business_type,
        record.contact_name,
        record.email,
        record.phone,
        record.line_id,
        date_submitted,
    ]
    if schema is TableSchema.PACKAGE:
        row += [
            record.package,
            record.package_name,
            record.package_price,
            record.verified_amount,
            record.payment_status_or_default,
            record.requirements,
            record.additional_info,
        ]
    return row


class LeadStore:
    """
    Writes lead rows into a sheet of the configured spreadsheet.

    Rows are appended at last-row + 1 with no lock: two concurrent requests
    can pick the same row and the later write wins.
    """

    def __init__(self, backend: SheetBackend, settings: Settings) -> None:
        self.backend = backend
        self.settings = settings
        self.spreadsheet_id = settings.spreadsheet_id

    def describe(self) -> StoreInfo:
        """Id, title and link of the lead spreadsheet."""
        try:
            title = self.backend.workbook_title(self.spreadsheet_id)
        except SheetBackendError as e:
            raise StoreError(f"Lead spreadsheet {self.spreadsheet_id!r} unavailable: {e}") from e
        return StoreInfo(self.spreadsheet_id, title, spreadsheet_url(self.spreadsheet_id))

    def _now(self) -> str:
        return datetime.now(ZoneInfo(self.settings.timezone)).strftime(DATE_SUBMITTED_FORMAT)

    def ensure_table(self, table_name: str) -> TableSchema:
        """Create the sheet with the basic header if missing; return its current schema."""
        if not self.backend.has_sheet(self.spreadsheet_id, table_name):
            logger.info("Creating sheet %r in %s", table_name, self.spreadsheet_id)
            self.backend.add_sheet(self.spreadsheet_id, table_name)
            self._write_header(table_name, TableSchema.BASIC)
            return TableSchema.BASIC
        header = self.backend.read_row(self.spreadsheet_id, table_name, 1)
        if not header:
            self._write_header(table_name, TableSchema.BASIC)
            return TableSchema.BASIC
        return TableSchema.from_header(header)

    def widen(self, table_name: str, current: TableSchema, target: TableSchema) -> TableSchema:
        """Rewrite row 1 in place when target is wider than current. Safe to call redundantly."""
        widened = current.widen(target)
        if widened is not current:
            logger.info("Widening header of %r to %d columns", table_name, len(widened.columns))
            self._write_header(table_name, widened)
        return widened

    def _write_header(self, table_name: str, schema: TableSchema) -> None:
        columns = list(schema.columns)
        self.backend.write_rows(self.spreadsheet_id, table_name, 1, [columns])
        self.backend.format_header(self.spreadsheet_id, table_name, len(columns), DEFAULT_HEADER_STYLE)

    def append(self, table_name: str, record: LeadRecord) -> int:
        """Append one record and return the 1-indexed row it was written to."""
        try:
            current = self.ensure_table(table_name)
            record_schema = TableSchema.for_record(record)
            if record_schema is TableSchema.PACKAGE:
                self.widen(table_name, current, record_schema)

            next_row = self.backend.last_row(self.spreadsheet_id, table_name) + 1
            values = record_row(record, record_schema, self._now())
            self.backend.write_rows(self.spreadsheet_id, table_name, next_row, [values])
        except SheetBackendError as e:
            raise StoreError(f"Failed to save to sheet {table_name!r}: {e}") from e

        try:
            self.backend.auto_resize(self.spreadsheet_id, table_name, len(values))
        except SheetBackendError as e:
            logger.warning("Column resize failed for %r: %s", table_name, e)

        logger.info("Saved %s row %d to %r", record_schema.value, next_row, table_name)
        return next_row
