"""Template workbook created for every new lead."""
import logging
from datetime import datetime
from typing import NamedTuple, Optional
from zoneinfo import ZoneInfo

from backoffice.backends import DEFAULT_HEADER_STYLE, SheetBackend
from backoffice.config import Settings, spreadsheet_url
from backoffice.errors import ProvisionError, SheetBackendError
from backoffice.records import LeadRecord

logger = logging.getLogger(__name__)


class TemplateSheet(NamedTuple):
    title: str
    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]


# Static sample content, identical for every lead
TEMPLATE_SHEETS = (
    TemplateSheet(
        "Orders",
        ("Date", "Time", "Order No.", "Customer ID", "Customer Name", "Items", "Quantity",
         "Unit Price", "Subtotal", "Discount", "Net Total", "Status", "Sales Channel", "Notes"),
        (
            ("2024-01-15", "10:15", "ORD-001", "C001", "Khun Bo", "Bath + Haircut", "1",
             "890", "890", "0", "890", "Completed", "In store", ""),
            ("2024-01-15", "11:40", "ORD-002", "C002", "Khun Paeng", "Dry food 3 kg", "1",
             "1250", "1250", "50", "1200", "Shipping", "Online", "Express delivery"),
        ),
    ),
    TemplateSheet(
        "Products",
        ("Product ID", "Product/Service Name", "Type", "Category", "Price", "Cost", "Profit per Unit",
         "Margin %", "Current Stock", "Minimum Stock", "Unit", "Supplier", "Status", "Date Added"),
        (
            ("P001", "Dog bath", "Service", "Grooming", "300", "100", "200",
             "66.7%", "-", "-", "Session", "-", "Active", "2024-01-01"),
            ("P002", "Dog dry food 1 kg", "Product", "Pet food", "450", "280", "170",
             "37.8%", "15", "5", "Bag", "ABC Pet Supply", "Active", "2024-01-01"),
        ),
    ),
    TemplateSheet(
        "Customers",
        ("Customer ID", "Full Name", "Phone", "Email", "LINE ID", "Address", "Type", "Joined",
         "Points", "Total Spent", "Orders", "Last Order", "Status", "Notes"),
        (
            ("C001", "Khun Bo", "081-234-5678", "bo@email.com", "@bo123", "Bangkok", "Member", "2024-01-01",
             "250", "3240", "5", "2024-01-15", "Active", "Regular customer"),
            ("C002", "Khun Paeng", "082-345-6789", "paeng@email.com", "-", "Nonthaburi", "General", "2024-01-10",
             "0", "1200", "1", "2024-01-15", "Active", ""),
        ),
    ),
    TemplateSheet(
        "Analytics",
        ("Date", "Total Sales", "Orders", "New Customers", "Returning Customers", "In-store Orders",
         "Online Orders", "Gross Profit", "Expenses", "Net Profit", "Margin %", "Average Order Value"),
        (
            ("2024-01-15", "12450", "24", "5", "19", "15", "9", "4980", "1200", "3780", "30.3%", "518.75"),
            ("2024-01-14", "10500", "20", "3", "17", "12", "8", "4200", "1100", "3100", "29.5%", "525.00"),
        ),
    ),
    TemplateSheet(
        "Inventory",
        ("Product ID", "Product Name", "Current Stock", "Minimum Stock", "Maximum Stock", "Unit",
         "Status", "Alert", "Stock Value", "Sales (30 days)", "Category"),
        (
            ("P002", "Dog dry food 1 kg", "15", "5", "50", "Bag", "Normal", "No refill needed", "4200", "45", "Pet food"),
            ("P005", "Dog treats", "25", "10", "100", "Bag", "Normal", "No refill needed", "3000", "60", "Pet food"),
        ),
    ),
    TemplateSheet(
        "Appointments",
        ("Date", "Time", "Customer ID", "Customer Name", "Phone", "Service", "Status", "Staff",
         "Notes", "Confirmed", "Cancelled"),
        (
            ("2024-01-16", "10:00", "C001", "Khun Bo", "081-234-5678", "Bath + Haircut", "Booked", "P'Ann",
             "", "✓", ""),
            ("2024-01-16", "11:30", "C003", "Khun Fah", "083-456-7890", "Pet boarding", "Booked", "P'Ming",
             "2 days", "✓", ""),
        ),
    ),
)


class ProvisionedWorkbook(NamedTuple):
    spreadsheet_id: str
    title: str
    url: str
    shared_with: str = ""


class ProvisionResult(NamedTuple):
    workbook: Optional[ProvisionedWorkbook]
    error: Optional[ProvisionError] = None


class WorkbookProvisioner:
    def __init__(self, backend: SheetBackend, settings: Settings) -> None:
        self.backend = backend
        self.settings = settings

    def workbook_title(self, record: LeadRecord) -> str:
        today = datetime.now(ZoneInfo(self.settings.timezone)).strftime("%Y%m%d")
        return f"Template - {record.business_name or 'Demo'} - {today}"

    def _create_sheet(self, workbook_id: str, template: TemplateSheet) -> None:
        width = len(template.headers)
        self.backend.add_sheet(workbook_id, template.title, rows=1000, cols=max(width, 26))
        self.backend.write_rows(workbook_id, template.title, 1, [template.headers, *template.rows])
        self.backend.format_header(workbook_id, template.title, width, DEFAULT_HEADER_STYLE)
        self.backend.auto_resize(workbook_id, template.title, width)

    def _share(self, workbook_id: str, email: str) -> str:
        """Grant edit access; a failure here does not fail provisioning."""
        try:
            self.backend.share(workbook_id, email, role="writer")
        except SheetBackendError as e:
            logger.warning("Sharing template %s with %s failed: %s", workbook_id, email, e)
            return ""
        return email

    def try_provision(self, record: LeadRecord) -> ProvisionResult:
        title = self.workbook_title(record)
        try:
            workbook_id = self.backend.create_workbook(title)
            default_sheets = self.backend.list_sheets(workbook_id)
            for template in TEMPLATE_SHEETS:
                self._create_sheet(workbook_id, template)
            for sheet_title in default_sheets:
                self.backend.delete_sheet(workbook_id, sheet_title)
            self.backend.move_sheet_first(workbook_id, TEMPLATE_SHEETS[0].title)
        except SheetBackendError as e:
            return ProvisionResult(None, ProvisionError(f"Creating {title!r} failed: {e}"))

        shared_with = self._share(workbook_id, record.email) if record.email else ""
        workbook = ProvisionedWorkbook(workbook_id, title, spreadsheet_url(workbook_id), shared_with)
        logger.info("Created template %s (%s)", workbook_id, title)
        return ProvisionResult(workbook)

    def provision(self, record: LeadRecord) -> Optional[ProvisionedWorkbook]:
        """Create the template workbook for a lead, or None if it could not be made."""
        result = self.try_provision(record)
        if result.error is not None:
            logger.warning("Template workbook not created: %s", result.error)
        return result.workbook
