"""Store → template → notify workflow for lead and package-order submissions."""
import logging
from dataclasses import dataclass
from typing import NamedTuple, Optional

from backoffice.backends import SheetBackend
from backoffice.config import Settings
from backoffice.errors import StoreError
from backoffice.notifications import DispatchResult, NotificationDispatcher, NotificationKind
from backoffice.payments import PaymentGateway
from backoffice.provisioner import ProvisionedWorkbook, WorkbookProvisioner
from backoffice.records import LeadRecord
from backoffice.store import LeadStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a request needs, built once per app from one Settings."""

    settings: Settings
    backend: SheetBackend
    store: LeadStore
    provisioner: WorkbookProvisioner
    dispatcher: NotificationDispatcher
    payments: PaymentGateway

    @classmethod
    def build(cls, settings: Settings, backend: SheetBackend) -> "Services":
        return cls(
            settings=settings,
            backend=backend,
            store=LeadStore(backend, settings),
            provisioner=WorkbookProvisioner(backend, settings),
            dispatcher=NotificationDispatcher(settings),
            payments=PaymentGateway(settings),
        )


class IngestionOutcome(NamedTuple):
    response: dict
    notifications: list[DispatchResult]
    workbook: Optional[ProvisionedWorkbook] = None


def _log_dispatch(results: list[DispatchResult]) -> None:
    for result in results:
        if result.error:
            logger.warning("Notification %s not delivered: %s", result.kind.value, result.error)


def _lead_sheet_details(services: Services) -> dict:
    """Name of the lead spreadsheet for operator emails; empty when it cannot be read."""
    try:
        info = services.store.describe()
    except StoreError as e:
        logger.warning("Could not describe lead spreadsheet: %s", e)
        return {}
    return {"leads_title": info.title}


def ingest_lead(services: Services, record: LeadRecord) -> IngestionOutcome:
    """Save a regular lead, create its template workbook, email operator and submitter."""
    row = services.store.append(services.settings.leads_sheet_name, record)
    workbook = services.provisioner.provision(record)

    extra = _lead_sheet_details(services)
    if workbook is not None:
        extra |= {"template_url": workbook.url, "template_id": workbook.spreadsheet_id}
    results = [services.dispatcher.notify(NotificationKind.LEAD_ADMIN, record, extra)]
    if workbook is not None and record.email:
        results.append(services.dispatcher.notify(NotificationKind.LEAD_USER, record, extra))
    _log_dispatch(results)

    response = {"success": True, "message": "Lead saved successfully", "row": row}
    if workbook is not None:
        response["templateSpreadsheetId"] = workbook.spreadsheet_id
        response["templateUrl"] = workbook.url
    return IngestionOutcome(response, results, workbook)


def ingest_package(services: Services, record: LeadRecord) -> IngestionOutcome:
    """Save a package order (widening the sheet if needed) and email operator and submitter."""
    row = services.store.append(services.settings.leads_sheet_name, record)

    results = [services.dispatcher.notify(NotificationKind.PACKAGE_ADMIN, record, _lead_sheet_details(services))]
    if record.email:
        results.append(services.dispatcher.notify(NotificationKind.PACKAGE_USER, record))
    _log_dispatch(results)

    response = {"success": True, "message": "Package order saved successfully", "row": row}
    return IngestionOutcome(response, results)


def ingest(services: Services, record: LeadRecord) -> IngestionOutcome:
    if record.is_package_order:
        return ingest_package(services, record)
    return ingest_lead(services, record)
