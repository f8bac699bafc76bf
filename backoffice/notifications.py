"""Email (Brevo) and Slack notifications sent after a submission is stored."""
import logging
from datetime import datetime
from enum import Enum
from typing import NamedTuple
from zoneinfo import ZoneInfo

import requests
from flask import render_template
from jinja2 import TemplateError

from backoffice.config import Settings
from backoffice.errors import NotifyError
from backoffice.records import LeadRecord

logger = logging.getLogger(__name__)

BREVO_EMAIL_URL = "https://api.brevo.com/v3/smtp/email"

BUSINESS_TYPE_LABELS = {
    "pet": "Pet Shop",
    "food": "Restaurant",
    "salon": "Beauty Salon",
    "retail": "Retail Store",
    "service": "Service",
    "other": "Other",
}


class NotificationKind(Enum):
    LEAD_ADMIN = "lead_admin"
    LEAD_USER = "lead_user"
    PACKAGE_ADMIN = "package_admin"
    PACKAGE_USER = "package_user"

    @property
    def is_admin(self) -> bool:
        return self in (NotificationKind.LEAD_ADMIN, NotificationKind.PACKAGE_ADMIN)


class DispatchResult(NamedTuple):
    kind: NotificationKind
    recipient: str
    sent: bool
    skipped: bool = False
    error: str = ""


def business_type_label(business_type: str) -> str:
    return BUSINESS_TYPE_LABELS.get(business_type) or business_type or "your business"


def _subject(kind: NotificationKind, record: LeadRecord) -> str:
    if kind is NotificationKind.LEAD_ADMIN:
        return "🎉 New Lead Submitted - " + (record.business_name or "Unknown Business")
    if kind is NotificationKind.LEAD_USER:
        return "📊 Your Google Sheets template is ready!"
    package = record.package_name or record.package or "Package"
    if kind is NotificationKind.PACKAGE_ADMIN:
        return f"💳 New Package Order - {package} - " + (
            record.business_name or record.contact_name or "Unknown Customer"
        )
    return f"✅ We received your {package} order"


class NotificationDispatcher:
    """
    Renders and sends one notification per call.

    Admin kinds go to NOTIFICATION_EMAIL, user kinds to the submitter. Nothing
    here raises: every failure comes back as a DispatchResult with an error.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def recipient(self, kind: NotificationKind, record: LeadRecord) -> str:
        return self.settings.notification_email if kind.is_admin else record.email

    def _submitted(self, record: LeadRecord) -> str:
        try:
            ts = datetime.fromisoformat(record.timestamp.replace("Z", "+00:00"))
        except ValueError:
            return record.timestamp or "N/A"
        if ts.tzinfo is not None:
            ts = ts.astimezone(ZoneInfo(self.settings.timezone))
        return ts.strftime("%d/%m/%Y %H:%M:%S")

    def render(self, kind: NotificationKind, record: LeadRecord, extra: dict) -> tuple[str, str, str]:
        """Subject, HTML body and plain-text body. Needs an app context."""
        context = {
            "record": record,
            "business_type_label": business_type_label(record.business_type),
            "submitted": self._submitted(record),
            "leads_url": self.settings.spreadsheet_url,
            "leads_title": extra.get("leads_title") or "Leads Spreadsheet",
            "admin_email": self.settings.notification_email,
            "template_url": extra.get("template_url", ""),
            "template_id": extra.get("template_id", ""),
            "payment_status": record.payment_status_or_default,
        }
        try:
            html = render_template(f"email/{kind.value}.html", **context)
            text = render_template(f"email/{kind.value}.txt", **context)
        except TemplateError as e:
            raise NotifyError(f"Could not render {kind.value} email: {e}") from e
        return _subject(kind, record), html, text

    def _send_email(self, to: str, subject: str, html: str, text: str) -> None:
        payload = {
            "sender": {
                "name": self.settings.mail_sender_name,
                "email": self.settings.mail_sender or self.settings.notification_email,
            },
            "to": [{"email": to}],
            "subject": subject,
            "htmlContent": html,
            "textContent": text,
        }
        if self.settings.notification_email and to != self.settings.notification_email:
            payload["replyTo"] = {"email": self.settings.notification_email}
        try:
            r = requests.post(
                BREVO_EMAIL_URL,
                json=payload,
                headers={"api-key": self.settings.brevo_api_key, "Content-Type": "application/json"},
                timeout=10,
            )
        except requests.RequestException as e:
            raise NotifyError(f"Brevo request error: {e}") from e
        if r.status_code not in (200, 201, 202):
            raise NotifyError(f"Brevo HTTP {r.status_code} – {(r.text or '')[:400]}")

    def _notify_slack(self, kind: NotificationKind, record: LeadRecord, extra: dict) -> None:
        """Short operator ping when SLACK_WEBHOOK_URL is set. Logs errors, does not raise."""
        webhook_url = self.settings.slack_webhook_url
        if not webhook_url:
            return
        if kind is NotificationKind.PACKAGE_ADMIN:
            label = "Package order: {} ({})".format(
                record.package_name or record.package, record.payment_status_or_default
            )
        else:
            label = "Lead ({})".format(business_type_label(record.business_type))
        text = "New submission: *{}* <{}> – {}".format(
            record.business_name or record.contact_name or "Unknown", record.email or "no email", label
        )
        if extra.get("template_url"):
            text += "\nTemplate: " + extra["template_url"]
        try:
            r = requests.post(
                webhook_url,
                json={"text": text},
                headers={"Content-Type": "application/json"},
                timeout=5,
            )
            if r.status_code != 200:
                logger.warning("Slack webhook failed: HTTP %s – %s", r.status_code, (r.text or "")[:200])
        except requests.RequestException as e:
            logger.warning("Slack notify error: %s", e)

    def notify(self, kind: NotificationKind, record: LeadRecord, extra: dict | None = None) -> DispatchResult:
        extra = extra or {}
        if kind.is_admin:
            self._notify_slack(kind, record, extra)
        return self._email(kind, record, extra)

    def _email(self, kind: NotificationKind, record: LeadRecord, extra: dict) -> DispatchResult:
        to = self.recipient(kind, record)
        if not to:
            return DispatchResult(kind, "", sent=False, skipped=True)
        if not self.settings.brevo_api_key:
            logger.info("Brevo: BREVO_API_KEY not set, skipping %s email", kind.value)
            return DispatchResult(kind, to, sent=False, skipped=True)

        try:
            subject, html, text = self.render(kind, record, extra)
            self._send_email(to, subject, html, text)
        except NotifyError as e:
            logger.warning("%s email to %s failed: %s", kind.value, to, e)
            return DispatchResult(kind, to, sent=False, error=str(e))

        logger.info("Sent %s email to %s", kind.value, to)
        return DispatchResult(kind, to, sent=True)
