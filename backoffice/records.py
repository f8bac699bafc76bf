"""Inbound payload decoding and the canonical lead record."""
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, NamedTuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from backoffice.errors import ParseError

PACKAGE_BUSINESS_TYPE = "package"
DEFAULT_PAYMENT_STATUS = "Pending Payment"

# Request bodies that Flask parses into request.form instead of leaving as raw JSON text
FORM_MIMETYPES = ("application/x-www-form-urlencoded", "multipart/form-data")

Amount = Union[int, float, str]


def utc_now_iso() -> str:
    """Current instant as ISO-8601 with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def as_text(value: Any) -> str:
    """Any decoded JSON value as sheet text: lists comma-joined, objects as JSON."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(t for t in (as_text(v) for v in value) if t)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)
    return str(value).strip()


class LeadRecord(BaseModel):
    """One submission from the demo site. Every field is a string or number, never None."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    timestamp: str = Field(default="", validate_default=True)
    business_name: str = Field(default="", alias="businessName")
    business_type: str = Field(default="", alias="businessType")
    contact_name: str = Field(default="", alias="contactName")
    email: str = ""
    phone: str = ""
    line_id: str = Field(default="", alias="lineId")

    # Package order fields
    package: str = ""
    package_name: str = Field(default="", alias="packageName")
    package_price: Amount = Field(default="", alias="packagePrice")
    verified_amount: Amount = Field(default="", alias="verifiedAmount")
    payment_status: str = Field(default="", alias="paymentStatus")
    requirements: str = ""
    additional_info: str = Field(default="", alias="additionalInfo")

    # Payment actions, routed before anything is stored
    action: str = ""
    amount: Amount = ""
    currency: str = ""
    session_id: str = Field(default="", alias="sessionId")
    success_url: str = Field(default="", alias="successUrl")
    cancel_url: str = Field(default="", alias="cancelUrl")

    @field_validator(
        "business_name", "business_type", "contact_name", "email", "phone", "line_id",
        "package", "package_name", "payment_status", "requirements", "additional_info",
        "action", "currency", "session_id", "success_url", "cancel_url",
        mode="before",
    )
    @classmethod
    def _text(cls, value: Any) -> str:
        return as_text(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, value: Any) -> str:
        if value is None or (isinstance(value, str) and not value.strip()):
            return utc_now_iso()
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            # Epoch milliseconds, as sent by Date.now()
            try:
                ts = datetime.fromtimestamp(value / 1000, timezone.utc)
            except (OverflowError, OSError, ValueError):
                return str(value)
            return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return as_text(value)

    @field_validator("package_price", "verified_amount", "amount", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> Amount:
        """Numeric strings become numbers so form and JSON submissions store the same value."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
        text = as_text(value)
        if not text:
            return ""
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return text

    @property
    def is_package_order(self) -> bool:
        return self.business_type == PACKAGE_BUSINESS_TYPE or bool(self.package)

    @property
    def payment_status_or_default(self) -> str:
        return self.payment_status or DEFAULT_PAYMENT_STATUS

    def to_payload(self) -> dict:
        """Wire (camelCase) representation."""
        return self.model_dump(by_alias=True)


class PayloadEncoding(str, Enum):
    JSON_BODY = "json"
    DATA_FIELD = "data"
    FIELDS = "fields"


class RawPayload(NamedTuple):
    """An inbound request body before decoding: raw JSON text, or a flat field mapping."""

    encoding: PayloadEncoding
    content: Union[str, Mapping[str, str]]


def read_payload(
    body: Union[bytes, str, None],
    content_type: str | None,
    form: Mapping[str, str] | None = None,
    args: Mapping[str, str] | None = None,
) -> RawPayload:
    """
    Pick the payload encoding of a request.

    A raw JSON body wins over a form field named `data`, which wins over
    individual form/query fields.
    """
    mimetype = (content_type or "").split(";", 1)[0].strip().lower()
    if isinstance(body, bytes):
        text = body.decode("utf-8", errors="replace")
    else:
        text = body or ""
    if text.strip() and mimetype not in FORM_MIMETYPES:
        return RawPayload(PayloadEncoding.JSON_BODY, text)

    fields = {**(args or {}), **(form or {})}
    if fields.get("data"):
        return RawPayload(PayloadEncoding.DATA_FIELD, fields["data"])
    return RawPayload(PayloadEncoding.FIELDS, fields)


def _loads(text: str, source: str) -> dict:
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Invalid JSON in {source}: {e}") from e
    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object in {source}, got {type(data).__name__}")
    return data


def normalize_payload(raw: RawPayload) -> LeadRecord:
    """Decode a RawPayload into a LeadRecord. Raises ParseError on malformed input."""
    if raw.encoding is PayloadEncoding.JSON_BODY:
        data = _loads(raw.content, "request body")
    elif raw.encoding is PayloadEncoding.DATA_FIELD:
        data = _loads(raw.content, "'data' field")
    else:
        data = dict(raw.content)
    try:
        return LeadRecord.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Invalid submission: {e.errors()[0].get('msg', e)}") from e
