import json

import pytest
import requests

from backoffice import create_app
from backoffice.config import TestingConfig
from backoffice.errors import SheetBackendError
from backoffice.models import Workbook, db
from backoffice.store import PACKAGE_COLUMNS
from conftest import FakeResponse

PET_CO = {
    "businessName": "Pet Co",
    "businessType": "pet",
    "contactName": "A",
    "email": "a@x.com",
    "phone": "081",
    "lineId": "@a",
}
PACKAGE_ORDER = {
    "businessType": "package",
    "package": "basic",
    "packageName": "BASIC",
    "packagePrice": 5000,
    "contactName": "B",
    "email": "b@x.com",
}


def leads(app):
    services = app.extensions["backoffice"]
    with app.app_context():
        if not services.backend.has_sheet(services.settings.spreadsheet_id, "Leads"):
            return None
        return services.backend.read_all(services.settings.spreadsheet_id, "Leads")


def workbook_count(app):
    with app.app_context():
        return db.session.query(Workbook).count()


def test_lead_submission_end_to_end(app, client, outbound):
    resp = client.post("/", json=PET_CO)

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["row"] == 2
    assert body["templateSpreadsheetId"]
    assert body["templateSpreadsheetId"] in body["templateUrl"]

    assert len(leads(app)) == 2
    with app.app_context():
        sheets = app.extensions["backoffice"].backend.list_sheets(body["templateSpreadsheetId"])
    assert len(sheets) == 6
    assert outbound.recipients == ["admin@example.com", "a@x.com"]


def test_package_order_end_to_end(app, client, outbound):
    client.post("/", json=PET_CO)
    outbound.calls.clear()
    before = workbook_count(app)

    resp = client.post("/", json=PACKAGE_ORDER)

    body = resp.get_json()
    assert body == {"success": True, "message": "Package order saved successfully", "row": 3}
    table = leads(app)
    assert table[0] == list(PACKAGE_COLUMNS)
    row = dict(zip(PACKAGE_COLUMNS, table[2]))
    assert row["Package"] == "basic"
    assert row["Payment Status"] == "Pending Payment"
    assert workbook_count(app) == before
    assert outbound.recipients == ["admin@example.com", "b@x.com"]
    assert outbound.emails[0]["subject"].startswith("💳")


def test_lead_without_email_only_notifies_operator(client, outbound):
    resp = client.post("/", json=dict(PET_CO, email=""))
    assert resp.get_json()["success"] is True
    assert outbound.recipients == ["admin@example.com"]


def test_form_encoded_submissions(app, client):
    resp = client.post("/", data=dict(PET_CO, timestamp="2025-01-15T03:15:00.000Z"))
    assert resp.get_json()["row"] == 2

    resp = client.post("/", data={"data": json.dumps(PACKAGE_ORDER)})
    assert resp.get_json()["row"] == 3

    table = leads(app)
    assert table[1][:2] == ["2025-01-15T03:15:00.000Z", "Pet Co"]
    assert dict(zip(PACKAGE_COLUMNS, table[2]))["Package Price"] == 5000


def test_malformed_json_is_rejected_without_writing(app, client, outbound):
    resp = client.post("/", data="{not json", content_type="application/json")

    assert resp.status_code == 400
    body = resp.get_json()
    assert body["success"] is False
    assert body["error"]
    assert leads(app) is None
    assert outbound.calls == []


def test_template_failure_still_saves_and_notifies(app, client, outbound, monkeypatch):
    services = app.extensions["backoffice"]

    def refuse(title):
        raise SheetBackendError("Drive storage quota exceeded")

    monkeypatch.setattr(services.backend, "create_workbook", refuse)

    resp = client.post("/", json=PET_CO)

    body = resp.get_json()
    assert body == {"success": True, "message": "Lead saved successfully", "row": 2}
    assert outbound.recipients == ["admin@example.com"]


def test_email_failure_does_not_fail_request(app, client, outbound):
    outbound.replies["brevo"] = FakeResponse(500, text="upstream error")
    resp = client.post("/", json=PET_CO)
    assert resp.get_json()["success"] is True
    assert len(leads(app)) == 2


class NoLeadSheetConfig(TestingConfig):
    SPREADSHEET_ID = ""


def test_store_failure_returns_error():
    client = create_app(NoLeadSheetConfig).test_client()
    resp = client.post("/", json=PET_CO)
    assert resp.status_code == 500
    assert resp.get_json()["success"] is False
    assert "Leads" in resp.get_json()["error"]


def test_health_check_does_not_touch_store(app, client):
    resp = client.get("/")
    body = resp.get_json()
    assert body["status"] == "OK"
    assert body["spreadsheetId"] == "test-leads"
    assert body["spreadsheetName"] == "Leads Database"
    assert body["timestamp"]
    assert leads(app) is None


def test_preflight_and_cors(client):
    resp = client.options("/")
    assert resp.status_code == 200
    assert resp.get_data() == b""
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    assert "POST" in resp.headers["Access-Control-Allow-Methods"]


def test_unknown_route_is_json(client):
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.get_json()["success"] is False


class PaymentConfig(TestingConfig):
    PAYMENT_API_URL = "https://pay.example.com/"


@pytest.fixture
def pay_client():
    return create_app(PaymentConfig).test_client()


def test_checkout_is_forwarded_verbatim(pay_client, outbound):
    reply = {"success": True, "sessionId": "cs_test_123", "url": "https://checkout.stripe.com/c/cs_test_123"}
    outbound.replies["/api/create-session"] = FakeResponse(200, reply)

    resp = pay_client.post("/", json={"action": "createStripeCheckout", "package": "basic",
                                       "packageName": "BASIC", "amount": 5000})

    assert resp.get_json() == reply
    sent = outbound.calls[0]
    assert sent["url"] == "https://pay.example.com/api/create-session"
    assert sent["json"]["amount"] == 5000
    assert sent["json"]["currency"] == "thb"


def test_verify_payment_is_forwarded(pay_client, outbound):
    reply = {"success": True, "paid": True, "amount": 5000, "paymentStatus": "paid"}
    outbound.replies["/api/verify-payment"] = FakeResponse(200, reply)

    resp = pay_client.post("/", json={"action": "verifyStripePayment", "sessionId": "cs_test_123"})

    assert resp.get_json() == reply
    assert outbound.calls[0]["json"] == {"sessionId": "cs_test_123"}


def test_payment_actions_never_write_leads(client, app, outbound):
    resp = client.post("/", json={"action": "verifyStripePayment", "sessionId": "cs_1"})
    assert resp.get_json() == {"success": False, "error": "Payment gateway is not configured"}
    assert leads(app) is None


def test_payment_gateway_down(pay_client, outbound):
    outbound.replies["pay.example.com"] = requests.ConnectionError("timed out")
    resp = pay_client.post("/", json={"action": "verifyStripePayment", "sessionId": "cs_1"})
    body = resp.get_json()
    assert body["success"] is False
    assert "timed out" in body["error"]


def test_health_check_without_lead_spreadsheet():
    body = create_app(NoLeadSheetConfig).test_client().get("/").get_json()
    assert body["status"] == "OK"
    assert body["spreadsheetName"] == ""


def test_operator_emails_name_the_lead_spreadsheet(client, outbound):
    client.post("/", json=PET_CO)
    client.post("/", json=PACKAGE_ORDER)

    admin = [e for e in outbound.emails if e["to"] == [{"email": "admin@example.com"}]]
    assert len(admin) == 2
    for email in admin:
        assert "Open Leads Database" in email["htmlContent"]
        assert "(Leads Database): https://docs.google.com/spreadsheets/d/test-leads/edit" in email["textContent"]
