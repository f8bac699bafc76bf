"""Intake endpoint: lead and package-order submissions, payment actions, health check."""
from flask import Blueprint, Response, current_app, jsonify, request

from backoffice.errors import ParseError, StoreError
from backoffice.ingestion import Services, ingest
from backoffice.payments import PAYMENT_ACTIONS
from backoffice.records import normalize_payload, read_payload, utc_now_iso

main_bp = Blueprint("main", __name__)


def _services() -> Services:
    return current_app.extensions["backoffice"]


@main_bp.route("/", methods=["OPTIONS"])
def preflight():
    """CORS preflight: empty body, headers added in after_request."""
    return Response("", mimetype="application/json")


@main_bp.route("/", methods=["GET"])
def health():
    """Status plus the lead spreadsheet's name; never reads or writes the Leads sheet."""
    services = _services()
    try:
        spreadsheet_name = services.store.describe().title
    except StoreError as e:
        current_app.logger.warning("Health check could not read spreadsheet name: %s", e)
        spreadsheet_name = ""
    return jsonify({
        "message": "Lead Collection API is running",
        "status": "OK",
        "timestamp": utc_now_iso(),
        "spreadsheetId": services.settings.spreadsheet_id,
        "spreadsheetName": spreadsheet_name,
    })


@main_bp.route("/", methods=["POST"])
def submit():
    """Store a lead or package order, or forward a payment action."""
    services = _services()
    # parse_form_data: form bodies land in request.form, anything else is returned raw
    body = request.get_data(cache=True, parse_form_data=True)
    try:
        raw = read_payload(body, request.content_type, request.form.to_dict(), request.args.to_dict())
        record = normalize_payload(raw)
    except ParseError as e:
        current_app.logger.warning("Rejected submission: %s", e)
        return jsonify({"success": False, "error": str(e)}), 400

    if record.action in PAYMENT_ACTIONS:
        current_app.logger.info("Payment action %s for %s", record.action, record.email or "anonymous")
        return jsonify(services.payments.handle(record))

    try:
        outcome = ingest(services, record)
    except StoreError as e:
        current_app.logger.error("Submission not saved: %s", e)
        return jsonify({"success": False, "error": str(e)}), 500
    return jsonify(outcome.response)
