"""Proxy for the serverless payment API (Stripe checkout sessions)."""
import logging

import requests

from backoffice.config import Settings
from backoffice.records import LeadRecord

logger = logging.getLogger(__name__)

CREATE_CHECKOUT_ACTION = "createStripeCheckout"
VERIFY_PAYMENT_ACTION = "verifyStripePayment"
PAYMENT_ACTIONS = (CREATE_CHECKOUT_ACTION, VERIFY_PAYMENT_ACTION)


class PaymentGateway:
    """Forwards payment actions and returns the API's JSON reply unchanged."""

    def __init__(self, settings: Settings) -> None:
        self.base_url = settings.payment_api_url

    def handle(self, record: LeadRecord) -> dict:
        if record.action == CREATE_CHECKOUT_ACTION:
            return self.create_checkout(record)
        if record.action == VERIFY_PAYMENT_ACTION:
            return self.verify_payment(record)
        return {"success": False, "error": f"Unknown payment action: {record.action}"}

    def create_checkout(self, record: LeadRecord) -> dict:
        payload = {
            "package": record.package,
            "packageName": record.package_name,
            "amount": record.amount if record.amount != "" else record.package_price,
            "currency": record.currency or "thb",
        }
        if record.success_url:
            payload["successUrl"] = record.success_url
        if record.cancel_url:
            payload["cancelUrl"] = record.cancel_url
        return self._post("/api/create-session", payload)

    def verify_payment(self, record: LeadRecord) -> dict:
        return self._post("/api/verify-payment", {"sessionId": record.session_id})

    def _post(self, path: str, payload: dict) -> dict:
        if not self.base_url:
            logger.warning("Payment action skipped: PAYMENT_API_URL not set")
            return {"success": False, "error": "Payment gateway is not configured"}
        try:
            r = requests.post(
                self.base_url + path,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=15,
            )
        except requests.RequestException as e:
            logger.warning("Payment API error on %s: %s", path, e)
            return {"success": False, "error": f"Payment gateway unreachable: {e}"}
        try:
            data = r.json()
        except ValueError:
            logger.warning("Payment API %s returned non-JSON: HTTP %s – %s", path, r.status_code, (r.text or "")[:200])
            return {"success": False, "error": f"Payment gateway returned HTTP {r.status_code}"}
        if not isinstance(data, dict):
            return {"success": False, "error": "Payment gateway returned an unexpected reply"}
        return data
