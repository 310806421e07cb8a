"""
Stripe payments over the REST API (form-encoded).

card_error -> PaymentDeclinedError, anything else -> PaymentGatewayError.
PaymentIntents are created with an Idempotency-Key so a retried charge whose
first response was lost is replayed by Stripe rather than captured twice.
"""
import re

import requests

from app.domain.errors import PaymentDeclinedError, PaymentGatewayError
from app.infrastructure.integrations.base import PaymentGateway

STRIPE_API_BASE = "https://api.stripe.com/v1"
_CUSTOMER_ID_RE = re.compile(r"^cus_[a-zA-Z0-9]+$")


class StripePayments(PaymentGateway):
    def __init__(self, secret_key: str, currency: str = "usd", timeout: float = 20):
        self.secret_key = secret_key
        self.currency = currency
        self.timeout = timeout

    def _request(self, method: str, path: str, params: dict | None = None, idempotency_key: str | None = None) -> dict:
        headers = {"Authorization": f"Bearer {self.secret_key}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        try:
            resp = requests.request(
                method,
                f"{STRIPE_API_BASE}{path}",
                data=params if method != "GET" else None,
                params=params if method == "GET" else None,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise PaymentGatewayError(f"Stripe request failed: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            if resp.ok:
                raise PaymentGatewayError(f"Stripe returned a malformed response ({resp.status_code})")
            data = {}
        if not resp.ok:
            error = data.get("error") or {}
            msg = error.get("message") or f"Stripe API error ({resp.status_code})"
            if error.get("type") == "card_error":
                raise PaymentDeclinedError(msg)
            raise PaymentGatewayError(msg)
        return data

    def _default_payment_method(self, customer_id: str) -> str | None:
        customer = self._request("GET", f"/customers/{customer_id}")
        default = (customer.get("invoice_settings") or {}).get("default_payment_method")
        if default:
            return default
        methods = self._request("GET", "/payment_methods", {"customer": customer_id, "type": "card", "limit": 1})
        data = methods.get("data") or []
        return data[0].get("id") if data else None

    def charge(self, customer_id: str, amount_cents: int, description: str, *, idempotency_key: str | None = None) -> str:
        if not _CUSTOMER_ID_RE.match(customer_id or ""):
            raise PaymentDeclinedError("Invalid Stripe customer ID")
        payment_method = self._default_payment_method(customer_id)
        if not payment_method:
            raise PaymentDeclinedError("No payment method on file")

        intent = self._request("POST", "/payment_intents", {
            "amount": str(amount_cents),
            "currency": self.currency,
            "customer": customer_id,
            "payment_method": payment_method,
            "off_session": "true",
            "confirm": "true",
            "description": description,
        }, idempotency_key=idempotency_key)
        if intent.get("status") != "succeeded":
            raise PaymentDeclinedError(f"Payment status: {intent.get('status')}")
        if not intent.get("id"):
            raise PaymentGatewayError("Stripe PaymentIntent response has no id")
        return intent["id"]

    def refund(self, payment_id: str) -> None:
        self._request("POST", "/refunds", {"payment_intent": payment_id})
