"""
Lulu print-on-demand adapter.

Auth: OAuth client credentials, token cached until 60s before expiry.
Errors: network failures and 5xx -> VendorUnavailableError (retry next tick),
4xx -> VendorRejectedError (terminal for the order), malformed 2xx bodies ->
VendorUnavailableError.
"""
import hashlib
import hmac
import logging
import threading
import time
from decimal import Decimal, InvalidOperation

import requests

from app.domain import print_order as po
from app.domain.errors import VendorRejectedError, VendorUnavailableError
from app.infrastructure.integrations.base import (
    RenderedArtifact, ShippingAddress, VendorGateway, VendorJob, VendorQuote, VendorStatus,
)

logger = logging.getLogger(__name__)

# {TrimSize}{Color}{Quality}{Bind}{Paper}{PPI}{Finish}{Linen}{Foil}
# Weekly booklets are 5.5x8.5, everything else 6x9, all perfect-bound
POD_PACKAGES = {
    "weekly-bw": "0550X0850BWSTDPB060UW444MXX",
    "weekly-color": "0550X0850FCSTDPB060UW444MXX",
    "default-bw": "0600X0900BWSTDPB060UW444MXX",
    "default-color": "0600X0900FCSTDPB080CW444GXX",
}

# Lulu job status name -> PrintOrder status
STATUS_MAP = {
    "CREATED": po.IN_PRODUCTION,
    "UNPAID": po.IN_PRODUCTION,
    "PAYMENT_IN_PROGRESS": po.IN_PRODUCTION,
    "PRODUCTION_DELAYED": po.IN_PRODUCTION,
    "PRODUCTION_READY": po.IN_PRODUCTION,
    "IN_PRODUCTION": po.IN_PRODUCTION,
    "SHIPPED": po.SHIPPED,
    "DELIVERED": po.DELIVERED,
    "REJECTED": po.FAILED,
    "CANCELED": po.FAILED,
}


def parse_cents(amount: str | None) -> int | None:
    if amount in (None, ""):
        return None
    try:
        return int((Decimal(str(amount)) * 100).quantize(Decimal("1")))
    except InvalidOperation:
        return None


def job_to_status(job: dict) -> VendorStatus:
    """Map a Lulu print-job document onto a VendorStatus."""
    status = job.get("status") or {}
    name = (status.get("name") or "").upper()
    tracking_url = None
    for item in job.get("line_items") or []:
        urls = item.get("tracking_urls") or []
        if urls:
            tracking_url = urls[0]
            break
    costs = job.get("costs") or {}
    return VendorStatus(
        status=STATUS_MAP.get(name),
        tracking_url=tracking_url,
        cost_cents=parse_cents(costs.get("total_cost_incl_tax")),
        message=status.get("message"),
        raw_status=name or None,
    )


def verify_webhook_signature(payload: bytes, signature: str, secret: str) -> bool:
    """HMAC-SHA256 hex digest of the raw body, compared in constant time."""
    if not signature or not secret:
        return False
    computed = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(computed, signature.strip().lower())


def _address_payload(address: ShippingAddress) -> dict:
    data = {
        "name": address.name,
        "street1": address.street1,
        "city": address.city,
        "state_code": address.state_code,
        "country_code": address.country_code,
        "postcode": address.postcode,
        "phone_number": address.phone_number,
    }
    if address.street2:
        data["street2"] = address.street2
    if address.email:
        data["email"] = address.email
    return data


class LuluGateway(VendorGateway):
    def __init__(self, api_key: str, api_secret: str, sandbox: bool = True, timeout: float = 30):
        self.api_key = api_key
        self.api_secret = api_secret
        self.sandbox = sandbox
        self.timeout = timeout
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._lock = threading.Lock()

    @property
    def base_url(self) -> str:
        return "https://api.sandbox.lulu.com" if self.sandbox else "https://api.lulu.com"

    # ── Auth ──

    def _access_token(self) -> str:
        with self._lock:
            if self._token and self._token_expires_at > time.time() + 60:
                return self._token
            try:
                resp = requests.post(
                    f"{self.base_url}/auth/realms/glasstree/protocol/openid-connect/token",
                    data={"grant_type": "client_credentials"},
                    auth=(self.api_key, self.api_secret),
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                raise VendorUnavailableError(f"Lulu auth request failed: {exc}") from exc
            if not resp.ok:
                raise VendorUnavailableError(f"Lulu auth failed ({resp.status_code})")
            try:
                data = resp.json()
                token = data["access_token"]
                expires_in = int(data.get("expires_in", 0))
            except (ValueError, KeyError, TypeError, AttributeError) as exc:
                raise VendorUnavailableError(f"Lulu auth returned a malformed token response: {exc!r}") from exc
            self._token = token
            self._token_expires_at = time.time() + expires_in
            return self._token

    def _request(self, method: str, path: str, body: dict | None = None) -> dict:
        token = self._access_token()
        try:
            resp = requests.request(
                method,
                f"{self.base_url}{path}",
                json=body,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise VendorUnavailableError(f"Lulu request failed: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = None

        if resp.status_code == 401:
            self._token = None
            raise VendorUnavailableError("Lulu token rejected")
        if resp.status_code >= 500:
            raise VendorUnavailableError(f"Lulu API error ({resp.status_code})")
        if not resp.ok:
            detail = data if isinstance(data, dict) else {}
            msg = detail.get("detail") or detail.get("message") or f"Lulu API error ({resp.status_code})"
            raise VendorRejectedError(str(msg))
        if not isinstance(data, dict):
            raise VendorUnavailableError(f"Lulu returned a malformed response ({resp.status_code})")
        return data

    # ── VendorGateway ──

    def pod_package_id(self, frequency: str, color_option: str) -> str:
        color = "color" if color_option == "color" else "bw"
        size = "weekly" if frequency == "weekly" else "default"
        return POD_PACKAGES[f"{size}-{color}"]

    def quote(self, pod_package_id: str, page_count: int, address: ShippingAddress) -> VendorQuote:
        body = {
            "line_items": [
                {"pod_package_id": pod_package_id, "page_count": page_count, "quantity": 1},
            ],
            "shipping_address": {
                k: v for k, v in _address_payload(address).items()
                if k in ("city", "country_code", "postcode", "state_code", "street1", "phone_number")
            },
            "shipping_option": "MAIL",
        }
        data = self._request("POST", "/print-job-cost-calculations/", body)
        cost = parse_cents(data.get("total_cost_incl_tax"))
        if cost is None:
            raise VendorUnavailableError("Lulu cost calculation returned no total")
        return VendorQuote(cost_cents=cost, currency=data.get("currency", "USD"))

    def submit(
        self,
        artifact: RenderedArtifact,
        address: ShippingAddress,
        color_option: str,
        *,
        frequency: str,
        external_id: str,
    ) -> VendorJob:
        if not artifact.interior_url or not artifact.cover_url:
            raise VendorRejectedError("Artifact has no public URLs for the printer to fetch")
        body = {
            "external_id": external_id,
            "line_items": [
                {
                    "pod_package_id": self.pod_package_id(frequency, color_option),
                    "quantity": 1,
                    "title": artifact.title,
                    "interior": {"source_url": artifact.interior_url},
                    "cover": {"source_url": artifact.cover_url},
                },
            ],
            "shipping_option_level": "MAIL",
            "contact_email": address.email,
            "shipping_address": _address_payload(address),
        }
        data = self._request("POST", "/print-jobs/", body)
        job_id = data.get("id")
        if job_id is None:
            raise VendorUnavailableError(f"Lulu print job response for {external_id} has no id")
        logger.info("Lulu print job %s created for %s", job_id, external_id)
        return VendorJob(vendor_job_id=str(job_id))

    def poll_status(self, vendor_job_id: str) -> VendorStatus:
        return job_to_status(self._request("GET", f"/print-jobs/{vendor_job_id}/"))
