import hmac
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

import requests

from stivans.config import Settings
from stivans.errors import AuthError, GatewayError, ServerError

logger = logging.getLogger(__name__)

INVOICE_PATH = "/v2/invoices"


@dataclass
class InvoiceResult:
    id: str
    invoice_url: str
    status: Optional[str] = None


class XenditClient:
    """
    Hosted-invoice client for Xendit.

    Only invoice creation goes out over the wire. Status changes come back
    as webhooks, which are authenticated with a static callback token.
    Failed calls are not retried here.
    """

    def __init__(self, settings: Settings, http: Optional[requests.Session] = None):
        self.settings = settings
        self.base_url = settings.xendit_api_base.rstrip("/")
        self.timeout = settings.xendit_timeout_seconds
        self.http = http or requests.Session()
        self.http.auth = (settings.xendit_secret_key, "")

    def close(self):
        self.http.close()

    def create_invoice(
        self,
        *,
        external_id: str,
        amount: Decimal,
        currency: str,
        description: str,
        success_redirect_url: str,
        failure_redirect_url: str,
        metadata: Optional[Dict[str, Any]] = None,
        payer_email: Optional[str] = None,
    ) -> InvoiceResult:
        if not self.settings.xendit_secret_key:
            raise ServerError("Missing XENDIT_SECRET_KEY")

        payload = {
            "external_id": external_id,
            "amount": float(Decimal(amount).quantize(Decimal("0.01"))),
            "currency": currency,
            "description": description,
            "success_redirect_url": success_redirect_url,
            "failure_redirect_url": failure_redirect_url,
        }
        if metadata:
            payload["metadata"] = metadata
        if payer_email:
            payload["payer_email"] = payer_email

        try:
            response = self.http.post(
                f"{self.base_url}{INVOICE_PATH}",
                json=payload,
                timeout=self.timeout,
            )
        except requests.Timeout:
            logger.error(f"Xendit invoice timed out for {external_id}")
            raise GatewayError("Payment gateway timed out", upstream_status=504)
        except requests.RequestException as exc:
            logger.error(f"Xendit invoice request failed for {external_id}: {exc}")
            raise GatewayError("Payment gateway unreachable", detail=str(exc))

        body = _json_or_text(response)

        if response.status_code >= 400:
            logger.error(
                f"Xendit invoice failed ({response.status_code}) for {external_id}: {body}"
            )
            raise GatewayError(
                "Xendit error",
                detail=body,
                upstream_status=response.status_code,
            )

        if not isinstance(body, dict) or not body.get("id") or not body.get("invoice_url"):
            raise GatewayError("Unexpected Xendit response", detail=body)

        logger.info(f"Xendit invoice {body['id']} created for {external_id}")
        return InvoiceResult(
            id=body["id"],
            invoice_url=body["invoice_url"],
            status=body.get("status"),
        )

    def verify_callback_token(self, token: Optional[str]):
        expected = self.settings.xendit_callback_token
        if not expected or not token:
            raise AuthError("Bad callback token")
        if not hmac.compare_digest(token.encode(), expected.encode()):
            raise AuthError("Bad callback token")


def _json_or_text(response):
    try:
        return response.json()
    except ValueError:
        return response.text
