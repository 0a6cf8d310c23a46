# storefront/services/payment_gateway.py
from decimal import ROUND_HALF_UP, Decimal

import requests
from requests import RequestException

from storefront.domain.errors import UpstreamError
from storefront.utils.retry import http_retry
from storefront.utils.settings import MIDTRANS_IS_PRODUCTION, MIDTRANS_SERVER_KEY, PAYMENT_TIMEOUT_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

SNAP_URLS = {
    True: "https://app.midtrans.com",
    False: "https://app.sandbox.midtrans.com",
}
CORE_API_URLS = {
    True: "https://api.midtrans.com",
    False: "https://api.sandbox.midtrans.com",
}


def to_idr(amount) -> int:
    """Midtrans przyjmuje tylko calkowite rupie, zaokraglenie polowek w gore."""
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentGatewayClient:
    """
    Klient Midtrans: Snap (sesja platnosci) i Core API (status transakcji).
    Autoryzacja basic auth: server key jako login, puste haslo.
    """

    def __init__(
        self,
        server_key: str | None = None,
        is_production: bool = MIDTRANS_IS_PRODUCTION,
        timeout: float = PAYMENT_TIMEOUT_SECONDS,
    ):
        self.server_key = server_key if server_key is not None else MIDTRANS_SERVER_KEY
        self.snap_url = SNAP_URLS[is_production]
        self.core_api_url = CORE_API_URLS[is_production]
        self.timeout = timeout

    @http_retry()
    def _send(self, method: str, url: str, json: dict | None = None) -> requests.Response:
        logger.info(f"PaymentGatewayClient {method} {url}")
        return requests.request(
            method,
            url,
            json=json,
            auth=(self.server_key, ""),
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )

    def _call(self, method: str, url: str, json: dict | None = None) -> dict:
        try:
            resp = self._send(method, url, json=json)
        except RequestException as e:
            logger.error(f"Payment gateway unreachable: {method} {url} error={e}")
            raise UpstreamError("Payment gateway unavailable") from e

        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.status_code >= 400 or not isinstance(body, dict):
            logger.error(
                f"Payment gateway error: {method} {url} status={resp.status_code} "
                f"body={body if body is not None else resp.text[:500]}"
            )
            raise UpstreamError("Payment gateway request failed", details={"providerStatus": resp.status_code})

        return body

    def create_transaction(
        self,
        midtrans_order_id: str,
        gross_amount: Decimal,
        item_details: list[dict] | None = None,
        customer_details: dict | None = None,
    ) -> dict:
        """Tworzy transakcje Snap, zwraca {"token", "redirect_url"}."""
        payload = {
            "transaction_details": {
                "order_id": midtrans_order_id,
                "gross_amount": to_idr(gross_amount),
            },
        }
        if item_details:
            payload["item_details"] = item_details
        if customer_details:
            payload["customer_details"] = customer_details

        body = self._call("POST", f"{self.snap_url}/snap/v1/transactions", json=payload)
        if not body.get("token") or not body.get("redirect_url"):
            logger.error(f"Snap response without token: order={midtrans_order_id} body={body}")
            raise UpstreamError("Payment gateway returned no payment session")
        return body

    def get_status(self, transaction_ref: str) -> dict:
        """Kanoniczny status transakcji (order_id albo transaction_id)."""
        body = self._call("GET", f"{self.core_api_url}/v2/{transaction_ref}/status")
        # Core API zwraca 200 z wlasnym status_code w body
        if str(body.get("status_code", "")).startswith(("4", "5")):
            logger.error(f"Status query rejected: ref={transaction_ref} body={body}")
            raise UpstreamError(
                body.get("status_message") or "Payment status query failed",
                details={"providerStatus": body.get("status_code")},
            )
        return body
