# storefront/services/shipping_client.py
from decimal import Decimal
from typing import Any

import requests
from requests import RequestException

from storefront.domain.errors import UpstreamError, ValidationError
from storefront.domain.schemas import ShippingRate
from storefront.utils.retry import http_retry
from storefront.utils.settings import SHIPPING_API_KEY, SHIPPING_API_URL, SHIPPING_TIMEOUT_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class ShippingClient:
    """
    Klient API stawek Komerce (RajaOngkir).
    Kazda porazka (HTTP, siec, success=false) -> UpstreamError.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float = SHIPPING_TIMEOUT_SECONDS,
    ):
        self.base_url = (base_url or SHIPPING_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else SHIPPING_API_KEY
        self.timeout = timeout

    @http_retry()
    def _get(self, path: str, params: dict) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.info(f"ShippingClient GET {url} params={params}")
        return requests.get(
            url,
            params=params,
            headers={"x-api-key": self.api_key, "Accept": "application/json"},
            timeout=self.timeout,
        )

    def _call(self, path: str, params: dict) -> Any:
        try:
            resp = self._get(path, params)
        except RequestException as e:
            logger.error(f"Shipping provider unreachable: path={path} params={params} error={e}")
            raise UpstreamError("Shipping service unavailable") from e

        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.status_code >= 400 or not isinstance(body, dict) or not _is_success(body):
            logger.error(
                f"Shipping provider error: path={path} params={params} "
                f"status={resp.status_code} body={body if body is not None else resp.text[:500]}"
            )
            message = _upstream_message(body) or "Shipping service unavailable"
            raise UpstreamError(message, details={"providerStatus": resp.status_code})

        return body.get("data")

    def get_rates(
        self,
        origin_id: str,
        destination_id: str,
        weight_kg: Decimal,
        item_value: Decimal = Decimal("0"),
        is_cod: bool = False,
    ) -> list[ShippingRate]:
        params = {
            "shipper_destination_id": origin_id,
            "receiver_destination_id": destination_id,
            "weight": str(weight_kg),
            "item_value": str(item_value),
            "cod": "yes" if is_cod else "no",
        }
        data = self._call("/tariff/api/v1/calculate", params)
        rates = [_parse_rate(entry) for entry in _flatten(data)]
        logger.info(f"Otrzymano {len(rates)} opcji wysylki dla destynacji {destination_id}")
        return rates

    def search_destinations(self, keyword: str) -> list[dict]:
        keyword = (keyword or "").strip()
        if len(keyword) < 3:
            raise ValidationError("Keyword must be at least 3 characters")

        data = self._call("/tariff/api/v1/destination/search", {"keyword": keyword})
        if not data:
            return []
        return list(data)


def _is_success(body: dict) -> bool:
    if body.get("success") is False:
        return False
    meta = body.get("meta")
    if isinstance(meta, dict) and meta.get("status") not in (None, "success"):
        return False
    return True


def _upstream_message(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    meta = body.get("meta")
    if isinstance(meta, dict) and meta.get("message"):
        return str(meta["message"])
    return body.get("message")


def _flatten(data: Any) -> list[dict]:
    # calculate zwraca liste albo grupy {calculate_reguler: [...], calculate_cargo: [...]}
    if data is None:
        return []
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        entries = []
        for group in data.values():
            if isinstance(group, list):
                entries.extend(group)
        return entries
    raise UpstreamError("Unexpected shipping provider payload")


def _parse_rate(entry: dict) -> ShippingRate:
    service_name = entry.get("service_name") or ""
    try:
        return ShippingRate(
            service_code=entry.get("service_code") or service_name,
            courier_name=entry.get("courier_name") or entry.get("shipping_name") or "",
            service_name=service_name,
            price=Decimal(str(entry.get("price", entry.get("shipping_cost")))),
            etd=entry.get("etd") or None,
        )
    except (ArithmeticError, ValueError) as e:
        logger.error(f"Niepoprawna stawka od dostawcy: {entry}")
        raise UpstreamError("Unexpected shipping provider payload") from e
