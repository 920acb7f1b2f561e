from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx

from magazine_api.core.errors import (
    GatewayCancellationError,
    GatewayChargeError,
    GatewayError,
    GatewayLookupError,
    GatewaySchedulingError,
)
from magazine_api.services.billing_window import to_gateway_timestamp
from magazine_api.services.portone.types import BillingCustomData, PaymentDetails, ScheduleItem

logger = logging.getLogger(__name__)

ALREADY_CANCELLED_ERROR = "PAYMENT_ALREADY_CANCELLED"
SCHEDULE_PAGE_SIZE = 100


def _parse_amount(amount: Any) -> int | None:
    if isinstance(amount, bool):
        return None
    if isinstance(amount, (int, float)):
        return int(amount)
    if isinstance(amount, dict):
        total = amount.get("total")
        if isinstance(total, bool):
            return None
        if isinstance(total, (int, float)):
            return int(total)
        if isinstance(total, str):
            try:
                return int(float(total))
            except ValueError:
                return None
    return None


def _parse_timestamp(raw: Any) -> datetime | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    v = raw.strip()
    if v.endswith("Z"):
        v = v[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(v)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _error_type(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return ""
    if isinstance(data, dict):
        return str(data.get("type") or "")
    return ""


class PortOneClient:
    """Typed calls against the PortOne V2 REST API.

    One instance (and so one connection pool) is built at startup and shared
    by all requests.
    """

    def __init__(
        self,
        *,
        api_secret: str,
        base_url: str = "https://api.portone.io",
        timeout_s: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._api_secret = (api_secret or "").strip()
        self._client = httpx.Client(
            base_url=(base_url or "").rstrip("/"),
            timeout=httpx.Timeout(timeout_s),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"PortOne {self._api_secret}",
            },
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _request(
        self,
        method: str,
        path: str,
        error_cls: type[GatewayError],
        *,
        allow: set[int] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            resp = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("portone.request.transport_error method=%s path=%s error=%s", method, path, exc)
            raise error_cls(f"PortOne request failed: {exc}", path=path)

        if resp.is_success or resp.status_code in (allow or set()):
            return resp

        body = ""
        try:
            body = resp.text[:500]
        except Exception:
            body = ""
        logger.error(
            "portone.request.failed method=%s path=%s status=%s body=%s",
            method,
            path,
            resp.status_code,
            body,
        )
        raise error_cls(gateway_status=resp.status_code, body=body, path=path)

    def fetch_payment(self, payment_id: str) -> PaymentDetails:
        resp = self._request("GET", f"/payments/{quote(payment_id, safe='')}", GatewayLookupError)
        try:
            data = resp.json()
        except ValueError:
            raise GatewayLookupError("PortOne returned invalid JSON", gateway_status=resp.status_code)
        if not isinstance(data, dict):
            raise GatewayLookupError("PortOne returned unexpected payment payload", gateway_status=resp.status_code)

        customer = data.get("customer") if isinstance(data.get("customer"), dict) else {}
        return PaymentDetails(
            payment_id=str(data.get("paymentId") or data.get("id") or payment_id),
            amount=_parse_amount(data.get("amount")),
            billing_key=(str(data["billingKey"]) if data.get("billingKey") else None),
            order_name=(str(data["orderName"]) if data.get("orderName") else None),
            customer_id=(str(customer["id"]) if customer.get("id") else None),
            raw_custom_data=data.get("customData"),
        )

    def charge_billing_key(
        self,
        *,
        payment_id: str,
        billing_key: str,
        order_name: str,
        customer_id: str,
        amount: int,
        currency: str,
        custom_data: BillingCustomData,
    ) -> None:
        self._request(
            "POST",
            f"/payments/{quote(payment_id, safe='')}/billing-key",
            GatewayChargeError,
            json={
                "billingKey": billing_key,
                "orderName": order_name,
                "amount": {"total": int(amount)},
                "customer": {"id": customer_id},
                "customData": custom_data.encode(),
                "currency": currency,
            },
        )
        logger.info("portone.charge_billing_key.ok payment_id=%s amount=%s", payment_id, amount)

    def schedule_charge(
        self,
        *,
        schedule_id: str,
        billing_key: str | None,
        order_name: str | None,
        customer_id: str | None,
        amount: int,
        currency: str,
        fire_at: datetime,
        custom_data: BillingCustomData | None = None,
    ) -> None:
        if not billing_key or not order_name or not customer_id:
            raise GatewaySchedulingError(
                "Billing key, order name and customer id are required to schedule a charge",
                schedule_id=schedule_id,
            )
        payment: dict[str, Any] = {
            "billingKey": billing_key,
            "orderName": order_name,
            "customer": {"id": customer_id},
            "amount": {"total": int(amount)},
            "currency": currency,
        }
        if custom_data is not None:
            payment["customData"] = custom_data.encode()
        self._request(
            "POST",
            f"/payments/{quote(schedule_id, safe='')}/schedule",
            GatewaySchedulingError,
            json={"payment": payment, "timeToPay": to_gateway_timestamp(fire_at)},
        )
        logger.info("portone.schedule_charge.ok schedule_id=%s fire_at=%s", schedule_id, to_gateway_timestamp(fire_at))

    def list_schedules(self, *, billing_key: str, from_time: datetime, until_time: datetime) -> list[ScheduleItem]:
        items: list[ScheduleItem] = []
        page = 0
        while True:
            request_body = {
                "page": {"number": page, "size": SCHEDULE_PAGE_SIZE},
                "filter": {
                    "billingKey": billing_key,
                    "from": to_gateway_timestamp(from_time),
                    "until": to_gateway_timestamp(until_time),
                },
            }
            resp = self._request(
                "GET",
                "/payment-schedules",
                GatewayLookupError,
                params={"requestBody": json.dumps(request_body, separators=(",", ":"))},
            )
            try:
                data = resp.json()
            except ValueError:
                raise GatewayLookupError("PortOne returned invalid JSON", gateway_status=resp.status_code)

            raw_items = data.get("items") if isinstance(data, dict) else None
            if not isinstance(raw_items, list):
                raw_items = []
            for raw in raw_items:
                if not isinstance(raw, dict) or not raw.get("id"):
                    continue
                items.append(
                    ScheduleItem(
                        id=str(raw["id"]),
                        payment_id=(str(raw["paymentId"]) if raw.get("paymentId") else None),
                        time_to_pay=_parse_timestamp(raw.get("timeToPay")),
                    )
                )

            page_info = data.get("page") if isinstance(data, dict) else None
            total = int((page_info or {}).get("totalCount") or 0) if isinstance(page_info, dict) else 0
            page += 1
            if not raw_items or page * SCHEDULE_PAGE_SIZE >= total:
                break
        return items

    def cancel_schedules(self, schedule_ids: list[str]) -> None:
        ids = [s for s in schedule_ids if s]
        if not ids:
            return
        self._request(
            "DELETE",
            "/payment-schedules",
            GatewayCancellationError,
            json={"scheduleIds": ids},
        )
        logger.info("portone.cancel_schedules.ok schedule_ids=%s", ",".join(ids))

    def cancel_charge(self, transaction_key: str, reason: str) -> bool:
        """Cancel a captured charge; returns False if it was already cancelled."""
        resp = self._request(
            "POST",
            f"/payments/{quote(transaction_key, safe='')}/cancel",
            GatewayCancellationError,
            allow={409},
            json={"reason": reason},
        )
        if resp.status_code == 409:
            if _error_type(resp) == ALREADY_CANCELLED_ERROR:
                logger.info("portone.cancel_charge.already_cancelled transaction_key=%s", transaction_key)
                return False
            body = resp.text[:500]
            logger.error("portone.cancel_charge.conflict transaction_key=%s body=%s", transaction_key, body)
            raise GatewayCancellationError(gateway_status=409, body=body, transaction_key=transaction_key)
        logger.info("portone.cancel_charge.ok transaction_key=%s", transaction_key)
        return True


def build_portone_client(settings) -> PortOneClient | None:
    if not settings.portone_api_secret:
        return None
    return PortOneClient(
        api_secret=settings.portone_api_secret,
        base_url=settings.portone_base_url,
        timeout_s=settings.portone_timeout_s,
    )
