"""In-memory stand-in for the PortOne V2 REST API.

Plugs into ``PortOneClient`` through ``httpx.MockTransport`` so the real
request building and response parsing are exercised.
"""

import json
from datetime import datetime, timezone
from itertools import count

import httpx

from magazine_api.services.portone.client import PortOneClient

API_SECRET = "test-portone-secret"
BASE_URL = "https://api.portone.test"


def _parse_ts(raw: str) -> datetime:
    return datetime.fromisoformat(raw.replace("Z", "+00:00")).astimezone(timezone.utc)


def _json(status_code: int, payload) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


class FakePortOne:
    def __init__(self) -> None:
        self.payments: dict[str, dict] = {}
        self.schedules: list[dict] = []
        self.requests: list[httpx.Request] = []
        # Set to a status code to make the matching call fail.
        self.fail_schedule: int | None = None
        self.fail_cancel: int | None = None
        self._schedule_ids = count(1)

    def client(self) -> PortOneClient:
        return PortOneClient(api_secret=API_SECRET, base_url=BASE_URL, transport=httpx.MockTransport(self.handle))

    def add_payment(
        self,
        payment_id: str,
        *,
        amount: int = 9900,
        custom_data="user-1",
        billing_key: str | None = "billing-key-1",
        order_name: str | None = "Magazine monthly",
        customer_id: str | None = "customer-1",
        status: str = "PAID",
    ) -> dict:
        payment = {
            "id": payment_id,
            "status": status,
            "amount": {"total": amount},
            "billingKey": billing_key,
            "orderName": order_name,
            "customer": {"id": customer_id} if customer_id else {},
            "customData": custom_data,
        }
        self.payments[payment_id] = payment
        return payment

    def add_schedule(self, *, payment_id: str, billing_key: str, time_to_pay: str) -> dict:
        schedule = {
            "id": f"schedule-{next(self._schedule_ids)}",
            "paymentId": payment_id,
            "billingKey": billing_key,
            "timeToPay": time_to_pay,
            "status": "SCHEDULED",
        }
        self.schedules.append(schedule)
        return schedule

    def active_schedules(self) -> list[dict]:
        return [s for s in self.schedules if s["status"] == "SCHEDULED"]

    def calls(self, method: str, prefix: str = "") -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path.startswith(prefix)]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.headers.get("authorization") != f"PortOne {API_SECRET}":
            return _json(401, {"type": "UNAUTHORIZED", "message": "bad secret"})

        parts = [p for p in request.url.path.split("/") if p]
        body = json.loads(request.content) if request.content else {}

        if parts == ["payment-schedules"] and request.method == "GET":
            return self._list_schedules(request)
        if parts == ["payment-schedules"] and request.method == "DELETE":
            return self._revoke_schedules(body)
        if len(parts) == 2 and parts[0] == "payments" and request.method == "GET":
            payment = self.payments.get(parts[1])
            if payment is None:
                return _json(404, {"type": "PAYMENT_NOT_FOUND", "message": "no such payment"})
            return _json(200, payment)
        if len(parts) == 3 and parts[0] == "payments" and request.method == "POST":
            payment_id, action = parts[1], parts[2]
            if action == "billing-key":
                return self._charge(payment_id, body)
            if action == "schedule":
                return self._schedule(payment_id, body)
            if action == "cancel":
                return self._cancel(payment_id)
        return _json(404, {"type": "NOT_FOUND", "message": request.url.path})

    def _charge(self, payment_id: str, body: dict) -> httpx.Response:
        self.add_payment(
            payment_id,
            amount=body["amount"]["total"],
            custom_data=body.get("customData"),
            billing_key=body["billingKey"],
            order_name=body["orderName"],
            customer_id=body["customer"]["id"],
        )
        return _json(200, {"payment": {"pgTxId": f"pg-{payment_id}", "paidAt": "2026-10-16T00:00:00Z"}})

    def _schedule(self, payment_id: str, body: dict) -> httpx.Response:
        if self.fail_schedule is not None:
            return _json(self.fail_schedule, {"type": "BILLING_KEY_NOT_FOUND", "message": "rejected"})
        schedule = self.add_schedule(
            payment_id=payment_id,
            billing_key=body["payment"]["billingKey"],
            time_to_pay=body["timeToPay"],
        )
        schedule["payment"] = body["payment"]
        return _json(200, {"schedule": {"id": schedule["id"]}})

    def _list_schedules(self, request: httpx.Request) -> httpx.Response:
        query = json.loads(request.url.params["requestBody"])
        page = query.get("page") or {}
        number, size = int(page.get("number", 0)), int(page.get("size", 10))
        flt = query.get("filter") or {}
        lo, hi = _parse_ts(flt["from"]), _parse_ts(flt["until"])
        matches = [
            s
            for s in self.active_schedules()
            if s["billingKey"] == flt.get("billingKey") and lo <= _parse_ts(s["timeToPay"]) <= hi
        ]
        items = matches[number * size : (number + 1) * size]
        return _json(200, {"items": items, "page": {"number": number, "size": len(items), "totalCount": len(matches)}})

    def _revoke_schedules(self, body: dict) -> httpx.Response:
        ids = set(body.get("scheduleIds") or [])
        for schedule in self.schedules:
            if schedule["id"] in ids:
                schedule["status"] = "REVOKED"
        return _json(200, {"revokedScheduleIds": sorted(ids), "revokedAt": "2026-10-16T00:00:00Z"})

    def _cancel(self, payment_id: str) -> httpx.Response:
        if self.fail_cancel is not None:
            return _json(self.fail_cancel, {"type": "PG_PROVIDER_ERROR", "message": "rejected"})
        payment = self.payments.get(payment_id)
        if payment is None:
            return _json(404, {"type": "PAYMENT_NOT_FOUND", "message": "no such payment"})
        if payment["status"] == "CANCELLED":
            return _json(409, {"type": "PAYMENT_ALREADY_CANCELLED", "message": "already cancelled"})
        payment["status"] = "CANCELLED"
        return _json(200, {"cancellation": {"status": "SUCCEEDED", "totalAmount": payment["amount"]["total"]}})
