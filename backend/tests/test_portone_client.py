import json
import unittest
from datetime import datetime, timedelta, timezone

import httpx

from portone_fake import API_SECRET, BASE_URL, FakePortOne

from magazine_api.core.errors import (
    GatewayCancellationError,
    GatewayLookupError,
    GatewaySchedulingError,
    InvalidCustomData,
)
from magazine_api.services.portone.client import PortOneClient
from magazine_api.services.portone.types import BillingCustomData

FIRE_AT = datetime(2026, 2, 15, 1, 30, tzinfo=timezone.utc)


class TestPortOneClient(unittest.TestCase):
    def setUp(self):
        self.fake = FakePortOne()
        self.client = self.fake.client()

    def tearDown(self):
        self.client.close()

    def test_fetch_payment_parses_fields(self):
        self.fake.add_payment("pay-1", amount=9900, custom_data="user-1")
        payment = self.client.fetch_payment("pay-1")
        self.assertEqual(payment.payment_id, "pay-1")
        self.assertEqual(payment.amount, 9900)
        self.assertEqual(payment.billing_key, "billing-key-1")
        self.assertEqual(payment.customer_id, "customer-1")
        self.assertEqual(payment.custom_data.user_id, "user-1")

    def test_requests_carry_the_portone_secret(self):
        self.fake.add_payment("pay-1")
        self.client.fetch_payment("pay-1")
        self.assertEqual(self.fake.requests[0].headers["authorization"], f"PortOne {API_SECRET}")

    def test_fetch_missing_payment_raises_lookup_error(self):
        with self.assertRaises(GatewayLookupError) as ctx:
            self.client.fetch_payment("missing")
        self.assertEqual(ctx.exception.gateway_status, 404)
        self.assertEqual(ctx.exception.status_code, 500)

    def test_bad_custom_data_is_rejected_on_access(self):
        for raw in (None, "", "   ", {"userId": "user-1"}, "two words"):
            self.fake.add_payment("pay-x", custom_data=raw)
            payment = self.client.fetch_payment("pay-x")
            with self.assertRaises(InvalidCustomData):
                _ = payment.custom_data

    def test_charge_billing_key_sends_amount_and_custom_data(self):
        self.client.charge_billing_key(
            payment_id="pay-1",
            billing_key="bk",
            order_name="Magazine monthly",
            customer_id="cust",
            amount=9900,
            currency="KRW",
            custom_data=BillingCustomData("user-1"),
        )
        request = self.fake.calls("POST", "/payments/pay-1/billing-key")[0]
        body = json.loads(request.content)
        self.assertEqual(body["amount"], {"total": 9900})
        self.assertEqual(body["customData"], "user-1")
        self.assertEqual(body["currency"], "KRW")

    def test_schedule_charge_sends_time_to_pay(self):
        self.client.schedule_charge(
            schedule_id="next-1",
            billing_key="bk",
            order_name="Magazine monthly",
            customer_id="cust",
            amount=9900,
            currency="KRW",
            fire_at=FIRE_AT,
        )
        body = json.loads(self.fake.calls("POST", "/payments/next-1/schedule")[0].content)
        self.assertEqual(body["timeToPay"], "2026-02-15T01:30:00Z")
        self.assertEqual(body["payment"]["billingKey"], "bk")
        self.assertNotIn("customData", body["payment"])

    def test_schedule_charge_requires_billing_key(self):
        with self.assertRaises(GatewaySchedulingError):
            self.client.schedule_charge(
                schedule_id="next-1",
                billing_key=None,
                order_name="Magazine monthly",
                customer_id="cust",
                amount=9900,
                currency="KRW",
                fire_at=FIRE_AT,
            )
        self.assertEqual(self.fake.requests, [])

    def test_schedule_rejection_raises(self):
        self.fake.fail_schedule = 400
        with self.assertRaises(GatewaySchedulingError) as ctx:
            self.client.schedule_charge(
                schedule_id="next-1",
                billing_key="bk",
                order_name="o",
                customer_id="c",
                amount=1,
                currency="KRW",
                fire_at=FIRE_AT,
            )
        self.assertEqual(ctx.exception.gateway_status, 400)

    def test_list_schedules_filters_by_window_and_pages(self):
        for i in range(150):
            self.fake.add_schedule(
                payment_id=f"next-{i}",
                billing_key="bk",
                time_to_pay=(FIRE_AT + timedelta(seconds=i)).isoformat().replace("+00:00", "Z"),
            )
        self.fake.add_schedule(payment_id="far", billing_key="bk", time_to_pay="2026-06-01T00:00:00Z")
        self.fake.add_schedule(payment_id="other", billing_key="other-bk", time_to_pay="2026-02-15T01:30:00Z")

        items = self.client.list_schedules(
            billing_key="bk",
            from_time=FIRE_AT - timedelta(days=1),
            until_time=FIRE_AT + timedelta(days=1),
        )
        self.assertEqual(len(items), 150)
        self.assertEqual(len(self.fake.calls("GET", "/payment-schedules")), 2)
        self.assertEqual(items[0].time_to_pay, FIRE_AT)
        self.assertNotIn("far", {i.payment_id for i in items})

    def test_cancel_schedules_empty_makes_no_request(self):
        self.client.cancel_schedules([])
        self.assertEqual(self.fake.requests, [])

    def test_cancel_schedules_revokes(self):
        schedule = self.fake.add_schedule(payment_id="next-1", billing_key="bk", time_to_pay="2026-02-15T01:30:00Z")
        self.client.cancel_schedules([schedule["id"]])
        self.assertEqual(self.fake.active_schedules(), [])

    def test_cancel_charge_then_already_cancelled(self):
        self.fake.add_payment("pay-1")
        self.assertTrue(self.client.cancel_charge("pay-1", "bye"))
        self.assertFalse(self.client.cancel_charge("pay-1", "bye"))
        body = json.loads(self.fake.calls("POST", "/payments/pay-1/cancel")[0].content)
        self.assertEqual(body, {"reason": "bye"})

    def test_cancel_charge_other_conflict_raises(self):
        def handler(request):
            return httpx.Response(409, json={"type": "CANCEL_AMOUNT_EXCEEDS_CANCELLABLE_AMOUNT"})

        client = PortOneClient(api_secret=API_SECRET, base_url=BASE_URL, transport=httpx.MockTransport(handler))
        with self.assertRaises(GatewayCancellationError):
            client.cancel_charge("pay-1", "bye")
        client.close()

    def test_transport_failure_is_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("boom", request=request)

        client = PortOneClient(api_secret=API_SECRET, base_url=BASE_URL, transport=httpx.MockTransport(handler))
        with self.assertRaises(GatewayLookupError):
            client.fetch_payment("pay-1")
        client.close()


if __name__ == "__main__":
    unittest.main()
