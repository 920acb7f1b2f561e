from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from magazine_api.core.errors import InvalidCustomData


@dataclass(frozen=True)
class BillingCustomData:
    """User identity carried through the gateway on every charge.

    PortOne stores ``customData`` as an opaque string and echoes it back on
    the payment; the bare user id is what goes on the wire.
    """

    user_id: str

    def encode(self) -> str:
        return self.user_id

    @classmethod
    def parse(cls, raw: Any) -> "BillingCustomData":
        if raw is None:
            raise InvalidCustomData("Payment has no custom data")
        if not isinstance(raw, str):
            raise InvalidCustomData("Payment custom data is not a string", kind=type(raw).__name__)
        value = raw.strip()
        if not value or any(ch.isspace() for ch in value):
            raise InvalidCustomData("Payment custom data is not a user id")
        return cls(user_id=value)


@dataclass(frozen=True)
class PaymentDetails:
    payment_id: str
    amount: int | None
    billing_key: str | None
    order_name: str | None
    customer_id: str | None
    raw_custom_data: Any = None

    @property
    def custom_data(self) -> BillingCustomData:
        return BillingCustomData.parse(self.raw_custom_data)


@dataclass(frozen=True)
class ScheduleItem:
    id: str
    payment_id: str | None
    time_to_pay: datetime | None = None
