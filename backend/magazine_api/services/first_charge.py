from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import uuid4

from magazine_api.core.errors import AuthorizationError
from magazine_api.services.portone.client import PortOneClient
from magazine_api.services.portone.types import BillingCustomData

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FirstChargeRequest:
    billing_key: str
    order_name: str
    amount: int
    customer_id: str
    custom_data: str


def charge_first_payment(
    gateway: PortOneClient,
    *,
    user_id: str,
    request: FirstChargeRequest,
    currency: str,
) -> str:
    """Charge a freshly issued billing key once and return the payment id.

    No ledger row is written here; it is created when the gateway reports the
    payment as ``Paid``.
    """
    if (request.custom_data or "").strip() != user_id:
        raise AuthorizationError("Custom data does not match the caller", user_id=user_id)
    custom_data = BillingCustomData(user_id=user_id)

    payment_id = str(uuid4())
    gateway.charge_billing_key(
        payment_id=payment_id,
        billing_key=request.billing_key,
        order_name=request.order_name,
        customer_id=request.customer_id,
        amount=request.amount,
        currency=currency,
        custom_data=custom_data,
    )
    logger.info("billing.first_charge.requested user_id=%s payment_id=%s", user_id, payment_id)
    return payment_id
