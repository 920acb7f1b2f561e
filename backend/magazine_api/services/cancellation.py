from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from magazine_api.core.errors import SubscriptionNotFound
from magazine_api.services import ledger
from magazine_api.services.checklist import Checklist, mark
from magazine_api.services.portone.client import PortOneClient

logger = logging.getLogger(__name__)

STEP_PARSE = "parse request body"
STEP_AUTHORIZE = "authorize caller"
STEP_SECRET = "check gateway secret"
STEP_LOOKUP = "find subscription"
STEP_CANCEL = "cancel charge at gateway"

CANCEL_STEPS = (STEP_PARSE, STEP_AUTHORIZE, STEP_SECRET, STEP_LOOKUP, STEP_CANCEL)


def cancel_subscription(
    db: Session,
    gateway: PortOneClient,
    *,
    user_id: str,
    transaction_key: str,
    reason: str,
    checklist: Checklist | None = None,
) -> bool:
    """Ask the gateway to cancel the caller's charge.

    The ledger is left alone: the reversal row and the revocation of the
    next scheduled charge happen when the gateway sends its ``Cancelled``
    notification. Returns False when the charge was already cancelled.
    """
    entry = ledger.find_entry_for_user(db, user_id, transaction_key)
    if entry is None:
        raise SubscriptionNotFound(user_id=user_id, transaction_key=transaction_key)
    mark(checklist, STEP_LOOKUP)

    cancelled_now = gateway.cancel_charge(transaction_key, reason)
    mark(checklist, STEP_CANCEL)
    logger.info(
        "billing.cancel.requested user_id=%s transaction_key=%s already_cancelled=%s",
        user_id,
        transaction_key,
        not cancelled_now,
    )
    return cancelled_now
