from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy.orm import Session

from magazine_api.models.payment import PaymentLedgerEntry, PaymentStatus
from magazine_api.services import ledger
from magazine_api.services.billing_window import as_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionStatus:
    is_subscribed: bool
    transaction_key: str | None = None
    active_count: int = 0


def latest_per_transaction(entries: Iterable[PaymentLedgerEntry]) -> list[PaymentLedgerEntry]:
    """Keep the first entry seen for each transaction key.

    ``entries`` must already be newest first, so the survivor of each group is
    the one with the greatest ``created_at``.
    """
    latest: dict[str, PaymentLedgerEntry] = {}
    for entry in entries:
        if entry.transaction_key not in latest:
            latest[entry.transaction_key] = entry
    return list(latest.values())


def is_active(entry: PaymentLedgerEntry, now: datetime) -> bool:
    if entry.status != PaymentStatus.PAID.value:
        return False
    return as_utc(entry.start_at) <= now <= as_utc(entry.end_grace_at)


def active_entries(entries: Iterable[PaymentLedgerEntry], now: datetime) -> list[PaymentLedgerEntry]:
    now = as_utc(now)
    return [e for e in entries if is_active(e, now)]


def resolve_subscription_status(db: Session, user_id: str, now: datetime | None = None) -> SubscriptionStatus:
    now = as_utc(now or datetime.now(timezone.utc))
    entries = ledger.list_entries_for_user(db, user_id)
    active = active_entries(latest_per_transaction(entries), now)
    if not active:
        return SubscriptionStatus(is_subscribed=False)
    if len(active) > 1:
        logger.warning(
            "billing.status.multiple_active user_id=%s transaction_keys=%s",
            user_id,
            ",".join(e.transaction_key for e in active),
        )
    # Newest chain wins; list order is newest first.
    return SubscriptionStatus(is_subscribed=True, transaction_key=active[0].transaction_key, active_count=len(active))
