from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from magazine_api.core.errors import PersistenceError
from magazine_api.models.payment import PaymentLedgerEntry, PaymentStatus
from magazine_api.models.webhook_event import PaymentWebhookEvent
from magazine_api.services.billing_window import BillingPeriod

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChargeRecord:
    transaction_key: str
    user_id: str
    amount: int
    period: BillingPeriod
    next_schedule_at: datetime
    next_schedule_id: str


def _newest_first(query):
    return query.order_by(PaymentLedgerEntry.created_at.desc(), PaymentLedgerEntry.id.desc())


def list_entries_for_user(db: Session, user_id: str) -> list[PaymentLedgerEntry]:
    try:
        return _newest_first(db.query(PaymentLedgerEntry).filter(PaymentLedgerEntry.user_id == user_id)).all()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Ledger read failed: {exc}", user_id=user_id)


def latest_entry_for_transaction(db: Session, transaction_key: str) -> PaymentLedgerEntry | None:
    try:
        return _newest_first(
            db.query(PaymentLedgerEntry).filter(PaymentLedgerEntry.transaction_key == transaction_key)
        ).first()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Ledger read failed: {exc}", transaction_key=transaction_key)


def find_entry_for_user(db: Session, user_id: str, transaction_key: str) -> PaymentLedgerEntry | None:
    try:
        return _newest_first(
            db.query(PaymentLedgerEntry).filter(
                PaymentLedgerEntry.user_id == user_id,
                PaymentLedgerEntry.transaction_key == transaction_key,
            )
        ).first()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Ledger read failed: {exc}", transaction_key=transaction_key)


def add_charge_entry(db: Session, record: ChargeRecord) -> PaymentLedgerEntry:
    """Stage a ``Paid`` row; the caller commits."""
    entry = PaymentLedgerEntry(
        transaction_key=record.transaction_key,
        user_id=record.user_id,
        amount=int(record.amount),
        status=PaymentStatus.PAID.value,
        start_at=record.period.start_at,
        end_at=record.period.end_at,
        end_grace_at=record.period.end_grace_at,
        next_schedule_at=record.next_schedule_at,
        next_schedule_id=record.next_schedule_id,
    )
    db.add(entry)
    return entry


def add_reversal_entry(db: Session, charge: PaymentLedgerEntry) -> PaymentLedgerEntry:
    """Stage a ``Cancel`` row mirroring ``charge`` with the amount negated."""
    entry = PaymentLedgerEntry(
        transaction_key=charge.transaction_key,
        user_id=charge.user_id,
        amount=-abs(int(charge.amount)),
        status=PaymentStatus.CANCEL.value,
        start_at=charge.start_at,
        end_at=charge.end_at,
        end_grace_at=charge.end_grace_at,
        next_schedule_at=charge.next_schedule_at,
        next_schedule_id=charge.next_schedule_id,
    )
    db.add(entry)
    return entry


def claim_webhook_event(db: Session, payment_id: str, status: str) -> PaymentWebhookEvent | None:
    """Reserve a webhook delivery; returns None if it was already processed.

    The claim is flushed, not committed, so it lands in the same transaction
    as the ledger row it guards. A concurrent delivery of the same event
    waits on the unique index and then fails here.
    """
    existing = (
        db.query(PaymentWebhookEvent)
        .filter(PaymentWebhookEvent.payment_id == payment_id, PaymentWebhookEvent.status == status)
        .first()
    )
    if existing is not None:
        return None
    claim = PaymentWebhookEvent(payment_id=payment_id, status=status)
    db.add(claim)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.info("ledger.claim.race payment_id=%s status=%s", payment_id, status)
        return None
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"Webhook claim failed: {exc}", payment_id=payment_id)
    return claim


def commit(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"Ledger write failed: {exc}")


def record_outcome(db: Session, claim: PaymentWebhookEvent, outcome: str) -> None:
    claim.outcome = outcome
    commit(db)
