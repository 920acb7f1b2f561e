"""Reconcile PortOne payment notifications against the payment ledger.

A ``Paid`` notification appends a charge row and schedules the following
charge, so each successful charge sets up the next one. A ``Cancelled``
notification appends a reversal row and revokes the charge that was
scheduled by the cancelled one.

Each ``(payment_id, status)`` pair is processed at most once. Ledger rows
are committed before the gateway is asked to (un)schedule anything; when that
later call fails the row stays and the delivery's outcome records where it
stopped.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy.orm import Session

from magazine_api.core.errors import AppError, GatewayError, LedgerEntryNotFound, ScheduleNotFoundError
from magazine_api.core.settings import Settings
from magazine_api.models.payment import PaymentLedgerEntry
from magazine_api.services import ledger
from magazine_api.services.billing_window import (
    billing_timezone,
    compute_next_schedule_at,
    compute_period,
    schedule_search_window,
)
from magazine_api.services.checklist import Checklist, mark
from magazine_api.services.portone.client import PortOneClient
from magazine_api.services.portone.types import PaymentDetails

logger = logging.getLogger(__name__)

STATUS_PAID = "Paid"
STATUS_CANCELLED = "Cancelled"

STEP_PARSE = "parse request body"
STEP_SECRET = "check gateway secret"
STEP_FETCH = "fetch payment"
STEP_LEDGER = "record ledger entry"
STEP_SCHEDULE = "update gateway schedule"

WEBHOOK_STEPS = (STEP_PARSE, STEP_SECRET, STEP_FETCH, STEP_LEDGER, STEP_SCHEDULE)

OUTCOME_LEDGER_WRITTEN = "ledger_written"
OUTCOME_COMPLETED = "completed"
OUTCOME_SCHEDULE_FAILED = "schedule_failed"
OUTCOME_SCHEDULE_CANCEL_FAILED = "schedule_cancel_failed"


@dataclass(frozen=True)
class WebhookResult:
    duplicate: bool
    entry: PaymentLedgerEntry | None = None


def handle_payment_webhook(
    db: Session,
    gateway: PortOneClient,
    *,
    payment_id: str,
    status: str,
    settings: Settings,
    now: datetime | None = None,
    rng: random.Random | None = None,
    checklist: Checklist | None = None,
) -> WebhookResult:
    if status not in (STATUS_PAID, STATUS_CANCELLED):
        raise ValueError(f"Unsupported payment status: {status}")

    claim = ledger.claim_webhook_event(db, payment_id, status)
    if claim is None:
        logger.info("billing.webhook.duplicate payment_id=%s status=%s", payment_id, status)
        return WebhookResult(duplicate=True)

    try:
        payment = gateway.fetch_payment(payment_id)
        mark(checklist, STEP_FETCH)
        if status == STATUS_PAID:
            entry = _record_charge(db, payment, claim=claim, settings=settings, now=now, rng=rng)
        else:
            entry = _record_reversal(db, payment, claim=claim)
    except Exception:
        # Nothing committed yet: drop the claim so a redelivery is processed.
        db.rollback()
        raise
    mark(checklist, STEP_LEDGER)

    if status == STATUS_PAID:
        _schedule_next_charge(db, gateway, payment, entry, claim=claim, settings=settings)
    else:
        _cancel_next_charge(db, gateway, payment, entry, claim=claim)
    mark(checklist, STEP_SCHEDULE)

    ledger.record_outcome(db, claim, OUTCOME_COMPLETED)
    return WebhookResult(duplicate=False, entry=entry)


def _record_charge(db: Session, payment: PaymentDetails, *, claim, settings: Settings, now, rng) -> PaymentLedgerEntry:
    user_id = payment.custom_data.user_id
    if payment.amount is None:
        raise GatewayError("Payment has no readable amount", payment_id=payment.payment_id)

    tz = billing_timezone(settings.billing_utc_offset_minutes)
    period = compute_period(now or datetime.now(timezone.utc), tz=tz)
    record = ledger.ChargeRecord(
        transaction_key=payment.payment_id,
        user_id=user_id,
        amount=payment.amount,
        period=period,
        next_schedule_at=compute_next_schedule_at(period.end_at, tz=tz, rng=rng),
        next_schedule_id=str(uuid4()),
    )
    entry = ledger.add_charge_entry(db, record)
    claim.outcome = OUTCOME_LEDGER_WRITTEN
    ledger.commit(db)
    logger.info(
        "billing.webhook.paid transaction_key=%s user_id=%s amount=%s next_schedule_id=%s next_schedule_at=%s",
        record.transaction_key,
        user_id,
        record.amount,
        record.next_schedule_id,
        record.next_schedule_at.isoformat(),
    )
    return entry


def _record_reversal(db: Session, payment: PaymentDetails, *, claim) -> PaymentLedgerEntry:
    previous = ledger.latest_entry_for_transaction(db, payment.payment_id)
    if previous is None:
        raise LedgerEntryNotFound(transaction_key=payment.payment_id)

    entry = ledger.add_reversal_entry(db, previous)
    claim.outcome = OUTCOME_LEDGER_WRITTEN
    ledger.commit(db)
    logger.info(
        "billing.webhook.cancelled transaction_key=%s user_id=%s amount=%s",
        entry.transaction_key,
        entry.user_id,
        entry.amount,
    )
    return entry


def _schedule_next_charge(
    db: Session,
    gateway: PortOneClient,
    payment: PaymentDetails,
    entry: PaymentLedgerEntry,
    *,
    claim,
    settings: Settings,
) -> None:
    try:
        gateway.schedule_charge(
            schedule_id=entry.next_schedule_id,
            billing_key=payment.billing_key,
            order_name=payment.order_name,
            customer_id=payment.customer_id,
            amount=entry.amount,
            currency=settings.billing_currency,
            fire_at=entry.next_schedule_at,
            custom_data=payment.custom_data,
        )
    except AppError:
        logger.error(
            "billing.webhook.schedule_failed transaction_key=%s next_schedule_id=%s needs_manual_followup=true",
            entry.transaction_key,
            entry.next_schedule_id,
        )
        ledger.record_outcome(db, claim, OUTCOME_SCHEDULE_FAILED)
        raise


def _cancel_next_charge(
    db: Session,
    gateway: PortOneClient,
    payment: PaymentDetails,
    entry: PaymentLedgerEntry,
    *,
    claim,
) -> None:
    try:
        if not payment.billing_key:
            raise ScheduleNotFoundError("Payment has no billing key", transaction_key=entry.transaction_key)
        from_time, until_time = schedule_search_window(entry.next_schedule_at)
        items = gateway.list_schedules(billing_key=payment.billing_key, from_time=from_time, until_time=until_time)
        match = next((item for item in items if item.payment_id == entry.next_schedule_id), None)
        if match is None:
            raise ScheduleNotFoundError(
                transaction_key=entry.transaction_key,
                next_schedule_id=entry.next_schedule_id,
                candidates=len(items),
            )
        gateway.cancel_schedules([match.id])
    except AppError:
        logger.error(
            "billing.webhook.schedule_cancel_failed transaction_key=%s next_schedule_id=%s needs_manual_followup=true",
            entry.transaction_key,
            entry.next_schedule_id,
        )
        ledger.record_outcome(db, claim, OUTCOME_SCHEDULE_CANCEL_FAILED)
        raise
    logger.info(
        "billing.webhook.schedule_cancelled transaction_key=%s schedule_id=%s",
        entry.transaction_key,
        match.id,
    )
