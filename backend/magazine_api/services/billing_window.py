"""Subscription period and next-charge window arithmetic.

All inputs and outputs are UTC datetimes. Day boundaries ("the day after
expiry", "10:00 in the morning") are taken in the billing timezone, a fixed
UTC offset, and converted back to UTC.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone

from magazine_api.core.settings import settings

PERIOD_DAYS = 30
GRACE_CUTOFF = time(23, 59, 59)
SCHEDULE_WINDOW_START = time(10, 0)
SCHEDULE_WINDOW = timedelta(hours=1)
SCHEDULE_SEARCH_SLACK = timedelta(days=1)


@dataclass(frozen=True)
class BillingPeriod:
    start_at: datetime
    end_at: datetime
    end_grace_at: datetime


def billing_timezone(offset_minutes: int | None = None) -> timezone:
    minutes = settings.billing_utc_offset_minutes if offset_minutes is None else offset_minutes
    return timezone(timedelta(minutes=int(minutes)))


def as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes; everything stored here is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_gateway_timestamp(value: datetime) -> str:
    return as_utc(value).isoformat().replace("+00:00", "Z")


def _local_day_after(instant: datetime, tz: timezone):
    return (as_utc(instant).astimezone(tz) + timedelta(days=1)).date()


def compute_period(start_at: datetime, tz: timezone | None = None) -> BillingPeriod:
    tz = tz or billing_timezone()
    start_at = as_utc(start_at)
    end_at = start_at + timedelta(days=PERIOD_DAYS)
    grace_day = _local_day_after(end_at, tz)
    end_grace_at = datetime.combine(grace_day, GRACE_CUTOFF, tzinfo=tz).astimezone(timezone.utc)
    return BillingPeriod(start_at=start_at, end_at=end_at, end_grace_at=end_grace_at)


def compute_next_schedule_at(
    end_at: datetime,
    tz: timezone | None = None,
    rng: random.Random | None = None,
) -> datetime:
    """Pick a random instant in [10:00, 11:00) local time on the day after ``end_at``.

    Spreading renewals over the hour keeps them from hitting the gateway at
    once. The returned instant is stored on the ledger entry so the gateway
    schedule can be found again when the subscription is cancelled.
    """
    tz = tz or billing_timezone()
    rng = rng or random
    window_day = _local_day_after(end_at, tz)
    window_start = datetime.combine(window_day, SCHEDULE_WINDOW_START, tzinfo=tz)
    window_us = int(SCHEDULE_WINDOW / timedelta(microseconds=1))
    offset = timedelta(microseconds=rng.randrange(window_us))
    return (window_start + offset).astimezone(timezone.utc)


def schedule_search_window(next_schedule_at: datetime) -> tuple[datetime, datetime]:
    center = as_utc(next_schedule_at)
    return center - SCHEDULE_SEARCH_SLACK, center + SCHEDULE_SEARCH_SLACK
