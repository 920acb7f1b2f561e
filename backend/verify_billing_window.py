import random
from datetime import datetime, timedelta, timezone

from magazine_api.services.billing_window import billing_timezone, compute_next_schedule_at, compute_period


def main() -> None:
    tz = billing_timezone(540)

    period = compute_period(datetime(2026, 1, 15, 14, 59, 59, tzinfo=timezone.utc), tz=tz)
    assert period.end_at == datetime(2026, 2, 14, 14, 59, 59, tzinfo=timezone.utc), period
    assert period.end_grace_at == datetime(2026, 2, 15, 14, 59, 59, tzinfo=timezone.utc), period

    rolled = compute_period(datetime(2026, 1, 15, 15, 0, 0, tzinfo=timezone.utc), tz=tz)
    assert rolled.end_grace_at == datetime(2026, 2, 16, 14, 59, 59, tzinfo=timezone.utc), rolled

    window_start = datetime(2026, 2, 15, 1, 0, 0, tzinfo=timezone.utc)
    rng = random.Random(0)
    seen = set()
    for _ in range(1000):
        at = compute_next_schedule_at(period.end_at, tz=tz, rng=rng)
        assert window_start <= at < window_start + timedelta(hours=1), at
        seen.add(int((at - window_start) / timedelta(minutes=5)))
    assert seen == set(range(12)), sorted(seen)


if __name__ == "__main__":
    main()
    print("OK")
