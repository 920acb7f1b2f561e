from dotenv import load_dotenv
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

load_dotenv(".env")

import argparse

from magazine_api.core.database import SessionLocal
from magazine_api.core.settings import settings
from magazine_api.services import ledger
from magazine_api.services.billing_window import schedule_search_window, to_gateway_timestamp
from magazine_api.services.portone.client import build_portone_client


def main() -> int:
    parser = argparse.ArgumentParser(description="List gateway schedules around a ledger entry's next charge.")
    parser.add_argument("transaction_key")
    parser.add_argument("--billing-key", help="defaults to the billing key on the gateway payment")
    args = parser.parse_args()

    gateway = build_portone_client(settings)
    if gateway is None:
        print("PORTONE_API_SECRET is not set")
        return 2

    db = SessionLocal()
    try:
        entry = ledger.latest_entry_for_transaction(db, args.transaction_key)
        if entry is None:
            print(f"no ledger entry for {args.transaction_key}")
            return 1
        billing_key = args.billing_key or gateway.fetch_payment(args.transaction_key).billing_key
        if not billing_key:
            print("payment has no billing key; pass --billing-key")
            return 1

        from_time, until_time = schedule_search_window(entry.next_schedule_at)
        print(
            f"entry id={entry.id} status={entry.status} amount={entry.amount} "
            f"next_schedule_id={entry.next_schedule_id} next_schedule_at={to_gateway_timestamp(entry.next_schedule_at)}"
        )
        items = gateway.list_schedules(billing_key=billing_key, from_time=from_time, until_time=until_time)
        for item in items:
            marker = "*" if item.payment_id == entry.next_schedule_id else " "
            when = to_gateway_timestamp(item.time_to_pay) if item.time_to_pay else "-"
            print(f"{marker} schedule={item.id} payment_id={item.payment_id} time_to_pay={when}")
        if not any(item.payment_id == entry.next_schedule_id for item in items):
            print("expected schedule not found")
        return 0
    finally:
        db.close()
        gateway.close()


sys.exit(main())
