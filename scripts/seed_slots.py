#!/usr/bin/env python3
"""
Fill the slot tab with 30 days of half-hour rows (09:00-12:30, 14:00-17:00).

Usage:
  python3 scripts/seed_slots.py           # only when the tab is empty
  python3 scripts/seed_slots.py --force   # append even if rows exist
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from booking_bot.application.exceptions import SlotStoreError
from booking_bot.core.config import settings
from booking_bot.infrastructure.sheets.google_sheets_slot_store import GoogleSheetsSlotStore
from booking_bot.wiring.dependencies import get_calendar


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--force", action="store_true", help="append rows even if the tab already has data")
    parser.add_argument("--days", type=int, default=30)
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    if not settings.GOOGLE_SHEETS_ID:
        print("GOOGLE_SHEETS_ID is not set", file=sys.stderr)
        return 2

    store = GoogleSheetsSlotStore.from_credentials(
        spreadsheet_id=settings.GOOGLE_SHEETS_ID,
        calendar=get_calendar(),
        credentials_json=settings.GOOGLE_CREDENTIALS_JSON,
        credentials_file=settings.GOOGLE_APPLICATION_CREDENTIALS,
        slots_tab=settings.SHEETS_TAB_SLOTS,
        bookings_tab=settings.SHEETS_TAB_APPOINTMENTS,
    )
    try:
        if args.force:
            added = store.seed_month_slots(args.days)
        else:
            added = store.seed_month_slots_if_empty(args.days)
    except SlotStoreError as e:
        print(f"Seeding failed: {e}", file=sys.stderr)
        return 1

    print(f"{added} rows added to '{settings.SHEETS_TAB_SLOTS}'")
    return 0


if __name__ == "__main__":
    sys.exit(main())
