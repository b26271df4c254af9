from __future__ import annotations

import base64
import json
import logging
import threading
import time
from datetime import date, datetime
from typing import Callable, TypeVar

import gspread
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials

from booking_bot.application.exceptions import SlotStoreError
from booking_bot.application.ports.slot_store import SlotStorePort
from booking_bot.application.utils.keyed_lock import KeyedLock
from booking_bot.application.utils.working_days import WorkingDayCalendar
from booking_bot.domain.entities.booking import BookingRecord
from booking_bot.domain.entities.slot import Slot
from booking_bot.infrastructure.sheets.slot_layout import (
    COL_DATE,
    COL_STATUS,
    COL_TIME,
    SEED_DAYS,
    SLOT_COLUMNS,
    STATUS_CLAIMED,
    STATUS_OPEN,
    is_open,
    normalize_time,
    parse_slot_ref,
    seed_schedule,
    slot_ref,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

_TRANSPORT_ERRORS = (gspread.exceptions.GSpreadException, GoogleAuthError, OSError)


def load_credentials(credentials_json: str | None = None, credentials_file: str | None = None) -> Credentials:
    """Service account credentials from raw or base64 JSON, or from a key file."""
    if credentials_json:
        raw = credentials_json.strip()
        if not raw.startswith("{"):
            raw = base64.b64decode(raw).decode("utf-8")
        return Credentials.from_service_account_info(json.loads(raw), scopes=SCOPES)
    if credentials_file:
        return Credentials.from_service_account_file(credentials_file, scopes=SCOPES)
    raise ValueError("Google credentials missing: set GOOGLE_CREDENTIALS_JSON or GOOGLE_APPLICATION_CREDENTIALS")


class GoogleSheetsSlotStore(SlotStorePort):
    """
    Slot inventory and bookings ledger on a Google spreadsheet.

    Sheets has no compare-and-set, so the claim re-reads the row and writes it
    while holding a per-row lock. That makes claims linearizable within one
    process; run a single instance against a given spreadsheet.

    Slot ids look like `2@2026-03-03T09:00` (row, date, time). The claim refuses
    a row whose date or time no longer match, which happens when staff insert
    or delete rows above it.
    """

    def __init__(
        self,
        spreadsheet_id: str,
        calendar: WorkingDayCalendar,
        client: gspread.Client,
        slots_tab: str = "Horarios",
        bookings_tab: str = "Citas",
        retry_attempts: int = 3,
        retry_delay_seconds: float = 0.6,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._spreadsheet_id = spreadsheet_id
        self._calendar = calendar
        self._client = client
        self._slots_tab = slots_tab
        self._bookings_tab = bookings_tab
        self._retry_attempts = max(1, retry_attempts)
        self._retry_delay = retry_delay_seconds
        self._sleep = sleep
        self._spreadsheet: gspread.Spreadsheet | None = None
        self._open_lock = threading.Lock()
        self._row_locks = KeyedLock()

    @classmethod
    def from_credentials(
        cls,
        spreadsheet_id: str,
        calendar: WorkingDayCalendar,
        credentials_json: str | None = None,
        credentials_file: str | None = None,
        **kwargs,
    ) -> GoogleSheetsSlotStore:
        client = gspread.authorize(load_credentials(credentials_json, credentials_file))
        return cls(spreadsheet_id, calendar, client, **kwargs)

    def _with_retry(self, operation: str, fn: Callable[[], T]) -> T:
        last_error: Exception | None = None
        for attempt in range(self._retry_attempts):
            try:
                return fn()
            except _TRANSPORT_ERRORS as e:
                last_error = e
                logger.warning(
                    "Sheets request failed",
                    extra={"reason": operation, "attempt": attempt + 1, "error": str(e)},
                )
                if attempt + 1 < self._retry_attempts:
                    self._sleep(self._retry_delay * (attempt + 1))
        raise SlotStoreError(f"Sheets {operation} failed after {self._retry_attempts} attempts: {last_error}") from last_error

    def _worksheet(self, title: str) -> gspread.Worksheet:
        with self._open_lock:
            if self._spreadsheet is None:
                self._spreadsheet = self._client.open_by_key(self._spreadsheet_id)
            return self._spreadsheet.worksheet(title)

    def list_next_working_days(self, n: int) -> list[date]:
        return self._calendar.next_working_days(n)

    def list_open_slots(self, day: date) -> list[Slot]:
        values = self._with_retry(
            "read_slots",
            lambda: self._worksheet(self._slots_tab).get_values(f"A2:{_col(SLOT_COLUMNS)}"),
        )
        wanted = day.isoformat()
        slots: list[Slot] = []
        for row_number, row in enumerate(values, start=2):
            cells = _pad(row)
            if cells[COL_DATE].strip() != wanted or not is_open(cells[COL_STATUS]):
                continue
            slot_time = normalize_time(cells[COL_TIME])
            if slot_time is None:
                continue
            slots.append(
                Slot(id=slot_ref(row_number, day, slot_time), date=day, time=slot_time, label=f"{wanted} {slot_time}")
            )
        slots.sort(key=lambda slot: slot.time)
        return slots

    def claim_slot(self, slot_id: str, claimant: str, service_type: str) -> bool:
        ref = parse_slot_ref(slot_id)
        if ref is None or ref[0] < 2:
            return False
        row, day, slot_time = ref

        with self._row_locks.hold(row):
            current = _pad(self._with_retry("read_row", lambda: self._worksheet(self._slots_tab).row_values(row)))
            if current[COL_DATE].strip() != day.isoformat() or normalize_time(current[COL_TIME]) != slot_time:
                # rows were inserted or removed above it since the list was read
                logger.info("Slot row no longer matches", extra={"slot_id": slot_id, "reason": " ".join(current[:2])})
                return False
            if not is_open(current[COL_STATUS]):
                logger.info("Slot already taken", extra={"slot_id": slot_id, "reason": current[COL_STATUS]})
                return False

            claimed_at = datetime.now(self._calendar.timezone).isoformat()
            values = [[service_type or "", STATUS_CLAIMED, "", _digits(claimant), claimed_at]]
            self._with_retry(
                "claim_row",
                lambda: self._worksheet(self._slots_tab).update(
                    range_name=f"C{row}:G{row}",
                    values=values,
                    value_input_option="RAW",
                ),
            )
            return True

    def append_booking(self, record: BookingRecord) -> None:
        row = [
            record.created_at.isoformat(),
            _digits(record.phone),
            record.name,
            record.email,
            record.service,
            record.date.isoformat(),
            record.time,
            record.status,
            record.slot_id,
            record.calendar_event_id or "",
        ]
        self._with_retry(
            "append_booking",
            lambda: self._worksheet(self._bookings_tab).append_rows(
                [row],
                value_input_option="RAW",
                insert_data_option="INSERT_ROWS",
            ),
        )

    def seed_month_slots(self, days: int = SEED_DAYS) -> int:
        rows = [
            [day.isoformat(), slot_time, "", STATUS_OPEN, "", "", ""]
            for day, slot_time in seed_schedule(self._calendar, days)
        ]
        if not rows:
            return 0
        self._with_retry(
            "seed_slots",
            lambda: self._worksheet(self._slots_tab).append_rows(
                rows,
                value_input_option="RAW",
                insert_data_option="INSERT_ROWS",
            ),
        )
        logger.info("Slot tab seeded", extra={"reason": f"{len(rows)} rows"})
        return len(rows)

    def seed_month_slots_if_empty(self, days: int = SEED_DAYS) -> int:
        existing = self._with_retry("read_dates", lambda: self._worksheet(self._slots_tab).get_values("A2:A"))
        if any(row and row[0].strip() for row in existing):
            return 0
        return self.seed_month_slots(days)


def _pad(row: list[str]) -> list[str]:
    cells = [str(cell) for cell in row[:SLOT_COLUMNS]]
    return cells + [""] * (SLOT_COLUMNS - len(cells))


def _digits(value: str) -> str:
    return "".join(ch for ch in str(value or "") if ch.isdigit())


def _col(n: int) -> str:
    return chr(ord("A") + n - 1)
