from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date, datetime

from booking_bot.application.ports.slot_store import SlotStorePort
from booking_bot.application.utils.working_days import WorkingDayCalendar
from booking_bot.domain.entities.booking import BookingRecord
from booking_bot.domain.entities.slot import Slot
from booking_bot.infrastructure.sheets.slot_layout import STATUS_CLAIMED, is_open, seed_schedule


@dataclass
class _SlotRow:
    day: date
    time: str
    service: str = ""
    status: str = ""
    claimant: str = ""
    claimed_at: str = ""


class MemorySlotStore(SlotStorePort):
    """In-process slot inventory with the same claim semantics as the sheet adapter."""

    def __init__(self, calendar: WorkingDayCalendar) -> None:
        self._calendar = calendar
        self._rows: dict[str, _SlotRow] = {}
        self._row_locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()
        self._bookings: list[BookingRecord] = []
        self._next_row = 2

    def add_slot(self, day: date, time: str, status: str = "") -> str:
        with self._lock:
            slot_id = str(self._next_row)
            self._next_row += 1
            self._rows[slot_id] = _SlotRow(day=day, time=time, status=status)
            self._row_locks[slot_id] = threading.Lock()
            return slot_id

    def seed(self, days: int = 30) -> int:
        schedule = seed_schedule(self._calendar, days)
        for day, time in schedule:
            self.add_slot(day, time)
        return len(schedule)

    def status_of(self, slot_id: str) -> str | None:
        row = self._rows.get(slot_id)
        return row.status if row else None

    def claimant_of(self, slot_id: str) -> str | None:
        row = self._rows.get(slot_id)
        return row.claimant if row else None

    @property
    def bookings(self) -> list[BookingRecord]:
        with self._lock:
            return list(self._bookings)

    def list_next_working_days(self, n: int) -> list[date]:
        return self._calendar.next_working_days(n)

    def list_open_slots(self, day: date) -> list[Slot]:
        with self._lock:
            rows = [(slot_id, row) for slot_id, row in self._rows.items() if row.day == day and is_open(row.status)]
        rows.sort(key=lambda item: item[1].time)
        return [
            Slot(id=slot_id, date=row.day, time=row.time, label=f"{row.day.isoformat()} {row.time}")
            for slot_id, row in rows
        ]

    def claim_slot(self, slot_id: str, claimant: str, service_type: str) -> bool:
        lock = self._row_locks.get(slot_id)
        if lock is None:
            return False
        with lock:
            row = self._rows[slot_id]
            if not is_open(row.status):
                return False
            row.service = service_type
            row.status = STATUS_CLAIMED
            row.claimant = "".join(ch for ch in claimant if ch.isdigit())
            row.claimed_at = datetime.now(self._calendar.timezone).isoformat()
            return True

    def append_booking(self, record: BookingRecord) -> None:
        with self._lock:
            self._bookings.append(record)
