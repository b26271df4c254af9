from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

BOOKING_STATUS_CONFIRMED = "CONFIRMADA"


@dataclass(frozen=True)
class BookingRecord:
    phone: str
    name: str
    email: str
    service: str
    date: date
    time: str
    slot_id: str
    status: str
    created_at: datetime
    calendar_event_id: str | None = None
