from __future__ import annotations

import re
from datetime import date, timedelta

from booking_bot.application.utils.working_days import WorkingDayCalendar

STATUS_OPEN = "DISPONIBLE"
STATUS_CLAIMED = "RESERVADO"

# A:date B:time C:service D:status E:notes F:claimant G:claimed_at
SLOT_COLUMNS = 7
COL_DATE, COL_TIME, COL_SERVICE, COL_STATUS = 0, 1, 2, 3

SEED_DAYS = 30
SEED_STEP_MINUTES = 30
SEED_WINDOWS = (("09:00", "12:30"), ("14:00", "17:00"))

# row number plus the date and time the row held when it was listed
SLOT_REF_PATTERN = re.compile(r"(\d+)@(\d{4}-\d{2}-\d{2})T(\d{2}:\d{2})")


def is_open(status: str) -> bool:
    status = (status or "").strip().upper()
    return not status or status == STATUS_OPEN


def slot_ref(row: int, day: date, time: str) -> str:
    return f"{row}@{day.isoformat()}T{time}"


def parse_slot_ref(ref: str) -> tuple[int, date, str] | None:
    match = SLOT_REF_PATTERN.fullmatch(ref or "")
    if not match:
        return None
    try:
        day = date.fromisoformat(match.group(2))
    except ValueError:
        return None
    return int(match.group(1)), day, match.group(3)


def normalize_time(value: str) -> str | None:
    match = re.match(r"^\s*(\d{1,2}):(\d{2})", value or "")
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


def generate_times(start: str, end: str, step_minutes: int) -> list[str]:
    """Times from start to end inclusive."""
    sh, sm = (int(part) for part in start.split(":"))
    eh, em = (int(part) for part in end.split(":"))
    total, last = sh * 60 + sm, eh * 60 + em
    out = []
    while total <= last:
        out.append(f"{total // 60:02d}:{total % 60:02d}")
        total += step_minutes
    return out


def seed_schedule(calendar: WorkingDayCalendar, days: int = SEED_DAYS) -> list[tuple[date, str]]:
    """(day, time) pairs for the next `days` calendar days, working days only."""
    times = [t for start, end in SEED_WINDOWS for t in generate_times(start, end, SEED_STEP_MINUTES)]
    today = calendar.today()
    out = []
    for offset in range(days):
        day = today + timedelta(days=offset)
        if calendar.is_working_day(day):
            out.extend((day, t) for t in times)
    return out
