from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Callable, Iterable
from zoneinfo import ZoneInfo

from dateutil.easter import easter

# month-day pairs observed every year
FIXED_HOLIDAYS = (
    (1, 1),    # Año Nuevo
    (5, 1),    # Día del Trabajo
    (6, 21),   # Año Nuevo Andino Amazónico
    (8, 6),    # Independencia
    (9, 24),   # Santa Cruz
    (11, 2),   # Todos los Difuntos
    (12, 25),  # Navidad
)

# offsets in days from Easter Sunday
EASTER_OFFSETS = (
    -48,  # Lunes de Carnaval
    -47,  # Martes de Carnaval
    -2,   # Viernes Santo
    60,   # Corpus Christi
)

SUNDAY = 6


class WorkingDayCalendar:
    """Business days in the deployment time zone: no rest weekdays, no holidays."""

    def __init__(
        self,
        timezone: ZoneInfo,
        rest_weekdays: Iterable[int] = (SUNDAY,),
        extra_holidays: Iterable[date] = (),
        today: Callable[[], date] | None = None,
    ) -> None:
        self._timezone = timezone
        self._rest_weekdays = frozenset(rest_weekdays)
        self._extra_holidays = frozenset(extra_holidays)
        self._today = today or (lambda: datetime.now(self._timezone).date())

    @property
    def timezone(self) -> ZoneInfo:
        return self._timezone

    def today(self) -> date:
        return self._today()

    def holidays_for_year(self, year: int) -> set[date]:
        days = {date(year, month, day) for month, day in FIXED_HOLIDAYS}
        easter_sunday = easter(year)
        days.update(easter_sunday + timedelta(days=offset) for offset in EASTER_OFFSETS)
        days.update(d for d in self._extra_holidays if d.year == year)
        return days

    def is_working_day(self, day: date) -> bool:
        if day.weekday() in self._rest_weekdays:
            return False
        return day not in self.holidays_for_year(day.year)

    def next_working_days(self, n: int, start: date | None = None) -> list[date]:
        if n <= 0:
            return []
        if len(self._rest_weekdays) >= 7:
            raise ValueError("At least one weekday must be a working day")
        cursor = start or self.today()
        out: list[date] = []
        while len(out) < n:
            if self.is_working_day(cursor):
                out.append(cursor)
            cursor += timedelta(days=1)
        return out
