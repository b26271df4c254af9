from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Union

SERVICE_PREFIX = "serv_"
DAY_PREFIX = "day_"
SLOT_PREFIX = "slot_"
PAGE_PREFIX = "more_"
EDIT_PREFIX = "edit_"

SHOW_SERVICES_ID = "servicios"
BOOK_ID = "agendar_cita"
CONFIRM_ID = "confirm_yes"
EDIT_ID = "confirm_edit"
DECLINE_ID = "confirm_no"


@dataclass(frozen=True)
class ShowServices:
    pass


@dataclass(frozen=True)
class StartBooking:
    pass


@dataclass(frozen=True)
class ChooseService:
    service_id: str


@dataclass(frozen=True)
class ChooseDay:
    day: date


@dataclass(frozen=True)
class ChooseSlot:
    slot_id: str


@dataclass(frozen=True)
class ChangePage:
    page: int


@dataclass(frozen=True)
class ConfirmBooking:
    pass


@dataclass(frozen=True)
class EditBooking:
    pass


@dataclass(frozen=True)
class EditField:
    key: str


@dataclass(frozen=True)
class DeclineBooking:
    pass


@dataclass(frozen=True)
class UnknownCommand:
    raw: str


Command = Union[
    ShowServices,
    StartBooking,
    ChooseService,
    ChooseDay,
    ChooseSlot,
    ChangePage,
    ConfirmBooking,
    EditBooking,
    EditField,
    DeclineBooking,
    UnknownCommand,
]

_FIXED_IDS = {
    SHOW_SERVICES_ID: ShowServices,
    BOOK_ID: StartBooking,
    CONFIRM_ID: ConfirmBooking,
    EDIT_ID: EditBooking,
    DECLINE_ID: DeclineBooking,
    "agendar_no": DeclineBooking,
}


def parse_command(selection_id: str) -> Command:
    """Turn a button/list row id into a typed command. Never raises."""
    raw = (selection_id or "").strip()
    if raw in _FIXED_IDS:
        return _FIXED_IDS[raw]()

    if raw.startswith(SERVICE_PREFIX) and len(raw) > len(SERVICE_PREFIX):
        return ChooseService(service_id=raw[len(SERVICE_PREFIX):])

    if raw.startswith(DAY_PREFIX):
        try:
            return ChooseDay(day=date.fromisoformat(raw[len(DAY_PREFIX):]))
        except ValueError:
            return UnknownCommand(raw=raw)

    if raw.startswith(SLOT_PREFIX) and len(raw) > len(SLOT_PREFIX):
        return ChooseSlot(slot_id=raw[len(SLOT_PREFIX):])

    if raw.startswith(PAGE_PREFIX):
        suffix = raw[len(PAGE_PREFIX):]
        if suffix.isdigit():
            return ChangePage(page=int(suffix))
        return UnknownCommand(raw=raw)

    if raw.startswith(EDIT_PREFIX) and len(raw) > len(EDIT_PREFIX):
        return EditField(key=raw[len(EDIT_PREFIX):])

    return UnknownCommand(raw=raw)


def service_id(service_key: str) -> str:
    return f"{SERVICE_PREFIX}{service_key}"


def day_id(day: date) -> str:
    return f"{DAY_PREFIX}{day.isoformat()}"


def slot_id(slot_ref: str) -> str:
    return f"{SLOT_PREFIX}{slot_ref}"


def page_id(page: int) -> str:
    return f"{PAGE_PREFIX}{page}"


def edit_id(field_key: str) -> str:
    return f"{EDIT_PREFIX}{field_key}"
