from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from booking_bot.domain.entities.booking import BookingRecord

MAX_BUTTONS = 3
MAX_LIST_ROWS = 10


@dataclass(frozen=True)
class Choice:
    id: str
    title: str
    description: str | None = None


@dataclass(frozen=True)
class ListSection:
    title: str
    rows: tuple[Choice, ...]


@dataclass(frozen=True)
class TextReply:
    text: str


@dataclass(frozen=True)
class ButtonsReply:
    text: str
    buttons: tuple[Choice, ...]

    def __post_init__(self) -> None:
        if not self.buttons or len(self.buttons) > MAX_BUTTONS:
            raise ValueError(f"Buttons reply needs 1-{MAX_BUTTONS} buttons, got {len(self.buttons)}")


@dataclass(frozen=True)
class ListReply:
    text: str
    button_text: str
    sections: tuple[ListSection, ...]
    header: str = "Selecciona una opción"

    def __post_init__(self) -> None:
        total = sum(len(section.rows) for section in self.sections)
        if total == 0 or total > MAX_LIST_ROWS:
            raise ValueError(f"List reply needs 1-{MAX_LIST_ROWS} rows in total, got {total}")

    @property
    def rows(self) -> tuple[Choice, ...]:
        return tuple(row for section in self.sections for row in section.rows)


@dataclass(frozen=True)
class ReceiptReply:
    booking: BookingRecord


Reply = Union[TextReply, ButtonsReply, ListReply, ReceiptReply]
