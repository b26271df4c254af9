from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import ClassVar, Union

from booking_bot.domain.entities.booking import BookingRecord
from booking_bot.domain.entities.form import FormSession
from booking_bot.domain.entities.slot import Slot


class Stage(str, Enum):
    INITIAL = "initial"
    AWAITING_SERVICE_TYPE = "awaiting_service_type"
    AWAITING_DAY_CHOICE = "awaiting_day_choice"
    AWAITING_TIME_CHOICE = "awaiting_time_choice"
    COLLECTING_FORM = "collecting_form"
    AWAITING_FINAL_CONFIRMATION = "awaiting_final_confirmation"


@dataclass(frozen=True)
class Initial:
    stage: ClassVar[Stage] = Stage.INITIAL
    last_booking: BookingRecord | None = None  # kept so the receipt can be requested again
    last_updated: float | None = None


@dataclass(frozen=True)
class AwaitingServiceType:
    stage: ClassVar[Stage] = Stage.AWAITING_SERVICE_TYPE
    last_updated: float | None = None


@dataclass(frozen=True)
class AwaitingDayChoice:
    service_type: str
    offered_days: tuple[date, ...] = ()
    stage: ClassVar[Stage] = Stage.AWAITING_DAY_CHOICE
    last_updated: float | None = None


@dataclass(frozen=True)
class AwaitingTimeChoice:
    service_type: str
    chosen_date: date
    offered_slots: tuple[Slot, ...]
    slots_page: int = 0
    stage: ClassVar[Stage] = Stage.AWAITING_TIME_CHOICE
    last_updated: float | None = None

    def find_offered(self, slot_id: str) -> Slot | None:
        for slot in self.offered_slots:
            if slot.id == slot_id:
                return slot
        return None


@dataclass(frozen=True)
class CollectingForm:
    """Only reachable after a successful claim, so the appointment fields are always real."""

    service_type: str
    appointment_date: date
    appointment_time: str
    form: FormSession
    stage: ClassVar[Stage] = Stage.COLLECTING_FORM
    last_updated: float | None = None


@dataclass(frozen=True)
class AwaitingFinalConfirmation:
    service_type: str
    appointment_date: date
    appointment_time: str
    form: FormSession
    stage: ClassVar[Stage] = Stage.AWAITING_FINAL_CONFIRMATION
    last_updated: float | None = None


ConversationState = Union[
    Initial,
    AwaitingServiceType,
    AwaitingDayChoice,
    AwaitingTimeChoice,
    CollectingForm,
    AwaitingFinalConfirmation,
]
