from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date

from booking_bot.domain.entities.booking import BookingRecord
from booking_bot.domain.entities.slot import Slot


class SlotStorePort(ABC):
    """
    Shared appointment inventory plus the append-only bookings ledger.

    Adapters raise SlotStoreError for transport failures once their own retry
    policy is exhausted. A lost race is not an error: claim_slot returns False.
    """

    @abstractmethod
    def list_next_working_days(self, n: int) -> list[date]:
        """Next n working days starting today in the business time zone."""
        raise NotImplementedError

    @abstractmethod
    def list_open_slots(self, day: date) -> list[Slot]:
        """Open slots for a day, time ascending. A missing status counts as open."""
        raise NotImplementedError

    @abstractmethod
    def claim_slot(self, slot_id: str, claimant: str, service_type: str) -> bool:
        """
        Re-read the row and claim it only if it is still open.
        Must be linearizable per row; claims on different rows are independent.
        """
        raise NotImplementedError

    @abstractmethod
    def append_booking(self, record: BookingRecord) -> None:
        raise NotImplementedError
