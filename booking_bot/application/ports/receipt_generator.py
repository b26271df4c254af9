from __future__ import annotations

from abc import ABC, abstractmethod

from booking_bot.domain.entities.booking import BookingRecord
from booking_bot.domain.entities.receipt import Receipt


class ReceiptGeneratorPort(ABC):
    @abstractmethod
    def generate(self, booking: BookingRecord) -> Receipt:
        """Render a durable receipt for a confirmed booking. Raises ReceiptError."""
        raise NotImplementedError
