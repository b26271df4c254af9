from __future__ import annotations

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class Slot:
    id: str  # opaque row reference, claims use this and never the list position
    date: date
    time: str  # HH:MM
    label: str
