from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class InboundEvent:
    id: str
    address: str
    timestamp: int
    message_type: str = "text"  # "text", "selection", "audio" or the raw provider type
    text: str | None = None
    selection_id: str | None = None
    audio_ref: str | None = None

    @property
    def is_supported(self) -> bool:
        return self.message_type in {"text", "selection", "audio"}
