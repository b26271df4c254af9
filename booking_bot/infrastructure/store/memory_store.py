from __future__ import annotations

import threading
import time

from booking_bot.application.ports.session_store import SessionStorePort
from booking_bot.domain.entities.conversation_state import ConversationState


class MemorySessionStore(SessionStorePort):
    def __init__(self, processed_limit: int = 1000) -> None:
        self._states: dict[str, ConversationState] = {}
        self._processed: dict[str, list[str]] = {}
        self._last_seen: dict[str, float] = {}
        self._processed_limit = processed_limit
        self._lock = threading.Lock()

    def get(self, address: str) -> ConversationState | None:
        with self._lock:
            return self._states.get(address)

    def set(self, address: str, state: ConversationState) -> None:
        with self._lock:
            self._states[address] = state

    def delete(self, address: str) -> None:
        with self._lock:
            self._states.pop(address, None)

    def purge(self, address: str) -> None:
        with self._lock:
            self._states.pop(address, None)
            self._processed.pop(address, None)
            self._last_seen.pop(address, None)

    def items(self) -> list[tuple[str, ConversationState]]:
        with self._lock:
            return list(self._states.items())

    def stateless_addresses(self, seen_before: float) -> list[str]:
        with self._lock:
            return [
                address
                for address, seen in self._last_seen.items()
                if address not in self._states and seen < seen_before
            ]

    def has_processed(self, address: str, message_id: str) -> bool:
        with self._lock:
            return message_id in self._processed.get(address, [])

    def mark_processed(self, address: str, message_id: str, seen_at: float | None = None) -> None:
        with self._lock:
            processed = self._processed.setdefault(address, [])
            if message_id not in processed:
                processed.append(message_id)
                if len(processed) > self._processed_limit:
                    del processed[: len(processed) - self._processed_limit]
            self._last_seen[address] = time.time() if seen_at is None else seen_at
