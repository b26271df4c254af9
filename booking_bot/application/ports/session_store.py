from __future__ import annotations

from abc import ABC, abstractmethod

from booking_bot.domain.entities.conversation_state import ConversationState


class SessionStorePort(ABC):
    @abstractmethod
    def get(self, address: str) -> ConversationState | None:
        raise NotImplementedError

    @abstractmethod
    def set(self, address: str, state: ConversationState) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, address: str) -> None:
        """Drop the conversation state. Processed message ids are kept."""
        raise NotImplementedError

    @abstractmethod
    def purge(self, address: str) -> None:
        """Forget everything stored for the address, processed message ids included."""
        raise NotImplementedError

    @abstractmethod
    def items(self) -> list[tuple[str, ConversationState]]:
        """Snapshot of every stored session, used by the idle sweep."""
        raise NotImplementedError

    @abstractmethod
    def stateless_addresses(self, seen_before: float) -> list[str]:
        """Addresses with no session whose last processed message is older than seen_before."""
        raise NotImplementedError

    @abstractmethod
    def has_processed(self, address: str, message_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def mark_processed(self, address: str, message_id: str, seen_at: float | None = None) -> None:
        raise NotImplementedError
