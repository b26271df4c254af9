from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from booking_bot.domain.entities.reply import Choice, ListSection


class MessagePlatformPort(ABC):
    """Outbound side of the messaging provider. Failures raise NotificationError."""

    @abstractmethod
    def send_text(self, recipient_id: str, text: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def send_buttons(self, recipient_id: str, text: str, buttons: Sequence[Choice]) -> None:
        raise NotImplementedError

    @abstractmethod
    def send_list(
        self,
        recipient_id: str,
        text: str,
        button_text: str,
        sections: Sequence[ListSection],
        header: str | None = None,
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def upload_media(self, content: bytes, filename: str, mime_type: str) -> str:
        """Upload a file and return the provider media id."""
        raise NotImplementedError

    @abstractmethod
    def send_document_by_id(self, recipient_id: str, media_id: str, filename: str, caption: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def send_document_by_link(self, recipient_id: str, url: str, filename: str, caption: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def download_media(self, media_id: str) -> tuple[bytes, str]:
        """Fetch inbound media. Returns (content, mime_type)."""
        raise NotImplementedError
