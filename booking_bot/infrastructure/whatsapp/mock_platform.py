from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from booking_bot.application.ports.message_platform import MessagePlatformPort
from booking_bot.domain.entities.reply import Choice, ListSection


@dataclass
class SentMessage:
    recipient_id: str
    kind: str
    text: str
    payload: dict[str, Any] = field(default_factory=dict)


class MockWhatsAppPlatform(MessagePlatformPort):
    """Logs outbound messages instead of calling the Graph API and keeps them for inspection."""

    def __init__(self) -> None:
        self._logger = logging.getLogger(__name__)
        self.sent: list[SentMessage] = []
        self._media: dict[str, bytes] = {}

    def _record(self, message: SentMessage) -> None:
        self.sent.append(message)
        self._logger.info(
            "Mock send to WhatsApp",
            extra={"recipient_id": message.recipient_id, "kind": message.kind, "text": message.text},
        )

    def send_text(self, recipient_id: str, text: str) -> None:
        self._record(SentMessage(recipient_id, "text", text))

    def send_buttons(self, recipient_id: str, text: str, buttons: Sequence[Choice]) -> None:
        self._record(SentMessage(recipient_id, "buttons", text, {"ids": [b.id for b in buttons]}))

    def send_list(
        self,
        recipient_id: str,
        text: str,
        button_text: str,
        sections: Sequence[ListSection],
        header: str | None = None,
    ) -> None:
        ids = [row.id for section in sections for row in section.rows]
        self._record(SentMessage(recipient_id, "list", text, {"ids": ids, "button_text": button_text}))

    def upload_media(self, content: bytes, filename: str, mime_type: str) -> str:
        media_id = f"mock-media-{len(self._media) + 1}"
        self._media[media_id] = content
        return media_id

    def send_document_by_id(self, recipient_id: str, media_id: str, filename: str, caption: str) -> None:
        self._record(SentMessage(recipient_id, "document", caption, {"media_id": media_id, "filename": filename}))

    def send_document_by_link(self, recipient_id: str, url: str, filename: str, caption: str) -> None:
        self._record(SentMessage(recipient_id, "document", caption, {"link": url, "filename": filename}))

    def download_media(self, media_id: str) -> tuple[bytes, str]:
        return self._media.get(media_id, b""), "audio/ogg"
