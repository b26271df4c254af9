from __future__ import annotations

import logging
from typing import Sequence

from booking_bot.application.exceptions import NotificationError
from booking_bot.application.ports.message_platform import MessagePlatformPort
from booking_bot.domain.entities.reply import MAX_BUTTONS, Choice, ListSection
from booking_bot.infrastructure.whatsapp.whatsapp_client import WhatsAppClient

DEFAULT_LIST_HEADER = "Selecciona una opción"


class WhatsAppPlatform(MessagePlatformPort):
    def __init__(self, client: WhatsAppClient) -> None:
        self._client = client
        self._logger = logging.getLogger(__name__)

    def send_text(self, recipient_id: str, text: str) -> None:
        self._client.send_message(recipient_id, "text", {"preview_url": False, "body": text})

    def send_buttons(self, recipient_id: str, text: str, buttons: Sequence[Choice]) -> None:
        self._client.send_message(
            recipient_id,
            "interactive",
            {
                "type": "button",
                "body": {"text": text},
                "action": {"buttons": [_button(choice) for choice in buttons[:MAX_BUTTONS]]},
            },
        )

    def send_list(
        self,
        recipient_id: str,
        text: str,
        button_text: str,
        sections: Sequence[ListSection],
        header: str | None = None,
    ) -> None:
        content = {
            "type": "list",
            "header": {"type": "text", "text": header or DEFAULT_LIST_HEADER},
            "body": {"text": text},
            "action": {
                "button": button_text[:20],
                "sections": [
                    {
                        "title": section.title[:24],
                        "rows": [_row(choice) for choice in section.rows],
                    }
                    for section in sections
                ],
            },
        }
        try:
            self._client.send_message(recipient_id, "interactive", content)
        except NotificationError as e:
            # some clients reject lists; the first rows still work as buttons
            self._logger.warning("List rejected, falling back to buttons", extra={"error": str(e)})
            rows = [choice for section in sections for choice in section.rows]
            self.send_buttons(recipient_id, text, rows[:MAX_BUTTONS])

    def upload_media(self, content: bytes, filename: str, mime_type: str) -> str:
        return self._client.upload_media(content, filename, mime_type)

    def send_document_by_id(self, recipient_id: str, media_id: str, filename: str, caption: str) -> None:
        self._client.send_message(recipient_id, "document", {"id": media_id, "filename": filename, "caption": caption})

    def send_document_by_link(self, recipient_id: str, url: str, filename: str, caption: str) -> None:
        self._client.send_message(recipient_id, "document", {"link": url, "filename": filename, "caption": caption})

    def download_media(self, media_id: str) -> tuple[bytes, str]:
        return self._client.download_media(media_id)


def _button(choice: Choice) -> dict:
    return {"type": "reply", "reply": {"id": choice.id, "title": choice.title[:20]}}


def _row(choice: Choice) -> dict:
    row = {"id": choice.id, "title": choice.title[:24]}
    if choice.description:
        row["description"] = choice.description[:72]
    return row
