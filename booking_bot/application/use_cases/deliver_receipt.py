from __future__ import annotations

import logging

from booking_bot.application.exceptions import NotificationError, ReceiptError
from booking_bot.application.ports.message_platform import MessagePlatformPort
from booking_bot.application.ports.receipt_generator import ReceiptGeneratorPort
from booking_bot.domain.entities.booking import BookingRecord


class DeliverReceiptUseCase:
    """
    Render the receipt and get it to the user.

    Order of attempts: document by public link, document by uploaded media id,
    plain text carrying the link. Returns False when nothing reached the user.
    """

    def __init__(
        self,
        generator: ReceiptGeneratorPort,
        platform: MessagePlatformPort,
        caption: str,
    ) -> None:
        self._generator = generator
        self._platform = platform
        self._caption = caption
        self._logger = logging.getLogger(__name__)

    def execute(self, recipient_id: str, booking: BookingRecord) -> bool:
        try:
            receipt = self._generator.generate(booking)
        except ReceiptError as e:
            self._logger.error(
                "Receipt generation failed",
                extra={"address": recipient_id, "slot_id": booking.slot_id, "error": str(e)},
            )
            return False

        if receipt.public_url:
            try:
                self._platform.send_document_by_link(recipient_id, receipt.public_url, receipt.filename, self._caption)
                self._logger.info("Receipt sent by link", extra={"address": recipient_id, "slot_id": booking.slot_id})
                return True
            except NotificationError as e:
                self._logger.warning(
                    "Receipt by link failed, trying media upload",
                    extra={"address": recipient_id, "error": str(e)},
                )

        try:
            media_id = self._platform.upload_media(receipt.content, receipt.filename, receipt.mime_type)
            self._platform.send_document_by_id(recipient_id, media_id, receipt.filename, self._caption)
            self._logger.info("Receipt sent by media id", extra={"address": recipient_id, "slot_id": booking.slot_id})
            return True
        except NotificationError as e:
            self._logger.warning("Receipt upload failed", extra={"address": recipient_id, "error": str(e)})

        if receipt.public_url:
            try:
                self._platform.send_text(recipient_id, f"📄 Descarga tu comprobante aquí: {receipt.public_url}")
                return True
            except NotificationError as e:
                self._logger.error("Receipt link text failed", extra={"address": recipient_id, "error": str(e)})

        return False
