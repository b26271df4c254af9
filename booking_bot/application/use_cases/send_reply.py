from __future__ import annotations

import logging

from booking_bot.application.ports.message_platform import MessagePlatformPort
from booking_bot.application.use_cases.deliver_receipt import DeliverReceiptUseCase
from booking_bot.domain.entities.reply import (
    ButtonsReply,
    ListReply,
    ReceiptReply,
    Reply,
    TextReply,
)


class SendReplyUseCase:
    def __init__(
        self,
        platform: MessagePlatformPort,
        deliver_receipt: DeliverReceiptUseCase,
        auto_reply_enabled: bool,
    ) -> None:
        self._platform = platform
        self._deliver_receipt = deliver_receipt
        self._auto_reply_enabled = auto_reply_enabled
        self._logger = logging.getLogger(__name__)

    @property
    def enabled(self) -> bool:
        return self._auto_reply_enabled

    def execute(self, recipient_id: str, reply: Reply) -> bool:
        """Send a reply. Returns True if it reached the provider, False if skipped or (for receipts) undelivered."""
        if not self._auto_reply_enabled:
            self._logger.info("WOULD_SEND_REPLY", extra={"address": recipient_id, "reply_text": _preview(reply)})
            return False

        if isinstance(reply, TextReply):
            self._platform.send_text(recipient_id, reply.text)
        elif isinstance(reply, ButtonsReply):
            self._platform.send_buttons(recipient_id, reply.text, reply.buttons)
        elif isinstance(reply, ListReply):
            self._platform.send_list(recipient_id, reply.text, reply.button_text, reply.sections, reply.header)
        elif isinstance(reply, ReceiptReply):
            return self._deliver_receipt.execute(recipient_id, reply.booking)
        else:
            raise TypeError(f"Unsupported reply type: {type(reply).__name__}")
        return True


def _preview(reply: Reply) -> str:
    if isinstance(reply, ReceiptReply):
        return f"<receipt slot={reply.booking.slot_id}>"
    return reply.text[:120]
