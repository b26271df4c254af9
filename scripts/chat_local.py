#!/usr/bin/env python3
"""
Interactive local chat harness (no HTTP, no WhatsApp).

Usage:
  python3 scripts/chat_local.py

What it does:
- Keeps a stable address for the session
- Sends typed messages through the same HandleIncomingMessageUseCase
- Prints every outbound message, with numbered options for buttons and lists
- `#n` taps option n of the last interactive message
"""
from __future__ import annotations

import os
import sys
import tempfile
import time
from pathlib import Path
from zoneinfo import ZoneInfo

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from booking_bot.application.use_cases.deliver_receipt import DeliverReceiptUseCase
from booking_bot.application.use_cases.form_engine import FormEngine
from booking_bot.application.use_cases.handle_incoming_message import HandleIncomingMessageUseCase
from booking_bot.application.use_cases.reply_composer import ReplyComposer
from booking_bot.application.use_cases.send_reply import SendReplyUseCase
from booking_bot.application.utils.working_days import WorkingDayCalendar
from booking_bot.core.config import settings
from booking_bot.domain.entities.inbound_event import InboundEvent
from booking_bot.infrastructure.knowledge.service_catalog_store import ServiceCatalogStore
from booking_bot.infrastructure.receipts.pdf_receipt import PdfReceiptGenerator
from booking_bot.infrastructure.sheets.memory_slot_store import MemorySlotStore
from booking_bot.infrastructure.store.memory_store import MemorySessionStore
from booking_bot.infrastructure.whatsapp.mock_platform import MockWhatsAppPlatform


def _build():
    tz = ZoneInfo(settings.BUSINESS_TIMEZONE)
    calendar = WorkingDayCalendar(timezone=tz, rest_weekdays=settings.REST_WEEKDAYS)
    slots = MemorySlotStore(calendar)
    slots.seed()
    platform = MockWhatsAppPlatform()
    catalog = ServiceCatalogStore()
    composer = ReplyComposer(catalog, settings.BUSINESS_NAME, settings.BUSINESS_PHONE, settings.SLOTS_PAGE_SIZE)
    receipts_dir = tempfile.mkdtemp(prefix="receipts_")
    deliver = DeliverReceiptUseCase(
        generator=PdfReceiptGenerator(receipts_dir, settings.BUSINESS_NAME, settings.BUSINESS_PHONE, tz),
        platform=platform,
        caption=composer.receipt_caption(),
    )
    use_case = HandleIncomingMessageUseCase(
        sessions=MemorySessionStore(),
        slot_store=slots,
        catalog=catalog,
        form_engine=FormEngine(),
        composer=composer,
        send_reply=SendReplyUseCase(platform=platform, deliver_receipt=deliver, auto_reply_enabled=True),
        timezone=tz,
        working_days_offered=settings.WORKING_DAYS_OFFERED,
    )
    return use_case, platform, receipts_dir


def main() -> None:
    address = os.getenv("CHAT_ADDRESS", "59165900645")
    use_case, platform, receipts_dir = _build()
    last_ids: list[str] = []

    print("\nLocal Chat Harness")
    print("-" * 60)
    print(f"address: {address}")
    print(f"receipts: {receipts_dir}")
    print("Type a message, #n to tap option n, /quit to exit.")
    print("-" * 60)

    while True:
        try:
            user_text = input("\n> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nBye!")
            return
        if not user_text:
            continue
        if user_text.lower() in ("/quit", "/exit"):
            print("Bye!")
            return

        now = time.time()
        event_id = f"local_{int(now * 1000)}"
        if user_text.startswith("#") and user_text[1:].isdigit():
            idx = int(user_text[1:]) - 1
            if not 0 <= idx < len(last_ids):
                print("(no such option)")
                continue
            event = InboundEvent(id=event_id, address=address, timestamp=int(now),
                                 message_type="selection", selection_id=last_ids[idx])
        else:
            event = InboundEvent(id=event_id, address=address, timestamp=int(now), text=user_text)

        already_sent = len(platform.sent)
        use_case.handle(event)

        for message in platform.sent[already_sent:]:
            print(f"\n[{message.kind}] {message.text}")
            ids = message.payload.get("ids")
            if ids:
                last_ids = list(ids)
                for n, option in enumerate(ids, start=1):
                    print(f"  #{n} {option}")
            if message.kind == "document":
                print(f"  file: {message.payload.get('filename')}")


if __name__ == "__main__":
    main()
