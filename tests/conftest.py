from __future__ import annotations

import itertools
from datetime import date
from zoneinfo import ZoneInfo

import pytest

from booking_bot.application.ports.receipt_generator import ReceiptGeneratorPort
from booking_bot.application.ports.session_store import SessionStorePort
from booking_bot.application.ports.slot_store import SlotStorePort
from booking_bot.application.use_cases.deliver_receipt import DeliverReceiptUseCase
from booking_bot.application.use_cases.form_engine import FormEngine
from booking_bot.application.use_cases.handle_incoming_message import HandleIncomingMessageUseCase
from booking_bot.application.use_cases.reply_composer import ReplyComposer
from booking_bot.application.use_cases.send_reply import SendReplyUseCase
from booking_bot.application.utils.working_days import WorkingDayCalendar
from booking_bot.domain.entities.inbound_event import InboundEvent
from booking_bot.infrastructure.knowledge.service_catalog_store import ServiceCatalogStore
from booking_bot.infrastructure.receipts.pdf_receipt import PdfReceiptGenerator
from booking_bot.infrastructure.sheets.memory_slot_store import MemorySlotStore
from booking_bot.infrastructure.store.memory_store import MemorySessionStore
from booking_bot.infrastructure.whatsapp.mock_platform import MockWhatsAppPlatform, SentMessage

TZ = ZoneInfo("America/La_Paz")
TODAY = date(2026, 3, 2)  # a Monday, clear of Carnival and Easter
ADDRESS = "59165900645"
NOW_TS = 1_772_460_000.0


def make_calendar(rest_weekdays=(5, 6)) -> WorkingDayCalendar:
    return WorkingDayCalendar(timezone=TZ, rest_weekdays=rest_weekdays, today=lambda: TODAY)


class ManualClock:
    def __init__(self, now: float = NOW_TS) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class ChatHarness:
    """Drives the orchestrator like the webhook would and returns what was sent back."""

    _ids = itertools.count(1)

    def __init__(
        self,
        use_case: HandleIncomingMessageUseCase,
        platform: MockWhatsAppPlatform,
        sessions: SessionStorePort,
        slots: SlotStorePort,
        clock: ManualClock,
        address: str = ADDRESS,
    ) -> None:
        self.use_case = use_case
        self.platform = platform
        self.sessions = sessions
        self.slots = slots
        self.clock = clock
        self.address = address

    def say(self, text: str, address: str | None = None) -> list[SentMessage]:
        return self.send(InboundEvent(id=self._next_id(), address=address or self.address, timestamp=0, text=text))

    def tap(self, selection_id: str, address: str | None = None) -> list[SentMessage]:
        return self.send(
            InboundEvent(
                id=self._next_id(),
                address=address or self.address,
                timestamp=0,
                message_type="selection",
                selection_id=selection_id,
            )
        )

    def send(self, event: InboundEvent) -> list[SentMessage]:
        before = len(self.platform.sent)
        self.use_case.handle(event)
        return self.platform.sent[before:]

    def state(self, address: str | None = None):
        return self.sessions.get(address or self.address)

    def _next_id(self) -> str:
        return f"wamid.{next(self._ids)}"


@pytest.fixture
def make_harness(tmp_path):
    def _make(
        slot_store: SlotStorePort | None = None,
        generator: ReceiptGeneratorPort | None = None,
        platform: MockWhatsAppPlatform | None = None,
        seed: bool = True,
    ) -> ChatHarness:
        calendar = make_calendar()
        if slot_store is None:
            slot_store = MemorySlotStore(calendar)
            if seed:
                slot_store.seed()
        platform = platform or MockWhatsAppPlatform()
        sessions = MemorySessionStore()
        catalog = ServiceCatalogStore()
        composer = ReplyComposer(catalog, "Encinas Auditores", "+591 65900645")
        generator = generator or PdfReceiptGenerator(str(tmp_path / "receipts"), "Encinas Auditores", "+591 65900645", TZ)
        deliver = DeliverReceiptUseCase(generator=generator, platform=platform, caption=composer.receipt_caption())
        clock = ManualClock()
        use_case = HandleIncomingMessageUseCase(
            sessions=sessions,
            slot_store=slot_store,
            catalog=catalog,
            form_engine=FormEngine(),
            composer=composer,
            send_reply=SendReplyUseCase(platform=platform, deliver_receipt=deliver, auto_reply_enabled=True),
            timezone=TZ,
            working_days_offered=7,
            session_ttl_seconds=3600,
            clock=clock,
        )
        return ChatHarness(use_case, platform, sessions, slot_store, clock)

    return _make


@pytest.fixture
def harness(make_harness) -> ChatHarness:
    return make_harness()
