from functools import lru_cache
import logging
from datetime import date
from zoneinfo import ZoneInfo

from booking_bot.core.config import settings
from booking_bot.application.ports.message_platform import MessagePlatformPort
from booking_bot.application.ports.service_catalog import ServiceCatalogPort
from booking_bot.application.ports.session_store import SessionStorePort
from booking_bot.application.ports.slot_store import SlotStorePort
from booking_bot.application.use_cases.deliver_receipt import DeliverReceiptUseCase
from booking_bot.application.use_cases.form_engine import FormEngine
from booking_bot.application.use_cases.handle_incoming_message import HandleIncomingMessageUseCase
from booking_bot.application.use_cases.reply_composer import ReplyComposer
from booking_bot.application.use_cases.send_reply import SendReplyUseCase
from booking_bot.application.use_cases.sweep_sessions import SweepSessionsUseCase
from booking_bot.application.use_cases.transcribe_audio import TranscribeAudioUseCase
from booking_bot.application.utils.working_days import WorkingDayCalendar
from booking_bot.infrastructure.knowledge.service_catalog_store import ServiceCatalogStore
from booking_bot.infrastructure.llm.openai_transcriber import OpenAITranscriber
from booking_bot.infrastructure.receipts.pdf_receipt import PdfReceiptGenerator
from booking_bot.infrastructure.sheets.google_sheets_slot_store import GoogleSheetsSlotStore
from booking_bot.infrastructure.sheets.memory_slot_store import MemorySlotStore
from booking_bot.infrastructure.store.json_store import JsonSessionStore
from booking_bot.infrastructure.store.memory_store import MemorySessionStore
from booking_bot.infrastructure.whatsapp.mock_platform import MockWhatsAppPlatform
from booking_bot.infrastructure.whatsapp.whatsapp_client import WhatsAppClient
from booking_bot.infrastructure.whatsapp.whatsapp_platform import WhatsAppPlatform


logger = logging.getLogger(__name__)


def _is_dev() -> bool:
    return settings.ENV.lower() in {"dev", "local"}


@lru_cache
def get_timezone() -> ZoneInfo:
    return ZoneInfo(settings.BUSINESS_TIMEZONE)


@lru_cache
def get_calendar() -> WorkingDayCalendar:
    return WorkingDayCalendar(
        timezone=get_timezone(),
        rest_weekdays=settings.REST_WEEKDAYS,
        extra_holidays=[date.fromisoformat(d) for d in settings.EXTRA_HOLIDAYS],
    )


@lru_cache
def get_form_engine() -> FormEngine:
    return FormEngine()


@lru_cache
def get_session_store() -> SessionStorePort:
    if settings.STORE_PROVIDER.lower() == "json":
        return JsonSessionStore(form_schema=get_form_engine().schema, data_dir=settings.SESSION_DATA_DIR)
    return MemorySessionStore()


@lru_cache
def get_slot_store() -> SlotStorePort:
    has_credentials = bool(settings.GOOGLE_CREDENTIALS_JSON or settings.GOOGLE_APPLICATION_CREDENTIALS)
    if not (settings.GOOGLE_SHEETS_ID and has_credentials):
        if _is_dev():
            logger.info("Using MemorySlotStore (sheet credentials missing, ENV=dev/local)")
            store = MemorySlotStore(get_calendar())
            store.seed()
            return store
        raise ValueError("GOOGLE_SHEETS_ID and Google credentials are required for the slot store.")

    logger.info("Using GoogleSheetsSlotStore")
    return GoogleSheetsSlotStore.from_credentials(
        spreadsheet_id=settings.GOOGLE_SHEETS_ID,
        calendar=get_calendar(),
        credentials_json=settings.GOOGLE_CREDENTIALS_JSON,
        credentials_file=settings.GOOGLE_APPLICATION_CREDENTIALS,
        slots_tab=settings.SHEETS_TAB_SLOTS,
        bookings_tab=settings.SHEETS_TAB_APPOINTMENTS,
        retry_attempts=settings.SHEETS_RETRY_ATTEMPTS,
        retry_delay_seconds=settings.SHEETS_RETRY_DELAY_SECONDS,
    )


@lru_cache
def get_service_catalog() -> ServiceCatalogPort:
    return ServiceCatalogStore()


@lru_cache
def get_whatsapp_platform() -> MessagePlatformPort:
    logger.info("WHATSAPP_TOKEN present=%s ENV=%s", bool(settings.WHATSAPP_TOKEN), settings.ENV)

    if not (settings.WHATSAPP_TOKEN and settings.WHATSAPP_PHONE_NUMBER_ID):
        if _is_dev():
            logger.info("Using MockWhatsAppPlatform (token missing, ENV=dev/local)")
            return MockWhatsAppPlatform()
        raise ValueError("WHATSAPP_TOKEN and WHATSAPP_PHONE_NUMBER_ID are required to send WhatsApp replies.")

    logger.info("Using real WhatsAppPlatform")
    client = WhatsAppClient(
        access_token=settings.WHATSAPP_TOKEN,
        phone_number_id=settings.WHATSAPP_PHONE_NUMBER_ID,
        api_version=settings.META_GRAPH_API_VERSION,
    )
    return WhatsAppPlatform(client=client)


@lru_cache
def get_reply_composer() -> ReplyComposer:
    return ReplyComposer(
        catalog=get_service_catalog(),
        business_name=settings.BUSINESS_NAME,
        business_phone=settings.BUSINESS_PHONE,
        page_size=settings.SLOTS_PAGE_SIZE,
    )


def get_transcribe_audio_use_case() -> TranscribeAudioUseCase:
    transcriber = None
    if settings.OPENAI_API_KEY and settings.OPENAI_API_KEY.strip():
        transcriber = OpenAITranscriber(api_key=settings.OPENAI_API_KEY, model=settings.OPENAI_MODEL_TRANSCRIBE)
    return TranscribeAudioUseCase(platform=get_whatsapp_platform(), transcriber=transcriber)


def get_send_reply_use_case() -> SendReplyUseCase:
    platform = get_whatsapp_platform()
    generator = PdfReceiptGenerator(
        output_dir=settings.RECEIPTS_DIR,
        business_name=settings.BUSINESS_NAME,
        business_phone=settings.BUSINESS_PHONE,
        timezone=get_timezone(),
        public_base_url=settings.PUBLIC_BASE_URL,
        maps_url=settings.BUSINESS_MAPS_URL,
    )
    deliver_receipt = DeliverReceiptUseCase(
        generator=generator,
        platform=platform,
        caption=get_reply_composer().receipt_caption(),
    )
    return SendReplyUseCase(
        platform=platform,
        deliver_receipt=deliver_receipt,
        auto_reply_enabled=settings.AUTO_REPLY_ENABLED,
    )


@lru_cache
def get_handle_incoming_message_use_case() -> HandleIncomingMessageUseCase:
    # one instance per process: it owns the per-address locks
    return HandleIncomingMessageUseCase(
        sessions=get_session_store(),
        slot_store=get_slot_store(),
        catalog=get_service_catalog(),
        form_engine=get_form_engine(),
        composer=get_reply_composer(),
        send_reply=get_send_reply_use_case(),
        timezone=get_timezone(),
        transcribe_audio=get_transcribe_audio_use_case(),
        working_days_offered=settings.WORKING_DAYS_OFFERED,
        session_ttl_seconds=settings.SESSION_TTL_SECONDS,
    )


def get_sweep_sessions_use_case() -> SweepSessionsUseCase:
    return SweepSessionsUseCase(store=get_session_store(), ttl_seconds=settings.SESSION_TTL_SECONDS)
