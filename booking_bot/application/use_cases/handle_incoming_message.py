from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Callable
from zoneinfo import ZoneInfo

from booking_bot.application.exceptions import NotificationError, SlotStoreError
from booking_bot.application.ports.service_catalog import ServiceCatalogPort
from booking_bot.application.ports.session_store import SessionStorePort
from booking_bot.application.ports.slot_store import SlotStorePort
from booking_bot.application.use_cases.form_engine import FormEngine
from booking_bot.application.use_cases.reply_composer import ReplyComposer
from booking_bot.application.use_cases.send_reply import SendReplyUseCase
from booking_bot.application.use_cases.transcribe_audio import TranscribeAudioUseCase
from booking_bot.application.utils.keyed_lock import KeyedLock
from booking_bot.application.utils.commands import (
    ChangePage,
    ChooseDay,
    ChooseService,
    ChooseSlot,
    Command,
    ConfirmBooking,
    DeclineBooking,
    EditBooking,
    EditField,
    ShowServices,
    StartBooking,
    UnknownCommand,
    parse_command,
)
from booking_bot.application.utils.message_rules import (
    extract_iso_date,
    extract_time,
    is_cancel,
    is_confirmation,
    is_decline,
    is_edit_request,
    is_farewell,
    is_greeting,
    is_help,
    is_next_page,
    is_previous_page,
    is_receipt_request,
    is_show_services,
    is_thanks,
)
from booking_bot.domain.entities.booking import BOOKING_STATUS_CONFIRMED, BookingRecord
from booking_bot.domain.entities.conversation_state import (
    AwaitingDayChoice,
    AwaitingFinalConfirmation,
    AwaitingServiceType,
    AwaitingTimeChoice,
    CollectingForm,
    ConversationState,
    Initial,
)
from booking_bot.domain.entities.form import FieldKind, FormSession
from booking_bot.domain.entities.inbound_event import InboundEvent
from booking_bot.domain.entities.reply import ReceiptReply, Reply, TextReply


@dataclass(frozen=True)
class Outcome:
    state: ConversationState | None  # None deletes the session
    replies: tuple[Reply, ...] = ()


class HandleIncomingMessageUseCase:
    """
    Booking conversation state machine.

    One inbound event is processed to completion under a per-address lock.
    Across addresses the only shared resource is the slot row, guarded by the
    slot store's claim. Nothing is shown as booked before the claim succeeds.
    """

    def __init__(
        self,
        sessions: SessionStorePort,
        slot_store: SlotStorePort,
        catalog: ServiceCatalogPort,
        form_engine: FormEngine,
        composer: ReplyComposer,
        send_reply: SendReplyUseCase,
        timezone: ZoneInfo,
        transcribe_audio: TranscribeAudioUseCase | None = None,
        working_days_offered: int = 7,
        session_ttl_seconds: float = 24 * 60 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._sessions = sessions
        self._slots = slot_store
        self._catalog = catalog
        self._forms = form_engine
        self._composer = composer
        self._send_reply = send_reply
        self._timezone = timezone
        self._transcribe_audio = transcribe_audio
        self._days_offered = working_days_offered
        self._ttl = session_ttl_seconds
        self._clock = clock
        self._locks = KeyedLock()
        self._logger = logging.getLogger(__name__)

    def handle(self, event: InboundEvent) -> None:
        try:
            with self._locks.hold(event.address):
                self._handle_locked(event)
        except Exception as e:
            self._logger.exception(
                "Error handling inbound event",
                extra={"message_id": event.id, "address": event.address, "error": str(e)},
            )
            self._dispatch(event.address, self._composer.generic_failure())

    def _handle_locked(self, event: InboundEvent) -> None:
        if self._sessions.has_processed(event.address, event.id):
            self._logger.info("Duplicate message ignored", extra={"message_id": event.id, "address": event.address})
            return
        now = self._clock()
        self._sessions.mark_processed(event.address, event.id, seen_at=now)

        state = self._load_state(event.address, now)
        outcome = self._route(event, state)

        if outcome.state is None:
            self._sessions.delete(event.address)
        else:
            self._sessions.set(event.address, replace(outcome.state, last_updated=now))

        self._logger.info(
            "Event processed",
            extra={
                "message_id": event.id,
                "address": event.address,
                "stage": outcome.state.stage.value if outcome.state is not None else "initial",
                "previous_stage": state.stage.value,
            },
        )

        for reply in outcome.replies:
            if not self._dispatch(event.address, reply):
                break

    def _load_state(self, address: str, now: float) -> ConversationState:
        state = self._sessions.get(address)
        if state is None:
            return Initial()
        if state.last_updated is not None and now - state.last_updated > self._ttl:
            self._logger.info("Session expired", extra={"address": address, "stage": state.stage.value})
            return Initial()
        return state

    def _dispatch(self, address: str, reply: Reply) -> bool:
        try:
            sent = self._send_reply.execute(address, reply)
        except NotificationError as e:
            self._logger.error("Reply send failed", extra={"address": address, "error": str(e)})
            return False
        if isinstance(reply, ReceiptReply) and not sent and self._send_reply.enabled:
            try:
                self._send_reply.execute(address, self._composer.receipt_failed())
            except NotificationError as e:
                self._logger.error("Receipt failure notice failed", extra={"address": address, "error": str(e)})
        return True

    # ------------------------------------------------------------------ routing

    def _route(self, event: InboundEvent, state: ConversationState) -> Outcome:
        if not event.is_supported:
            self._logger.info("Unsupported message type", extra={"address": event.address, "reason": event.message_type})
            return Outcome(state, (self._composer.unsupported_message(),))

        if event.message_type == "selection" and event.selection_id:
            command = parse_command(event.selection_id)
            self._logger.info("Selection received", extra={"address": event.address, "command": type(command).__name__})
            return self._on_command(state, command, event.address)

        text = event.text or ""
        if event.message_type == "audio":
            transcript = None
            if self._transcribe_audio is not None and event.audio_ref:
                transcript = self._transcribe_audio.execute(event.audio_ref)
            if not transcript:
                return Outcome(state, (self._composer.audio_not_understood(),))
            text = transcript

        if is_cancel(text):
            self._logger.info("Session cancelled", extra={"address": event.address, "stage": state.stage.value})
            return Outcome(None, (self._composer.cancelled(),))
        if is_help(text):
            return Outcome(state, (self._composer.help_for(state.stage),))

        return self._on_text(state, text, event.address)

    def _on_text(self, state: ConversationState, text: str, address: str) -> Outcome:
        if isinstance(state, Initial):
            return self._initial_text(state, text)
        if isinstance(state, AwaitingServiceType):
            return self._service_text(state, text)
        if isinstance(state, AwaitingDayChoice):
            return self._day_text(state, text)
        if isinstance(state, AwaitingTimeChoice):
            return self._time_text(state, text, address)
        if isinstance(state, CollectingForm):
            return self._form_text(state, text)
        if isinstance(state, AwaitingFinalConfirmation):
            return self._confirmation_text(state, text, address)
        raise TypeError(f"Unknown conversation state: {state!r}")

    def _on_command(self, state: ConversationState, command: Command, address: str) -> Outcome:
        if isinstance(command, (ShowServices, StartBooking)):
            if not isinstance(state, (Initial, AwaitingServiceType, AwaitingDayChoice)):
                return self._stale(state)
            prefix = (self._composer.book_requires_service(),) if isinstance(command, StartBooking) else ()
            return Outcome(AwaitingServiceType(), (*prefix, self._composer.service_list()))

        if isinstance(command, ChooseService):
            if not isinstance(state, (Initial, AwaitingServiceType, AwaitingDayChoice)):
                return self._stale(state)
            entry = self._catalog.get_service(command.service_id)
            if entry is None:
                return Outcome(AwaitingServiceType(), (self._composer.unknown_service(), self._composer.service_list()))
            return self._offer_days(state, entry.label)

        if isinstance(command, ChooseDay):
            if not isinstance(state, (AwaitingDayChoice, AwaitingTimeChoice)):
                return self._stale(state)
            return self._choose_day(state, command.day)

        if isinstance(command, ChooseSlot):
            if not isinstance(state, AwaitingTimeChoice):
                return self._stale(state)
            return self._choose_slot(state, command.slot_id, address)

        if isinstance(command, ChangePage):
            if not isinstance(state, AwaitingTimeChoice):
                return self._stale(state)
            return self._change_page(state, command.page)

        if isinstance(command, ConfirmBooking):
            if not isinstance(state, AwaitingFinalConfirmation):
                return self._stale(state)
            return self._finalize(state, address)

        if isinstance(command, EditBooking):
            if not isinstance(state, AwaitingFinalConfirmation):
                return self._stale(state)
            return Outcome(state, (self._composer.edit_menu(state.form),))

        if isinstance(command, EditField):
            if not isinstance(state, (CollectingForm, AwaitingFinalConfirmation)):
                return self._stale(state)
            return self._edit_field(state, command.key)

        if isinstance(command, DeclineBooking):
            if not isinstance(state, (CollectingForm, AwaitingFinalConfirmation)):
                return self._stale(state)
            return Outcome(None, (self._composer.booking_declined(),))

        if isinstance(command, UnknownCommand):
            self._logger.info("Unknown selection id", extra={"address": address, "command": command.raw})
            return self._stale(state)

        raise TypeError(f"Unhandled command: {command!r}")

    # ------------------------------------------------------------ stage handlers

    def _initial_text(self, state: Initial, text: str) -> Outcome:
        if is_greeting(text):
            return Outcome(AwaitingServiceType(), (self._composer.welcome(), self._composer.service_list()))
        if is_receipt_request(text):
            if state.last_booking is None:
                return Outcome(state, (self._composer.no_receipt(),))
            return Outcome(state, (ReceiptReply(state.last_booking),))
        if is_thanks(text):
            return Outcome(state, (self._composer.thanks(),))
        if is_farewell(text):
            return Outcome(state, (self._composer.farewell(),))
        if is_show_services(text):
            return Outcome(AwaitingServiceType(), (self._composer.service_list(),))

        entry = self._catalog.resolve_from_text(text)
        if entry is not None:
            return self._offer_days(state, entry.label)
        return Outcome(state, (self._composer.not_understood(),))

    def _service_text(self, state: AwaitingServiceType, text: str) -> Outcome:
        if is_show_services(text) or is_greeting(text):
            return Outcome(state, (self._composer.service_list(),))
        entry = self._catalog.resolve_from_text(text)
        if entry is None:
            return Outcome(state, (self._composer.unknown_service(), self._composer.service_list()))
        return self._offer_days(state, entry.label)

    def _day_text(self, state: AwaitingDayChoice, text: str) -> Outcome:
        typed = _parse_iso(extract_iso_date(text))
        if typed is not None:
            return self._choose_day(state, typed)
        if not state.offered_days:
            return self._offer_days(state, state.service_type, prefix=(self._composer.pick_day_hint(),))
        return Outcome(state, (self._composer.pick_day_hint(), self._composer.day_list(state.offered_days)))

    def _time_text(self, state: AwaitingTimeChoice, text: str, address: str) -> Outcome:
        if is_next_page(text):
            return self._change_page(state, state.slots_page + 1)
        if is_previous_page(text):
            return self._change_page(state, state.slots_page - 1)

        typed_day = _parse_iso(extract_iso_date(text))
        if typed_day is not None:
            return self._choose_day(state, typed_day)

        typed_time = extract_time(text)
        if typed_time is not None:
            for slot in state.offered_slots:
                if slot.time == typed_time:
                    return self._choose_slot(state, slot.id, address)

        return Outcome(state, (self._composer.pick_time_hint(), self._slot_page(state)))

    def _form_text(self, state: CollectingForm, text: str) -> Outcome:
        step = self._forms.submit(state.form, text)
        if step.error is not None:
            return Outcome(state, (self._composer.field_error(step.error, step.prompt or ""),))
        if step.completed:
            return Outcome(
                AwaitingFinalConfirmation(
                    service_type=state.service_type,
                    appointment_date=state.appointment_date,
                    appointment_time=state.appointment_time,
                    form=step.session,
                ),
                (self._composer.summary(step.session),),
            )
        return Outcome(replace(state, form=step.session), (TextReply(step.prompt or ""),))

    def _confirmation_text(self, state: AwaitingFinalConfirmation, text: str, address: str) -> Outcome:
        if is_confirmation(text):
            return self._finalize(state, address)
        if is_edit_request(text):
            return Outcome(state, (self._composer.edit_menu(state.form),))
        if is_decline(text):
            return Outcome(None, (self._composer.booking_declined(),))
        return Outcome(state, (self._composer.summary(state.form),))

    # ---------------------------------------------------------------- actions

    def _offer_days(self, state: ConversationState, service_type: str, prefix: tuple[Reply, ...] = ()) -> Outcome:
        try:
            days = self._slots.list_next_working_days(self._days_offered)
        except SlotStoreError as e:
            self._logger.error("Working days lookup failed", extra={"error": str(e)})
            return Outcome(state, (self._composer.store_unavailable(),))
        return Outcome(
            AwaitingDayChoice(service_type=service_type, offered_days=tuple(days)),
            (*prefix, self._composer.day_list(days)),
        )

    def _choose_day(self, state: AwaitingDayChoice | AwaitingTimeChoice, day: date) -> Outcome:
        service_type = state.service_type
        try:
            # the list the user tapped may be stale, so validate against a fresh one
            offered = self._slots.list_next_working_days(self._days_offered)
            if day not in offered:
                self._logger.info("Stale day selection", extra={"reason": day.isoformat()})
                return Outcome(
                    AwaitingDayChoice(service_type=service_type, offered_days=tuple(offered)),
                    (self._composer.day_not_offered(), self._composer.day_list(offered)),
                )
            slots = self._slots.list_open_slots(day)
        except SlotStoreError as e:
            self._logger.error("Slot lookup failed", extra={"error": str(e)})
            return Outcome(state, (self._composer.store_unavailable(),))

        if not slots:
            return Outcome(
                AwaitingDayChoice(service_type=service_type, offered_days=tuple(offered)),
                (self._composer.no_slots(day), self._composer.day_list(offered)),
            )
        next_state = AwaitingTimeChoice(
            service_type=service_type,
            chosen_date=day,
            offered_slots=tuple(slots),
            slots_page=0,
        )
        return Outcome(next_state, (self._slot_page(next_state),))

    def _change_page(self, state: AwaitingTimeChoice, page: int) -> Outcome:
        next_state = replace(state, slots_page=self._composer.clamp_page(state.offered_slots, page))
        return Outcome(next_state, (self._slot_page(next_state),))

    def _choose_slot(self, state: AwaitingTimeChoice, slot_ref: str, address: str) -> Outcome:
        slot = state.find_offered(slot_ref)
        if slot is None:
            self._logger.info("Slot not in offered list", extra={"address": address, "slot_id": slot_ref})
            return self._refresh_slots(state, self._composer.slot_not_offered())

        try:
            claimed = self._slots.claim_slot(slot.id, address, state.service_type)
        except SlotStoreError as e:
            self._logger.error("Slot claim failed", extra={"address": address, "slot_id": slot.id, "error": str(e)})
            return Outcome(state, (self._composer.claim_failed(), self._slot_page(state)))

        if not claimed:
            self._logger.info("Slot race lost", extra={"address": address, "slot_id": slot.id})
            return self._refresh_slots(state, self._composer.slot_taken())

        self._logger.info("Slot claimed", extra={"address": address, "slot_id": slot.id})
        form = self._forms.start(state.service_type, slot, address)
        return Outcome(
            CollectingForm(
                service_type=state.service_type,
                appointment_date=slot.date,
                appointment_time=slot.time,
                form=form,
            ),
            (self._composer.slot_held(slot), TextReply(self._forms.current_prompt(form) or "")),
        )

    def _refresh_slots(self, state: AwaitingTimeChoice, notice: Reply) -> Outcome:
        try:
            slots = self._slots.list_open_slots(state.chosen_date)
        except SlotStoreError as e:
            self._logger.error("Slot refresh failed", extra={"error": str(e)})
            return Outcome(state, (self._composer.store_unavailable(),))
        if not slots:
            return self._offer_days(state, state.service_type, prefix=(self._composer.no_slots(state.chosen_date),))
        next_state = replace(state, offered_slots=tuple(slots), slots_page=0)
        return Outcome(next_state, (notice, self._slot_page(next_state)))

    def _edit_field(self, state: CollectingForm | AwaitingFinalConfirmation, key: str) -> Outcome:
        form = self._forms.jump_to(state.form, key)
        if form is None:
            return Outcome(state, (self._composer.edit_menu(state.form),))
        return Outcome(
            CollectingForm(
                service_type=state.service_type,
                appointment_date=state.appointment_date,
                appointment_time=state.appointment_time,
                form=form,
            ),
            (TextReply(self._forms.current_prompt(form) or ""),),
        )

    def _finalize(self, state: AwaitingFinalConfirmation, address: str) -> Outcome:
        form = state.form
        if not (state.service_type and state.appointment_date and state.appointment_time):
            self._logger.warning("Incomplete booking at confirmation", extra={"address": address})
            return Outcome(None, (self._composer.booking_incomplete(),))

        invalid = self._forms.first_invalid(form)
        if invalid is not None:
            key, error = invalid
            self._logger.info("Confirmation re-validation failed", extra={"address": address, "reason": key})
            jumped = self._forms.jump_to(form, key) or form
            return Outcome(
                CollectingForm(
                    service_type=state.service_type,
                    appointment_date=state.appointment_date,
                    appointment_time=state.appointment_time,
                    form=jumped,
                ),
                (self._composer.field_error(error, self._forms.current_prompt(jumped) or ""),),
            )

        record = BookingRecord(
            phone=_value_of(form, FieldKind.PHONE),
            name=_value_of(form, FieldKind.NAME),
            email=_value_of(form, FieldKind.EMAIL),
            service=state.service_type,
            date=state.appointment_date,
            time=state.appointment_time,
            slot_id=form.slot.id,
            status=BOOKING_STATUS_CONFIRMED,
            created_at=datetime.fromtimestamp(self._clock(), self._timezone),
        )
        try:
            self._slots.append_booking(record)
        except SlotStoreError as e:
            # the slot stays claimed without a ledger row; the user must hear about it
            self._logger.error(
                "Booking append failed after claim",
                extra={"address": address, "slot_id": record.slot_id, "error": str(e)},
            )
            return Outcome(state, (self._composer.save_failed(),))

        self._logger.info("Booking confirmed", extra={"address": address, "slot_id": record.slot_id})
        return Outcome(
            Initial(last_booking=record),
            (self._composer.booking_confirmed(record), ReceiptReply(record), self._composer.anything_else()),
        )

    # ---------------------------------------------------------------- helpers

    def _stale(self, state: ConversationState) -> Outcome:
        return Outcome(state, (self._composer.unknown_command(), *self._reprompt(state)))

    def _reprompt(self, state: ConversationState) -> tuple[Reply, ...]:
        if isinstance(state, Initial):
            return (self._composer.not_understood(),)
        if isinstance(state, AwaitingServiceType):
            return (self._composer.service_list(),)
        if isinstance(state, AwaitingDayChoice):
            if state.offered_days:
                return (self._composer.day_list(state.offered_days),)
            return (self._composer.pick_day_hint(),)
        if isinstance(state, AwaitingTimeChoice):
            return (self._slot_page(state),)
        if isinstance(state, CollectingForm):
            return (TextReply(self._forms.current_prompt(state.form) or ""),)
        if isinstance(state, AwaitingFinalConfirmation):
            return (self._composer.summary(state.form),)
        raise TypeError(f"Unknown conversation state: {state!r}")

    def _slot_page(self, state: AwaitingTimeChoice) -> Reply:
        return self._composer.slot_page(state.chosen_date, state.offered_slots, state.slots_page)


def _value_of(form: FormSession, kind: FieldKind) -> str:
    for spec in form.schema:
        if spec.kind == kind:
            return form.collected.get(spec.key, "")
    return ""


def _parse_iso(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None
