"""
Conversation tests for the booking orchestrator, driven through the in-memory adapters.
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from booking_bot.application.exceptions import ReceiptError, SlotStoreError
from booking_bot.domain.entities.conversation_state import (
    AwaitingDayChoice,
    AwaitingFinalConfirmation,
    AwaitingServiceType,
    AwaitingTimeChoice,
    CollectingForm,
    Initial,
)
from booking_bot.domain.entities.inbound_event import InboundEvent
from booking_bot.infrastructure.sheets.memory_slot_store import MemorySlotStore

from conftest import ADDRESS, TODAY, make_calendar

DAY = "2026-03-03"


def _reach_time_choice(h, address=None):
    h.say("hola", address=address)
    h.tap("serv_tributario", address=address)
    h.tap(f"day_{DAY}", address=address)
    state = h.state(address)
    assert isinstance(state, AwaitingTimeChoice)
    return state


def _reach_summary(h):
    state = _reach_time_choice(h)
    h.tap(f"slot_{state.offered_slots[0].id}")
    h.say("María González")
    h.say("sí")
    h.say("maria@example.com")
    assert isinstance(h.state(), AwaitingFinalConfirmation)
    return state.offered_slots[0]


def test_happy_path_books_slot_and_sends_receipt(harness):
    sent = harness.say("hola")
    assert [m.kind for m in sent] == ["buttons", "list"]
    assert isinstance(harness.state(), AwaitingServiceType)

    sent = harness.tap("serv_tributario")
    state = harness.state()
    assert isinstance(state, AwaitingDayChoice)
    assert state.service_type == "Asesoría Tributaria"
    assert len(state.offered_days) == 7
    assert state.offered_days[0] == TODAY
    assert sent[-1].payload["ids"][0] == f"day_{TODAY.isoformat()}"

    sent = harness.tap(f"day_{DAY}")
    state = harness.state()
    assert isinstance(state, AwaitingTimeChoice)
    assert len(state.offered_slots) == 15
    assert [s.time for s in state.offered_slots] == sorted(s.time for s in state.offered_slots)
    assert len(sent[-1].payload["ids"]) <= 10

    slot = state.offered_slots[0]
    sent = harness.tap(f"slot_{slot.id}")
    assert harness.slots.status_of(slot.id) == "RESERVADO"
    assert isinstance(harness.state(), CollectingForm)
    assert "Paso 1/3" in sent[-1].text

    sent = harness.say("María González")
    assert "65900645" in sent[-1].text

    harness.say("sí")
    sent = harness.say("Maria@Example.com")
    summary = harness.state()
    assert isinstance(summary, AwaitingFinalConfirmation)
    assert summary.form.collected == {
        "nombre": "María González",
        "telefono": "65900645",
        "email": "maria@example.com",
    }
    assert sent[-1].payload["ids"] == ["confirm_yes", "confirm_edit", "confirm_no"]

    sent = harness.tap("confirm_yes")
    assert [m.kind for m in sent] == ["text", "document", "text"]
    assert "confirmada" in sent[0].text.lower()
    assert sent[1].payload["filename"].endswith(".pdf")

    bookings = harness.slots.bookings
    assert len(bookings) == 1
    assert bookings[0].slot_id == slot.id
    assert bookings[0].phone == "65900645"
    assert bookings[0].status == "CONFIRMADA"

    final = harness.state()
    assert isinstance(final, Initial)
    assert final.last_booking == bookings[0]


def test_free_text_service_goes_straight_to_days(harness):
    harness.say("necesito ayuda con mis impuestos")
    # help phrase wins over service matching
    assert isinstance(harness.state(), Initial)

    harness.say("quiero una asesoría tributaria")
    state = harness.state()
    assert isinstance(state, AwaitingDayChoice)
    assert state.service_type == "Asesoría Tributaria"


def test_unmatched_text_in_service_stage_resends_catalog(harness):
    harness.say("hola")
    sent = harness.say("algo raro")
    assert isinstance(harness.state(), AwaitingServiceType)
    assert sent[-1].kind == "list"
    assert sent[-1].payload["ids"][0] == "serv_tributario"


@pytest.mark.parametrize(
    "steps",
    [
        ["hola"],
        ["hola", "serv_legal"],
        ["hola", "serv_legal", f"day_{DAY}"],
    ],
)
def test_cancel_from_any_stage_resets_session(harness, steps):
    harness.say(steps[0])
    for selection in steps[1:]:
        harness.tap(selection)
    assert harness.state() is not None

    sent = harness.say("cancelar")
    assert harness.state() is None
    assert "cancelado" in sent[-1].text


def test_cancel_during_form_keeps_claim(harness):
    state = _reach_time_choice(harness)
    slot = state.offered_slots[0]
    harness.tap(f"slot_{slot.id}")

    harness.say("cancelar")

    assert harness.state() is None
    assert harness.slots.status_of(slot.id) == "RESERVADO"


def test_help_does_not_change_stage(harness):
    harness.say("hola")
    harness.tap("serv_legal")
    before = harness.state()

    sent = harness.say("ayuda")

    after = harness.state()
    assert type(after) is type(before)
    assert after.offered_days == before.offered_days
    assert "día" in sent[-1].text


def test_stale_slot_button_outside_time_stage_reprompts(harness):
    harness.say("hola")
    sent = harness.tap("slot_5")

    assert isinstance(harness.state(), AwaitingServiceType)
    assert "ya no está disponible" in sent[0].text
    assert sent[-1].kind == "list"
    assert harness.slots.status_of("5") == ""


def test_slot_outside_offer_is_not_claimed(harness):
    _reach_time_choice(harness)
    other_day = harness.slots.list_open_slots(TODAY)[0]

    sent = harness.tap(f"slot_{other_day.id}")

    assert harness.slots.status_of(other_day.id) == ""
    assert isinstance(harness.state(), AwaitingTimeChoice)
    assert "lista vigente" in sent[0].text


def test_stale_day_is_revalidated(harness):
    harness.say("hola")
    harness.tap("serv_legal")

    sent = harness.tap("day_2026-03-07")  # Saturday

    assert isinstance(harness.state(), AwaitingDayChoice)
    assert "ya no está disponible" in sent[0].text
    assert sent[-1].kind == "list"


def test_day_without_open_slots(make_harness):
    store = MemorySlotStore(make_calendar())
    store.add_slot(TODAY.replace(day=3), "09:00")
    h = make_harness(slot_store=store)
    h.say("hola")
    h.tap("serv_legal")

    sent = h.tap(f"day_{TODAY.isoformat()}")

    assert isinstance(h.state(), AwaitingDayChoice)
    assert "No hay horarios" in sent[0].text


def test_race_lost_refreshes_offer(harness):
    other = "59170000001"
    mine = _reach_time_choice(harness)
    theirs = _reach_time_choice(harness, address=other)
    contested = mine.offered_slots[0]
    assert theirs.offered_slots[0] == contested

    harness.tap(f"slot_{contested.id}", address=other)
    sent = harness.tap(f"slot_{contested.id}")

    assert harness.slots.claimant_of(contested.id) == other
    state = harness.state()
    assert isinstance(state, AwaitingTimeChoice)
    assert contested not in state.offered_slots
    assert state.slots_page == 0
    assert "acaba de ocuparse" in sent[0].text
    assert isinstance(harness.state(other), CollectingForm)


def test_claim_transport_error_keeps_stage(make_harness):
    class BrokenClaimStore(MemorySlotStore):
        def claim_slot(self, slot_id, claimant, service_type):
            raise SlotStoreError("quota exceeded")

    store = BrokenClaimStore(make_calendar())
    store.seed()
    h = make_harness(slot_store=store)
    state = _reach_time_choice(h)

    sent = h.tap(f"slot_{state.offered_slots[0].id}")

    assert h.state() == replace(state, last_updated=h.state().last_updated)
    assert "problema técnico" in sent[0].text


def test_pagination_and_typed_time(harness):
    state = _reach_time_choice(harness)

    sent = harness.tap("more_1")
    assert harness.state().slots_page == 1
    assert sent[-1].payload["ids"][0] == "more_0"
    assert len(sent[-1].payload["ids"]) <= 10

    harness.say("anterior")
    assert harness.state().slots_page == 0

    target = next(s for s in state.offered_slots if s.time == "14:30")
    harness.say("a las 14:30 por favor")
    assert harness.slots.status_of(target.id) == "RESERVADO"
    assert isinstance(harness.state(), CollectingForm)


def test_invalid_field_does_not_advance(harness):
    state = _reach_time_choice(harness)
    harness.tap(f"slot_{state.offered_slots[0].id}")

    sent = harness.say("R2D2")

    form_state = harness.state()
    assert form_state.form.field_index == 0
    assert "letras" in sent[-1].text
    assert "Paso 1/3" in sent[-1].text


def test_edit_returns_to_summary(harness):
    _reach_summary(harness)

    sent = harness.tap("confirm_edit")
    assert sent[-1].payload["ids"] == ["edit_nombre", "edit_telefono", "edit_email"]

    harness.tap("edit_email")
    assert isinstance(harness.state(), CollectingForm)

    harness.say("otro@example.com")
    state = harness.state()
    assert isinstance(state, AwaitingFinalConfirmation)
    assert state.form.collected["email"] == "otro@example.com"
    assert state.form.collected["nombre"] == "María González"


def test_confirmation_revalidates_payload(harness):
    _reach_summary(harness)
    state = harness.state()
    broken = replace(state, form=state.form.with_value("email", "not-an-email"))
    harness.sessions.set(ADDRESS, broken)

    sent = harness.tap("confirm_yes")

    routed = harness.state()
    assert isinstance(routed, CollectingForm)
    assert routed.form.current_field.key == "email"
    assert "Email inválido" in sent[-1].text
    assert harness.slots.bookings == []


def test_decline_discards_form(harness):
    _reach_summary(harness)

    harness.say("no")

    assert harness.state() is None
    assert harness.slots.bookings == []


def test_cancel_word_at_summary_discards_booking(harness):
    slot = _reach_summary(harness)

    sent = harness.say("Cancelar.")

    assert harness.state() is None
    assert "cancelado" in sent[-1].text
    assert harness.slots.bookings == []
    assert harness.slots.status_of(slot.id) == "RESERVADO"


def test_email_containing_cancel_is_accepted_as_answer(harness):
    state = _reach_time_choice(harness)
    harness.tap(f"slot_{state.offered_slots[0].id}")
    harness.say("María González")
    harness.say("sí")

    harness.say("cancel@empresa.com")

    summary = harness.state()
    assert isinstance(summary, AwaitingFinalConfirmation)
    assert summary.form.collected["email"] == "cancel@empresa.com"


def test_append_failure_keeps_confirmation_stage(make_harness):
    class LedgerDown(MemorySlotStore):
        def append_booking(self, record):
            raise SlotStoreError("sheets 503")

    store = LedgerDown(make_calendar())
    store.seed()
    h = make_harness(slot_store=store)
    _reach_summary(h)

    sent = h.tap("confirm_yes")

    assert isinstance(h.state(), AwaitingFinalConfirmation)
    assert "+591 65900645" in sent[-1].text
    assert h.slots.bookings == []


def test_receipt_failure_still_confirms(make_harness):
    class BrokenGenerator:
        def generate(self, booking):
            raise ReceiptError("disk full")

    h = make_harness(generator=BrokenGenerator())
    _reach_summary(h)

    sent = h.tap("confirm_yes")

    texts = [m.text for m in sent]
    assert "confirmada" in texts[0].lower()
    assert any("comprobante" in t for t in texts[1:])
    assert len(h.slots.bookings) == 1
    assert isinstance(h.state(), Initial)


def test_receipt_can_be_requested_again(harness):
    _reach_summary(harness)
    harness.tap("confirm_yes")

    sent = harness.say("me reenvías el comprobante?")

    assert [m.kind for m in sent] == ["document"]


def test_receipt_request_without_booking(harness):
    sent = harness.say("comprobante")
    assert "No encontré una cita" in sent[-1].text


def test_duplicate_delivery_is_ignored(harness):
    event = InboundEvent(id="wamid.dup", address=ADDRESS, timestamp=0, text="hola")
    first = harness.send(event)
    second = harness.send(event)

    assert first
    assert second == []


def test_expired_session_starts_over(harness):
    _reach_time_choice(harness)
    harness.clock.now += 3601

    sent = harness.say("09:00")

    assert isinstance(harness.state(), Initial)
    assert sent[-1].kind == "buttons"
    assert sent[-1].payload["ids"] == ["servicios"]


def test_unsupported_and_audio_without_transcriber(harness):
    sent = harness.send(InboundEvent(id="wamid.img", address=ADDRESS, timestamp=0, message_type="image"))
    assert "agendar una cita" in sent[-1].text

    sent = harness.send(
        InboundEvent(id="wamid.audio", address=ADDRESS, timestamp=0, message_type="audio", audio_ref="media-1")
    )
    assert "audio" in sent[-1].text


def test_courtesy_replies(harness):
    assert "Gracias" in harness.say("gracias!")[-1].text
    assert "Hasta luego" in harness.say("chao")[-1].text
