"""
Tests for durable conversation state persistence and the idle sweep.
"""

from __future__ import annotations

import os
import tempfile
import threading
from datetime import date, datetime

from booking_bot.application.use_cases.form_engine import FormEngine
from booking_bot.application.use_cases.sweep_sessions import SweepSessionsUseCase
from booking_bot.application.utils.keyed_lock import KeyedLock
from booking_bot.domain.entities.booking import BookingRecord
from booking_bot.domain.entities.conversation_state import (
    AwaitingDayChoice,
    AwaitingFinalConfirmation,
    AwaitingServiceType,
    AwaitingTimeChoice,
    CollectingForm,
    Initial,
)
from booking_bot.domain.entities.inbound_event import InboundEvent
from booking_bot.domain.entities.slot import Slot
from booking_bot.infrastructure.store.json_store import JsonSessionStore
from booking_bot.infrastructure.store.memory_store import MemorySessionStore

from conftest import ADDRESS, TZ

SLOT = Slot(id="17", date=date(2026, 3, 3), time="09:00", label="2026-03-03 09:00")


def test_json_store_round_trips_form_stage():
    """A half-filled form survives a restart and keeps its schema behaviour."""
    engine = FormEngine()
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonSessionStore(form_schema=engine.schema, data_dir=tmpdir)
        form = engine.submit(engine.start("Contabilidad", SLOT, "59165900645"), "Luis Pérez").session
        state = CollectingForm(
            service_type="Contabilidad",
            appointment_date=SLOT.date,
            appointment_time=SLOT.time,
            form=form,
            last_updated=123.0,
        )
        store.set("59165900645", state)

        reopened = JsonSessionStore(form_schema=engine.schema, data_dir=tmpdir)
        restored = reopened.get("59165900645")

        assert restored == state
        assert engine.submit(restored.form, "si").session.collected["telefono"] == "65900645"


def test_json_store_round_trips_time_choice_and_receipt():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonSessionStore(form_schema=FormEngine().schema, data_dir=tmpdir)
        offer = AwaitingTimeChoice(
            service_type="Asesoría Legal",
            chosen_date=SLOT.date,
            offered_slots=(SLOT,),
            slots_page=1,
        )
        store.set("a", offer)
        assert store.get("a") == offer

        booking = BookingRecord(
            phone="65900645",
            name="María González",
            email="",
            service="Asesoría Legal",
            date=SLOT.date,
            time=SLOT.time,
            slot_id=SLOT.id,
            status="CONFIRMADA",
            created_at=datetime(2026, 3, 2, 9, 15, tzinfo=TZ),
        )
        store.set("b", Initial(last_booking=booking, last_updated=5.0))
        assert store.get("b").last_booking == booking


def test_json_store_delete_keeps_processed_ids():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonSessionStore(form_schema=FormEngine().schema, data_dir=tmpdir)
        store.mark_processed("a", "wamid.1")
        store.set("a", AwaitingServiceType(last_updated=1.0))

        store.delete("a")

        assert store.get("a") is None
        assert store.has_processed("a", "wamid.1")
        assert not store.has_processed("b", "wamid.1")
        assert store.items() == []


def test_json_store_ignores_sessions_from_other_schema():
    engine = FormEngine()
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonSessionStore(form_schema=engine.schema, data_dir=tmpdir)
        form = engine.start("Contabilidad", SLOT, "")
        store.set("a", AwaitingFinalConfirmation("Contabilidad", SLOT.date, SLOT.time, form))

        narrower = JsonSessionStore(form_schema=engine.schema[:2], data_dir=tmpdir)
        assert narrower.get("a") is None


def test_sweep_drops_only_idle_sessions():
    store = MemorySessionStore()
    store.set("idle", AwaitingServiceType(last_updated=1000.0))
    store.set("active", AwaitingServiceType(last_updated=4000.0))

    removed = SweepSessionsUseCase(store, ttl_seconds=3600).execute(now_ts=4700.0)

    assert removed == 1
    assert store.get("idle") is None
    assert store.get("active") is not None


def test_sweep_forgets_processed_ids_of_idle_addresses():
    store = MemorySessionStore()
    store.mark_processed("idle", "wamid.1", seen_at=1000.0)
    store.set("idle", AwaitingServiceType(last_updated=1000.0))
    store.mark_processed("cancelled", "wamid.2", seen_at=1000.0)
    store.mark_processed("recent", "wamid.3", seen_at=4500.0)

    SweepSessionsUseCase(store, ttl_seconds=3600).execute(now_ts=4700.0)

    assert not store.has_processed("idle", "wamid.1")
    assert not store.has_processed("cancelled", "wamid.2")
    assert store.has_processed("recent", "wamid.3")
    assert store.stateless_addresses(seen_before=10_000.0) == ["recent"]


def test_json_sweep_removes_session_files():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonSessionStore(form_schema=FormEngine().schema, data_dir=tmpdir)
        store.mark_processed("idle", "wamid.1", seen_at=1000.0)
        store.set("idle", AwaitingDayChoice(service_type="Contabilidad", last_updated=1000.0))
        store.mark_processed("cancelled", "wamid.2", seen_at=1000.0)
        store.delete("cancelled")
        store.mark_processed("active", "wamid.3", seen_at=4000.0)
        store.set("active", AwaitingServiceType(last_updated=4000.0))

        removed = SweepSessionsUseCase(store, ttl_seconds=3600).execute(now_ts=4700.0)

        assert removed == 1
        assert sorted(os.listdir(tmpdir)) == ["active.json"]
        assert not store.has_processed("cancelled", "wamid.2")


def test_keyed_lock_drops_released_keys():
    locks = KeyedLock()
    inside = threading.Event()
    release = threading.Event()

    def hold_a():
        with locks.hold("a"):
            inside.set()
            release.wait(timeout=5)

    worker = threading.Thread(target=hold_a)
    worker.start()
    inside.wait(timeout=5)
    assert len(locks) == 1
    with locks.hold("b"):
        assert len(locks) == 2
    release.set()
    worker.join(timeout=5)

    assert len(locks) == 0


def test_conversation_leaves_no_per_address_state_after_sweep(harness):
    harness.send(InboundEvent(id="wamid.hola", address=ADDRESS, timestamp=0, text="hola"))
    harness.send(InboundEvent(id="wamid.bye", address=ADDRESS, timestamp=0, text="cancelar"))
    assert harness.state() is None
    assert harness.sessions.has_processed(ADDRESS, "wamid.bye")
    assert len(harness.use_case._locks) == 0

    harness.clock.now += 10 * 3600
    SweepSessionsUseCase(harness.sessions, ttl_seconds=3600).execute(now_ts=harness.clock.now)

    assert harness.sessions.stateless_addresses(seen_before=harness.clock.now + 1) == []
    assert not harness.sessions.has_processed(ADDRESS, "wamid.bye")
