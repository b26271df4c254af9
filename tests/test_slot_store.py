from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime

import gspread
import pytest

from booking_bot.application.exceptions import SlotStoreError
from booking_bot.domain.entities.booking import BookingRecord
from booking_bot.infrastructure.sheets.google_sheets_slot_store import GoogleSheetsSlotStore
from booking_bot.infrastructure.sheets.memory_slot_store import MemorySlotStore
from booking_bot.infrastructure.sheets.slot_layout import generate_times, seed_schedule

from conftest import TODAY, TZ, make_calendar

DAY = date(2026, 3, 3)


def _contend(store, slot_id: str, workers: int = 16) -> list[bool]:
    barrier = threading.Barrier(workers)

    def claim(n: int) -> bool:
        barrier.wait()
        return store.claim_slot(slot_id, f"5917000{n:04d}", "Asesoría Legal")

    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(claim, range(workers)))


def test_memory_store_single_winner_under_contention():
    store = MemorySlotStore(make_calendar())
    slot_id = store.add_slot(DAY, "09:00")

    results = _contend(store, slot_id)

    assert results.count(True) == 1
    assert store.status_of(slot_id) == "RESERVADO"
    assert store.list_open_slots(DAY) == []


def test_memory_store_rows_are_independent():
    store = MemorySlotStore(make_calendar())
    first = store.add_slot(DAY, "09:00")
    second = store.add_slot(DAY, "09:30", status="DISPONIBLE")
    store.add_slot(DAY, "08:30", status="RESERVADO")

    assert [s.time for s in store.list_open_slots(DAY)] == ["09:00", "09:30"]
    assert store.claim_slot(first, "59170000001", "Asesoría Legal")
    assert store.claim_slot(second, "59170000002", "Asesoría Legal")
    assert not store.claim_slot("999", "59170000003", "Asesoría Legal")


def test_seed_schedule_matches_business_hours():
    times = generate_times("09:00", "12:30", 30)
    assert times[0] == "09:00" and times[-1] == "12:30" and len(times) == 8

    schedule = seed_schedule(make_calendar(), days=7)
    days = sorted({d for d, _ in schedule})
    assert days == [TODAY.replace(day=n) for n in (2, 3, 4, 5, 6)]
    assert len(schedule) == 5 * 15


class FakeWorksheet:
    def __init__(self, rows):
        self.rows = [list(r) for r in rows]  # row 2 onwards
        self.appended: list[list[str]] = []
        self.fail_next = 0
        self.lock = threading.Lock()

    def _maybe_fail(self):
        if self.fail_next:
            self.fail_next -= 1
            raise gspread.exceptions.GSpreadException("429 quota")

    def get_values(self, range_name=None):
        self._maybe_fail()
        with self.lock:
            if range_name == "A2:A":
                return [r[:1] for r in self.rows]
            return [list(r) for r in self.rows]

    def row_values(self, row):
        self._maybe_fail()
        with self.lock:
            return list(self.rows[row - 2]) if 0 <= row - 2 < len(self.rows) else []

    def update(self, range_name=None, values=None, value_input_option=None):
        self._maybe_fail()
        row = int(range_name.split(":")[0][1:])
        with self.lock:
            target = self.rows[row - 2]
            target.extend([""] * (7 - len(target)))
            target[2:7] = values[0]

    def append_rows(self, values, value_input_option=None, insert_data_option=None):
        self._maybe_fail()
        with self.lock:
            self.appended.extend(values)


class FakeSpreadsheet:
    def __init__(self, sheets):
        self.sheets = sheets

    def worksheet(self, title):
        return self.sheets[title]


class FakeClient:
    def __init__(self, sheets):
        self.spreadsheet = FakeSpreadsheet(sheets)

    def open_by_key(self, key):
        return self.spreadsheet


def _sheet_store(slots_rows, sleeps=None):
    slots = FakeWorksheet(slots_rows)
    bookings = FakeWorksheet([])
    store = GoogleSheetsSlotStore(
        spreadsheet_id="sheet-id",
        calendar=make_calendar(),
        client=FakeClient({"Horarios": slots, "Citas": bookings}),
        sleep=(sleeps.append if sleeps is not None else lambda s: None),
    )
    return store, slots, bookings


def test_sheet_store_reads_open_rows_with_row_ids():
    store, _, _ = _sheet_store(
        [
            ["2026-03-03", "9:30", "", "DISPONIBLE"],
            ["2026-03-03", "09:00"],
            ["2026-03-03", "10:00", "Legal", "RESERVADO", "", "591", "x"],
            ["2026-03-04", "09:00", "", ""],
        ]
    )

    slots = store.list_open_slots(DAY)

    assert [(s.id, s.time) for s in slots] == [("3@2026-03-03T09:00", "09:00"), ("2@2026-03-03T09:30", "09:30")]


def test_sheet_store_claim_rereads_row():
    store, sheet, _ = _sheet_store([["2026-03-03", "09:00", "", "DISPONIBLE"]])

    slot_id = store.list_open_slots(DAY)[0].id

    assert store.claim_slot(slot_id, "+591 7000-0001", "Contabilidad")
    assert sheet.rows[0][2:6] == ["Contabilidad", "RESERVADO", "", "59170000001"]
    assert not store.claim_slot(slot_id, "59170000002", "Contabilidad")
    assert not store.claim_slot("2", "59170000002", "Contabilidad")
    assert not store.claim_slot("nope", "59170000002", "Contabilidad")


def test_sheet_store_single_winner_under_contention():
    store, _, _ = _sheet_store([["2026-03-03", "09:00", "", ""]])

    results = _contend(store, "2@2026-03-03T09:00")

    assert results.count(True) == 1


def test_sheet_store_retries_then_raises():
    sleeps: list[float] = []
    store, sheet, _ = _sheet_store([["2026-03-03", "09:00"]], sleeps=sleeps)

    sheet.fail_next = 2
    assert len(store.list_open_slots(DAY)) == 1
    assert sleeps == pytest.approx([0.6, 1.2])

    sheet.fail_next = 3
    with pytest.raises(SlotStoreError):
        store.list_open_slots(DAY)


def test_sheet_store_appends_booking_row():
    store, _, bookings = _sheet_store([])
    record = BookingRecord(
        phone="65900645",
        name="María González",
        email="maria@example.com",
        service="Asesoría Legal",
        date=DAY,
        time="09:00",
        slot_id="2",
        status="CONFIRMADA",
        created_at=datetime(2026, 3, 2, 10, 0, tzinfo=TZ),
    )

    store.append_booking(record)

    assert bookings.appended == [
        [
            "2026-03-02T10:00:00-04:00",
            "65900645",
            "María González",
            "maria@example.com",
            "Asesoría Legal",
            "2026-03-03",
            "09:00",
            "CONFIRMADA",
            "2",
            "",
        ]
    ]


def test_sheet_store_seeds_only_when_empty():
    store, sheet, _ = _sheet_store([])
    added = store.seed_month_slots_if_empty(days=7)
    assert added == 75
    assert sheet.appended[0] == ["2026-03-02", "09:00", "", "DISPONIBLE", "", "", ""]

    store, sheet, _ = _sheet_store([["2026-03-03", "09:00"]])
    assert store.seed_month_slots_if_empty() == 0
    assert sheet.appended == []


@pytest.mark.parametrize(
    "edit",
    [
        lambda rows: rows.insert(0, ["2026-03-03", "08:30", "", "DISPONIBLE"]),
        lambda rows: rows.pop(0),
    ],
    ids=["row-inserted-above", "row-deleted-above"],
)
def test_sheet_store_refuses_shifted_row(edit):
    store, sheet, _ = _sheet_store(
        [
            ["2026-03-02", "16:30", "", "DISPONIBLE"],
            ["2026-03-03", "09:00", "", "DISPONIBLE"],
            ["2026-03-03", "09:30", "", "DISPONIBLE"],
        ]
    )
    nine = store.list_open_slots(DAY)[0]
    assert nine.time == "09:00"

    edit(sheet.rows)

    assert not store.claim_slot(nine.id, "59170000001", "Contabilidad")
    assert all(row[3] == "DISPONIBLE" for row in sheet.rows)

    fresh = next(s for s in store.list_open_slots(DAY) if s.time == "09:00")
    assert fresh.id != nine.id
    assert store.claim_slot(fresh.id, "59170000001", "Contabilidad")
    assert [row[1] for row in sheet.rows if row[3] == "RESERVADO"] == ["09:00"]
