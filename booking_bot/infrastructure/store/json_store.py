from __future__ import annotations

import json
import logging
import time
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterator, Sequence

from booking_bot.application.ports.session_store import SessionStorePort
from booking_bot.application.utils.keyed_lock import KeyedLock
from booking_bot.domain.entities.booking import BookingRecord
from booking_bot.domain.entities.conversation_state import (
    AwaitingDayChoice,
    AwaitingFinalConfirmation,
    AwaitingServiceType,
    AwaitingTimeChoice,
    CollectingForm,
    ConversationState,
    Initial,
    Stage,
)
from booking_bot.domain.entities.form import FieldSpec, FormSession
from booking_bot.domain.entities.slot import Slot

logger = logging.getLogger(__name__)


class JsonSessionStore(SessionStorePort):
    """
    One JSON file per address. Survives restarts, which the memory store does not.

    The form schema holds callables and is not persisted; stored sessions are
    rebuilt against the schema this store was created with, matched by field key.
    """

    def __init__(
        self,
        form_schema: Sequence[FieldSpec],
        data_dir: str = "./data/sessions",
        processed_limit: int = 1000,
    ) -> None:
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._schema = tuple(form_schema)
        self._processed_limit = processed_limit
        self._locks = KeyedLock()

    def _get_file_path(self, address: str) -> Path:
        safe = "".join(ch for ch in address if ch.isalnum() or ch in "-_") or "_"
        return self._data_dir / f"{safe}.json"

    def _load(self, address: str) -> dict[str, Any]:
        file_path = self._get_file_path(address)
        if not file_path.exists():
            return {"address": address, "state": None, "processed_message_ids": [], "version": 1}
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Session file unreadable, starting fresh", extra={"address": address, "error": str(e)})
            return {"address": address, "state": None, "processed_message_ids": [], "version": 1}

    def _save(self, address: str, data: dict[str, Any]) -> None:
        file_path = self._get_file_path(address)
        temp_path = file_path.with_suffix(".json.tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            temp_path.replace(file_path)
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise

    def get(self, address: str) -> ConversationState | None:
        with self._locks.hold(address):
            raw = self._load(address).get("state")
        if not raw:
            return None
        try:
            return self._deserialize_state(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Stored session could not be restored", extra={"address": address, "error": str(e)})
            return None

    def set(self, address: str, state: ConversationState) -> None:
        with self._locks.hold(address):
            data = self._load(address)
            data["state"] = self._serialize_state(state)
            self._save(address, data)

    def delete(self, address: str) -> None:
        # processed ids are kept so a redelivery after cancel is still ignored
        with self._locks.hold(address):
            data = self._load(address)
            data["state"] = None
            self._save(address, data)

    def purge(self, address: str) -> None:
        with self._locks.hold(address):
            self._get_file_path(address).unlink(missing_ok=True)

    def _scan(self) -> Iterator[dict[str, Any]]:
        for file_path in sorted(self._data_dir.glob("*.json")):
            try:
                with open(file_path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (json.JSONDecodeError, OSError):
                continue
            if data.get("address"):
                yield data

    def items(self) -> list[tuple[str, ConversationState]]:
        out: list[tuple[str, ConversationState]] = []
        for data in self._scan():
            if not data.get("state"):
                continue
            state = self.get(data["address"])
            if state is not None:
                out.append((data["address"], state))
        return out

    def stateless_addresses(self, seen_before: float) -> list[str]:
        return [
            data["address"]
            for data in self._scan()
            if not data.get("state") and float(data.get("last_seen") or 0) < seen_before
        ]

    def has_processed(self, address: str, message_id: str) -> bool:
        with self._locks.hold(address):
            return message_id in self._load(address).get("processed_message_ids", [])

    def mark_processed(self, address: str, message_id: str, seen_at: float | None = None) -> None:
        with self._locks.hold(address):
            data = self._load(address)
            processed = data.get("processed_message_ids", [])
            if message_id not in processed:
                processed.append(message_id)
                if len(processed) > self._processed_limit:
                    processed = processed[-self._processed_limit :]
            data["processed_message_ids"] = processed
            data["last_seen"] = time.time() if seen_at is None else seen_at
            self._save(address, data)

    # ------------------------------------------------------------- (de)serialize

    def _serialize_state(self, state: ConversationState) -> dict[str, Any]:
        result: dict[str, Any] = {"stage": state.stage.value, "last_updated": state.last_updated}
        if isinstance(state, Initial):
            result["last_booking"] = _serialize_booking(state.last_booking) if state.last_booking else None
        elif isinstance(state, AwaitingDayChoice):
            result["service_type"] = state.service_type
            result["offered_days"] = [d.isoformat() for d in state.offered_days]
        elif isinstance(state, AwaitingTimeChoice):
            result["service_type"] = state.service_type
            result["chosen_date"] = state.chosen_date.isoformat()
            result["offered_slots"] = [_serialize_slot(s) for s in state.offered_slots]
            result["slots_page"] = state.slots_page
        elif isinstance(state, (CollectingForm, AwaitingFinalConfirmation)):
            result["service_type"] = state.service_type
            result["appointment_date"] = state.appointment_date.isoformat()
            result["appointment_time"] = state.appointment_time
            result["form"] = {
                "service_type": state.form.service_type,
                "slot": _serialize_slot(state.form.slot),
                "field_keys": [spec.key for spec in state.form.schema],
                "field_index": state.form.field_index,
                "collected": dict(state.form.collected),
                "autofilled_phone": state.form.autofilled_phone,
                "editing": state.form.editing,
            }
        return result

    def _deserialize_state(self, data: dict[str, Any]) -> ConversationState:
        stage = Stage(data["stage"])
        last_updated = data.get("last_updated")

        if stage == Stage.INITIAL:
            booking = data.get("last_booking")
            return Initial(
                last_booking=_deserialize_booking(booking) if booking else None,
                last_updated=last_updated,
            )
        if stage == Stage.AWAITING_SERVICE_TYPE:
            return AwaitingServiceType(last_updated=last_updated)
        if stage == Stage.AWAITING_DAY_CHOICE:
            return AwaitingDayChoice(
                service_type=data["service_type"],
                offered_days=tuple(date.fromisoformat(d) for d in data.get("offered_days", [])),
                last_updated=last_updated,
            )
        if stage == Stage.AWAITING_TIME_CHOICE:
            return AwaitingTimeChoice(
                service_type=data["service_type"],
                chosen_date=date.fromisoformat(data["chosen_date"]),
                offered_slots=tuple(_deserialize_slot(s) for s in data.get("offered_slots", [])),
                slots_page=int(data.get("slots_page", 0)),
                last_updated=last_updated,
            )

        form = self._deserialize_form(data["form"])
        cls = CollectingForm if stage == Stage.COLLECTING_FORM else AwaitingFinalConfirmation
        return cls(
            service_type=data["service_type"],
            appointment_date=date.fromisoformat(data["appointment_date"]),
            appointment_time=data["appointment_time"],
            form=form,
            last_updated=last_updated,
        )

    def _deserialize_form(self, data: dict[str, Any]) -> FormSession:
        stored_keys = data.get("field_keys", [])
        current_keys = [spec.key for spec in self._schema]
        if stored_keys != current_keys:
            raise ValueError(f"Form schema changed: {stored_keys} != {current_keys}")
        return FormSession(
            schema=self._schema,
            service_type=data["service_type"],
            slot=_deserialize_slot(data["slot"]),
            field_index=int(data.get("field_index", 0)),
            collected=dict(data.get("collected", {})),
            autofilled_phone=data.get("autofilled_phone", ""),
            editing=bool(data.get("editing", False)),
        )


def _serialize_slot(slot: Slot) -> dict[str, Any]:
    return {"id": slot.id, "date": slot.date.isoformat(), "time": slot.time, "label": slot.label}


def _deserialize_slot(data: dict[str, Any]) -> Slot:
    return Slot(id=data["id"], date=date.fromisoformat(data["date"]), time=data["time"], label=data.get("label", ""))


def _serialize_booking(record: BookingRecord) -> dict[str, Any]:
    return {
        "phone": record.phone,
        "name": record.name,
        "email": record.email,
        "service": record.service,
        "date": record.date.isoformat(),
        "time": record.time,
        "slot_id": record.slot_id,
        "status": record.status,
        "created_at": record.created_at.isoformat(),
        "calendar_event_id": record.calendar_event_id,
    }


def _deserialize_booking(data: dict[str, Any]) -> BookingRecord:
    return BookingRecord(
        phone=data["phone"],
        name=data["name"],
        email=data.get("email", ""),
        service=data["service"],
        date=date.fromisoformat(data["date"]),
        time=data["time"],
        slot_id=data["slot_id"],
        status=data["status"],
        created_at=datetime.fromisoformat(data["created_at"]),
        calendar_event_id=data.get("calendar_event_id"),
    )
