from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from booking_bot.domain.entities.inbound_event import InboundEvent


class WebhookEventDTO(BaseModel):
    object: str | None = None
    entry: list[dict[str, Any]] = Field(default_factory=list)

    def extract_events(self) -> list[InboundEvent]:
        """Flatten a Cloud API payload into inbound events. Status callbacks carry no messages and are skipped."""
        events: list[InboundEvent] = []
        for entry in self.entry or []:
            for change in entry.get("changes", []) or []:
                value = change.get("value") or {}
                for msg in value.get("messages", []) or []:
                    event = _to_event(msg)
                    if event is not None:
                        events.append(event)
        return events


def _to_event(msg: dict[str, Any]) -> InboundEvent | None:
    mid = msg.get("id")
    sender = msg.get("from")
    if not (mid and sender):
        return None

    try:
        timestamp = int(msg.get("timestamp") or 0)
    except (TypeError, ValueError):
        timestamp = 0
    base = {"id": str(mid), "address": str(sender), "timestamp": timestamp}
    msg_type = msg.get("type") or ""

    if msg_type == "text":
        body = (msg.get("text") or {}).get("body") or ""
        return InboundEvent(message_type="text", text=str(body), **base)

    if msg_type == "interactive":
        interactive = msg.get("interactive") or {}
        reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
        if reply.get("id"):
            return InboundEvent(
                message_type="selection",
                selection_id=str(reply["id"]),
                **base,
            )
        return InboundEvent(message_type="interactive", **base)

    if msg_type == "button":
        button = msg.get("button") or {}
        if button.get("payload"):
            return InboundEvent(
                message_type="selection",
                selection_id=str(button["payload"]),
                **base,
            )
        return InboundEvent(message_type="text", text=str(button.get("text") or ""), **base)

    if msg_type in {"audio", "voice"}:
        media = msg.get("audio") or msg.get("voice") or {}
        return InboundEvent(message_type="audio", audio_ref=media.get("id"), **base)

    return InboundEvent(message_type=msg_type or "unknown", **base)
