from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Sequence

from booking_bot.domain.entities.form import (
    EmailField,
    FieldSpec,
    FormSession,
    NameField,
    PhoneField,
)
from booking_bot.domain.entities.slot import Slot


def default_schema() -> tuple[FieldSpec, ...]:
    return (NameField(), PhoneField(), EmailField())


@dataclass(frozen=True)
class FormStep:
    session: FormSession
    error: str | None
    prompt: str | None  # next question (or the same one again after an error); None once complete

    @property
    def completed(self) -> bool:
        return self.error is None and self.prompt is None


class FormEngine:
    """Sequential field collector with per-field validation and jump-back editing."""

    def __init__(self, schema: Sequence[FieldSpec] | None = None) -> None:
        self._schema = tuple(schema or default_schema())
        if not self._schema:
            raise ValueError("Form schema needs at least one field")
        keys = [spec.key for spec in self._schema]
        if len(set(keys)) != len(keys):
            raise ValueError(f"Duplicate form field keys: {keys}")
        self._logger = logging.getLogger(__name__)

    @property
    def schema(self) -> tuple[FieldSpec, ...]:
        return self._schema

    def start(self, service_type: str, slot: Slot, address: str) -> FormSession:
        return FormSession(
            schema=self._schema,
            service_type=service_type,
            slot=slot,
            autofilled_phone=self._autofill_phone(address),
        )

    def current_prompt(self, session: FormSession) -> str | None:
        spec = session.current_field
        if spec is None:
            return None
        return spec.prompt(session.context())

    def submit(self, session: FormSession, raw: str) -> FormStep:
        spec = session.current_field
        if spec is None:
            return FormStep(session=session, error=None, prompt=None)

        ctx = session.context()
        value = spec.shortcut(raw, ctx)
        if value is None:
            value = spec.normalize(raw)

        error = spec.validate(value)
        if error is not None:
            self._logger.info("Form field rejected", extra={"field": spec.key, "reason": error})
            return FormStep(session=session, error=error, prompt=spec.prompt(ctx))

        updated = session.with_value(spec.key, value)
        if session.editing:
            updated = replace(updated, field_index=self._next_missing(updated), editing=False)
        else:
            updated = replace(updated, field_index=session.field_index + 1)

        if updated.is_complete:
            return FormStep(session=updated, error=None, prompt=None)
        return FormStep(session=updated, error=None, prompt=self.current_prompt(updated))

    def jump_to(self, session: FormSession, key: str) -> FormSession | None:
        idx = session.index_of(key)
        if idx is None:
            return None
        return replace(session, field_index=idx, editing=True)

    def first_invalid(self, session: FormSession) -> tuple[str, str] | None:
        """Re-check every collected value. Returns (field_key, error) for the first failure."""
        for spec in session.schema:
            value = session.collected.get(spec.key)
            if value is None:
                if spec.optional:
                    continue
                return spec.key, f"Falta el dato: {spec.label}."
            error = spec.validate(value)
            if error is not None:
                return spec.key, error
        return None

    def _next_missing(self, session: FormSession) -> int:
        for idx, spec in enumerate(session.schema):
            if spec.key not in session.collected:
                return idx
        return len(session.schema)

    def _autofill_phone(self, address: str) -> str:
        for spec in self._schema:
            if isinstance(spec, PhoneField) and spec.accept_autofill:
                value = spec.normalize(re.sub(r"\D", "", address or ""))
                return value if spec.validate(value) is None else ""
        return ""
