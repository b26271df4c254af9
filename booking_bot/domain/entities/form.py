from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Mapping

from booking_bot.domain.entities.slot import Slot

NAME_PATTERN = re.compile(r"^[A-Za-zÁÉÍÓÚÜÑáéíóúüñ ]+$")
EMAIL_PATTERN = re.compile(r"^[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}$", re.IGNORECASE)


class FieldKind(str, Enum):
    NAME = "name"
    PHONE = "phone"
    EMAIL = "email"
    CUSTOM = "custom"


@dataclass(frozen=True)
class FieldContext:
    step: int
    total: int
    autofilled_phone: str = ""
    collected: Mapping[str, str] = field(default_factory=dict)


class FieldSpec:
    """
    One question of the contact form.

    normalize() runs first, validate() checks the normalized value and returns
    None when it is acceptable or a message for the user otherwise.
    """

    key: str
    label: str
    kind: FieldKind
    optional: bool = False

    def prompt(self, ctx: FieldContext) -> str:
        raise NotImplementedError

    def normalize(self, raw: str) -> str:
        return " ".join(str(raw or "").split())

    def validate(self, value: str) -> str | None:
        raise NotImplementedError

    def shortcut(self, raw: str, ctx: FieldContext) -> str | None:
        """Value to use instead of the typed input, if the input is a recognised shortcut."""
        return None


@dataclass(frozen=True)
class NameField(FieldSpec):
    key: str = "nombre"
    label: str = "Nombre"
    kind: FieldKind = FieldKind.NAME
    optional: bool = False

    def prompt(self, ctx: FieldContext) -> str:
        return f"🧍 *Paso {ctx.step}/{ctx.total}*: ¿Cuál es tu *nombre y apellido*?"

    def validate(self, value: str) -> str | None:
        if not NAME_PATTERN.match(value):
            return "Usa solo letras y espacios (ej. María González)."
        parts = value.split()
        if len(parts) < 2 or any(len(part) < 2 for part in parts):
            return "Escribe nombre y apellido (ej. María González)."
        return None


@dataclass(frozen=True)
class PhoneField(FieldSpec):
    key: str = "telefono"
    label: str = "Teléfono"
    kind: FieldKind = FieldKind.PHONE
    optional: bool = False
    country_prefix: str = "591"
    digits: int = 8
    accept_autofill: bool = True
    affirm_words: tuple[str, ...] = ("si", "ok", "confirmo", "dale")

    def prompt(self, ctx: FieldContext) -> str:
        if self.accept_autofill and ctx.autofilled_phone:
            return (
                f"📞 *Paso {ctx.step}/{ctx.total}*: ¿Confirmas este *número* para contactarte: "
                f"*{ctx.autofilled_phone}*?\n\nResponde con:\n• *sí* para usarlo\n"
                f"• O escribe otro número ({self.digits} dígitos; se admite +{self.country_prefix})"
            )
        return (
            f"📞 *Paso {ctx.step}/{ctx.total}*: ¿A qué *número* te contactamos? "
            f"({self.digits} dígitos; se admite +{self.country_prefix})"
        )

    def normalize(self, raw: str) -> str:
        digits = re.sub(r"\D", "", str(raw or ""))
        if self.country_prefix and digits.startswith(self.country_prefix) and len(digits) > self.digits:
            digits = digits[len(self.country_prefix):]
        return digits

    def validate(self, value: str) -> str | None:
        if not re.fullmatch(rf"\d{{{self.digits}}}", value):
            return f"Número inválido. Usa {self.digits} dígitos (ej. 65900645)."
        return None

    def shortcut(self, raw: str, ctx: FieldContext) -> str | None:
        if not (self.accept_autofill and ctx.autofilled_phone):
            return None
        if _fold(raw) in self.affirm_words:
            return ctx.autofilled_phone
        return None


@dataclass(frozen=True)
class EmailField(FieldSpec):
    key: str = "email"
    label: str = "Email"
    kind: FieldKind = FieldKind.EMAIL
    optional: bool = False
    skip_words: tuple[str, ...] = ("omitir", "saltar", "skip")

    def prompt(self, ctx: FieldContext) -> str:
        text = f"✉️ *Paso {ctx.step}/{ctx.total}*: ¿Cuál es tu *email* para enviarte la confirmación?"
        if self.optional:
            text += f"\n\n(Escribe *{self.skip_words[0]}* si prefieres no darlo)"
        return text

    def normalize(self, raw: str) -> str:
        value = str(raw or "").strip().lower()
        if self.optional and _fold(value) in self.skip_words:
            return ""
        return value

    def validate(self, value: str) -> str | None:
        if not value and self.optional:
            return None
        if not EMAIL_PATTERN.match(value):
            return "Email inválido (ej. nombre@ejemplo.com)."
        return None


@dataclass(frozen=True)
class CustomField(FieldSpec):
    key: str = "custom"
    label: str = "Dato"
    question: Callable[[FieldContext], str] = lambda ctx: ""
    validator: Callable[[str], str | None] = lambda value: None
    normalizer: Callable[[str], str] | None = None
    kind: FieldKind = FieldKind.CUSTOM
    optional: bool = False

    def prompt(self, ctx: FieldContext) -> str:
        return self.question(ctx)

    def normalize(self, raw: str) -> str:
        if self.normalizer is not None:
            return self.normalizer(raw)
        return super().normalize(raw)

    def validate(self, value: str) -> str | None:
        if not value and self.optional:
            return None
        return self.validator(value)


@dataclass(frozen=True)
class FormSession:
    schema: tuple[FieldSpec, ...]
    service_type: str
    slot: Slot
    field_index: int = 0
    collected: Mapping[str, str] = field(default_factory=dict)
    autofilled_phone: str = ""
    editing: bool = False  # set when jumping back to one field; accepting it returns to the summary

    @property
    def is_complete(self) -> bool:
        return self.field_index >= len(self.schema)

    @property
    def current_field(self) -> FieldSpec | None:
        if self.is_complete:
            return None
        return self.schema[self.field_index]

    def context(self) -> FieldContext:
        return FieldContext(
            step=min(self.field_index, len(self.schema) - 1) + 1,
            total=len(self.schema),
            autofilled_phone=self.autofilled_phone,
            collected=dict(self.collected),
        )

    def index_of(self, key: str) -> int | None:
        for idx, spec in enumerate(self.schema):
            if spec.key == key:
                return idx
        return None

    def with_value(self, key: str, value: str) -> FormSession:
        collected = dict(self.collected)
        collected[key] = value
        return replace(self, collected=collected)


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", str(text or ""))
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return re.sub(r"[^\w\s]", "", stripped.lower()).strip()
