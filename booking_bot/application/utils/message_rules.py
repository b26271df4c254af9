from __future__ import annotations

import re
import unicodedata

GREETING_PATTERN = re.compile(
    r"\b(hola|buenas|buenos dias|buenas tardes|buenas noches|hello|hi|hey|inicio|empezar|menu)\b"
)
# not when the word is part of an email address or domain
CANCEL_PATTERN = re.compile(r"(?<![\w@.])(cancelar|cancela|cancel)(?![\w@]|\.\w)")
HELP_PATTERN = re.compile(r"\b(ayuda|help)\b")
THANKS_PATTERN = re.compile(r"\b(gracias|thanks|thank you)\b")
FAREWELL_PATTERN = re.compile(r"\b(adios|chao|chau|hasta luego|bye)\b")
RECEIPT_PATTERN = re.compile(r"\b(comprobante|recibo|pdf)\b")

SHOW_SERVICES_PHRASES = ("ver servicios", "servicios", "agendar cita", "agendar")
CONFIRM_WORDS = ("confirmar", "confirmo", "si", "ok", "dale", "correcto")
EDIT_WORDS = ("editar", "modificar", "cambiar", "corregir")
DECLINE_WORDS = ("no", "no gracias", "rechazar", "descartar")
NEXT_PAGE_WORDS = ("mas", "siguiente", "ver mas")
PREVIOUS_PAGE_WORDS = ("anterior", "atras", "volver")


def normalize_text(text: str) -> str:
    """Lowercase, strip accents and punctuation, collapse whitespace."""
    decomposed = unicodedata.normalize("NFD", str(text or ""))
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    normalized = re.sub(r"[^\w\s@.:+-]", " ", stripped.lower())
    return re.sub(r"\s+", " ", normalized).strip()


def _words_only(text: str) -> str:
    return re.sub(r"\s+", " ", re.sub(r"[^\w\s]", " ", normalize_text(text))).strip()


def is_greeting(text: str) -> bool:
    return bool(GREETING_PATTERN.search(_words_only(text)))


def is_cancel(text: str) -> bool:
    return bool(CANCEL_PATTERN.search(normalize_text(text)))


def is_help(text: str) -> bool:
    return bool(HELP_PATTERN.search(_words_only(text)))


def is_thanks(text: str) -> bool:
    return bool(THANKS_PATTERN.search(_words_only(text)))


def is_farewell(text: str) -> bool:
    return bool(FAREWELL_PATTERN.search(_words_only(text)))


def is_receipt_request(text: str) -> bool:
    return bool(RECEIPT_PATTERN.search(_words_only(text)))


def is_show_services(text: str) -> bool:
    return _words_only(text) in SHOW_SERVICES_PHRASES


def is_confirmation(text: str) -> bool:
    words = _words_only(text)
    return any(words == w or words.startswith(f"{w} ") for w in CONFIRM_WORDS)


def is_edit_request(text: str) -> bool:
    words = _words_only(text)
    return any(words == w or words.startswith(f"{w} ") for w in EDIT_WORDS)


def is_decline(text: str) -> bool:
    words = _words_only(text)
    return any(words == w or words.startswith(f"{w} ") for w in DECLINE_WORDS)


def is_next_page(text: str) -> bool:
    return _words_only(text) in NEXT_PAGE_WORDS


def is_previous_page(text: str) -> bool:
    return _words_only(text) in PREVIOUS_PAGE_WORDS


def extract_time(text: str) -> str | None:
    """Typed time such as '9:00', '09.30' or '14 00' as HH:MM."""
    match = re.search(r"\b([01]?\d|2[0-3])\s*[:.h ]\s*([0-5]\d)\b", normalize_text(text))
    if not match:
        return None
    return f"{int(match.group(1)):02d}:{match.group(2)}"


def extract_iso_date(text: str) -> str | None:
    match = re.search(r"\b(\d{4}-\d{2}-\d{2})\b", normalize_text(text))
    return match.group(1) if match else None
