from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Receipt:
    content: bytes
    filename: str
    mime_type: str = "application/pdf"
    public_url: str | None = None
