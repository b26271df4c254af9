from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ServiceCatalogEntry:
    service_id: str
    label: str
    aliases: tuple[str, ...] = ()
