from __future__ import annotations

import re
from typing import Sequence

from booking_bot.application.ports.service_catalog import ServiceCatalogPort
from booking_bot.application.utils.message_rules import normalize_text
from booking_bot.domain.entities.service_catalog import ServiceCatalogEntry
from booking_bot.infrastructure.knowledge.service_catalog_data import SERVICE_CATALOG

LABEL_WEIGHT = 3
ALIAS_WEIGHT = 1


class ServiceCatalogStore(ServiceCatalogPort):
    def __init__(self, catalog: Sequence[ServiceCatalogEntry] | None = None) -> None:
        self._catalog = tuple(catalog or SERVICE_CATALOG)
        self._by_id = {entry.service_id: entry for entry in self._catalog}

    def list_services(self) -> list[ServiceCatalogEntry]:
        return list(self._catalog)

    def get_service(self, service_id: str) -> ServiceCatalogEntry | None:
        return self._by_id.get(service_id.strip().lower())

    def resolve_from_text(self, text: str) -> ServiceCatalogEntry | None:
        """
        Label substring scores 3, each alias substring scores 1.
        Highest score wins; ties keep catalog order.
        """
        normalized = normalize_text(text)
        if not normalized:
            return None

        best: ServiceCatalogEntry | None = None
        best_score = 0
        for entry in self._catalog:
            score = 0
            if normalize_text(entry.label) in normalized:
                score += LABEL_WEIGHT
            for alias in entry.aliases:
                if _contains_word(normalized, normalize_text(alias)):
                    score += ALIAS_WEIGHT
            if score > best_score:
                best, best_score = entry, score
        return best


def _contains_word(text: str, word: str) -> bool:
    return bool(word) and re.search(rf"\b{re.escape(word)}\b", text) is not None
