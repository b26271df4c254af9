from __future__ import annotations

from abc import ABC, abstractmethod

from booking_bot.domain.entities.service_catalog import ServiceCatalogEntry


class ServiceCatalogPort(ABC):
    @abstractmethod
    def list_services(self) -> list[ServiceCatalogEntry]:
        """Catalog in display order."""
        raise NotImplementedError

    @abstractmethod
    def get_service(self, service_id: str) -> ServiceCatalogEntry | None:
        raise NotImplementedError

    @abstractmethod
    def resolve_from_text(self, text: str) -> ServiceCatalogEntry | None:
        """Best catalog match for free text, or None."""
        raise NotImplementedError
