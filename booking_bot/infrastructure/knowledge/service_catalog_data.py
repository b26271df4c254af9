from __future__ import annotations

from booking_bot.domain.entities.service_catalog import ServiceCatalogEntry

SERVICE_CATALOG: tuple[ServiceCatalogEntry, ...] = (
    ServiceCatalogEntry(
        service_id="tributario",
        label="Asesoría Tributaria",
        aliases=("impuestos", "fiscal", "sat", "tributaria", "tributario"),
    ),
    ServiceCatalogEntry(
        service_id="legal",
        label="Asesoría Legal",
        aliases=("contrato", "abogado", "ley", "juridico", "jurídico"),
    ),
    ServiceCatalogEntry(
        service_id="laboral",
        label="Asesoría Laboral",
        aliases=("empleo", "trabajo", "contratación", "despido"),
    ),
    ServiceCatalogEntry(
        service_id="conta",
        label="Contabilidad",
        aliases=("contable", "libros", "declaraciones", "facturación", "facturacion"),
    ),
    ServiceCatalogEntry(
        service_id="sistemas",
        label="Sistemas Informáticos",
        aliases=("software", "redes", "informática", "informatica", "tecnología", "tecnologia"),
    ),
)
