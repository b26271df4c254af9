from __future__ import annotations

from datetime import date
from typing import Sequence

from booking_bot.application.ports.service_catalog import ServiceCatalogPort
from booking_bot.application.utils.commands import (
    CONFIRM_ID,
    DECLINE_ID,
    EDIT_ID,
    SHOW_SERVICES_ID,
    day_id,
    edit_id,
    page_id,
    service_id,
    slot_id,
)
from booking_bot.domain.entities.booking import BookingRecord
from booking_bot.domain.entities.conversation_state import Stage
from booking_bot.domain.entities.form import FormSession
from booking_bot.domain.entities.reply import (
    MAX_BUTTONS,
    MAX_LIST_ROWS,
    ButtonsReply,
    Choice,
    ListReply,
    ListSection,
    TextReply,
)
from booking_bot.domain.entities.slot import Slot

WEEKDAYS_ES = ("lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo")

HELP_BY_STAGE = {
    Stage.INITIAL: 'Escribe "hola" para comenzar.',
    Stage.AWAITING_SERVICE_TYPE: "Selecciona un servicio de la lista.",
    Stage.AWAITING_DAY_CHOICE: "Elige un día (sólo próximos días hábiles).",
    Stage.AWAITING_TIME_CHOICE: "Elige la hora disponible del día que seleccionaste.",
    Stage.COLLECTING_FORM: "Responde la pregunta del formulario para completar tu cita.",
    Stage.AWAITING_FINAL_CONFIRMATION: "Toca *Confirmar* para guardar tu cita o *Editar* para corregir un dato.",
}


def paginate(slots: Sequence[Slot], page_size: int) -> list[list[Slot]]:
    """
    Split slots so every page plus its previous/next rows fits in one list message.
    Pages depend only on (slots, page_size), so a page index stays valid between renders.
    """
    pages: list[list[Slot]] = []
    i = 0
    while i < len(slots):
        capacity = MAX_LIST_ROWS - (1 if pages else 0)
        remaining = len(slots) - i
        if remaining <= min(page_size, capacity):
            take = remaining
        else:
            take = min(page_size, capacity - 1)
        pages.append(list(slots[i:i + take]))
        i += take
    return pages


class ReplyComposer:
    """All user-facing copy lives here so the orchestrator only decides *what* to say."""

    def __init__(
        self,
        catalog: ServiceCatalogPort,
        business_name: str,
        business_phone: str,
        page_size: int = 9,
    ) -> None:
        if page_size < 1 or page_size > MAX_LIST_ROWS - 1:
            raise ValueError(f"page_size must be between 1 and {MAX_LIST_ROWS - 1}")
        self._catalog = catalog
        self._business_name = business_name
        self._business_phone = business_phone
        self._page_size = page_size

    @property
    def page_size(self) -> int:
        return self._page_size

    def welcome(self) -> ButtonsReply:
        return ButtonsReply(
            text=f"👋 Bienvenido a *{self._business_name}*.\nPara agendar, primero elige el *tipo de servicio*.",
            buttons=(Choice(id=SHOW_SERVICES_ID, title="🧾 Ver servicios"),),
        )

    def service_list(self) -> ListReply:
        rows = tuple(
            Choice(id=service_id(entry.service_id), title=entry.label[:24])
            for entry in self._catalog.list_services()[:MAX_LIST_ROWS]
        )
        return ListReply(
            text="Primero, selecciona el *tipo de servicio* que necesitas:",
            button_text="Ver servicios",
            sections=(ListSection(title="Nuestros Servicios", rows=rows),),
        )

    def not_understood(self) -> ButtonsReply:
        return ButtonsReply(
            text='🤔 No entendí tu mensaje. Escribe "hola" para empezar o toca *Ver servicios*.',
            buttons=(Choice(id=SHOW_SERVICES_ID, title="🧾 Ver servicios"),),
        )

    def unknown_service(self) -> TextReply:
        return TextReply("No encontré ese servicio. Elige uno de la lista 👇")

    def book_requires_service(self) -> TextReply:
        return TextReply("Para agendar, primero elige el *tipo de servicio*.")

    def thanks(self) -> TextReply:
        return TextReply('¡Gracias a ti! ¿Necesitas algo más? Escribe "hola" para volver al menú.')

    def farewell(self) -> TextReply:
        return TextReply('¡Hasta luego! Si necesitas algo más, escribe "hola".')

    def cancelled(self) -> TextReply:
        return TextReply('Has cancelado el proceso actual. Escribe "hola" para comenzar de nuevo.')

    def help_for(self, stage: Stage) -> TextReply:
        return TextReply(HELP_BY_STAGE.get(stage, 'Escribe "hola" para comenzar o "cancelar" para reiniciar.'))

    def unsupported_message(self) -> TextReply:
        return TextReply('Puedo ayudarte a *agendar una cita*. Escribe "hola" para comenzar.')

    def audio_not_understood(self) -> TextReply:
        return TextReply("No pude entender tu audio 🎧. ¿Puedes escribirme tu mensaje?")

    def unknown_command(self) -> TextReply:
        return TextReply("Esa opción ya no está disponible. Te muestro lo que corresponde ahora 👇")

    def store_unavailable(self) -> TextReply:
        return TextReply(
            "No pude consultar la agenda en este momento 😕. Intenta nuevamente en unos minutos "
            f"o llámanos al {self._business_phone}."
        )

    def day_list(self, days: Sequence[date]) -> ListReply:
        rows = tuple(
            Choice(id=day_id(day), title=day.isoformat(), description=WEEKDAYS_ES[day.weekday()].capitalize())
            for day in days[:MAX_LIST_ROWS]
        )
        return ListReply(
            text="Elige el *día* de tu cita:",
            button_text="Elegir día",
            sections=(ListSection(title=f"Próximos {len(rows)} días hábiles"[:24], rows=rows),),
        )

    def day_not_offered(self) -> TextReply:
        return TextReply("Ese día ya no está disponible para agendar. Elige uno de la lista actualizada:")

    def pick_day_hint(self) -> TextReply:
        return TextReply("Selecciona un *día* desde la lista que te envié.")

    def no_slots(self, day: date) -> TextReply:
        return TextReply(f"No hay horarios disponibles para *{day.isoformat()}*. Elige otro día.")

    def clamp_page(self, slots: Sequence[Slot], page: int) -> int:
        pages = paginate(slots, self._page_size)
        return max(0, min(page, len(pages) - 1))

    def slot_page(self, day: date, slots: Sequence[Slot], page: int) -> ListReply:
        """One page of slots: up to page_size rows plus previous/next rows, never above the list limit."""
        pages = paginate(slots, self._page_size)
        current = self.clamp_page(slots, page)
        rows = [Choice(id=slot_id(slot.id), title=slot.time) for slot in pages[current]]
        if current > 0:
            rows.insert(0, Choice(id=page_id(current - 1), title="◁ Anterior"))
        if current < len(pages) - 1:
            rows.append(Choice(id=page_id(current + 1), title="Siguiente ▷"))

        text = f"📅 *{day.isoformat()}*: elige una *hora* disponible:"
        if len(pages) > 1:
            text += f"\n(Página {current + 1}/{len(pages)})"
        return ListReply(
            text=text,
            button_text="Elegir hora",
            sections=(ListSection(title=f"Horarios {day.isoformat()}"[:24], rows=tuple(rows)),),
        )

    def pick_time_hint(self) -> TextReply:
        return TextReply("Elige una *hora* desde la lista enviada.")

    def slot_not_offered(self) -> TextReply:
        return TextReply("Esa hora no está en la lista vigente. Aquí tienes las *horas disponibles* actualizadas:")

    def slot_taken(self) -> TextReply:
        return TextReply("Ese horario acaba de ocuparse 😕. Aquí tienes las *horas disponibles* actualizadas:")

    def claim_failed(self) -> TextReply:
        return TextReply(
            "No pude reservar ese horario por un problema técnico. Intenta elegirlo de nuevo en unos minutos "
            f"o llámanos al {self._business_phone}."
        )

    def slot_held(self, slot: Slot) -> TextReply:
        return TextReply(
            f"⏳ Reservamos para ti el *{slot.date.isoformat()}* a las *{slot.time}*. "
            "Completa tus datos para confirmar."
        )

    def field_error(self, error: str, prompt: str) -> TextReply:
        return TextReply(f"{error}\n\n{prompt}")

    def summary(self, form: FormSession) -> ButtonsReply:
        lines = [
            "📋 *Revisa tu solicitud:*",
            "",
            f"🧾 *Servicio:* {form.service_type}",
            f"📅 *Fecha:* {form.slot.date.isoformat()}",
            f"🕒 *Hora:* {form.slot.time}",
            "",
        ]
        for spec in form.schema:
            value = form.collected.get(spec.key) or "-"
            lines.append(f"• *{spec.label}:* {value}")
        lines += ["", "¿Confirmas para guardar en agenda?"]
        return ButtonsReply(
            text="\n".join(lines),
            buttons=(
                Choice(id=CONFIRM_ID, title="✅ Confirmar"),
                Choice(id=EDIT_ID, title="✏️ Editar"),
                Choice(id=DECLINE_ID, title="❌ Cancelar"),
            ),
        )

    def edit_menu(self, form: FormSession) -> ButtonsReply | ListReply:
        choices = tuple(Choice(id=edit_id(spec.key), title=f"✏️ {spec.label}"[:20]) for spec in form.schema)
        text = "¿Qué te gustaría *editar*?"
        if len(choices) <= MAX_BUTTONS:
            return ButtonsReply(text=text, buttons=choices)
        return ListReply(
            text=text,
            button_text="Editar dato",
            sections=(ListSection(title="Datos", rows=choices[:MAX_LIST_ROWS]),),
        )

    def booking_incomplete(self) -> TextReply:
        return TextReply('Faltan datos de la cita (servicio, fecha u hora). Escribe "hola" para comenzar de nuevo.')

    def save_failed(self) -> TextReply:
        return TextReply(
            "Ocurrió un problema al guardar tu cita. Intenta confirmar nuevamente más tarde "
            f"o llama al {self._business_phone}."
        )

    def booking_confirmed(self, booking: BookingRecord) -> TextReply:
        return TextReply(
            f"✅ *¡Cita confirmada!*\n\nGracias por agendar con *{self._business_name}*.\n"
            f"Te esperamos el {booking.date.isoformat()} a las {booking.time}.\n\n"
            f"Si necesitas cancelar o reprogramar, contáctanos al {self._business_phone}."
        )

    def anything_else(self) -> TextReply:
        return TextReply('¿Necesitas algo más? Escribe "hola" para volver al menú.')

    def receipt_failed(self) -> TextReply:
        return TextReply(
            "Tu cita quedó *confirmada*, pero no pude enviarte el comprobante ahora. "
            "Escribe *comprobante* más tarde para recibirlo."
        )

    def no_receipt(self) -> TextReply:
        return TextReply('No encontré una cita reciente para enviarte el comprobante. Escribe "hola" para agendar.')

    def booking_declined(self) -> TextReply:
        return TextReply('De acuerdo. Si necesitas algo más, escribe "hola".')

    def receipt_caption(self) -> str:
        return f"Comprobante de cita - {self._business_name}"

    def generic_failure(self) -> TextReply:
        return TextReply(
            "Tuvimos un problema procesando tu mensaje 😕. Intenta nuevamente "
            f"o llámanos al {self._business_phone}."
        )
