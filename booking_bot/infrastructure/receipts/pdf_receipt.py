from __future__ import annotations

import hashlib
import io
import json
import logging
import re
import unicodedata
from pathlib import Path
from zoneinfo import ZoneInfo

from fpdf import FPDF
from fpdf.errors import FPDFException
import qrcode
from qrcode.exceptions import DataOverflowError

from booking_bot.application.exceptions import ReceiptError
from booking_bot.application.ports.receipt_generator import ReceiptGeneratorPort
from booking_bot.application.use_cases.reply_composer import WEEKDAYS_ES
from booking_bot.domain.entities.booking import BookingRecord
from booking_bot.domain.entities.receipt import Receipt

PRIMARY = (11, 87, 208)
TEXT = (31, 41, 55)
MUTED = (107, 114, 128)
LINE = (219, 227, 248)
BADGE_BG = (233, 240, 255)

QR_LEFT = 150
QR_SIZE = 42


def verification_code(booking: BookingRecord) -> str:
    """Short stable code printed on the receipt so staff can match it to the ledger row."""
    seed = "|".join(
        [booking.slot_id, booking.phone, booking.date.isoformat(), booking.time, booking.created_at.isoformat()]
    )
    return hashlib.sha256(seed.encode("utf-8")).hexdigest()[:10].upper()


def qr_payload(booking: BookingRecord, business_name: str, maps_url: str, issued: str) -> str:
    """JSON carried by the receipt QR, readable by any scanner at the front desk."""
    return json.dumps(
        {
            "empresa": business_name,
            "nombre": booking.name,
            "telefono": booking.phone,
            "email": booking.email,
            "fecha": booking.date.isoformat(),
            "hora": booking.time,
            "servicio": booking.service,
            "ubicacion": maps_url,
            "id_reserva": verification_code(booking),
            "generado": issued,
        },
        ensure_ascii=False,
    )


def _qr_png(payload: str) -> io.BytesIO:
    qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_M, border=1)
    qr.add_data(payload)
    qr.make(fit=True)
    buf = io.BytesIO()
    qr.make_image().save(buf)
    buf.seek(0)
    return buf


def _latin1(text: str) -> str:
    # core fonts only cover latin-1
    return str(text or "").encode("latin-1", "replace").decode("latin-1")


def _slug(text: str) -> str:
    ascii_text = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^A-Za-z0-9]+", "_", ascii_text).strip("_") or "Cliente"


class PdfReceiptGenerator(ReceiptGeneratorPort):
    def __init__(
        self,
        output_dir: str,
        business_name: str,
        business_phone: str,
        timezone: ZoneInfo,
        public_base_url: str | None = None,
        maps_url: str = "",
        hours_text: str = "Horario de atención: 08:00-12:00 y 14:30-18:30 (Lun-Vie)",
    ) -> None:
        self._output_dir = Path(output_dir)
        self._business_name = business_name
        self._business_phone = business_phone
        self._timezone = timezone
        self._public_base_url = (public_base_url or "").rstrip("/") or None
        self._maps_url = maps_url
        self._hours_text = hours_text
        self._logger = logging.getLogger(__name__)

    def generate(self, booking: BookingRecord) -> Receipt:
        filename = f"cita_{_slug(booking.name)}_{_slug(booking.slot_id)}_{int(booking.created_at.timestamp())}.pdf"
        try:
            content = self._render(booking)
            self._output_dir.mkdir(parents=True, exist_ok=True)
            (self._output_dir / filename).write_bytes(content)
        except (FPDFException, DataOverflowError, OSError, ValueError) as e:
            raise ReceiptError(f"Could not render receipt {filename}: {e}") from e

        public_url = f"{self._public_base_url}/receipts/{filename}" if self._public_base_url else None
        self._logger.info("Receipt generated", extra={"slot_id": booking.slot_id, "reason": filename})
        return Receipt(content=content, filename=filename, public_url=public_url)

    def _render(self, booking: BookingRecord) -> bytes:
        pdf = FPDF(format="A4")
        pdf.set_auto_page_break(auto=True, margin=15)
        pdf.set_margins(18, 18, 18)
        pdf.add_page()

        pdf.set_fill_color(*PRIMARY)
        pdf.rect(0, 0, 210, 28, "F")
        pdf.set_xy(18, 8)
        pdf.set_text_color(255, 255, 255)
        pdf.set_font("helvetica", "B", 14)
        pdf.cell(0, 7, _latin1(self._business_name), new_x="LMARGIN", new_y="NEXT")
        pdf.set_font("helvetica", "", 10)
        pdf.cell(0, 6, _latin1("Comprobante de cita"), new_x="LMARGIN", new_y="NEXT")

        pdf.set_y(36)
        pdf.set_fill_color(*BADGE_BG)
        pdf.set_text_color(*PRIMARY)
        pdf.set_font("helvetica", "B", 11)
        pdf.cell(48, 9, _latin1(f"  {booking.status}"), fill=True, new_x="LMARGIN", new_y="NEXT")
        pdf.ln(4)

        weekday = WEEKDAYS_ES[booking.date.weekday()].capitalize()
        issued = booking.created_at.astimezone(self._timezone).strftime("%Y-%m-%d %H:%M")
        rows = [
            ("Cliente", booking.name),
            ("Teléfono", booking.phone),
            ("Email", booking.email or "-"),
            ("Servicio", booking.service),
            ("Fecha", f"{weekday} {booking.date.isoformat()}"),
            ("Hora", booking.time),
            ("Emitido", issued),
            ("Código de verificación", verification_code(booking)),
        ]
        pdf.set_draw_color(*LINE)
        table_top = pdf.get_y()
        for label, value in rows:
            pdf.set_text_color(*MUTED)
            pdf.set_font("helvetica", "", 10)
            pdf.cell(50, 9, _latin1(label), border="B")
            pdf.set_text_color(*TEXT)
            pdf.set_font("helvetica", "B", 11)
            pdf.cell(QR_LEFT - 18 - 50 - 4, 9, _latin1(value), border="B", new_x="LMARGIN", new_y="NEXT")

        pdf.rect(QR_LEFT, table_top, QR_SIZE, QR_SIZE)
        payload = qr_payload(booking, self._business_name, self._maps_url, issued)
        pdf.image(_qr_png(payload), x=QR_LEFT + 2, y=table_top + 2, w=QR_SIZE - 4, h=QR_SIZE - 4)
        if self._maps_url:
            pdf.set_xy(QR_LEFT, table_top + QR_SIZE + 2)
            pdf.set_text_color(*PRIMARY)
            pdf.set_font("helvetica", "U", 8)
            pdf.cell(QR_SIZE, 5, _latin1("Ver ubicación"), align="C", link=self._maps_url)
            pdf.set_xy(18, table_top + 9 * len(rows))

        pdf.ln(8)
        pdf.set_text_color(*MUTED)
        pdf.set_font("helvetica", "", 9)
        pdf.multi_cell(0, 5, _latin1(self._hours_text), new_x="LMARGIN", new_y="NEXT")
        pdf.multi_cell(
            0,
            5,
            _latin1(f"Para cancelar o reprogramar, contáctanos al {self._business_phone}."),
            new_x="LMARGIN",
            new_y="NEXT",
        )
        return bytes(pdf.output())
