# Overview: Thermal-ticket PDF rendering for sales and debt payments.

"""
Receipt Renderer

TWO-PHASE CONTRACT:
- The sale/payment row is committed first with receipt_status=PENDING and a
  pre-allocated receipt_ref (the file name).
- Rendering runs afterwards and records RENDERED or FAILED on the row. A
  failed render never rolls back the record; it can be retried any time.

Layout is a fixed 80 mm roll (226.77 pt wide); page height grows with the
number of lines.
"""

from __future__ import annotations

import logging
import os
import secrets
from datetime import datetime

from flask import current_app
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from ..extensions import db
from ..models import Sale, Payment
from ..models.sales import RECEIPT_RENDERED, RECEIPT_FAILED, SALE_KIND_DEBT_PAYMENT
from storefront.time_utils import utcnow, to_local


logger = logging.getLogger(__name__)

TICKET_WIDTH = 80 * mm
MARGIN = 4 * mm
LINE_HEIGHT = 11
FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

SALE_TITLE = "PRESUPUESTO"
DEBT_SALE_TITLE = "PAGO DE DEUDA"
PAYMENT_TITLE = "COMPROBANTE DE PAGO"

RECEIPT_SUFFIX_BYTES = 3


def allocate_receipt_ref(kind: str, at: datetime | None = None) -> str:
    """
    File name for a not-yet-rendered receipt: {kind}_{timestamp}_{suffix}.pdf

    The random suffix keeps two records allocated in the same clock tick
    apart; receipt_ref is unique per table.
    """
    at = at or utcnow()
    return f"{kind}_{at:%Y%m%d%H%M%S%f}_{secrets.token_hex(RECEIPT_SUFFIX_BYTES)}.pdf"


def receipts_dir() -> str:
    path = current_app.config.get("RECEIPTS_DIR") or os.path.join(current_app.instance_path, "facturas")
    os.makedirs(path, exist_ok=True)
    return path


def format_cents(cents: int | None) -> str:
    if cents is None:
        return "-"
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents) / 100:,.2f}"


def _format_quantity(quantity) -> str:
    q = float(quantity)
    return str(int(q)) if q.is_integer() else f"{q:.2f}"


class ThermalTicket:
    """Accumulates ticket rows, then draws them on a page sized to fit."""

    def __init__(self, title: str):
        self.title = title
        self.rows: list[tuple[str, str, str]] = []  # (style, left, right)

    def center(self, text: str, bold: bool = False) -> None:
        self.rows.append(("center-bold" if bold else "center", text, ""))

    def pair(self, left: str, right: str = "", bold: bool = False) -> None:
        self.rows.append(("bold" if bold else "text", left, right))

    def rule(self) -> None:
        self.rows.append(("rule", "", ""))

    def save(self, path: str) -> None:
        height = MARGIN * 2 + LINE_HEIGHT * (len(self.rows) + 2)
        pdf = canvas.Canvas(path, pagesize=(TICKET_WIDTH, height))
        pdf.setTitle(self.title)

        y = height - MARGIN - LINE_HEIGHT
        pdf.setFont(FONT_BOLD, 11)
        pdf.drawCentredString(TICKET_WIDTH / 2, y, self.title)
        y -= LINE_HEIGHT * 2

        for style, left, right in self.rows:
            if style == "rule":
                pdf.setDash(1, 2)
                pdf.line(MARGIN, y + 4, TICKET_WIDTH - MARGIN, y + 4)
                pdf.setDash()
            elif style.startswith("center"):
                pdf.setFont(FONT_BOLD if style == "center-bold" else FONT, 8)
                pdf.drawCentredString(TICKET_WIDTH / 2, y, left)
            else:
                pdf.setFont(FONT_BOLD if style == "bold" else FONT, 8)
                pdf.drawString(MARGIN, y, left[:38])
                if right:
                    pdf.drawRightString(TICKET_WIDTH - MARGIN, y, right)
            y -= LINE_HEIGHT

        pdf.showPage()
        pdf.save()


def _header(ticket: ThermalTicket, created_at: datetime) -> None:
    ticket.center(current_app.config.get("STORE_NAME", ""), bold=True)
    ticket.center(current_app.config.get("STORE_ADDRESS", ""))
    ticket.center(f"{to_local(created_at):%d/%m/%Y %H:%M}")
    ticket.rule()


def build_sale_ticket(sale: Sale) -> ThermalTicket:
    ticket = ThermalTicket(DEBT_SALE_TITLE if sale.kind == SALE_KIND_DEBT_PAYMENT else SALE_TITLE)
    _header(ticket, sale.created_at)
    for line in sale.lines:
        ticket.pair(line.name or line.code)
        ticket.pair(
            f"  {_format_quantity(line.quantity)} x {format_cents(line.unit_price_cents)}",
            format_cents(line.line_total_cents),
        )
    ticket.rule()
    if sale.discount_amount_cents:
        ticket.pair("Subtotal", format_cents(sale.subtotal_cents))
        ticket.pair(f"Descuento {float(sale.discount_percent):g}%", format_cents(-sale.discount_amount_cents))
    ticket.pair("TOTAL", format_cents(sale.total_cents), bold=True)
    ticket.pair("Forma de pago", sale.payment_method)
    ticket.rule()
    ticket.center("Gracias por su compra")
    return ticket


def build_payment_ticket(payment: Payment) -> ThermalTicket:
    ticket = ThermalTicket(PAYMENT_TITLE)
    _header(ticket, payment.created_at)
    ticket.pair("Cliente", payment.customer_name)
    if payment.customer_national_id:
        ticket.pair("DNI", payment.customer_national_id)
    ticket.rule()
    ticket.pair("Deuda anterior", format_cents(payment.balance_before_cents))
    ticket.pair("Pago", format_cents(payment.amount_paid_cents), bold=True)
    ticket.pair("Saldo restante", format_cents(payment.balance_after_cents))
    ticket.pair("Forma de pago", payment.payment_method)
    ticket.rule()
    ticket.center("Gracias por su pago")
    return ticket


def _render(record, ticket: ThermalTicket) -> str:
    try:
        ticket.save(os.path.join(receipts_dir(), record.receipt_ref))
        record.receipt_status = RECEIPT_RENDERED
    except Exception:
        logger.exception("Receipt render failed for %s", record.receipt_ref)
        record.receipt_status = RECEIPT_FAILED
    db.session.commit()
    return record.receipt_status


def render_sale_receipt(sale: Sale) -> str:
    """Render the sale ticket; returns the resulting receipt_status."""
    return _render(sale, build_sale_ticket(sale))


def render_payment_receipt(payment: Payment) -> str:
    """Render the payment ticket; returns the resulting receipt_status."""
    return _render(payment, build_payment_ticket(payment))
