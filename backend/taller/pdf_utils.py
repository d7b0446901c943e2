from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.pdfgen import canvas
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER, TA_RIGHT

from . import schemas
from .utils.dates import to_local_date

DOC_TITLES = {
    "factura_a": "FACTURA A",
    "factura_b": "FACTURA B",
    "factura_c": "FACTURA C",
    "recibo": "RECIBO",
    "presupuesto": "PRESUPUESTO",
}

SHOP_NAME = "Servicio Técnico"


def _format_date(value) -> str:
    day = to_local_date(value)
    return day.strftime("%d/%m/%Y") if day else "-"


class _TicketCanvas:
    """Canvas de ticket angosto (58 mm) que se escribe de arriba hacia abajo."""

    def __init__(self, buffer):
        self.width, self.height = 58 * mm, 297 * mm
        self.c = canvas.Canvas(buffer, pagesize=(self.width, self.height))
        self.y = self.height - (5 * mm)

        styles = getSampleStyleSheet()
        self.style_title = ParagraphStyle(name='doc_centered_bold', parent=styles['Normal'], alignment=TA_CENTER, fontName='Helvetica-Bold', fontSize=9, leading=11)
        self.style_centered = ParagraphStyle(name='doc_centered', parent=styles['Normal'], alignment=TA_CENTER, fontSize=7, leading=9)
        self.style_normal = ParagraphStyle(name='doc_normal', parent=styles['Normal'], fontSize=8, leading=10)
        self.style_bold = ParagraphStyle(name='doc_bold', parent=styles['Normal'], fontName='Helvetica-Bold', fontSize=8, leading=10)
        self.style_right = ParagraphStyle(name='doc_right', parent=styles['Normal'], alignment=TA_RIGHT, fontSize=8, leading=10)

    def paragraph(self, text, style, margin_left=4 * mm):
        para = Paragraph(text, style)
        para.wrapOn(self.c, self.width - (margin_left * 2), self.height)
        para.drawOn(self.c, margin_left, self.y - para.height)
        self.y -= para.height + (0.5 * mm)

    def line(self, weight=0.5):
        self.y -= 2 * mm
        self.c.setLineWidth(weight)
        self.c.line(4 * mm, self.y, self.width - (4 * mm), self.y)
        self.y -= 2.5 * mm

    def space(self, amount=3 * mm):
        self.y -= amount

    def finish(self):
        self.c.showPage()
        self.c.save()


def _draw_client(ticket: _TicketCanvas, client: schemas.Client | None):
    ticket.paragraph("<b>CLIENTE:</b>", ticket.style_bold)
    if client is None:
        ticket.paragraph("Consumidor final", ticket.style_normal)
        return
    full_name = f"{client.name} {client.last_name or ''}".strip()
    ticket.paragraph(escape(full_name), ticket.style_normal)
    if client.identification:
        ticket.paragraph(f"<b>DNI/CUIT:</b> {escape(client.identification)}", ticket.style_normal)
    if client.phone:
        ticket.paragraph(f"<b>Telf:</b> {escape(client.phone)}", ticket.style_normal)
    if client.address:
        ticket.paragraph(f"<b>Dir:</b> {escape(client.address)}", ticket.style_normal)


def generate_document_pdf(document: schemas.Document, client: schemas.Client | None = None):
    """PDF imprimible de una factura, recibo o presupuesto."""
    buffer = BytesIO()
    ticket = _TicketCanvas(buffer)

    # --- CABECERA ---
    ticket.paragraph(SHOP_NAME, ticket.style_title)
    ticket.paragraph(DOC_TITLES.get(document.doc_type, document.doc_type.upper()), ticket.style_title)
    ticket.paragraph(f"N°: {escape(document.invoice_number)}", ticket.style_centered)
    ticket.paragraph(f"Fecha: {_format_date(document.issue_date)}", ticket.style_centered)
    if document.due_date:
        ticket.paragraph(f"Vence: {_format_date(document.due_date)}", ticket.style_centered)
    ticket.line()

    _draw_client(ticket, client)
    ticket.line()

    # --- DETALLE ---
    ticket.paragraph("<b>DETALLE:</b>", ticket.style_bold)
    for item in document.items or []:
        line_total = item.quantity * item.unit_price
        ticket.paragraph(f"{item.quantity:g} x {escape(item.description)}", ticket.style_normal)
        ticket.paragraph(f"${line_total:.2f}", ticket.style_right)
    ticket.line()

    # --- TOTALES ---
    ticket.paragraph(f"Subtotal: ${document.subtotal:.2f}", ticket.style_right)
    ticket.paragraph(f"IVA: ${document.tax:.2f}", ticket.style_right)
    ticket.paragraph(f"<b>TOTAL: ${document.total:.2f}</b>", ticket.style_right)

    # --- AFIP (simulado) ---
    if document.afip_cae:
        ticket.line()
        ticket.paragraph(f"CAE: {document.afip_cae}", ticket.style_centered)
        ticket.paragraph(f"Vto. CAE: {_format_date(document.afip_expiration)}", ticket.style_centered)

    if document.doc_type == "presupuesto":
        ticket.space()
        ticket.paragraph("Documento no válido como factura.", ticket.style_centered)

    if document.notes:
        ticket.space()
        ticket.paragraph(escape(document.notes), ticket.style_centered)

    ticket.finish()
    buffer.seek(0)
    return buffer


def generate_receipt_pdf(receipt: schemas.Receipt, client: schemas.Client | None = None):
    buffer = BytesIO()
    ticket = _TicketCanvas(buffer)

    ticket.paragraph(SHOP_NAME, ticket.style_title)
    ticket.paragraph("RECIBO", ticket.style_title)
    ticket.paragraph(f"N°: {escape(receipt.receipt_number)}", ticket.style_centered)
    ticket.paragraph(f"Fecha: {_format_date(receipt.issue_date)}", ticket.style_centered)
    ticket.line()

    _draw_client(ticket, client)
    ticket.line()

    ticket.paragraph(f"<b>RECIBIMOS: ${receipt.amount:.2f}</b>", ticket.style_right)
    if receipt.notes:
        ticket.space()
        ticket.paragraph(escape(receipt.notes), ticket.style_normal)

    ticket.space(15 * mm) # Espacio para firma
    ticket.c.line(8 * mm, ticket.y, ticket.width - (8 * mm), ticket.y)
    ticket.space(4 * mm)
    ticket.paragraph("Firma", ticket.style_centered)

    ticket.finish()
    buffer.seek(0)
    return buffer
