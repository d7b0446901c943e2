# backend/taller/email_service.py
"""
Envío de documentos por correo.

La configuración SMTP no viene del entorno: se guarda desde la pantalla de
configuración en system_configuration (clave "smtp_config"), así que la
conexión se arma en cada envío con los datos vigentes.
"""
import logging
from xml.sax.saxutils import escape

from fastapi.concurrency import run_in_threadpool
from fastapi_mail import FastMail, MessageSchema, ConnectionConfig, MessageType
from sqlalchemy.orm import Session

from . import crud, schemas
from .pdf_utils import DOC_TITLES

logger = logging.getLogger(__name__)


def build_connection_config(smtp: schemas.SmtpConfig) -> ConnectionConfig:
    # secure=True -> SSL directo (465); si no, STARTTLS (587)
    return ConnectionConfig(
        MAIL_USERNAME=smtp.username,
        MAIL_PASSWORD=smtp.password,
        MAIL_FROM=smtp.from_email,
        MAIL_FROM_NAME=smtp.from_name or None,
        MAIL_PORT=smtp.port,
        MAIL_SERVER=smtp.host,
        MAIL_STARTTLS=not smtp.secure,
        MAIL_SSL_TLS=smtp.secure,
        USE_CREDENTIALS=bool(smtp.password),
        VALIDATE_CERTS=True,
    )


def _document_html(document, client) -> str:
    """Resumen HTML del documento para el cuerpo del correo."""
    rows = ""
    for item in document.items or []:
        line_total = (item.get("quantity") or 0) * (item.get("unit_price") or 0)
        rows += f"""
            <tr>
                <td>{escape(str(item.get('description', '')))}</td>
                <td style="text-align:right">{item.get('quantity', 0)}</td>
                <td style="text-align:right">${line_total:.2f}</td>
            </tr>
        """

    title = DOC_TITLES.get(document.doc_type, document.doc_type)
    return f"""
    <p>Hola {escape(client.name)},</p>
    <p>Te enviamos el detalle de tu {title.lower()} <strong>{escape(document.invoice_number)}</strong>.</p>
    <table style="border-collapse:collapse; width:100%">
        <tr><th style="text-align:left">Detalle</th><th>Cant.</th><th>Importe</th></tr>
        {rows}
    </table>
    <p>Subtotal: ${document.subtotal:.2f}<br>
       IVA: ${document.tax:.2f}<br>
       <strong>Total: ${document.total:.2f}</strong></p>
    <p>Gracias por confiar en nosotros.</p>
    """


def _load_email_data(db: Session, document_id: int):
    """Documento, cliente y SMTP para el envío. None si el documento no existe."""
    document = crud.get_document(db, document_id=document_id)
    if document is None:
        return None

    client = document.client
    if client is None or not client.email:
        raise ValueError("El cliente no tiene un email cargado.")

    smtp = crud.get_smtp_config(db)
    if smtp is None:
        raise ValueError("No hay configuración SMTP. Cárgala en Configuración.")
    return document, client, smtp


async def send_document_email(db: Session, document_id: int, user_id: int | None = None):
    """
    Envía el documento al email del cliente.
    Devuelve None si el documento no existe; ValueError si falta el email del
    cliente o la configuración SMTP.
    Las consultas a la base corren en el threadpool para no bloquear el loop.
    """
    data = await run_in_threadpool(_load_email_data, db, document_id)
    if data is None:
        return None
    document, client, smtp = data

    message = MessageSchema(
        subject=f"{DOC_TITLES.get(document.doc_type, document.doc_type)} {document.invoice_number}",
        recipients=[client.email],
        body=_document_html(document, client),
        subtype=MessageType.html,
    )

    fm = FastMail(build_connection_config(smtp))
    try:
        await fm.send_message(message)
    except Exception:
        logger.error("Error al enviar el documento %s a %s", document.invoice_number, client.email, exc_info=True)
        raise

    logger.info("Documento %s enviado a %s", document.invoice_number, client.email)
    await run_in_threadpool(crud.log_action, db, "EMAIL", "invoices", document.id, f"Enviado a {client.email}", user_id)
    return await run_in_threadpool(crud.get_document, db, document.id)
