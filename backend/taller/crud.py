import json
import logging
import uuid
from datetime import timedelta

from pydantic import ValidationError
from sqlalchemy.sql import func, or_
from sqlalchemy.orm import Session, joinedload

from . import models, schemas, security, reports
from .config import (
    AFIP_CAE_VALID_DAYS, AFIP_PLACEHOLDER_CAE, DEFAULT_OVERDUE_DAYS, IVA_PERCENTAGE,
)
from .utils.dates import as_utc, days_between, get_app_timezone, now_utc, to_local_date
from .utils.money import money, calc_tax, calc_total, items_subtotal

logger = logging.getLogger(__name__)

# Claves de configuración guardadas en system_configuration
OVERDUE_THRESHOLD_KEY = "overdue_days_threshold"
SMTP_CONFIG_KEY = "smtp_config"
UI_PREFERENCES_KEY = "ui_preferences"

CLOSED_ORDER_STATUSES = ("Entregado", "Cancelado", "Delivered", "Cancelled")
RESOLVED_TICKET_STATUSES = ("Resolved", "Closed")

DOCUMENT_PREFIXES = {
    "factura_a": "FA",
    "factura_b": "FB",
    "factura_c": "FC",
    "recibo": "RC",
    "presupuesto": "PR",
}

# --- HELPERS ---
def _generate_number(prefix: str) -> str:
    # Fecha + sufijo aleatorio: único sin depender de una secuencia
    return f"{prefix}-{now_utc():%Y%m%d%H%M%S}-{uuid.uuid4().hex[:6].upper()}"

def _log_action(db: Session, action_type: str, entity_type: str, entity_id, description: str | None = None, user_id: int | None = None):
    """
    Agrega un registro a la bitácora en la sesión actual.
    NO hace commit: se guarda junto con el cambio que lo origina.
    """
    db.add(models.ActionHistory(
        action_type=action_type,
        entity_type=entity_type,
        entity_id=str(entity_id),
        description=description,
        user_id=user_id,
    ))

def _apply_update(db_obj, update):
    for key, value in update.model_dump(exclude_unset=True).items():
        setattr(db_obj, key, value)

# ===================================================================
# --- USUARIOS ---
# ===================================================================
def get_user(db: Session, user_id: int):
    return db.query(models.User).filter(models.User.id == user_id).first()

def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email).first()

def get_users(db: Session, skip: int = 0, limit: int = 100):
    return db.query(models.User).order_by(models.User.email).offset(skip).limit(limit).all()

def create_user(db: Session, user: schemas.UserCreate):
    if get_user_by_email(db, email=user.email):
        raise ValueError("El email ya está registrado.")
    db_user = models.User(
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        hashed_password=security.get_password_hash(user.password),
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user

# ===================================================================
# --- CLIENTES ---
# ===================================================================
def get_client(db: Session, client_id: int):
    return db.query(models.Client).filter(models.Client.id == client_id).first()

def get_clients(db: Session, skip: int = 0, limit: int = 100, search: str | None = None):
    query = db.query(models.Client)
    if search:
        term = f"%{search}%"
        query = query.filter(or_(
            models.Client.name.ilike(term),
            models.Client.last_name.ilike(term),
            models.Client.email.ilike(term),
            models.Client.phone.ilike(term),
            models.Client.identification.ilike(term),
        ))
    return query.order_by(models.Client.name).offset(skip).limit(limit).all()

def create_client(db: Session, client: schemas.ClientCreate, user_id: int | None = None):
    db_client = models.Client(**client.model_dump())
    db.add(db_client)
    db.flush()
    _log_action(db, "CREAR", "clients", db_client.id, f"Cliente {db_client.name}", user_id)
    db.commit()
    db.refresh(db_client)
    return db_client

def update_client(db: Session, client_id: int, client: schemas.ClientUpdate, user_id: int | None = None):
    db_client = get_client(db, client_id=client_id)
    if db_client:
        _apply_update(db_client, client)
        _log_action(db, "ACTUALIZAR", "clients", client_id, None, user_id)
        db.commit()
        db.refresh(db_client)
    return db_client

def delete_client(db: Session, client_id: int, user_id: int | None = None):
    db_client = get_client(db, client_id=client_id)
    if db_client:
        # Un cliente con órdenes o documentos no se borra: se perdería el historial
        if db_client.repair_orders or db_client.documents or db_client.receipts or db_client.payments:
            raise ValueError("El cliente tiene órdenes, documentos o pagos asociados y no puede eliminarse.")
        _log_action(db, "ELIMINAR", "clients", client_id, f"Cliente {db_client.name}", user_id)
        db.delete(db_client)
        db.commit()
    return db_client

# ===================================================================
# --- ÓRDENES DE REPARACIÓN ---
# ===================================================================
def get_repair_order(db: Session, order_id: int):
    return (
        db.query(models.RepairOrder)
        .options(joinedload(models.RepairOrder.client))
        .filter(models.RepairOrder.id == order_id)
        .first()
    )

def get_repair_orders(db: Session, skip: int = 0, limit: int = 100, client_id: int | None = None, status: str | None = None):
    query = db.query(models.RepairOrder)
    if client_id is not None:
        query = query.filter(models.RepairOrder.client_id == client_id)
    if status:
        query = query.filter(models.RepairOrder.status == status)
    return query.order_by(models.RepairOrder.entry_date.desc(), models.RepairOrder.id.desc()).offset(skip).limit(limit).all()

def _next_order_number(db: Session) -> int:
    current = db.query(func.max(models.RepairOrder.order_number)).scalar()
    return (current or 0) + 1

def _check_repair_dates(entry_date, completion_date):
    if entry_date is not None and completion_date is not None and as_utc(completion_date) < as_utc(entry_date):
        raise ValueError("La fecha de finalización no puede ser anterior a la de ingreso.")

def create_repair_order(db: Session, order: schemas.RepairOrderCreate, user_id: int | None = None):
    if not get_client(db, client_id=order.client_id):
        raise ValueError(f"El cliente con ID {order.client_id} no existe.")
    if order.assigned_technician_id is not None and not get_user(db, order.assigned_technician_id):
        raise ValueError(f"El técnico con ID {order.assigned_technician_id} no existe.")

    data = order.model_dump()
    data["entry_date"] = data.get("entry_date") or now_utc()
    _check_repair_dates(data["entry_date"], data.get("completion_date"))
    try:
        db_order = models.RepairOrder(**data, order_number=_next_order_number(db))
        db.add(db_order)
        db.flush()
        _log_action(db, "CREAR", "repair_orders", db_order.id, f"Orden #{db_order.order_number:05d}", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_order)
    return db_order

def update_repair_order(db: Session, order_id: int, order: schemas.RepairOrderUpdate, user_id: int | None = None):
    db_order = get_repair_order(db, order_id=order_id)
    if db_order:
        if order.assigned_technician_id is not None and not get_user(db, order.assigned_technician_id):
            raise ValueError(f"El técnico con ID {order.assigned_technician_id} no existe.")
        changes = order.model_dump(exclude_unset=True)
        _check_repair_dates(
            changes.get("entry_date") or db_order.entry_date,
            changes.get("completion_date", db_order.completion_date),
        )
        _apply_update(db_order, order)
        _log_action(db, "ACTUALIZAR", "repair_orders", order_id, f"Estado: {db_order.status}", user_id)
        db.commit()
        db.refresh(db_order)
    return db_order

def delete_repair_order(db: Session, order_id: int, user_id: int | None = None):
    db_order = get_repair_order(db, order_id=order_id)
    if db_order:
        if db_order.documents:
            raise ValueError("La orden tiene documentos asociados y no puede eliminarse.")
        _log_action(db, "ELIMINAR", "repair_orders", order_id, None, user_id)
        db.delete(db_order)
        db.commit()
    return db_order

def get_overdue_orders(db: Session, threshold_days: int | None = None):
    """
    Órdenes abiertas (sin fecha de finalización, ni entregadas ni canceladas)
    que llevan más de `threshold_days` días en el taller. Las más viejas primero.
    """
    if threshold_days is None:
        threshold_days = get_overdue_threshold(db)

    open_orders = (
        db.query(models.RepairOrder)
        .options(joinedload(models.RepairOrder.client))
        .filter(
            models.RepairOrder.completion_date.is_(None),
            models.RepairOrder.status.notin_(CLOSED_ORDER_STATUSES),
        )
        .order_by(models.RepairOrder.entry_date.asc())
        .all()
    )

    now = now_utc()
    overdue = []
    for order in open_orders:
        days_in_service = days_between(now, order.entry_date)
        if days_in_service <= threshold_days:
            continue
        client_name = ""
        if order.client:
            client_name = f"{order.client.name} {order.client.last_name or ''}".strip()
        overdue.append({
            "id": order.id,
            "order_number": order.order_number,
            "client_id": order.client_id,
            "client_name": client_name,
            "equipment_type": order.equipment_type,
            "status": order.status,
            "entry_date": order.entry_date,
            "days_in_service": days_in_service,
        })
    return overdue

# ===================================================================
# --- INVENTARIO ---
# ===================================================================
def get_item(db: Session, item_id: int):
    return db.query(models.InventoryItem).filter(models.InventoryItem.id == item_id).first()

def get_item_by_sku(db: Session, sku: str):
    return db.query(models.InventoryItem).filter(models.InventoryItem.sku == sku).first()

def get_items(db: Session, skip: int = 0, limit: int = 100, category: str | None = None, search: str | None = None):
    query = db.query(models.InventoryItem)
    if category:
        query = query.filter(models.InventoryItem.category == category)
    if search:
        term = f"%{search}%"
        query = query.filter(or_(
            models.InventoryItem.name.ilike(term),
            models.InventoryItem.sku.ilike(term),
            models.InventoryItem.barcode.ilike(term),
        ))
    return query.order_by(models.InventoryItem.name).offset(skip).limit(limit).all()

def create_item(db: Session, item: schemas.InventoryItemCreate, user_id: int | None = None):
    if item.sku and get_item_by_sku(db, item.sku):
        raise ValueError(f"Ya existe un artículo con SKU '{item.sku}'.")
    db_item = models.InventoryItem(**item.model_dump())
    db.add(db_item)
    db.flush()
    _log_action(db, "CREAR", "inventory", db_item.id, f"Artículo {db_item.name}", user_id)
    db.commit()
    db.refresh(db_item)
    return db_item

def update_item(db: Session, item_id: int, item: schemas.InventoryItemUpdate, user_id: int | None = None):
    db_item = get_item(db, item_id=item_id)
    if db_item:
        if item.sku and item.sku != db_item.sku and get_item_by_sku(db, item.sku):
            raise ValueError(f"Ya existe un artículo con SKU '{item.sku}'.")
        _apply_update(db_item, item)
        _log_action(db, "ACTUALIZAR", "inventory", item_id, None, user_id)
        db.commit()
        db.refresh(db_item)
    return db_item

def delete_item(db: Session, item_id: int, user_id: int | None = None):
    db_item = get_item(db, item_id=item_id)
    if db_item:
        _log_action(db, "ELIMINAR", "inventory", item_id, f"Artículo {db_item.name}", user_id)
        db.delete(db_item)
        db.commit()
    return db_item

def adjust_stock(db: Session, item_id: int, quantity: int, operation: str, user_id: int | None = None):
    """
    Suma o resta unidades al stock de un artículo.
    Se resuelve con un único UPDATE (quantity = quantity +/- n) para que dos
    ajustes simultáneos no se pisen. No hay piso: el stock puede quedar negativo.
    """
    if quantity <= 0:
        raise ValueError("La cantidad a ajustar debe ser mayor a cero.")
    if operation not in ("add", "subtract"):
        raise ValueError(f"Operación de stock inválida: {operation}")

    delta = quantity if operation == "add" else -quantity
    try:
        updated = (
            db.query(models.InventoryItem)
            .filter(models.InventoryItem.id == item_id)
            .update({models.InventoryItem.quantity: models.InventoryItem.quantity + delta}, synchronize_session=False)
        )
        if not updated:
            db.rollback()
            return None
        _log_action(db, "AJUSTE_STOCK", "inventory", item_id, f"{operation} {quantity}", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db_item = get_item(db, item_id=item_id)
    db.refresh(db_item)
    logger.info("Stock del artículo %s ajustado (%+d). Nuevo stock: %s", item_id, delta, db_item.quantity)
    return db_item

# ===================================================================
# --- DOCUMENTOS (FACTURAS, RECIBOS Y PRESUPUESTOS) ---
# ===================================================================
def get_document(db: Session, document_id: int):
    return (
        db.query(models.Document)
        .options(joinedload(models.Document.client))
        .filter(models.Document.id == document_id)
        .first()
    )

def get_documents(db: Session, skip: int = 0, limit: int = 100, doc_type: str | None = None, client_id: int | None = None, search: str | None = None):
    query = db.query(models.Document)
    if doc_type:
        query = query.filter(models.Document.doc_type == doc_type)
    if client_id is not None:
        query = query.filter(models.Document.client_id == client_id)
    if search:
        term = f"%{search}%"
        query = query.filter(or_(
            models.Document.invoice_number.ilike(term),
            models.Document.notes.ilike(term),
        ))
    return query.order_by(models.Document.issue_date.desc(), models.Document.id.desc()).offset(skip).limit(limit).all()

def _compute_document_totals(document: schemas.DocumentCreate) -> tuple[float, float, float]:
    """
    Subtotal desde los ítems (si hay); IVA y total se calculan solo si no vienen.
    """
    items = [item.model_dump() for item in document.items]
    subtotal = items_subtotal(items) if items else money(document.subtotal)
    tax = money(document.tax) if document.tax is not None else calc_tax(subtotal, IVA_PERCENTAGE)
    total = money(document.total) if document.total is not None else calc_total(subtotal, tax)
    return float(subtotal), float(tax), float(total)

def create_document(db: Session, document: schemas.DocumentCreate, user_id: int | None = None):
    if not get_client(db, client_id=document.client_id):
        raise ValueError(f"El cliente con ID {document.client_id} no existe.")
    if document.repair_order_id is not None and not get_repair_order(db, document.repair_order_id):
        raise ValueError(f"La orden con ID {document.repair_order_id} no existe.")

    subtotal, tax, total = _compute_document_totals(document)
    db_document = models.Document(
        invoice_number=_generate_number(DOCUMENT_PREFIXES[document.doc_type]),
        doc_type=document.doc_type,
        client_id=document.client_id,
        repair_order_id=document.repair_order_id,
        issue_date=document.issue_date or now_utc(),
        due_date=document.due_date,
        items=[item.model_dump() for item in document.items],
        subtotal=subtotal,
        tax=tax,
        total=total,
        status=document.status,
        notes=document.notes,
        afip_doc_type=document.afip_doc_type,
    )
    db.add(db_document)
    db.flush()
    _log_action(db, "CREAR", "invoices", db_document.id, f"{document.doc_type} {db_document.invoice_number}", user_id)
    db.commit()
    db.refresh(db_document)
    return db_document

def update_document(db: Session, document_id: int, document: schemas.DocumentUpdate, user_id: int | None = None):
    db_document = get_document(db, document_id=document_id)
    if db_document:
        _apply_update(db_document, document)
        _log_action(db, "ACTUALIZAR", "invoices", document_id, f"Estado: {db_document.status}", user_id)
        db.commit()
        db.refresh(db_document)
    return db_document

def convert_presupuesto(db: Session, document_id: int, target_doc_type: str = "factura_b", user_id: int | None = None):
    """
    Convierte un presupuesto en factura.
    La factura nueva y el cambio de estado del presupuesto ("Facturado") se
    guardan en una sola transacción: o quedan las dos cosas o ninguna.
    """
    source = get_document(db, document_id=document_id)
    if source is None:
        return None
    if source.doc_type != "presupuesto":
        raise ValueError("Solo se pueden convertir presupuestos.")
    if source.status == "Facturado":
        raise ValueError("El presupuesto ya fue facturado.")
    if target_doc_type not in schemas.FACTURA_TYPES:
        raise ValueError(f"Tipo de factura inválido: {target_doc_type}")

    try:
        factura = models.Document(
            invoice_number=_generate_number(DOCUMENT_PREFIXES[target_doc_type]),
            doc_type=target_doc_type,
            client_id=source.client_id,
            repair_order_id=source.repair_order_id,
            source_document_id=source.id,
            issue_date=now_utc(),
            items=list(source.items or []),
            subtotal=source.subtotal,
            tax=source.tax,
            total=source.total,
            status="Pendiente",
            notes=source.notes,
        )
        db.add(factura)
        db.flush() # Obtenemos el ID de la factura antes de marcar el presupuesto

        source.status = "Facturado"
        _log_action(db, "CONVERTIR", "invoices", source.id,
                    f"Presupuesto {source.invoice_number} convertido en {factura.invoice_number}", user_id)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("No se pudo convertir el presupuesto %s", document_id)
        raise

    db.refresh(factura)
    logger.info("Presupuesto %s convertido en %s", source.invoice_number, factura.invoice_number)
    return factura

def generate_afip_invoice(db: Session, document_id: int, user_id: int | None = None):
    """
    Autorización AFIP simulada: no hay llamada externa, se asigna un CAE fijo
    con vencimiento a 30 días y el documento pasa a "Emitida".
    """
    db_document = get_document(db, document_id=document_id)
    if db_document is None:
        return None
    if db_document.doc_type == "presupuesto":
        raise ValueError("Un presupuesto no puede autorizarse en AFIP.")
    if db_document.afip_status == "Autorizada":
        raise ValueError("El documento ya tiene CAE asignado.")

    db_document.afip_status = "Autorizada"
    db_document.afip_cae = AFIP_PLACEHOLDER_CAE
    db_document.afip_expiration = now_utc() + timedelta(days=AFIP_CAE_VALID_DAYS)
    db_document.afip_doc_type = db_document.afip_doc_type or db_document.doc_type
    db_document.status = "Emitida"
    _log_action(db, "AFIP", "invoices", document_id, f"CAE {AFIP_PLACEHOLDER_CAE}", user_id)
    db.commit()
    db.refresh(db_document)
    logger.info("Documento %s autorizado (AFIP simulado)", db_document.invoice_number)
    return db_document

# ===================================================================
# --- RECIBOS ---
# ===================================================================
def get_receipt(db: Session, receipt_id: int):
    return (
        db.query(models.Receipt)
        .options(joinedload(models.Receipt.client))
        .filter(models.Receipt.id == receipt_id)
        .first()
    )

def get_receipts(db: Session, skip: int = 0, limit: int = 100, client_id: int | None = None):
    query = db.query(models.Receipt)
    if client_id is not None:
        query = query.filter(models.Receipt.client_id == client_id)
    return query.order_by(models.Receipt.issue_date.desc(), models.Receipt.id.desc()).offset(skip).limit(limit).all()

def create_receipt(db: Session, receipt: schemas.ReceiptCreate, user_id: int | None = None):
    if not get_client(db, client_id=receipt.client_id):
        raise ValueError(f"El cliente con ID {receipt.client_id} no existe.")
    data = receipt.model_dump()
    data["issue_date"] = data.get("issue_date") or now_utc()
    db_receipt = models.Receipt(**data, receipt_number=_generate_number("REC"))
    db.add(db_receipt)
    db.flush()
    _log_action(db, "CREAR", "receipts", db_receipt.id, f"Recibo {db_receipt.receipt_number}", user_id)
    db.commit()
    db.refresh(db_receipt)
    return db_receipt

def update_receipt(db: Session, receipt_id: int, receipt: schemas.ReceiptUpdate, user_id: int | None = None):
    db_receipt = get_receipt(db, receipt_id=receipt_id)
    if db_receipt:
        _apply_update(db_receipt, receipt)
        _log_action(db, "ACTUALIZAR", "receipts", receipt_id, None, user_id)
        db.commit()
        db.refresh(db_receipt)
    return db_receipt

# ===================================================================
# --- PROVEEDORES ---
# ===================================================================
def get_provider(db: Session, provider_id: int):
    return db.query(models.Provider).filter(models.Provider.id == provider_id).first()

def get_providers(db: Session, skip: int = 0, limit: int = 100):
    return db.query(models.Provider).order_by(models.Provider.name).offset(skip).limit(limit).all()

def search_providers(db: Session, query: str):
    """Busca por nombre, razón social o CUIT sin distinguir mayúsculas."""
    term = f"%{query}%"
    return (
        db.query(models.Provider)
        .filter(or_(
            models.Provider.name.ilike(term),
            models.Provider.business_name.ilike(term),
            models.Provider.tax_id.ilike(term),
        ))
        .order_by(models.Provider.name)
        .all()
    )

def create_provider(db: Session, provider: schemas.ProviderCreate, user_id: int | None = None):
    db_provider = models.Provider(**provider.model_dump())
    db.add(db_provider)
    db.flush()
    _log_action(db, "CREAR", "providers", db_provider.id, f"Proveedor {db_provider.name}", user_id)
    db.commit()
    db.refresh(db_provider)
    return db_provider

def update_provider(db: Session, provider_id: int, provider: schemas.ProviderUpdate, user_id: int | None = None):
    db_provider = get_provider(db, provider_id=provider_id)
    if db_provider:
        _apply_update(db_provider, provider)
        if db_provider.type == "company" and (not db_provider.business_name or not db_provider.contact_name):
            db.rollback()
            raise ValueError("Una empresa requiere razón social y nombre de contacto.")
        _log_action(db, "ACTUALIZAR", "providers", provider_id, None, user_id)
        db.commit()
        db.refresh(db_provider)
    return db_provider

def delete_provider(db: Session, provider_id: int, user_id: int | None = None):
    db_provider = get_provider(db, provider_id=provider_id)
    if db_provider:
        # Los artículos quedan sin proveedor
        for item in db_provider.items:
            item.supplier_id = None
        _log_action(db, "ELIMINAR", "providers", provider_id, f"Proveedor {db_provider.name}", user_id)
        db.delete(db_provider)
        db.commit()
    return db_provider

# ===================================================================
# --- PAGOS ---
# ===================================================================
def get_payment(db: Session, payment_id: int):
    return db.query(models.Payment).filter(models.Payment.id == payment_id).first()

def get_payments(db: Session, skip: int = 0, limit: int = 100, client_id: int | None = None):
    query = db.query(models.Payment)
    if client_id is not None:
        query = query.filter(models.Payment.client_id == client_id)
    return query.order_by(models.Payment.payment_date.desc(), models.Payment.id.desc()).offset(skip).limit(limit).all()

def create_payment(db: Session, payment: schemas.PaymentCreate, user_id: int | None = None):
    if not get_client(db, client_id=payment.client_id):
        raise ValueError(f"El cliente con ID {payment.client_id} no existe.")
    if payment.invoice_id is not None and not get_document(db, payment.invoice_id):
        raise ValueError(f"El documento con ID {payment.invoice_id} no existe.")
    data = payment.model_dump()
    data["payment_date"] = data.get("payment_date") or now_utc()
    db_payment = models.Payment(**data)
    db.add(db_payment)
    db.flush()
    _log_action(db, "CREAR", "payments", db_payment.id, f"Pago {db_payment.amount} ({db_payment.payment_method})", user_id)
    db.commit()
    db.refresh(db_payment)
    return db_payment

def update_payment(db: Session, payment_id: int, payment: schemas.PaymentUpdate, user_id: int | None = None):
    db_payment = get_payment(db, payment_id=payment_id)
    if db_payment:
        _apply_update(db_payment, payment)
        _log_action(db, "ACTUALIZAR", "payments", payment_id, None, user_id)
        db.commit()
        db.refresh(db_payment)
    return db_payment

def delete_payment(db: Session, payment_id: int, user_id: int | None = None):
    db_payment = get_payment(db, payment_id=payment_id)
    if db_payment:
        _log_action(db, "ELIMINAR", "payments", payment_id, None, user_id)
        db.delete(db_payment)
        db.commit()
    return db_payment

def get_client_balances(db: Session):
    """
    Estado de cuenta por cliente: facturado (sin presupuestos ni documentos
    cancelados) menos pagado.
    """
    invoiced = (
        db.query(
            models.Document.client_id.label("client_id"),
            func.sum(models.Document.total).label("total_invoiced"),
        )
        .filter(models.Document.doc_type != "presupuesto", models.Document.status != "Cancelada")
        .group_by(models.Document.client_id)
        .subquery()
    )
    paid = (
        db.query(
            models.Payment.client_id.label("client_id"),
            func.sum(models.Payment.amount).label("total_paid"),
        )
        .group_by(models.Payment.client_id)
        .subquery()
    )
    rows = (
        db.query(
            models.Client,
            func.coalesce(invoiced.c.total_invoiced, 0).label("total_invoiced"),
            func.coalesce(paid.c.total_paid, 0).label("total_paid"),
        )
        .outerjoin(invoiced, invoiced.c.client_id == models.Client.id)
        .outerjoin(paid, paid.c.client_id == models.Client.id)
        .order_by(models.Client.name)
        .all()
    )

    balances = []
    for client, total_invoiced, total_paid in rows:
        balances.append({
            "client_id": client.id,
            "client_name": f"{client.name} {client.last_name or ''}".strip(),
            "total_invoiced": float(total_invoiced),
            "total_paid": float(total_paid),
            "balance": float(total_invoiced) - float(total_paid),
        })
    return balances

# ===================================================================
# --- TICKETS ---
# ===================================================================
def get_ticket(db: Session, ticket_id: int):
    return db.query(models.Ticket).filter(models.Ticket.id == ticket_id).first()

def get_tickets(db: Session, skip: int = 0, limit: int = 100, status: str | None = None, assigned_to: int | None = None):
    query = db.query(models.Ticket)
    if status:
        query = query.filter(models.Ticket.status == status)
    if assigned_to is not None:
        query = query.filter(models.Ticket.assigned_to == assigned_to)
    return query.order_by(models.Ticket.created_at.desc(), models.Ticket.id.desc()).offset(skip).limit(limit).all()

def create_ticket(db: Session, ticket: schemas.TicketCreate, user_id: int | None = None):
    db_ticket = models.Ticket(**ticket.model_dump(), created_at=now_utc())
    if db_ticket.status in RESOLVED_TICKET_STATUSES:
        db_ticket.resolved_at = db_ticket.created_at
    db.add(db_ticket)
    db.flush()
    _log_action(db, "CREAR", "tickets", db_ticket.id, db_ticket.title, user_id)
    db.commit()
    db.refresh(db_ticket)
    return db_ticket

def update_ticket(db: Session, ticket_id: int, ticket: schemas.TicketUpdate, user_id: int | None = None):
    db_ticket = get_ticket(db, ticket_id=ticket_id)
    if db_ticket:
        _apply_update(db_ticket, ticket)
        # La fecha de resolución se fija la primera vez que se resuelve/cierra
        if db_ticket.status in RESOLVED_TICKET_STATUSES and db_ticket.resolved_at is None:
            db_ticket.resolved_at = now_utc()
        _log_action(db, "ACTUALIZAR", "tickets", ticket_id, f"Estado: {db_ticket.status}", user_id)
        db.commit()
        db.refresh(db_ticket)
    return db_ticket

# ===================================================================
# --- CONFIGURACIÓN DEL SISTEMA ---
# ===================================================================
def get_system_config(db: Session, key: str):
    return db.query(models.SystemConfiguration).filter(models.SystemConfiguration.key == key).first()

def get_all_system_config(db: Session):
    return db.query(models.SystemConfiguration).order_by(models.SystemConfiguration.key).all()

def set_system_config(db: Session, key: str, value: str, description: str | None = None, user_id: int | None = None):
    """Crea o actualiza una clave de configuración."""
    db_config = get_system_config(db, key)
    if db_config:
        db_config.value = value
        if description is not None:
            db_config.description = description
    else:
        db_config = models.SystemConfiguration(key=key, value=value, description=description)
        db.add(db_config)
    _log_action(db, "CONFIGURAR", "system_configuration", key, None, user_id)
    db.commit()
    db.refresh(db_config)
    return db_config

def get_overdue_threshold(db: Session) -> int:
    db_config = get_system_config(db, OVERDUE_THRESHOLD_KEY)
    if db_config is None:
        return DEFAULT_OVERDUE_DAYS
    try:
        days = int(db_config.value)
    except (TypeError, ValueError):
        logger.warning("Valor inválido para %s: %r. Se usa %s.", OVERDUE_THRESHOLD_KEY, db_config.value, DEFAULT_OVERDUE_DAYS)
        return DEFAULT_OVERDUE_DAYS
    if days < 0:
        logger.warning("Umbral de demora negativo (%s). Se usa %s.", days, DEFAULT_OVERDUE_DAYS)
        return DEFAULT_OVERDUE_DAYS
    return days

def set_overdue_threshold(db: Session, days: int, user_id: int | None = None):
    if days < 0:
        raise ValueError("El umbral de días no puede ser negativo.")
    return set_system_config(db, OVERDUE_THRESHOLD_KEY, str(days), "Días para considerar una orden demorada", user_id)

def get_smtp_config(db: Session) -> schemas.SmtpConfig | None:
    db_config = get_system_config(db, SMTP_CONFIG_KEY)
    if db_config is None:
        return None
    try:
        return schemas.SmtpConfig(**json.loads(db_config.value))
    except (json.JSONDecodeError, TypeError, ValidationError):
        logger.warning("La configuración SMTP guardada no es válida.")
        return None

def set_smtp_config(db: Session, smtp_config: schemas.SmtpConfig, user_id: int | None = None):
    set_system_config(db, SMTP_CONFIG_KEY, json.dumps(smtp_config.model_dump()), "Servidor de correo saliente", user_id)
    return smtp_config

def get_ui_preferences(db: Session) -> schemas.UiPreferences:
    db_config = get_system_config(db, UI_PREFERENCES_KEY)
    if db_config is None:
        return schemas.UiPreferences()
    try:
        return schemas.UiPreferences(**json.loads(db_config.value))
    except (json.JSONDecodeError, TypeError, ValidationError):
        logger.warning("Las preferencias de interfaz guardadas no son válidas.")
        return schemas.UiPreferences()

def set_ui_preferences(db: Session, preferences: schemas.UiPreferences, user_id: int | None = None):
    set_system_config(db, UI_PREFERENCES_KEY, json.dumps(preferences.model_dump()), "Preferencias de la interfaz", user_id)
    return preferences

# ===================================================================
# --- BITÁCORA ---
# ===================================================================
def log_action(db: Session, action_type: str, entity_type: str, entity_id, description: str | None = None, user_id: int | None = None):
    """Registro suelto en la bitácora (acciones que no pasan por otra función de este módulo)."""
    _log_action(db, action_type, entity_type, entity_id, description, user_id)
    db.commit()

def get_action_history(db: Session, skip: int = 0, limit: int = 100, entity_type: str | None = None, entity_id: str | None = None):
    query = db.query(models.ActionHistory)
    if entity_type:
        query = query.filter(models.ActionHistory.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(models.ActionHistory.entity_id == str(entity_id))
    return query.order_by(models.ActionHistory.created_at.desc(), models.ActionHistory.id.desc()).offset(skip).limit(limit).all()

# ===================================================================
# --- REPORTES ---
# ===================================================================
# Cada reporte lee las tablas que necesita y delega el cálculo en reports.py.
# Si algo falla se registra el error y se propaga.
def _run_report(name: str, fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except Exception:
        logger.exception("Error al generar el reporte '%s'", name)
        raise

def _billable_documents(db: Session):
    return db.query(models.Document).filter(models.Document.doc_type != "presupuesto").all()

def report_monthly_sales(db: Session, month: int, year: int):
    return _run_report("monthly_sales_summary", lambda: reports.monthly_sales_summary(
        _billable_documents(db), db.query(models.Receipt).all(), month, year))

def report_new_clients(db: Session, start, end):
    return _run_report("new_client_count", lambda: reports.new_client_count(
        db.query(models.Client).all(), start, end))

def report_client_activity(db: Session, start, end):
    return _run_report("client_activity_summary", lambda: reports.client_activity_summary(
        db.query(models.Client).order_by(models.Client.name).all(),
        db.query(models.RepairOrder).all(),
        _billable_documents(db),
        start, end))

def report_stock_status(db: Session, category: str | None = None, supplier_id: int | None = None):
    return _run_report("stock_status", lambda: reports.stock_status(
        db.query(models.InventoryItem).order_by(models.InventoryItem.name).all(), category, supplier_id))

def report_orders_by_equipment(db: Session, start=None, end=None, group_by: str = "equipment_type"):
    return _run_report("orders_by_equipment", lambda: reports.orders_by_equipment(
        db.query(models.RepairOrder).all(), start, end, group_by))

def report_technician_performance(db: Session, start=None, end=None):
    def build():
        rows = reports.technician_performance(db.query(models.RepairOrder).all(), start, end)
        # Si la orden no tiene el nombre cargado, se usa el del usuario
        for row in rows:
            if not row["technician_name"]:
                user = get_user(db, row["technician_id"])
                row["technician_name"] = (user.full_name or user.email) if user else None
        return rows
    return _run_report("technician_performance", build)

def report_average_repair_time(db: Session, start=None, end=None, group_by_equipment: bool = False):
    return _run_report("average_repair_time", lambda: reports.average_repair_time(
        db.query(models.RepairOrder).all(), start, end, group_by_equipment))

def report_sales_by_client(db: Session, start, end):
    return _run_report("sales_by_client", lambda: reports.sales_by_client(
        _billable_documents(db), db.query(models.Client).all(), start, end))

def report_invoice_aging(db: Session, as_of=None):
    if as_of is None:
        as_of = to_local_date(now_utc(), get_app_timezone())
    return _run_report("invoice_aging", lambda: reports.invoice_aging(_billable_documents(db), as_of))

def report_revenue_by_service_type(db: Session, start, end):
    return _run_report("revenue_by_service_type", lambda: reports.revenue_by_service_type(
        db.query(models.Document).filter(models.Document.repair_order_id.isnot(None)).all(),
        db.query(models.RepairOrder).all(),
        start, end))

def report_order_status_counts(db: Session, start=None, end=None):
    return _run_report("order_status_counts", lambda: reports.order_status_counts(
        db.query(models.RepairOrder).order_by(models.RepairOrder.id).all(), start, end))

def report_ticket_volume(db: Session, start, end, priority: str | None = None, assigned_to: int | None = None, status: str | None = None):
    return _run_report("ticket_volume_and_resolution", lambda: reports.ticket_volume_and_resolution(
        db.query(models.Ticket).all(), start, end, priority, assigned_to, status))
