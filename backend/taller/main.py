import logging
from datetime import date
from typing import List, Literal

from fastapi import FastAPI, Depends, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import OAuth2PasswordRequestForm
from fastapi.responses import StreamingResponse, PlainTextResponse, JSONResponse
from sqlalchemy.orm import Session
from slowapi import Limiter                      # Núcleo del limitador
from slowapi.util import get_remote_address      # Cómo identificar al cliente (por IP)
from slowapi.errors import RateLimitExceeded     # Error cuando se excede el límite
from slowapi.middleware import SlowAPIMiddleware # Middleware que activa el limitador
from starlette.requests import Request           # Tipo de request para el handler
from starlette.middleware.base import BaseHTTPMiddleware

from . import models, schemas, crud, security, pdf_utils, email_service
from .config import CORS_ORIGINS, LOGIN_RATE_LIMIT
from .database import get_db
from .utils.links import build_whatsapp_link

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Añade cabeceras de seguridad a TODAS las respuestas.
    - X-Frame-Options: evita que nos embeban en iframes (clickjacking).
    - X-Content-Type-Options: evita sniffing de tipos.
    - Referrer-Policy: restringe el referer.
    - HSTS: solo si estamos detrás de HTTPS (según cabecera del proxy).
    """
    async def dispatch(self, request, call_next):
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=()"

        if request.headers.get("x-forwarded-proto", "").lower() == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


app = FastAPI(title="API de Gestión de Taller")

# --- MIDDLEWARE PARA CONECTAR EL FRONTEND ---
allowed = [o.strip() for o in CORS_ORIGINS.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Authorization", "Content-Type", "Accept",
        "X-Requested-With", "Origin"
    ],
    expose_headers=["Content-Disposition"] # Necesario para descargas (PDFs)
)

# ===== Rate limiting: limitar intentos de login =====
limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    # 429 = Too Many Requests
    return PlainTextResponse("Demasiados intentos, intenta más tarde.", status_code=429)

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Error inesperado en %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Ocurrió un error interno."})

# Dependencias de permisos
any_user = security.get_current_user
staff_only = security.require_role(security.STAFF_ROLES)
admin_only = security.require_role(["admin"])


# ===================================================================
# --- ENDPOINT RAÍZ ---
# ===================================================================
@app.get("/")
def read_root():
    return {"message": "API de Gestión de Taller"}

# ===================================================================
# --- USUARIOS Y AUTENTICACIÓN ---
# ===================================================================
@app.post("/token")
@limiter.limit(LOGIN_RATE_LIMIT)  # Intentos por minuto desde la misma IP
def login_for_access_token(
    request: Request,  # <= NECESARIO para slowapi
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    user = security.authenticate_user(db, email=form_data.username, password=form_data.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Email o contraseña incorrectos", headers={"WWW-Authenticate": "Bearer"})
    access_token = security.create_access_token(data={"sub": user.email, "role": user.role})
    return {"access_token": access_token, "token_type": "bearer"}

@app.get("/users/me", response_model=schemas.User)
def read_current_user(current_user: models.User = Depends(any_user)):
    return current_user

@app.post("/users/", response_model=schemas.User, status_code=status.HTTP_201_CREATED)
def create_new_user(user: schemas.UserCreate, db: Session = Depends(get_db), _admin: models.User = Depends(admin_only)):
    try:
        return crud.create_user(db=db, user=user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/users/", response_model=List[schemas.User])
def read_users(db: Session = Depends(get_db), _admin: models.User = Depends(admin_only)):
    return crud.get_users(db)

# ===================================================================
# --- CLIENTES ---
# ===================================================================
@app.post("/clients/", response_model=schemas.Client, status_code=status.HTTP_201_CREATED)
def create_new_client(client: schemas.ClientCreate, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    return crud.create_client(db=db, client=client, user_id=current_user.id)

@app.get("/clients/", response_model=List[schemas.Client])
def read_clients(skip: int = 0, limit: int = 100, search: str | None = None, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    return crud.get_clients(db, skip=skip, limit=limit, search=search)

@app.get("/clients/{client_id}", response_model=schemas.Client)
def read_client(client_id: int, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    db_client = crud.get_client(db, client_id=client_id)
    if db_client is None:
        raise HTTPException(status_code=404, detail="Cliente no encontrado")
    return db_client

@app.patch("/clients/{client_id}", response_model=schemas.Client)
def update_client_details(client_id: int, client: schemas.ClientUpdate, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    db_client = crud.update_client(db, client_id=client_id, client=client, user_id=current_user.id)
    if db_client is None:
        raise HTTPException(status_code=404, detail="Cliente no encontrado para actualizar")
    return db_client

@app.delete("/clients/{client_id}", response_model=schemas.Client)
def delete_client_by_id(client_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(admin_only)):
    try:
        db_client = crud.delete_client(db, client_id=client_id, user_id=current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if db_client is None:
        raise HTTPException(status_code=404, detail="Cliente no encontrado para eliminar")
    return db_client

@app.get("/clients/{client_id}/whatsapp-link", response_model=schemas.WhatsAppLink)
def read_client_whatsapp_link(client_id: int, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    db_client = crud.get_client(db, client_id=client_id)
    if db_client is None:
        raise HTTPException(status_code=404, detail="Cliente no encontrado")
    try:
        return {"url": build_whatsapp_link(db_client.phone)}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/client-balances", response_model=List[schemas.ClientBalance])
def read_client_balances(db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    return crud.get_client_balances(db)

# ===================================================================
# --- ÓRDENES DE REPARACIÓN ---
# ===================================================================
@app.post("/repair-orders/", response_model=schemas.RepairOrder, status_code=status.HTTP_201_CREATED)
def create_new_repair_order(order: schemas.RepairOrderCreate, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    try:
        return crud.create_repair_order(db=db, order=order, user_id=current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/repair-orders/", response_model=List[schemas.RepairOrder])
def read_repair_orders(
    skip: int = 0,
    limit: int = 100,
    client_id: int | None = None,
    status: str | None = None,
    db: Session = Depends(get_db),
    _user: models.User = Depends(any_user)
):
    return crud.get_repair_orders(db, skip=skip, limit=limit, client_id=client_id, status=status)

# Va antes de /{order_id} para que "overdue" no se tome como ID
@app.get("/repair-orders/overdue", response_model=List[schemas.OverdueOrder])
def read_overdue_orders(threshold_days: int | None = None, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    return crud.get_overdue_orders(db, threshold_days=threshold_days)

@app.get("/repair-orders/{order_id}", response_model=schemas.RepairOrder)
def read_repair_order(order_id: int, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    db_order = crud.get_repair_order(db, order_id=order_id)
    if db_order is None:
        raise HTTPException(status_code=404, detail="Orden no encontrada")
    return db_order

@app.patch("/repair-orders/{order_id}", response_model=schemas.RepairOrder)
def update_repair_order_details(order_id: int, order: schemas.RepairOrderUpdate, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    try:
        db_order = crud.update_repair_order(db, order_id=order_id, order=order, user_id=current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if db_order is None:
        raise HTTPException(status_code=404, detail="Orden no encontrada para actualizar")
    return db_order

@app.delete("/repair-orders/{order_id}", response_model=schemas.RepairOrder)
def delete_repair_order_by_id(order_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(admin_only)):
    try:
        db_order = crud.delete_repair_order(db, order_id=order_id, user_id=current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if db_order is None:
        raise HTTPException(status_code=404, detail="Orden no encontrada para eliminar")
    return db_order

# ===================================================================
# --- INVENTARIO ---
# ===================================================================
@app.post("/inventory/", response_model=schemas.InventoryItem, status_code=status.HTTP_201_CREATED)
def create_new_item(item: schemas.InventoryItemCreate, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    try:
        return crud.create_item(db=db, item=item, user_id=current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/inventory/", response_model=List[schemas.InventoryItem])
def read_items(
    skip: int = 0,
    limit: int = 100,
    category: str | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
    _user: models.User = Depends(any_user)
):
    return crud.get_items(db, skip=skip, limit=limit, category=category, search=search)

@app.get("/inventory/{item_id}", response_model=schemas.InventoryItem)
def read_item(item_id: int, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    db_item = crud.get_item(db, item_id=item_id)
    if db_item is None:
        raise HTTPException(status_code=404, detail="Artículo no encontrado")
    return db_item

@app.patch("/inventory/{item_id}", response_model=schemas.InventoryItem)
def update_item_details(item_id: int, item: schemas.InventoryItemUpdate, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    try:
        db_item = crud.update_item(db, item_id=item_id, item=item, user_id=current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if db_item is None:
        raise HTTPException(status_code=404, detail="Artículo no encontrado para actualizar")
    return db_item

@app.delete("/inventory/{item_id}", response_model=schemas.InventoryItem)
def delete_item_by_id(item_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(admin_only)):
    db_item = crud.delete_item(db, item_id=item_id, user_id=current_user.id)
    if db_item is None:
        raise HTTPException(status_code=404, detail="Artículo no encontrado para eliminar")
    return db_item

@app.post("/inventory/{item_id}/adjust", response_model=schemas.InventoryItem)
def adjust_item_stock(item_id: int, adjustment: schemas.StockAdjustment, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    try:
        db_item = crud.adjust_stock(
            db,
            item_id=item_id,
            quantity=adjustment.quantity,
            operation=adjustment.operation,
            user_id=current_user.id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if db_item is None:
        raise HTTPException(status_code=404, detail="Artículo no encontrado")
    return db_item

# ===================================================================
# --- DOCUMENTOS (FACTURAS / RECIBOS / PRESUPUESTOS) ---
# ===================================================================
@app.post("/documents/", response_model=schemas.Document, status_code=status.HTTP_201_CREATED)
def create_new_document(document: schemas.DocumentCreate, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    try:
        return crud.create_document(db=db, document=document, user_id=current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/documents/", response_model=List[schemas.Document])
def read_documents(
    skip: int = 0,
    limit: int = 100,
    doc_type: str | None = None,
    client_id: int | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
    _user: models.User = Depends(any_user)
):
    return crud.get_documents(db, skip=skip, limit=limit, doc_type=doc_type, client_id=client_id, search=search)

@app.get("/documents/{document_id}", response_model=schemas.Document)
def read_document(document_id: int, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    db_document = crud.get_document(db, document_id=document_id)
    if db_document is None:
        raise HTTPException(status_code=404, detail="Documento no encontrado")
    return db_document

@app.patch("/documents/{document_id}", response_model=schemas.Document)
def update_document_details(document_id: int, document: schemas.DocumentUpdate, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    db_document = crud.update_document(db, document_id=document_id, document=document, user_id=current_user.id)
    if db_document is None:
        raise HTTPException(status_code=404, detail="Documento no encontrado para actualizar")
    return db_document

@app.post("/documents/{document_id}/convert", response_model=schemas.Document, status_code=status.HTTP_201_CREATED)
def convert_document_to_invoice(document_id: int, conversion: schemas.DocumentConvert, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    try:
        factura = crud.convert_presupuesto(db, document_id=document_id, target_doc_type=conversion.target_doc_type, user_id=current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if factura is None:
        raise HTTPException(status_code=404, detail="Presupuesto no encontrado")
    return factura

@app.post("/documents/{document_id}/afip", response_model=schemas.Document)
def authorize_document_afip(document_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    try:
        db_document = crud.generate_afip_invoice(db, document_id=document_id, user_id=current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if db_document is None:
        raise HTTPException(status_code=404, detail="Documento no encontrado")
    return db_document

@app.post("/documents/{document_id}/email", response_model=schemas.Document)
async def email_document(document_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    try:
        db_document = await email_service.send_document_email(db, document_id=document_id, user_id=current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if db_document is None:
        raise HTTPException(status_code=404, detail="Documento no encontrado")
    return db_document

@app.get("/documents/{document_id}/print", response_class=StreamingResponse)
def print_document(document_id: int, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    db_document = crud.get_document(db, document_id=document_id)
    if db_document is None:
        raise HTTPException(status_code=404, detail="Documento no encontrado")

    # Pasamos los objetos de la base a schemas antes de dibujar
    schema_document = schemas.Document.model_validate(db_document)
    schema_client = schemas.Client.model_validate(db_document.client) if db_document.client else None
    pdf_buffer = pdf_utils.generate_document_pdf(schema_document, schema_client)

    headers = {
        'Content-Disposition': f'inline; filename="{schema_document.invoice_number}.pdf"'
    }
    return StreamingResponse(pdf_buffer, media_type="application/pdf", headers=headers)

# ===================================================================
# --- RECIBOS ---
# ===================================================================
@app.post("/receipts/", response_model=schemas.Receipt, status_code=status.HTTP_201_CREATED)
def create_new_receipt(receipt: schemas.ReceiptCreate, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    try:
        return crud.create_receipt(db=db, receipt=receipt, user_id=current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/receipts/", response_model=List[schemas.Receipt])
def read_receipts(skip: int = 0, limit: int = 100, client_id: int | None = None, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    return crud.get_receipts(db, skip=skip, limit=limit, client_id=client_id)

@app.get("/receipts/{receipt_id}", response_model=schemas.Receipt)
def read_receipt(receipt_id: int, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    db_receipt = crud.get_receipt(db, receipt_id=receipt_id)
    if db_receipt is None:
        raise HTTPException(status_code=404, detail="Recibo no encontrado")
    return db_receipt

@app.patch("/receipts/{receipt_id}", response_model=schemas.Receipt)
def update_receipt_details(receipt_id: int, receipt: schemas.ReceiptUpdate, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    db_receipt = crud.update_receipt(db, receipt_id=receipt_id, receipt=receipt, user_id=current_user.id)
    if db_receipt is None:
        raise HTTPException(status_code=404, detail="Recibo no encontrado para actualizar")
    return db_receipt

@app.get("/receipts/{receipt_id}/print", response_class=StreamingResponse)
def print_receipt(receipt_id: int, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    db_receipt = crud.get_receipt(db, receipt_id=receipt_id)
    if db_receipt is None:
        raise HTTPException(status_code=404, detail="Recibo no encontrado")

    schema_receipt = schemas.Receipt.model_validate(db_receipt)
    schema_client = schemas.Client.model_validate(db_receipt.client) if db_receipt.client else None
    pdf_buffer = pdf_utils.generate_receipt_pdf(schema_receipt, schema_client)

    headers = {
        'Content-Disposition': f'inline; filename="{schema_receipt.receipt_number}.pdf"'
    }
    return StreamingResponse(pdf_buffer, media_type="application/pdf", headers=headers)

# ===================================================================
# --- PROVEEDORES ---
# ===================================================================
@app.post("/providers/", response_model=schemas.Provider, status_code=status.HTTP_201_CREATED)
def create_new_provider(provider: schemas.ProviderCreate, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    return crud.create_provider(db=db, provider=provider, user_id=current_user.id)

@app.get("/providers/", response_model=List[schemas.Provider])
def read_providers(skip: int = 0, limit: int = 100, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    return crud.get_providers(db, skip=skip, limit=limit)

@app.get("/providers/search", response_model=List[schemas.Provider])
def search_providers(q: str, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    return crud.search_providers(db, query=q)

@app.get("/providers/{provider_id}", response_model=schemas.Provider)
def read_provider(provider_id: int, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    db_provider = crud.get_provider(db, provider_id=provider_id)
    if db_provider is None:
        raise HTTPException(status_code=404, detail="Proveedor no encontrado")
    return db_provider

@app.patch("/providers/{provider_id}", response_model=schemas.Provider)
def update_provider_details(provider_id: int, provider: schemas.ProviderUpdate, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    try:
        db_provider = crud.update_provider(db, provider_id=provider_id, provider=provider, user_id=current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if db_provider is None:
        raise HTTPException(status_code=404, detail="Proveedor no encontrado para actualizar")
    return db_provider

@app.delete("/providers/{provider_id}", response_model=schemas.Provider)
def delete_provider_by_id(provider_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(admin_only)):
    db_provider = crud.delete_provider(db, provider_id=provider_id, user_id=current_user.id)
    if db_provider is None:
        raise HTTPException(status_code=404, detail="Proveedor no encontrado para eliminar")
    return db_provider

# ===================================================================
# --- PAGOS ---
# ===================================================================
@app.post("/payments/", response_model=schemas.Payment, status_code=status.HTTP_201_CREATED)
def create_new_payment(payment: schemas.PaymentCreate, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    try:
        return crud.create_payment(db=db, payment=payment, user_id=current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/payments/", response_model=List[schemas.Payment])
def read_payments(skip: int = 0, limit: int = 100, client_id: int | None = None, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    return crud.get_payments(db, skip=skip, limit=limit, client_id=client_id)

@app.get("/payments/{payment_id}", response_model=schemas.Payment)
def read_payment(payment_id: int, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    db_payment = crud.get_payment(db, payment_id=payment_id)
    if db_payment is None:
        raise HTTPException(status_code=404, detail="Pago no encontrado")
    return db_payment

@app.patch("/payments/{payment_id}", response_model=schemas.Payment)
def update_payment_details(payment_id: int, payment: schemas.PaymentUpdate, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    db_payment = crud.update_payment(db, payment_id=payment_id, payment=payment, user_id=current_user.id)
    if db_payment is None:
        raise HTTPException(status_code=404, detail="Pago no encontrado para actualizar")
    return db_payment

@app.delete("/payments/{payment_id}", response_model=schemas.Payment)
def delete_payment_by_id(payment_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(admin_only)):
    db_payment = crud.delete_payment(db, payment_id=payment_id, user_id=current_user.id)
    if db_payment is None:
        raise HTTPException(status_code=404, detail="Pago no encontrado para eliminar")
    return db_payment

# ===================================================================
# --- TICKETS ---
# ===================================================================
@app.post("/tickets/", response_model=schemas.Ticket, status_code=status.HTTP_201_CREATED)
def create_new_ticket(ticket: schemas.TicketCreate, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    return crud.create_ticket(db=db, ticket=ticket, user_id=current_user.id)

@app.get("/tickets/", response_model=List[schemas.Ticket])
def read_tickets(
    skip: int = 0,
    limit: int = 100,
    status: str | None = None,
    assigned_to: int | None = None,
    db: Session = Depends(get_db),
    _user: models.User = Depends(any_user)
):
    return crud.get_tickets(db, skip=skip, limit=limit, status=status, assigned_to=assigned_to)

@app.get("/tickets/{ticket_id}", response_model=schemas.Ticket)
def read_ticket(ticket_id: int, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    db_ticket = crud.get_ticket(db, ticket_id=ticket_id)
    if db_ticket is None:
        raise HTTPException(status_code=404, detail="Ticket no encontrado")
    return db_ticket

@app.patch("/tickets/{ticket_id}", response_model=schemas.Ticket)
def update_ticket_details(ticket_id: int, ticket: schemas.TicketUpdate, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    db_ticket = crud.update_ticket(db, ticket_id=ticket_id, ticket=ticket, user_id=current_user.id)
    if db_ticket is None:
        raise HTTPException(status_code=404, detail="Ticket no encontrado para actualizar")
    return db_ticket

# ===================================================================
# --- CONFIGURACIÓN ---
# ===================================================================
@app.get("/config/overdue-threshold")
def read_overdue_threshold(db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    return {"days": crud.get_overdue_threshold(db)}

@app.put("/config/overdue-threshold")
def update_overdue_threshold(config: schemas.ConfigValue, db: Session = Depends(get_db), current_user: models.User = Depends(admin_only)):
    try:
        days = int(config.value)
    except ValueError:
        raise HTTPException(status_code=400, detail="El umbral debe ser un número entero de días.")
    try:
        crud.set_overdue_threshold(db, days=days, user_id=current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"days": days}

@app.get("/config/smtp", response_model=schemas.SmtpConfig)
def read_smtp_config(db: Session = Depends(get_db), _admin: models.User = Depends(admin_only)):
    smtp = crud.get_smtp_config(db)
    if smtp is None:
        raise HTTPException(status_code=404, detail="No hay configuración SMTP")
    return smtp

@app.put("/config/smtp", response_model=schemas.SmtpConfig)
def update_smtp_config(smtp: schemas.SmtpConfig, db: Session = Depends(get_db), current_user: models.User = Depends(admin_only)):
    return crud.set_smtp_config(db, smtp_config=smtp, user_id=current_user.id)

@app.get("/config/ui-preferences", response_model=schemas.UiPreferences)
def read_ui_preferences(db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    return crud.get_ui_preferences(db)

@app.put("/config/ui-preferences", response_model=schemas.UiPreferences)
def update_ui_preferences(preferences: schemas.UiPreferences, db: Session = Depends(get_db), current_user: models.User = Depends(staff_only)):
    return crud.set_ui_preferences(db, preferences=preferences, user_id=current_user.id)

# ===================================================================
# --- BITÁCORA ---
# ===================================================================
@app.get("/history", response_model=List[schemas.ActionHistory])
def read_action_history(
    skip: int = 0,
    limit: int = 100,
    entity_type: str | None = None,
    entity_id: str | None = None,
    db: Session = Depends(get_db),
    _admin: models.User = Depends(admin_only)
):
    return crud.get_action_history(db, skip=skip, limit=limit, entity_type=entity_type, entity_id=entity_id)

# ===================================================================
# --- REPORTES ---
# ===================================================================
# Los errores de parámetros (rango invertido, mes inválido...) son 400.
@app.get("/reports/monthly-sales", response_model=schemas.MonthlySalesSummary)
def read_monthly_sales(month: int, year: int, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    try:
        return crud.report_monthly_sales(db, month=month, year=year)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/reports/new-clients", response_model=List[schemas.NewClientPeriod])
def read_new_clients(start_date: date, end_date: date, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    try:
        return crud.report_new_clients(db, start=start_date, end=end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/reports/client-activity", response_model=List[schemas.ClientActivity])
def read_client_activity(start_date: date, end_date: date, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    try:
        return crud.report_client_activity(db, start=start_date, end=end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/reports/stock-status", response_model=List[schemas.StockStatusRow])
def read_stock_status(category: str | None = None, supplier_id: int | None = None, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    return crud.report_stock_status(db, category=category, supplier_id=supplier_id)

@app.get("/reports/orders-by-equipment", response_model=List[schemas.GroupCount])
def read_orders_by_equipment(
    start_date: date | None = None,
    end_date: date | None = None,
    group_by: Literal["equipment_type", "equipment_brand"] = "equipment_type",
    db: Session = Depends(get_db),
    _user: models.User = Depends(any_user)
):
    try:
        return crud.report_orders_by_equipment(db, start=start_date, end=end_date, group_by=group_by)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/reports/technician-performance", response_model=List[schemas.TechnicianPerformance])
def read_technician_performance(start_date: date | None = None, end_date: date | None = None, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    try:
        return crud.report_technician_performance(db, start=start_date, end=end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/reports/average-repair-time", response_model=schemas.AverageRepairTime)
def read_average_repair_time(
    start_date: date | None = None,
    end_date: date | None = None,
    group_by_equipment: bool = False,
    db: Session = Depends(get_db),
    _user: models.User = Depends(any_user)
):
    try:
        return crud.report_average_repair_time(db, start=start_date, end=end_date, group_by_equipment=group_by_equipment)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/reports/sales-by-client", response_model=List[schemas.SalesByClient])
def read_sales_by_client(start_date: date, end_date: date, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    try:
        return crud.report_sales_by_client(db, start=start_date, end=end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/reports/invoice-aging", response_model=List[schemas.AgingBucket])
def read_invoice_aging(as_of: date | None = None, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    return crud.report_invoice_aging(db, as_of=as_of)

@app.get("/reports/revenue-by-service-type", response_model=List[schemas.RevenueByServiceType])
def read_revenue_by_service_type(start_date: date, end_date: date, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    try:
        return crud.report_revenue_by_service_type(db, start=start_date, end=end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/reports/order-status", response_model=List[schemas.StatusCount])
def read_order_status_counts(start_date: date | None = None, end_date: date | None = None, db: Session = Depends(get_db), _user: models.User = Depends(any_user)):
    try:
        return crud.report_order_status_counts(db, start=start_date, end=end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/reports/ticket-volume", response_model=schemas.TicketVolumeReport)
def read_ticket_volume(
    start_date: date,
    end_date: date,
    priority: str | None = None,
    assigned_to: int | None = None,
    status: str | None = None,
    db: Session = Depends(get_db),
    _user: models.User = Depends(any_user)
):
    try:
        return crud.report_ticket_volume(db, start=start_date, end=end_date, priority=priority, assigned_to=assigned_to, status=status)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
