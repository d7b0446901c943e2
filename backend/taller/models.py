from sqlalchemy import (
    Column, Integer, String, Float, Boolean, ForeignKey, DateTime, JSON
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from .database import Base

class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default="viewer")
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    assigned_orders = relationship("RepairOrder", back_populates="technician")
    assigned_tickets = relationship("Ticket", back_populates="assignee")

class Client(Base):
    __tablename__ = "clients"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    last_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    address = Column(String, nullable=True)
    identification = Column(String, index=True, nullable=True) # DNI / CUIT
    notes = Column(String, nullable=True)
    # Fecha de alta: se usa para los reportes de captación
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    repair_orders = relationship("RepairOrder", back_populates="client")
    documents = relationship("Document", back_populates="client")
    receipts = relationship("Receipt", back_populates="client")
    payments = relationship("Payment", back_populates="client")

class RepairOrder(Base):
    __tablename__ = "repair_orders"
    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(Integer, unique=True, index=True, nullable=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)

    # Datos del Equipo
    equipment_type = Column(String, nullable=True)
    equipment_brand = Column(String, nullable=True)
    equipment_model = Column(String, nullable=True)
    serial_number = Column(String, nullable=True)
    reported_issue = Column(String, nullable=True)
    technical_diagnosis = Column(String, nullable=True)

    # Estado libre, sin tabla de transiciones
    status = Column(String, default="Ingresado", nullable=False)
    entry_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    estimated_delivery_date = Column(DateTime(timezone=True), nullable=True)
    # Sin fecha de finalización la orden sigue abierta
    completion_date = Column(DateTime(timezone=True), nullable=True)

    # Costos independientes (total no se recalcula)
    budget = Column(Float, nullable=True)
    labor_cost = Column(Float, nullable=True)
    parts_cost = Column(Float, nullable=True)
    total_cost = Column(Float, nullable=True)

    assigned_technician = Column(String, nullable=True)
    assigned_technician_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="repair_orders")
    technician = relationship("User", back_populates="assigned_orders")
    documents = relationship("Document", back_populates="repair_order")

class Provider(Base):
    __tablename__ = "providers"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    type = Column(String, nullable=False, default="persona") # persona | company
    tax_id = Column(String, index=True, nullable=True)
    business_name = Column(String, nullable=True)
    contact_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    address = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship("InventoryItem", back_populates="supplier")

class InventoryItem(Base):
    __tablename__ = "inventory"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    description = Column(String, nullable=True)
    category = Column(String, index=True, nullable=True)
    sku = Column(String, unique=True, index=True, nullable=True)
    barcode = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False, default=0)
    cost_price = Column(Float, nullable=False, default=0.0)
    selling_price = Column(Float, nullable=False, default=0.0)
    minimum_stock = Column(Integer, nullable=True)
    supplier_id = Column(Integer, ForeignKey("providers.id"), nullable=True)
    location = Column(String, nullable=True)
    status = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    supplier = relationship("Provider", back_populates="items")

# ===== Documentos: factura A/B/C, recibo y presupuesto en una sola tabla =====
class Document(Base):
    __tablename__ = "invoices"
    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String, unique=True, index=True, nullable=False)
    doc_type = Column(String, nullable=False, default="factura_b")
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    repair_order_id = Column(Integer, ForeignKey("repair_orders.id"), nullable=True)
    # Presupuesto del que salió esta factura (si fue convertida)
    source_document_id = Column(Integer, ForeignKey("invoices.id"), nullable=True)

    issue_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=True)

    items = Column(JSON, nullable=True) # [{"description", "quantity", "unit_price"}]
    subtotal = Column(Float, nullable=False, default=0.0)
    tax = Column(Float, nullable=False, default=0.0)
    total = Column(Float, nullable=False, default=0.0)
    status = Column(String, nullable=False, default="Pendiente")
    notes = Column(String, nullable=True)

    # AFIP (simulado)
    afip_status = Column(String, nullable=True)
    afip_cae = Column(String, nullable=True)
    afip_expiration = Column(DateTime(timezone=True), nullable=True)
    afip_doc_type = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="documents")
    repair_order = relationship("RepairOrder", back_populates="documents")
    source_document = relationship("Document", remote_side=[id])

class Receipt(Base):
    __tablename__ = "receipts"
    id = Column(Integer, primary_key=True, index=True)
    receipt_number = Column(String, unique=True, index=True, nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    repair_order_id = Column(Integer, ForeignKey("repair_orders.id"), nullable=True)
    issue_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    amount = Column(Float, nullable=False)
    status = Column(String, nullable=False, default="Emitido")
    notes = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="receipts")

class Payment(Base):
    __tablename__ = "payments"
    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=True)
    receipt_id = Column(Integer, ForeignKey("receipts.id"), nullable=True)
    amount = Column(Float, nullable=False)
    payment_method = Column(String, nullable=False)
    payment_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    client = relationship("Client", back_populates="payments")

class Ticket(Base):
    __tablename__ = "tickets"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    status = Column(String, nullable=False, default="Open")
    priority = Column(String, nullable=False, default="Medium")
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True)
    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    assignee = relationship("User", back_populates="assigned_tickets")

# ===== Configuración clave/valor =====
class SystemConfiguration(Base):
    __tablename__ = "system_configuration"
    id = Column(Integer, primary_key=True, index=True)
    key = Column(String, unique=True, index=True, nullable=False)
    value = Column(String, nullable=False)
    description = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

class ActionHistory(Base):
    __tablename__ = "action_history"
    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    action_type = Column(String, nullable=False)   # CREAR, ACTUALIZAR, ...
    entity_type = Column(String, nullable=False)   # nombre de la tabla
    entity_id = Column(String, nullable=False)
    description = Column(String, nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    user = relationship("User")

