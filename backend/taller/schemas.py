from pydantic import BaseModel, BeforeValidator, Field, computed_field, model_validator
from typing import Annotated, List, Literal, Optional
from datetime import datetime

from .utils.dates import parse_local_datetime

FACTURA_TYPES = ("factura_a", "factura_b", "factura_c")
DocType = Literal["factura_a", "factura_b", "factura_c", "recibo", "presupuesto"]
FacturaType = Literal["factura_a", "factura_b", "factura_c"]


def _empty_to_none(value):
    # El formulario manda "" cuando no se elige nada
    if value == "":
        return None
    return value


OptionalId = Annotated[Optional[int], BeforeValidator(_empty_to_none)]
# Fechas de entrada: "yyyy-MM-dd" y horas sin zona son hora local del taller
LocalDateTime = Annotated[datetime, BeforeValidator(parse_local_datetime)]

# ===================================================================
# --- SCHEMAS BASE ---
# ===================================================================
class UserBase(BaseModel):
    email: str
    full_name: str | None = None
    role: Literal["admin", "technician", "viewer"] = "viewer"

class ClientBase(BaseModel):
    name: str = Field(min_length=1)
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    identification: str | None = None
    notes: str | None = None

class RepairOrderBase(BaseModel):
    client_id: int
    equipment_type: str | None = None
    equipment_brand: str | None = None
    equipment_model: str | None = None
    serial_number: str | None = None
    reported_issue: str | None = None
    technical_diagnosis: str | None = None
    status: str = "Ingresado"
    estimated_delivery_date: LocalDateTime | None = None
    completion_date: LocalDateTime | None = None
    budget: float | None = None
    labor_cost: float | None = None
    parts_cost: float | None = None
    total_cost: float | None = None
    assigned_technician: str | None = None
    assigned_technician_id: int | None = None

class InventoryItemBase(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    category: str | None = None
    sku: str | None = None
    barcode: str | None = None
    quantity: int = 0
    cost_price: float = 0
    selling_price: float = 0
    minimum_stock: int | None = None
    supplier_id: int | None = None
    location: str | None = None
    status: str | None = None

class DocumentItem(BaseModel):
    description: str
    quantity: float = Field(gt=0)
    unit_price: float

class ReceiptBase(BaseModel):
    client_id: int
    repair_order_id: OptionalId = None
    amount: float
    status: str = "Emitido"
    notes: str | None = None

class ProviderBase(BaseModel):
    name: str = Field(min_length=1)
    type: Literal["persona", "company"] = "persona"
    tax_id: str | None = None
    business_name: str | None = None
    contact_name: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    notes: str | None = None

class PaymentBase(BaseModel):
    client_id: int
    invoice_id: OptionalId = None
    receipt_id: OptionalId = None
    amount: float
    payment_method: str
    notes: str | None = None

class TicketBase(BaseModel):
    title: str = Field(min_length=1)
    description: str | None = None
    status: str = "Open"
    priority: str = "Medium"
    client_id: int | None = None
    assigned_to: int | None = None

# ===================================================================
# --- SCHEMAS PARA CREACIÓN / ACTUALIZACIÓN ---
# ===================================================================
class UserCreate(UserBase):
    password: str = Field(min_length=6)

class ClientCreate(ClientBase):
    pass

class ClientUpdate(BaseModel):
    name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    identification: str | None = None
    notes: str | None = None

class RepairOrderCreate(RepairOrderBase):
    entry_date: LocalDateTime | None = None

class RepairOrderUpdate(BaseModel):
    equipment_type: str | None = None
    equipment_brand: str | None = None
    equipment_model: str | None = None
    serial_number: str | None = None
    reported_issue: str | None = None
    technical_diagnosis: str | None = None
    status: str | None = None
    entry_date: LocalDateTime | None = None
    estimated_delivery_date: LocalDateTime | None = None
    completion_date: LocalDateTime | None = None
    budget: float | None = None
    labor_cost: float | None = None
    parts_cost: float | None = None
    total_cost: float | None = None
    assigned_technician: str | None = None
    assigned_technician_id: int | None = None

class InventoryItemCreate(InventoryItemBase):
    pass

class InventoryItemUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    category: str | None = None
    sku: str | None = None
    barcode: str | None = None
    cost_price: float | None = None
    selling_price: float | None = None
    minimum_stock: int | None = None
    supplier_id: int | None = None
    location: str | None = None
    status: str | None = None

class StockAdjustment(BaseModel):
    quantity: int = Field(gt=0)
    operation: Literal["add", "subtract"]

class DocumentCreate(BaseModel):
    doc_type: DocType = "factura_b"
    client_id: int
    repair_order_id: OptionalId = None
    issue_date: LocalDateTime | None = None
    due_date: LocalDateTime | None = None
    items: List[DocumentItem] = []
    # Si no vienen se calculan desde los ítems / el IVA
    subtotal: float | None = None
    tax: float | None = None
    total: float | None = None
    status: str = "Pendiente"
    notes: str | None = None
    afip_doc_type: str | None = None

    @model_validator(mode="after")
    def check_amounts(self):
        if self.subtotal is None and not self.items:
            raise ValueError("El documento necesita ítems o un subtotal.")
        return self

class DocumentUpdate(BaseModel):
    due_date: LocalDateTime | None = None
    status: str | None = None
    notes: str | None = None
    afip_doc_type: str | None = None

class DocumentConvert(BaseModel):
    target_doc_type: FacturaType = "factura_b"

class ReceiptCreate(ReceiptBase):
    issue_date: LocalDateTime | None = None

class ReceiptUpdate(BaseModel):
    status: str | None = None
    notes: str | None = None
    amount: float | None = None

class ProviderCreate(ProviderBase):

    @model_validator(mode="after")
    def check_company_fields(self):
        # Para empresas la razón social y el contacto son obligatorios
        if self.type == "company" and (not self.business_name or not self.contact_name):
            raise ValueError("Una empresa requiere razón social y nombre de contacto.")
        return self

class ProviderUpdate(BaseModel):
    name: str | None = None
    type: Literal["persona", "company"] | None = None
    tax_id: str | None = None
    business_name: str | None = None
    contact_name: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    notes: str | None = None

class PaymentCreate(PaymentBase):
    payment_date: LocalDateTime | None = None

class PaymentUpdate(BaseModel):
    amount: float | None = None
    payment_method: str | None = None
    payment_date: LocalDateTime | None = None
    notes: str | None = None

class TicketCreate(TicketBase):
    pass

class TicketUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    status: str | None = None
    priority: str | None = None
    assigned_to: int | None = None

class ConfigValue(BaseModel):
    value: str

class SmtpConfig(BaseModel):
    host: str = Field(min_length=1)
    port: int = 587
    secure: bool = False
    username: str = Field(min_length=1)
    password: str = ""
    from_email: str = Field(min_length=3)
    from_name: str = ""

class UiPreferences(BaseModel):
    dark_mode: bool = False
    sidebar_collapsed: bool = False

# ===================================================================
# --- SCHEMAS PARA LECTURA (RESPUESTAS DE LA API) ---
# ===================================================================
class User(UserBase):
    id: int
    is_active: bool
    class Config:
        from_attributes = True

class Client(ClientBase):
    id: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    class Config:
        from_attributes = True

class RepairOrder(RepairOrderBase):
    id: int
    order_number: int | None = None
    entry_date: datetime
    created_at: datetime | None = None

    @computed_field
    @property
    def order_code(self) -> str:
        return f"{(self.order_number or self.id):05d}"
    class Config:
        from_attributes = True

class InventoryItem(InventoryItemBase):
    id: int
    class Config:
        from_attributes = True

class Document(BaseModel):
    id: int
    invoice_number: str
    doc_type: str
    client_id: int
    repair_order_id: OptionalId = None
    source_document_id: int | None = None
    issue_date: datetime
    due_date: datetime | None = None
    items: List[DocumentItem] | None = None
    subtotal: float
    tax: float
    total: float
    status: str
    notes: str | None = None
    afip_status: str | None = None
    afip_cae: str | None = None
    afip_expiration: datetime | None = None
    afip_doc_type: str | None = None
    class Config:
        from_attributes = True

class Receipt(ReceiptBase):
    id: int
    receipt_number: str
    issue_date: datetime
    class Config:
        from_attributes = True

class Provider(ProviderBase):
    id: int
    class Config:
        from_attributes = True

class Payment(PaymentBase):
    id: int
    payment_date: datetime
    class Config:
        from_attributes = True

class Ticket(TicketBase):
    id: int
    created_at: datetime | None = None
    resolved_at: datetime | None = None
    class Config:
        from_attributes = True

class ActionHistory(BaseModel):
    id: int
    created_at: datetime | None = None
    action_type: str
    entity_type: str
    entity_id: str
    description: str | None = None
    user_id: int | None = None
    class Config:
        from_attributes = True

class ClientBalance(BaseModel):
    client_id: int
    client_name: str
    total_invoiced: float
    total_paid: float
    balance: float

class OverdueOrder(BaseModel):
    id: int
    order_number: int | None = None
    client_id: int
    client_name: str
    equipment_type: str | None = None
    status: str
    entry_date: datetime
    days_in_service: int

class WhatsAppLink(BaseModel):
    url: str

# ===================================================================
# --- REPORTES ---
# ===================================================================
class MonthlySalesSummary(BaseModel):
    total_invoiced: float
    total_collected: float
    number_of_invoices: int

class NewClientPeriod(BaseModel):
    period: str
    new_client_count: int

class ClientActivity(BaseModel):
    client_id: int
    client_name: str
    number_of_orders: int
    total_invoiced_amount: float

class StockStatusRow(BaseModel):
    item_id: int
    item_name: str
    sku: str | None = None
    category: str | None = None
    quantity: int
    cost_price: float
    selling_price: float
    total_value: float
    minimum_stock: int | None = None
    is_low_stock: bool

class GroupCount(BaseModel):
    group_name: str
    count: int

class TechnicianPerformance(BaseModel):
    technician_id: int
    technician_name: str | None = None
    orders_completed: int
    average_repair_time: float

class EquipmentRepairTime(BaseModel):
    equipment_type: str
    average_time: float
    order_count: int

class AverageRepairTime(BaseModel):
    overall_average_time: float
    order_count: int
    by_equipment_type: List[EquipmentRepairTime] | None = None

class SalesByClient(BaseModel):
    client_id: int
    client_name: str
    total_invoiced: float

class AgingBucket(BaseModel):
    age_bucket: str
    total_amount: float
    number_of_invoices: int

class RevenueByServiceType(BaseModel):
    equipment_type: str
    total_revenue: float

class StatusCount(BaseModel):
    status: str
    count: int

class PriorityCount(BaseModel):
    priority: str
    count: int

class TicketVolumeReport(BaseModel):
    created_count: int
    resolved_count: int
    by_status: List[StatusCount]
    by_priority: List[PriorityCount]
    average_resolution_time: float | None = None
