# backend/taller/reports.py
"""
Reportes del taller calculados en memoria.

Cada función recibe las colecciones ya leídas de la base (modelos ORM, dicts
u objetos con los mismos atributos) y devuelve estructuras listas para la API.
No leen ni escriben nada por su cuenta: con los mismos datos devuelven siempre
el mismo resultado.

Reglas comunes:
- Los rangos son fechas calendario inclusivas. Cada timestamp se pasa a fecha
  en la zona horaria de la aplicación antes de comparar.
- Si falta el campo por el que se agrupa, el registro va al grupo
  "Unknown <campo>" para que los totales no se pierdan.
- Para ventas solo cuentan los documentos facturables (todo menos presupuestos).
"""
from collections import defaultdict

from .utils.dates import days_between, get_app_timezone, parse_date, to_local_date

PAID_STATUSES = ("Pagada", "Paid")
RESOLVED_TICKET_STATUSES = ("Resolved", "Closed")
NON_BILLABLE_DOC_TYPES = ("presupuesto",)
EQUIPMENT_GROUPS = ("equipment_type", "equipment_brand")

AGING_BUCKETS = (
    ("0-30 days", 30),
    ("31-60 days", 60),
    ("61-90 days", 90),
    ("90+ days", None),
)

# ===================================================================
# --- HELPERS ---
# ===================================================================
def _get(record, field):
    if isinstance(record, dict):
        return record.get(field)
    return getattr(record, field, None)

def _unknown(field: str) -> str:
    return f"Unknown {field.replace('_', ' ')}"

def _resolve_range(start, end, required: bool = False):
    start_date, end_date = parse_date(start), parse_date(end)
    if required and (start_date is None or end_date is None):
        raise ValueError("Se requiere fecha de inicio y fecha de fin.")
    if start_date and end_date and start_date > end_date:
        raise ValueError("La fecha de inicio no puede ser posterior a la fecha de fin.")
    return start_date, end_date

def _in_range(value, start, end, tz) -> bool:
    day = to_local_date(value, tz)
    if day is None:
        return False
    if start is not None and day < start:
        return False
    if end is not None and day > end:
        return False
    return True

def _is_billable(document) -> bool:
    return _get(document, "doc_type") not in NON_BILLABLE_DOC_TYPES

def _client_name(client) -> str:
    return f"{_get(client, 'name') or ''} {_get(client, 'last_name') or ''}".strip()

def _repair_days(order) -> int:
    return days_between(_get(order, "completion_date"), _get(order, "entry_date"))

# ===================================================================
# --- VENTAS ---
# ===================================================================
def monthly_sales_summary(documents, receipts, month: int, year: int, tz=None) -> dict:
    """Facturado, cobrado y cantidad de facturas de un mes calendario exacto."""
    if not 1 <= int(month) <= 12:
        raise ValueError("El mes debe estar entre 1 y 12.")
    tz = tz or get_app_timezone()

    def in_month(value):
        day = to_local_date(value, tz)
        return day is not None and day.month == int(month) and day.year == int(year)

    relevant = [d for d in documents if _is_billable(d) and in_month(_get(d, "issue_date"))]
    collected = [r for r in receipts if in_month(_get(r, "issue_date"))]

    return {
        "total_invoiced": sum((_get(d, "total") or 0 for d in relevant), 0.0),
        "total_collected": sum((_get(r, "amount") or 0 for r in collected), 0.0),
        "number_of_invoices": len(relevant),
    }

def sales_by_client(documents, clients, start, end, tz=None) -> list[dict]:
    """
    Total facturado por cliente en el rango.
    Solo aparecen clientes con al menos un documento en el rango.
    """
    start, end = _resolve_range(start, end, required=True)
    tz = tz or get_app_timezone()
    names = {_get(c, "id"): _get(c, "name") for c in clients}

    totals: dict = {}
    for document in documents:
        if not _is_billable(document) or not _in_range(_get(document, "issue_date"), start, end, tz):
            continue
        client_id = _get(document, "client_id")
        if client_id is None:
            continue
        if client_id not in totals:
            totals[client_id] = {
                "client_id": client_id,
                "client_name": names.get(client_id) or "Unknown Client",
                "total_invoiced": 0.0,
            }
        totals[client_id]["total_invoiced"] += _get(document, "total") or 0

    return list(totals.values())

def invoice_aging(documents, as_of, tz=None) -> list[dict]:
    """
    Antigüedad de la deuda impaga en tramos fijos.
    Edad = as_of - (vencimiento o, si no tiene, fecha de emisión), en días.
    Los documentos que todavía no vencieron quedan en el primer tramo.
    """
    as_of_date = parse_date(as_of)
    if as_of_date is None:
        raise ValueError("Se requiere la fecha de corte.")
    tz = tz or get_app_timezone()

    buckets = {label: {"age_bucket": label, "total_amount": 0.0, "number_of_invoices": 0}
               for label, _ in AGING_BUCKETS}

    for document in documents:
        if not _is_billable(document) or _get(document, "status") in PAID_STATUSES:
            continue
        reference = to_local_date(_get(document, "due_date") or _get(document, "issue_date"), tz)
        if reference is None:
            continue
        age = (as_of_date - reference).days
        for label, limit in AGING_BUCKETS:
            if limit is None or age <= limit:
                buckets[label]["total_amount"] += _get(document, "total") or 0
                buckets[label]["number_of_invoices"] += 1
                break

    return list(buckets.values())

def revenue_by_service_type(documents, orders, start, end, tz=None) -> list[dict]:
    """
    Facturación agrupada por tipo de equipo de la orden vinculada.
    Los documentos sin orden no son ingresos de servicio y no se cuentan.
    Si la orden no existe o no tiene tipo, van a "Unknown equipment type".
    """
    start, end = _resolve_range(start, end, required=True)
    tz = tz or get_app_timezone()
    orders_by_id = {_get(o, "id"): o for o in orders}

    revenue: dict = {}
    for document in documents:
        order_id = _get(document, "repair_order_id")
        if order_id is None or not _is_billable(document):
            continue
        if not _in_range(_get(document, "issue_date"), start, end, tz):
            continue
        order = orders_by_id.get(order_id)
        equipment_type = (_get(order, "equipment_type") if order is not None else None) \
            or _unknown("equipment_type")
        revenue.setdefault(equipment_type, 0.0)
        revenue[equipment_type] += _get(document, "total") or 0

    return [{"equipment_type": k, "total_revenue": v} for k, v in revenue.items()]

# ===================================================================
# --- CLIENTES ---
# ===================================================================
def new_client_count(clients, start, end, tz=None) -> list[dict]:
    """Altas de clientes por mes (yyyy-MM). Sin fecha de alta no se cuentan."""
    start, end = _resolve_range(start, end, required=True)
    tz = tz or get_app_timezone()

    counts: dict = defaultdict(int)
    for client in clients:
        created = _get(client, "created_at")
        if created is None or not _in_range(created, start, end, tz):
            continue
        counts[to_local_date(created, tz).strftime("%Y-%m")] += 1

    return [{"period": period, "new_client_count": counts[period]} for period in sorted(counts)]

def client_activity_summary(clients, orders, documents, start, end, tz=None) -> list[dict]:
    """Órdenes ingresadas y total facturado por cliente. Incluye clientes sin actividad."""
    start, end = _resolve_range(start, end, required=True)
    tz = tz or get_app_timezone()

    order_counts: dict = defaultdict(int)
    for order in orders:
        if _in_range(_get(order, "entry_date"), start, end, tz):
            order_counts[_get(order, "client_id")] += 1

    invoiced: dict = defaultdict(float)
    for document in documents:
        if _is_billable(document) and _in_range(_get(document, "issue_date"), start, end, tz):
            invoiced[_get(document, "client_id")] += _get(document, "total") or 0

    return [
        {
            "client_id": _get(client, "id"),
            "client_name": _client_name(client),
            "number_of_orders": order_counts.get(_get(client, "id"), 0),
            "total_invoiced_amount": invoiced.get(_get(client, "id"), 0.0),
        }
        for client in clients
    ]

# ===================================================================
# --- INVENTARIO ---
# ===================================================================
def stock_status(items, category: str | None = None, supplier_id=None) -> list[dict]:
    """Foto actual del stock: valor total y alerta de stock bajo."""
    rows = []
    for item in items:
        if category and _get(item, "category") != category:
            continue
        if supplier_id is not None and _get(item, "supplier_id") != supplier_id:
            continue
        quantity = _get(item, "quantity") or 0
        cost_price = _get(item, "cost_price") or 0
        minimum_stock = _get(item, "minimum_stock")
        rows.append({
            "item_id": _get(item, "id"),
            "item_name": _get(item, "name"),
            "sku": _get(item, "sku"),
            "category": _get(item, "category"),
            "quantity": quantity,
            "cost_price": cost_price,
            "selling_price": _get(item, "selling_price") or 0,
            "total_value": quantity * cost_price,
            "minimum_stock": minimum_stock,
            "is_low_stock": quantity <= (minimum_stock or 0),
        })
    return rows

# ===================================================================
# --- ÓRDENES DE REPARACIÓN ---
# ===================================================================
def orders_by_equipment(orders, start=None, end=None, group_by: str = "equipment_type", tz=None) -> list[dict]:
    """Cantidad de órdenes por tipo o marca de equipo (filtra por fecha de ingreso)."""
    if group_by not in EQUIPMENT_GROUPS:
        raise ValueError(f"Agrupación no soportada: {group_by}")
    start, end = _resolve_range(start, end)
    tz = tz or get_app_timezone()

    counts: dict = {}
    for order in orders:
        if (start or end) and not _in_range(_get(order, "entry_date"), start, end, tz):
            continue
        key = _get(order, group_by) or _unknown(group_by)
        counts[key] = counts.get(key, 0) + 1

    return [{"group_name": k, "count": v} for k, v in counts.items()]

def order_status_counts(orders, start=None, end=None, tz=None) -> list[dict]:
    start, end = _resolve_range(start, end)
    tz = tz or get_app_timezone()

    counts: dict = {}
    for order in orders:
        if (start or end) and not _in_range(_get(order, "entry_date"), start, end, tz):
            continue
        key = _get(order, "status") or _unknown("status")
        counts[key] = counts.get(key, 0) + 1

    return [{"status": k, "count": v} for k, v in counts.items()]

def _completed_orders(orders, start, end, tz):
    # Solo órdenes terminadas; el rango se aplica sobre la fecha de finalización
    completed = []
    for order in orders:
        completion = _get(order, "completion_date")
        if completion is None or _get(order, "entry_date") is None:
            continue
        if (start or end) and not _in_range(completion, start, end, tz):
            continue
        completed.append(order)
    return completed

def technician_performance(orders, start=None, end=None, tz=None) -> list[dict]:
    """Órdenes terminadas y tiempo promedio de reparación (días) por técnico."""
    start, end = _resolve_range(start, end)
    tz = tz or get_app_timezone()

    stats: dict = {}
    for order in _completed_orders(orders, start, end, tz):
        technician_id = _get(order, "assigned_technician_id")
        if technician_id is None:
            continue
        entry = stats.setdefault(technician_id, {
            "technician_id": technician_id,
            "technician_name": None,
            "orders_completed": 0,
            "total_days": 0,
        })
        entry["technician_name"] = entry["technician_name"] or _get(order, "assigned_technician")
        entry["orders_completed"] += 1
        entry["total_days"] += _repair_days(order)

    results = []
    for entry in stats.values():
        total_days = entry.pop("total_days")
        entry["average_repair_time"] = total_days / entry["orders_completed"]
        results.append(entry)
    return results

def average_repair_time(orders, start=None, end=None, group_by_equipment: bool = False, tz=None) -> dict:
    """
    Promedio de días entre ingreso y finalización.
    Las órdenes sin finalizar no se cuentan, tampoco en el desglose por equipo.
    """
    start, end = _resolve_range(start, end)
    tz = tz or get_app_timezone()
    completed = _completed_orders(orders, start, end, tz)

    if not completed:
        return {
            "overall_average_time": 0.0,
            "order_count": 0,
            "by_equipment_type": [] if group_by_equipment else None,
        }

    durations = [(_repair_days(o), _get(o, "equipment_type") or _unknown("equipment_type")) for o in completed]
    overall = sum(d for d, _ in durations) / len(durations)

    by_equipment = None
    if group_by_equipment:
        grouped: dict = {}
        for days, equipment_type in durations:
            totals = grouped.setdefault(equipment_type, [0, 0])
            totals[0] += days
            totals[1] += 1
        by_equipment = [
            {"equipment_type": k, "average_time": total / count, "order_count": count}
            for k, (total, count) in grouped.items()
        ]

    return {"overall_average_time": overall, "order_count": len(durations), "by_equipment_type": by_equipment}

# ===================================================================
# --- TICKETS ---
# ===================================================================
def ticket_volume_and_resolution(tickets, start, end, priority=None, assigned_to=None, status=None, tz=None) -> dict:
    """
    Volumen de tickets creados en el rango y tiempos de resolución.
    El promedio solo usa tickets resueltos/cerrados cuya fecha de resolución
    también cae dentro del rango.
    """
    start, end = _resolve_range(start, end, required=True)
    tz = tz or get_app_timezone()

    selected = [t for t in tickets if _in_range(_get(t, "created_at"), start, end, tz)]
    if priority:
        selected = [t for t in selected if _get(t, "priority") == priority]
    if assigned_to is not None:
        selected = [t for t in selected if _get(t, "assigned_to") == assigned_to]
    if status:
        selected = [t for t in selected if _get(t, "status") == status]

    resolved = [t for t in selected
                if _get(t, "status") in RESOLVED_TICKET_STATUSES and _get(t, "resolved_at") is not None]

    by_status: dict = {}
    by_priority: dict = {}
    for ticket in selected:
        by_status[_get(ticket, "status")] = by_status.get(_get(ticket, "status"), 0) + 1
        by_priority[_get(ticket, "priority")] = by_priority.get(_get(ticket, "priority"), 0) + 1

    resolution_days = [
        days_between(_get(t, "resolved_at"), _get(t, "created_at"))
        for t in resolved
        if _in_range(_get(t, "resolved_at"), start, end, tz)
    ]

    return {
        "created_count": len(selected),
        "resolved_count": len(resolved),
        "by_status": [{"status": k, "count": v} for k, v in by_status.items()],
        "by_priority": [{"priority": k, "count": v} for k, v in by_priority.items()],
        "average_resolution_time": sum(resolution_days) / len(resolution_days) if resolution_days else None,
    }
