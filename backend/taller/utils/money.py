# backend/taller/utils/money.py
from decimal import Decimal, ROUND_HALF_UP, getcontext

getcontext().prec = 28

CENT = Decimal("0.01")

def money(value) -> Decimal:
    """
    Convierte cualquier valor a Decimal con 2 decimales (ROUND_HALF_UP).
    Acepta str, int, float, Decimal.
    """
    if isinstance(value, Decimal):
        q = value
    else:
        q = Decimal(str(value))
    return q.quantize(CENT, rounding=ROUND_HALF_UP)

def calc_tax(subtotal, iva_percentage) -> Decimal:
    """
    IVA = subtotal * (iva_percentage / 100)
    """
    rate = money(iva_percentage) / Decimal("100")
    return money(money(subtotal) * rate)

def calc_total(subtotal, tax) -> Decimal:
    return money(money(subtotal) + money(tax))

def items_subtotal(items: list[dict]) -> Decimal:
    """Suma cantidad * precio unitario de cada línea del documento."""
    total = Decimal("0")
    for item in items:
        total += money(item.get("quantity", 0) or 0) * money(item.get("unit_price", 0) or 0)
    return money(total)
