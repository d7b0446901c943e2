# backend/taller/utils/dates.py
# Política de zona horaria: todo timestamp se lleva a fecha calendario en la
# zona de la aplicación. Los datetime sin zona leídos de la base se
# interpretan como UTC; las fechas sin hora ya son fechas calendario locales.
from datetime import date, datetime, time, timezone

import pytz

from ..config import APP_TIMEZONE


def get_app_timezone(name: str | None = None):
    return pytz.timezone(name or APP_TIMEZONE)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _is_date_only(value: str) -> bool:
    # "yyyy-MM-dd" sin parte horaria
    return len(value.strip()) == 10


def parse_date(value) -> date | None:
    """Acepta date, datetime o 'yyyy-MM-dd'. None se devuelve tal cual."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def to_local_date(value, tz=None) -> date | None:
    """Fecha calendario de un timestamp en la zona de la aplicación."""
    if value is None:
        return None
    if isinstance(value, str):
        if _is_date_only(value):
            return date.fromisoformat(value.strip())
        value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if isinstance(value, datetime):
        return as_utc(value).astimezone(tz or get_app_timezone()).date()
    return value


def parse_local_datetime(value):
    """
    Normaliza una fecha/hora que llega desde la API a UTC.
    "yyyy-MM-dd" es la medianoche local de ese día y un datetime sin zona es
    hora local de la aplicación. Lo que no es texto se devuelve sin tocar.
    """
    if not isinstance(value, str) or not value.strip():
        return value
    text = value.strip()
    try:
        if _is_date_only(text):
            parsed = datetime.combine(date.fromisoformat(text), time())
        else:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        # Formato raro: que lo valide pydantic
        return value
    if parsed.tzinfo is None:
        parsed = get_app_timezone().localize(parsed)
    return parsed.astimezone(pytz.utc)


def days_between(later, earlier) -> int:
    """Días completos entre dos instantes, truncando hacia cero."""
    if isinstance(later, datetime) and isinstance(earlier, datetime):
        seconds = (as_utc(later) - as_utc(earlier)).total_seconds()
        return int(seconds / 86400)
    return (parse_date(later) - parse_date(earlier)).days
