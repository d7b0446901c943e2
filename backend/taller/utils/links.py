import re

WHATSAPP_BASE_URL = "https://wa.me/"


def build_whatsapp_link(phone: str | None) -> str:
    """Link directo a WhatsApp Web. Solo se conservan los dígitos del teléfono."""
    digits = re.sub(r"\D", "", phone or "")
    if not digits:
        raise ValueError("El cliente no tiene un teléfono válido para WhatsApp.")
    return f"{WHATSAPP_BASE_URL}{digits}"
