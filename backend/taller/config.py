import os

# --- Base de datos ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./taller.db")

# --- Seguridad ---
SECRET_KEY = os.getenv("SECRET_KEY", "cambiar-esta-clave-en-produccion")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
LOGIN_RATE_LIMIT = os.getenv("LOGIN_RATE_LIMIT", "5/minute")

# Orígenes del frontend separados por coma
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")

# --- Zona horaria de los reportes ---
# Las fechas guardadas sin zona se toman como UTC.
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "America/Argentina/Buenos_Aires")

# --- Facturación ---
IVA_PERCENTAGE = float(os.getenv("IVA_PERCENTAGE", "21"))

# CAE fijo mientras AFIP esté simulado
AFIP_PLACEHOLDER_CAE = "12345678901234"
AFIP_CAE_VALID_DAYS = 30

# --- Datos iniciales ---
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@taller.local")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "taller123")
DEFAULT_OVERDUE_DAYS = 7
