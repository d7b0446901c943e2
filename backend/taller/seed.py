# backend/taller/seed.py
# Datos iniciales: el usuario administrador y la configuración por defecto.

import logging
from taller.config import ADMIN_EMAIL, ADMIN_PASSWORD, DEFAULT_OVERDUE_DAYS
from taller.database import SessionLocal
from taller.models import User, SystemConfiguration
from taller.security import get_password_hash

logger = logging.getLogger(__name__)

# --- 1. Usuarios iniciales ---
# La contraseña viene del entorno. ¡Cambiarla después del primer ingreso!
users_data = [
    {
        "email": ADMIN_EMAIL,
        "full_name": "Administrador",
        "role": "admin",
        "password": ADMIN_PASSWORD,
    },
]

# --- 2. Configuración por defecto ---
config_data = [
    {
        "key": "overdue_days_threshold",
        "value": str(DEFAULT_OVERDUE_DAYS),
        "description": "Días para considerar una orden demorada",
    },
    {
        "key": "ui_preferences",
        "value": '{"dark_mode": false, "sidebar_collapsed": false}',
        "description": "Preferencias de la interfaz",
    },
]

def seed_data(db=None):
    # Si no nos pasan una sesión abrimos (y cerramos) la nuestra
    own_session = db is None
    if own_session:
        db = SessionLocal()
    try:
        # --- PASO A: CREAR USUARIOS ---
        logger.info("Creando usuarios...")

        for data in users_data:
            exists = db.query(User).filter_by(email=data["email"]).first()
            if not exists:
                db_user = User(
                    email=data["email"],
                    full_name=data["full_name"],
                    hashed_password=get_password_hash(data["password"]),
                    role=data["role"],
                    is_active=True
                )
                db.add(db_user)
                logger.info(f"Creado usuario: {db_user.email} (Rol: {db_user.role})")
            else:
                logger.warning(f"Ya existe: {data['email']}. Saltando.")

        # --- PASO B: CONFIGURACIÓN ---
        logger.info("Cargando configuración por defecto...")

        for data in config_data:
            exists = db.query(SystemConfiguration).filter_by(key=data["key"]).first()
            if not exists:
                db.add(SystemConfiguration(**data))
                logger.info(f"Creada clave de configuración: {data['key']}")
            else:
                logger.warning(f"Ya existe la clave {data['key']}. Saltando.")

        db.commit()
        logger.info("¡Datos iniciales creados con éxito!")

    except Exception as e:
        logger.error(f"Error al crear datos: {e}")
        db.rollback() # Si algo falla, deshacemos todo
        raise
    finally:
        if own_session:
            db.close()

# Esto hace que el script se pueda ejecutar
if __name__ == "__main__":
    # Configuración básica para ver mensajes en la terminal
    logging.basicConfig(level=logging.INFO)
    logger.info("Iniciando el proceso de 'sembrado' de datos...")
    seed_data()
