from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL

# SQLite necesita compartir la conexión entre los hilos del servidor
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

# Creamos el "motor" de SQLAlchemy. Es el punto de entrada a la base de datos.
engine = create_engine(DATABASE_URL, connect_args=connect_args)

# Cada sesión es una conversación con la base de datos.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Nuestros modelos heredan de esta clase.
Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
