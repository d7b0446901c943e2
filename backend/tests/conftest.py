from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from taller import models, security
from taller.database import Base, get_db
from taller.main import app

# Base en memoria compartida por todas las sesiones del test
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PASSWORD = "secreto123"


def ts(year, month, day, hour=12):
    """Timestamp UTC al mediodía: cae el mismo día en la zona horaria local."""
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    # Sin expirar al hacer commit: los usuarios del fixture se usan desde otras sesiones
    session = TestingSessionLocal(expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user(db):
    def _make_user(email="admin@taller.test", role="admin", full_name=None, password=TEST_PASSWORD):
        user = models.User(
            email=email,
            full_name=full_name,
            role=role,
            hashed_password=security.get_password_hash(password),
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def admin_user(make_user):
    return make_user()


@pytest.fixture
def client(db, admin_user):
    """TestClient autenticado como admin. `client.login_as(user)` cambia de usuario."""
    state = {"user": admin_user}

    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[security.get_current_user] = lambda: state["user"]

    with TestClient(app) as test_client:
        def login_as(user):
            state["user"] = user
        test_client.login_as = login_as
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def sample_client(client):
    response = client.post("/clients/", json={
        "name": "Juan",
        "last_name": "Pérez",
        "email": "juan@example.com",
        "phone": "+54 9 11 1234-5678",
    })
    assert response.status_code == 201
    return response.json()
