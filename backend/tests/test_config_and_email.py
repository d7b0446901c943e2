import threading

import pytest
from fastapi_mail import FastMail

from taller import crud, models
from taller.seed import seed_data

SMTP = {
    "host": "smtp.example.com",
    "port": 587,
    "secure": False,
    "username": "taller@example.com",
    "password": "clave",
    "from_email": "taller@example.com",
    "from_name": "Taller",
}


@pytest.fixture
def sent_messages(monkeypatch):
    sent = []

    async def fake_send_message(self, message, template_name=None):
        sent.append(message)

    monkeypatch.setattr(FastMail, "send_message", fake_send_message)
    return sent


def create_factura(client, client_id):
    response = client.post("/documents/", json={
        "client_id": client_id,
        "items": [{"description": "Cambio de batería", "quantity": 1, "unit_price": 100}],
    })
    assert response.status_code == 201
    return response.json()


def test_smtp_config_round_trip(client):
    assert client.get("/config/smtp").status_code == 404

    assert client.put("/config/smtp", json=SMTP).status_code == 200
    assert client.get("/config/smtp").json() == SMTP


def test_smtp_config_requires_host(client):
    assert client.put("/config/smtp", json={**SMTP, "host": ""}).status_code == 422


def test_ui_preferences_default_and_update(client):
    assert client.get("/config/ui-preferences").json() == {"dark_mode": False, "sidebar_collapsed": False}

    client.put("/config/ui-preferences", json={"dark_mode": True, "sidebar_collapsed": False})
    assert client.get("/config/ui-preferences").json()["dark_mode"] is True


def test_broken_smtp_config_is_ignored(db):
    crud.set_system_config(db, crud.SMTP_CONFIG_KEY, "{no es json")
    assert crud.get_smtp_config(db) is None


def test_send_document_email(client, sample_client, sent_messages):
    factura = create_factura(client, sample_client["id"])
    client.put("/config/smtp", json=SMTP)

    response = client.post(f"/documents/{factura['id']}/email")

    assert response.status_code == 200, response.text
    assert len(sent_messages) == 1
    assert factura["invoice_number"] in sent_messages[0].subject
    assert "juan@example.com" in str(sent_messages[0].recipients[0])

    history = client.get("/history", params={"entity_type": "invoices", "entity_id": str(factura["id"])}).json()
    assert "EMAIL" in {h["action_type"] for h in history}


def test_email_requires_smtp_config(client, sample_client, sent_messages):
    factura = create_factura(client, sample_client["id"])
    response = client.post(f"/documents/{factura['id']}/email")
    assert response.status_code == 400
    assert sent_messages == []


def test_email_requires_client_email(client, sent_messages):
    no_email = client.post("/clients/", json={"name": "Sin email"}).json()
    factura = create_factura(client, no_email["id"])
    client.put("/config/smtp", json=SMTP)

    assert client.post(f"/documents/{factura['id']}/email").status_code == 400


def test_seed_creates_admin_and_default_config(db):
    seed_data(db)
    seed_data(db)

    assert db.query(models.User).filter_by(role="admin").count() == 1
    assert crud.get_overdue_threshold(db) == 7
    assert crud.get_ui_preferences(db).dark_mode is False


def test_email_database_work_runs_outside_the_event_loop(client, sample_client, monkeypatch):
    factura = create_factura(client, sample_client["id"])
    client.put("/config/smtp", json=SMTP)
    threads = {}

    original_get_smtp_config = crud.get_smtp_config

    def tracking_get_smtp_config(db):
        threads["db"] = threading.get_ident()
        return original_get_smtp_config(db)

    async def fake_send_message(self, message, template_name=None):
        threads["loop"] = threading.get_ident()

    monkeypatch.setattr(crud, "get_smtp_config", tracking_get_smtp_config)
    monkeypatch.setattr(FastMail, "send_message", fake_send_message)

    assert client.post(f"/documents/{factura['id']}/email").status_code == 200
    assert threads["db"] != threads["loop"]
