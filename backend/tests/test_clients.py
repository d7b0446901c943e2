def test_create_and_search_clients(client, sample_client):
    client.post("/clients/", json={"name": "María", "last_name": "López", "identification": "30111222"})

    response = client.get("/clients/", params={"search": "3011"})

    assert response.status_code == 200
    assert [c["name"] for c in response.json()] == ["María"]


def test_clients_are_listed_by_name(client, sample_client):
    client.post("/clients/", json={"name": "Ana"})
    names = [c["name"] for c in client.get("/clients/").json()]
    assert names == sorted(names)


def test_update_client(client, sample_client):
    response = client.patch(f"/clients/{sample_client['id']}", json={"phone": "1155556666"})
    assert response.status_code == 200
    assert response.json()["phone"] == "1155556666"
    assert response.json()["name"] == "Juan"


def test_client_name_is_required(client):
    assert client.post("/clients/", json={"name": ""}).status_code == 422


def test_missing_client_is_404(client):
    assert client.get("/clients/999").status_code == 404
    assert client.patch("/clients/999", json={"name": "X"}).status_code == 404


def test_delete_client_without_history(client):
    created = client.post("/clients/", json={"name": "Temporal"}).json()
    assert client.delete(f"/clients/{created['id']}").status_code == 200
    assert client.get(f"/clients/{created['id']}").status_code == 404


def test_client_with_orders_cannot_be_deleted(client, sample_client):
    client.post("/repair-orders/", json={"client_id": sample_client["id"], "equipment_type": "Celular"})
    assert client.delete(f"/clients/{sample_client['id']}").status_code == 400


def test_whatsapp_link_keeps_only_digits(client, sample_client):
    response = client.get(f"/clients/{sample_client['id']}/whatsapp-link")
    assert response.status_code == 200
    assert response.json() == {"url": "https://wa.me/5491112345678"}


def test_whatsapp_link_requires_phone(client):
    created = client.post("/clients/", json={"name": "Sin teléfono"}).json()
    response = client.get(f"/clients/{created['id']}/whatsapp-link")
    assert response.status_code == 400


def test_client_balances(client, sample_client):
    client_id = sample_client["id"]
    item = {"description": "Reparación", "quantity": 1, "unit_price": 100}
    client.post("/documents/", json={"client_id": client_id, "items": [item]})
    client.post("/documents/", json={"client_id": client_id, "doc_type": "presupuesto", "items": [item]})
    cancelled = client.post("/documents/", json={"client_id": client_id, "items": [item]}).json()
    client.patch(f"/documents/{cancelled['id']}", json={"status": "Cancelada"})
    client.post("/payments/", json={"client_id": client_id, "amount": 50, "payment_method": "efectivo"})

    other = client.post("/clients/", json={"name": "Zoe"}).json()

    balances = {b["client_id"]: b for b in client.get("/client-balances").json()}

    assert balances[client_id]["total_invoiced"] == 121.0
    assert balances[client_id]["total_paid"] == 50.0
    assert balances[client_id]["balance"] == 71.0
    assert balances[client_id]["client_name"] == "Juan Pérez"
    assert balances[other["id"]]["balance"] == 0.0


def test_payments_crud(client, sample_client):
    response = client.post("/payments/", json={
        "client_id": sample_client["id"],
        "amount": 30,
        "payment_method": "transferencia",
        "invoice_id": "",
    })
    assert response.status_code == 201
    payment = response.json()
    assert payment["invoice_id"] is None

    listed = client.get("/payments/", params={"client_id": sample_client["id"]}).json()
    assert [p["id"] for p in listed] == [payment["id"]]

    updated = client.patch(f"/payments/{payment['id']}", json={"amount": 35})
    assert updated.json()["amount"] == 35

    assert client.delete(f"/payments/{payment['id']}").status_code == 200
    assert client.get(f"/payments/{payment['id']}").status_code == 404


def test_action_history_records_changes(client, sample_client):
    client.patch(f"/clients/{sample_client['id']}", json={"notes": "Cliente frecuente"})

    response = client.get("/history", params={"entity_type": "clients", "entity_id": str(sample_client["id"])})

    assert response.status_code == 200
    actions = {h["action_type"] for h in response.json()}
    assert actions == {"CREAR", "ACTUALIZAR"}
