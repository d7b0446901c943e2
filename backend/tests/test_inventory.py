from taller import crud


def create_item(client, **overrides):
    payload = {
        "name": "Módulo pantalla A10",
        "category": "Repuestos",
        "sku": "PAN-A10",
        "quantity": 10,
        "cost_price": 12.5,
        "selling_price": 25.0,
        "minimum_stock": 2,
    }
    payload.update(overrides)
    response = client.post("/inventory/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_adjust_stock_add_and_subtract(client):
    item = create_item(client)

    response = client.post(f"/inventory/{item['id']}/adjust", json={"quantity": 3, "operation": "subtract"})
    assert response.status_code == 200
    assert response.json()["quantity"] == 7

    response = client.post(f"/inventory/{item['id']}/adjust", json={"quantity": 10, "operation": "subtract"})
    assert response.status_code == 200
    assert response.json()["quantity"] == -3

    response = client.post(f"/inventory/{item['id']}/adjust", json={"quantity": 5, "operation": "add"})
    assert response.json()["quantity"] == 2


def test_adjust_stock_validates_input(client):
    item = create_item(client)

    assert client.post(f"/inventory/{item['id']}/adjust", json={"quantity": 0, "operation": "add"}).status_code == 422
    assert client.post(f"/inventory/{item['id']}/adjust", json={"quantity": 1, "operation": "multiply"}).status_code == 422


def test_adjust_stock_unknown_item(client):
    response = client.post("/inventory/999/adjust", json={"quantity": 1, "operation": "add"})
    assert response.status_code == 404


def test_adjust_stock_writes_history(client, db):
    item = create_item(client)
    crud.adjust_stock(db, item["id"], 4, "add")

    history = crud.get_action_history(db, entity_type="inventory", entity_id=item["id"])
    assert [h.action_type for h in history][0] == "AJUSTE_STOCK"


def test_duplicate_sku_is_rejected(client):
    create_item(client)
    response = client.post("/inventory/", json={"name": "Otro", "sku": "PAN-A10"})
    assert response.status_code == 400


def test_update_item_does_not_touch_quantity(client):
    item = create_item(client)
    response = client.patch(f"/inventory/{item['id']}", json={"selling_price": 30.0, "quantity": 99})
    assert response.status_code == 200
    assert response.json()["selling_price"] == 30.0
    assert response.json()["quantity"] == 10


def test_filter_items_by_category(client):
    create_item(client)
    create_item(client, name="Funda", category="Accesorios", sku="FUN-1")

    response = client.get("/inventory/", params={"category": "Accesorios"})
    assert [i["name"] for i in response.json()] == ["Funda"]


def test_stock_status_report(client):
    create_item(client, quantity=1, minimum_stock=2)

    response = client.get("/reports/stock-status")

    assert response.status_code == 200
    row = response.json()[0]
    assert row["total_value"] == 12.5
    assert row["is_low_stock"] is True
