from datetime import datetime, timedelta, timezone

from taller import crud


def days_ago(days):
    return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()


def create_order(client, client_id, **overrides):
    payload = {"client_id": client_id, "equipment_type": "Celular", "equipment_brand": "Samsung"}
    payload.update(overrides)
    response = client.post("/repair-orders/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_order_numbers_are_sequential(client, sample_client):
    first = create_order(client, sample_client["id"])
    second = create_order(client, sample_client["id"])

    assert second["order_number"] == first["order_number"] + 1
    assert first["order_code"] == f"{first['order_number']:05d}"
    assert first["status"] == "Ingresado"


def test_order_for_unknown_client_is_rejected(client):
    response = client.post("/repair-orders/", json={"client_id": 999})
    assert response.status_code == 400


def test_orders_are_listed_newest_first(client, sample_client):
    old = create_order(client, sample_client["id"], entry_date=days_ago(5))
    new = create_order(client, sample_client["id"], entry_date=days_ago(1))

    ids = [o["id"] for o in client.get("/repair-orders/").json()]
    assert ids == [new["id"], old["id"]]


def test_update_order_status_and_costs(client, sample_client):
    created = create_order(client, sample_client["id"])
    response = client.patch(f"/repair-orders/{created['id']}", json={
        "status": "En reparación",
        "labor_cost": 5000,
        "parts_cost": 12000,
    })
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "En reparación"
    # Los costos son independientes: el total no se recalcula
    assert body["total_cost"] is None


def test_assigning_unknown_technician_is_rejected(client, sample_client):
    created = create_order(client, sample_client["id"])
    response = client.patch(f"/repair-orders/{created['id']}", json={"assigned_technician_id": 999})
    assert response.status_code == 400


def test_completion_before_entry_is_rejected(client, sample_client):
    response = client.post("/repair-orders/", json={
        "client_id": sample_client["id"],
        "entry_date": "2024-03-10T12:00:00Z",
        "completion_date": "2024-03-05T12:00:00Z",
    })
    assert response.status_code == 400

    created = create_order(client, sample_client["id"], entry_date="2024-03-10T12:00:00Z")
    response = client.patch(f"/repair-orders/{created['id']}", json={"completion_date": "2024-03-09T12:00:00Z"})
    assert response.status_code == 400

    report = client.get("/reports/average-repair-time").json()
    assert report["order_count"] == 0


def test_completion_on_entry_day_is_accepted(client, sample_client):
    created = create_order(client, sample_client["id"], entry_date="2024-03-10T09:00:00Z")
    response = client.patch(f"/repair-orders/{created['id']}", json={"completion_date": "2024-03-10T18:00:00Z"})
    assert response.status_code == 200


def test_overdue_orders_use_configured_threshold(client, sample_client):
    client_id = sample_client["id"]
    late = create_order(client, client_id, entry_date=days_ago(10))
    recent = create_order(client, client_id, entry_date=days_ago(2))
    create_order(client, client_id, entry_date=days_ago(20), status="Entregado")
    create_order(client, client_id, entry_date=days_ago(30), completion_date=days_ago(25))

    overdue = client.get("/repair-orders/overdue").json()
    assert [o["id"] for o in overdue] == [late["id"]]
    assert overdue[0]["days_in_service"] == 10
    assert overdue[0]["client_name"] == "Juan Pérez"

    assert client.put("/config/overdue-threshold", json={"value": "1"}).status_code == 200
    overdue = client.get("/repair-orders/overdue").json()
    assert [o["id"] for o in overdue] == [late["id"], recent["id"]]


def test_invalid_threshold_falls_back_to_default(db):
    crud.set_system_config(db, crud.OVERDUE_THRESHOLD_KEY, "abc")
    assert crud.get_overdue_threshold(db) == 7

    crud.set_system_config(db, crud.OVERDUE_THRESHOLD_KEY, "12")
    assert crud.get_overdue_threshold(db) == 12


def test_overdue_threshold_must_be_a_number(client):
    assert client.put("/config/overdue-threshold", json={"value": "muchos"}).status_code == 400
    assert client.put("/config/overdue-threshold", json={"value": "-3"}).status_code == 400
    assert client.get("/config/overdue-threshold").json() == {"days": 7}


def test_technician_performance_report_fills_names(client, sample_client, make_user):
    technician = make_user(email="tecnico@taller.test", role="technician", full_name="Lucía Díaz")
    create_order(
        client, sample_client["id"],
        entry_date="2024-03-01T12:00:00Z",
        completion_date="2024-03-04T12:00:00Z",
        assigned_technician_id=technician.id,
    )

    response = client.get("/reports/technician-performance")

    assert response.status_code == 200
    assert response.json() == [{
        "technician_id": technician.id,
        "technician_name": "Lucía Díaz",
        "orders_completed": 1,
        "average_repair_time": 3.0,
    }]


def test_order_status_report(client, sample_client):
    create_order(client, sample_client["id"])
    create_order(client, sample_client["id"])
    create_order(client, sample_client["id"], status="Listo")

    counts = {r["status"]: r["count"] for r in client.get("/reports/order-status").json()}
    assert counts == {"Ingresado": 2, "Listo": 1}
