def add_document(client, client_id, total_unit_price, issue_date, **overrides):
    payload = {
        "client_id": client_id,
        "issue_date": issue_date,
        "items": [{"description": "Servicio", "quantity": 1, "unit_price": total_unit_price}],
        "tax": 0,
    }
    payload.update(overrides)
    response = client.post("/documents/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_monthly_sales_endpoint(client, sample_client):
    add_document(client, sample_client["id"], 100, "2024-03-05T12:00:00Z")
    add_document(client, sample_client["id"], 300, "2024-03-06T12:00:00Z", doc_type="presupuesto")
    client.post("/receipts/", json={"client_id": sample_client["id"], "amount": 40, "issue_date": "2024-03-07T12:00:00Z"})

    response = client.get("/reports/monthly-sales", params={"month": 3, "year": 2024})

    assert response.status_code == 200
    assert response.json() == {"total_invoiced": 100.0, "total_collected": 40.0, "number_of_invoices": 1}


def test_documents_posted_with_local_dates_stay_in_their_month(client, sample_client):
    add_document(client, sample_client["id"], 100, "2024-03-01")
    add_document(client, sample_client["id"], 50, "2024-03-31T23:30:00")

    march = client.get("/reports/monthly-sales", params={"month": 3, "year": 2024}).json()
    february = client.get("/reports/monthly-sales", params={"month": 2, "year": 2024}).json()
    april = client.get("/reports/monthly-sales", params={"month": 4, "year": 2024}).json()

    assert march == {"total_invoiced": 150.0, "total_collected": 0.0, "number_of_invoices": 2}
    assert february["number_of_invoices"] == 0
    assert april["number_of_invoices"] == 0

    sales = client.get("/reports/sales-by-client", params={"start_date": "2024-03-01", "end_date": "2024-03-01"}).json()
    assert sales == [{"client_id": sample_client["id"], "client_name": "Juan", "total_invoiced": 100.0}]


def test_monthly_sales_rejects_bad_month(client):
    assert client.get("/reports/monthly-sales", params={"month": 0, "year": 2024}).status_code == 400


def test_sales_by_client_rejects_inverted_range(client):
    response = client.get("/reports/sales-by-client", params={"start_date": "2024-02-01", "end_date": "2024-01-01"})
    assert response.status_code == 400


def test_revenue_by_service_type_endpoint(client, sample_client):
    order = client.post("/repair-orders/", json={"client_id": sample_client["id"], "equipment_type": "Consola"}).json()
    add_document(client, sample_client["id"], 250, "2024-05-10T12:00:00Z", repair_order_id=order["id"])
    add_document(client, sample_client["id"], 80, "2024-05-11T12:00:00Z")

    response = client.get("/reports/revenue-by-service-type", params={"start_date": "2024-05-01", "end_date": "2024-05-31"})

    assert response.json() == [{"equipment_type": "Consola", "total_revenue": 250.0}]


def test_invoice_aging_endpoint(client, sample_client):
    add_document(client, sample_client["id"], 100, "2024-01-01T12:00:00Z", due_date="2024-01-31T12:00:00Z")

    response = client.get("/reports/invoice-aging", params={"as_of": "2024-03-15"})

    buckets = {b["age_bucket"]: b for b in response.json()}
    assert list(buckets) == ["0-30 days", "31-60 days", "61-90 days", "90+ days"]
    assert buckets["31-60 days"]["number_of_invoices"] == 1
    assert buckets["31-60 days"]["total_amount"] == 100.0


def test_client_reports_endpoints(client, sample_client):
    add_document(client, sample_client["id"], 60, "2024-05-10T12:00:00Z")

    activity = client.get("/reports/client-activity", params={"start_date": "2024-05-01", "end_date": "2024-05-31"}).json()
    assert activity == [{
        "client_id": sample_client["id"],
        "client_name": "Juan Pérez",
        "number_of_orders": 0,
        "total_invoiced_amount": 60.0,
    }]

    sales = client.get("/reports/sales-by-client", params={"start_date": "2024-05-01", "end_date": "2024-05-31"}).json()
    assert sales == [{"client_id": sample_client["id"], "client_name": "Juan", "total_invoiced": 60.0}]


def test_average_repair_time_endpoint(client, sample_client):
    client.post("/repair-orders/", json={
        "client_id": sample_client["id"],
        "equipment_type": "Tablet",
        "entry_date": "2024-02-01T12:00:00Z",
        "completion_date": "2024-02-06T12:00:00Z",
    })
    client.post("/repair-orders/", json={"client_id": sample_client["id"], "equipment_type": "Tablet"})

    response = client.get("/reports/average-repair-time", params={"group_by_equipment": True})

    assert response.json() == {
        "overall_average_time": 5.0,
        "order_count": 1,
        "by_equipment_type": [{"equipment_type": "Tablet", "average_time": 5.0, "order_count": 1}],
    }


def test_orders_by_equipment_endpoint_validates_group(client):
    response = client.get("/reports/orders-by-equipment", params={"group_by": "color"})
    assert response.status_code == 422
