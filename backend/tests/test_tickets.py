def test_resolving_a_ticket_stamps_resolved_at_once(client):
    ticket = client.post("/tickets/", json={"title": "No enciende", "priority": "High"}).json()
    assert ticket["status"] == "Open"
    assert ticket["resolved_at"] is None

    resolved = client.patch(f"/tickets/{ticket['id']}", json={"status": "Resolved"}).json()
    assert resolved["resolved_at"] is not None

    closed = client.patch(f"/tickets/{ticket['id']}", json={"status": "Closed"}).json()
    assert closed["resolved_at"] == resolved["resolved_at"]


def test_filter_tickets_by_status(client):
    client.post("/tickets/", json={"title": "Abierto"})
    client.post("/tickets/", json={"title": "Cerrado", "status": "Closed"})

    titles = [t["title"] for t in client.get("/tickets/", params={"status": "Closed"}).json()]
    assert titles == ["Cerrado"]


def test_ticket_volume_report_reads_stored_tickets(client):
    client.post("/tickets/", json={"title": "Pantalla", "priority": "High"})
    client.post("/tickets/", json={"title": "Batería", "priority": "Low", "status": "Resolved"})

    response = client.get("/reports/ticket-volume", params={"start_date": "2000-01-01", "end_date": "2100-01-01"})

    assert response.status_code == 200
    body = response.json()
    assert body["created_count"] == 2
    assert body["resolved_count"] == 1
    assert body["average_resolution_time"] == 0
    assert {p["priority"]: p["count"] for p in body["by_priority"]} == {"High": 1, "Low": 1}


def test_ticket_title_is_required(client):
    assert client.post("/tickets/", json={"title": ""}).status_code == 422
