def create_provider(client, **overrides):
    payload = {"name": "Repuestos Sur", "tax_id": "30-71234567-9"}
    payload.update(overrides)
    response = client.post("/providers/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_company_requires_business_name_and_contact(client):
    response = client.post("/providers/", json={"name": "Distribuidora", "type": "company"})
    assert response.status_code == 422

    provider = create_provider(client, type="company", business_name="Distribuidora SA", contact_name="Carlos")
    assert provider["type"] == "company"


def test_update_to_company_without_contact_is_rejected(client):
    provider = create_provider(client)
    response = client.patch(f"/providers/{provider['id']}", json={"type": "company"})
    assert response.status_code == 400


def test_search_providers_is_case_insensitive(client):
    create_provider(client)
    create_provider(client, name="Celulares Norte", tax_id="20-11111111-1", business_name="CELU NORTE SRL")

    by_name = client.get("/providers/search", params={"q": "repuestos"}).json()
    assert [p["name"] for p in by_name] == ["Repuestos Sur"]

    by_business_name = client.get("/providers/search", params={"q": "celu norte"}).json()
    assert [p["name"] for p in by_business_name] == ["Celulares Norte"]

    by_tax_id = client.get("/providers/search", params={"q": "71234567"}).json()
    assert [p["name"] for p in by_tax_id] == ["Repuestos Sur"]


def test_delete_provider_releases_items(client):
    provider = create_provider(client)
    item = client.post("/inventory/", json={"name": "Batería", "supplier_id": provider["id"]}).json()

    assert client.delete(f"/providers/{provider['id']}").status_code == 200
    assert client.get(f"/inventory/{item['id']}").json()["supplier_id"] is None
