"""Tests for the service catalog endpoints"""

from conftest import CLIENT, OTHER, PROVIDER, SERVICE_PAYLOAD


class TestCreateService:

    def test_provider_creates_service(self, client):
        resp = client.post("/services", json=SERVICE_PAYLOAD, headers=PROVIDER)
        assert resp.status_code == 201
        data = resp.json()
        assert data["title"] == "Website Redesign"
        assert data["status"] == "active"
        assert data["packages"][0]["name"] == "Premium"

    def test_status_defaults_to_draft(self, client):
        payload = {k: v for k, v in SERVICE_PAYLOAD.items() if k != "status"}
        resp = client.post("/services", json=payload, headers=PROVIDER)
        assert resp.status_code == 201
        assert resp.json()["status"] == "draft"

    def test_client_cannot_create_service(self, client):
        resp = client.post("/services", json=SERVICE_PAYLOAD, headers=CLIENT)
        assert resp.status_code == 403

    def test_validation_errors(self, client):
        for field, value in [
            ("title", "ab"),
            ("description", "short"),
            ("base_price", 0),
            ("base_price", 100001),
            ("base_price", "NaN"),
            ("base_price", "Infinity"),
            ("packages", [{"name": "Basic", "price": "NaN"}]),
            ("currency", "GBP"),
            ("tags", [f"t{i}" for i in range(11)]),
            ("tags", ["x" * 31]),
        ]:
            payload = dict(SERVICE_PAYLOAD, **{field: value})
            resp = client.post("/services", json=payload, headers=PROVIDER)
            assert resp.status_code == 422, (field, value)
            assert resp.json()["message"] == "Invalid request data"

    def test_too_many_packages(self, client):
        payload = dict(SERVICE_PAYLOAD, packages=[{"name": f"P{i}", "price": 10} for i in range(6)])
        resp = client.post("/services", json=payload, headers=PROVIDER)
        assert resp.status_code == 422


class TestListServices:

    def test_public_list_hides_drafts(self, client):
        client.post("/services", json=SERVICE_PAYLOAD, headers=PROVIDER)
        client.post("/services", json=dict(SERVICE_PAYLOAD, title="Draft thing", status="draft"), headers=PROVIDER)

        resp = client.get("/services", headers=CLIENT)
        assert resp.status_code == 200
        data = resp.json()
        assert [s["title"] for s in data["services"]] == ["Website Redesign"]
        assert data["pagination"]["total"] == 1

        mine = client.get("/services/mine", headers=PROVIDER).json()
        assert len(mine) == 2

    def test_price_filter_and_sort(self, client):
        client.post("/services", json=dict(SERVICE_PAYLOAD, title="Cheap", base_price=10), headers=PROVIDER)
        client.post("/services", json=dict(SERVICE_PAYLOAD, title="Pricey", base_price=900), headers=PROVIDER)

        resp = client.get("/services?min_price=50&sort=price&order=asc", headers=CLIENT)
        titles = [s["title"] for s in resp.json()["services"]]
        assert titles == ["Pricey"]

        resp = client.get("/services?sort=price&order=asc", headers=CLIENT)
        assert [s["title"] for s in resp.json()["services"]] == ["Cheap", "Pricey"]

    def test_search(self, client):
        client.post("/services", json=SERVICE_PAYLOAD, headers=PROVIDER)
        assert client.get("/services?search=redesign", headers=CLIENT).json()["pagination"]["total"] == 1
        assert client.get("/services?search=plumbing", headers=CLIENT).json()["pagination"]["total"] == 0


class TestUpdateService:

    def test_owner_updates(self, client, service):
        resp = client.patch(f"/services/{service['id']}", json={"status": "inactive"}, headers=PROVIDER)
        assert resp.status_code == 200
        assert resp.json()["status"] == "inactive"
        assert resp.json()["title"] == service["title"]

    def test_other_user_forbidden(self, client, service):
        resp = client.patch(f"/services/{service['id']}", json={"title": "Hijacked"}, headers=OTHER)
        assert resp.status_code == 403

    def test_inactive_service_hidden_from_others(self, client, service):
        client.patch(f"/services/{service['id']}", json={"status": "inactive"}, headers=PROVIDER)
        assert client.get(f"/services/{service['id']}", headers=CLIENT).status_code == 404
        assert client.get(f"/services/{service['id']}", headers=PROVIDER).status_code == 200
