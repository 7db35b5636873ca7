"""HTTP tests for customers, pets, services and products."""

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from pethub.extensions import db
from pethub.models import Product
from pethub.services import catalog_service, customers_service


class TestCustomers:

    def test_create_and_get(self, client, owner_headers_a):
        resp = client.post(
            "/api/customers",
            json={"name": "Fernanda", "phone": "555-9999", "email": "FER@Mail.test"},
            headers=owner_headers_a,
        )
        assert resp.status_code == 201
        assert resp.json["email"] == "fer@mail.test"

        got = client.get(f"/api/customers/{resp.json['id']}", headers=owner_headers_a)
        assert got.json["pets"] == []

    def test_create_missing_phone(self, client, owner_headers_a):
        resp = client.post("/api/customers", json={"name": "X"}, headers=owner_headers_a)
        assert resp.status_code == 400
        assert resp.json["details"]["fields"] == ["phone"]

    def test_search_and_deactivate(self, client, owner_headers_a, customer_a, other_customer_a):
        found = client.get("/api/customers?search=carla", headers=owner_headers_a).json
        assert [c["id"] for c in found["items"]] == [customer_a.id]

        assert client.delete(f"/api/customers/{customer_a.id}", headers=owner_headers_a).json["is_active"] is False

        active = client.get("/api/customers", headers=owner_headers_a).json
        assert [c["id"] for c in active["items"]] == [other_customer_a.id]

        everyone = client.get("/api/customers?include_inactive=true", headers=owner_headers_a).json
        assert everyone["count"] == 2


class TestPets:

    def test_create_update_delete(self, client, owner_headers_a, customer_a):
        resp = client.post(
            f"/api/customers/{customer_a.id}/pets",
            json={"name": "Bidu", "breed": "SRD", "size": "Medium", "weight": 12.5},
            headers=owner_headers_a,
        )
        assert resp.status_code == 201
        assert resp.json["size"] == "medium"
        pet_id = resp.json["id"]

        updated = client.put(f"/api/pets/{pet_id}", json={"age": 3}, headers=owner_headers_a)
        assert updated.json["age"] == 3

        assert client.delete(f"/api/pets/{pet_id}", headers=owner_headers_a).status_code == 200
        assert client.get(f"/api/pets/{pet_id}", headers=owner_headers_a).status_code == 404

    def test_bad_size(self, client, owner_headers_a, customer_a):
        resp = client.post(
            f"/api/customers/{customer_a.id}/pets",
            json={"name": "Bidu", "breed": "SRD", "size": "xl"},
            headers=owner_headers_a,
        )
        assert resp.status_code == 400

    def test_pet_with_history_cannot_be_deleted(self, client, owner_headers_a, large_pet, bath_service):
        client.post(
            "/api/appointments",
            json={
                "pet_id": large_pet.id,
                "service_id": bath_service.id,
                "appointment_date": "2024-03-10",
                "start_time": "09:00",
            },
            headers=owner_headers_a,
        )
        resp = client.delete(f"/api/pets/{large_pet.id}", headers=owner_headers_a)
        assert resp.status_code == 409

    def test_list_for_customer(self, client, owner_headers_a, customer_a, large_pet, small_pet, other_pet_a):
        resp = client.get(f"/api/customers/{customer_a.id}/pets", headers=owner_headers_a)
        assert resp.json["count"] == 2


class TestServices:

    def test_create_and_update(self, client, owner_headers_a):
        resp = client.post(
            "/api/services",
            json={
                "name": "Nail trim",
                "duration_minutes": 15,
                "price_small_cents": 1000,
                "price_medium_cents": 1200,
                "price_large_cents": 1500,
            },
            headers=owner_headers_a,
        )
        assert resp.status_code == 201

        updated = client.put(
            f"/api/services/{resp.json['id']}", json={"duration_minutes": 20}, headers=owner_headers_a,
        )
        assert updated.json["duration_minutes"] == 20

    def test_zero_duration(self, client, owner_headers_a):
        resp = client.post(
            "/api/services",
            json={
                "name": "Nothing",
                "duration_minutes": 0,
                "price_small_cents": 1,
                "price_medium_cents": 1,
                "price_large_cents": 1,
            },
            headers=owner_headers_a,
        )
        assert resp.status_code == 400

    def test_deactivate(self, client, owner_headers_a, bath_service):
        resp = client.delete(f"/api/services/{bath_service.id}", headers=owner_headers_a)
        assert resp.json["is_active"] is False

        active = client.get("/api/services?active_only=true", headers=owner_headers_a).json
        assert active["count"] == 0


class TestProducts:

    def test_create(self, client, owner_headers_a):
        resp = client.post(
            "/api/products",
            json={"name": "Brush", "price_cents": 2500, "stock_quantity": 7, "barcode": "123"},
            headers=owner_headers_a,
        )
        assert resp.status_code == 201
        assert resp.json["stock_quantity"] == 7

    def test_duplicate_barcode(self, client, owner_headers_a, shampoo):
        resp = client.post(
            "/api/products",
            json={"name": "Copy", "price_cents": 100, "barcode": shampoo.barcode},
            headers=owner_headers_a,
        )
        assert resp.status_code == 409

    def test_stock_not_updatable(self, client, owner_headers_a, shampoo):
        resp = client.put(f"/api/products/{shampoo.id}", json={"stock_quantity": 100}, headers=owner_headers_a)
        assert resp.status_code == 400

    def test_adjust_stock(self, client, owner_headers_a, shampoo):
        url = f"/api/products/{shampoo.id}/stock"

        assert client.post(url, json={"delta": 10, "reason": "delivery"}, headers=owner_headers_a).json["stock_quantity"] == 15

        resp = client.post(url, json={"delta": -16}, headers=owner_headers_a)
        assert resp.status_code == 409
        assert resp.json["code"] == "insufficient_stock"

        assert client.post(url, json={"delta": 0}, headers=owner_headers_a).status_code == 400
        assert client.post(url, json={}, headers=owner_headers_a).status_code == 400

    def test_filters(self, client, owner_headers_a, shampoo, treats):
        by_barcode = client.get(f"/api/products?barcode={shampoo.barcode}", headers=owner_headers_a).json
        assert [p["id"] for p in by_barcode["items"]] == [shampoo.id]

        food = client.get("/api/products?category=food", headers=owner_headers_a).json
        assert [p["id"] for p in food["items"]] == [treats.id]

        client.post(f"/api/products/{shampoo.id}/stock", json={"delta": -3}, headers=owner_headers_a)
        low = client.get("/api/products?low_stock_only=1", headers=owner_headers_a).json
        assert [p["id"] for p in low["items"]] == [shampoo.id]


def _locked(*args, **kwargs):
    raise OperationalError("SELECT", {}, Exception("database is locked"))


class TestStoreFailures:
    """Store errors surface as 503 dependency_error; reads are retried."""

    def test_customer_list_store_down(self, client, owner_headers_a, customer_a, monkeypatch):
        monkeypatch.setattr(customers_service, "scoped_query", _locked)

        resp = client.get("/api/customers", headers=owner_headers_a)

        assert resp.status_code == 503
        assert resp.json["code"] == "dependency_error"
        assert resp.json["details"]["attempts"] == 3

    def test_read_recovers_after_transient_failure(self, client, owner_headers_a, customer_a, monkeypatch):
        real = customers_service.scoped_query
        calls = []

        def _flaky(model, ctx):
            calls.append(model)
            if len(calls) == 1:
                _locked()
            return real(model, ctx)

        monkeypatch.setattr(customers_service, "scoped_query", _flaky)

        resp = client.get("/api/customers", headers=owner_headers_a)

        assert resp.status_code == 200
        assert resp.json["count"] == 1
        assert len(calls) == 2

    def test_product_list_store_down(self, client, owner_headers_a, shampoo, monkeypatch):
        monkeypatch.setattr(catalog_service, "scoped_query", _locked)

        resp = client.get("/api/products", headers=owner_headers_a)

        assert resp.status_code == 503

    def test_customer_write_is_not_retried(self, client, owner_headers_a, monkeypatch):
        calls = []

        def _write_fails(*args, **kwargs):
            calls.append(1)
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(customers_service, "_apply_patch", _write_fails)

        resp = client.post(
            "/api/customers", json={"name": "Gil", "phone": "555-4444"}, headers=owner_headers_a,
        )

        assert resp.status_code == 503
        assert calls == [1]

    def test_stale_product_update(self, client, owner_headers_a, shampoo, monkeypatch):
        """A sale bumped the version under us: 503, nothing written."""
        def _stale(*args, **kwargs):
            raise StaleDataError("UPDATE statement on table 'products' expected to update 1 row(s); 0 were matched.")

        monkeypatch.setattr(catalog_service, "_apply_patch", _stale)

        resp = client.put(f"/api/products/{shampoo.id}", json={"price_cents": 2500}, headers=owner_headers_a)

        assert resp.status_code == 503
        assert resp.json["details"]["attempts"] == 1
        assert db.session.get(Product, shampoo.id).price_cents == 1990
