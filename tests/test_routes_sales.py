"""HTTP tests for /api/sales and /api/reports."""

from pethub.extensions import db
from pethub.models import Product
from pethub.time_utils import month_key, utcnow


def _sell(client, headers, product, quantity, **extra):
    body = {"lines": [{"product_id": product.id, "quantity": quantity}], "payment_method": "cash"}
    body.update(extra)
    return client.post("/api/sales", json=body, headers=headers)


def test_sale_and_stock(client, owner_headers_a, shampoo):
    resp = _sell(client, owner_headers_a, shampoo, 5)

    assert resp.status_code == 201
    assert resp.json["final_amount_cents"] == 5 * 1990
    assert resp.json["items"][0]["quantity"] == 5
    assert db.session.get(Product, shampoo.id).stock_quantity == 0

    again = _sell(client, owner_headers_a, shampoo, 5)
    assert again.status_code == 409
    assert again.json["code"] == "insufficient_stock"
    assert db.session.get(Product, shampoo.id).stock_quantity == 0


def test_discount_above_total(client, owner_headers_a, shampoo):
    resp = _sell(client, owner_headers_a, shampoo, 1, discount_amount_cents=2000)
    assert resp.status_code == 400
    assert db.session.get(Product, shampoo.id).stock_quantity == 5


def test_idempotency_header(client, owner_headers_a, shampoo):
    headers = {**owner_headers_a, "Idempotency-Key": "till-7-42"}

    first = _sell(client, headers, shampoo, 2)
    replay = _sell(client, headers, shampoo, 2)

    assert first.status_code == 201
    assert replay.status_code == 200
    assert replay.json["id"] == first.json["id"]
    assert db.session.get(Product, shampoo.id).stock_quantity == 3


def test_get_and_list(client, owner_headers_a, owner_headers_b, shampoo):
    sale = _sell(client, owner_headers_a, shampoo, 1).json

    assert client.get(f"/api/sales/{sale['id']}", headers=owner_headers_a).json["items"][0]["product_id"] == shampoo.id
    assert client.get(f"/api/sales/{sale['id']}", headers=owner_headers_b).status_code == 404

    month = month_key(utcnow().date())
    assert client.get(f"/api/sales?month={month}", headers=owner_headers_a).json["count"] == 1
    assert client.get("/api/sales?month=bad", headers=owner_headers_a).status_code == 400


def test_monthly_report(client, owner_headers_a, shampoo):
    _sell(client, owner_headers_a, shampoo, 2)

    resp = client.get(f"/api/reports/monthly?month={month_key(utcnow().date())}", headers=owner_headers_a)

    assert resp.status_code == 200
    assert resp.json["sales_revenue_cents"] == 2 * 1990
    assert resp.json["appointments_count"] == 0


def test_monthly_report_bad_month(client, owner_headers_a):
    resp = client.get("/api/reports/monthly?month=2024-13", headers=owner_headers_a)
    assert resp.status_code == 400
    assert resp.json["code"] == "validation_error"


def test_stock_report(client, owner_headers_a, shampoo, treats):
    _sell(client, owner_headers_a, shampoo, 4)

    resp = client.get("/api/reports/stock", headers=owner_headers_a)

    assert resp.status_code == 200
    assert resp.json["product_count"] == 2
    assert [p["name"] for p in resp.json["low_stock"]] == ["Oatmeal Shampoo"]


def test_malformed_customer_id(client, owner_headers_a, shampoo):
    for bad in ([1, 2], {"id": 1}, "abc"):
        resp = _sell(client, owner_headers_a, shampoo, 1, customer_id=bad)

        assert resp.status_code == 400
        assert resp.json["code"] == "validation_error"
    assert db.session.get(Product, shampoo.id).stock_quantity == 5


def test_idempotency_key_reused_for_other_cart(client, owner_headers_a, shampoo):
    headers = {**owner_headers_a, "Idempotency-Key": "till-7-43"}

    first = _sell(client, headers, shampoo, 1)
    other = _sell(client, headers, shampoo, 3)

    assert first.status_code == 201
    assert other.status_code == 409
    assert other.json["code"] == "idempotency_key_reused"
    assert other.json["details"]["fields"] == ["lines"]
    assert db.session.get(Product, shampoo.id).stock_quantity == 4


def test_replay_after_losing_the_key_race(client, owner_headers_a, shampoo, monkeypatch):
    """
    The key lookup misses (another request commits between lookup and
    insert); the unique constraint catches it and the answer is a replay.
    """
    from pethub.services import sales_service

    headers = {**owner_headers_a, "Idempotency-Key": "till-7-44"}
    first = _sell(client, headers, shampoo, 2)

    real_find = sales_service._find_by_key
    calls = []

    def _miss_once(ctx, key):
        calls.append(key)
        return None if len(calls) == 1 else real_find(ctx, key)

    monkeypatch.setattr(sales_service, "_find_by_key", _miss_once)
    replay = _sell(client, headers, shampoo, 2)

    assert first.status_code == 201
    assert replay.status_code == 200
    assert replay.json["id"] == first.json["id"]
    assert len(calls) == 2
    assert db.session.get(Product, shampoo.id).stock_quantity == 3
