"""Bearer tokens, roles and the health endpoint."""

from datetime import timedelta

import pytest

from pethub.models import SecurityEvent, SessionToken
from pethub.services import session_service
from pethub.time_utils import utcnow
from conftest import auth_headers


@pytest.mark.parametrize(
    "method,path",
    [
        ("GET", "/api/customers"),
        ("POST", "/api/customers"),
        ("GET", "/api/services"),
        ("GET", "/api/products"),
        ("GET", "/api/appointments"),
        ("POST", "/api/sales"),
        ("GET", "/api/reports/monthly"),
        ("GET", "/api/portal/pets"),
    ],
)
def test_requires_auth(client, db_session, method, path):
    resp = getattr(client, method.lower())(path)
    assert resp.status_code == 401


def test_unknown_token(client, db_session):
    resp = client.get("/api/customers", headers=auth_headers("not-a-token"))
    assert resp.status_code == 401
    assert resp.json["code"] == "unauthenticated"


def test_expired_token(client, db_session, owner_a, owner_token_a):
    session = db_session.query(SessionToken).filter_by(account_id=owner_a.id).one()
    session.expires_at = utcnow() - timedelta(minutes=1)
    db_session.commit()

    assert client.get("/api/customers", headers=auth_headers(owner_token_a)).status_code == 401


def test_revoked_token(client, owner_token_a):
    assert session_service.revoke_token(owner_token_a) is True
    assert client.get("/api/customers", headers=auth_headers(owner_token_a)).status_code == 401


def test_deactivated_business_revokes_session(client, db_session, business_a, owner_token_a):
    business_a.is_active = False
    db_session.commit()

    assert client.get("/api/customers", headers=auth_headers(owner_token_a)).status_code == 401
    assert session_service.validate_session(owner_token_a) is None


def test_only_hash_is_stored(db_session, owner_a, owner_token_a):
    session = db_session.query(SessionToken).filter_by(account_id=owner_a.id).one()
    assert session.token_hash == session_service.hash_token(owner_token_a)
    assert session.token_hash != owner_token_a


def test_role_denied_is_logged(client, db_session, customer_headers_a):
    client.get("/api/customers", headers=customer_headers_a)
    assert db_session.query(SecurityEvent).filter_by(event_type="ROLE_DENIED").count() == 1


def test_cleanup_expired_sessions(db_session, owner_a, owner_token_a):
    session = db_session.query(SessionToken).filter_by(account_id=owner_a.id).one()
    session.created_at = utcnow() - timedelta(days=40)
    session.expires_at = utcnow() - timedelta(days=39)
    db_session.commit()

    assert session_service.cleanup_expired_sessions(older_than_days=30) == 1
    assert db_session.query(SessionToken).count() == 0


def test_health(client, db_session):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json["database"]["status"] == "healthy"


def test_cors_allowed_origin(client, db_session):
    resp = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
    assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
    assert "Idempotency-Key" in resp.headers["Access-Control-Allow-Headers"]
