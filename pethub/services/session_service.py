# Overview: Bearer token issue/validation; resolves a token to a TenantContext.

"""
Session Token Service

Tokens are issued out of band (operator CLI); this service only stores
their hashes and turns a presented token into the caller's tenant context.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- Absolute expiry (SESSION_TTL_HOURS)
- Revocable
- business_id captured at issue time and never re-derived
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Account, Business, SessionToken, AccountRole
from ..time_utils import utcnow
from .tenant_service import TenantContext


@dataclass
class SessionContext:
    account: Account
    session: SessionToken
    tenant: TenantContext


def generate_token() -> str:
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def issue_token(account_id: int, ttl_hours: int | None = None) -> tuple[SessionToken, str]:
    """
    Create a session for an account.

    Returns (session_record, plaintext_token); only the hash is stored.
    """
    account = db.session.get(Account, account_id)
    if account is None or not account.is_active:
        raise NotFoundError("Account not found")

    business = db.session.get(Business, account.business_id)
    if business is None or not business.is_active:
        raise ValidationError("Business is not active")

    if account.role == AccountRole.CUSTOMER.value and account.customer_id is None:
        raise ValidationError("Customer account is not linked to a customer")

    if ttl_hours is None:
        ttl_hours = current_app.config.get("SESSION_TTL_HOURS", 24)

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        account_id=account.id,
        business_id=account.business_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + timedelta(hours=ttl_hours),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """
    Return the SessionContext for a valid token, or None if:
    - token is unknown, expired or revoked
    - account is deactivated
    - business is deactivated

    Updates last_used_at on success.
    """
    if not token:
        return None

    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    account = session.account
    if not account or not account.is_active:
        session.is_revoked = True
        db.session.commit()
        return None

    business = db.session.get(Business, session.business_id)
    if not business or not business.is_active:
        session.is_revoked = True
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()

    role = AccountRole.parse(account.role)
    tenant = TenantContext(
        business_id=session.business_id,
        account_id=account.id,
        role=role,
        customer_id=account.customer_id if role == AccountRole.CUSTOMER else None,
    )
    return SessionContext(account=account, session=session, tenant=tenant)


def revoke_token(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return False
    session.is_revoked = True
    db.session.commit()
    return True


def cleanup_expired_sessions(older_than_days: int = 30) -> int:
    """Delete expired or revoked sessions created more than older_than_days ago."""
    now = utcnow()
    cutoff = now - timedelta(days=older_than_days)
    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True),
        ),
        SessionToken.created_at < cutoff,
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
