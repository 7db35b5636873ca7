# Overview: Append-only security audit trail.

from __future__ import annotations

from datetime import timedelta

from flask import has_request_context, request

from ..extensions import db
from ..models import SecurityEvent
from ..time_utils import utcnow


def log_security_event(
    event_type: str,
    success: bool,
    *,
    business_id: int | None = None,
    account_id: int | None = None,
    reason: str | None = None,
    resource: str | None = None,
    action: str | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    Request details (path, method, IP, user agent) are filled in when
    called inside a request.

    event_type examples:
    - CROSS_TENANT_ACCESS_DENIED
    - ROLE_DENIED
    - TENANT_CONTEXT_MISSING
    - TOKEN_ISSUED
    """
    ip_address = None
    user_agent = None
    if has_request_context():
        resource = resource or request.path
        action = action or request.method
        ip_address = request.remote_addr
        user_agent = request.headers.get("User-Agent")

    event = SecurityEvent(
        business_id=business_id,
        account_id=account_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event


def cleanup_security_events(retention_days: int = 90) -> int:
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(SecurityEvent.occurred_at < cutoff).delete()
    db.session.commit()
    return deleted
