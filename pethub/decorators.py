# Overview: Request decorators that establish the caller's tenant context.

from functools import wraps
from flask import request, jsonify, g

from .models import AccountRole
from .services import session_service
from .services.security_service import log_security_event


def _is_authenticated() -> bool:
    return getattr(g, "tenant", None) is not None


def require_auth(f):
    """
    Require a bearer token and establish tenant context.

    Sets the following Flask g attributes:
    - g.account: the authenticated Account
    - g.tenant: the TenantContext passed to every service call

    Returns 401 if the Authorization header is missing, or the token is
    unknown, expired, revoked, or belongs to a deactivated account/business.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required", "code": "unauthenticated"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token", "code": "unauthenticated"}), 401

        g.account = context.account
        g.tenant = context.tenant

        return f(*args, **kwargs)

    return decorated_function


def require_role(role: AccountRole):
    """
    Require the authenticated account to have a role.

    Owners use the management API; customers use the portal.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required", "code": "unauthenticated"}), 401

            if g.tenant.role != role:
                log_security_event(
                    "ROLE_DENIED",
                    False,
                    business_id=g.tenant.business_id,
                    account_id=g.tenant.account_id,
                    reason=f"Requires role {role.value}, account has {g.tenant.role.value}",
                )
                return jsonify({
                    "error": "Permission denied",
                    "code": "forbidden",
                    "required_role": role.value,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


require_owner = require_role(AccountRole.OWNER)
require_customer = require_role(AccountRole.CUSTOMER)
