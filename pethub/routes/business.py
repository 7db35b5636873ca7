# Overview: Flask API routes for the owner's business profile and branding.

# pethub/routes/business.py
"""
Business profile for owners.

Only contact details and branding are editable here. The plan, the
monthly booking counter and activation are managed by operators through
the CLI and are rejected if sent.
"""
from flask import Blueprint, g

from ..decorators import require_auth, require_owner
from ..errors import PetHubError
from ..models import Business
from ..services import tenant_service
from ..validation import BUSINESS_POLICY, enforce_rules_business, validate_payload
from .common import error_response, internal_error, json_body

business_bp = Blueprint("business", __name__, url_prefix="/api/business")


@business_bp.get("")
@require_auth
@require_owner
def get_business():
    try:
        return tenant_service.get_business(g.tenant).to_dict()
    except PetHubError as e:
        return error_response(e)


@business_bp.put("")
@require_auth
@require_owner
def update_business():
    """
    Body (all optional):
    {
      "name": str, "email": str, "phone": str, "address": str,
      "logo_url": str?, "primary_color": "#RRGGBB"?, "secondary_color": "#RRGGBB"?
    }
    """
    try:
        patch = validate_payload(model=Business, payload=json_body(), policy=BUSINESS_POLICY, partial=True)
        enforce_rules_business(patch)
        business = tenant_service.update_business(g.tenant, patch)
        return business.to_dict()
    except PetHubError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update business")
