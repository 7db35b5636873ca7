# Overview: Flask API routes for business reports.

from flask import Blueprint, request, g

from ..decorators import require_auth, require_owner
from ..errors import PetHubError
from ..services import reporting_service
from ..time_utils import month_key, utcnow
from .common import error_response

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/monthly")
@require_auth
@require_owner
def monthly_report():
    """
    Monthly summary for the caller's business.

    Query params:
    - month: YYYY-MM (defaults to the current month)
    """
    month = request.args.get("month") or month_key(utcnow().date())
    try:
        return reporting_service.monthly_report(g.tenant, month)
    except PetHubError as e:
        return error_response(e)


@reports_bp.get("/stock")
@require_auth
@require_owner
def stock_report():
    return reporting_service.stock_report(g.tenant)
