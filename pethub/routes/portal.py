# Overview: Flask API routes for the customer self-service portal.

# pethub/routes/portal.py
"""
Customer portal.

Authenticated with a customer account: the TenantContext carries the
customer's business and customer_id, so every service call only sees that
customer's pets and appointments. Requests are always created pending and
wait for the business to confirm them.
"""
from flask import Blueprint, request, g

from ..decorators import require_auth, require_customer
from ..errors import PetHubError
from ..models import AppointmentStatus
from ..services import catalog_service, customers_service, scheduling_service
from ..services.tenant_service import get_business
from .common import error_response, internal_error, json_body

portal_bp = Blueprint("portal", __name__, url_prefix="/api/portal")


@portal_bp.get("/business")
@require_auth
@require_customer
def business_profile():
    """Name, contact and branding of the business the customer belongs to."""
    try:
        business = get_business(g.tenant)
    except PetHubError as e:
        return error_response(e)
    return {
        "name": business.name,
        "phone": business.phone,
        "email": business.email,
        "address": business.address,
        "logo_url": business.logo_url,
        "primary_color": business.primary_color,
        "secondary_color": business.secondary_color,
    }


@portal_bp.get("/pets")
@require_auth
@require_customer
def my_pets():
    pets = customers_service.list_pets(g.tenant)
    return {"items": [p.to_dict() for p in pets], "count": len(pets)}


@portal_bp.get("/services")
@require_auth
@require_customer
def bookable_services():
    services = catalog_service.list_services(g.tenant, active_only=True)
    return {"items": [s.to_dict() for s in services], "count": len(services)}


@portal_bp.get("/appointments")
@require_auth
@require_customer
def my_appointments():
    try:
        appointments = scheduling_service.list_appointments(
            g.tenant,
            status=request.args.get("status"),
            pet_id=request.args.get("pet_id", type=int),
        )
        return {"items": [a.to_dict() for a in appointments], "count": len(appointments)}
    except PetHubError as e:
        return error_response(e)


@portal_bp.post("/appointments")
@require_auth
@require_customer
def request_appointment():
    """
    Body: {"pet_id", "service_id", "appointment_date", "start_time", "notes"?}
    The pet must be one of the caller's own pets.
    """
    try:
        payload = json_body()
        missing = sorted(
            k for k in ("pet_id", "service_id", "appointment_date", "start_time")
            if payload.get(k) in (None, "")
        )
        if missing:
            return {
                "error": f"Missing required fields: {', '.join(missing)}",
                "code": "validation_error",
                "details": {"fields": missing},
            }, 400

        appointment = scheduling_service.book_appointment(
            g.tenant,
            pet_id=payload["pet_id"],
            service_id=payload["service_id"],
            appointment_date=payload["appointment_date"],
            start_time=payload["start_time"],
            customer_id=g.tenant.customer_id,
            status=AppointmentStatus.PENDING.value,
            notes=payload.get("notes"),
        )
        return appointment.to_dict(), 201
    except PetHubError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to request appointment")


@portal_bp.post("/appointments/<int:appointment_id>/cancel")
@require_auth
@require_customer
def cancel_appointment(appointment_id: int):
    try:
        reason = json_body().get("reason")
        appointment = scheduling_service.transition_appointment(
            g.tenant,
            appointment_id,
            AppointmentStatus.CANCELLED.value,
            reason=reason,
        )
        return appointment.to_dict()
    except PetHubError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to cancel appointment")
