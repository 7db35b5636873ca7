# Overview: Flask API routes for the appointment book.

# pethub/routes/appointments.py
"""
Appointment booking, rescheduling and status changes for business owners.

Times are local wall-clock values: appointment_date "YYYY-MM-DD" and
start_time "HH:MM". The end time is derived from the service duration.
"""
from flask import Blueprint, request, g

from ..decorators import require_auth, require_owner
from ..errors import PetHubError
from ..services import scheduling_service
from .common import error_response, internal_error, json_body

appointments_bp = Blueprint("appointments", __name__, url_prefix="/api/appointments")


@appointments_bp.get("")
@require_auth
@require_owner
def list_appointments():
    """
    Query params:
    - date: YYYY-MM-DD (single day)
    - start_date, end_date: YYYY-MM-DD (inclusive range)
    - status: pending|confirmed|completed|cancelled
    - customer_id, pet_id: int
    """
    try:
        appointments = scheduling_service.list_appointments(
            g.tenant,
            on_date=request.args.get("date"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            status=request.args.get("status"),
            customer_id=request.args.get("customer_id", type=int),
            pet_id=request.args.get("pet_id", type=int),
        )
        return {"items": [a.to_dict() for a in appointments], "count": len(appointments)}
    except PetHubError as e:
        return error_response(e)


@appointments_bp.get("/slots")
@require_auth
@require_owner
def available_slots():
    """
    Free start times for a service on a day.

    Query params: service_id (required), date (required),
    opens_at/closes_at (HH:MM, default 08:00-18:00), step (minutes, default 30).
    """
    service_id = request.args.get("service_id", type=int)
    if service_id is None:
        return {"error": "service_id is required", "code": "validation_error"}, 400

    try:
        slots = scheduling_service.available_slots(
            g.tenant,
            service_id=service_id,
            on_date=request.args.get("date"),
            opens_at=request.args.get("opens_at", "08:00"),
            closes_at=request.args.get("closes_at", "18:00"),
            step_minutes=request.args.get("step", 30, type=int),
        )
        return {"date": request.args.get("date"), "service_id": service_id, "slots": slots}
    except PetHubError as e:
        return error_response(e)


@appointments_bp.post("")
@require_auth
@require_owner
def create_appointment():
    """
    Body:
    {
      "pet_id": int, "service_id": int,
      "appointment_date": "YYYY-MM-DD", "start_time": "HH:MM",
      "customer_id": int?, "status": "pending"|"confirmed"?, "notes": str?
    }
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
            customer_id=payload.get("customer_id"),
            status=payload.get("status"),
            notes=payload.get("notes"),
        )
        return appointment.to_dict(), 201
    except PetHubError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to book appointment")


@appointments_bp.get("/<int:appointment_id>")
@require_auth
@require_owner
def get_appointment(appointment_id: int):
    try:
        return scheduling_service.get_appointment(g.tenant, appointment_id).to_dict()
    except PetHubError as e:
        return error_response(e)


@appointments_bp.post("/<int:appointment_id>/status")
@require_auth
@require_owner
def change_status(appointment_id: int):
    """Body: {"status": str, "reason": str?}"""
    try:
        payload = json_body()
        if payload.get("status") in (None, ""):
            return {"error": "status is required", "code": "validation_error"}, 400

        appointment = scheduling_service.transition_appointment(
            g.tenant,
            appointment_id,
            payload["status"],
            reason=payload.get("reason"),
        )
        return appointment.to_dict()
    except PetHubError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to change appointment status")


@appointments_bp.post("/<int:appointment_id>/reschedule")
@require_auth
@require_owner
def reschedule(appointment_id: int):
    """Body: {"appointment_date": "YYYY-MM-DD", "start_time": "HH:MM"}"""
    try:
        payload = json_body()
        appointment = scheduling_service.reschedule_appointment(
            g.tenant,
            appointment_id,
            appointment_date=payload.get("appointment_date"),
            start_time=payload.get("start_time"),
        )
        return appointment.to_dict()
    except PetHubError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to reschedule appointment")
