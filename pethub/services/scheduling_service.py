"""
Appointment booking and slot-conflict policy.

Booking rules:
- end = start + service duration, wall-clock, no timezone normalisation;
  an appointment may end on the next day (23:30 + 60 min -> 00:30).
- price = the service's tier price for the pet's size, copied once.
- a new or moved appointment may not intersect any non-cancelled
  appointment of the same business: [start, end) intervals, so a booking
  that starts exactly when another ends is fine.
- pet, customer and service must belong to the caller's business; the
  service must be active.

Bookings for one business serialize on the business row, so the
conflict check and the insert are one atomic step.

Status changes follow APPOINTMENT_TRANSITIONS; completed and cancelled
are terminal.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from flask import current_app

from ..errors import (
    ConflictError,
    InvalidTransitionError,
    PlanLimitError,
    SlotConflictError,
    ValidationError,
)
from ..extensions import db
from ..models import (
    APPOINTMENT_TRANSITIONS,
    Appointment,
    AppointmentStatus,
    Business,
    Customer,
    Service,
    SizeTier,
)
from ..time_utils import add_minutes, format_clock_time, month_key, parse_clock_time, parse_date, utcnow
from .concurrency import begin_write, lock_for_update, read_with_retry, run_with_retry
from .tenant_service import TenantContext, require_owned, require_pet, scoped_query

# Statuses an appointment may be created in
INITIAL_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})

# Statuses that still hold their slot and can be moved
OPEN_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def compute_end(appointment_date, start_time, duration_minutes: int) -> datetime:
    """
    Wall-clock end of an appointment.

    Accepts date/time objects or 'YYYY-MM-DD' / 'HH:MM' strings.
    The result may be on the following day.
    """
    day, start = _parse_slot(appointment_date, start_time)
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
        raise ValidationError("duration_minutes must be a positive integer")
    return add_minutes(day, start, duration_minutes)


def select_price(service: Service, size) -> int:
    """The service's price for a size tier (small/medium/large)."""
    try:
        tier = SizeTier.parse(size)
    except ValueError as exc:
        raise ValidationError(f"size {exc}")
    return service.price_for(tier)


def check_transition(current, new) -> AppointmentStatus:
    """
    Validate a status change against the transition table.

    Returns the parsed target status; raises InvalidTransitionError
    for any change the table does not allow (including no-op changes).
    """
    try:
        target = AppointmentStatus.parse(new)
    except ValueError as exc:
        raise ValidationError(f"status {exc}")
    source = AppointmentStatus.parse(current)

    if target not in APPOINTMENT_TRANSITIONS[source]:
        raise InvalidTransitionError(
            f"Cannot change appointment from {source.value} to {target.value}",
            details={
                "from": source.value,
                "to": target.value,
                "allowed": sorted(s.value for s in APPOINTMENT_TRANSITIONS[source]),
            },
        )
    return target


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open [start, end) intersection."""
    return a_start < b_end and b_start < a_end


def _parse_slot(appointment_date, start_time) -> tuple[date, time]:
    if appointment_date in (None, ""):
        raise ValidationError("appointment_date is required")
    if start_time in (None, ""):
        raise ValidationError("start_time is required")
    try:
        day = parse_date(appointment_date)
    except ValueError:
        raise ValidationError("appointment_date must be YYYY-MM-DD")
    try:
        start = parse_clock_time(start_time)
    except ValueError:
        raise ValidationError("start_time must be HH:MM")
    return day, start


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def find_conflicts(
    business_id: int,
    starts_at: datetime,
    ends_at: datetime,
    exclude_id: int | None = None,
) -> list[Appointment]:
    """Non-cancelled appointments of the business intersecting [starts_at, ends_at)."""
    query = db.session.query(Appointment).filter(
        Appointment.business_id == business_id,
        Appointment.status != AppointmentStatus.CANCELLED.value,
        Appointment.starts_at < ends_at,
        Appointment.ends_at > starts_at,
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return query.order_by(Appointment.starts_at.asc()).all()


def get_appointment(ctx: TenantContext, appointment_id: int) -> Appointment:
    return read_with_retry(lambda: require_owned(Appointment, appointment_id, ctx))


def list_appointments(
    ctx: TenantContext,
    *,
    on_date=None,
    start_date=None,
    end_date=None,
    status: str | None = None,
    customer_id: int | None = None,
    pet_id: int | None = None,
) -> list[Appointment]:
    """
    Tenant appointments, optionally filtered.

    on_date: appointments starting on that day.
    start_date/end_date: inclusive day range on the start date.
    """
    try:
        if on_date is not None:
            start_date = end_date = parse_date(on_date)
        if start_date is not None:
            start_date = parse_date(start_date)
        if end_date is not None:
            end_date = parse_date(end_date)
    except ValueError:
        raise ValidationError("dates must be YYYY-MM-DD")

    if status is not None:
        try:
            status = AppointmentStatus.parse(status).value
        except ValueError as exc:
            raise ValidationError(f"status {exc}")

    def _op():
        query = scoped_query(Appointment, ctx)
        if start_date is not None:
            query = query.filter(Appointment.starts_at >= datetime.combine(start_date, time.min))
        if end_date is not None:
            query = query.filter(Appointment.starts_at < datetime.combine(end_date + timedelta(days=1), time.min))
        if status is not None:
            query = query.filter(Appointment.status == status)
        if customer_id is not None:
            query = query.filter(Appointment.customer_id == customer_id)
        if pet_id is not None:
            query = query.filter(Appointment.pet_id == pet_id)
        return query.order_by(Appointment.starts_at.asc(), Appointment.id.asc()).all()

    return read_with_retry(_op)


def available_slots(
    ctx: TenantContext,
    *,
    service_id: int,
    on_date,
    opens_at="08:00",
    closes_at="18:00",
    step_minutes: int = 30,
) -> list[str]:
    """
    Start times (HH:MM) on a day at which the service fits without conflict
    and finishes by closing time.
    """
    if step_minutes <= 0:
        raise ValidationError("step_minutes must be > 0")
    day, open_time = _parse_slot(on_date, opens_at)
    try:
        close_time = parse_clock_time(closes_at)
    except ValueError:
        raise ValidationError("closes_at must be HH:MM")

    service = require_owned(Service, service_id, ctx)
    if not service.is_active:
        raise ValidationError("Service is inactive")

    day_start = datetime.combine(day, open_time)
    day_end = datetime.combine(day, close_time)
    if day_end <= day_start:
        raise ValidationError("closes_at must be after opens_at")

    duration = timedelta(minutes=service.duration_minutes)
    busy = [
        (a.starts_at, a.ends_at)
        for a in read_with_retry(lambda: find_conflicts(ctx.business_id, day_start, day_end))
    ]

    slots = []
    cursor = day_start
    step = timedelta(minutes=step_minutes)
    while cursor + duration <= day_end:
        candidate_end = cursor + duration
        if not any(intervals_overlap(cursor, candidate_end, b_start, b_end) for b_start, b_end in busy):
            slots.append(format_clock_time(cursor.time()))
        cursor += step
    return slots


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def _lock_business(business_id: int) -> Business:
    begin_write()
    return lock_for_update(
        db.session.query(Business).filter(Business.id == business_id)
    ).populate_existing().one()


def _raise_on_conflict(ctx: TenantContext, starts_at: datetime, ends_at: datetime, exclude_id: int | None = None) -> None:
    clashes = find_conflicts(ctx.business_id, starts_at, ends_at, exclude_id=exclude_id)
    if clashes:
        current_app.logger.info(
            "Slot conflict business=%s %s-%s clashes=%s",
            ctx.business_id, starts_at.isoformat(), ends_at.isoformat(), [a.id for a in clashes],
        )
        details = {
            "requested_start": starts_at.isoformat(timespec="minutes"),
            "requested_end": ends_at.isoformat(timespec="minutes"),
        }
        # Other customers' bookings stay opaque to the portal
        if not ctx.is_customer:
            details["conflicting_appointment_ids"] = [a.id for a in clashes]
        raise SlotConflictError("Time slot overlaps an existing appointment", details=details)


def _count_booking(business: Business) -> None:
    """
    Bump the business's monthly booking counter, restarting it when the
    calendar month changes. With ENFORCE_PLAN_LIMITS on, refuse bookings
    past the plan's cap.
    """
    current_month = month_key(utcnow().date())
    if business.counter_month != current_month:
        business.counter_month = current_month
        business.monthly_appointments = 0

    if current_app.config.get("ENFORCE_PLAN_LIMITS"):
        limits = current_app.config.get("PLAN_APPOINTMENT_LIMITS", {})
        cap = limits.get(business.plan)
        if cap is not None and business.monthly_appointments >= cap:
            raise PlanLimitError(
                "Monthly appointment limit reached for the current plan",
                details={"plan": business.plan, "limit": cap},
            )

    business.monthly_appointments = (business.monthly_appointments or 0) + 1


def book_appointment(
    ctx: TenantContext,
    *,
    pet_id: int,
    service_id: int,
    appointment_date,
    start_time,
    customer_id: int | None = None,
    status=None,
    notes: str | None = None,
) -> Appointment:
    """
    Book an appointment.

    Raises:
        ValidationError: malformed input, inactive service/customer,
            pet not owned by customer_id, bad initial status
        NotFoundError: pet, customer or service outside the tenant
        SlotConflictError: interval intersects a non-cancelled appointment
        PlanLimitError: monthly cap reached (only when enforcement is on)
    """
    day, start = _parse_slot(appointment_date, start_time)

    if status in (None, ""):
        initial = AppointmentStatus.PENDING
    else:
        try:
            initial = AppointmentStatus.parse(status)
        except ValueError as exc:
            raise ValidationError(f"status {exc}")
    if initial not in INITIAL_STATUSES:
        raise ValidationError("New appointments must be pending or confirmed")
    if ctx.is_customer and initial != AppointmentStatus.PENDING:
        raise ValidationError("Appointment requests are always created as pending")

    def _op():
        business = _lock_business(ctx.business_id)

        pet = require_pet(pet_id, ctx)
        if customer_id is not None:
            customer = require_owned(Customer, customer_id, ctx)
            if pet.customer_id != customer.id:
                raise ValidationError("Pet does not belong to this customer")
        else:
            customer = pet.customer
        if not customer.is_active:
            raise ValidationError("Customer is inactive")

        service = require_owned(Service, service_id, ctx)
        if not service.is_active:
            raise ValidationError("Service is inactive")

        starts_at = datetime.combine(day, start)
        ends_at = add_minutes(day, start, service.duration_minutes)
        _raise_on_conflict(ctx, starts_at, ends_at)
        _count_booking(business)

        appointment = Appointment(
            business_id=business.id,
            customer_id=customer.id,
            pet_id=pet.id,
            service_id=service.id,
            starts_at=starts_at,
            ends_at=ends_at,
            status=initial.value,
            price_cents=select_price(service, pet.size),
            notes=notes,
        )
        db.session.add(appointment)
        db.session.commit()

        current_app.logger.info(
            "Appointment booked business=%s id=%s %s-%s",
            business.id, appointment.id, starts_at.isoformat(), ends_at.isoformat(),
        )
        return appointment

    return run_with_retry(_op, retry=False)


def reschedule_appointment(ctx: TenantContext, appointment_id: int, *, appointment_date, start_time) -> Appointment:
    """
    Move an open appointment. The end is recomputed from the service
    duration; the price stays as booked.
    """
    day, start = _parse_slot(appointment_date, start_time)

    def _op():
        business = _lock_business(ctx.business_id)
        appointment = require_owned(Appointment, appointment_id, ctx)

        if AppointmentStatus.parse(appointment.status) not in OPEN_STATUSES:
            raise ConflictError(
                f"Cannot reschedule a {appointment.status} appointment",
                details={"status": appointment.status},
            )

        starts_at = datetime.combine(day, start)
        ends_at = add_minutes(day, start, appointment.service.duration_minutes)
        _raise_on_conflict(ctx, starts_at, ends_at, exclude_id=appointment.id)

        appointment.starts_at = starts_at
        appointment.ends_at = ends_at
        db.session.commit()
        return appointment

    # Moving to the same slot twice is harmless, so transient failures may retry
    return run_with_retry(_op, retry=True)


def transition_appointment(ctx: TenantContext, appointment_id: int, new_status, reason: str | None = None) -> Appointment:
    """
    Apply a status change from the transition table.

    Portal customers may only cancel their own pending requests.
    """
    def _op():
        begin_write()
        appointment = require_owned(Appointment, appointment_id, ctx)
        target = check_transition(appointment.status, new_status)

        if ctx.is_customer and not (
            target == AppointmentStatus.CANCELLED
            and appointment.status == AppointmentStatus.PENDING.value
        ):
            raise InvalidTransitionError(
                "Customers can only cancel pending appointments",
                details={"from": appointment.status, "to": target.value},
            )

        appointment.status = target.value
        if target == AppointmentStatus.CANCELLED:
            appointment.cancel_reason = reason
        db.session.commit()
        return appointment

    # Re-applying the same transition after a lost response fails the table
    # check instead of applying twice, so a retry is safe
    return run_with_retry(_op, retry=True)

