from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, format_clock_time
from .enums import AppointmentStatus


class Appointment(db.Model):
    """
    Booked grooming slot.

    starts_at / ends_at are naive wall-clock datetimes in the business's
    local time. ends_at may fall on the day after starts_at.
    price_cents is copied from the service tier at booking and never re-derived.
    """
    __tablename__ = "appointments"
    __table_args__ = (
        db.CheckConstraint("ends_at > starts_at", name="ck_appointments_interval"),
        # Conflict lookups: business + status + interval
        db.Index("ix_appointments_business_starts", "business_id", "starts_at"),
        db.Index("ix_appointments_business_status", "business_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    pet_id = db.Column(db.Integer, db.ForeignKey("pets.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False, index=True)

    starts_at = db.Column(db.DateTime, nullable=False)
    ends_at = db.Column(db.DateTime, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=AppointmentStatus.PENDING.value)
    price_cents = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    business = db.relationship("Business", backref=db.backref("appointments", lazy=True))
    customer = db.relationship("Customer")
    pet = db.relationship("Pet")
    service = db.relationship("Service")

    @property
    def appointment_date(self):
        return self.starts_at.date()

    @property
    def ends_next_day(self) -> bool:
        return self.ends_at.date() > self.starts_at.date()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "customer_id": self.customer_id,
            "pet_id": self.pet_id,
            "service_id": self.service_id,
            "appointment_date": self.starts_at.date().isoformat(),
            "start_time": format_clock_time(self.starts_at.time()),
            "end_time": format_clock_time(self.ends_at.time()),
            "ends_next_day": self.ends_next_day,
            "status": self.status,
            "price_cents": self.price_cents,
            "notes": self.notes,
            "cancel_reason": self.cancel_reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
