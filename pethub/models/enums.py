from __future__ import annotations

from enum import Enum


class _StrEnum(str, Enum):
    """String-valued enum that serializes as its plain value."""

    def __str__(self) -> str:
        return self.value

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]

    @classmethod
    def parse(cls, value):
        """Return the member for value, or raise ValueError listing the choices."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"must be one of: {', '.join(cls.values())}")


class SizeTier(_StrEnum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class AppointmentStatus(_StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Allowed appointment status changes. Completed and cancelled are terminal.
APPOINTMENT_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}


class SaleStatus(_StrEnum):
    COMPLETED = "completed"


class PaymentMethod(_StrEnum):
    CASH = "cash"
    CARD = "card"
    PIX = "pix"
    MULTIPLE = "multiple"


class Plan(_StrEnum):
    FREE = "free"
    BASIC = "basic"
    PROFESSIONAL = "professional"
    MASTER = "master"


class AccountRole(_StrEnum):
    OWNER = "owner"
    CUSTOMER = "customer"
