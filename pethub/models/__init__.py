from .enums import (
    SizeTier, AppointmentStatus, APPOINTMENT_TRANSITIONS, SaleStatus,
    PaymentMethod, Plan, AccountRole,
)
from .tenancy import Business, Account, SessionToken, SecurityEvent
from .customers import Customer, Pet
from .catalog import Service, Product
from .appointments import Appointment
from .sales import Sale, SaleItem

__all__ = [
    'SizeTier', 'AppointmentStatus', 'APPOINTMENT_TRANSITIONS', 'SaleStatus',
    'PaymentMethod', 'Plan', 'AccountRole',
    'Business', 'Account', 'SessionToken', 'SecurityEvent',
    'Customer', 'Pet',
    'Service', 'Product',
    'Appointment',
    'Sale', 'SaleItem',
]
