# pethub/services/customers_service.py
"""
Customers and pets, tenant-scoped.

Customers are deactivated rather than deleted so appointments and sales
keep pointing at them. Pets can be deleted only while no appointment
references them.

Reads go through read_with_retry; writes run once (retry=False) so a
lost response never creates a second customer or pet.
"""
from __future__ import annotations

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Appointment, Customer, Pet
from .concurrency import read_with_retry, run_with_retry
from .tenant_service import TenantContext, require_owned, require_pet, scoped_query

CUSTOMER_MUTABLE_FIELDS = {"name", "phone", "email", "address", "notes", "is_active"}
PET_MUTABLE_FIELDS = {"name", "breed", "age", "size", "weight", "coat_type", "photo_url", "notes"}


def _apply_patch(row, patch: dict, allowed: set[str]) -> None:
    for k, v in patch.items():
        if k not in allowed:
            continue
        setattr(row, k, v)


def list_customers(ctx: TenantContext, *, search: str | None = None, include_inactive: bool = False) -> list[Customer]:
    def _op():
        query = scoped_query(Customer, ctx)
        if not include_inactive:
            query = query.filter(Customer.is_active.is_(True))
        if search:
            like = f"%{search.strip()}%"
            query = query.filter(db.or_(
                Customer.name.ilike(like),
                Customer.phone.ilike(like),
                Customer.email.ilike(like),
            ))
        return query.order_by(Customer.name.asc(), Customer.id.asc()).all()

    return read_with_retry(_op)


def get_customer(ctx: TenantContext, customer_id: int) -> Customer:
    return read_with_retry(lambda: require_owned(Customer, customer_id, ctx))


def create_customer(ctx: TenantContext, patch: dict) -> Customer:
    if ctx.is_customer:
        raise ValidationError("Customers cannot register other customers")

    def _op():
        customer = Customer(business_id=ctx.business_id)
        _apply_patch(customer, patch, CUSTOMER_MUTABLE_FIELDS)
        if customer.email:
            customer.email = customer.email.lower()

        db.session.add(customer)
        db.session.commit()
        return customer

    return run_with_retry(_op, retry=False)


def update_customer(ctx: TenantContext, customer_id: int, patch: dict) -> Customer:
    def _op():
        customer = require_owned(Customer, customer_id, ctx)
        _apply_patch(customer, patch, CUSTOMER_MUTABLE_FIELDS)
        if customer.email:
            customer.email = customer.email.lower()
        db.session.commit()
        return customer

    return run_with_retry(_op, retry=False)


def deactivate_customer(ctx: TenantContext, customer_id: int) -> Customer:
    def _op():
        customer = require_owned(Customer, customer_id, ctx)
        customer.is_active = False
        db.session.commit()
        return customer

    return run_with_retry(_op, retry=False)


def list_pets(ctx: TenantContext, customer_id: int | None = None) -> list[Pet]:
    def _op():
        query = (
            db.session.query(Pet)
            .join(Customer, Pet.customer_id == Customer.id)
            .filter(Customer.business_id == ctx.business_id)
        )
        if ctx.is_customer:
            query = query.filter(Customer.id == ctx.customer_id)
        if customer_id is not None:
            owner = require_owned(Customer, customer_id, ctx)
            query = query.filter(Pet.customer_id == owner.id)
        return query.order_by(Pet.name.asc(), Pet.id.asc()).all()

    return read_with_retry(_op)


def get_pet(ctx: TenantContext, pet_id: int) -> Pet:
    return read_with_retry(lambda: require_pet(pet_id, ctx))


def create_pet(ctx: TenantContext, customer_id: int, patch: dict) -> Pet:
    def _op():
        customer = require_owned(Customer, customer_id, ctx)
        if not customer.is_active:
            raise ValidationError("Customer is inactive")

        pet = Pet(customer_id=customer.id)
        _apply_patch(pet, patch, PET_MUTABLE_FIELDS)

        db.session.add(pet)
        db.session.commit()
        return pet

    return run_with_retry(_op, retry=False)


def update_pet(ctx: TenantContext, pet_id: int, patch: dict) -> Pet:
    def _op():
        pet = require_pet(pet_id, ctx)
        _apply_patch(pet, patch, PET_MUTABLE_FIELDS)
        db.session.commit()
        return pet

    return run_with_retry(_op, retry=False)


def delete_pet(ctx: TenantContext, pet_id: int) -> None:
    def _op():
        pet = require_pet(pet_id, ctx)

        booked = db.session.query(Appointment.id).filter_by(pet_id=pet.id).first()
        if booked:
            raise ConflictError("Pet has appointments and cannot be deleted")

        db.session.delete(pet)
        db.session.commit()

    run_with_retry(_op, retry=False)
