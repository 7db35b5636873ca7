"""
Multi-Tenant Service: Tenant context and scoping helpers

Every logic-layer call receives an explicit TenantContext; nothing below
the route layer reads the tenant from request globals.

SECURITY INVARIANTS:
1. Every authenticated request carries exactly one business_id
2. Ids from client input are resolved only through require_* helpers
3. Queries over tenant-owned rows start from scoped_query
4. A row owned by another business is reported as "not found", never
   as "forbidden", and the attempt is logged as a security event

USAGE:
    ctx = get_current_tenant()
    customer = require_owned(Customer, customer_id, ctx)
    services = scoped_query(Service, ctx).filter_by(is_active=True).all()
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import g, current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Business, Customer, Pet, AccountRole
from ..validation import coerce_int
from .concurrency import read_with_retry, run_with_retry
from .security_service import log_security_event

BUSINESS_MUTABLE_FIELDS = {
    "name", "email", "phone", "address", "logo_url", "primary_color", "secondary_color",
}


@dataclass(frozen=True)
class TenantContext:
    """
    Who is acting, and for which business.

    customer_id is set only for customer-role accounts; it further limits
    what the caller may see to that customer's own rows.
    """
    business_id: int
    account_id: int | None = None
    role: AccountRole = AccountRole.OWNER
    customer_id: int | None = None

    @property
    def is_customer(self) -> bool:
        return self.role == AccountRole.CUSTOMER


def get_current_tenant() -> TenantContext:
    """
    Get the TenantContext established by @require_auth.

    This should never fail after @require_auth; it is a safety check for
    routes that forgot the decorator.
    """
    ctx = getattr(g, "tenant", None)
    if ctx is None:
        raise NotFoundError("Tenant context not established")
    return ctx


def scoped_query(model, ctx: TenantContext):
    """
    Base query over a model with a business_id column, limited to the tenant.

    Customer-role contexts are further limited to their own customer where
    the model has a customer_id column (or is Customer itself).
    """
    query = db.session.query(model).filter(model.business_id == ctx.business_id)
    if ctx.is_customer:
        if model is Customer:
            query = query.filter(Customer.id == ctx.customer_id)
        elif hasattr(model, "customer_id"):
            query = query.filter(model.customer_id == ctx.customer_id)
    return query


def require_owned(model, row_id: int, ctx: TenantContext, *, label: str | None = None):
    """
    Load a tenant-owned row by id.

    Raises ValidationError when the id is not an integer, and NotFoundError
    when the row doesn't exist or belongs to another business (or, for
    customer contexts, to another customer).
    """
    label = label or model.__name__
    row_id = _coerce_id(f"{label.lower()}_id", row_id)
    row = db.session.get(model, row_id) if row_id is not None else None
    if row is None:
        raise NotFoundError(f"{label} not found", details={"id": row_id})

    if row.business_id != ctx.business_id:
        _log_cross_tenant_attempt(
            f"{label} {row_id} belongs to business {row.business_id}, not {ctx.business_id}",
            ctx,
        )
        # Don't reveal it exists in another business
        raise NotFoundError(f"{label} not found", details={"id": row_id})

    if ctx.is_customer:
        owner_id = row.id if model is Customer else getattr(row, "customer_id", ctx.customer_id)
        if owner_id != ctx.customer_id:
            raise NotFoundError(f"{label} not found", details={"id": row_id})

    return row


def require_pet(pet_id: int, ctx: TenantContext) -> Pet:
    """Pets are owned through their customer."""
    pet_id = _coerce_id("pet_id", pet_id)
    pet = db.session.get(Pet, pet_id) if pet_id is not None else None
    if pet is None:
        raise NotFoundError("Pet not found", details={"id": pet_id})

    customer = pet.customer
    if customer.business_id != ctx.business_id:
        _log_cross_tenant_attempt(
            f"Pet {pet_id} belongs to business {customer.business_id}, not {ctx.business_id}",
            ctx,
        )
        raise NotFoundError("Pet not found", details={"id": pet_id})

    if ctx.is_customer and customer.id != ctx.customer_id:
        raise NotFoundError("Pet not found", details={"id": pet_id})

    return pet


def _coerce_id(key: str, value):
    if value is None:
        return None
    return coerce_int(key, value)


def get_business(ctx: TenantContext) -> Business:
    def _op():
        business = db.session.get(Business, ctx.business_id)
        if business is None:
            raise NotFoundError("Business not found")
        return business

    return read_with_retry(_op)


def update_business(ctx: TenantContext, patch: dict) -> Business:
    """
    Apply an owner's profile/branding patch to their own business.

    The patch is expected to be validated against BUSINESS_POLICY already;
    anything outside BUSINESS_MUTABLE_FIELDS is ignored.
    """
    if ctx.is_customer:
        raise ValidationError("Customers cannot edit the business profile")

    def _op():
        business = db.session.get(Business, ctx.business_id)
        if business is None:
            raise NotFoundError("Business not found")
        for key, value in patch.items():
            if key in BUSINESS_MUTABLE_FIELDS:
                setattr(business, key, value)
        db.session.commit()
        current_app.logger.info("Business %s profile updated: %s", business.id, sorted(patch))
        return business

    return run_with_retry(_op, retry=False)


def validate_business_active(business_id: int) -> Business:
    """
    Raises NotFoundError if the business doesn't exist or is inactive.
    """
    business = db.session.get(Business, business_id)
    if business is None or not business.is_active:
        raise NotFoundError("Business not found")
    return business


def _log_cross_tenant_attempt(reason: str, ctx: TenantContext) -> None:
    current_app.logger.warning("Cross-tenant access denied: %s", reason)
    log_security_event(
        "CROSS_TENANT_ACCESS_DENIED",
        False,
        business_id=ctx.business_id,
        account_id=ctx.account_id,
        reason=reason,
    )
