# Overview: Tenant and account bootstrap used by the CLI and test fixtures.

from __future__ import annotations

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Account, Business, Customer, AccountRole, Plan


def create_business(
    *,
    name: str,
    email: str,
    phone: str,
    address: str = "",
    plan: str = Plan.FREE.value,
) -> Business:
    if not name or not name.strip():
        raise ValidationError("name is required")
    try:
        plan = Plan.parse(plan).value
    except ValueError as exc:
        raise ValidationError(f"plan {exc}")

    business = Business(
        name=name.strip(),
        email=email.strip(),
        phone=phone.strip(),
        address=address.strip(),
        plan=plan,
        is_active=True,
    )
    db.session.add(business)
    db.session.commit()
    return business


def _ensure_email_free(business_id: int, email: str) -> None:
    existing = db.session.query(Account).filter_by(business_id=business_id, email=email).first()
    if existing:
        raise ConflictError("An account with this email already exists for the business")


def create_owner_account(*, business_id: int, email: str, name: str) -> Account:
    email = email.strip().lower()
    _ensure_email_free(business_id, email)

    account = Account(
        business_id=business_id,
        email=email,
        name=name,
        role=AccountRole.OWNER.value,
    )
    db.session.add(account)
    db.session.commit()
    return account


def create_customer_account(*, customer_id: int, email: str | None = None) -> Account:
    """
    Link a portal account to an existing customer.

    The link is the customer_id foreign key, fixed here; the email is only
    a contact detail and is never used to find the customer again.
    """
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise ValidationError("Customer not found")
    if customer.account is not None:
        raise ConflictError("Customer already has an account")

    email = (email or customer.email or "").strip().lower()
    if not email:
        raise ValidationError("email is required")
    _ensure_email_free(customer.business_id, email)

    account = Account(
        business_id=customer.business_id,
        customer_id=customer.id,
        email=email,
        name=customer.name,
        role=AccountRole.CUSTOMER.value,
    )
    db.session.add(account)
    db.session.commit()
    return account
