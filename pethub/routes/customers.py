# Overview: Flask API routes for customers and their pets.

# pethub/routes/customers.py
"""
Customer and pet management for business owners.

MULTI-TENANT: every lookup goes through the caller's TenantContext
(g.tenant, set by @require_auth). Rows of another business answer 404.
"""
from flask import Blueprint, request, g

from ..decorators import require_auth, require_owner
from ..errors import PetHubError
from ..models import Customer, Pet
from ..services import customers_service
from ..validation import (
    CUSTOMER_POLICY,
    PET_POLICY,
    enforce_rules_pet,
    validate_payload,
)
from .common import arg_flag, error_response, internal_error, json_body

customers_bp = Blueprint("customers", __name__, url_prefix="/api")


@customers_bp.get("/customers")
@require_auth
@require_owner
def list_customers():
    """
    Query params:
    - search: matches name, phone or email
    - include_inactive: bool (default false)
    """
    try:
        customers = customers_service.list_customers(
            g.tenant,
            search=request.args.get("search"),
            include_inactive=arg_flag("include_inactive"),
        )
        return {"items": [c.to_dict() for c in customers], "count": len(customers)}
    except PetHubError as e:
        return error_response(e)


@customers_bp.post("/customers")
@require_auth
@require_owner
def create_customer():
    try:
        patch = validate_payload(model=Customer, payload=json_body(), policy=CUSTOMER_POLICY, partial=False)
        customer = customers_service.create_customer(g.tenant, patch)
        return customer.to_dict(), 201
    except PetHubError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create customer")


@customers_bp.get("/customers/<int:customer_id>")
@require_auth
@require_owner
def get_customer(customer_id: int):
    try:
        customer = customers_service.get_customer(g.tenant, customer_id)
    except PetHubError as e:
        return error_response(e)

    data = customer.to_dict()
    data["pets"] = [p.to_dict() for p in customer.pets]
    return data


@customers_bp.put("/customers/<int:customer_id>")
@require_auth
@require_owner
def update_customer(customer_id: int):
    try:
        patch = validate_payload(model=Customer, payload=json_body(), policy=CUSTOMER_POLICY, partial=True)
        customer = customers_service.update_customer(g.tenant, customer_id, patch)
        return customer.to_dict()
    except PetHubError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update customer")


@customers_bp.delete("/customers/<int:customer_id>")
@require_auth
@require_owner
def deactivate_customer(customer_id: int):
    """Soft delete: appointments and sales keep pointing at the customer."""
    try:
        customer = customers_service.deactivate_customer(g.tenant, customer_id)
        return customer.to_dict()
    except PetHubError as e:
        return error_response(e)


@customers_bp.get("/customers/<int:customer_id>/pets")
@require_auth
@require_owner
def list_customer_pets(customer_id: int):
    try:
        pets = customers_service.list_pets(g.tenant, customer_id=customer_id)
        return {"items": [p.to_dict() for p in pets], "count": len(pets)}
    except PetHubError as e:
        return error_response(e)


@customers_bp.post("/customers/<int:customer_id>/pets")
@require_auth
@require_owner
def create_pet(customer_id: int):
    try:
        patch = validate_payload(model=Pet, payload=json_body(), policy=PET_POLICY, partial=False)
        enforce_rules_pet(patch)
        pet = customers_service.create_pet(g.tenant, customer_id, patch)
        return pet.to_dict(), 201
    except PetHubError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create pet")


@customers_bp.get("/pets/<int:pet_id>")
@require_auth
@require_owner
def get_pet(pet_id: int):
    try:
        return customers_service.get_pet(g.tenant, pet_id).to_dict()
    except PetHubError as e:
        return error_response(e)


@customers_bp.put("/pets/<int:pet_id>")
@require_auth
@require_owner
def update_pet(pet_id: int):
    try:
        patch = validate_payload(model=Pet, payload=json_body(), policy=PET_POLICY, partial=True)
        enforce_rules_pet(patch)
        pet = customers_service.update_pet(g.tenant, pet_id, patch)
        return pet.to_dict()
    except PetHubError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update pet")


@customers_bp.delete("/pets/<int:pet_id>")
@require_auth
@require_owner
def delete_pet(pet_id: int):
    try:
        customers_service.delete_pet(g.tenant, pet_id)
    except PetHubError as e:
        return error_response(e)
    return {"ok": True}
