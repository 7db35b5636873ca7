# Overview: Flask API routes for the service menu and the product catalog.

# pethub/routes/catalog.py
"""
Services (grooming menu) and products (retail catalog).

Removing a service or product deactivates it. Product stock is not part
of the update payload; it changes through sales or POST /stock.
"""
from flask import Blueprint, request, g

from ..decorators import require_auth, require_owner
from ..errors import PetHubError
from ..models import Product, Service
from ..services import catalog_service
from ..validation import (
    PRODUCT_CREATE_POLICY,
    PRODUCT_UPDATE_POLICY,
    SERVICE_POLICY,
    enforce_rules_product,
    enforce_rules_service,
    validate_payload,
)
from .common import arg_flag, error_response, internal_error, json_body

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@catalog_bp.get("/services")
@require_auth
@require_owner
def list_services():
    services = catalog_service.list_services(g.tenant, active_only=arg_flag("active_only"))
    return {"items": [s.to_dict() for s in services], "count": len(services)}


@catalog_bp.post("/services")
@require_auth
@require_owner
def create_service():
    try:
        patch = validate_payload(model=Service, payload=json_body(), policy=SERVICE_POLICY, partial=False)
        enforce_rules_service(patch)
        service = catalog_service.create_service(g.tenant, patch)
        return service.to_dict(), 201
    except PetHubError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create service")


@catalog_bp.get("/services/<int:service_id>")
@require_auth
@require_owner
def get_service(service_id: int):
    try:
        return catalog_service.get_service(g.tenant, service_id).to_dict()
    except PetHubError as e:
        return error_response(e)


@catalog_bp.put("/services/<int:service_id>")
@require_auth
@require_owner
def update_service(service_id: int):
    try:
        patch = validate_payload(model=Service, payload=json_body(), policy=SERVICE_POLICY, partial=True)
        enforce_rules_service(patch)
        service = catalog_service.update_service(g.tenant, service_id, patch)
        return service.to_dict()
    except PetHubError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update service")


@catalog_bp.delete("/services/<int:service_id>")
@require_auth
@require_owner
def deactivate_service(service_id: int):
    try:
        return catalog_service.deactivate_service(g.tenant, service_id).to_dict()
    except PetHubError as e:
        return error_response(e)


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

@catalog_bp.get("/products")
@require_auth
@require_owner
def list_products():
    """
    Query params:
    - search: matches name, or an exact barcode
    - category: exact category
    - barcode: exact barcode lookup (returns at most one item)
    - active_only, low_stock_only: bool
    """
    barcode = request.args.get("barcode")
    if barcode:
        product = catalog_service.find_product_by_barcode(g.tenant, barcode)
        items = [product.to_dict()] if product else []
        return {"items": items, "count": len(items)}

    products = catalog_service.list_products(
        g.tenant,
        search=request.args.get("search"),
        category=request.args.get("category"),
        active_only=arg_flag("active_only"),
        low_stock_only=arg_flag("low_stock_only"),
    )
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@catalog_bp.post("/products")
@require_auth
@require_owner
def create_product():
    try:
        patch = validate_payload(model=Product, payload=json_body(), policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)
        product = catalog_service.create_product(g.tenant, patch)
        return product.to_dict(), 201
    except PetHubError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create product")


@catalog_bp.get("/products/<int:product_id>")
@require_auth
@require_owner
def get_product(product_id: int):
    try:
        return catalog_service.get_product(g.tenant, product_id).to_dict()
    except PetHubError as e:
        return error_response(e)


@catalog_bp.put("/products/<int:product_id>")
@require_auth
@require_owner
def update_product(product_id: int):
    try:
        patch = validate_payload(model=Product, payload=json_body(), policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
        product = catalog_service.update_product(g.tenant, product_id, patch)
        return product.to_dict()
    except PetHubError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update product")


@catalog_bp.delete("/products/<int:product_id>")
@require_auth
@require_owner
def deactivate_product(product_id: int):
    try:
        return catalog_service.deactivate_product(g.tenant, product_id).to_dict()
    except PetHubError as e:
        return error_response(e)


@catalog_bp.post("/products/<int:product_id>/stock")
@require_auth
@require_owner
def adjust_stock(product_id: int):
    """
    Body: {"delta": int, "reason": str?}
    Positive delta restocks, negative writes off. Stock never goes below 0.
    """
    try:
        payload = json_body()
        product = catalog_service.adjust_stock(
            g.tenant,
            product_id,
            payload.get("delta"),
            reason=payload.get("reason"),
        )
        return product.to_dict()
    except PetHubError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to adjust stock")
