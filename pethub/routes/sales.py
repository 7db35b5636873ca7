# Overview: Flask API routes for point-of-sale transactions.

# pethub/routes/sales.py
"""
Point-of-sale routes.

POST /api/sales is atomic: the sale, its items and all stock decrements
commit together or not at all. Clients may send an Idempotency-Key header
(or "idempotency_key" in the body) so a retried request does not sell twice.
"""
from flask import Blueprint, request, g

from ..decorators import require_auth, require_owner
from ..errors import PetHubError
from ..services import sales_service
from .common import error_response, internal_error, json_body

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_owner
def create_sale():
    """
    Body:
    {
      "lines": [{"product_id": int, "quantity": int}, ...],
      "payment_method": "cash"|"card"|"pix"|"multiple",
      "discount_amount_cents": int?, "customer_id": int?, "notes": str?
    }

    Returns 201 with the sale and its items. A replayed idempotency key
    returns 200 with the sale recorded the first time; reusing a key for a
    different cart is a 409.
    """
    try:
        payload = json_body()
        key = request.headers.get("Idempotency-Key") or payload.get("idempotency_key")

        sale, replayed = sales_service.record_sale(
            g.tenant,
            lines=payload.get("lines"),
            payment_method=payload.get("payment_method"),
            discount_cents=payload.get("discount_amount_cents", 0),
            customer_id=payload.get("customer_id"),
            notes=payload.get("notes"),
            idempotency_key=key,
        )
        return sale.to_dict(include_items=True), 200 if replayed else 201
    except PetHubError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create sale")


@sales_bp.get("")
@require_auth
@require_owner
def list_sales():
    """Query params: month (YYYY-MM), customer_id."""
    try:
        sales = sales_service.list_sales(
            g.tenant,
            month=request.args.get("month"),
            customer_id=request.args.get("customer_id", type=int),
        )
        return {"items": [s.to_dict() for s in sales], "count": len(sales)}
    except PetHubError as e:
        return error_response(e)


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_owner
def get_sale(sale_id: int):
    try:
        return sales_service.get_sale(g.tenant, sale_id).to_dict(include_items=True)
    except PetHubError as e:
        return error_response(e)
