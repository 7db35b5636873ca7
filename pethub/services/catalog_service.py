# pethub/services/catalog_service.py
"""
Services and Products with Multi-Tenant Support

All catalog operations are scoped to the caller's business.
Removing a service or product deactivates it; existing appointments and
sale items keep referencing the row.

Product stock only changes through the sale service or adjust_stock,
never through a generic update.
"""
from __future__ import annotations

from flask import current_app

from ..errors import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, Service
from ..validation import coerce_int
from .concurrency import begin_write, lock_for_update, read_with_retry, run_with_retry
from .tenant_service import TenantContext, require_owned, scoped_query

SERVICE_MUTABLE_FIELDS = {
    "name", "description", "duration_minutes",
    "price_small_cents", "price_medium_cents", "price_large_cents", "is_active",
}
PRODUCT_MUTABLE_FIELDS = {
    "name", "description", "brand", "category", "unit", "barcode",
    "price_cents", "cost_cents", "min_stock", "is_active",
}


def _apply_patch(row, patch: dict, allowed: set[str]) -> None:
    for k, v in patch.items():
        if k not in allowed:
            continue
        setattr(row, k, v)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

def list_services(ctx: TenantContext, *, active_only: bool = False) -> list[Service]:
    def _op():
        query = scoped_query(Service, ctx)
        if active_only or ctx.is_customer:
            query = query.filter(Service.is_active.is_(True))
        return query.order_by(Service.name.asc(), Service.id.asc()).all()

    return read_with_retry(_op)


def get_service(ctx: TenantContext, service_id: int) -> Service:
    service = read_with_retry(lambda: require_owned(Service, service_id, ctx))
    if ctx.is_customer and not service.is_active:
        # Portal users only see what they can book
        raise NotFoundError("Service not found", details={"id": service.id})
    return service


def create_service(ctx: TenantContext, patch: dict) -> Service:
    def _op():
        service = Service(business_id=ctx.business_id, is_active=True)
        _apply_patch(service, patch, SERVICE_MUTABLE_FIELDS)
        db.session.add(service)
        db.session.commit()
        return service

    return run_with_retry(_op, retry=False)


def update_service(ctx: TenantContext, service_id: int, patch: dict) -> Service:
    def _op():
        service = require_owned(Service, service_id, ctx)
        _apply_patch(service, patch, SERVICE_MUTABLE_FIELDS)
        db.session.commit()
        return service

    return run_with_retry(_op, retry=False)


def deactivate_service(ctx: TenantContext, service_id: int) -> Service:
    def _op():
        service = require_owned(Service, service_id, ctx)
        service.is_active = False
        db.session.commit()
        return service

    return run_with_retry(_op, retry=False)


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

def list_products(
    ctx: TenantContext,
    *,
    search: str | None = None,
    category: str | None = None,
    active_only: bool = False,
    low_stock_only: bool = False,
) -> list[Product]:
    def _op():
        query = scoped_query(Product, ctx)
        if active_only:
            query = query.filter(Product.is_active.is_(True))
        if category:
            query = query.filter(Product.category == category)
        if search:
            like = f"%{search.strip()}%"
            query = query.filter(db.or_(Product.name.ilike(like), Product.barcode == search.strip()))
        if low_stock_only:
            query = query.filter(Product.stock_quantity <= Product.min_stock)
        return query.order_by(Product.name.asc(), Product.id.asc()).all()

    return read_with_retry(_op)


def get_product(ctx: TenantContext, product_id: int) -> Product:
    return read_with_retry(lambda: require_owned(Product, product_id, ctx))


def find_product_by_barcode(ctx: TenantContext, barcode: str) -> Product | None:
    return read_with_retry(
        lambda: scoped_query(Product, ctx).filter(Product.barcode == barcode.strip()).first()
    )


def _ensure_barcode_free(ctx: TenantContext, barcode: str | None, exclude_id: int | None = None) -> None:
    if not barcode:
        return
    query = scoped_query(Product, ctx).filter(Product.barcode == barcode)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("Barcode already exists for this business.")


def create_product(ctx: TenantContext, patch: dict) -> Product:
    def _op():
        _ensure_barcode_free(ctx, patch.get("barcode"))

        product = Product(business_id=ctx.business_id, is_active=True)
        _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
        product.stock_quantity = patch.get("stock_quantity") or 0
        if product.min_stock is None:
            product.min_stock = 0

        db.session.add(product)
        db.session.commit()
        return product

    return run_with_retry(_op, retry=False)


def update_product(ctx: TenantContext, product_id: int, patch: dict) -> Product:
    """
    Edit catalog fields. A sale that touches the product at the same time
    bumps its version; the losing update fails with DependencyError and
    nothing is written.
    """
    def _op():
        product = require_owned(Product, product_id, ctx)
        if "barcode" in patch:
            _ensure_barcode_free(ctx, patch["barcode"], exclude_id=product.id)
        _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
        db.session.commit()
        return product

    return run_with_retry(_op, retry=False)


def deactivate_product(ctx: TenantContext, product_id: int) -> Product:
    def _op():
        product = require_owned(Product, product_id, ctx)
        product.is_active = False
        db.session.commit()
        return product

    return run_with_retry(_op, retry=False)


def adjust_stock(ctx: TenantContext, product_id: int, delta, reason: str | None = None) -> Product:
    """
    Restock (delta > 0) or write off (delta < 0) a product.

    Runs under the same write lock as sales so it cannot interleave with
    a sale's check-then-decrement.
    """
    delta = coerce_int("delta", delta)
    if delta == 0:
        raise ValidationError("delta must be non-zero")

    def _op():
        begin_write()
        owned = require_owned(Product, product_id, ctx)
        product = lock_for_update(
            db.session.query(Product).filter(Product.id == owned.id)
        ).populate_existing().one()

        new_quantity = product.stock_quantity + delta
        if new_quantity < 0:
            raise InsufficientStockError(
                "Stock cannot go below zero",
                details={
                    "product_id": product.id,
                    "stock_quantity": product.stock_quantity,
                    "delta": delta,
                },
            )

        product.stock_quantity = new_quantity
        db.session.commit()
        current_app.logger.info(
            "Stock adjusted business=%s product=%s delta=%s reason=%s",
            ctx.business_id, product.id, delta, reason,
        )
        return product

    # A stock adjustment is not idempotent; never replay it blindly
    return run_with_retry(_op, retry=False)
