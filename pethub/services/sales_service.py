"""
Point-of-sale transactions.

A sale, its items and every stock decrement are written in ONE database
transaction: either all of them commit or none do. Stock is checked for
every line before anything is written, under row locks on the products
(SQLite: BEGIN IMMEDIATE), so two concurrent sales of the last unit
cannot both succeed.

Amounts are integer cents:
    line_total  = quantity * unit_price
    total       = sum(line_total)
    final       = total - discount,  0 <= discount <= total

An optional idempotency key makes the call safe to repeat: a replay with
the same key returns the sale already recorded instead of selling twice.
Only keyed sales are retried on transient store failures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import IdempotencyKeyReuseError, InsufficientStockError, ValidationError
from ..extensions import db
from ..models import Customer, Product, Sale, SaleItem, SaleStatus
from ..time_utils import parse_month
from ..validation import coerce_int, parse_payment_method
from .concurrency import begin_write, lock_for_update, read_with_retry, run_with_retry
from .tenant_service import TenantContext, require_owned, scoped_query

MAX_IDEMPOTENCY_KEY_LENGTH = 64


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    quantity: int
    unit_price_cents: int
    line_total_cents: int


@dataclass(frozen=True)
class SaleTotals:
    lines: tuple[PricedLine, ...] = field(default_factory=tuple)
    total_amount_cents: int = 0
    discount_amount_cents: int = 0
    final_amount_cents: int = 0


def normalize_lines(raw_lines) -> list[CartLine]:
    """
    Validate cart input and merge repeated products into one line.

    Accepts dicts with product_id/quantity or CartLine objects. Order of
    first appearance is kept.
    """
    if not isinstance(raw_lines, (list, tuple)) or not raw_lines:
        raise ValidationError("At least one line is required")

    merged: dict[int, int] = {}
    for index, raw in enumerate(raw_lines):
        if isinstance(raw, CartLine):
            product_id, quantity = raw.product_id, raw.quantity
        elif isinstance(raw, dict):
            product_id, quantity = raw.get("product_id"), raw.get("quantity")
        else:
            raise ValidationError(f"lines[{index}] must be an object")

        if product_id is None:
            raise ValidationError(f"lines[{index}].product_id is required")
        if quantity is None:
            raise ValidationError(f"lines[{index}].quantity is required")
        product_id = coerce_int(f"lines[{index}].product_id", product_id)
        quantity = coerce_int(f"lines[{index}].quantity", quantity)
        if quantity <= 0:
            raise ValidationError(f"lines[{index}].quantity must be > 0")

        merged[product_id] = merged.get(product_id, 0) + quantity

    return [CartLine(product_id=pid, quantity=qty) for pid, qty in merged.items()]


def price_cart(lines: list[CartLine], unit_prices: dict[int, int], discount_cents=0) -> SaleTotals:
    """
    Pure pricing of a cart.

    unit_prices maps product_id -> price in cents at sale time.
    """
    discount = coerce_int("discount_amount_cents", discount_cents or 0)
    if discount < 0:
        raise ValidationError("discount_amount_cents must be >= 0")

    priced = []
    for line in lines:
        unit_price = unit_prices[line.product_id]
        priced.append(PricedLine(
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price_cents=unit_price,
            line_total_cents=unit_price * line.quantity,
        ))

    total = sum(p.line_total_cents for p in priced)
    if discount > total:
        raise ValidationError(
            "Discount cannot exceed the sale total",
            details={"total_amount_cents": total, "discount_amount_cents": discount},
        )

    return SaleTotals(
        lines=tuple(priced),
        total_amount_cents=total,
        discount_amount_cents=discount,
        final_amount_cents=total - discount,
    )


def _lock_products(ctx: TenantContext, product_ids: list[int]) -> dict[int, Product]:
    """
    Load and lock every product of the cart, in id order so two sales
    touching the same products always lock them in the same order.
    """
    for product_id in product_ids:
        require_owned(Product, product_id, ctx)

    rows = lock_for_update(
        db.session.query(Product)
        .filter(Product.id.in_(product_ids))
        .order_by(Product.id.asc())
    ).populate_existing().all()
    return {p.id: p for p in rows}


def _check_stock(lines: list[CartLine], products: dict[int, Product]) -> None:
    inactive = [line.product_id for line in lines if not products[line.product_id].is_active]
    if inactive:
        raise ValidationError("Inactive products cannot be sold", details={"product_ids": inactive})

    short = [
        {
            "product_id": line.product_id,
            "name": products[line.product_id].name,
            "requested_quantity": line.quantity,
            "stock_quantity": products[line.product_id].stock_quantity,
        }
        for line in lines
        if products[line.product_id].stock_quantity < line.quantity
    ]
    if short:
        current_app.logger.info("Sale rejected for insufficient stock: %s", short)
        raise InsufficientStockError("Insufficient stock to complete sale", details={"items": short})


def _find_by_key(ctx: TenantContext, idempotency_key: str) -> Sale | None:
    return db.session.query(Sale).filter_by(
        business_id=ctx.business_id,
        idempotency_key=idempotency_key,
    ).first()


def _ensure_same_request(existing: Sale, cart: list[CartLine], method, discount: int, customer_id: int | None) -> None:
    """A key may only be replayed with the request it was first used for."""
    recorded = {item.product_id: item.quantity for item in existing.items}
    requested = {line.product_id: line.quantity for line in cart}
    mismatched = []
    if recorded != requested:
        mismatched.append("lines")
    if existing.payment_method != method.value:
        mismatched.append("payment_method")
    if existing.discount_amount_cents != discount:
        mismatched.append("discount_amount_cents")
    if existing.customer_id != customer_id:
        mismatched.append("customer_id")

    if mismatched:
        raise IdempotencyKeyReuseError(
            "Idempotency key was already used for a different sale",
            details={"sale_id": existing.id, "fields": mismatched},
        )


def record_sale(
    ctx: TenantContext,
    *,
    lines,
    payment_method,
    discount_cents=0,
    customer_id: int | None = None,
    notes: str | None = None,
    idempotency_key: str | None = None,
) -> tuple[Sale, bool]:
    """
    Ring up a sale.

    Returns (sale, replayed). replayed is True when the idempotency key
    had already been used and the sale recorded then is returned.

    Raises:
        ValidationError: empty cart, bad quantity, bad payment method,
            discount above total, inactive product, malformed ids
        NotFoundError: product or customer outside the tenant
        InsufficientStockError: some line asks for more than is in stock;
            nothing has been written when this is raised
        IdempotencyKeyReuseError: the key belongs to a sale with other
            lines, payment method, discount or customer
        DependencyError: store unavailable after the allowed retries
    """
    cart = normalize_lines(lines)
    method = parse_payment_method(payment_method)
    discount = coerce_int("discount_amount_cents", discount_cents or 0)
    if discount < 0:
        raise ValidationError("discount_amount_cents must be >= 0")
    if customer_id is not None:
        customer_id = coerce_int("customer_id", customer_id)

    if idempotency_key is not None:
        idempotency_key = str(idempotency_key).strip() or None
    if idempotency_key and len(idempotency_key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise ValidationError(f"idempotency_key exceeds max length {MAX_IDEMPOTENCY_KEY_LENGTH}")

    def _replay(existing: Sale) -> tuple[Sale, bool]:
        _ensure_same_request(existing, cart, method, discount, customer_id)
        current_app.logger.info("Replayed sale %s for idempotency key %s", existing.id, idempotency_key)
        return existing, True

    def _op():
        begin_write()

        if idempotency_key:
            existing = _find_by_key(ctx, idempotency_key)
            if existing is not None:
                result = _replay(existing)
                # Release the write lock; nothing was changed
                db.session.commit()
                return result

        if customer_id is not None:
            require_owned(Customer, customer_id, ctx)

        products = _lock_products(ctx, [line.product_id for line in cart])
        _check_stock(cart, products)
        totals = price_cart(cart, {pid: p.price_cents for pid, p in products.items()}, discount)

        sale = Sale(
            business_id=ctx.business_id,
            customer_id=customer_id,
            account_id=ctx.account_id,
            total_amount_cents=totals.total_amount_cents,
            discount_amount_cents=totals.discount_amount_cents,
            final_amount_cents=totals.final_amount_cents,
            payment_method=method.value,
            status=SaleStatus.COMPLETED.value,
            idempotency_key=idempotency_key,
            notes=notes,
        )
        try:
            db.session.add(sale)
            db.session.flush()  # sale.id for the items; a duplicate key fails here

            for line in totals.lines:
                db.session.add(SaleItem(
                    sale_id=sale.id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    line_total_cents=line.line_total_cents,
                ))
                products[line.product_id].stock_quantity -= line.quantity

            db.session.commit()
        except IntegrityError:
            # Another request committed the same key first
            db.session.rollback()
            if idempotency_key:
                existing = _find_by_key(ctx, idempotency_key)
                if existing is not None:
                    return _replay(existing)
            raise

        current_app.logger.info(
            "Sale %s recorded business=%s final=%s items=%s",
            sale.id, ctx.business_id, sale.final_amount_cents, len(totals.lines),
        )
        return sale, False

    return run_with_retry(_op, retry=bool(idempotency_key))


def create_sale(ctx: TenantContext, **kwargs) -> Sale:
    """record_sale() for callers that don't care whether the sale was replayed."""
    sale, _ = record_sale(ctx, **kwargs)
    return sale


def get_sale(ctx: TenantContext, sale_id: int) -> Sale:
    return read_with_retry(lambda: require_owned(Sale, sale_id, ctx))


def list_sales(ctx: TenantContext, *, month: str | None = None, customer_id: int | None = None) -> list[Sale]:
    if month is not None:
        try:
            first_day, next_month = parse_month(month)
        except ValueError:
            raise ValidationError("month must be YYYY-MM")

    def _op():
        query = scoped_query(Sale, ctx)
        if month is not None:
            query = query.filter(
                Sale.created_at >= datetime.combine(first_day, time.min),
                Sale.created_at < datetime.combine(next_month, time.min),
            )
        if customer_id is not None:
            query = query.filter(Sale.customer_id == customer_id)
        return query.order_by(Sale.created_at.desc(), Sale.id.desc()).all()

    return read_with_retry(_op)
