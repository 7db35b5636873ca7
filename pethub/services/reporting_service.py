# Overview: Monthly and stock reports; aggregation is pure over fetched rows.

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, time
from typing import Any, Iterable

from ..errors import ValidationError
from ..models import Appointment, AppointmentStatus, Product, Sale, SaleStatus
from ..time_utils import parse_month
from .concurrency import read_with_retry
from .tenant_service import TenantContext, scoped_query


@dataclass(frozen=True)
class MonthlySummary:
    appointments_count: int = 0
    appointment_revenue_cents: int = 0
    sales_revenue_cents: int = 0
    total_revenue_cents: int = 0
    pets_served: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def _field(record: Any, name: str):
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def month_bounds(month: str) -> tuple[datetime, datetime]:
    """'YYYY-MM' -> [first instant of month, first instant of next month)."""
    try:
        first_day, next_month = parse_month(month)
    except (TypeError, ValueError):
        raise ValidationError("month must be YYYY-MM")
    return datetime.combine(first_day, time.min), datetime.combine(next_month, time.min)


def summarize_month(appointments: Iterable[Any], sales: Iterable[Any]) -> MonthlySummary:
    """
    Aggregate one month of already-fetched rows.

    - appointments_count: every appointment in the set
    - appointment_revenue_cents: price of confirmed appointments
    - sales_revenue_cents: final amount of completed sales
    - pets_served: distinct pet ids across the appointments

    Rows may be model instances or dicts. No side effects; empty inputs
    give an all-zero summary.
    """
    appointments = list(appointments or [])
    sales = list(sales or [])

    appointment_revenue = sum(
        _field(a, "price_cents") or 0
        for a in appointments
        if _field(a, "status") == AppointmentStatus.CONFIRMED.value
    )
    sales_revenue = sum(
        _field(s, "final_amount_cents") or 0
        for s in sales
        if _field(s, "status") == SaleStatus.COMPLETED.value
    )
    pets = {_field(a, "pet_id") for a in appointments if _field(a, "pet_id") is not None}

    return MonthlySummary(
        appointments_count=len(appointments),
        appointment_revenue_cents=appointment_revenue,
        sales_revenue_cents=sales_revenue,
        total_revenue_cents=appointment_revenue + sales_revenue,
        pets_served=len(pets),
    )


def fetch_month(ctx: TenantContext, month: str) -> tuple[list[Appointment], list[Sale]]:
    """Tenant appointments starting in the month and sales created in it."""
    start, end = month_bounds(month)

    def _op():
        appointments = scoped_query(Appointment, ctx).filter(
            Appointment.starts_at >= start,
            Appointment.starts_at < end,
        ).all()
        sales = scoped_query(Sale, ctx).filter(
            Sale.created_at >= start,
            Sale.created_at < end,
        ).all()
        return appointments, sales

    return read_with_retry(_op)


def monthly_report(ctx: TenantContext, month: str) -> dict:
    appointments, sales = fetch_month(ctx, month)
    summary = summarize_month(appointments, sales)
    return {
        "business_id": ctx.business_id,
        "month": month,
        **summary.to_dict(),
    }


def stock_report(ctx: TenantContext) -> dict:
    """
    Active products: low-stock list (stock <= min_stock) and stock value
    at sale price and at cost. Products without a cost count as zero cost.
    """
    products = read_with_retry(
        lambda: scoped_query(Product, ctx)
        .filter(Product.is_active.is_(True))
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )

    low_stock = [p for p in products if p.is_low_stock]
    return {
        "business_id": ctx.business_id,
        "product_count": len(products),
        "total_value_cents": sum(p.stock_quantity * p.price_cents for p in products),
        "total_cost_cents": sum(p.stock_quantity * (p.cost_cents or 0) for p in products),
        "low_stock": [
            {
                "product_id": p.id,
                "name": p.name,
                "stock_quantity": p.stock_quantity,
                "min_stock": p.min_stock,
            }
            for p in low_stock
        ],
    }
