"""Monthly summary and stock report tests."""

import pytest

from pethub.errors import ValidationError
from pethub.services.reporting_service import (
    MonthlySummary,
    month_bounds,
    monthly_report,
    stock_report,
    summarize_month,
)
from pethub.services.sales_service import create_sale
from pethub.services.scheduling_service import book_appointment, transition_appointment
from pethub.time_utils import month_key, utcnow


def test_empty_month_is_all_zeros():
    assert summarize_month([], []) == MonthlySummary()
    assert summarize_month(None, None).total_revenue_cents == 0


def test_summary_rules():
    appointments = [
        {"pet_id": 1, "status": "confirmed", "price_cents": 5000},
        {"pet_id": 1, "status": "completed", "price_cents": 5000},
        {"pet_id": 2, "status": "pending", "price_cents": 2500},
        {"pet_id": 3, "status": "cancelled", "price_cents": 3500},
    ]
    sales = [
        {"status": "completed", "final_amount_cents": 1990},
        {"status": "completed", "final_amount_cents": 850},
    ]

    summary = summarize_month(appointments, sales)

    assert summary.appointments_count == 4
    assert summary.appointment_revenue_cents == 5000
    assert summary.sales_revenue_cents == 2840
    assert summary.total_revenue_cents == 7840
    assert summary.pets_served == 3


def test_summary_is_idempotent():
    appointments = [{"pet_id": 1, "status": "confirmed", "price_cents": 5000}]
    sales = [{"status": "completed", "final_amount_cents": 100}]
    assert summarize_month(appointments, sales) == summarize_month(appointments, sales)


def test_month_bounds():
    start, end = month_bounds("2024-12")
    assert (start.year, start.month, start.day) == (2024, 12, 1)
    assert (end.year, end.month, end.day) == (2025, 1, 1)


@pytest.mark.parametrize("month", ["2024", "2024-00", "march", None])
def test_month_bounds_rejects(month):
    with pytest.raises(ValidationError):
        month_bounds(month)


class TestMonthlyReport:

    def _book(self, ctx, pet, service, start, **kwargs):
        return book_appointment(
            ctx, pet_id=pet.id, service_id=service.id,
            appointment_date="2024-03-10", start_time=start, **kwargs,
        )

    def test_appointment_rows(self, ctx_a, ctx_b, large_pet, small_pet, pet_b, bath_service, service_b):
        self._book(ctx_a, large_pet, bath_service, "09:00", status="confirmed")
        self._book(ctx_a, small_pet, bath_service, "10:00")
        cancelled = self._book(ctx_a, small_pet, bath_service, "11:00")
        transition_appointment(ctx_a, cancelled.id, "cancelled")
        self._book(ctx_b, pet_b, service_b, "09:00", status="confirmed")

        report = monthly_report(ctx_a, "2024-03")

        assert report["business_id"] == ctx_a.business_id
        assert report["month"] == "2024-03"
        assert report["appointments_count"] == 3
        assert report["appointment_revenue_cents"] == 5000
        assert report["pets_served"] == 2
        assert report["sales_revenue_cents"] == 0

        assert monthly_report(ctx_a, "2024-04")["appointments_count"] == 0

    def test_sales_bucketed_by_creation_month(self, ctx_a, shampoo):
        create_sale(ctx_a, lines=[{"product_id": shampoo.id, "quantity": 2}], payment_method="cash")

        report = monthly_report(ctx_a, month_key(utcnow().date()))

        assert report["sales_revenue_cents"] == 2 * 1990
        assert report["total_revenue_cents"] == report["appointment_revenue_cents"] + 2 * 1990

    def test_report_twice_gives_same_answer(self, ctx_a, large_pet, bath_service):
        self._book(ctx_a, large_pet, bath_service, "09:00", status="confirmed")
        assert monthly_report(ctx_a, "2024-03") == monthly_report(ctx_a, "2024-03")

    def test_bad_month(self, ctx_a):
        with pytest.raises(ValidationError):
            monthly_report(ctx_a, "03/2024")


def test_stock_report(db_session, ctx_a, shampoo, treats, product_b):
    shampoo.stock_quantity = 2  # equals min_stock -> low
    db_session.commit()

    report = stock_report(ctx_a)

    assert report["product_count"] == 2
    assert report["total_value_cents"] == 2 * 1990 + 20 * 850
    assert report["total_cost_cents"] == 2 * 900 + 20 * 400
    assert [item["product_id"] for item in report["low_stock"]] == [shampoo.id]
