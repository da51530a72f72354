"""Tests for dashboard figures, report aggregations, and search filters."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from inventrack import core_logic, reports
from inventrack.billing import InvoiceDraft, LineItemRequest
from inventrack.constants import InvoiceStatus, MovementType


IST = timezone(timedelta(hours=5, minutes=30), "IST")


def _commit(context, customer_id, product_id, quantity, when, status=InvoiceStatus.PAID):
    return core_logic.commit_invoice(
        context,
        InvoiceDraft(
            customer_id=customer_id,
            items=(LineItemRequest(product_id, Decimal(quantity)),),
            status=status,
            timestamp=when,
        ),
    )


@pytest.fixture
def sales_context(stocked_context):
    """Three invoices over two months plus a purchase and an adjustment.

    * INV24030001: C1 buys 2 x P1 on 5 March (paid, 236)
    * INV24030002: C2 buys 1 x P2 on 7 March (pending, 52.5 with IGST)
    * INV24020001: C1 buys 1 x P1 on 20 February (paid, 118)
    """

    context = stocked_context
    _commit(context, "C1", "P1", "2", datetime(2024, 3, 5, 10, 30, tzinfo=UTC))
    _commit(context, "C2", "P2", "1", datetime(2024, 3, 7, 16, 0, tzinfo=UTC), status=InvoiceStatus.PENDING)
    _commit(context, "C1", "P1", "1", datetime(2024, 2, 20, 12, 0, tzinfo=UTC))
    core_logic.record_stock_change(
        context,
        core_logic.StockChangeCommand(
            "P1",
            Decimal("5"),
            MovementType.PURCHASE,
            reference="PO-17",
            timestamp=datetime(2024, 3, 6, 9, 0, tzinfo=UTC),
        ),
    )
    core_logic.record_stock_change(
        context,
        core_logic.StockChangeCommand(
            "P1",
            Decimal("-1"),
            MovementType.ADJUSTMENT,
            notes="Damaged in transit",
            timestamp=datetime(2024, 3, 6, 10, 0, tzinfo=UTC),
        ),
    )
    return context


def test_dashboard_stats_counts_paid_invoices_only(sales_context):
    stats = reports.dashboard_stats(sales_context, now=datetime(2024, 3, 5, 18, 0, tzinfo=UTC))

    assert stats.total_revenue == Decimal("354")
    assert stats.total_invoices == 2
    assert stats.today_revenue == Decimal("236")
    assert stats.today_invoices == 1
    assert stats.total_gst_collected == Decimal("54")
    assert stats.total_products == 2
    assert stats.low_stock_products == 1
    assert stats.total_customers == 2


def test_daily_sales_lists_days_oldest_first(sales_context):
    days = reports.daily_sales(sales_context, days=3, now=datetime(2024, 3, 7, 12, 0, tzinfo=UTC))

    assert [entry.day for entry in days] == [date(2024, 3, 5), date(2024, 3, 6), date(2024, 3, 7)]
    assert [entry.revenue for entry in days] == [Decimal("236"), Decimal("0"), Decimal("0")]
    assert [entry.invoices for entry in days] == [1, 0, 0]


def test_daily_sales_rejects_non_positive_window(sales_context):
    with pytest.raises(ValueError):
        reports.daily_sales(sales_context, days=0)


def test_stock_by_category(sales_context):
    assert reports.stock_by_category(sales_context) == {
        "Electronics": Decimal("11"),
        "Stationery": Decimal("2"),
    }


def test_low_stock_products(sales_context):
    assert [product.product_id for product in reports.low_stock_products(sales_context)] == ["P2"]


def test_sales_summary_covers_every_status(sales_context):
    summary = reports.sales_summary(sales_context)

    assert summary.total_revenue == Decimal("406.5")
    assert summary.total_gst == Decimal("56.5")
    assert summary.total_invoices == 3
    assert summary.average_invoice_value == Decimal("135.5")


def test_sales_summary_without_invoices(stocked_context):
    summary = reports.sales_summary(stocked_context)
    assert summary.average_invoice_value == Decimal("0")


def test_sales_by_category_skips_deleted_products(sales_context):
    assert reports.sales_by_category(sales_context) == {
        "Electronics": Decimal("300"),
        "Stationery": Decimal("50"),
    }

    core_logic.delete_product(sales_context, "P2")

    assert reports.sales_by_category(sales_context) == {"Electronics": Decimal("300")}


def test_monthly_revenue_is_ascending_and_limited(sales_context):
    assert reports.monthly_revenue(sales_context) == [
        ("2024-02", Decimal("118")),
        ("2024-03", Decimal("288.5")),
    ]
    assert reports.monthly_revenue(sales_context, months=1) == [("2024-03", Decimal("288.5"))]


@pytest.fixture
def month_end_context(stocked_context):
    """One 118 invoice at 20:30 UTC on 31 March, already 1 April in India."""

    context = core_logic.RuntimeContext(
        settings=replace(stocked_context.settings, timezone=IST),
        ledger=stocked_context.ledger,
    )
    _commit(context, "C1", "P1", "1", datetime(2024, 3, 31, 20, 30, tzinfo=UTC))
    return context


def test_dashboard_today_starts_at_local_midnight(month_end_context):
    morning = datetime(2024, 4, 1, 3, 0, tzinfo=UTC)

    stats = reports.dashboard_stats(month_end_context, now=morning)

    assert stats.today_invoices == 1
    assert stats.today_revenue == Decimal("118")

    utc_context = core_logic.RuntimeContext(
        settings=replace(month_end_context.settings, timezone=UTC),
        ledger=month_end_context.ledger,
    )
    assert reports.dashboard_stats(utc_context, now=morning).today_invoices == 0


def test_daily_sales_buckets_by_local_day(month_end_context):
    days = reports.daily_sales(month_end_context, days=2, now=datetime(2024, 4, 1, 3, 0, tzinfo=UTC))

    assert [entry.day for entry in days] == [date(2024, 3, 31), date(2024, 4, 1)]
    assert [entry.revenue for entry in days] == [Decimal("0"), Decimal("118")]


def test_monthly_revenue_groups_by_local_month(month_end_context):
    assert reports.monthly_revenue(month_end_context) == [("2024-04", Decimal("118"))]


def test_top_products_ranks_by_line_revenue(sales_context):
    top = reports.top_products(sales_context)

    assert [(entry.product_id, entry.quantity, entry.revenue) for entry in top] == [
        ("P1", Decimal("3"), Decimal("300")),
        ("P2", Decimal("1"), Decimal("50")),
    ]
    assert len(reports.top_products(sales_context, limit=1)) == 1


def test_movement_summary(sales_context):
    summary = reports.movement_summary(sales_context)

    assert summary.total_purchases == Decimal("5")
    assert summary.total_sales == Decimal("4")
    assert summary.total_adjustments == Decimal("1")


# ---------------------------------------------------------------------------
# Search filters
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("query", "expected"),
    [("", ["P1", "P2"]), ("pap", ["P2"]), ("MOU-", ["P1"]), ("electronics", ["P1"]), ("zzz", [])],
)
def test_search_products(sales_context, query, expected):
    assert [product.product_id for product in reports.search_products(sales_context, query)] == expected


@pytest.mark.parametrize(("query", "expected"), [("anita@", ["C2"]), ("98765", ["C1"]), ("KUMAR", ["C1"])])
def test_search_customers(sales_context, query, expected):
    assert [customer.customer_id for customer in reports.search_customers(sales_context, query)] == expected


def test_search_invoices_by_status_and_text(sales_context):
    pending = reports.search_invoices(sales_context, status=InvoiceStatus.PENDING)
    assert [invoice.invoice_number for invoice in pending] == ["INV24030002"]

    by_name = reports.search_invoices(sales_context, "rajesh")
    assert {invoice.invoice_number for invoice in by_name} == {"INV24030001", "INV24020001"}

    assert reports.search_invoices(sales_context, "inv2402") == [
        invoice for invoice in sales_context.ledger.invoices if invoice.invoice_number == "INV24020001"
    ]


def test_search_movements_sorts_newest_first(sales_context):
    sales = reports.search_movements(sales_context, movement_type=MovementType.SALE)
    assert [movement.reference for movement in sales] == ["INV24030002", "INV24030001", "INV24020001"]

    march = reports.search_movements(sales_context, "inv2403")
    assert [movement.reference for movement in march] == ["INV24030002", "INV24030001"]

    by_product = reports.search_movements(sales_context, "wireless", movement_type=MovementType.PURCHASE)
    assert [movement.reference for movement in by_product] == ["PO-17"]


def test_customer_history_survives_customer_deletion(sales_context):
    core_logic.delete_customer(sales_context, "C1")

    history = reports.customer_history(sales_context, "C1")

    assert [invoice.invoice_number for invoice in history.invoices] == ["INV24020001", "INV24030001"]
    assert history.total == Decimal("354")


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("amount", "expected"),
    [
        (Decimal("0"), "₹0.00"),
        (Decimal("236"), "₹236.00"),
        (Decimal("1000"), "₹1,000.00"),
        (Decimal("123456.5"), "₹1,23,456.50"),
        (Decimal("10000000"), "₹1,00,00,000.00"),
        (Decimal("55.9888"), "₹55.99"),
        (Decimal("0.005"), "₹0.01"),
        (Decimal("-1500.25"), "-₹1,500.25"),
    ],
)
def test_format_currency(amount, expected):
    assert reports.format_currency(amount) == expected


def test_format_date():
    assert reports.format_date("2024-03-05T10:30:00+00:00", UTC) == "05 Mar 2024"
    assert reports.format_date(None) == ""
    assert reports.format_date("not a date") == ""


def test_format_date_uses_the_given_time_zone():
    stamp = "2024-03-31T20:30:00+00:00"

    assert reports.format_date(stamp, UTC) == "31 Mar 2024"
    assert reports.format_date(stamp, IST) == "01 Apr 2024"


def test_parse_timestamp_treats_naive_values_as_utc():
    assert reports.parse_timestamp("2024-03-05T10:30:00") == datetime(2024, 3, 5, 10, 30, tzinfo=UTC)
