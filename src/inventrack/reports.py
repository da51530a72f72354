"""Read-only reporting over the ledger.

These helpers reproduce the figures shown on the dashboard, reports, and
stock-movement screens: headline statistics, per-day and per-month revenue,
category breakdowns, top sellers, search filters, and currency formatting.
None of them mutate the ledger.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional

from . import log
from .constants import InvoiceStatus, MovementType
from .core_logic import RuntimeContext, business_time
from .data_manager import CustomerRow, InvoiceRow, ProductRow, StockMovementRow


ZERO = Decimal("0")
PAISE = Decimal("0.01")


@dataclass(frozen=True)
class DashboardStats:
    """Headline numbers. Revenue, invoice and GST figures count paid invoices only."""

    total_revenue: Decimal
    today_revenue: Decimal
    total_invoices: int
    today_invoices: int
    total_products: int
    low_stock_products: int
    total_customers: int
    total_gst_collected: Decimal


@dataclass(frozen=True)
class DailySales:
    day: date
    revenue: Decimal
    invoices: int


@dataclass(frozen=True)
class SalesSummary:
    """Totals over every invoice regardless of status."""

    total_revenue: Decimal
    total_gst: Decimal
    total_invoices: int
    average_invoice_value: Decimal


@dataclass(frozen=True)
class ProductSales:
    product_id: str
    name: str
    quantity: Decimal
    revenue: Decimal


@dataclass(frozen=True)
class MovementSummary:
    total_purchases: Decimal
    total_sales: Decimal
    total_adjustments: Decimal


@dataclass(frozen=True)
class CustomerHistory:
    customer_id: str
    invoices: List[InvoiceRow]
    total: Decimal


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO timestamp; naive values are taken as UTC."""

    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        log.warning("Ignoring unparseable timestamp %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _is_paid(invoice: InvoiceRow) -> bool:
    return invoice.status == InvoiceStatus.PAID.value


def _tax(invoice: InvoiceRow) -> Decimal:
    return invoice.cgst + invoice.sgst + invoice.igst


def _is_low_stock(product: ProductRow) -> bool:
    return product.stock <= product.min_stock_level


def dashboard_stats(context: RuntimeContext, *, now: Optional[datetime] = None) -> DashboardStats:
    """Compute the dashboard's headline numbers.

    "Today" starts at local midnight of ``now`` in the business time zone.
    """

    ledger = context.ledger
    start_of_day = business_time(context, now).replace(hour=0, minute=0, second=0, microsecond=0)
    paid = [invoice for invoice in ledger.invoices if _is_paid(invoice)]
    today = []
    for invoice in paid:
        created = parse_timestamp(invoice.created_at)
        if created is not None and created >= start_of_day:
            today.append(invoice)

    return DashboardStats(
        total_revenue=sum((invoice.total_amount for invoice in paid), ZERO),
        today_revenue=sum((invoice.total_amount for invoice in today), ZERO),
        total_invoices=len(paid),
        today_invoices=len(today),
        total_products=len(ledger.products),
        low_stock_products=sum(1 for product in ledger.products.values() if _is_low_stock(product)),
        total_customers=len(ledger.customers),
        total_gst_collected=sum((_tax(invoice) for invoice in paid), ZERO),
    )


def daily_sales(context: RuntimeContext, *, days: int = 7, now: Optional[datetime] = None) -> List[DailySales]:
    """Paid revenue and invoice count for each of the last ``days`` days, oldest first."""

    if days <= 0:
        raise ValueError("days must be positive")
    today = business_time(context, now).date()
    buckets: Dict[date, List[InvoiceRow]] = {
        today - timedelta(days=offset): [] for offset in range(days - 1, -1, -1)
    }
    for invoice in context.ledger.invoices:
        if not _is_paid(invoice):
            continue
        created = parse_timestamp(invoice.created_at)
        if created is None:
            continue
        day = business_time(context, created).date()
        if day in buckets:
            buckets[day].append(invoice)

    return [
        DailySales(
            day=day,
            revenue=sum((invoice.total_amount for invoice in invoices), ZERO),
            invoices=len(invoices),
        )
        for day, invoices in buckets.items()
    ]


def stock_by_category(context: RuntimeContext) -> Dict[str, Decimal]:
    """Units on hand per category, in first-seen order."""

    totals: Dict[str, Decimal] = {}
    for product in context.ledger.products.values():
        totals[product.category] = totals.get(product.category, ZERO) + product.stock
    return totals


def low_stock_products(context: RuntimeContext, *, limit: Optional[int] = 5) -> List[ProductRow]:
    """Products at or below their minimum level, lowest stock first."""

    flagged = sorted(
        (product for product in context.ledger.products.values() if _is_low_stock(product)),
        key=lambda product: product.stock,
    )
    return flagged if limit is None else flagged[:limit]


def sales_summary(context: RuntimeContext) -> SalesSummary:
    invoices = context.ledger.invoices
    total_revenue = sum((invoice.total_amount for invoice in invoices), ZERO)
    count = len(invoices)
    return SalesSummary(
        total_revenue=total_revenue,
        total_gst=sum((_tax(invoice) for invoice in invoices), ZERO),
        total_invoices=count,
        average_invoice_value=total_revenue / count if count else ZERO,
    )


def sales_by_category(context: RuntimeContext) -> Dict[str, Decimal]:
    """Pre-tax line revenue per current product category.

    Lines whose product has since been deleted have no category and are
    skipped.
    """

    products = context.ledger.products
    totals: Dict[str, Decimal] = {}
    for invoice in context.ledger.invoices:
        for item in invoice.items:
            product = products.get(item.product_id)
            if product is None:
                continue
            totals[product.category] = totals.get(product.category, ZERO) + item.price * item.quantity
    return totals


def monthly_revenue(context: RuntimeContext, *, months: int = 6) -> List[tuple[str, Decimal]]:
    """Revenue per ``YYYY-MM`` for the latest ``months`` months with sales, ascending.

    Months are calendar months in the business time zone.
    """

    totals: Dict[str, Decimal] = {}
    for invoice in context.ledger.invoices:
        created = parse_timestamp(invoice.created_at)
        if created is None:
            continue
        month = business_time(context, created).strftime("%Y-%m")
        totals[month] = totals.get(month, ZERO) + invoice.total_amount
    ordered = sorted(totals.items())
    return ordered[-months:] if months > 0 else []


def top_products(context: RuntimeContext, *, limit: int = 5) -> List[ProductSales]:
    """Best sellers by pre-tax line revenue, using the names frozen on the lines."""

    tally: Dict[str, ProductSales] = {}
    for invoice in context.ledger.invoices:
        for item in invoice.items:
            current = tally.get(item.product_id)
            quantity = item.quantity + (current.quantity if current else ZERO)
            revenue = item.price * item.quantity + (current.revenue if current else ZERO)
            tally[item.product_id] = ProductSales(
                product_id=item.product_id,
                name=item.product_name,
                quantity=quantity,
                revenue=revenue,
            )
    return sorted(tally.values(), key=lambda entry: entry.revenue, reverse=True)[:limit]


def movement_summary(context: RuntimeContext) -> MovementSummary:
    """Units moved in by purchases, out by sales, and touched by adjustments."""

    purchases = sales = adjustments = ZERO
    for movement in context.ledger.stock_movements:
        if movement.movement_type == MovementType.PURCHASE.value:
            purchases += movement.quantity
        elif movement.movement_type == MovementType.SALE.value:
            sales += movement.quantity
        elif movement.movement_type == MovementType.ADJUSTMENT.value:
            adjustments += abs(movement.quantity)
    return MovementSummary(
        total_purchases=purchases,
        total_sales=sales,
        total_adjustments=adjustments,
    )


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle in haystack.casefold()


def search_products(context: RuntimeContext, query: str = "") -> List[ProductRow]:
    """Products whose name, category, or SKU contains ``query`` (case-insensitive)."""

    needle = query.strip().casefold()
    return [
        product
        for product in context.ledger.products.values()
        if not needle
        or _contains(product.name, needle)
        or _contains(product.category, needle)
        or _contains(product.sku, needle)
    ]


def search_customers(context: RuntimeContext, query: str = "") -> List[CustomerRow]:
    needle = query.strip().casefold()
    return [
        customer
        for customer in context.ledger.customers.values()
        if not needle
        or _contains(customer.name, needle)
        or _contains(customer.phone, needle)
        or _contains(customer.email, needle)
    ]


def search_invoices(
    context: RuntimeContext,
    query: str = "",
    *,
    status: Optional[InvoiceStatus] = None,
) -> List[InvoiceRow]:
    """Invoices matching ``query`` on number or customer name, newest first."""

    needle = query.strip().casefold()
    return [
        invoice
        for invoice in context.ledger.invoices
        if (status is None or invoice.status == status.value)
        and (
            not needle
            or _contains(invoice.invoice_number, needle)
            or _contains(invoice.customer_name, needle)
        )
    ]


def search_movements(
    context: RuntimeContext,
    query: str = "",
    *,
    movement_type: Optional[MovementType] = None,
) -> List[StockMovementRow]:
    """Movements matching ``query`` on product name or reference, newest first."""

    needle = query.strip().casefold()
    matches = [
        movement
        for movement in context.ledger.stock_movements
        if (movement_type is None or movement.movement_type == movement_type.value)
        and (
            not needle
            or _contains(movement.product_name, needle)
            or _contains(movement.reference, needle)
        )
    ]
    epoch = datetime.min.replace(tzinfo=UTC)
    # stable sort keeps the stored order for movements sharing a timestamp
    return sorted(matches, key=lambda m: parse_timestamp(m.created_at) or epoch, reverse=True)


def customer_history(context: RuntimeContext, customer_id: str) -> CustomerHistory:
    """A customer's invoices (newest first) and the sum of their totals.

    Works for deleted customers too, since invoices keep the customer id.
    """

    invoices = [invoice for invoice in context.ledger.invoices if invoice.customer_id == customer_id]
    return CustomerHistory(
        customer_id=customer_id,
        invoices=invoices,
        total=sum((invoice.total_amount for invoice in invoices), ZERO),
    )


def format_currency(amount: Decimal) -> str:
    """Format ``amount`` as rupees with Indian digit grouping, e.g. ``₹1,23,456.50``."""

    value = Decimal(amount).quantize(PAISE, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    whole, _, fraction = f"{abs(value):.2f}".partition(".")
    head, tail = whole[:-3], whole[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    grouped = ",".join([*groups, tail])
    return f"{sign}₹{grouped}.{fraction}"


def format_date(value: Optional[str], tz: Optional[tzinfo] = None) -> str:
    """Render a stored timestamp as ``DD Mon YYYY`` in ``tz`` (local when ``None``)."""

    parsed = parse_timestamp(value)
    return parsed.astimezone(tz).strftime("%d %b %Y") if parsed is not None else ""
