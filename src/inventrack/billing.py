"""Invoice builder for InvenTrack.

Turns a draft (customer plus product/quantity lines) into a priced preview
with the GST split applied. Everything here is a pure function over the
product and customer mappings handed in by the ledger store; nothing in this
module mutates state.

GST arithmetic::

    line total = price * quantity
    line tax   = line total * gst rate / 100
    same state:  CGST = SGST = sum(line tax) / 2, IGST = 0
    cross state: IGST = sum(line tax), CGST = SGST = 0
    total      = subtotal + CGST + SGST + IGST

Amounts are kept as exact :class:`~decimal.Decimal` values; rounding to paise
happens only when an amount is displayed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional

from . import log
from .constants import InvoiceStatus, PaymentMethod
from .data_manager import CustomerRow, InvoiceItemRow, ProductRow
from .errors import (
    BusinessRuleViolation,
    EmptyInvoiceError,
    InsufficientStockError,
    MissingReferenceError,
)


ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class LineItemRequest:
    """A product and the quantity the customer wants to buy."""

    product_id: str
    quantity: Decimal


@dataclass(frozen=True)
class InvoiceDraft:
    """User intent for creating an invoice.

    ``inter_state`` selects IGST (``True``) or CGST+SGST (``False``). When it
    is ``None`` the jurisdiction is derived from the customer's state and the
    business state configured in ``config.ini``.
    """

    customer_id: Optional[str]
    items: tuple[LineItemRequest, ...]
    inter_state: Optional[bool] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    status: InvoiceStatus = InvoiceStatus.PAID
    created_by: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class TaxBreakdown:
    """Subtotal, the three GST components, and the grand total."""

    subtotal: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total: Decimal

    @property
    def tax_total(self) -> Decimal:
        return self.cgst + self.sgst + self.igst


@dataclass(frozen=True)
class InvoicePreview:
    """Computed invoice ready to be committed by the ledger store."""

    customer: CustomerRow
    lines: tuple[InvoiceItemRow, ...]
    inter_state: bool
    breakdown: TaxBreakdown


def require_finite(value: Decimal, *, field: str = "value") -> None:
    """Reject NaN and infinite decimals.

    Ordering comparisons against a NaN ``Decimal`` raise
    :class:`decimal.InvalidOperation`, so this guard has to run before any
    ``<``/``<=`` check.

    Raises:
        ValueError: If ``value`` is not a finite :class:`~decimal.Decimal`.
    """

    if not isinstance(value, Decimal) or not value.is_finite():
        log.error("%s validation failed: %r", field.capitalize(), value)
        raise ValueError(f"{field.capitalize()} must be a finite number")


def require_positive_quantity(quantity: Decimal) -> None:
    """Validate that a quantity is finite and strictly positive.

    Raises:
        ValueError: If ``quantity`` is NaN, infinite, zero, or negative.
    """

    require_finite(quantity, field="quantity")
    if quantity <= ZERO:
        log.error("Quantity validation failed: %s", quantity)
        raise ValueError("Quantity must be greater than zero")


def require_nonnegative_money(amount: Decimal) -> None:
    """Validate that a monetary value is finite and not negative.

    Raises:
        ValueError: If ``amount`` is NaN, infinite, or less than zero.
    """

    require_finite(amount, field="amount")
    if amount < ZERO:
        log.error("Monetary value validation failed: %s", amount)
        raise ValueError("Amount must be zero or positive")


def require_valid_gst_rate(rate: Decimal) -> None:
    """Validate a GST percentage. Any finite non-negative rate is accepted."""

    require_finite(rate, field="GST rate")
    if rate < ZERO:
        log.error("GST rate validation failed: %s", rate)
        raise ValueError("GST rate must be zero or positive")


def line_total(price: Decimal, quantity: Decimal) -> Decimal:
    return price * quantity


def line_tax(amount: Decimal, gst_rate: Decimal) -> Decimal:
    return amount * gst_rate / HUNDRED


def compute_tax_breakdown(lines: Iterable[InvoiceItemRow], *, inter_state: bool) -> TaxBreakdown:
    """Apply the GST split to a sequence of priced lines.

    Args:
        lines (Iterable[InvoiceItemRow]): Lines whose ``total`` and
            ``gst_rate`` are already populated.
        inter_state (bool): ``True`` when the sale crosses state borders.

    Returns:
        TaxBreakdown: Exactly one of ``cgst``/``sgst`` or ``igst`` is non-zero
            whenever any line carries a positive rate.
    """

    subtotal = ZERO
    tax = ZERO
    for line in lines:
        subtotal += line.total
        tax += line_tax(line.total, line.gst_rate)

    if inter_state:
        cgst = sgst = ZERO
        igst = tax
    else:
        cgst = sgst = tax / 2
        igst = ZERO

    return TaxBreakdown(
        subtotal=subtotal,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        total=subtotal + cgst + sgst + igst,
    )


def resolve_inter_state(
    flag: Optional[bool],
    customer_state: Optional[str],
    business_state: Optional[str],
) -> bool:
    """Decide whether IGST applies.

    An explicit ``flag`` always wins. Otherwise the sale is inter-state only
    when both states are known and differ (case and surrounding whitespace
    are ignored); unknown states default to an intra-state sale.
    """

    if flag is not None:
        return bool(flag)
    if not customer_state or not business_state:
        return False
    return customer_state.strip().casefold() != business_state.strip().casefold()


def requested_quantities(items: Iterable[LineItemRequest]) -> Dict[str, Decimal]:
    """Sum the requested quantity per product across all draft lines."""

    totals: Dict[str, Decimal] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, ZERO) + item.quantity
    return totals


def validate_draft(
    draft: InvoiceDraft,
    products: Mapping[str, ProductRow],
    customers: Mapping[str, CustomerRow],
) -> CustomerRow:
    """Check every precondition for committing ``draft``.

    Stock is compared against the *summed* quantity per product, so two
    lines for the same product cannot jointly oversell it.

    Returns:
        CustomerRow: The selected customer.

    Raises:
        EmptyInvoiceError: If the draft has no lines.
        BusinessRuleViolation: If no customer is selected.
        MissingReferenceError: If the customer or a product is unknown.
        ValueError: If a quantity is malformed, zero, or negative.
        InsufficientStockError: If a product cannot cover the request.
    """

    if not draft.items:
        log.warning("Rejected invoice draft without items")
        raise EmptyInvoiceError("Add at least one item to the invoice")
    if not draft.customer_id:
        log.warning("Rejected invoice draft without a customer")
        raise BusinessRuleViolation("Please select a customer")
    customer = customers.get(draft.customer_id)
    if customer is None:
        log.warning("Invoice draft references unknown customer '%s'", draft.customer_id)
        raise MissingReferenceError(f"Unknown customer id: {draft.customer_id}")

    for item in draft.items:
        require_positive_quantity(item.quantity)
        if item.product_id not in products:
            log.warning("Invoice draft references unknown product '%s'", item.product_id)
            raise MissingReferenceError(f"Unknown product id: {item.product_id}")

    for product_id, quantity in requested_quantities(draft.items).items():
        product = products[product_id]
        if product.stock < quantity:
            log.warning(
                "Insufficient stock for '%s': requested %s, available %s",
                product_id,
                quantity,
                product.stock,
            )
            raise InsufficientStockError(
                f"Insufficient stock for {product.name}. Available: {product.stock}"
            )

    return customer


def price_line(product: ProductRow, quantity: Decimal) -> InvoiceItemRow:
    """Snapshot ``product`` into an invoice line for ``quantity`` units."""

    require_valid_gst_rate(product.gst_rate)
    return InvoiceItemRow(
        product_id=product.product_id,
        product_name=product.name,
        hsn_code=product.hsn_code,
        quantity=quantity,
        price=product.price,
        gst_rate=product.gst_rate,
        total=line_total(product.price, quantity),
    )


def build_invoice_preview(
    draft: InvoiceDraft,
    products: Mapping[str, ProductRow],
    customers: Mapping[str, CustomerRow],
    *,
    business_state: Optional[str] = None,
) -> InvoicePreview:
    """Validate ``draft`` and compute the invoice it would produce.

    Args:
        draft (InvoiceDraft): Customer, lines, and jurisdiction flag.
        products (Mapping[str, ProductRow]): Current catalog keyed by id.
        customers (Mapping[str, CustomerRow]): Current customers keyed by id.
        business_state (str | None): State the business is registered in,
            used when ``draft.inter_state`` is ``None``.

    Returns:
        InvoicePreview: Priced lines in draft order plus the tax breakdown.

    Raises:
        BusinessRuleViolation: See :func:`validate_draft`.
        ValueError: For malformed quantities or GST rates.
    """

    customer = validate_draft(draft, products, customers)
    lines = tuple(price_line(products[item.product_id], item.quantity) for item in draft.items)
    inter_state = resolve_inter_state(draft.inter_state, customer.state, business_state)
    breakdown = compute_tax_breakdown(lines, inter_state=inter_state)
    log.debug(
        "Computed invoice preview for '%s': subtotal=%s tax=%s total=%s",
        customer.customer_id,
        breakdown.subtotal,
        breakdown.tax_total,
        breakdown.total,
    )
    return InvoicePreview(
        customer=customer,
        lines=lines,
        inter_state=inter_state,
        breakdown=breakdown,
    )
