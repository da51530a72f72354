"""Enumerations shared across the InvenTrack modules.

Keeps the identifiers used by the workbook layer, the ledger rules, the
invoice builder, and the CLI in one place so the layers agree on spelling.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum


# Central schema version expected by all layers when validating workbooks.
EXPECTED_SCHEMA_VERSION = "1.0.0"

DEFAULT_INVOICE_PREFIX = "INV"

# Slabs offered by the catalog forms; the builder accepts any non-negative rate.
STANDARD_GST_RATES: tuple[Decimal, ...] = (
    Decimal("5"),
    Decimal("12"),
    Decimal("18"),
    Decimal("28"),
)

DEFAULT_ADMIN_EMAIL = "admin@inventrax.com"
DEFAULT_ADMIN_PASSWORD = "admin123"
DEFAULT_ADMIN_NAME = "Admin User"


class MovementType(str, Enum):
    """Enumerate the kinds of stock movement recorded in the audit trail."""

    SALE = "sale"
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"


class InvoiceStatus(str, Enum):
    """Enumerate the lifecycle states an invoice can be in."""

    PAID = "paid"
    PENDING = "pending"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """Enumerate the payment methods captured on an invoice."""

    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    OTHER = "other"


class UserRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    STAFF = "staff"


class NumberingMode(str, Enum):
    """Enumerate the invoice numbering strategies.

    ``MONOTONIC`` keeps a stored per-period counter. ``LEGACY`` counts the
    invoices already carrying the period prefix, which can hand out a number
    again after an invoice from the same month is deleted.
    """

    MONOTONIC = "monotonic"
    LEGACY = "legacy"


class SheetName(str, Enum):
    """Enumerate the worksheet names managed by the data layer."""

    PRODUCTS = "Products"
    CUSTOMERS = "Customers"
    INVOICES = "Invoices"
    INVOICE_ITEMS = "InvoiceItems"
    STOCK_MOVEMENTS = "StockMovements"
    INVOICE_COUNTERS = "InvoiceCounters"
    SESSION = "Session"


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "DEFAULT_INVOICE_PREFIX",
    "STANDARD_GST_RATES",
    "DEFAULT_ADMIN_EMAIL",
    "DEFAULT_ADMIN_PASSWORD",
    "DEFAULT_ADMIN_NAME",
    "MovementType",
    "InvoiceStatus",
    "PaymentMethod",
    "UserRole",
    "NumberingMode",
    "SheetName",
]
