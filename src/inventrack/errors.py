"""Domain exceptions raised by the invoice builder and the ledger store."""

from __future__ import annotations


class BusinessRuleViolation(Exception):
    """Raised when a requested operation violates a domain constraint."""


class MissingReferenceError(BusinessRuleViolation):
    """Raised when a referenced product, customer, or invoice is unknown."""


class InsufficientStockError(BusinessRuleViolation):
    """Raised when an invoice asks for more units than a product has on hand."""


class EmptyInvoiceError(BusinessRuleViolation):
    """Raised when an invoice is committed without any line items."""


class AuthenticationRequired(Exception):
    """Raised when a mutating command runs without an authenticated session."""


__all__ = [
    "BusinessRuleViolation",
    "MissingReferenceError",
    "InsufficientStockError",
    "EmptyInvoiceError",
    "AuthenticationRequired",
]
