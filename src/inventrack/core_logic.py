"""Business logic layer for InvenTrack.

This module holds the ledger store: the authoritative in-memory collections
of products, customers, invoices, and stock movements, together with the
rules that mutate them. State is loaded once from the data workbook into a
:class:`RuntimeContext` which callers pass explicitly to every operation.
Mutations only touch memory; :func:`persist_context` is the explicit flush
that writes the snapshot back through the data access layer.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional

from openpyxl.workbook import Workbook

from . import billing, data_manager, log, use_log_file
from .billing import InvoiceDraft, InvoicePreview, LineItemRequest  # noqa: F401
from .constants import EXPECTED_SCHEMA_VERSION, InvoiceStatus, MovementType, NumberingMode, PaymentMethod
from .errors import (  # noqa: F401
    BusinessRuleViolation,
    EmptyInvoiceError,
    InsufficientStockError,
    MissingReferenceError,
)


@dataclass
class LedgerState:
    """Mutable container for every ledger collection.

    ``invoices`` and ``stock_movements`` are kept newest first.
    ``invoice_counters`` maps a ``<YY><MM>`` period to the last sequence
    number issued in it.
    """

    products: Dict[str, data_manager.ProductRow] = field(default_factory=dict)
    customers: Dict[str, data_manager.CustomerRow] = field(default_factory=dict)
    invoices: List[data_manager.InvoiceRow] = field(default_factory=list)
    stock_movements: List[data_manager.StockMovementRow] = field(default_factory=list)
    invoice_counters: Dict[str, int] = field(default_factory=dict)


@dataclass
class SessionState:
    """Holder for the login state persisted in the session workbook."""

    current: Optional[data_manager.SessionRow] = None


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration, workbooks, and live ledger state."""

    settings: data_manager.ConfigSettings
    workbook: Optional[Workbook] = field(default=None, repr=False, compare=False)
    session_workbook: Optional[Workbook] = field(default=None, repr=False, compare=False)
    ledger: LedgerState = field(default_factory=LedgerState, repr=False, compare=False)
    session: SessionState = field(default_factory=SessionState, repr=False, compare=False)


@dataclass(frozen=True)
class ProductCommand:
    """User intent for adding a product to the catalog."""

    name: str
    category: str
    sku: str
    hsn_code: str
    price: Decimal
    gst_rate: Decimal
    stock: Decimal = Decimal("0")
    min_stock_level: Decimal = Decimal("0")
    unit: str = "piece"
    supplier_name: Optional[str] = None
    description: Optional[str] = None
    product_id: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class CustomerCommand:
    """User intent for registering a customer."""

    name: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None
    gst_number: Optional[str] = None
    state: Optional[str] = None
    customer_id: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class StockChangeCommand:
    """User intent for moving stock in or out of a product.

    ``quantity`` is a magnitude for ``SALE`` (stock goes down) and
    ``PURCHASE`` (stock goes up). ``ADJUSTMENT`` quantities are signed and
    added to the stock as-is.
    """

    product_id: str
    quantity: Decimal
    movement_type: MovementType
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass
class _PendingChanges:
    """Changes staged by a multi-step operation before they are applied.

    Staging works against copies, so nothing is visible in the ledger until
    :func:`_apply_pending` swaps the new collections in.
    """

    products: Dict[str, data_manager.ProductRow] = field(default_factory=dict)
    customers: Dict[str, data_manager.CustomerRow] = field(default_factory=dict)
    movements: List[data_manager.StockMovementRow] = field(default_factory=list)
    invoice: Optional[data_manager.InvoiceRow] = None
    counters: Dict[str, int] = field(default_factory=dict)


_READ_ONLY_PRODUCT_FIELDS = frozenset({"product_id", "created_at", "updated_at", "stock"})
_READ_ONLY_CUSTOMER_FIELDS = frozenset(
    {"customer_id", "created_at", "total_purchases", "last_purchase_date"}
)
_DECIMAL_PRODUCT_FIELDS = frozenset({"price", "gst_rate", "min_stock_level"})


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Return ``candidate`` in UTC, or the current UTC time when it is ``None``."""

    if candidate is None:
        return datetime.now(UTC)
    return candidate.astimezone(UTC)


def business_time(context: RuntimeContext, when: Optional[datetime] = None) -> datetime:
    """Express ``when`` (default: now) in the business's time zone.

    The zone comes from ``[Business] TimeZone``; without it the machine's
    local zone applies. Stored timestamps stay in UTC; calendar questions
    such as the invoice month or "today" are answered in this zone.
    """
    return _resolve_timestamp(when).astimezone(context.settings.timezone)


def generate_record_id(*, prefix: str, when: Optional[datetime] = None) -> str:
    """Generate a sortable identifier for a new ledger record.

    Args:
        prefix (str): Designator for the record kind (``P`` products, ``C``
            customers, ``I`` invoices, ``M`` stock movements).
        when (datetime | None): Timestamp to embed. Defaults to now (UTC).

    Returns:
        str: ``{prefix}{YYYYMMDDHHMMSSffffff}{XXXX}``. The random suffix keeps
            identifiers unique when one commit creates several records with
            the same timestamp.
    """

    when = when or _resolve_timestamp(None)
    return f"{prefix}{when.strftime('%Y%m%d%H%M%S%f')}{uuid.uuid4().hex[:4].upper()}"


def parse_decimal(raw: Any, *, field: str = "value") -> Decimal:
    """Convert raw caller input into a finite :class:`~decimal.Decimal`.

    Strings are stripped before parsing; floats go through ``str`` so that
    ``0.1`` becomes ``Decimal("0.1")``.

    Raises:
        ValueError: If ``raw`` is empty, non-numeric, boolean, NaN, or
            infinite.
    """

    if isinstance(raw, bool) or raw is None:
        raise ValueError(f"{field.capitalize()} must be a number")
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, int):
        value = Decimal(raw)
    else:
        text = str(raw).strip()
        try:
            value = Decimal(text)
        except InvalidOperation as exc:
            log.error("Could not parse %s from %r", field, raw)
            raise ValueError(f"{field.capitalize()} must be a number, got {raw!r}") from exc
    billing.require_finite(value, field=field)
    return value


def require_nonnegative_quantity(quantity: Decimal) -> None:
    """Validate a stock level or threshold: finite and not negative."""

    billing.require_finite(quantity, field="quantity")
    if quantity < Decimal("0"):
        log.error("Quantity validation failed: %s", quantity)
        raise ValueError("Quantity must be zero or positive")


def _require_text(value: Optional[str], *, field: str) -> str:
    if value is None or not str(value).strip():
        log.error("Missing required field '%s'", field)
        raise BusinessRuleViolation(f"{field.capitalize()} is required")
    return str(value).strip()


def load_ledger(workbook: Workbook) -> LedgerState:
    """Read every data sheet into a fresh :class:`LedgerState`."""

    ledger = LedgerState(
        products={row.product_id: row for row in data_manager.iter_products(workbook)},
        customers={row.customer_id: row for row in data_manager.iter_customers(workbook)},
        invoices=list(data_manager.iter_invoices(workbook)),
        stock_movements=list(data_manager.iter_stock_movements(workbook)),
        invoice_counters=dict(data_manager.iter_invoice_counters(workbook)),
    )
    log.debug(
        "Loaded ledger: %d products, %d customers, %d invoices, %d movements",
        len(ledger.products),
        len(ledger.customers),
        len(ledger.invoices),
        len(ledger.stock_movements),
    )
    return ledger


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration, both workbook partitions, and the ledger state.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer searches upward from the current
            working directory.

    Returns:
        RuntimeContext: Context ready to be passed to every ledger operation.

    Raises:
        FileNotFoundError: If the configuration file or a workbook is missing.
        KeyError: When mandatory configuration options are missing.
        RuntimeError: When a workbook lacks an expected sheet or column.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    if settings.log_file is not None:
        use_log_file(settings.log_file)

    workbook = data_manager.open_workbook(settings.data_file)
    data_manager.validate_sheets(workbook, data_manager.DATA_SHEET_COLUMNS)
    session_workbook = data_manager.open_workbook(settings.session_file)
    data_manager.validate_sheets(session_workbook, data_manager.SESSION_SHEET_COLUMNS)

    context = RuntimeContext(
        settings=settings,
        workbook=workbook,
        session_workbook=session_workbook,
        ledger=load_ledger(workbook),
        session=SessionState(current=data_manager.read_session(session_workbook)),
    )
    log.info("Loaded runtime context for workbook '%s'", settings.data_file)
    return context


def ensure_schema_version(context: RuntimeContext) -> None:
    """Validate workbook compatibility before mutating state.

    Raises:
        RuntimeError: If the schema version declared in the configuration does
            not match ``EXPECTED_SCHEMA_VERSION``.
    """
    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Workbook schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Workbook schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


def persist_context(context: RuntimeContext) -> None:
    """Flush the in-memory ledger and session to their workbooks.

    Both partitions are rewritten as full snapshots and saved synchronously
    to the paths named in the settings. Callers decide when to flush; no
    ledger operation calls this on its own.

    Raises:
        RuntimeError: If the context was built without workbooks.
    """
    if context.workbook is None or context.session_workbook is None:
        raise RuntimeError("Runtime context has no workbooks to persist")

    ledger = context.ledger
    data_manager.write_ledger_snapshot(
        context.workbook,
        products=ledger.products.values(),
        customers=ledger.customers.values(),
        invoices=ledger.invoices,
        stock_movements=ledger.stock_movements,
        invoice_counters=ledger.invoice_counters,
    )
    data_manager.save_workbook(context.workbook, destination=context.settings.data_file)
    data_manager.write_session(context.session_workbook, context.session.current)
    data_manager.save_workbook(context.session_workbook, destination=context.settings.session_file)
    log.info("Persisted workbook '%s'", context.settings.data_file)


def refresh_context(context: RuntimeContext) -> RuntimeContext:
    """Reload both workbooks, discarding unflushed changes.

    Returns:
        RuntimeContext: Fresh context that shares only the settings with the
            previous one.

    Raises:
        FileNotFoundError: If a backing workbook cannot be reloaded.
    """
    workbook = data_manager.refresh_workbook(context.settings.data_file)
    session_workbook = data_manager.refresh_workbook(context.settings.session_file)
    log.info("Reloaded workbook '%s'", context.settings.data_file)
    return RuntimeContext(
        settings=context.settings,
        workbook=workbook,
        session_workbook=session_workbook,
        ledger=load_ledger(workbook),
        session=SessionState(current=data_manager.read_session(session_workbook)),
    )


def _resolve_actor(context: RuntimeContext, explicit: Optional[str]) -> str:
    if explicit:
        return explicit
    current = context.session.current
    if current is not None and current.is_authenticated:
        return current.email
    return "admin"


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def list_products(context: RuntimeContext) -> List[data_manager.ProductRow]:
    """Return the catalog in insertion order as a list the caller may mutate."""
    return list(context.ledger.products.values())


def list_customers(context: RuntimeContext) -> List[data_manager.CustomerRow]:
    return list(context.ledger.customers.values())


def list_invoices(context: RuntimeContext, *, status: Optional[InvoiceStatus] = None) -> List[data_manager.InvoiceRow]:
    """Return invoices newest first, optionally restricted to one status."""
    invoices = context.ledger.invoices
    if status is None:
        return list(invoices)
    return [invoice for invoice in invoices if invoice.status == status.value]


def list_stock_movements(context: RuntimeContext, *, product_id: Optional[str] = None) -> List[data_manager.StockMovementRow]:
    """Return the movement audit trail newest first, optionally for one product."""
    movements = context.ledger.stock_movements
    if product_id is None:
        return list(movements)
    return [movement for movement in movements if movement.product_id == product_id]


def get_product(context: RuntimeContext, product_id: str) -> data_manager.ProductRow:
    """Resolve a product record by its identifier.

    Raises:
        MissingReferenceError: If ``product_id`` is not in the catalog.
    """
    try:
        return context.ledger.products[product_id]
    except KeyError as exc:
        log.warning("Product lookup failed for id '%s'", product_id)
        raise MissingReferenceError(f"Unknown product id: {product_id}") from exc


def get_customer(context: RuntimeContext, customer_id: str) -> data_manager.CustomerRow:
    """Resolve a customer record by its identifier.

    Raises:
        MissingReferenceError: If ``customer_id`` is unknown.
    """
    try:
        return context.ledger.customers[customer_id]
    except KeyError as exc:
        log.warning("Customer lookup failed for id '%s'", customer_id)
        raise MissingReferenceError(f"Unknown customer id: {customer_id}") from exc


def get_invoice(context: RuntimeContext, invoice_id: str) -> data_manager.InvoiceRow:
    """Resolve an invoice by its id or, failing that, by its invoice number.

    When the legacy numbering scheme has produced duplicate numbers the most
    recent invoice carrying the number is returned.

    Raises:
        MissingReferenceError: If neither an id nor a number matches.
    """
    for invoice in context.ledger.invoices:
        if invoice.invoice_id == invoice_id:
            return invoice
    for invoice in context.ledger.invoices:
        if invoice.invoice_number == invoice_id:
            return invoice
    log.warning("Invoice lookup failed for id '%s'", invoice_id)
    raise MissingReferenceError(f"Unknown invoice id: {invoice_id}")


def invoices_referencing_product(context: RuntimeContext, product_id: str) -> List[data_manager.InvoiceRow]:
    return [
        invoice
        for invoice in context.ledger.invoices
        if any(item.product_id == product_id for item in invoice.items)
    ]


def invoices_referencing_customer(context: RuntimeContext, customer_id: str) -> List[data_manager.InvoiceRow]:
    return [invoice for invoice in context.ledger.invoices if invoice.customer_id == customer_id]


# ---------------------------------------------------------------------------
# Catalog and customer maintenance
# ---------------------------------------------------------------------------


def _require_unique_sku(context: RuntimeContext, sku: str, *, exclude_id: Optional[str] = None) -> None:
    if not sku:
        return
    for product in context.ledger.products.values():
        if product.sku == sku and product.product_id != exclude_id:
            log.warning("Duplicate SKU '%s' already used by '%s'", sku, product.product_id)
            raise BusinessRuleViolation(f"SKU '{sku}' is already assigned to {product.name}")


def add_product(context: RuntimeContext, command: ProductCommand) -> data_manager.ProductRow:
    """Validate and add a product to the catalog.

    Raises:
        BusinessRuleViolation: If the name is blank, the SKU or id is taken.
        ValueError: If price, GST rate, stock, or threshold are malformed or
            negative.
    """
    name = _require_text(command.name, field="name")
    billing.require_nonnegative_money(command.price)
    billing.require_valid_gst_rate(command.gst_rate)
    require_nonnegative_quantity(command.stock)
    require_nonnegative_quantity(command.min_stock_level)
    sku = (command.sku or "").strip()
    _require_unique_sku(context, sku)

    timestamp = _resolve_timestamp(command.timestamp)
    product_id = command.product_id or generate_record_id(prefix="P", when=timestamp)
    if product_id in context.ledger.products:
        log.warning("Attempted to add duplicate product id '%s'", product_id)
        raise BusinessRuleViolation(f"Product id '{product_id}' already exists")

    product = data_manager.ProductRow(
        product_id=product_id,
        name=name,
        category=(command.category or "").strip(),
        sku=sku,
        hsn_code=(command.hsn_code or "").strip(),
        price=command.price,
        gst_rate=command.gst_rate,
        stock=command.stock,
        min_stock_level=command.min_stock_level,
        supplier_name=command.supplier_name,
        unit=(command.unit or "").strip() or "piece",
        description=command.description,
        created_at=timestamp.isoformat(),
        updated_at=timestamp.isoformat(),
    )
    context.ledger.products[product_id] = product
    log.info("Added product '%s' (%s) with stock %s", product_id, name, command.stock)
    return product


def update_product(context: RuntimeContext, product_id: str, /, **changes: Any) -> data_manager.ProductRow:
    """Apply a partial edit to a product and stamp ``updated_at``.

    Stock is not editable here; it only moves through
    :func:`record_stock_change` so every change leaves an audit record.

    Raises:
        MissingReferenceError: If the product is unknown.
        BusinessRuleViolation: If a field is unknown or read-only, or the
            new SKU is taken.
        ValueError: If a numeric field is malformed.
    """
    product = get_product(context, product_id)
    known = {f.name for f in fields(data_manager.ProductRow)}
    for name, value in changes.items():
        if name not in known:
            raise BusinessRuleViolation(f"Unknown product field: {name}")
        if name in _READ_ONLY_PRODUCT_FIELDS:
            raise BusinessRuleViolation(f"Product field '{name}' cannot be edited directly")
        if name in _DECIMAL_PRODUCT_FIELDS:
            changes[name] = parse_decimal(value, field=name)
    if "name" in changes:
        changes["name"] = _require_text(changes["name"], field="name")
    if "price" in changes:
        billing.require_nonnegative_money(changes["price"])
    if "gst_rate" in changes:
        billing.require_valid_gst_rate(changes["gst_rate"])
    if "min_stock_level" in changes:
        require_nonnegative_quantity(changes["min_stock_level"])
    if "sku" in changes:
        changes["sku"] = (changes["sku"] or "").strip()
        _require_unique_sku(context, changes["sku"], exclude_id=product_id)

    updated = replace(product, **changes, updated_at=_resolve_timestamp(None).isoformat())
    context.ledger.products[product_id] = updated
    log.info("Updated product '%s' fields: %s", product_id, ", ".join(sorted(changes)) or "-")
    return updated


def delete_product(context: RuntimeContext, product_id: str) -> data_manager.ProductRow:
    """Remove a product from the catalog.

    Invoices and stock movements that reference the product are left alone
    and keep their name and price snapshots. A warning is logged when such
    references exist.

    Raises:
        MissingReferenceError: If the product is unknown.
    """
    product = get_product(context, product_id)
    referencing = invoices_referencing_product(context, product_id)
    if referencing:
        log.warning(
            "Deleting product '%s' still referenced by %d invoice(s): %s",
            product_id,
            len(referencing),
            ", ".join(invoice.invoice_number for invoice in referencing),
        )
    del context.ledger.products[product_id]
    log.info("Deleted product '%s' (%s)", product_id, product.name)
    return product


def add_customer(context: RuntimeContext, command: CustomerCommand) -> data_manager.CustomerRow:
    """Register a new customer with a zero purchase history.

    Raises:
        BusinessRuleViolation: If the name or phone is blank, or the id is
            already taken.
    """
    name = _require_text(command.name, field="name")
    phone = _require_text(command.phone, field="phone")
    timestamp = _resolve_timestamp(command.timestamp)
    customer_id = command.customer_id or generate_record_id(prefix="C", when=timestamp)
    if customer_id in context.ledger.customers:
        log.warning("Attempted to add duplicate customer id '%s'", customer_id)
        raise BusinessRuleViolation(f"Customer id '{customer_id}' already exists")

    customer = data_manager.CustomerRow(
        customer_id=customer_id,
        name=name,
        phone=phone,
        email=command.email or None,
        address=command.address or None,
        gst_number=command.gst_number or None,
        state=command.state or None,
        total_purchases=Decimal("0"),
        last_purchase_date=None,
        created_at=timestamp.isoformat(),
    )
    context.ledger.customers[customer_id] = customer
    log.info("Added customer '%s' (%s)", customer_id, name)
    return customer


def update_customer(context: RuntimeContext, customer_id: str, /, **changes: Any) -> data_manager.CustomerRow:
    """Apply a partial edit to a customer's contact details.

    Purchase totals are maintained by :func:`commit_invoice` and cannot be
    edited here.

    Raises:
        MissingReferenceError: If the customer is unknown.
        BusinessRuleViolation: If a field is unknown or read-only.
    """
    customer = get_customer(context, customer_id)
    known = {f.name for f in fields(data_manager.CustomerRow)}
    for name in changes:
        if name not in known:
            raise BusinessRuleViolation(f"Unknown customer field: {name}")
        if name in _READ_ONLY_CUSTOMER_FIELDS:
            raise BusinessRuleViolation(f"Customer field '{name}' cannot be edited directly")
    for required in ("name", "phone"):
        if required in changes:
            changes[required] = _require_text(changes[required], field=required)

    updated = replace(customer, **changes)
    context.ledger.customers[customer_id] = updated
    log.info("Updated customer '%s' fields: %s", customer_id, ", ".join(sorted(changes)) or "-")
    return updated


def delete_customer(context: RuntimeContext, customer_id: str) -> data_manager.CustomerRow:
    """Remove a customer. Referencing invoices keep their customer snapshot.

    Raises:
        MissingReferenceError: If the customer is unknown.
    """
    customer = get_customer(context, customer_id)
    referencing = invoices_referencing_customer(context, customer_id)
    if referencing:
        log.warning(
            "Deleting customer '%s' still referenced by %d invoice(s)",
            customer_id,
            len(referencing),
        )
    del context.ledger.customers[customer_id]
    log.info("Deleted customer '%s' (%s)", customer_id, customer.name)
    return customer


# ---------------------------------------------------------------------------
# Stock movements
# ---------------------------------------------------------------------------


def validate_stock_change(command: StockChangeCommand) -> None:
    """Check the movement type and quantity of a stock change.

    Sales and purchases need a positive quantity. Adjustments are signed and
    only need to be non-zero. The resulting balance is not checked.

    Raises:
        BusinessRuleViolation: If the movement type is unsupported.
        ValueError: If the quantity is malformed for the movement type.
    """
    if not isinstance(command.movement_type, MovementType):
        log.error("Unsupported movement type provided: %s", command.movement_type)
        raise BusinessRuleViolation(f"Unsupported movement type: {command.movement_type}")
    if command.movement_type is MovementType.ADJUSTMENT:
        billing.require_finite(command.quantity, field="quantity")
        if command.quantity == Decimal("0"):
            log.error("Adjustment quantity must be non-zero")
            raise ValueError("Adjustment quantity must not be zero")
    else:
        billing.require_positive_quantity(command.quantity)


def _stage_stock_change(
    context: RuntimeContext,
    pending: _PendingChanges,
    command: StockChangeCommand,
    *,
    timestamp: datetime,
) -> data_manager.StockMovementRow:
    """Stage a stock change on top of any product already staged in ``pending``."""

    product = pending.products.get(command.product_id) or get_product(context, command.product_id)
    delta = -command.quantity if command.movement_type is MovementType.SALE else command.quantity
    new_stock = product.stock + delta
    pending.products[product.product_id] = replace(
        product,
        stock=new_stock,
        updated_at=timestamp.isoformat(),
    )
    movement = data_manager.StockMovementRow(
        movement_id=generate_record_id(prefix="M", when=timestamp),
        product_id=product.product_id,
        product_name=product.name,
        movement_type=command.movement_type.value,
        quantity=command.quantity,
        balance_after=new_stock,
        reference=command.reference,
        notes=command.notes,
        created_by=_resolve_actor(context, command.created_by),
        created_at=timestamp.isoformat(),
    )
    pending.movements.append(movement)
    return movement


def _apply_pending(ledger: LedgerState, pending: _PendingChanges) -> None:
    """Swap staged changes into ``ledger`` in one step.

    The new collections are fully built before any attribute of ``ledger``
    is reassigned, and the reassignments themselves cannot fail.
    """

    products = dict(ledger.products)
    products.update(pending.products)
    customers = dict(ledger.customers)
    customers.update(pending.customers)
    # staged in application order; the trail is newest first
    movements = list(reversed(pending.movements)) + ledger.stock_movements
    invoices = ([pending.invoice] if pending.invoice is not None else []) + ledger.invoices
    counters = {**ledger.invoice_counters, **pending.counters}

    ledger.products = products
    ledger.customers = customers
    ledger.stock_movements = movements
    ledger.invoices = invoices
    ledger.invoice_counters = counters


def record_stock_change(context: RuntimeContext, command: StockChangeCommand) -> data_manager.StockMovementRow:
    """Apply a stock change and append its movement record.

    ``new_stock = stock - quantity`` for sales and ``stock + quantity``
    otherwise. The product's stock is overwritten with the new balance and a
    movement with ``balance_after = new_stock`` is added to the front of the
    audit trail. A negative balance is allowed.

    Raises:
        MissingReferenceError: If the product is unknown.
        BusinessRuleViolation: If the movement type is unsupported.
        ValueError: If the quantity is malformed.
    """
    validate_stock_change(command)
    timestamp = _resolve_timestamp(command.timestamp)
    pending = _PendingChanges()
    movement = _stage_stock_change(context, pending, command, timestamp=timestamp)
    _apply_pending(context.ledger, pending)
    log.info(
        "Recorded %s movement '%s' for product '%s' (quantity=%s, balance=%s)",
        movement.movement_type,
        movement.movement_id,
        movement.product_id,
        movement.quantity,
        movement.balance_after,
    )
    return movement


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------


def invoice_period(when: datetime) -> str:
    """Return the ``<YY><MM>`` period of ``when`` as read on its own clock."""
    return when.strftime("%y%m")


def _sequences_with_prefix(ledger: LedgerState, prefix: str) -> List[int]:
    sequences = []
    for invoice in ledger.invoices:
        number = invoice.invoice_number
        if number.startswith(prefix):
            suffix = number[len(prefix):]
            if suffix.isdigit():
                sequences.append(int(suffix))
    return sequences


def _next_sequence(context: RuntimeContext, period: str) -> int:
    """Pick the sequence number for the next invoice in ``period``.

    In ``LEGACY`` mode this counts the invoices already carrying the period
    prefix, so deleting an invoice can make a number come round again. In
    ``MONOTONIC`` mode the stored counter is used; a period with invoices but
    no counter (data written by the legacy scheme) is seeded from the highest
    existing suffix.
    """
    settings = context.settings
    ledger = context.ledger
    prefix = f"{settings.invoice_prefix}{period}"

    if settings.numbering_mode is NumberingMode.LEGACY:
        count = sum(1 for invoice in ledger.invoices if invoice.invoice_number.startswith(prefix))
        return count + 1

    last = ledger.invoice_counters.get(period)
    if last is None:
        existing = _sequences_with_prefix(ledger, prefix)
        last = max(existing, default=0)
        if existing:
            log.warning(
                "Seeding invoice counter for period %s from existing invoices (last=%04d); "
                "numbers may differ from the count-based scheme if invoices were deleted",
                period,
                last,
            )
    return last + 1


def format_invoice_number(prefix: str, period: str, sequence: int) -> str:
    return f"{prefix}{period}{sequence:04d}"


def next_invoice_number(context: RuntimeContext, when: Optional[datetime] = None) -> str:
    """Return the number the next committed invoice would receive."""
    period = invoice_period(business_time(context, when))
    return format_invoice_number(context.settings.invoice_prefix, period, _next_sequence(context, period))


def preview_invoice(context: RuntimeContext, draft: InvoiceDraft) -> InvoicePreview:
    """Validate ``draft`` and compute its totals without touching the ledger."""
    return billing.build_invoice_preview(
        draft,
        context.ledger.products,
        context.ledger.customers,
        business_state=context.settings.business_state,
    )


def commit_invoice(context: RuntimeContext, draft: InvoiceDraft) -> data_manager.InvoiceRow:
    """Validate ``draft`` and commit the invoice with all its side effects.

    The invoice number, one ``sale`` stock change per line (referencing the
    invoice number), the customer's lifetime total and last purchase date,
    the invoice itself, and the period counter are staged first and then
    applied together. A validation failure leaves stock, customers, invoices,
    movements, and counters exactly as they were.

    Returns:
        data_manager.InvoiceRow: The committed invoice.

    Raises:
        EmptyInvoiceError: If the draft has no lines.
        MissingReferenceError: If the customer or a product is unknown.
        InsufficientStockError: If a product cannot cover its quantity.
        BusinessRuleViolation: For a missing customer or an unsupported
            payment method or status.
        ValueError: For malformed quantities.
    """
    if not isinstance(draft.payment_method, PaymentMethod):
        log.error("Unsupported payment method provided: %s", draft.payment_method)
        raise BusinessRuleViolation(f"Unsupported payment method: {draft.payment_method}")
    if not isinstance(draft.status, InvoiceStatus):
        log.error("Unsupported invoice status provided: %s", draft.status)
        raise BusinessRuleViolation(f"Unsupported invoice status: {draft.status}")

    preview = preview_invoice(context, draft)
    timestamp = _resolve_timestamp(draft.timestamp)
    period = invoice_period(business_time(context, timestamp))
    sequence = _next_sequence(context, period)
    invoice_number = format_invoice_number(context.settings.invoice_prefix, period, sequence)
    created_by = _resolve_actor(context, draft.created_by)

    pending = _PendingChanges()
    for line in preview.lines:
        _stage_stock_change(
            context,
            pending,
            StockChangeCommand(
                product_id=line.product_id,
                quantity=line.quantity,
                movement_type=MovementType.SALE,
                reference=invoice_number,
                created_by=created_by,
            ),
            timestamp=timestamp,
        )

    customer = preview.customer
    breakdown = preview.breakdown
    if customer.customer_id in context.ledger.customers:
        pending.customers[customer.customer_id] = replace(
            customer,
            total_purchases=customer.total_purchases + breakdown.total,
            last_purchase_date=timestamp.isoformat(),
        )

    invoice = data_manager.InvoiceRow(
        invoice_id=generate_record_id(prefix="I", when=timestamp),
        invoice_number=invoice_number,
        customer_id=customer.customer_id,
        customer_name=customer.name,
        customer_phone=customer.phone or None,
        customer_gst=customer.gst_number,
        items=preview.lines,
        subtotal=breakdown.subtotal,
        cgst=breakdown.cgst,
        sgst=breakdown.sgst,
        igst=breakdown.igst,
        total_amount=breakdown.total,
        payment_method=draft.payment_method.value,
        status=draft.status.value,
        created_by=created_by,
        created_at=timestamp.isoformat(),
    )
    pending.invoice = invoice
    pending.counters[period] = max(sequence, context.ledger.invoice_counters.get(period, 0))

    _apply_pending(context.ledger, pending)
    log.info(
        "Committed invoice %s for customer '%s' (%d lines, total=%s, %s)",
        invoice_number,
        customer.customer_id,
        len(preview.lines),
        breakdown.total,
        "IGST" if preview.inter_state else "CGST+SGST",
    )
    return invoice


def update_invoice_status(context: RuntimeContext, invoice_id: str, status: InvoiceStatus) -> data_manager.InvoiceRow:
    """Change an invoice's status, the only field editable after commit.

    Cancelling an invoice does not restore stock or customer totals.

    Raises:
        MissingReferenceError: If the invoice is unknown.
        BusinessRuleViolation: If ``status`` is not an :class:`InvoiceStatus`.
    """
    if not isinstance(status, InvoiceStatus):
        log.error("Unsupported invoice status provided: %s", status)
        raise BusinessRuleViolation(f"Unsupported invoice status: {status}")
    target = get_invoice(context, invoice_id)
    updated = replace(target, status=status.value)
    context.ledger.invoices = [
        updated if invoice is target else invoice for invoice in context.ledger.invoices
    ]
    log.info("Invoice %s status changed %s -> %s", target.invoice_number, target.status, status.value)
    return updated


def delete_invoice(context: RuntimeContext, invoice_id: str) -> data_manager.InvoiceRow:
    """Remove an invoice record.

    Stock movements created by the invoice and the customer's lifetime total
    are NOT reversed. Under legacy numbering the freed number may be issued
    again later in the same month.

    Raises:
        MissingReferenceError: If the invoice is unknown.
    """
    target = get_invoice(context, invoice_id)
    context.ledger.invoices = [invoice for invoice in context.ledger.invoices if invoice is not target]
    log.info(
        "Deleted invoice %s; stock movements and customer totals were left unchanged",
        target.invoice_number,
    )
    return target

