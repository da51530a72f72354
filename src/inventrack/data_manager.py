"""Data access layer for InvenTrack.

This module provides low-level helpers that read from and write to the two
workbook partitions: the data workbook holding the ledger collections and the
session workbook holding the login state. Business logic belongs elsewhere.

The public API is designed around three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening, validating, and persisting the Excel files.
3. Sheet operations: loading structured records and rewriting a sheet with a
   fresh snapshot of records.
"""


from __future__ import annotations

import configparser
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, tzinfo
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from openpyxl.styles import Font
from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet
import openpyxl

from . import log
from .constants import (
    DEFAULT_ADMIN_EMAIL,
    DEFAULT_ADMIN_NAME,
    DEFAULT_ADMIN_PASSWORD,
    DEFAULT_INVOICE_PREFIX,
    NumberingMode,
    SheetName,
)


CONFIG_FILE_NAME = "config.ini"
PRODUCTS_SHEET = SheetName.PRODUCTS.value
CUSTOMERS_SHEET = SheetName.CUSTOMERS.value
INVOICES_SHEET = SheetName.INVOICES.value
INVOICE_ITEMS_SHEET = SheetName.INVOICE_ITEMS.value
STOCK_MOVEMENTS_SHEET = SheetName.STOCK_MOVEMENTS.value
INVOICE_COUNTERS_SHEET = SheetName.INVOICE_COUNTERS.value
SESSION_SHEET = SheetName.SESSION.value

# Column layout of every managed worksheet, in write order.
DATA_SHEET_COLUMNS: Mapping[str, Sequence[str]] = {
    PRODUCTS_SHEET: [
        "ProductID",
        "Name",
        "Category",
        "SKU",
        "HSNCode",
        "Price",
        "GSTRate",
        "Stock",
        "MinStockLevel",
        "SupplierName",
        "Unit",
        "Description",
        "CreatedAt",
        "UpdatedAt",
    ],
    CUSTOMERS_SHEET: [
        "CustomerID",
        "Name",
        "Phone",
        "Email",
        "Address",
        "GSTNumber",
        "State",
        "TotalPurchases",
        "LastPurchaseDate",
        "CreatedAt",
    ],
    INVOICES_SHEET: [
        "InvoiceID",
        "InvoiceNumber",
        "CustomerID",
        "CustomerName",
        "CustomerPhone",
        "CustomerGST",
        "Subtotal",
        "CGST",
        "SGST",
        "IGST",
        "TotalAmount",
        "PaymentMethod",
        "Status",
        "CreatedBy",
        "CreatedAt",
    ],
    INVOICE_ITEMS_SHEET: [
        "InvoiceID",
        "LineNo",
        "ProductID",
        "ProductName",
        "HSNCode",
        "Quantity",
        "Price",
        "GSTRate",
        "Total",
    ],
    STOCK_MOVEMENTS_SHEET: [
        "MovementID",
        "ProductID",
        "ProductName",
        "MovementType",
        "Quantity",
        "BalanceAfter",
        "Reference",
        "Notes",
        "CreatedBy",
        "CreatedAt",
    ],
    INVOICE_COUNTERS_SHEET: [
        "Period",
        "LastSequence",
    ],
}

SESSION_SHEET_COLUMNS: Mapping[str, Sequence[str]] = {
    SESSION_SHEET: [
        "UserID",
        "Email",
        "Name",
        "Role",
        "IsAuthenticated",
        "LoggedInAt",
    ],
}


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    session_file: Path
    business_name: str
    schema_version: str
    business_state: Optional[str] = None
    business_gstin: Optional[str] = None
    timezone: Optional[tzinfo] = None
    log_file: Optional[Path] = None
    invoice_prefix: str = DEFAULT_INVOICE_PREFIX
    numbering_mode: NumberingMode = NumberingMode.MONOTONIC
    admin_email: str = DEFAULT_ADMIN_EMAIL
    admin_password: str = DEFAULT_ADMIN_PASSWORD
    admin_name: str = DEFAULT_ADMIN_NAME


@dataclass(frozen=True)
class ProductRow:
    """In-memory view of a row from the ``Products`` sheet."""

    product_id: str
    name: str
    category: str
    sku: str
    hsn_code: str
    price: Decimal
    gst_rate: Decimal
    stock: Decimal
    min_stock_level: Decimal
    supplier_name: Optional[str]
    unit: str
    description: Optional[str]
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class CustomerRow:
    """In-memory view of a row from the ``Customers`` sheet."""

    customer_id: str
    name: str
    phone: str
    email: Optional[str]
    address: Optional[str]
    gst_number: Optional[str]
    state: Optional[str]
    total_purchases: Decimal
    last_purchase_date: Optional[str]
    created_at: str


@dataclass(frozen=True)
class InvoiceItemRow:
    """One line of an invoice with product details frozen at sale time."""

    product_id: str
    product_name: str
    hsn_code: str
    quantity: Decimal
    price: Decimal
    gst_rate: Decimal
    total: Decimal


@dataclass(frozen=True)
class InvoiceRow:
    """In-memory view of an ``Invoices`` row joined with its item rows."""

    invoice_id: str
    invoice_number: str
    customer_id: Optional[str]
    customer_name: str
    customer_phone: Optional[str]
    customer_gst: Optional[str]
    items: tuple[InvoiceItemRow, ...]
    subtotal: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total_amount: Decimal
    payment_method: str
    status: str
    created_by: str
    created_at: str


@dataclass(frozen=True)
class StockMovementRow:
    """In-memory view of a row from the ``StockMovements`` sheet."""

    movement_id: str
    product_id: str
    product_name: str
    movement_type: str
    quantity: Decimal
    balance_after: Decimal
    reference: Optional[str]
    notes: Optional[str]
    created_by: str
    created_at: str


@dataclass(frozen=True)
class SessionRow:
    """The persisted login state stored in the session workbook."""

    user_id: str
    email: str
    name: str
    role: str
    is_authenticated: bool
    logged_in_at: Optional[str]


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. Otherwise the function walks up from the current
    working directory toward the filesystem root looking for a file named
    ``CONFIG_FILE_NAME``. The first match that exists on disk wins.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If no ``CONFIG_FILE_NAME`` exists in the working
            directory or any of its parents.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Args:
        config_path (Path): Path to the configuration file, relative or
            absolute. ``~`` is expanded.

    Returns:
        configparser.ConfigParser: Parser containing the raw configuration.
            Missing entries are reported later by :func:`parse_settings`.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")
    return parser


def _resolve_data_path(raw: str, base_path: Optional[Path]) -> Path:
    path = Path(raw).expanduser()
    if not path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        path = (base_path / path).resolve()
    return path


def _resolve_optional_path(raw: Optional[str], base_path: Optional[Path]) -> Optional[Path]:
    if raw is None or not raw.strip():
        return None
    return _resolve_data_path(raw.strip(), base_path)


def _parse_timezone(raw: Optional[str]) -> Optional[tzinfo]:
    """Resolve ``[Business] TimeZone``; ``None`` means the machine's local zone."""

    if raw is None or not raw.strip():
        return None
    name = raw.strip()
    if name.upper() == "UTC":
        return UTC
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown time zone: {name}") from exc


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    The ``[System]`` section is mandatory. ``[Business]``, ``[Billing]`` and
    ``[Auth]`` are optional and fall back to the package defaults. Relative
    workbook paths are anchored at ``base_path`` (the config file's folder
    when called through the business layer) or the working directory.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory used to resolve relative
            ``DataFile``, ``SessionFile`` and ``LogFile`` entries.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If a required option is missing.
        ValueError: If ``NumberingMode`` names an unknown strategy or
            ``TimeZone`` an unknown zone.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        session_file_raw = parser.get("System", "SessionFile")
        business_name = parser.get("System", "BusinessName")
        schema_version = parser.get("System", "SchemaVersion")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    numbering_raw = parser.get("Billing", "NumberingMode", fallback=NumberingMode.MONOTONIC.value)
    try:
        numbering_mode = NumberingMode(numbering_raw.strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unknown invoice numbering mode: {numbering_raw}") from exc

    return ConfigSettings(
        data_file=_resolve_data_path(data_file_raw, base_path),
        session_file=_resolve_data_path(session_file_raw, base_path),
        business_name=business_name,
        schema_version=schema_version,
        business_state=parser.get("Business", "State", fallback=None) or None,
        business_gstin=parser.get("Business", "GSTIN", fallback=None) or None,
        timezone=_parse_timezone(parser.get("Business", "TimeZone", fallback=None)),
        log_file=_resolve_optional_path(parser.get("System", "LogFile", fallback=None), base_path),
        invoice_prefix=parser.get("Billing", "InvoicePrefix", fallback=DEFAULT_INVOICE_PREFIX),
        numbering_mode=numbering_mode,
        admin_email=parser.get("Auth", "AdminEmail", fallback=DEFAULT_ADMIN_EMAIL),
        admin_password=parser.get("Auth", "AdminPassword", fallback=DEFAULT_ADMIN_PASSWORD),
        admin_name=parser.get("Auth", "AdminName", fallback=DEFAULT_ADMIN_NAME),
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open a workbook partition and return a live ``openpyxl`` workbook.

    Args:
        data_file (Path): Filesystem path to the ``.xlsx`` file.

    Returns:
        Workbook: ``openpyxl`` workbook instance backed by the provided file.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    wb = openpyxl.load_workbook(data_file)
    return wb


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook to disk, creating parent folders on demand."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def refresh_workbook(data_file: Path) -> Workbook:
    """Reload the workbook from disk, discarding any unsaved in-memory changes."""

    return open_workbook(data_file)


def validate_sheets(workbook: Workbook, layout: Mapping[str, Sequence[str]]) -> None:
    """Check that every sheet of ``layout`` exists with the expected header.

    Raises:
        RuntimeError: If a sheet is missing or its header row differs.
    """

    for sheet_name, columns in layout.items():
        if sheet_name not in workbook.sheetnames:
            raise RuntimeError(f"Workbook is missing sheet '{sheet_name}'")
        header = [cell.value for cell in workbook[sheet_name][1]][: len(columns)]
        if header != list(columns):
            raise RuntimeError(
                f"Sheet '{sheet_name}' has unexpected columns: {header}")


def _iter_raw_rows(workbook: Workbook, sheet_name: str) -> Iterable[tuple]:
    sheet = workbook[sheet_name]
    for raw in sheet.iter_rows(min_row=2, values_only=True):
        # skip fully empty rows
        if any(cell is not None for cell in raw):
            yield raw


def iter_products(workbook: Workbook) -> Iterable[ProductRow]:
    """Iterate over product records stored on the ``Products`` worksheet.

    Yields:
        ProductRow: One structured row for each non-empty record, in sheet
            order.
    """

    for raw in _iter_raw_rows(workbook, PRODUCTS_SHEET):
        yield deserialize_product(raw)


def iter_customers(workbook: Workbook) -> Iterable[CustomerRow]:
    """Iterate over customer records stored on the ``Customers`` worksheet."""

    for raw in _iter_raw_rows(workbook, CUSTOMERS_SHEET):
        yield deserialize_customer(raw)


def iter_stock_movements(workbook: Workbook) -> Iterable[StockMovementRow]:
    """Stream the stock movement audit trail in stored (newest-first) order."""

    for raw in _iter_raw_rows(workbook, STOCK_MOVEMENTS_SHEET):
        yield deserialize_stock_movement(raw)


def iter_invoices(workbook: Workbook) -> Iterable[InvoiceRow]:
    """Stream invoices joined with their line items.

    Item rows are grouped by ``InvoiceID`` and ordered by ``LineNo`` before
    being attached to the invoice header, so the resulting
    :class:`InvoiceRow` carries its lines in the order they were billed.
    Item rows whose invoice header is missing are ignored.

    Yields:
        InvoiceRow: Invoices in stored (newest-first) order.
    """

    items_by_invoice: Dict[str, List[tuple[int, InvoiceItemRow]]] = defaultdict(list)
    for raw in _iter_raw_rows(workbook, INVOICE_ITEMS_SHEET):
        invoice_id, line_no, item = deserialize_invoice_item(raw)
        items_by_invoice[invoice_id].append((line_no, item))

    for raw in _iter_raw_rows(workbook, INVOICES_SHEET):
        invoice_id = str(raw[0])
        lines = sorted(items_by_invoice.get(invoice_id, []), key=lambda entry: entry[0])
        yield deserialize_invoice(raw, items=tuple(item for _, item in lines))


def iter_invoice_counters(workbook: Workbook) -> Iterable[tuple[str, int]]:
    """Yield ``(period, last_sequence)`` pairs from ``InvoiceCounters``."""

    for raw in _iter_raw_rows(workbook, INVOICE_COUNTERS_SHEET):
        period, last_sequence = raw[0], raw[1]
        yield str(period), int(last_sequence or 0)


def read_session(workbook: Workbook) -> Optional[SessionRow]:
    """Return the stored session, or ``None`` when nobody has logged in."""

    for raw in _iter_raw_rows(workbook, SESSION_SHEET):
        return deserialize_session(raw)
    return None


def _write_header(sheet: Worksheet, columns: Sequence[str]) -> None:
    bold_font = Font(bold=True)
    for column_index, column_name in enumerate(columns, start=1):
        cell = sheet.cell(row=1, column=column_index)
        cell.value = column_name
        cell.font = bold_font


def create_sheets(workbook: Workbook, layout: Mapping[str, Sequence[str]]) -> None:
    """Create one sheet per ``layout`` entry with a bold header row."""

    for sheet_name, columns in layout.items():
        _write_header(workbook.create_sheet(title=sheet_name), columns)


def replace_sheet_rows(workbook: Workbook, sheet_name: str, rows: Iterable[Sequence[object]]) -> int:
    """Rebuild ``sheet_name`` with its header followed by ``rows`` in order.

    The sheet is recreated at the same position rather than edited in place
    because the ledger is flushed as a snapshot, not as individual edits.

    Returns:
        int: Number of data rows written.
    """

    columns = {**DATA_SHEET_COLUMNS, **SESSION_SHEET_COLUMNS}[sheet_name]
    position = workbook.sheetnames.index(sheet_name)
    workbook.remove(workbook[sheet_name])
    sheet = workbook.create_sheet(title=sheet_name, index=position)
    _write_header(sheet, columns)
    count = 0
    for row in rows:
        sheet.append(list(row))
        count += 1
    return count


def write_ledger_snapshot(
    workbook: Workbook,
    *,
    products: Iterable[ProductRow],
    customers: Iterable[CustomerRow],
    invoices: Sequence[InvoiceRow],
    stock_movements: Iterable[StockMovementRow],
    invoice_counters: Mapping[str, int],
) -> None:
    """Rewrite every data sheet with the supplied collections.

    Args:
        workbook (Workbook): Data partition workbook.
        products, customers, invoices, stock_movements: Records in the order
            they should be read back.
        invoice_counters (Mapping[str, int]): Last issued sequence per
            ``<YY><MM>`` period.
    """

    replace_sheet_rows(workbook, PRODUCTS_SHEET, (serialize_product(p) for p in products))
    replace_sheet_rows(workbook, CUSTOMERS_SHEET, (serialize_customer(c) for c in customers))
    replace_sheet_rows(workbook, INVOICES_SHEET, (serialize_invoice(i) for i in invoices))
    replace_sheet_rows(
        workbook,
        INVOICE_ITEMS_SHEET,
        (
            serialize_invoice_item(invoice.invoice_id, line_no, item)
            for invoice in invoices
            for line_no, item in enumerate(invoice.items, start=1)
        ),
    )
    replace_sheet_rows(
        workbook,
        STOCK_MOVEMENTS_SHEET,
        (serialize_stock_movement(m) for m in stock_movements),
    )
    replace_sheet_rows(
        workbook,
        INVOICE_COUNTERS_SHEET,
        ([period, sequence] for period, sequence in sorted(invoice_counters.items())),
    )
    log.debug("Wrote ledger snapshot with %d invoices", len(invoices))


def write_session(workbook: Workbook, session: Optional[SessionRow]) -> None:
    """Replace the stored session with ``session`` (or clear it when ``None``)."""

    rows = [] if session is None else [serialize_session(session)]
    replace_sheet_rows(workbook, SESSION_SHEET, rows)


def _to_decimal(raw: object, default: str = "0") -> Decimal:
    return Decimal(str(raw)) if raw is not None else Decimal(default)


def _decimal_cell(value: Decimal) -> str:
    """Store a Decimal as text so the workbook keeps every digit."""

    return str(value)


def _to_optional_str(raw: object) -> Optional[str]:
    return str(raw) if raw is not None else None


def serialize_product(record: ProductRow) -> list[object]:
    """Convert a product dataclass into the ``Products`` column ordering."""

    return [
        record.product_id,
        record.name,
        record.category,
        record.sku,
        record.hsn_code,
        _decimal_cell(record.price),
        _decimal_cell(record.gst_rate),
        _decimal_cell(record.stock),
        _decimal_cell(record.min_stock_level),
        record.supplier_name,
        record.unit,
        record.description,
        record.created_at,
        record.updated_at,
    ]


def serialize_customer(record: CustomerRow) -> list[object]:
    """Convert a customer dataclass into the ``Customers`` column ordering."""

    return [
        record.customer_id,
        record.name,
        record.phone,
        record.email,
        record.address,
        record.gst_number,
        record.state,
        _decimal_cell(record.total_purchases),
        record.last_purchase_date,
        record.created_at,
    ]


def serialize_invoice(record: InvoiceRow) -> list[object]:
    """Convert an invoice header into the ``Invoices`` column ordering.

    Line items are written separately by :func:`serialize_invoice_item`.
    """

    return [
        record.invoice_id,
        record.invoice_number,
        record.customer_id,
        record.customer_name,
        record.customer_phone,
        record.customer_gst,
        _decimal_cell(record.subtotal),
        _decimal_cell(record.cgst),
        _decimal_cell(record.sgst),
        _decimal_cell(record.igst),
        _decimal_cell(record.total_amount),
        record.payment_method,
        record.status,
        record.created_by,
        record.created_at,
    ]


def serialize_invoice_item(invoice_id: str, line_no: int, record: InvoiceItemRow) -> list[object]:
    return [
        invoice_id,
        line_no,
        record.product_id,
        record.product_name,
        record.hsn_code,
        _decimal_cell(record.quantity),
        _decimal_cell(record.price),
        _decimal_cell(record.gst_rate),
        _decimal_cell(record.total),
    ]


def serialize_stock_movement(record: StockMovementRow) -> list[object]:
    return [
        record.movement_id,
        record.product_id,
        record.product_name,
        record.movement_type,
        _decimal_cell(record.quantity),
        _decimal_cell(record.balance_after),
        record.reference,
        record.notes,
        record.created_by,
        record.created_at,
    ]


def serialize_session(record: SessionRow) -> list[object]:
    return [
        record.user_id,
        record.email,
        record.name,
        record.role,
        record.is_authenticated,
        record.logged_in_at,
    ]


def deserialize_product(raw_row: Sequence[object]) -> ProductRow:
    """Convert a raw worksheet row into a strongly typed product record.

    Numeric columns become :class:`~decimal.Decimal` instances and the
    identifier and code columns are coerced to ``str`` so that values Excel
    interpreted as numbers (an HSN code such as ``8471``) round-trip as text.
    """

    (
        product_id,
        name,
        category,
        sku,
        hsn_code,
        price,
        gst_rate,
        stock,
        min_stock_level,
        supplier_name,
        unit,
        description,
        created_at,
        updated_at,
    ) = raw_row[:14]

    return ProductRow(
        product_id=str(product_id),
        name=str(name),
        category=str(category) if category is not None else "",
        sku=str(sku) if sku is not None else "",
        hsn_code=str(hsn_code) if hsn_code is not None else "",
        price=_to_decimal(price, "0.00"),
        gst_rate=_to_decimal(gst_rate),
        stock=_to_decimal(stock),
        min_stock_level=_to_decimal(min_stock_level),
        supplier_name=_to_optional_str(supplier_name),
        unit=str(unit) if unit is not None else "",
        description=_to_optional_str(description),
        created_at=str(created_at) if created_at is not None else "",
        updated_at=str(updated_at) if updated_at is not None else "",
    )


def deserialize_customer(raw_row: Sequence[object]) -> CustomerRow:
    """Convert a raw worksheet row into a strongly typed customer record."""

    (
        customer_id,
        name,
        phone,
        email,
        address,
        gst_number,
        state,
        total_purchases,
        last_purchase_date,
        created_at,
    ) = raw_row[:10]

    return CustomerRow(
        customer_id=str(customer_id),
        name=str(name),
        phone=str(phone) if phone is not None else "",
        email=_to_optional_str(email),
        address=_to_optional_str(address),
        gst_number=_to_optional_str(gst_number),
        state=_to_optional_str(state),
        total_purchases=_to_decimal(total_purchases, "0.00"),
        last_purchase_date=_to_optional_str(last_purchase_date),
        created_at=str(created_at) if created_at is not None else "",
    )


def deserialize_invoice_item(raw_row: Sequence[object]) -> tuple[str, int, InvoiceItemRow]:
    """Convert an ``InvoiceItems`` row into ``(invoice_id, line_no, item)``."""

    (
        invoice_id,
        line_no,
        product_id,
        product_name,
        hsn_code,
        quantity,
        price,
        gst_rate,
        total,
    ) = raw_row[:9]

    item = InvoiceItemRow(
        product_id=str(product_id),
        product_name=str(product_name),
        hsn_code=str(hsn_code) if hsn_code is not None else "",
        quantity=_to_decimal(quantity),
        price=_to_decimal(price, "0.00"),
        gst_rate=_to_decimal(gst_rate),
        total=_to_decimal(total, "0.00"),
    )
    return str(invoice_id), int(line_no or 0), item


def deserialize_invoice(raw_row: Sequence[object], *, items: tuple[InvoiceItemRow, ...] = ()) -> InvoiceRow:
    """Convert an ``Invoices`` row into an :class:`InvoiceRow`.

    Args:
        raw_row (Sequence[object]): Header cells in worksheet order.
        items (tuple[InvoiceItemRow, ...]): Already-deserialized lines to
            attach to the header.
    """

    (
        invoice_id,
        invoice_number,
        customer_id,
        customer_name,
        customer_phone,
        customer_gst,
        subtotal,
        cgst,
        sgst,
        igst,
        total_amount,
        payment_method,
        status,
        created_by,
        created_at,
    ) = raw_row[:15]

    return InvoiceRow(
        invoice_id=str(invoice_id),
        invoice_number=str(invoice_number),
        customer_id=_to_optional_str(customer_id),
        customer_name=str(customer_name) if customer_name is not None else "",
        customer_phone=_to_optional_str(customer_phone),
        customer_gst=_to_optional_str(customer_gst),
        items=items,
        subtotal=_to_decimal(subtotal, "0.00"),
        cgst=_to_decimal(cgst, "0.00"),
        sgst=_to_decimal(sgst, "0.00"),
        igst=_to_decimal(igst, "0.00"),
        total_amount=_to_decimal(total_amount, "0.00"),
        payment_method=str(payment_method) if payment_method is not None else "",
        status=str(status) if status is not None else "",
        created_by=str(created_by) if created_by is not None else "",
        created_at=str(created_at) if created_at is not None else "",
    )


def deserialize_stock_movement(raw_row: Sequence[object]) -> StockMovementRow:
    """Convert a ``StockMovements`` row into a :class:`StockMovementRow`."""

    (
        movement_id,
        product_id,
        product_name,
        movement_type,
        quantity,
        balance_after,
        reference,
        notes,
        created_by,
        created_at,
    ) = raw_row[:10]

    return StockMovementRow(
        movement_id=str(movement_id),
        product_id=str(product_id),
        product_name=str(product_name) if product_name is not None else "",
        movement_type=str(movement_type) if movement_type is not None else "",
        quantity=_to_decimal(quantity),
        balance_after=_to_decimal(balance_after),
        reference=_to_optional_str(reference),
        notes=_to_optional_str(notes),
        created_by=str(created_by) if created_by is not None else "",
        created_at=str(created_at) if created_at is not None else "",
    )


def deserialize_session(raw_row: Sequence[object]) -> SessionRow:
    user_id, email, name, role, is_authenticated, logged_in_at = raw_row[:6]
    return SessionRow(
        user_id=str(user_id),
        email=str(email),
        name=str(name) if name is not None else "",
        role=str(role) if role is not None else "",
        is_authenticated=bool(is_authenticated),
        logged_in_at=_to_optional_str(logged_in_at),
    )
