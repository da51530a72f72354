"""Utility for initializing the InvenTrack workbooks.

The module doubles as a script (``inventrack-setup``) and as a library used
by tests. It writes a starter ``config.ini`` on request, then creates the data
workbook and the session workbook with bold header rows on every sheet.
Optionally the data workbook is seeded with a small sample catalog.
"""

from __future__ import annotations

import argparse
import sys
from decimal import Decimal
from pathlib import Path
from typing import Sequence

import openpyxl
from openpyxl.workbook import Workbook

from .constants import EXPECTED_SCHEMA_VERSION
from .data_manager import (
    CONFIG_FILE_NAME,
    DATA_SHEET_COLUMNS,
    SESSION_SHEET_COLUMNS,
    CustomerRow,
    ProductRow,
    create_sheets,
    parse_settings,
    read_config,
    write_ledger_snapshot,
)

CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "SessionFile = {session_file}\n"
    "BusinessName = {business_name}\n"
    "SchemaVersion = {schema_version}\n"
    "# LogFile = logs/inventrack.log\n\n"
    "[Business]\n"
    "State = {business_state}\n"
    "GSTIN = {business_gstin}\n"
    "TimeZone = {time_zone}\n\n"
    "[Billing]\n"
    "InvoicePrefix = INV\n"
    "NumberingMode = monotonic\n"
)

SAMPLE_PRODUCTS: tuple[ProductRow, ...] = (
    ProductRow(
        product_id="1",
        name="Premium Laptop",
        category="Electronics",
        sku="LAP-001",
        hsn_code="8471",
        price=Decimal("45000"),
        gst_rate=Decimal("18"),
        stock=Decimal("25"),
        min_stock_level=Decimal("5"),
        supplier_name="Tech Distributors Ltd",
        unit="piece",
        description="High-performance laptop for business",
        created_at="2024-01-15T00:00:00+00:00",
        updated_at="2024-01-15T00:00:00+00:00",
    ),
    ProductRow(
        product_id="2",
        name="Wireless Mouse",
        category="Electronics",
        sku="MOU-001",
        hsn_code="8471",
        price=Decimal("800"),
        gst_rate=Decimal("18"),
        stock=Decimal("150"),
        min_stock_level=Decimal("20"),
        supplier_name="Tech Distributors Ltd",
        unit="piece",
        description="Ergonomic wireless mouse",
        created_at="2024-01-10T00:00:00+00:00",
        updated_at="2024-01-10T00:00:00+00:00",
    ),
    ProductRow(
        product_id="3",
        name="Office Chair",
        category="Furniture",
        sku="CHR-001",
        hsn_code="9401",
        price=Decimal("5500"),
        gst_rate=Decimal("18"),
        stock=Decimal("8"),
        min_stock_level=Decimal("10"),
        supplier_name="Furniture World",
        unit="piece",
        description="Ergonomic office chair with lumbar support",
        created_at="2024-01-08T00:00:00+00:00",
        updated_at="2024-01-08T00:00:00+00:00",
    ),
    ProductRow(
        product_id="4",
        name="Printing Paper A4",
        category="Stationery",
        sku="PAP-001",
        hsn_code="4802",
        price=Decimal("250"),
        gst_rate=Decimal("12"),
        stock=Decimal("200"),
        min_stock_level=Decimal("50"),
        supplier_name="Paper Supplies Co",
        unit="ream",
        description="Premium quality A4 paper",
        created_at="2024-01-05T00:00:00+00:00",
        updated_at="2024-01-05T00:00:00+00:00",
    ),
    ProductRow(
        product_id="5",
        name='LED Monitor 24"',
        category="Electronics",
        sku="MON-001",
        hsn_code="8528",
        price=Decimal("9500"),
        gst_rate=Decimal("18"),
        stock=Decimal("3"),
        min_stock_level=Decimal("5"),
        supplier_name="Tech Distributors Ltd",
        unit="piece",
        description="Full HD LED monitor",
        created_at="2024-01-12T00:00:00+00:00",
        updated_at="2024-01-12T00:00:00+00:00",
    ),
)

SAMPLE_CUSTOMERS: tuple[CustomerRow, ...] = (
    CustomerRow(
        customer_id="1",
        name="Rajesh Kumar",
        phone="+91 98765 43210",
        email="rajesh@example.com",
        address="Mumbai, Maharashtra",
        gst_number=None,
        state="Maharashtra",
        total_purchases=Decimal("0"),
        last_purchase_date=None,
        created_at="2024-06-15T00:00:00+00:00",
    ),
    CustomerRow(
        customer_id="2",
        name="Priya Sharma",
        phone="+91 87654 32109",
        email="priya@example.com",
        address="Pune, Maharashtra",
        gst_number="27AABCU9603R1ZM",
        state="Maharashtra",
        total_purchases=Decimal("0"),
        last_purchase_date=None,
        created_at="2024-08-10T00:00:00+00:00",
    ),
)


def _new_workbook() -> Workbook:
    workbook = openpyxl.Workbook()
    # Remove the default sheet openpyxl generates so we can create ours.
    if workbook.active and workbook.active.title == "Sheet":
        workbook.remove(workbook.active)
    return workbook


def _refuse_overwrite(destination: Path, overwrite: bool) -> None:
    if destination.exists() and not overwrite:
        raise FileExistsError(f"Refusing to overwrite existing workbook: {destination}")


def create_data_workbook(destination: Path, *, with_sample_data: bool = False, overwrite: bool = False) -> Path:
    """Create the data workbook at ``destination``.

    Raises:
        FileExistsError: If the file exists and ``overwrite`` is ``False``.
    """

    destination = destination.expanduser().resolve()
    _refuse_overwrite(destination, overwrite)
    destination.parent.mkdir(parents=True, exist_ok=True)

    workbook = _new_workbook()
    create_sheets(workbook, DATA_SHEET_COLUMNS)
    if with_sample_data:
        write_ledger_snapshot(
            workbook,
            products=SAMPLE_PRODUCTS,
            customers=SAMPLE_CUSTOMERS,
            invoices=(),
            stock_movements=(),
            invoice_counters={},
        )
    workbook.save(destination)
    return destination


def create_session_workbook(destination: Path, *, overwrite: bool = False) -> Path:
    """Create an empty session workbook at ``destination``."""

    destination = destination.expanduser().resolve()
    _refuse_overwrite(destination, overwrite)
    destination.parent.mkdir(parents=True, exist_ok=True)

    workbook = _new_workbook()
    create_sheets(workbook, SESSION_SHEET_COLUMNS)
    workbook.save(destination)
    return destination


def write_default_config(
    config_path: Path,
    *,
    business_name: str = "My Business",
    business_state: str = "Maharashtra",
    business_gstin: str = "",
    time_zone: str = "",
    overwrite: bool = False,
) -> Path:
    """Write a starter ``config.ini`` pointing at workbooks beside it."""

    config_path = config_path.expanduser().resolve()
    _refuse_overwrite(config_path, overwrite)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        CONFIG_TEMPLATE.format(
            data_file="inventrack_data.xlsx",
            session_file="inventrack_session.xlsx",
            business_name=business_name,
            schema_version=EXPECTED_SCHEMA_VERSION,
            business_state=business_state,
            business_gstin=business_gstin,
            time_zone=time_zone,
        ),
        encoding="utf-8",
    )
    return config_path


def run_from_config(config_path: Path, *, with_sample_data: bool = False, overwrite: bool = False) -> tuple[Path, Path]:
    """Create both workbooks at the locations named in ``config_path``."""

    config_path = config_path.expanduser().resolve()
    settings = parse_settings(read_config(config_path), base_path=config_path.parent)
    data_path = create_data_workbook(settings.data_file, with_sample_data=with_sample_data, overwrite=overwrite)
    session_path = create_session_workbook(settings.session_file, overwrite=overwrite)
    return data_path, session_path


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the setup script."""

    parser = argparse.ArgumentParser(description="Initialize InvenTrack workbooks")
    parser.add_argument(
        "--config",
        default=CONFIG_FILE_NAME,
        help="Path to configuration file (default: config.ini)",
    )
    parser.add_argument(
        "--write-config",
        action="store_true",
        help="Write a starter config.ini at --config before creating workbooks.",
    )
    parser.add_argument(
        "--sample-data",
        action="store_true",
        help="Seed the data workbook with a demo catalog and customers.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing files.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ``inventrack-setup`` script."""

    args = parse_args(argv)
    config_path = Path(args.config).expanduser().resolve()

    print("--- InvenTrack Setup ---")
    print(f"Using configuration: {config_path}")

    try:
        if args.write_config:
            write_default_config(config_path, overwrite=args.force)
            print(f"Wrote starter configuration to '{config_path}'.")
        data_path, session_path = run_from_config(
            config_path,
            with_sample_data=args.sample_data,
            overwrite=args.force,
        )
    except (FileNotFoundError, KeyError, ValueError) as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except FileExistsError as exc:
        print(f"\n[ERROR] {exc}")
        print("Run with --force to overwrite the existing file if appropriate.")
        return 1
    except (PermissionError, OSError) as exc:
        print(f"\n[ERROR] Unable to write workbook: {exc}")
        return 1

    print(f"\n[SUCCESS] Created data workbook at '{data_path}'.")
    print(f"[SUCCESS] Created session workbook at '{session_path}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
