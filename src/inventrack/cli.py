"""Command-line entry points for InvenTrack.

All orchestration in this module is limited to argparse wiring, translating
command-line strings into the command objects consumed by the ledger store,
and printing results. Keeping the CLI thin ensures the same parser
configuration can be reused by tests, scripts, or any alternative front-end.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, log, reports, session
from .billing import InvoiceDraft, LineItemRequest
from .constants import InvoiceStatus, MovementType, PaymentMethod
from .errors import AuthenticationRequired


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed.

    Commands flagged with ``requires_auth`` mutate the ledger and only run
    with an authenticated session on a schema-compatible workbook.
    """

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]
    requires_auth: bool = False


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="inventrack",
        description="Inventory, billing, and GST invoicing on local workbooks.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (searched upward from the working directory by default).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare commands that change the session or the ledger."""
    specs = {
        "login": register_login_command(subparsers),
        "logout": register_logout_command(subparsers),
        "add-product": register_add_product_command(subparsers),
        "update-product": register_update_product_command(subparsers),
        "delete-product": register_delete_product_command(subparsers),
        "add-customer": register_add_customer_command(subparsers),
        "update-customer": register_update_customer_command(subparsers),
        "delete-customer": register_delete_customer_command(subparsers),
        "stock-change": register_stock_change_command(subparsers),
        "invoice": register_invoice_command(subparsers),
        "set-status": register_set_status_command(subparsers),
        "delete-invoice": register_delete_invoice_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only commands such as listings and reports."""
    specs = {
        "products": register_products_command(subparsers),
        "customers": register_customers_command(subparsers),
        "invoices": register_invoices_command(subparsers),
        "movements": register_movements_command(subparsers),
        "preview": register_preview_command(subparsers),
        "dashboard": register_dashboard_command(subparsers),
        "report": register_report_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def _add_draft_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--customer-id", required=True)
    parser.add_argument(
        "--item",
        dest="items",
        action="append",
        required=True,
        metavar="PRODUCT_ID:QTY",
        help="Line item; repeat for several products.",
    )
    jurisdiction = parser.add_mutually_exclusive_group()
    jurisdiction.add_argument(
        "--inter-state",
        dest="inter_state",
        action="store_const",
        const=True,
        default=None,
        help="Charge IGST.",
    )
    jurisdiction.add_argument(
        "--same-state",
        dest="inter_state",
        action="store_const",
        const=False,
        help="Charge CGST and SGST.",
    )
    parser.add_argument(
        "--payment-method",
        choices=[member.value for member in PaymentMethod],
        default=PaymentMethod.CASH.value,
    )


def register_login_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``login``."""
    name = "login"
    help_text = "Log in with the administrator credentials."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--email", required=True)
        parser.add_argument("--password", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_login)


def register_logout_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``logout``."""
    name = "logout"
    help_text = "Close the current session."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_logout)


def register_add_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-product``."""
    name = "add-product"
    help_text = "Add a product to the catalog."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--name", required=True)
        parser.add_argument("--category", required=True)
        parser.add_argument("--price", required=True)
        parser.add_argument("--gst-rate", required=True, help="GST percentage, e.g. 18.")
        parser.add_argument("--sku", default="")
        parser.add_argument("--hsn-code", default="")
        parser.add_argument("--stock", default="0", help="Opening stock.")
        parser.add_argument("--min-stock", default="0", help="Low-stock threshold.")
        parser.add_argument("--unit", default="piece")
        parser.add_argument("--supplier", default=None)
        parser.add_argument("--description", default=None)
        parser.add_argument("--product-id", default=None, help="Explicit id (generated when omitted).")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_product, requires_auth=True)


def register_update_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``update-product``."""
    name = "update-product"
    help_text = "Edit catalog details of a product (stock moves via stock-change)."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.add_argument("--name")
        parser.add_argument("--category")
        parser.add_argument("--price")
        parser.add_argument("--gst-rate")
        parser.add_argument("--sku")
        parser.add_argument("--hsn-code")
        parser.add_argument("--min-stock")
        parser.add_argument("--unit")
        parser.add_argument("--supplier")
        parser.add_argument("--description")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_update_product, requires_auth=True)


def register_delete_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-product``."""
    name = "delete-product"
    help_text = "Remove a product; past invoices keep their snapshot."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete_product, requires_auth=True)


def register_add_customer_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-customer``."""
    name = "add-customer"
    help_text = "Register a customer."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--name", required=True)
        parser.add_argument("--phone", required=True)
        parser.add_argument("--email", default=None)
        parser.add_argument("--address", default=None)
        parser.add_argument("--gst-number", default=None)
        parser.add_argument("--state", default=None, help="Decides CGST+SGST versus IGST.")
        parser.add_argument("--customer-id", default=None, help="Explicit id (generated when omitted).")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_customer, requires_auth=True)


def register_update_customer_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``update-customer``."""
    name = "update-customer"
    help_text = "Edit a customer's contact details."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer-id", required=True)
        parser.add_argument("--name")
        parser.add_argument("--phone")
        parser.add_argument("--email")
        parser.add_argument("--address")
        parser.add_argument("--gst-number")
        parser.add_argument("--state")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_update_customer, requires_auth=True)


def register_delete_customer_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-customer``."""
    name = "delete-customer"
    help_text = "Remove a customer; past invoices keep their snapshot."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete_customer, requires_auth=True)


def register_stock_change_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``stock-change``."""
    name = "stock-change"
    help_text = "Record a purchase, sale, or adjustment against a product."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.add_argument("--quantity", required=True, help="Signed for adjustments.")
        parser.add_argument(
            "--type",
            dest="movement_type",
            choices=[member.value for member in MovementType],
            required=True,
        )
        parser.add_argument("--reference", default=None)
        parser.add_argument("--notes", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_stock_change, requires_auth=True)


def register_invoice_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``invoice``."""
    name = "invoice"
    help_text = "Create an invoice, decrementing stock for every line."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_draft_arguments(parser)
        parser.add_argument(
            "--status",
            choices=[member.value for member in InvoiceStatus],
            default=InvoiceStatus.PAID.value,
        )
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_invoice, requires_auth=True)


def register_set_status_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``set-status``."""
    name = "set-status"
    help_text = "Change the status of an invoice."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--invoice-id", required=True, help="Invoice id or invoice number.")
        parser.add_argument(
            "--status",
            choices=[member.value for member in InvoiceStatus],
            required=True,
        )
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_set_status, requires_auth=True)


def register_delete_invoice_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-invoice``."""
    name = "delete-invoice"
    help_text = "Delete an invoice (stock and customer totals are not reversed)."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--invoice-id", required=True, help="Invoice id or invoice number.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete_invoice, requires_auth=True)


def register_products_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``products``."""
    name = "products"
    help_text = "List the catalog with stock levels."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--search", default="", help="Match name, category, or SKU.")
        parser.add_argument("--low-stock", action="store_true", help="Only products at or below their minimum.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_products_report)


def register_customers_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``customers``."""
    name = "customers"
    help_text = "List customers with their purchase totals."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--search", default="", help="Match name, phone, or email.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_customers_report)


def register_invoices_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``invoices``."""
    name = "invoices"
    help_text = "List invoices, newest first."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--search", default="", help="Match invoice number or customer name.")
        parser.add_argument("--status", choices=[member.value for member in InvoiceStatus], default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_invoices_report)


def register_movements_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``movements``."""
    name = "movements"
    help_text = "Display the stock movement audit trail."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--search", default="", help="Match product name or reference.")
        parser.add_argument(
            "--type",
            dest="movement_type",
            choices=[member.value for member in MovementType],
            default=None,
        )
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_movements_report)


def register_preview_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``preview``."""
    name = "preview"
    help_text = "Compute an invoice without committing it."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_draft_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_preview)


def register_dashboard_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``dashboard``."""
    name = "dashboard"
    help_text = "Display headline figures, recent sales, and low-stock alerts."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--days", type=int, default=7, help="Days of sales history to show.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_dashboard_report)


def register_report_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``report``."""
    name = "report"
    help_text = "Display sales, category, and stock movement summaries."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--months", type=int, default=6)
        parser.add_argument("--top", type=int, default=5, help="Number of best sellers to list.")
        parser.add_argument("--customer-id", default=None, help="Show one customer's purchase history instead.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_summary_report)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    return core_logic.load_runtime_context(Path(config_path) if config_path is not None else None)


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor.

    Raises:
        KeyError: If the command is missing or unknown.
        AuthenticationRequired: If the command mutates the ledger and no
            session is open.
    """
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    if spec.requires_auth:
        session.require_authenticated(context)
        core_logic.ensure_schema_version(context)
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def _present(args: argparse.Namespace, mapping: Mapping[str, str]) -> Dict[str, Any]:
    """Collect the options the user actually passed, renamed to record fields."""
    return {
        field: getattr(args, attribute)
        for attribute, field in mapping.items()
        if getattr(args, attribute, None) is not None
    }


def parse_line_item(raw: str) -> LineItemRequest:
    """Parse a ``PRODUCT_ID:QTY`` option value.

    Raises:
        ValueError: If the separator is missing or the quantity is not a number.
    """
    product_id, separator, quantity = raw.rpartition(":")
    if not separator or not product_id.strip():
        raise ValueError(f"Line item must look like PRODUCT_ID:QTY, got {raw!r}")
    return LineItemRequest(
        product_id=product_id.strip(),
        quantity=core_logic.parse_decimal(quantity, field="quantity"),
    )


def translate_add_product(args: argparse.Namespace) -> core_logic.ProductCommand:
    """Translate CLI args into an add-product command object."""
    return core_logic.ProductCommand(
        name=args.name,
        category=args.category,
        sku=args.sku,
        hsn_code=args.hsn_code,
        price=core_logic.parse_decimal(args.price, field="price"),
        gst_rate=core_logic.parse_decimal(args.gst_rate, field="GST rate"),
        stock=core_logic.parse_decimal(args.stock, field="stock"),
        min_stock_level=core_logic.parse_decimal(args.min_stock, field="minimum stock"),
        unit=args.unit,
        supplier_name=args.supplier,
        description=args.description,
        product_id=args.product_id,
    )


def translate_update_product(args: argparse.Namespace) -> Dict[str, Any]:
    """Translate CLI args into keyword changes for ``update_product``."""
    changes = _present(
        args,
        {
            "name": "name",
            "category": "category",
            "price": "price",
            "gst_rate": "gst_rate",
            "sku": "sku",
            "hsn_code": "hsn_code",
            "min_stock": "min_stock_level",
            "unit": "unit",
            "supplier": "supplier_name",
            "description": "description",
        },
    )
    if not changes:
        raise ValueError("Nothing to update; pass at least one field option")
    return changes


def translate_add_customer(args: argparse.Namespace) -> core_logic.CustomerCommand:
    """Translate CLI args into an add-customer command object."""
    return core_logic.CustomerCommand(
        name=args.name,
        phone=args.phone,
        email=args.email,
        address=args.address,
        gst_number=args.gst_number,
        state=args.state,
        customer_id=args.customer_id,
    )


def translate_update_customer(args: argparse.Namespace) -> Dict[str, Any]:
    """Translate CLI args into keyword changes for ``update_customer``."""
    changes = _present(
        args,
        {
            "name": "name",
            "phone": "phone",
            "email": "email",
            "address": "address",
            "gst_number": "gst_number",
            "state": "state",
        },
    )
    if not changes:
        raise ValueError("Nothing to update; pass at least one field option")
    return changes


def translate_stock_change(args: argparse.Namespace) -> core_logic.StockChangeCommand:
    """Translate CLI args into a stock change command object."""
    return core_logic.StockChangeCommand(
        product_id=args.product_id,
        quantity=core_logic.parse_decimal(args.quantity, field="quantity"),
        movement_type=MovementType(args.movement_type),
        reference=args.reference,
        notes=args.notes,
    )


def translate_invoice(args: argparse.Namespace) -> InvoiceDraft:
    """Translate CLI args into an invoice draft."""
    status = getattr(args, "status", None) or InvoiceStatus.PAID.value
    return InvoiceDraft(
        customer_id=args.customer_id,
        items=tuple(parse_line_item(raw) for raw in args.items),
        inter_state=args.inter_state,
        payment_method=PaymentMethod(args.payment_method),
        status=InvoiceStatus(status),
    )


def _print_table(headers: Sequence[str], rows: Iterable[Sequence[object]]) -> None:
    materialized = [[str(cell) for cell in row] for row in rows]
    if not materialized:
        print("(no records)")
        return
    widths = [len(header) for header in headers]
    for row in materialized:
        for index, cell in enumerate(row):
            widths[index] = max(widths[index], len(cell))
    print("  ".join(header.ljust(width) for header, width in zip(headers, widths)))
    print("  ".join("-" * width for width in widths))
    for row in materialized:
        print("  ".join(cell.ljust(width) for cell, width in zip(row, widths)))


def _print_totals(lines: Sequence[tuple[str, Decimal]]) -> None:
    label_width = max(len(label) for label, _ in lines)
    for label, amount in lines:
        print(f"{label.ljust(label_width)}  {reports.format_currency(amount)}")


def run_login(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Open a session when the credentials match."""
    if not session.login(context, args.email, args.password):
        raise AuthenticationRequired("Invalid email or password")
    user = session.current_user(context)
    print(f"Logged in as {user.name} <{user.email}>")
    return 0


def run_logout(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Close the current session."""
    session.logout(context)
    print("Logged out")
    return 0


def run_add_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-product workflow in the ledger store."""
    product = core_logic.add_product(context, translate_add_product(args))
    print(f"Added product {product.product_id}: {product.name}")
    return 0


def run_update_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the update-product workflow in the ledger store."""
    product = core_logic.update_product(context, args.product_id, **translate_update_product(args))
    print(f"Updated product {product.product_id}: {product.name}")
    return 0


def run_delete_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the delete-product workflow in the ledger store."""
    product = core_logic.delete_product(context, args.product_id)
    print(f"Deleted product {product.product_id}: {product.name}")
    return 0


def run_add_customer(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-customer workflow in the ledger store."""
    customer = core_logic.add_customer(context, translate_add_customer(args))
    print(f"Added customer {customer.customer_id}: {customer.name}")
    return 0


def run_update_customer(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the update-customer workflow in the ledger store."""
    customer = core_logic.update_customer(context, args.customer_id, **translate_update_customer(args))
    print(f"Updated customer {customer.customer_id}: {customer.name}")
    return 0


def run_delete_customer(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the delete-customer workflow in the ledger store."""
    customer = core_logic.delete_customer(context, args.customer_id)
    print(f"Deleted customer {customer.customer_id}: {customer.name}")
    return 0


def run_stock_change(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute a stock change via the ledger store."""
    movement = core_logic.record_stock_change(context, translate_stock_change(args))
    print(
        f"Recorded {movement.movement_type} of {movement.quantity} for {movement.product_name}; "
        f"balance {movement.balance_after}"
    )
    return 0


def run_invoice(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Commit an invoice via the ledger store."""
    invoice = core_logic.commit_invoice(context, translate_invoice(args))
    print(f"Created invoice {invoice.invoice_number} for {invoice.customer_name}")
    _print_totals(
        [
            ("Subtotal", invoice.subtotal),
            ("CGST", invoice.cgst),
            ("SGST", invoice.sgst),
            ("IGST", invoice.igst),
            ("Total", invoice.total_amount),
        ]
    )
    return 0


def run_set_status(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Change an invoice status via the ledger store."""
    invoice = core_logic.update_invoice_status(context, args.invoice_id, InvoiceStatus(args.status))
    print(f"Invoice {invoice.invoice_number} is now {invoice.status}")
    return 0


def run_delete_invoice(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Delete an invoice via the ledger store."""
    invoice = core_logic.delete_invoice(context, args.invoice_id)
    print(f"Deleted invoice {invoice.invoice_number}; stock and customer totals were not reversed")
    return 0


def run_products_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the catalog."""
    products = reports.search_products(context, args.search)
    if args.low_stock:
        products = [product for product in products if product.stock <= product.min_stock_level]
    _print_table(
        ("ID", "Name", "SKU", "Category", "Price", "GST %", "Stock", "Min", "Unit"),
        (
            (
                product.product_id,
                product.name,
                product.sku,
                product.category,
                reports.format_currency(product.price),
                product.gst_rate,
                product.stock,
                product.min_stock_level,
                product.unit,
            )
            for product in products
        ),
    )
    return 0


def run_customers_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print customers and their lifetime totals."""
    _print_table(
        ("ID", "Name", "Phone", "State", "Total purchases", "Last purchase"),
        (
            (
                customer.customer_id,
                customer.name,
                customer.phone,
                customer.state or "",
                reports.format_currency(customer.total_purchases),
                reports.format_date(customer.last_purchase_date, context.settings.timezone),
            )
            for customer in reports.search_customers(context, args.search)
        ),
    )
    return 0


def run_invoices_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print invoices, newest first."""
    status = InvoiceStatus(args.status) if args.status else None
    _print_table(
        ("Number", "Date", "Customer", "Items", "Total", "Payment", "Status"),
        (
            (
                invoice.invoice_number,
                reports.format_date(invoice.created_at, context.settings.timezone),
                invoice.customer_name,
                len(invoice.items),
                reports.format_currency(invoice.total_amount),
                invoice.payment_method,
                invoice.status,
            )
            for invoice in reports.search_invoices(context, args.search, status=status)
        ),
    )
    return 0


def run_movements_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the stock movement audit trail."""
    movement_type = MovementType(args.movement_type) if args.movement_type else None
    _print_table(
        ("Date", "Product", "Type", "Quantity", "Balance", "Reference", "By"),
        (
            (
                reports.format_date(movement.created_at, context.settings.timezone),
                movement.product_name,
                movement.movement_type,
                movement.quantity,
                movement.balance_after,
                movement.reference or "",
                movement.created_by,
            )
            for movement in reports.search_movements(context, args.search, movement_type=movement_type)
        ),
    )
    return 0


def run_preview(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the invoice a draft would produce, without committing it."""
    preview = core_logic.preview_invoice(context, translate_invoice(args))
    print(f"Next invoice number: {core_logic.next_invoice_number(context)}")
    print(f"Customer: {preview.customer.name} ({'inter-state' if preview.inter_state else 'same state'})")
    _print_table(
        ("Product", "HSN", "Qty", "Price", "GST %", "Amount"),
        (
            (
                line.product_name,
                line.hsn_code,
                line.quantity,
                reports.format_currency(line.price),
                line.gst_rate,
                reports.format_currency(line.total),
            )
            for line in preview.lines
        ),
    )
    breakdown = preview.breakdown
    _print_totals(
        [
            ("Subtotal", breakdown.subtotal),
            ("CGST", breakdown.cgst),
            ("SGST", breakdown.sgst),
            ("IGST", breakdown.igst),
            ("Total", breakdown.total),
        ]
    )
    return 0


def run_dashboard_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the dashboard figures."""
    stats = reports.dashboard_stats(context)
    _print_totals(
        [
            ("Total revenue", stats.total_revenue),
            ("Today's revenue", stats.today_revenue),
            ("GST collected", stats.total_gst_collected),
        ]
    )
    print(f"Invoices: {stats.total_invoices} ({stats.today_invoices} today)")
    print(f"Products: {stats.total_products} ({stats.low_stock_products} low on stock)")
    print(f"Customers: {stats.total_customers}")

    print("\nSales by day")
    _print_table(
        ("Day", "Invoices", "Revenue"),
        (
            (day.day.strftime("%d %b"), day.invoices, reports.format_currency(day.revenue))
            for day in reports.daily_sales(context, days=args.days)
        ),
    )
    print("\nLow stock alerts")
    _print_table(
        ("Product", "Stock", "Min"),
        (
            (product.name, product.stock, product.min_stock_level)
            for product in reports.low_stock_products(context)
        ),
    )
    return 0


def run_summary_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print sales and stock summaries, or one customer's history."""
    if args.customer_id:
        history = reports.customer_history(context, args.customer_id)
        _print_table(
            ("Number", "Date", "Total", "Status"),
            (
                (
                    invoice.invoice_number,
                    reports.format_date(invoice.created_at, context.settings.timezone),
                    reports.format_currency(invoice.total_amount),
                    invoice.status,
                )
                for invoice in history.invoices
            ),
        )
        _print_totals([("Lifetime total", history.total)])
        return 0

    summary = reports.sales_summary(context)
    _print_totals(
        [
            ("Total revenue", summary.total_revenue),
            ("Total GST", summary.total_gst),
            ("Average invoice", summary.average_invoice_value),
        ]
    )
    print(f"Invoices: {summary.total_invoices}")

    print("\nMonthly revenue")
    _print_table(
        ("Month", "Revenue"),
        ((month, reports.format_currency(amount)) for month, amount in reports.monthly_revenue(context, months=args.months)),
    )
    print("\nSales by category")
    _print_table(
        ("Category", "Revenue"),
        ((category, reports.format_currency(amount)) for category, amount in reports.sales_by_category(context).items()),
    )
    print("\nTop products")
    _print_table(
        ("Product", "Quantity", "Revenue"),
        (
            (entry.name, entry.quantity, reports.format_currency(entry.revenue))
            for entry in reports.top_products(context, limit=args.top)
        ),
    )
    print("\nStock by category")
    _print_table(
        ("Category", "Units"),
        reports.stock_by_category(context).items(),
    )
    movements = reports.movement_summary(context)
    print(
        f"\nUnits purchased: {movements.total_purchases}  sold: {movements.total_sales}  "
        f"adjusted: {movements.total_adjustments}"
    )
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, AuthenticationRequired):
        log.error("%s", error)
        return 4
    if isinstance(error, (core_logic.BusinessRuleViolation, ValueError)):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def persist_workbook(context: core_logic.RuntimeContext) -> None:
    """Persist workbook changes after successful execution."""
    try:
        core_logic.persist_context(context)
    except PermissionError as error:
        raise RuntimeError(str(error)) from error


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        exit_code = dispatch_command(context, args, command_table)
        if exit_code == 0:
            persist_workbook(context)
        return exit_code
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
