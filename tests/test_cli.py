"""Unit tests describing the CLI presentation layer contract."""

from __future__ import annotations

import argparse
from decimal import Decimal
from unittest.mock import Mock

import pytest

from inventrack import cli, core_logic, session
from inventrack.constants import InvoiceStatus, MovementType, PaymentMethod
from inventrack.errors import AuthenticationRequired


WRITE_COMMANDS = {
    "login",
    "logout",
    "add-product",
    "update-product",
    "delete-product",
    "add-customer",
    "update-customer",
    "delete-customer",
    "stock-change",
    "invoice",
    "set-status",
    "delete-invoice",
}

READ_COMMANDS = {
    "products",
    "customers",
    "invoices",
    "movements",
    "preview",
    "dashboard",
    "report",
}

LOGIN = ["login", "--email", "admin@inventrax.com", "--password", "admin123"]

# ---------------------------------------------------------------------------
# Parser construction
# ---------------------------------------------------------------------------


def _registered_choices(parser: argparse.ArgumentParser) -> set[str]:
    for action in parser._actions:
        if isinstance(action, argparse._SubParsersAction):
            return set(action.choices)
    return set()


def _parse(*argv: str) -> argparse.Namespace:
    parser = cli.build_parser()
    cli.configure_subcommands(parser)
    return parser.parse_args(list(argv))


def test_build_parser_sets_program_metadata():
    parser = cli.build_parser()
    assert parser.prog == "inventrack"
    assert parser.parse_args([]).config is None


def test_configure_subcommands_registers_every_command(cli_parser):
    command_table = cli.configure_subcommands(cli_parser)

    assert set(command_table) == WRITE_COMMANDS | READ_COMMANDS
    assert _registered_choices(cli_parser) == WRITE_COMMANDS | READ_COMMANDS


def test_register_write_commands_returns_command_specs(subparsers_action):
    specs = cli.register_write_commands(subparsers_action)
    assert set(specs) == WRITE_COMMANDS
    for spec in specs.values():
        assert isinstance(spec, cli.CommandSpec)
        assert spec.help_text


def test_ledger_mutations_require_authentication(subparsers_action):
    specs = cli.register_write_commands(subparsers_action)
    assert {name for name, spec in specs.items() if not spec.requires_auth} == {"login", "logout"}


def test_read_commands_do_not_require_authentication(subparsers_action):
    specs = cli.register_read_commands(subparsers_action)
    assert set(specs) == READ_COMMANDS
    assert not any(spec.requires_auth for spec in specs.values())


def test_invoice_command_collects_repeated_items():
    args = _parse("invoice", "--customer-id", "C1", "--item", "P1:2", "--item", "P2:1.5", "--inter-state")

    assert args.items == ["P1:2", "P2:1.5"]
    assert args.inter_state is True
    assert args.payment_method == PaymentMethod.CASH.value
    assert args.status == InvoiceStatus.PAID.value


def test_invoice_jurisdiction_defaults_to_customer_state():
    assert _parse("preview", "--customer-id", "C1", "--item", "P1:1").inter_state is None
    assert _parse("preview", "--customer-id", "C1", "--item", "P1:1", "--same-state").inter_state is False


def test_invoice_jurisdiction_flags_are_exclusive():
    with pytest.raises(SystemExit):
        _parse("invoice", "--customer-id", "C1", "--item", "P1:1", "--same-state", "--inter-state")


def test_stock_change_rejects_unknown_type():
    with pytest.raises(SystemExit):
        _parse("stock-change", "--product-id", "P1", "--quantity", "1", "--type", "restock")


# ---------------------------------------------------------------------------
# Translation
# ---------------------------------------------------------------------------


def test_translate_invoice_builds_draft():
    args = _parse(
        "invoice",
        "--customer-id",
        "C1",
        "--item",
        "P1:2",
        "--item",
        "LAP:001:3",
        "--payment-method",
        "upi",
        "--status",
        "pending",
    )

    draft = cli.translate_invoice(args)

    assert draft.customer_id == "C1"
    assert [(item.product_id, item.quantity) for item in draft.items] == [
        ("P1", Decimal("2")),
        ("LAP:001", Decimal("3")),
    ]
    assert draft.payment_method is PaymentMethod.UPI
    assert draft.status is InvoiceStatus.PENDING
    assert draft.inter_state is None


@pytest.mark.parametrize("raw", ["P1", ":2", "P1:two", "P1:"])
def test_parse_line_item_rejects_malformed_values(raw):
    with pytest.raises(ValueError):
        cli.parse_line_item(raw)


def test_translate_add_product_parses_numbers():
    args = _parse("add-product", "--name", "Mouse", "--category", "Electronics", "--price", "800", "--gst-rate", "18")

    command = cli.translate_add_product(args)

    assert command.price == Decimal("800")
    assert command.gst_rate == Decimal("18")
    assert command.stock == Decimal("0")
    assert command.unit == "piece"
    assert command.product_id is None


def test_translate_add_product_rejects_non_numeric_price():
    args = _parse("add-product", "--name", "Mouse", "--category", "Electronics", "--price", "cheap", "--gst-rate", "18")
    with pytest.raises(ValueError):
        cli.translate_add_product(args)


def test_translate_update_product_renames_options_to_fields():
    args = _parse("update-product", "--product-id", "P1", "--min-stock", "4", "--supplier", "Acme")

    assert cli.translate_update_product(args) == {"min_stock_level": "4", "supplier_name": "Acme"}


def test_translate_update_requires_a_change():
    with pytest.raises(ValueError):
        cli.translate_update_customer(_parse("update-customer", "--customer-id", "C1"))


def test_translate_stock_change():
    args = _parse("stock-change", "--product-id", "P1", "--quantity", "-2", "--type", "adjustment", "--notes", "count")

    command = cli.translate_stock_change(args)

    assert command.quantity == Decimal("-2")
    assert command.movement_type is MovementType.ADJUSTMENT
    assert command.notes == "count"


# ---------------------------------------------------------------------------
# Dispatch and error handling
# ---------------------------------------------------------------------------


def test_build_command_table_rejects_duplicates(command_spec_iterable):
    with pytest.raises(ValueError):
        cli.build_command_table([*command_spec_iterable, command_spec_iterable[0]])


def test_build_command_table_indexes_by_name(command_spec_iterable):
    table = cli.build_command_table(command_spec_iterable)
    assert list(table) == ["alpha", "beta", "gamma"]


def test_dispatch_command_unknown_command(context):
    with pytest.raises(KeyError):
        cli.dispatch_command(context, argparse.Namespace(command="nope"), {})


def test_dispatch_command_blocks_mutations_without_session(context):
    execute = Mock(return_value=0)
    spec = cli.CommandSpec("guarded", "help", Mock(), execute, requires_auth=True)

    with pytest.raises(AuthenticationRequired):
        cli.dispatch_command(context, argparse.Namespace(command="guarded"), {"guarded": spec})
    execute.assert_not_called()


def test_dispatch_command_runs_mutations_for_logged_in_user(context):
    session.login(context, "admin@inventrax.com", "admin123")
    execute = Mock(return_value=0)
    spec = cli.CommandSpec("guarded", "help", Mock(), execute, requires_auth=True)
    args = argparse.Namespace(command="guarded")

    assert cli.dispatch_command(context, args, {"guarded": spec}) == 0
    execute.assert_called_once_with(context, args)


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (core_logic.InsufficientStockError("short"), 2),
        (core_logic.MissingReferenceError("gone"), 2),
        (ValueError("bad number"), 2),
        (FileNotFoundError("config.ini"), 3),
        (AuthenticationRequired("log in"), 4),
        (RuntimeError("schema"), 1),
    ],
)
def test_handle_cli_error_maps_exit_codes(error, expected):
    assert cli.handle_cli_error(error) == expected


def test_run_login_rejects_bad_credentials(context):
    args = argparse.Namespace(email="admin@inventrax.com", password="nope")
    with pytest.raises(AuthenticationRequired):
        cli.run_login(context, args)


def test_run_invoice_prints_totals(stocked_context, capsys):
    args = _parse("invoice", "--customer-id", "C1", "--item", "P1:2")

    assert cli.run_invoice(stocked_context, args) == 0

    out = capsys.readouterr().out
    assert "Created invoice INV" in out
    assert "₹236.00" in out
    assert stocked_context.ledger.products["P1"].stock == Decimal("8")


def test_run_preview_leaves_ledger_untouched(stocked_context, capsys):
    args = _parse("preview", "--customer-id", "C2", "--item", "P1:1")

    assert cli.run_preview(stocked_context, args) == 0

    out = capsys.readouterr().out
    assert "inter-state" in out
    assert "₹118.00" in out
    assert stocked_context.ledger.invoices == []


def test_run_products_report_filters_low_stock(stocked_context, capsys):
    assert cli.run_products_report(stocked_context, _parse("products", "--low-stock")) == 0

    out = capsys.readouterr().out
    assert "Printing Paper A4" in out
    assert "Wireless Mouse" not in out


def test_run_report_prints_empty_sections(stocked_context, capsys):
    assert cli.run_summary_report(stocked_context, _parse("report")) == 0
    assert "(no records)" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------


def test_main_persists_successful_commands(config_file, capsys):
    config = ["--config", str(config_file)]

    assert cli.main([*config, *LOGIN]) == 0
    assert (
        cli.main(
            [*config, "add-product", "--product-id", "P1", "--name", "Mouse", "--category", "Electronics",
             "--price", "800", "--gst-rate", "18", "--stock", "5"]
        )
        == 0
    )
    assert cli.main([*config, "add-customer", "--customer-id", "C1", "--name", "Asha", "--phone", "900"]) == 0
    assert cli.main([*config, "invoice", "--customer-id", "C1", "--item", "P1:2"]) == 0

    context = core_logic.load_runtime_context(config_file)
    assert context.ledger.products["P1"].stock == Decimal("3")
    assert context.ledger.invoices[0].total_amount == Decimal("1888")
    assert session.is_authenticated(context)
    assert "Created invoice" in capsys.readouterr().out


def test_main_requires_login_for_mutations(config_file):
    exit_code = cli.main(
        ["--config", str(config_file), "add-customer", "--name", "Asha", "--phone", "900"]
    )

    assert exit_code == 4
    assert core_logic.load_runtime_context(config_file).ledger.customers == {}


def test_main_does_not_persist_failed_commands(config_file):
    config = ["--config", str(config_file)]
    cli.main([*config, *LOGIN])

    exit_code = cli.main([*config, "invoice", "--customer-id", "C404", "--item", "P1:1"])

    assert exit_code == 2
    assert core_logic.load_runtime_context(config_file).ledger.invoices == []


def test_main_logout_ends_session(config_file):
    config = ["--config", str(config_file)]
    cli.main([*config, *LOGIN])

    assert cli.main([*config, "logout"]) == 0
    assert cli.main([*config, "delete-product", "--product-id", "P1"]) == 4


def test_main_missing_config_returns_3(tmp_path):
    assert cli.main(["--config", str(tmp_path / "absent.ini"), "products"]) == 3
