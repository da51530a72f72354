"""Shared pytest fixtures and utilities for InvenTrack tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from inventrack import cli, constants, core_logic, data_manager  # noqa: E402
from inventrack.setup_excel import create_data_workbook, create_session_workbook  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION
BUSINESS_STATE = "Maharashtra"
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "SessionFile = {session_file}\n"
    "BusinessName = {business_name}\n"
    "SchemaVersion = {schema_version}\n\n"
    "[Business]\n"
    "State = {business_state}\n"
    "TimeZone = {time_zone}\n\n"
    "[Billing]\n"
    "NumberingMode = {numbering_mode}\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    data_path: Path
    session_path: Path
    schema_version: str
    business_name: str


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture
def workbook_factory(tmp_path: Path) -> Callable[..., tuple[Path, Path]]:
    """Factory that creates a data and a session workbook in a temp folder."""

    def _create_workbooks(*, subdir: str | None = None, with_sample_data: bool = False) -> tuple[Path, Path]:
        base_dir = tmp_path if subdir is None else tmp_path / subdir
        base_dir.mkdir(parents=True, exist_ok=True)
        data_path = create_data_workbook(
            base_dir / "inventrack_data.xlsx",
            with_sample_data=with_sample_data,
            overwrite=True,
        )
        session_path = create_session_workbook(base_dir / "inventrack_session.xlsx", overwrite=True)
        return data_path, session_path

    return _create_workbooks


@pytest.fixture
def config_factory(tmp_path: Path, workbook_factory: Callable[..., tuple[Path, Path]]) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/workbook bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        business_name: str = "Test Traders",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        numbering_mode: str = "monotonic",
        time_zone: str = "UTC",
        with_sample_data: bool = False,
    ) -> ConfigBundle:
        bundle_dir_name = f"bundle_{uuid.uuid4().hex}"
        bundle_dir = tmp_path / bundle_dir_name
        data_path, session_path = workbook_factory(subdir=bundle_dir_name, with_sample_data=with_sample_data)
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                data_file=data_path.name if make_relative else str(data_path),
                session_file=session_path.name if make_relative else str(session_path),
                business_name=business_name,
                schema_version=schema_version,
                business_state=BUSINESS_STATE,
                numbering_mode=numbering_mode,
                time_zone=time_zone,
            )
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            data_path=data_path,
            session_path=session_path,
            schema_version=schema_version,
            business_name=business_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load the runtime context for tests through the public API."""

    context = core_logic.load_runtime_context(config_file)
    core_logic.ensure_schema_version(context)
    return context


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="inventrack", description="InvenTrack CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]


# ---------------------------------------------------------------------------
# Core logic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    """Provide default configuration settings for in-memory contexts."""

    return data_manager.ConfigSettings(
        data_file=tmp_path / "inventrack_data.xlsx",
        session_file=tmp_path / "inventrack_session.xlsx",
        business_name="Test Traders",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
        business_state=BUSINESS_STATE,
        timezone=UTC,
    )


@pytest.fixture
def context(settings: data_manager.ConfigSettings) -> core_logic.RuntimeContext:
    """Assemble a workbook-less runtime context with an empty ledger."""

    return core_logic.RuntimeContext(settings=settings)


@pytest.fixture
def stocked_context(context: core_logic.RuntimeContext) -> core_logic.RuntimeContext:
    """A context holding two products and two customers.

    ``P1`` costs 100 at 18% GST with 10 in stock; ``P2`` costs 50 at 5% GST
    with 3 in stock. ``C1`` is in the business's own state, ``C2`` is not.
    """

    created = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)
    core_logic.add_product(
        context,
        core_logic.ProductCommand(
            name="Wireless Mouse",
            category="Electronics",
            sku="MOU-001",
            hsn_code="8471",
            price=Decimal("100"),
            gst_rate=Decimal("18"),
            stock=Decimal("10"),
            min_stock_level=Decimal("2"),
            product_id="P1",
            timestamp=created,
        ),
    )
    core_logic.add_product(
        context,
        core_logic.ProductCommand(
            name="Printing Paper A4",
            category="Stationery",
            sku="PAP-001",
            hsn_code="4802",
            price=Decimal("50"),
            gst_rate=Decimal("5"),
            stock=Decimal("3"),
            min_stock_level=Decimal("5"),
            unit="ream",
            product_id="P2",
            timestamp=created,
        ),
    )
    core_logic.add_customer(
        context,
        core_logic.CustomerCommand(
            name="Rajesh Kumar",
            phone="+91 98765 43210",
            state=BUSINESS_STATE,
            customer_id="C1",
            timestamp=created,
        ),
    )
    core_logic.add_customer(
        context,
        core_logic.CustomerCommand(
            name="Anita Desai",
            phone="+91 99887 76655",
            email="anita@example.com",
            state="Karnataka",
            gst_number="29ABCDE1234F1Z5",
            customer_id="C2",
            timestamp=created,
        ),
    )
    return context


@pytest.fixture
def set_fixed_datetime(monkeypatch: pytest.MonkeyPatch) -> Callable[[datetime], datetime]:
    """Patch ``core_logic.datetime`` to return a predetermined moment."""

    def _apply(moment: datetime) -> datetime:
        class _FixedDateTime:
            @staticmethod
            def now(tz=None):
                assert tz is UTC
                return moment

        monkeypatch.setattr(core_logic, "datetime", _FixedDateTime)
        return moment

    return _apply
