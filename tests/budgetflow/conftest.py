"""Shared pytest fixtures for budgetflow tests.

This module provides the settings-cache cleanup every test relies on, plus
a DuckDB store in a temporary directory and a scriptable provider.
"""

from collections.abc import Generator, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import pytest
from fakes import JANUARY_TRANSACTIONS, FakeProvider
from pytest_mock import MockerFixture

from budgetflow.cli.services import Services
from budgetflow.config import (
    BudgetFlowSettings,
    clear_settings_cache,
    set_current_profile,
)
from budgetflow.models import AccountLink
from budgetflow.storage import DuckDBStore
from budgetflow.sync import TransactionSyncEngine

USER_ID = "test"


@pytest.fixture(autouse=True)
def clean_profile_state() -> Generator[None, None, None]:
    """Clear the settings cache and reset the profile around each test."""
    clear_settings_cache()
    set_current_profile("test")

    yield

    clear_settings_cache()
    set_current_profile("test")


@pytest.fixture
def store(tmp_path: Path) -> Generator[DuckDBStore, None, None]:
    """DuckDB store backed by a file in the test's temp directory."""
    db = DuckDBStore(tmp_path / "budgetflow.duckdb")
    yield db
    db.close()


@pytest.fixture
def provider() -> FakeProvider:
    """Provider with three GB banks and six January transactions on acct-1."""
    fake = FakeProvider()
    fake.transactions["acct-1"] = list(JANUARY_TRANSACTIONS)
    return fake


@pytest.fixture
def account_link(store: DuckDBStore) -> AccountLink:
    """Persisted, active link for acct-1."""
    return store.upsert_account_link(USER_ID, "acct-1", "Bank of Ireland")


@pytest.fixture
def services(provider: FakeProvider, store: DuckDBStore) -> Services:
    """CLI services wired to the fake provider and the temp store."""
    engine = TransactionSyncEngine(
        provider, store, clock=lambda: datetime(2024, 1, 31, 12, 0)
    )
    return Services(
        settings=BudgetFlowSettings(profile=USER_ID),
        provider=provider,
        store=store,
        engine=engine,
    )


@pytest.fixture
def cli_services(mocker: MockerFixture, services: Services) -> Services:
    """Make every CLI command use ``services`` and skip logging setup."""

    @contextmanager
    def fake_open_services(timeout: float | None = None) -> Iterator[Services]:
        yield services

    for module in ("banks", "link", "sync"):
        mocker.patch(
            f"budgetflow.cli.commands.{module}.open_services", fake_open_services
        )
    mocker.patch("budgetflow.cli.main.setup_logging")
    return services
