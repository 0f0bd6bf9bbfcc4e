# ruff: noqa: S101
"""Tests for the ``sync`` CLI commands."""

from typing import Any

import pytest
from conftest import USER_ID
from fakes import FakeProvider
from typer.testing import CliRunner

from budgetflow.cli.main import app
from budgetflow.cli.services import Services
from budgetflow.errors import ProviderError
from budgetflow.models import AccountLink
from budgetflow.storage import DuckDBStore


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestSyncRun:
    """budgetflow sync run."""

    @pytest.mark.unit
    def test_syncs_default_window(
        self,
        runner: CliRunner,
        cli_services: Services,
        store: DuckDBStore,
        account_link: AccountLink,
    ) -> None:
        result = runner.invoke(app, ["sync", "run"])

        assert result.exit_code == 0
        assert result.stdout.strip() == (
            "acct-1: fetched 6, persisted 6 (2024-01-02 to 2024-01-31)"
        )
        assert store.count_transactions(USER_ID, "acct-1") == 6

    @pytest.mark.unit
    def test_rerun_does_not_duplicate(
        self,
        runner: CliRunner,
        cli_services: Services,
        store: DuckDBStore,
        account_link: AccountLink,
    ) -> None:
        runner.invoke(app, ["sync", "run"])
        result = runner.invoke(app, ["sync", "run"])

        assert result.exit_code == 0
        assert store.count_transactions(USER_ID) == 6

    @pytest.mark.unit
    def test_explicit_window(
        self,
        runner: CliRunner,
        cli_services: Services,
        provider: FakeProvider,
        account_link: AccountLink,
    ) -> None:
        result = runner.invoke(
            app, ["sync", "run", "--from", "2024-01-18", "--to", "2024-01-20"]
        )

        assert result.exit_code == 0
        assert "fetched 3, persisted 3 (2024-01-18 to 2024-01-20)" in result.stdout

    @pytest.mark.unit
    def test_reversed_window_fails(
        self,
        runner: CliRunner,
        cli_services: Services,
        provider: FakeProvider,
        account_link: AccountLink,
    ) -> None:
        result = runner.invoke(
            app, ["sync", "run", "--from", "2024-01-20", "--to", "2024-01-01"]
        )

        assert result.exit_code == 1
        assert provider.count("get_transactions") == 0

    @pytest.mark.unit
    def test_without_linked_account(
        self, runner: CliRunner, cli_services: Services
    ) -> None:
        result = runner.invoke(app, ["sync", "run"])
        assert result.exit_code == 1

    @pytest.mark.unit
    def test_unknown_account_filter(
        self,
        runner: CliRunner,
        cli_services: Services,
        account_link: AccountLink,
    ) -> None:
        result = runner.invoke(app, ["sync", "run", "--account", "acct-404"])
        assert result.exit_code == 1

    @pytest.mark.unit
    def test_provider_failure(
        self,
        runner: CliRunner,
        cli_services: Services,
        provider: FakeProvider,
        store: DuckDBStore,
        account_link: AccountLink,
    ) -> None:
        provider.fail_with = ProviderError("timed out")

        result = runner.invoke(app, ["sync", "run"])

        assert result.exit_code == 1
        assert store.count_transactions(USER_ID) == 0
        assert "Traceback" not in result.output


class TestSyncWatch:
    """budgetflow sync watch."""

    @pytest.mark.unit
    def test_refreshes_then_stops_on_interrupt(
        self,
        runner: CliRunner,
        cli_services: Services,
        store: DuckDBStore,
        account_link: AccountLink,
        mocker: Any,
    ) -> None:
        mock_time = mocker.patch("budgetflow.cli.commands.sync.time")
        mock_time.sleep.side_effect = KeyboardInterrupt

        result = runner.invoke(app, ["sync", "watch", "--interval", "60"])

        assert result.exit_code == 0
        assert store.count_transactions(USER_ID) == 6
        mock_time.sleep.assert_called_once()

    @pytest.mark.unit
    def test_interval_floor(self, runner: CliRunner, cli_services: Services) -> None:
        result = runner.invoke(app, ["sync", "watch", "--interval", "5"])
        assert result.exit_code == 2
