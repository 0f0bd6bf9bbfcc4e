# ruff: noqa: S101
"""Tests for the ``link`` CLI commands."""

import pytest
from conftest import USER_ID
from fakes import FakeProvider
from typer.testing import CliRunner

from budgetflow.cli.main import app
from budgetflow.cli.services import Services
from budgetflow.models import AccountLink
from budgetflow.storage import DuckDBStore

CALLBACK = "https://app.example/callback?ref=req-123"


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestLinkConnect:
    """budgetflow link connect."""

    @pytest.mark.unit
    def test_linked_account_is_stored_and_synced(
        self,
        runner: CliRunner,
        cli_services: Services,
        provider: FakeProvider,
        store: DuckDBStore,
    ) -> None:
        """A successful link runs the first sync straight away."""
        provider.requisition_statuses["req-123"] = ("LN", ["acct-1"])

        result = runner.invoke(
            app,
            ["link", "connect", "--bank", "boi_gb", "--country", "GB", "--ref", CALLBACK],
        )

        assert result.exit_code == 0
        assert "https://bank.example/auth?ref=req-123" in result.stdout
        assert "Linked account: acct-1" in result.stdout
        link = store.get_active_account_link(USER_ID)
        assert link is not None
        assert link.bank_name == "Bank of Ireland"
        assert store.count_transactions(USER_ID, "acct-1") == 6

    @pytest.mark.unit
    def test_no_sync_skips_first_sync(
        self,
        runner: CliRunner,
        cli_services: Services,
        provider: FakeProvider,
        store: DuckDBStore,
    ) -> None:
        provider.requisition_statuses["req-123"] = ("LN", ["acct-1", "acct-2"])

        result = runner.invoke(
            app,
            ["link", "connect", "-b", "boi_gb", "-c", "GB", "--ref", CALLBACK, "--no-sync"],
        )

        assert result.exit_code == 0
        assert "Other authorized accounts: acct-2" in result.stdout
        assert store.count_transactions(USER_ID) == 0
        assert provider.count("get_transactions") == 0

    @pytest.mark.unit
    def test_prompts_for_return_url(
        self,
        runner: CliRunner,
        cli_services: Services,
        provider: FakeProvider,
    ) -> None:
        provider.requisition_statuses["req-123"] = ("LN", ["acct-1"])

        result = runner.invoke(
            app,
            ["link", "connect", "-b", "boi_gb", "-c", "GB", "--no-sync"],
            input=f"{CALLBACK}\n",
        )

        assert result.exit_code == 0
        assert "Linked account: acct-1" in result.stdout

    @pytest.mark.unit
    def test_rejected_exits_with_error(
        self,
        runner: CliRunner,
        cli_services: Services,
        provider: FakeProvider,
        store: DuckDBStore,
    ) -> None:
        provider.requisition_statuses["req-123"] = ("RJ", [])

        result = runner.invoke(
            app, ["link", "connect", "-b", "boi_gb", "-c", "GB", "--ref", CALLBACK]
        )

        assert result.exit_code == 1
        assert store.list_active_account_links(USER_ID) == []

    @pytest.mark.unit
    def test_unfinished_authorization_points_to_status(
        self,
        runner: CliRunner,
        cli_services: Services,
    ) -> None:
        result = runner.invoke(
            app, ["link", "connect", "-b", "boi_gb", "-c", "GB", "--ref", CALLBACK]
        )

        assert result.exit_code == 0
        assert "budgetflow link status req-123" in result.stdout

    @pytest.mark.unit
    def test_unknown_bank_fails_before_provider_call(
        self,
        runner: CliRunner,
        cli_services: Services,
        provider: FakeProvider,
    ) -> None:
        result = runner.invoke(
            app, ["link", "connect", "-b", "nope", "-c", "GB", "--ref", CALLBACK]
        )

        assert result.exit_code == 1
        assert provider.count("create_requisition") == 0

    @pytest.mark.unit
    def test_foreign_callback_fails(
        self,
        runner: CliRunner,
        cli_services: Services,
        provider: FakeProvider,
    ) -> None:
        result = runner.invoke(
            app,
            ["link", "connect", "-b", "boi_gb", "-c", "GB", "--ref", "req-999"],
        )

        assert result.exit_code == 1
        assert provider.count("get_requisition") == 0


class TestLinkStatus:
    """budgetflow link status."""

    @pytest.mark.unit
    def test_resolves_earlier_requisition(
        self,
        runner: CliRunner,
        cli_services: Services,
        provider: FakeProvider,
        store: DuckDBStore,
    ) -> None:
        provider.requisition_statuses["req-777"] = ("LN", ["acct-9"])

        result = runner.invoke(
            app, ["link", "status", "req-777", "--country", "GB", "--no-sync"]
        )

        assert result.exit_code == 0
        assert "Linked account: acct-9" in result.stdout
        link = store.get_active_account_link(USER_ID)
        assert link is not None
        assert link.bank_name == "Bank of Ireland"

    @pytest.mark.unit
    def test_expired_exits_with_error(
        self,
        runner: CliRunner,
        cli_services: Services,
        provider: FakeProvider,
    ) -> None:
        provider.requisition_statuses["req-777"] = ("EX", [])

        result = runner.invoke(app, ["link", "status", "req-777"])

        assert result.exit_code == 1


class TestLinkAccounts:
    """budgetflow link accounts / deactivate."""

    @pytest.mark.unit
    def test_lists_active_links(
        self,
        runner: CliRunner,
        cli_services: Services,
        account_link: AccountLink,
    ) -> None:
        result = runner.invoke(app, ["link", "accounts"])

        assert result.exit_code == 0
        assert result.stdout.startswith("acct-1\tBank of Ireland\t")

    @pytest.mark.unit
    def test_deactivate(
        self,
        runner: CliRunner,
        cli_services: Services,
        store: DuckDBStore,
        account_link: AccountLink,
    ) -> None:
        result = runner.invoke(app, ["link", "deactivate", "acct-1"])

        assert result.exit_code == 0
        assert store.get_active_account_link(USER_ID) is None

    @pytest.mark.unit
    def test_deactivate_unknown_account(
        self, runner: CliRunner, cli_services: Services
    ) -> None:
        result = runner.invoke(app, ["link", "deactivate", "acct-404"])
        assert result.exit_code == 1
