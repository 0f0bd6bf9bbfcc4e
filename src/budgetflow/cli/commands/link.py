"""Account linking commands for BudgetFlow CLI.

``connect`` runs the whole authorization flow in one invocation: it prints
the bank's authorization link, waits for the return URL the bank redirects
to, then resolves the requisition. ``status`` completes a requisition that
was started elsewhere.
"""

import logging

import typer

from budgetflow.config import get_settings
from budgetflow.errors import BudgetFlowError
from budgetflow.linking import ConnectionOrchestrator, LinkState
from budgetflow.models import AccountLink

from ..services import Services, open_services

app = typer.Typer(help="Link bank accounts through the aggregation provider")
logger = logging.getLogger(__name__)


def _initial_sync(services: Services):
    def run(link: AccountLink) -> None:
        result = services.engine.sync(link)
        logger.info(
            f"📥 Initial sync: {result.persisted_count} transactions stored"
        )

    return run


def _report(orchestrator: ConnectionOrchestrator) -> None:
    state = orchestrator.state
    requisition = orchestrator.requisition
    if state is LinkState.LINKED and orchestrator.active_link is not None:
        typer.echo(f"Linked account: {orchestrator.active_link.account_id}")
        others = [
            a
            for a in orchestrator.linked_accounts
            if a != orchestrator.active_link.account_id
        ]
        if others:
            typer.echo(f"Other authorized accounts: {', '.join(others)}")
        return

    if state in (LinkState.REJECTED, LinkState.EXPIRED):
        logger.error(
            f"❌ Bank connection {state.value.lower()}; "
            "start again with 'budgetflow link connect'"
        )
        raise typer.Exit(1)

    req_id = requisition.id if requisition else "?"
    logger.info("⏳ Authorization not finished yet")
    typer.echo(f"Check again with: budgetflow link status {req_id}")


@app.command("connect")
def connect(
    bank: str = typer.Option(..., "--bank", "-b", help="Bank id from 'banks list'"),
    country: str | None = typer.Option(
        None, "--country", "-c", help="Country the bank belongs to"
    ),
    ref: str | None = typer.Option(
        None,
        "--ref",
        help="Return URL or ref value, if already known (skips the prompt)",
    ),
    sync_after: bool = typer.Option(
        True, "--sync/--no-sync", help="Sync transactions once the account is linked"
    ),
) -> None:
    """Authorize access to a bank account and link it to this profile."""
    try:
        country_code = country or get_settings().provider.country
        with open_services() as services:
            orchestrator = ConnectionOrchestrator(
                services.provider,
                services.store,
                services.user_id,
                on_account_linked=_initial_sync(services) if sync_after else None,
            )
            orchestrator.list_banks(country_code)
            requisition = orchestrator.create_requisition(bank)

            typer.echo("Open this link to authorize access at your bank:")
            typer.echo(requisition.link or "")

            callback = ref or typer.prompt(
                "Paste the URL your bank redirected you to"
            )
            orchestrator.complete_authorization(callback)
            _report(orchestrator)
    except (BudgetFlowError, ValueError) as e:
        logger.error(f"❌ Bank connection failed: {e}")
        raise typer.Exit(1) from e


@app.command("status")
def status(
    requisition_id: str = typer.Argument(..., help="Requisition id to resolve"),
    country: str | None = typer.Option(
        None,
        "--country",
        "-c",
        help="Country of the bank, used to record its display name",
    ),
    sync_after: bool = typer.Option(
        True, "--sync/--no-sync", help="Sync transactions once the account is linked"
    ),
) -> None:
    """Resolve a requisition started earlier; safe to run repeatedly."""
    try:
        with open_services() as services:
            orchestrator = ConnectionOrchestrator(
                services.provider,
                services.store,
                services.user_id,
                on_account_linked=_initial_sync(services) if sync_after else None,
            )
            if country:
                orchestrator.list_banks(country)
            orchestrator.resume(requisition_id)
            orchestrator.resolve_requisition(requisition_id)
            _report(orchestrator)
    except (BudgetFlowError, ValueError) as e:
        logger.error(f"❌ Could not resolve requisition {requisition_id}: {e}")
        raise typer.Exit(1) from e


@app.command("accounts")
def accounts() -> None:
    """List this profile's active account links."""
    try:
        with open_services() as services:
            links = services.store.list_active_account_links(services.user_id)
    except (BudgetFlowError, ValueError) as e:
        logger.error(f"❌ Could not list accounts: {e}")
        raise typer.Exit(1) from e

    if not links:
        logger.info("No linked accounts - run 'budgetflow link connect' first")
        return
    for link in links:
        typer.echo(f"{link.account_id}\t{link.bank_name}\t{link.created_at:%Y-%m-%d}")


@app.command("deactivate")
def deactivate(
    account_id: str = typer.Argument(..., help="Account id to stop syncing"),
) -> None:
    """Deactivate an account link; its stored transactions are kept."""
    try:
        with open_services() as services:
            found = services.store.deactivate_account_link(
                services.user_id, account_id
            )
    except (BudgetFlowError, ValueError) as e:
        logger.error(f"❌ Could not deactivate {account_id}: {e}")
        raise typer.Exit(1) from e

    if not found:
        logger.error(f"❌ No account link {account_id} for this profile")
        raise typer.Exit(1)
    logger.info(f"Deactivated account {account_id}")
