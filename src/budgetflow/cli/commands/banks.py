"""Bank discovery commands for BudgetFlow CLI."""

import logging

import typer

from budgetflow.config import get_settings
from budgetflow.errors import BudgetFlowError
from budgetflow.linking import ConnectionOrchestrator

from ..services import open_services

app = typer.Typer(help="Discover banks supported by the aggregation provider")
logger = logging.getLogger(__name__)


@app.command("list")
def list_banks(
    country: str | None = typer.Option(
        None,
        "--country",
        "-c",
        help="Two-letter country code (defaults to the configured country)",
    ),
) -> None:
    """List the banks that can be linked in a country.

    Prints one bank per line as ``<id>\\t<name>``. A country without any
    supported bank prints nothing and still succeeds.
    """
    try:
        country_code = country or get_settings().provider.country
        with open_services() as services:
            orchestrator = ConnectionOrchestrator(
                services.provider, services.store, services.user_id
            )
            banks = orchestrator.list_banks(country_code)
    except (BudgetFlowError, ValueError) as e:
        logger.error(f"❌ Could not list banks: {e}")
        raise typer.Exit(1) from e

    if not banks:
        logger.info(f"No supported banks found for {country_code.upper()}")
        return

    for bank in banks:
        typer.echo(f"{bank.id}\t{bank.name}")
