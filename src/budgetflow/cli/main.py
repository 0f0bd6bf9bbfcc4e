"""Main CLI application for BudgetFlow.

This module provides the unified entry point for all BudgetFlow CLI
operations, organizing commands into groups for bank discovery, account
linking and transaction sync.
"""

import logging
from typing import Annotated

import typer

from ..config import set_current_profile
from ..logging import setup_logging
from .commands import banks, link, sync

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="budgetflow",
    help="BudgetFlow: link bank accounts and keep their transactions in sync",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    profile: Annotated[
        str,
        typer.Option(
            "--profile",
            "-p",
            help="User profile to use (e.g., alice, bob). Default: default",
            envvar="BUDGETFLOW_PROFILE",
        ),
    ] = "default",
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose debug logging",
        ),
    ] = False,
) -> None:
    """Global options for BudgetFlow CLI.

    The profile is the user identity: each profile loads from its own
    .env.{profile} file and owns its own account links and transactions.

    Examples:
      budgetflow banks list --country GB
      budgetflow --profile=alice link connect --bank BANK_OF_IRELAND_B365_BOFIGB2B
      budgetflow --profile=alice sync run
    """
    try:
        set_current_profile(profile)
    except ValueError as e:
        raise typer.BadParameter(
            f"Invalid profile name: {profile}. "
            "Use only alphanumeric characters, dashes, and underscores"
        ) from e

    # Logging follows the selected profile's settings
    try:
        setup_logging(cli_mode=True, verbose=verbose)
    except ValueError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1) from e

    logger.debug(f"👤 Using profile: {profile}")


app.add_typer(banks.app, name="banks", help="Discover supported banks")
app.add_typer(link.app, name="link", help="Link and manage bank accounts")
app.add_typer(sync.app, name="sync", help="Sync transactions from linked accounts")


def main() -> None:
    """Entry point for the BudgetFlow CLI application."""
    app()


if __name__ == "__main__":
    main()
