"""Transaction sync commands for BudgetFlow CLI.

``run`` performs one manual refresh; ``watch`` keeps refreshing the active
account on a fixed interval until interrupted.
"""

import logging
import time
from datetime import datetime

import typer

from budgetflow.config import get_current_profile
from budgetflow.errors import BudgetFlowError, PersistenceError
from budgetflow.models import SyncWindow
from budgetflow.sync import RefreshScheduler

from ..services import open_services

app = typer.Typer(help="Sync transactions from linked bank accounts")
logger = logging.getLogger(__name__)


@app.command("run")
def sync_run(
    account: str | None = typer.Option(
        None,
        "--account",
        "-a",
        help="Account id to sync (defaults to the most recently linked account)",
    ),
    date_from: datetime | None = typer.Option(
        None, "--from", formats=["%Y-%m-%d"], help="First day to sync"
    ),
    date_to: datetime | None = typer.Option(
        None, "--to", formats=["%Y-%m-%d"], help="Last day to sync (default: today)"
    ),
) -> None:
    """Sync one linked account now.

    Without --from/--to the rolling window configured by
    BUDGETFLOW_SYNC__WINDOW_DAYS (30 days by default) ending today is used.
    Re-running a sync never duplicates transactions.
    """
    profile = get_current_profile()
    logger.info(f"Starting BudgetFlow sync (Profile: {profile})")

    try:
        with open_services() as services:
            links = services.store.list_active_account_links(services.user_id)
            if account:
                links = [link for link in links if link.account_id == account]
            if not links:
                logger.warning(
                    "No active account link to sync - run 'budgetflow link connect'"
                )
                raise typer.Exit(1)
            link = links[-1]

            window = None
            if date_from or date_to:
                default = services.engine.default_window()
                window = SyncWindow(
                    date_from=date_from.date() if date_from else default.date_from,
                    date_to=date_to.date() if date_to else default.date_to,
                )

            result = services.engine.sync(link, window)
    except PersistenceError as e:
        logger.error(f"❌ Sync stored only {e.persisted_count} transactions: {e}")
        logger.info("Re-running the sync is safe; stored rows are not duplicated")
        raise typer.Exit(1) from e
    except (BudgetFlowError, ValueError) as e:
        logger.error(f"❌ Sync failed: {e}")
        raise typer.Exit(1) from e

    typer.echo(
        f"{result.account_id}: fetched {result.fetched_count}, "
        f"persisted {result.persisted_count} "
        f"({result.window.date_from} to {result.window.date_to})"
    )


@app.command("watch")
def sync_watch(
    interval: int | None = typer.Option(
        None,
        "--interval",
        "-i",
        min=60,
        help="Seconds between refreshes (default: BUDGETFLOW_SYNC__REFRESH_INTERVAL_SECONDS)",
    ),
) -> None:
    """Keep the active account in sync until interrupted with Ctrl-C."""
    try:
        with open_services() as services:
            scheduler = RefreshScheduler(
                services.engine,
                services.store,
                services.user_id,
                interval_seconds=interval
                or services.settings.sync.refresh_interval_seconds,
            )
            try:
                scheduler.trigger_now()
                scheduler.enable()
                while scheduler.is_enabled:
                    time.sleep(1)
            except KeyboardInterrupt:
                logger.info("Stopping auto-refresh")
            finally:
                scheduler.shutdown()
    except (BudgetFlowError, ValueError) as e:
        logger.error(f"❌ Auto-refresh failed: {e}")
        raise typer.Exit(1) from e
