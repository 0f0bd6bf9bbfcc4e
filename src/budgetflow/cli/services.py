"""Wiring of provider client, store and sync engine for CLI commands."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from ..config import BudgetFlowSettings, get_settings
from ..connectors.base import AggregationProvider
from ..connectors.gocardless import GoCardlessClient
from ..storage.duckdb_store import DuckDBStore
from ..sync.engine import TransactionSyncEngine

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a command needs, bound to the current profile."""

    settings: BudgetFlowSettings
    provider: AggregationProvider
    store: DuckDBStore
    engine: TransactionSyncEngine

    @property
    def user_id(self) -> str:
        return self.settings.profile


@contextmanager
def open_services(timeout: float | None = None) -> Iterator[Services]:
    """Build services for the current profile and close them afterwards.

    Args:
        timeout: Per-call provider timeout override in seconds

    Raises:
        ValueError: If configuration or provider credentials are missing
    """
    settings = get_settings()
    client = GoCardlessClient.from_settings(settings, timeout=timeout)
    try:
        store = DuckDBStore(settings.database.path)
    except Exception:
        client.close()
        raise

    try:
        engine = TransactionSyncEngine.from_settings(client, store, settings)
        yield Services(settings=settings, provider=client, store=store, engine=engine)
    finally:
        client.close()
        store.close()
        logger.debug("Closed provider client and store")
