"""Periodic auto-refresh of the user's active account.

Each tick looks up the user's current active AccountLink in the store and
funnels it into ``TransactionSyncEngine.sync``, the same entry point manual
refreshes and first-link activation use. Disabling removes the job and
suppresses any tick that has not started yet; a sync already running is left
to finish.
"""

import logging
import threading
from contextlib import ExitStack

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..errors import PersistenceError, ProviderError, SyncInProgress
from ..models import SyncResult
from ..storage.base import PersistentStore
from .engine import TransactionSyncEngine

logger = logging.getLogger(__name__)

JOB_ID = "budgetflow-auto-refresh"


class RefreshScheduler:
    """Fixed-interval trigger for transaction syncs."""

    def __init__(
        self,
        engine: TransactionSyncEngine,
        store: PersistentStore,
        user_id: str,
        interval_seconds: int = 3600,
        scheduler: BaseScheduler | None = None,
    ):
        if interval_seconds < 1:
            raise ValueError("interval_seconds must be positive")
        self.engine = engine
        self.store = store
        self.user_id = user_id
        self.interval_seconds = interval_seconds
        self._scheduler = scheduler or BackgroundScheduler()
        self._enabled = threading.Event()
        self._lock = threading.Lock()

    @property
    def is_enabled(self) -> bool:
        return self._enabled.is_set()

    def enable(self, interval_seconds: int | None = None) -> None:
        """Start (or re-arm) periodic refresh."""
        with self._lock:
            if interval_seconds is not None:
                if interval_seconds < 1:
                    raise ValueError("interval_seconds must be positive")
                self.interval_seconds = interval_seconds

            if not self._scheduler.running:
                self._scheduler.start()

            self._scheduler.add_job(
                self._tick,
                trigger=IntervalTrigger(seconds=self.interval_seconds),
                id=JOB_ID,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            self._enabled.set()

        logger.info(f"⏱️  Auto-refresh enabled every {self.interval_seconds}s")

    def disable(self) -> None:
        """Stop periodic refresh before the next tick."""
        with self._lock:
            self._enabled.clear()
            if self._scheduler.running and self._scheduler.get_job(JOB_ID):
                self._scheduler.remove_job(JOB_ID)
        logger.info("Auto-refresh disabled")

    def shutdown(self, wait: bool = True) -> None:
        """Disable refresh and stop the scheduler thread."""
        self.disable()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)

    def trigger_now(self) -> SyncResult | None:
        """Manual refresh of the active account.

        Returns:
            SyncResult, or None if the user has no active account link

        Raises:
            SyncInProgress, ProviderError, PersistenceError: as ``sync`` does
        """
        link = self.store.get_active_account_link(self.user_id)
        if link is None:
            logger.info(f"No active account link for {self.user_id}; nothing to sync")
            return None
        return self.engine.sync(link)

    def _tick(self) -> None:
        try:
            with ExitStack() as claim:
                # disable() takes the same lock, so it either lands before the
                # claim or finds this sync already running
                with self._lock:
                    if not self._enabled.is_set():
                        return
                    link = self.store.get_active_account_link(self.user_id)
                    if link is None:
                        logger.debug(f"No active account link for {self.user_id}")
                        return
                    claim.enter_context(self.engine.reserve(link.account_id))
                self.engine.sync(link, reserved=True)
        except SyncInProgress as e:
            logger.info(f"Skipping scheduled refresh: {e}")
        except (ProviderError, PersistenceError) as e:
            logger.error(f"❌ Scheduled refresh failed: {e}")
