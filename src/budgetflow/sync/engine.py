"""Transaction synchronization pipeline.

For one account link: fetch a window of booked transactions from the
provider, classify each one, and upsert them keyed by
(user_id, account_id, external_id). Re-running a sync over the same window
overwrites rows in place and never adds duplicates.

In-flight policy: a sync request for an account that is already syncing is
rejected with ``SyncInProgress``. Upsert batches for one account therefore
never interleave.
"""

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager, nullcontext
from datetime import datetime
from pathlib import Path

import polars as pl

from ..categorization import classify
from ..config import BudgetFlowSettings
from ..connectors.base import AggregationProvider
from ..errors import InactiveAccountLink, PersistenceError, SyncInProgress
from ..models import AccountLink, RawTransaction, SyncResult, SyncWindow, Transaction
from ..storage.base import PersistentStore

logger = logging.getLogger(__name__)


class InFlightGuard:
    """At most one holder per account id; a second claimant is turned away."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: set[str] = set()

    def is_held(self, account_id: str) -> bool:
        with self._lock:
            return account_id in self._active

    @contextmanager
    def hold(self, account_id: str) -> Iterator[None]:
        """Claim ``account_id`` for the duration of the block.

        Raises:
            SyncInProgress: If the account is already claimed
        """
        with self._lock:
            if account_id in self._active:
                raise SyncInProgress(account_id)
            self._active.add(account_id)
        try:
            yield
        finally:
            with self._lock:
                self._active.discard(account_id)


class TransactionSyncEngine:
    """Fetches, classifies and persists transactions for account links."""

    def __init__(
        self,
        provider: AggregationProvider,
        store: PersistentStore,
        window_days: int = 30,
        batch_size: int = 500,
        raw_data_path: Path | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the sync engine.

        Args:
            provider: Aggregation provider client
            store: Keyed upsert store
            window_days: Length of the default rolling window
            batch_size: Rows per upsert batch
            raw_data_path: If set, archive each synced batch as Parquet here
            clock: Source of "now" for the rolling window
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.provider = provider
        self.store = store
        self.window_days = window_days
        self.batch_size = batch_size
        self.raw_data_path = raw_data_path
        self.clock = clock
        self._guard = InFlightGuard()

    @classmethod
    def from_settings(
        cls,
        provider: AggregationProvider,
        store: PersistentStore,
        settings: BudgetFlowSettings,
    ) -> "TransactionSyncEngine":
        return cls(
            provider,
            store,
            window_days=settings.sync.window_days,
            batch_size=settings.sync.batch_size,
            raw_data_path=(
                settings.sync.raw_data_path if settings.sync.save_raw_data else None
            ),
        )

    def is_syncing(self, account_id: str) -> bool:
        return self._guard.is_held(account_id)

    def reserve(self, account_id: str) -> AbstractContextManager[None]:
        """Claim the in-flight slot for ``account_id`` ahead of ``sync(reserved=True)``.

        Raises:
            SyncInProgress: If the account is already syncing
        """
        return self._guard.hold(account_id)

    def default_window(self) -> SyncWindow:
        return SyncWindow.rolling(self.window_days, now=self.clock())

    def sync(
        self,
        account_link: AccountLink,
        window: SyncWindow | None = None,
        *,
        reserved: bool = False,
    ) -> SyncResult:
        """Synchronize one account's transactions for ``window``.

        Args:
            account_link: Active link of the account to sync
            window: Date range; defaults to the rolling window ending now
            reserved: The caller already holds ``reserve(account_id)``

        Returns:
            SyncResult: Fetched and persisted counts

        Raises:
            InactiveAccountLink: If the link has been deactivated
            SyncInProgress: If this account is already syncing
            ProviderError: If the fetch fails; nothing is persisted
            PersistenceError: If a batch fails to write; ``error.result``
                holds the rows persisted before the failure. Retrying is safe.
        """
        if not account_link.active:
            raise InactiveAccountLink(account_link.account_id)

        window = window or self.default_window()
        account_id = account_link.account_id

        with nullcontext() if reserved else self._guard.hold(account_id):
            logger.info(
                f"🔄 Syncing {account_id} from {window.date_from} to {window.date_to}"
            )
            raw = self.provider.get_transactions(
                account_id, window.date_from, window.date_to
            )
            rows = self._classify_all(account_link, raw)

            persisted = 0
            for start in range(0, len(rows), self.batch_size):
                batch = rows[start : start + self.batch_size]
                try:
                    persisted += self.store.upsert_transactions(batch, on_conflict="update")
                except PersistenceError as e:
                    partial = SyncResult(
                        account_id=account_id,
                        fetched_count=len(raw),
                        persisted_count=persisted,
                        window=window,
                    )
                    logger.error(
                        f"❌ Sync of {account_id} stopped after {persisted} of "
                        f"{len(rows)} rows: {e}"
                    )
                    raise PersistenceError(
                        f"Persisted {persisted} of {len(rows)} transactions "
                        f"for {account_id}: {e}",
                        result=partial,
                    ) from e

            if self.raw_data_path is not None:
                self._archive(account_id, window, rows)

        result = SyncResult(
            account_id=account_id,
            fetched_count=len(raw),
            persisted_count=persisted,
            window=window,
        )
        logger.info(
            f"✅ Synced {account_id}: {result.fetched_count} fetched, "
            f"{result.persisted_count} persisted"
        )
        return result

    def _classify_all(
        self, account_link: AccountLink, raw: list[RawTransaction]
    ) -> list[Transaction]:
        # Duplicate ids inside one fetch collapse to the last occurrence
        by_id: dict[str, Transaction] = {}
        for item in raw:
            classification = classify(item.description)
            by_id[item.external_id] = Transaction(
                external_id=item.external_id,
                account_id=account_link.account_id,
                user_id=account_link.user_id,
                description=item.description,
                amount=item.amount,
                currency=item.currency,
                transaction_date=item.transaction_date,
                category=classification.category,
                color_hint=classification.color_hint,
            )
        if len(by_id) < len(raw):
            logger.debug(
                f"Collapsed {len(raw) - len(by_id)} duplicate transaction ids "
                f"for {account_link.account_id}"
            )
        return list(by_id.values())

    def _archive(
        self, account_id: str, window: SyncWindow, rows: list[Transaction]
    ) -> None:
        """Write the synced batch as a Parquet snapshot."""
        if not rows or self.raw_data_path is None:
            return
        try:
            self.raw_data_path.mkdir(parents=True, exist_ok=True)
            output_path = (
                self.raw_data_path
                / f"transactions_{account_id}_{window.date_from:%Y%m%d}_"
                f"{window.date_to:%Y%m%d}_{self.clock():%H%M%S}.parquet"
            )
            df = pl.DataFrame([row.model_dump(mode="python") for row in rows])
            df.write_parquet(output_path)
            logger.debug(f"Saved {len(rows)} transactions to {output_path}")
        except OSError as e:
            # Rows are already stored; only the snapshot is lost
            logger.warning(f"Failed to archive transactions for {account_id}: {e}")
