"""Transaction synchronization: the sync engine and its refresh scheduler."""

from .engine import InFlightGuard, TransactionSyncEngine
from .scheduler import RefreshScheduler

__all__ = ["InFlightGuard", "RefreshScheduler", "TransactionSyncEngine"]
