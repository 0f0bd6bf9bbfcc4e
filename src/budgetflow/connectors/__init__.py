"""Aggregation provider connectors.

BudgetFlow talks to a single provider, GoCardless Bank Account Data. The
``AggregationProvider`` protocol is the seam the orchestrator and the sync
engine depend on.
"""

from .base import AggregationProvider
from .gocardless import GoCardlessClient

__all__ = ["AggregationProvider", "GoCardlessClient"]
