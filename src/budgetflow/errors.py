"""Exception hierarchy for BudgetFlow.

Input validation errors also derive from ValueError so callers that only
care about bad input can catch them generically. Provider and persistence
errors keep enough context to tell fetch-stage failures from store-stage
failures.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SyncResult


class BudgetFlowError(Exception):
    """Base class for all BudgetFlow errors."""


class InvalidBank(BudgetFlowError, ValueError):
    """Bank id is blank or not part of the listed bank catalog."""

    def __init__(self, bank_id: str):
        self.bank_id = bank_id
        super().__init__(f"Unknown or unsupported bank: {bank_id!r}")


class InvalidCountry(BudgetFlowError, ValueError):
    """Country code is not a two-letter ISO 3166 code."""

    def __init__(self, country_code: str):
        self.country_code = country_code
        super().__init__(f"Invalid country code: {country_code!r}")


class InactiveAccountLink(BudgetFlowError, ValueError):
    """Sync was requested for an account link that has been deactivated."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account link {account_id} is not active")


class ProviderError(BudgetFlowError):
    """Aggregation provider call failed (network, remote error or timeout)."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class PersistenceError(BudgetFlowError):
    """Store write failed.

    When raised from a sync, ``result`` holds the partial outcome: the rows
    that were written before the failure stay written.
    """

    def __init__(self, message: str, result: SyncResult | None = None):
        self.result = result
        super().__init__(message)

    @property
    def persisted_count(self) -> int:
        return self.result.persisted_count if self.result else 0


class SyncInProgress(BudgetFlowError):
    """A sync for the same account is already running."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"A sync is already running for account {account_id}")


class ConnectionStateError(BudgetFlowError):
    """Operation is not allowed in the current bank link state."""
