"""Contract between the core and the aggregation provider."""

from datetime import date
from typing import Protocol

from ..models import Bank, RawTransaction, Requisition


class AggregationProvider(Protocol):
    """Remote bank/requisition/transaction API.

    Every call blocks until the provider answers or the client's timeout
    expires. Failures of any kind, timeouts included, raise ``ProviderError``.
    """

    def list_banks(self, country_code: str) -> list[Bank]: ...

    def create_requisition(
        self, bank_id: str, reference: str | None = None
    ) -> Requisition: ...

    def get_requisition(self, requisition_id: str) -> Requisition: ...

    def get_transactions(
        self, account_id: str, date_from: date, date_to: date
    ) -> list[RawTransaction]: ...
