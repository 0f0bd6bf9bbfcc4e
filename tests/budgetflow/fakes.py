"""In-memory stand-ins for the aggregation provider and the store.

These record every call so tests can assert on provider I/O, and they can be
told to fail or block to exercise error paths and the in-flight guard.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import Any

from budgetflow.errors import PersistenceError, ProviderError
from budgetflow.models import (
    AccountLink,
    Bank,
    RawTransaction,
    Requisition,
    RequisitionStatus,
    Transaction,
)

GB_BANKS = [
    Bank(id="boi_gb", name="Bank of Ireland", country_code="GB"),
    Bank(id="monzo_gb", name="Monzo", country_code="GB"),
    Bank(id="revolut_gb", name="Revolut", country_code="GB"),
]

JANUARY_TRANSACTIONS = [
    RawTransaction(
        external_id="txn-1",
        description="Grocery Store",
        amount=Decimal("-85.50"),
        currency="GBP",
        transaction_date=date(2024, 1, 20),
    ),
    RawTransaction(
        external_id="txn-2",
        description="Salary Deposit",
        amount=Decimal("3500.00"),
        currency="GBP",
        transaction_date=date(2024, 1, 19),
    ),
    RawTransaction(
        external_id="txn-3",
        description="Netflix Subscription",
        amount=Decimal("-15.99"),
        currency="GBP",
        transaction_date=date(2024, 1, 18),
    ),
    RawTransaction(
        external_id="txn-4",
        description="Gas Station",
        amount=Decimal("-45.20"),
        currency="GBP",
        transaction_date=date(2024, 1, 17),
    ),
    RawTransaction(
        external_id="txn-5",
        description="Online Shopping",
        amount=Decimal("-120.00"),
        currency="GBP",
        transaction_date=date(2024, 1, 16),
    ),
    RawTransaction(
        external_id="txn-6",
        description="Restaurant",
        amount=Decimal("-67.80"),
        currency="GBP",
        transaction_date=date(2024, 1, 15),
    ),
]


class FakeProvider:
    """Scriptable AggregationProvider."""

    def __init__(self) -> None:
        self.banks: dict[str, list[Bank]] = {"GB": list(GB_BANKS)}
        self.requisition_statuses: dict[str, tuple[str, list[str]]] = {}
        self.transactions: dict[str, list[RawTransaction]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.fail_with: ProviderError | None = None
        # When set, get_transactions waits on `release` after signalling `entered`
        self.block_fetch = False
        self.entered = threading.Event()
        self.release = threading.Event()
        # Set after every completed get_transactions call
        self.fetched = threading.Event()
        self._next_id = 123

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def list_banks(self, country_code: str) -> list[Bank]:
        self.calls.append(("list_banks", country_code))
        self._check()
        return list(self.banks.get(country_code, []))

    def create_requisition(
        self, bank_id: str, reference: str | None = None
    ) -> Requisition:
        self.calls.append(("create_requisition", bank_id))
        self._check()
        req_id = f"req-{self._next_id}"
        self._next_id += 1
        self.requisition_statuses.setdefault(req_id, ("CR", []))
        return Requisition(
            id=req_id,
            link=f"https://bank.example/auth?ref={req_id}",
            status=RequisitionStatus.CREATED,
            reference=reference,
            institution_id=bank_id,
        )

    def get_requisition(self, requisition_id: str) -> Requisition:
        self.calls.append(("get_requisition", requisition_id))
        self._check()
        code, accounts = self.requisition_statuses.get(requisition_id, ("CR", []))
        return Requisition(
            id=requisition_id,
            status=RequisitionStatus.from_provider_code(code),
            accounts=tuple(accounts),
            institution_id="boi_gb",
        )

    def get_transactions(
        self, account_id: str, date_from: date, date_to: date
    ) -> list[RawTransaction]:
        self.calls.append(("get_transactions", (account_id, date_from, date_to)))
        if self.block_fetch:
            self.entered.set()
            self.release.wait(timeout=5)
        self._check()
        rows = [
            t
            for t in self.transactions.get(account_id, [])
            if date_from <= t.transaction_date <= date_to
        ]
        self.fetched.set()
        return rows

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


class FlakyStore:
    """Wraps a real store and fails upserts after a number of batches."""

    def __init__(self, inner: Any, fail_after_batches: int):
        self.inner = inner
        self.fail_after_batches = fail_after_batches
        self.batches = 0

    def upsert_transactions(
        self, rows: Sequence[Transaction], on_conflict: str = "update"
    ) -> int:
        if self.batches >= self.fail_after_batches:
            raise PersistenceError("disk full")
        self.batches += 1
        return self.inner.upsert_transactions(rows, on_conflict=on_conflict)

    def upsert_account_link(
        self, user_id: str, account_id: str, bank_name: str, active: bool = True
    ) -> AccountLink:
        return self.inner.upsert_account_link(user_id, account_id, bank_name, active)

    def list_active_account_links(self, user_id: str) -> list[AccountLink]:
        return self.inner.list_active_account_links(user_id)

    def get_active_account_link(self, user_id: str) -> AccountLink | None:
        return self.inner.get_active_account_link(user_id)
