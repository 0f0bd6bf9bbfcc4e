"""Contract between the core and the persistent store."""

from collections.abc import Sequence
from typing import Literal, Protocol

from ..models import AccountLink, Transaction


class PersistentStore(Protocol):
    """Keyed upsert storage consumed by the orchestrator and the sync engine."""

    def upsert_transactions(
        self,
        rows: Sequence[Transaction],
        on_conflict: Literal["update", "ignore"] = "update",
    ) -> int: ...

    def upsert_account_link(
        self, user_id: str, account_id: str, bank_name: str, active: bool = True
    ) -> AccountLink: ...

    def list_active_account_links(self, user_id: str) -> list[AccountLink]: ...

    def get_active_account_link(self, user_id: str) -> AccountLink | None: ...
