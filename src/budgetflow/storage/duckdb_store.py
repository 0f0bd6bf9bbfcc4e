"""DuckDB-backed persistent store for account links and transactions.

Writes are keyed upserts: transactions by (user_id, account_id, external_id),
account links by (user_id, account_id). The store owns a single DuckDB
connection and serializes access to it with a lock, so the scheduler thread
and the caller's thread can share one instance.
"""

import logging
import threading
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

import duckdb

from ..errors import PersistenceError
from ..models import AccountLink, Transaction

logger = logging.getLogger(__name__)

ConflictPolicy = Literal["update", "ignore"]

_SCHEMA = """
CREATE TABLE IF NOT EXISTS account_links (
    user_id VARCHAR NOT NULL,
    account_id VARCHAR NOT NULL,
    bank_name VARCHAR NOT NULL,
    active BOOLEAN NOT NULL,
    created_at TIMESTAMP NOT NULL,
    activation_order BIGINT NOT NULL,
    PRIMARY KEY (user_id, account_id)
);

CREATE TABLE IF NOT EXISTS transactions (
    user_id VARCHAR NOT NULL,
    account_id VARCHAR NOT NULL,
    external_id VARCHAR NOT NULL,
    description VARCHAR NOT NULL,
    amount DECIMAL(38, 10) NOT NULL,
    currency VARCHAR NOT NULL,
    transaction_date DATE NOT NULL,
    category VARCHAR NOT NULL,
    color_hint VARCHAR NOT NULL,
    synced_at TIMESTAMP NOT NULL,
    PRIMARY KEY (user_id, account_id, external_id)
);
"""

_UPSERT_TRANSACTION = """
INSERT INTO transactions
    (user_id, account_id, external_id, description, amount, currency,
     transaction_date, category, color_hint, synced_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (user_id, account_id, external_id) DO UPDATE SET
    description = EXCLUDED.description,
    amount = EXCLUDED.amount,
    currency = EXCLUDED.currency,
    transaction_date = EXCLUDED.transaction_date,
    category = EXCLUDED.category,
    color_hint = EXCLUDED.color_hint,
    synced_at = EXCLUDED.synced_at
"""

_INSERT_TRANSACTION_IGNORE = """
INSERT INTO transactions
    (user_id, account_id, external_id, description, amount, currency,
     transaction_date, category, color_hint, synced_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (user_id, account_id, external_id) DO NOTHING
"""

_LINK_COLUMNS = "user_id, account_id, bank_name, active, created_at"


class DuckDBStore:
    """Keyed upsert storage on a local DuckDB database."""

    def __init__(self, database_path: Path | str):
        """Open (and if needed create) the database.

        Args:
            database_path: DuckDB file path, or ``":memory:"``
        """
        self.database_path = database_path
        if str(database_path) != ":memory:":
            Path(database_path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        try:
            self._conn = duckdb.connect(str(database_path))  # type: ignore[misc]
            self._conn.execute(_SCHEMA)
        except duckdb.Error as e:
            raise PersistenceError(
                f"Failed to open database {database_path}: {e}"
            ) from e

        logger.debug(f"Opened DuckDB store at {database_path}")

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "DuckDBStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def upsert_transactions(
        self,
        rows: Sequence[Transaction],
        on_conflict: ConflictPolicy = "update",
    ) -> int:
        """Insert-or-update transactions in one atomic batch.

        Rows sharing a key collapse to the last one. With ``on_conflict="update"``
        existing rows are overwritten (last write wins); with ``"ignore"``
        existing rows are left untouched.

        Returns:
            int: Rows written (inserted or updated; for ``"ignore"`` only inserted)

        Raises:
            PersistenceError: If the batch could not be written; nothing from
                the batch is kept
        """
        if on_conflict not in ("update", "ignore"):
            raise ValueError(f"Unknown conflict policy: {on_conflict}")

        unique = {row.key: row for row in rows}
        if not unique:
            return 0

        synced_at = datetime.now()
        params = [
            [
                t.user_id,
                t.account_id,
                t.external_id,
                t.description,
                t.amount,
                t.currency,
                t.transaction_date,
                t.category,
                t.color_hint,
                synced_at,
            ]
            for t in unique.values()
        ]
        statement = (
            _UPSERT_TRANSACTION if on_conflict == "update" else _INSERT_TRANSACTION_IGNORE
        )

        with self._lock:
            try:
                before = self._count_all()
                self._conn.begin()
                self._conn.executemany(statement, params)
                self._conn.commit()
            except duckdb.Error as e:
                self._rollback()
                raise PersistenceError(f"Failed to upsert transactions: {e}") from e

            if on_conflict == "ignore":
                return self._count_all() - before
            return len(params)

    def count_transactions(self, user_id: str, account_id: str | None = None) -> int:
        """Count stored transactions for a user, optionally for one account."""
        query = "SELECT COUNT(*) FROM transactions WHERE user_id = ?"
        params: list[Any] = [user_id]
        if account_id is not None:
            query += " AND account_id = ?"
            params.append(account_id)

        with self._lock:
            result = self._conn.execute(query, params).fetchone()  # type: ignore[misc]
        return int(result[0]) if result else 0

    def list_transactions(
        self, user_id: str, account_id: str | None = None
    ) -> list[Transaction]:
        """Stored transactions, newest first."""
        query = """
            SELECT external_id, account_id, user_id, description, amount, currency,
                   transaction_date, category, color_hint
            FROM transactions
            WHERE user_id = ?
        """
        params: list[Any] = [user_id]
        if account_id is not None:
            query += " AND account_id = ?"
            params.append(account_id)
        query += " ORDER BY transaction_date DESC, external_id"

        with self._lock:
            rows = self._conn.execute(query, params).fetchall()  # type: ignore[misc]

        return [
            Transaction(
                external_id=r[0],
                account_id=r[1],
                user_id=r[2],
                description=r[3],
                amount=r[4],
                currency=r[5],
                transaction_date=r[6],
                category=r[7],
                color_hint=r[8],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Account links
    # ------------------------------------------------------------------

    def upsert_account_link(
        self, user_id: str, account_id: str, bank_name: str, active: bool = True
    ) -> AccountLink:
        """Create or update the link for (user_id, account_id).

        Re-linking keeps the original ``created_at``. Every upsert with
        ``active=True`` makes this link the user's current one, so it is
        what ``get_active_account_link`` returns afterwards.
        """
        with self._lock:
            try:
                order = self._activation_order(user_id, account_id)
                if active or order is None:
                    order = self._next_activation_order(user_id)
                self._conn.execute(
                    f"""
                    INSERT INTO account_links ({_LINK_COLUMNS}, activation_order)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT (user_id, account_id) DO UPDATE SET
                        bank_name = EXCLUDED.bank_name,
                        active = EXCLUDED.active,
                        activation_order = EXCLUDED.activation_order
                    """,
                    [user_id, account_id, bank_name, active, datetime.now(), order],
                )
            except duckdb.Error as e:
                raise PersistenceError(f"Failed to upsert account link: {e}") from e

            link = self._get_account_link(user_id, account_id)

        if link is None:
            raise PersistenceError(
                f"Account link {account_id} missing right after upsert"
            )
        return link

    def deactivate_account_link(self, user_id: str, account_id: str) -> bool:
        """Mark a link inactive.

        Returns:
            bool: False if no such link exists
        """
        with self._lock:
            if self._get_account_link(user_id, account_id) is None:
                return False
            try:
                self._conn.execute(
                    "UPDATE account_links SET active = FALSE "
                    "WHERE user_id = ? AND account_id = ?",
                    [user_id, account_id],
                )
            except duckdb.Error as e:
                raise PersistenceError(f"Failed to deactivate account link: {e}") from e
        return True

    def list_active_account_links(self, user_id: str) -> list[AccountLink]:
        """Active links for a user, least recently activated first."""
        with self._lock:
            rows = self._conn.execute(
                f"""
                SELECT {_LINK_COLUMNS} FROM account_links
                WHERE user_id = ? AND active
                ORDER BY activation_order, account_id
                """,
                [user_id],
            ).fetchall()  # type: ignore[misc]
        return [_row_to_link(r) for r in rows]

    def get_active_account_link(self, user_id: str) -> AccountLink | None:
        """The user's most recently activated link, if any."""
        links = self.list_active_account_links(user_id)
        return links[-1] if links else None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_account_link(self, user_id: str, account_id: str) -> AccountLink | None:
        row = self._conn.execute(
            f"SELECT {_LINK_COLUMNS} FROM account_links "
            "WHERE user_id = ? AND account_id = ?",
            [user_id, account_id],
        ).fetchone()  # type: ignore[misc]
        return _row_to_link(row) if row else None

    def _activation_order(self, user_id: str, account_id: str) -> int | None:
        row = self._conn.execute(
            "SELECT activation_order FROM account_links "
            "WHERE user_id = ? AND account_id = ?",
            [user_id, account_id],
        ).fetchone()  # type: ignore[misc]
        return int(row[0]) if row else None

    def _next_activation_order(self, user_id: str) -> int:
        row = self._conn.execute(
            "SELECT COALESCE(MAX(activation_order), 0) + 1 FROM account_links "
            "WHERE user_id = ?",
            [user_id],
        ).fetchone()  # type: ignore[misc]
        return int(row[0]) if row else 1

    def _count_all(self) -> int:
        result = self._conn.execute("SELECT COUNT(*) FROM transactions").fetchone()  # type: ignore[misc]
        return int(result[0]) if result else 0

    def _rollback(self) -> None:
        try:
            self._conn.rollback()
        except duckdb.Error:
            # No transaction was open
            pass


def _row_to_link(row: Sequence[Any]) -> AccountLink:
    return AccountLink(
        user_id=row[0],
        account_id=row[1],
        bank_name=row[2],
        active=row[3],
        created_at=row[4],
    )
