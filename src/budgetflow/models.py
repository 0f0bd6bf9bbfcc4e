"""Core domain models for bank linking and transaction sync.

These are the records that flow between the connection orchestrator, the
sync engine and the store. Provider wire formats live in
``budgetflow.connectors.schemas`` and are converted into these models at the
client boundary.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RequisitionStatus(Enum):
    """Lifecycle of a single authorization attempt."""

    CREATED = "Created"
    LINKED = "Linked"
    REJECTED = "Rejected"
    EXPIRED = "Expired"
    PENDING = "Pending"

    @classmethod
    def from_provider_code(cls, code: str | None) -> "RequisitionStatus":
        """Map a GoCardless two-letter status code onto a status.

        ``GC``, ``UA``, ``SA``, ``GA`` and anything unrecognised are the user
        still being somewhere inside the bank's consent flow.
        """
        mapping = {
            "CR": cls.CREATED,
            "LN": cls.LINKED,
            "RJ": cls.REJECTED,
            "EX": cls.EXPIRED,
        }
        return mapping.get((code or "").strip().upper(), cls.PENDING)

    @property
    def is_terminal(self) -> bool:
        return self in (
            RequisitionStatus.LINKED,
            RequisitionStatus.REJECTED,
            RequisitionStatus.EXPIRED,
        )


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        extra="forbid",
        str_strip_whitespace=True,
        from_attributes=True,
        populate_by_name=True,
        frozen=True,
    )


class Bank(BaseSchema):
    """A bank the provider can connect to in a given country."""

    id: str = Field(..., min_length=1, description="Provider institution ID")
    name: str = Field(..., description="Display name")
    logo: str | None = Field(None, description="Logo URL")
    country_code: str = Field(..., min_length=2, max_length=2)
    transaction_total_days: int | None = Field(
        None, ge=0, description="Days of history the bank exposes"
    )


class Requisition(BaseSchema):
    """One-shot authorization session issued by the provider."""

    id: str = Field(..., min_length=1, description="Provider requisition ID")
    link: str | None = Field(None, description="URL the user must visit")
    status: RequisitionStatus = RequisitionStatus.CREATED
    accounts: tuple[str, ...] = Field(
        default=(), description="Linked account IDs in provider order"
    )
    reference: str | None = Field(None, description="Caller-chosen reference")
    institution_id: str | None = None


class AccountLink(BaseSchema):
    """Durable record of a successfully authorized bank account for a user."""

    account_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    bank_name: str = ""
    active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)


class RawTransaction(BaseSchema):
    """A booked transaction as returned by the provider, before classification."""

    external_id: str = Field(..., min_length=1)
    description: str = ""
    amount: Decimal
    currency: str = Field(..., min_length=3, max_length=3)
    transaction_date: date


class Classification(BaseSchema):
    """Category label plus a display color hint."""

    category: str
    color_hint: str


class Transaction(BaseSchema):
    """A classified transaction ready for persistence.

    Identity key: (user_id, account_id, external_id).
    """

    external_id: str = Field(..., min_length=1)
    account_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    description: str = ""
    amount: Decimal
    currency: str = Field(..., min_length=3, max_length=3)
    transaction_date: date
    category: str
    color_hint: str

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.user_id, self.account_id, self.external_id)


class SyncWindow(BaseSchema):
    """Inclusive date range of transactions to fetch."""

    date_from: date
    date_to: date

    @model_validator(mode="after")
    def check_order(self) -> "SyncWindow":
        if self.date_from > self.date_to:
            raise ValueError(
                f"date_from {self.date_from} is after date_to {self.date_to}"
            )
        return self

    @classmethod
    def rolling(cls, days: int = 30, now: datetime | None = None) -> "SyncWindow":
        """Window of ``days`` calendar days ending at ``now``, both ends inclusive."""
        if days < 1:
            raise ValueError("Rolling window must span at least one day")
        end = (now or datetime.now()).date()
        return cls(date_from=end - timedelta(days=days - 1), date_to=end)


class SyncResult(BaseSchema):
    """Outcome of a single sync run."""

    account_id: str
    fetched_count: int = Field(0, ge=0)
    persisted_count: int = Field(0, ge=0)
    window: SyncWindow
