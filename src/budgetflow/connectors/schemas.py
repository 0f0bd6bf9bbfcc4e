"""Pydantic schemas for GoCardless Bank Account Data API payloads.

The provider speaks camelCase JSON with many optional fields. These schemas
validate the parts BudgetFlow relies on and convert them into the domain
models in ``budgetflow.models``.
"""

import hashlib
from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models import Bank, RawTransaction, Requisition, RequisitionStatus


class ProviderSchema(BaseModel):
    """Base schema for provider payloads; unknown fields are ignored."""

    model_config = ConfigDict(
        extra="ignore",
        str_strip_whitespace=True,
        populate_by_name=True,
    )


class TokenSchema(ProviderSchema):
    """Response of ``POST /token/new/``."""

    access: str = Field(..., min_length=1)
    access_expires: int = Field(default=86400, ge=0, description="Seconds")


class InstitutionSchema(ProviderSchema):
    """One entry of ``GET /institutions/``."""

    id: str = Field(..., min_length=1)
    name: str
    logo: str | None = None
    countries: list[str] = Field(default_factory=list)
    transaction_total_days: int | None = None

    @field_validator("transaction_total_days", mode="before")
    @classmethod
    def coerce_total_days(cls, v: Any) -> Any:
        """The API reports history depth as a string, e.g. ``"540"``."""
        if v in (None, ""):
            return None
        return int(v)

    def to_bank(self, country_code: str) -> Bank:
        return Bank(
            id=self.id,
            name=self.name,
            logo=self.logo or None,
            country_code=country_code,
            transaction_total_days=self.transaction_total_days,
        )


class RequisitionSchema(ProviderSchema):
    """Requisition resource returned by create and get."""

    id: str = Field(..., min_length=1)
    status: str | None = None
    link: str | None = None
    accounts: list[str] = Field(default_factory=list)
    reference: str | None = None
    institution_id: str | None = None

    @field_validator("accounts", mode="before")
    @classmethod
    def coerce_accounts(cls, v: Any) -> Any:
        """Accounts may be absent or null before the user finishes consent."""
        if v is None:
            return []
        return [str(x) for x in v]

    def to_requisition(self) -> Requisition:
        return Requisition(
            id=self.id,
            link=self.link,
            status=RequisitionStatus.from_provider_code(self.status),
            accounts=tuple(self.accounts),
            reference=self.reference,
            institution_id=self.institution_id,
        )


class AmountSchema(ProviderSchema):
    """Signed amount with ISO 4217 currency."""

    amount: Decimal
    currency: str = Field(..., min_length=3, max_length=3)


class BookedTransactionSchema(ProviderSchema):
    """A booked transaction from ``GET /accounts/{id}/transactions/``."""

    transaction_id: str | None = Field(None, alias="transactionId")
    internal_transaction_id: str | None = Field(None, alias="internalTransactionId")
    booking_date: date | None = Field(None, alias="bookingDate")
    value_date: date | None = Field(None, alias="valueDate")
    transaction_amount: AmountSchema = Field(..., alias="transactionAmount")

    remittance_information_unstructured: str | None = Field(
        None, alias="remittanceInformationUnstructured"
    )
    remittance_information_unstructured_array: list[str] = Field(
        default_factory=list, alias="remittanceInformationUnstructuredArray"
    )
    creditor_name: str | None = Field(None, alias="creditorName")
    debtor_name: str | None = Field(None, alias="debtorName")
    additional_information: str | None = Field(None, alias="additionalInformation")

    @property
    def description(self) -> str:
        """Best human-readable description the bank supplied."""
        candidates = [
            self.remittance_information_unstructured,
            " ".join(self.remittance_information_unstructured_array),
            self.creditor_name,
            self.debtor_name,
            self.additional_information,
        ]
        for candidate in candidates:
            if candidate and candidate.strip():
                return candidate.strip()
        return ""

    @property
    def effective_date(self) -> date:
        booked = self.booking_date or self.value_date
        if booked is None:
            raise ValueError("Transaction has neither bookingDate nor valueDate")
        return booked

    def external_id(self, account_id: str) -> str:
        """Stable identity for the transaction within its account.

        Banks are not required to send ``transactionId``. Without any id the
        key is a digest of the fields that define the transaction, so repeated
        fetches still map to the same row.
        """
        if self.transaction_id:
            return self.transaction_id
        if self.internal_transaction_id:
            return self.internal_transaction_id
        fingerprint = "|".join([
            account_id,
            self.effective_date.isoformat(),
            str(self.transaction_amount.amount),
            self.transaction_amount.currency,
            self.description,
        ])
        return "sha256:" + hashlib.sha256(fingerprint.encode()).hexdigest()[:32]

    def to_raw(self, account_id: str) -> RawTransaction:
        return RawTransaction(
            external_id=self.external_id(account_id),
            description=self.description,
            amount=self.transaction_amount.amount,
            currency=self.transaction_amount.currency.upper(),
            transaction_date=self.effective_date,
        )


class TransactionListSchema(ProviderSchema):
    """Envelope of the transactions endpoint."""

    booked: list[BookedTransactionSchema] = Field(default_factory=list)
    pending: list[dict[str, Any]] = Field(default_factory=list)


class TransactionsResponseSchema(ProviderSchema):
    transactions: TransactionListSchema
