"""GoCardless Bank Account Data API client.

Thin synchronous wrapper over the v2 REST API using httpx. It covers the
four calls BudgetFlow needs (institutions, create requisition, get
requisition, account transactions) and returns domain models. Every call is
bounded by the client timeout; any failure, a timeout included, is raised
as ``ProviderError`` and never retried here.
"""

import logging
import time
from datetime import date
from typing import Any

import httpx
from pydantic import ValidationError

from ..config import BudgetFlowSettings, ProviderConfig
from ..errors import ProviderError
from ..models import Bank, RawTransaction, Requisition
from .schemas import (
    InstitutionSchema,
    RequisitionSchema,
    TokenSchema,
    TransactionsResponseSchema,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v2"

# Renew the access token this many seconds before the provider expires it
_TOKEN_EXPIRY_MARGIN = 60


class GoCardlessClient:
    """Synchronous client for the GoCardless Bank Account Data API."""

    def __init__(
        self,
        config: ProviderConfig,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            config: Provider credentials and endpoints
            timeout: Seconds allowed per call; defaults to config.timeout_seconds
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.config = config
        self.timeout = timeout if timeout is not None else config.timeout_seconds
        self._client = httpx.Client(
            base_url=config.base_url.rstrip("/") + API_PREFIX,
            timeout=self.timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )
        self._access_token: str | None = None
        self._token_expires_at = 0.0

        logger.debug(f"Initialized GoCardless client for {config.base_url}")

    @classmethod
    def from_settings(
        cls, settings: BudgetFlowSettings, timeout: float | None = None
    ) -> "GoCardlessClient":
        """Build a client from application settings.

        Raises:
            ValueError: If provider credentials are missing
        """
        settings.validate_required_credentials()
        return cls(settings.provider, timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GoCardlessClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _authenticate(self) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        logger.debug("Requesting new GoCardless access token")
        payload = self._send(
            "POST",
            "/token/new/",
            json={
                "secret_id": self.config.secret_id,
                "secret_key": self.config.secret_key,
            },
            authenticated=False,
        )
        token = self._parse(TokenSchema, payload, "access token")
        self._access_token = token.access
        self._token_expires_at = (
            time.monotonic() + token.access_expires - _TOKEN_EXPIRY_MARGIN
        )
        return token.access

    def _send(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        authenticated: bool = True,
    ) -> Any:
        headers: dict[str, str] = {}
        if authenticated:
            headers["Authorization"] = f"Bearer {self._authenticate()}"

        try:
            response = self._client.request(
                method, path, params=params, json=json, headers=headers
            )
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise ProviderError(
                f"GoCardless {method} {path} timed out after {self.timeout}s"
            ) from e
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"GoCardless {method} {path} failed with "
                f"{e.response.status_code}: {_error_detail(e.response)}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"GoCardless {method} {path} failed: {e}") from e
        except ValueError as e:
            raise ProviderError(
                f"GoCardless {method} {path} returned invalid JSON"
            ) from e

    @staticmethod
    def _parse(schema: Any, payload: Any, what: str) -> Any:
        try:
            return schema.model_validate(payload)
        except ValidationError as e:
            raise ProviderError(f"Unexpected {what} payload from GoCardless: {e}") from e

    # ------------------------------------------------------------------
    # API
    # ------------------------------------------------------------------

    def list_banks(self, country_code: str) -> list[Bank]:
        """List institutions available in a country, in provider order."""
        payload = self._send("GET", "/institutions/", params={"country": country_code})
        if not isinstance(payload, list):
            raise ProviderError("Unexpected institutions payload from GoCardless")

        banks = [
            self._parse(InstitutionSchema, item, "institution").to_bank(country_code)
            for item in payload
        ]
        logger.debug(f"GoCardless returned {len(banks)} banks for {country_code}")
        return banks

    def create_requisition(
        self, bank_id: str, reference: str | None = None
    ) -> Requisition:
        """Open an authorization session for ``bank_id``."""
        body: dict[str, Any] = {
            "redirect": self.config.redirect_url,
            "institution_id": bank_id,
            "user_language": self.config.user_language,
        }
        if reference:
            body["reference"] = reference

        payload = self._send("POST", "/requisitions/", json=body)
        requisition = self._parse(RequisitionSchema, payload, "requisition")
        return requisition.to_requisition()

    def get_requisition(self, requisition_id: str) -> Requisition:
        """Read the current status and linked accounts of a requisition."""
        payload = self._send("GET", f"/requisitions/{requisition_id}/")
        requisition = self._parse(RequisitionSchema, payload, "requisition")
        return requisition.to_requisition()

    def get_transactions(
        self, account_id: str, date_from: date, date_to: date
    ) -> list[RawTransaction]:
        """Fetch booked transactions for an account within an inclusive window."""
        payload = self._send(
            "GET",
            f"/accounts/{account_id}/transactions/",
            params={
                "date_from": date_from.isoformat(),
                "date_to": date_to.isoformat(),
            },
        )
        response = self._parse(TransactionsResponseSchema, payload, "transactions")

        try:
            transactions = [
                booked.to_raw(account_id) for booked in response.transactions.booked
            ]
        except ValueError as e:
            raise ProviderError(f"Malformed transaction from GoCardless: {e}") from e

        logger.debug(
            f"GoCardless returned {len(transactions)} booked transactions "
            f"({len(response.transactions.pending)} pending skipped) for {account_id}"
        )
        return transactions


def _error_detail(response: httpx.Response) -> str:
    """Pull the provider's summary/detail out of an error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] if response.text else "no body"
    if isinstance(body, dict):
        summary = body.get("summary")
        detail = body.get("detail")
        parts = [str(p) for p in (summary, detail) if p]
        if parts:
            return " - ".join(parts)
    return str(body)[:200]
