"""Bank discovery and the account authorization state machine.

The flow is: list banks -> create a requisition -> hand its link to the user
-> the bank redirects back with a ``ref`` -> resolve the requisition -> persist
an AccountLink. Starting authorization is an effect that returns a link for
the caller to present; completing it is an explicit call carrying the
external reference. Nothing here knows about browsers or pages.

States::

    Idle --create_requisition--> Connecting --resolve--> Linked | Rejected | Expired
      ^                              |
      +------------reset-------------+

Connecting only leaves through resolution or an explicit ``reset()``.
"""

import logging
import re
import threading
from collections.abc import Callable
from enum import Enum
from urllib.parse import parse_qs, urlparse
from uuid import uuid4

from ..connectors.base import AggregationProvider
from ..errors import BudgetFlowError, ConnectionStateError, InvalidBank, InvalidCountry
from ..models import AccountLink, Bank, Requisition, RequisitionStatus
from ..storage.base import PersistentStore

logger = logging.getLogger(__name__)

_COUNTRY_PATTERN = re.compile(r"^[A-Za-z]{2}$")


class LinkState(Enum):
    """Where the orchestrator is in the authorization flow."""

    IDLE = "Idle"
    CONNECTING = "Connecting"
    LINKED = "Linked"
    REJECTED = "Rejected"
    EXPIRED = "Expired"

    @property
    def is_terminal(self) -> bool:
        return self in (LinkState.LINKED, LinkState.REJECTED, LinkState.EXPIRED)


_TERMINAL_STATES = {
    RequisitionStatus.LINKED: LinkState.LINKED,
    RequisitionStatus.REJECTED: LinkState.REJECTED,
    RequisitionStatus.EXPIRED: LinkState.EXPIRED,
}


def parse_callback_reference(callback: str) -> str:
    """Extract the ``ref`` value from a return URL, or pass a bare value through.

    Args:
        callback: Either ``https://app.example/callback?ref=abc`` or ``abc``

    Raises:
        ValueError: If a URL is given without a ``ref`` parameter
    """
    callback = callback.strip()
    if "://" not in callback and "?" not in callback:
        if not callback:
            raise ValueError("Callback reference is empty")
        return callback

    refs = parse_qs(urlparse(callback).query).get("ref", [])
    if not refs or not refs[0].strip():
        raise ValueError(f"No 'ref' parameter in callback URL: {callback}")
    return refs[0].strip()


class ConnectionOrchestrator:
    """Drives one user's bank linking flow.

    The orchestrator shares nothing with the sync side except the persisted
    AccountLink records it writes through the store.
    """

    def __init__(
        self,
        provider: AggregationProvider,
        store: PersistentStore,
        user_id: str,
        on_account_linked: Callable[[AccountLink], None] | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            provider: Aggregation provider client
            store: Store receiving AccountLink records
            user_id: Identity of the current user
            on_account_linked: Called with the active link whenever an account
                becomes active (e.g. to run the first sync)
        """
        self.provider = provider
        self.store = store
        self.user_id = user_id
        self.on_account_linked = on_account_linked

        self._lock = threading.RLock()
        self._state = LinkState.IDLE
        self._catalog: dict[str, Bank] = {}
        self._requisition: Requisition | None = None
        self._linked_accounts: tuple[str, ...] = ()
        self._active_link: AccountLink | None = None

    @property
    def state(self) -> LinkState:
        return self._state

    @property
    def requisition(self) -> Requisition | None:
        """The open requisition, or the last resolved one."""
        return self._requisition

    @property
    def linked_accounts(self) -> tuple[str, ...]:
        """Every account the resolved requisition linked, in provider order."""
        return self._linked_accounts

    @property
    def active_link(self) -> AccountLink | None:
        return self._active_link

    def list_banks(self, country_code: str) -> list[Bank]:
        """List supported banks for a country.

        An empty list is a normal outcome for a country without coverage.

        Raises:
            InvalidCountry: If the code is not two letters (no I/O happens)
            ProviderError: If the provider call fails
        """
        if not _COUNTRY_PATTERN.match(country_code or ""):
            raise InvalidCountry(country_code)
        country = country_code.upper()

        banks = self.provider.list_banks(country)

        with self._lock:
            self._catalog.update({bank.id: bank for bank in banks})

        if not banks:
            logger.info(f"No supported banks for {country}")
        else:
            logger.info(f"Found {len(banks)} banks for {country}")
        return banks

    def create_requisition(self, bank_id: str) -> Requisition:
        """Start authorization with a bank and return the link to present.

        Raises:
            InvalidBank: If the bank was not in any listed catalog (no I/O happens)
            ConnectionStateError: If an authorization is already in progress
            ProviderError: If the provider call fails; state is unchanged
        """
        bank_id = (bank_id or "").strip()
        with self._lock:
            if not bank_id or bank_id not in self._catalog:
                raise InvalidBank(bank_id)
            if self._state is LinkState.CONNECTING:
                raise ConnectionStateError(
                    "An authorization is already in progress; reset() before retrying"
                )

            requisition = self.provider.create_requisition(
                bank_id, reference=str(uuid4())
            )

            self._requisition = requisition
            self._linked_accounts = ()
            self._active_link = None
            self._state = LinkState.CONNECTING

        logger.info(
            f"Created requisition {requisition.id} for {self._catalog[bank_id].name}"
        )
        return requisition

    def resume(self, requisition_id: str) -> None:
        """Re-open a requisition created by an earlier process.

        Raises:
            ConnectionStateError: If the orchestrator is not idle
        """
        requisition_id = (requisition_id or "").strip()
        if not requisition_id:
            raise ValueError("Requisition id is empty")

        with self._lock:
            if self._state is not LinkState.IDLE:
                raise ConnectionStateError(
                    f"Cannot resume {requisition_id} while {self._state.value}"
                )
            self._requisition = Requisition(id=requisition_id)
            self._state = LinkState.CONNECTING

        logger.debug(f"Resumed requisition {requisition_id}")

    def resolve_requisition(self, requisition_id: str) -> Requisition:
        """Read the requisition's status and apply any terminal outcome.

        Safe to call repeatedly: once the requisition reached a terminal state
        the recorded outcome is returned without provider I/O. Rejected and
        Expired are outcomes, not errors.

        Raises:
            ConnectionStateError: If ``requisition_id`` is not the requisition
                this orchestrator opened
            ProviderError: If the provider call fails; state is unchanged
            PersistenceError: If the AccountLink cannot be written; state is
                unchanged and the call may be retried
        """
        with self._lock:
            current = self._requisition
            if current is None or current.id != requisition_id:
                raise ConnectionStateError(
                    f"Requisition {requisition_id} is not the one in progress"
                )
            if self._state.is_terminal:
                return current

            fetched = self.provider.get_requisition(requisition_id)
            resolved = fetched.model_copy(
                update={
                    "link": fetched.link or current.link,
                    "reference": fetched.reference or current.reference,
                }
            )

            if resolved.status is RequisitionStatus.LINKED and not resolved.accounts:
                logger.warning(
                    f"Requisition {requisition_id} reports linked with no accounts; "
                    "still waiting"
                )
                resolved = resolved.model_copy(
                    update={"status": RequisitionStatus.PENDING}
                )

            new_state = _TERMINAL_STATES.get(resolved.status)
            link: AccountLink | None = None
            if new_state is LinkState.LINKED:
                link = self.store.upsert_account_link(
                    self.user_id,
                    resolved.accounts[0],
                    self._bank_name(resolved),
                    active=True,
                )
                self._linked_accounts = resolved.accounts
                self._active_link = link

            self._requisition = resolved
            if new_state is not None:
                self._state = new_state

        if new_state is None:
            logger.info(
                f"Requisition {requisition_id} still {resolved.status.value.lower()}"
            )
        elif link is not None:
            logger.info(
                f"✅ Linked account {link.account_id} "
                f"({len(resolved.accounts)} account(s) authorized)"
            )
            self._notify_linked(link)
        else:
            logger.warning(
                f"Requisition {requisition_id} {new_state.value.lower()}; "
                "a new requisition is required"
            )
        return resolved

    def complete_authorization(self, callback_ref: str) -> Requisition:
        """Consume the bank's return callback.

        Args:
            callback_ref: The ``ref`` value, or the full return URL carrying it.
                Either the requisition id or its reference is accepted.

        Raises:
            ValueError: If no reference can be read from ``callback_ref``
            ConnectionStateError: If no matching authorization is in progress
        """
        ref = parse_callback_reference(callback_ref)
        with self._lock:
            current = self._requisition
            if self._state is LinkState.IDLE or current is None:
                raise ConnectionStateError("No authorization in progress")
            if ref not in (current.id, current.reference):
                raise ConnectionStateError(
                    f"Callback reference {ref} does not match requisition {current.id}"
                )
            requisition_id = current.id
        return self.resolve_requisition(requisition_id)

    def select_account(self, account_id: str) -> AccountLink:
        """Make another account from the resolved requisition the active link.

        Raises:
            ConnectionStateError: If not Linked or the account is not part of
                the requisition
        """
        with self._lock:
            if self._state is not LinkState.LINKED or self._requisition is None:
                raise ConnectionStateError("No linked requisition to select from")
            if account_id not in self._linked_accounts:
                raise ConnectionStateError(
                    f"Account {account_id} is not part of requisition "
                    f"{self._requisition.id}"
                )
            link = self.store.upsert_account_link(
                self.user_id,
                account_id,
                self._bank_name(self._requisition),
                active=True,
            )
            self._active_link = link

        logger.info(f"Selected account {account_id} as active link")
        self._notify_linked(link)
        return link

    def reset(self) -> None:
        """Drop the current attempt and return to Idle (user-initiated retry)."""
        with self._lock:
            previous = self._state
            self._state = LinkState.IDLE
            self._requisition = None
            self._linked_accounts = ()
            self._active_link = None
        logger.debug(f"Reset bank link flow from {previous.value}")

    def _bank_name(self, requisition: Requisition) -> str:
        institution_id = requisition.institution_id
        if institution_id and institution_id in self._catalog:
            return self._catalog[institution_id].name
        return institution_id or ""

    def _notify_linked(self, link: AccountLink) -> None:
        if self.on_account_linked is None:
            return
        try:
            self.on_account_linked(link)
        except BudgetFlowError as e:
            # The link itself is persisted; the caller can sync again later
            logger.error(f"❌ Post-link hook failed for {link.account_id}: {e}")
