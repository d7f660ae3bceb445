"""
Session Orchestrator for the Techvibes Wallet

This module ties the components together and defines the session flows:
1. Resolve (last chosen / first profile -> fetch accounts -> pick current)
2. Select (user switch -> persist choice -> re-resolve balance)
3. Refresh (balance or accounts, keeping the current selection)

DESIGN DECISION: The session owns SelectedAccount; every other component
is stateless or owns only its cache. State changes are published as
immutable SessionState snapshots to subscribers.

CONCURRENCY: Requests complete out of order. Each flow takes a
RelevanceToken before its first await and commits only while that token
is current, so the last-issued intent wins, not the last to complete.
Three counters are kept:
- resolutions: a newer resolve/refresh_accounts supersedes an older one
- selections: a user selection during a resolve or an account refresh
  keeps its selection
- balances: only the newest balance request for the selected account
  may write the displayed balance
"""

import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from techvibes_wallet.audit import AuditLogger, create_correlation_id, get_logger
from techvibes_wallet.balance import BalanceResolver
from techvibes_wallet.config import get_settings
from techvibes_wallet.directory import AccountDirectoryCache, pick_current_account
from techvibes_wallet.history import MISSING_CUSTOMER_ID_MESSAGE, TransactionHistoryFetcher
from techvibes_wallet.intents import IntentCounter, RelevanceToken
from techvibes_wallet.models.account import Account, LastChosenAccount
from techvibes_wallet.models.audit import AuditEventBuilder
from techvibes_wallet.models.transaction import HistoryOptions, HistoryResult, ResolvedBalance
from techvibes_wallet.services.device import DeviceIdentityManager
from techvibes_wallet.services.gateway import RemoteAccountGateway
from techvibes_wallet.services.storage import JsonFileStorage, KeyValueStorageInterface

logger = get_logger(__name__)


class SessionStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    NO_ACCOUNT = "no_account"


class SessionState(BaseModel):
    """
    Snapshot of the session published to subscribers.

    main_account is the account the session was resolved to;
    selected_account is the one the user is looking at right now.
    """
    model_config = ConfigDict(frozen=True)

    techvibes_id: Optional[str] = None
    accounts: tuple[Account, ...] = ()
    main_account: Optional[Account] = None
    selected_account: Optional[Account] = None
    balance: ResolvedBalance = Field(default_factory=ResolvedBalance.never)
    status: SessionStatus = SessionStatus.IDLE
    intent: int = Field(default=0, description="Selection intent that produced this state")


StateObserver = Callable[[SessionState], Union[None, Awaitable[None]]]


class AccountSession:
    """
    Session coordinator.

    Flow:
    1. resolve() picks the current account and resolves its balance
    2. select_account() switches accounts on explicit user action
    3. refresh_balance() / refresh_accounts() re-read from the backend

    LastChosenAccount is written on explicit selection and on logout,
    never by resolve().
    """

    def __init__(
        self,
        directory: AccountDirectoryCache,
        balance_resolver: BalanceResolver,
        history_fetcher: TransactionHistoryFetcher,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._directory = directory
        self._balance_resolver = balance_resolver
        self._history = history_fetcher
        self._audit_logger = audit_logger
        self._state = SessionState()
        self._observers: list[StateObserver] = []
        self._resolutions = IntentCounter()
        self._selections = IntentCounter()
        self._balances = IntentCounter()

    @property
    def state(self) -> SessionState:
        return self._state

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """
        Register a callback for state changes.

        Returns:
            A function that removes the callback
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    async def _commit(self, **changes: Any) -> SessionState:
        self._state = self._state.model_copy(update=changes)
        for observer in list(self._observers):
            try:
                outcome = observer(self._state)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error("session_observer_failed", observer=repr(observer), error=repr(e))
        return self._state

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def _resolution_target(
        self,
        last_chosen: Optional[LastChosenAccount],
    ) -> Optional[tuple[str, str]]:
        """
        The (techvibes_id, fintech) whose accounts should be fetched.

        The last chosen account's identity wins; otherwise the first
        mapped profile. None when nothing is known locally.
        """
        default_fintech = self._directory.default_fintech
        if last_chosen is not None and last_chosen.techvibes_id:
            return last_chosen.techvibes_id, last_chosen.fintech or default_fintech

        profiles = await self._directory.get_mapped_profiles()
        if not profiles:
            return None
        first = profiles[0]
        fintech = first.accounts[0].fintech if first.accounts else None
        return first.techvibes_id, fintech or default_fintech

    async def resolve(
        self,
        known_accounts: Optional[Sequence[Union[Account, dict[str, Any]]]] = None,
    ) -> SessionState:
        """
        Establish the current account for the session.

        Args:
            known_accounts: Accounts the caller already holds (e.g. from
                sign-in); skips the directory fetch when non-empty

        Returns:
            The resulting state. status is NO_ACCOUNT when nothing could
            be selected; the previous selection is never kept as a stand-in.
        """
        correlation_id = create_correlation_id()
        token = self._resolutions.issue()
        selection = self._selections.issue()
        await self._commit(status=SessionStatus.LOADING)

        last_chosen = await self._directory.get_last_chosen_account()

        techvibes_id: Optional[str] = None
        if known_accounts:
            accounts = [Account.from_payload(a) for a in known_accounts]
            techvibes_id = next((a.techvibes_id for a in accounts if a.techvibes_id), None)
            if techvibes_id is None and last_chosen is not None:
                techvibes_id = last_chosen.techvibes_id
        else:
            target = await self._resolution_target(last_chosen)
            if target is None:
                accounts = []
            else:
                techvibes_id, fintech = target
                accounts = await self._directory.fetch_and_store_accounts_by_identity(
                    techvibes_id, fintech
                )

        if not token.is_current():
            await self._superseded(token, self._resolutions, correlation_id)
            return self._state

        current = pick_current_account(accounts, last_chosen)
        changes: dict[str, Any] = {
            "techvibes_id": techvibes_id,
            "accounts": tuple(accounts),
            "main_account": current,
        }
        user_selected = not selection.is_current()
        if user_selected and self._state.selected_account is not None:
            # The user picked an account while this was loading; keep it
            changes["status"] = SessionStatus.READY
        else:
            changes.update(
                selected_account=current,
                balance=ResolvedBalance.never(current.account_number if current else None),
                status=SessionStatus.READY if current else SessionStatus.NO_ACCOUNT,
                intent=selection.intent,
            )
        await self._commit(**changes)
        await self._audit(
            AuditEventBuilder.resolution_completed(
                current.account_number if current else None,
                len(accounts),
                token.intent,
                correlation_id,
            )
        )

        if current is not None and not user_selected:
            await self._resolve_balance_for(current)
        return self._state

    async def select_account(self, account: Union[Account, dict[str, Any]]) -> SessionState:
        """
        Switch the session to `account` on explicit user action.

        Persists the choice as LastChosenAccount and resolves the balance
        for the new account. The displayed balance drops to
        ("0.00", "Never") until that completes.
        """
        account = Account.from_payload(account)
        selection = self._selections.issue()

        await self._commit(
            selected_account=account,
            balance=ResolvedBalance.never(account.account_number),
            status=SessionStatus.READY,
            intent=selection.intent,
        )

        if selection.is_current():
            await self._directory.set_last_chosen_account(
                account, techvibes_id=account.techvibes_id or self._state.techvibes_id
            )
        if self._audit_logger:
            await self._audit_logger.log_account_selected(
                account.account_number, account.fintech, selection.intent
            )

        await self._resolve_balance_for(account)
        return self._state

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def _resolve_balance_for(self, account: Account) -> Optional[ResolvedBalance]:
        """
        Resolve and commit the balance for `account` if still relevant.

        Returns None when the result was discarded.
        """
        token = self._balances.issue()
        balance = await self._balance_resolver.resolve_balance(account)

        selected = self._state.selected_account
        if not token.is_current() or selected is None or not selected.same_account(account):
            await self._superseded(token, self._balances)
            return None

        await self._commit(balance=balance)
        return balance

    async def refresh_balance(self) -> ResolvedBalance:
        """Re-resolve the balance of the selected account."""
        account = self._state.selected_account
        if account is None:
            return self._state.balance
        await self._resolve_balance_for(account)
        return self._state.balance

    async def refresh_accounts(self) -> SessionState:
        """
        Re-fetch the account list for the session identity.

        The current selection is kept when it is still in the list, and a
        selection made while the fetch was in flight is always kept. An
        empty or failed fetch leaves the state untouched.
        """
        techvibes_id = self._state.techvibes_id
        if not techvibes_id:
            return self._state

        token = self._resolutions.issue()
        selection = self._selections.latest()
        selected = self._state.selected_account
        fintech = selected.fintech if selected else None
        accounts = await self._directory.fetch_and_store_accounts_by_identity(techvibes_id, fintech)

        if not token.is_current():
            await self._superseded(token, self._resolutions)
            return self._state
        if not accounts:
            logger.warning("refresh_accounts_empty", techvibes_id=techvibes_id)
            return self._state

        selected = self._state.selected_account
        kept = None
        if selected is not None:
            kept = next((a for a in accounts if a.same_account(selected)), None)
        main = self._state.main_account
        if main is not None:
            main = next((a for a in accounts if a.same_account(main)), accounts[0])

        changes: dict[str, Any] = {"accounts": tuple(accounts), "main_account": main or accounts[0]}
        if not selection.is_current() and selected is not None:
            # The user picked an account while this was loading; keep it
            await self._commit(**changes)
            return self._state
        if kept is not None:
            changes["selected_account"] = kept
            await self._commit(**changes)
            return self._state

        current = accounts[0]
        changes.update(
            selected_account=current,
            balance=ResolvedBalance.never(current.account_number),
            status=SessionStatus.READY,
        )
        await self._commit(**changes)
        await self._resolve_balance_for(current)
        return self._state

    async def fetch_history(self, contains: Optional[str] = None, **options: Any) -> HistoryResult:
        """
        History for the selected account.

        Args:
            contains: Keep only records whose note contains this text
            **options: limit, offset, from_date, to_date, reference, name
        """
        account = self._state.selected_account
        if account is None or not account.is_usable:
            return HistoryResult.failure(MISSING_CUSTOMER_ID_MESSAGE)
        options.setdefault("limit", get_settings().app.history_page_size)
        history_options = HistoryOptions(
            customer_id=account.customer_id,
            account_no=account.account_number,
            **options,
        )
        if contains:
            return await self._history.fetch_filtered(history_options, contains)
        return await self._history.fetch_history(history_options)

    async def logout(self) -> SessionState:
        """
        End the session.

        The selected account is kept as LastChosenAccount so the next
        sign-in lands on it. In-flight results are discarded.
        """
        selected = self._state.selected_account
        if selected is not None:
            await self._directory.set_last_chosen_account(
                selected, techvibes_id=selected.techvibes_id or self._state.techvibes_id
            )
        self._resolutions.issue()
        self._selections.issue()
        self._balances.issue()
        self._state = SessionState()
        return await self._commit()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _superseded(
        self,
        token: RelevanceToken,
        counter: IntentCounter,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        logger.debug("stale_result_discarded", intent=token.intent, current=counter.current)
        if self._audit_logger:
            await self._audit_logger.log_resolution_superseded(
                token.intent, counter.current, correlation_id
            )

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)


def create_app_components(
    storage: Optional[KeyValueStorageInterface] = None,
    gateway: Optional[RemoteAccountGateway] = None,
) -> tuple[AccountSession, DeviceIdentityManager]:
    """
    Factory function to create the application components.

    Args:
        storage: Local key-value store. Defaults to the JSON file store
                 at the configured path.
        gateway: Backend gateway. Defaults to one built from settings.

    Returns:
        (session, device_identity)
    """
    audit_logger = AuditLogger()
    storage = storage or JsonFileStorage()
    gateway = gateway or RemoteAccountGateway(audit_logger=audit_logger)

    history = TransactionHistoryFetcher(gateway, audit_logger=audit_logger)
    session = AccountSession(
        directory=AccountDirectoryCache(storage, gateway, audit_logger=audit_logger),
        balance_resolver=BalanceResolver(history, audit_logger=audit_logger),
        history_fetcher=history,
        audit_logger=audit_logger,
    )
    device_identity = DeviceIdentityManager(storage, gateway=gateway, audit_logger=audit_logger)
    return session, device_identity
