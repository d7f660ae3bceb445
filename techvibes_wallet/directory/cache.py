"""
Account Directory Cache

Keeps the locally known profiles and their accounts, plus the account
the user last chose, across app restarts.

DESIGN DECISION: The cache is the only writer of the persisted
directory. A failed backend fetch never touches what is already
stored; a stale cache is better than an empty one.

Storage layout (key-value, JSON):
    mapped_profiles      -> [ {techvibes_id, accounts: [...]}, ... ]
    last_chosen_account  -> {account_number, fintech, customer_id,
                             techvibes_id, account}
"""

from typing import Any, Optional, Sequence

from techvibes_wallet.audit import AuditLogger, get_logger
from techvibes_wallet.config import get_settings
from techvibes_wallet.errors import DataShapeError, LocalStorageError
from techvibes_wallet.models.account import Account, LastChosenAccount, Profile
from techvibes_wallet.models.audit import AuditEventBuilder
from techvibes_wallet.services.gateway import RemoteAccountGateway
from techvibes_wallet.services.storage import KeyValueStorageInterface

logger = get_logger(__name__)


def pick_current_account(
    accounts: Sequence[Account],
    last_chosen: Optional[LastChosenAccount],
) -> Optional[Account]:
    """
    Choose the account to show as current.

    The last chosen account wins if it is in the list; otherwise the
    first account; None for an empty list.
    """
    if last_chosen is not None:
        for account in accounts:
            if account.same_account(last_chosen):
                return account
    return accounts[0] if accounts else None


class AccountDirectoryCache:
    """
    Persisted directory of profiles and accounts.

    Reads never touch the network; only
    fetch_and_store_accounts_by_identity does.
    """

    def __init__(
        self,
        storage: KeyValueStorageInterface,
        gateway: RemoteAccountGateway,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._gateway = gateway
        self._audit_logger = audit_logger
        storage_settings = get_settings().storage
        self._profiles_key = storage_settings.mapped_profiles_key
        self._last_chosen_key = storage_settings.last_chosen_account_key
        self.default_fintech = get_settings().app.default_fintech

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    async def get_mapped_profiles(self) -> list[Profile]:
        """
        All locally known profiles, in the order they were first stored.

        Unreadable storage or unparseable entries are skipped; this never
        raises and never hits the network.
        """
        try:
            raw = await self._storage.get_item(self._profiles_key)
        except LocalStorageError as e:
            await self._storage_failed(self._profiles_key, "read", e)
            return []

        if not raw:
            return []
        if isinstance(raw, dict):
            # Older layout keyed by techvibes id
            raw = [
                {"techvibes_id": key, **value} if isinstance(value, dict)
                else {"techvibes_id": key, "accounts": value}
                for key, value in raw.items()
            ]
        if not isinstance(raw, list):
            logger.warning("mapped_profiles_invalid", type=type(raw).__name__)
            return []

        profiles = []
        for entry in raw:
            try:
                profiles.append(Profile.model_validate(entry))
            except ValueError as e:
                logger.warning("mapped_profile_skipped", error=str(e))
        return profiles

    async def get_profile(self, techvibes_id: str) -> Optional[Profile]:
        for profile in await self.get_mapped_profiles():
            if profile.techvibes_id == techvibes_id:
                return profile
        return None

    async def _save_profiles(self, profiles: list[Profile]) -> None:
        """
        Raises:
            LocalStorageError: If the directory cannot be written
        """
        await self._storage.save_item(
            self._profiles_key,
            [profile.model_dump(mode="json") for profile in profiles],
        )

    async def forget_profile(self, techvibes_id: str) -> bool:
        """Drop one profile from the local directory."""
        profiles = await self.get_mapped_profiles()
        remaining = [p for p in profiles if p.techvibes_id != techvibes_id]
        if len(remaining) == len(profiles):
            return False
        try:
            await self._save_profiles(remaining)
        except LocalStorageError as e:
            await self._storage_failed(self._profiles_key, "write", e)
            return False
        return True

    async def fetch_and_store_accounts_by_identity(
        self,
        techvibes_id: str,
        fintech: Optional[str] = None,
    ) -> list[Account]:
        """
        Fetch the account list for an identity and cache it.

        The cached list for that identity is replaced by the fetched one.
        Accounts without a fintech tag get `fintech`.

        Returns:
            The fetched accounts, or [] on failure (cache untouched). A
            non-empty list with no usable entry counts as a failure.
        """
        fintech = fintech or self.default_fintech
        result = await self._gateway.get_accounts_by_techvibes_id(techvibes_id)
        if not result.success:
            await self._audit(
                AuditEventBuilder.accounts_fetch_failed(techvibes_id, result.error or "unknown error")
            )
            return []

        accounts = self._parse_accounts(result.data, techvibes_id, fintech)
        if result.data and not accounts:
            await self._audit(
                AuditEventBuilder.accounts_fetch_failed(techvibes_id, "no valid accounts in response")
            )
            return []

        profiles = await self.get_mapped_profiles()
        profile = Profile(techvibes_id=techvibes_id, accounts=accounts)
        for idx, existing in enumerate(profiles):
            if existing.techvibes_id == techvibes_id:
                profiles[idx] = profile
                break
        else:
            profiles.append(profile)

        try:
            await self._save_profiles(profiles)
        except LocalStorageError as e:
            await self._storage_failed(self._profiles_key, "write", e)

        await self._audit(
            AuditEventBuilder.accounts_fetched(
                techvibes_id, fintech, [a.account_number for a in accounts]
            )
        )
        return accounts

    @staticmethod
    def _parse_accounts(
        raw_accounts: Any,
        techvibes_id: str,
        fintech: Optional[str],
    ) -> list[Account]:
        accounts = []
        for raw in raw_accounts or []:
            try:
                account = Account.from_payload(raw)
            except DataShapeError as e:
                logger.warning("account_payload_skipped", error=str(e))
                continue
            update = {}
            if not account.fintech and fintech:
                update["fintech"] = fintech
            if not account.techvibes_id:
                update["techvibes_id"] = techvibes_id
            accounts.append(account.model_copy(update=update) if update else account)
        return accounts

    # ------------------------------------------------------------------
    # Last chosen account
    # ------------------------------------------------------------------

    async def get_last_chosen_account(self) -> Optional[LastChosenAccount]:
        """The persisted selection, or None if none (or unreadable)."""
        try:
            raw = await self._storage.get_item(self._last_chosen_key)
        except LocalStorageError as e:
            await self._storage_failed(self._last_chosen_key, "read", e)
            return None
        if not raw:
            return None
        try:
            return LastChosenAccount.model_validate(raw)
        except ValueError as e:
            logger.warning("last_chosen_account_invalid", error=str(e))
            return None

    async def set_last_chosen_account(
        self,
        account: Account | LastChosenAccount | dict,
        techvibes_id: Optional[str] = None,
    ) -> bool:
        """
        Persist `account` as the last chosen account, overwriting any
        previous value.

        Only an account number is required. Returns False if it could not
        be stored.
        """
        try:
            ref = LastChosenAccount.from_account(account, techvibes_id=techvibes_id)
        except DataShapeError as e:
            logger.warning("last_chosen_account_rejected", error=str(e))
            return False
        try:
            await self._storage.save_item(self._last_chosen_key, ref.model_dump(mode="json"))
        except LocalStorageError as e:
            await self._storage_failed(self._last_chosen_key, "write", e)
            return False
        logger.debug("last_chosen_account_saved", account_number=ref.account_number)
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _storage_failed(self, key: str, operation: str, error: Exception) -> None:
        logger.error("directory_storage_failed", key=key, operation=operation, error=str(error))
        if self._audit_logger:
            await self._audit_logger.log_storage_error(key, operation, str(error))

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)
