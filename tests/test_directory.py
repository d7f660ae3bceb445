"""
Tests for the Account Directory Cache.
"""

import pytest
from unittest.mock import AsyncMock

from factories import account_payload, accounts_response
from techvibes_wallet.directory import AccountDirectoryCache, pick_current_account
from techvibes_wallet.models.account import Account, LastChosenAccount
from techvibes_wallet.models.gateway import GatewayResult
from techvibes_wallet.services.storage import InMemoryStorage, JsonFileStorage, StorageError


def make_directory(storage, accounts=None, error=None):
    gateway = AsyncMock()
    if error is not None:
        gateway.get_accounts_by_techvibes_id.return_value = GatewayResult.fail(error)
    else:
        gateway.get_accounts_by_techvibes_id.return_value = accounts_response(accounts or [])
    return AccountDirectoryCache(storage, gateway), gateway


class TestPickCurrentAccount:
    """Tests for the pure selection rule."""

    def test_last_chosen_in_list_wins(self):
        """Test the remembered account is re-selected."""
        accounts = [Account(account_number="001"), Account(account_number="002")]
        last = LastChosenAccount(account_number="002")
        assert pick_current_account(accounts, last).account_number == "002"

    def test_stale_last_chosen_falls_back_to_first(self):
        """Test a remembered account missing from the list is ignored."""
        accounts = [Account(account_number="002", fintech="X")]
        last = LastChosenAccount(account_number="001", fintech="X")
        assert pick_current_account(accounts, last).account_number == "002"

    def test_fintech_mismatch_is_not_a_match(self):
        """Test the same number in another fintech is a different account."""
        accounts = [
            Account(account_number="001", fintech="Y"),
            Account(account_number="009", fintech="X"),
        ]
        last = LastChosenAccount(account_number="009", fintech="X")
        assert pick_current_account(accounts, last).account_number == "009"
        last = LastChosenAccount(account_number="001", fintech="X")
        assert pick_current_account(accounts, last).fintech == "Y"

    def test_empty_list(self):
        """Test an empty list selects nothing."""
        assert pick_current_account([], LastChosenAccount(account_number="001")) is None
        assert pick_current_account([], None) is None


class TestProfiles:
    """Tests for the cached profile directory."""

    @pytest.mark.asyncio
    async def test_empty_storage(self, storage):
        """Test nothing cached means no profiles."""
        directory, gateway = make_directory(storage)
        assert await directory.get_mapped_profiles() == []
        gateway.get_accounts_by_techvibes_id.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fetch_and_store(self, storage):
        """Test fetched accounts are cached under their identity."""
        directory, gateway = make_directory(
            storage, [account_payload("001", fintech=None), account_payload("002", fintech="Z")]
        )

        accounts = await directory.fetch_and_store_accounts_by_identity("TV-1", "X")

        assert [a.account_number for a in accounts] == ["001", "002"]
        assert accounts[0].fintech == "X"
        assert accounts[1].fintech == "Z"
        assert all(a.techvibes_id == "TV-1" for a in accounts)
        gateway.get_accounts_by_techvibes_id.assert_awaited_once_with("TV-1")

        profiles = await directory.get_mapped_profiles()
        assert [p.techvibes_id for p in profiles] == ["TV-1"]
        assert [a.account_number for a in profiles[0].accounts] == ["001", "002"]

    @pytest.mark.asyncio
    async def test_fetch_replaces_existing_profile(self, storage):
        """Test a refetch replaces the identity's cached list and keeps others."""
        directory, gateway = make_directory(storage, [account_payload("001")])
        await directory.fetch_and_store_accounts_by_identity("TV-1")
        gateway.get_accounts_by_techvibes_id.return_value = accounts_response([account_payload("777")])
        await directory.fetch_and_store_accounts_by_identity("TV-2")
        gateway.get_accounts_by_techvibes_id.return_value = accounts_response([account_payload("003")])
        await directory.fetch_and_store_accounts_by_identity("TV-1")

        profiles = await directory.get_mapped_profiles()
        assert [p.techvibes_id for p in profiles] == ["TV-1", "TV-2"]
        assert [a.account_number for a in profiles[0].accounts] == ["003"]

    @pytest.mark.asyncio
    async def test_default_fintech(self, storage):
        """Test the configured default fintech is applied."""
        directory, _ = make_directory(storage, [account_payload("001", fintech=None)])
        accounts = await directory.fetch_and_store_accounts_by_identity("TV-1")
        assert accounts[0].fintech == "techvibes"

    @pytest.mark.asyncio
    async def test_failed_fetch_leaves_cache(self, storage):
        """Test a failed fetch returns [] and keeps the old cache."""
        directory, gateway = make_directory(storage, [account_payload("001")])
        await directory.fetch_and_store_accounts_by_identity("TV-1")
        gateway.get_accounts_by_techvibes_id.return_value = GatewayResult.fail("down")

        assert await directory.fetch_and_store_accounts_by_identity("TV-1") == []
        profile = await directory.get_profile("TV-1")
        assert [a.account_number for a in profile.accounts] == ["001"]

    @pytest.mark.asyncio
    async def test_malformed_accounts_skipped(self, storage):
        """Test entries without an account number are dropped."""
        directory, _ = make_directory(storage, [{"customer_id": "C-1"}, account_payload("002"), "junk"])
        accounts = await directory.fetch_and_store_accounts_by_identity("TV-1")
        assert [a.account_number for a in accounts] == ["002"]

    @pytest.mark.asyncio
    async def test_all_malformed_accounts_leave_cache(self, storage):
        """Test a list with no usable entries keeps the cached profile."""
        directory, gateway = make_directory(storage, [account_payload("001")])
        await directory.fetch_and_store_accounts_by_identity("TV-1")
        gateway.get_accounts_by_techvibes_id.return_value = GatewayResult.ok(data=["001", 42])

        assert await directory.fetch_and_store_accounts_by_identity("TV-1") == []
        profile = await directory.get_profile("TV-1")
        assert [a.account_number for a in profile.accounts] == ["001"]

    @pytest.mark.asyncio
    async def test_legacy_dict_layout(self):
        """Test profiles stored keyed by identity are still readable."""
        storage = InMemoryStorage({
            "mapped_profiles": {"TV-9": [{"account_number": "001"}]},
        })
        directory, _ = make_directory(storage)
        profiles = await directory.get_mapped_profiles()
        assert profiles[0].techvibes_id == "TV-9"
        assert profiles[0].accounts[0].account_number == "001"

    @pytest.mark.asyncio
    async def test_corrupt_entries_skipped(self):
        """Test unparseable profile entries do not hide valid ones."""
        storage = InMemoryStorage({
            "mapped_profiles": [{"accounts": []}, {"techvibes_id": "TV-1", "accounts": []}],
        })
        directory, _ = make_directory(storage)
        profiles = await directory.get_mapped_profiles()
        assert [p.techvibes_id for p in profiles] == ["TV-1"]

    @pytest.mark.asyncio
    async def test_unreadable_storage(self):
        """Test storage failures read as an empty directory."""
        storage = AsyncMock()
        storage.get_item.side_effect = StorageError("locked")
        directory, _ = make_directory(storage)
        assert await directory.get_mapped_profiles() == []
        assert await directory.get_last_chosen_account() is None

    @pytest.mark.asyncio
    async def test_undecodable_storage_file(self, tmp_path):
        """Test a store file with invalid bytes reads as an empty directory."""
        path = tmp_path / "store.json"
        path.write_bytes(b"\xff\xfe{}")
        directory, _ = make_directory(JsonFileStorage(path))
        assert await directory.get_mapped_profiles() == []
        assert await directory.get_last_chosen_account() is None

    @pytest.mark.asyncio
    async def test_forget_profile(self, storage):
        """Test a profile can be dropped."""
        directory, _ = make_directory(storage, [account_payload("001")])
        await directory.fetch_and_store_accounts_by_identity("TV-1")
        assert await directory.forget_profile("TV-1") is True
        assert await directory.forget_profile("TV-1") is False
        assert await directory.get_mapped_profiles() == []


class TestLastChosenAccount:
    """Tests for persisting the user's explicit choice."""

    @pytest.mark.asyncio
    async def test_round_trip(self, storage):
        """Test the full account is stored and read back."""
        directory, _ = make_directory(storage)
        account = Account.from_payload(account_payload("001", fintech="X"))
        assert await directory.set_last_chosen_account(account, techvibes_id="TV-1") is True

        last = await directory.get_last_chosen_account()
        assert last.account_number == "001"
        assert last.fintech == "X"
        assert last.techvibes_id == "TV-1"
        assert last.account.customer_id == "C-1"

    @pytest.mark.asyncio
    async def test_partial_account(self, storage):
        """Test a partial account is accepted."""
        directory, _ = make_directory(storage)
        assert await directory.set_last_chosen_account({"accountNumber": "001", "fintech": "X"})
        last = await directory.get_last_chosen_account()
        assert (last.account_number, last.fintech) == ("001", "X")

    @pytest.mark.asyncio
    async def test_overwrites(self, storage):
        """Test the last write wins."""
        directory, _ = make_directory(storage)
        await directory.set_last_chosen_account({"account_number": "001"})
        await directory.set_last_chosen_account({"account_number": "002"})
        assert (await directory.get_last_chosen_account()).account_number == "002"

    @pytest.mark.asyncio
    async def test_rejects_account_without_number(self, storage):
        """Test nothing is stored without an account number."""
        directory, _ = make_directory(storage)
        assert await directory.set_last_chosen_account({"fintech": "X"}) is False
        assert await directory.get_last_chosen_account() is None

    @pytest.mark.asyncio
    async def test_write_failure_reported(self):
        """Test storage write failures return False."""
        storage = AsyncMock()
        storage.save_item.side_effect = StorageError("read-only")
        directory, _ = make_directory(storage)
        assert await directory.set_last_chosen_account({"account_number": "001"}) is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
