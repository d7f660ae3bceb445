"""Account directory package."""

from techvibes_wallet.directory.cache import AccountDirectoryCache, pick_current_account

__all__ = ["AccountDirectoryCache", "pick_current_account"]
