"""
Abstract Storage Interface

DESIGN DECISION: Persisted state (device fingerprint, profile directory,
last chosen account) goes through a small async key-value interface.
This allows us to:
1. Back it with platform secure storage, a JSON file, or memory
2. Use in-memory storage for testing
3. Keep the caches decoupled from where bytes actually live

Values are JSON-compatible Python objects (dicts, lists, strings, numbers).
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from techvibes_wallet.errors import LocalStorageError


class KeyValueStorageInterface(ABC):
    """
    Abstract interface for scoped key-value persistence.

    Every method may suspend; every method raises StorageError (a
    LocalStorageError) when the backing store cannot be read or written.
    """

    @abstractmethod
    async def get_item(self, key: str) -> Optional[Any]:
        """
        Read a value.

        Args:
            key: Storage key

        Returns:
            The stored value, or None if the key is absent

        Raises:
            StorageError: If the store cannot be read
        """
        pass

    @abstractmethod
    async def save_item(self, key: str, value: Any) -> bool:
        """
        Write a value, replacing any previous one.

        Args:
            key: Storage key
            value: JSON-compatible value

        Returns:
            True if saved successfully

        Raises:
            StorageError: If the store cannot be written
        """
        pass

    @abstractmethod
    async def remove_item(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            True if the key existed and was removed
        """
        pass

    @abstractmethod
    async def list_keys(self) -> list[str]:
        """List stored keys (debugging aid)."""
        pass


class StorageError(LocalStorageError):
    """Base exception for storage operations."""
    pass


class CorruptDataError(StorageError):
    """Stored bytes could not be decoded."""
    pass
