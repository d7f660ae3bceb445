"""
Storage Services Package

Provides the abstract key-value interface and local implementations.
"""

from techvibes_wallet.services.storage.interface import (
    CorruptDataError,
    KeyValueStorageInterface,
    StorageError,
)
from techvibes_wallet.services.storage.local_store import (
    InMemoryStorage,
    JsonFileStorage,
)

__all__ = [
    # Interfaces
    "KeyValueStorageInterface",
    # Exceptions
    "CorruptDataError",
    "StorageError",
    # Implementations
    "InMemoryStorage",
    "JsonFileStorage",
]
