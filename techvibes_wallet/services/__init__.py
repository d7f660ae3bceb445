"""Services package."""

from techvibes_wallet.services.device import DeviceIdentityManager
from techvibes_wallet.services.gateway import RemoteAccountGateway
from techvibes_wallet.services.storage import (
    CorruptDataError,
    InMemoryStorage,
    JsonFileStorage,
    KeyValueStorageInterface,
    StorageError,
)

__all__ = [
    # Device
    "DeviceIdentityManager",
    # Gateway
    "RemoteAccountGateway",
    # Storage
    "CorruptDataError",
    "InMemoryStorage",
    "JsonFileStorage",
    "KeyValueStorageInterface",
    "StorageError",
]
