"""Device identity package."""

from techvibes_wallet.services.device.identity import (
    DeviceIdentityManager,
    machine_id_provider,
)

__all__ = [
    "DeviceIdentityManager",
    "machine_id_provider",
]
