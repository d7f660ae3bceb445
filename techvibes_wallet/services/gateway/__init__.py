"""Remote gateway package."""

from techvibes_wallet.services.gateway.remote_gateway import (
    NETWORK_ERROR_MESSAGE,
    RemoteAccountGateway,
)

__all__ = [
    "NETWORK_ERROR_MESSAGE",
    "RemoteAccountGateway",
]
