"""
Error Taxonomy

Four failure kinds cross component boundaries:

- TransportError: no response reached (or came back from) the backend
- ApplicationError: the backend answered but reported a logical failure
- DataShapeError: the response was not JSON or lacked expected fields
- LocalStorageError: a persistent read/write failed

Components catch these at their boundary and return typed failure
results instead. Only ApplicationError's message is meant for display.
"""


class WalletError(Exception):
    """Base exception for the wallet session layer."""
    pass


class TransportError(WalletError):
    """The request never produced a usable HTTP response."""
    pass


class ApplicationError(WalletError):
    """The backend reported a logical failure."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class DataShapeError(WalletError):
    """The backend payload did not have the expected shape."""
    pass


class LocalStorageError(WalletError):
    """Base exception for local persistence failures."""
    pass
