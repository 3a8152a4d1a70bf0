"""ConnectorError — base exception class and the connector error taxonomy."""

from __future__ import annotations


class ConnectorError(Exception):
    """Base error for all connector operations.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code string.
    """

    def __init__(self, message: str, *, code: str = "connector-error") -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def clone(self) -> ConnectorError:
        """Return a new error of the same class, message and code.

        Predefined module-level errors are cloned before a cause is chained
        onto them, so the shared instance keeps no traceback or cause.
        """
        return type(self)(self.message, code=self.code)


class NotFoundError(ConnectorError):
    """A requested account, transaction or wallet does not exist."""


class AuthError(ConnectorError):
    """Wrong encryption key, or a wallet that cannot be opened with the given key."""


class PreconditionFailedError(AuthError):
    """A spend was attempted while the wallet is locked."""


class InvalidInputError(ConnectorError):
    """Malformed transaction id, invalid address, non-positive amount."""


class InsufficientFundsError(ConnectorError):
    """The main account cannot cover the requested amount plus fee."""


class StoreError(ConnectorError):
    """The wallet database failed (I/O, schema, integrity)."""
