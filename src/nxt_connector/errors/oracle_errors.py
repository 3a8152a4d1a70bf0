"""Errors raised while talking to the NXT node."""

from __future__ import annotations

from nxt_connector.errors.connector_errors import ConnectorError


class OracleUnavailableError(ConnectorError):
    """The NXT node could not be reached or returned an unusable response."""

    def __init__(self, message: str, *, code: str = "oracle-unavailable") -> None:
        super().__init__(message, code=code)


class NxtError(OracleUnavailableError):
    """The NXT node answered with an API error (``errorCode`` in the body).

    Attributes:
        error_code: The numeric NXT API error code.
    """

    def __init__(self, message: str, *, error_code: int) -> None:
        super().__init__(message, code="nxt-error")
        self.error_code = error_code

    def clone(self) -> NxtError:
        return NxtError(self.message, error_code=self.error_code)
