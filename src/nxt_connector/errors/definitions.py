"""Pre-defined connector errors."""

from __future__ import annotations

from nxt_connector.errors.connector_errors import (
    AuthError,
    InvalidInputError,
    NotFoundError,
    PreconditionFailedError,
    StoreError,
)

# -- Authentication --------------------------------------------------------

ErrWrongKey = AuthError("encryption key does not match", code="wrong-key")
ErrCannotOpenWallet = AuthError(
    "wallet cannot be opened with the configured key", code="cannot-open-wallet"
)
ErrWalletLocked = PreconditionFailedError("wallet is locked", code="wallet-locked")

# -- Validation ------------------------------------------------------------

ErrInvalidAddress = InvalidInputError("invalid NXT address", code="invalid-address")
ErrNonPositiveAmount = InvalidInputError("amount must be positive", code="non-positive-amount")
ErrAmountPrecision = InvalidInputError(
    "amount must be a whole number of NQT (8 decimal places)", code="amount-precision"
)
ErrInvalidTransactionId = InvalidInputError(
    "transaction id must be an unsigned 64-bit integer", code="invalid-transaction-id"
)
ErrDuplicateAddress = InvalidInputError(
    "account address already exists", code="duplicate-address"
)

# -- Not Found -------------------------------------------------------------

ErrAccountNotFound = NotFoundError("account not found", code="account-not-found")
ErrMainAccountNotFound = NotFoundError("main account not found", code="main-account-not-found")
ErrWalletNotFound = NotFoundError("wallet has not been initialized", code="wallet-not-found")

# -- Store -----------------------------------------------------------------

ErrWalletExists = StoreError("wallet already initialized", code="wallet-exists")
