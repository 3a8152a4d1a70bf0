"""LockGate — lock/unlock state guarding spends from the main account."""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING

from nxt_connector.errors.definitions import ErrWalletLocked, ErrWrongKey

if TYPE_CHECKING:
    from nxt_connector.engine.secret_store import SecretStore

logger = logging.getLogger(__name__)


class LockState(enum.StrEnum):
    """Lock gate states."""

    LOCKED = "locked"
    UNLOCKED = "unlocked"


class LockGate:
    """Two-state gate checked before the main account's secret is used.

    Starts locked on every construction and is never persisted. Only the
    wallet encryption key unlocks it; there is no automatic re-lock.
    """

    def __init__(self, store: SecretStore) -> None:
        self._store = store
        self._state = LockState.LOCKED

    @property
    def state(self) -> LockState:
        return self._state

    @property
    def is_locked(self) -> bool:
        return self._state == LockState.LOCKED

    def unlock(self, candidate_key: str) -> None:
        """Unlock if *candidate_key* is the wallet key.

        Raises:
            AuthError: If the key does not match; the gate stays locked.
        """
        if not self._store.verify_key(candidate_key):
            logger.warning("Unlock attempt with wrong key")
            raise ErrWrongKey
        self._state = LockState.UNLOCKED
        logger.info("Wallet unlocked")

    def lock(self) -> None:
        self._state = LockState.LOCKED
        logger.info("Wallet locked")

    def require_unlocked(self) -> None:
        """Raise ``PreconditionFailedError`` unless the gate is unlocked."""
        if self._state != LockState.UNLOCKED:
            raise ErrWalletLocked
