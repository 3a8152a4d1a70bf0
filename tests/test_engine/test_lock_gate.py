"""Tests for LockGate."""

from __future__ import annotations

import pytest
from fakes import TEST_KEY

from nxt_connector.engine.lock_gate import LockGate, LockState
from nxt_connector.engine.secret_store import SecretStore
from nxt_connector.errors.connector_errors import AuthError, PreconditionFailedError


class TestLockGate:
    async def test_starts_locked(self, store: SecretStore) -> None:
        gate = LockGate(store)
        assert gate.state == LockState.LOCKED
        assert gate.is_locked

    async def test_unlock_with_key(self, store: SecretStore) -> None:
        gate = LockGate(store)
        gate.unlock(TEST_KEY)
        assert gate.state == LockState.UNLOCKED
        gate.require_unlocked()

    async def test_wrong_key_keeps_locked(self, store: SecretStore) -> None:
        gate = LockGate(store)
        with pytest.raises(AuthError):
            gate.unlock("wrong")
        assert gate.is_locked

    async def test_wrong_key_while_unlocked_keeps_unlocked(self, store: SecretStore) -> None:
        gate = LockGate(store)
        gate.unlock(TEST_KEY)
        with pytest.raises(AuthError):
            gate.unlock("wrong")
        assert gate.state == LockState.UNLOCKED

    async def test_unlock_lock_unlock(self, store: SecretStore) -> None:
        gate = LockGate(store)
        gate.unlock(TEST_KEY)
        gate.lock()
        assert gate.is_locked
        gate.unlock(TEST_KEY)
        assert gate.state == LockState.UNLOCKED

    async def test_require_unlocked_when_locked(self, store: SecretStore) -> None:
        gate = LockGate(store)
        with pytest.raises(PreconditionFailedError):
            gate.require_unlocked()

    async def test_new_gate_is_locked(self, store: SecretStore) -> None:
        LockGate(store).unlock(TEST_KEY)
        assert LockGate(store).is_locked

    async def test_unlock_follows_key_change(self, store: SecretStore) -> None:
        gate = LockGate(store)
        await store.change_encryption_key(TEST_KEY, "rotated")
        with pytest.raises(AuthError):
            gate.unlock(TEST_KEY)
        gate.unlock("rotated")
        assert not gate.is_locked
