"""SecretStore — encrypted account keys and the deposit scan cursor.

The store is the only owner of secret phrases. Secrets are encrypted with a
Fernet key stretched from the wallet encryption key; an empty encryption
key stores them in clear. A key check token in ``wallet_meta`` lets the
store authenticate a key without decrypting any account.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from cryptography.fernet import InvalidToken
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from nxt_connector.engine.models import (
    AccountRecord,
    Base,
    ReportedDepositRecord,
    SyncCursorRecord,
    WalletMetaRecord,
)
from nxt_connector.engine.models.wallet import SINGLETON_ID
from nxt_connector.engine.types import Account, AccountRole, DepositAddress, SyncCursor
from nxt_connector.errors.connector_errors import StoreError
from nxt_connector.errors.definitions import (
    ErrAccountNotFound,
    ErrCannotOpenWallet,
    ErrDuplicateAddress,
    ErrMainAccountNotFound,
    ErrWalletExists,
    ErrWalletNotFound,
    ErrWrongKey,
)
from nxt_connector.utils.crypto import SecretCipher, keys_match, new_salt

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

    from nxt_connector.datastore.client import Datastore
    from nxt_connector.nxt.keys import AccountKey

logger = logging.getLogger(__name__)


class SecretStore:
    """Persistent, key-addressable store of wallet accounts and the sync cursor.

    Usage::

        store = SecretStore(datastore, encryption_key="...")
        if not await store.exists():
            await store.initialize(main_key, tip.id, tip.height)
        else:
            await store.open()
        async with store.use_secret(account_id) as secret:
            ...
    """

    def __init__(
        self,
        datastore: Datastore,
        *,
        encryption_key: str = "",
        kdf_iterations: int = 480_000,
    ) -> None:
        self._datastore = datastore
        self._encryption_key = encryption_key
        self._kdf_iterations = kdf_iterations
        self._cipher: SecretCipher | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def exists(self) -> bool:
        """Whether the wallet schema has been created."""
        try:
            return await self._datastore.has_table(WalletMetaRecord.__tablename__)
        except SQLAlchemyError as exc:
            raise StoreError(f"wallet store unavailable: {exc}", code="store-io") from exc

    async def initialize(
        self,
        main_account: AccountKey,
        initial_cursor: str,
        initial_height: int | None = None,
    ) -> Account:
        """Create the wallet with its main account and starting cursor.

        Either the schema and both rows exist afterwards, or nothing does.

        Raises:
            StoreError: If the wallet already exists or the database fails.
        """
        if await self.exists():
            raise ErrWalletExists

        salt = new_salt()
        cipher = SecretCipher(self._encryption_key, salt, self._kdf_iterations)
        try:
            await self._datastore.create_tables(Base)
            async with self._datastore.session() as session, session.begin():
                record = AccountRecord(
                    secret=cipher.encrypt(main_account.secret),
                    address=main_account.address,
                    role=AccountRole.MAIN.value,
                )
                session.add(record)
                session.add(
                    SyncCursorRecord(
                        id=SINGLETON_ID, last_block_id=initial_cursor, height=initial_height
                    )
                )
                session.add(
                    WalletMetaRecord(
                        id=SINGLETON_ID,
                        salt=salt.hex(),
                        kdf_iterations=self._kdf_iterations,
                        key_check=cipher.key_check(),
                    )
                )
                await session.flush()
                account = record.to_account()
        except SQLAlchemyError as exc:
            await self._drop_partial_schema()
            raise StoreError(f"wallet initialization failed: {exc}", code="store-io") from exc

        self._cipher = cipher
        logger.info(
            "Created wallet with main account %s at block %s (encrypted=%s)",
            account.address,
            initial_cursor,
            cipher.encrypted,
        )
        return account

    async def open(self) -> None:
        """Authenticate the configured key against an existing wallet.

        Raises:
            NotFoundError: If the wallet has not been initialized.
            AuthError: If the configured key cannot open the wallet.
        """
        if not await self.exists():
            raise ErrWalletNotFound
        async with self._session() as session:
            meta = await session.get(WalletMetaRecord, SINGLETON_ID)
        if meta is None:
            raise ErrWalletNotFound

        cipher = self._cipher_for(meta, self._encryption_key)
        if not cipher.verify(meta.key_check):
            logger.warning("Wallet key check failed")
            raise ErrCannotOpenWallet
        self._cipher = cipher

    @property
    def is_open(self) -> bool:
        return self._cipher is not None

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def add_account(self, account: AccountKey) -> int:
        """Store a new deposit account and return its id.

        Raises:
            InvalidInputError: If the address is already in the wallet.
        """
        cipher = self._require_open()
        try:
            async with self._session() as session, session.begin():
                existing = await session.execute(
                    select(AccountRecord.id).where(AccountRecord.address == account.address)
                )
                if existing.scalar_one_or_none() is not None:
                    raise ErrDuplicateAddress
                record = AccountRecord(
                    secret=cipher.encrypt(account.secret),
                    address=account.address,
                    role=AccountRole.DEPOSIT.value,
                )
                session.add(record)
                await session.flush()
                account_id = record.id
        except IntegrityError as exc:
            raise ErrDuplicateAddress.clone() from exc
        return account_id

    async def get_main_account(self) -> Account:
        """Return the main account.

        Raises:
            NotFoundError: If no main account exists.
        """
        async with self._session() as session:
            result = await session.execute(
                select(AccountRecord).where(AccountRecord.role == AccountRole.MAIN.value)
            )
            record = result.scalar_one_or_none()
        if record is None:
            raise ErrMainAccountNotFound
        return record.to_account()

    async def list_deposit_addresses(self) -> list[DepositAddress]:
        """All deposit addresses in creation order; the main account is excluded."""
        async with self._session() as session:
            result = await session.execute(
                select(AccountRecord.id, AccountRecord.address)
                .where(AccountRecord.role == AccountRole.DEPOSIT.value)
                .order_by(AccountRecord.id)
            )
            return [DepositAddress(id=row.id, address=row.address) for row in result]

    async def get_secret(self, account_id: int) -> str:
        """Decrypt and return the secret phrase of an account.

        Callers must not keep the returned value beyond one signing call;
        prefer :meth:`use_secret`.

        Raises:
            NotFoundError: If the account does not exist.
            AuthError: If the stored secret cannot be decrypted.
        """
        cipher = self._require_open()
        async with self._session() as session:
            result = await session.execute(
                select(AccountRecord.secret).where(AccountRecord.id == account_id)
            )
            stored = result.scalar_one_or_none()
        if stored is None:
            raise ErrAccountNotFound
        try:
            return cipher.decrypt(stored)
        except InvalidToken as exc:
            raise ErrCannotOpenWallet.clone() from exc

    @asynccontextmanager
    async def use_secret(self, account_id: int) -> AsyncIterator[str]:
        """Expose an account secret for the duration of one signing call."""
        secret = await self.get_secret(account_id)
        try:
            yield secret
        finally:
            del secret

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    async def get_cursor(self) -> str:
        """Id of the last block fully processed by the deposit scan."""
        return (await self.get_sync_cursor()).block_id

    async def get_sync_cursor(self) -> SyncCursor:
        """The cursor with its height, when known."""
        async with self._session() as session:
            cursor = await session.get(SyncCursorRecord, SINGLETON_ID)
        if cursor is None:
            raise ErrWalletNotFound
        return SyncCursor(block_id=cursor.last_block_id, height=cursor.height)

    async def set_cursor(self, block_id: str, height: int | None = None) -> None:
        """Replace the cursor; committed before returning."""
        await self.record_scan(SyncCursor(block_id=block_id, height=height))

    async def record_scan(
        self,
        cursor: SyncCursor | None,
        reported: Mapping[str, int] | None = None,
        *,
        keep_from: int | None = None,
    ) -> None:
        """Persist the outcome of one scan pass in a single transaction.

        Args:
            cursor: New cursor, or None to keep the current one.
            reported: Heights of the confirmed deposits returned by the pass,
                keyed by ledger transaction id.
            keep_from: Forget reported deposits below this height.
        """
        async with self._session() as session, session.begin():
            if cursor is not None:
                record = await session.get(SyncCursorRecord, SINGLETON_ID)
                if record is None:
                    raise ErrWalletNotFound
                record.last_block_id = cursor.block_id
                record.height = cursor.height
            for ledger_tx_id, height in (reported or {}).items():
                await session.merge(ReportedDepositRecord(ledger_tx_id=ledger_tx_id, height=height))
            if keep_from is not None:
                await session.execute(
                    delete(ReportedDepositRecord).where(ReportedDepositRecord.height < keep_from)
                )

    async def reported_deposit_ids(self) -> set[str]:
        """Ledger ids of the confirmed deposits still inside the rescan window."""
        async with self._session() as session:
            result = await session.execute(select(ReportedDepositRecord.ledger_tx_id))
            return set(result.scalars())

    # ------------------------------------------------------------------
    # Encryption key
    # ------------------------------------------------------------------

    def verify_key(self, candidate: str) -> bool:
        """Whether *candidate* equals the configured encryption key."""
        return keys_match(candidate, self._encryption_key)

    async def change_encryption_key(self, old_key: str, new_key: str) -> None:
        """Re-encrypt every secret under *new_key*.

        All rows and the key check are rewritten in one transaction with a
        fresh salt; on any failure the wallet is left untouched.

        Raises:
            AuthError: If *old_key* is not the configured key.
        """
        self._require_open()
        if not self.verify_key(old_key):
            logger.warning("Refusing key change: current key does not match")
            raise ErrWrongKey

        salt = new_salt()
        new_cipher = SecretCipher(new_key, salt, self._kdf_iterations)
        async with self._session() as session, session.begin():
            meta = await session.get(WalletMetaRecord, SINGLETON_ID)
            if meta is None:
                raise ErrWalletNotFound
            old_cipher = self._cipher_for(meta, old_key)
            if not old_cipher.verify(meta.key_check):
                raise ErrWrongKey

            result = await session.execute(select(AccountRecord))
            records = result.scalars().all()
            try:
                for record in records:
                    record.secret = new_cipher.encrypt(old_cipher.decrypt(record.secret))
            except InvalidToken as exc:
                raise ErrCannotOpenWallet.clone() from exc

            meta.salt = salt.hex()
            meta.kdf_iterations = self._kdf_iterations
            meta.key_check = new_cipher.key_check()

        self._encryption_key = new_key
        self._cipher = new_cipher
        logger.info(
            "Re-encrypted %d account secrets (encrypted=%s)", len(records), new_cipher.encrypted
        )

    async def is_encrypted(self) -> bool:
        """Whether opening the wallet requires a non-empty key."""
        async with self._session() as session:
            meta = await session.get(WalletMetaRecord, SINGLETON_ID)
        if meta is None:
            raise ErrWalletNotFound
        keyless = self._cipher_for(meta, "")
        return not keyless.verify(meta.key_check)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session, reporting database failures as ``StoreError``."""
        try:
            async with self._datastore.session() as session:
                yield session
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            raise StoreError(f"wallet store failure: {exc}", code="store-io") from exc

    def _require_open(self) -> SecretCipher:
        if self._cipher is None:
            msg = "SecretStore is not open. Call open() or initialize() first."
            raise RuntimeError(msg)
        return self._cipher

    @staticmethod
    def _cipher_for(meta: WalletMetaRecord, key: str) -> SecretCipher:
        return SecretCipher(key, bytes.fromhex(meta.salt), meta.kdf_iterations)

    async def _drop_partial_schema(self) -> None:
        try:
            await self._datastore.drop_tables(Base)
        except SQLAlchemyError:
            logger.exception("Could not remove partially created wallet schema")
