"""Account model — one row per ledger account held by the wallet."""

from __future__ import annotations

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from nxt_connector.engine.models.base import Base, TimestampMixin
from nxt_connector.engine.types import Account, AccountRole


class AccountRecord(Base, TimestampMixin):
    """A key-controlled NXT account.

    ``secret`` holds the secret phrase, encrypted under the wallet key when
    one is configured.
    """

    __tablename__ = "accounts"
    # Never reuse ids of deleted rows
    __table_args__ = {"sqlite_autoincrement": True}  # noqa: RUF012

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    secret: Mapped[str] = mapped_column(Text, nullable=False, comment="Encrypted secret phrase")
    address: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, comment="Reed-Solomon address"
    )
    role: Mapped[str] = mapped_column(String(16), nullable=False, index=True)

    def to_account(self) -> Account:
        return Account(id=self.id, role=AccountRole(self.role), address=self.address)

    def __repr__(self) -> str:
        return f"<AccountRecord id={self.id} address={self.address} role={self.role}>"
