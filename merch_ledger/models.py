import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import CheckConstraint
from sqlmodel import Column, Field, SQLModel, String


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Account(SQLModel, table=True):
    __tablename__ = "accounts"
    __table_args__ = (CheckConstraint("balance >= 0", name="accounts_balance_check"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    username: str = Field(sa_column=Column(String, unique=True, nullable=False))
    credential_hash: str
    balance: int = 0


class Item(SQLModel, table=True):
    __tablename__ = "items"
    __table_args__ = (CheckConstraint("price > 0", name="items_price_check"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(sa_column=Column(String, unique=True, nullable=False))
    price: int


class Purchase(SQLModel, table=True):
    __tablename__ = "purchases"
    __table_args__ = (CheckConstraint("amount > 0", name="purchases_amount_check"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=_now, index=True)
    account_id: uuid.UUID = Field(foreign_key="accounts.id", index=True)
    item_id: uuid.UUID = Field(foreign_key="items.id")
    amount: int


class Transfer(SQLModel, table=True):
    """A directed movement of coins. A null source marks a grant."""

    __tablename__ = "transfers"
    __table_args__ = (
        CheckConstraint("amount > 0", name="transfers_amount_check"),
        CheckConstraint(
            "source_account_id IS NULL OR source_account_id <> destination_account_id",
            name="transfers_distinct_accounts_check",
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=_now, index=True)
    source_account_id: Optional[uuid.UUID] = Field(default=None, foreign_key="accounts.id", index=True)
    destination_account_id: uuid.UUID = Field(foreign_key="accounts.id", index=True)
    amount: int
