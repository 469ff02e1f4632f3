import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy.engine import Engine
from sqlmodel import Session

from . import accounts, ledger


class InventoryItem(BaseModel):
    type: str
    quantity: int


class PurchaseRecord(BaseModel):
    id: uuid.UUID
    created_at: datetime
    item: str
    amount: int


class TransferRecord(BaseModel):
    id: uuid.UUID
    created_at: datetime
    amount: int
    from_username: Optional[str] = None
    to_username: str

    @property
    def is_grant(self) -> bool:
        return self.from_username is None


class AccountSummary(BaseModel):
    account_id: uuid.UUID
    username: str
    balance: int
    inventory: List[InventoryItem]
    purchases: List[PurchaseRecord]
    received: List[TransferRecord]
    sent: List[TransferRecord]


def get_account_summary(engine: Engine, account_id: uuid.UUID) -> AccountSummary:
    """Balance and ledger history of an account.

    Reads without locks: a mutation in flight may or may not be reflected.
    """
    with Session(engine) as session:
        account = accounts.get_by_id(session, account_id)
        inventory = [InventoryItem(type=name, quantity=count) for name, count in ledger.count_items(session, account_id)]
        purchases = [
            PurchaseRecord(id=p.id, created_at=p.created_at, item=name, amount=p.amount)
            for p, name in ledger.list_purchases(session, account_id)
        ]
        received, sent = [], []
        for t, from_username, to_username in ledger.list_transfers(session, account_id):
            record = TransferRecord(
                id=t.id,
                created_at=t.created_at,
                amount=t.amount,
                from_username=from_username,
                to_username=to_username,
            )
            if t.destination_account_id == account_id:
                received.append(record)
            if t.source_account_id == account_id:
                sent.append(record)

        return AccountSummary(
            account_id=account.id,
            username=account.username,
            balance=account.balance,
            inventory=inventory,
            purchases=purchases,
            received=received,
            sent=sent,
        )
