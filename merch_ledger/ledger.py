"""
Append-only ledger entries.

Entries are only ever inserted, in the same transaction as the balance
change they describe. Nothing here updates or deletes a row.
"""

import uuid
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import aliased
from sqlmodel import Session, select

from .models import Account, Item, Purchase, Transfer


def record_purchase(session: Session, account_id: uuid.UUID, item: Item) -> Purchase:
    entry = Purchase(account_id=account_id, item_id=item.id, amount=item.price)
    session.add(entry)
    session.flush()
    return entry


def record_transfer(
    session: Session,
    source_account_id: Optional[uuid.UUID],
    destination_account_id: uuid.UUID,
    amount: int,
) -> Transfer:
    entry = Transfer(
        source_account_id=source_account_id,
        destination_account_id=destination_account_id,
        amount=amount,
    )
    session.add(entry)
    session.flush()
    return entry


def record_grant(session: Session, account_id: uuid.UUID, amount: int) -> Transfer:
    return record_transfer(session, None, account_id, amount)


def list_purchases(session: Session, account_id: uuid.UUID) -> List[Tuple[Purchase, str]]:
    stmt = (
        select(Purchase, Item.name)
        .join(Item, Purchase.item_id == Item.id)
        .where(Purchase.account_id == account_id)
        .order_by(Purchase.created_at, Purchase.id)
    )
    return list(session.exec(stmt).all())


def count_items(session: Session, account_id: uuid.UUID) -> List[Tuple[str, int]]:
    stmt = (
        select(Item.name, func.count(Purchase.id))
        .select_from(Purchase)
        .join(Item, Purchase.item_id == Item.id)
        .where(Purchase.account_id == account_id)
        .group_by(Item.name)
        .order_by(Item.name)
    )
    return [(name, count) for name, count in session.exec(stmt).all()]


def list_transfers(
    session: Session, account_id: uuid.UUID
) -> List[Tuple[Transfer, Optional[str], str]]:
    """Transfers touching the account, with both usernames.

    The source username is None for grants.
    """
    source = aliased(Account)
    destination = aliased(Account)
    stmt = (
        select(Transfer, source.username, destination.username)
        .select_from(Transfer)
        .join(destination, Transfer.destination_account_id == destination.id)
        .outerjoin(source, Transfer.source_account_id == source.id)
        .where(
            or_(
                Transfer.source_account_id == account_id,
                Transfer.destination_account_id == account_id,
            )
        )
        .order_by(Transfer.created_at, Transfer.id)
    )
    return list(session.exec(stmt).all())
