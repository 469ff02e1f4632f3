"""
Account store: reads, row locks and balance writes on the accounts table.

Every function works on a caller-supplied session. The locking functions
must be called inside an open transaction (see db.transaction); the locks
they take are released when that transaction commits or rolls back.
"""

import uuid
from typing import Dict, Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .errors import AccountNotFound, AlreadyExists
from .models import Account


def get_by_id(session: Session, account_id: uuid.UUID) -> Account:
    account = session.get(Account, account_id)
    if account is None:
        raise AccountNotFound(f"Account {account_id} not found", details={"account_id": str(account_id)})
    return account


def get_by_username(session: Session, username: str) -> Optional[Account]:
    return session.exec(select(Account).where(Account.username == username)).first()


def lock_for_update(session: Session, account_id: uuid.UUID) -> Account:
    stmt = (
        select(Account)
        .where(Account.id == account_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    account = session.exec(stmt).first()
    if account is None:
        raise AccountNotFound(f"Account {account_id} not found", details={"account_id": str(account_id)})
    return account


def lock_many_for_update(session: Session, account_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Account]:
    """Lock several accounts, always in ascending id order.

    Two transactions locking the same pair from opposite ends would
    otherwise wait on each other forever.
    """
    locked = {}
    for account_id in sorted(set(account_ids)):
        locked[account_id] = lock_for_update(session, account_id)
    return locked


def set_balance(session: Session, account_id: uuid.UUID, balance: int) -> Account:
    # Callers validate balance >= 0 while holding the row lock.
    account = get_by_id(session, account_id)
    account.balance = balance
    session.add(account)
    session.flush()
    return account


def create(session: Session, username: str, credential_hash: str, initial_balance: int) -> Account:
    account = Account(username=username, credential_hash=credential_hash, balance=initial_balance)
    session.add(account)
    try:
        session.flush()
    except IntegrityError as e:
        if _is_username_conflict(e):
            raise AlreadyExists(f"Username {username!r} is taken", details={"username": username}) from e
        raise
    return account


def _is_username_conflict(e: IntegrityError) -> bool:
    # postgres reports unique_violation as SQLSTATE 23505 (psycopg: sqlstate,
    # psycopg2: pgcode) and names the constraint in the diagnostics.
    code = getattr(e.orig, "sqlstate", None) or getattr(e.orig, "pgcode", None)
    if code is not None:
        constraint = getattr(getattr(e.orig, "diag", None), "constraint_name", None)
        return code == "23505" and (constraint is None or "username" in constraint)
    # sqlite has no SQLSTATE: "UNIQUE constraint failed: accounts.username"
    return "UNIQUE constraint failed: accounts.username" in str(e.orig)
