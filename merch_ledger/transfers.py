import logging
import uuid
from typing import Optional

from sqlalchemy.engine import Engine

from . import accounts, ledger
from .db import Deadline, transaction
from .errors import DestinationNotFound, InsufficientBalance, InvalidAmount, InvalidRequest, SameAccount
from .models import Transfer

logger = logging.getLogger(__name__)


def transfer(
    engine: Engine,
    source_account_id: uuid.UUID,
    destination_username: str,
    amount: int,
    timeout: Optional[float] = None,
) -> Transfer:
    """Move coins from one account to another, identified by username.

    Both rows are locked in ascending id order before the balance check, so
    concurrent transfers in opposite directions between the same pair
    serialize instead of deadlocking.
    """
    if not destination_username:
        raise InvalidRequest("empty destination username")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount("amount must be a positive integer", details={"amount": amount})

    deadline = Deadline.after(timeout)
    with transaction(engine, deadline) as session:
        destination = accounts.get_by_username(session, destination_username)
    if destination is None:
        raise DestinationNotFound(
            f"Account {destination_username!r} not found", details={"username": destination_username}
        )
    destination_id = destination.id
    if destination_id == source_account_id:
        raise SameAccount("source and destination accounts are equal", details={"account_id": str(destination_id)})

    with transaction(engine, deadline) as session:
        locked = accounts.lock_many_for_update(session, {source_account_id, destination_id})
        source_balance = locked[source_account_id].balance - amount
        if source_balance < 0:
            logger.info(
                "account %s refused transfer of %d: balance %d",
                source_account_id,
                amount,
                locked[source_account_id].balance,
            )
            raise InsufficientBalance(
                source_account_id, required=amount, available=locked[source_account_id].balance
            )
        destination_balance = locked[destination_id].balance + amount
        entry = ledger.record_transfer(session, source_account_id, destination_id, amount)
        accounts.set_balance(session, source_account_id, source_balance)
        accounts.set_balance(session, destination_id, destination_balance)

    logger.info("account %s sent %d to %s", source_account_id, amount, destination_id)
    return entry
