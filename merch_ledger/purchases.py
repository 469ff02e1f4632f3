import logging
import uuid
from typing import Optional

from sqlalchemy.engine import Engine

from . import accounts, catalog, ledger
from .db import Deadline, transaction
from .errors import InsufficientBalance, InvalidRequest
from .models import Purchase

logger = logging.getLogger(__name__)


def purchase(engine: Engine, account_id: uuid.UUID, item_name: str, timeout: Optional[float] = None) -> Purchase:
    """Buy one item, debiting its current price from the account.

    Raises ItemNotFound, InsufficientBalance or DeadlineExceeded; on any
    error nothing is written.
    """
    if not item_name:
        raise InvalidRequest("empty item")

    deadline = Deadline.after(timeout)
    # Prices never change while the engine runs, so the item is read before locking.
    with transaction(engine, deadline) as session:
        item = catalog.get_by_name(session, item_name)

    with transaction(engine, deadline) as session:
        account = accounts.lock_for_update(session, account_id)
        balance = account.balance - item.price
        if balance < 0:
            logger.info(
                "account %s refused %s: balance %d, price %d", account_id, item.name, account.balance, item.price
            )
            raise InsufficientBalance(account_id, required=item.price, available=account.balance)
        entry = ledger.record_purchase(session, account_id, item)
        accounts.set_balance(session, account_id, balance)

    logger.info("account %s bought %s for %d, balance %d", account_id, item.name, item.price, balance)
    return entry
