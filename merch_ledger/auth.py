"""
Password authentication that provisions accounts on first sight.

The first successful call for a username creates the account together with
a grant of the starting balance. Concurrent first calls race on the
username's unique constraint; losers re-read the winner's account and
verify against it, so exactly one account and one grant ever exist.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session

from . import accounts, config, ledger, security
from .db import transaction
from .errors import AlreadyExists, InvalidCredential, InvalidRequest
from .models import Account

logger = logging.getLogger(__name__)

# A lost creation race is followed by a re-read that must see the winner.
PROVISION_ATTEMPTS = 3


def authenticate(engine: Engine, username: str, secret: str, starting_balance: Optional[int] = None) -> uuid.UUID:
    if not username:
        raise InvalidRequest("empty username")
    if not secret:
        raise InvalidRequest("empty password")
    if starting_balance is None:
        starting_balance = config.STARTING_BALANCE
    if starting_balance < 0:
        raise InvalidRequest("starting balance must not be negative")

    last_conflict = None
    for attempt in range(PROVISION_ATTEMPTS):
        with Session(engine, expire_on_commit=False) as session:
            account = accounts.get_by_username(session, username)
        if account is not None:
            _verify(account, secret)
            return account.id

        try:
            account = provision(engine, username, secret, starting_balance)
        except AlreadyExists as e:
            logger.info("lost provisioning race for %s, re-reading (attempt %d)", username, attempt + 1)
            last_conflict = e
            continue
        return account.id

    # Only reachable if the winning row vanished between conflict and re-read.
    raise last_conflict


def provision(engine: Engine, username: str, secret: str, starting_balance: int) -> Account:
    credential_hash = security.hash_secret(secret)
    with transaction(engine) as session:
        account = accounts.create(session, username, credential_hash, starting_balance)
        if starting_balance > 0:
            ledger.record_grant(session, account.id, starting_balance)
    logger.info("provisioned account %s for %s with %d coins", account.id, username, starting_balance)
    return account


def _verify(account: Account, secret: str):
    if not security.verify_secret(secret, account.credential_hash):
        raise InvalidCredential("invalid username or password", details={"username": account.username})
