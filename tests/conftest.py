"""
Shared fixtures: a file-backed SQLite ledger per test with a small catalog
and two provisioned accounts.
"""

import pytest
from sqlalchemy import func
from sqlmodel import Session, select

from merch_ledger.auth import authenticate
from merch_ledger.catalog import seed_items
from merch_ledger.db import init_db, make_engine, transaction
from merch_ledger.models import Account

TEST_ITEMS = {"t-shirt": 500, "cup": 150, "pen": 10}


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    init_db(engine, seed=False)
    with transaction(engine) as session:
        seed_items(session, TEST_ITEMS)
    yield engine
    engine.dispose()


@pytest.fixture
def alice(engine):
    return authenticate(engine, "alice", "alice123")


@pytest.fixture
def bob(engine):
    return authenticate(engine, "bob", "bob123")


@pytest.fixture
def balance(engine):
    def _balance(account_id):
        with Session(engine) as session:
            return session.get(Account, account_id).balance

    return _balance


@pytest.fixture
def count(engine):
    """Row count of a table, e.g. count(Transfer)."""

    def _count(model, *where):
        with Session(engine) as session:
            stmt = select(func.count()).select_from(model)
            if where:
                stmt = stmt.where(*where)
            return session.exec(stmt).one()

    return _count
