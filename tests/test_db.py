import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from merch_ledger.db import Deadline, transaction
from merch_ledger.errors import DeadlineExceeded


class DriverError(Exception):
    def __init__(self, message, sqlstate=None):
        super().__init__(message)
        self.sqlstate = sqlstate


def _operational_error(message, sqlstate=None):
    return OperationalError("SELECT 1", {}, DriverError(message, sqlstate))


@pytest.mark.parametrize(
    "error",
    [
        _operational_error("canceling statement due to lock timeout", "55P03"),
        _operational_error("canceling statement due to statement timeout", "57014"),
        _operational_error("database is locked"),
    ],
)
def test_lock_timeout_becomes_deadline_exceeded(engine, error):
    with pytest.raises(DeadlineExceeded) as exc_info:
        with transaction(engine, Deadline(30)):
            raise error

    assert exc_info.value.details == {"timeout": 30}
    assert exc_info.value.__cause__ is error


def test_lock_timeout_without_deadline_propagates(engine):
    error = _operational_error("database is locked")
    with pytest.raises(OperationalError):
        with transaction(engine):
            raise error


def test_other_operational_error_propagates(engine):
    error = _operational_error("disk I/O error", "58030")
    with pytest.raises(OperationalError):
        with transaction(engine, Deadline(30)):
            raise error


def test_busy_timeout_follows_the_deadline(engine, monkeypatch):
    monkeypatch.setattr("merch_ledger.config.SQLITE_BUSY_TIMEOUT", 7)

    with transaction(engine, Deadline(2)) as session:
        bounded = session.execute(text("PRAGMA busy_timeout")).scalar()
    with transaction(engine) as session:
        restored = session.execute(text("PRAGMA busy_timeout")).scalar()

    assert 0 < bounded <= 2000
    assert restored == 7000
