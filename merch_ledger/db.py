import logging
import math
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, SQLModel, create_engine

from . import config
from .errors import DeadlineExceeded

logger = logging.getLogger(__name__)

# Connection execution option carrying the Deadline of the open transaction.
DEADLINE_OPTION = "ledger_deadline"


def make_engine(url: str, echo: bool = False) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo, pool_pre_ping=True)

    engine = create_engine(
        url,
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": config.SQLITE_BUSY_TIMEOUT},
    )

    # SQLite has no row locks and ignores FOR UPDATE. Taking the write lock at
    # BEGIN serializes writers instead, so read-check-write stays atomic.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        # Pooled connections keep the last busy_timeout, so it is set on every BEGIN.
        deadline = conn.get_execution_options().get(DEADLINE_OPTION)
        if deadline is None:
            busy_ms = int(config.SQLITE_BUSY_TIMEOUT * 1000)
        else:
            busy_ms = max(1, math.ceil(deadline.remaining() * 1000))
        conn.exec_driver_sql(f"PRAGMA busy_timeout = {busy_ms}")
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = make_engine(config.DATABASE_URL)


def get_engine() -> Engine:
    return engine


def init_db(bind: Optional[Engine] = None, seed: Optional[bool] = None):
    from .catalog import seed_items
    from .models import Account, Item, Purchase, Transfer  # noqa

    bind = bind or engine
    SQLModel.metadata.create_all(bind)
    if seed is None:
        seed = config.SEED_CATALOG
    if seed:
        with transaction(bind) as session:
            seed_items(session)
    logger.info("database ready (%s)", bind.url.render_as_string(hide_password=True))


class Deadline:
    """Point in time after which a transaction must not commit."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        self.expires_at = time.monotonic() + seconds

    @classmethod
    def after(cls, seconds: Optional[float]) -> Optional["Deadline"]:
        if seconds is None:
            return None
        return cls(seconds)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def check(self):
        if self.expired():
            raise DeadlineExceeded(
                f"deadline of {self.seconds}s exceeded",
                details={"timeout": self.seconds},
            )


@contextmanager
def transaction(bind: Engine, deadline: Optional[Deadline] = None) -> Iterator[Session]:
    """Open a session with one transaction around the block.

    Commits when the block finishes and rolls back when it raises, so row
    locks taken inside never outlive the block. With a deadline, waiting for
    locks is bounded by it, a lock or statement timeout surfaces as
    DeadlineExceeded, and the commit is refused once it has passed.
    """
    with Session(bind, expire_on_commit=False) as session:
        try:
            with session.begin():
                if deadline is not None:
                    # Begins on this connection, so the deadline is visible at BEGIN.
                    session.connection(execution_options={DEADLINE_OPTION: deadline})
                    _apply_timeouts(session, deadline)
                yield session
                if deadline is not None:
                    deadline.check()
        except OperationalError as e:
            if deadline is not None and (deadline.expired() or _is_lock_timeout(e)):
                raise DeadlineExceeded(
                    f"deadline of {deadline.seconds}s exceeded while waiting for a lock",
                    details={"timeout": deadline.seconds},
                ) from e
            raise


def _apply_timeouts(session: Session, deadline: Deadline):
    if session.get_bind().dialect.name != "postgresql":
        return
    # A zero timeout disables the limit in PostgreSQL.
    ms = max(1, int(deadline.remaining() * 1000))
    session.execute(text(f"SET LOCAL lock_timeout = {ms}"))
    session.execute(text(f"SET LOCAL statement_timeout = {ms}"))


def _is_lock_timeout(e: OperationalError) -> bool:
    # postgres: lock_not_available, query_canceled
    code = getattr(e.orig, "sqlstate", None) or getattr(e.orig, "pgcode", None)
    if code is not None:
        return code in ("55P03", "57014")
    return "database is locked" in str(e.orig)
