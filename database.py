"""Database setup, session management and write notifications."""
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from functools import lru_cache
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from config import settings
from live import QueryNotifier

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()

# Key under which each session collects the names of the tables it wrote to
TOUCHED_TABLES = "touched_tables"

def _mark_touched(session: Session, *tables: str) -> None:
    session.info.setdefault(TOUCHED_TABLES, set()).update(tables)


def _track_flush(session, flush_context):
    """Record tables written by ORM unit-of-work flushes."""
    for obj in list(session.new) + list(session.dirty) + list(session.deleted):
        _mark_touched(session, obj.__table__.name)


def _track_dml(orm_execute_state):
    """Record tables written by INSERT/UPDATE/DELETE statements."""
    if orm_execute_state.is_insert or orm_execute_state.is_update or orm_execute_state.is_delete:
        _mark_touched(orm_execute_state.session, orm_execute_state.statement.table.name)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Transactional relational store.

    Wraps a SQLAlchemy engine and session factory. Writes happen inside
    ``transaction()``; once a transaction commits, every live query reading
    one of the written tables is re-evaluated and pushed to its subscribers.
    """

    def __init__(self, url: str = None, echo: bool = False):
        self.url = url or settings.database_url
        engine_options = {"echo": echo, "future": True}
        parsed = make_url(self.url)
        if parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:"):
            # A single shared connection keeps an in-memory database alive
            engine_options["poolclass"] = StaticPool
            engine_options["connect_args"] = {"check_same_thread": False}

        self.engine = create_engine(self.url, **engine_options)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.SessionLocal = sessionmaker(self.engine, expire_on_commit=False)
        event.listen(self.SessionLocal, "after_flush", _track_flush)
        event.listen(self.SessionLocal, "do_orm_execute", _track_dml)

        self.notifier = QueryNotifier()
        self._active_session: ContextVar[Optional[Session]] = ContextVar(
            f"active_session_{id(self)}", default=None
        )

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def create_all(self) -> None:
        """Create all tables that do not exist yet."""
        import models  # noqa: F401 - registers the mapped classes on Base

        Base.metadata.create_all(self.engine)
        logger.info(f"Schema ready on {self.engine.url!r}")

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Run the enclosed writes atomically.

        Nested calls join the outermost transaction. Subscribers are notified
        only after a successful commit; a rollback notifies nobody.
        """
        current = self._active_session.get()
        if current is not None:
            yield current
            return

        db = self.SessionLocal()
        token = self._active_session.set(db)
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            self._active_session.reset(token)
            touched = db.info.pop(TOUCHED_TABLES, set())
            db.close()

        if touched:
            self.notifier.notify(touched)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield the active transaction's session, or a short-lived read session."""
        current = self._active_session.get()
        if current is not None:
            yield current
            return

        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()


@lru_cache
def get_database() -> Database:
    """Get the process-wide database configured from settings."""
    return Database(settings.database_url, echo=settings.environment == "development")
