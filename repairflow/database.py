# -*- coding: utf-8 -*-
"""
Relational store access

Every workflow command runs inside `Database.transaction()`: one session, one
commit, rollback on any error. Store-level failures are translated here into
the workflow error taxonomy.
"""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from repairflow.config import get_settings
from repairflow.errors import ConcurrentModification, StoreUnavailable, WorkflowError
from repairflow.tables import Base

logger = logging.getLogger(__name__)

# session.info key holding audit entries already sent in this transaction
AUDITED_KEY = "audited_entries"


def _report_unstored(session: Session) -> None:
    for entry in session.info.get(AUDITED_KEY, ()):
        old = entry.old_status.value if entry.old_status else None
        logger.error(
            f"Audit entry sent for a change that was not stored: order {entry.order_id} "
            f"{old} -> {entry.new_status.value}"
        )


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Engine and session factory for the order store"""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        connect_args = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(url, echo=echo, connect_args=connect_args)
        if url.startswith("sqlite"):
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_all(self) -> None:
        """Create tables that do not exist yet"""
        Base.metadata.create_all(self.engine)
        logger.info(f"Database schema ready: {self.engine.url.render_as_string(hide_password=True)}")

    def session(self) -> Session:
        """Open a bare session (caller owns commit/close)"""
        return self._session_factory()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Run a unit of work; commit on success, roll back on any error"""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except StaleDataError as e:
            _report_unstored(session)
            session.rollback()
            logger.warning(f"Stale write rejected: {e}")
            raise ConcurrentModification(
                "Order was modified by another actor; re-fetch and retry"
            ) from e
        except (OperationalError, InterfaceError) as e:
            _report_unstored(session)
            session.rollback()
            logger.error(f"Store unavailable: {e}")
            raise StoreUnavailable("Order store is unavailable", {"reason": str(e.orig)}) from e
        except WorkflowError as e:
            _report_unstored(session)
            session.rollback()
            logger.warning(f"Command rejected: {e.name}: {e.message}")
            raise
        except Exception:
            _report_unstored(session)
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()


# Singleton
_database: Optional[Database] = None


def get_database() -> Database:
    """Get database singleton"""
    global _database
    if _database is None:
        settings = get_settings()
        url = settings.DATABASE_URL
        if not url:
            settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
            url = f"sqlite:///{settings.DATA_DIR / 'repairflow.db'}"
        _database = Database(url, echo=settings.DB_ECHO)
    return _database
