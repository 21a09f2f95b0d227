# -------------------------------------------------------
# db.py — SQLAlchemy engine, connection wrapper and transactions
# -------------------------------------------------------

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from sqlalchemy import create_engine, exc, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import declarative_base

from .config import DatabaseSettings
from .errors import AppError, ErrorGroup, ErrorKind

logger = logging.getLogger(__name__)

# Declarative base shared by every table in models.py
Base = declarative_base()

Params = Optional[Mapping[str, Any]]
QueryResult = Union[List[Dict[str, Any]], int]


def create_db_engine(db_settings: DatabaseSettings) -> Engine:
    """
    Build the engine for one configured backend.

    MySQL gets a fixed-size pool (no overflow) and a bounded wait: when
    every connection is busy a request waits at most `pool_timeout`
    seconds, then fails with DB_POOL_EXHAUSTED.
    """
    url = db_settings.database_url
    options: Dict[str, Any] = {"pool_pre_ping": True}

    if db_settings.type in ("local", "freesql"):
        # pool_recycle avoids "MySQL server has gone away" after wait_timeout
        options.update(
            pool_recycle=3600,
            pool_size=db_settings.pool_size,
            max_overflow=0,
            pool_timeout=db_settings.pool_timeout,
        )
    elif db_settings.type == "sqlite":
        options["connect_args"] = {"check_same_thread": False}

    try:
        return create_engine(url, **options)
    except (exc.ArgumentError, exc.NoSuchModuleError) as err:
        raise AppError(ErrorKind.DB_CONNECTION_ERROR, cause=err, db_type=db_settings.type)


def _translate(err: Exception, sql: str) -> AppError:
    if isinstance(err, exc.TimeoutError):
        return AppError(ErrorKind.DB_POOL_EXHAUSTED, cause=err)
    if isinstance(err, exc.IntegrityError):
        return AppError(ErrorKind.DB_DUPLICATE_ENTRY, cause=err, sql=sql)
    if isinstance(err, exc.DBAPIError) and err.connection_invalidated:
        return AppError(ErrorKind.DB_CONNECTION_ERROR, cause=err, sql=sql)
    if isinstance(err, exc.ResourceClosedError):
        return AppError(ErrorKind.DB_CONNECTION_CLOSED, cause=err, sql=sql)
    return AppError(ErrorKind.DB_QUERY_ERROR, cause=err, sql=sql)


def _execute(conn: Connection, sql: str, params: Params) -> QueryResult:
    try:
        result = conn.execute(text(sql), dict(params or {}))
    except exc.SQLAlchemyError as err:
        raise _translate(err, sql)

    # SELECT -> list of plain dicts / INSERT, UPDATE, DELETE -> affected rows
    if result.returns_rows:
        return [dict(row._mapping) for row in result]
    return result.rowcount


class Transaction:
    """
    One open transaction holding a dedicated pooled connection.

    The connection goes back to the pool on commit, on rollback, and when
    either of them fails.
    """

    def __init__(self, conn: Connection):
        self._conn = conn
        self._trans = conn.begin()

    @property
    def active(self) -> bool:
        return self._conn is not None

    def query(self, sql: str, params: Params = None) -> QueryResult:
        if self._conn is None:
            raise AppError(
                ErrorKind.DB_CONNECTION_CLOSED,
                cause=RuntimeError("transaction already finished"),
            )
        return _execute(self._conn, sql, params)

    def commit(self) -> None:
        try:
            self._trans.commit()
        except exc.SQLAlchemyError as err:
            raise AppError(ErrorKind.DB_TRANSACTION_ERROR, cause=err)
        finally:
            self._release()

    def rollback(self) -> None:
        if self._conn is None:
            logger.warning("No active transaction to rollback.")
            return
        try:
            self._trans.rollback()
        except exc.SQLAlchemyError as err:
            raise AppError(ErrorKind.DB_TRANSACTION_ERROR, cause=err)
        finally:
            self._release()

    def _release(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


Step = Callable[[Transaction], Any]


class Database:
    """
    Thin wrapper over an Engine: plain queries plus step-list transactions.

    Repositories receive an already-built Database; nothing here connects
    lazily on first use.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_settings(cls, db_settings: DatabaseSettings) -> "Database":
        return cls(create_db_engine(db_settings))

    def _connect(self) -> Connection:
        try:
            return self.engine.connect()
        except exc.TimeoutError as err:
            raise AppError(ErrorKind.DB_POOL_EXHAUSTED, cause=err)
        except exc.SQLAlchemyError as err:
            raise AppError(ErrorKind.DB_CONNECTION_ERROR, cause=err)

    def query(self, sql: str, params: Params = None) -> QueryResult:
        """Run one statement in its own short transaction."""
        with self._connect() as conn:
            result = _execute(conn, sql, params)
            conn.commit()
            return result

    def begin(self) -> Transaction:
        conn = self._connect()
        try:
            return Transaction(conn)
        except exc.SQLAlchemyError as err:
            conn.close()
            raise AppError(ErrorKind.DB_TRANSACTION_ERROR, cause=err)

    def execute_transaction(self, steps: Sequence[Step]) -> List[Any]:
        """
        Run `steps` in order inside one transaction and return their results.

        Each step is called with the Transaction and issues its own queries
        through it. The first failure rolls everything back; nothing is
        retried. Domain errors (not-found, validation, ...) raised by a
        step propagate unchanged, anything else surfaces as
        DB_TRANSACTION_ERROR.
        """
        tx = self.begin()
        results: List[Any] = []
        try:
            for step in steps:
                results.append(step(tx))
        except AppError as err:
            tx.rollback()
            if err.kind.group is ErrorGroup.DATABASE:
                raise AppError(ErrorKind.DB_TRANSACTION_ERROR, cause=err, failed=err.code)
            raise
        except Exception as err:
            tx.rollback()
            raise AppError(ErrorKind.DB_TRANSACTION_ERROR, cause=err)
        tx.commit()
        return results

    def dispose(self) -> None:
        self.engine.dispose()
