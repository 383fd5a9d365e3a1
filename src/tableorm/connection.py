"""
Database connection handling with SQLAlchemy.

This module provides:
1. Engine creation and management through a thread-safe registry
2. The `check_connection` retry decorator for establishing connections
3. The `ConnectionWrapper` class: one shared DBAPI connection, opened
   lazily on first use and reused for every statement afterwards

Statements are plain SQL text without bind parameters; values are rendered
into the text by `tableorm.types.sanitize`.
"""
import atexit
import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from functools import wraps
from typing import Any, Self, TypeVar

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from tableorm.exceptions import DbConnectionError
from tableorm.options import DatabaseOptions
from tableorm.strategy import DatabaseStrategy, get_strategy

__all__ = [
    'ConnectionWrapper',
    'check_connection',
    'create_url_from_options',
    'get_engine_for_options',
    'dispose_all_engines',
]

logger = logging.getLogger(__name__)

T = TypeVar('T')
_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()


def create_url_from_options(options: DatabaseOptions) -> sa.URL:
    """Convert DatabaseOptions to SQLAlchemy URL.
    """
    return get_strategy(options.drivername).build_connection_url(options)


def check_connection(func: Callable[..., T] | None = None, *, max_retries: int = 3,
                     retry_delay: float = 1, retry_errors: type | tuple[type, ...] | None = None,
                     retry_backoff: float = 1.5,
                     sleep_func: Callable[[float], None] = time.sleep) -> Callable[..., T]:
    """Connection retry decorator with backoff.

    Retries the wrapped call when it fails with a connection error.
    Supports both @check_connection and @check_connection() syntax.
    """
    def decorator(f: Callable[..., T]) -> Callable[..., T]:
        @wraps(f)
        def inner(*args: Any, **kwargs: Any) -> T:
            error_types = retry_errors if retry_errors is not None else DbConnectionError

            tries = 0
            delay = retry_delay
            while tries < max_retries:
                try:
                    return f(*args, **kwargs)
                except error_types as err:
                    tries += 1
                    if tries >= max_retries:
                        logger.error(f'Maximum retries ({max_retries}) exceeded: {err}')
                        raise
                    logger.warning(f'Connection error (attempt {tries}/{max_retries}): {err}')
                    sleep_func(delay)
                    delay *= retry_backoff

        return inner

    if func is None:
        return decorator
    return decorator(func)


def get_engine_for_options(options: DatabaseOptions,
                           engine_factory: Callable[..., Engine] = sa.create_engine,
                           **kwargs: Any) -> Engine:
    """Get or create a SQLAlchemy engine for the given options.
    """
    # keyed with the password, which str(URL) masks
    url = create_url_from_options(options)
    key = url.render_as_string(hide_password=False)

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {options.drivername}')
            return _engine_registry[key]

        strategy = get_strategy(options.drivername)
        engine_kwargs: dict[str, Any] = {'echo': False, 'poolclass': NullPool}
        engine_kwargs.update(strategy.get_engine_kwargs(options))
        engine_kwargs.update(kwargs)

        engine = engine_factory(url, **engine_kwargs)

        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {options.drivername}')

        return engine


def dispose_all_engines() -> None:
    """Dispose all engines in the registry.
    """
    with _engine_registry_lock:
        for engine in list(_engine_registry.values()):
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)


class ConnectionWrapper:
    """Shared database connection.

    The connection is established on the first statement and reused for the
    lifetime of the wrapper; it is not pooled. Statements from different
    threads are serialized on the one connection. There is no statement
    timeout: a hung server call blocks the caller.
    """

    def __init__(self, options: DatabaseOptions) -> None:
        self.options = options
        self.strategy: DatabaseStrategy = get_strategy(options.drivername)
        self.engine: Engine | None = None
        self.dbapi_connection: Any = None
        self.calls = 0
        self.time = 0
        self._lock = threading.RLock()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    @property
    def dialect(self) -> str:
        """Return the dialect name ('mysql' or 'sqlite')."""
        return self.strategy.dialect_name

    @property
    def connected(self) -> bool:
        return self.dbapi_connection is not None

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    @check_connection
    def _open(self) -> tuple[Engine, Any]:
        engine = get_engine_for_options(self.options)
        return engine, engine.raw_connection()

    def ensure_connected(self) -> Any:
        """Open the shared connection if it is not open yet.
        """
        with self._lock:
            if self.dbapi_connection is None:
                self.engine, self.dbapi_connection = self._open()
                logger.debug(f'Connected to {self.dialect} database {self.options.database}')
            return self.dbapi_connection

    @contextmanager
    def _cursor(self, sql: str) -> Iterator[Any]:
        """Execute one statement and yield its cursor, committing afterwards.
        """
        with self._lock:
            connection = self.ensure_connected()
            start = time.time()
            cursor = connection.cursor()
            logger.debug(f'SQL:\n{sql}')
            try:
                cursor.execute(sql)
                yield cursor
                connection.commit()
            except Exception:
                logger.error(f'Error with query:\nSQL:\n{sql}')
                try:
                    connection.rollback()
                except Exception as err:
                    logger.debug(f'Rollback failed: {err}')
                raise
            finally:
                cursor.close()
                elapsed = time.time() - start
                self.addcall(elapsed)
                logger.debug(f'Query time: {elapsed:.4f}s')

    @staticmethod
    def _fetch_rows(cursor: Any) -> tuple[list[str], list[dict[str, Any]]]:
        columns = [desc[0] for desc in cursor.description]
        return columns, [dict(zip(columns, row)) for row in cursor.fetchall()]

    def select(self, sql: str) -> list[dict[str, Any]]:
        """Execute a query and return its rows as dictionaries.
        """
        with self._cursor(sql) as cursor:
            if cursor.description is None:
                return []
            _, rows = self._fetch_rows(cursor)
        logger.debug(f'Select query returned {len(rows)} rows')
        return rows

    def execute(self, sql: str) -> int:
        """Execute a statement and return the affected row count.
        """
        with self._cursor(sql) as cursor:
            return cursor.rowcount

    def run(self, sql: str) -> tuple[list[str] | None, list[dict[str, Any]] | int]:
        """Execute any statement.

        Returns
            (columns, rows) for statements producing a result set,
            otherwise (None, affected row count)
        """
        with self._cursor(sql) as cursor:
            if cursor.description is None:
                return None, cursor.rowcount
            return self._fetch_rows(cursor)

    def close(self) -> None:
        """Close the shared connection; the next statement reopens it.
        """
        with self._lock:
            if self.dbapi_connection is None:
                return
            try:
                self.dbapi_connection.close()
            finally:
                self.dbapi_connection = None
            logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s '
                         f'(avg: {self.time/max(1, self.calls):.3f}s per query)')
