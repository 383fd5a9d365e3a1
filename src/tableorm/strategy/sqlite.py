"""
SQLite-specific strategy implementation.

SQLite has no INFORMATION_SCHEMA; metadata is read with the table_info
pragma and the declared type text is split into type name and length.
SQLite also has no multi-table DELETE, so cascades use a key subquery.
"""
import logging
import re
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa

from tableorm.strategy.base import ColumnInfo, DatabaseStrategy, register_strategy
from tableorm.types import sanitize

if TYPE_CHECKING:
    from tableorm.connection import ConnectionWrapper
    from tableorm.options import DatabaseOptions

logger = logging.getLogger(__name__)

_DECLARED_TYPE = re.compile(r'\s*(?P<name>[A-Za-z]+)\s*(?:\(\s*(?P<length>\d+)\s*\))?')


def parse_declared_type(declared: str) -> tuple[str, int | None]:
    """Split a SQLite declared type like ``VARCHAR(256)`` into name and length.
    """
    match = _DECLARED_TYPE.match(declared or '')
    if not match:
        return (declared or '').lower(), None
    length = match.group('length')
    return match.group('name').lower(), int(length) if length else None


@register_strategy('sqlite')
class SQLiteStrategy(DatabaseStrategy):
    """SQLite-specific operations.
    """

    @property
    def dialect_name(self) -> str:
        return 'sqlite'

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for SQLite."""
        return sa.URL.create(drivername='sqlite', database=options.database)

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        # the one shared connection may be used from any thread
        return {'connect_args': {'check_same_thread': False}}

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['database']

    def get_columns(self, cn: 'ConnectionWrapper', table: str) -> list[ColumnInfo]:
        """Get columns from the table_info pragma.
        """
        sql = f'SELECT name, type FROM pragma_table_info({sanitize(table, quote_char=self.string_quote)}) ORDER BY cid'
        columns = []
        for row in cn.select(sql):
            data_type, length = parse_declared_type(row['type'])
            if data_type != 'varchar':
                length = None
            columns.append(ColumnInfo(name=row['name'], data_type=data_type, max_length=length))
        logger.debug(f'Found {len(columns)} columns for {table}')
        return columns

    def build_cascade_delete(self, child_table: str, owner_table: str,
                             owner_key: str, where_sql: str) -> str:
        return (f'DELETE FROM {child_table} WHERE {child_table}.{owner_key} IN '
                f'(SELECT {owner_table}.{owner_key} FROM {owner_table} WHERE {where_sql})')
