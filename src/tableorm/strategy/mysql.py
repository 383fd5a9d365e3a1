"""
MySQL-specific strategy implementation.

Column metadata comes from INFORMATION_SCHEMA.COLUMNS of the connected
schema, and cascading deletes use MySQL's multi-table DELETE ... JOIN form.
"""
import logging
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa

from tableorm.strategy.base import ColumnInfo, DatabaseStrategy, register_strategy
from tableorm.types import sanitize

if TYPE_CHECKING:
    from tableorm.connection import ConnectionWrapper
    from tableorm.options import DatabaseOptions

logger = logging.getLogger(__name__)


def _as_text(value: Any) -> str:
    # some server versions report metadata columns as binary strings
    if isinstance(value, bytes | bytearray):
        return value.decode()
    return str(value)


@register_strategy('mysql')
class MySQLStrategy(DatabaseStrategy):
    """MySQL-specific operations.
    """

    @property
    def dialect_name(self) -> str:
        return 'mysql'

    @property
    def string_quote(self) -> str:
        return '"'

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for MySQL through PyMySQL."""
        query = {}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)

        return sa.URL.create(
            drivername='mysql+pymysql',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port or None,
            database=options.database,
            query=query,
        )

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        return {'connect_args': {'charset': 'utf8mb4'}}

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['hostname', 'username', 'database']

    def get_columns(self, cn: 'ConnectionWrapper', table: str) -> list[ColumnInfo]:
        """Get columns from INFORMATION_SCHEMA for the current schema.
        """
        sql = f"""
SELECT COLUMN_NAME, DATA_TYPE, CHARACTER_MAXIMUM_LENGTH
FROM INFORMATION_SCHEMA.COLUMNS
WHERE TABLE_NAME = {sanitize(table, quote_char=self.string_quote)}
AND TABLE_SCHEMA = DATABASE()
ORDER BY ORDINAL_POSITION
"""
        rows = cn.select(sql)
        logger.debug(f'Found {len(rows)} columns for {table}')
        return [
            ColumnInfo(
                name=row['COLUMN_NAME'],
                data_type=_as_text(row['DATA_TYPE']).lower(),
                max_length=row['CHARACTER_MAXIMUM_LENGTH'],
            )
            for row in rows
        ]

    def build_cascade_delete(self, child_table: str, owner_table: str,
                             owner_key: str, where_sql: str) -> str:
        return (f'DELETE {child_table} FROM {child_table} '
                f'INNER JOIN {owner_table} '
                f'ON {owner_table}.{owner_key} = {child_table}.{owner_key} '
                f'WHERE {where_sql}')
