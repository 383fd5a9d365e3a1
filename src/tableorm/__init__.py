"""
Small ORM over MySQL (and SQLite) with one-to-many relations.

Tables are declared with a name, an integer key and typed properties such
as ``varchar(64)`` or ``Post[]``. Declared tables are validated against
each other and the live database before the first row operation.

    orm = tableorm.connect()
    posts = orm.declare_table('Post', 'postId', [
        {'name': 'title', 'type': 'varchar(256)'},
        {'name': 'userId', 'type': 'int'},
    ])
    users = orm.declare_table('User', 'userId', [
        {'name': 'name', 'type': 'varchar(64)'},
        {'name': 'posts', 'type': 'Post[]'},
    ])
    users.insert_into({'name': 'ada', 'posts': [{'title': 'hello'}]})
"""
__version__ = '0.1.0'

from collections.abc import Mapping
from typing import Any

from tableorm.client import Orm
from tableorm.exceptions import ConsistencyWarning, DbConnectionError
from tableorm.exceptions import DriverError, OrmError, ParseError
from tableorm.exceptions import SchemaError, TypeMismatchError, UsageError
from tableorm.options import DatabaseOptions
from tableorm.parsing import ColumnType, ParsedType, parse_type, tokenize
from tableorm.schema import Property, Schema, ValidationState
from tableorm.table import Table
from tableorm.types import CURRENT_TIMESTAMP, assert_type, get_datetime
from tableorm.types import read_bool, sanitize
from tableorm.validator import ValidationReport


def connect(options: DatabaseOptions | Mapping[str, Any] | None = None, **kw: Any) -> Orm:
    """Create an Orm client; the database connection opens on first use.
    """
    return Orm(options, **kw)


__all__ = [
    'connect',
    'Orm',
    'Table',
    'Property',
    'Schema',
    'ValidationState',
    'ValidationReport',
    'DatabaseOptions',
    'ColumnType',
    'ParsedType',
    'tokenize',
    'parse_type',
    'sanitize',
    'assert_type',
    'read_bool',
    'get_datetime',
    'CURRENT_TIMESTAMP',
    'OrmError',
    'ParseError',
    'SchemaError',
    'TypeMismatchError',
    'UsageError',
    'ConsistencyWarning',
    'DriverError',
    'DbConnectionError',
]
