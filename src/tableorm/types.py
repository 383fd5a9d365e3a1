"""
Value handling between Python and SQL text.

This module provides:
- ValueKind / classify: tag a runtime value with the kind of data it carries
- COMPATIBLE_TYPES: static table of which column types accept which kinds
- assert_type: reject values that cannot be stored in a declared column
- sanitize: render a value as a SQL literal
- decode_value / read_bool: turn driver values back into Python values
"""
import datetime
import math
import re
from enum import Enum, auto
from typing import Any
from urllib.parse import quote, unquote

import dateutil.parser

from tableorm.exceptions import TypeMismatchError
from tableorm.parsing import ColumnType, parse_type

__all__ = [
    'CURRENT_TIMESTAMP',
    'COMPATIBLE_TYPES',
    'ValueKind',
    'assert_type',
    'classify',
    'decode_value',
    'get_datetime',
    'read_bool',
    'sanitize',
]

# characters left alone by JavaScript's encodeURI
ENCODE_URI_SAFE = ";,/?:@&=+$-_.!~*'()#"

_NUMERIC_TEXT = re.compile(r'[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?')

_TEXT_TYPES = frozenset({ColumnType.VARCHAR, ColumnType.MEDIUMTEXT})


class _CurrentTimestamp:
    """Sentinel rendered as the database's current timestamp."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'CURRENT_TIMESTAMP'


CURRENT_TIMESTAMP = _CurrentTimestamp()


def get_datetime() -> _CurrentTimestamp:
    """Return the sentinel that stores the current time in a datetime column.
    """
    return CURRENT_TIMESTAMP


class ValueKind(Enum):
    """Kind of data a Python value carries."""
    NULL = auto()
    TEXT = auto()
    NUMERIC_TEXT = auto()
    BOOLEAN_TEXT = auto()
    BOOLEAN = auto()
    BINARY_INTEGER = auto()     # 0 or 1
    INTEGER = auto()
    REAL = auto()
    TIMESTAMP = auto()          # CURRENT_TIMESTAMP sentinel
    DATETIME = auto()


_ALL_TYPES = frozenset(ColumnType)

COMPATIBLE_TYPES: dict[ValueKind, frozenset[ColumnType]] = {
    ValueKind.NULL: _ALL_TYPES,
    ValueKind.TEXT: frozenset({ColumnType.VARCHAR, ColumnType.MEDIUMTEXT}),
    ValueKind.NUMERIC_TEXT: frozenset({ColumnType.VARCHAR, ColumnType.MEDIUMTEXT,
                                       ColumnType.INT, ColumnType.DOUBLE}),
    ValueKind.BOOLEAN_TEXT: frozenset({ColumnType.VARCHAR, ColumnType.MEDIUMTEXT, ColumnType.BIT}),
    ValueKind.BOOLEAN: frozenset({ColumnType.BIT}),
    ValueKind.BINARY_INTEGER: frozenset({ColumnType.BIT, ColumnType.INT, ColumnType.DOUBLE}),
    ValueKind.INTEGER: frozenset({ColumnType.INT, ColumnType.DOUBLE}),
    ValueKind.REAL: frozenset({ColumnType.DOUBLE}),
    ValueKind.TIMESTAMP: frozenset({ColumnType.DATETIME}),
    ValueKind.DATETIME: frozenset({ColumnType.DATETIME}),
}


def classify(value: Any) -> ValueKind:
    """Tag a runtime value with its ValueKind.

    Raises TypeMismatchError for values that have no SQL representation.
    """
    if value is None:
        return ValueKind.NULL
    if value is CURRENT_TIMESTAMP:
        return ValueKind.TIMESTAMP
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, str):
        if value in {'true', 'false'}:
            return ValueKind.BOOLEAN_TEXT
        if _NUMERIC_TEXT.fullmatch(value):
            return ValueKind.NUMERIC_TEXT
        return ValueKind.TEXT
    if isinstance(value, int):
        return ValueKind.BINARY_INTEGER if value in {0, 1} else ValueKind.INTEGER
    if isinstance(value, float):
        if not math.isfinite(value):
            raise TypeMismatchError(f'non-finite number {value!r} cannot be stored')
        return ValueKind.REAL
    if isinstance(value, datetime.date):
        return ValueKind.DATETIME
    raise TypeMismatchError(f'unsupported value type {type(value).__name__}')


def _as_column_type(declared: str | ColumnType) -> ColumnType:
    if isinstance(declared, ColumnType):
        return declared
    column_type = parse_type(declared).column_type
    if column_type is None:
        raise TypeMismatchError(f"'{declared}' is not a primitive column type")
    return column_type


def assert_type(name: str, value: Any, declared: str | ColumnType) -> None:
    """Raise TypeMismatchError unless value can be stored in the declared type.

    Parameters
        name: property name, used in the error message
        value: Python value about to be written or compared
        declared: declared type text (``varchar(256)``) or ColumnType
    """
    column_type = _as_column_type(declared)
    kind = classify(value)
    compatible = COMPATIBLE_TYPES[kind]
    if column_type in compatible:
        return
    names = ' or '.join(sorted(t.value for t in compatible))
    raise TypeMismatchError(f"'{name}' expected value to be type '{column_type.value}' "
                            f"but got '{names}' instead.")


def _quote_text(text: str, quote_char: str) -> str:
    encoded = quote(text, safe=ENCODE_URI_SAFE)
    return quote_char + encoded.replace(quote_char, quote_char * 2) + quote_char


def sanitize(value: Any, column_type: ColumnType | None = None, quote_char: str = '"') -> str:
    """Render a value as a SQL literal.

    Strings are URI-encoded before quoting so no raw quote or backslash
    reaches the statement.

    Parameters
        value: Python value
        column_type: target column type; ``'true'``/``'false'`` become 1/0 for bit columns
        quote_char: string literal quote of the dialect

    Returns
        SQL literal text
    """
    if value is None:
        return 'NULL'
    if value is CURRENT_TIMESTAMP:
        return 'CURRENT_TIMESTAMP'
    if isinstance(value, bool):
        return '1' if value else '0'
    if isinstance(value, str):
        if column_type is ColumnType.BIT and value in {'true', 'false'}:
            return '1' if value == 'true' else '0'
        return _quote_text(value, quote_char)
    if isinstance(value, datetime.datetime):
        return quote_char + value.strftime('%Y-%m-%d %H:%M:%S') + quote_char
    if isinstance(value, datetime.date):
        return quote_char + value.strftime('%Y-%m-%d') + quote_char
    if isinstance(value, int | float):
        if isinstance(value, float) and not math.isfinite(value):
            raise TypeMismatchError(f'non-finite number {value!r} cannot be stored')
        return str(value)
    raise TypeMismatchError(f'unsupported value type {type(value).__name__}')


def read_bool(value: Any) -> bool:
    """Read a bit column value as a bool.

    Accepts bools, 0/1 integers and the single-byte buffers MySQL returns
    for BIT(1).
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, bytes | bytearray):
        value = int.from_bytes(value, 'big')
    if value in {0, 1}:
        return bool(value)
    raise TypeMismatchError(f'not a bool: {value!r}')


def decode_value(value: Any, column_type: ColumnType) -> Any:
    """Convert a driver value of a declared column back to Python.
    """
    if value is None:
        return None
    if column_type in _TEXT_TYPES and isinstance(value, str):
        return unquote(value)
    if column_type is ColumnType.BIT:
        return read_bool(value)
    if column_type is ColumnType.DATETIME and isinstance(value, str):
        return dateutil.parser.parse(value)
    return value
