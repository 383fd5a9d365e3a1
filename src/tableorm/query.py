"""
SQL statement builders.

Every builder returns SQL text; values are type checked against the
declared property types and rendered with `sanitize`, so callers never
splice raw values into statements. The only text passed through verbatim
is the optional SELECT suffix (ORDER BY, LIMIT, ...).
"""
import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from tableorm.exceptions import TypeMismatchError, UsageError
from tableorm.parsing import ParsedType, is_primitive
from tableorm.types import assert_type, sanitize

if TYPE_CHECKING:
    from tableorm.plan import JoinPlan
    from tableorm.table import Table

__all__ = [
    'build_create_table',
    'build_delete',
    'build_insert',
    'build_next_key',
    'build_select',
    'build_select_keys',
    'build_select_max',
    'build_update',
    'is_sequence',
    'render_assignments',
    'render_where',
]

logger = logging.getLogger(__name__)


def is_sequence(value: Any) -> bool:
    """Check for list-like values, excluding strings and bytes.
    """
    return isinstance(value, Sequence | set | frozenset) and not isinstance(value, str | bytes | bytearray)


def render_literal(name: str, value: Any, parsed: ParsedType, quote_char: str) -> str:
    """Type check one value for a primitive property and render it.
    """
    assert_type(name, value, parsed.column_type)
    return sanitize(value, parsed.column_type, quote_char)


def render_where(table: 'Table', where: Mapping[str, Any] | None, quote_char: str) -> list[str] | None:
    """Render a where mapping into AND-able conditions.

    Scalars render as ``T.col = v`` and sequences as ``T.col IN (v1, v2)``.

    Returns
        list of conditions (empty for no where), or None when a sequence is
        empty and the whole statement can match nothing
    """
    if not where:
        return []

    conditions = []
    for name, value in where.items():
        parsed = table.get_parsed_type(name)
        if not is_primitive(parsed.data_type):
            raise UsageError(f"cannot filter '{table.name}' on relation property '{name}'")

        column = f'{table.name}.{name}'
        if is_sequence(value):
            if not value:
                logger.debug(f'Empty IN list for {column}, statement matches nothing')
                return None
            literals = [render_literal(name, item, parsed, quote_char) for item in value]
            conditions.append(f'{column} IN ({", ".join(literals)})')
        else:
            conditions.append(f'{column} = {render_literal(name, value, parsed, quote_char)}')
    return conditions


def render_assignments(table: 'Table', entry: Mapping[str, Any], quote_char: str) -> list[str]:
    """Render ``col = value`` pairs for the primitive properties of an entry.
    """
    assignments = []
    for name, value in entry.items():
        parsed = table.get_parsed_type(name)
        if not parsed.is_primitive:
            continue
        if is_sequence(value):
            raise TypeMismatchError(f"expected not array for value '{name}' in table '{table.name}'")
        assignments.append(f'{name} = {render_literal(name, value, parsed, quote_char)}')
    return assignments


def _where_clause(conditions: list[str]) -> str:
    if not conditions:
        return ''
    return f'\nWHERE {" AND ".join(conditions)}'


def build_select(plan: 'JoinPlan', conditions: list[str], suffix: str | None = None) -> str:
    """Build a SELECT of a table joined with its one-to-many relations.
    """
    sql = 'SELECT\n    ' + ', \n    '.join(plan.select_columns())
    sql += f'\nFROM {plan.table_name}'
    for join in plan.joins():
        sql += f'\n{join}'
    sql += _where_clause(conditions)
    if suffix:
        sql += f'\n{suffix}'
    return sql


def build_select_keys(table_name: str, key_name: str, conditions: list[str]) -> str:
    return f'SELECT {table_name}.{key_name} AS {key_name} FROM {table_name}{_where_clause(conditions)}'


def build_select_max(table_name: str, column: str, conditions: list[str]) -> str:
    return f'SELECT MAX({table_name}.{column}) AS {column} FROM {table_name}{_where_clause(conditions)}'


def build_next_key(table_name: str, key_name: str) -> str:
    return f'SELECT MAX({key_name}) AS id_max FROM {table_name}'


def build_insert(table_name: str, columns: list[str], literals: list[str]) -> str:
    return f'INSERT INTO {table_name} ({", ".join(columns)}) VALUES ({", ".join(literals)})'


def build_update(table_name: str, assignments: list[str], conditions: list[str]) -> str:
    return f'UPDATE {table_name} SET {", ".join(assignments)}{_where_clause(conditions)}'


def build_delete(table_name: str, conditions: list[str]) -> str:
    return f'DELETE FROM {table_name}{_where_clause(conditions)}'


def build_create_table(table: 'Table') -> str:
    """Build CREATE TABLE IF NOT EXISTS for the key and primitive properties.

    Relation properties have no column of their own.
    """
    columns = [f'{table.key_name} int']
    for prop in table.properties:
        if prop.parsed.is_primitive:
            columns.append(f'{prop.name} {prop.type}')
    return f'CREATE TABLE IF NOT EXISTS {table.name} ({", ".join(columns)})'
