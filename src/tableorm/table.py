"""
Declared tables and their row operations.

A Table registers itself with its client's schema on construction. Every
row operation first waits for the schema to be valid, then renders SQL with
`tableorm.query` and reads results back through the table's join plan.

Example:
    >>> users = orm.declare_table('User', 'userId', [
    ...     {'name': 'name', 'type': 'varchar(64)'},
    ...     {'name': 'posts', 'type': 'Post[]'},
    ... ])
    >>> user_id = users.insert_into({'name': 'ada', 'posts': [{'title': 'hi'}]})
    >>> users.select({'userId': user_id})
    [{'userId': 1, 'name': 'ada', 'posts': [{'postId': 1, 'title': 'hi', 'userId': 1}]}]
"""
import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from tableorm.exceptions import SchemaError, TypeMismatchError, UsageError
from tableorm.parsing import ColumnType, ParsedType, parse_type
from tableorm.plan import reconstruct
from tableorm.query import build_create_table, build_delete, build_insert
from tableorm.query import build_next_key, build_select, build_select_keys
from tableorm.query import build_select_max, build_update, is_sequence
from tableorm.query import render_assignments, render_where
from tableorm.schema import Property
from tableorm.types import assert_type, decode_value, sanitize

if TYPE_CHECKING:
    from tableorm.client import Orm

__all__ = ['Table']

logger = logging.getLogger(__name__)


def _suffix(options: str | Mapping[str, Any] | None) -> str | None:
    if options is None or isinstance(options, str):
        return options
    return options.get('suffix')


class Table:
    """Declared table: a name, an integer key and typed properties.

    Parameters
        client: owning Orm
        name: table name
        key_name: integer key column, assigned by `insert_into`
        properties: Property objects, ``{'name', 'type'}`` dicts or
            (name, type) pairs
    """

    def __init__(self, client: 'Orm', name: str, key_name: str,
                 properties: Iterable['Property | Mapping[str, str] | tuple[str, str]']) -> None:
        self.client = client
        self.name = name
        self.key_name = key_name
        self.properties: list[Property] = []
        self._by_name: dict[str, Property] = {}
        for value in properties:
            prop = Property.coerce(value)
            if prop.name in self._by_name:
                raise SchemaError(f"cannot have duplicate property names: '{name}.{prop.name}'")
            self.properties.append(prop)
            self._by_name[prop.name] = prop
        client.schema.register(self)

    def __repr__(self) -> str:
        return f'Table({self.name!r}, key={self.key_name!r}, properties={len(self.properties)})'

    @property
    def property_names(self) -> set[str]:
        return set(self._by_name)

    @property
    def _quote(self) -> str:
        return self.client.connection.strategy.string_quote

    def get_property_type(self, name: str) -> str:
        """Declared type of a property; the key is always ``int``.
        """
        prop = self._by_name.get(name)
        if prop is not None:
            return prop.type
        if name == self.key_name:
            return ColumnType.INT.value
        raise UsageError(f"cannot get property type of '{name}' because it is not in table '{self.name}'")

    def get_parsed_type(self, name: str) -> ParsedType:
        return parse_type(self.get_property_type(name))

    def _related(self, parsed: ParsedType) -> 'Table':
        related = self.client.schema.find(parsed.data_type)
        if related is None:
            raise SchemaError(f"unknown type '{parsed.data_type}' in table '{self.name}'")
        return related

    def init(self) -> None:
        """Create the table if it does not exist.

        Runs without waiting for validation, so tables can be created before
        the schema is checked against the database.
        """
        self.client.admin_query(build_create_table(self))
        logger.info(f'Initialized table {self.name}')

    def drop(self) -> None:
        """Remove the table from the schema. No DDL is issued.
        """
        self.client.schema.unregister(self)

    def get_next_key(self) -> int:
        """Next key as ``MAX(key) + 1``.

        Read then write: two concurrent inserts may compute the same key.
        """
        rows = self.client.query(build_next_key(self.name, self.key_name))
        current = rows[0]['id_max'] if rows else None
        return (current or 0) + 1

    def select(self, where: Mapping[str, Any] | None = None,
               options: str | Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """Select rows with their one-to-many relations nested as lists.

        Parameters
            where: property name to scalar (``=``) or sequence (``IN``); an
                empty sequence returns ``[]`` without querying
            options: SQL suffix such as ``ORDER BY name``, or ``{'suffix': ...}``.
                The suffix is appended verbatim.

        Returns
            one dict per row of this table
        """
        self.client.ensure_valid()
        conditions = render_where(self, where, self._quote)
        if conditions is None:
            return []
        plan = self.client.plan_for(self.name)
        rows = self.client.query(build_select(plan, conditions, _suffix(options)))
        return reconstruct(plan, rows)

    def select_max(self, column: str, where: Mapping[str, Any] | None = None) -> Any:
        """Maximum value of a primitive column, None for no rows.
        """
        self.client.ensure_valid()
        parsed = self.get_parsed_type(column)
        if not parsed.is_primitive:
            raise UsageError(f"cannot select max of relation property '{self.name}.{column}'")
        conditions = render_where(self, where, self._quote)
        if conditions is None:
            return None
        rows = self.client.query(build_select_max(self.name, column, conditions))
        return decode_value(rows[0][column], parsed.column_type) if rows else None

    def check_entry(self, entry: Mapping[str, Any]) -> None:
        """Type check an entry and its nested relation entries.

        Raises
            UsageError: unknown property or an attempt to write the key
            TypeMismatchError: value does not fit the declared type, or an
                array property receives a non-array (or the reverse)
        """
        if not isinstance(entry, Mapping):
            raise TypeMismatchError(f"expected a mapping as entry for table '{self.name}'")
        if self.key_name in entry:
            raise UsageError(f"cannot write key '{self.key_name}' of table '{self.name}', "
                             'keys are assigned on insert')
        for name, value in entry.items():
            parsed = self.get_parsed_type(name)
            if parsed.is_array and not is_sequence(value):
                raise TypeMismatchError(f"expected array for value '{name}' in table '{self.name}'")
            if not parsed.is_array and is_sequence(value):
                raise TypeMismatchError(f"expected not array for value '{name}' in table '{self.name}'")
            if parsed.is_primitive:
                assert_type(name, value, parsed.column_type)
                continue
            related = self._related(parsed)
            for child in value:
                if isinstance(child, Mapping):
                    child = {k: v for k, v in child.items() if k != self.key_name}
                related.check_entry(child)

    def insert_into(self, entry: Mapping[str, Any]) -> int:
        """Insert a row and its related rows; return the new key.

        The whole entry is type checked before any statement is issued.
        Related rows get this row's key injected as their foreign key.
        """
        if entry is None:
            raise UsageError("'entry' clause not provided in insert_into()")
        self.client.ensure_valid()
        self.check_entry(entry)
        return self._insert(entry)

    def _insert(self, entry: Mapping[str, Any]) -> int:
        key = self.get_next_key()
        columns = [self.key_name]
        literals = [str(key)]
        children: list[tuple[Table, list[Mapping[str, Any]]]] = []
        for name, value in entry.items():
            parsed = self.get_parsed_type(name)
            if parsed.is_primitive:
                columns.append(name)
                literals.append(sanitize(value, parsed.column_type, self._quote))
            else:
                children.append((self._related(parsed), value))

        self.client.query(build_insert(self.name, columns, literals))
        for related, rows in children:
            for child in rows:
                related._insert({**child, self.key_name: key})
        logger.debug(f'Inserted {self.name}.{self.key_name} = {key}')
        return key

    def update(self, where: Mapping[str, Any], entry: Mapping[str, Any]) -> None:
        """Update matching rows.

        Primitive properties are assigned in one UPDATE. Relation arrays are
        replaced: for every matching row the current related rows are
        deleted and the given ones inserted. An empty entry does nothing.
        """
        if where is None:
            raise UsageError("'where' clause not provided in update()")
        if entry is None:
            raise UsageError("'entry' clause not provided in update()")
        if not where:
            raise UsageError("'where' clause must not be empty.")
        if not entry:
            logger.debug(f'Empty update of {self.name}, nothing to do')
            return

        self.client.ensure_valid()
        conditions = render_where(self, where, self._quote)
        self.check_entry(entry)
        if conditions is None:
            return

        assignments = render_assignments(self, entry, self._quote)
        relations = []
        for name, value in entry.items():
            parsed = self.get_parsed_type(name)
            if not parsed.is_primitive:
                relations.append((self._related(parsed), value))

        # matched before the UPDATE, which may change the filtered columns
        keys = []
        if relations:
            rows = self.client.query(build_select_keys(self.name, self.key_name, conditions))
            keys = [row[self.key_name] for row in rows]

        if assignments:
            self.client.query(build_update(self.name, assignments, conditions))

        for key in keys:
            for related, children in relations:
                related.delete_from({self.key_name: key})
                for child in children:
                    related._insert({**child, self.key_name: key})
        logger.debug(f'Updated {self.name} ({len(assignments)} columns, {len(keys)} relation owners)')

    def delete_from(self, where: Mapping[str, Any]) -> int:
        """Delete matching rows and their related rows; return the rows deleted from this table.

        The cascade follows relations of related tables as well, so
        grandchild rows are removed with their owners.
        """
        if where is None:
            raise UsageError("'where' clause not provided in delete_from()")
        if not where:
            raise UsageError("'where' clause must not be empty.")

        self.client.ensure_valid()
        conditions = render_where(self, where, self._quote)
        if conditions is None:
            return 0

        return self._delete(conditions, frozenset({self.name}))

    def _delete(self, conditions: list[str], visited: frozenset[str]) -> int:
        plan = self.client.plan_for(self.name)
        strategy = self.client.connection.strategy
        where_sql = ' AND '.join(conditions)
        keys = None
        for relation in plan.relations:
            related = self.client.schema.find(relation.table_name)
            if related.name in visited or not self.client.plan_for(related.name).relations:
                self.client.query(strategy.build_cascade_delete(
                    relation.table_name, self.name, self.key_name, where_sql))
                continue
            # nested relations are cleared through the matching keys
            if keys is None:
                rows = self.client.query(build_select_keys(self.name, self.key_name, conditions))
                keys = [row[self.key_name] for row in rows]
            child_conditions = render_where(related, {self.key_name: keys}, self._quote)
            if child_conditions is not None:
                related._delete(child_conditions, visited | {related.name})
        return self.client.query(build_delete(self.name, conditions))
