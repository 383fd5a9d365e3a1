"""
Schema validation.

`Validator.validate_all()` runs five checks over every registered table, in
this order:

1. consistency - declared tables against live column metadata
2. names       - table, key and property names are plain alphanumerics
3. duplicates  - no two tables share a name or a key name
4. cycles      - no two tables carry each other's key as a property
5. properties  - every property type is a supported primitive or a
                 one-to-many relation to a declared table

Any fatal condition raises SchemaError at once and aborts the pass.
Consistency drift that is not fatal is logged and returned as
ConsistencyWarning entries of the ValidationReport.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tableorm.exceptions import ConsistencyWarning, ParseError, SchemaError
from tableorm.parsing import ColumnType, parse_type

if TYPE_CHECKING:
    from tableorm.connection import ConnectionWrapper
    from tableorm.schema import Schema
    from tableorm.table import Table

__all__ = ['ValidationReport', 'Validator']

logger = logging.getLogger(__name__)

_NAME = re.compile(r'[A-Za-z0-9]+')


def _declares_int(table: 'Table', name: str) -> bool:
    """Check that a table declares a plain int property."""
    if name not in table.property_names:
        return False
    try:
        parsed = table.get_parsed_type(name)
    except ParseError:
        return False
    return parsed.data_type == ColumnType.INT.value and not parsed.is_array


@dataclass
class ValidationReport:
    """Outcome of a successful validation pass."""
    warnings: list[ConsistencyWarning] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.warnings and not self.errors


class Validator:
    """Validates the tables of a Schema.

    Parameters
        schema: registry holding the declared tables
        connection: live database used by the consistency check
        strict: raise on fatal consistency drift (missing or mistyped key
            or primitive column) instead of logging it
    """

    def __init__(self, schema: 'Schema', connection: 'ConnectionWrapper',
                 strict: bool = True) -> None:
        self.schema = schema
        self.connection = connection
        self.strict = strict

    def validate_all(self) -> ValidationReport:
        """Run every check; raise SchemaError on the first fatal violation.
        """
        report = ValidationReport()
        tables = self.schema.tables
        self.check_db_consistency(tables, report)
        self.check_names(tables)
        self.check_duplicates(tables)
        self.check_cycles(tables)
        self.check_properties(tables)
        logger.info(f'Validated {len(tables)} tables '
                    f'({len(report.warnings)} warnings, {len(report.errors)} consistency errors)')
        return report

    def _warn(self, report: ValidationReport, message: str) -> None:
        logger.warning(f'orm warning: {message}')
        report.warnings.append(ConsistencyWarning(message))

    def _fatal(self, report: ValidationReport, message: str) -> None:
        if self.strict:
            raise SchemaError(message)
        logger.error(f'orm fatal: {message}')
        report.errors.append(message)

    def check_db_consistency(self, tables: tuple['Table', ...], report: ValidationReport) -> None:
        """Compare declared tables with live column metadata.

        Relation properties have no column and are exempt.
        """
        for table in tables:
            columns = self.connection.strategy.get_columns(self.connection, table.name)
            if not columns:
                self._warn(report, f'cannot find {table.name} in database.')
                continue

            live = {column.name: column for column in columns}
            unmatched = [column.name for column in columns]

            key_column = live.get(table.key_name)
            if key_column is None:
                self._fatal(report, f"cannot find '{table.name}.{table.key_name}' in database.")
            else:
                unmatched.remove(table.key_name)
                if key_column.data_type != ColumnType.INT.value:
                    self._fatal(report, f"schema '{table.name}.{table.key_name}' has type 'int' "
                                        f"but in db it has type '{key_column.type_spec}'")

            for prop in table.properties:
                try:
                    parsed = parse_type(prop.type)
                except ParseError:
                    # reported by the property check
                    continue
                column = live.get(prop.name)
                if column is not None and prop.name in unmatched:
                    unmatched.remove(prop.name)
                if not parsed.is_primitive:
                    continue
                if column is None:
                    self._fatal(report, f"cannot find schema row '{table.name}.{prop.name}' in database.")
                    continue
                if column.data_type != parsed.data_type or (
                        parsed.precision is not None and column.max_length != parsed.precision):
                    self._fatal(report, f"'{table.name}.{prop.name}' has type '{prop.type}' "
                                        f"but in db it has type '{column.type_spec}'")

            if unmatched:
                self._warn(report, f'schema is inconsistent with actual db. {table.name} has columns '
                                   f'{unmatched} in db which were not specified in schema.')

    def check_names(self, tables: tuple['Table', ...]) -> None:
        for table in tables:
            if not _NAME.fullmatch(table.name):
                raise SchemaError(f'table name {table.name} must not contain any special characters. '
                                  'Use CamelCase for table names.')
            if not _NAME.fullmatch(table.key_name):
                raise SchemaError(f'table key name {table.key_name} must not contain any special characters. '
                                  'Use pascalCase for table key values.')
            for prop in table.properties:
                if not _NAME.fullmatch(prop.name):
                    raise SchemaError(f'property {prop.name} must not contain any special characters. '
                                      'Use pascalCase for property names.')

    def check_duplicates(self, tables: tuple['Table', ...]) -> None:
        names: set[str] = set()
        key_names: set[str] = set()
        for table in tables:
            if table.name in names:
                raise SchemaError(f'duplicate table name {table.name}')
            if table.key_name in key_names:
                raise SchemaError(f'duplicate table key name {table.key_name}')
            names.add(table.name)
            key_names.add(table.key_name)

    def check_cycles(self, tables: tuple['Table', ...]) -> None:
        """Reject tables that each hold the other's key as a property.
        """
        for owner in tables:
            for dependent in tables:
                if dependent is owner:
                    continue
                if owner.key_name in dependent.property_names and dependent.key_name in owner.property_names:
                    raise SchemaError(f'dependency detected! {owner.name} and {dependent.name}')

    def check_properties(self, tables: tuple['Table', ...]) -> None:
        for table in tables:
            for prop in table.properties:
                try:
                    parsed = parse_type(prop.type)
                except ParseError as err:
                    raise SchemaError(f"type error '{table.name}.{prop.name}': {err}") from err

                if parsed.is_primitive:
                    if parsed.data_type == ColumnType.VARCHAR.value and parsed.precision is None:
                        raise SchemaError(f"type error '{table.name}.{prop.name}': varchar precision is required")
                    if parsed.data_type != ColumnType.VARCHAR.value and parsed.precision is not None:
                        raise SchemaError(f"type error '{table.name}.{prop.name}': unexpected precision value "
                                          '(only varchars can have precision)')
                    if parsed.is_array:
                        raise SchemaError(f"type error '{table.name}.{prop.name}': "
                                          'array of primitives not supported')
                    continue

                related = self.schema.find(parsed.data_type)
                if related is None:
                    raise SchemaError(f"type error '{table.name}.{prop.name}': unknown type '{parsed.data_type}'")
                if parsed.precision is not None:
                    raise SchemaError(f"type error '{table.name}.{prop.name}': unexpected precision value "
                                      '(only varchars can have precision)')
                if not parsed.is_array:
                    raise SchemaError(f"type error '{table.name}.{prop.name}': 1-1 fail: "
                                      'non-primitives as non-arrays are not supported')
                if not _declares_int(related, table.key_name):
                    raise SchemaError(f"type error '{table.name}.{prop.name}': 1-M fail: table "
                                      f"'{related.name}' must contain 'int {table.key_name}' as property")
