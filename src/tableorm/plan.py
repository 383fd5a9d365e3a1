"""
Join plans and row reconstruction.

A JoinPlan is computed per table once the schema is valid. It lists the
table's own columns and, for each one-to-many relation, the related table's
columns under the alias ``{property}_{column}``. Each relation is joined
under its property name, so one table may be related more than once. SELECT statements are
rendered from the plan and the flat joined rows they return are decoded
against it:

    rows = [
        {'aId': 1, 'a': 124, 'd_dId': 7, 'd_da': 123, 'd_aId': 1},
        {'aId': 1, 'a': 124, 'd_dId': 8, 'd_da': 900, 'd_aId': 1},
        {'aId': 2, 'a': 800, 'd_dId': None, 'd_da': None, 'd_aId': None},
    ]

    reconstruct(plan, rows) == [
        {'aId': 1, 'a': 124, 'd': [{'dId': 7, 'da': 123, 'aId': 1},
                                   {'dId': 8, 'da': 900, 'aId': 1}]},
        {'aId': 2, 'a': 800, 'd': []},
    ]
"""
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tableorm.exceptions import SchemaError
from tableorm.parsing import ColumnType
from tableorm.types import decode_value

if TYPE_CHECKING:
    from tableorm.schema import Schema
    from tableorm.table import Table

__all__ = ['ColumnPlan', 'JoinPlan', 'RelationPlan', 'build_join_plan', 'reconstruct']

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ColumnPlan:
    """One selected column: the table or join alias it is read from, its
    column name and its result alias."""
    table: str
    name: str
    alias: str
    column_type: ColumnType

    def render(self) -> str:
        return f'{self.table}.{self.name} AS {self.alias}'

    def decode(self, row: Mapping[str, Any]) -> Any:
        return decode_value(row.get(self.alias), self.column_type)


@dataclass(frozen=True, slots=True)
class RelationPlan:
    """One-to-many relation joined into a SELECT."""
    property_name: str
    table_name: str
    key_name: str
    foreign_key: str
    alias: str
    columns: tuple[ColumnPlan, ...]

    @property
    def key_column(self) -> ColumnPlan:
        return self.columns[0]


@dataclass(frozen=True, slots=True)
class JoinPlan:
    """Columns and joins needed to read a table with its relations."""
    table_name: str
    key_name: str
    columns: tuple[ColumnPlan, ...]
    relations: tuple[RelationPlan, ...]

    def select_columns(self) -> list[str]:
        rendered = [column.render() for column in self.columns]
        for relation in self.relations:
            rendered.extend(column.render() for column in relation.columns)
        return rendered

    def joins(self) -> list[str]:
        return [
            f'LEFT OUTER JOIN {relation.table_name} AS {relation.alias} '
            f'ON {self.table_name}.{self.key_name} = {relation.alias}.{relation.foreign_key}'
            for relation in self.relations
        ]


def _column_plans(table: 'Table', source: str, alias_prefix: str = '') -> tuple[ColumnPlan, ...]:
    """Key column first, then primitive properties in declaration order."""
    plans = [ColumnPlan(source, table.key_name, alias_prefix + table.key_name, ColumnType.INT)]
    for prop in table.properties:
        parsed = prop.parsed
        if parsed.is_primitive:
            plans.append(ColumnPlan(source, prop.name, alias_prefix + prop.name, parsed.column_type))
    return tuple(plans)


def build_join_plan(table: 'Table', schema: 'Schema') -> JoinPlan:
    """Precompute the join plan of a table from a validated schema.
    """
    relations = []
    for prop in table.properties:
        parsed = prop.parsed
        if parsed.is_primitive:
            continue
        related = schema.find(parsed.data_type)
        if related is None or not parsed.is_array:
            raise SchemaError(f"cannot plan '{table.name}.{prop.name}': unsupported relation '{prop.type}'")
        relations.append(RelationPlan(
            property_name=prop.name,
            table_name=related.name,
            key_name=related.key_name,
            foreign_key=table.key_name,
            alias=prop.name,
            columns=_column_plans(related, prop.name, alias_prefix=f'{prop.name}_'),
        ))
    plan = JoinPlan(
        table_name=table.name,
        key_name=table.key_name,
        columns=_column_plans(table, table.name),
        relations=tuple(relations),
    )
    logger.debug(f'Planned {table.name}: {len(plan.columns)} columns, {len(plan.relations)} relations')
    return plan


def reconstruct(plan: JoinPlan, rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Rebuild nested records from flat joined rows.

    Rows are grouped by the table key; related records are deduplicated by
    their own key. A related key of NULL marks the unmatched side of a LEFT
    JOIN and contributes no record. Relation lists follow row arrival order.
    """
    key_column = plan.columns[0]
    records: dict[Any, dict[str, Any]] = {}
    related: dict[Any, dict[str, dict[Any, dict[str, Any]]]] = {}

    for row in rows:
        key = key_column.decode(row)
        record = records.get(key)
        if record is None:
            record = records[key] = {}
            related[key] = {relation.property_name: {} for relation in plan.relations}
        for column in plan.columns:
            record[column.name] = column.decode(row)

        for relation in plan.relations:
            child_key = relation.key_column.decode(row)
            if child_key is None:
                continue
            related[key][relation.property_name][child_key] = {
                column.name: column.decode(row) for column in relation.columns
            }

    output = []
    for key, record in records.items():
        for property_name, children in related[key].items():
            record[property_name] = list(children.values())
        output.append(record)
    return output
