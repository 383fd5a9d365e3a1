"""
Base strategy interface for dialect-specific SQL.

The ORM emits plain SQL text. The few statements that differ between
databases (column metadata lookup, multi-table delete, string literal
quoting) are encapsulated here so tables and the validator can work with
any registered dialect through one interface.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tableorm.connection import ConnectionWrapper
    from tableorm.options import DatabaseOptions

# Registry of dialect name -> strategy class
_STRATEGY_REGISTRY: dict[str, type['DatabaseStrategy']] = {}


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('mysql')
        class MySQLStrategy(DatabaseStrategy):
            ...
    """
    def decorator(cls: type['DatabaseStrategy']) -> type['DatabaseStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


@dataclass(frozen=True, slots=True)
class ColumnInfo:
    """Live column metadata as reported by the database."""
    name: str
    data_type: str
    max_length: int | None = None

    @property
    def type_spec(self) -> str:
        """Column type in declaration form, e.g. ``varchar(256)``."""
        if self.data_type == 'varchar' and self.max_length is not None:
            return f'varchar({self.max_length})'
        return self.data_type


class DatabaseStrategy(ABC):
    """Base class for dialect-specific operations.
    """

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier."""

    @property
    def string_quote(self) -> str:
        """Quote character for string literals."""
        return "'"

    @abstractmethod
    def build_connection_url(self, options: 'DatabaseOptions') -> Any:
        """Build the SQLAlchemy connection URL.
        """

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return extra create_engine kwargs for this dialect."""
        return {}

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return option names that must be set for this dialect."""
        return []

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        """Raise ValueError when a required option is missing.
        """
        missing = [name for name in cls.get_required_options()
                   if not getattr(options, name, None)]
        if missing:
            raise ValueError(f'Missing required options for {options.drivername}: {missing}')

    @abstractmethod
    def get_columns(self, cn: 'ConnectionWrapper', table: str) -> list[ColumnInfo]:
        """Get live column metadata for a table.

        Args:
            cn: Database connection object
            table: Table name

        Returns
            list: ColumnInfo per column in ordinal order; empty when the
            table does not exist
        """

    @abstractmethod
    def build_cascade_delete(self, child_table: str, owner_table: str,
                             owner_key: str, where_sql: str) -> str:
        """Build a statement deleting child rows whose owner matches a condition.

        Args:
            child_table: Table holding the foreign key
            owner_table: Owning table
            owner_key: Key column of the owning table, also the child's foreign key
            where_sql: Condition on owner_table columns, without WHERE
        """
