"""
Client owning one connection, one schema and its validator.

Testing notes:

Unit tests of code that only declares tables do not need a database:
`declare_table` and the schema never touch the connection. Anything that
reads or writes rows validates first, which reads live column metadata, so
use an in-memory SQLite client:

    orm = tableorm.connect({'drivername': 'sqlite', 'database': ':memory:'})
"""
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Self

from tableorm.connection import ConnectionWrapper
from tableorm.exceptions import DriverError, UsageError
from tableorm.options import DatabaseOptions, load_options
from tableorm.plan import JoinPlan, build_join_plan
from tableorm.schema import Property, Schema
from tableorm.table import Table
from tableorm.validator import ValidationReport, Validator

__all__ = ['Orm']

logger = logging.getLogger(__name__)


class Orm:
    """Entry point of the ORM.

    Parameters
        options: DatabaseOptions, a mapping of option values, or None to
            read the environment
        **kw: individual option overrides

    Statements issued through `query` and every table row operation wait
    for the schema to be valid first. `admin_query` and `Table.init` do not.
    """

    def __init__(self, options: DatabaseOptions | Mapping[str, Any] | None = None, **kw: Any) -> None:
        self.options = load_options(options, **kw)
        self.connection = ConnectionWrapper(self.options)
        self.schema = Schema()
        self.validator = Validator(self.schema, self.connection, strict=self.options.strict_consistency)
        self.report: ValidationReport | None = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: Any | None) -> None:
        self.close()

    def __repr__(self) -> str:
        return f'Orm({self.connection.dialect}, tables={len(self.schema)}, state={self.schema.state.name})'

    def declare_table(self, name: str, key_name: str,
                      properties: Iterable['Property | Mapping[str, str] | tuple[str, str]']) -> Table:
        """Declare a table and register it with the schema.
        """
        return Table(self, name, key_name, properties)

    def find_table(self, name: str) -> Table | None:
        return self.schema.find(name)

    def _validate(self) -> ValidationReport:
        report = self.validator.validate_all()
        self.schema.store_plans({table.name: build_join_plan(table, self.schema) for table in self.schema})
        self.report = report
        return report

    def validate_all(self) -> ValidationReport:
        """Validate every declared table now, regardless of the current state.

        Raises
            SchemaError: on the first fatal violation; the schema stays
                invalid and the next gated call validates again
        """
        return self.schema.revalidate(self._validate)

    def ensure_valid(self) -> None:
        """Validate unless the schema is already valid.
        """
        self.schema.ensure_valid(self._validate)

    def plan_for(self, name: str) -> JoinPlan:
        """Join plan of a declared table.

        Plans are built by validation; a schema forced valid without a run
        gets its plans built on demand.
        """
        plan = self.schema.plan_for(name)
        if plan is not None:
            return plan
        table = self.schema.find(name)
        if table is None:
            raise UsageError(f"table '{name}' is not declared")
        return build_join_plan(table, self.schema)

    def _run(self, sql: str, quiet: bool) -> tuple[list[str] | None, Any]:
        try:
            return self.connection.run(sql)
        except DriverError as err:
            if not quiet:
                raise
            logger.debug(f'Quiet query failed: {err}')
            return None, err

    def query(self, sql: str, quiet: bool = False) -> Any:
        """Run SQL once the schema is valid.

        Returns
            list of row dicts for statements with a result set, otherwise the
            affected row count. With quiet=True a driver error is returned
            instead of raised.
        """
        self.ensure_valid()
        _, result = self._run(sql, quiet)
        return result

    def admin_query(self, sql: str, quiet: bool = False) -> Any:
        """Run SQL without waiting for validation.

        Rows are passed through the options' data loader; statements without
        a result set return the affected row count.
        """
        columns, result = self._run(sql, quiet)
        if columns is None:
            return result
        return self.options.data_loader(result, columns)

    def close(self) -> None:
        self.connection.close()
