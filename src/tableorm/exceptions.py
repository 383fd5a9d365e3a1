"""
ORM-specific exception classes.
"""
import sqlite3

import pymysql
import sqlalchemy as sa


class OrmError(Exception):
    """Base class for all tableorm errors.
    """


class ParseError(OrmError):
    """Malformed type declaration.

    Carries the offending token (None when input ended early) and the
    original type text.
    """

    def __init__(self, message: str, token: str | None = None, text: str | None = None) -> None:
        super().__init__(message)
        self.token = token
        self.text = text


class SchemaError(OrmError):
    """Fatal schema violation found while validating declared tables.
    """


class TypeMismatchError(OrmError, TypeError):
    """Value does not match the declared column type.
    """


class UsageError(OrmError, ValueError):
    """Invalid arguments passed to a table operation.
    """


class ConsistencyWarning(UserWarning):
    """Drift between declared tables and live database metadata.
    """


DriverError = (
    sqlite3.Error,
    pymysql.err.Error,
    sa.exc.DBAPIError,
    )

DbConnectionError = (
    pymysql.err.OperationalError,
    pymysql.err.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    sa.exc.OperationalError,
    sa.exc.InterfaceError,
    )
