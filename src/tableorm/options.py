import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

import pandas as pd
from dotenv import load_dotenv

from tableorm.strategy import get_available_dialects, get_strategy_class
from tableorm.strategy import is_supported_dialect

__all__ = [
    'DatabaseOptions',
    'load_options',
    'iterdict_data_loader',
    'pandas_data_loader',
]

ENV_VARIABLES = {
    'hostname': 'MYSQL_HOSTNAME',
    'database': 'MYSQL_DBNAME',
    'username': 'MYSQL_USER',
    'port': 'MYSQL_PORT',
    'password': 'MYSQL_PASS',
    'drivername': 'TABLEORM_DRIVERNAME',
}


def iterdict_data_loader(data, columns, **kwargs) -> list[dict]:
    """Minimal data loader returning the rows as dictionaries.
    """
    if not data:
        return []
    return list(data)


def pandas_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """pandas DataFrame loader.

    Always returns a DataFrame, with columns preserved for empty results.
    """
    if not data:
        return pd.DataFrame(columns=list(columns))
    return pd.DataFrame.from_records(list(data), columns=list(columns))


@dataclass
class DatabaseOptions:
    """Options

    supported driver names: `mysql`, `sqlite`

    strict_consistency: raise SchemaError when declared tables disagree
    with live column metadata, instead of logging the mismatch
    """
    drivername: str = 'mysql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 3306
    timeout: int = 0
    strict_consistency: bool = True
    data_loader: Callable[..., Any] | None = None

    def __post_init__(self):
        if not is_supported_dialect(self.drivername):
            available = get_available_dialects()
            raise ValueError(f'drivername must be one of: {available}')
        if self.port is not None:
            self.port = int(self.port)
        strategy_cls = get_strategy_class(self.drivername)
        strategy_cls.validate_options(self)
        if self.data_loader is None:
            self.data_loader = iterdict_data_loader

    @classmethod
    def from_env(cls, env_file: str | os.PathLike | None = None, **overrides: Any) -> 'DatabaseOptions':
        """Build options from environment variables.

        Variables are read after loading ``env_file`` (default ``.env``, or
        ``.env.<TABLEORM_ENV>`` when TABLEORM_ENV is set) with python-dotenv;
        variables already present in the environment win.
        """
        if env_file is None:
            stage = os.environ.get('TABLEORM_ENV')
            env_file = f'.env.{stage}' if stage else '.env'
        load_dotenv(env_file)

        values: dict[str, Any] = {}
        for name, variable in ENV_VARIABLES.items():
            value = os.environ.get(variable)
            if value:
                values[name] = value
        values.update(overrides)
        return cls(**values)


def load_options(options: 'DatabaseOptions | Mapping[str, Any] | None' = None,
                 **kw: Any) -> DatabaseOptions:
    """Normalise user supplied options into a DatabaseOptions.

    Args:
        options: Can be:
                - DatabaseOptions object
                - Dictionary of options
                - None to read the environment
        **kw: Keyword arguments overriding individual options
    """
    known = {f.name for f in fields(DatabaseOptions)}
    unknown = set(kw) - known
    if isinstance(options, Mapping):
        unknown |= set(options) - known
    if unknown:
        raise ValueError(f'Unknown options: {sorted(unknown)}')

    if isinstance(options, DatabaseOptions):
        return replace(options, **kw) if kw else options
    if options is None:
        return DatabaseOptions.from_env(**kw)
    return DatabaseOptions(**{**options, **kw})
