"""
Client level behaviour: gated and admin queries, data loaders, lifecycle.
"""
import sqlite3

import pandas as pd
import pytest
import tableorm
from tableorm import Orm, SchemaError, UsageError
from tableorm.options import pandas_data_loader

pytestmark = pytest.mark.sqlite


def test_connect_returns_orm(sl_orm):
    assert isinstance(sl_orm, Orm)
    assert sl_orm.connection.dialect == 'sqlite'
    assert not sl_orm.connection.connected


def test_query_returns_rows_or_rowcount(blog):
    orm, users, posts = blog
    assert orm.query("INSERT INTO User (userId, name) VALUES (1, 'x'), (2, 'y')") == 2
    assert orm.query('SELECT userId FROM User ORDER BY userId') == [{'userId': 1}, {'userId': 2}]


def test_query_validates_first(sl_orm):
    sl_orm.declare_table('A', 'aId', [{'name': 'bId', 'type': 'int'}])
    sl_orm.declare_table('B', 'bId', [{'name': 'aId', 'type': 'int'}])
    with pytest.raises(SchemaError):
        sl_orm.query('SELECT 1')
    # admin queries are not gated
    assert sl_orm.admin_query('SELECT 1 AS one') == [{'one': 1}]


def test_quiet_query_returns_error(sl_orm):
    result = sl_orm.query('SELECT * FROM missing', quiet=True)
    assert isinstance(result, sqlite3.OperationalError)
    with pytest.raises(sqlite3.OperationalError):
        sl_orm.query('SELECT * FROM missing')


def test_quiet_admin_query(sl_orm):
    assert isinstance(sl_orm.admin_query('DROP TABLE missing', quiet=True), sqlite3.Error)


def test_admin_query_data_loader():
    with tableorm.connect({'drivername': 'sqlite', 'database': ':memory:'},
                          data_loader=pandas_data_loader) as orm:
        orm.admin_query('CREATE TABLE t (a int, b varchar(4))')
        orm.admin_query("INSERT INTO t VALUES (1, 'x')")
        df = orm.admin_query('SELECT a, b FROM t')
        assert isinstance(df, pd.DataFrame)
        assert df.to_dict('records') == [{'a': 1, 'b': 'x'}]
        empty = orm.admin_query('SELECT a, b FROM t WHERE a = 2')
        assert list(empty.columns) == ['a', 'b']


def test_plan_for_unknown_table(sl_orm):
    with pytest.raises(UsageError):
        sl_orm.plan_for('Nope')


def test_plan_built_after_forced_validity(blog):
    orm, users, posts = blog
    orm.schema.set_valid(True)
    assert orm.schema.plan_for('User') is None
    users.insert_into({'name': 'x', 'posts': [{'title': 't'}]})
    assert users.select()[0]['posts'][0]['title'] == 't'


def test_close_and_reuse(blog):
    orm, users, posts = blog
    users.insert_into({'name': 'x'})
    orm.close()
    assert not orm.connection.connected
    # an in-memory database does not survive closing the connection
    assert isinstance(orm.admin_query('SELECT * FROM User', quiet=True), sqlite3.Error)


def test_repr(blog):
    orm, users, posts = blog
    assert 'sqlite' in repr(orm)
    assert 'User' in repr(users)
