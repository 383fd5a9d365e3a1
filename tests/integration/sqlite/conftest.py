"""
Helpers for SQLite integration tests.
"""
import random
import string

import pytest


@pytest.fixture
def random_str():
    """Factory for random alphanumeric strings."""
    def _make(length=8):
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))
    return _make


@pytest.fixture
def random_int():
    """Factory for random 32 bit integers, avoiding 0 and 1."""
    def _make(low=-2147483648, high=2147483647):
        value = random.randint(low, high)
        return value if value not in {0, 1} else 2
    return _make


@pytest.fixture
def live_columns(sl_orm):
    """Factory returning {name: declared type} of a created table."""
    def _columns(table_name):
        rows = sl_orm.admin_query(f"SELECT name, type FROM pragma_table_info('{table_name}') ORDER BY cid")
        return {row['name']: row['type'] for row in rows}
    return _columns
