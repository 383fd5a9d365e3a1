import pathlib
import site

import pytest
from tableorm.parsing import clear_parse_cache

HERE = pathlib.Path(pathlib.Path(__file__).resolve()).parent
site.addsitedir(HERE)


@pytest.fixture(autouse=True)
def clear_caches():
    """Clear the type declaration cache before and after each test."""
    clear_parse_cache()
    yield
    clear_parse_cache()


pytest_plugins = [
    'tests.fixtures.mocks',
    'tests.fixtures.sqlite',
]
