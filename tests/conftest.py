import pytest
from activerecord.cache import Cache
from activerecord.table import Table


@pytest.fixture(autouse=True)
def clear_caches():
    """Clear metadata caches and table descriptors around each test."""
    Cache.get_instance().clear_all()
    Table.clear_cache()
    yield
    Cache.get_instance().clear_all()
    Table.clear_cache()


pytest_plugins = [
    'tests.fixtures.mocks',
    'tests.fixtures.sqlite',
    'tests.fixtures.postgres',
]
