"""
Adapter factory: maps connection-string schemes to adapter classes.
"""
from activerecord.adapters.base import _ADAPTER_REGISTRY
from activerecord.adapters.base import Adapter as Adapter
from activerecord.adapters.base import register_adapter as register_adapter
from activerecord.adapters.mysql import MySQLAdapter as MySQLAdapter
from activerecord.adapters.oracle import OracleAdapter as OracleAdapter
from activerecord.adapters.postgres import PostgresAdapter as PostgresAdapter
from activerecord.adapters.sqlite import SQLiteAdapter as SQLiteAdapter
from activerecord.exceptions import UnsupportedDialect

_PROTOCOL_ALIASES = {
    'pgsql': 'postgresql',
    'postgres': 'postgresql',
    'oci': 'oracle',
    'sqlite3': 'sqlite',
    }


def normalize_protocol(scheme: str) -> str:
    """Canonical protocol for a connection-string scheme.

    >>> normalize_protocol('pgsql')
    'postgresql'
    """
    scheme = scheme.lower()
    return _PROTOCOL_ALIASES.get(scheme, scheme)


def get_adapter_class(protocol: str) -> type[Adapter]:
    """Adapter class for a protocol, raising UnsupportedDialect if none."""
    protocol = normalize_protocol(protocol)
    if protocol not in _ADAPTER_REGISTRY:
        available = sorted(_ADAPTER_REGISTRY)
        raise UnsupportedDialect(f'Unsupported dialect: {protocol}. Available: {available}')
    return _ADAPTER_REGISTRY[protocol]


def get_available_protocols() -> list[str]:
    """Return list of registered protocol names."""
    return list(_ADAPTER_REGISTRY)
