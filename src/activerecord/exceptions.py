"""
Exception classes for the mapper and its adapters.
"""
import sqlite3
from typing import Any

import psycopg
import sqlalchemy as sa


class ActiveRecordError(Exception):
    """Base class for all activerecord errors.
    """


class ConfigError(ActiveRecordError):
    """Malformed connection list or an invalid collaborator.
    """


class DatabaseError(ActiveRecordError):
    """Base class for adapter-level failures.
    """


class UnsupportedDialect(DatabaseError):
    """No adapter is registered for a connection scheme.
    """


class ConnectionFailed(DatabaseError):
    """Error establishing a database connection.
    """


class QueryFailed(DatabaseError):
    """Error executing a statement.

    The engine's diagnostic message is kept as the exception message.
    """

    def __init__(self, message: str, sql: str | None = None,
                 values: tuple[Any, ...] | None = None) -> None:
        super().__init__(message)
        self.sql = sql
        self.values = values


class NoActiveTransaction(DatabaseError):
    """Commit or rollback called without an open transaction.
    """


class UnsupportedOperation(DatabaseError):
    """Operation is not available for this dialect.
    """


class RelationshipError(ActiveRecordError):
    """Error in association metadata.
    """


class InvalidThroughAssociation(RelationshipError):
    """A through association names a missing or unusable bridge.
    """


class RecordNotFound(ActiveRecordError):
    """Lookup by primary key matched no row.
    """


class UndefinedProperty(ActiveRecordError, AttributeError):
    """Attribute is neither a column nor an association.
    """

    def __init__(self, class_name: str, name: str) -> None:
        super().__init__(f'Undefined property: {class_name}->{name}')
        self.class_name = class_name
        self.name = name


class ReadOnlyRecord(ActiveRecordError):
    """Attempt to persist a record loaded as readonly.
    """


# Driver exception groups
DriverConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    sa.exc.OperationalError,
    sa.exc.InterfaceError,
    ConnectionFailed,
    )
