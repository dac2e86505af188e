"""
ActiveRecord-style object mapping over SQLite, PostgreSQL, MySQL and Oracle.

Models declare their associations as class attributes; a connection registry
maps connection names to dialect adapters:

    registry = ConnectionRegistry(Config(connections={'development': 'sqlite://:memory:'}))

    class Author(Model):
        connection_registry = registry
        has_many = ['books']
"""
__version__ = '0.1.0'

from activerecord.adapters import get_adapter_class, get_available_protocols
from activerecord.adapters.base import Adapter, register_adapter
from activerecord.cache import Cache
from activerecord.column import Column, ColumnType
from activerecord.config import Config, DateClass, SQLLogger, SQLLoggerAdapter
from activerecord.connection import ConnectionInfo, ConnectionRegistry, parse_connection_url
from activerecord.exceptions import ActiveRecordError, ConfigError, ConnectionFailed
from activerecord.exceptions import DatabaseError, InvalidThroughAssociation
from activerecord.exceptions import NoActiveTransaction, QueryFailed, ReadOnlyRecord
from activerecord.exceptions import RecordNotFound, RelationshipError, UndefinedProperty
from activerecord.exceptions import UnsupportedDialect, UnsupportedOperation
from activerecord.model import Model, get_model_class
from activerecord.relationships import BelongsTo, HasAndBelongsToMany, HasMany, HasOne
from activerecord.relationships import Relationship, RelationshipKind
from activerecord.table import Table
from activerecord.transaction import Transaction, transaction

__all__ = [
    'Adapter',
    'register_adapter',
    'get_adapter_class',
    'get_available_protocols',
    'Cache',
    'Column',
    'ColumnType',
    'Config',
    'DateClass',
    'SQLLogger',
    'SQLLoggerAdapter',
    'ConnectionInfo',
    'ConnectionRegistry',
    'parse_connection_url',
    'ActiveRecordError',
    'ConfigError',
    'ConnectionFailed',
    'DatabaseError',
    'InvalidThroughAssociation',
    'NoActiveTransaction',
    'QueryFailed',
    'ReadOnlyRecord',
    'RecordNotFound',
    'RelationshipError',
    'UndefinedProperty',
    'UnsupportedDialect',
    'UnsupportedOperation',
    'Model',
    'get_model_class',
    'Relationship',
    'RelationshipKind',
    'HasMany',
    'HasOne',
    'BelongsTo',
    'HasAndBelongsToMany',
    'Table',
    'Transaction',
    'transaction',
    ]
