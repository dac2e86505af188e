"""
Base adapter: the uniform contract every dialect implements.

An adapter owns one open engine connection. Connecting goes through a
SQLAlchemy engine (NullPool, one connection per adapter) and all statements
then run on the raw DB-API connection, so each dialect only supplies its SQL
and driver quirks:

- quoting, pagination and literal escaping
- schema introspection (`query_column_info`, `create_column`, `query_for_tables`)
- autocommit switching for transactions
- last insert id and sequences

Concrete adapters register themselves with `@register_adapter('<protocol>')`.
"""
import datetime
import decimal
import itertools
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from dateutil import parser as dateparser
from sqlalchemy.pool import NullPool

from activerecord.cache import Cache, cacheable_metadata
from activerecord.column import BASE_TYPE_MAP, Column, ColumnType
from activerecord.config import Config
from activerecord.cursor import Cursor
from activerecord.exceptions import ConnectionFailed, DriverConnectionError
from activerecord.exceptions import NoActiveTransaction, QueryFailed
from activerecord.exceptions import UnsupportedOperation
from activerecord.sql import quote_identifier, standardize_placeholders

if TYPE_CHECKING:
    from activerecord.connection import ConnectionInfo

logger = logging.getLogger(__name__)

# Registry of protocol -> adapter class
_ADAPTER_REGISTRY: dict[str, type['Adapter']] = {}

# Serial numbers for adapter instances, never reused within a process
_ADAPTER_SERIAL = itertools.count(1)


def register_adapter(protocol: str):
    """Decorator to register an adapter class for a protocol.

    Usage:
        @register_adapter('postgresql')
        class PostgresAdapter(Adapter):
            ...
    """
    def decorator(cls: type['Adapter']) -> type['Adapter']:
        _ADAPTER_REGISTRY[protocol] = cls
        cls.protocol = protocol
        return cls
    return decorator


class Adapter(ABC):
    """Dialect-specific implementation of the database contract.
    """

    protocol: str = ''
    drivername: str = ''
    DEFAULT_PORT: int = 0
    QUOTE_CHARACTER: str = '"'
    SUPPORTS_SEQUENCES: bool = False
    PARAMSTYLE: str = 'qmark'
    DATETIME_FORMAT: str = '%Y-%m-%d %H:%M:%S %Z'
    DATE_FORMAT: str = '%Y-%m-%d'
    TYPE_MAP: dict[str, ColumnType] = BASE_TYPE_MAP

    def __init__(self, info: 'ConnectionInfo', config: Config | None = None) -> None:
        self.info = info
        self.config = config or Config()
        self.sql_logger = self.config.get_logger()
        self.last_query: str | None = None
        self.engine: sa.engine.Engine | None = None
        self.sa_connection: sa.engine.Connection | None = None
        self.connection: Any = None
        self.dbapi: Any = None
        self.in_transaction = False
        self.calls = 0
        self.time = 0.0
        self.serial = next(_ADAPTER_SERIAL)

        self.validate_info(info)
        self.connect()
        if info.charset:
            try:
                self.set_encoding(info.charset)
            except Exception:
                self.close()
                raise

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__} {self.cache_key}>'

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Connection parts that must be present for this dialect."""
        return ['host', 'database']

    @classmethod
    def validate_info(cls, info: 'ConnectionInfo') -> None:
        """Raise ConnectionFailed if a required connection part is missing."""
        missing = [name for name in cls.get_required_options() if not getattr(info, name)]
        if missing:
            raise ConnectionFailed(f'Missing required connection options for {info.protocol}: {", ".join(missing)}')

    @property
    def cache_key(self) -> str:
        """Identifies this connection in metadata caches."""
        info = self.info
        return f'{info.protocol}://{info.user or ""}@{info.host or ""}:{info.port or ""}/{info.database or ""}#{self.serial}'

    # -- connecting -------------------------------------------------------

    def build_url(self) -> sa.URL:
        """Build the SQLAlchemy connection URL."""
        info = self.info
        return sa.URL.create(
            drivername=self.drivername,
            username=info.user,
            password=info.password,
            host=info.host,
            port=info.port or self.DEFAULT_PORT or None,
            database=info.database,
            )

    def get_engine_kwargs(self) -> dict[str, Any]:
        """Extra keyword arguments for `sqlalchemy.create_engine`."""
        return {}

    def connect(self, engine_factory: Callable[..., sa.engine.Engine] = sa.create_engine) -> None:
        """Open the engine connection and configure it.

        Failures of any kind (driver missing, bad credentials, unknown host
        or database) are raised as ConnectionFailed with the driver message.
        """
        url = self.build_url()
        try:
            self.engine = engine_factory(url, poolclass=NullPool, **self.get_engine_kwargs())
            self.sa_connection = self.engine.connect()
        except (sa.exc.SQLAlchemyError, ImportError, *DriverConnectionError) as err:
            logger.error(f'Failed to connect to {self.protocol} database {self.info.database!r}: {err}')
            raise ConnectionFailed(str(err)) from err

        self.connection = self.sa_connection.connection.dbapi_connection
        self.dbapi = self.engine.dialect.loaded_dbapi
        self.configure_connection(self.connection)
        logger.debug(f'Connected to {self.protocol} database {self.info.database!r}')

    def configure_connection(self, raw_conn: Any) -> None:
        """Apply session settings right after connecting."""
        self.enable_autocommit(raw_conn)

    @abstractmethod
    def enable_autocommit(self, raw_conn: Any) -> None:
        """Enable auto-commit mode on the raw connection."""

    @abstractmethod
    def disable_autocommit(self, raw_conn: Any) -> None:
        """Disable auto-commit mode on the raw connection."""

    def set_encoding(self, charset: str) -> None:
        """Set the client character set."""
        self.query('SET NAMES ?', (charset,))

    def close(self) -> None:
        """Close the connection and dispose of the engine."""
        if self.sa_connection is not None and not self.sa_connection.closed:
            self.sa_connection.close()
        if self.engine is not None:
            self.engine.dispose()
        Cache.get_instance().clear_for_connection(self.cache_key)
        logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s')

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics."""
        self.time += elapsed
        self.calls += 1

    # -- executing --------------------------------------------------------

    def create_dict_cursor(self) -> Any:
        """Create a driver cursor that returns mapping rows where supported."""
        return self.connection.cursor()

    def standardize_sql(self, sql: str, has_values: bool = False) -> str:
        """Rewrite `?` placeholders for the driver."""
        return standardize_placeholders(sql, self.PARAMSTYLE, escape_percent=has_values)

    def convert_values(self, values: tuple[Any, ...]) -> tuple[Any, ...]:
        """Adapt bound values for the driver."""
        return values

    def normalize_column_name(self, name: str) -> str:
        return name

    def normalize_row(self, row: dict[str, Any]) -> dict[str, Any]:
        """Normalize a fetched row's keys."""
        return {self.normalize_column_name(k): v for k, v in row.items()}

    def query(self, sql: str, values: Any = None) -> Cursor:
        """Execute a statement with positional `?` placeholders.

        The SQL logger, when configured, receives the SQL text and then the
        bound values before execution. Driver errors are raised as QueryFailed
        carrying the engine's message.
        """
        values = tuple(values) if values else ()
        self.last_query = sql

        if self.sql_logger is not None:
            self.sql_logger.log(sql)
            if values:
                self.sql_logger.log(values)

        cursor = Cursor(self.create_dict_cursor(), self)
        try:
            cursor.execute(self.standardize_sql(sql, bool(values)),
                           self.convert_values(values) if values else None)
        except self.dbapi.Error as err:
            raise QueryFailed(str(err), sql, values) from err
        return cursor

    def query_and_fetch(self, sql: str, handler: Callable[[dict[str, Any]], Any] | None = None,
                        values: Any = None) -> list[dict[str, Any]]:
        """Execute and return all rows, calling `handler` for each if given."""
        rows = self.query(sql, values).fetchall()
        if handler is not None:
            for row in rows:
                handler(row)
        return rows

    def query_and_fetch_one(self, sql: str, values: Any = None) -> Any:
        """First column of the first row, None when there are no rows."""
        row = self.query(sql, values).fetch()
        if row is None:
            return None
        return next(iter(row.values()), None)

    # -- transactions -----------------------------------------------------

    def transaction(self) -> None:
        """Begin a transaction. Nested transactions are not supported."""
        if self.in_transaction:
            raise RuntimeError('Nested transactions are not supported')
        self.disable_autocommit(self.connection)
        self.begin()
        self.in_transaction = True
        logger.debug(f'Started transaction on {self!r}')

    def begin(self) -> None:
        """Start the transaction once autocommit is off."""

    def commit(self) -> None:
        """Commit the open transaction."""
        if not self.in_transaction:
            raise NoActiveTransaction('Cannot commit: no transaction is active')
        try:
            self.connection.commit()
        except self.dbapi.Error as err:
            raise QueryFailed(str(err)) from err
        finally:
            self._end_transaction()
        logger.debug(f'Committed transaction on {self!r}')

    def rollback(self) -> None:
        """Roll back the open transaction."""
        if not self.in_transaction:
            raise NoActiveTransaction('Cannot rollback: no transaction is active')
        try:
            self.connection.rollback()
        except self.dbapi.Error as err:
            raise QueryFailed(str(err)) from err
        finally:
            self._end_transaction()
        logger.warning('Rolling back the current transaction')

    def _end_transaction(self) -> None:
        self.in_transaction = False
        self.enable_autocommit(self.connection)

    # -- SQL text ---------------------------------------------------------

    def quote_identifier(self, name: str) -> str:
        """Quote a name unless it already starts or ends with the quote char."""
        return quote_identifier(name, self.QUOTE_CHARACTER)

    def sql_identifier(self, name: str) -> str:
        """Identifier as written into generated SQL."""
        return self.quote_identifier(name)

    def escape_literal(self, value: Any) -> str:
        """Engine-safe literal for `value`. Never use for identifiers.
        """
        if value is None:
            return 'NULL'
        if isinstance(value, bool):
            return '1' if value else '0'
        if isinstance(value, (int, float, decimal.Decimal)):
            return str(value)
        if isinstance(value, datetime.datetime):
            return self._quote_string(self.datetime_to_string(value))
        if isinstance(value, datetime.date):
            return self._quote_string(self.date_to_string(value))
        return self._quote_string(str(value))

    def _quote_string(self, value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    @abstractmethod
    def paginate(self, sql: str, offset: int | None, limit: int | None) -> str:
        """Rewrite `sql` to return at most `limit` rows starting at `offset`.

        A None offset gives a limit-only clause. A None limit is rendered as
        a zero limit, so both None returns no rows.
        """

    # -- dates ------------------------------------------------------------

    def datetime_to_string(self, value: datetime.datetime) -> str:
        return value.strftime(self.DATETIME_FORMAT).rstrip()

    def date_to_string(self, value: datetime.date) -> str:
        return value.strftime(self.DATE_FORMAT)

    def string_to_datetime(self, string: str) -> Any:
        """Parse a date string into the configured date class.

        Returns None when the string cannot be parsed.
        """
        try:
            parsed = dateparser.parse(string)
        except (ValueError, OverflowError):
            return None

        date_class = self.config.get_date_class()
        if isinstance(parsed, date_class):
            return parsed
        return date_class(parsed.year, parsed.month, parsed.day, parsed.hour,
                          parsed.minute, parsed.second, parsed.microsecond, parsed.tzinfo)

    # -- introspection ----------------------------------------------------

    @cacheable_metadata('columns', ttl=300, maxsize=200)
    def columns(self, table: str) -> dict[str, Column]:
        """Column catalog for `table`, keyed by the physical column name.
        """
        return {column.name: column for column in
                (self.create_column(row) for row in self.query_column_info(table))}

    @abstractmethod
    def query_column_info(self, table: str) -> Cursor:
        """Run the dialect's column introspection query."""

    @abstractmethod
    def create_column(self, row: dict[str, Any]) -> Column:
        """Build a Column from one row of `query_column_info`."""

    @abstractmethod
    def query_for_tables(self) -> Cursor:
        """Run a query returning one row with one field per visible table."""

    def tables(self) -> list[str]:
        """Names of the tables visible in the current schema."""
        return [next(iter(row.values())) for row in self.query_for_tables()]

    # -- keys and sequences -----------------------------------------------

    def supports_sequences(self) -> bool:
        return self.SUPPORTS_SEQUENCES

    def sequence_name_for(self, table: str, column: str) -> str:
        """Sequence feeding `table.column`."""
        raise UnsupportedOperation(f'{self.protocol} does not use sequences')

    def next_sequence_value(self, sequence_name: str) -> Any:
        """Draw the next value from a sequence."""
        raise UnsupportedOperation(f'{self.protocol} does not use sequences')

    @abstractmethod
    def last_insert_id(self, sequence: str | None = None) -> Any:
        """Id generated by the last insert on this connection."""
