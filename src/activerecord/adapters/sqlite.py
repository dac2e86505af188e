"""
SQLite adapter.

- Autocommit via `isolation_level = None`; transactions issue an explicit BEGIN
- Column metadata from PRAGMA table_info
- Dates round-trip as ISO text, parsed back by registered converters
- No sequences: ids come from `last_insert_rowid()`
"""
import datetime
import decimal
import logging
import re
import sqlite3
from typing import Any

from dateutil.parser import isoparse

from activerecord.adapters.base import Adapter, register_adapter
from activerecord.column import Column
from activerecord.cursor import Cursor
from activerecord.exceptions import UnsupportedOperation

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r'^-?\d+(\.\d+)?$')


def convert_date(value: bytes) -> datetime.date | str:
    """Converter for columns declared `date`."""
    text = value.decode()
    try:
        return isoparse(text).date()
    except ValueError:
        return text


def convert_datetime(value: bytes) -> datetime.datetime | str:
    """Converter for columns declared `datetime`."""
    text = value.decode()
    try:
        return isoparse(text)
    except ValueError:
        return text


def _parse_default(default: str | None) -> Any:
    """Turn a PRAGMA `dflt_value` into a Python value.

    Quoted strings are unquoted and numbers converted; NULL and expressions
    such as CURRENT_TIMESTAMP have no client-side default.
    """
    if default is None:
        return None
    default = default.strip()
    if len(default) >= 2 and default[0] == default[-1] == "'":
        return default[1:-1].replace("''", "'")
    if _NUMBER.match(default):
        return decimal.Decimal(default) if '.' in default else int(default)
    return None


@register_adapter('sqlite')
class SQLiteAdapter(Adapter):
    """SQLite-specific operations.
    """

    drivername = 'sqlite'
    DEFAULT_PORT = 0
    QUOTE_CHARACTER = '"'
    PARAMSTYLE = 'qmark'

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for SQLite connections."""
        return ['database']

    def get_engine_kwargs(self) -> dict[str, Any]:
        return {
            'connect_args': {
                'detect_types': sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES
            }
        }

    def configure_connection(self, raw_conn: Any) -> None:
        """Register type adapters and converters, enable foreign keys.
        """
        # Adapters (Python -> SQLite)
        sqlite3.register_adapter(decimal.Decimal, str)
        sqlite3.register_adapter(datetime.datetime, lambda v: v.isoformat(' '))
        sqlite3.register_adapter(datetime.date, lambda v: v.isoformat())
        sqlite3.register_adapter(datetime.time, lambda v: v.isoformat())

        # Converters (SQLite -> Python)
        sqlite3.register_converter('date', convert_date)
        sqlite3.register_converter('datetime', convert_datetime)

        raw_conn.row_factory = sqlite3.Row
        raw_conn.execute('PRAGMA foreign_keys = ON')
        self.enable_autocommit(raw_conn)

    def enable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.isolation_level = None

    def disable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.isolation_level = 'DEFERRED'

    def begin(self) -> None:
        self.connection.execute('BEGIN')

    def set_encoding(self, charset: str) -> None:
        raise UnsupportedOperation('SQLite does not support setting the connection charset')

    def paginate(self, sql: str, offset: int | None, limit: int | None) -> str:
        limit = 0 if limit is None else int(limit)
        if offset is None:
            return f'{sql} LIMIT {limit}'
        return f'{sql} LIMIT {limit} OFFSET {int(offset)}'

    def query_column_info(self, table: str) -> Cursor:
        return self.query(f'PRAGMA table_info({self.quote_identifier(table)})')

    def create_column(self, row: dict[str, Any]) -> Column:
        pk = bool(row['pk'])
        raw_type = row['type'] or 'text'
        return Column.from_raw(
            row['name'],
            raw_type,
            self.TYPE_MAP,
            nullable=not row['notnull'] and not pk,
            pk=pk,
            default=_parse_default(row['dflt_value']),
            auto_increment=pk and raw_type.lower().startswith('int'),
            )

    def query_for_tables(self) -> Cursor:
        return self.query("SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name")

    def last_insert_id(self, sequence: str | None = None) -> int:
        return self.query_and_fetch_one('SELECT last_insert_rowid()')
