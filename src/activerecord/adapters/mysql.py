"""
MySQL adapter (PyMySQL).

Identifiers are quoted with backticks, pagination uses `LIMIT offset,count`
and ids come from LAST_INSERT_ID().
"""
import logging
from typing import Any

from activerecord.adapters.base import Adapter, register_adapter
from activerecord.column import BASE_TYPE_MAP, Column, ColumnType
from activerecord.cursor import Cursor

logger = logging.getLogger(__name__)

_TYPE_MAP: dict[str, ColumnType] = {
    **BASE_TYPE_MAP,
    'year': ColumnType.INTEGER,
    'enum': ColumnType.STRING,
    'set': ColumnType.STRING,
    }


@register_adapter('mysql')
class MySQLAdapter(Adapter):
    """MySQL-specific operations.
    """

    drivername = 'mysql+pymysql'
    DEFAULT_PORT = 3306
    QUOTE_CHARACTER = '`'
    PARAMSTYLE = 'format'
    TYPE_MAP = _TYPE_MAP

    def enable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.autocommit(True)

    def disable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.autocommit(False)

    def begin(self) -> None:
        self.connection.begin()

    def create_dict_cursor(self) -> Any:
        from pymysql.cursors import DictCursor
        return self.connection.cursor(DictCursor)

    def escape_literal(self, value: Any) -> str:
        if isinstance(value, str):
            return "'" + value.replace('\\', '\\\\').replace("'", "''") + "'"
        return super().escape_literal(value)

    def paginate(self, sql: str, offset: int | None, limit: int | None) -> str:
        limit = 0 if limit is None else int(limit)
        if offset is None:
            return f'{sql} LIMIT {limit}'
        return f'{sql} LIMIT {int(offset)},{limit}'

    def query_column_info(self, table: str) -> Cursor:
        return self.query(f'SHOW COLUMNS FROM {self.quote_identifier(table)}')

    def create_column(self, row: dict[str, Any]) -> Column:
        raw_type = row['Type']
        if isinstance(raw_type, bytes):
            raw_type = raw_type.decode()
        return Column.from_raw(
            row['Field'],
            raw_type,
            self.TYPE_MAP,
            nullable=row['Null'] == 'YES',
            pk=row['Key'] == 'PRI',
            default=row['Default'],
            auto_increment=row['Extra'] == 'auto_increment',
            )

    def query_for_tables(self) -> Cursor:
        return self.query('SHOW TABLES')

    def last_insert_id(self, sequence: str | None = None) -> int:
        return self.query_and_fetch_one('SELECT LAST_INSERT_ID()')
