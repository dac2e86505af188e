"""
PostgreSQL adapter (psycopg 3).

Column metadata is read from pg_attribute. A column whose default is a
`nextval('...')` call reports that sequence, which is also what
`last_insert_id` reads back with `currval`.
"""
import logging
import re
from typing import Any

from psycopg.rows import dict_row

from activerecord.adapters.base import Adapter, register_adapter
from activerecord.column import BASE_TYPE_MAP, Column, ColumnType
from activerecord.cursor import Cursor

logger = logging.getLogger(__name__)

_NEXTVAL = re.compile(r"nextval\('?\"?([^'\"]+)\"?'?")

_COLUMN_INFO_SQL = """
SELECT
    a.attname AS field,
    a.attlen,
    REPLACE(pg_catalog.format_type(a.atttypid, a.atttypmod), 'character varying', 'varchar') AS type,
    a.attnotnull AS not_nullable,
    (SELECT 't'
        FROM pg_catalog.pg_index
        WHERE c.oid = pg_index.indrelid
        AND a.attnum = ANY (pg_index.indkey)
        AND pg_index.indisprimary = 't'
    ) IS NOT NULL AS pk,
    REGEXP_REPLACE(
        REGEXP_REPLACE(
            REGEXP_REPLACE(pg_catalog.pg_get_expr(adef.adbin, adef.adrelid), '::[a-z_ ]+', ''),
        '''$', ''),
    '^''', '') AS "default"
FROM pg_catalog.pg_attribute a
LEFT JOIN pg_catalog.pg_class c ON (a.attrelid = c.oid)
LEFT JOIN pg_catalog.pg_attrdef adef ON (a.attrelid = adef.adrelid AND a.attnum = adef.adnum)
WHERE c.relname = ?
    AND a.attnum > 0
    AND NOT a.attisdropped
ORDER BY a.attnum
"""

_TYPE_MAP: dict[str, ColumnType] = {
    **BASE_TYPE_MAP,
    'smallserial': ColumnType.INTEGER,
    'serial': ColumnType.INTEGER,
    'bigserial': ColumnType.INTEGER,
    'int2': ColumnType.INTEGER,
    'int4': ColumnType.INTEGER,
    'int8': ColumnType.INTEGER,
    'real': ColumnType.DECIMAL,
    'float4': ColumnType.DECIMAL,
    'float8': ColumnType.DECIMAL,
    'timestamptz': ColumnType.DATETIME,
    'timetz': ColumnType.TIME,
    }


@register_adapter('postgresql')
class PostgresAdapter(Adapter):
    """PostgreSQL-specific operations.
    """

    drivername = 'postgresql+psycopg'
    DEFAULT_PORT = 5432
    QUOTE_CHARACTER = '"'
    SUPPORTS_SEQUENCES = True
    PARAMSTYLE = 'format'
    TYPE_MAP = _TYPE_MAP

    def enable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.autocommit = True

    def disable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.autocommit = False

    def create_dict_cursor(self) -> Any:
        return self.connection.cursor(row_factory=dict_row)

    def set_encoding(self, charset: str) -> None:
        self.query(f'SET NAMES {self.escape_literal(charset)}')

    def escape_literal(self, value: Any) -> str:
        if isinstance(value, bool):
            return 'TRUE' if value else 'FALSE'
        return super().escape_literal(value)

    def paginate(self, sql: str, offset: int | None, limit: int | None) -> str:
        limit = 0 if limit is None else int(limit)
        if offset is None:
            return f'{sql} LIMIT {limit}'
        return f'{sql} LIMIT {limit} OFFSET {int(offset)}'

    def query_column_info(self, table: str) -> Cursor:
        return self.query(_COLUMN_INFO_SQL, (table,))

    def create_column(self, row: dict[str, Any]) -> Column:
        default = row['default']
        sequence = None
        if isinstance(default, str) and default.startswith('nextval('):
            match = _NEXTVAL.search(default)
            sequence = match.group(1) if match else None
            default = None
        return Column.from_raw(
            row['field'],
            row['type'],
            self.TYPE_MAP,
            nullable=not row['not_nullable'],
            pk=bool(row['pk']),
            default=default,
            sequence=sequence,
            auto_increment=sequence is not None,
            )

    def query_for_tables(self) -> Cursor:
        return self.query("SELECT tablename FROM pg_catalog.pg_tables WHERE schemaname NOT IN ('information_schema', 'pg_catalog') ORDER BY tablename")

    def sequence_name_for(self, table: str, column: str) -> str:
        return f'{table}_{column}_seq'

    def next_sequence_value(self, sequence_name: str) -> int:
        return self.query_and_fetch_one('SELECT nextval(?)', (sequence_name,))

    def last_insert_id(self, sequence: str | None = None) -> int:
        if sequence is None:
            return self.query_and_fetch_one('SELECT lastval()')
        return self.query_and_fetch_one('SELECT currval(?)', (sequence,))
