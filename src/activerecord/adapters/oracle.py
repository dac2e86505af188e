"""
Oracle adapter (python-oracledb).

Oracle folds unquoted names to upper case, so generated SQL writes names
bare and fetched column names are lowercased. Pagination wraps the query in
ROWNUM subqueries and ids come from `<table>_seq`.
"""
import logging
from typing import Any

from activerecord.adapters.base import Adapter, register_adapter
from activerecord.column import BASE_TYPE_MAP, Column, ColumnType
from activerecord.cursor import Cursor
from activerecord.exceptions import UnsupportedOperation

logger = logging.getLogger(__name__)

_ROWNUM = 'ar_rnum__'

_COLUMN_INFO_SQL = """
SELECT c.column_name, c.data_type, c.data_length, c.data_scale, c.data_default, c.nullable,
    (SELECT a.constraint_type
        FROM all_constraints a, all_cons_columns b
        WHERE a.constraint_type = 'P'
        AND a.constraint_name = b.constraint_name
        AND a.table_name = t.table_name
        AND b.column_name = c.column_name
        AND a.owner = b.owner
        AND ROWNUM = 1) AS pk
FROM user_tables t
INNER JOIN user_tab_columns c ON (t.table_name = c.table_name)
WHERE t.table_name = ?
ORDER BY c.column_id
"""

_TYPE_MAP: dict[str, ColumnType] = {
    **BASE_TYPE_MAP,
    'number': ColumnType.DECIMAL,
    'binary_float': ColumnType.DECIMAL,
    'binary_double': ColumnType.DECIMAL,
    'date': ColumnType.DATETIME,
    }


@register_adapter('oracle')
class OracleAdapter(Adapter):
    """Oracle-specific operations.
    """

    drivername = 'oracle+oracledb'
    DEFAULT_PORT = 1521
    QUOTE_CHARACTER = '"'
    SUPPORTS_SEQUENCES = True
    PARAMSTYLE = 'numeric'
    DATETIME_FORMAT = '%d-%b-%Y %I:%M:%S %p'
    DATE_FORMAT = '%d-%b-%Y'
    TYPE_MAP = _TYPE_MAP

    def configure_connection(self, raw_conn: Any) -> None:
        self.enable_autocommit(raw_conn)
        with raw_conn.cursor() as cursor:
            cursor.execute("ALTER SESSION SET NLS_DATE_FORMAT = 'YYYY-MM-DD HH24:MI:SS'")

    def enable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.autocommit = True

    def disable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.autocommit = False

    def set_encoding(self, charset: str) -> None:
        """The client character set is fixed when the driver connects."""
        logger.info(f'Oracle connection charset requested: {charset}')

    def sql_identifier(self, name: str) -> str:
        return name

    def normalize_column_name(self, name: str) -> str:
        return name.lower()

    def normalize_row(self, row: dict[str, Any]) -> dict[str, Any]:
        row = super().normalize_row(row)
        row.pop(_ROWNUM, None)
        return row

    def paginate(self, sql: str, offset: int | None, limit: int | None) -> str:
        limit = 0 if limit is None else int(limit)
        if offset is None:
            return f'SELECT * FROM ({sql}) WHERE ROWNUM <= {limit}'
        offset = int(offset)
        return (f'SELECT * FROM (SELECT a.*, ROWNUM {_ROWNUM} FROM ({sql}) a '
                f'WHERE ROWNUM <= {offset + limit}) WHERE {_ROWNUM} > {offset}')

    def query_column_info(self, table: str) -> Cursor:
        return self.query(_COLUMN_INFO_SQL, (table.upper(),))

    def create_column(self, row: dict[str, Any]) -> Column:
        raw_type = row['data_type'].lower()
        if raw_type == 'number' and row['data_scale'] == 0:
            raw_type = 'int'
        name = row['column_name'].lower()
        pk = row['pk'] == 'P'

        default = row['data_default']
        if isinstance(default, str):
            default = default.strip()
            if len(default) >= 2 and default[0] == default[-1] == "'":
                default = default[1:-1].replace("''", "'")
            elif default.upper() == 'NULL':
                default = None

        column = Column.from_raw(
            name,
            raw_type,
            self.TYPE_MAP,
            nullable=row['nullable'] == 'Y',
            pk=pk,
            default=default,
            )
        if raw_type not in {'int', 'number', 'date', 'timestamp'} and row['data_length']:
            column.length = int(row['data_length'])
        return column

    def query_for_tables(self) -> Cursor:
        return self.query('SELECT table_name FROM user_tables ORDER BY table_name')

    def tables(self) -> list[str]:
        return [name.lower() for name in super().tables()]

    def columns(self, table: str, bypass_cache: bool = False) -> dict[str, Column]:
        columns = super().columns(table, bypass_cache=bypass_cache)
        for column in columns.values():
            if column.pk and column.sequence is None:
                column.sequence = self.sequence_name_for(table, column.name)
        return columns

    def sequence_name_for(self, table: str, column: str) -> str:
        return f'{table}_seq'

    def next_sequence_value(self, sequence_name: str) -> int:
        return self.query_and_fetch_one(f'SELECT {sequence_name}.nextval FROM dual')

    def last_insert_id(self, sequence: str | None = None) -> int:
        if sequence is None:
            raise UnsupportedOperation('Oracle has no last insert id without a sequence name')
        return self.query_and_fetch_one(f'SELECT {sequence}.currval FROM dual')
