"""
Cursor wrapper returning rows as dictionaries.

Implements the parts of Python DB-API 2.0 (PEP-249) the mapper needs, with
column names normalized by the owning adapter.
"""
import logging
import time
from collections.abc import Iterator
from functools import wraps
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from activerecord.adapters.base import Adapter

logger = logging.getLogger(__name__)

__all__ = ['Cursor', 'dumpsql']


def dumpsql(func):
    """Decorator for logging SQL queries and parameters."""
    @wraps(func)
    def wrapper(self, operation: str, *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{operation}\nargs: {args}')
        try:
            return func(self, operation, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{operation}\nargs: {args}')
            raise
        finally:
            elapsed = time.time() - start
            self.adapter.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


class Cursor:
    """Wraps a driver cursor so every row comes back as a `dict`.

    Drivers that already hand out mapping rows (psycopg `dict_row`,
    `sqlite3.Row`, pymysql `DictCursor`) are converted directly; tuple rows
    are zipped with the cursor description.
    """

    def __init__(self, cursor: Any, adapter: 'Adapter') -> None:
        self.dbapi_cursor = cursor
        self.adapter = adapter

    def __iter__(self) -> Iterator[dict[str, Any]]:
        while (row := self.fetch()) is not None:
            yield row

    @property
    def description(self) -> list[tuple] | None:
        """Column descriptions for last query."""
        return self.dbapi_cursor.description

    @property
    def rowcount(self) -> int:
        """Number of rows produced/affected by last operation."""
        return self.dbapi_cursor.rowcount

    @dumpsql
    def execute(self, operation: str, params: Any = None) -> int:
        """Execute a database operation.

        `params` of None means no placeholder processing by the driver.
        """
        if params is None:
            self.dbapi_cursor.execute(operation)
        else:
            self.dbapi_cursor.execute(operation, params)
        return self.dbapi_cursor.rowcount

    def _to_dict(self, row: Any) -> dict[str, Any] | None:
        if row is None:
            return None
        if isinstance(row, dict):
            data = row
        elif hasattr(row, 'keys'):
            data = {key: row[key] for key in row.keys()}
        else:
            names = [desc[0] for desc in self.dbapi_cursor.description]
            data = dict(zip(names, row))
        return self.adapter.normalize_row(data)

    def fetch(self) -> dict[str, Any] | None:
        """Fetch the next row, or None once the result set is exhausted."""
        if self.dbapi_cursor.description is None:
            return None
        return self._to_dict(self.dbapi_cursor.fetchone())

    def fetchall(self) -> list[dict[str, Any]]:
        """Fetch all remaining rows."""
        if self.dbapi_cursor.description is None:
            return []
        return [self._to_dict(row) for row in self.dbapi_cursor.fetchall()]

    def close(self) -> None:
        """Close cursor."""
        self.dbapi_cursor.close()
