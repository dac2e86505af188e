"""
SQL text helpers shared by the adapters, the table descriptor and the
relationship engine.

All generated SQL uses positional `?` placeholders. Adapters rewrite them to
the driver paramstyle right before execution with `standardize_placeholders`.

Main entry points:
- `quote_identifier()` - wrap a name in a quote character, idempotently
- `standardize_placeholders()` - convert `?` to `%s` or `:n`, respecting literals
- `expand_conditions()` - turn dict/str/list conditions into SQL and values
- `SQLBuilder` - SELECT/INSERT/UPDATE/DELETE statement assembly
"""
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from activerecord.adapters.base import Adapter

__all__ = [
    'quote_identifier',
    'make_placeholders',
    'standardize_placeholders',
    'has_placeholders',
    'expand_conditions',
    'merge_conditions',
    'reverse_order',
    'SQLBuilder',
]


class TokenType(Enum):
    """Token types identified during SQL scanning."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    PLACEHOLDER = auto()


@dataclass(slots=True)
class Token:
    """Token from SQL scanning."""
    type: TokenType
    text: str


_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*"|`[^`]*`)
    |(?P<qmark>\?)
""", re.VERBOSE)


def tokenize_sql(sql: str) -> list[Token]:
    """Split SQL into text, literal and placeholder tokens.

    Quoted strings and quoted identifiers are kept whole so a `?` inside them
    is never mistaken for a placeholder.
    """
    tokens = []
    last_end = 0

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()
        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start]))
        if match.group('string'):
            tokens.append(Token(TokenType.STRING_LITERAL, match.group(0)))
        else:
            tokens.append(Token(TokenType.PLACEHOLDER, match.group(0)))
        last_end = end

    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:]))

    return tokens


def has_placeholders(sql: str | None) -> bool:
    """Check if SQL has `?` placeholders outside of literals."""
    if not sql or '?' not in sql:
        return False
    return any(t.type is TokenType.PLACEHOLDER for t in tokenize_sql(sql))


def make_placeholders(count: int) -> str:
    """`3` -> `?, ?, ?`"""
    return ', '.join(['?'] * count)


def quote_identifier(name: str, quote_char: str = '"') -> str:
    """Wrap a table or column name in the quote character.

    A name that already starts or ends with the quote character is returned
    unchanged, so quoting is idempotent.

    >>> quote_identifier('authors')
    '"authors"'
    >>> quote_identifier('"authors"')
    '"authors"'
    >>> quote_identifier('name`', '`')
    'name`'
    """
    if not name:
        return name
    if name[0] == quote_char or name[-1] == quote_char:
        return name
    return f'{quote_char}{name}{quote_char}'


def standardize_placeholders(sql: str, paramstyle: str = 'qmark',
                             escape_percent: bool = False) -> str:
    """Convert `?` placeholders to the driver paramstyle.

    Parameters
        sql: SQL query string written with `?` placeholders
        paramstyle: 'qmark' (sqlite3), 'format' (psycopg, pymysql) or 'numeric' (oracledb)
        escape_percent: double every `%` so format-style drivers do not interpolate it

    Returns
        SQL with standardized placeholders
    """
    if not sql or (paramstyle == 'qmark'):
        return sql

    result = []
    position = 0
    for token in tokenize_sql(sql):
        if token.type is TokenType.PLACEHOLDER:
            position += 1
            result.append('%s' if paramstyle == 'format' else f':{position}')
        elif escape_percent and paramstyle == 'format':
            result.append(token.text.replace('%', '%%'))
        else:
            result.append(token.text)
    return ''.join(result)


def _is_list(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def _expand_positional(sql: str, values: list[Any]) -> tuple[str, list[Any]]:
    """Expand list-valued parameters into `?, ?, ?` and empty lists into NULL."""
    if not any(_is_list(v) for v in values):
        return sql, list(values)

    out = []
    bound: list[Any] = []
    remaining = iter(values)
    for token in tokenize_sql(sql):
        if token.type is not TokenType.PLACEHOLDER:
            out.append(token.text)
            continue
        try:
            value = next(remaining)
        except StopIteration:
            out.append(token.text)
            continue
        if _is_list(value):
            if value:
                out.append(make_placeholders(len(value)))
                bound.extend(value)
            else:
                out.append('NULL')
        else:
            out.append('?')
            bound.append(value)
    bound.extend(remaining)
    return ''.join(out), bound


def expand_conditions(conditions: Any,
                      quote: Callable[[str], str] = quote_identifier) -> tuple[str, list[Any]]:
    """Turn finder conditions into a SQL fragment and bound values.

    Accepted forms:
        'name = "Tito"'                      -> raw SQL, no values
        ['name = ? AND id IN(?)', 'x', [1, 2]] -> `?` expanded for list values
        {'name': 'x', 'id': [1, 2]}         -> ANDed equality / IN / IS NULL

    >>> expand_conditions(['id IN(?)', [1, 2]])
    ('id IN(?, ?)', [1, 2])
    >>> expand_conditions({'author_id': None})
    ('"author_id" IS NULL', [])
    """
    if conditions is None:
        return '', []

    if isinstance(conditions, str):
        return conditions, []

    if isinstance(conditions, Mapping):
        parts = []
        values: list[Any] = []
        for name, value in conditions.items():
            column = '.'.join(quote(part) for part in str(name).split('.'))
            if value is None:
                parts.append(f'{column} IS NULL')
            elif _is_list(value):
                if value:
                    parts.append(f'{column} IN({make_placeholders(len(value))})')
                    values.extend(value)
                else:
                    parts.append(f'{column} IN(NULL)')
            else:
                parts.append(f'{column} = ?')
                values.append(value)
        return ' AND '.join(parts), values

    if _is_list(conditions):
        conditions = list(conditions)
        if not conditions:
            return '', []
        return _expand_positional(str(conditions[0]), conditions[1:])

    raise TypeError(f'Unsupported conditions type: {type(conditions).__name__}')


def merge_conditions(*conditions: Any,
                     quote: Callable[[str], str] = quote_identifier) -> list[Any] | None:
    """AND several condition values together into list form.

    Empty conditions are skipped; returns None when nothing remains.
    """
    parts = []
    values: list[Any] = []
    for condition in conditions:
        sql, bound = expand_conditions(condition, quote)
        if sql:
            parts.append(sql)
            values.extend(bound)

    if not parts:
        return None
    if len(parts) == 1:
        return [parts[0], *values]
    return [' AND '.join(f'({p})' for p in parts), *values]


def reverse_order(order: str | None) -> str:
    """Flip the direction of every term in an ORDER BY clause.

    >>> reverse_order('name ASC, author_id')
    'name DESC, author_id DESC'
    """
    if not order or not order.strip():
        return ''

    terms = []
    for term in order.split(','):
        term = term.strip()
        if re.search(r'\s+DESC$', term, re.IGNORECASE):
            terms.append(re.sub(r'\s+DESC$', ' ASC', term, flags=re.IGNORECASE))
        elif re.search(r'\s+ASC$', term, re.IGNORECASE):
            terms.append(re.sub(r'\s+ASC$', ' DESC', term, flags=re.IGNORECASE))
        else:
            terms.append(f'{term} DESC')
    return ', '.join(terms)


class SQLBuilder:
    """Assemble one statement against a single table.

    Identifiers go through the adapter so the result is dialect-correct, and
    pagination is delegated to `Adapter.paginate`.

    Examples
        builder = SQLBuilder(adapter, 'authors')
        builder.where({'name': 'Tito'}).order('name').limit(1)
        adapter.query(builder.to_sql(), builder.bind_values())
    """

    def __init__(self, adapter: 'Adapter', table: str) -> None:
        self.adapter = adapter
        self.table = adapter.sql_identifier(table)
        self.operation = 'SELECT'
        self._select = '*'
        self._joins: str | None = None
        self._where: str | None = None
        self._where_values: list[Any] = []
        self._order: str | None = None
        self._group: str | None = None
        self._having: str | None = None
        self._limit: int | None = None
        self._offset: int | None = None
        self._data: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.to_sql()

    def bind_values(self) -> list[Any]:
        """Values in placeholder order: SET/VALUES data first, then WHERE."""
        values = list(self._data.values()) if self._data else []
        values.extend(self._where_values)
        return values

    def select(self, select: str) -> 'SQLBuilder':
        self.operation = 'SELECT'
        self._select = select
        return self

    def joins(self, joins: str) -> 'SQLBuilder':
        self._joins = joins
        return self

    def where(self, conditions: Any) -> 'SQLBuilder':
        sql, values = expand_conditions(conditions, self.adapter.sql_identifier)
        self._where = sql or None
        self._where_values = values
        return self

    def order(self, order: str) -> 'SQLBuilder':
        self._order = order
        return self

    def group(self, group: str) -> 'SQLBuilder':
        self._group = group
        return self

    def having(self, having: str) -> 'SQLBuilder':
        self._having = having
        return self

    def limit(self, limit: int | None) -> 'SQLBuilder':
        self._limit = None if limit is None else int(limit)
        return self

    def offset(self, offset: int | None) -> 'SQLBuilder':
        self._offset = None if offset is None else int(offset)
        return self

    def insert(self, data: Mapping[str, Any]) -> 'SQLBuilder':
        if not data:
            raise ValueError('Cannot insert a row without data')
        self.operation = 'INSERT'
        self._data = dict(data)
        return self

    def update(self, data: Mapping[str, Any]) -> 'SQLBuilder':
        if not data:
            raise ValueError('Cannot update a row without data')
        self.operation = 'UPDATE'
        self._data = dict(data)
        return self

    def delete(self, conditions: Any = None) -> 'SQLBuilder':
        self.operation = 'DELETE'
        if conditions is not None:
            self.where(conditions)
        return self

    def to_sql(self) -> str:
        builder = getattr(self, f'_build_{self.operation.lower()}')
        return builder()

    def _build_select(self) -> str:
        sql = f'SELECT {self._select} FROM {self.table}'
        if self._joins:
            sql += f' {self._joins}'
        if self._where:
            sql += f' WHERE {self._where}'
        if self._group:
            sql += f' GROUP BY {self._group}'
        if self._having:
            sql += f' HAVING {self._having}'
        if self._order:
            sql += f' ORDER BY {self._order}'
        if self._limit is not None or self._offset is not None:
            sql = self.adapter.paginate(sql, self._offset, self._limit)
        return sql

    def _build_insert(self) -> str:
        columns = ','.join(self.adapter.sql_identifier(c) for c in self._data)
        return f'INSERT INTO {self.table}({columns}) VALUES({make_placeholders(len(self._data))})'

    def _build_update(self) -> str:
        assignments = ', '.join(f'{self.adapter.sql_identifier(c)}=?' for c in self._data)
        sql = f'UPDATE {self.table} SET {assignments}'
        if self._where:
            sql += f' WHERE {self._where}'
        return sql

    def _build_delete(self) -> str:
        sql = f'DELETE FROM {self.table}'
        if self._where:
            sql += f' WHERE {self._where}'
        return sql
