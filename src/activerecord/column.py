"""
Column metadata and the canonical type catalog.

Every raw engine type is reduced to one of six canonical types. Adapters
extend `BASE_TYPE_MAP` with their own names; anything left unmapped degrades
to STRING.
"""
import datetime
import decimal
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from dateutil.parser import isoparser

from activerecord.inflector import variablize

if TYPE_CHECKING:
    from activerecord.adapters.base import Adapter

logger = logging.getLogger(__name__)

__all__ = ['Column', 'ColumnType', 'BASE_TYPE_MAP', 'DEFAULT_LENGTHS', 'parse_raw_type']


class ColumnType(Enum):
    STRING = 1
    INTEGER = 2
    DECIMAL = 3
    DATETIME = 4
    DATE = 5
    TIME = 6


BASE_TYPE_MAP: dict[str, ColumnType] = {
    'datetime': ColumnType.DATETIME,
    'timestamp': ColumnType.DATETIME,
    'date': ColumnType.DATE,
    'time': ColumnType.TIME,
    'tinyint': ColumnType.INTEGER,
    'smallint': ColumnType.INTEGER,
    'mediumint': ColumnType.INTEGER,
    'int': ColumnType.INTEGER,
    'bigint': ColumnType.INTEGER,
    'float': ColumnType.DECIMAL,
    'double': ColumnType.DECIMAL,
    'numeric': ColumnType.DECIMAL,
    'decimal': ColumnType.DECIMAL,
    'dec': ColumnType.DECIMAL,
    }

# Used when the engine reports no length
DEFAULT_LENGTHS: dict[ColumnType, int] = {
    ColumnType.DATETIME: 19,
    ColumnType.DATE: 10,
    ColumnType.TIME: 8,
    ColumnType.INTEGER: 11,
    }

_RAW_TYPE = re.compile(r'^([A-Za-z0-9_]+)(?:\(([0-9]+)(?:,[0-9]+)?\))?')

_isoparser = isoparser()


def parse_raw_type(raw_type: str) -> tuple[str, int | None]:
    """Split a raw engine type into its lowercase name and declared length.

    >>> parse_raw_type('varchar(25)')
    ('varchar', 25)
    >>> parse_raw_type('decimal(10,2)')
    ('decimal', 10)
    >>> parse_raw_type('INTEGER')
    ('int', None)
    >>> parse_raw_type("enum('a','b')")
    ('enum', None)
    """
    raw_type = (raw_type or '').strip()
    match = _RAW_TYPE.match(raw_type)
    if not match:
        return raw_type.lower(), None

    name = match.group(1).lower()
    length = int(match.group(2)) if match.group(2) else None
    if name == 'integer':
        name = 'int'
    return name, length


def map_raw_type(raw_type: str, type_map: dict[str, ColumnType] | None = None) -> ColumnType:
    """Canonical type for a parsed raw type name, STRING when unknown."""
    type_map = type_map or BASE_TYPE_MAP
    if raw_type in type_map:
        return type_map[raw_type]
    logger.debug(f'No canonical type for raw type {raw_type!r}, using STRING')
    return ColumnType.STRING


@dataclass
class Column:
    """One physical column of a table.
    """
    name: str
    raw_type: str = ''
    type: ColumnType = ColumnType.STRING
    length: int | None = None
    nullable: bool = True
    pk: bool = False
    default: Any = None
    sequence: str | None = None
    auto_increment: bool = False
    inflected_name: str = field(init=False)

    def __post_init__(self):
        self.inflected_name = variablize(self.name)

    @classmethod
    def from_raw(cls, name: str, raw_type: str,
                 type_map: dict[str, ColumnType] | None = None,
                 **kwargs: Any) -> 'Column':
        """Build a column from an engine-reported type such as `varchar(25)`.

        The canonical type is looked up in `type_map` and a default length is
        filled in for types that always have one.
        """
        parsed, length = parse_raw_type(raw_type)
        col_type = map_raw_type(parsed, type_map)
        if length is None:
            length = DEFAULT_LENGTHS.get(col_type)
        return cls(name=name, raw_type=parsed, type=col_type, length=length, **kwargs)

    def cast(self, value: Any, adapter: 'Adapter | None' = None) -> Any:
        """Coerce `value` to the Python type for this column.

        Date and datetime strings are parsed by the adapter, which honours the
        configured date class. Unparseable dates become None.
        """
        if value is None:
            return None

        if self.type is ColumnType.INTEGER:
            if isinstance(value, bool):
                return int(value)
            if isinstance(value, int):
                return value
            return int(decimal.Decimal(str(value).strip()))

        if self.type is ColumnType.DECIMAL:
            if isinstance(value, decimal.Decimal):
                return value
            return decimal.Decimal(str(value).strip())

        if self.type is ColumnType.STRING:
            return value if isinstance(value, str) else str(value)

        if self.type is ColumnType.DATETIME:
            if isinstance(value, datetime.datetime):
                return value
            if isinstance(value, datetime.date):
                return datetime.datetime.combine(value, datetime.time())
            return _parse_datetime(str(value), adapter)

        if self.type is ColumnType.DATE:
            if isinstance(value, datetime.datetime):
                return value.date()
            if isinstance(value, datetime.date):
                return value
            parsed = _parse_datetime(str(value), adapter)
            return parsed.date() if parsed is not None else None

        if self.type is ColumnType.TIME:
            if isinstance(value, datetime.time):
                return value
            if isinstance(value, datetime.timedelta):
                return (datetime.datetime.min + value).time()
            try:
                return _isoparser.parse_isotime(str(value).strip())
            except ValueError:
                return None

        return value


def _parse_datetime(value: str, adapter: 'Adapter | None') -> datetime.datetime | None:
    if adapter is not None:
        return adapter.string_to_datetime(value)
    try:
        return _isoparser.isoparse(value)
    except ValueError:
        return None
