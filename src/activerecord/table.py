"""
Table descriptor: one per model class, built on first use and cached.

A descriptor ties a model to its adapter and holds the column catalog, the
resolved primary key and the declared relationships. It also turns finder
options into SQL and rows back into model instances.
"""
import logging
import threading
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from activerecord.cache import Cache
from activerecord.column import Column
from activerecord.exceptions import ConfigError, DatabaseError, RelationshipError
from activerecord.inflector import tableize, variablize
from activerecord.relationships import Relationship, RelationshipKind, create_relationship
from activerecord.relationships.base import normalize_includes
from activerecord.sql import SQLBuilder

if TYPE_CHECKING:
    from activerecord.adapters.base import Adapter
    from activerecord.model import Model

logger = logging.getLogger(__name__)

__all__ = ['Table', 'VALID_FINDER_OPTIONS']

VALID_FINDER_OPTIONS = frozenset({
    'conditions', 'limit', 'offset', 'order', 'select', 'joins',
    'include', 'readonly', 'group', 'having',
    })

_DECLARATIONS = (
    (RelationshipKind.HAS_MANY, 'has_many'),
    (RelationshipKind.HAS_ONE, 'has_one'),
    (RelationshipKind.BELONGS_TO, 'belongs_to'),
    (RelationshipKind.HAS_AND_BELONGS_TO_MANY, 'has_and_belongs_to_many'),
    )


class Table:
    """Schema and association metadata for one model class.
    """

    _cache: dict[type, 'Table'] = {}
    _lock = threading.RLock()

    @classmethod
    def load(cls, model_class: type['Model']) -> 'Table':
        """Descriptor for `model_class`, built once and then reused.
        """
        table = cls._cache.get(model_class)
        if table is None:
            with cls._lock:
                table = cls._cache.get(model_class)
                if table is None:
                    table = cls(model_class)
                    cls._cache[model_class] = table
        return table

    @classmethod
    def clear_cache(cls, model_class: type['Model'] | None = None) -> None:
        """Forget one descriptor, or all of them.

        The column metadata of the affected tables is dropped too, so the
        next `load` reads the schema again.
        """
        with cls._lock:
            if model_class is None:
                cls._cache.clear()
                Cache.get_instance().clear_cache('columns')
                return
            table = cls._cache.pop(model_class, None)
        if table is not None:
            Cache.get_instance().clear_for_table(table.table_name)

    def __init__(self, model_class: type['Model']) -> None:
        self.model_class = model_class
        self.class_name = model_class.__name__
        self.adapter = self.reestablish_connection()
        self.table_name = model_class.table_name or tableize(self.class_name)

        self.columns: dict[str, Column] = {
            column.inflected_name: column
            for column in self.adapter.columns(self.table_name).values()
            }
        if not self.columns:
            raise DatabaseError(f'Table {self.table_name} does not exist or has no columns')

        declared = model_class.primary_key
        if declared:
            declared = [declared] if isinstance(declared, str) else list(declared)
            self.primary_key = [variablize(name) for name in declared]
        else:
            self.primary_key = [c.inflected_name for c in self.columns.values() if c.pk]

        self.relationships: dict[str, Relationship] = {}
        self.set_associations()
        logger.debug(f'Loaded table {self.table_name} for {self.class_name}: '
                     f'{len(self.columns)} columns, pk={self.primary_key}')

    def __repr__(self) -> str:
        return f'<Table {self.table_name} ({self.class_name})>'

    def reestablish_connection(self) -> 'Adapter':
        registry = self.model_class.connection_registry
        if registry is None:
            raise ConfigError(f'No connection registry configured for {self.class_name}')
        return registry.resolve(self.model_class.connection)

    def set_associations(self) -> None:
        for kind, attribute in _DECLARATIONS:
            for entry in getattr(self.model_class, attribute, None) or ():
                if isinstance(entry, str):
                    name, options = entry, {}
                else:
                    name, options = entry[0], (entry[1] if len(entry) > 1 else {})
                self.add_relationship(create_relationship(kind, self.model_class, name, options))

    def add_relationship(self, relationship: Relationship) -> None:
        self.relationships[relationship.attribute_name] = relationship

    def get_relationship(self, name: str, strict: bool = False) -> Relationship | None:
        """Relationship called `name`; raises RelationshipError when `strict`."""
        relationship = self.relationships.get(name)
        if relationship is None and strict:
            raise RelationshipError(f'Relationship named {name} has not been declared for class: {self.class_name}')
        return relationship

    def has_relationship(self, name: str) -> bool:
        return name in self.relationships

    def get_column_by_inflected_name(self, name: str) -> Column | None:
        return self.columns.get(variablize(name))

    def get_fully_qualified_table_name(self) -> str:
        return self.adapter.sql_identifier(self.table_name)

    def map_names(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Attribute names to physical column names."""
        result = {}
        for name, value in data.items():
            column = self.columns.get(variablize(name))
            result[column.name if column else name] = value
        return result

    # -- finding ----------------------------------------------------------

    def create_joins(self, joins: Any) -> str:
        """Join SQL from a string or a list of association names / SQL strings."""
        if isinstance(joins, str):
            return joins
        parts = []
        for join in joins:
            relationship = self.get_relationship(join) if isinstance(join, str) else None
            if relationship is not None:
                parts.append(relationship.construct_inner_join_sql(self))
            else:
                parts.append(str(join))
        return ' '.join(parts)

    def options_to_sql(self, options: Mapping[str, Any]) -> tuple[str, list[Any]]:
        """SELECT statement and bound values for finder options.
        """
        unknown = set(options) - VALID_FINDER_OPTIONS
        if unknown:
            raise ValueError(f'Unknown key(s): {", ".join(sorted(unknown))}')

        builder = SQLBuilder(self.adapter, self.table_name)
        joins = self.create_joins(options['joins']) if options.get('joins') else None
        if joins:
            builder.joins(joins)

        select = options.get('select')
        if not select:
            select = f'{self.get_fully_qualified_table_name()}.*' if joins else '*'
        builder.select(select)

        if options.get('conditions'):
            builder.where(options['conditions'])
        if options.get('group'):
            builder.group(options['group'])
        if options.get('having'):
            builder.having(options['having'])
        if options.get('order'):
            builder.order(options['order'])
        if options.get('limit') is not None:
            builder.limit(options['limit'])
        if options.get('offset') is not None:
            builder.offset(options['offset'])

        return builder.to_sql(), builder.bind_values()

    def find(self, options: Mapping[str, Any]) -> list['Model']:
        sql, values = self.options_to_sql(options)
        return self.find_by_sql(sql, values, readonly=bool(options.get('readonly')),
                                includes=options.get('include'))

    def find_by_sql(self, sql: str, values: Any = None, readonly: bool = False,
                    includes: Any = None) -> list['Model']:
        """Instantiate a model for every row of `sql`, then eager load `includes`."""
        models = []
        for row in self.adapter.query(sql, values):
            model = self.model_class.instantiate(row)
            if readonly:
                model.readonly()
            models.append(model)

        if includes and models:
            self.execute_eager_load(models, includes)
        return models

    def execute_eager_load(self, models: list['Model'], includes: Any) -> None:
        attributes = [model.attributes for model in models]
        for name, nested in normalize_includes(includes):
            relationship = self.get_relationship(name, strict=True)
            relationship.load_eagerly(models, attributes, nested, self)

    # -- writing ----------------------------------------------------------

    def insert(self, data: Mapping[str, Any]) -> None:
        builder = SQLBuilder(self.adapter, self.table_name).insert(self.map_names(data))
        self.adapter.query(builder.to_sql(), builder.bind_values())

    def update(self, data: Mapping[str, Any], where: Mapping[str, Any]) -> int:
        builder = SQLBuilder(self.adapter, self.table_name)
        builder.update(self.map_names(data)).where(self.map_names(where))
        return self.adapter.query(builder.to_sql(), builder.bind_values()).rowcount

    def delete(self, where: Mapping[str, Any]) -> int:
        builder = SQLBuilder(self.adapter, self.table_name).delete(self.map_names(where))
        return self.adapter.query(builder.to_sql(), builder.bind_values()).rowcount
