"""
Model base class: attribute storage, guarded assignment, finders and
persistence.

    class Author(Model):
        connection_registry = registry
        has_many = ['books']
        attr_accessible = ['name']

    author = Author.create({'name': 'Tito'})
    author.books                        # loaded on first access
    author.create_books({'title': 'Ancient Art of Main Tanking'})
    Author.find('all', include='books', order='name')

Attribute names are the inflected (lowercased) column names.
"""
import logging
from collections.abc import Callable, Mapping
from typing import Any, Self

from activerecord.exceptions import ReadOnlyRecord, RecordNotFound, UndefinedProperty
from activerecord.inflector import pluralize, variablize
from activerecord.sql import merge_conditions, reverse_order
from activerecord.table import Table

logger = logging.getLogger(__name__)

__all__ = ['Model', 'get_model_class']

# Registry of class name -> model class, used to resolve association targets
_MODEL_REGISTRY: dict[str, type['Model']] = {}


def get_model_class(name: str) -> type['Model'] | None:
    return _MODEL_REGISTRY.get(name)


class Model:
    """Base class for mapped record types.

    Class attributes configure the mapping:

    table_name: defaults to the pluralized, underscored class name
    primary_key: defaults to the primary key reported by the engine
    connection: connection name passed to the registry (None for default)
    connection_registry: `ConnectionRegistry` that resolves the connection
    attr_accessible / attr_protected: mass-assignment allow and deny lists
    has_many / has_one / belongs_to / has_and_belongs_to_many: associations,
        each entry `'name'` or `('name', {options})`
    """

    table_name: str | None = None
    primary_key: str | list[str] | None = None
    connection: str | None = None
    connection_registry: Any = None
    attr_accessible: list[str] = []
    attr_protected: list[str] = []
    has_many: list = []
    has_one: list = []
    belongs_to: list = []
    has_and_belongs_to_many: list = []

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        _MODEL_REGISTRY[cls.__name__] = cls

    def __init__(self, attributes: Mapping[str, Any] | None = None,
                 guard_attributes: bool = True, new_record: bool = True) -> None:
        object.__setattr__(self, 'attributes', {})
        object.__setattr__(self, '_dirty', set())
        object.__setattr__(self, '_relationships', {})
        object.__setattr__(self, '_new_record', new_record)
        object.__setattr__(self, '_readonly', False)

        if new_record:
            for name, column in self.table().columns.items():
                self.attributes[name] = column.default

        if attributes:
            self.set_attributes_via_mass_assignment(attributes, guard_attributes)

        if not new_record:
            self.reset_dirty()

    @classmethod
    def instantiate(cls, row: Mapping[str, Any]) -> Self:
        """Model for a fetched row. Every selected field becomes an attribute."""
        record = cls.__new__(cls)
        object.__setattr__(record, 'attributes', {})
        object.__setattr__(record, '_dirty', set())
        object.__setattr__(record, '_relationships', {})
        object.__setattr__(record, '_new_record', False)
        object.__setattr__(record, '_readonly', False)

        table = cls.table()
        for name, value in row.items():
            name = variablize(name)
            column = table.columns.get(name)
            record.attributes[name] = column.cast(value, table.adapter) if column else value
        return record

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__} {self.attributes!r}>'

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Model) or type(other) is not type(self):
            return NotImplemented
        if self.is_new_record() or other.is_new_record():
            return self is other
        return self.values_for_pk() == other.values_for_pk()

    __hash__ = object.__hash__

    def __copy__(self) -> Self:
        record = self.__class__.__new__(self.__class__)
        object.__setattr__(record, 'attributes', dict(self.attributes))
        object.__setattr__(record, '_dirty', set(self._dirty))
        object.__setattr__(record, '_relationships', dict(self._relationships))
        object.__setattr__(record, '_new_record', self._new_record)
        object.__setattr__(record, '_readonly', self._readonly)
        return record

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_'):
            raise AttributeError(name)

        attributes = self.__dict__.get('attributes', {})
        if name in attributes:
            return attributes[name]

        table = self.table()
        if name in table.relationships:
            return self.read_association(name)

        for prefix, method in (('build_', self.build_association),
                               ('create_', self.create_association)):
            if name.startswith(prefix):
                association = name[len(prefix):]
                if not table.has_relationship(association):
                    association = pluralize(association)
                if table.has_relationship(association):
                    return lambda attributes=None, guard_attributes=True: method(
                        association, attributes, guard_attributes)

        if name in table.columns:
            return None

        raise UndefinedProperty(self.__class__.__name__, name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith('_'):
            object.__setattr__(self, name, value)
            return

        if name in self.attributes or name in self.table().columns:
            self.assign_attribute(name, value)
            return

        if hasattr(type(self), name):
            object.__setattr__(self, name, value)
            return

        raise UndefinedProperty(self.__class__.__name__, name)

    # -- metadata ---------------------------------------------------------

    @classmethod
    def table(cls) -> Table:
        return Table.load(cls)

    @classmethod
    def connection_adapter(cls):
        """Adapter this model's table lives on."""
        return cls.table().adapter

    def is_new_record(self) -> bool:
        return self._new_record

    def readonly(self, readonly: bool = True) -> None:
        object.__setattr__(self, '_readonly', readonly)

    def is_readonly(self) -> bool:
        return self._readonly

    def values_for_pk(self) -> dict[str, Any]:
        return {name: self.attributes.get(name) for name in self.table().primary_key}

    # -- attributes -------------------------------------------------------

    def read_attribute(self, name: str) -> Any:
        return self.attributes.get(name)

    def assign_attribute(self, name: str, value: Any) -> Any:
        """Set one attribute without mass-assignment checks.

        Values for known columns are cast to the column type.
        """
        name = variablize(name)
        table = self.table()
        column = table.columns.get(name)
        if column is not None:
            value = column.cast(value, table.adapter)
        self.attributes[name] = value
        self._dirty.add(name)
        return value

    def set_attributes(self, attributes: Mapping[str, Any]) -> None:
        """Mass-assign through `attr_accessible` / `attr_protected`.
        """
        self.set_attributes_via_mass_assignment(attributes, guard_attributes=True)

    def set_attributes_via_mass_assignment(self, attributes: Mapping[str, Any],
                                           guard_attributes: bool) -> None:
        """Assign many attributes.

        With guarding, names outside `attr_accessible` (when it is set) or
        inside `attr_protected` are skipped. Unknown names raise
        UndefinedProperty.
        """
        table = self.table()
        accessible = {variablize(n) for n in self.attr_accessible}
        protected = {variablize(n) for n in self.attr_protected}

        for name, value in attributes.items():
            name = variablize(name)
            if guard_attributes:
                if accessible and name not in accessible:
                    logger.debug(f'Skipping mass assignment of {self.__class__.__name__}.{name}: not accessible')
                    continue
                if name in protected:
                    logger.debug(f'Skipping mass assignment of {self.__class__.__name__}.{name}: protected')
                    continue
            if name not in table.columns:
                raise UndefinedProperty(self.__class__.__name__, name)
            self.assign_attribute(name, value)

    def is_dirty(self) -> bool:
        return bool(self._dirty)

    def attribute_is_dirty(self, name: str) -> bool:
        return variablize(name) in self._dirty

    def dirty_attributes(self) -> dict[str, Any]:
        return {name: self.attributes.get(name) for name in self._dirty}

    def reset_dirty(self) -> None:
        self._dirty.clear()

    # -- associations -----------------------------------------------------

    def read_association(self, name: str) -> Any:
        """Associated record(s), loaded once and cached on this instance."""
        if name in self._relationships:
            return self._relationships[name]

        relationship = self.table().get_relationship(name, strict=True)
        value = relationship.load(self)
        if value is None and relationship.poly_relationship:
            value = []
        if not self.is_new_record():
            self._relationships[name] = value
        return value

    def set_relationship_from_eager_load(self, value: Any, name: str) -> None:
        self._relationships[name] = value

    def reset_relationship(self, name: str) -> None:
        self._relationships.pop(name, None)

    def build_association(self, name: str, attributes: Mapping[str, Any] | None = None,
                          guard_attributes: bool = True) -> 'Model':
        relationship = self.table().get_relationship(name, strict=True)
        return relationship.build_association(self, attributes, guard_attributes)

    def create_association(self, name: str, attributes: Mapping[str, Any] | None = None,
                           guard_attributes: bool = True) -> 'Model':
        relationship = self.table().get_relationship(name, strict=True)
        return relationship.create_association(self, attributes, guard_attributes)

    # -- finders ----------------------------------------------------------

    @classmethod
    def find(cls, *args: Any, **options: Any) -> Any:
        """Find records.

        find('all', **options)   -> list
        find('first', **options) -> record or None
        find('last', **options)  -> record or None
        find(1) / find(1, 2) / find([1, 2]) -> record(s) by primary key;
            RecordNotFound unless every key matches
        """
        if not args:
            raise RecordNotFound(f"Couldn't find {cls.__name__} without an ID")

        kind = args[0]
        if isinstance(kind, str) and kind in {'all', 'first', 'last'}:
            if kind == 'all':
                return cls.table().find(options)
            if kind == 'last':
                order = options.get('order') or ', '.join(
                    cls.table().adapter.sql_identifier(pk) for pk in cls.table().primary_key)
                options['order'] = reverse_order(order)
            options['limit'] = 1
            found = cls.table().find(options)
            return found[0] if found else None

        if len(args) == 1 and isinstance(args[0], (list, tuple)):
            return cls.find_by_pk(list(args[0]), options, single=False)
        return cls.find_by_pk(list(args), options, single=len(args) == 1)

    @classmethod
    def find_by_pk(cls, values: list[Any], options: dict[str, Any], single: bool = True) -> Any:
        table = cls.table()
        adapter = table.adapter
        pk = table.columns[table.primary_key[0]].name
        options['conditions'] = merge_conditions(
            options.get('conditions'), [f'{adapter.sql_identifier(pk)} IN(?)', values],
            quote=adapter.sql_identifier)
        found = table.find(options)

        expected = len(set(values))
        if len(found) != expected:
            ids = ','.join(str(v) for v in values)
            if expected == 1:
                raise RecordNotFound(f"Couldn't find {cls.__name__} with ID={ids}")
            raise RecordNotFound(f"Couldn't find all {pluralize(cls.__name__)} with IDs ({ids}) (found {len(found)}, but was looking for {expected})")
        return found[0] if single else found

    @classmethod
    def all(cls, **options: Any) -> list[Self]:
        return cls.find('all', **options)

    @classmethod
    def first(cls, **options: Any) -> Self | None:
        return cls.find('first', **options)

    @classmethod
    def last(cls, **options: Any) -> Self | None:
        return cls.find('last', **options)

    @classmethod
    def find_by_sql(cls, sql: str, values: Any = None, include: Any = None) -> list[Self]:
        return cls.table().find_by_sql(sql, values, includes=include)

    @classmethod
    def count(cls, **options: Any) -> int:
        options['select'] = 'COUNT(*)'
        options.pop('include', None)
        sql, values = cls.table().options_to_sql(options)
        return int(cls.table().adapter.query_and_fetch_one(sql, values) or 0)

    @classmethod
    def exists(cls, *args: Any, **options: Any) -> bool:
        if args:
            try:
                return bool(cls.find(*args, **options))
            except RecordNotFound:
                return False
        return cls.count(**options) > 0

    # -- persistence ------------------------------------------------------

    @classmethod
    def create(cls, attributes: Mapping[str, Any] | None = None,
               guard_attributes: bool = True) -> Self:
        record = cls(attributes, guard_attributes=guard_attributes)
        record.save()
        return record

    def save(self) -> bool:
        """Insert or update. Database errors propagate."""
        self._verify_not_readonly('save')
        return self.insert() if self.is_new_record() else self.update()

    def insert(self) -> bool:
        table = self.table()
        adapter = table.adapter
        single_pk = table.primary_key[0] if len(table.primary_key) == 1 else None
        pk_column = table.columns.get(single_pk) if single_pk else None

        if (pk_column is not None and self.attributes.get(single_pk) is None
                and adapter.supports_sequences() and pk_column.sequence):
            self.assign_attribute(single_pk, adapter.next_sequence_value(pk_column.sequence))

        data = {name: value for name, value in self.attributes.items()
                if name in table.columns and value is not None}
        if not data:
            raise ValueError(f'Cannot save {self.__class__.__name__} without any attribute values')
        table.insert(data)

        if pk_column is not None and self.attributes.get(single_pk) is None:
            self.attributes[single_pk] = pk_column.cast(adapter.last_insert_id(pk_column.sequence), adapter)

        object.__setattr__(self, '_new_record', False)
        self.reset_dirty()
        return True

    def update(self) -> bool:
        self._verify_not_readonly('update')
        table = self.table()
        dirty = {name: value for name, value in self.dirty_attributes().items() if name in table.columns}
        if dirty:
            table.update(dirty, self.values_for_pk())
        self.reset_dirty()
        return True

    def delete(self) -> bool:
        self._verify_not_readonly('delete')
        self.table().delete(self.values_for_pk())
        return True

    def reload(self) -> Self:
        """Re-read this record's attributes from the database."""
        fresh = self.__class__.find(*self.values_for_pk().values())
        object.__setattr__(self, 'attributes', dict(fresh.attributes))
        self._relationships.clear()
        self.reset_dirty()
        return self

    def _verify_not_readonly(self, method_name: str) -> None:
        if self.is_readonly():
            raise ReadOnlyRecord(f"{self.__class__.__name__}::{method_name}() cannot be invoked because this model is set to read only")

    @classmethod
    def transaction(cls, func: Callable[[], Any]) -> bool:
        """Run `func` in a transaction on this model's adapter.

        Rolls back and returns False when `func` returns False; rolls back
        and re-raises when it raises.
        """
        adapter = cls.table().adapter
        adapter.transaction()
        try:
            if func() is False:
                adapter.rollback()
                return False
        except Exception:
            adapter.rollback()
            raise
        adapter.commit()
        return True
