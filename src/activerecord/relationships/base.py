"""
Relationship base: key inference, through resolution and the shared pieces
of eager loading.

A relationship is declared on an owner model and targets another model:

    class School(Model):
        has_many = ['people', ('enrollments', {'order': 'id'})]

Keys are inferred lazily. `set_keys` fills in the foreign and primary keys
from the model names and table descriptors; a `through` association is
resolved on first use and the result kept once resolution succeeds.
"""
import copy
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from activerecord.exceptions import InvalidThroughAssociation, RelationshipError
from activerecord.inflector import classify, keyify, variablize
from activerecord.sql import make_placeholders, merge_conditions

if TYPE_CHECKING:
    from activerecord.model import Model
    from activerecord.table import Table

logger = logging.getLogger(__name__)

# Finder options a relationship passes through to the target's `find`
FINDER_OPTIONS = ('conditions', 'select', 'order', 'group', 'having',
                  'limit', 'offset', 'readonly', 'include', 'joins')

VALID_OPTIONS = FINDER_OPTIONS + ('class_name', 'foreign_key', 'primary_key',
                                  'through', 'source', 'join_table',
                                  'association_foreign_key')

# Prefix of the aliases added to through/join-table eager queries to carry the owner's key
OWNER_KEY_ALIAS = 'ar_owner_key'


class RelationshipKind(Enum):
    HAS_MANY = 'has_many'
    HAS_ONE = 'has_one'
    BELONGS_TO = 'belongs_to'
    HAS_AND_BELONGS_TO_MANY = 'has_and_belongs_to_many'


class ThroughState(Enum):
    UNINITIALIZED = 'uninitialized'
    INITIALIZED = 'initialized'


# Association kinds a through association may use as its bridge
_BRIDGE_KINDS = frozenset({RelationshipKind.HAS_MANY, RelationshipKind.HAS_ONE,
                           RelationshipKind.BELONGS_TO})


def _as_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def key_tuple(attributes: Mapping[str, Any], names: list[str]) -> tuple | None:
    """Values of `names` as a tuple, None when any of them is missing."""
    values = tuple(attributes.get(name) for name in names)
    if any(value is None for value in values):
        return None
    return values


def normalize_includes(includes: Any) -> list[tuple[str, Any]]:
    """`'books'`, `['books', {'books': 'publisher'}]` -> [(name, nested), ...]"""
    if not includes:
        return []
    if isinstance(includes, str):
        return [(includes, None)]
    if isinstance(includes, Mapping):
        return list(includes.items())
    result = []
    for item in includes:
        if isinstance(item, Mapping):
            result.extend(item.items())
        else:
            result.append((item, None))
    return result


class Relationship(ABC):
    """One declared association between an owner model and a target model.
    """

    kind: RelationshipKind
    poly_relationship = False

    def __init__(self, owner_class: type['Model'], name: str,
                 options: Mapping[str, Any] | None = None) -> None:
        options = dict(options or {})
        unknown = set(options) - set(VALID_OPTIONS)
        if unknown:
            raise RelationshipError(f'Unknown option(s) for {owner_class.__name__}.{name}: {", ".join(sorted(unknown))}')

        self.owner_class = owner_class
        self.attribute_name = name
        self.options = options
        self.through = options.get('through')
        self.source = options.get('source')
        self.class_name = options.get('class_name') or self.infer_class_name()
        self.foreign_key = _as_list(options.get('foreign_key'))
        self.primary_key = _as_list(options.get('primary_key'))
        self.through_state = ThroughState.UNINITIALIZED if self.through else ThroughState.INITIALIZED

        # Set by through resolution: (bridge_table, join_on, key_columns, owner_keys)
        self._through_resolution: tuple | None = None

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__} {self.owner_class.__name__}.{self.attribute_name} -> {self.class_name}>'

    def infer_class_name(self) -> str:
        return classify(self.source or self.attribute_name, singular=True)

    @property
    def is_poly(self) -> bool:
        return self.poly_relationship

    # -- tables and classes -----------------------------------------------

    def get_target_class(self) -> type['Model']:
        from activerecord.model import get_model_class
        target = get_model_class(self.class_name)
        if target is None:
            raise RelationshipError(f'Unknown class {self.class_name} for association {self.attribute_name}')
        return target

    def target_table(self) -> 'Table':
        return self.get_target_class().table()

    def owner_table(self) -> 'Table':
        return self.owner_class.table()

    # -- keys -------------------------------------------------------------

    def set_keys(self, owner_class: type['Model'], override: bool = False) -> None:
        """Infer keys relative to `owner_class`.

        foreign_key becomes `<owner>_id` and primary_key the owner's primary
        key, unless already set and `override` is False.
        """
        if not self.foreign_key or override:
            self.foreign_key = [keyify(owner_class.__name__)]
        if not self.primary_key or override:
            self.primary_key = list(owner_class.table().primary_key)

    def create_conditions_from_keys(self, model: 'Model', condition_keys: list[str],
                                    value_keys: list[str], qualifier: str | None = None) -> list[Any] | None:
        """`[condition_key = model.value_key AND ...]`, None if a value is missing.

        An owner without its key values (an unsaved record) has no dependents.
        """
        adapter = self.target_table().adapter
        parts = []
        values = []
        for condition_key, value_key in zip(condition_keys, value_keys):
            value = model.read_attribute(variablize(value_key))
            if value is None:
                return None
            column = adapter.sql_identifier(condition_key)
            parts.append(f'{qualifier}.{column} = ?' if qualifier else f'{column} = ?')
            values.append(value)
        if not parts:
            return None
        return [' AND '.join(parts), *values]

    def finder_options(self) -> dict[str, Any]:
        """Relationship options that apply to the target's `find`."""
        return {k: v for k, v in self.options.items() if k in FINDER_OPTIONS}

    def _merge(self, options: dict[str, Any], condition: Any) -> dict[str, Any]:
        adapter = self.target_table().adapter
        options['conditions'] = merge_conditions(options.get('conditions'), condition,
                                                 quote=adapter.sql_identifier)
        return options

    # -- through ----------------------------------------------------------

    def initialize_through(self, owner_table: 'Table') -> None:
        """Resolve the bridge association named by `through`.

        The bridge is looked up on the owner's descriptor and must be a
        has-many or belongs-to association. Keys are re-pointed at the bridge
        only while the join is built. A failure leaves the relationship
        uninitialized so the next call retries.
        """
        if self.through_state is ThroughState.INITIALIZED:
            return

        bridge = owner_table.get_relationship(self.through)
        if bridge is None:
            raise InvalidThroughAssociation(f'Could not find the association {self.through} in model {owner_table.class_name}')
        if bridge.kind not in _BRIDGE_KINDS:
            raise InvalidThroughAssociation(f'{self.attribute_name} through {self.through}: has_many through can only use a belongs_to, has_one or has_many association')
        if bridge.through:
            raise InvalidThroughAssociation(f'{self.attribute_name} through {self.through}: the bridge cannot itself be a through association')

        target_table = self.target_table()
        adapter = target_table.adapter
        bridge.set_keys(owner_table.model_class)
        bridge_table = bridge.target_table()
        bridge_name = bridge_table.get_fully_qualified_table_name()
        target_name = target_table.get_fully_qualified_table_name()

        saved_keys = (self.foreign_key, self.primary_key)
        try:
            if bridge.kind in {RelationshipKind.HAS_MANY, RelationshipKind.HAS_ONE}:
                # bridge rows carry <target>_id
                self.set_keys(target_table.model_class, override=True)
                join_on = ' AND '.join(
                    f'{target_name}.{adapter.sql_identifier(pk)} = {bridge_name}.{adapter.sql_identifier(fk)}'
                    for fk, pk in zip(self.foreign_key, self.primary_key))
                key_columns = list(bridge.foreign_key)
                owner_keys = list(bridge.primary_key)
            else:
                # target rows carry <bridge>_id
                self.set_keys(bridge_table.model_class, override=True)
                join_on = ' AND '.join(
                    f'{bridge_name}.{adapter.sql_identifier(pk)} = {target_name}.{adapter.sql_identifier(fk)}'
                    for fk, pk in zip(self.foreign_key, self.primary_key))
                key_columns = list(bridge.primary_key)
                owner_keys = list(bridge.foreign_key)
        finally:
            self.foreign_key, self.primary_key = saved_keys

        self._through_resolution = (bridge_table, join_on, key_columns, owner_keys)
        self.through_state = ThroughState.INITIALIZED
        logger.debug(f'Resolved {self!r} through {bridge!r}')

    def _through_parts(self) -> tuple['Table', str, list[str], list[str]]:
        return self._through_resolution

    # -- SQL --------------------------------------------------------------

    def construct_inner_join_sql(self, owner_table: 'Table') -> str:
        """INNER JOIN from the owner table to the target table.

        Used by finder `joins=['<association>']`.
        """
        target_table = self.target_table()
        adapter = owner_table.adapter
        owner_name = owner_table.get_fully_qualified_table_name()
        target_name = target_table.get_fully_qualified_table_name()

        if self.through:
            self.initialize_through(owner_table)
            bridge_table, join_on, key_columns, owner_keys = self._through_parts()
            bridge_name = bridge_table.get_fully_qualified_table_name()
            bridge_on = ' AND '.join(
                f'{bridge_name}.{adapter.sql_identifier(k)} = {owner_name}.{adapter.sql_identifier(o)}'
                for k, o in zip(key_columns, owner_keys))
            return f'INNER JOIN {bridge_name} ON({bridge_on}) INNER JOIN {target_name} ON({join_on})'

        self.set_keys(owner_table.model_class)
        on = ' AND '.join(
            f'{target_name}.{adapter.sql_identifier(fk)} = {owner_name}.{adapter.sql_identifier(pk)}'
            for fk, pk in zip(self.foreign_key, self.primary_key))
        return f'INNER JOIN {target_name} ON({on})'

    # -- eager loading helpers --------------------------------------------

    def _attach(self, owners: list['Model'], owner_values: list[Any],
                related: list['Model'], related_values: list[Any]) -> None:
        """Partition `related` by `related_values` and hand each owner its share.

        Rows keep the order of the batched query. A record already attached
        to an earlier owner is copied before being attached again.
        """
        groups: dict[Any, list['Model']] = {}
        for record, value in zip(related, related_values):
            groups.setdefault(value, []).append(record)

        used: set[int] = set()
        for owner, value in zip(owners, owner_values):
            matches = groups.get(value, []) if value is not None else []
            attached = []
            for record in matches:
                if id(record) in used:
                    record = copy.copy(record)
                used.add(id(record))
                attached.append(record)

            if self.poly_relationship:
                owner.set_relationship_from_eager_load(attached, self.attribute_name)
            else:
                owner.set_relationship_from_eager_load(attached[0] if attached else None,
                                                       self.attribute_name)

    def _eager_options(self, includes: Any) -> dict[str, Any]:
        options = self.finder_options()
        # one batched query cannot honour a per-owner window
        options.pop('limit', None)
        options.pop('offset', None)
        if includes:
            options['include'] = includes
        return options

    def _key_condition(self, columns_sql: list[str], keys: list[tuple]) -> list[Any]:
        """`col IN(...)` for one key column, `(a = ? AND b = ?) OR ...` for several."""
        if len(columns_sql) == 1:
            return [f'{columns_sql[0]} IN({make_placeholders(len(keys))})', *(key[0] for key in keys)]
        clause = ' AND '.join(f'{column} = ?' for column in columns_sql)
        return [' OR '.join(f'({clause})' for _ in keys), *(value for key in keys for value in key)]

    def _load_through_eagerly(self, owners: list['Model'], includes: Any,
                              owner_table: 'Table', join_sql: str, key_sqls: list[str],
                              owner_keys: list[str]) -> None:
        """Eager load over a join: the key columns are selected under aliases."""
        values = [key_tuple(owner.attributes, [variablize(k) for k in owner_keys]) for owner in owners]
        distinct = list(dict.fromkeys(v for v in values if v is not None))
        if not distinct:
            self._attach(owners, values, [], [])
            return

        aliases = [f'{OWNER_KEY_ALIAS}{i}__' for i in range(len(key_sqls))]
        target_table = self.target_table()
        options = self._eager_options(includes)
        select = options.get('select') or f'{target_table.get_fully_qualified_table_name()}.*'
        options['select'] = ', '.join([select, *(f'{sql} AS {alias}' for sql, alias in zip(key_sqls, aliases))])
        options['joins'] = f'{join_sql} {options["joins"]}' if isinstance(options.get('joins'), str) else join_sql
        self._merge(options, self._key_condition(key_sqls, distinct))

        related = self.get_target_class().find('all', **options)
        keys = [tuple(record.attributes.pop(alias, None) for alias in aliases) for record in related]
        self._attach(owners, values, related, keys)

    # -- capabilities -----------------------------------------------------

    @abstractmethod
    def load(self, owner: 'Model') -> Any:
        """Query the associated record(s) for one owner.

        Returns None without querying when the owner has no key value.
        """

    @abstractmethod
    def load_eagerly(self, owners: list['Model'], attributes: list[dict[str, Any]],
                     includes: Any, table: 'Table') -> None:
        """Load the association for every owner with one batched query."""

    @abstractmethod
    def build_association(self, owner: 'Model', attributes: Mapping[str, Any] | None = None,
                          guard_attributes: bool = True) -> 'Model':
        """New, unsaved target record associated with `owner`."""

    def create_association(self, owner: 'Model', attributes: Mapping[str, Any] | None = None,
                           guard_attributes: bool = True) -> 'Model':
        """Build, save and return the associated record.

        Persistence errors propagate to the caller.
        """
        record = self.build_association(owner, attributes, guard_attributes)
        record.save()
        owner.reset_relationship(self.attribute_name)
        return record
