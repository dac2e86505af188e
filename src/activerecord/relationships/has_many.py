"""
One-to-many associations, optionally reached through a bridge association.

    class Order(Model):
        has_many = [
            'payments',
            ('people', {'through': 'payments', 'select': 'people.*, payments.amount'}),
            ]
"""
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from activerecord.exceptions import RelationshipError
from activerecord.inflector import variablize
from activerecord.relationships.base import Relationship, RelationshipKind, key_tuple

if TYPE_CHECKING:
    from activerecord.model import Model
    from activerecord.table import Table

logger = logging.getLogger(__name__)


class HasMany(Relationship):
    """Owner's primary key is stored in the target's foreign key.
    """

    kind = RelationshipKind.HAS_MANY
    poly_relationship = True

    def load(self, owner: 'Model') -> Any:
        owner_table = owner.table()
        options = self.finder_options()

        if self.through:
            self.initialize_through(owner_table)
            bridge_table, join_on, key_columns, owner_keys = self._through_parts()
            bridge_name = bridge_table.get_fully_qualified_table_name()
            conditions = self.create_conditions_from_keys(owner, key_columns, owner_keys, qualifier=bridge_name)
            existing = options.get('joins')
            join_sql = f'INNER JOIN {bridge_name} ON({join_on})'
            options['joins'] = f'{join_sql} {existing}' if isinstance(existing, str) else join_sql
        else:
            self.set_keys(owner.__class__)
            conditions = self.create_conditions_from_keys(owner, self.foreign_key, self.primary_key)

        if conditions is None:
            return None

        self._merge(options, conditions)
        target = self.get_target_class()
        return target.find('all' if self.poly_relationship else 'first', **options)

    def load_eagerly(self, owners: list['Model'], attributes: list[dict[str, Any]],
                     includes: Any, table: 'Table') -> None:
        if self.through:
            self.initialize_through(table)
            bridge_table, join_on, key_columns, owner_keys = self._through_parts()
            bridge_name = bridge_table.get_fully_qualified_table_name()
            adapter = bridge_table.adapter
            self._load_through_eagerly(
                owners, includes, table,
                join_sql=f'INNER JOIN {bridge_name} ON({join_on})',
                key_sqls=[f'{bridge_name}.{adapter.sql_identifier(column)}' for column in key_columns],
                owner_keys=owner_keys,
                )
            return

        self.set_keys(table.model_class)
        primary_keys = [variablize(pk) for pk in self.primary_key]
        values = [key_tuple(attrs, primary_keys) for attrs in attributes]
        distinct = list(dict.fromkeys(v for v in values if v is not None))
        if not distinct:
            self._attach(owners, values, [], [])
            return

        adapter = self.target_table().adapter
        options = self._eager_options(includes)
        self._merge(options, self._key_condition([adapter.sql_identifier(fk) for fk in self.foreign_key], distinct))
        related = self.get_target_class().find('all', **options)
        foreign_keys = [variablize(fk) for fk in self.foreign_key]
        self._attach(owners, values, related,
                     [key_tuple(record.attributes, foreign_keys) for record in related])

    def build_association(self, owner: 'Model', attributes: Mapping[str, Any] | None = None,
                          guard_attributes: bool = True) -> 'Model':
        if self.through:
            raise RelationshipError(f'Cannot build {self.attribute_name}: records are reached through {self.through}')

        self.set_keys(owner.__class__)
        target = self.get_target_class()
        keys = {variablize(fk): owner.read_attribute(variablize(pk))
                for fk, pk in zip(self.foreign_key, self.primary_key)}

        record = target(keys, guard_attributes=False)
        attributes = dict(attributes or {})
        if guard_attributes:
            record.set_attributes({k: v for k, v in attributes.items() if variablize(k) not in keys})
        else:
            for name, value in attributes.items():
                record.assign_attribute(name, value)
        return record


class HasOne(HasMany):
    """Single-record variant of `HasMany`.

        class Employee(Model):
            has_one = ['position']
    """

    kind = RelationshipKind.HAS_ONE
    poly_relationship = False
