"""
Many-to-one association: the owner holds the foreign key.

    class Book(Model):
        belongs_to = ['author', ('publisher', {'foreign_key': 'pub_id'})]
"""
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from activerecord.inflector import classify, keyify, variablize
from activerecord.relationships.base import Relationship, RelationshipKind, key_tuple

if TYPE_CHECKING:
    from activerecord.model import Model
    from activerecord.table import Table


class BelongsTo(Relationship):

    kind = RelationshipKind.BELONGS_TO
    poly_relationship = False

    def infer_class_name(self) -> str:
        return classify(self.attribute_name)

    def set_keys(self, owner_class: type['Model'], override: bool = False) -> None:
        """foreign_key is `<target>_id` on the owner, primary_key the target's pk."""
        if not self.foreign_key or override:
            self.foreign_key = [keyify(self.class_name)]
        if not self.primary_key or override:
            self.primary_key = list(self.target_table().primary_key)

    def load(self, owner: 'Model') -> Any:
        self.set_keys(owner.__class__)
        conditions = self.create_conditions_from_keys(owner, self.primary_key, self.foreign_key)
        if conditions is None:
            return None

        options = self._merge(self.finder_options(), conditions)
        return self.get_target_class().find('first', **options)

    def load_eagerly(self, owners: list['Model'], attributes: list[dict[str, Any]],
                     includes: Any, table: 'Table') -> None:
        self.set_keys(table.model_class)
        foreign_keys = [variablize(fk) for fk in self.foreign_key]
        values = [key_tuple(attrs, foreign_keys) for attrs in attributes]
        distinct = list(dict.fromkeys(v for v in values if v is not None))
        if not distinct:
            self._attach(owners, values, [], [])
            return

        adapter = self.target_table().adapter
        options = self._eager_options(includes)
        self._merge(options, self._key_condition([adapter.sql_identifier(pk) for pk in self.primary_key], distinct))
        related = self.get_target_class().find('all', **options)
        primary_keys = [variablize(pk) for pk in self.primary_key]
        self._attach(owners, values, related,
                     [key_tuple(record.attributes, primary_keys) for record in related])

    def construct_inner_join_sql(self, owner_table: 'Table') -> str:
        self.set_keys(owner_table.model_class)
        adapter = owner_table.adapter
        owner_name = owner_table.get_fully_qualified_table_name()
        target_name = self.target_table().get_fully_qualified_table_name()
        on = ' AND '.join(
            f'{target_name}.{adapter.sql_identifier(pk)} = {owner_name}.{adapter.sql_identifier(fk)}'
            for fk, pk in zip(self.foreign_key, self.primary_key))
        return f'INNER JOIN {target_name} ON({on})'

    def build_association(self, owner: 'Model', attributes: Mapping[str, Any] | None = None,
                          guard_attributes: bool = True) -> 'Model':
        return self.get_target_class()(dict(attributes or {}), guard_attributes=guard_attributes)

    def create_association(self, owner: 'Model', attributes: Mapping[str, Any] | None = None,
                           guard_attributes: bool = True) -> 'Model':
        """Save the new target and point the owner's foreign key at it."""
        self.set_keys(owner.__class__)
        record = self.build_association(owner, attributes, guard_attributes)
        record.save()
        for fk, pk in zip(self.foreign_key, self.primary_key):
            owner.assign_attribute(variablize(fk), record.read_attribute(variablize(pk)))
        owner.set_relationship_from_eager_load(record, self.attribute_name)
        return record
