"""
Many-to-many association over a join table with no model of its own.

    class Developer(Model):
        has_and_belongs_to_many = ['projects']

The join table defaults to both table names, sorted and joined with `_`
(`developers_projects`). It holds `<owner>_id` (foreign_key) and
`<target>_id` (association_foreign_key).
"""
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from activerecord.inflector import keyify, variablize
from activerecord.relationships.base import Relationship, RelationshipKind
from activerecord.sql import SQLBuilder

if TYPE_CHECKING:
    from activerecord.model import Model
    from activerecord.table import Table


class HasAndBelongsToMany(Relationship):

    kind = RelationshipKind.HAS_AND_BELONGS_TO_MANY
    poly_relationship = True

    def __init__(self, owner_class, name, options=None) -> None:
        super().__init__(owner_class, name, options)
        self.association_foreign_key = self.options.get('association_foreign_key')
        self._join_table = self.options.get('join_table')

    @property
    def join_table(self) -> str:
        if not self._join_table:
            names = sorted([self.owner_table().table_name, self.target_table().table_name])
            self._join_table = '_'.join(names)
        return self._join_table

    def set_keys(self, owner_class: type['Model'], override: bool = False) -> None:
        super().set_keys(owner_class, override)
        if not self.association_foreign_key or override:
            self.association_foreign_key = keyify(self.class_name)

    def _join_sql(self) -> tuple[str, list[str]]:
        """INNER JOIN from the target to the join table, and the join table's owner key columns."""
        target_table = self.target_table()
        adapter = target_table.adapter
        join_name = adapter.sql_identifier(self.join_table)
        target_name = target_table.get_fully_qualified_table_name()
        target_pk = adapter.sql_identifier(target_table.primary_key[0])
        on = f'{target_name}.{target_pk} = {join_name}.{adapter.sql_identifier(self.association_foreign_key)}'
        key_sqls = [f'{join_name}.{adapter.sql_identifier(fk)}' for fk in self.foreign_key]
        return f'INNER JOIN {join_name} ON({on})', key_sqls

    def load(self, owner: 'Model') -> Any:
        self.set_keys(owner.__class__)
        join_sql, _ = self._join_sql()
        join_name = self.target_table().adapter.sql_identifier(self.join_table)
        conditions = self.create_conditions_from_keys(owner, self.foreign_key, self.primary_key,
                                                      qualifier=join_name)
        if conditions is None:
            return None

        options = self.finder_options()
        existing = options.get('joins')
        options['joins'] = f'{join_sql} {existing}' if isinstance(existing, str) else join_sql
        self._merge(options, conditions)
        return self.get_target_class().find('all', **options)

    def load_eagerly(self, owners: list['Model'], attributes: list[dict[str, Any]],
                     includes: Any, table: 'Table') -> None:
        self.set_keys(table.model_class)
        join_sql, key_sqls = self._join_sql()
        self._load_through_eagerly(owners, includes, table, join_sql=join_sql,
                                   key_sqls=key_sqls, owner_keys=self.primary_key)

    def construct_inner_join_sql(self, owner_table: 'Table') -> str:
        self.set_keys(owner_table.model_class)
        adapter = owner_table.adapter
        owner_name = owner_table.get_fully_qualified_table_name()
        join_sql, key_sqls = self._join_sql()
        join_name = adapter.sql_identifier(self.join_table)
        owner_on = ' AND '.join(f'{key_sql} = {owner_name}.{adapter.sql_identifier(pk)}'
                              for key_sql, pk in zip(key_sqls, self.primary_key))
        target_table = self.target_table()
        target_name = target_table.get_fully_qualified_table_name()
        target_pk = adapter.sql_identifier(target_table.primary_key[0])
        return (f'INNER JOIN {join_name} ON({owner_on}) '
                f'INNER JOIN {target_name} ON({target_name}.{target_pk} = '
                f'{join_name}.{adapter.sql_identifier(self.association_foreign_key)})')

    def build_association(self, owner: 'Model', attributes: Mapping[str, Any] | None = None,
                          guard_attributes: bool = True) -> 'Model':
        return self.get_target_class()(dict(attributes or {}), guard_attributes=guard_attributes)

    def create_association(self, owner: 'Model', attributes: Mapping[str, Any] | None = None,
                           guard_attributes: bool = True) -> 'Model':
        """Save the new target and link it to `owner` in the join table."""
        self.set_keys(owner.__class__)
        record = self.build_association(owner, attributes, guard_attributes)
        record.save()

        target_table = self.target_table()
        adapter = target_table.adapter
        owner_value = owner.read_attribute(variablize(self.primary_key[0]))
        target_value = record.read_attribute(variablize(target_table.primary_key[0]))
        builder = SQLBuilder(adapter, self.join_table).insert({
            self.foreign_key[0]: owner_value,
            self.association_foreign_key: target_value,
            })
        adapter.query(builder.to_sql(), builder.bind_values())
        owner.reset_relationship(self.attribute_name)
        return record
