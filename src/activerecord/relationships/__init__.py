"""
Association variants, dispatched by `RelationshipKind`.
"""
from collections.abc import Mapping
from typing import Any

from activerecord.relationships.base import OWNER_KEY_ALIAS as OWNER_KEY_ALIAS
from activerecord.relationships.base import Relationship as Relationship
from activerecord.relationships.base import RelationshipKind as RelationshipKind
from activerecord.relationships.base import ThroughState as ThroughState
from activerecord.relationships.belongs_to import BelongsTo as BelongsTo
from activerecord.relationships.has_and_belongs_to_many import HasAndBelongsToMany as HasAndBelongsToMany
from activerecord.relationships.has_many import HasMany as HasMany
from activerecord.relationships.has_many import HasOne as HasOne

_RELATIONSHIP_CLASSES: dict[RelationshipKind, type[Relationship]] = {
    RelationshipKind.HAS_MANY: HasMany,
    RelationshipKind.HAS_ONE: HasOne,
    RelationshipKind.BELONGS_TO: BelongsTo,
    RelationshipKind.HAS_AND_BELONGS_TO_MANY: HasAndBelongsToMany,
    }


def create_relationship(kind: RelationshipKind, owner_class: type, name: str,
                        options: Mapping[str, Any] | None = None) -> Relationship:
    """Instantiate the relationship variant for `kind`."""
    return _RELATIONSHIP_CLASSES[kind](owner_class, name, options)
