"""Dynamic mapping rules and the entity metadata they are applied to."""

from metatrigger.mapping.loader import MappingLoader
from metatrigger.mapping.metadata import ClassMetadata, MutableSchema
from metatrigger.mapping.registry import MappingRegistry
from metatrigger.mapping.types import AssociationKind, AssociationMapping, InheritanceType

__all__ = [
    "AssociationKind",
    "AssociationMapping",
    "ClassMetadata",
    "InheritanceType",
    "MappingLoader",
    "MappingRegistry",
    "MutableSchema",
]
