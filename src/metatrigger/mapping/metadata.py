"""Entity metadata: the MutableSchema protocol and its in-memory implementation."""

from dataclasses import dataclass, field, replace
from typing import Any, Protocol, runtime_checkable

from metatrigger.exceptions import MappingError
from metatrigger.mapping.types import AssociationKind, AssociationMapping, InheritanceType

DEFAULT_DISCRIMINATOR_COLUMN: dict[str, Any] = {
    "name": "dtype",
    "type": "string",
    "length": 255,
}

# Column types that cannot hold a discriminator value
INVALID_DISCRIMINATOR_TYPES = {"boolean", "array", "object", "datetime", "time", "date", "json"}


@runtime_checkable
class MutableSchema(Protocol):
    """Interface the trigger listener needs from an entity's metadata.

    ClassMetadata implements it in memory. ORM adapters build a
    ClassMetadata for a class, let the listener mutate it, then
    translate the result into the ORM's own mapping constructs.
    """

    name: str
    discriminator_column: dict[str, Any] | None

    def has_association(self, field_name: str) -> bool: ...

    def map_one_to_one(self, mapping: AssociationMapping) -> None: ...

    def map_many_to_one(self, mapping: AssociationMapping) -> None: ...

    def map_one_to_many(self, mapping: AssociationMapping) -> None: ...

    def map_many_to_many(self, mapping: AssociationMapping) -> None: ...

    def set_discriminator_column(self, column_def: dict[str, Any] | None) -> None: ...

    def has_discriminator_value(self, value: str) -> bool: ...

    def add_discriminator_map_entry(self, value: str, entity_name: str) -> None: ...

    def set_inheritance_type(self, inheritance_type: InheritanceType | str) -> None: ...

    def add_index(self, name: str, columns: list[str]) -> None: ...

    def add_unique_constraint(self, name: str, columns: list[str]) -> None: ...


@dataclass
class ClassMetadata:
    """In-memory persistence metadata for one entity class.

    Attributes:
        name: Fully-qualified entity name
        associations: Mapped associations keyed by field name
        discriminator_column: Discriminator column definition, None if unset
        discriminator_map: Discriminator value -> entity name
        discriminator_value: This entity's own discriminator value
        subclasses: Entities registered in the discriminator map besides this one
        inheritance_type: Inheritance strategy of the hierarchy
        table: Table definition with "name", "indexes" and "unique_constraints"
    """

    name: str
    associations: dict[str, tuple[AssociationKind, AssociationMapping]] = field(
        default_factory=dict
    )
    discriminator_column: dict[str, Any] | None = None
    discriminator_map: dict[str, str] = field(default_factory=dict)
    discriminator_value: str | None = None
    subclasses: list[str] = field(default_factory=list)
    inheritance_type: InheritanceType = InheritanceType.NONE
    table: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.table.setdefault("name", None)
        self.table.setdefault("indexes", {})
        self.table.setdefault("unique_constraints", {})

    # ------------------------------------------------------------------
    # Associations
    # ------------------------------------------------------------------

    def has_association(self, field_name: str) -> bool:
        return field_name in self.associations

    def map_one_to_one(self, mapping: AssociationMapping) -> None:
        self._store_association(AssociationKind.ONE_TO_ONE, mapping)

    def map_many_to_one(self, mapping: AssociationMapping) -> None:
        self._store_association(AssociationKind.MANY_TO_ONE, mapping)

    def map_one_to_many(self, mapping: AssociationMapping) -> None:
        self._store_association(AssociationKind.ONE_TO_MANY, mapping)

    def map_many_to_many(self, mapping: AssociationMapping) -> None:
        self._store_association(AssociationKind.MANY_TO_MANY, mapping)

    def _store_association(self, kind: AssociationKind, mapping: AssociationMapping) -> None:
        """Map a new association on this entity.

        The target entity is not checked here; ORM adapters that need one
        to build the relationship reject mappings without it.

        Raises:
            MappingError: If the mapping has no field name or the field is
                already mapped
        """
        if not mapping.field_name:
            raise MappingError(f"The association mapping of {self.name} misses the 'fieldName' attribute")
        if self.has_association(mapping.field_name):
            raise MappingError(f"Property '{mapping.field_name}' in {self.name} was already declared")

        # Orphan removal only makes sense when this side owns the children
        if kind is AssociationKind.MANY_TO_ONE and mapping.orphan_removal:
            mapping = replace(mapping, orphan_removal=False)

        self.associations[mapping.field_name] = (kind, mapping)

    # ------------------------------------------------------------------
    # Discriminators / inheritance
    # ------------------------------------------------------------------

    def set_discriminator_column(self, column_def: dict[str, Any] | None) -> None:
        """Set the discriminator column, filling defaults.

        Raises:
            MappingError: If the column has no name or an unusable type
        """
        if column_def is None:
            self.discriminator_column = dict(DEFAULT_DISCRIMINATOR_COLUMN)
            return

        column = dict(column_def)
        if not column.get("name"):
            raise MappingError(f"Discriminator column of {self.name} requires a 'name'")

        column.setdefault("fieldName", column["name"])
        column.setdefault("type", "string")
        if column["type"] in INVALID_DISCRIMINATOR_TYPES:
            raise MappingError(
                f"Discriminator column type '{column['type']}' is not allowed on {self.name}"
            )
        self.discriminator_column = column

    def has_discriminator_value(self, value: str) -> bool:
        return value in self.discriminator_map

    def add_discriminator_map_entry(self, value: str, entity_name: str) -> None:
        """Register a discriminator value for this entity or one of its subclasses."""
        if not entity_name:
            raise MappingError(f"Discriminator value '{value}' of {self.name} maps to no class")

        self.discriminator_map[value] = entity_name
        if entity_name == self.name:
            self.discriminator_value = value
        elif entity_name not in self.subclasses:
            self.subclasses.append(entity_name)

    def set_inheritance_type(self, inheritance_type: InheritanceType | str) -> None:
        self.inheritance_type = InheritanceType.parse(inheritance_type)

    # ------------------------------------------------------------------
    # Table constraints
    # ------------------------------------------------------------------

    def add_index(self, name: str, columns: list[str]) -> None:
        self.table["indexes"][name] = {"columns": list(columns)}

    def add_unique_constraint(self, name: str, columns: list[str]) -> None:
        self.table["unique_constraints"][name] = {"columns": list(columns)}
