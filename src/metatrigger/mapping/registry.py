"""Mapping registry for MetaTrigger.

Holds the mapping rules registered for entities at configuration time:
explicit registration, first registration wins, lookups by entity name.
"""

import logging
from typing import Any

from metatrigger.mapping.types import AssociationKind, AssociationMapping, InheritanceType

logger = logging.getLogger(__name__)


class MappingRegistry:
    """Registry of dynamic mapping rules, keyed by entity name.

    Built once at application startup (from code or mapping files) and
    handed to the trigger listener, which reads it every time an
    entity's metadata is loaded.

    Example:
        registry = MappingRegistry()
        registry.add_association("shop.Order", "oneToMany",
                                 {"fieldName": "items", "targetEntity": "shop.Item"})
        registry.add_index("shop.Order", "ix_orders_status", ["status"])
    """

    def __init__(self) -> None:
        self._associations: dict[str, dict[AssociationKind, list[AssociationMapping]]] = {}
        self._discriminators: dict[str, dict[str, str]] = {}
        self._discriminator_columns: dict[str, dict[str, Any]] = {}
        self._inheritance_types: dict[str, InheritanceType | str] = {}
        self._indexes: dict[str, dict[str, list[str]]] = {}
        self._uniques: dict[str, dict[str, list[str]]] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_association(
        self,
        entity: str,
        kind: AssociationKind | str,
        options: AssociationMapping | dict[str, Any],
    ) -> None:
        """Queue an association for an entity.

        Every call appends. Mappings whose field already exists on the
        metadata are skipped when the rules are applied.

        Args:
            entity: Entity name
            kind: Association kind, as enum or name ("oneToMany", "mapManyToOne", ...)
            options: Association options, as AssociationMapping or camelCase dict

        Raises:
            ValueError: If kind names no association kind
        """
        kind = AssociationKind.parse(kind)
        mapping = options if isinstance(options, AssociationMapping) else AssociationMapping.from_dict(options)
        self._associations.setdefault(entity, {}).setdefault(kind, []).append(mapping)
        logger.debug("Registered %s association '%s' on %s", kind.value, mapping.field_name, entity)

    def add_discriminator(self, entity: str, value: str, discriminator_class: str) -> None:
        """Map a discriminator value to a class. The first mapping of a value wins."""
        discriminators = self._discriminators.setdefault(entity, {})
        if value in discriminators:
            return
        discriminators[value] = discriminator_class
        logger.debug("Registered discriminator '%s' -> %s on %s", value, discriminator_class, entity)

    def add_discriminator_column(self, entity: str, column_def: dict[str, Any]) -> None:
        """Set the discriminator column definition. The first registration wins."""
        if entity in self._discriminator_columns:
            return
        self._discriminator_columns[entity] = dict(column_def)

    def add_inheritance_type(self, entity: str, inheritance_type: InheritanceType | str) -> None:
        """Set the inheritance type. The first registration wins.

        The value is not checked until the rule is applied.
        """
        if entity in self._inheritance_types:
            return
        self._inheritance_types[entity] = inheritance_type

    def add_index(self, entity: str, name: str, columns: list[str]) -> None:
        """Add a named index. Re-registering a name is a no-op."""
        indexes = self._indexes.setdefault(entity, {})
        if name in indexes:
            return
        indexes[name] = list(columns)

    def add_unique(self, entity: str, name: str, columns: list[str]) -> None:
        """Add a named unique constraint. Re-registering a name is a no-op."""
        uniques = self._uniques.setdefault(entity, {})
        if name in uniques:
            return
        uniques[name] = list(columns)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def associations_for(self, entity: str) -> dict[AssociationKind, list[AssociationMapping]]:
        return self._associations.get(entity, {})

    def discriminators_for(self, entity: str) -> dict[str, str]:
        return self._discriminators.get(entity, {})

    def discriminator_column_for(self, entity: str) -> dict[str, Any] | None:
        return self._discriminator_columns.get(entity)

    def inheritance_type_for(self, entity: str) -> InheritanceType | str | None:
        return self._inheritance_types.get(entity)

    def indexes_for(self, entity: str) -> dict[str, list[str]]:
        return self._indexes.get(entity, {})

    def uniques_for(self, entity: str) -> dict[str, list[str]]:
        return self._uniques.get(entity, {})

    def entities(self) -> list[str]:
        """List all entity names with at least one registered rule."""
        names: set[str] = set()
        for table in (
            self._associations,
            self._discriminators,
            self._discriminator_columns,
            self._inheritance_types,
            self._indexes,
            self._uniques,
        ):
            names.update(table)
        return sorted(names)

    def describe(self, entity: str) -> dict[str, Any]:
        """Return the rules registered for an entity as a plain dict.

        Empty categories are omitted.
        """
        result: dict[str, Any] = {}

        associations = [
            {"type": kind.value, **mapping.to_dict()}
            for kind, mappings in self.associations_for(entity).items()
            for mapping in mappings
        ]
        if associations:
            result["associations"] = associations
        if self.indexes_for(entity):
            result["indexes"] = dict(self.indexes_for(entity))
        if self.uniques_for(entity):
            result["uniques"] = dict(self.uniques_for(entity))
        if self.discriminator_column_for(entity) is not None:
            result["discriminatorColumn"] = dict(self.discriminator_column_for(entity))
        if self.discriminators_for(entity):
            result["discriminators"] = dict(self.discriminators_for(entity))

        inheritance_type = self.inheritance_type_for(entity)
        if inheritance_type is not None:
            result["inheritanceType"] = (
                inheritance_type.value if isinstance(inheritance_type, InheritanceType) else inheritance_type
            )

        return result

    def clear(self) -> None:
        """Clear all registrations. Primarily for testing."""
        for table in (
            self._associations,
            self._discriminators,
            self._discriminator_columns,
            self._inheritance_types,
            self._indexes,
            self._uniques,
        ):
            table.clear()
