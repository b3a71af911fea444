"""Load mapping rules from YAML files into a MappingRegistry."""

from pathlib import Path
from typing import Any

import yaml

from metatrigger.exceptions import MappingLoadError
from metatrigger.mapping.registry import MappingRegistry


class MappingLoader:
    """Loads per-entity mapping definitions from a directory of YAML files.

    Each file holds one document:

        entity: shop.Order
        associations:
          - type: oneToMany
            fieldName: items
            targetEntity: shop.Item
        indexes:
          ix_orders_status: [status]
    """

    def __init__(self, mappings_path: Path):
        self.mappings_path = mappings_path

    def load_into(self, registry: MappingRegistry) -> list[str]:
        """Register every mapping file, in file name order.

        Returns:
            Entity names in the order they were registered
        """
        if not self.mappings_path.exists():
            return []

        loaded = []
        for yaml_file in sorted(self.mappings_path.glob("*.yaml")):
            with open(yaml_file) as f:
                data = yaml.safe_load(f)
            if not data:
                continue
            loaded.append(self.register(registry, data, source=yaml_file))
        return loaded

    def register(
        self,
        registry: MappingRegistry,
        data: dict[str, Any],
        source: Path | None = None,
    ) -> str:
        """Register a single mapping document.

        Raises:
            MappingLoadError: If the document has no entity or a section
                has the wrong shape
        """
        where = f" in {source}" if source else ""
        if not isinstance(data, dict) or not data.get("entity"):
            raise MappingLoadError(f"Mapping document{where} has no 'entity' key")
        entity = data["entity"]

        for association in self._section(data, "associations", list, where):
            if not isinstance(association, dict) or "type" not in association:
                raise MappingLoadError(f"Association of {entity}{where} has no 'type'")
            try:
                registry.add_association(entity, association["type"], association)
            except ValueError as e:
                raise MappingLoadError(f"{e}{where}") from e

        for name, columns in self._section(data, "indexes", dict, where).items():
            registry.add_index(entity, name, columns)

        for name, columns in self._section(data, "uniques", dict, where).items():
            registry.add_unique(entity, name, columns)

        column_def = data.get("discriminatorColumn")
        if column_def is not None:
            registry.add_discriminator_column(entity, column_def)

        for value, target in self._section(data, "discriminators", dict, where).items():
            registry.add_discriminator(entity, str(value), target)

        inheritance_type = data.get("inheritanceType")
        if inheritance_type is not None:
            registry.add_inheritance_type(entity, inheritance_type)

        return entity

    def _section(self, data: dict, key: str, kind: type, where: str) -> Any:
        value = data.get(key)
        if value is None:
            return kind()
        if not isinstance(value, kind):
            raise MappingLoadError(f"'{key}' of {data['entity']}{where} must be a {kind.__name__}")
        return value
