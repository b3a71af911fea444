"""Mapping types for MetaTrigger.

Defines the typed records stored in the MappingRegistry:
- AssociationKind: the four association shapes an entity can gain
- AssociationMapping: options for a single association
- InheritanceType: how an entity hierarchy is laid out in tables
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from metatrigger.exceptions import MappingError


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


class AssociationKind(Enum):
    """The type of association to add to an entity."""

    ONE_TO_ONE = "oneToOne"
    MANY_TO_ONE = "manyToOne"
    ONE_TO_MANY = "oneToMany"
    MANY_TO_MANY = "manyToMany"

    @property
    def is_collection(self) -> bool:
        """True when the owning side holds many related entities."""
        return self in (AssociationKind.ONE_TO_MANY, AssociationKind.MANY_TO_MANY)

    @classmethod
    def parse(cls, value: "AssociationKind | str") -> "AssociationKind":
        """Resolve an association kind from its enum or any accepted spelling.

        Accepts "oneToMany", "one_to_many", "ONE_TO_MANY", and the
        method-style prefixes "mapOneToMany" / "addOneToMany".

        Raises:
            ValueError: If the value names no association kind
        """
        if isinstance(value, cls):
            return value

        name = str(value)
        for prefix in ("map", "add"):
            if name.startswith(prefix) and name[len(prefix):][:1].isupper():
                name = name[len(prefix):]
                break

        key = _snake(name).upper() if not name.isupper() else name
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown association kind: {value!r}") from None


class InheritanceType(Enum):
    """Inheritance mapping strategy for an entity hierarchy."""

    NONE = "NONE"
    JOINED = "JOINED"
    SINGLE_TABLE = "SINGLE_TABLE"
    TABLE_PER_CLASS = "TABLE_PER_CLASS"

    @classmethod
    def parse(cls, value: "InheritanceType | str") -> "InheritanceType":
        """Resolve an inheritance type, case-insensitively.

        Raises:
            MappingError: If the value is not a known inheritance type
        """
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).upper()]
        except KeyError:
            raise MappingError(f"Invalid inheritance type {value!r}") from None


# camelCase option keys -> AssociationMapping attribute names
_OPTION_KEYS = {
    "fieldName": "field_name",
    "targetEntity": "target_entity",
    "mappedBy": "mapped_by",
    "inversedBy": "inversed_by",
    "cascade": "cascade",
    "fetch": "fetch",
    "orphanRemoval": "orphan_removal",
    "joinTable": "join_table",
    "orderBy": "order_by",
}


@dataclass
class AssociationMapping:
    """Options for one association, as registered at configuration time.

    Nothing is validated here; an incomplete mapping fails when it is
    applied to metadata.

    Attributes:
        field_name: Attribute name of the association on the entity
        target_entity: Entity name of the related class
        mapped_by: Owning-side field on the target (inverse side only)
        inversed_by: Inverse-side field on the target (owning side only)
        cascade: Operations cascaded to related entities (persist, remove, ...)
        fetch: LAZY, EAGER or EXTRA_LAZY
        orphan_removal: Delete related entities removed from the association
        join_table: Join table definition for many-to-many associations
        order_by: Ordering of collection associations, {field: ASC|DESC}
        extra: Unrecognised options, kept for adapters that understand them
    """

    field_name: str | None = None
    target_entity: str | None = None
    mapped_by: str | None = None
    inversed_by: str | None = None
    cascade: list[str] = field(default_factory=list)
    fetch: str = "LAZY"
    orphan_removal: bool = False
    join_table: dict[str, Any] | None = None
    order_by: dict[str, str] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AssociationMapping":
        """Create an AssociationMapping from a camelCase or snake_case dict."""
        known: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        attributes = set(_OPTION_KEYS.values())

        for key, value in data.items():
            attr = _OPTION_KEYS.get(key, key)
            if attr in attributes:
                known[attr] = value
            elif key != "type":
                extra[key] = value

        cascade = known.pop("cascade", None) or []
        if isinstance(cascade, str):
            cascade = [cascade]

        return cls(
            cascade=[c.lower() for c in cascade],
            fetch=str(known.pop("fetch", None) or "LAZY").upper(),
            orphan_removal=bool(known.pop("orphan_removal", False)),
            extra=extra,
            **known,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a camelCase dict, omitting unset options."""
        result: dict[str, Any] = {}
        for key, attr in _OPTION_KEYS.items():
            value = getattr(self, attr)
            if value in (None, [], False):
                continue
            if attr == "fetch" and value == "LAZY":
                continue
            result[key] = value
        result.update(self.extra)
        return result
