"""SQLAlchemy declarative adapter for trigger listeners.

``trigger_mapped(listener)`` returns a mixin. A declarative class that lists
the mixin before its declarative base has its metadata completed by the
listener right before SQLAlchemy maps it:

    TriggerMapped = trigger_mapped(listener)

    class Order(TriggerMapped, Base):
        __tablename__ = "orders"
        __entity_name__ = "shop.Order"
        id: Mapped[int] = mapped_column(primary_key=True)

The listener fills a ClassMetadata, which is then translated into
``relationship()`` attributes, ``__table_args__`` and ``__mapper_args__``.
"""

import logging
from typing import Any

from sqlalchemy import BigInteger, Index, Integer, SmallInteger, String, UniqueConstraint, asc, desc
from sqlalchemy.orm import RelationshipProperty, mapped_column, relationship

from metatrigger.exceptions import MappingError, MetadataApplicationError
from metatrigger.listener.base import LoadClassMetadataEvent, TriggerListener
from metatrigger.mapping.metadata import ClassMetadata
from metatrigger.mapping.types import AssociationKind, AssociationMapping, InheritanceType

logger = logging.getLogger(__name__)

# Doctrine-style cascade names -> SQLAlchemy cascade names
CASCADES = {
    "persist": "save-update",
    "remove": "delete",
    "merge": "merge",
    "refresh": "refresh-expire",
    "detach": "expunge",
    "all": "all",
}

# Fetch modes -> relationship(lazy=...)
FETCH_MODES = {
    "LAZY": "select",
    "EAGER": "joined",
    "EXTRA_LAZY": "dynamic",
}

DISCRIMINATOR_TYPES = {
    "string": String,
    "integer": Integer,
    "smallint": SmallInteger,
    "bigint": BigInteger,
}


def entity_name(cls: type) -> str:
    """Entity name of a class: its own ``__entity_name__``, else module.qualname."""
    return cls.__dict__.get("__entity_name__") or f"{cls.__module__}.{cls.__qualname__}"


def _parent_metadata(cls: type) -> ClassMetadata | None:
    for base in cls.__mro__[1:]:
        metadata = base.__dict__.get("__trigger_metadata__")
        if metadata is not None:
            return metadata
    return None


def _is_entity(cls: type) -> bool:
    """True for classes SQLAlchemy will map: own table or a mapped ancestor."""
    if cls.__dict__.get("__abstract__", False):
        return False
    if "__tablename__" in cls.__dict__ or "__table__" in cls.__dict__:
        return True
    return any("__mapper__" in base.__dict__ for base in cls.__mro__[1:])


def build_class_metadata(cls: type) -> ClassMetadata:
    """Describe a not-yet-mapped declarative class as ClassMetadata.

    Inheritance settings and associations are inherited from the nearest
    parent completed by a trigger listener. Relationships declared on the
    class itself count as existing associations.
    """
    metadata = ClassMetadata(name=entity_name(cls))
    metadata.table["name"] = cls.__dict__.get("__tablename__")

    parent = _parent_metadata(cls)
    if parent is not None:
        metadata.associations.update(parent.associations)
        if parent.discriminator_column is not None:
            metadata.discriminator_column = dict(parent.discriminator_column)
        metadata.discriminator_map = dict(parent.discriminator_map)
        metadata.inheritance_type = parent.inheritance_type
        for value, target in parent.discriminator_map.items():
            if target == metadata.name:
                metadata.discriminator_value = value

    for key, value in cls.__dict__.items():
        if isinstance(value, RelationshipProperty):
            kind = AssociationKind.MANY_TO_ONE if value.uselist is False else AssociationKind.ONE_TO_MANY
            metadata.associations[key] = (kind, AssociationMapping(field_name=key, extra={"declared": True}))

    return metadata


def _resolve_target(cls: type, target: str) -> type:
    """Find the mapped class named by target.

    Called by SQLAlchemy while it configures the mappers, after
    apply_listener has returned, so the failure is raised already wrapped.

    Raises:
        MetadataApplicationError: If no mapped class of the registry has
            that entity or class name
    """
    for mapper in cls.registry.mappers:
        mapped = mapper.class_
        if entity_name(mapped) == target or mapped.__name__ == target:
            return mapped
    name = entity_name(cls)
    error = MappingError(f"Target entity '{target}' is not mapped")
    logger.error("Failed to map %s: %s", name, error)
    raise MetadataApplicationError(name, str(error)) from error


def _relationship(cls: type, kind: AssociationKind, mapping: AssociationMapping) -> Any:
    target = mapping.target_entity
    if not target:
        raise MappingError(f"The association '{mapping.field_name}' misses the 'targetEntity' attribute")
    kwargs: dict[str, Any] = {"uselist": kind.is_collection}

    back_populates = mapping.mapped_by or mapping.inversed_by
    if back_populates:
        kwargs["back_populates"] = back_populates

    unknown = [c for c in mapping.cascade if c not in CASCADES]
    if unknown:
        raise MappingError(f"Unknown cascade {unknown} on '{mapping.field_name}'")
    cascade = [CASCADES[c] for c in mapping.cascade]
    if mapping.orphan_removal:
        cascade = (cascade or ["save-update", "merge"]) + ["delete", "delete-orphan"]
        if kind in (AssociationKind.ONE_TO_ONE, AssociationKind.MANY_TO_MANY):
            kwargs["single_parent"] = True
    if cascade:
        kwargs["cascade"] = ", ".join(dict.fromkeys(cascade))

    if mapping.fetch not in FETCH_MODES:
        raise MappingError(f"Unknown fetch mode '{mapping.fetch}' on '{mapping.field_name}'")
    lazy = FETCH_MODES[mapping.fetch]
    if lazy == "dynamic" and not kind.is_collection:
        lazy = "select"
    if lazy != "select":
        kwargs["lazy"] = lazy

    if kind is AssociationKind.MANY_TO_MANY:
        if not mapping.join_table or not mapping.join_table.get("name"):
            raise MappingError(f"Many-to-many '{mapping.field_name}' requires a joinTable name")
        kwargs["secondary"] = mapping.join_table["name"]

    if mapping.order_by and kind.is_collection:
        order_by = dict(mapping.order_by)

        def ordering() -> list:
            target_cls = _resolve_target(cls, target)
            return [
                (desc if direction.upper() == "DESC" else asc)(getattr(target_cls, field))
                for field, direction in order_by.items()
            ]

        kwargs["order_by"] = ordering

    return relationship(lambda: _resolve_target(cls, target), **kwargs)


def _split_table_args(args: Any) -> tuple[list, dict]:
    if isinstance(args, dict):
        return [], dict(args)
    args = list(args)
    if args and isinstance(args[-1], dict):
        return args[:-1], dict(args[-1])
    return args, {}


def _apply_table_args(cls: type, metadata: ClassMetadata) -> None:
    indexes = metadata.table["indexes"]
    uniques = metadata.table["unique_constraints"]
    if not indexes and not uniques:
        return

    if "__tablename__" not in cls.__dict__:
        logger.warning(
            "%s has no __tablename__ of its own; skipping %d index(es) and %d unique constraint(s)",
            metadata.name,
            len(indexes),
            len(uniques),
        )
        return

    declared = cls.__dict__.get("__table_args__", ())
    if not isinstance(declared, (tuple, list, dict)):
        raise MappingError(f"__table_args__ of {metadata.name} must be a tuple or dict to add constraints")

    items, options = _split_table_args(declared)
    items = [
        item
        for item in items
        if not (isinstance(item, Index) and item.name in indexes)
        and not (isinstance(item, UniqueConstraint) and item.name in uniques)
    ]
    items += [Index(name, *definition["columns"]) for name, definition in indexes.items()]
    items += [UniqueConstraint(*definition["columns"], name=name) for name, definition in uniques.items()]

    cls.__table_args__ = (*items, options) if options else tuple(items)


def _discriminator_type(column: dict[str, Any]) -> Any:
    type_name = column.get("type", "string")
    if type_name not in DISCRIMINATOR_TYPES:
        raise MappingError(f"Unsupported discriminator column type '{type_name}'")
    if type_name == "string":
        return String(column.get("length") or 255)
    return DISCRIMINATOR_TYPES[type_name]()


def _apply_mapper_args(cls: type, metadata: ClassMetadata, is_root: bool) -> None:
    declared = cls.__dict__.get("__mapper_args__", {})
    if not isinstance(declared, dict):
        raise MappingError(f"__mapper_args__ of {metadata.name} must be a dict to add inheritance settings")
    args = dict(declared)

    column = metadata.discriminator_column
    if column is not None:
        if is_root:
            field_name = column.get("fieldName") or column["name"]
            if field_name not in cls.__dict__:
                setattr(cls, field_name, mapped_column(column["name"], _discriminator_type(column)))
            args.setdefault("polymorphic_on", field_name)
        if metadata.discriminator_value is not None:
            args.setdefault("polymorphic_identity", metadata.discriminator_value)

    if metadata.inheritance_type is InheritanceType.TABLE_PER_CLASS and not is_root:
        args.setdefault("concrete", True)

    if args:
        cls.__mapper_args__ = args


def apply_listener(cls: type, listener: TriggerListener) -> ClassMetadata:
    """Let the listener complete the metadata of a declarative class, then apply it.

    Raises:
        MetadataApplicationError: If a rule cannot be applied to the class
    """
    parent = _parent_metadata(cls)
    metadata = build_class_metadata(cls)
    existing = set(metadata.associations)

    listener.load_class_metadata(LoadClassMetadataEvent(class_metadata=metadata))

    try:
        for field_name, (kind, mapping) in metadata.associations.items():
            if field_name in existing:
                continue
            setattr(cls, field_name, _relationship(cls, kind, mapping))
        _apply_table_args(cls, metadata)
        _apply_mapper_args(cls, metadata, is_root=parent is None)
    except MappingError as e:
        logger.error("Failed to map %s: %s", metadata.name, e)
        raise MetadataApplicationError(metadata.name, str(e)) from e

    cls.__trigger_metadata__ = metadata
    return metadata


def trigger_mapped(listener: TriggerListener) -> type:
    """Create a declarative mixin bound to a trigger listener.

    The mixin must come before the declarative base in the class bases.
    """

    class TriggerMapped:
        __trigger_listener__ = listener

        def __init_subclass__(cls, **kw: Any) -> None:
            if "__mapper__" in cls.__dict__:
                raise TypeError(
                    f"{cls.__name__} was mapped before its trigger listener ran; "
                    "list the TriggerMapped mixin before the declarative base"
                )
            if _is_entity(cls):
                apply_listener(cls, cls.__trigger_listener__)
            super().__init_subclass__(**kw)

    return TriggerMapped
