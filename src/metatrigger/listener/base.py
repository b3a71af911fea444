"""Abstract trigger listener.

A trigger listener does two jobs:
- While entity metadata is built, it injects the mapping rules registered
  in a MappingRegistry (associations, indexes, unique constraints,
  discriminator column and map, inheritance type).
- While entities are flushed, concrete listeners react to session events
  using the protected helpers for persistence, permission checks, flash
  messages and request forwarding.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session
from starlette.requests import Request
from starlette.responses import Response

from metatrigger.auth.permissions import (
    PERMISSION_CREATE,
    PERMISSION_DELETE,
    PERMISSION_EDIT,
    has_permission,
)
from metatrigger.auth.storage import UserStorage
from metatrigger.container import (
    ENTITIES_CONTAINER,
    HTTP_KERNEL,
    REQUEST_STACK,
    TOKEN_STORAGE,
    ServiceContainer,
)
from metatrigger.exceptions import MappingError, MetadataApplicationError
from metatrigger.http.flash import FlashBag
from metatrigger.http.kernel import HttpKernel
from metatrigger.listener.entities import EntitiesContainer
from metatrigger.mapping.metadata import MutableSchema
from metatrigger.mapping.registry import MappingRegistry
from metatrigger.mapping.types import AssociationKind, AssociationMapping

logger = logging.getLogger(__name__)


@dataclass
class LoadClassMetadataEvent:
    """Fired once per entity class while its metadata is being built.

    Attributes:
        class_metadata: The metadata to complete
        session: Session that triggered the load, if any
    """

    class_metadata: MutableSchema
    session: Session | None = None


class TriggerListener(ABC):
    """Base class for trigger listeners.

    Subclasses declare the SQLAlchemy session events they handle in
    ``subscribed_events()`` and implement a method of the same name for
    each; ``attach()`` wires them up.

    Example:
        class AuditListener(TriggerListener):
            def subscribed_events(self):
                return ["before_flush"]

            def before_flush(self, session, flush_context, instances):
                if self.is_persist_right():
                    self._persist_entities(session)
    """

    def __init__(self, container: ServiceContainer, registry: MappingRegistry | None = None):
        self.container = container
        self.registry = registry if registry is not None else MappingRegistry()
        self._entities_container: EntitiesContainer = container.get(ENTITIES_CONTAINER)
        self.token_storage = UserStorage(container.get(TOKEN_STORAGE))

    @abstractmethod
    def subscribed_events(self) -> list[str]:
        """Names of the SQLAlchemy session events this listener handles."""

    # ------------------------------------------------------------------
    # Event wiring
    # ------------------------------------------------------------------

    def attach(self, target: Any) -> None:
        """Listen to the subscribed events on a Session, sessionmaker or Session class."""
        for name in self.subscribed_events():
            event.listen(target, name, getattr(self, name))

    def detach(self, target: Any) -> None:
        for name in self.subscribed_events():
            event.remove(target, name, getattr(self, name))

    # ------------------------------------------------------------------
    # Metadata loading
    # ------------------------------------------------------------------

    def load_class_metadata(self, event_args: LoadClassMetadataEvent) -> None:
        """Apply every rule registered for the entity to its metadata."""
        metadata = event_args.class_metadata

        self._load_associations(metadata)
        self._load_indexes(metadata)
        self._load_uniques(metadata)

        self._load_discriminator_columns(metadata)
        self._load_discriminators(metadata)
        self._load_inheritance_types(metadata)

    @contextmanager
    def _wrap_mapping_errors(self, metadata: MutableSchema) -> Iterator[None]:
        try:
            yield
        except MappingError as e:
            logger.error("Failed to load metadata of %s: %s", metadata.name, e)
            raise MetadataApplicationError(metadata.name, str(e)) from e

    def _load_associations(self, metadata: MutableSchema) -> None:
        associations = self.registry.associations_for(metadata.name)
        if not associations:
            return

        with self._wrap_mapping_errors(metadata):
            for kind, mappings in associations.items():
                for mapping in mappings:
                    if mapping.field_name and metadata.has_association(mapping.field_name):
                        continue
                    self._map_association(metadata, kind, mapping)

    def _map_association(
        self, metadata: MutableSchema, kind: AssociationKind, mapping: AssociationMapping
    ) -> None:
        if kind is AssociationKind.ONE_TO_ONE:
            metadata.map_one_to_one(mapping)
        elif kind is AssociationKind.MANY_TO_ONE:
            metadata.map_many_to_one(mapping)
        elif kind is AssociationKind.ONE_TO_MANY:
            metadata.map_one_to_many(mapping)
        elif kind is AssociationKind.MANY_TO_MANY:
            metadata.map_many_to_many(mapping)
        logger.debug("Mapped %s '%s' on %s", kind.value, mapping.field_name, metadata.name)

    def _load_discriminator_columns(self, metadata: MutableSchema) -> None:
        column_def = self.registry.discriminator_column_for(metadata.name)
        if column_def is None:
            return

        with self._wrap_mapping_errors(metadata):
            if metadata.discriminator_column is not None:
                column_def = {**metadata.discriminator_column, **column_def}
            metadata.set_discriminator_column(column_def)

    def _load_discriminators(self, metadata: MutableSchema) -> None:
        discriminators = self.registry.discriminators_for(metadata.name)
        if not discriminators:
            return

        with self._wrap_mapping_errors(metadata):
            for value, entity_name in discriminators.items():
                if metadata.has_discriminator_value(value):
                    continue
                metadata.add_discriminator_map_entry(value, entity_name)

    def _load_inheritance_types(self, metadata: MutableSchema) -> None:
        inheritance_type = self.registry.inheritance_type_for(metadata.name)
        if inheritance_type is None:
            return

        with self._wrap_mapping_errors(metadata):
            metadata.set_inheritance_type(inheritance_type)

    def _load_indexes(self, metadata: MutableSchema) -> None:
        for name, columns in self.registry.indexes_for(metadata.name).items():
            metadata.add_index(name, columns)

    def _load_uniques(self, metadata: MutableSchema) -> None:
        for name, columns in self.registry.uniques_for(metadata.name).items():
            metadata.add_unique_constraint(name, columns)

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def _owning_table(self, entity: Any) -> str:
        return self._entities_container.get_owning_table(entity)

    def _update_entity(self, session: Session, entity: Any, identifier: dict[str, Any]) -> bool:
        return self._entities_container.execute_update(session, entity, identifier)

    def _delete_entity(self, entity: Any, identifier: dict[str, Any]) -> bool:
        return self._entities_container.execute_delete(entity, identifier)

    def _persist_entities(self, session: Session) -> None:
        self._entities_container.persist_entities(session)

    def _delete_entities(self, session: Session) -> None:
        self._entities_container.delete_entities(session)

    def _add_persist_entities(self, entity: Any) -> None:
        self._entities_container.add_persist_entities(entity)

    def _add_delete_entities(self, entity: Any, identifier: dict[str, Any]) -> None:
        self._entities_container.add_delete_entities(entity, identifier)

    def _connection(self, session: Session) -> Connection:
        return self._entities_container.get_connection(session)

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def is_persist_right(self) -> bool:
        """True if the user may create entities."""
        return has_permission(self.token_storage, PERMISSION_CREATE)

    def is_update_right(self) -> bool:
        """True if the user may edit entities."""
        return has_permission(self.token_storage, PERMISSION_EDIT)

    def is_delete_right(self) -> bool:
        """True if the user may delete entities."""
        return has_permission(self.token_storage, PERMISSION_DELETE)

    # ------------------------------------------------------------------
    # Request cycle
    # ------------------------------------------------------------------

    def _current_request(self) -> Request:
        request = self.container.get(REQUEST_STACK).get_current_request()
        if request is None:
            raise RuntimeError("No request is being handled")
        return request

    def get_flash_bag(self) -> FlashBag:
        return FlashBag.from_request(self._current_request())

    def set_flash(self, message: str, type: str = "permission") -> None:
        self.get_flash_bag().add(type, message)

    async def forward(
        self,
        controller: str,
        path: dict[str, Any] | None = None,
        query: dict[str, Any] | None = None,
        body: Any = None,
    ) -> Response:
        """Forward the current request to another controller.

        Args:
            controller: Route name of the target controller
            path: Path parameters of the target route
            query: Query parameters of the sub-request
            body: Optional body; makes the sub-request a POST

        Returns:
            The response produced by the target controller
        """
        kernel: HttpKernel = self.container.get(HTTP_KERNEL)
        sub_request = kernel.create_sub_request(
            self._current_request(), controller, path=path, query=query, body=body
        )
        return await kernel.handle(sub_request, HttpKernel.SUB_REQUEST)
