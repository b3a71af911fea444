"""Entities container: SQLAlchemy persistence façade for trigger listeners."""

import logging
from typing import Any

from sqlalchemy import Table, delete, inspect, update
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session, object_session

logger = logging.getLogger(__name__)


class EntitiesContainer:
    """Queues and executes entity writes on behalf of trigger listeners.

    Listeners queue entities while reacting to one event and flush the
    queues from another (e.g. ``before_flush``), or issue direct
    UPDATE/DELETE statements on the session's connection.
    """

    def __init__(self) -> None:
        self._persist: list[Any] = []
        self._delete: list[tuple[Any, dict[str, Any]]] = []

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _table(self, entity: Any) -> Table:
        return inspect(entity).mapper.local_table

    def _criteria(self, table: Table, identifier: dict[str, Any]) -> list:
        if not identifier:
            raise ValueError(f"An identifier is required to write to {table.name}")
        return [table.c[column] == value for column, value in identifier.items()]

    def _execute_delete(
        self, connection: Connection, entity: Any, identifier: dict[str, Any]
    ) -> bool:
        table = self._table(entity)
        stmt = delete(table).where(*self._criteria(table, identifier))
        result = connection.execute(stmt)
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Direct statements
    # ------------------------------------------------------------------

    def get_owning_table(self, entity: Any) -> str:
        """Return the name of the table the entity's own columns live in."""
        return self._table(entity).name

    def get_connection(self, session: Session) -> Connection:
        return session.connection()

    def execute_update(self, session: Session, entity: Any, identifier: dict[str, Any]) -> bool:
        """Write the entity's column values to the row matching the identifier.

        Args:
            session: Session whose connection runs the UPDATE
            entity: Mapped entity holding the new values
            identifier: Column -> value pairs selecting the row(s)

        Returns:
            True if at least one row was updated
        """
        table = self._table(entity)
        mapper = inspect(entity).mapper

        values: dict[str, Any] = {}
        for prop in mapper.column_attrs:
            column = prop.columns[0]
            if column.table is not table or column.name in identifier:
                continue
            values[column.name] = getattr(entity, prop.key)

        if not values:
            return False

        stmt = update(table).where(*self._criteria(table, identifier)).values(values)
        result = session.connection().execute(stmt)
        logger.debug("Updated %s where %s (%d row(s))", table.name, identifier, result.rowcount)
        return result.rowcount > 0

    def execute_delete(self, entity: Any, identifier: dict[str, Any]) -> bool:
        """Delete the row(s) matching the identifier from the entity's table.

        Runs on the session the entity is attached to.

        Raises:
            RuntimeError: If the entity is not attached to a session
        """
        session = object_session(entity)
        if session is None:
            raise RuntimeError(f"{type(entity).__name__} is not attached to a session")
        return self._execute_delete(session.connection(), entity, identifier)

    # ------------------------------------------------------------------
    # Queues
    # ------------------------------------------------------------------

    def add_persist_entities(self, entity: Any) -> None:
        """Queue an entity to be added to the session."""
        if any(queued is entity for queued in self._persist):
            return
        self._persist.append(entity)

    def add_delete_entities(self, entity: Any, identifier: dict[str, Any]) -> None:
        """Queue a delete of the row(s) matching the identifier."""
        self._delete.append((entity, dict(identifier)))

    def persist_entities(self, session: Session) -> None:
        """Add every queued entity to the session, dequeuing each once added.

        If adding an entity raises, it and the entities after it stay queued.
        """
        persisted = 0
        while self._persist:
            session.add(self._persist[0])
            self._persist.pop(0)
            persisted += 1
        if persisted:
            logger.debug("Persisted %d queued entities", persisted)

    def delete_entities(self, session: Session) -> None:
        """Execute every queued delete on the session's connection, dequeuing each once run.

        If a delete raises, it and the deletes after it stay queued.
        """
        if not self._delete:
            return
        connection = session.connection()
        deleted = 0
        while self._delete:
            entity, identifier = self._delete[0]
            self._execute_delete(connection, entity, identifier)
            self._delete.pop(0)
            deleted += 1
        logger.debug("Deleted %d queued entities", deleted)

    @property
    def pending_persists(self) -> list[Any]:
        return list(self._persist)

    @property
    def pending_deletes(self) -> list[tuple[Any, dict[str, Any]]]:
        return list(self._delete)
