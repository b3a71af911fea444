"""Tests for the EntitiesContainer and session event wiring."""

import pytest
from sqlalchemy import String, create_engine, func, select
from sqlalchemy.engine import Connection
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column
from sqlalchemy.orm.exc import UnmappedInstanceError

from metatrigger.auth import AuthToken, TokenStorage, UserContext
from metatrigger.container import ENTITIES_CONTAINER, TOKEN_STORAGE, ServiceContainer
from metatrigger.listener import EntitiesContainer, TriggerListener


class Base(DeclarativeBase):
    pass


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    status: Mapped[str] = mapped_column(String(20))
    total: Mapped[int] = mapped_column(default=0)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    message: Mapped[str] = mapped_column(String(200))


@pytest.fixture
def session():
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    engine.dispose()


@pytest.fixture
def container():
    return EntitiesContainer()


def count(session, entity):
    return session.scalar(select(func.count()).select_from(entity))


# =============================================================================
# Direct statements
# =============================================================================


class TestDirectStatements:
    def test_owning_table(self, container):
        assert container.get_owning_table(Order(status="new")) == "orders"

    def test_connection(self, container, session):
        assert isinstance(container.get_connection(session), Connection)

    def test_execute_update(self, container, session):
        session.add(Order(id=1, status="new", total=5))
        session.commit()

        changed = Order(id=1, status="paid", total=9)
        assert container.execute_update(session, changed, {"id": 1}) is True

        row = session.execute(select(Order.status, Order.total).where(Order.id == 1)).one()
        assert tuple(row) == ("paid", 9)

    def test_execute_update_without_match(self, container, session):
        assert container.execute_update(session, Order(id=42, status="paid"), {"id": 42}) is False

    def test_execute_update_requires_identifier(self, container, session):
        with pytest.raises(ValueError, match="identifier is required"):
            container.execute_update(session, Order(id=1, status="paid"), {})

    def test_execute_delete(self, container, session):
        order = Order(status="new")
        session.add(order)
        session.flush()

        assert container.execute_delete(order, {"id": order.id}) is True
        assert count(session, Order) == 0

    def test_execute_delete_detached(self, container):
        with pytest.raises(RuntimeError, match="not attached"):
            container.execute_delete(Order(id=3, status="new"), {"id": 3})


# =============================================================================
# Queues
# =============================================================================


class TestQueues:
    def test_persist_queue(self, container, session):
        order = Order(status="new")
        container.add_persist_entities(order)
        container.add_persist_entities(order)
        assert container.pending_persists == [order]

        container.persist_entities(session)
        assert order in session
        assert container.pending_persists == []

        session.commit()
        assert count(session, Order) == 1

    def test_delete_queue(self, container, session):
        session.add_all([Order(id=1, status="new"), Order(id=2, status="new")])
        session.commit()

        container.add_delete_entities(Order(), {"id": 1})
        assert len(container.pending_deletes) == 1

        container.delete_entities(session)
        session.commit()

        assert container.pending_deletes == []
        assert session.scalars(select(Order.id)).all() == [2]

    def test_failed_delete_keeps_remaining_deletes_queued(self, container, session):
        session.add_all([Order(id=1, status="new"), Order(id=2, status="new"), Order(id=3, status="new")])
        session.commit()

        container.add_delete_entities(Order(), {"id": 1})
        container.add_delete_entities(Order(), {"no_such_column": 1})
        container.add_delete_entities(Order(), {"id": 2})

        with pytest.raises(KeyError):
            container.delete_entities(session)

        assert [identifier for _, identifier in container.pending_deletes] == [{"no_such_column": 1}, {"id": 2}]
        assert session.scalars(select(Order.id).order_by(Order.id)).all() == [2, 3]

    def test_failed_persist_keeps_remaining_entities_queued(self, container, session):
        first, second = Order(status="new"), Order(status="paid")
        unmapped = object()
        container.add_persist_entities(first)
        container.add_persist_entities(unmapped)
        container.add_persist_entities(second)

        with pytest.raises(UnmappedInstanceError):
            container.persist_entities(session)

        assert first in session
        assert second not in session
        assert container.pending_persists == [unmapped, second]

    def test_empty_queues_are_no_ops(self, container, session):
        container.persist_entities(session)
        container.delete_entities(session)
        assert not session.new


# =============================================================================
# Listener wired to session events
# =============================================================================


class AuditListener(TriggerListener):
    def subscribed_events(self):
        return ["before_flush"]

    def before_flush(self, session, flush_context, instances):
        for obj in list(session.new):
            if isinstance(obj, Order) and self.is_persist_right():
                self._add_persist_entities(AuditLog(message=f"order created: {obj.status}"))
        self._persist_entities(session)


def make_audit_listener(permissions):
    container = ServiceContainer({
        ENTITIES_CONTAINER: EntitiesContainer(),
        TOKEN_STORAGE: TokenStorage(AuthToken(user=UserContext(user_id="u1", permissions=permissions))),
    })
    return AuditListener(container)


class TestSessionEvents:
    def test_listener_persists_audit_rows(self, session):
        listener = make_audit_listener(["CREATE"])
        listener.attach(session)

        session.add(Order(status="new"))
        session.commit()

        assert session.scalars(select(AuditLog.message)).all() == ["order created: new"]

    def test_listener_checks_permissions(self, session):
        listener = make_audit_listener(["EDIT"])
        listener.attach(session)

        session.add(Order(status="new"))
        session.commit()

        assert count(session, AuditLog) == 0

    def test_detach(self, session):
        listener = make_audit_listener(["CREATE"])
        listener.attach(session)
        listener.detach(session)

        session.add(Order(status="new"))
        session.commit()

        assert count(session, AuditLog) == 0
