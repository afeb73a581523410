"""
Store -- the single-row persistence contract.

Responsibility:
    Every write the ledger performs goes through ``insert`` or ``update``,
    and each call is one atomic single-row write.  No caller may assume
    that two calls commit together; multi-row operations are sagas
    (services/saga.py) built on top of this contract.
Architecture position:
    Kernel > Services -- imperative shell.  ``Store`` is the abstract
    contract; ``SqlAlchemyStore`` implements it on the SQLAlchemy ORM with
    one short session and transaction per call.
Invariants enforced:
    - Actor stamping: created_by_id on insert, updated_by_id on update, for
      every TrackedBase model.
    - Immutability listeners are registered before the first write.
Failure modes:
    - PersistenceFailure (table, operation, key, cause) wraps any
      SQLAlchemyError; nothing from the failed call is committed.
    - ImmutabilityViolationError propagates unchanged.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.db.base import Base, TrackedBase
from ledger_kernel.db.immutability import register_immutability_listeners
from ledger_kernel.exceptions import PersistenceFailure
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.store")

ModelT = TypeVar("ModelT", bound=Base)


class Store(ABC):
    """Abstract single-row persistence contract."""

    @abstractmethod
    def insert(self, model: type[Base], row: Mapping[str, Any]) -> UUID:
        """Insert one row and return its id."""

    @abstractmethod
    def update(self, model: type[Base], key: UUID, patch: Mapping[str, Any]) -> None:
        """Apply ``patch`` to the row with primary key ``key``."""

    @abstractmethod
    def get(self, model: type[ModelT], key: UUID) -> ModelT | None:
        """Fetch one row by primary key."""

    @abstractmethod
    def query(
        self,
        model: type[ModelT],
        *,
        order_by: str | Sequence[str] | None = None,
        **filters: Any,
    ) -> list[ModelT]:
        """
        Fetch rows matching equality filters.

        A filter value of None matches NULL; a list, tuple or set matches
        any of its members.
        """


class SqlAlchemyStore(Store):
    """
    Store implementation on the SQLAlchemy ORM.

    Rows are returned detached (the session factory must use
    ``expire_on_commit=False``) and must be treated as read-only snapshots.
    """

    def __init__(self, session_factory: sessionmaker[Session], actor_id: UUID):
        self._session_factory = session_factory
        self._actor_id = actor_id
        register_immutability_listeners()

    @property
    def actor_id(self) -> UUID:
        return self._actor_id

    def insert(self, model: type[Base], row: Mapping[str, Any]) -> UUID:
        table = model.__tablename__
        try:
            with self._session_factory() as session, session.begin():
                obj = model(**row)
                if isinstance(obj, TrackedBase):
                    obj.created_by_id = self._actor_id
                session.add(obj)
                session.flush()
                new_id = obj.id
        except SQLAlchemyError as exc:
            logger.warning(
                "store_write_failed",
                extra={"table": table, "operation": "insert", "key": row.get("id")},
            )
            raise PersistenceFailure(
                table, "insert", _key(row.get("id")), str(exc)
            ) from exc

        logger.debug("store_row_inserted", extra={"table": table, "row_id": new_id})
        return new_id

    def update(self, model: type[Base], key: UUID, patch: Mapping[str, Any]) -> None:
        table = model.__tablename__
        try:
            with self._session_factory() as session, session.begin():
                obj = session.get(model, key)
                if obj is None:
                    raise PersistenceFailure(table, "update", str(key), "row not found")
                for field_name, value in patch.items():
                    setattr(obj, field_name, value)
                if isinstance(obj, TrackedBase):
                    obj.updated_by_id = self._actor_id
                session.flush()
        except SQLAlchemyError as exc:
            logger.warning(
                "store_write_failed",
                extra={"table": table, "operation": "update", "key": key},
            )
            raise PersistenceFailure(table, "update", str(key), str(exc)) from exc

        logger.debug(
            "store_row_updated",
            extra={"table": table, "row_id": key, "fields": sorted(patch)},
        )

    def get(self, model: type[ModelT], key: UUID) -> ModelT | None:
        with self._session_factory() as session:
            return session.get(model, key)

    def query(
        self,
        model: type[ModelT],
        *,
        order_by: str | Sequence[str] | None = None,
        **filters: Any,
    ) -> list[ModelT]:
        stmt = select(model)
        for field_name, value in filters.items():
            column = getattr(model, field_name)
            if value is None:
                stmt = stmt.where(column.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                stmt = stmt.where(column.in_(list(value)))
            else:
                stmt = stmt.where(column == value)
        if order_by is not None:
            names = [order_by] if isinstance(order_by, str) else list(order_by)
            stmt = stmt.order_by(*(getattr(model, name) for name in names))
        with self._session_factory() as session:
            return list(session.execute(stmt).scalars().all())


def _key(value: Any) -> str | None:
    return str(value) if value is not None else None
