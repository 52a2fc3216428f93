"""Shared persistence helpers for records that carry an activity status.

Customers, leads and opportunities use the ``ACTIVE``/``ARCHIVED``/``DELETED``
tri-state. ``DELETED`` rows drop out of every active listing but stay
addressable by id until they are restored or permanently deleted.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any, ClassVar, Generic, Literal, TypeVar

from sqlalchemy import ColumnElement, Select, delete, select
from sqlalchemy.orm import Session

from salesflow.core.errors import NotFoundError

ActivityStatus = Literal["ACTIVE", "ARCHIVED", "DELETED"]

ACTIVE: ActivityStatus = "ACTIVE"
ARCHIVED: ActivityStatus = "ARCHIVED"
DELETED: ActivityStatus = "DELETED"

ModelT = TypeVar("ModelT")


class Repository(Generic[ModelT]):
    model: ClassVar[type[Any]]
    entity: ClassVar[str]

    def query(self, *criteria: ColumnElement[bool]) -> Select[tuple[ModelT]]:
        return select(self.model).where(*criteria)

    def find(self, session: Session, entity_id: uuid.UUID) -> ModelT | None:
        return session.get(self.model, entity_id)

    def get(self, session: Session, entity_id: uuid.UUID, *, lock: bool = False) -> ModelT:
        if lock:
            row = session.scalar(self.query(self.model.id == entity_id).with_for_update(of=self.model))
        else:
            row = session.get(self.model, entity_id)
        if row is None:
            raise NotFoundError(self.entity, entity_id)
        return row

    def list(self, session: Session, *criteria: ColumnElement[bool]) -> Sequence[ModelT]:
        stmt = self.query(*criteria).order_by(self.model.created_at.desc(), self.model.id)
        return session.scalars(stmt).all()

    def hard_delete(self, session: Session, *criteria: ColumnElement[bool]) -> int:
        ids = session.scalars(select(self.model.id).where(*criteria)).all()
        if not ids:
            return 0
        session.execute(
            delete(self.model).where(self.model.id.in_(ids)).execution_options(synchronize_session="fetch")
        )
        return len(ids)


class LifecycleRepository(Repository[ModelT]):
    def list_active(self, session: Session, *criteria: ColumnElement[bool]) -> Sequence[ModelT]:
        return self.list(session, self.model.status == ACTIVE, *criteria)

    def list_deleted(self, session: Session, *criteria: ColumnElement[bool]) -> Sequence[ModelT]:
        return self.list(session, self.model.status == DELETED, *criteria)

    def list_visible(self, session: Session, *criteria: ColumnElement[bool]) -> Sequence[ModelT]:
        return self.list(session, self.model.status != DELETED, *criteria)

    def set_status(self, session: Session, entity_id: uuid.UUID, target: ActivityStatus) -> ModelT:
        row = self.get(session, entity_id, lock=True)
        row.status = target
        session.flush()
        return row

    def soft_delete(self, session: Session, entity_id: uuid.UUID) -> ModelT:
        return self.set_status(session, entity_id, DELETED)

    def restore(self, session: Session, entity_id: uuid.UUID) -> ModelT:
        # An ARCHIVED row that was deleted comes back as ACTIVE.
        return self.set_status(session, entity_id, ACTIVE)
