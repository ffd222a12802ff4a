from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy import Boolean, DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column

Clock = Callable[[], datetime]
IdFactory = Callable[[], uuid.UUID]


def utcnow():
    return datetime.now(timezone.utc)


def stamp_new_entity(entity: Any, *, clock: Clock = utcnow, id_factory: IdFactory = uuid.uuid4) -> Any:
    # Only fills what the caller left empty; an existing id is never replaced.
    now = clock()
    if getattr(entity, "id", None) is None:
        entity.id = id_factory()
    if getattr(entity, "created_at", None) is None:
        entity.created_at = now
    if getattr(entity, "updated_at", None) is None:
        entity.updated_at = now
    if getattr(entity, "is_deleted", None) is None:
        entity.is_deleted = False
    return entity


class EntityMixin:
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    @classmethod
    def new(cls, *, clock: Clock = utcnow, id_factory: IdFactory = uuid.uuid4, **fields):
        return stamp_new_entity(cls(**fields), clock=clock, id_factory=id_factory)
