from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.inspection import inspect as sa_inspect
from sqlalchemy.sql.elements import ColumnElement

from generic_repository.models.common import Clock, IdFactory, utcnow
from generic_repository.repositories.base import EntityT, GenericRepository, RepositoryCapabilities
from generic_repository.schemas.query import Predicate, SortClause
from generic_repository.services.paging import PageWindow
from generic_repository.services.sql_query import apply_includes, apply_sort, build_where, live_only

logger = logging.getLogger(__name__)

# Columns an update never overwrites; soft delete has its own operation.
_PROTECTED_COLUMNS = {"id", "created_at", "is_deleted", "deleted_at"}


class SqlRepository(GenericRepository[EntityT]):
    """Repository over a mapped class composing :class:`EntityMixin`.

    ``include`` is a comma-separated list of relationship names loaded with
    ``selectinload``. Free-text criteria become case-insensitive substring
    matches; regular expressions are not available on this backend.
    """

    capabilities = RepositoryCapabilities(supports_regex=False, supports_include=True, supports_aggregation=False)

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        model: type[EntityT],
        *,
        clock: Clock = utcnow,
        id_factory: IdFactory = uuid.uuid4,
    ):
        super().__init__(clock=clock, id_factory=id_factory)
        self._session_factory = session_factory
        self.model = model

    @property
    def entity_name(self) -> str:
        return self.model.__name__

    async def _insert(self, items: list[EntityT]) -> None:
        async with self._session_factory() as session:
            session.add_all(items)
            await session.commit()
        logger.debug("sql_insert entity=%s count=%s", self.entity_name, len(items))

    async def _fetch_by_id(self, entity_id: uuid.UUID) -> EntityT | None:
        stmt = select(self.model).where(self.model.id == entity_id, live_only(self.model))
        async with self._session_factory() as session:
            return (await session.execute(stmt)).scalars().first()

    async def _fetch_filtered(
        self,
        predicate: ColumnElement[bool] | None,
        include: str | None,
        include_deleted: bool,
    ) -> list[EntityT]:
        stmt = select(self.model)
        if not include_deleted:
            stmt = stmt.where(live_only(self.model))
        if predicate is not None:
            stmt = stmt.where(predicate)
        stmt = apply_includes(stmt, self.model, include)
        async with self._session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def _fetch_page(
        self,
        predicates: list[Predicate],
        sort: list[SortClause],
        window: PageWindow,
        include: str | None,
    ) -> list[EntityT]:
        stmt = select(self.model).where(*build_where(self.model, predicates))
        stmt = apply_sort(stmt, self.model, sort).offset(window.offset).limit(window.limit)
        stmt = apply_includes(stmt, self.model, include)
        async with self._session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def _execute_write(self, stmt) -> int:
        stmt = stmt.execution_options(synchronize_session=False)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        return int(result.rowcount or 0)

    async def _delete(self, entity_id: uuid.UUID) -> bool:
        return await self._execute_write(delete(self.model).where(self.model.id == entity_id)) > 0

    async def _mark_deleted(self, entity_id: uuid.UUID, now: datetime) -> bool:
        stmt = (
            update(self.model)
            .where(self.model.id == entity_id, live_only(self.model))
            .values(is_deleted=True, deleted_at=now, updated_at=now)
        )
        return await self._execute_write(stmt) > 0

    async def _replace(self, entity_id: uuid.UUID, item: EntityT) -> bool:
        values: dict[str, Any] = {
            attr.key: getattr(item, attr.key)
            for attr in sa_inspect(self.model).column_attrs
            if attr.key not in _PROTECTED_COLUMNS
        }
        stmt = update(self.model).where(self.model.id == entity_id, live_only(self.model)).values(**values)
        return await self._execute_write(stmt) > 0

    async def _count(self, predicates: list[Predicate]) -> int:
        stmt = select(func.count()).select_from(self.model).where(*build_where(self.model, predicates))
        async with self._session_factory() as session:
            return int((await session.execute(stmt)).scalar_one())
