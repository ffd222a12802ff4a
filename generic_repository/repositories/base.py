from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, Iterable, Mapping, TypeVar

from pydantic import ValidationError

from generic_repository.core.config import settings
from generic_repository.core.errors import CountError, InvalidFilterError
from generic_repository.core.result import OperationResult, QueryResult
from generic_repository.models.common import Clock, IdFactory, stamp_new_entity, utcnow
from generic_repository.schemas.query import PageRequest, Predicate, SortClause
from generic_repository.services.paging import PageWindow, build_sort, page_count, page_window
from generic_repository.services.search_spec import parse_search_spec

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT")

SearchSpec = Mapping[str, str | None]

NIL_UUID = uuid.UUID(int=0)


@dataclass(frozen=True)
class RepositoryCapabilities:
    """What a backend does with the optional parts of a query.

    ``supports_regex``: free-text criteria are regular expressions (otherwise
    plain substrings). ``supports_include``: ``include`` names relationships
    to load eagerly. ``supports_aggregation``: ``include`` takes aggregation
    stages run after the page is selected. Free-text matching is
    case-insensitive on every backend.
    """

    supports_regex: bool
    supports_include: bool
    supports_aggregation: bool


class GenericRepository(ABC, Generic[EntityT]):
    """Uniform CRUD, soft delete, paging and counting over one entity type.

    Every operation except :meth:`count` and :meth:`count_items` reports its
    outcome through :class:`OperationResult` or :class:`QueryResult` and never
    lets a backend exception escape. Subclasses only implement the storage
    hooks (``_insert``, ``_fetch_*``, ``_delete``, ``_mark_deleted``,
    ``_replace``, ``_count``).
    """

    capabilities: RepositoryCapabilities

    def __init__(self, *, clock: Clock = utcnow, id_factory: IdFactory = uuid.uuid4):
        self._clock = clock
        self._id_factory = id_factory

    @property
    @abstractmethod
    def entity_name(self) -> str:
        ...

    # storage hooks

    @abstractmethod
    async def _insert(self, items: list[EntityT]) -> None:
        ...

    @abstractmethod
    async def _fetch_by_id(self, entity_id: uuid.UUID) -> EntityT | None:
        ...

    @abstractmethod
    async def _fetch_filtered(self, predicate: Any, include: Any, include_deleted: bool) -> list[EntityT]:
        ...

    @abstractmethod
    async def _fetch_page(
        self,
        predicates: list[Predicate],
        sort: list[SortClause],
        window: PageWindow,
        include: Any,
    ) -> list[EntityT]:
        ...

    @abstractmethod
    async def _delete(self, entity_id: uuid.UUID) -> bool:
        ...

    @abstractmethod
    async def _mark_deleted(self, entity_id: uuid.UUID, now: datetime) -> bool:
        ...

    @abstractmethod
    async def _replace(self, entity_id: uuid.UUID, item: EntityT) -> bool:
        ...

    @abstractmethod
    async def _count(self, predicates: list[Predicate]) -> int:
        ...

    # helpers

    def _backend_failure(self, action: str, exc: Exception) -> str:
        logger.warning("repository_backend_failure entity=%s action=%s", self.entity_name, action, exc_info=True)
        return f"Error while {action}: {exc}"

    @staticmethod
    def _parse_id(entity_id: Any) -> tuple[uuid.UUID | None, str | None]:
        if entity_id is None or entity_id == "" or entity_id == NIL_UUID:
            return None, "Id is null"
        if isinstance(entity_id, uuid.UUID):
            return entity_id, None
        try:
            parsed = uuid.UUID(str(entity_id).strip())
        except ValueError:
            return None, "Id is invalid"
        if parsed == NIL_UUID:
            return None, "Id is null"
        return parsed, None

    # public contract

    async def add_item(self, item: EntityT | None) -> OperationResult:
        if item is None:
            return OperationResult.invalid("Item is null")
        try:
            stamp_new_entity(item, clock=self._clock, id_factory=self._id_factory)
            await self._insert([item])
        except Exception as exc:
            return OperationResult.failed(self._backend_failure("adding new item", exc))
        return OperationResult.ok("Add new item successfully")

    async def add_many_items(self, items: Iterable[EntityT] | None) -> OperationResult:
        batch = list(items) if items is not None else []
        if not batch:
            return OperationResult.invalid("Items list is null or empty")
        if any(item is None for item in batch):
            return OperationResult.invalid("Items list contains a null item")
        try:
            for item in batch:
                stamp_new_entity(item, clock=self._clock, id_factory=self._id_factory)
            await self._insert(batch)
        except Exception as exc:
            return OperationResult.failed(self._backend_failure("adding new items", exc))
        return OperationResult.ok("Add new items successfully")

    async def get_by_id(self, entity_id: Any) -> QueryResult[EntityT]:
        parsed, error = self._parse_id(entity_id)
        if error:
            return QueryResult.invalid(error)
        try:
            item = await self._fetch_by_id(parsed)
        except Exception as exc:
            return QueryResult.failed(self._backend_failure("getting item by Id", exc))
        if item is None:
            logger.debug("repository_not_found entity=%s id=%s", self.entity_name, parsed)
            return QueryResult.not_found("Item not found")
        return QueryResult.found(item, "Get item by Id successfully")

    async def get_by_filter(
        self,
        predicate: Any = None,
        include: Any = None,
        *,
        include_deleted: bool = False,
    ) -> QueryResult[list[EntityT]]:
        try:
            items = await self._fetch_filtered(predicate, include, include_deleted)
        except InvalidFilterError as exc:
            logger.debug("repository_invalid_filter entity=%s error=%s", self.entity_name, exc)
            return QueryResult.invalid(str(exc))
        except Exception as exc:
            return QueryResult.failed(self._backend_failure("getting item list", exc))
        if not items:
            return QueryResult.not_found("Item list not found or empty")
        return QueryResult.found(items, "Get item list successfully")

    async def get_paging(
        self,
        search_spec: SearchSpec | None,
        sort_field: str | None = None,
        page_size: int | None = None,
        skip: int | None = None,
        include: Any = None,
    ) -> QueryResult[list[EntityT]]:
        params: dict[str, Any] = {"sort_field": sort_field, "include": include}
        if page_size is not None:
            params["page_size"] = page_size
        if skip is not None:
            params["skip"] = skip
        try:
            page = PageRequest(**params)
            items = await self._fetch_page(
                parse_search_spec(search_spec),
                build_sort(page.sort_field),
                page_window(page.page_size, page.skip),
                page.include,
            )
        except (InvalidFilterError, ValidationError) as exc:
            logger.debug("repository_invalid_page_request entity=%s error=%s", self.entity_name, exc)
            return QueryResult.invalid(str(exc))
        except Exception as exc:
            return QueryResult.failed(self._backend_failure("getting item list", exc))
        if not items:
            return QueryResult.not_found("Item list not found or empty")
        return QueryResult.found(items, "Retrieve data successfully")

    async def remove_item(self, entity_id: Any) -> OperationResult:
        parsed, error = self._parse_id(entity_id)
        if error:
            return OperationResult.invalid(error)
        try:
            removed = await self._delete(parsed)
        except Exception as exc:
            return OperationResult.failed(self._backend_failure("deleting item", exc))
        if not removed:
            return OperationResult.not_found("Item not found")
        return OperationResult.ok("Deleted item successfully")

    async def soft_remove_item(self, entity_id: Any) -> OperationResult:
        parsed, error = self._parse_id(entity_id)
        if error:
            return OperationResult.invalid(error)
        try:
            marked = await self._mark_deleted(parsed, self._clock())
        except Exception as exc:
            return OperationResult.failed(self._backend_failure("soft deleting item", exc))
        if not marked:
            return OperationResult.not_found("Item not found or already deleted")
        return OperationResult.ok("Soft deleted item successfully")

    async def update_item(self, entity_id: Any, new_item: EntityT | None) -> OperationResult:
        parsed, error = self._parse_id(entity_id)
        if error:
            return OperationResult.invalid(error)
        if new_item is None:
            return OperationResult.invalid("Item is null")
        try:
            new_item.id = parsed
            new_item.updated_at = self._clock()
            updated = await self._replace(parsed, new_item)
        except Exception as exc:
            return OperationResult.failed(self._backend_failure("updating item", exc))
        if not updated:
            return OperationResult.not_found("Item not found")
        return OperationResult.ok("Updated item successfully")

    async def count_items(self, search_spec: SearchSpec | None) -> int:
        try:
            return await self._count(parse_search_spec(search_spec))
        except Exception as exc:
            logger.warning("repository_count_failed entity=%s", self.entity_name, exc_info=True)
            raise CountError(f"Error while counting items: {exc}") from exc

    async def count(self, search_spec: SearchSpec | None, page_size: int | None = None) -> int:
        """Number of pages of ``page_size`` live matches, not the match count."""
        size = settings.DEFAULT_PAGE_SIZE if page_size is None else page_size
        if size <= 0:
            raise CountError(f"page_size must be positive, got {size}")
        return page_count(await self.count_items(search_spec), size)
