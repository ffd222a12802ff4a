from __future__ import annotations

import inspect
import logging
import uuid
from datetime import datetime
from typing import Any, Mapping, Sequence, TypeVar

from generic_repository.core.errors import InvalidFilterError
from generic_repository.models.common import Clock, IdFactory, utcnow
from generic_repository.models.document import ID_FIELD, DocumentEntity
from generic_repository.repositories.base import GenericRepository, RepositoryCapabilities
from generic_repository.schemas.query import Predicate, SortClause
from generic_repository.services.mongo_query import build_filter, build_sort_spec, with_live_only
from generic_repository.services.paging import PageWindow

logger = logging.getLogger(__name__)

DocumentT = TypeVar("DocumentT", bound=DocumentEntity)

_PROTECTED_KEYS = {ID_FIELD, "created_at", "is_deleted", "deleted_at"}


def _aggregation_stages(include: Any) -> list[dict[str, Any]]:
    if include is None:
        return []
    if isinstance(include, Mapping):
        return [dict(include)]
    if isinstance(include, Sequence) and not isinstance(include, (str, bytes)):
        stages = list(include)
        if all(isinstance(stage, Mapping) for stage in stages):
            return [dict(stage) for stage in stages]
    raise InvalidFilterError("include", "expected an aggregation stage or a list of stages")


class MongoRepository(GenericRepository[DocumentT]):
    """Repository over one collection of :class:`DocumentEntity` documents.

    Ids are stored as strings in ``_id``. ``include`` takes aggregation
    stages appended after matching, sorting and paging; ``get_by_filter``
    takes a Mongo filter document as its predicate.
    """

    capabilities = RepositoryCapabilities(supports_regex=True, supports_include=False, supports_aggregation=True)

    def __init__(
        self,
        collection,
        model: type[DocumentT],
        *,
        clock: Clock = utcnow,
        id_factory: IdFactory = uuid.uuid4,
    ):
        super().__init__(clock=clock, id_factory=id_factory)
        self.collection = collection
        self.model = model

    @classmethod
    def for_database(cls, database, model: type[DocumentT], collection_name: str | None = None, **kwargs):
        return cls(database[collection_name or model.__name__.lower()], model, **kwargs)

    @property
    def entity_name(self) -> str:
        return self.model.__name__

    async def _aggregate(self, pipeline: list[dict[str, Any]]) -> list[DocumentT]:
        cursor = self.collection.aggregate(pipeline)
        # PyMongo's async collection returns the cursor from a coroutine, Motor returns it directly.
        if inspect.isawaitable(cursor):
            cursor = await cursor
        documents = await cursor.to_list(length=None)
        return [self.model.from_document(document) for document in documents]

    async def _insert(self, items: list[DocumentT]) -> None:
        documents = [item.to_document() for item in items]
        if len(documents) == 1:
            await self.collection.insert_one(documents[0])
        else:
            await self.collection.insert_many(documents)
        logger.debug("mongo_insert entity=%s count=%s", self.entity_name, len(documents))

    async def _fetch_by_id(self, entity_id: uuid.UUID) -> DocumentT | None:
        document = await self.collection.find_one({ID_FIELD: str(entity_id), "is_deleted": False})
        if document is None:
            return None
        return self.model.from_document(document)

    async def _fetch_filtered(
        self,
        predicate: dict[str, Any] | None,
        include: Any,
        include_deleted: bool,
    ) -> list[DocumentT]:
        pipeline = [{"$match": with_live_only(predicate, include_deleted=include_deleted)}]
        pipeline.extend(_aggregation_stages(include))
        return await self._aggregate(pipeline)

    async def _fetch_page(
        self,
        predicates: list[Predicate],
        sort: list[SortClause],
        window: PageWindow,
        include: Any,
    ) -> list[DocumentT]:
        pipeline = [
            {"$match": build_filter(self.model, predicates)},
            {"$sort": build_sort_spec(self.model, sort)},
            {"$skip": window.offset},
            {"$limit": window.limit},
        ]
        pipeline.extend(_aggregation_stages(include))
        return await self._aggregate(pipeline)

    async def _delete(self, entity_id: uuid.UUID) -> bool:
        result = await self.collection.delete_one({ID_FIELD: str(entity_id)})
        return result.deleted_count > 0

    async def _mark_deleted(self, entity_id: uuid.UUID, now: datetime) -> bool:
        result = await self.collection.update_one(
            {ID_FIELD: str(entity_id), "is_deleted": False},
            {"$set": {"is_deleted": True, "deleted_at": now, "updated_at": now}},
        )
        return result.matched_count > 0

    async def _replace(self, entity_id: uuid.UUID, item: DocumentT) -> bool:
        fields = {key: value for key, value in item.to_document().items() if key not in _PROTECTED_KEYS}
        result = await self.collection.update_one(
            {ID_FIELD: str(entity_id), "is_deleted": False},
            {"$set": fields},
        )
        return result.matched_count > 0

    async def _count(self, predicates: list[Predicate]) -> int:
        return int(await self.collection.count_documents(build_filter(self.model, predicates)))
