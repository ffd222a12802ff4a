import logging

from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from generic_repository.core.config import settings

logger = logging.getLogger(__name__)


def create_mongo_client(uri: str | None = None, **kwargs) -> AsyncMongoClient:
    kwargs.setdefault("tz_aware", True)
    return AsyncMongoClient(uri or settings.MONGODB_URI, **kwargs)


def get_database(client: AsyncMongoClient, name: str | None = None) -> AsyncDatabase:
    database_name = name or settings.MONGODB_DATABASE
    logger.info("mongo_database_selected database=%s", database_name)
    return client[database_name]
