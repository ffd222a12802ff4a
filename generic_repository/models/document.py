from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Mapping

from bson.decimal128 import Decimal128
from pydantic import BaseModel, ConfigDict, Field, field_validator

from generic_repository.models.common import Clock, IdFactory, utcnow

ID_FIELD = "_id"


def bson_value(value: Any) -> Any:
    """Store UUIDs as strings, like ``_id``; plain dates as ISO text; decimals as Decimal128."""
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {key: bson_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [bson_value(item) for item in value]
    return value


def _python_value(value: Any) -> Any:
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, Mapping):
        return {key: _python_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_python_value(item) for item in value]
    return value


class DocumentEntity(BaseModel):
    # Extra keys survive so that aggregation stages ($lookup, $addFields) reach the caller.
    model_config = ConfigDict(extra="allow", validate_assignment=True, validate_default=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    deleted_at: datetime | None = None
    is_deleted: bool = False

    @field_validator("*")
    @classmethod
    def _bson_datetime(cls, value: Any) -> Any:
        # BSON dates are UTC with millisecond precision.
        if not isinstance(value, datetime):
            return value
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.replace(microsecond=value.microsecond // 1000 * 1000)

    @classmethod
    def new(cls, *, clock: Clock = utcnow, id_factory: IdFactory = uuid.uuid4, **fields):
        now = clock()
        fields.setdefault("id", id_factory())
        fields.setdefault("created_at", now)
        fields.setdefault("updated_at", now)
        return cls(**fields)

    def to_document(self) -> dict[str, Any]:
        data = bson_value(self.model_dump(exclude={"id"}))
        return {ID_FIELD: str(self.id), **data}

    @classmethod
    def from_document(cls, document: Mapping[str, Any]):
        data = _python_value(document)
        if ID_FIELD in data:
            data["id"] = data.pop(ID_FIELD)
        return cls.model_validate(data)
