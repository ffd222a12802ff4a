from __future__ import annotations

import re
import types
import typing
import uuid
from datetime import datetime
from typing import Any, Iterable

from generic_repository.core.errors import InvalidFilterError
from generic_repository.models.document import ID_FIELD, bson_value
from generic_repository.schemas.query import FilterClause, Predicate, SortClause
from generic_repository.services.coercion import SCALAR_TYPES, coerce_to_type, day_bounds, is_date_only_literal


def _annotation_types(annotation) -> tuple:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        return tuple(arg for arg in typing.get_args(annotation) if arg is not type(None))
    return (annotation,)


def _scalar_type(declared: tuple) -> type | None:
    if str in declared:
        return str
    for python_type in SCALAR_TYPES:
        if python_type in declared:
            return python_type
    return None


def resolve_field(model, field: str) -> tuple[str, type | None]:
    """Map a model attribute to its stored key and the scalar type it compares as."""
    info = model.model_fields.get(field)
    if info is None:
        raise InvalidFilterError(field, f"{model.__name__} has no such field")
    if field == "id":
        return ID_FIELD, uuid.UUID
    return field, _scalar_type(_annotation_types(info.annotation))


def _stored_value(clause: FilterClause, python_type: type | None) -> Any:
    if python_type is None:
        return clause.value
    if python_type is str:
        return clause.raw
    return bson_value(coerce_to_type(clause.field, clause.raw, python_type))


def clause_filter(model, clause: FilterClause) -> dict[str, Any]:
    key, python_type = resolve_field(model, clause.field)
    if clause.op == "~" and python_type in (str, None):
        try:
            re.compile(clause.raw)
        except re.error as exc:
            raise InvalidFilterError(clause.field, f"bad pattern ({exc})")
        return {key: {"$regex": clause.raw, "$options": "i"}}
    # A pattern on a typed field compares by value, as on the relational backend.
    if python_type is datetime and is_date_only_literal(clause.raw.strip()):
        start, end = day_bounds(clause.field, clause.raw)
        if clause.op == "!=":
            return {"$or": [{key: {"$lt": start}}, {key: {"$gte": end}}, {key: None}]}
        return {key: {"$gte": start, "$lt": end}}
    value = _stored_value(clause, python_type)
    if clause.op == "!=":
        return {key: {"$ne": value}}
    return {key: value}


def predicate_filter(model, predicate: Predicate) -> dict[str, Any]:
    if isinstance(predicate, FilterClause):
        return clause_filter(model, predicate)
    parts = []
    if predicate.any_of:
        alternatives = [clause_filter(model, clause) for clause in predicate.any_of]
        parts.append(alternatives[0] if len(alternatives) == 1 else {"$or": alternatives})
    parts.extend(clause_filter(model, clause) for clause in predicate.none_of)
    return parts[0] if len(parts) == 1 else {"$and": parts}


def build_filter(model, predicates: Iterable[Predicate], *, include_deleted: bool = False) -> dict[str, Any]:
    conditions: list[dict[str, Any]] = [] if include_deleted else [{"is_deleted": False}]
    conditions.extend(predicate_filter(model, predicate) for predicate in predicates)
    if not conditions:
        return {}
    return {"$and": conditions}


def build_sort_spec(model, sort: Iterable[SortClause]) -> dict[str, int]:
    spec: dict[str, int] = {}
    for s in sort:
        key, _ = resolve_field(model, s.field)
        spec.setdefault(key, 1 if s.dir == "asc" else -1)
    return spec


def with_live_only(filter_doc: dict[str, Any] | None, *, include_deleted: bool = False) -> dict[str, Any]:
    conditions = [] if include_deleted else [{"is_deleted": False}]
    if filter_doc:
        conditions.append(filter_doc)
    if not conditions:
        return {}
    return conditions[0] if len(conditions) == 1 else {"$and": conditions}
