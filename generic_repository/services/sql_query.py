from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import Select, and_, asc, desc, or_
from sqlalchemy.inspection import inspect as sa_inspect
from sqlalchemy.orm import selectinload
from sqlalchemy.sql.elements import ColumnElement

from generic_repository.core.errors import InvalidFilterError
from generic_repository.schemas.query import FilterClause, FilterGroup, Predicate, SortClause
from generic_repository.services.coercion import coerce_to_type, day_bounds, is_date_only_literal


def column_python_type(column) -> type | None:
    try:
        return column.property.columns[0].type.python_type
    except Exception:
        return None


def coerce_filter_value(column, text: str) -> Any:
    return coerce_to_type(column.key, text, column_python_type(column))


def resolve_column(model, field: str):
    if field not in sa_inspect(model).column_attrs:
        raise InvalidFilterError(field, f"{model.__name__} has no such column")
    return getattr(model, field)


def clause_expression(model, clause: FilterClause) -> ColumnElement[bool]:
    col = resolve_column(model, clause.field)
    python_type = column_python_type(col)
    if clause.op == "~" and python_type is str:
        return col.icontains(clause.raw, autoescape=True)
    # No regex on this backend: a pattern on a typed column compares by value.
    if python_type is datetime and is_date_only_literal(clause.raw.strip()):
        start, end = day_bounds(col.key, clause.raw)
        if clause.op == "!=":
            return or_(col < start, col >= end, col.is_(None))
        return and_(col >= start, col < end)
    value = coerce_filter_value(col, clause.raw)
    if clause.op == "!=":
        return or_(col != value, col.is_(None))
    return col == value


def predicate_expression(model, predicate: Predicate) -> ColumnElement[bool]:
    if isinstance(predicate, FilterClause):
        return clause_expression(model, predicate)
    parts = []
    if predicate.any_of:
        parts.append(or_(*[clause_expression(model, clause) for clause in predicate.any_of]))
    parts.extend(clause_expression(model, clause) for clause in predicate.none_of)
    return and_(*parts)


def live_only(model) -> ColumnElement[bool]:
    return model.is_deleted.is_(False)


def build_where(model, predicates: Iterable[Predicate], *, include_deleted: bool = False) -> list[ColumnElement[bool]]:
    conditions = [] if include_deleted else [live_only(model)]
    conditions.extend(predicate_expression(model, predicate) for predicate in predicates)
    return conditions


def apply_sort(stmt: Select, model, sort: Iterable[SortClause]) -> Select:
    for s in sort:
        col = resolve_column(model, s.field)
        stmt = stmt.order_by(asc(col) if s.dir == "asc" else desc(col))
    return stmt


def include_names(include: str | None) -> list[str]:
    return [name.strip() for name in str(include or "").split(",") if name.strip()]


def apply_includes(stmt: Select, model, include: str | None) -> Select:
    relationships = sa_inspect(model).relationships
    for name in include_names(include):
        if name not in relationships:
            raise InvalidFilterError(name, f"{model.__name__} has no such relationship")
        stmt = stmt.options(selectinload(getattr(model, name)))
    return stmt
