from __future__ import annotations

import math
from dataclasses import dataclass

from generic_repository.schemas.query import SortClause
from generic_repository.services.search_spec import NEGATION_MARKER

DEFAULT_SORT_FIELD = "created_at"
TIEBREAK_SORT_FIELD = "id"


@dataclass(frozen=True)
class PageWindow:
    offset: int
    limit: int


def page_window(page_size: int, skip: int) -> PageWindow:
    # skip is a 1-based page index and is not range-checked here.
    return PageWindow(offset=(skip - 1) * page_size, limit=page_size)


def parse_sort_field(sort_field: str | None) -> SortClause | None:
    text = str(sort_field or "").strip()
    if not text:
        return None
    if text.startswith(NEGATION_MARKER):
        field = text[len(NEGATION_MARKER):].strip()
        return SortClause(field=field, dir="desc") if field else None
    return SortClause(field=text, dir="asc")


def build_sort(sort_field: str | None) -> list[SortClause]:
    """``"name"`` sorts ascending, ``"!name"`` descending; default is oldest first."""
    primary = parse_sort_field(sort_field) or SortClause(field=DEFAULT_SORT_FIELD, dir="asc")
    clauses = [primary]
    if primary.field != TIEBREAK_SORT_FIELD:
        clauses.append(SortClause(field=TIEBREAK_SORT_FIELD, dir="asc"))
    return clauses


def page_count(total: int, page_size: int) -> int:
    if page_size <= 0:
        raise ValueError(f"page_size must be positive, got {page_size}")
    return math.ceil(total / page_size)
