from pydantic import BaseModel, Field
from typing import Any, List, Literal, Optional, Union

from generic_repository.core.config import settings

Op = Literal["=", "!=", "~"]
Dir = Literal["asc", "desc"]

class FilterClause(BaseModel):
    field: str
    op: Op
    value: Any
    raw: str

class FilterGroup(BaseModel):
    field: str
    any_of: List[FilterClause] = []
    none_of: List[FilterClause] = []

Predicate = Union[FilterClause, FilterGroup]

class SortClause(BaseModel):
    field: str
    dir: Dir

class PageRequest(BaseModel):
    page_size: int = Field(default_factory=lambda: settings.DEFAULT_PAGE_SIZE, gt=0)
    skip: int = 1
    sort_field: Optional[str] = None
    include: Any = None
