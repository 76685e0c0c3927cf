"""JSON:API query translation.

Turns a QueryRequest into an ORM query restricted to what the entity declares:
filter scopes and filterable columns, sort scopes and sortable columns, and
mapped relationships for includes. Sparse fieldsets and appends are applied
later by the serializer.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from sqlalchemy import inspect
from sqlalchemy.orm import Query, Session, selectinload

from ..database.entity_repo import primary_key_column
from ..database.schema import supports_soft_delete
from ..errors import InvalidFilter, InvalidInclude, InvalidSort
from ..resources.registry import ResourceDescriptor
from ..utils.logging import get_logger
from .models import QueryRequest

logger = get_logger(__name__)

TRASHED_FILTER = "trashed"
TRASHED_MODES = ("with", "only")


@dataclass
class ExecutableQuery:
    descriptor: ResourceDescriptor
    request: QueryRequest
    query: Query
    include_paths: List[str] = field(default_factory=list)


@dataclass
class PageResult:
    items: List[Any]
    total: int
    current_page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def from_item(self) -> Optional[int]:
        if not self.items:
            return None
        return (self.current_page - 1) * self.per_page + 1

    @property
    def to_item(self) -> Optional[int]:
        if not self.items:
            return None
        return (self.current_page - 1) * self.per_page + len(self.items)

    def metadata(self) -> Dict[str, Any]:
        return {
            "current_page": self.current_page,
            "per_page": self.per_page,
            "total": self.total,
            "last_page": self.last_page,
            "from": self.from_item,
            "to": self.to_item,
        }


def _coerce(column, value: Any) -> Any:
    """Numeric strings become numbers for integer/float columns."""
    if not isinstance(value, str):
        return value
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    if python_type in (int, float):
        try:
            return python_type(value)
        except ValueError:
            return value
    return value


def _column_predicate(attribute, column, value: Any):
    if value is None:
        return attribute.is_(None)
    if isinstance(value, (list, tuple)):
        return attribute.in_([_coerce(column, item) for item in value])
    if isinstance(value, str) and "*" in value:
        pattern = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_").replace("*", "%")
        return attribute.like(pattern, escape="\\")
    return attribute == _coerce(column, value)


def _apply_trashed(query: Query, entity_type: type, mode: Any) -> Query:
    if mode == "with":
        return query
    if mode == "only":
        return query.filter(entity_type.deleted_at.isnot(None))
    return query.filter(entity_type.deleted_at.is_(None))


def apply_filters(query: Query, descriptor: ResourceDescriptor, filters: Dict[str, Any]) -> Query:
    caps = descriptor.capabilities
    entity_type = descriptor.entity_type
    columns = inspect(entity_type).columns
    trashed_mode = None
    rejected = []

    for name, value in filters.items():
        if name in caps.filter_scopes:
            query = caps.filter_scopes[name](query, value)
        elif name == TRASHED_FILTER and caps.soft_deletes:
            if value not in TRASHED_MODES:
                raise InvalidFilter(
                    f"Filter `{TRASHED_FILTER}` accepts `{'`, `'.join(TRASHED_MODES)}`, got `{value}`.",
                    [TRASHED_FILTER],
                )
            trashed_mode = value
        elif name in caps.filterable:
            query = query.filter(_column_predicate(getattr(entity_type, name), columns[name], value))
        else:
            rejected.append(name)

    if rejected:
        allowed = sorted(set(caps.filter_scopes) | set(caps.filterable) | ({TRASHED_FILTER} if caps.soft_deletes else set()))
        raise InvalidFilter(
            f"Requested filter(s) `{', '.join(rejected)}` are not allowed. "
            f"Allowed filter(s) are `{', '.join(allowed)}`.",
            rejected,
        )

    if caps.soft_deletes:
        query = _apply_trashed(query, entity_type, trashed_mode)
    return query


def apply_sorts(query: Query, descriptor: ResourceDescriptor, request: QueryRequest) -> Query:
    caps = descriptor.capabilities
    entity_type = descriptor.entity_type
    rejected = []

    for name, descending in request.sort_fields():
        if name in caps.sort_scopes:
            query = caps.sort_scopes[name](query, descending)
        elif name in caps.sortable:
            attribute = getattr(entity_type, name)
            query = query.order_by(attribute.desc() if descending else attribute.asc())
        else:
            rejected.append(name)

    if rejected:
        allowed = sorted(set(caps.sort_scopes) | set(caps.sortable))
        raise InvalidSort(
            f"Requested sort(s) `{', '.join(rejected)}` are not allowed. "
            f"Allowed sort(s) are `{', '.join(allowed)}`.",
            rejected,
        )

    # stable pagination
    pk = primary_key_column(entity_type)
    return query.order_by(getattr(entity_type, pk.key).asc())


def apply_includes(query: Query, descriptor: ResourceDescriptor, paths: List[str]) -> Query:
    """
    Only the first segment of each path is checked; deeper segments go to the loader as-is.

    Soft-deleted related rows are excluded from every level.
    """
    caps = descriptor.capabilities
    entity_type = descriptor.entity_type
    rejected = [path for path in paths if not caps.has_relation(path.split(".", 1)[0])]
    if rejected:
        raise InvalidInclude(
            f"Requested include(s) `{', '.join(rejected)}` are not allowed. "
            f"Allowed include(s) are `{', '.join(caps.relations)}`.",
            rejected,
        )

    for path in paths:
        owner = entity_type
        loader = None
        for segment in path.split("."):
            attribute = getattr(owner, segment)
            owner = attribute.property.mapper.class_
            if supports_soft_delete(owner):
                attribute = attribute.and_(owner.deleted_at.is_(None))
            loader = selectinload(attribute) if loader is None else loader.selectinload(attribute)
        query = query.options(loader)
    return query


def translate(session: Session, descriptor: ResourceDescriptor, request: QueryRequest) -> ExecutableQuery:
    """Build the ORM query for a read request; raises InvalidFilter/InvalidSort/InvalidInclude."""
    query = session.query(descriptor.entity_type)
    query = apply_filters(query, descriptor, request.filter)
    query = apply_sorts(query, descriptor, request)
    include_paths = request.include_paths()
    query = apply_includes(query, descriptor, include_paths)
    return ExecutableQuery(descriptor=descriptor, request=request, query=query, include_paths=include_paths)


def execute(executable: ExecutableQuery) -> PageResult:
    """Run the count and the page query."""
    page = executable.request.page
    total = executable.query.order_by(None).count()
    items = executable.query.offset((page.number - 1) * page.size).limit(page.size).all()
    logger.debug(
        f"Read {len(items)}/{total} {executable.descriptor.public_key} "
        f"(page {page.number}, size {page.size})"
    )
    return PageResult(items=items, total=total, current_page=page.number, per_page=page.size)


def _param(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_param(item) for item in value)
    return str(value)


def page_url(request: QueryRequest, page_number: int) -> str:
    params = [(f"filter[{name}]", _param(value)) for name, value in request.filter.items()]
    if request.sort:
        params.append(("sort", request.sort))
    if request.include:
        params.append(("include", request.include))
    for resource, names in request.field_sets().items():
        params.append((f"fields[{resource}]", ",".join(names)))
    params.append(("page[number]", str(page_number)))
    params.append(("page[size]", str(request.page.size)))
    if request.append:
        params.append(("append", request.append))
    return f"/{request.resource}?{urlencode(params)}"


def build_links(request: QueryRequest, result: PageResult) -> Dict[str, Optional[str]]:
    """first/last/prev/next links; prev and next are None at the edges."""
    current = result.current_page
    return {
        "first": page_url(request, 1),
        "last": page_url(request, result.last_page),
        "prev": page_url(request, current - 1) if current > 1 else None,
        "next": page_url(request, current + 1) if current < result.last_page else None,
    }
