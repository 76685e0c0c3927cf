"""Entity representations returned in envelopes."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import inspect

from ..database.schema import supports_soft_delete

IncludeTree = Dict[str, "IncludeTree"]


def build_include_tree(paths: Iterable[str]) -> IncludeTree:
    """Turn ['posts', 'posts.comments', 'profile'] into a nested dict."""
    tree: IncludeTree = {}
    for path in paths:
        node = tree
        for segment in path.split("."):
            if segment:
                node = node.setdefault(segment, {})
    return tree


def _plain(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def _is_trashed(entity: Any) -> bool:
    return getattr(entity, "deleted_at", None) is not None and supports_soft_delete(type(entity))


def _appended_value(entity: Any, name: str) -> Any:
    """Only properties are appendable; columns, relations and private names read as None."""
    entity_type = type(entity)
    if name.startswith("_") or name in getattr(entity_type, "__hidden__", ()):
        return None
    if not isinstance(getattr(entity_type, name, None), property):
        return None
    return _plain(getattr(entity, name))


def column_values(entity: Any) -> Dict[str, Any]:
    """Mapped column values in declaration order, without __hidden__ columns."""
    entity_type = type(entity)
    hidden = getattr(entity_type, "__hidden__", ())
    return {
        attr.key: _plain(getattr(entity, attr.key))
        for attr in inspect(entity_type).column_attrs
        if attr.key not in hidden
    }


def to_representation(
    entity: Any,
    fields: Optional[Mapping[str, List[str]]] = None,
    includes: Optional[IncludeTree] = None,
    appends: Iterable[str] = (),
) -> Dict[str, Any]:
    """
    Represent an entity as a plain dict.

    fields is keyed by table name and applies to the root and to included
    entities alike; names that are not columns are ignored. Appended names are
    read from properties of the entity class and come out as None otherwise.
    Soft-deleted related entities are left out.
    """
    data = column_values(entity)
    selected = (fields or {}).get(getattr(entity, "__tablename__", ""))
    if selected:
        data = {key: value for key, value in data.items() if key in selected}

    for name in appends:
        if name not in data:
            data[name] = _appended_value(entity, name)

    for relation, subtree in (includes or {}).items():
        related = getattr(entity, relation)
        # relations already loaded in the session bypass the loader criteria
        if isinstance(related, (list, tuple, set)):
            data[relation] = [
                to_representation(child, fields, subtree) for child in related if not _is_trashed(child)
            ]
        elif related is None or _is_trashed(related):
            data[relation] = None
        else:
            data[relation] = to_representation(related, fields, subtree)
    return data
