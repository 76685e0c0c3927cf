"""Capability discovery for entity classes.

Capabilities are read once, when a resource is registered, so operations only
consult flags and lookup tables at call time.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Type

from pydantic import BaseModel
from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable

from ..database.schema import supports_soft_delete
from ..errors import UnsupportedOperation

FilterScope = Callable[[Any, Any], Any]
SortScope = Callable[[Any, bool], Any]


@dataclass(frozen=True)
class EntityCapabilities:
    validator: Optional[Type[BaseModel]] = None
    soft_deletes: bool = False
    filter_scopes: Mapping[str, FilterScope] = field(default_factory=dict)
    sort_scopes: Mapping[str, SortScope] = field(default_factory=dict)
    columns: Tuple[str, ...] = ()
    filterable: Tuple[str, ...] = ()
    sortable: Tuple[str, ...] = ()
    relations: Tuple[str, ...] = ()

    @property
    def supports_validation(self) -> bool:
        return self.validator is not None

    def has_relation(self, name: str) -> bool:
        return name in self.relations


def _scope_table(entity_type: type, attribute: str) -> Dict[str, Callable]:
    table = getattr(entity_type, attribute, None) or {}
    if not isinstance(table, Mapping):
        raise UnsupportedOperation(f"{entity_type.__name__}.{attribute} must be a mapping of name to function")
    for name, fn in table.items():
        if not callable(fn):
            raise UnsupportedOperation(f"{entity_type.__name__}.{attribute}['{name}'] is not callable")
    return dict(table)


def _allow_list(entity_type: type, attribute: str, columns: Tuple[str, ...]) -> Tuple[str, ...]:
    declared = getattr(entity_type, attribute, None)
    if declared is None:
        return columns
    unknown = [name for name in declared if name not in columns]
    if unknown:
        raise UnsupportedOperation(
            f"{entity_type.__name__}.{attribute} names unmapped columns: {', '.join(unknown)}"
        )
    return tuple(declared)


def describe_entity(entity_type: type) -> EntityCapabilities:
    """Build the capability record for a mapped entity class."""
    try:
        mapper = inspect(entity_type)
    except NoInspectionAvailable as e:
        raise UnsupportedOperation(f"{entity_type!r} is not a mapped entity class") from e

    validator = getattr(entity_type, "__validator__", None)
    if validator is not None and not (isinstance(validator, type) and issubclass(validator, BaseModel)):
        raise UnsupportedOperation(f"{entity_type.__name__}.__validator__ must be a pydantic model")

    columns = tuple(attr.key for attr in mapper.column_attrs)
    hidden = set(getattr(entity_type, "__hidden__", ()))
    visible = tuple(name for name in columns if name not in hidden)
    return EntityCapabilities(
        validator=validator,
        soft_deletes=supports_soft_delete(entity_type),
        filter_scopes=_scope_table(entity_type, "__filter_scopes__"),
        sort_scopes=_scope_table(entity_type, "__sort_scopes__"),
        columns=columns,
        filterable=_allow_list(entity_type, "__filterable__", visible),
        sortable=_allow_list(entity_type, "__sortable__", visible),
        relations=tuple(rel.key for rel in mapper.relationships),
    )
