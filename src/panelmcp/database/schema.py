"""Declarative base and capability mixins for panel entities.

Entity classes opt into behaviour by inheriting mixins and declaring class
attributes that the resource registry reads once at registration:

    __validator__      pydantic model used to validate create/update payloads
    __filter_scopes__  {name: fn(query, value) -> query}
    __sort_scopes__    {name: fn(query, descending) -> query}
    __filterable__     column names allowed in generic filters (default: all)
    __sortable__       column names allowed in generic sorts (default: all)
    __hidden__         columns never exposed in representations or filters
"""

from datetime import datetime, timezone

from sqlalchemy import Column, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utc_now_z() -> str:
    """
    Current UTC time in the format every timestamp column stores.

    ISO 8601 with a 'Z' suffix (e.g. '2025-12-23T00:27:07.804867Z'), so
    string ordering matches time ordering.
    """
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class TimestampMixin:
    """ISO 8601 created/updated timestamps maintained by the ORM."""

    created_at = Column(String, nullable=True, default=utc_now_z)
    updated_at = Column(String, nullable=True, default=utc_now_z, onupdate=utc_now_z)


class SoftDeleteMixin:
    """Rows are archived by setting deleted_at instead of being removed."""

    deleted_at = Column(String, nullable=True, index=True)

    @property
    def is_trashed(self) -> bool:
        return self.deleted_at is not None


def supports_soft_delete(entity_type: type) -> bool:
    return isinstance(entity_type, type) and issubclass(entity_type, SoftDeleteMixin)
