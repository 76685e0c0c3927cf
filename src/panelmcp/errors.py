"""Error taxonomy for resource operations.

Every public operation catches these at its own boundary and turns them into
an error envelope; nothing here is meant to reach the MCP transport.
"""

from typing import Dict, List, Optional, Sequence


class PanelError(Exception):
    """Base class for all caller-facing failures."""


class NotFound(PanelError):
    """A resource key or record identifier did not resolve."""


class ResourceNotFound(NotFound):
    """Unknown public resource key."""

    def __init__(self, resource: str, available: Sequence[str] = ()):
        self.resource = resource
        self.available = list(available)
        super().__init__(f"Unknown resource: {resource}")

    def describe(self, verb: str = "access") -> str:
        if self.available:
            suggestion = " Available collections: " + ", ".join(self.available)
        else:
            suggestion = " No collections are currently configured."
        return (
            f"The collection '{self.resource}' you're trying to {verb} "
            "doesn't exist in the system." + suggestion
        )


class RecordNotFound(NotFound):
    """No record with the given identifier."""

    def __init__(self, resource: str, record_id: str):
        self.resource = resource
        self.record_id = record_id
        super().__init__(f"The item with ID '{record_id}' could not be found in '{resource}'.")


class ValidationFailed(PanelError):
    """Field-level validation failure."""

    def __init__(self, errors: Dict[str, List[str]]):
        self.errors = errors
        super().__init__(f"Validation failed for: {', '.join(sorted(errors))}")

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationFailed":
        """Collapse a pydantic ValidationError into {field: [messages]}."""
        errors: Dict[str, List[str]] = {}
        for item in exc.errors():
            field = ".".join(str(part) for part in item.get("loc", ())) or "__root__"
            errors.setdefault(field, []).append(item.get("msg", "Invalid value"))
        return cls(errors)


class InvalidQuery(PanelError):
    """A filter, sort or include referenced something the entity does not support."""

    def __init__(self, message: str, names: Optional[List[str]] = None):
        self.names = names or []
        super().__init__(message)


class InvalidFilter(InvalidQuery):
    pass


class InvalidSort(InvalidQuery):
    pass


class InvalidInclude(InvalidQuery):
    pass


class ConstraintViolation(PanelError):
    """Referential integrity failure reported by the store."""


class UnsupportedOperation(PanelError):
    """The entity type lacks a capability the operation needs."""


class StoreFailure(PanelError):
    """Any other persistence failure."""
