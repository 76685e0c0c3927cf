"""Request models for read and mutation operations."""

from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PAGE_NUMBER = 1
DEFAULT_PAGE_SIZE = 15
MAX_PAGE_SIZE = 100


def split_csv(value: Union[str, List[str], None]) -> List[str]:
    """Parse 'a, b,c' (or an already split list) into ['a', 'b', 'c']."""
    if not value:
        return []
    items = value if isinstance(value, list) else str(value).split(",")
    return [item.strip() for item in items if item and item.strip()]


class PageParams(BaseModel):
    """JSON:API page[number] / page[size]. Out-of-range values are rejected, not clamped."""

    model_config = ConfigDict(extra="forbid")

    number: int = Field(default=DEFAULT_PAGE_NUMBER, ge=1)
    size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)


class QueryRequest(BaseModel):
    resource: str = Field(..., min_length=1)
    filter: Dict[str, Any] = Field(default_factory=dict)
    sort: str = ""
    include: str = ""
    fields: Dict[str, Union[str, List[str]]] = Field(default_factory=dict)
    page: PageParams = Field(default_factory=PageParams)
    append: str = ""

    @field_validator("filter", "fields", "page", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("sort", "include", "append", mode="before")
    @classmethod
    def _none_as_blank(cls, value: Any) -> Any:
        return "" if value is None else value

    def sort_fields(self) -> List[Tuple[str, bool]]:
        """[(field, descending), ...] in request order."""
        return [(item.lstrip("-"), item.startswith("-")) for item in split_csv(self.sort)]

    def include_paths(self) -> List[str]:
        return split_csv(self.include)

    def append_names(self) -> List[str]:
        return split_csv(self.append)

    def field_sets(self) -> Dict[str, List[str]]:
        return {resource: split_csv(names) for resource, names in self.fields.items()}


class MutationRequest(BaseModel):
    resource: str = Field(..., min_length=1)
    id: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_string(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, bool):
            raise ValueError("Identifier must be a string or integer")
        if isinstance(value, int):
            return str(value)
        return value
