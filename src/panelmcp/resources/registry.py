"""Static mapping from public resource keys to entity classes."""

import importlib
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

from ..errors import ResourceNotFound
from ..utils.logging import get_logger
from .capabilities import EntityCapabilities, describe_entity

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResourceDescriptor:
    public_key: str
    entity_type: type
    capabilities: EntityCapabilities

    @property
    def table_name(self) -> str:
        return self.entity_type.__tablename__


class ResourceRegistry:
    """Registered resources, keyed by public key in registration order."""

    def __init__(self) -> None:
        self._descriptors: Dict[str, ResourceDescriptor] = {}

    def register(self, public_key: str, entity_type: type) -> ResourceDescriptor:
        if not public_key:
            raise ValueError("Resource key must be a non-empty string")
        if public_key in self._descriptors:
            raise ValueError(f"Resource key already registered: {public_key}")
        descriptor = ResourceDescriptor(
            public_key=public_key,
            entity_type=entity_type,
            capabilities=describe_entity(entity_type),
        )
        self._descriptors[public_key] = descriptor
        logger.debug(f"Registered resource '{public_key}' -> {entity_type.__name__}")
        return descriptor

    def resolve(self, public_key: str) -> Optional[ResourceDescriptor]:
        return self._descriptors.get(public_key)

    def require(self, public_key: str) -> ResourceDescriptor:
        descriptor = self.resolve(public_key)
        if descriptor is None:
            raise ResourceNotFound(public_key, self.list_available())
        return descriptor

    def list_available(self) -> List[str]:
        return list(self._descriptors)

    def descriptors(self) -> List[ResourceDescriptor]:
        return list(self._descriptors.values())

    def __contains__(self, public_key: object) -> bool:
        return public_key in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)


def import_object(path: str) -> Any:
    """Import 'package.module:Name' (or 'package.module.Name')."""
    if ":" in path:
        module_name, _, attr = path.partition(":")
    else:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise ValueError(f"Invalid import path: {path}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ValueError(f"Cannot import module '{module_name}' for '{path}': {e}") from e
    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise ValueError(f"Module '{module_name}' has no attribute '{attr}'") from e


def build_registry(entries: Iterable[Union[str, Dict[str, str]]]) -> ResourceRegistry:
    """
    Build a registry from config entries.

    Each entry is either an import path (the key defaults to the entity's
    table name) or a mapping with 'entity' and optional 'key'.
    """
    registry = ResourceRegistry()
    for entry in entries:
        if isinstance(entry, str):
            path, key = entry, None
        else:
            path, key = entry["entity"], entry.get("key")
        entity_type = import_object(path)
        registry.register(key or getattr(entity_type, "__tablename__", ""), entity_type)
    logger.info(f"Resource registry ready with {len(registry)} resource(s)")
    return registry
