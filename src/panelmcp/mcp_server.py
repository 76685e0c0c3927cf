"""MCP server exposing panel resources as CRUD tools.

Tools:
- create-resource, read-resource, update-resource, delete-resource
- one tool per configured business action

Resources:
- domain://dbml   entities and relationships of the registered resources
- process://bpmn  business process definitions from the configured file

Usage:
    panelmcp serve --config config/panelmcp.yaml

MCP client settings:
    {
        "mcpServers": {
            "panel": {
                "command": "panelmcp",
                "args": ["serve"]
            }
        }
    }
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Type

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from sqlalchemy.orm import sessionmaker

from .actions import Action, ActionRegistry, build_action_registry, run_action
from .api.crud_api import create_resource, delete_resource, read_resources, update_resource
from .config.loader import get_action_paths, get_database_url, get_resource_entries
from .database.sqlite_client import get_session_factory, session_context
from .domain.dbml import render_dbml
from .resources.registry import ResourceRegistry, build_registry
from .utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ServerContext:
    registry: ResourceRegistry
    actions: ActionRegistry
    session_factory: sessionmaker
    documentation: Dict[str, Any] = field(default_factory=dict)


_context: Optional[ServerContext] = None


def configure(context: ServerContext) -> None:
    global _context
    _context = context


def get_context() -> ServerContext:
    if _context is None:
        raise RuntimeError("Server context is not configured; call configure() first")
    return _context


def create_context(config: Dict[str, Any]) -> ServerContext:
    """Build registry, actions and session factory from a loaded config."""
    return ServerContext(
        registry=build_registry(get_resource_entries(config)),
        actions=build_action_registry(get_action_paths(config)),
        session_factory=get_session_factory(get_database_url(config)),
        documentation=dict(config.get("documentation") or {}),
    )


def _dump(envelope: Dict[str, Any]) -> str:
    return json.dumps(envelope, indent=2, default=str)


# =============================================================================
# CRUD TOOLS
# =============================================================================


def create_resource_tool(resource: str, payload: dict[str, Any]) -> str:
    """Add a new item to your collection. Your data will be automatically checked for correctness before saving.

    Args:
        resource: The type of item you want to add (e.g., "users", "posts", "orders")
        payload: The information for your new item, one value per field.
            Example: {"name": "John Doe", "email": "john@example.com"}
    """
    ctx = get_context()
    with session_context(ctx.session_factory) as session:
        return _dump(create_resource(session, ctx.registry, resource, payload))


def read_resource_tool(
    resource: str,
    filter: dict[str, Any] | None = None,
    sort: str = "",
    include: str = "",
    fields: dict[str, Any] | None = None,
    page: dict[str, Any] | None = None,
    append: str = "",
) -> str:
    """Search and view your items with flexible filtering, sorting, and relationship options (JSON:API conventions).

    Args:
        resource: The type of items you want to view (e.g., "users", "posts")
        filter: Narrow down results. Example: {"email": "john@example.com", "status": "active"}.
            Use * for partial matches: {"name": "*john*"}
        sort: Comma-separated fields; prefix with "-" for descending. Example: "-created_at,name"
        include: Related information to embed. Example: "posts,posts.comments"
        fields: Fields to show per collection. Example: {"users": "id,name,email"}
        page: {"number": 1, "size": 15}; size is at most 100
        append: Computed information to add. Example: "display_name"
    """
    ctx = get_context()
    with session_context(ctx.session_factory) as session:
        return _dump(
            read_resources(
                session,
                ctx.registry,
                resource,
                filter=filter,
                sort=sort,
                include=include,
                fields=fields,
                page=page,
                append=append,
            )
        )


def update_resource_tool(resource: str, id: str, payload: dict[str, Any]) -> str:
    """Modify an existing item in your collection. Your changes will be automatically checked before saving.

    Args:
        resource: The type of item you want to modify (e.g., "users", "posts")
        id: The unique identifier of the item you want to update
        payload: Only the fields you want to change. Example: {"name": "Jane Doe"}
    """
    ctx = get_context()
    with session_context(ctx.session_factory) as session:
        return _dump(update_resource(session, ctx.registry, resource, id, payload))


def delete_resource_tool(resource: str, id: str, force: bool = False) -> str:
    """Remove an item from your collection. This cannot be undone unless the item is archived (soft delete).

    Args:
        resource: The type of item you want to remove (e.g., "users", "posts")
        id: The unique identifier of the item you want to remove
        force: Permanently delete the item even if it supports archiving. Use with caution.
    """
    ctx = get_context()
    with session_context(ctx.session_factory) as session:
        return _dump(delete_resource(session, ctx.registry, resource, id, force=force))


def action_tool(action: Type[Action]) -> Callable[..., str]:
    """Wrap a business action as a tool function taking one 'attributes' object."""

    def run(attributes: dict[str, Any] | None = None) -> str:
        ctx = get_context()
        with session_context(ctx.session_factory) as session:
            return _dump(run_action(session, action, attributes))

    run.__name__ = action.identifier.replace("-", "_")
    run.__doc__ = action.tool_description()
    return run


# =============================================================================
# DOCUMENT RESOURCES
# =============================================================================


def domain_dbml() -> str:
    """Entity relationship diagram of the application domain in DBML format."""
    ctx = get_context()
    docs = ctx.documentation
    return render_dbml(ctx.registry, project=docs.get("project") or "Platform", note=docs.get("note"))


def process_bpmn() -> str:
    """Business process definitions in BPMN 2.0 format."""
    path = get_context().documentation.get("bpmn_path")
    if not path:
        raise ValueError("No BPMN process file is configured (documentation.bpmn_path).")
    bpmn_path = Path(path)
    if not bpmn_path.exists():
        raise FileNotFoundError(f"BPMN process file not found: {bpmn_path}")
    return bpmn_path.read_text(encoding="utf-8")


# =============================================================================
# SERVER
# =============================================================================


def build_server(config: Dict[str, Any], context: Optional[ServerContext] = None) -> FastMCP:
    """Configure the module context and register every tool and resource."""
    configure(context or create_context(config))
    ctx = get_context()
    server_cfg = config.get("server", {})
    mcp = FastMCP(server_cfg.get("name", "Platform Server"), instructions=server_cfg.get("instructions"))

    mcp.tool(name="create-resource", title="Create Resource")(create_resource_tool)
    mcp.tool(
        name="read-resource",
        title="Read Resource",
        annotations=ToolAnnotations(readOnlyHint=True),
    )(read_resource_tool)
    mcp.tool(name="update-resource", title="Update Resource")(update_resource_tool)
    mcp.tool(
        name="delete-resource",
        title="Delete Resource",
        annotations=ToolAnnotations(destructiveHint=True),
    )(delete_resource_tool)

    for action in ctx.actions.actions():
        mcp.tool(name=action.identifier, title=action.name, description=action.tool_description())(
            action_tool(action)
        )

    mcp.resource("domain://dbml", name="Domain DBML", mime_type="text/plain")(domain_dbml)
    mcp.resource("process://bpmn", name="Business Processes", mime_type="application/xml")(process_bpmn)

    logger.info(
        f"{server_cfg.get('name')} {server_cfg.get('version', '')} ready: "
        f"{len(ctx.registry)} resource(s), {len(ctx.actions.list_identifiers())} action(s)"
    )
    return mcp


def run_server(config: Dict[str, Any]) -> None:
    """Run the MCP server with stdio transport."""
    build_server(config).run()
