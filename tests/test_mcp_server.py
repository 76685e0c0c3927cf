"""Tests for the MCP tool surface."""

import asyncio
import json

import pytest

from panelmcp import mcp_server
from panelmcp.actions import build_action_registry
from panelmcp.mcp_server import (
    ServerContext,
    action_tool,
    build_server,
    create_resource_tool,
    delete_resource_tool,
    domain_dbml,
    process_bpmn,
    read_resource_tool,
    update_resource_tool,
)
from panelmcp.workbench.actions import SendWelcomeEmail
from panelmcp.workbench.models import User


@pytest.fixture
def context(monkeypatch, registry, session_factory, tmp_path):
    bpmn = tmp_path / "process.bpmn"
    bpmn.write_text("<definitions/>")
    ctx = ServerContext(
        registry=registry,
        actions=build_action_registry(
            ["panelmcp.workbench.actions:ResetPassword", "panelmcp.workbench.actions:SendWelcomeEmail"]
        ),
        session_factory=session_factory,
        documentation={"project": "Workbench", "note": None, "bpmn_path": str(bpmn)},
    )
    monkeypatch.setattr(mcp_server, "_context", None)
    mcp_server.configure(ctx)
    return ctx


def test_tools_require_context(monkeypatch):
    monkeypatch.setattr(mcp_server, "_context", None)

    with pytest.raises(RuntimeError):
        read_resource_tool("users")


def test_crud_tools_return_json_envelopes(context):
    created = json.loads(create_resource_tool("users", {"name": "Ann", "email": "ann@x.io"}))
    assert created["success"] is True
    user_id = str(created["data"]["id"])

    read = json.loads(read_resource_tool("users", filter={"email": "ann@x.io"}, page={"number": 1, "size": 5}))
    assert read["metadata"]["total"] == 1
    assert read["links"]["first"].startswith("/users?")

    updated = json.loads(update_resource_tool("users", user_id, {"name": "Annie"}))
    assert updated["data"]["name"] == "Annie"

    deleted = json.loads(delete_resource_tool("users", user_id))
    assert deleted["metadata"]["delete_type"] == "soft_deleted"


def test_each_call_uses_its_own_session(context):
    json.loads(create_resource_tool("users", {"name": "Ann", "email": "ann@x.io"}))

    with context.session_factory() as other:
        assert other.query(User).count() == 1


def test_tool_errors_are_envelopes(context):
    result = json.loads(read_resource_tool("users", page={"size": 500}))

    assert result["success"] is False
    assert "error" in result


def test_action_tool(context):
    json.loads(create_resource_tool("users", {"name": "Ann", "email": "ann@x.io"}))
    tool = action_tool(SendWelcomeEmail)

    result = json.loads(tool({"email": "ann@x.io"}))

    assert tool.__name__ == "send_welcome_email"
    assert result["success"] is True
    assert result["metadata"] == {"action": "send-welcome-email"}


def test_documents(context):
    assert domain_dbml().startswith("Project Workbench {")
    assert process_bpmn() == "<definitions/>"


def test_missing_bpmn_file(context):
    context.documentation["bpmn_path"] = "/nonexistent/process.bpmn"

    with pytest.raises(FileNotFoundError):
        process_bpmn()


def test_unconfigured_bpmn(context):
    context.documentation["bpmn_path"] = None

    with pytest.raises(ValueError):
        process_bpmn()


def test_build_server_registers_tools(context):
    server = build_server({"server": {"name": "Test Server", "instructions": "Use the tools."}}, context)

    tools = asyncio.run(server.list_tools())
    names = {tool.name for tool in tools}
    assert names == {
        "create-resource",
        "read-resource",
        "update-resource",
        "delete-resource",
        "reset-password",
        "send-welcome-email",
    }

    resources = asyncio.run(server.list_resources())
    assert {str(resource.uri).rstrip("/") for resource in resources} == {"domain://dbml", "process://bpmn"}
