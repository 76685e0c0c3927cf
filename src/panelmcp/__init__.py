"""MCP server exposing admin-panel resources through JSON:API-style CRUD tools."""

__version__ = "1.0.0"
