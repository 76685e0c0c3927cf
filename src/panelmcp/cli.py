"""CLI entrypoint for the panel MCP server."""

import argparse
import shutil
import sys
from pathlib import Path
from typing import List, Optional

from panelmcp.config.loader import (
    DEFAULT_CONFIG_PATH,
    EXAMPLE_CONFIG_PATH,
    get_resource_entries,
    load_config,
)
from panelmcp.domain.dbml import render_dbml
from panelmcp.mcp_server import run_server
from panelmcp.resources.registry import build_registry
from panelmcp.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def cmd_serve(args: argparse.Namespace) -> None:
    """Run the MCP server over stdio."""
    config = load_config(args.config)
    configure_logging(args.log_level or config["logging"]["level"])
    logger.info(f"Starting MCP server with config {args.config}")
    run_server(config)


def cmd_resources(args: argparse.Namespace) -> None:
    """List registered resources and their capabilities."""
    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        logger.error(f"Config not found: {e}")
        print("Error: Config file not found. Run 'panelmcp init' first.")
        return

    registry = build_registry(get_resource_entries(config))
    if not len(registry):
        print("No resources configured.")
        return

    print(f"{'Key':<20} {'Table':<20} {'Validation':<12} {'Soft delete':<12} {'Scopes':<30}")
    print("-" * 94)
    for descriptor in registry.descriptors():
        caps = descriptor.capabilities
        validation = "Yes" if caps.supports_validation else "No"
        soft = "Yes" if caps.soft_deletes else "No"
        scopes = ", ".join(sorted(caps.filter_scopes))
        print(f"{descriptor.public_key:<20} {descriptor.table_name:<20} {validation:<12} {soft:<12} {scopes:<30}")


def cmd_dbml(args: argparse.Namespace) -> None:
    """Print the DBML document for the configured resources."""
    config = load_config(args.config)
    docs = config["documentation"]
    registry = build_registry(get_resource_entries(config))
    output = render_dbml(registry, project=docs.get("project") or "Platform", note=docs.get("note"))
    if args.out:
        args.out.write_text(output, encoding="utf-8")
        print(f"DBML written to {args.out}")
    else:
        sys.stdout.write(output)


def cmd_init(args: argparse.Namespace) -> None:
    """Create config/panelmcp.yaml from the example file."""
    example = args.example
    target = args.config

    if not example.exists():
        logger.error(f"Example file not found: {example}")
        return

    if target.exists() and not args.force:
        print(f"Skipped {target} (already exists, use --force to overwrite)")
        return

    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy(example, target)
    print(f"Created {target}")


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        prog="panelmcp",
        description="MCP tools for CRUD over registered resources",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the server config (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Logging level; overrides logging.level from the config (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the MCP server over stdio")
    serve_parser.set_defaults(func=cmd_serve)

    resources_parser = subparsers.add_parser("resources", help="List registered resources")
    resources_parser.set_defaults(func=cmd_resources)

    dbml_parser = subparsers.add_parser("dbml", help="Print the domain DBML document")
    dbml_parser.add_argument(
        "--out",
        type=Path,
        help="Output file path (if not provided, prints to stdout)",
    )
    dbml_parser.set_defaults(func=cmd_dbml)

    init_parser = subparsers.add_parser("init", help="Initialize the config file from the example")
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing config file",
    )
    init_parser.add_argument(
        "--example",
        type=Path,
        default=EXAMPLE_CONFIG_PATH,
        help=f"Example config to copy (default: {EXAMPLE_CONFIG_PATH})",
    )
    init_parser.set_defaults(func=cmd_init)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    configure_logging(args.log_level or "INFO")

    try:
        args.func(args)
    except Exception as e:
        logger.error(f"Error running command '{args.command}': {e}", exc_info=True)
        raise


if __name__ == "__main__":
    main()
