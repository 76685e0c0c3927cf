"""DBML rendering of the registered entities.

Table and column notes come from SQLAlchemy comments, so documenting the
domain means commenting the models.
"""

from typing import List, Optional

from sqlalchemy import Column, Table
from sqlalchemy.exc import CompileError

from ..resources.registry import ResourceRegistry


def _quote(text: str) -> str:
    return "'" + text.replace("\\", "\\\\").replace("'", "\\'") + "'"


def _column_type(column: Column) -> str:
    try:
        return str(column.type).lower().replace(" ", "_")
    except CompileError:
        return type(column.type).__name__.lower()


def _column_line(column: Column) -> str:
    settings: List[str] = []
    if column.primary_key:
        settings.append("primary key")
        if column.autoincrement is True or (
            column.autoincrement == "auto" and _column_type(column) == "integer"
        ):
            settings.append("increment")
    elif not column.nullable:
        settings.append("not null")
    if column.unique:
        settings.append("unique")
    if column.comment:
        settings.append(f"note: {_quote(column.comment)}")
    suffix = f" [{', '.join(settings)}]" if settings else ""
    return f"  {column.name} {_column_type(column)}{suffix}"


def _table_block(table: Table) -> List[str]:
    header = f"Table {table.name}"
    if table.comment:
        header += f" [note: {_quote(table.comment)}]"
    lines = [header + " {"]
    lines.extend(_column_line(column) for column in table.columns)
    lines.append("}")
    return lines


def render_dbml(registry: ResourceRegistry, project: str = "Platform", note: Optional[str] = None) -> str:
    """Render Project, Table and Ref blocks for every registered resource."""
    tables: List[Table] = []
    names = set()
    for descriptor in registry.descriptors():
        table = descriptor.entity_type.__table__
        if table.name not in names:
            names.add(table.name)
            tables.append(table)

    project_header = f"Project {project.replace(' ', '_')}"
    if note:
        project_header += f" [note: {_quote(note)}]"
    lines = [project_header + " {", "}", ""]

    refs: List[str] = []
    for table in tables:
        lines.extend(_table_block(table))
        lines.append("")
        for fk in sorted(table.foreign_keys, key=lambda fk: fk.parent.name):
            target = fk.column
            if target.table.name in names:
                refs.append(f"Ref: {table.name}.{fk.parent.name} > {target.table.name}.{target.name}")

    lines.extend(refs)
    return "\n".join(lines).rstrip() + "\n"
