"""
Dependency finder — which components reference a given component.

Each ``find_<category>_dependencies`` function evaluates the rows of
the reference-field table that point at that category.  Every field
is tested against all reference encodings: markers and bare keys
first, then a unique ``name`` match, then structural equality with
the configured component.

Read-only over the descriptor.  An absent section or an unknown
category gives an empty list, never an error.
"""

from __future__ import annotations

import logging
from typing import Any

from src.core.models.reference import DependencyRecord
from src.core.references.catalog import normalize_category
from src.core.references.codec import merge_targets, references
from src.core.references.table import Mode, ReferenceField, fields_referencing
from src.core.references.walker import find_paths

logger = logging.getLogger(__name__)


def _match(row: ReferenceField, value: Any, key: str, document: Any) -> str | None:
    """Reported field name when ``value`` references ``key``, else None."""
    if row.mode is Mode.VALUE:
        if references(value, key, document, row.referenced):
            return row.display_field
        return None

    if row.mode is Mode.SEQUENCE:
        items = value if isinstance(value, list) else [value]
        if any(references(item, key, document, row.referenced) for item in items):
            return row.display_field
        return None

    if row.mode is Mode.SCAN:
        paths = find_paths(value, key)
        if not paths:
            return None
        if row.label:
            return row.label
        first = paths[0]
        if row.field and first:
            return f"{row.field}.{first}" if not first.startswith("[") else f"{row.field}{first}"
        return row.field or first

    if row.mode is Mode.MERGE:
        if key in merge_targets(value):
            return row.display_field
        return None

    return None


def find_dependencies(document: Any, category: str, key: str) -> list[DependencyRecord]:
    """All components referencing ``(category, key)``.

    Records come out in table order, one per distinct
    ``(type, name, field)``.  A scan row never adds a second record for
    a dependent an earlier row already reported.

    Args:
        document: The descriptor (not modified).
        category: Category of the queried component, e.g. ``"llm"``.
        key: Key of the queried component.

    Returns:
        List of DependencyRecord; empty when nothing depends on it.
    """
    category = normalize_category(category)
    records: list[DependencyRecord] = []
    if not isinstance(key, str) or not key:
        return records

    seen: set[tuple[str, str, str]] = set()
    reported: set[tuple[str, str]] = set()

    for row in fields_referencing(category):
        for dependent_key, value in row.dependents(document):
            field = _match(row, value, key, document)
            if field is None:
                continue
            if row.mode is Mode.SCAN and (row.dependent_type, dependent_key) in reported:
                continue
            triple = (row.dependent_type, str(dependent_key), field)
            if triple in seen:
                continue
            seen.add(triple)
            reported.add((row.dependent_type, dependent_key))
            records.append(DependencyRecord(type=triple[0], name=triple[1], field=triple[2]))

    logger.debug("%s %r has %d dependent(s)", category, key, len(records))
    return records


# ── Per-category lookups ────────────────────────────────────────


def find_schema_dependencies(document: Any, schema_key: str) -> list[DependencyRecord]:
    """Tables, volumes, functions, vector stores, tools, databases, prompts
    and the registered model that live in the schema."""
    return find_dependencies(document, "schema", schema_key)


def find_llm_dependencies(document: Any, llm_key: str) -> list[DependencyRecord]:
    """Agents, guardrails, memory, orchestration and vector stores using the LLM."""
    return find_dependencies(document, "llm", llm_key)


def find_variable_dependencies(document: Any, var_key: str) -> list[DependencyRecord]:
    return find_dependencies(document, "variable", var_key)


def find_retriever_dependencies(document: Any, retriever_key: str) -> list[DependencyRecord]:
    return find_dependencies(document, "retriever", retriever_key)


def find_genie_room_dependencies(document: Any, genie_key: str) -> list[DependencyRecord]:
    return find_dependencies(document, "genie_room", genie_key)


def find_vector_store_dependencies(document: Any, vs_key: str) -> list[DependencyRecord]:
    return find_dependencies(document, "vector_store", vs_key)


def find_function_dependencies(document: Any, func_key: str) -> list[DependencyRecord]:
    """Tools built on the function, through a merge key or a direct reference."""
    return find_dependencies(document, "function", func_key)


def find_tool_dependencies(document: Any, tool_key: str) -> list[DependencyRecord]:
    return find_dependencies(document, "tool", tool_key)


def find_guardrail_dependencies(document: Any, guardrail_key: str) -> list[DependencyRecord]:
    return find_dependencies(document, "guardrail", guardrail_key)


def find_prompt_dependencies(document: Any, prompt_key: str) -> list[DependencyRecord]:
    return find_dependencies(document, "prompt", prompt_key)


def find_agent_dependencies(document: Any, agent_key: str) -> list[DependencyRecord]:
    """The app's agent list and swarm orchestration."""
    return find_dependencies(document, "agent", agent_key)


def find_database_dependencies(document: Any, db_key: str) -> list[DependencyRecord]:
    return find_dependencies(document, "database", db_key)


def find_service_principal_dependencies(document: Any, sp_key: str) -> list[DependencyRecord]:
    return find_dependencies(document, "service_principal", sp_key)


def find_connection_dependencies(document: Any, conn_key: str) -> list[DependencyRecord]:
    return find_dependencies(document, "connection", conn_key)


def find_warehouse_dependencies(document: Any, wh_key: str) -> list[DependencyRecord]:
    return find_dependencies(document, "warehouse", wh_key)


def find_middleware_dependencies(document: Any, middleware_key: str) -> list[DependencyRecord]:
    return find_dependencies(document, "middleware", middleware_key)


# ── Messages ────────────────────────────────────────────────────


def format_dependency_message(records: list[DependencyRecord]) -> str:
    """User-facing enumeration of dependents, or "" when there are none."""
    if not records:
        return ""
    lines = "\n".join(record.describe() for record in records)
    return (
        f"This component is referenced by:\n{lines}\n\n"
        "Please remove these references before deleting."
    )
