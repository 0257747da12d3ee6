"""
Reference integrity — codec, walker, field table and dependency finder.

Public API:
    from src.core.references import classify, matches_expanded, resolve_reference
    from src.core.references import find_paths
    from src.core.references import find_dependencies, format_dependency_message
"""

from src.core.references.catalog import COMPONENT_CATEGORIES, lookup_component, normalize_category
from src.core.references.codec import (
    ALIAS_PREFIX,
    MERGE_KEY,
    WRAPPED_PREFIX,
    canonicalize,
    classify,
    matches_expanded,
    matches_name,
    resolve_reference,
    structurally_equal,
)
from src.core.references.dependencies import (
    find_agent_dependencies,
    find_connection_dependencies,
    find_database_dependencies,
    find_dependencies,
    find_function_dependencies,
    find_genie_room_dependencies,
    find_guardrail_dependencies,
    find_llm_dependencies,
    find_middleware_dependencies,
    find_prompt_dependencies,
    find_retriever_dependencies,
    find_schema_dependencies,
    find_service_principal_dependencies,
    find_tool_dependencies,
    find_variable_dependencies,
    find_vector_store_dependencies,
    find_warehouse_dependencies,
    format_dependency_message,
)
from src.core.references.walker import find_paths, iter_references

__all__ = [
    "ALIAS_PREFIX",
    "COMPONENT_CATEGORIES",
    "MERGE_KEY",
    "WRAPPED_PREFIX",
    "canonicalize",
    "classify",
    "find_agent_dependencies",
    "find_connection_dependencies",
    "find_database_dependencies",
    "find_dependencies",
    "find_function_dependencies",
    "find_genie_room_dependencies",
    "find_guardrail_dependencies",
    "find_llm_dependencies",
    "find_middleware_dependencies",
    "find_paths",
    "find_prompt_dependencies",
    "find_retriever_dependencies",
    "find_schema_dependencies",
    "find_service_principal_dependencies",
    "find_tool_dependencies",
    "find_variable_dependencies",
    "find_vector_store_dependencies",
    "find_warehouse_dependencies",
    "format_dependency_message",
    "iter_references",
    "lookup_component",
    "matches_expanded",
    "matches_name",
    "normalize_category",
    "resolve_reference",
    "structurally_equal",
]
