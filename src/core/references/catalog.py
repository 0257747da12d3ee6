"""
Component catalog — where each component category lives in a descriptor.

A descriptor is a plain nested mapping.  Top-level sections hold
components directly (``tools``, ``agents``), some categories live one
level deeper (``resources.llms``).  This table is the single closed
mapping of category → section path; the dependency finder, the
deletion validator and the serializer all read it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any

logger = logging.getLogger(__name__)

Document = dict[str, Any]
SectionPath = tuple[str, ...]

COMPONENT_CATEGORIES: dict[str, SectionPath] = {
    "variable": ("variables",),
    "service_principal": ("service_principals",),
    "schema": ("schemas",),
    "llm": ("resources", "llms"),
    "table": ("resources", "tables"),
    "volume": ("resources", "volumes"),
    "function": ("resources", "functions"),
    "genie_room": ("resources", "genie_rooms"),
    "warehouse": ("resources", "warehouses"),
    "connection": ("resources", "connections"),
    "database": ("resources", "databases"),
    "vector_store": ("resources", "vector_stores"),
    "retriever": ("retrievers",),
    "tool": ("tools",),
    "guardrail": ("guardrails",),
    "middleware": ("middleware",),
    "prompt": ("prompts",),
    "agent": ("agents",),
}


def normalize_category(name: str) -> str:
    """Canonical category name: ``"Vector Store"`` → ``"vector_store"``."""
    if not isinstance(name, str):
        return ""
    return "_".join(name.strip().lower().replace("-", " ").replace("_", " ").split())


def section_path(category: str) -> SectionPath | None:
    """Section path for a category, or None when the category is unknown."""
    return COMPONENT_CATEGORIES.get(normalize_category(category))


def get_section(document: Any, path: SectionPath) -> Mapping[str, Any] | None:
    """Walk ``path`` from the document root; None unless it ends on a mapping."""
    node = document
    for part in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(part)
    return node if isinstance(node, Mapping) else None


def iter_components(document: Any, path: SectionPath) -> Iterator[tuple[str, Any]]:
    """Yield ``(key, value)`` for every entry of the section at ``path``."""
    section = get_section(document, path)
    if section is None:
        return
    yield from section.items()


def lookup_component(document: Any, category: str, key: str) -> Any | None:
    """Currently configured value of ``(category, key)``, or None."""
    path = section_path(category)
    if path is None:
        logger.debug("Unknown component category %r", category)
        return None
    section = get_section(document, path)
    if section is None:
        return None
    return section.get(key)


def get_field(value: Any, field: str) -> Any | None:
    """Dotted-path lookup inside a component value.

    An empty ``field`` is the value itself.  Missing segments, or a
    segment that lands on a non-mapping, give None.
    """
    if not field:
        return value
    node = value
    for part in field.split("."):
        if not isinstance(node, Mapping):
            return None
        node = node.get(part)
    return node


_COMPONENT_SECTIONS = frozenset(COMPONENT_CATEGORIES.values())


def component_key_at(path: tuple[Any, ...]) -> Any | None:
    """Key of the component stored at ``path``, None if no component lives there.

    ``("resources", "llms", "gpt_a")`` → ``"gpt_a"``;
    ``("agents", "analyst", "model")`` → None.
    """
    if len(path) < 2 or tuple(path[:-1]) not in _COMPONENT_SECTIONS:
        return None
    return path[-1]
