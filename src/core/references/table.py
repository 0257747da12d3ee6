"""
Reference-field table — which fields of which components may point
at which other components.

Every cross-reference a descriptor can hold is one row here.  The
dependency finder reads the table to explain why a component cannot
be deleted; the serializer reads it to turn expanded copies back into
aliases.  When a new category or a new reference field is added to
the descriptor format, it is added here and nowhere else.

Row modes:

    VALUE     the value at ``field`` is a reference
    SEQUENCE  any element of the list at ``field`` is a reference
    SCAN      any string under ``field`` is a marker or bare-key reference
    MERGE     the mapping at ``field`` merges the component in
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from src.core.references.catalog import SectionPath, get_field, iter_components
from src.core.references.codec import resolve_reference


class Mode(str, Enum):
    VALUE = "value"
    SEQUENCE = "sequence"
    SCAN = "scan"
    MERGE = "merge"


@dataclass(frozen=True)
class ReferenceField:
    """One ``dependent.field → referenced`` edge of the descriptor schema."""

    referenced: str                 # category being pointed at
    dependent_type: str             # label reported for the dependent
    container: SectionPath          # section holding the dependents
    field: str = ""                 # dotted path inside a dependent ("" = itself)
    mode: Mode = Mode.VALUE
    label: str | None = None        # reported field name, defaults to ``field``
    only: str | None = None         # restrict to one entry of the container

    @property
    def display_field(self) -> str:
        return self.label or self.field

    def dependents(self, document: Any) -> Iterator[tuple[str, Any]]:
        """``(key, value_at_field)`` for every dependent holding the field."""
        for key, component in iter_components(document, self.container):
            if self.only is not None and key != self.only:
                continue
            value = get_field(component, self.field)
            if value is None:
                continue
            yield key, value


_TOOLS = ("tools",)
_AGENTS = ("agents",)
_APP = ("app",)
_MEMORY = ("memory",)
_ORCHESTRATION = ("app", "orchestration")
_DATABASES = ("resources", "databases")
_VECTOR_STORES = ("resources", "vector_stores")


REFERENCE_FIELDS: tuple[ReferenceField, ...] = (
    # ── schema ──────────────────────────────────────────────────
    ReferenceField("schema", "table", ("resources", "tables"), "schema"),
    ReferenceField("schema", "volume", ("resources", "volumes"), "schema"),
    ReferenceField("schema", "function", ("resources", "functions"), "schema"),
    ReferenceField("schema", "vector_store", _VECTOR_STORES, "", Mode.SCAN),
    ReferenceField("schema", "vector_store", _VECTOR_STORES, "source_table.schema"),
    ReferenceField("schema", "vector_store", _VECTOR_STORES, "index.schema"),
    ReferenceField("schema", "tool", _TOOLS, "schema"),
    ReferenceField("schema", "database", _DATABASES, "schema"),
    ReferenceField("schema", "prompt", ("prompts",), "schema"),
    ReferenceField("schema", "app", _APP, "schema", only="registered_model"),
    # ── llm ─────────────────────────────────────────────────────
    ReferenceField("llm", "agent", _AGENTS, "model"),
    ReferenceField("llm", "guardrail", ("guardrails",), "model"),
    ReferenceField("llm", "memory", _MEMORY, "embedding_model", only="store"),
    ReferenceField("llm", "orchestration", _ORCHESTRATION, "model", only="supervisor"),
    ReferenceField("llm", "orchestration", _ORCHESTRATION, "model", only="swarm"),
    ReferenceField("llm", "vector_store", _VECTOR_STORES, "embedding_model"),
    # ── variable ────────────────────────────────────────────────
    ReferenceField("variable", "environment_var", ("app", "environment_vars"), "", label="value"),
    ReferenceField("variable", "tool", _TOOLS, "function", Mode.SCAN),
    ReferenceField("variable", "database", _DATABASES, "", Mode.SCAN),
    ReferenceField("variable", "service_principal", ("service_principals",), "", Mode.SCAN),
    # ── retriever / genie room ──────────────────────────────────
    ReferenceField("retriever", "tool", _TOOLS, "function", Mode.SCAN, label="retriever"),
    ReferenceField("retriever", "tool", _TOOLS, "function.args.retriever", label="retriever"),
    ReferenceField("genie_room", "tool", _TOOLS, "function", Mode.SCAN, label="genie_room"),
    ReferenceField("genie_room", "tool", _TOOLS, "function.args.genie_room", label="genie_room"),
    # ── vector store ────────────────────────────────────────────
    ReferenceField("vector_store", "retriever", ("retrievers",), "vector_store"),
    # ── function ────────────────────────────────────────────────
    ReferenceField("function", "tool", _TOOLS, "function", Mode.MERGE, label="function (merge key)"),
    ReferenceField("function", "tool", _TOOLS, "function", Mode.SCAN),
    # ── tool / guardrail / prompt / middleware ──────────────────
    ReferenceField("tool", "agent", _AGENTS, "tools", Mode.SEQUENCE),
    ReferenceField("guardrail", "agent", _AGENTS, "guardrails", Mode.SEQUENCE),
    ReferenceField("prompt", "agent", _AGENTS, "prompt"),
    ReferenceField("middleware", "agent", _AGENTS, "middleware", Mode.SEQUENCE),
    # ── agent ───────────────────────────────────────────────────
    ReferenceField("agent", "app", _APP, "", Mode.SEQUENCE, label="agents list", only="agents"),
    ReferenceField("agent", "orchestration", _ORCHESTRATION, "default_agent", only="swarm"),
    ReferenceField("agent", "orchestration", _ORCHESTRATION, "handoffs", Mode.SCAN, only="swarm"),
    # ── database ────────────────────────────────────────────────
    ReferenceField("database", "memory", _MEMORY, "database"),
    # ── service principal / connection / warehouse ──────────────
    ReferenceField("service_principal", "tool", _TOOLS, "function", Mode.SCAN),
    ReferenceField("service_principal", "database", _DATABASES, "", Mode.SCAN),
    ReferenceField("connection", "tool", _TOOLS, "function", Mode.SCAN, label="connection"),
    ReferenceField("warehouse", "tool", _TOOLS, "function", Mode.SCAN, label="warehouse"),
)


def fields_referencing(category: str) -> tuple[ReferenceField, ...]:
    """Table rows whose referenced category is ``category``, in table order."""
    return tuple(row for row in REFERENCE_FIELDS if row.referenced == category)


def referenced_categories() -> tuple[str, ...]:
    """Every category some field may point at."""
    seen: dict[str, None] = {}
    for row in REFERENCE_FIELDS:
        seen.setdefault(row.referenced, None)
    return tuple(seen)


def _split(field: str) -> tuple[str, ...]:
    return tuple(field.split(".")) if field else ()


def iter_expanded_sites(document: Any) -> Iterator[tuple[tuple[Any, ...], str, str]]:
    """Yield ``(absolute_path, category, key)`` for expanded copies in table fields.

    Only mapping values that structurally equal a configured component
    count.  Markers are reported by the walker; bare strings stay
    strings.
    """
    for row in REFERENCE_FIELDS:
        if row.mode not in (Mode.VALUE, Mode.SEQUENCE):
            continue
        for key, value in row.dependents(document):
            base = row.container + (key,) + _split(row.field)
            if row.mode is Mode.SEQUENCE and isinstance(value, list):
                candidates = [(base + (i,), item) for i, item in enumerate(value)]
            else:
                candidates = [(base, value)]
            for path, item in candidates:
                if not isinstance(item, Mapping):
                    continue
                target = resolve_reference(item, document, row.referenced)
                if target is not None:
                    yield path, row.referenced, target
