"""
Deletion validator — can this component go without breaking a reference?

Two lines of defence, used in order:

    1. Dependency finder: the reference-field table names every known
       cross-reference field, so a hit there explains exactly which
       component and field still point at the one being deleted.
    2. Round trip: delete the component from a deep copy, write the
       copy as YAML and read it back.  Any reference the table does
       not know about still turns into an alias, and an alias without
       its anchor fails to load.

Neither step touches the live descriptor, and nothing here raises:
every failure, expected or not, comes back as a Diagnostic.
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from typing import Any

import yaml

from src.core.models.reference import DependencyRecord, Diagnostic
from src.core.references.catalog import COMPONENT_CATEGORIES, SectionPath, get_section, normalize_category
from src.core.references.dependencies import find_dependencies, format_dependency_message
from src.core.serialization.yaml_document import (
    DanglingReferenceError,
    DocumentSerializationError,
    dump_document,
    parse_document,
)

logger = logging.getLogger(__name__)

# Closed mapping of deletable component types → section holding them.
# Type names are matched case-insensitively, "vector store" == "vector_store".
DELETABLE_TYPES: dict[str, SectionPath] = dict(COMPONENT_CATEGORIES)

_UNDEFINED_ALIAS = re.compile(r"""undefined alias ['"]([^'"]+)['"]""", re.IGNORECASE)


@dataclass
class DeletionCheck:
    """Everything known about a proposed deletion."""

    component_type: str
    component_key: str
    known_type: bool = True
    dependents: list[DependencyRecord] = field(default_factory=list)
    diagnostic: Diagnostic | None = None

    @property
    def allowed(self) -> bool:
        return self.diagnostic is None

    def to_dict(self) -> dict:
        return {
            "component_type": self.component_type,
            "component_key": self.component_key,
            "known_type": self.known_type,
            "allowed": self.allowed,
            "dependents": [d.model_dump() for d in self.dependents],
            "diagnostic": self.diagnostic.to_dict() if self.diagnostic else None,
        }


def deletable_section(component_type: str) -> SectionPath | None:
    """Section path for a deletable type, None when the type is not modelled."""
    return DELETABLE_TYPES.get(normalize_category(component_type))


# ── Whole-document check ────────────────────────────────────────


def validate_document(document: Any) -> str | None:
    """Write the descriptor as YAML and read it back.

    Returns:
        None when the round trip succeeds, otherwise one sentence for
        the user.  An undefined alias names the component that is still
        referenced.
    """
    try:
        text = dump_document(document)
        parse_document(text)
        return None
    except DanglingReferenceError as e:
        return f'Component "{e.key}" is still referenced elsewhere; remove that reference first.'
    except (yaml.YAMLError, DocumentSerializationError) as e:
        message = " ".join(str(e).split())
        match = _UNDEFINED_ALIAS.search(message)
        if match:
            return f'Component "{match.group(1)}" is still referenced elsewhere; remove that reference first.'
        return f"Validation failed: {message}"
    except Exception as e:
        logger.warning("Unexpected error while validating descriptor: %s", e, exc_info=True)
        return f"Validation failed: {e}" if str(e) else "Unknown validation error"


# ── Deletion ────────────────────────────────────────────────────


def apply_deletion(document: Any, component_type: str, component_key: str) -> dict[str, Any] | None:
    """Deep copy of the descriptor with one component removed.

    The copy shares nothing with ``document``.  Deleting a key that is
    not present leaves the copy unchanged.

    Returns:
        The modified copy, or None when ``component_type`` is unknown.
    """
    path = deletable_section(component_type)
    if path is None:
        return None
    clone = copy.deepcopy(document)
    section = get_section(clone, path)
    if isinstance(section, MutableMapping):
        section.pop(component_key, None)
    return clone


def validate_deletion(document: Any, component_type: str, component_key: str) -> Diagnostic | None:
    """Check that deleting ``(component_type, component_key)`` is safe.

    Args:
        document: The live descriptor (never modified).
        component_type: Display type, e.g. ``"Vector Store"`` or ``"tool"``.
        component_key: Key of the component to delete.

    Returns:
        None when the deletion is safe or the type is not modelled,
        otherwise a Diagnostic to show the user.
    """
    return check_deletion(document, component_type, component_key).diagnostic


def check_deletion(document: Any, component_type: str, component_key: str) -> DeletionCheck:
    """Like ``validate_deletion`` but also returns the dependents found."""
    check = DeletionCheck(component_type=component_type, component_key=component_key)

    try:
        if deletable_section(component_type) is None:
            logger.debug("Type %r is not modelled; allowing deletion of %r", component_type, component_key)
            check.known_type = False
            return check

        check.dependents = find_dependencies(document, component_type, component_key)
        if check.dependents:
            check.diagnostic = Diagnostic(
                component_type=component_type,
                component_key=component_key,
                message=f'{component_type} "{component_key}" is still referenced by other components.',
                details=format_dependency_message(check.dependents),
            )
            return check

        clone = apply_deletion(document, component_type, component_key)
        error = validate_document(clone)
        if error:
            check.diagnostic = Diagnostic(
                component_type=component_type,
                component_key=component_key,
                message=error,
            )
    except Exception as e:
        logger.warning(
            "Deletion check for %s %r failed: %s", component_type, component_key, e, exc_info=True,
        )
        check.diagnostic = Diagnostic(
            component_type=component_type,
            component_key=component_key,
            message=f"Validation failed: {e}",
        )

    if check.diagnostic:
        logger.info("Deletion of %s %r blocked: %s", component_type, component_key, check.diagnostic.message)
    return check
