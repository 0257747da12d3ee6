"""
Reference codec — recognize and normalize the ways a value can point
at another component.

A reference to component ``sales`` may be written as:

    "__REF__sales"      wrapped marker (editing-time form, never exported)
    "*sales"            alias marker (exported form, a YAML alias)
    "sales"             bare key, or the component's ``name`` field
    {catalog: ..., ...} expanded object — a full copy of the component,
                        produced when an alias was expanded on import

and a mapping may inherit from a component through a merge marker:

    {"__MERGE__": "sales", "comment": "override"}   →   <<: *sales

Everything here is a pure, total function: malformed input gives a
negative answer, never an exception.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

from src.core.models.reference import Classification, ReferenceForm
from src.core.references.catalog import iter_components, lookup_component, section_path

logger = logging.getLogger(__name__)

WRAPPED_PREFIX = "__REF__"
ALIAS_PREFIX = "*"
MERGE_KEY = "__MERGE__"

# An alias marker names a YAML anchor; "*.csv" or "*" alone are plain strings.
_ANCHOR_NAME = re.compile(r"[A-Za-z0-9_\-]+")


# ── Scalar forms ────────────────────────────────────────────────


def classify(value: Any, candidate_key: str) -> Classification:
    """Test a scalar against the three string reference forms.

    Args:
        value: Any value found inside a component.
        candidate_key: Key of the component being tested as referent.

    Returns:
        An EXACT classification when ``value`` is the wrapped marker,
        the alias marker or the bare key; ``Classification.none()``
        otherwise (including for every non-string value).
    """
    if not isinstance(value, str) or not isinstance(candidate_key, str) or not candidate_key:
        return Classification.none()
    if value == WRAPPED_PREFIX + candidate_key:
        return Classification.exact(ReferenceForm.WRAPPED)
    if value == ALIAS_PREFIX + candidate_key:
        return Classification.exact(ReferenceForm.ALIAS)
    if value == candidate_key:
        return Classification.exact(ReferenceForm.BARE)
    return Classification.none()


def parse_marker(value: Any) -> str | None:
    """Referenced key of a wrapped or alias marker, None for anything else."""
    if not isinstance(value, str):
        return None
    if value.startswith(WRAPPED_PREFIX) and len(value) > len(WRAPPED_PREFIX):
        return value[len(WRAPPED_PREFIX):]
    if value.startswith(ALIAS_PREFIX) and _ANCHOR_NAME.fullmatch(value[len(ALIAS_PREFIX):]):
        return value[len(ALIAS_PREFIX):]
    return None


def is_marker(value: Any) -> bool:
    return parse_marker(value) is not None


def is_anchor_name(key: Any) -> bool:
    """Whether ``key`` can be written as a YAML anchor as-is."""
    return isinstance(key, str) and _ANCHOR_NAME.fullmatch(key) is not None


def to_alias_marker(value: Any) -> Any:
    """Rewrite a wrapped marker into its exported alias form.

    Keys that are not valid anchor names keep the wrapped form, since
    ``*gpt.4`` would read back as a plain string.
    """
    if isinstance(value, str) and value.startswith(WRAPPED_PREFIX):
        key = value[len(WRAPPED_PREFIX):]
        if is_anchor_name(key):
            return ALIAS_PREFIX + key
    return value


def reference_marker(key: str) -> str:
    """Canonical marker for ``key``: the alias form when it can be one."""
    return ALIAS_PREFIX + key if is_anchor_name(key) else WRAPPED_PREFIX + key


def merge_targets(value: Any) -> list[str]:
    """Keys named by a mapping's merge marker, in merge order.

    The marker holds one key or a list of keys (``<<: [*a, *b]``), each
    in any scalar form.  Anything malformed gives an empty list.
    """
    if not isinstance(value, Mapping):
        return []
    target = value.get(MERGE_KEY)
    items = target if isinstance(target, list) else [target]
    keys = []
    for item in items:
        if not isinstance(item, str) or not item:
            return []
        keys.append(parse_marker(item) or item)
    return keys


def canonicalize(value: Any) -> Any:
    """Deep copy of ``value`` with every reference in its exported form.

    Wrapped markers become alias markers and merge markers carry the
    bare key.  This is what a dump followed by a reference-preserving
    load gives back.
    """
    if isinstance(value, str):
        return to_alias_marker(value)
    if isinstance(value, Mapping):
        out = {}
        for k, v in value.items():
            if k == MERGE_KEY and isinstance(v, str):
                out[k] = parse_marker(v) or v
            elif k == MERGE_KEY and isinstance(v, list):
                out[k] = [parse_marker(i) or i if isinstance(i, str) else canonicalize(i) for i in v]
            else:
                out[k] = canonicalize(v)
        return out
    if isinstance(value, (list, tuple)):
        return [canonicalize(v) for v in value]
    return value


# ── Structural equality ─────────────────────────────────────────


def structurally_equal(a: Any, b: Any) -> bool:
    """Deep value equality.

    Mappings compare without regard to key order, sequences compare
    element by element.  Booleans never equal numbers; an int equals a
    float of the same value.
    """
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    if isinstance(a, str) or isinstance(b, str):
        return isinstance(a, str) and isinstance(b, str) and a == b
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if len(a) != len(b) or set(a) != set(b):
            return False
        return all(structurally_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        if len(a) != len(b):
            return False
        return all(structurally_equal(x, y) for x, y in zip(a, b))
    if type(a) is not type(b):
        return False
    try:
        return bool(a == b)
    except Exception:
        return False


def matches_expanded(value: Any, candidate_key: str, document: Any, category: str) -> bool:
    """Whether ``value`` is an expanded copy of the configured component.

    The whole value must match, not just its ``name``: two LLM configs
    may share an endpoint name and differ only in temperature.
    """
    if not isinstance(value, (Mapping, list, tuple)):
        return False
    if not isinstance(candidate_key, str) or not candidate_key:
        return False
    configured = lookup_component(document, category, candidate_key)
    if configured is None:
        return False
    try:
        return structurally_equal(canonicalize(value), canonicalize(configured))
    except RecursionError:
        logger.debug("Value too deep to compare against %s %r", category, candidate_key)
        return False


def matches_name(value: Any, candidate_key: str, document: Any, category: str) -> bool:
    """Whether a bare string equals the candidate's ``name`` field.

    Only a name that is unique within the category counts; a shared
    name cannot say which component was meant.
    """
    if not isinstance(value, str) or not value:
        return False
    configured = lookup_component(document, category, candidate_key)
    if not isinstance(configured, Mapping) or configured.get("name") != value:
        return False
    path = section_path(category)
    if path is None:
        return False
    owners = [
        key for key, component in iter_components(document, path)
        if isinstance(component, Mapping) and component.get("name") == value
    ]
    return owners == [candidate_key]


def references(value: Any, candidate_key: str, document: Any, category: str) -> bool:
    """Any of the four encodings, key forms tried first."""
    if classify(value, candidate_key).is_reference:
        return True
    if matches_name(value, candidate_key, document, category):
        return True
    return matches_expanded(value, candidate_key, document, category)


# ── Normalization ───────────────────────────────────────────────


def resolve_reference(value: Any, document: Any, category: str) -> str | None:
    """Map any reference encoding to the key it designates in ``category``.

    Markers resolve to their key whether or not the component exists,
    so dangling references stay visible.  Bare strings resolve to an
    existing key, then to a unique ``name``.  Mappings and sequences
    resolve to the first component they structurally equal.
    """
    key = parse_marker(value)
    if key is not None:
        return key
    path = section_path(category)
    if path is None:
        return None
    if isinstance(value, str):
        if lookup_component(document, category, value) is not None:
            return value
        for candidate, _ in iter_components(document, path):
            if matches_name(value, candidate, document, category):
                return candidate
        return None
    if isinstance(value, Mapping) and MERGE_KEY in value:
        return None
    if isinstance(value, (Mapping, list, tuple)):
        for candidate, _ in iter_components(document, path):
            if matches_expanded(value, candidate, document, category):
                return candidate
    return None
