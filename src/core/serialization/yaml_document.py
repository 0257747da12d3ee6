"""
Descriptor YAML — write a descriptor with anchors and aliases, read it back.

The writer drives PyYAML's emitter with an explicit event stream so
that anchors carry the component keys::

    resources:
      llms:
        gpt_a: &gpt_a
          name: shared-endpoint
    agents:
      analyst:
        model: *gpt_a
    tools:
      lookup:
        function:
          <<: *find_customer
          name: lookup

Rules:
    - A component is anchored when anything refers to it: a wrapped or
      alias marker, a merge marker, or an expanded copy sitting in a
      reference field of the field table.  The anchor is the component
      key; keys that are not valid anchor names (``gpt.4``) get a
      sanitized, unique name instead.
    - Sections start in dependency order, and sections and entries are
      then reordered so that every anchor is written before its first
      alias.  A reference cycle cannot be written as aliases and raises
      DocumentSerializationError.
    - A marker naming a component that does not exist is still written
      as ``*key``.  Reading such a document fails with "found undefined
      alias", which is exactly what the deletion validator looks for.

Two readers are provided: ``parse_document`` expands aliases and
applies merge keys (plain ``yaml.safe_load``), ``load_document`` keeps
references to components as markers so the result can be edited and
written again.  Anchors on anything other than a component are plain
YAML sharing and are expanded by both readers.
"""

from __future__ import annotations

import datetime
import logging
import re
from collections.abc import Iterator, Mapping
from typing import Any

import yaml

from src.core.references.catalog import COMPONENT_CATEGORIES, component_key_at, get_section
from src.core.references.codec import (
    MERGE_KEY,
    is_anchor_name,
    merge_targets,
    parse_marker,
    reference_marker,
)
from src.core.references.table import iter_expanded_sites
from src.core.references.walker import iter_reference_sites

logger = logging.getLogger(__name__)

SECTION_ORDER = (
    "variables",
    "service_principals",
    "schemas",
    "resources",
    "retrievers",
    "prompts",
    "tools",
    "guardrails",
    "middleware",
    "memory",
    "agents",
    "app",
)

RESOURCE_ORDER = (
    "llms",
    "tables",
    "volumes",
    "functions",
    "warehouses",
    "connections",
    "databases",
    "genie_rooms",
    "vector_stores",
)

MERGE_TAG = "tag:yaml.org,2002:merge"
STR_TAG = "tag:yaml.org,2002:str"
SEQ_TAG = "tag:yaml.org,2002:seq"
ALIAS_MARKER_TAG = "!alias-marker"

_SCALAR_TYPES = (str, bool, int, float, datetime.date, type(None))
_NOT_ANCHOR_CHARS = re.compile(r"[^A-Za-z0-9_\-]")

Path = tuple[Any, ...]


class DocumentSerializationError(Exception):
    """Raised when a descriptor value cannot be written as YAML."""


class DanglingReferenceError(DocumentSerializationError):
    """A marker names a component that does not exist.

    Only raised for keys that cannot be written as an alias; every
    other dangling marker is written and fails on read instead.
    """

    def __init__(self, key: str, path: str) -> None:
        super().__init__(f'Reference to missing component "{key}" at {path}')
        self.key = key


def _ordered(mapping: Mapping[str, Any], order: tuple[str, ...]) -> list[str]:
    """Keys of ``mapping``: those named in ``order`` first, then the rest as-is."""
    head = [k for k in order if k in mapping]
    return head + [k for k in mapping if k not in order]


def _format_path(path: Path) -> str:
    out = ""
    for part in path:
        out += f"[{part}]" if isinstance(part, int) else (f".{part}" if out else str(part))
    return out or "<root>"


def _stable_toposort(keys: list[Any], deps: dict[Any, set[Any]]) -> list[Any]:
    """Order ``keys`` so each comes after its ``deps``, otherwise keeping input order.

    On a cycle the earliest remaining key is taken as-is.
    """
    done: set[Any] = set()
    out: list[Any] = []
    pending = list(keys)
    while pending:
        pick = next((k for k in pending if deps[k] <= done), pending[0])
        pending.remove(pick)
        done.add(pick)
        out.append(pick)
    return out


# ── Writer ──────────────────────────────────────────────────────


class _DocumentWriter:
    """Turns one descriptor into a PyYAML event stream."""

    def __init__(self, document: Mapping[str, Any]) -> None:
        self.document = document
        self.representer = yaml.representer.SafeRepresenter()
        self.resolver = yaml.resolver.Resolver()

        # key → component paths holding it; the first one owns the key
        self.by_key: dict[Any, list[Path]] = {}
        for path in self._component_paths():
            self.by_key.setdefault(path[-1], []).append(path)
        self.owners = {key: paths[0] for key, paths in self.by_key.items()}

        # (where the reference sits, component it points at)
        self.edges: list[tuple[Path, Path]] = []
        marker_keys: set[str] = set()
        for site, key in iter_reference_sites(document):
            marker_keys.add(key)
            if key in self.owners:
                self.edges.append((site, self.owners[key]))

        self.sites: dict[Path, Path] = {}
        for site, category, key in iter_expanded_sites(document):
            target = COMPONENT_CATEGORIES[category] + (key,)
            self.sites[site] = target
            self.edges.append((site, target))

        for key in sorted(marker_keys):
            paths = self.by_key.get(key, [])
            if len(paths) > 1:
                logger.warning(
                    "Reference '%s' is ambiguous between %s; aliases point at %s",
                    key, ", ".join(_format_path(p) for p in paths), _format_path(paths[0]),
                )

        needed = {self.owners[k] for k in marker_keys if k in self.owners}
        needed.update(self.sites.values())
        self.anchor_names = self._name_anchors(needed, marker_keys)
        self.emitted: set[Path] = set()

    def _component_paths(self) -> Iterator[Path]:
        for section in _ordered(self.document, SECTION_ORDER):
            value = self.document[section]
            if section == "resources" and isinstance(value, Mapping):
                parents = [(section, sub) for sub in _ordered(value, RESOURCE_ORDER)]
            else:
                parents = [(section,)]
            for parent in parents:
                entries = get_section(self.document, parent)
                if entries is None:
                    continue
                for key in entries:
                    if component_key_at(parent + (key,)) is not None:
                        yield parent + (key,)

    def _name_anchors(self, needed: set[Path], marker_keys: set[str]) -> dict[Path, str]:
        """Anchor name per anchored component, unique across the document."""
        taken = {k for k in marker_keys | set(self.by_key) if is_anchor_name(k)}
        names: dict[Path, str] = {}
        for path in self._component_paths():
            if path not in needed:
                continue
            key = path[-1]
            if is_anchor_name(key) and self.owners.get(key) == path:
                name = key
            else:
                base = _NOT_ANCHOR_CHARS.sub("_", str(key)) or "ref"
                name, n = base, 2
                while name in taken:
                    name, n = f"{base}_{n}", n + 1
                taken.add(name)
            names[path] = name
        return names

    def _order(self, keys: list[Any], prefix: Path) -> list[Any]:
        """Keys of the mapping at ``prefix``, referenced entries first."""
        depth = len(prefix)
        deps: dict[Any, set[Any]] = {k: set() for k in keys}
        for site, target in self.edges:
            if len(site) <= depth or len(target) <= depth:
                continue
            if site[:depth] != prefix or target[:depth] != prefix:
                continue
            a, b = site[depth], target[depth]
            if a != b and a in deps and b in deps:
                deps[a].add(b)
        return _stable_toposort(keys, deps)

    # ── Events ──────────────────────────────────────────────────

    def events(self) -> Iterator[yaml.Event]:
        yield yaml.StreamStartEvent()
        yield yaml.DocumentStartEvent(explicit=False)
        yield yaml.MappingStartEvent(None, None, True, flow_style=False)

        for section in self._order(_ordered(self.document, SECTION_ORDER), ()):
            value = self.document[section]
            yield self._scalar(section, (section,))
            if section == "resources" and isinstance(value, Mapping):
                yield yaml.MappingStartEvent(None, None, True, flow_style=False)
                for sub in self._order(_ordered(value, RESOURCE_ORDER), (section,)):
                    yield self._scalar(sub, (section, sub))
                    yield from self._section(value[sub], (section, sub))
                yield yaml.MappingEndEvent()
            else:
                yield from self._section(value, (section,))

        yield yaml.MappingEndEvent()
        yield yaml.DocumentEndEvent(explicit=False)
        yield yaml.StreamEndEvent()

    def _section(self, value: Any, path: Path) -> Iterator[yaml.Event]:
        if not isinstance(value, Mapping):
            yield from self._node(value, path)
            return
        yield yaml.MappingStartEvent(None, None, True, flow_style=False)
        for key in self._order(list(value), path):
            component_path = path + (key,)
            anchor = self.anchor_names.get(component_path)
            if anchor is not None:
                self.emitted.add(component_path)
                logger.debug("Anchoring %s as &%s", _format_path(component_path), anchor)
            yield self._scalar(key, component_path)
            yield from self._node(value[key], component_path, anchor)
        yield yaml.MappingEndEvent()

    def _alias(self, key: str, path: Path) -> yaml.AliasEvent:
        owner = self.owners.get(key)
        if owner is None:
            if not is_anchor_name(key):
                raise DanglingReferenceError(key, _format_path(path))
            return yaml.AliasEvent(key)
        if owner not in self.emitted:
            raise DocumentSerializationError(
                f'Cannot write the reference to "{key}" at {_format_path(path)}: '
                f"{_format_path(owner)} would come after it (circular reference)"
            )
        return yaml.AliasEvent(self.anchor_names[owner])

    def _node(self, value: Any, path: Path, anchor: str | None = None) -> Iterator[yaml.Event]:
        key = parse_marker(value)
        if key is not None:
            yield self._alias(key, path)
            return

        target = self.sites.get(path)
        if target is not None and target in self.emitted:
            yield yaml.AliasEvent(self.anchor_names[target])
            return

        if isinstance(value, Mapping):
            yield yaml.MappingStartEvent(anchor, None, True, flow_style=False)
            merged = merge_targets(value)
            if merged:
                merge_path = path + (MERGE_KEY,)
                yield yaml.ScalarEvent(None, MERGE_TAG, (True, False), "<<")
                if isinstance(value[MERGE_KEY], list):
                    yield yaml.SequenceStartEvent(None, None, True, flow_style=True)
                    for index, merged_key in enumerate(merged):
                        yield self._alias(merged_key, merge_path + (index,))
                    yield yaml.SequenceEndEvent()
                else:
                    yield self._alias(merged[0], merge_path)
            for k, v in value.items():
                if k == MERGE_KEY and merged:
                    continue
                yield self._scalar(k, path + (k,))
                yield from self._node(v, path + (k,))
            yield yaml.MappingEndEvent()
        elif isinstance(value, (list, tuple)):
            yield yaml.SequenceStartEvent(anchor, None, True, flow_style=False)
            for index, item in enumerate(value):
                yield from self._node(item, path + (index,))
            yield yaml.SequenceEndEvent()
        else:
            yield self._scalar(value, path, anchor)

    def _scalar(self, value: Any, path: Path, anchor: str | None = None) -> yaml.ScalarEvent:
        if not isinstance(value, _SCALAR_TYPES):
            raise DocumentSerializationError(
                f"Cannot serialize {type(value).__name__} value at {_format_path(path)}"
            )
        node = self.representer.represent_data(value)
        implicit = (
            node.tag == self.resolver.resolve(yaml.ScalarNode, node.value, (True, False)),
            node.tag == self.resolver.resolve(yaml.ScalarNode, node.value, (False, True)),
        )
        return yaml.ScalarEvent(anchor, node.tag, implicit, node.value, style=node.style)


def dump_document(document: Mapping[str, Any]) -> str:
    """Serialize a descriptor to YAML with anchors, aliases and merge keys.

    Args:
        document: The descriptor mapping (not modified).

    Returns:
        The YAML text.

    Raises:
        DocumentSerializationError: If the document is not a mapping,
            holds a value YAML cannot represent, or its references form
            a cycle.
    """
    if not isinstance(document, Mapping):
        raise DocumentSerializationError(
            f"Expected a descriptor mapping, got {type(document).__name__}"
        )
    writer = _DocumentWriter(document)
    try:
        return yaml.emit(writer.events(), Dumper=yaml.SafeDumper, allow_unicode=True)
    except (yaml.emitter.EmitterError, yaml.representer.RepresenterError) as e:
        raise DocumentSerializationError(str(e)) from e


# ── Readers ─────────────────────────────────────────────────────


def parse_document(text: str) -> dict[str, Any]:
    """Read YAML with aliases expanded and merge keys applied.

    Raises:
        yaml.YAMLError: On invalid YAML, including undefined aliases.
    """
    data = yaml.safe_load(text)
    return data if data is not None else {}


class _ComponentAliasNode(yaml.ScalarNode):
    """Stand-in for an alias to a component; keeps the aliased node."""

    def __init__(self, key: str, target: yaml.Node, start_mark, end_mark) -> None:
        super().__init__(ALIAS_MARKER_TAG, reference_marker(key), start_mark, end_mark)
        self.key = key
        self.target = target


class ReferenceLoader(yaml.SafeLoader):
    """SafeLoader that keeps references to components as markers.

    An alias whose anchor sits on a component becomes the marker of
    that component's key, whatever the anchor is called.  A merge of
    such aliases becomes a ``__MERGE__`` marker.  Aliases of any other
    node are expanded as usual.
    """

    def __init__(self, stream) -> None:
        super().__init__(stream)
        self._path: list[Any] = []
        self._anchor_owners: dict[str, str] = {}

    def compose_node(self, parent, index):
        if self.check_event(yaml.AliasEvent):
            event = self.peek_event()
            key = self._anchor_owners.get(event.anchor)
            if key is not None and event.anchor in self.anchors:
                self.get_event()
                return _ComponentAliasNode(
                    key, self.anchors[event.anchor], event.start_mark, event.end_mark,
                )
            return super().compose_node(parent, index)

        self._path.append(index.value if isinstance(index, yaml.ScalarNode) else index)
        try:
            anchor = self.peek_event().anchor
            if anchor is not None:
                # _path[0] belongs to the document root
                key = component_key_at(tuple(self._path[1:]))
                if isinstance(key, str):
                    self._anchor_owners[anchor] = key
            return super().compose_node(parent, index)
        finally:
            self._path.pop()

    def flatten_mapping(self, node):
        for index, (key_node, value_node) in enumerate(node.value):
            if key_node.tag != MERGE_TAG:
                continue
            merge_key = yaml.ScalarNode(STR_TAG, MERGE_KEY, key_node.start_mark, key_node.end_mark)
            if isinstance(value_node, _ComponentAliasNode):
                node.value[index] = (
                    merge_key,
                    yaml.ScalarNode(STR_TAG, value_node.key, value_node.start_mark, value_node.end_mark),
                )
            elif isinstance(value_node, yaml.SequenceNode) and value_node.value and all(
                isinstance(item, _ComponentAliasNode) for item in value_node.value
            ):
                node.value[index] = (
                    merge_key,
                    yaml.SequenceNode(
                        SEQ_TAG,
                        [
                            yaml.ScalarNode(STR_TAG, item.key, item.start_mark, item.end_mark)
                            for item in value_node.value
                        ],
                        value_node.start_mark, value_node.end_mark,
                    ),
                )
            elif isinstance(value_node, yaml.SequenceNode):
                # mixed merge list: expand the component aliases
                node.value[index] = (
                    key_node,
                    yaml.SequenceNode(
                        value_node.tag,
                        [
                            item.target if isinstance(item, _ComponentAliasNode) else item
                            for item in value_node.value
                        ],
                        value_node.start_mark, value_node.end_mark,
                    ),
                )
        super().flatten_mapping(node)

    def construct_alias_marker(self, node):
        return node.value


ReferenceLoader.add_constructor(ALIAS_MARKER_TAG, ReferenceLoader.construct_alias_marker)


def load_document(text: str) -> dict[str, Any]:
    """Read YAML keeping references to components as markers.

    Aliases of a component come back as ``"*key"`` (``"__REF__key"``
    when the key is not a valid anchor name) and merge keys as
    ``{"__MERGE__": "key", ...}``, so the result can be edited and
    written again with ``dump_document``.

    Raises:
        yaml.YAMLError: On invalid YAML, including undefined aliases.
    """
    data = yaml.load(text, Loader=ReferenceLoader)
    return data if data is not None else {}


def round_trip(document: Mapping[str, Any]) -> dict[str, Any]:
    """Dump then load, keeping references as markers."""
    return load_document(dump_document(document))
