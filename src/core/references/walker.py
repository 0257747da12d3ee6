"""
Graph walker — find every place a value tree refers to a component.

Component values are arbitrary trees of mappings, sequences and
scalars.  The walker knows nothing about categories; it only asks the
codec whether a scalar is a reference to the candidate key.

Paths are rendered the way a user reads them:

    tools[0]
    source_table.schema
    function.args.retriever
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from src.core.references.codec import MERGE_KEY, classify, parse_marker


def _join(path: str, key: Any) -> str:
    return f"{path}.{key}" if path else str(key)


def find_paths(root: Any, candidate_key: str, path: str = "") -> list[str]:
    """Every path under ``root`` holding a scalar reference to ``candidate_key``.

    Depth-first, in the traversal order of the input.  A mapping entry
    whose value is itself a scalar reference is recorded without being
    walked further.  ``root`` is never modified.

    Args:
        root: Any value tree.
        candidate_key: Key of the referenced component.
        path: Prefix for the produced paths.

    Returns:
        List of paths; empty when nothing refers to the key.
    """
    found: list[str] = []

    if root is None:
        return found

    if isinstance(root, str):
        if classify(root, candidate_key).is_reference:
            found.append(path)
    elif isinstance(root, (list, tuple)):
        for index, item in enumerate(root):
            found.extend(find_paths(item, candidate_key, f"{path}[{index}]"))
    elif isinstance(root, Mapping):
        for key, value in root.items():
            child = _join(path, key)
            if isinstance(value, str) and classify(value, candidate_key).is_reference:
                found.append(child)
            else:
                found.extend(find_paths(value, candidate_key, child))

    return found


def _render(path: tuple[Any, ...]) -> str:
    out = ""
    for part in path:
        out = f"{out}[{part}]" if isinstance(part, int) else _join(out, part)
    return out


def iter_reference_sites(root: Any, path: tuple[Any, ...] = ()) -> Iterator[tuple[tuple[Any, ...], str]]:
    """Yield ``(path, key)`` for every marker reference under ``root``.

    Only the explicit forms count here: wrapped and alias markers, and
    merge markers (one key or a list of keys).  Bare strings and
    expanded objects need a category to be recognized and are left to
    the reference-field table.  Paths are tuples of keys and indexes.
    """
    if isinstance(root, str):
        key = parse_marker(root)
        if key is not None:
            yield path, key
    elif isinstance(root, (list, tuple)):
        for index, item in enumerate(root):
            yield from iter_reference_sites(item, path + (index,))
    elif isinstance(root, Mapping):
        for key, value in root.items():
            if key == MERGE_KEY and isinstance(value, str) and value:
                yield path + (key,), parse_marker(value) or value
            elif key == MERGE_KEY and isinstance(value, list):
                for index, item in enumerate(value):
                    if isinstance(item, str) and item:
                        yield path + (key, index), parse_marker(item) or item
            else:
                yield from iter_reference_sites(value, path + (key,))


def iter_references(root: Any) -> Iterator[tuple[str, str]]:
    """Like ``iter_reference_sites``, with paths rendered as ``a.b[0]``."""
    for path, key in iter_reference_sites(root):
        yield _render(path), key
