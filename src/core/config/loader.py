"""
Descriptor loader — reads an agent descriptor YAML file into a document.

References are kept as written: aliases come back as ``*key`` markers
and merge keys as ``__MERGE__`` markers, so the loaded document can be
checked, edited and written again without losing its structure.  The
top-level shape is validated against a Pydantic model.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from src.core.serialization.yaml_document import load_document

logger = logging.getLogger(__name__)

# Default descriptor filenames, in lookup order
DESCRIPTOR_FILES = ("agent_config.yaml", "agent_config.yml")


class ConfigError(Exception):
    """Raised when a descriptor is missing or invalid."""


class DescriptorSections(BaseModel):
    """Top-level shape of a descriptor.

    Component sections must be mappings of key → component.  Unknown
    sections are kept as-is.
    """

    model_config = ConfigDict(extra="allow")

    variables: dict[str, Any] | None = None
    service_principals: dict[str, Any] | None = None
    schemas: dict[str, Any] | None = None
    resources: dict[str, dict[str, Any] | None] | None = None
    retrievers: dict[str, Any] | None = None
    prompts: dict[str, Any] | None = None
    tools: dict[str, Any] | None = None
    guardrails: dict[str, Any] | None = None
    middleware: dict[str, Any] | None = None
    memory: dict[str, Any] | None = None
    agents: dict[str, Any] | None = None
    app: Any = None


def find_descriptor_file(start_dir: Path | None = None) -> Path | None:
    """Search for a descriptor starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to the descriptor, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        for name in DESCRIPTOR_FILES:
            candidate = current / name
            if candidate.is_file():
                return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def parse_descriptor(raw: str, source: str = "<string>") -> dict[str, Any]:
    """Parse and shape-check descriptor text.

    Raises:
        ConfigError: On invalid YAML, undefined aliases or bad shape.
    """
    try:
        data = load_document(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {source}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {source}, got {type(data).__name__}")

    try:
        DescriptorSections.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid descriptor in {source}: {e}") from e

    return data


def load_descriptor(path: Path | None = None) -> dict[str, Any]:
    """Load and validate a descriptor file.

    Args:
        path: Explicit descriptor path. If None, searches upward.

    Returns:
        The descriptor document.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_descriptor_file()

    if path is None:
        raise ConfigError(
            f"No {DESCRIPTOR_FILES[0]} found. Specify one with --config."
        )

    if not path.is_file():
        raise ConfigError(f"Descriptor not found: {path}")

    logger.debug("Loading descriptor from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    document = parse_descriptor(raw, str(path))

    counts = {k: len(v) for k, v in document.items() if isinstance(v, dict)}
    logger.info("Loaded descriptor %s (%s)", path.name, ", ".join(f"{k}={n}" for k, n in counts.items()))
    return document
