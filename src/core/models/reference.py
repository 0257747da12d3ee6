"""
Reference models — dependency facts and deletion diagnostics.

These are the transient views the reference-integrity engine hands
back to its callers.  Nothing here is stored: records and diagnostics
are computed per call and discarded once the caller has shown them.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ReferenceForm(str, Enum):
    """How a reference to a component was written."""

    WRAPPED = "wrapped"      # "__REF__<key>", editing-time only
    ALIAS = "alias"          # "*<key>", exported alias
    BARE = "bare"            # "<key>" or the component's name
    EXPANDED = "expanded"    # full copy of the component value
    MERGE = "merge"          # {"__MERGE__": "<key>", ...overrides}


class Confidence(str, Enum):
    """How sure a match is."""

    EXACT = "exact"
    STRUCTURAL = "structural"
    LOOSE = "loose"
    NONE = "none"


class Classification(BaseModel):
    """Outcome of testing one value against one candidate key."""

    model_config = ConfigDict(frozen=True)

    is_reference: bool = False
    confidence: Confidence = Confidence.NONE
    form: ReferenceForm | None = None

    @classmethod
    def none(cls) -> Classification:
        """The value does not reference the candidate."""
        return cls()

    @classmethod
    def exact(cls, form: ReferenceForm) -> Classification:
        """The value is a scalar reference to the candidate."""
        return cls(is_reference=True, confidence=Confidence.EXACT, form=form)


class DependencyRecord(BaseModel):
    """Component ``name`` of kind ``type`` references the queried component via ``field``."""

    model_config = ConfigDict(frozen=True)

    type: str
    name: str
    field: str

    def describe(self) -> str:
        """One bullet line for user-facing messages."""
        return f'• {self.type}: "{self.name}" ({self.field})'


class Diagnostic(BaseModel):
    """Why a deletion was blocked.

    ``message`` is always a single sentence.  ``details``, when present,
    is the multi-line enumeration of dependents produced by
    ``format_dependency_message``.
    """

    component_type: str
    component_key: str
    message: str
    details: str | None = None

    @property
    def text(self) -> str:
        """Details when available, otherwise the message."""
        return self.details or self.message

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")
