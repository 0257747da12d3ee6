"""
Safe delete use case — validate a deletion, then commit it.

The descriptor is owned by the caller's store; this module never
changes it.  It checks the deletion against the current descriptor
and only then calls the store's own delete callback:

    validating ─┬─ diagnostic ──→ blocked
                └─ ok ──→ committing ─┬─ callback raised ──→ failed
                                      └─ done ──→ succeeded

The two steps must not be interleaved with another writer, or the
validation result is stale.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol

from src.core.models.reference import Diagnostic
from src.core.services.deletion import validate_deletion
from src.core.services.notifications import get_notification_center

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def add(self, type: Any, message: str, details: str | None = None) -> Any: ...


class DeleteState(str, Enum):
    VALIDATING = "validating"
    BLOCKED = "blocked"
    COMMITTING = "committing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class DeleteOutcome:
    """Result of one delete attempt."""

    component_type: str
    component_key: str
    state: DeleteState = DeleteState.VALIDATING
    diagnostic: Diagnostic | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.state is DeleteState.SUCCEEDED

    def to_dict(self) -> dict:
        return {
            "component_type": self.component_type,
            "component_key": self.component_key,
            "state": self.state.value,
            "ok": self.ok,
            "diagnostic": self.diagnostic.to_dict() if self.diagnostic else None,
            "error": self.error,
        }


def show_deletion_error(
    component_type: str,
    component_key: str,
    details: str | None,
    notifier: Notifier | None = None,
) -> None:
    """Tell the user a deletion was refused."""
    (notifier or get_notification_center()).add(
        "error", f'Cannot delete {component_type} "{component_key}"', details,
    )


def show_deletion_success(
    component_type: str,
    component_key: str,
    notifier: Notifier | None = None,
) -> None:
    (notifier or get_notification_center()).add(
        "success", f'{component_type} "{component_key}" deleted',
    )


def attempt_delete(
    component_type: str,
    component_key: str,
    apply_deletion: Callable[[], Any],
    *,
    document: Any,
    notifier: Notifier | None = None,
) -> DeleteOutcome:
    """Delete a component only if nothing still references it.

    Args:
        component_type: Display type, e.g. ``"Tool"``.
        component_key: Key of the component.
        apply_deletion: Store callback performing the real deletion.
        document: The live descriptor, as held by the store right now.
        notifier: Where to report the outcome (default: process center).

    Returns:
        DeleteOutcome; ``outcome.ok`` is True only when the callback ran
        without raising.
    """
    notifier = notifier or get_notification_center()
    outcome = DeleteOutcome(component_type=component_type, component_key=component_key)

    diagnostic = validate_deletion(document, component_type, component_key)
    if diagnostic is not None:
        outcome.state = DeleteState.BLOCKED
        outcome.diagnostic = diagnostic
        show_deletion_error(component_type, component_key, diagnostic.text, notifier)
        return outcome

    outcome.state = DeleteState.COMMITTING
    try:
        apply_deletion()
    except Exception as e:
        logger.warning("Deleting %s %r failed: %s", component_type, component_key, e)
        outcome.state = DeleteState.FAILED
        outcome.error = str(e) or "Unknown error"
        notifier.add(
            "error", f'Failed to delete {component_type} "{component_key}"', outcome.error,
        )
        return outcome

    outcome.state = DeleteState.SUCCEEDED
    show_deletion_success(component_type, component_key, notifier)
    return outcome
