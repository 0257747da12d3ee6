"""
Domain models — Pydantic types for the reference-integrity engine.

All models are re-exported here for convenient access:

    from src.core.models import DependencyRecord, Diagnostic, Notification
"""

from src.core.models.notification import Notification, NotificationType
from src.core.models.reference import (
    Classification,
    Confidence,
    DependencyRecord,
    Diagnostic,
    ReferenceForm,
)

__all__ = [
    # reference.py
    "Classification",
    "Confidence",
    "DependencyRecord",
    "Diagnostic",
    "ReferenceForm",
    # notification.py
    "Notification",
    "NotificationType",
]
