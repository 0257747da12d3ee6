"""
Notification model — a user-facing message raised by a mutation.
"""

from __future__ import annotations

import time
import uuid
from typing import Literal

from pydantic import BaseModel, Field

NotificationType = Literal["error", "warning", "success", "info"]


def _new_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class Notification(BaseModel):
    """A message for the notification bar.

    Errors stay until dismissed; everything else expires after the
    center's TTL.
    """

    id: str = Field(default_factory=_new_id)
    type: NotificationType = "info"
    message: str
    details: str | None = None
    timestamp: float = Field(default_factory=time.time)

    @property
    def is_error(self) -> bool:
        return self.type == "error"
