"""
NotificationCenter — the message bar behind every mutation.

Mutation handlers push a notification after each attempt; whoever
renders the bar reads them back.  Errors stay until dismissed, all
other notifications expire after ``ttl_s`` seconds.  Expiry is
evaluated on read, so no timer thread is needed.

Thread safety: ``_lock`` guards ``_items``; every public method takes
it.  The buffer is bounded, the oldest notification is dropped first.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque

from src.core.models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 10.0


class NotificationCenter:
    """Thread-safe, bounded store of user-facing notifications.

    Parameters
    ----------
    max_items : int
        Maximum number of notifications kept.
    ttl_s : float
        Lifetime of non-error notifications, in seconds.
    """

    def __init__(self, *, max_items: int = 100, ttl_s: float = DEFAULT_TTL_S) -> None:
        self._lock = threading.Lock()
        self._items: deque[Notification] = deque(maxlen=max_items)
        self._ttl_s = ttl_s

    # ── Publishing ──────────────────────────────────────────────

    def add(self, type: NotificationType, message: str, details: str | None = None) -> Notification:
        """Record a notification and log it."""
        note = Notification(type=type, message=message, details=details)
        with self._lock:
            self._items.append(note)

        if note.is_error:
            logger.warning("%s%s", message, f" — {details}" if details else "")
        else:
            logger.info("%s", message)
        return note

    def remove(self, notification_id: str) -> bool:
        """Dismiss one notification. Returns False if it was not found."""
        with self._lock:
            for note in self._items:
                if note.id == notification_id:
                    self._items.remove(note)
                    return True
        return False

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    # ── Reading ─────────────────────────────────────────────────

    def current(self, *, now: float | None = None) -> list[Notification]:
        """Current notifications, oldest first, expired ones pruned."""
        with self._lock:
            self._prune(time.time() if now is None else now)
            return list(self._items)

    def drain(self) -> list[Notification]:
        """Return and forget everything currently held."""
        with self._lock:
            self._prune(time.time())
            items = list(self._items)
            self._items.clear()
            return items

    def _prune(self, now: float) -> None:
        keep = [n for n in self._items if n.is_error or now - n.timestamp < self._ttl_s]
        if len(keep) != len(self._items):
            self._items.clear()
            self._items.extend(keep)

    def __len__(self) -> int:
        return len(self.current())


# ── Process-wide center ─────────────────────────────────────────

_center = NotificationCenter()


def get_notification_center() -> NotificationCenter:
    """The center shared by every mutation handler in this process."""
    return _center
