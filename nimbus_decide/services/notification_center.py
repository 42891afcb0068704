# nimbus_decide/services/notification_center.py
"""Minimal listener registry for decision notifications."""


from __future__ import annotations

import itertools
import logging
import threading
from typing import Callable, Dict

from .models import DecisionNotification


logger = logging.getLogger(__name__)

Listener = Callable[[DecisionNotification], None]


class NotificationCenter:
    """Fan decision notifications out to registered listeners.

    A failing listener is logged and skipped; it never affects the
    decision that triggered it nor the other listeners.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._listeners: Dict[int, Listener] = {}

    def add_listener(self, listener: Listener) -> int:
        with self._lock:
            listener_id = next(self._ids)
            self._listeners[listener_id] = listener
        return listener_id

    def remove_listener(self, listener_id: int) -> bool:
        with self._lock:
            return self._listeners.pop(listener_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()

    def publish(self, payload: DecisionNotification) -> None:
        with self._lock:
            listeners = list(self._listeners.values())

        for listener in listeners:
            try:
                listener(payload)
            except Exception:
                logger.exception(
                    'Notification listener failed for flag "%s".',
                    payload.flag_key,
                )
