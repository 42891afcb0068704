# nimbus_decide/services/event_service.py
"""In-process impression event recording.

Useful for local experiments or tests; nothing is sent over the network.
When ``max_events`` is set only the most recent impressions are kept.
"""


from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, List, Mapping, Optional

from .models import Experiment, ProjectConfig, Variation


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImpressionEvent:
    """An impression: a user was exposed to a variation of an experiment."""
    user_id: str
    experiment_key: str
    variation_key: str
    revision: str
    attributes: Mapping[str, Any] = field(default_factory=dict)


class InMemoryEventDispatcher:
    """Record impression events in memory (thread-safe)."""

    def __init__(self, max_events: Optional[int] = None) -> None:
        if max_events is not None and max_events < 1:
            raise ValueError("max_events must be a positive integer.")
        self._lock = threading.Lock()
        self._events: Deque[ImpressionEvent] = deque(maxlen=max_events)

    @property
    def max_events(self) -> Optional[int]:
        return self._events.maxlen

    def send_impression(
        self,
        config: ProjectConfig,
        experiment: Experiment,
        user_id: str,
        attributes: Mapping[str, Any],
        variation: Variation,
    ) -> None:
        event = ImpressionEvent(
            user_id=user_id,
            experiment_key=experiment.key,
            variation_key=variation.key,
            revision=config.revision,
            attributes=dict(attributes),
        )
        with self._lock:
            self._events.append(event)
        logger.debug(
            'Recorded impression for user "%s" in experiment "%s".',
            user_id,
            experiment.key,
        )

    @property
    def events(self) -> List[ImpressionEvent]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
