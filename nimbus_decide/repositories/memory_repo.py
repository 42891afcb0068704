# nimbus_decide/repositories/memory_repo.py
"""In-memory configuration snapshot store for nimbus-decide.

This repository keeps the current ``ProjectConfig`` in process memory.
Snapshots are immutable, so replacing the stored reference is the only
write; readers always see a complete snapshot.
"""


from __future__ import annotations

import threading
from typing import Optional

from ..services.models import ProjectConfig

# Current snapshot; None until a configuration has been loaded.
_CONFIG: Optional[ProjectConfig] = None
_LOCK = threading.Lock()


def save_config(config: ProjectConfig) -> None:
    """Replace the current configuration snapshot.

    Args:
        config: The new, fully built configuration snapshot.

    Returns:
        None.
    """
    global _CONFIG
    with _LOCK:
        _CONFIG = config


def get_config() -> Optional[ProjectConfig]:
    """Return the current configuration snapshot, or ``None`` if not ready."""
    with _LOCK:
        return _CONFIG


def clear_config() -> None:
    """Forget the current snapshot (the engine becomes "not ready")."""
    global _CONFIG
    with _LOCK:
        _CONFIG = None


class MemoryConfigProvider:
    """Configuration provider backed by this module's store."""

    def get_config(self) -> Optional[ProjectConfig]:
        return get_config()

    def save_config(self, config: ProjectConfig) -> None:
        save_config(config)


class StaticConfigProvider:
    """Configuration provider that always returns the same snapshot.

    It has no ``save_config``; admin uploads are refused.
    """

    def __init__(self, config: Optional[ProjectConfig]) -> None:
        self._config = config

    def get_config(self) -> Optional[ProjectConfig]:
        return self._config
