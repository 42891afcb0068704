# nimbus_decide/services/user_context.py
"""User context: a user id plus mutable attributes, bound to an engine."""


from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, Dict, Iterable, Mapping, Optional, Sequence

from .options import DecideOption

if TYPE_CHECKING:
    from .decision_service import DecisionEngine
    from .models import Decision


class UserContext:
    """The caller-owned view of one user.

    Attributes may be changed at any time by the owner. Each decision
    works from a snapshot taken by :meth:`copy_attributes`, so a decision
    in flight never sees later changes.
    """

    def __init__(
        self,
        engine: "DecisionEngine",
        user_id: str,
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._engine = engine
        self._user_id = user_id
        self._lock = threading.Lock()
        self._attributes: Dict[str, Any] = dict(attributes or {})

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def engine(self) -> "DecisionEngine":
        return self._engine

    @property
    def attributes(self) -> Dict[str, Any]:
        """A copy of the current attributes."""
        return self.copy_attributes()

    def set_attribute(self, key: str, value: Any) -> None:
        with self._lock:
            self._attributes[key] = value

    def copy_attributes(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._attributes)

    def decide(
        self, key: str, options: Iterable[DecideOption] = ()
    ) -> "Decision":
        return self._engine.decide(self, key, options)

    def decide_for_keys(
        self, keys: Sequence[str], options: Iterable[DecideOption] = ()
    ) -> Dict[str, "Decision"]:
        return self._engine.decide_for_keys(self, keys, options)

    def decide_all(
        self, options: Iterable[DecideOption] = ()
    ) -> Dict[str, "Decision"]:
        return self._engine.decide_all(self, options)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UserContext):
            return NotImplemented
        return (
            self._user_id == other._user_id
            and self.copy_attributes() == other.copy_attributes()
            and self._engine is other._engine
        )

    def __hash__(self) -> int:
        return hash((self._user_id, id(self._engine)))

    def __repr__(self) -> str:
        return f"UserContext(user_id={self._user_id!r})"
