"""Handler Registry — loaded unit handlers, keyed by identifier."""

from __future__ import annotations

from strata.exceptions import UnitNotFoundError
from strata.types import MigrationHandlers, UnitId


class HandlerRegistry:
    """Holds the executable handlers of every unit loaded so far.

    Registration is first-wins: once a unit's handlers are in the
    registry they are never replaced, so a unit's module runs at most
    once per process.
    """

    def __init__(self) -> None:
        self._handlers: dict[UnitId, MigrationHandlers] = {}

    def register(self, identifier: UnitId, handlers: MigrationHandlers) -> MigrationHandlers:
        return self._handlers.setdefault(identifier, handlers)

    def get(self, identifier: UnitId) -> MigrationHandlers:
        handlers = self._handlers.get(identifier)
        if handlers is None:
            raise UnitNotFoundError(f"Migration '{identifier}' is not loaded")
        return handlers

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def loaded(self) -> list[UnitId]:
        return list(self._handlers)
