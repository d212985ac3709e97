"""
Story flags - named booleans that gate and record dialogue choices.

The engine never owns flag state. Hosts pass in anything implementing
FlagStore; InMemoryFlagStore is enough for tests and simple games, and its
snapshot()/restore() pair lets a save system persist flags in its own format.
"""

from __future__ import annotations

from typing import Mapping, Protocol, runtime_checkable


@runtime_checkable
class FlagStore(Protocol):
    """Boolean story-flag storage supplied by the host."""

    def get_flag(self, name: str) -> bool:
        ...

    def set_flag(self, name: str, value: bool) -> None:
        ...


class InMemoryFlagStore:
    """Dict-backed FlagStore. Absent flags read as False."""

    def __init__(self, initial: Mapping[str, bool] | None = None):
        self._flags: dict[str, bool] = {}
        if initial:
            self.restore(initial)

    def get_flag(self, name: str) -> bool:
        """Get a story flag."""
        return self._flags.get(name, False)

    def set_flag(self, name: str, value: bool) -> None:
        """Set a story flag."""
        self._flags[name] = bool(value)

    def clear_flag(self, name: str) -> None:
        self._flags.pop(name, None)

    def snapshot(self) -> dict[str, bool]:
        """Copy of all flags, for saving."""
        return self._flags.copy()

    def restore(self, flags: Mapping[str, bool]) -> None:
        """Replace all flags, for loading."""
        self._flags = {str(key): bool(value) for key, value in flags.items()}

    def __contains__(self, name: object) -> bool:
        return name in self._flags

    def __len__(self) -> int:
        return len(self._flags)

    def __repr__(self) -> str:
        return f"InMemoryFlagStore({self._flags!r})"
