"""
Dialogue error taxonomy.

Data errors (unknown node, invalid node) and bad choice indices are raised
to the caller. Misuse errors (engine idle, wrong phase) are normally only
logged by the engine; see EngineConfig.strict.
"""

from __future__ import annotations


class DialogueError(Exception):
    """Base class for all dialogue engine errors."""


class NodeNotFoundError(DialogueError, KeyError):
    """No node with the requested id exists in the graph."""

    def __init__(self, node_id: str):
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"Dialogue node not found: {self.node_id!r}"


class NodeValidationError(DialogueError):
    """A node failed validation at the moment it was entered."""

    def __init__(self, node_id: str, reason: str):
        super().__init__(f"Dialogue node {node_id!r} is invalid: {reason}")
        self.node_id = node_id
        self.reason = reason


class InvalidChoiceIndexError(DialogueError, IndexError):
    """Choice index outside the presented choices."""

    def __init__(self, index: int, available: int):
        super().__init__(
            f"Invalid choice index {index} (0 <= index < {available})"
        )
        self.index = index
        self.available = available


class EngineNotActiveError(DialogueError):
    """Operation requires an active dialogue session."""


class InvalidPhaseError(DialogueError):
    """Operation is not valid in the current session phase."""


class GraphLoadError(DialogueError):
    """Dialogue data could not be read from disk."""
