"""
Engine configuration.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


class EngineConfig:
    """Configuration for the dialogue engine and its data loading."""

    def __init__(
        self,
        dialog_path: str | Path = "dialog",
        validate_schema: bool = True,
        strict: bool = False,
        max_callbacks_per_update: int = 64,
        log_level: str = "INFO",
    ):
        self.dialog_path = Path(dialog_path)
        self.validate_schema = validate_schema
        # Raise misuse errors instead of logging them
        self.strict = strict
        self.max_callbacks_per_update = max_callbacks_per_update
        self.log_level = log_level.upper()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EngineConfig:
        """Build a config from a mapping, rejecting unknown keys."""
        known = {
            "dialog_path",
            "validate_schema",
            "strict",
            "max_callbacks_per_update",
            "log_level",
        }
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**data)

    @classmethod
    def from_file(cls, path: str | Path) -> EngineConfig:
        """Load a config from a JSON file."""
        with open(path, 'r', encoding='utf-8') as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> dict[str, Any]:
        return {
            "dialog_path": str(self.dialog_path),
            "validate_schema": self.validate_schema,
            "strict": self.strict,
            "max_callbacks_per_update": self.max_callbacks_per_update,
            "log_level": self.log_level,
        }

    def __repr__(self) -> str:
        return f"EngineConfig({self.to_dict()!r})"
