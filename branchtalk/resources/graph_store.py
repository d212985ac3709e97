"""
Graph store.

Handles loading and validation of dialogue nodes, indexed by id.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Mapping

import jsonschema
from pydantic import ValidationError as PydanticValidationError

from branchtalk.core.errors import GraphLoadError, NodeNotFoundError, NodeValidationError
from branchtalk.dialogue.models import DialogueNode

if TYPE_CHECKING:
    from branchtalk.core.config import EngineConfig

logger = logging.getLogger(__name__)

NODE_SCHEMA_NAME = "dialogue_node.schema.json"


@lru_cache(maxsize=None)
def node_schema() -> dict[str, Any]:
    """The bundled JSON Schema for authored node files."""
    schema_file = resources.files("branchtalk.resources").joinpath("schemas").joinpath(NODE_SCHEMA_NAME)
    text = schema_file.read_text(encoding="utf-8")
    return json.loads(text)


@dataclass(frozen=True)
class GraphIssue:
    """A problem found by GraphStore.check_graph()."""
    severity: str
    code: str
    message: str
    node_id: str
    context: dict[str, str] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.severity == "ERROR"

    def __str__(self) -> str:
        context = " ".join(f"{key}={value}" for key, value in self.context.items())
        suffix = f" ({context})" if context else ""
        return f"[{self.severity}] {self.code}: {self.message} node={self.node_id}{suffix}"


class GraphStore:
    """
    Immutable-node storage for the dialogue graph.

    Nodes reference each other by id only. A node returned by load() is a
    frozen model, so sessions can hold it without copying.

    Usage:
        graph = GraphStore()
        graph.load_directory("dialog")

        node = graph.load("welcome")
        graph.validate(node)
    """

    def __init__(self, nodes: Iterable[DialogueNode | Mapping[str, Any]] = (), validate_schema: bool = True):
        self._nodes: dict[str, DialogueNode] = {}
        self.validate_schema = validate_schema
        self.add_nodes(nodes)

    @classmethod
    def from_config(cls, config: EngineConfig) -> GraphStore:
        """Create a store and load config.dialog_path if it exists."""
        store = cls(validate_schema=config.validate_schema)
        if config.dialog_path.exists():
            store.load_directory(config.dialog_path)
        else:
            logger.warning(f"Dialog directory not found: {config.dialog_path}")
        return store

    # --- Lookup ---

    def load(self, node_id: str) -> DialogueNode:
        """Get a node by id, raising NodeNotFoundError if it is unknown."""
        try:
            return self._nodes[node_id]
        except KeyError:
            raise NodeNotFoundError(node_id) from None

    def get(self, node_id: str) -> DialogueNode | None:
        return self._nodes.get(node_id)

    def load_valid(self, node_id: str) -> DialogueNode:
        """load() followed by validate()."""
        node = self.load(node_id)
        self.validate(node)
        return node

    def node_ids(self) -> list[str]:
        return list(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[DialogueNode]:
        return iter(self._nodes.values())

    # --- Validation ---

    @staticmethod
    def validate(node: DialogueNode) -> None:
        """
        Check that a node can be played.

        Raises:
            NodeValidationError: no lines, or a line with blank text
        """
        if not node.lines:
            raise NodeValidationError(node.id, "node has no lines")

        for index, line in enumerate(node.lines):
            if not line.text or not line.text.strip():
                raise NodeValidationError(node.id, f"line {index} has empty text")

    # --- Loading ---

    def add_node(self, node: DialogueNode | Mapping[str, Any]) -> DialogueNode:
        """
        Store a node, replacing any node with the same id.

        Mappings are converted with DialogueNode.model_validate; both
        camelCase and snake_case keys are accepted.
        """
        if not isinstance(node, DialogueNode):
            node = DialogueNode.model_validate(node)

        if node.id in self._nodes:
            logger.warning(f"Duplicate dialogue node id {node.id!r}; replacing earlier definition")
        self._nodes[node.id] = node
        return node

    def add_nodes(self, nodes: Iterable[DialogueNode | Mapping[str, Any]]) -> int:
        count = 0
        for node in nodes:
            self.add_node(node)
            count += 1
        return count

    def load_file(self, path: str | Path) -> int:
        """
        Load one JSON file holding a node object or a list of nodes.

        Entries that fail the schema or model checks are logged and skipped.

        Returns:
            Number of nodes stored

        Raises:
            GraphLoadError: the file is missing or is not valid JSON
        """
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise GraphLoadError(f"Failed to load {path}: {e}") from e

        entries = data if isinstance(data, list) else [data]
        count = 0
        for entry in entries:
            if self._add_entry(entry, path):
                count += 1
        return count

    def load_directory(self, path: str | Path) -> int:
        """Load every *.json file in a directory, in name order."""
        directory = Path(path)
        if not directory.is_dir():
            raise GraphLoadError(f"Dialog directory not found: {directory}")

        total = 0
        for file_path in sorted(directory.glob("*.json")):
            try:
                total += self.load_file(file_path)
            except GraphLoadError as e:
                logger.error(str(e))

        logger.info(f"Loaded {total} dialogue nodes from {directory}")
        return total

    def _add_entry(self, entry: Any, source: Path) -> bool:
        if not isinstance(entry, dict):
            logger.error(f"Skipping non-object entry in {source}: {entry!r}")
            return False

        if self.validate_schema:
            try:
                jsonschema.validate(instance=entry, schema=node_schema())
            except jsonschema.ValidationError as e:
                logger.error(f"Validation error in {source} ({entry.get('id', '?')}): {e.message}")
                return False

        try:
            self.add_node(entry)
        except PydanticValidationError as e:
            logger.error(f"Invalid node in {source} ({entry.get('id', '?')}): {e}")
            return False
        return True

    # --- Whole-graph checks ---

    def check_graph(self, entry_ids: Iterable[str] | None = None) -> list[GraphIssue]:
        """
        Lint the whole graph without playing it.

        Args:
            entry_ids: Conversation entry points. When given, nodes not
                reachable from any of them are reported.

        Returns:
            Issues, errors first, each group in node order
        """
        issues: list[GraphIssue] = []

        for node in self._nodes.values():
            try:
                self.validate(node)
            except NodeValidationError as e:
                issues.append(GraphIssue("ERROR", "INVALID_NODE", e.reason, node.id))

            for choice in node.choices:
                if choice.target_node_id not in self._nodes:
                    issues.append(GraphIssue(
                        "ERROR", "MISSING_TARGET",
                        "Choice targets an unknown node.", node.id,
                        {"choice": choice.text, "target": choice.target_node_id},
                    ))
            if node.default_next_id is not None and node.default_next_id not in self._nodes:
                issues.append(GraphIssue(
                    "ERROR", "MISSING_TARGET",
                    "Default next node is unknown.", node.id,
                    {"target": node.default_next_id},
                ))

        if entry_ids is not None:
            roots = list(entry_ids)
            for root in roots:
                if root not in self._nodes:
                    issues.append(GraphIssue("ERROR", "MISSING_ENTRY", "Entry node is unknown.", root))
            reachable = self.reachable_from(roots)
            for node_id in self._nodes:
                if node_id not in reachable:
                    issues.append(GraphIssue(
                        "WARNING", "UNREACHABLE_NODE", "Node is not reachable from any entry.", node_id
                    ))

        issues.sort(key=lambda issue: not issue.is_error)
        return issues

    def reachable_from(self, entry_ids: Iterable[str]) -> set[str]:
        """Ids of stored nodes reachable from entry_ids. Cycles are fine."""
        seen: set[str] = set()
        stack = [node_id for node_id in entry_ids if node_id in self._nodes]
        while stack:
            node_id = stack.pop()
            if node_id in seen:
                continue
            seen.add(node_id)
            for successor in self._nodes[node_id].successor_ids():
                if successor in self._nodes and successor not in seen:
                    stack.append(successor)
        return seen
