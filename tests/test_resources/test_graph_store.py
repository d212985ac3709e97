import json
import logging

import pytest
from branchtalk.core.config import EngineConfig
from branchtalk.core.errors import GraphLoadError, NodeNotFoundError, NodeValidationError
from branchtalk.dialogue.models import DialogueNode
from branchtalk.resources.graph_store import GraphStore, node_schema


def write_json(path, data):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f)
    return path


def test_load(graph):
    node = graph.load("welcome")

    assert isinstance(node, DialogueNode)
    assert [line.text for line in node.lines] == ["Hello.", "Welcome to the keep.", "Where to?"]
    assert "welcome" in graph
    assert len(graph) == 6


def test_load_unknown_node(graph):
    with pytest.raises(NodeNotFoundError) as exc:
        graph.load("nowhere")

    assert exc.value.node_id == "nowhere"
    # Also catchable as a plain lookup failure
    assert isinstance(exc.value, KeyError)
    assert graph.get("nowhere") is None


def test_validate_empty_lines(make):
    graph = GraphStore([make.node("empty")])

    with pytest.raises(NodeValidationError) as exc:
        graph.load_valid("empty")

    assert exc.value.node_id == "empty"
    assert exc.value.reason == "node has no lines"


def test_validate_blank_text(make):
    graph = GraphStore([make.node("blank", "Fine.", "   ")])

    with pytest.raises(NodeValidationError, match="line 1 has empty text"):
        graph.load_valid("blank")


def test_add_node_accepts_snake_case(graph):
    node = graph.add_node({
        "id": "snake",
        "lines": [{"text": "hi", "auto_continue": True}],
        "default_next_id": "welcome",
    })

    assert node.lines[0].auto_continue is True
    assert graph.load("snake").default_next_id == "welcome"


def test_duplicate_id_replaces(make, caplog):
    graph = GraphStore([make.node("a", "first")])

    with caplog.at_level(logging.WARNING):
        graph.add_node(make.node("a", "second"))

    assert graph.load("a").lines[0].text == "second"
    assert len(graph) == 1
    assert "Duplicate dialogue node id 'a'" in caplog.text


def test_load_directory(tmp_path, make, caplog):
    write_json(tmp_path / "01_intro.json", [
        make.node("intro", "Hi.", next_id="outro"),
        {"id": "broken", "lines": "not a list"},
    ])
    write_json(tmp_path / "02_outro.json", make.node("outro", "Bye.", ends=True))
    (tmp_path / "03_bad.json").write_text("{ not json", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    graph = GraphStore()
    with caplog.at_level(logging.ERROR):
        count = graph.load_directory(tmp_path)

    assert count == 2
    assert graph.node_ids() == ["intro", "outro"]
    assert "Validation error" in caplog.text
    assert "03_bad.json" in caplog.text


def test_nodes_without_lines_load_but_fail_on_entry(tmp_path):
    path = write_json(tmp_path / "stub.json", {"id": "stub"})

    graph = GraphStore()
    assert graph.load_file(path) == 1

    with pytest.raises(NodeValidationError):
        graph.load_valid("stub")


def test_schema_validation_can_be_disabled(tmp_path):
    # The schema wants a number; the model coerces the string
    path = write_json(tmp_path / "lax.json", {
        "id": "lax",
        "lines": [{"text": "hi", "typewriterSpeed": "12"}],
    })

    assert GraphStore().load_file(path) == 0

    graph = GraphStore(validate_schema=False)
    assert graph.load_file(path) == 1
    assert graph.load("lax").lines[0].typewriter_speed == 12.0


def test_model_errors_are_skipped_without_schema(tmp_path, caplog):
    path = write_json(tmp_path / "extra.json", {"id": "extra", "lines": [], "mood": "grumpy"})

    graph = GraphStore(validate_schema=False)
    with caplog.at_level(logging.ERROR):
        assert graph.load_file(path) == 0

    assert "Invalid node" in caplog.text


def test_load_file_errors(tmp_path):
    with pytest.raises(GraphLoadError):
        GraphStore().load_file(tmp_path / "missing.json")

    with pytest.raises(GraphLoadError):
        GraphStore().load_directory(tmp_path / "missing")


def test_from_config(tmp_path, make, caplog):
    write_json(tmp_path / "nodes.json", [make.node("only", "Just me.")])

    graph = GraphStore.from_config(EngineConfig(dialog_path=tmp_path))
    assert graph.node_ids() == ["only"]

    with caplog.at_level(logging.WARNING):
        empty = GraphStore.from_config(EngineConfig(dialog_path=tmp_path / "nope"))
    assert len(empty) == 0
    assert "Dialog directory not found" in caplog.text


def test_node_schema_is_bundled():
    schema = node_schema()

    assert schema["required"] == ["id"]
    assert "lines" in schema["properties"]


def test_check_graph_clean(graph):
    issues = graph.check_graph(["welcome", "gate"])

    assert issues == []


def test_check_graph_reports_problems(make):
    graph = GraphStore([
        make.node("start", "Hi.", choices=[make.choice("Go", "missing")]),
        make.node("hop", "Hop.", next_id="gone"),
        make.node("empty"),
        make.node("final", "Bye.", ends=True, choices=[make.choice("Again", "start")]),
    ])

    issues = graph.check_graph(["start", "ghost"])
    codes = [(issue.code, issue.node_id) for issue in issues]

    assert ("MISSING_TARGET", "start") in codes
    assert ("MISSING_TARGET", "hop") in codes
    assert ("INVALID_NODE", "empty") in codes
    assert ("MISSING_ENTRY", "ghost") in codes
    assert ("UNREACHABLE_NODE", "final") in codes
    assert ("UNREACHABLE_NODE", "hop") in codes

    # Errors come before warnings
    severities = [issue.severity for issue in issues]
    assert severities == sorted(severities, key=lambda s: s != "ERROR")

    missing = next(issue for issue in issues if issue.node_id == "start")
    assert missing.context["target"] == "missing"
    assert "MISSING_TARGET" in str(missing)


def test_check_graph_accepts_ending_nodes_with_exits(make):
    graph = GraphStore([
        make.node("start", "Hi.", ends=True, choices=[make.choice("On", "next")]),
        make.node("next", "Next.", ends=True, next_id="last"),
        make.node("last", "Bye.", ends=True),
    ])

    assert graph.check_graph(["start"]) == []


def test_reachable_from_handles_cycles(make):
    graph = GraphStore([
        make.node("a", "A", next_id="b"),
        make.node("b", "B", choices=[make.choice("back", "a"), make.choice("on", "c")]),
        make.node("c", "C"),
        make.node("island", "I"),
    ])

    assert graph.reachable_from(["a"]) == {"a", "b", "c"}
    assert graph.reachable_from(["unknown"]) == set()
