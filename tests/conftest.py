import os
import sys
import pytest

# Ensure branchtalk can be imported without installing
sys.path.append(os.getcwd())

from branchtalk.core.config import EngineConfig
from branchtalk.core.events import DialogueEvent, EventNotifier
from branchtalk.core.scheduling import TickScheduler
from branchtalk.dialogue.engine import DialogueEngine
from branchtalk.dialogue.flags import InMemoryFlagStore
from branchtalk.resources.graph_store import GraphStore


class NodeFactory:
    """Builds node JSON in the authoring format."""

    @staticmethod
    def line(text, speaker="Narrator", **extra):
        return {"speaker": speaker, "text": text, **extra}

    @staticmethod
    def node(node_id, *texts, choices=(), next_id=None, ends=False, lines=None, **extra):
        """One line per text, or explicit line dicts via lines=."""
        data = {
            "id": node_id,
            "lines": lines if lines is not None else [NodeFactory.line(text) for text in texts],
            "choices": list(choices),
            "endsConversation": ends,
            **extra,
        }
        if next_id is not None:
            data["defaultNextId"] = next_id
        return data

    @staticmethod
    def choice(text, target, requires=None, sets=None):
        data = {"text": text, "targetNodeId": target}
        if requires:
            data["requiredFlag"] = requires
        if sets:
            data["setFlag"] = sets
        return data


class EventRecorder:
    """Subscribes to every dialogue event and keeps them in order."""

    def __init__(self, notifier):
        self.events = []
        for event_type in DialogueEvent:
            notifier.subscribe(event_type, self.events.append)

    @property
    def types(self):
        return [event.type for event in self.events]

    def of(self, event_type):
        return [event for event in self.events if event.type == event_type]

    def clear(self):
        self.events.clear()


@pytest.fixture
def make():
    """Node JSON builders."""
    return NodeFactory


@pytest.fixture
def notifier():
    """Fresh EventNotifier for each test."""
    return EventNotifier()


@pytest.fixture
def flags():
    return InMemoryFlagStore()


@pytest.fixture
def scheduler():
    return TickScheduler()


@pytest.fixture
def graph(make):
    """The welcome/pathA/pathB scenario plus a flag-gated guard branch."""
    return GraphStore([
        make.node(
            "welcome", "Hello.", "Welcome to the keep.", "Where to?",
            choices=[make.choice("pathA", "pathA"), make.choice("pathB", "pathB")],
        ),
        make.node("pathA", "You went left.", ends=True),
        make.node("pathB", "You went right.", ends=True),
        make.node(
            "gate", "A guard blocks the gate.",
            choices=[
                make.choice("Greet the guard", "greeted", sets="met_guard"),
                make.choice("Wave again", "gate_pass", requires="met_guard"),
                make.choice("Leave", "pathA"),
            ],
        ),
        make.node("greeted", "The guard nods.", next_id="gate"),
        make.node("gate_pass", "The guard lets you through.", ends=True, onCompleteEventName="gate_opened"),
    ])


@pytest.fixture
def engine(graph, flags, scheduler, notifier):
    return DialogueEngine(graph, flags, scheduler, notifier=notifier, config=EngineConfig())


@pytest.fixture
def strict_engine(graph, flags, scheduler, notifier):
    return DialogueEngine(graph, flags, scheduler, notifier=notifier, config=EngineConfig(strict=True))


@pytest.fixture
def recorder(notifier):
    return EventRecorder(notifier)
