"""
branchtalk

A data-driven dialogue flow engine: walks an authored graph of dialogue
nodes, gates choices behind story flags and publishes presentation-neutral
events for a host game to render.

Quick Start:
    from branchtalk import DialogueEngine, DialogueEvent, GraphStore, InMemoryFlagStore, TickScheduler

    graph = GraphStore()
    graph.load_directory("dialog")

    engine = DialogueEngine(graph, InMemoryFlagStore(), TickScheduler())
    engine.subscribe(DialogueEvent.LINE_DISPLAYED, lambda e: print(e["line"].text))
    engine.start("welcome")
"""

__version__ = "0.1.0"

# Re-export core components for convenience
from branchtalk.core import (
    DialogueError,
    DialogueEvent,
    EngineConfig,
    EngineNotActiveError,
    Event,
    EventNotifier,
    GraphLoadError,
    InvalidChoiceIndexError,
    InvalidPhaseError,
    NodeNotFoundError,
    NodeValidationError,
    Scheduler,
    Subscription,
    TickScheduler,
    TimerHandle,
)
from branchtalk.dialogue import (
    DialogueChoice,
    DialogueEngine,
    DialogueLine,
    DialogueNode,
    DialoguePhase,
    FlagStore,
    InMemoryFlagStore,
)
from branchtalk.resources import GraphIssue, GraphStore

__all__ = [
    # Engine
    "DialogueEngine",
    "DialoguePhase",
    # Data
    "DialogueNode",
    "DialogueLine",
    "DialogueChoice",
    "GraphStore",
    "GraphIssue",
    # Flags
    "FlagStore",
    "InMemoryFlagStore",
    # Events
    "EventNotifier",
    "Event",
    "DialogueEvent",
    "Subscription",
    # Clock
    "Scheduler",
    "TickScheduler",
    "TimerHandle",
    # Config
    "EngineConfig",
    # Errors
    "DialogueError",
    "NodeNotFoundError",
    "NodeValidationError",
    "InvalidChoiceIndexError",
    "EngineNotActiveError",
    "InvalidPhaseError",
    "GraphLoadError",
]
