"""
Core module.

Exports:
- EventNotifier, Event, DialogueEvent, Subscription: Event system
- Scheduler, TickScheduler, TimerHandle: Host clock
- EngineConfig: Configuration
- DialogueError and subclasses: Error taxonomy
"""

from branchtalk.core.config import EngineConfig
from branchtalk.core.errors import (
    DialogueError,
    EngineNotActiveError,
    GraphLoadError,
    InvalidChoiceIndexError,
    InvalidPhaseError,
    NodeNotFoundError,
    NodeValidationError,
)
from branchtalk.core.events import DialogueEvent, Event, EventNotifier, Subscription
from branchtalk.core.scheduling import Scheduler, TickScheduler, TimerHandle

__all__ = [
    # Config
    "EngineConfig",
    # Events
    "EventNotifier",
    "Event",
    "DialogueEvent",
    "Subscription",
    # Clock
    "Scheduler",
    "TickScheduler",
    "TimerHandle",
    # Errors
    "DialogueError",
    "NodeNotFoundError",
    "NodeValidationError",
    "InvalidChoiceIndexError",
    "EngineNotActiveError",
    "InvalidPhaseError",
    "GraphLoadError",
]
