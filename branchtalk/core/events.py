"""
Typed event notifier for dialogue lifecycle events.

Uses Enums for event types to prevent magic strings. Dispatch is
synchronous and ordered; events published from inside a handler are
queued and delivered once the current event has reached every subscriber.

Usage:
    notifier = EventNotifier()

    # Subscribe
    sub = notifier.subscribe(DialogueEvent.LINE_DISPLAYED, on_line)

    # Publish
    notifier.publish(DialogueEvent.LINE_DISPLAYED, line=line, line_index=0)

    # Teardown
    sub.cancel()
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from itertools import count
from typing import Any, Callable

logger = logging.getLogger(__name__)


class DialogueEvent(Enum):
    """Dialogue engine lifecycle events."""
    DIALOGUE_STARTED = "dialogue_started"
    LINE_DISPLAYED = "line_displayed"
    CHOICES_PRESENTED = "choices_presented"
    TYPEWRITER_SKIPPED = "typewriter_skipped"
    DIALOGUE_ENDED = "dialogue_ended"

    @classmethod
    def coerce(cls, value: DialogueEvent | str) -> DialogueEvent:
        """Accept an enum member, its value or its name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            try:
                return cls[str(value).upper()]
            except KeyError:
                raise ValueError(f"Unknown dialogue event: {value!r}") from None


@dataclass
class Event:
    """
    Event data container.

    Attributes:
        type: The event type (Enum member)
        data: Dictionary of event-specific data
    """
    type: DialogueEvent
    data: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Get event data by key."""
        return self.data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        """Get event data by key (dict-style)."""
        return self.data[key]


# Type alias for event handlers
EventHandler = Callable[[Event], None]


@dataclass(eq=False)
class _Entry:
    priority: int
    order: int
    handler: EventHandler
    once: bool
    active: bool = True


class Subscription:
    """Handle returned by subscribe(); cancel() removes the handler."""

    def __init__(self, notifier: EventNotifier, event_type: DialogueEvent, entry: _Entry):
        self._notifier = notifier
        self.event_type = event_type
        self._entry = entry

    @property
    def active(self) -> bool:
        return self._entry.active

    def cancel(self) -> None:
        """Unsubscribe. Safe to call more than once."""
        self._notifier._remove(self.event_type, self._entry)

    def __call__(self) -> None:
        self.cancel()


class EventNotifier:
    """
    Publish/subscribe channel for engine lifecycle events.

    Features:
    - Typed events (Enum-based)
    - Priority ordering (stable for equal priorities)
    - One-shot handlers
    - Strong references with explicit teardown via Subscription
    - Failing handlers are logged and skipped

    Events published from inside a handler are queued, not dispatched
    inline. Every subscriber of the current event still receives it, but
    subscribers that run after a handler which triggered another transition
    (for example by calling advance()) observe the publisher's state after
    that transition. The event payload always describes the transition it
    was published for; read state from the payload when order matters.
    """

    def __init__(self):
        self._handlers: dict[DialogueEvent, list[_Entry]] = {}
        # Queue for events published during handling
        self._event_queue: deque[Event] = deque()
        self._is_publishing = False
        self._order = count()

    def subscribe(
        self,
        event_type: DialogueEvent | str,
        handler: EventHandler,
        priority: int = 0,
        once: bool = False,
    ) -> Subscription:
        """
        Subscribe to an event type.

        Args:
            event_type: The event type to listen for
            handler: Callback function(event: Event)
            priority: Higher priority handlers are called first (default 0)
            once: If True, handler is removed after first call

        Returns:
            Subscription handle for unsubscribing
        """
        if not callable(handler):
            raise TypeError(f"Event handler must be callable, got {handler!r}")

        event_type = DialogueEvent.coerce(event_type)
        entry = _Entry(priority, next(self._order), handler, once)

        # Insert sorted by priority (highest first), after equal priorities
        handlers = self._handlers.setdefault(event_type, [])
        insert_idx = len(handlers)
        for i, existing in enumerate(handlers):
            if priority > existing.priority:
                insert_idx = i
                break
        handlers.insert(insert_idx, entry)

        return Subscription(self, event_type, entry)

    def unsubscribe(self, event_type: DialogueEvent | str, handler: EventHandler) -> None:
        """
        Unsubscribe every registration of handler for an event type.

        Args:
            event_type: The event type
            handler: The handler to remove
        """
        event_type = DialogueEvent.coerce(event_type)
        for entry in list(self._handlers.get(event_type, [])):
            if entry.handler == handler:
                self._remove(event_type, entry)

    def publish(self, event_type: DialogueEvent | str, **data: Any) -> Event:
        """
        Publish an event.

        Args:
            event_type: The event type
            **data: Event data as keyword arguments

        Returns:
            The Event object
        """
        event = Event(type=DialogueEvent.coerce(event_type), data=data)

        # Queue event if we're already publishing
        self._event_queue.append(event)
        if not self._is_publishing:
            self._drain()

        return event

    def clear(self, event_type: DialogueEvent | str | None = None) -> None:
        """
        Clear handlers.

        Args:
            event_type: If specified, only clear handlers for this type.
                       If None, clear all handlers.
        """
        if event_type is None:
            types = list(self._handlers)
        else:
            types = [DialogueEvent.coerce(event_type)]

        for key in types:
            for entry in self._handlers.pop(key, []):
                entry.active = False

    def handler_count(self, event_type: DialogueEvent | str) -> int:
        """Number of live handlers for an event type."""
        return len(self._handlers.get(DialogueEvent.coerce(event_type), []))

    def _remove(self, event_type: DialogueEvent, entry: _Entry) -> None:
        entry.active = False
        handlers = self._handlers.get(event_type)
        if handlers and entry in handlers:
            handlers.remove(entry)

    def _drain(self) -> None:
        self._is_publishing = True
        try:
            while self._event_queue:
                self._dispatch(self._event_queue.popleft())
        finally:
            self._is_publishing = False

    def _dispatch(self, event: Event) -> None:
        """Dispatch event to handlers."""
        # Snapshot so handlers may subscribe/unsubscribe while we iterate
        for entry in list(self._handlers.get(event.type, [])):
            if not entry.active:
                continue

            if entry.once:
                self._remove(event.type, entry)

            try:
                entry.handler(event)
            except Exception:
                # Log but don't crash
                logger.exception("Error in event handler for %s", event.type.name)
