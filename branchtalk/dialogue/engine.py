"""
Dialogue engine - the conversation state machine.

Walks the node graph one line at a time, gates choices behind story flags
and publishes presentation-neutral events. It renders nothing; hosts
subscribe to the events and drive progression with advance() and
select_choice().

Phases:
    IDLE -> SHOWING_LINE -> WAITING_FOR_INPUT
         -> (WAITING_FOR_INPUT on the next line | CHOICES_PRESENTED)
         -> IDLE when the conversation ends

One DIALOGUE_STARTED / DIALOGUE_ENDED pair brackets each outer start().
Hops to another node, through a choice or a default next node, only
publish LINE_DISPLAYED and CHOICES_PRESENTED.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from itertools import count
from typing import TYPE_CHECKING, Optional

from branchtalk.core.config import EngineConfig
from branchtalk.core.errors import (
    DialogueError,
    EngineNotActiveError,
    InvalidChoiceIndexError,
    InvalidPhaseError,
)
from branchtalk.core.events import DialogueEvent, EventHandler, EventNotifier, Subscription
from branchtalk.dialogue.models import DialogueChoice, DialogueLine, DialogueNode

if TYPE_CHECKING:
    from branchtalk.core.scheduling import Scheduler, TimerHandle
    from branchtalk.dialogue.flags import FlagStore
    from branchtalk.resources.graph_store import GraphStore

logger = logging.getLogger(__name__)

# Bound on sessions ended by one start() when DIALOGUE_ENDED handlers restart
MAX_ENDS_PER_START = 8


class DialoguePhase(Enum):
    """State of the active session."""
    IDLE = auto()
    SHOWING_LINE = auto()
    WAITING_FOR_INPUT = auto()
    CHOICES_PRESENTED = auto()


@dataclass
class Session:
    """
    Mutable traversal state for one conversation.

    Attributes:
        node: Node currently being played
        line_index: Index of the shown line; len(node.lines) once choices
            are presented
        phase: Current phase
        choices: Choices presented to the player (CHOICES_PRESENTED only)
        timer: Pending auto-continue callback
        line_token: Identifies the shown line for auto-continue callbacks
    """
    node: DialogueNode
    line_index: int = 0
    phase: DialoguePhase = DialoguePhase.SHOWING_LINE
    choices: tuple[DialogueChoice, ...] = ()
    timer: Optional[TimerHandle] = None
    line_token: int = 0


class DialogueEngine:
    """
    Runs one conversation at a time over a GraphStore.

    Handles:
    - Entering nodes and showing their lines
    - Auto-continue timers via the host scheduler
    - Flag-gated choices
    - Default-next chaining
    - Lifecycle events

    Usage:
        engine = DialogueEngine(graph, flags, scheduler)
        engine.subscribe(DialogueEvent.LINE_DISPLAYED, on_line)

        engine.start("welcome")
        engine.advance()
        engine.select_choice(0)
    """

    def __init__(
        self,
        graph: GraphStore,
        flags: FlagStore,
        scheduler: Scheduler,
        notifier: Optional[EventNotifier] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.graph = graph
        self.flags = flags
        self.scheduler = scheduler
        self.notifier = notifier or EventNotifier()
        self.config = config or EngineConfig()

        self._session: Optional[Session] = None
        self._line_tokens = count(1)

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        flags: Optional[FlagStore] = None,
        notifier: Optional[EventNotifier] = None,
    ) -> DialogueEngine:
        """Build an engine with a GraphStore and TickScheduler from config."""
        from branchtalk.core.scheduling import TickScheduler
        from branchtalk.dialogue.flags import InMemoryFlagStore
        from branchtalk.resources.graph_store import GraphStore

        return cls(
            GraphStore.from_config(config),
            flags if flags is not None else InMemoryFlagStore(),
            TickScheduler(config.max_callbacks_per_update),
            notifier=notifier,
            config=config,
        )

    # --- State ---

    @property
    def phase(self) -> DialoguePhase:
        return self._session.phase if self._session else DialoguePhase.IDLE

    @property
    def is_active(self) -> bool:
        """Check if a conversation is in progress."""
        return self._session is not None

    @property
    def current_node(self) -> Optional[DialogueNode]:
        return self._session.node if self._session else None

    @property
    def current_line(self) -> Optional[DialogueLine]:
        """The line on screen; the node's last line while choices are shown."""
        if not self._session:
            return None
        lines = self._session.node.lines
        return lines[min(self._session.line_index, len(lines) - 1)]

    @property
    def presented_choices(self) -> tuple[DialogueChoice, ...]:
        return self._session.choices if self._session else ()

    def is_waiting_for_input(self) -> bool:
        return self.phase in (DialoguePhase.WAITING_FOR_INPUT, DialoguePhase.CHOICES_PRESENTED)

    def get_progress(self) -> float:
        """Fraction of the current node's lines passed, in [0, 1]."""
        if not self._session:
            return 0.0
        total = len(self._session.node.lines)
        return min(1.0, self._session.line_index / total)

    def subscribe(
        self,
        event_type: DialogueEvent | str,
        handler: EventHandler,
        priority: int = 0,
        once: bool = False,
    ) -> Subscription:
        """Subscribe to an engine event. Call .cancel() on the result to stop."""
        return self.notifier.subscribe(event_type, handler, priority=priority, once=once)

    # --- Control ---

    def start(self, node_id: str) -> None:
        """
        Start a conversation at node_id.

        Any active conversation is ended first, publishing its
        DIALOGUE_ENDED before the new DIALOGUE_STARTED. If DIALOGUE_ENDED
        handlers keep starting other dialogues, start() gives up after
        MAX_ENDS_PER_START sessions and reports InvalidPhaseError.

        Raises:
            NodeNotFoundError: unknown node id (nothing changes)
            NodeValidationError: node cannot be played (nothing changes)
        """
        node = self.graph.load_valid(node_id)

        # An ended handler may start yet another session, so loop until idle
        for _ in range(MAX_ENDS_PER_START):
            if self._session is None:
                break
            logger.warning(
                f"Dialogue {self._session.node.id!r} is still active; ending it before starting {node_id!r}"
            )
            self.end()
        else:
            if self._session is not None:
                self._report(InvalidPhaseError(
                    f"DIALOGUE_ENDED handlers keep starting dialogues; not starting {node_id!r}"
                ))
                return

        session = Session(node=node)
        self._session = session
        logger.info(f"Started dialogue {node.id!r} ({len(node.lines)} lines, {len(node.choices)} choices)")

        self.notifier.publish(DialogueEvent.DIALOGUE_STARTED, node=node)

        # A DIALOGUE_STARTED handler may have ended or replaced the session
        if self._session is session:
            self._show_line(session)

    def advance(self) -> bool:
        """
        Move past the current line.

        Shows the next line, presents the available choices, follows the
        default next node or ends the conversation, in that order of
        preference. Nothing is committed until the next state is known, so
        a bad default-next node leaves the session where it was.

        Returns:
            True if a transition happened, False if the call was ignored

        Raises:
            NodeNotFoundError, NodeValidationError: default next node is
                missing or cannot be played
        """
        session = self._session
        if session is None:
            return self._report(EngineNotActiveError("advance() called with no active dialogue"))
        if session.phase != DialoguePhase.WAITING_FOR_INPUT:
            return self._report(InvalidPhaseError(f"advance() is not valid while {session.phase.name}"))

        node = session.node
        next_index = session.line_index + 1

        while True:
            if next_index < len(node.lines):
                self._enter(session, node, next_index)
                return True

            choices = node.available_choices(self.flags)
            if choices:
                self._present_choices(session, node, choices)
                return True

            if node.default_next_id is None:
                self.end()
                return True

            logger.debug(f"Following default next {node.id!r} -> {node.default_next_id!r}")
            node = self.graph.load_valid(node.default_next_id)
            next_index = 0

    def select_choice(self, index: int) -> bool:
        """
        Take one of the presented choices.

        The choice's set_flag is written only once the target node has
        loaded and validated.

        Returns:
            True if the choice was taken, False if the call was ignored

        Raises:
            InvalidChoiceIndexError: index outside the presented choices
            NodeNotFoundError, NodeValidationError: target cannot be played
        """
        session = self._session
        if session is None:
            return self._report(EngineNotActiveError("select_choice() called with no active dialogue"))
        if session.phase != DialoguePhase.CHOICES_PRESENTED:
            return self._report(InvalidPhaseError(f"select_choice() is not valid while {session.phase.name}"))

        if not 0 <= index < len(session.choices):
            raise InvalidChoiceIndexError(index, len(session.choices))

        choice = session.choices[index]
        target = self.graph.load_valid(choice.target_node_id)

        logger.info(f"Selected choice {index} {choice.text!r} -> {target.id!r}")
        if choice.set_flag is not None:
            self.flags.set_flag(choice.set_flag, True)
            logger.debug(f"Set story flag {choice.set_flag!r}")

        self._enter(session, target, 0)
        return True

    def skip_typewriter(self) -> bool:
        """Ask presentation to reveal the current line at once. No state change."""
        if self._session is None:
            return self._report(EngineNotActiveError("skip_typewriter() called with no active dialogue"))

        self.notifier.publish(
            DialogueEvent.TYPEWRITER_SKIPPED,
            node_id=self._session.node.id,
            line=self.current_line,
        )
        return True

    def end(self) -> bool:
        """
        End the current conversation.

        Idempotent: returns False, silently, when nothing is active.
        """
        session = self._session
        if session is None:
            return False

        self._cancel_timer(session)
        self._session = None

        node = session.node
        if node.on_complete_event_name:
            logger.info(f"Ended dialogue at {node.id!r} (completion event {node.on_complete_event_name!r})")
        else:
            logger.info(f"Ended dialogue at {node.id!r}")

        self.notifier.publish(
            DialogueEvent.DIALOGUE_ENDED,
            node_id=node.id,
            on_complete_event=node.on_complete_event_name,
        )
        return True

    # --- Internals ---

    def _enter(self, session: Session, node: DialogueNode, line_index: int) -> None:
        self._commit_node(session, node, line_index)
        self._show_line(session)

    def _commit_node(self, session: Session, node: DialogueNode, line_index: int) -> None:
        self._cancel_timer(session)
        session.node = node
        session.line_index = line_index
        session.choices = ()

    def _show_line(self, session: Session) -> None:
        line = session.node.lines[session.line_index]
        session.phase = DialoguePhase.WAITING_FOR_INPUT
        session.line_token = next(self._line_tokens)

        if line.auto_continue:
            token = session.line_token
            session.timer = self.scheduler.schedule(
                line.auto_continue_delay_seconds,
                lambda: self._on_auto_continue(token),
            )

        logger.debug(
            f"Line {session.line_index + 1}/{len(session.node.lines)} of {session.node.id!r}: {line.speaker}"
        )
        self.notifier.publish(
            DialogueEvent.LINE_DISPLAYED,
            node_id=session.node.id,
            line=line,
            line_index=session.line_index,
        )

    def _present_choices(
        self,
        session: Session,
        node: DialogueNode,
        choices: tuple[DialogueChoice, ...],
    ) -> None:
        self._commit_node(session, node, len(node.lines))
        session.choices = choices
        session.phase = DialoguePhase.CHOICES_PRESENTED

        logger.debug(f"Presenting {len(choices)} choices for {node.id!r}")
        self.notifier.publish(
            DialogueEvent.CHOICES_PRESENTED,
            node_id=node.id,
            choices=choices,
        )

    def _on_auto_continue(self, token: int) -> None:
        session = self._session
        if (
            session is None
            or session.line_token != token
            or session.phase != DialoguePhase.WAITING_FOR_INPUT
        ):
            logger.debug("Ignoring stale auto-continue")
            return

        session.timer = None
        try:
            self.advance()
        except DialogueError as e:
            logger.error(f"Auto-continue failed: {e}")

    def _cancel_timer(self, session: Session) -> None:
        if session.timer is not None:
            self.scheduler.cancel(session.timer)
            session.timer = None

    def _report(self, error: DialogueError) -> bool:
        """Raise misuse errors in strict mode, otherwise log and ignore."""
        if self.config.strict:
            raise error
        logger.warning(str(error))
        return False

    def __repr__(self) -> str:
        node_id = self._session.node.id if self._session else None
        return f"DialogueEngine(phase={self.phase.name}, node={node_id!r})"
