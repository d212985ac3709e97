"""
Dialogue data model - nodes, lines, choices.

Models are frozen Pydantic models. A node handed out by the GraphStore can
be shared between sessions because nothing can mutate it.

JSON keys are camelCase (``targetNodeId``); Python attributes are
snake_case (``target_node_id``). Both spellings are accepted on input.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from branchtalk.dialogue.flags import FlagStore


class DialogueModel(BaseModel):
    """
    Base class for authored dialogue data.

    Pydantic gives us:
    - Type validation on load
    - Immutability (frozen)
    - JSON serialization with camelCase keys
    """

    model_config = ConfigDict(
        frozen=True,
        extra='forbid',
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json(self) -> dict[str, Any]:
        """Serialize to the authoring JSON shape."""
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class DialogueLine(DialogueModel):
    """
    One spoken or narrated line.

    Attributes:
        speaker: Display name of the speaker
        text: Line text
        typewriter_speed: Characters per second, a hint for presentation
        auto_continue: Advance automatically after auto_continue_delay_seconds
        auto_continue_delay_seconds: Delay before auto-continue
        portrait_ref, voice_ref, bgm_hint, background_hint: Presentation
            hints forwarded verbatim
    """
    speaker: str = "Narrator"
    text: str = ""
    typewriter_speed: float = 30.0
    auto_continue: bool = False
    auto_continue_delay_seconds: float = 2.0
    portrait_ref: Optional[str] = None
    voice_ref: Optional[str] = None
    bgm_hint: Optional[str] = None
    background_hint: Optional[str] = None

    @field_validator('auto_continue_delay_seconds')
    @classmethod
    def non_negative_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("autoContinueDelaySeconds must be >= 0")
        return value


class DialogueChoice(DialogueModel):
    """A player-selectable branch, optionally gated by and setting a flag."""
    text: str
    target_node_id: str
    required_flag: Optional[str] = None
    set_flag: Optional[str] = None

    normalize_blank = field_validator('required_flag', 'set_flag', mode='before')(_blank_to_none)

    def is_available(self, flags: FlagStore) -> bool:
        return self.required_flag is None or bool(flags.get_flag(self.required_flag))


class DialogueNode(DialogueModel):
    """One authored unit of dialogue: lines, choices and a transition rule."""
    id: str
    lines: tuple[DialogueLine, ...] = ()
    choices: tuple[DialogueChoice, ...] = ()
    default_next_id: Optional[str] = None
    ends_conversation: bool = False
    on_complete_event_name: Optional[str] = None

    normalize_blank = field_validator(
        'default_next_id', 'on_complete_event_name', mode='before'
    )(_blank_to_none)

    @field_validator('id')
    @classmethod
    def id_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("node id must not be blank")
        return value

    @property
    def has_choices(self) -> bool:
        return len(self.choices) > 0

    def available_choices(self, flags: FlagStore) -> tuple[DialogueChoice, ...]:
        """Choices whose required flag is set, in authored order."""
        return tuple(choice for choice in self.choices if choice.is_available(flags))

    def successor_ids(self) -> list[str]:
        """Every node id this node can transition to."""
        ids = [choice.target_node_id for choice in self.choices]
        if self.default_next_id is not None:
            ids.append(self.default_next_id)
        return ids
