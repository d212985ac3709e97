"""
Dialogue module - branching conversations.

Provides:
- Node/line/choice data model
- Story flag storage
- The conversation state machine
- Dialogue script parsing
"""

from branchtalk.dialogue.models import DialogueChoice, DialogueLine, DialogueNode
from branchtalk.dialogue.flags import FlagStore, InMemoryFlagStore
from branchtalk.dialogue.engine import DialogueEngine, DialoguePhase, Session
from branchtalk.dialogue.script import DialogueScriptParser, ScriptSyntaxError, compile_script

__all__ = [
    "DialogueNode",
    "DialogueLine",
    "DialogueChoice",
    "FlagStore",
    "InMemoryFlagStore",
    "DialogueEngine",
    "DialoguePhase",
    "Session",
    "DialogueScriptParser",
    "ScriptSyntaxError",
    "compile_script",
]
